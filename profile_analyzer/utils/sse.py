def sse(event: str, data: str) -> str:
    """Format one Server-Sent Events frame; multi-line data keeps one prefix per line."""
    lines = (data or "").splitlines() or [""]
    payload = "\n".join(f"data: {line}" for line in lines)
    return f"event: {event}\n{payload}\n\n"
