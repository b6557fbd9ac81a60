from __future__ import annotations

import json
import re
from typing import Any

from profile_analyzer.core.errors import ExternalAnalysisError

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)


def parse_json_object(content: str | None) -> dict[str, Any]:
    """Parse an analyzer reply that should be a JSON object.

    Accepts bare JSON, JSON inside a fenced block, or JSON embedded in prose.
    Raises ExternalAnalysisError when no object can be recovered.
    """
    text = (content or "").strip()
    if not text:
        raise ExternalAnalysisError("Analyzer returned an empty response.", code="analysis_empty")

    candidates = [text]
    candidates.extend(match.strip() for match in _FENCE.findall(text))
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise ExternalAnalysisError("Analyzer response did not contain a JSON object.")
