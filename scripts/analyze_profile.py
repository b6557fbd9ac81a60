from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

import httpx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from profile_analyzer.ai.factory import get_text_analyzer  # noqa: E402
from profile_analyzer.extraction.document import ProfileDocument  # noqa: E402
from profile_analyzer.schemas.analysis import AnalysisEvent, AnalysisOptions  # noqa: E402
from profile_analyzer.services.orchestrator import ExtractionOrchestrator  # noqa: E402
from profile_analyzer.storage.cache_store import CacheStore  # noqa: E402
from profile_analyzer.storage.kv_store import MemoryKeyValueStore, SqliteKeyValueStore  # noqa: E402


def _load_html(args: argparse.Namespace) -> str:
    if args.file:
        return Path(args.file).read_text(encoding="utf-8")
    with httpx.Client(timeout=30.0, headers={"User-Agent": args.user_agent}) as client:
        resp = client.get(args.url, follow_redirects=True)
        resp.raise_for_status()
        return resp.text


def _print_event(event: AnalysisEvent) -> None:
    print(event.model_dump_json(exclude_none=True))


async def _run(args: argparse.Namespace) -> int:
    html = _load_html(args)
    store = SqliteKeyValueStore(args.cache_db) if args.cache_db else MemoryKeyValueStore()
    analyzer = get_text_analyzer() if args.ai else None
    if args.ai and analyzer is None:
        print("OPENAI_API_KEY is not set; continuing without quality analysis.", file=sys.stderr)

    orchestrator = ExtractionOrchestrator(CacheStore(store), analyzer, analysis_mode=args.mode)
    options = AnalysisOptions(
        enable_ai=args.ai,
        force_refresh=args.force,
        target_role=args.target_role,
        seniority_level=args.seniority,
    )
    run = await orchestrator.analyze(ProfileDocument(html, url=args.url), options, listener=_print_event)

    summary = {
        "profile_id": run.profile_id,
        "state": run.state.value,
        "from_cache": run.from_cache,
        "completeness": run.completeness.score if run.completeness else None,
        "level": run.completeness.level if run.completeness else None,
        "quick_wins": [rec.message for rec in run.completeness.top_recommendations()] if run.completeness else [],
        "quality": run.quality.overall_score if run.quality else None,
        "error": run.error,
    }
    print(json.dumps(summary, indent=2))
    close = getattr(store, "close", None)
    if callable(close):
        close()
    return 0 if run.state.value == "complete" else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Analyze a saved or fetched profile page.")
    parser.add_argument("--url", required=True, help="Profile URL (also used as identity)")
    parser.add_argument("--file", help="Read HTML from this file instead of fetching the URL")
    parser.add_argument("--cache-db", help="SQLite cache path; in-memory when omitted")
    parser.add_argument("--ai", action="store_true", help="Run quality analysis through the configured analyzer")
    parser.add_argument("--force", action="store_true", help="Ignore any cached result")
    parser.add_argument("--mode", choices=("section", "profile"), default=None)
    parser.add_argument("--target-role", default=None)
    parser.add_argument("--seniority", default=None)
    parser.add_argument("--user-agent", default="Mozilla/5.0 (profile-analyzer)")
    args = parser.parse_args()

    raise SystemExit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
