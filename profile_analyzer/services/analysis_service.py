from typing import AsyncGenerator
import asyncio
import contextlib
import hashlib
import json
import logging
import time

from profile_analyzer.utils.sse import sse
from profile_analyzer.core import events
from profile_analyzer.core.config import settings

from profile_analyzer.ai.factory import get_text_analyzer
from profile_analyzer.ai.types import TextAnalyzer
from profile_analyzer.extraction.discovery import profile_id_from_url
from profile_analyzer.extraction.document import ProfileDocument
from profile_analyzer.schemas.analysis import AnalysisEvent, AnalysisOptions, AnalyzeRequest
from profile_analyzer.services.orchestrator import AnalysisRun, ExtractionOrchestrator
from profile_analyzer.storage.cache_store import CacheStore
from profile_analyzer.storage.kv_store import KeyValueStore, SqliteKeyValueStore

logger = logging.getLogger("profile_analyzer.analysis")

_ANONYMOUS = "_anonymous"
_store: KeyValueStore | None = None
_cache: CacheStore | None = None
_analyzer: TextAnalyzer | None = None
_orchestrators: dict[str, ExtractionOrchestrator] = {}


def _short_hash(value: str | None) -> str:
    normalized = (value or "").strip()
    if not normalized:
        return ""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:12]


def init_runtime(store: KeyValueStore | None = None, analyzer: TextAnalyzer | None = None) -> CacheStore:
    """Wire the store, cache and analyzer shared by every request."""
    global _store, _cache, _analyzer
    _store = store if store is not None else SqliteKeyValueStore(settings.cache_db_path)
    _cache = CacheStore(_store)
    if analyzer is not None:
        _analyzer = analyzer
    elif settings.analysis_enabled:
        _analyzer = get_text_analyzer()
    else:
        _analyzer = None
    _orchestrators.clear()
    return _cache


def shutdown_runtime() -> None:
    global _store, _cache, _analyzer
    close = getattr(_store, "close", None)
    if callable(close):
        close()
    _store = None
    _cache = None
    _analyzer = None
    _orchestrators.clear()


def get_cache_store() -> CacheStore:
    if _cache is None:
        return init_runtime()
    return _cache


def get_orchestrator(profile_key: str | None) -> ExtractionOrchestrator:
    """One orchestrator per profile so a new request supersedes only its own profile's run."""
    cache = get_cache_store()
    key = profile_key or _ANONYMOUS
    orchestrator = _orchestrators.get(key)
    if orchestrator is None:
        orchestrator = ExtractionOrchestrator(cache, _analyzer)
        _orchestrators[key] = orchestrator
    return orchestrator


def _run_summary(run: AnalysisRun) -> dict:
    return {
        "run_id": run.run_id,
        "profile_id": run.profile_id,
        "state": run.state.value,
        "superseded": run.superseded,
        "from_cache": run.from_cache,
        "fingerprint": run.fingerprint,
        "error": run.error,
        "completeness": run.completeness.model_dump(mode="json") if run.completeness else None,
        "quality": run.quality.model_dump(mode="json") if run.quality else None,
    }


async def stream_analysis(payload: AnalyzeRequest) -> AsyncGenerator[str, None]:
    started_at = time.perf_counter()
    queue: asyncio.Queue[AnalysisEvent | None] = asyncio.Queue()
    task: asyncio.Task | None = None
    try:
        document = ProfileDocument(payload.html, url=payload.url)
        options = AnalysisOptions(**payload.model_dump(exclude={"url", "html"}))
        orchestrator = get_orchestrator(profile_id_from_url(payload.url))
        run = orchestrator.start_run(document, options, listener=queue.put_nowait)

        logger.info(
            json.dumps(
                {
                    "event": "analysis_request",
                    "run_id": run.run_id,
                    "url_hash": _short_hash(payload.url),
                    "html_len": len(payload.html),
                    "enable_ai": options.enable_ai,
                    "force_refresh": options.force_refresh,
                    "mode": options.mode or settings.analysis_mode,
                }
            )
        )

        task = asyncio.create_task(orchestrator.execute(run))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        while True:
            event = await queue.get()
            if event is None:
                break
            yield sse(events.STATE, event.model_dump_json(exclude_none=True))

        await task
        yield sse(events.RESULT, json.dumps(_run_summary(run)))
        yield sse(events.DONE, "[DONE]")

    except Exception as ex:
        logger.exception(
            json.dumps(
                {
                    "event": "analysis_error",
                    "error": str(ex),
                    "duration_ms": int((time.perf_counter() - started_at) * 1000),
                }
            )
        )
        yield sse(events.ERROR, str(ex))
        yield sse(events.DONE, "[DONE]")
    else:
        logger.info(
            json.dumps(
                {
                    "event": "analysis_complete",
                    "duration_ms": int((time.perf_counter() - started_at) * 1000),
                }
            )
        )
    finally:
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
