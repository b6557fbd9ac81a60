import contextlib
from contextlib import asynccontextmanager
import asyncio
import logging

from profile_analyzer.core.config import settings
from profile_analyzer.services.analysis_service import init_runtime, shutdown_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    cache = init_runtime()
    try:
        purged = await cache.purge_expired()
        if purged:
            logger.info("cache_startup_purge deleted=%s", purged)
    except Exception as exc:  # pragma: no cover - startup must not fail on a bad store
        logger.warning("cache_startup_purge_failed: %s", exc)

    stop_event = asyncio.Event()

    async def periodic_purge() -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=settings.cache_purge_interval_s)
            except asyncio.TimeoutError:
                pass
            else:
                break
            try:
                deleted = await cache.purge_expired()
                if deleted:
                    logger.info("cache_retention_purge deleted=%s", deleted)
            except Exception as exc:  # pragma: no cover - defensive guard
                logger.warning("cache_retention_purge_failed: %s", exc)

    purge_task = asyncio.create_task(periodic_purge())
    yield
    stop_event.set()
    if not purge_task.done():
        purge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purge_task
    shutdown_runtime()
