from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, TypeVar

from pydantic import ValidationError

from profile_analyzer.core.config import clamp_ttl_days, settings
from profile_analyzer.core.errors import CacheCorruptionError, TransientIOError
from profile_analyzer.schemas.cache import CacheEntry
from profile_analyzer.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "profile_cache:"

T = TypeVar("T")


def cache_key(profile_id: str) -> str:
    return f"{KEY_PREFIX}{profile_id}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def decode_entry(raw: Any) -> CacheEntry:
    """Validate a stored value, raising CacheCorruptionError for anything unusable."""
    if not isinstance(raw, dict):
        raise CacheCorruptionError(f"Stored value is {type(raw).__name__}, expected an object.")
    try:
        entry = CacheEntry.model_validate(raw)
    except ValidationError as exc:
        raise CacheCorruptionError(f"Stored entry failed validation: {exc.error_count()} error(s)") from exc
    if not entry.has_score:
        raise CacheCorruptionError("Stored entry has no completeness score.")
    return entry


def is_valid(
    entry: CacheEntry | None,
    current_fingerprint: str,
    ttl_days: int | None = None,
    now: datetime | None = None,
) -> bool:
    if entry is None or not entry.has_score:
        return False
    if entry.fingerprint != current_fingerprint:
        return False
    ttl = timedelta(days=clamp_ttl_days(ttl_days if ttl_days is not None else settings.cache_ttl_days))
    age = (now or _utc_now()) - _aware(entry.computed_at)
    return age < ttl


class CacheStore:
    """Per-profile analysis cache on top of a KeyValueStore.

    One entry per profile id. Writes replace the whole entry, so two
    overlapping runs resolve as last write wins.
    """

    def __init__(self, store: KeyValueStore, *, timeout_s: float | None = None, ttl_days: int | None = None):
        self.store = store
        self.timeout_s = timeout_s if timeout_s is not None else settings.store_timeout_s
        self.ttl_days = clamp_ttl_days(ttl_days if ttl_days is not None else settings.cache_ttl_days)

    async def _call(self, awaitable: Awaitable[T], op: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_s)
        except asyncio.TimeoutError as exc:
            raise TransientIOError(f"Cache {op} timed out after {self.timeout_s}s") from exc

    async def get(self, profile_id: str) -> CacheEntry | None:
        key = cache_key(profile_id)
        values = await self._call(self.store.get([key]), "get")
        if key not in values:
            return None
        try:
            return decode_entry(values[key])
        except CacheCorruptionError as exc:
            logger.warning("cache_entry_corrupt profile_id=%s: %s", profile_id, exc)
            return None

    async def put(self, entry: CacheEntry) -> None:
        await self._call(self.store.set({cache_key(entry.profile_id): entry.model_dump(mode="json")}), "put")
        logger.info("cache_entry_written profile_id=%s fingerprint=%s", entry.profile_id, entry.fingerprint[:12])

    async def invalidate(self, profile_id: str) -> None:
        await self._call(self.store.remove([cache_key(profile_id)]), "invalidate")

    def is_valid(self, entry: CacheEntry | None, current_fingerprint: str, ttl_days: int | None = None, now: datetime | None = None) -> bool:
        return is_valid(entry, current_fingerprint, ttl_days if ttl_days is not None else self.ttl_days, now)

    async def lookup(self, profile_id: str, current_fingerprint: str) -> CacheEntry | None:
        """Return the stored entry only when it is still valid for this fingerprint."""
        entry = await self.get(profile_id)
        if entry is not None and self.is_valid(entry, current_fingerprint):
            return entry
        return None

    async def clear_all(self) -> int:
        keys = await self._call(self.store.keys(KEY_PREFIX), "keys")
        if keys:
            await self._call(self.store.remove(keys), "clear")
        logger.info("cache_cleared entries=%s", len(keys))
        return len(keys)

    async def purge_expired(self, ttl_days: int | None = None, now: datetime | None = None) -> int:
        """Drop entries older than the TTL along with corrupt ones."""
        ttl = timedelta(days=clamp_ttl_days(ttl_days if ttl_days is not None else self.ttl_days))
        current = now or _utc_now()
        keys = await self._call(self.store.keys(KEY_PREFIX), "keys")
        if not keys:
            return 0
        values = await self._call(self.store.get(keys), "get")
        stale: list[str] = []
        for key in keys:
            try:
                entry = decode_entry(values.get(key))
            except CacheCorruptionError:
                stale.append(key)
                continue
            if current - _aware(entry.computed_at) >= ttl:
                stale.append(key)
        if stale:
            await self._call(self.store.remove(stale), "purge")
            logger.info("cache_purged entries=%s", len(stale))
        return len(stale)
