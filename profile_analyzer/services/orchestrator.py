from __future__ import annotations

import asyncio
import inspect
import itertools
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from profile_analyzer.ai.types import PreparedSection, TextAnalyzer
from profile_analyzer.analysis.prepare import has_analyzable_content, prepare_section
from profile_analyzer.analysis.prompt import build_profile_prompt, build_section_prompt
from profile_analyzer.core.config import settings
from profile_analyzer.core.errors import (
    FATAL_ERRORS,
    InvalidTransitionError,
    RunSupersededError,
    StorageQuotaError,
    TransientIOError,
)
from profile_analyzer.core.retry import with_retry
from profile_analyzer.core.scoring import get_scoring_value
from profile_analyzer.extraction.base import SectionExtractor
from profile_analyzer.extraction.discovery import resolve_profile_id
from profile_analyzer.extraction.document import ProfileDocument
from profile_analyzer.extraction.registry import build_extractors
from profile_analyzer.schemas.analysis import AnalysisEvent, AnalysisOptions, AnalysisState
from profile_analyzer.schemas.cache import CacheEntry
from profile_analyzer.schemas.profile import SECTION_NAMES, ProfileSectionResult, ProfileSnapshot
from profile_analyzer.schemas.scoring import CompletenessResult, QualityResult
from profile_analyzer.scoring.completeness import CompletenessScorer
from profile_analyzer.scoring.quality import QualityScoreAggregator, merge_section_reports, parse_section_scores
from profile_analyzer.storage.cache_store import CacheStore

logger = logging.getLogger(__name__)

EventListener = Callable[[AnalysisEvent], Any]

State = AnalysisState

TRANSITIONS: dict[AnalysisState, frozenset[AnalysisState]] = {
    State.INITIALIZING: frozenset({State.SCANNING, State.ERROR}),
    State.SCANNING: frozenset({State.EXTRACTING, State.ERROR}),
    State.EXTRACTING: frozenset({State.CALCULATING, State.ERROR}),
    State.CALCULATING: frozenset({State.AI_ANALYZING, State.COMPLETE, State.ERROR}),
    State.AI_ANALYZING: frozenset({State.COMPLETE, State.ERROR}),
    # re-scoring re-enters CALCULATING
    State.COMPLETE: frozenset({State.CALCULATING, State.ERROR}),
    State.ERROR: frozenset(),
}


@dataclass
class AnalysisRun:
    """Everything one analysis pass owns. Superseded runs never commit."""

    run_id: int
    document: ProfileDocument
    options: AnalysisOptions
    listener: EventListener | None = None
    state: AnalysisState = State.INITIALIZING
    profile_id: str | None = None
    snapshot: ProfileSnapshot = field(default_factory=ProfileSnapshot.empty)
    fingerprint: str | None = None
    completeness: CompletenessResult | None = None
    quality: QualityResult | None = None
    from_cache: bool = False
    superseded: bool = False
    error: str | None = None
    extractors: dict[str, SectionExtractor] = field(default_factory=dict)
    deep_sections: dict[str, ProfileSectionResult] = field(default_factory=dict)
    events: list[AnalysisEvent] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.state in (State.COMPLETE, State.ERROR)


class ExtractionOrchestrator:
    def __init__(
        self,
        cache: CacheStore,
        analyzer: TextAnalyzer | None = None,
        *,
        completeness_scorer: CompletenessScorer | None = None,
        quality_aggregator: QualityScoreAggregator | None = None,
        extractor_factory: Callable[..., Mapping[str, SectionExtractor]] = build_extractors,
        analysis_mode: str | None = None,
        retry_attempts: int | None = None,
        retry_base_delay_s: float | None = None,
        analysis_timeout_s: float | None = None,
    ):
        self.cache = cache
        self.analyzer = analyzer
        self.completeness_scorer = completeness_scorer or CompletenessScorer()
        self.quality_aggregator = quality_aggregator or QualityScoreAggregator()
        self.extractor_factory = extractor_factory
        self.analysis_mode = analysis_mode or settings.analysis_mode
        self.retry_attempts = retry_attempts if retry_attempts is not None else settings.retry_attempts
        self.retry_base_delay_s = retry_base_delay_s if retry_base_delay_s is not None else settings.retry_base_delay_s
        self.analysis_timeout_s = analysis_timeout_s if analysis_timeout_s is not None else settings.analysis_timeout_s
        self._run_ids = itertools.count(1)
        self._current: AnalysisRun | None = None

    # -- run lifecycle -------------------------------------------------

    def start_run(
        self,
        document: ProfileDocument,
        options: AnalysisOptions | None = None,
        *,
        listener: EventListener | None = None,
    ) -> AnalysisRun:
        """Create a new run and supersede whichever run was current."""
        previous = self._current
        if previous is not None and not previous.finished:
            previous.superseded = True
            logger.info("run_superseded run_id=%s", previous.run_id)
        run = AnalysisRun(
            run_id=next(self._run_ids),
            document=document,
            options=options or AnalysisOptions(),
            listener=listener,
        )
        self._current = run
        return run

    def is_current(self, run: AnalysisRun) -> bool:
        return self._current is run and not run.superseded

    def _ensure_current(self, run: AnalysisRun) -> None:
        if not self.is_current(run):
            raise RunSupersededError(run.run_id)

    async def analyze(
        self,
        document: ProfileDocument,
        options: AnalysisOptions | None = None,
        *,
        listener: EventListener | None = None,
    ) -> AnalysisRun:
        run = self.start_run(document, options, listener=listener)
        await self.execute(run)
        return run

    async def execute(self, run: AnalysisRun) -> AnalysisRun:
        started = time.perf_counter()
        try:
            await self._emit(run, message="Starting analysis")
            run.profile_id = resolve_profile_id(run.document)
            run.extractors = dict(self.extractor_factory(run.document))

            await self._transition(run, State.SCANNING)
            scanned = await self._fan_out(run, run.extractors, "scan")
            run.snapshot = ProfileSnapshot.from_results(scanned)
            await self._emit_sections(run, scanned)

            await self._transition(run, State.EXTRACTING)
            found = {name: ext for name, ext in run.extractors.items() if scanned[name].exists}
            extracted = await self._fan_out(run, found, "extract")
            run.snapshot = ProfileSnapshot.from_results({**scanned, **extracted})
            await self._emit_sections(run, extracted)

            await self._score(run, force_refresh=run.options.force_refresh)
        except RunSupersededError:
            logger.info("run_discarded run_id=%s state=%s", run.run_id, run.state.value)
        except FATAL_ERRORS as exc:
            await self._fail(run, exc)
        except Exception as exc:
            await self._fail(run, exc)
            raise
        finally:
            logger.info(
                json.dumps(
                    {
                        "event": "analysis_run",
                        "run_id": run.run_id,
                        "profile_id": run.profile_id,
                        "state": run.state.value,
                        "from_cache": run.from_cache,
                        "completeness": run.completeness.score if run.completeness else None,
                        "quality": run.quality.overall_score if run.quality else None,
                        "superseded": run.superseded,
                        "duration_ms": int((time.perf_counter() - started) * 1000),
                    }
                )
            )
        return run

    async def rescore(self, run: AnalysisRun, *, enable_ai: bool | None = None) -> AnalysisRun:
        """Re-enter CALCULATING from COMPLETE, bypassing the cache."""
        if enable_ai is not None:
            run.options = run.options.model_copy(update={"enable_ai": enable_ai})
        try:
            self._ensure_current(run)
            await self._score(run, force_refresh=True)
        except RunSupersededError:
            logger.info("rescore_discarded run_id=%s", run.run_id)
        except FATAL_ERRORS as exc:
            await self._fail(run, exc)
        return run

    # -- phases --------------------------------------------------------

    async def _score(self, run: AnalysisRun, *, force_refresh: bool) -> None:
        await self._transition(run, State.CALCULATING)
        run.completeness = self.completeness_scorer.score(run.snapshot)
        run.fingerprint = run.snapshot.fingerprint()
        run.from_cache = False
        await self._emit(run, completeness=run.completeness.score)

        ai_requested = bool(run.options.enable_ai) and self.analyzer is not None
        if run.options.enable_ai and self.analyzer is None:
            logger.info("analysis_skipped run_id=%s reason=no_analyzer", run.run_id)

        cached = None if force_refresh else await self._cache_lookup(run)
        self._ensure_current(run)
        settings_key = run.options.settings_key(self.analysis_mode)
        cached_quality = cached.quality_for(settings_key) if cached is not None else None
        if cached is not None and (cached_quality is not None or not ai_requested):
            run.quality = cached_quality
            run.from_cache = True
        else:
            run.quality = await self._analyze_quality(run) if ai_requested else None
            self._ensure_current(run)
            await self._cache_write(run, settings_key)

        self._ensure_current(run)
        await self._transition(
            run,
            State.COMPLETE,
            completeness=run.completeness.score,
            quality_score=run.quality.overall_score if run.quality else None,
            from_cache=run.from_cache,
        )

    async def _fan_out(
        self,
        run: AnalysisRun,
        extractors: Mapping[str, SectionExtractor],
        phase: str,
    ) -> dict[str, ProfileSectionResult]:
        names = list(extractors)
        tasks = [asyncio.create_task(self._section_call(run, extractors[name], phase)) for name in names]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        self._ensure_current(run)

        results: dict[str, ProfileSectionResult] = {}
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.warning("section_%s_failed run_id=%s section=%s: %s", phase, run.run_id, name, outcome)
                results[name] = ProfileSectionResult.missing()
            else:
                results[name] = outcome
        return results

    async def _section_call(self, run: AnalysisRun, extractor: SectionExtractor, phase: str) -> ProfileSectionResult:
        result = await with_retry(
            getattr(extractor, phase),
            label=f"{phase}:{extractor.name}",
            attempts=self.retry_attempts,
            base_delay_s=self.retry_base_delay_s,
        )
        # a stale run must not commit anything
        self._ensure_current(run)
        return result

    async def _analyze_quality(self, run: AnalysisRun) -> QualityResult:
        await self._transition(run, State.AI_ANALYZING)
        mode = run.options.mode or self.analysis_mode
        order = [name for name in get_scoring_value("analysis.order", list(SECTION_NAMES)) if name in SECTION_NAMES]
        prepared: dict[str, PreparedSection] = {}
        reports: dict[str, Mapping[str, Any]] = {}
        failures: list[str] = []

        for name in order:
            self._ensure_current(run)
            if not run.snapshot.exists(name) or name not in run.extractors:
                prepared[name] = PreparedSection(name=name, exists=False)
                continue
            try:
                deep = await with_retry(
                    run.extractors[name].extract_deep,
                    label=f"extract_deep:{name}",
                    attempts=self.retry_attempts,
                    base_delay_s=self.retry_base_delay_s,
                    timeout_s=self.analysis_timeout_s,
                )
            except Exception as exc:
                logger.warning("section_extract_deep_failed run_id=%s section=%s: %s", run.run_id, name, exc)
                failures.append(name)
                continue
            self._ensure_current(run)
            run.deep_sections[name] = deep
            prepared[name] = prepare_section(name, deep)
            await self._emit(run, section_name=name, item_count=deep.total_count)

            if mode == "section" and has_analyzable_content(prepared[name]):
                reply = await self._call_analyzer(run, build_section_prompt(name, run.options), {name: prepared[name]})
                if reply is not None and parse_section_scores({name: reply}):
                    reports[name] = reply
                else:
                    failures.append(name)

        if mode == "profile":
            payload = await self._call_analyzer(run, build_profile_prompt(run.options), prepared)
            if payload is None:
                failures.append("profile")
        else:
            payload = merge_section_reports(reports) if reports else None

        self._ensure_current(run)
        error_message = f"Analysis failed for: {', '.join(failures)}" if failures else None
        return self.quality_aggregator.aggregate(run.snapshot, payload, error_message=error_message)

    async def _call_analyzer(
        self,
        run: AnalysisRun,
        prompt: str,
        sections: Mapping[str, PreparedSection],
    ) -> Mapping[str, Any] | None:
        analyzer = self.analyzer
        if analyzer is None:
            raise RuntimeError("No text analyzer is configured for this orchestrator.")

        async def _call() -> Mapping[str, Any]:
            return await analyzer.analyze(prompt, sections)

        try:
            reply = await with_retry(
                _call,
                label=f"analyze:{','.join(sections)}",
                attempts=self.retry_attempts,
                base_delay_s=self.retry_base_delay_s,
                timeout_s=self.analysis_timeout_s,
            )
        except Exception as exc:
            logger.warning("analyzer_failed run_id=%s sections=%s: %s", run.run_id, ",".join(sections), exc)
            return None
        if not isinstance(reply, Mapping):
            logger.warning("analyzer_reply_invalid run_id=%s type=%s", run.run_id, type(reply).__name__)
            return None
        return reply

    def _identity(self, run: AnalysisRun) -> tuple[str, str]:
        if run.profile_id is None or run.fingerprint is None:
            raise RuntimeError(f"Run {run.run_id} has no profile identity in state {run.state.value}.")
        return run.profile_id, run.fingerprint

    async def _cache_lookup(self, run: AnalysisRun) -> CacheEntry | None:
        profile_id, fingerprint = self._identity(run)
        try:
            return await with_retry(
                lambda: self.cache.lookup(profile_id, fingerprint),
                label="cache_get",
                attempts=self.retry_attempts,
                base_delay_s=self.retry_base_delay_s,
                retry_on=(TransientIOError,),
            )
        except TransientIOError as exc:
            logger.warning("cache_lookup_failed run_id=%s: %s", run.run_id, exc)
            return None

    async def _cache_write(self, run: AnalysisRun, settings_key: str) -> None:
        profile_id, fingerprint = self._identity(run)
        # neutral fallbacks are never cached
        quality = run.quality if run.quality is not None and not run.quality.recoverable_error else None
        entry = CacheEntry(
            profile_id=profile_id,
            fingerprint=fingerprint,
            completeness=run.completeness,
            quality=quality,
            settings_key=settings_key,
        )
        try:
            await with_retry(
                lambda: self.cache.put(entry),
                label="cache_put",
                attempts=self.retry_attempts,
                base_delay_s=self.retry_base_delay_s,
                retry_on=(TransientIOError,),
            )
        except (StorageQuotaError, TransientIOError) as exc:
            logger.warning("cache_write_skipped run_id=%s: %s", run.run_id, exc)

    # -- state + events ------------------------------------------------

    async def _transition(self, run: AnalysisRun, target: AnalysisState, **event_fields: Any) -> None:
        self._ensure_current(run)
        if target not in TRANSITIONS[run.state]:
            raise InvalidTransitionError(run.state.value, target.value)
        logger.debug("run_state run_id=%s %s->%s", run.run_id, run.state.value, target.value)
        run.state = target
        await self._emit(run, **event_fields)

    async def _fail(self, run: AnalysisRun, exc: BaseException) -> None:
        run.error = str(exc)
        code = getattr(exc, "code", "internal_error")
        logger.warning("run_failed run_id=%s code=%s: %s", run.run_id, code, exc)
        if run.superseded or State.ERROR not in TRANSITIONS[run.state]:
            return
        run.state = State.ERROR
        await self._emit(run, message=str(exc))

    async def _emit_sections(self, run: AnalysisRun, results: Mapping[str, ProfileSectionResult]) -> None:
        for name in SECTION_NAMES:
            if name in results:
                await self._emit(run, section_name=name, item_count=results[name].total_count)

    async def _emit(self, run: AnalysisRun, **fields: Any) -> None:
        if run.superseded:
            return
        event = AnalysisEvent(run_id=run.run_id, state=run.state, **fields)
        run.events.append(event)
        if run.listener is None:
            return
        outcome = run.listener(event)
        if inspect.isawaitable(outcome):
            await outcome
