import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from profile_analyzer.analysis.parsing import parse_json_object  # noqa: E402
from profile_analyzer.core.errors import InvalidTransitionError, TransientIOError  # noqa: E402
from profile_analyzer.extraction.document import ProfileDocument  # noqa: E402
from profile_analyzer.extraction.registry import build_extractors  # noqa: E402
from profile_analyzer.extraction.sections.skills import SkillsExtractor  # noqa: E402
from profile_analyzer.schemas.analysis import AnalysisOptions, AnalysisState  # noqa: E402
from profile_analyzer.scoring.completeness import CompletenessScorer  # noqa: E402
from profile_analyzer.services.orchestrator import TRANSITIONS, ExtractionOrchestrator  # noqa: E402
from profile_analyzer.storage.cache_store import CacheStore  # noqa: E402
from profile_analyzer.storage.kv_store import MemoryKeyValueStore  # noqa: E402

from profile_pages import FULL_PROFILE_HTML, NOT_A_PROFILE_HTML, PROFILE_URL  # noqa: E402

State = AnalysisState


class ScriptedAnalyzer:
    """Analyzer double that answers from a fixed reply or a raw text reply."""

    def __init__(self, reply=None, raw_text=None):
        self.reply = reply
        self.raw_text = raw_text
        self.calls = []

    async def analyze(self, prompt, sections):
        self.calls.append(tuple(sections))
        if self.raw_text is not None:
            return parse_json_object(self.raw_text)
        return dict(self.reply)


class FailingScanSkills(SkillsExtractor):
    def __init__(self, document, **kwargs):
        super().__init__(document, **kwargs)
        self.scan_calls = 0

    async def scan(self):
        self.scan_calls += 1
        raise TransientIOError("skills card did not render")


class OrchestratorTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.store = MemoryKeyValueStore()
        self.cache = CacheStore(self.store, timeout_s=1.0, ttl_days=7)
        self.document = ProfileDocument(FULL_PROFILE_HTML, url=PROFILE_URL)

    def make_orchestrator(self, analyzer=None, **kwargs):
        kwargs.setdefault("retry_attempts", 3)
        kwargs.setdefault("retry_base_delay_s", 0)
        kwargs.setdefault("analysis_mode", "section")
        return ExtractionOrchestrator(self.cache, analyzer, **kwargs)


class RunLifecycleTests(OrchestratorTestCase):
    async def test_run_reaches_complete_with_ordered_states(self):
        seen = []
        orchestrator = self.make_orchestrator()
        run = await orchestrator.analyze(self.document, listener=seen.append)

        self.assertEqual(run.state, State.COMPLETE)
        self.assertEqual(run.profile_id, "jane-doe")
        self.assertEqual(run.completeness.score, CompletenessScorer().score(run.snapshot).score)
        self.assertGreater(run.completeness.score, 60)
        self.assertIsNone(run.quality)

        states = []
        for event in seen:
            if not states or states[-1] != event.state:
                states.append(event.state)
        self.assertEqual(
            states,
            [State.INITIALIZING, State.SCANNING, State.EXTRACTING, State.CALCULATING, State.COMPLETE],
        )
        self.assertEqual(seen, run.events)
        self.assertEqual(seen[-1].completeness, run.completeness.score)
        scanned = {event.section_name for event in seen if event.state == State.SCANNING and event.section_name}
        self.assertEqual(len(scanned), 10)

    async def test_async_listener_is_awaited(self):
        seen = []

        async def listener(event):
            seen.append(event.state)

        run = await self.make_orchestrator().analyze(self.document, listener=listener)
        self.assertEqual(seen[-1], State.COMPLETE)
        self.assertEqual(len(seen), len(run.events))

    async def test_unsupported_document_ends_in_error(self):
        document = ProfileDocument(NOT_A_PROFILE_HTML, url="https://www.linkedin.com/feed/")
        run = await self.make_orchestrator().analyze(document)
        self.assertEqual(run.state, State.ERROR)
        self.assertIn("Not a profile URL", run.error)
        self.assertEqual(run.events[-1].state, State.ERROR)
        self.assertEqual(await self.store.keys(), [])

    async def test_unavailable_storage_ends_in_error(self):
        self.store.available = False
        run = await self.make_orchestrator().analyze(self.document)
        self.assertEqual(run.state, State.ERROR)
        self.assertIsNotNone(run.completeness)

    async def test_quota_failure_does_not_fail_run(self):
        self.cache = CacheStore(MemoryKeyValueStore(max_item_bytes=128), timeout_s=1.0)
        run = await self.make_orchestrator().analyze(self.document)
        self.assertEqual(run.state, State.COMPLETE)
        self.assertIsNone(await self.cache.get("jane-doe"))

    async def test_failing_scan_marks_section_missing(self):
        created = {}

        def factory(document):
            extractors = build_extractors(document)
            created["skills"] = extractors["skills"] = FailingScanSkills(document)
            return extractors

        run = await self.make_orchestrator(extractor_factory=factory).analyze(self.document)
        self.assertEqual(run.state, State.COMPLETE)
        self.assertEqual(created["skills"].scan_calls, 3)
        self.assertFalse(run.snapshot.exists("skills"))
        self.assertTrue(run.snapshot.exists("experience"))
        self.assertEqual(run.completeness.section_scores["skills"].earned, 0)

    def test_transition_table(self):
        self.assertEqual(TRANSITIONS[State.ERROR], frozenset())
        self.assertIn(State.CALCULATING, TRANSITIONS[State.COMPLETE])
        self.assertNotIn(State.COMPLETE, TRANSITIONS[State.SCANNING])
        for state in State:
            if state is not State.ERROR:
                self.assertIn(State.ERROR, TRANSITIONS[state], state)

    async def test_rescore_requires_a_scored_run(self):
        orchestrator = self.make_orchestrator()
        run = orchestrator.start_run(self.document)
        with self.assertRaises(InvalidTransitionError):
            await orchestrator.rescore(run)

    async def test_misconfigured_calls_raise_runtime_errors(self):
        orchestrator = self.make_orchestrator()
        run = orchestrator.start_run(self.document)
        with self.assertRaises(RuntimeError) as ctx:
            await orchestrator._cache_lookup(run)
        self.assertIn("no profile identity", str(ctx.exception))
        with self.assertRaises(RuntimeError):
            await orchestrator._call_analyzer(run, "Analyze.", {})


class SupersessionTests(OrchestratorTestCase):
    async def test_newer_run_supersedes_older(self):
        orchestrator = self.make_orchestrator()
        newer = {}

        def listener(event):
            if event.state == State.SCANNING and "run" not in newer:
                newer["run"] = orchestrator.start_run(self.document)

        stale = await orchestrator.analyze(self.document, listener=listener)
        self.assertTrue(stale.superseded)
        self.assertNotEqual(stale.state, State.COMPLETE)
        self.assertIsNone(stale.completeness)
        self.assertFalse(orchestrator.is_current(stale))
        self.assertIsNone(await self.cache.get("jane-doe"))

        fresh = await orchestrator.execute(newer["run"])
        self.assertEqual(fresh.state, State.COMPLETE)
        self.assertGreater(fresh.run_id, stale.run_id)
        self.assertIsNotNone(await self.cache.get("jane-doe"))

    async def test_finished_run_is_not_marked_superseded(self):
        orchestrator = self.make_orchestrator()
        first = await orchestrator.analyze(self.document)
        second = await orchestrator.analyze(self.document)
        self.assertFalse(first.superseded)
        self.assertEqual(second.state, State.COMPLETE)


class CachingTests(OrchestratorTestCase):
    async def test_unchanged_profile_is_served_from_cache(self):
        analyzer = ScriptedAnalyzer(reply={"score": 8})
        orchestrator = self.make_orchestrator(analyzer)
        options = AnalysisOptions(enable_ai=True)

        first = await orchestrator.analyze(self.document, options)
        calls = len(analyzer.calls)
        second = await orchestrator.analyze(self.document, options)

        self.assertFalse(first.from_cache)
        self.assertTrue(second.from_cache)
        self.assertEqual(len(analyzer.calls), calls)
        self.assertEqual(second.quality.overall_score, first.quality.overall_score)
        self.assertTrue(second.events[-1].from_cache)

    async def test_cached_entry_without_quality_is_recomputed_when_ai_requested(self):
        analyzer = ScriptedAnalyzer(reply={"score": 8})
        orchestrator = self.make_orchestrator(analyzer)

        await orchestrator.analyze(self.document, AnalysisOptions(enable_ai=False))
        self.assertEqual(analyzer.calls, [])
        run = await orchestrator.analyze(self.document, AnalysisOptions(enable_ai=True))
        self.assertFalse(run.from_cache)
        self.assertTrue(analyzer.calls)
        self.assertEqual(run.quality.overall_score, 8.0)

    async def test_neutral_fallback_is_not_served_from_cache(self):
        options = AnalysisOptions(enable_ai=True)
        failing = await self.make_orchestrator(ScriptedAnalyzer(raw_text="not json")).analyze(self.document, options)
        self.assertTrue(failing.quality.recoverable_error)
        entry = await self.cache.get("jane-doe")
        self.assertIsNotNone(entry.completeness)
        self.assertIsNone(entry.quality)

        analyzer = ScriptedAnalyzer(reply={"score": 9})
        run = await self.make_orchestrator(analyzer).analyze(self.document, options)
        self.assertFalse(run.from_cache)
        self.assertTrue(analyzer.calls)
        self.assertEqual(run.quality.overall_score, 9.0)
        self.assertFalse(run.quality.recoverable_error)

    async def test_changed_analysis_settings_recompute_quality(self):
        analyzer = ScriptedAnalyzer(reply={"score": 8})
        orchestrator = self.make_orchestrator(analyzer)

        await orchestrator.analyze(self.document, AnalysisOptions(enable_ai=True, target_role="Data Engineer"))
        calls = len(analyzer.calls)
        same = await orchestrator.analyze(self.document, AnalysisOptions(enable_ai=True, target_role="data engineer "))
        self.assertTrue(same.from_cache)
        self.assertEqual(len(analyzer.calls), calls)

        for options in (
            AnalysisOptions(enable_ai=True, target_role="Product Manager"),
            AnalysisOptions(enable_ai=True, target_role="Product Manager", seniority_level="senior"),
            AnalysisOptions(enable_ai=True, target_role="Product Manager", seniority_level="senior", mode="profile"),
        ):
            calls = len(analyzer.calls)
            run = await orchestrator.analyze(self.document, options)
            self.assertFalse(run.from_cache, options)
            self.assertGreater(len(analyzer.calls), calls, options)

    async def test_cached_quality_hidden_for_other_settings_without_ai(self):
        orchestrator = self.make_orchestrator(ScriptedAnalyzer(reply={"score": 8}))
        await orchestrator.analyze(self.document, AnalysisOptions(enable_ai=True, target_role="Data Engineer"))

        run = await orchestrator.analyze(self.document, AnalysisOptions(target_role="Designer"))
        self.assertTrue(run.from_cache)
        self.assertIsNone(run.quality)
        self.assertEqual(run.completeness.score, (await self.cache.get("jane-doe")).completeness.score)

    async def test_force_refresh_bypasses_cache(self):
        orchestrator = self.make_orchestrator()
        await orchestrator.analyze(self.document)
        run = await orchestrator.analyze(self.document, AnalysisOptions(force_refresh=True))
        self.assertFalse(run.from_cache)

    async def test_rescore_recomputes(self):
        analyzer = ScriptedAnalyzer(reply={"score": 7})
        orchestrator = self.make_orchestrator(analyzer)
        run = await orchestrator.analyze(self.document)
        self.assertIsNone(run.quality)

        await orchestrator.rescore(run, enable_ai=True)
        self.assertEqual(run.state, State.COMPLETE)
        self.assertFalse(run.from_cache)
        self.assertEqual(run.quality.overall_score, 7.0)
        entry = await self.cache.get("jane-doe")
        self.assertEqual(entry.quality.overall_score, 7.0)


class QualityPhaseTests(OrchestratorTestCase):
    async def test_section_mode_scores_each_section(self):
        analyzer = ScriptedAnalyzer(
            reply={"score": 8, "positiveInsight": "Strong", "actionItems": [{"what": "Add metrics", "priority": "high"}]}
        )
        run = await self.make_orchestrator(analyzer).analyze(self.document, AnalysisOptions(enable_ai=True))

        self.assertEqual(run.state, State.COMPLETE)
        analyzed = {names[0] for names in analyzer.calls}
        self.assertNotIn("photo", analyzed)
        self.assertTrue({"headline", "about", "experience", "skills"} <= analyzed)
        self.assertTrue(all(len(names) == 1 for names in analyzer.calls))
        self.assertEqual(run.quality.overall_score, 8.0)
        self.assertEqual(run.quality.score_cap, 10)
        self.assertFalse(run.quality.recoverable_error)
        self.assertIn("Add metrics", run.quality.recommendations.high)
        self.assertIn(State.AI_ANALYZING, {event.state for event in run.events})
        self.assertGreater(run.deep_sections["about"].char_count, run.snapshot.get("about").char_count)

    async def test_profile_mode_makes_one_call(self):
        analyzer = ScriptedAnalyzer(reply={"sectionScores": {"about": 6, "experience": 8}})
        options = AnalysisOptions(enable_ai=True, mode="profile")
        run = await self.make_orchestrator(analyzer).analyze(self.document, options)

        self.assertEqual(len(analyzer.calls), 1)
        self.assertEqual(len(analyzer.calls[0]), 10)
        self.assertEqual(run.quality.overall_score, 7.0)

    async def test_unparsable_reply_falls_back_to_neutral(self):
        analyzer = ScriptedAnalyzer(raw_text="This profile looks great overall!")
        run = await self.make_orchestrator(analyzer).analyze(self.document, AnalysisOptions(enable_ai=True))

        self.assertEqual(run.state, State.COMPLETE)
        self.assertEqual(run.quality.overall_score, 5.0)
        self.assertTrue(run.quality.recoverable_error)
        self.assertTrue(run.quality.error_message.startswith("Analysis failed for:"))

    async def test_ai_requested_without_analyzer(self):
        run = await self.make_orchestrator().analyze(self.document, AnalysisOptions(enable_ai=True))
        self.assertEqual(run.state, State.COMPLETE)
        self.assertIsNone(run.quality)


if __name__ == "__main__":
    unittest.main()
