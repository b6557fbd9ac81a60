import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from profile_analyzer.schemas.profile import ProfileSectionResult, ProfileSnapshot, SectionItem  # noqa: E402
from profile_analyzer.scoring.completeness import CompletenessScorer, calculate_completeness  # noqa: E402


def _described_roles(count: int) -> tuple[SectionItem, ...]:
    return tuple(
        SectionItem(title=f"Role {index}", caption="2019 - Present", description="Shipped services used by 1M users.")
        for index in range(count)
    )


def strong_profile() -> ProfileSnapshot:
    return ProfileSnapshot.from_results(
        {
            "photo": ProfileSectionResult(exists=True, visible_count=1, total_count=1),
            "headline": ProfileSectionResult(exists=True, visible_count=1, total_count=1, char_count=120),
            "about": ProfileSectionResult(exists=True, visible_count=1, total_count=1, char_count=850),
            "experience": ProfileSectionResult(exists=True, visible_count=3, total_count=3, items=_described_roles(3)),
            "skills": ProfileSectionResult(exists=True, visible_count=5, total_count=18),
            "education": ProfileSectionResult(exists=True, visible_count=1, total_count=1),
            "recommendations": ProfileSectionResult(exists=True, visible_count=2, total_count=2),
            "certifications": ProfileSectionResult(exists=True, visible_count=1, total_count=1),
        }
    )


class CompletenessScorerTests(unittest.TestCase):
    def setUp(self):
        self.scorer = CompletenessScorer()

    def test_weights_sum_to_one_hundred(self):
        self.assertEqual(sum(self.scorer.weights.values()), 100)

    def test_strong_profile_scores_at_least_ninety(self):
        result = self.scorer.score(strong_profile())
        self.assertGreaterEqual(result.score, 90)
        self.assertEqual(result.level, "excellent")
        self.assertTrue(result.is_optimized)
        for name in ("about", "experience", "skills", "headline"):
            self.assertTrue(result.section_scores[name].passed, name)

    def test_score_is_deterministic(self):
        snapshot = strong_profile()
        first = self.scorer.score(snapshot)
        second = calculate_completeness(snapshot)
        self.assertEqual(first.model_dump(), second.model_dump())

    def test_empty_profile(self):
        result = self.scorer.score(ProfileSnapshot.empty())
        self.assertEqual(result.score, 0)
        self.assertEqual(result.level, "poor")
        self.assertFalse(result.is_optimized)
        self.assertEqual(len(result.recommendations), 10)

    def test_partial_credit_and_rounding(self):
        snapshot = ProfileSnapshot.from_results(
            {
                "about": ProfileSectionResult(exists=True, visible_count=1, total_count=1, char_count=400),
                "education": ProfileSectionResult(exists=True, visible_count=1, total_count=1),
            }
        )
        result = self.scorer.score(snapshot)
        # 15 * 400/800 + 10 = 17.5, rounded half up
        self.assertEqual(result.score, 18)
        self.assertAlmostEqual(result.section_scores["about"].ratio, 0.5)

    def test_experience_needs_descriptions_for_full_credit(self):
        undescribed = tuple(SectionItem(title=f"Role {index}") for index in range(3))
        snapshot = ProfileSnapshot.from_results(
            {"experience": ProfileSectionResult(exists=True, visible_count=3, total_count=3, items=undescribed)}
        )
        result = self.scorer.score(snapshot)
        self.assertAlmostEqual(result.section_scores["experience"].earned, 7.5)
        self.assertFalse(result.section_scores["experience"].passed)

    def test_list_section_without_items_earns_nothing(self):
        snapshot = ProfileSnapshot.from_results({"education": ProfileSectionResult(exists=True)})
        self.assertEqual(self.scorer.score(snapshot).section_scores["education"].earned, 0)

    def test_recommendations_ordered_by_impact(self):
        snapshot = strong_profile().with_section("photo", ProfileSectionResult.missing())
        result = self.scorer.score(snapshot)
        impacts = [entry.impact_percent for entry in result.recommendations]
        self.assertEqual(impacts, sorted(impacts, reverse=True))
        self.assertEqual(result.top_recommendations(1)[0].section, "photo")
        self.assertEqual(result.top_recommendations(1)[0].message, "Add a professional photo")

    def test_messages_follow_section_state(self):
        short_headline = ProfileSectionResult(exists=True, visible_count=1, total_count=1, char_count=20)
        self.assertEqual(self.scorer.message("headline", short_headline), "Expand your headline (minimum 50 characters)")
        few_skills = ProfileSectionResult(exists=True, visible_count=5, total_count=5)
        self.assertEqual(self.scorer.message("skills", few_skills), "Add 10 more skills (aim for 15+)")
        self.assertEqual(self.scorer.message("about", ProfileSectionResult.missing()), "Add an About section")

    def test_duplicate_skill_rows_count_once(self):
        names = [f"Skill {index}" for index in range(12)] + ["Skill 0", "skill 1", "Skill 2 "]
        skills = ProfileSectionResult(
            exists=True,
            visible_count=15,
            total_count=15,
            items=tuple(SectionItem(title=name) for name in names),
        )
        self.assertAlmostEqual(self.scorer.ratio("skills", skills), 12 / 15)
        self.assertEqual(self.scorer.message("skills", skills), "Add 3 more skills (aim for 15+)")

        distinct = skills.evolve(items=tuple(SectionItem(title=f"Skill {i}") for i in range(15)))
        self.assertEqual(self.scorer.ratio("skills", distinct), 1.0)


if __name__ == "__main__":
    unittest.main()
