"""
Tests for the recommendation generator.
"""

import unittest

from learning_engine.common.config import AdaptationConfig
from learning_engine.performance.difficulty import DifficultyLevel
from learning_engine.performance.ledger import create_ledger
from learning_engine.performance.recommendation import (
    CONTINUE_REASON,
    RecommendationGenerator,
    strongest_topic,
    weakest_topic,
)


class TestTopicSelection(unittest.TestCase):
    """Test weakest/strongest selection and its tie-break."""

    def test_empty_scores(self):
        self.assertIsNone(weakest_topic({}))
        self.assertIsNone(strongest_topic({}))

    def test_ties_go_to_smallest_name(self):
        scores = {"Loops": 60, "Arrays": 60, "Strings": 60}

        self.assertEqual(weakest_topic(scores), ("Arrays", 60))
        self.assertEqual(strongest_topic(scores), ("Arrays", 60))

    def test_tie_break_ignores_insertion_order(self):
        first = {"Zeta": 30, "Alpha": 30, "Mid": 90, "Beta": 90}
        second = dict(reversed(list(first.items())))

        self.assertEqual(weakest_topic(first), weakest_topic(second))
        self.assertEqual(weakest_topic(first), ("Alpha", 30))
        self.assertEqual(strongest_topic(first), strongest_topic(second))
        self.assertEqual(strongest_topic(first), ("Beta", 90))


class TestRecommendationGenerator(unittest.TestCase):
    """Test the three recommendation branches."""

    def setUp(self):
        self.generator = RecommendationGenerator(AdaptationConfig())
        self.ledger = create_ledger("ada@example.com", "python-101")

    def test_empty_scores_leave_fields_untouched(self):
        self.ledger.recommended_topic = "Previous"
        self.ledger.recommendation_reason = "kept"

        self.assertIsNone(self.generator.refresh(self.ledger))
        self.assertEqual(self.ledger.recommended_topic, "Previous")
        self.assertEqual(self.ledger.recommendation_reason, "kept")
        self.assertIsNone(self.ledger.recommended_difficulty)

    def test_weak_topic_wins_over_strong_topic(self):
        self.ledger.topic_scores = {"Loops": 40, "Arrays": 90}

        recommendation = self.generator.refresh(self.ledger)

        self.assertEqual(recommendation.topic, "Loops")
        self.assertEqual(recommendation.difficulty, DifficultyLevel.BEGINNER)
        self.assertEqual(self.ledger.recommended_topic, "Loops")
        self.assertEqual(self.ledger.recommended_difficulty, DifficultyLevel.BEGINNER)
        self.assertEqual(
            self.ledger.recommendation_reason,
            "Your score in Loops (40%) needs improvement. Start with basics."
        )

    def test_strong_topic(self):
        self.ledger.topic_scores = {"Loops": 70, "Arrays": 95}

        recommendation = self.generator.refresh(self.ledger)

        self.assertEqual(recommendation.topic, "Arrays")
        self.assertEqual(recommendation.difficulty, DifficultyLevel.ADVANCED)
        self.assertEqual(
            recommendation.reason,
            "You're excelling in Arrays (95%)! Ready for advanced topics."
        )

    def test_boundaries_fall_through_to_continue(self):
        # 50 is not weak and 80 is not strong
        self.ledger.topic_scores = {"Loops": 50, "Arrays": 80}
        self.ledger.topic_name = "Arrays"
        self.ledger.current_difficulty_level = DifficultyLevel.INTERMEDIATE

        recommendation = self.generator.refresh(self.ledger)

        self.assertEqual(recommendation.topic, "Arrays")
        self.assertEqual(recommendation.difficulty, DifficultyLevel.INTERMEDIATE)
        self.assertEqual(recommendation.reason, CONTINUE_REASON)

    def test_continue_without_last_topic_uses_weakest(self):
        self.ledger.topic_scores = {"Loops": 70, "Arrays": 60}

        recommendation = self.generator.refresh(self.ledger)

        self.assertEqual(recommendation.topic, "Arrays")
        self.assertEqual(recommendation.difficulty, DifficultyLevel.BEGINNER)

    def test_recommend_does_not_mutate(self):
        self.ledger.topic_scores = {"Loops": 10}

        recommendation = self.generator.recommend(self.ledger)

        self.assertEqual(recommendation.topic, "Loops")
        self.assertIsNone(self.ledger.recommended_topic)
