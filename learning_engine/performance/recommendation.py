"""
Recommendation Generator

Derives a single "what to do next" suggestion from a ledger's topic scores.

Weakest and strongest topics are picked by score; among equal scores the
lexicographically smallest topic name wins, so the choice does not depend on
the order in which topics were first attempted.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from learning_engine.common.config import AdaptationConfig
from learning_engine.common.logger import app_logger
from learning_engine.performance.difficulty import DifficultyLevel
from learning_engine.performance.ledger import PerformanceLedger

logger = app_logger.getChild("performance.recommendation")

WEAK_TOPIC_REASON = "Your score in {topic} ({score}%) needs improvement. Start with basics."
STRONG_TOPIC_REASON = "You're excelling in {topic} ({score}%)! Ready for advanced topics."
CONTINUE_REASON = "Continue practicing at your current level to build strong fundamentals."


@dataclass(frozen=True)
class Recommendation:
    """A suggested next topic and the difficulty to tackle it at."""
    topic: str
    difficulty: DifficultyLevel
    reason: str


def weakest_topic(topic_scores: Dict[str, int]) -> Optional[Tuple[str, int]]:
    """Lowest scoring (topic, score); ties go to the smallest topic name."""
    if not topic_scores:
        return None
    return min(sorted(topic_scores.items()), key=lambda item: item[1])


def strongest_topic(topic_scores: Dict[str, int]) -> Optional[Tuple[str, int]]:
    """Highest scoring (topic, score); ties go to the smallest topic name."""
    if not topic_scores:
        return None
    return max(sorted(topic_scores.items()), key=lambda item: item[1])


class RecommendationGenerator:
    """Computes and stores the next-step recommendation of a ledger."""

    def __init__(self, config: Optional[AdaptationConfig] = None):
        self.config = config or AdaptationConfig()

    def recommend(self, ledger: PerformanceLedger) -> Optional[Recommendation]:
        """
        Compute a recommendation without touching the ledger.

        Returns:
            The recommendation, or None when the ledger has no topic scores
        """
        weakest = weakest_topic(ledger.topic_scores)
        strongest = strongest_topic(ledger.topic_scores)
        if weakest is None or strongest is None:
            return None

        weak_name, weak_score = weakest
        strong_name, strong_score = strongest

        if weak_score < self.config.weak_topic_threshold:
            return Recommendation(
                topic=weak_name,
                difficulty=DifficultyLevel.BEGINNER,
                reason=WEAK_TOPIC_REASON.format(topic=weak_name, score=weak_score)
            )

        if strong_score > self.config.strong_topic_threshold:
            return Recommendation(
                topic=strong_name,
                difficulty=DifficultyLevel.ADVANCED,
                reason=STRONG_TOPIC_REASON.format(topic=strong_name, score=strong_score)
            )

        return Recommendation(
            topic=ledger.topic_name or weak_name,
            difficulty=ledger.current_difficulty_level,
            reason=CONTINUE_REASON
        )

    def refresh(self, ledger: PerformanceLedger) -> Optional[Recommendation]:
        """
        Overwrite the ledger's recommendation fields.

        Leaves the fields untouched when there is nothing to recommend.
        """
        recommendation = self.recommend(ledger)
        if recommendation is None:
            return None

        ledger.recommended_topic = recommendation.topic
        ledger.recommended_difficulty = recommendation.difficulty
        ledger.recommendation_reason = recommendation.reason

        logger.debug(
            f"Recommendation for {ledger.student_email}/{ledger.course_id}: "
            f"{recommendation.topic} ({recommendation.difficulty.value})"
        )
        return recommendation
