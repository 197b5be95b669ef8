"""
Difficulty Adaptation Engine

This module applies a validated quiz attempt to a performance ledger: it
appends the attempt, recomputes the topic's mean score, accumulates time and
runs the hysteresis state machine that moves the ledger's difficulty level.

The state machine only moves after ``consecutive_trigger`` qualifying
attempts in a row. Counters are not reset after a move, so a streak that
continues at the top or bottom of the scale keeps calling the saturating
``next``/``previous`` and leaves the level where it is.
"""

import math
import datetime
from typing import Dict, Optional

from learning_engine.common.config import AdaptationConfig
from learning_engine.common.exceptions import InvalidAttemptError
from learning_engine.common.logger import app_logger
from learning_engine.performance.difficulty import DifficultyAdjustment
from learning_engine.performance.ledger import PerformanceLedger, QuizAttempt

logger = app_logger.getChild("performance.adaptation")


def validate_attempt(
    student_email: str,
    course_id: str,
    topic_name: str,
    score: int,
    total_questions: int,
    time_spent_seconds: int
) -> None:
    """
    Check the preconditions of a quiz attempt.

    Raises:
        InvalidAttemptError: With one entry per violated field
    """
    errors: Dict[str, str] = {}

    if not student_email:
        errors["student_email"] = "must not be empty"
    if not course_id:
        errors["course_id"] = "must not be empty"
    if not topic_name:
        errors["topic_name"] = "must not be empty"

    if not isinstance(total_questions, int) or isinstance(total_questions, bool):
        errors["total_questions"] = "must be an integer"
    elif total_questions <= 0:
        errors["total_questions"] = f"must be positive, got {total_questions}"

    if not isinstance(score, int) or isinstance(score, bool):
        errors["score"] = "must be an integer"
    elif score < 0:
        errors["score"] = f"must not be negative, got {score}"
    elif "total_questions" not in errors and score > total_questions:
        errors["score"] = f"must not exceed total_questions ({total_questions}), got {score}"

    if time_spent_seconds is None or time_spent_seconds < 0:
        errors["time_spent_seconds"] = f"must not be negative, got {time_spent_seconds}"

    if errors:
        raise InvalidAttemptError(errors)


class DifficultyAdaptationEngine:
    """
    Applies quiz attempts to ledgers and adjusts the ledger difficulty.

    The engine is stateless apart from its thresholds; one instance can serve
    every ledger.
    """

    def __init__(self, config: Optional[AdaptationConfig] = None):
        """
        Initialize the engine.

        Args:
            config: Thresholds; the defaults are 40/80 with a trigger of 2
        """
        self.config = config or AdaptationConfig()

    def apply_attempt(self, ledger: PerformanceLedger, attempt: QuizAttempt) -> DifficultyAdjustment:
        """
        Record ``attempt`` on ``ledger`` and run the difficulty state machine.

        Args:
            ledger: Ledger to mutate
            attempt: Already validated attempt

        Returns:
            The difficulty decision taken for this attempt
        """
        ledger.quiz_attempts.append(attempt)
        ledger.last_quiz_date = datetime.datetime.now()
        ledger.topic_name = attempt.topic_name

        self.update_topic_score(ledger, attempt.topic_name)

        ledger.time_spent_per_topic[attempt.topic_name] = (
            ledger.time_spent_per_topic.get(attempt.topic_name, 0) + attempt.time_spent
        )

        return self.adjust_difficulty(ledger, attempt)

    def update_topic_score(self, ledger: PerformanceLedger, topic_name: str) -> Optional[int]:
        """
        Recompute the topic score as the truncated mean over its full history.

        Returns:
            The new score, or None when the topic has no attempts
        """
        percentages = [a.percentage for a in ledger.attempts_for_topic(topic_name)]
        if not percentages:
            return None

        score = int(math.fsum(percentages) / len(percentages))
        ledger.topic_scores[topic_name] = max(0, min(score, 100))
        return ledger.topic_scores[topic_name]

    def adjust_difficulty(self, ledger: PerformanceLedger, attempt: QuizAttempt) -> DifficultyAdjustment:
        """
        Run one step of the hysteresis state machine for ``attempt``.

        Below the low threshold the low streak grows and the high streak
        resets; above the high threshold the reverse. Anything in between
        resets both. Reaching the trigger count steps the level once per
        qualifying attempt.
        """
        percentage = attempt.percentage
        previous_level = ledger.current_difficulty_level
        new_level = previous_level
        trigger = self.config.consecutive_trigger

        if percentage < self.config.low_score_threshold:
            ledger.consecutive_low_scores += 1
            ledger.consecutive_high_scores = 0
            reason = "low_score"
            if ledger.consecutive_low_scores >= trigger:
                new_level = previous_level.previous()
                reason = "low_streak"
        elif percentage > self.config.high_score_threshold:
            ledger.consecutive_high_scores += 1
            ledger.consecutive_low_scores = 0
            reason = "high_score"
            if ledger.consecutive_high_scores >= trigger:
                new_level = previous_level.next()
                reason = "high_streak"
        else:
            ledger.consecutive_high_scores = 0
            ledger.consecutive_low_scores = 0
            reason = "steady"

        ledger.current_difficulty_level = new_level
        ledger.topic_difficulty_levels[attempt.topic_name] = new_level

        adjustment = DifficultyAdjustment(
            previous_level=previous_level,
            new_level=new_level,
            reason=reason,
            performance_metric=percentage
        )
        logger.debug(
            f"Attempt on '{attempt.topic_name}' scored {percentage:.1f}% for "
            f"{ledger.student_email}/{ledger.course_id}: "
            f"{previous_level.value} -> {new_level.value} ({reason}, "
            f"high={ledger.consecutive_high_scores}, low={ledger.consecutive_low_scores})"
        )
        return adjustment
