"""
Adaptive Learning Service

This module exposes the engine's operations to callers. Every write runs the
load -> mutate -> save cycle for one (student, course) ledger under that
key's lock, and repeats the cycle when the record store reports a concurrent
update.
"""

import math
from typing import Callable, List, Optional, Union

from learning_engine.common.config import AdaptationConfig, get_config
from learning_engine.common.exceptions import ConcurrentUpdateError, ValidationError
from learning_engine.common.locking import KeyedLock
from learning_engine.common.logger import LoggerAdapter, app_logger, log_execution_time, with_context
from learning_engine.performance.adaptation import DifficultyAdaptationEngine, validate_attempt
from learning_engine.performance.difficulty import DifficultyLevel
from learning_engine.performance.ledger import PerformanceLedger, QuizAttempt, create_ledger
from learning_engine.performance.progress import (
    CourseBreakdown,
    OverallSummary,
    ProgressAggregator,
    ProgressSummary,
    TopicHistory,
)
from learning_engine.performance.recommendation import RecommendationGenerator
from learning_engine.performance.repository import LedgerRepository

logger = app_logger.getChild("performance.service")


class AdaptiveLearningService:
    """
    Entry point for recording quiz attempts and reading progress.

    The service holds no ledgers itself; all state lives in the repository.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        config: Optional[AdaptationConfig] = None,
        engine: Optional[DifficultyAdaptationEngine] = None,
        recommender: Optional[RecommendationGenerator] = None,
        aggregator: Optional[ProgressAggregator] = None
    ):
        """
        Initialize the service.

        Args:
            repository: Record store holding the ledgers
            config: Adaptation thresholds; read from the app config when omitted
            engine: Difficulty adaptation engine to use
            recommender: Recommendation generator to use
            aggregator: Progress aggregator to use
        """
        self.repository = repository
        self.config = config or get_config().adaptation
        self.engine = engine or DifficultyAdaptationEngine(self.config)
        self.recommender = recommender or RecommendationGenerator(self.config)
        self.aggregator = aggregator or ProgressAggregator(
            strong_above=self.config.strong_topic_threshold,
            weak_below=self.config.weak_topic_threshold
        )
        self._locks = KeyedLock()

    def _update_ledger(
        self,
        student_email: str,
        course_id: str,
        mutate: Callable[[PerformanceLedger], None]
    ) -> PerformanceLedger:
        """
        Run load -> mutate -> save for one ledger under its key lock.

        The whole cycle is repeated with a freshly loaded ledger when the
        store raises ``ConcurrentUpdateError``, at most ``max_save_retries``
        times. Other store errors propagate immediately.
        """
        retries = self.config.max_save_retries
        log = LoggerAdapter(logger, {"student_email": student_email, "course_id": course_id})
        with self._locks.hold((student_email, course_id)):
            attempt_number = 0
            while True:
                ledger = self.repository.load_or_create(student_email, course_id)
                created = ledger.is_new

                mutate(ledger)
                ledger.touch()

                try:
                    self.repository.save(ledger)
                except ConcurrentUpdateError:
                    if attempt_number >= retries:
                        raise
                    attempt_number += 1
                    log.warning(
                        f"Concurrent update of ledger ({student_email}, {course_id}), "
                        f"retrying ({attempt_number}/{retries})"
                    )
                    continue

                if created:
                    log.info(f"Created performance ledger for {student_email} in course {course_id}")
                return ledger

    @log_execution_time(logger)
    def record_attempt(
        self,
        student_email: str,
        course_id: str,
        topic_name: str,
        score: int,
        total_questions: int,
        difficulty: Union[DifficultyLevel, str, None] = None,
        time_spent_seconds: int = 0,
        quiz_id: Optional[str] = None,
        quiz_type: Optional[str] = None
    ) -> PerformanceLedger:
        """
        Record a quiz attempt and adapt the student's difficulty.

        Args:
            student_email: Student identity
            course_id: Course identity
            topic_name: Topic the quiz covered
            score: Correct answers, 0..total_questions
            total_questions: Questions in the quiz, positive
            difficulty: Level the quiz was presented at
            time_spent_seconds: Seconds spent on the quiz
            quiz_id: Quiz identifier; AI_QUIZ marks AI-generated quizzes
            quiz_type: "ai" or "normal"; derived from quiz_id when omitted

        Returns:
            The saved ledger

        Raises:
            InvalidAttemptError: If the attempt violates its preconditions
            RecordStoreUnavailableError: If the record store fails
            ConcurrentUpdateError: If retries are exhausted
        """
        validate_attempt(student_email, course_id, topic_name, score, total_questions, time_spent_seconds)

        attempt = QuizAttempt.create(
            topic_name=topic_name,
            score=score,
            total_questions=total_questions,
            difficulty_level=DifficultyLevel.coerce(difficulty),
            time_spent=time_spent_seconds,
            quiz_id=quiz_id,
            quiz_type=quiz_type
        )

        adjustments = []

        def apply(ledger: PerformanceLedger) -> None:
            adjustments.append(self.engine.apply_attempt(ledger, attempt))
            self.recommender.refresh(ledger)

        ledger = self._update_ledger(student_email, course_id, apply)

        # The last adjustment belongs to the cycle that was saved
        adjustment = adjustments[-1]
        if adjustment.changed:
            log = with_context(logger.name, student_email=student_email, course_id=course_id)
            log.with_context(**adjustment.to_dict()).debug(
                f"Difficulty moved {adjustment.previous_level.value} -> "
                f"{adjustment.new_level.value} after '{topic_name}' ({adjustment.reason})"
            )
        return ledger

    @log_execution_time(logger)
    def update_completion(
        self,
        student_email: str,
        course_id: str,
        topic_name: str,
        percentage: float
    ) -> PerformanceLedger:
        """
        Set the completion percentage of a topic.

        Raises:
            ValidationError: If ``percentage`` is outside 0-100 or a key part is empty
        """
        errors = {}
        if not student_email:
            errors["student_email"] = "must not be empty"
        if not course_id:
            errors["course_id"] = "must not be empty"
        if not topic_name:
            errors["topic_name"] = "must not be empty"
        if not isinstance(percentage, (int, float)) or isinstance(percentage, bool):
            errors["percentage"] = f"must be a number, got {percentage!r}"
        elif math.isnan(percentage) or not 0 <= percentage <= 100:
            errors["percentage"] = f"must be between 0 and 100, got {percentage}"
        if errors:
            raise ValidationError("invalid completion update", errors)

        def apply(ledger: PerformanceLedger) -> None:
            ledger.completion_percentage[topic_name] = float(percentage)

        return self._update_ledger(student_email, course_id, apply)

    @log_execution_time(logger)
    def reset_performance(self, student_email: str, course_id: str) -> None:
        """Delete the ledger for a student in a course. Absent ledgers are ignored."""
        with self._locks.hold((student_email, course_id)):
            removed = self.repository.delete(student_email, course_id)
        if removed:
            logger.info(f"Reset performance of {student_email} in course {course_id}")

    def get_performance(self, student_email: str, course_id: str) -> Optional[PerformanceLedger]:
        """The stored ledger, or None when the student has no record in the course."""
        return self.repository.get(student_email, course_id)

    def get_student_performance(self, student_email: str) -> List[PerformanceLedger]:
        """Every ledger of a student, ordered by course ID."""
        return self.repository.load_all(student_email)

    def get_progress(self, student_email: str, course_id: str) -> ProgressSummary:
        """Single-course progress; all zeros when there is no ledger yet."""
        ledger = self.repository.get(student_email, course_id)
        if ledger is None:
            return ProgressSummary.empty(student_email, course_id)
        return self.aggregator.course_progress(ledger)

    def get_overall_progress(self, student_email: str) -> OverallSummary:
        """Cross-course progress of a student."""
        return self.aggregator.overall_progress(student_email, self.repository.load_all(student_email))

    def get_course_breakdown(self, student_email: str, course_id: str) -> CourseBreakdown:
        """AI-generated versus regular quiz statistics for one course."""
        ledger = self.repository.get(student_email, course_id) or create_ledger(student_email, course_id)
        return self.aggregator.course_breakdown(ledger)

    def get_topic_history(self, student_email: str, course_id: str, topic_name: str) -> TopicHistory:
        """Attempts on one topic, newest first."""
        ledger = self.repository.get(student_email, course_id) or create_ledger(student_email, course_id)
        return self.aggregator.topic_history(ledger, topic_name)
