"""
Tests for the adaptive learning service.

These tests drive the public operations end to end against the in-memory
store, and a smaller set against the SQLite store.
"""

import logging
import threading
from unittest.mock import MagicMock

import pytest

from learning_engine.common.config import AdaptationConfig
from learning_engine.common.exceptions import (
    ConcurrentUpdateError,
    InvalidAttemptError,
    RecordStoreUnavailableError,
    ValidationError,
)
from learning_engine.performance.difficulty import DifficultyLevel
from learning_engine.performance.ledger import AI_QUIZ_ID, create_ledger
from learning_engine.performance.repository import MemoryLedgerRepository
from learning_engine.performance.service import AdaptiveLearningService

STUDENT = "ada@example.com"
COURSE = "python-101"


def record(service, score, total=10, topic="Loops", course=COURSE, **kwargs):
    return service.record_attempt(
        STUDENT, course, topic, score, total,
        kwargs.pop("difficulty", "Beginner"),
        kwargs.pop("time_spent_seconds", 60),
        **kwargs
    )


class TestRecordAttempt:
    """Test recording quiz attempts."""

    def test_first_attempt_creates_ledger(self, service):
        ledger = record(service, 7)

        assert ledger.ledger_id is not None
        assert ledger.version == 1
        assert ledger.total_quizzes == 1
        assert ledger.topic_scores == {"Loops": 70}
        assert ledger.time_spent_per_topic == {"Loops": 60}
        assert ledger.recommended_topic == "Loops"

    def test_level_change_is_logged_with_adjustment(self, service, caplog):
        caplog.set_level(logging.DEBUG, logger="learning_engine.performance.service")

        record(service, 9)
        record(service, 9)

        moves = [r for r in caplog.records if r.getMessage().startswith("Difficulty moved")]
        assert len(moves) == 1
        assert "Beginner -> Intermediate" in moves[0].getMessage()
        assert moves[0].context["student_email"] == STUDENT
        assert moves[0].context["course_id"] == COURSE
        assert moves[0].context["reason"] == "high_streak"
        assert moves[0].context["magnitude"] == 1

    def test_attempts_accumulate_in_call_order(self, service):
        for score in (1, 5, 9, 3):
            record(service, score)

        ledger = service.get_performance(STUDENT, COURSE)

        assert [a.score for a in ledger.quiz_attempts] == [1, 5, 9, 3]
        assert ledger.version == 4

    def test_low_scores_stay_at_beginner(self, service):
        record(service, 2)
        ledger = record(service, 2)

        assert ledger.current_difficulty_level == DifficultyLevel.BEGINNER
        assert ledger.consecutive_low_scores == 2

    def test_high_scores_move_up(self, service):
        record(service, 9)
        ledger = record(service, 9)

        assert ledger.current_difficulty_level == DifficultyLevel.INTERMEDIATE
        assert ledger.consecutive_high_scores == 2
        assert ledger.consecutive_low_scores == 0

    def test_topic_score_is_mean(self, service):
        record(service, 8)
        ledger = record(service, 4)

        assert ledger.topic_scores["Loops"] == 60

    def test_weak_topic_recommended(self, service):
        record(service, 4, topic="Loops")
        ledger = record(service, 9, topic="Arrays")

        assert ledger.recommended_topic == "Loops"
        assert ledger.recommended_difficulty == DifficultyLevel.BEGINNER

    def test_invalid_attempt_leaves_ledger_unchanged(self, service):
        record(service, 5)

        with pytest.raises(InvalidAttemptError):
            record(service, 0, total=0)

        progress = service.get_progress(STUDENT, COURSE)
        assert progress.total_quizzes == 1

    def test_invalid_attempt_does_not_touch_store(self):
        repository = MagicMock()
        service = AdaptiveLearningService(repository, config=AdaptationConfig())

        with pytest.raises(InvalidAttemptError):
            service.record_attempt(STUDENT, COURSE, "Loops", 11, 10, "Beginner", 0)

        repository.load_or_create.assert_not_called()
        repository.save.assert_not_called()

    def test_difficulty_accepts_level_or_text(self, service):
        record(service, 5, difficulty=DifficultyLevel.ADVANCED)
        ledger = record(service, 5, difficulty="intermediate")

        assert ledger.quiz_attempts[0].difficulty_level == DifficultyLevel.ADVANCED
        assert ledger.quiz_attempts[1].difficulty_level == DifficultyLevel.INTERMEDIATE

    def test_quiz_id_and_type(self, service):
        record(service, 5, quiz_id=AI_QUIZ_ID)
        record(service, 5, quiz_id="quiz-42")
        ledger = record(service, 5)

        first, second, third = ledger.quiz_attempts
        assert (first.quiz_id, first.quiz_type) == (AI_QUIZ_ID, "ai")
        assert (second.quiz_id, second.quiz_type) == ("quiz-42", "normal")
        assert third.quiz_id and third.quiz_type == "normal"


class TestUpdateCompletion:
    """Test completion updates."""

    def test_creates_ledger_without_attempts(self, service):
        ledger = service.update_completion(STUDENT, COURSE, "Loops", 40)

        assert ledger.completion_percentage == {"Loops": 40.0}
        assert ledger.total_quizzes == 0
        assert ledger.current_difficulty_level == DifficultyLevel.BEGINNER

    def test_does_not_touch_scores_or_level(self, service):
        record(service, 9)
        record(service, 9)

        ledger = service.update_completion(STUDENT, COURSE, "Loops", 100)

        assert ledger.completion_percentage["Loops"] == 100.0
        assert ledger.topic_scores == {"Loops": 90}
        assert ledger.current_difficulty_level == DifficultyLevel.INTERMEDIATE
        assert ledger.consecutive_high_scores == 2

    @pytest.mark.parametrize("percentage", [-1, 100.5, float("nan")])
    def test_out_of_range_rejected(self, service, percentage):
        with pytest.raises(ValidationError) as exc_info:
            service.update_completion(STUDENT, COURSE, "Loops", percentage)

        assert "percentage" in exc_info.value.errors
        assert service.get_performance(STUDENT, COURSE) is None

    @pytest.mark.parametrize("percentage", ["50", None, True, [50]])
    def test_non_numeric_rejected(self, service, percentage):
        with pytest.raises(ValidationError) as exc_info:
            service.update_completion(STUDENT, COURSE, "Loops", percentage)

        assert "must be a number" in exc_info.value.errors["percentage"]
        assert service.get_performance(STUDENT, COURSE) is None


class TestReadOperations:
    """Test progress and history reads."""

    def test_progress_of_missing_ledger(self, service):
        progress = service.get_progress(STUDENT, COURSE)

        assert progress.total_quizzes == 0
        assert progress.overall_score == 0.0
        assert progress.current_difficulty_level == DifficultyLevel.BEGINNER

    def test_progress(self, service):
        record(service, 9, topic="Loops")
        record(service, 3, topic="Arrays")
        service.update_completion(STUDENT, COURSE, "Loops", 50)

        progress = service.get_progress(STUDENT, COURSE)

        assert progress.overall_score == 60.0
        assert progress.overall_completion == 50.0
        assert progress.total_time_spent == 120
        assert progress.strength_weakness == {"Loops": "STRONG", "Arrays": "WEAK"}
        assert progress.recommended_topic == "Arrays"

    def test_overall_progress_without_ledgers(self, service):
        summary = service.get_overall_progress(STUDENT)

        assert summary.total_courses == 0
        assert summary.total_quiz_attempts == 0
        assert summary.overall_score == 0.0

    def test_overall_progress(self, service):
        record(service, 8, course="python-101")
        record(service, 6, course="java-101")

        summary = service.get_overall_progress(STUDENT)

        assert summary.total_courses == 2
        assert summary.total_quiz_attempts == 2
        assert summary.overall_score == 70.0

    def test_student_performance(self, service):
        record(service, 8, course="sql-101")
        record(service, 6, course="java-101")

        ledgers = service.get_student_performance(STUDENT)

        assert [ledger.course_id for ledger in ledgers] == ["java-101", "sql-101"]

    def test_course_breakdown(self, service):
        record(service, 8, quiz_id=AI_QUIZ_ID)
        record(service, 6)

        breakdown = service.get_course_breakdown(STUDENT, COURSE)

        assert breakdown.ai_quizzes.attempts == 1
        assert breakdown.regular_quizzes.attempts == 1
        assert breakdown.ai_quizzes.average_percentage == 80.0

    def test_course_breakdown_of_missing_ledger(self, service):
        assert service.get_course_breakdown(STUDENT, COURSE).total_attempts == 0

    def test_topic_history(self, service):
        record(service, 4)
        record(service, 9)
        record(service, 7, topic="Arrays")

        history = service.get_topic_history(STUDENT, COURSE, "Loops")

        assert history.total_attempts == 2
        assert history.last_attempt.score == 9
        assert history.best_attempt.score == 9
        assert [a.score for a in history.attempts] == [9, 4]


class TestResetPerformance:
    """Test ledger resets."""

    def test_reset_deletes_ledger(self, service):
        record(service, 5)

        service.reset_performance(STUDENT, COURSE)

        assert service.get_performance(STUDENT, COURSE) is None
        assert service.get_progress(STUDENT, COURSE).total_quizzes == 0

    def test_reset_of_missing_ledger_is_noop(self, service):
        service.reset_performance(STUDENT, COURSE)
        service.reset_performance(STUDENT, COURSE)

    def test_record_after_reset_starts_fresh(self, service):
        record(service, 9)
        record(service, 9)
        service.reset_performance(STUDENT, COURSE)

        ledger = record(service, 9)

        assert ledger.current_difficulty_level == DifficultyLevel.BEGINNER
        assert ledger.total_quizzes == 1


class TestStoreFailures:
    """Test retry and error propagation."""

    def test_concurrent_update_is_retried(self):
        repository = MemoryLedgerRepository()
        real_save = repository.save
        calls = {"count": 0}

        def flaky_save(ledger):
            calls["count"] += 1
            if calls["count"] == 1:
                raise ConcurrentUpdateError(ledger.student_email, ledger.course_id, ledger.version)
            return real_save(ledger)

        repository.save = flaky_save
        service = AdaptiveLearningService(repository, config=AdaptationConfig(max_save_retries=2))

        ledger = service.record_attempt(STUDENT, COURSE, "Loops", 5, 10, "Beginner", 0)

        assert calls["count"] == 2
        assert ledger.total_quizzes == 1
        assert repository.get(STUDENT, COURSE).total_quizzes == 1

    def test_retries_exhausted(self):
        repository = MagicMock()
        repository.load_or_create.side_effect = lambda email, course: create_ledger(email, course)
        repository.save.side_effect = ConcurrentUpdateError(STUDENT, COURSE, 0)
        service = AdaptiveLearningService(repository, config=AdaptationConfig(max_save_retries=2))

        with pytest.raises(ConcurrentUpdateError):
            service.record_attempt(STUDENT, COURSE, "Loops", 5, 10, "Beginner", 0)

        assert repository.save.call_count == 3

    def test_store_failure_is_not_retried(self):
        repository = MagicMock()
        repository.load_or_create.side_effect = lambda email, course: create_ledger(email, course)
        repository.save.side_effect = RecordStoreUnavailableError("save")
        service = AdaptiveLearningService(repository, config=AdaptationConfig(max_save_retries=5))

        with pytest.raises(RecordStoreUnavailableError):
            service.update_completion(STUDENT, COURSE, "Loops", 50)

        assert repository.save.call_count == 1


class TestConcurrency:
    """Test per-key serialization."""

    def test_concurrent_attempts_on_one_key_are_all_kept(self, service):
        threads_count = 8
        per_thread = 10
        barrier = threading.Barrier(threads_count)
        errors = []

        def worker():
            barrier.wait()
            try:
                for _ in range(per_thread):
                    service.record_attempt(STUDENT, COURSE, "Loops", 5, 10, "Beginner", 1)
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        ledger = service.get_performance(STUDENT, COURSE)
        assert errors == []
        assert ledger.total_quizzes == threads_count * per_thread
        assert ledger.time_spent_per_topic["Loops"] == threads_count * per_thread
        assert ledger.version == threads_count * per_thread

    def test_two_services_on_one_store_do_not_lose_attempts(self, memory_repository):
        # Separate services have separate locks; the store's version check
        # plus the retry loop keeps every attempt.
        config = AdaptationConfig(max_save_retries=100)
        services = [AdaptiveLearningService(memory_repository, config=config) for _ in range(2)]
        barrier = threading.Barrier(len(services))

        def worker(service):
            barrier.wait()
            for _ in range(20):
                service.record_attempt(STUDENT, COURSE, "Loops", 5, 10, "Beginner", 0)

        threads = [threading.Thread(target=worker, args=(s,)) for s in services]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert memory_repository.get(STUDENT, COURSE).total_quizzes == 40

    def test_different_keys_are_independent(self, service):
        courses = [f"course-{i}" for i in range(5)]

        threads = [
            threading.Thread(
                target=lambda c=course: [
                    service.record_attempt(STUDENT, c, "Loops", 9, 10, "Beginner", 0) for _ in range(3)
                ]
            )
            for course in courses
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        summary = service.get_overall_progress(STUDENT)
        assert summary.total_courses == 5
        assert summary.total_quiz_attempts == 15
        assert summary.current_level == DifficultyLevel.ADVANCED


class TestSqlService:
    """End-to-end runs against the SQLite store."""

    def test_scenario_run(self, sql_service):
        sql_service.record_attempt(STUDENT, COURSE, "Loops", 8, 10, "Beginner", 30)
        sql_service.record_attempt(STUDENT, COURSE, "Loops", 4, 10, "Beginner", 30)
        sql_service.record_attempt(STUDENT, COURSE, "Arrays", 9, 10, "Beginner", 30)
        sql_service.update_completion(STUDENT, COURSE, "Loops", 25)

        ledger = sql_service.get_performance(STUDENT, COURSE)
        progress = sql_service.get_progress(STUDENT, COURSE)

        assert ledger.version == 4
        assert [a.topic_name for a in ledger.quiz_attempts] == ["Loops", "Loops", "Arrays"]
        assert ledger.topic_scores == {"Loops": 60, "Arrays": 90}
        assert ledger.time_spent_per_topic == {"Loops": 60, "Arrays": 30}
        assert ledger.recommended_topic == "Arrays"
        assert ledger.recommended_difficulty == DifficultyLevel.ADVANCED
        assert progress.overall_completion == 25.0
        assert progress.overall_score == 75.0

    def test_reset(self, sql_service):
        sql_service.record_attempt(STUDENT, COURSE, "Loops", 8, 10, "Beginner", 30)

        sql_service.reset_performance(STUDENT, COURSE)

        assert sql_service.get_performance(STUDENT, COURSE) is None
        assert sql_service.get_overall_progress(STUDENT).total_courses == 0
