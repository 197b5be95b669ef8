"""
Progress Aggregator

Read-only folds over one or many performance ledgers, producing the summaries
shown on progress dashboards. Nothing in this module mutates a ledger.
"""

import math
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from learning_engine.performance.difficulty import DifficultyLevel
from learning_engine.performance.ledger import PerformanceLedger, QuizAttempt

STRONG = "STRONG"
WEAK = "WEAK"
MODERATE = "MODERATE"


def _mean(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return math.fsum(values) / len(values)


def _round2(value: float) -> float:
    # Halves round up, not to even
    return math.floor(value * 100 + 0.5) / 100


def classify_topic(score: int, strong_above: int = 80, weak_below: int = 50) -> str:
    """Label a topic score as STRONG, WEAK or MODERATE."""
    if score > strong_above:
        return STRONG
    if score < weak_below:
        return WEAK
    return MODERATE


class AttemptSummary(BaseModel):
    attempt_id: str = Field(..., description="Attempt ID")
    quiz_id: str = Field(..., description="Quiz ID, AI_QUIZ for generated quizzes")
    quiz_type: str = Field(..., description="ai or normal")
    topic_name: str = Field(..., description="Topic the quiz covered")
    score: int = Field(..., description="Correct answers")
    total_questions: int = Field(..., description="Questions in the quiz")
    percentage: float = Field(..., description="Share of correct answers")
    difficulty_level: DifficultyLevel = Field(..., description="Level the quiz was taken at")
    time_spent: int = Field(..., description="Seconds spent")
    attempt_date: str = Field(..., description="ISO timestamp of the attempt")

    @classmethod
    def from_attempt(cls, attempt: QuizAttempt) -> 'AttemptSummary':
        return cls(
            attempt_id=attempt.attempt_id,
            quiz_id=attempt.quiz_id,
            quiz_type=attempt.quiz_type,
            topic_name=attempt.topic_name,
            score=attempt.score,
            total_questions=attempt.total_questions,
            percentage=_round2(attempt.percentage),
            difficulty_level=attempt.difficulty_level,
            time_spent=attempt.time_spent,
            attempt_date=attempt.attempt_date.isoformat()
        )


class ProgressSummary(BaseModel):
    """Progress of one student in one course."""
    student_email: str = Field(..., description="Student email")
    course_id: str = Field(..., description="Course ID")
    overall_completion: float = Field(0.0, description="Mean topic completion percentage")
    overall_score: float = Field(0.0, description="Mean topic score")
    total_time_spent: int = Field(0, description="Total seconds spent on all topics")
    current_difficulty_level: DifficultyLevel = Field(
        DifficultyLevel.BEGINNER, description="Adaptive difficulty level"
    )
    topic_scores: Dict[str, int] = Field(default_factory=dict, description="Score per topic")
    topic_completion: Dict[str, float] = Field(default_factory=dict, description="Completion per topic")
    strength_weakness: Dict[str, str] = Field(
        default_factory=dict, description="STRONG, WEAK or MODERATE per topic"
    )
    recommended_topic: Optional[str] = Field(None, description="Suggested next topic")
    recommended_difficulty: Optional[DifficultyLevel] = Field(None, description="Suggested difficulty")
    recommendation_reason: Optional[str] = Field(None, description="Why the topic was suggested")
    total_quizzes: int = Field(0, description="Quiz attempts recorded in the course")

    @classmethod
    def empty(cls, student_email: str, course_id: str) -> 'ProgressSummary':
        """Summary for a student who has no ledger in the course yet."""
        return cls(student_email=student_email, course_id=course_id)


class TopicAggregate(BaseModel):
    courses: int = Field(0, description="Courses in which the topic has a score")
    total_score: float = Field(0.0, description="Sum of the topic's scores")
    average_score: float = Field(0.0, description="Mean of the topic's scores")


class CourseProgress(BaseModel):
    course_id: str = Field(..., description="Course ID")
    score: float = Field(..., description="Mean topic score in the course")
    quizzes: int = Field(..., description="Quiz attempts in the course")
    difficulty: DifficultyLevel = Field(..., description="Adaptive level in the course")
    topics: List[str] = Field(default_factory=list, description="Topics with a score")
    topic_scores: Dict[str, int] = Field(default_factory=dict, description="Score per topic")
    quiz_attempts: List[AttemptSummary] = Field(
        default_factory=list, description="Attempts in the course, oldest first"
    )


class OverallSummary(BaseModel):
    """Progress of one student across every course."""
    student_email: str = Field(..., description="Student email")
    total_courses: int = Field(0, description="Courses with a ledger")
    total_quiz_attempts: int = Field(0, description="Quiz attempts across all courses")
    ai_quiz_count: int = Field(0, description="Attempts on AI-generated quizzes")
    normal_quiz_count: int = Field(0, description="Attempts on regular quizzes")
    overall_score: float = Field(0.0, description="Mean of the per-course mean topic scores")
    average_accuracy: float = Field(0.0, description="Mean percentage over every attempt")
    total_time_spent: int = Field(0, description="Total seconds across all courses")
    current_level: DifficultyLevel = Field(
        DifficultyLevel.BEGINNER, description="Highest level reached in any course"
    )
    topics_studied: int = Field(0, description="Distinct topics with a score")
    topic_performance: Dict[str, TopicAggregate] = Field(
        default_factory=dict, description="Cross-course statistics per topic"
    )
    course_progress: List[CourseProgress] = Field(
        default_factory=list, description="Per-course statistics"
    )
    all_quiz_attempts: List[AttemptSummary] = Field(
        default_factory=list, description="Every attempt, grouped by course in course order"
    )


class QuizTypeStats(BaseModel):
    attempts: int = Field(0, description="Number of attempts")
    average_percentage: float = Field(0.0, description="Mean attempt percentage")
    total_time_spent: int = Field(0, description="Seconds spent")


class CourseBreakdown(BaseModel):
    """AI-generated versus regular quiz statistics for one course."""
    student_email: str = Field(..., description="Student email")
    course_id: str = Field(..., description="Course ID")
    total_attempts: int = Field(0, description="All quiz attempts")
    ai_quizzes: QuizTypeStats = Field(default_factory=QuizTypeStats, description="AI-generated quizzes")
    regular_quizzes: QuizTypeStats = Field(default_factory=QuizTypeStats, description="Regular quizzes")
    average_completion: float = Field(0.0, description="Mean topic completion percentage")
    overall_score: float = Field(0.0, description="Mean topic score")
    total_time_spent: int = Field(0, description="Total seconds spent")
    current_difficulty_level: DifficultyLevel = Field(
        DifficultyLevel.BEGINNER, description="Adaptive difficulty level"
    )


class TopicHistory(BaseModel):
    """Attempts on one topic, newest first."""
    topic_name: str = Field(..., description="Topic name")
    total_attempts: int = Field(0, description="Attempts on the topic")
    last_attempt: Optional[AttemptSummary] = Field(None, description="Most recent attempt")
    best_attempt: Optional[AttemptSummary] = Field(None, description="Highest scoring attempt")
    attempts: List[AttemptSummary] = Field(default_factory=list, description="Attempts, newest first")


class ProgressAggregator:
    """
    Computes progress summaries from ledgers.

    Args:
        strong_above: Topic scores above this are STRONG
        weak_below: Topic scores below this are WEAK
    """

    def __init__(self, strong_above: int = 80, weak_below: int = 50):
        self.strong_above = strong_above
        self.weak_below = weak_below

    def course_progress(self, ledger: PerformanceLedger) -> ProgressSummary:
        """Summarize a single course ledger."""
        return ProgressSummary(
            student_email=ledger.student_email,
            course_id=ledger.course_id,
            overall_completion=_round2(_mean(ledger.completion_percentage.values())),
            overall_score=_round2(_mean(ledger.topic_scores.values())),
            total_time_spent=ledger.total_time_spent,
            current_difficulty_level=ledger.current_difficulty_level,
            topic_scores=dict(ledger.topic_scores),
            topic_completion=dict(ledger.completion_percentage),
            strength_weakness={
                topic: classify_topic(score, self.strong_above, self.weak_below)
                for topic, score in ledger.topic_scores.items()
            },
            recommended_topic=ledger.recommended_topic,
            recommended_difficulty=ledger.recommended_difficulty,
            recommendation_reason=ledger.recommendation_reason,
            total_quizzes=ledger.total_quizzes
        )

    def overall_progress(self, student_email: str, ledgers: List[PerformanceLedger]) -> OverallSummary:
        """
        Fold every course ledger of a student into one summary.

        A ledger without topic scores still counts as a course, contributing
        0.0 to the overall score.

        Args:
            student_email: Student the ledgers belong to
            ledgers: All of the student's ledgers, possibly empty

        Returns:
            The cross-course summary; all zeros when ``ledgers`` is empty
        """
        if not ledgers:
            return OverallSummary(student_email=student_email)

        course_scores: List[float] = []
        percentages: List[float] = []
        topic_performance: Dict[str, TopicAggregate] = {}
        course_progress: List[CourseProgress] = []
        all_attempts: List[AttemptSummary] = []
        ai_count = 0
        highest_level = DifficultyLevel.BEGINNER

        for ledger in ledgers:
            course_attempts = [AttemptSummary.from_attempt(a) for a in ledger.quiz_attempts]
            all_attempts.extend(course_attempts)
            for attempt in ledger.quiz_attempts:
                percentages.append(attempt.percentage)
                if attempt.is_ai_quiz:
                    ai_count += 1

            highest_level = max(highest_level, ledger.current_difficulty_level)

            if not ledger.topic_scores:
                course_scores.append(0.0)
                continue

            course_score = _mean(ledger.topic_scores.values())
            course_scores.append(course_score)

            for topic, score in sorted(ledger.topic_scores.items()):
                aggregate = topic_performance.setdefault(topic, TopicAggregate())
                aggregate.courses += 1
                aggregate.total_score += score
                aggregate.average_score = _round2(aggregate.total_score / aggregate.courses)

            course_progress.append(CourseProgress(
                course_id=ledger.course_id,
                score=_round2(course_score),
                quizzes=ledger.total_quizzes,
                difficulty=ledger.current_difficulty_level,
                topics=sorted(ledger.topic_scores),
                topic_scores=dict(ledger.topic_scores),
                quiz_attempts=course_attempts
            ))

        total_attempts = len(percentages)
        return OverallSummary(
            student_email=student_email,
            total_courses=len(ledgers),
            total_quiz_attempts=total_attempts,
            ai_quiz_count=ai_count,
            normal_quiz_count=total_attempts - ai_count,
            overall_score=_round2(_mean(course_scores)),
            average_accuracy=_round2(_mean(percentages)),
            total_time_spent=sum(ledger.total_time_spent for ledger in ledgers),
            current_level=highest_level,
            topics_studied=len(topic_performance),
            topic_performance=topic_performance,
            course_progress=course_progress,
            all_quiz_attempts=all_attempts
        )

    def course_breakdown(self, ledger: PerformanceLedger) -> CourseBreakdown:
        """Split a course's attempts into AI-generated and regular quizzes."""
        ai_attempts = [a for a in ledger.quiz_attempts if a.is_ai_quiz]
        regular_attempts = [a for a in ledger.quiz_attempts if not a.is_ai_quiz]

        return CourseBreakdown(
            student_email=ledger.student_email,
            course_id=ledger.course_id,
            total_attempts=ledger.total_quizzes,
            ai_quizzes=self._type_stats(ai_attempts),
            regular_quizzes=self._type_stats(regular_attempts),
            average_completion=_round2(_mean(ledger.completion_percentage.values())),
            overall_score=_round2(_mean(ledger.topic_scores.values())),
            total_time_spent=ledger.total_time_spent,
            current_difficulty_level=ledger.current_difficulty_level
        )

    def topic_history(self, ledger: PerformanceLedger, topic_name: str) -> TopicHistory:
        """Attempt history of one topic; empty when the topic was never attempted."""
        attempts = ledger.attempts_for_topic(topic_name)
        if not attempts:
            return TopicHistory(topic_name=topic_name)

        best = attempts[0]
        for attempt in attempts[1:]:
            if attempt.percentage > best.percentage:
                best = attempt

        return TopicHistory(
            topic_name=topic_name,
            total_attempts=len(attempts),
            last_attempt=AttemptSummary.from_attempt(attempts[-1]),
            best_attempt=AttemptSummary.from_attempt(best),
            attempts=[AttemptSummary.from_attempt(a) for a in reversed(attempts)]
        )

    @staticmethod
    def _type_stats(attempts: List[QuizAttempt]) -> QuizTypeStats:
        return QuizTypeStats(
            attempts=len(attempts),
            average_percentage=_round2(_mean(a.percentage for a in attempts)),
            total_time_spent=sum(a.time_spent for a in attempts)
        )
