"""
Performance Ledger

This module defines the aggregate record kept for one (student, course) pair:
the chronological quiz attempt history, per-topic score/time/completion maps
and the adaptive difficulty state.
"""

import uuid
import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Tuple

from learning_engine.performance.difficulty import DifficultyLevel

# Quiz id used by callers for AI-generated quizzes
AI_QUIZ_ID = "AI_QUIZ"

QUIZ_TYPE_AI = "ai"
QUIZ_TYPE_NORMAL = "normal"

LedgerKey = Tuple[str, str]


def _parse_datetime(value: Optional[str]) -> Optional[datetime.datetime]:
    return datetime.datetime.fromisoformat(value) if value else None


def _format_datetime(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class QuizAttempt:
    """A single scored quiz attempt. Never modified after creation."""

    topic_name: str
    score: int
    total_questions: int
    difficulty_level: DifficultyLevel = DifficultyLevel.BEGINNER
    time_spent: int = 0  # seconds
    quiz_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    quiz_type: str = QUIZ_TYPE_NORMAL
    attempt_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    attempt_date: datetime.datetime = field(default_factory=datetime.datetime.now)

    @classmethod
    def create(
        cls,
        topic_name: str,
        score: int,
        total_questions: int,
        difficulty_level: DifficultyLevel,
        time_spent: int,
        quiz_id: Optional[str] = None,
        quiz_type: Optional[str] = None
    ) -> 'QuizAttempt':
        """
        Build an attempt, generating a quiz id when none is given.

        The quiz type defaults to "ai" for the AI_QUIZ sentinel and "normal"
        otherwise.
        """
        if not quiz_id:
            quiz_id = str(uuid.uuid4())
        if not quiz_type:
            quiz_type = QUIZ_TYPE_AI if quiz_id == AI_QUIZ_ID else QUIZ_TYPE_NORMAL
        return cls(
            topic_name=topic_name,
            score=score,
            total_questions=total_questions,
            difficulty_level=difficulty_level,
            time_spent=time_spent,
            quiz_id=quiz_id,
            quiz_type=quiz_type
        )

    @property
    def percentage(self) -> float:
        """Share of correct answers, 0-100."""
        if self.total_questions <= 0:
            return 0.0
        return self.score * 100.0 / self.total_questions

    @property
    def is_ai_quiz(self) -> bool:
        """Whether the attempt came from an AI-generated quiz."""
        return (
            self.quiz_id == AI_QUIZ_ID
            or self.quiz_type == QUIZ_TYPE_AI
            or "AI Quiz" in self.topic_name
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "attempt_id": self.attempt_id,
            "quiz_id": self.quiz_id,
            "quiz_type": self.quiz_type,
            "topic_name": self.topic_name,
            "score": self.score,
            "total_questions": self.total_questions,
            "difficulty_level": self.difficulty_level.value,
            "time_spent": self.time_spent,
            "attempt_date": self.attempt_date.isoformat(),
            "percentage": self.percentage
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuizAttempt':
        """Create from dictionary."""
        return cls(
            attempt_id=data["attempt_id"],
            quiz_id=data["quiz_id"],
            quiz_type=data.get("quiz_type", QUIZ_TYPE_NORMAL),
            topic_name=data["topic_name"],
            score=data["score"],
            total_questions=data["total_questions"],
            difficulty_level=DifficultyLevel.from_string(data.get("difficulty_level")),
            time_spent=data.get("time_spent", 0),
            attempt_date=datetime.datetime.fromisoformat(data["attempt_date"])
        )


class PerformanceLedger:
    """
    Adaptive learning record for one student in one course.

    The attempt list is append-only; ``topic_scores`` and
    ``time_spent_per_topic`` are derived from it by the adaptation engine,
    while ``completion_percentage`` is set directly by callers.
    """

    def __init__(
        self,
        student_email: str,
        course_id: str,
        quiz_attempts: Optional[List[QuizAttempt]] = None,
        topic_scores: Optional[Dict[str, int]] = None,
        topic_difficulty_levels: Optional[Dict[str, DifficultyLevel]] = None,
        time_spent_per_topic: Optional[Dict[str, int]] = None,
        completion_percentage: Optional[Dict[str, float]] = None,
        current_difficulty_level: DifficultyLevel = DifficultyLevel.BEGINNER,
        consecutive_high_scores: int = 0,
        consecutive_low_scores: int = 0,
        topic_name: Optional[str] = None,
        recommended_topic: Optional[str] = None,
        recommended_difficulty: Optional[DifficultyLevel] = None,
        recommendation_reason: Optional[str] = None,
        created_at: Optional[datetime.datetime] = None,
        updated_at: Optional[datetime.datetime] = None,
        last_quiz_date: Optional[datetime.datetime] = None,
        ledger_id: Optional[int] = None,
        version: int = 0
    ):
        """
        Initialize the ledger.

        Args:
            student_email: Student identity (first half of the key)
            course_id: Course identity (second half of the key)
            quiz_attempts: Attempt history in chronological order
            topic_scores: Topic -> mean attempt percentage (0-100)
            topic_difficulty_levels: Topic -> ledger level after its latest attempt
            time_spent_per_topic: Topic -> cumulative seconds
            completion_percentage: Topic -> caller-supplied completion (0-100)
            current_difficulty_level: Ledger-wide adaptive level
            consecutive_high_scores: Hysteresis counter for high scores
            consecutive_low_scores: Hysteresis counter for low scores
            topic_name: Topic of the most recent attempt
            recommended_topic: Most recent recommendation
            recommended_difficulty: Difficulty of the most recent recommendation
            recommendation_reason: Explanation of the most recent recommendation
            created_at: Creation timestamp
            updated_at: Last mutation timestamp
            last_quiz_date: Timestamp of the latest attempt
            ledger_id: Store-assigned identifier, None until first saved
            version: Store-maintained save counter
        """
        self.student_email = student_email
        self.course_id = course_id
        self.quiz_attempts = quiz_attempts or []
        self.topic_scores = topic_scores or {}
        self.topic_difficulty_levels = topic_difficulty_levels or {}
        self.time_spent_per_topic = time_spent_per_topic or {}
        self.completion_percentage = completion_percentage or {}
        self.current_difficulty_level = current_difficulty_level
        self.consecutive_high_scores = consecutive_high_scores
        self.consecutive_low_scores = consecutive_low_scores
        self.topic_name = topic_name
        self.recommended_topic = recommended_topic
        self.recommended_difficulty = recommended_difficulty
        self.recommendation_reason = recommendation_reason
        self.created_at = created_at or datetime.datetime.now()
        self.updated_at = updated_at or self.created_at
        self.last_quiz_date = last_quiz_date
        self.ledger_id = ledger_id
        self.version = version

    @property
    def key(self) -> LedgerKey:
        """The (student_email, course_id) identity of this ledger."""
        return (self.student_email, self.course_id)

    @property
    def is_new(self) -> bool:
        """Whether the ledger has never been saved."""
        return self.ledger_id is None

    @property
    def total_quizzes(self) -> int:
        return len(self.quiz_attempts)

    @property
    def total_time_spent(self) -> int:
        return sum(self.time_spent_per_topic.values())

    def attempts_for_topic(self, topic_name: str) -> List[QuizAttempt]:
        """Attempts on ``topic_name`` in chronological order."""
        return [a for a in self.quiz_attempts if a.topic_name == topic_name]

    def touch(self) -> None:
        """Stamp the ledger as modified now."""
        self.updated_at = datetime.datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "ledger_id": self.ledger_id,
            "version": self.version,
            "student_email": self.student_email,
            "course_id": self.course_id,
            "quiz_attempts": [attempt.to_dict() for attempt in self.quiz_attempts],
            "topic_scores": dict(self.topic_scores),
            "topic_difficulty_levels": {
                topic: level.value for topic, level in self.topic_difficulty_levels.items()
            },
            "time_spent_per_topic": dict(self.time_spent_per_topic),
            "completion_percentage": dict(self.completion_percentage),
            "current_difficulty_level": self.current_difficulty_level.value,
            "consecutive_high_scores": self.consecutive_high_scores,
            "consecutive_low_scores": self.consecutive_low_scores,
            "topic_name": self.topic_name,
            "recommended_topic": self.recommended_topic,
            "recommended_difficulty": (
                self.recommended_difficulty.value if self.recommended_difficulty else None
            ),
            "recommendation_reason": self.recommendation_reason,
            "created_at": _format_datetime(self.created_at),
            "updated_at": _format_datetime(self.updated_at),
            "last_quiz_date": _format_datetime(self.last_quiz_date)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PerformanceLedger':
        """Create from dictionary."""
        recommended = data.get("recommended_difficulty")
        return cls(
            student_email=data["student_email"],
            course_id=data["course_id"],
            quiz_attempts=[QuizAttempt.from_dict(a) for a in data.get("quiz_attempts", [])],
            topic_scores={t: int(s) for t, s in data.get("topic_scores", {}).items()},
            topic_difficulty_levels={
                t: DifficultyLevel.from_string(level)
                for t, level in data.get("topic_difficulty_levels", {}).items()
            },
            time_spent_per_topic={t: int(s) for t, s in data.get("time_spent_per_topic", {}).items()},
            completion_percentage={
                t: float(p) for t, p in data.get("completion_percentage", {}).items()
            },
            current_difficulty_level=DifficultyLevel.from_string(data.get("current_difficulty_level")),
            consecutive_high_scores=data.get("consecutive_high_scores", 0),
            consecutive_low_scores=data.get("consecutive_low_scores", 0),
            topic_name=data.get("topic_name"),
            recommended_topic=data.get("recommended_topic"),
            recommended_difficulty=DifficultyLevel.from_string(recommended) if recommended else None,
            recommendation_reason=data.get("recommendation_reason"),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
            last_quiz_date=_parse_datetime(data.get("last_quiz_date")),
            ledger_id=data.get("ledger_id"),
            version=data.get("version", 0)
        )

    def __repr__(self) -> str:
        return (f"<PerformanceLedger(student_email='{self.student_email}', "
                f"course_id='{self.course_id}', attempts={len(self.quiz_attempts)}, "
                f"level={self.current_difficulty_level.value})>")


def create_ledger(student_email: str, course_id: str) -> PerformanceLedger:
    """
    Create an empty ledger for a (student, course) pair.

    Args:
        student_email: Student identity
        course_id: Course identity

    Returns:
        New ledger at Beginner level with no history
    """
    return PerformanceLedger(student_email=student_email, course_id=course_id)
