"""
SQLAlchemy ORM models for performance ledgers.

This module defines the relational layout of a ledger:
- StudentPerformanceRecord: One row per (student, course) with the derived maps
  and adaptive state
- QuizAttemptRecord: One row per quiz attempt, ordered by ``position``
"""

import datetime

from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text, ForeignKey, JSON, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.schema import UniqueConstraint

from learning_engine.database.base import ModelBase
from learning_engine.performance.difficulty import DifficultyLevel
from learning_engine.performance.ledger import PerformanceLedger, QuizAttempt


class StudentPerformanceRecord(ModelBase):
    """
    Ledger row for one student in one course.

    ``version`` is bumped on every save and checked on update to detect
    concurrent writers.
    """
    __tablename__ = 'student_performance'

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_email = Column(String(255), nullable=False, index=True)
    course_id = Column(String(255), nullable=False)
    version = Column(Integer, nullable=False)

    topic_scores = Column(JSON, nullable=False, default=dict)
    topic_difficulty_levels = Column(JSON, nullable=False, default=dict)
    time_spent_per_topic = Column(JSON, nullable=False, default=dict)
    completion_percentage = Column(JSON, nullable=False, default=dict)

    current_difficulty_level = Column(String(20), nullable=False, default=DifficultyLevel.BEGINNER.value)
    consecutive_high_scores = Column(Integer, nullable=False, default=0)
    consecutive_low_scores = Column(Integer, nullable=False, default=0)

    topic_name = Column(String(255), nullable=True)
    recommended_topic = Column(String(255), nullable=True)
    recommended_difficulty = Column(String(20), nullable=True)
    recommendation_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.datetime.now, nullable=False)
    last_quiz_date = Column(DateTime, nullable=True)

    attempts = relationship(
        "QuizAttemptRecord",
        back_populates="performance",
        cascade="all, delete-orphan",
        order_by="QuizAttemptRecord.position",
        lazy="selectin"
    )

    __table_args__ = (
        UniqueConstraint('student_email', 'course_id', name='uq_student_performance_student_course'),
    )
    __mapper_args__ = {"version_id_col": version}

    def apply_ledger(self, ledger: PerformanceLedger) -> None:
        """Copy the ledger's scalar state and maps onto this row."""
        self.student_email = ledger.student_email
        self.course_id = ledger.course_id
        self.topic_scores = dict(ledger.topic_scores)
        self.topic_difficulty_levels = {
            topic: level.value for topic, level in ledger.topic_difficulty_levels.items()
        }
        self.time_spent_per_topic = dict(ledger.time_spent_per_topic)
        self.completion_percentage = dict(ledger.completion_percentage)
        self.current_difficulty_level = ledger.current_difficulty_level.value
        self.consecutive_high_scores = ledger.consecutive_high_scores
        self.consecutive_low_scores = ledger.consecutive_low_scores
        self.topic_name = ledger.topic_name
        self.recommended_topic = ledger.recommended_topic
        self.recommended_difficulty = (
            ledger.recommended_difficulty.value if ledger.recommended_difficulty else None
        )
        self.recommendation_reason = ledger.recommendation_reason
        self.created_at = ledger.created_at
        self.updated_at = ledger.updated_at
        self.last_quiz_date = ledger.last_quiz_date

    def to_ledger(self) -> PerformanceLedger:
        """Build the domain ledger, attempts included."""
        return PerformanceLedger(
            student_email=self.student_email,
            course_id=self.course_id,
            quiz_attempts=[record.to_attempt() for record in self.attempts],
            topic_scores={t: int(s) for t, s in (self.topic_scores or {}).items()},
            topic_difficulty_levels={
                t: DifficultyLevel.from_string(level)
                for t, level in (self.topic_difficulty_levels or {}).items()
            },
            time_spent_per_topic={t: int(s) for t, s in (self.time_spent_per_topic or {}).items()},
            completion_percentage={t: float(p) for t, p in (self.completion_percentage or {}).items()},
            current_difficulty_level=DifficultyLevel.from_string(self.current_difficulty_level),
            consecutive_high_scores=self.consecutive_high_scores,
            consecutive_low_scores=self.consecutive_low_scores,
            topic_name=self.topic_name,
            recommended_topic=self.recommended_topic,
            recommended_difficulty=(
                DifficultyLevel.from_string(self.recommended_difficulty)
                if self.recommended_difficulty else None
            ),
            recommendation_reason=self.recommendation_reason,
            created_at=self.created_at,
            updated_at=self.updated_at,
            last_quiz_date=self.last_quiz_date,
            ledger_id=self.id,
            version=self.version
        )

    def __repr__(self):
        return (f"<StudentPerformanceRecord(student_email='{self.student_email}', "
                f"course_id='{self.course_id}', version={self.version})>")


class QuizAttemptRecord(ModelBase):
    """A stored quiz attempt. Rows are inserted once and never updated."""
    __tablename__ = 'quiz_attempts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    attempt_id = Column(String(64), nullable=False, unique=True)
    performance_id = Column(
        Integer,
        ForeignKey('student_performance.id', ondelete='CASCADE'),
        nullable=False
    )
    position = Column(Integer, nullable=False)
    quiz_id = Column(String(255), nullable=False)
    quiz_type = Column(String(20), nullable=False)
    topic_name = Column(String(255), nullable=False)
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    percentage = Column(Float, nullable=False)
    difficulty_level = Column(String(20), nullable=False)
    time_spent = Column(Integer, nullable=False, default=0)
    attempt_date = Column(DateTime, nullable=False)

    performance = relationship("StudentPerformanceRecord", back_populates="attempts")

    __table_args__ = (
        Index('idx_quiz_attempts_performance_position', performance_id, position),
    )

    @classmethod
    def from_attempt(cls, attempt: QuizAttempt, position: int) -> 'QuizAttemptRecord':
        """Create a row for ``attempt`` at ``position`` in its ledger."""
        return cls(
            attempt_id=attempt.attempt_id,
            position=position,
            quiz_id=attempt.quiz_id,
            quiz_type=attempt.quiz_type,
            topic_name=attempt.topic_name,
            score=attempt.score,
            total_questions=attempt.total_questions,
            percentage=attempt.percentage,
            difficulty_level=attempt.difficulty_level.value,
            time_spent=attempt.time_spent,
            attempt_date=attempt.attempt_date
        )

    def to_attempt(self) -> QuizAttempt:
        return QuizAttempt(
            attempt_id=self.attempt_id,
            quiz_id=self.quiz_id,
            quiz_type=self.quiz_type,
            topic_name=self.topic_name,
            score=self.score,
            total_questions=self.total_questions,
            difficulty_level=DifficultyLevel.from_string(self.difficulty_level),
            time_spent=self.time_spent,
            attempt_date=self.attempt_date
        )

    def __repr__(self):
        return (f"<QuizAttemptRecord(attempt_id='{self.attempt_id}', "
                f"topic='{self.topic_name}', score={self.score}/{self.total_questions})>")
