"""
Performance Module

This package tracks student quiz performance per course, adapts the
difficulty level, recommends the next topic and aggregates progress.
"""

from learning_engine.performance.difficulty import DifficultyLevel, DifficultyAdjustment
from learning_engine.performance.ledger import (
    AI_QUIZ_ID,
    QuizAttempt,
    PerformanceLedger,
    create_ledger,
)
from learning_engine.performance.adaptation import DifficultyAdaptationEngine, validate_attempt
from learning_engine.performance.recommendation import Recommendation, RecommendationGenerator
from learning_engine.performance.progress import (
    ProgressAggregator,
    ProgressSummary,
    OverallSummary,
    CourseBreakdown,
    TopicHistory,
)
from learning_engine.performance.repository import (
    LedgerRepository,
    MemoryLedgerRepository,
    SqlLedgerRepository,
)
from learning_engine.performance.service import AdaptiveLearningService

__all__ = [
    'DifficultyLevel',
    'DifficultyAdjustment',
    'AI_QUIZ_ID',
    'QuizAttempt',
    'PerformanceLedger',
    'create_ledger',
    'DifficultyAdaptationEngine',
    'validate_attempt',
    'Recommendation',
    'RecommendationGenerator',
    'ProgressAggregator',
    'ProgressSummary',
    'OverallSummary',
    'CourseBreakdown',
    'TopicHistory',
    'LedgerRepository',
    'MemoryLedgerRepository',
    'SqlLedgerRepository',
    'AdaptiveLearningService',
]
