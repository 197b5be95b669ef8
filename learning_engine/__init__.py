"""
Adaptive Learning Engine

Turns a stream of quiz attempts into a per-student, per-course mastery model.

The engine features:
1. Per-topic mean scores recomputed over the full attempt history
2. Hysteresis-based difficulty adjustment (Beginner, Intermediate, Advanced)
3. Next-topic recommendations
4. Single-course and cross-course progress summaries
5. In-memory and SQLAlchemy-backed ledger stores
"""

__version__ = "0.1.0"

from learning_engine.performance import (
    AdaptiveLearningService,
    DifficultyLevel,
    MemoryLedgerRepository,
    SqlLedgerRepository,
)

__all__ = [
    'AdaptiveLearningService',
    'DifficultyLevel',
    'MemoryLedgerRepository',
    'SqlLedgerRepository',
]
