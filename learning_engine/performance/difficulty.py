"""
Difficulty Model

This module provides the three-level difficulty scale used by the adaptive
engine, and the record describing a single difficulty adjustment decision.
"""

import enum
import datetime
from typing import Dict, Any, Optional, Union


class DifficultyLevel(enum.Enum):
    """Difficulty levels, ordered from easiest to hardest."""
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

    @property
    def display_name(self) -> str:
        """Human readable name."""
        return self.value

    def to_numeric(self) -> int:
        """Convert difficulty level to its rank (1-3)."""
        return _RANKS[self]

    @classmethod
    def from_numeric(cls, value: int) -> 'DifficultyLevel':
        """Convert a rank to a level, clamping to the scale."""
        value = max(1, min(value, len(_ORDER)))
        return _ORDER[value - 1]

    def next(self) -> 'DifficultyLevel':
        """The next harder level; Advanced stays Advanced."""
        return DifficultyLevel.from_numeric(self.to_numeric() + 1)

    def previous(self) -> 'DifficultyLevel':
        """The next easier level; Beginner stays Beginner."""
        return DifficultyLevel.from_numeric(self.to_numeric() - 1)

    @classmethod
    def from_string(cls, text: Optional[str]) -> 'DifficultyLevel':
        """
        Parse a level from its display name or enum name, ignoring case.

        Unrecognized or empty text falls back to BEGINNER.
        """
        if text:
            wanted = text.strip().lower()
            for level in cls:
                if wanted in (level.value.lower(), level.name.lower()):
                    return level
        return cls.BEGINNER

    @classmethod
    def coerce(cls, value: Union['DifficultyLevel', str, None]) -> 'DifficultyLevel':
        """Accept either a level or text understood by ``from_string``."""
        if isinstance(value, DifficultyLevel):
            return value
        return cls.from_string(value)

    def __lt__(self, other: 'DifficultyLevel') -> bool:
        if not isinstance(other, DifficultyLevel):
            return NotImplemented
        return self.to_numeric() < other.to_numeric()

    def __le__(self, other: 'DifficultyLevel') -> bool:
        if not isinstance(other, DifficultyLevel):
            return NotImplemented
        return self.to_numeric() <= other.to_numeric()

    def __gt__(self, other: 'DifficultyLevel') -> bool:
        if not isinstance(other, DifficultyLevel):
            return NotImplemented
        return self.to_numeric() > other.to_numeric()

    def __ge__(self, other: 'DifficultyLevel') -> bool:
        if not isinstance(other, DifficultyLevel):
            return NotImplemented
        return self.to_numeric() >= other.to_numeric()


_ORDER = (DifficultyLevel.BEGINNER, DifficultyLevel.INTERMEDIATE, DifficultyLevel.ADVANCED)
_RANKS = {level: rank for rank, level in enumerate(_ORDER, start=1)}


class DifficultyAdjustment:
    """
    Outcome of running the difficulty state machine on one attempt.

    Tracks the level before and after, why the machine moved (or did not),
    and the attempt percentage that drove the decision.
    """

    def __init__(
        self,
        previous_level: DifficultyLevel,
        new_level: DifficultyLevel,
        reason: str,
        timestamp: Optional[datetime.datetime] = None,
        performance_metric: Optional[float] = None
    ):
        """
        Initialize a difficulty adjustment.

        Args:
            previous_level: Level before the attempt
            new_level: Level after the attempt
            reason: One of "low_streak", "high_streak", "low_score", "high_score", "steady"
            timestamp: When the adjustment occurred
            performance_metric: Attempt percentage that triggered the decision
        """
        self.previous_level = previous_level
        self.new_level = new_level
        self.reason = reason
        self.timestamp = timestamp or datetime.datetime.now()
        self.performance_metric = performance_metric

    @property
    def magnitude(self) -> int:
        """Signed number of levels moved."""
        return self.new_level.to_numeric() - self.previous_level.to_numeric()

    @property
    def changed(self) -> bool:
        """Whether the level actually moved."""
        return self.magnitude != 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "previous_level": self.previous_level.value,
            "new_level": self.new_level.value,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
            "performance_metric": self.performance_metric,
            "magnitude": self.magnitude
        }

    def __repr__(self) -> str:
        return (f"<DifficultyAdjustment({self.previous_level.value} -> {self.new_level.value}, "
                f"reason='{self.reason}')>")
