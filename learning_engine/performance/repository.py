"""
Ledger Repository

This module provides the record stores for performance ledgers. Ledgers are
keyed by (student_email, course_id); each store assigns ``ledger_id`` on the
first save and bumps ``version`` on every save, rejecting a save whose version
no longer matches the stored one.
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from learning_engine.common.db.session import session_scope
from learning_engine.common.exceptions import ConcurrentUpdateError, RecordStoreUnavailableError
from learning_engine.common.logger import app_logger
from learning_engine.performance.ledger import LedgerKey, PerformanceLedger, create_ledger
from learning_engine.performance.models import QuizAttemptRecord, StudentPerformanceRecord

logger = app_logger.getChild("performance.repository")


class LedgerRepository(ABC):
    """
    Abstract base class for ledger record stores.

    Provides a common interface for loading and persisting ledgers,
    regardless of the specific storage mechanism used.
    """

    def load_or_create(self, student_email: str, course_id: str) -> PerformanceLedger:
        """
        Load the ledger for a key, or build a new unsaved one.

        Args:
            student_email: Student identity
            course_id: Course identity

        Returns:
            The stored ledger, or a fresh ledger with ``is_new`` set
        """
        ledger = self.get(student_email, course_id)
        if ledger is None:
            ledger = create_ledger(student_email, course_id)
        return ledger

    @abstractmethod
    def get(self, student_email: str, course_id: str) -> Optional[PerformanceLedger]:
        """
        Retrieve the ledger for a key.

        Returns:
            Ledger or None if not found
        """
        pass

    @abstractmethod
    def save(self, ledger: PerformanceLedger) -> PerformanceLedger:
        """
        Persist a ledger, updating its ``ledger_id`` and ``version``.

        Raises:
            ConcurrentUpdateError: If the stored ledger changed since it was loaded
            RecordStoreUnavailableError: If the store fails
        """
        pass

    @abstractmethod
    def delete(self, student_email: str, course_id: str) -> bool:
        """
        Delete the ledger for a key.

        Returns:
            True if a ledger was removed, False if there was none
        """
        pass

    @abstractmethod
    def load_all(self, student_email: str) -> List[PerformanceLedger]:
        """
        Retrieve every ledger of a student, ordered by course ID.
        """
        pass


class MemoryLedgerRepository(LedgerRepository):
    """
    In-process ledger store.

    Ledgers are kept in serialized form, so callers always receive copies
    and never share state with the store or with each other.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._ledgers: Dict[LedgerKey, Dict[str, Any]] = {}
        self._next_id = 1

    def get(self, student_email: str, course_id: str) -> Optional[PerformanceLedger]:
        with self._lock:
            data = self._ledgers.get((student_email, course_id))
            if data is None:
                return None
            return PerformanceLedger.from_dict(copy.deepcopy(data))

    def save(self, ledger: PerformanceLedger) -> PerformanceLedger:
        with self._lock:
            stored = self._ledgers.get(ledger.key)
            stored_version = stored["version"] if stored else 0
            if stored_version != ledger.version:
                raise ConcurrentUpdateError(ledger.student_email, ledger.course_id, ledger.version)

            if ledger.is_new:
                ledger.ledger_id = self._next_id
                self._next_id += 1
            ledger.version += 1
            self._ledgers[ledger.key] = ledger.to_dict()

        logger.debug(f"Saved ledger {ledger.key} at version {ledger.version}")
        return ledger

    def delete(self, student_email: str, course_id: str) -> bool:
        with self._lock:
            return self._ledgers.pop((student_email, course_id), None) is not None

    def load_all(self, student_email: str) -> List[PerformanceLedger]:
        with self._lock:
            return [
                PerformanceLedger.from_dict(copy.deepcopy(data))
                for (email, _), data in sorted(self._ledgers.items())
                if email == student_email
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._ledgers)


class SqlLedgerRepository(LedgerRepository):
    """
    Relational ledger store backed by SQLAlchemy.

    Each call runs in its own transaction. Driver failures are raised as
    ``RecordStoreUnavailableError``; a stale ``version`` or a duplicate
    insert for an existing key is raised as ``ConcurrentUpdateError``.
    """

    def __init__(self, session_factory: sessionmaker):
        """
        Initialize the repository with a session factory.

        Args:
            session_factory: SQLAlchemy session factory for creating database sessions
        """
        self._session_factory = session_factory

    @staticmethod
    def _select_record(student_email: str, course_id: str):
        return select(StudentPerformanceRecord).where(
            StudentPerformanceRecord.student_email == student_email,
            StudentPerformanceRecord.course_id == course_id
        )

    def get(self, student_email: str, course_id: str) -> Optional[PerformanceLedger]:
        try:
            with session_scope(self._session_factory) as session:
                record = session.execute(
                    self._select_record(student_email, course_id)
                ).scalar_one_or_none()
                return record.to_ledger() if record else None
        except SQLAlchemyError as e:
            raise RecordStoreUnavailableError("load", e) from e

    def save(self, ledger: PerformanceLedger) -> PerformanceLedger:
        try:
            with session_scope(self._session_factory) as session:
                if ledger.is_new:
                    record = StudentPerformanceRecord()
                    session.add(record)
                    known_attempts = set()
                else:
                    record = session.get(StudentPerformanceRecord, ledger.ledger_id)
                    if record is None or record.version != ledger.version:
                        raise ConcurrentUpdateError(
                            ledger.student_email, ledger.course_id, ledger.version
                        )
                    known_attempts = {row.attempt_id for row in record.attempts}

                record.apply_ledger(ledger)
                for position, attempt in enumerate(ledger.quiz_attempts):
                    if attempt.attempt_id not in known_attempts:
                        record.attempts.append(QuizAttemptRecord.from_attempt(attempt, position))

                session.flush()
                ledger_id, version = record.id, record.version
        except (StaleDataError, IntegrityError) as e:
            raise ConcurrentUpdateError(ledger.student_email, ledger.course_id, ledger.version) from e
        except SQLAlchemyError as e:
            raise RecordStoreUnavailableError("save", e) from e

        ledger.ledger_id = ledger_id
        ledger.version = version
        logger.debug(f"Saved ledger {ledger.key} as row {ledger_id} at version {version}")
        return ledger

    def delete(self, student_email: str, course_id: str) -> bool:
        try:
            with session_scope(self._session_factory) as session:
                record = session.execute(
                    self._select_record(student_email, course_id)
                ).scalar_one_or_none()
                if record is None:
                    return False
                session.delete(record)
                return True
        except SQLAlchemyError as e:
            raise RecordStoreUnavailableError("delete", e) from e

    def load_all(self, student_email: str) -> List[PerformanceLedger]:
        try:
            with session_scope(self._session_factory) as session:
                records = session.execute(
                    select(StudentPerformanceRecord)
                    .where(StudentPerformanceRecord.student_email == student_email)
                    .order_by(StudentPerformanceRecord.course_id)
                ).scalars().all()
                return [record.to_ledger() for record in records]
        except SQLAlchemyError as e:
            raise RecordStoreUnavailableError("load_all", e) from e
