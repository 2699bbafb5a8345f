"""
Access Ledger: the authoritative identity -> consumption-state store.

Two backends share one contract:
- InMemoryLedger: process-private dict, cleared on restart.
- SqlLedger: SQLAlchemy `users` table, for deployments that need records to
  survive restarts.

consume_one() is the only place quota is charged. The admission check and the
increment run as one critical section, so concurrent requests for the same
identity can never charge past the free quota.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import timedelta
from typing import Dict, Optional

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lina.core.errors import QuotaExhausted, Unauthenticated
from lina.core.plan_limits import as_utc, is_subscription_active, utcnow
from lina.db.base import Base
from lina.db.session import create_session_factory
from lina.models.user import User
from lina.models.user_record import UserRecord

logger = logging.getLogger(__name__)


class AccessLedger(ABC):
    @abstractmethod
    def get(self, identity: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def ensure(self, identity: str, email: Optional[str] = None, used_count: int = 0) -> UserRecord:
        """Get-or-create. An existing record is returned untouched."""

    @abstractmethod
    def consume_one(self, identity: str, free_quota: int) -> UserRecord:
        """
        Charge one question. Subscribed identities are not charged.
        Raises Unauthenticated for unknown identities and QuotaExhausted when
        the trial is used up (no state change in either case).
        """

    @abstractmethod
    def refund_one(self, identity: str) -> UserRecord:
        """Undo one charge (never below zero)."""

    @abstractmethod
    def activate_subscription(self, identity: str, duration_days: int) -> UserRecord:
        """Set subscription expiry to now + duration. used_count is kept."""


class InMemoryLedger(AccessLedger):
    def __init__(self):
        self._records: Dict[str, UserRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def get(self, identity: str) -> Optional[UserRecord]:
        return self._records.get(identity)

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        email = (email or "").strip().lower()
        if not email:
            return None
        for record in list(self._records.values()):
            if record.email == email:
                return record
        return None

    def ensure(self, identity: str, email: Optional[str] = None, used_count: int = 0) -> UserRecord:
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                record = UserRecord(identity=identity, email=email, used_count=used_count)
                self._records[identity] = record
                logger.info("Ledger: created record %s", identity)
            return record

    def consume_one(self, identity: str, free_quota: int) -> UserRecord:
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                raise Unauthenticated()
            if record.is_subscribed():
                return record
            if record.used_count >= free_quota:
                raise QuotaExhausted()
            record = replace(record, used_count=record.used_count + 1)
            self._records[identity] = record
            return record

    def refund_one(self, identity: str) -> UserRecord:
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                raise Unauthenticated()
            if record.used_count > 0:
                record = replace(record, used_count=record.used_count - 1)
                self._records[identity] = record
            return record

    def activate_subscription(self, identity: str, duration_days: int) -> UserRecord:
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                raise Unauthenticated()
            record = replace(
                record, subscription_expiry=utcnow() + timedelta(days=duration_days)
            )
            self._records[identity] = record
            return record


class SqlLedger(AccessLedger):
    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = create_session_factory(engine)

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self._engine)

    @staticmethod
    def _to_record(row: User) -> UserRecord:
        return UserRecord(
            identity=row.identity,
            email=row.email,
            used_count=row.used_count or 0,
            subscription_expiry=as_utc(row.subscription_expiry),
            created_at=as_utc(row.created_at) or utcnow(),
        )

    def _require(self, db: Session, identity: str) -> User:
        row = db.get(User, identity)
        if row is None:
            raise Unauthenticated()
        return row

    def get(self, identity: str) -> Optional[UserRecord]:
        with self._session_factory() as db:
            row = db.get(User, identity)
            return self._to_record(row) if row else None

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        email = (email or "").strip().lower()
        if not email:
            return None
        with self._session_factory() as db:
            row = db.query(User).filter(User.email == email).first()
            return self._to_record(row) if row else None

    def ensure(self, identity: str, email: Optional[str] = None, used_count: int = 0) -> UserRecord:
        with self._session_factory() as db:
            row = db.get(User, identity)
            if row is not None:
                return self._to_record(row)
            row = User(identity=identity, email=email, used_count=used_count)
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                # Another request created the same identity first
                db.rollback()
                row = self._require(db, identity)
                return self._to_record(row)
            db.refresh(row)
            logger.info("Ledger: created record %s", identity)
            return self._to_record(row)

    def consume_one(self, identity: str, free_quota: int) -> UserRecord:
        with self._session_factory() as db:
            row = self._require(db, identity)
            if is_subscription_active(row.subscription_expiry):
                return self._to_record(row)
            # Compare-and-increment in one statement
            result = db.execute(
                update(User)
                .where(User.identity == identity, User.used_count < free_quota)
                .values(used_count=User.used_count + 1)
            )
            if result.rowcount == 0:
                db.rollback()
                raise QuotaExhausted()
            db.commit()
            db.refresh(row)
            return self._to_record(row)

    def refund_one(self, identity: str) -> UserRecord:
        with self._session_factory() as db:
            row = self._require(db, identity)
            db.execute(
                update(User)
                .where(User.identity == identity, User.used_count > 0)
                .values(used_count=User.used_count - 1)
            )
            db.commit()
            db.refresh(row)
            return self._to_record(row)

    def activate_subscription(self, identity: str, duration_days: int) -> UserRecord:
        with self._session_factory() as db:
            row = self._require(db, identity)
            row.subscription_expiry = utcnow() + timedelta(days=duration_days)
            db.commit()
            db.refresh(row)
            return self._to_record(row)
