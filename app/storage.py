"""Subscription persistence: one interface, interchangeable backends."""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional

from sqlalchemy import Boolean, Column, DateTime, String, create_engine, delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.sql import func

from app.config import Settings
from app.models import SubscriptionRecord

logger = logging.getLogger(__name__)

Base = declarative_base()


class Subscription(Base):
    __tablename__ = "subscriptions"

    email = Column(String(255), primary_key=True)
    auto_notify = Column(Boolean, nullable=False, default=True)
    last_notified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class StorageError(Exception):
    """The subscription backend could not complete an operation."""


class SubscriptionStore(ABC):
    """Key-value style subscription storage keyed by normalized email."""

    name = "abstract"

    @abstractmethod
    def get(self, email: str) -> Optional[SubscriptionRecord]:
        ...

    @abstractmethod
    def upsert(self, email: str, auto_notify: bool) -> None:
        """Insert the subscription or update its auto-notify flag."""

    @abstractmethod
    def mark_notified(self, email: str, when: datetime) -> None:
        """Record the time of the last alert for an existing subscription."""

    @abstractmethod
    def delete(self, email: str) -> None:
        """Remove the subscription. Deleting a missing record is not an error."""


class SqlSubscriptionStore(SubscriptionStore):
    """
    Relational store backed by SQLAlchemy.

    Works against PostgreSQL or an embedded SQLite file. Upserts use the
    dialect's ON CONFLICT clause on the email primary key, so concurrent
    writes to one email resolve as last-writer-wins.
    """

    name = "sql"

    def __init__(self, database_url: str, echo: bool = False):
        self.engine = create_engine(database_url, echo=echo, future=True)
        self._session_factory = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
        Base.metadata.create_all(self.engine)
        self.name = self.engine.dialect.name

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(str(e)) from e
        finally:
            session.close()

    def _insert(self):
        if self.engine.dialect.name == "postgresql":
            return pg_insert(Subscription)
        return sqlite_insert(Subscription)

    def get(self, email: str) -> Optional[SubscriptionRecord]:
        with self._session() as session:
            row = session.execute(
                select(Subscription).where(Subscription.email == email)
            ).scalar_one_or_none()
            if row is None:
                return None
            return SubscriptionRecord(
                email=row.email,
                auto_notify=bool(row.auto_notify),
                last_notified_at=row.last_notified_at,
                created_at=row.created_at,
            )

    def upsert(self, email: str, auto_notify: bool) -> None:
        stmt = self._insert().values(email=email, auto_notify=auto_notify)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Subscription.email],
            set_={"auto_notify": stmt.excluded.auto_notify},
        )
        with self._session() as session:
            session.execute(stmt)

    def mark_notified(self, email: str, when: datetime) -> None:
        with self._session() as session:
            session.execute(
                update(Subscription)
                .where(Subscription.email == email)
                .values(last_notified_at=when)
            )

    def delete(self, email: str) -> None:
        with self._session() as session:
            session.execute(delete(Subscription).where(Subscription.email == email))


class InMemorySubscriptionStore(SubscriptionStore):
    """Process-local store for tests and demos."""

    name = "memory"

    def __init__(self):
        self._records: Dict[str, SubscriptionRecord] = {}

    def get(self, email: str) -> Optional[SubscriptionRecord]:
        record = self._records.get(email)
        return record.model_copy() if record else None

    def upsert(self, email: str, auto_notify: bool) -> None:
        existing = self._records.get(email)
        if existing:
            self._records[email] = existing.model_copy(update={"auto_notify": auto_notify})
        else:
            self._records[email] = SubscriptionRecord(
                email=email,
                auto_notify=auto_notify,
                created_at=datetime.now(timezone.utc),
            )

    def mark_notified(self, email: str, when: datetime) -> None:
        existing = self._records.get(email)
        if existing:
            self._records[email] = existing.model_copy(update={"last_notified_at": when})

    def delete(self, email: str) -> None:
        self._records.pop(email, None)


class NullSubscriptionStore(SubscriptionStore):
    """
    Stand-in used when no database could be opened (e.g. a read-only
    serverless filesystem). Reads find nothing and writes are dropped.
    """

    name = "null"

    def get(self, email: str) -> Optional[SubscriptionRecord]:
        return None

    def upsert(self, email: str, auto_notify: bool) -> None:
        pass

    def mark_notified(self, email: str, when: datetime) -> None:
        pass

    def delete(self, email: str) -> None:
        pass


def _sqlalchemy_url(postgres_url: str) -> str:
    # Hosted Postgres providers hand out the legacy postgres:// scheme.
    if postgres_url.startswith("postgres://"):
        return "postgresql://" + postgres_url[len("postgres://"):]
    return postgres_url


def create_store(settings: Settings) -> SubscriptionStore:
    """
    Select the subscription backend from settings.

    SUBSCRIPTION_STORE=memory forces the in-memory store; otherwise
    POSTGRES_URL selects PostgreSQL and the embedded SQLite file is the
    default. If the database cannot be opened the null store is returned.
    """
    if (settings.subscription_store or "").lower() == "memory":
        logger.info("Using in-memory subscription store")
        return InMemorySubscriptionStore()

    if settings.postgres_url:
        url = _sqlalchemy_url(settings.postgres_url)
    else:
        url = f"sqlite:///{settings.database_path}"

    try:
        store = SqlSubscriptionStore(url)
    except (SQLAlchemyError, ImportError) as e:
        logger.warning(
            "Database initialization failed (running in read-only mode). "
            "Subscriptions will not persist: %s", e
        )
        return NullSubscriptionStore()

    logger.info("Using %s subscription store", store.name)
    return store
