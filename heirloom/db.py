"""
Relational store handle, table definitions and schema management.

Accepts any SQLAlchemy URL: Postgres in production, SQLite for local runs
and tests.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamps on every backend (SQLite drops tzinfo)."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Database:
    """
    Explicitly constructed store handle.

    One instance is built per process (app factory or CLI) and handed to the
    stores; every operation acquires a session scoped to a single
    transaction.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required")
        self.url = database_url
        self.engine = _create_engine(database_url)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )

    @property
    def is_sqlite(self) -> bool:
        return self.engine.dialect.name == "sqlite"

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session whose work commits on exit or rolls back on error."""
        with self.Session() as session, session.begin():
            yield session

    def ensure_schema(self) -> None:
        """Create missing tables and indexes. Safe to call on every startup."""
        Base.metadata.create_all(self.engine, checkfirst=True)
        logger.info("Database schema ensured (%s)", self.engine.dialect.name)

    def dispose(self) -> None:
        self.engine.dispose()


def _create_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/").endswith("sqlite:"):
            # Every session must see the same in-memory database.
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, future=True, **kwargs)
        event.listen(engine, "connect", _configure_sqlite_connection)
        event.listen(engine, "begin", _begin_immediate)
        return engine
    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    # pysqlite defers BEGIN until the first write; transactions are
    # started explicitly by _begin_immediate instead.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_immediate(conn) -> None:
    # SQLite ignores FOR UPDATE / FOR SHARE; taking the write lock at BEGIN
    # serializes read-validate-write transactions instead.
    conn.exec_driver_sql("BEGIN IMMEDIATE")


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String(255), primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    picture = Column(Text, nullable=True)
    provider = Column(String(50), nullable=False, default="google")
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    last_login = Column(UTCDateTime(), nullable=False, default=utcnow)


class ProfileRow(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    age = Column(Integer, nullable=True)
    contact_number_1 = Column(String(20), nullable=True)
    contact_number_2 = Column(String(20), nullable=True)
    instagram_handle = Column(String(100), nullable=True)
    linkedin_profile = Column(String(255), nullable=True)
    twitter_handle = Column(String(100), nullable=True)
    facebook_profile = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow)


class ApproverRow(Base):
    __tablename__ = "user_approvers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    approver_name = Column(String(255), nullable=False)
    approver_email = Column(String(255), nullable=False, index=True)
    approver_contact_number_1 = Column(String(20), nullable=True)
    approver_contact_number_2 = Column(String(20), nullable=True)
    approver_relationship = Column(String(100), nullable=True)
    approver_instagram = Column(String(100), nullable=True)
    approver_linkedin = Column(String(255), nullable=True)
    approver_twitter = Column(String(100), nullable=True)
    approver_facebook = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow)


class RecipientRow(Base):
    __tablename__ = "user_recipients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recipient_name = Column(String(255), nullable=False)
    recipient_email = Column(String(255), nullable=False)
    recipient_contact_number_1 = Column(String(20), nullable=True)
    recipient_contact_number_2 = Column(String(20), nullable=True)
    recipient_relationship = Column(String(100), nullable=True)
    recipient_instagram = Column(String(100), nullable=True)
    recipient_linkedin = Column(String(255), nullable=True)
    recipient_twitter = Column(String(100), nullable=True)
    recipient_facebook = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow)


class NoteRow(Base):
    __tablename__ = "user_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    note = Column(Text, nullable=False)
    attachment = Column(Text, nullable=True)
    # Ordered recipient ids; ownership is checked on every write.
    recipient_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_user_notes_user_id_created_at", "user_id", "created_at"),
    )
