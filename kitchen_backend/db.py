"""
Storage abstraction for the site backend: a SQL implementation (Postgres in
production, SQLite in tests) and an in-memory implementation.

Both implementations honour the same result kinds. Reads return ``None``,
``[]`` or ``False`` when nothing is found and never raise; the SQL backend logs
a failed read and returns that same fallback, so a caller cannot tell "no data"
from "read failed". Writes return the stored record or raise ``StorageError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import Column, DateTime, Integer, String, Text, func, select
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from kitchen_backend.schemas import ContactPayload, NewUser, SubscribePayload

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a storage write fails."""


class Storage(Protocol):
    """Interface for the site's persistence, independent of backend."""

    async def initialize_database(self) -> bool:
        ...

    async def close(self) -> None:
        ...

    async def get_user(self, user_id: int) -> Optional["UserRecord"]:
        ...

    async def get_user_by_username(self, username: str) -> Optional["UserRecord"]:
        ...

    async def create_user(self, user: NewUser) -> "UserRecord":
        ...

    async def create_contact_submission(
        self, contact: ContactPayload
    ) -> "ContactSubmissionRecord":
        ...

    async def get_all_contact_submissions(self) -> list["ContactSubmissionRecord"]:
        ...

    async def subscribe_to_newsletter(
        self, subscription: SubscribePayload
    ) -> "NewsletterRecord":
        ...

    async def is_email_subscribed(self, email: str) -> bool:
        ...


def _utcnow() -> datetime:
    # Naive UTC, matching the TIMESTAMP columns of the SQL schema.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc(value: datetime) -> datetime:
    """Attach UTC to a stored naive timestamp so the wire form carries an offset."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class UserRecord:
    id: int
    username: str
    password: str

    def as_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "password": self.password}


@dataclass
class ContactSubmissionRecord:
    id: int
    name: str
    email: str
    phone: str
    kitchen_size: Optional[str]
    message: Optional[str]
    created_at: datetime

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "kitchenSize": self.kitchen_size,
            "message": self.message,
            "createdAt": _as_utc(self.created_at),
        }


@dataclass
class NewsletterRecord:
    id: int
    email: str
    created_at: datetime

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "createdAt": _as_utc(self.created_at),
        }


class InMemoryStorage:
    """
    Process-local storage for development and tests. Data is lost on restart.

    Nothing here awaits, so each operation runs to completion on the event
    loop. Usernames and emails are not checked for uniqueness.
    """

    def __init__(self):
        self.users: Dict[int, UserRecord] = {}
        self.contacts: Dict[int, ContactSubmissionRecord] = {}
        self.newsletters: Dict[int, NewsletterRecord] = {}
        self.current_user_id = 1
        self.current_contact_id = 1
        self.current_newsletter_id = 1

    def reset(self) -> None:
        """Clear all stored data and restart the id counters (useful in tests)."""
        self.users.clear()
        self.contacts.clear()
        self.newsletters.clear()
        self.current_user_id = 1
        self.current_contact_id = 1
        self.current_newsletter_id = 1

    async def initialize_database(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        return self.users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.username == username:
                return user
        return None

    async def create_user(self, user: NewUser) -> UserRecord:
        user_id = self.current_user_id
        self.current_user_id += 1
        record = UserRecord(id=user_id, username=user.username, password=user.password)
        self.users[user_id] = record
        return record

    async def create_contact_submission(
        self, contact: ContactPayload
    ) -> ContactSubmissionRecord:
        contact_id = self.current_contact_id
        self.current_contact_id += 1
        record = ContactSubmissionRecord(
            id=contact_id,
            name=contact.name,
            email=contact.email,
            phone=contact.phone,
            kitchen_size=contact.kitchen_size or None,
            message=contact.message or None,
            created_at=_utcnow(),
        )
        self.contacts[contact_id] = record
        return record

    async def get_all_contact_submissions(self) -> list[ContactSubmissionRecord]:
        # Timestamps can collide, so the id breaks ties.
        return sorted(self.contacts.values(), key=lambda c: (c.created_at, c.id))

    async def subscribe_to_newsletter(
        self, subscription: SubscribePayload
    ) -> NewsletterRecord:
        newsletter_id = self.current_newsletter_id
        self.current_newsletter_id += 1
        record = NewsletterRecord(
            id=newsletter_id, email=subscription.email, created_at=_utcnow()
        )
        self.newsletters[newsletter_id] = record
        return record

    async def is_email_subscribed(self, email: str) -> bool:
        return any(n.email == email for n in self.newsletters.values())


def normalize_database_url(database_url: str) -> str:
    """
    Return an asyncio-driver SQLAlchemy URL.

    Hosting platforms hand out ``postgres://`` or ``postgresql://`` URLs; those
    are rewritten to ``postgresql+asyncpg://``. URLs that already name a driver
    (e.g. ``sqlite+aiosqlite://``) are returned unchanged.
    """
    database_url = database_url.strip()
    if database_url.startswith("postgres://"):
        database_url = "postgresql://" + database_url[len("postgres://") :]
    url = make_url(database_url)
    if url.drivername == "postgresql":
        url = url.set(drivername="postgresql+asyncpg")
    return url.render_as_string(hide_password=False)


class SqlStorage:
    """
    SQLAlchemy asyncio implementation. Accepts any async SQLAlchemy URL
    (Postgres via asyncpg in production, SQLite via aiosqlite for tests).
    """

    def __init__(self, database_url: str, *, echo: bool = False):
        if not database_url or not database_url.strip():
            raise ValueError("DATABASE_URL is required for SqlStorage")
        self.database_url = normalize_database_url(database_url)
        self.engine = create_async_engine(
            self.database_url,
            echo=echo,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = async_sessionmaker(
            bind=self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def initialize_database(self) -> bool:
        """Create any missing tables. Failures are logged, not raised."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception:
            logger.exception("Error initializing database tables")
            return False
        logger.info("Database tables initialized successfully")
        return True

    async def close(self) -> None:
        await self.engine.dispose()

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        return UserRecord(id=row.id, username=row.username, password=row.password)

    def _to_contact_record(self, row: "ContactSubmissionRow") -> ContactSubmissionRecord:
        return ContactSubmissionRecord(
            id=row.id,
            name=row.name,
            email=row.email,
            phone=row.phone,
            kitchen_size=row.kitchen_size,
            message=row.message,
            created_at=row.created_at,
        )

    def _to_newsletter_record(self, row: "NewsletterRow") -> NewsletterRecord:
        return NewsletterRecord(id=row.id, email=row.email, created_at=row.created_at)

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        try:
            async with self.Session() as session:
                row = await session.get(UserRow, user_id)
        except Exception:
            logger.exception("Error getting user %s", user_id)
            return None
        return self._to_user_record(row) if row else None

    async def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        try:
            async with self.Session() as session:
                stmt = select(UserRow).where(UserRow.username == username).limit(1)
                row = (await session.execute(stmt)).scalar_one_or_none()
        except Exception:
            logger.exception("Error getting user by username")
            return None
        return self._to_user_record(row) if row else None

    async def create_user(self, user: NewUser) -> UserRecord:
        try:
            async with self.Session() as session:
                row = UserRow(username=user.username, password=user.password)
                session.add(row)
                await session.commit()
                return self._to_user_record(row)
        except Exception as exc:
            logger.exception("Error creating user")
            raise StorageError("Error creating user") from exc

    async def create_contact_submission(
        self, contact: ContactPayload
    ) -> ContactSubmissionRecord:
        try:
            async with self.Session() as session:
                row = ContactSubmissionRow(
                    name=contact.name,
                    email=contact.email,
                    phone=contact.phone,
                    kitchen_size=contact.kitchen_size or None,
                    message=contact.message or None,
                    created_at=_utcnow(),
                )
                session.add(row)
                await session.commit()
                return self._to_contact_record(row)
        except Exception as exc:
            logger.exception("Error creating contact submission")
            raise StorageError("Error creating contact submission") from exc

    async def get_all_contact_submissions(self) -> list[ContactSubmissionRecord]:
        try:
            async with self.Session() as session:
                stmt = select(ContactSubmissionRow).order_by(
                    ContactSubmissionRow.created_at.asc(), ContactSubmissionRow.id.asc()
                )
                rows = (await session.execute(stmt)).scalars().all()
        except Exception:
            logger.exception("Error getting all contact submissions")
            return []
        return [self._to_contact_record(row) for row in rows]

    async def subscribe_to_newsletter(
        self, subscription: SubscribePayload
    ) -> NewsletterRecord:
        try:
            async with self.Session() as session:
                row = NewsletterRow(email=subscription.email, created_at=_utcnow())
                session.add(row)
                await session.commit()
                return self._to_newsletter_record(row)
        except Exception as exc:
            logger.exception("Error subscribing to newsletter")
            raise StorageError("Error subscribing to newsletter") from exc

    async def is_email_subscribed(self, email: str) -> bool:
        try:
            async with self.Session() as session:
                stmt = select(NewsletterRow.id).where(NewsletterRow.email == email).limit(1)
                found = (await session.execute(stmt)).scalar_one_or_none()
        except Exception:
            logger.exception("Error checking if email is subscribed")
            return False
        return found is not None


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(255), nullable=False, unique=True)
    password = Column(String(255), nullable=False)


class ContactSubmissionRow(Base):
    __tablename__ = "contact_submissions"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(255), nullable=False)
    kitchen_size = Column(String(255), nullable=True)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class NewsletterRow(Base):
    __tablename__ = "newsletters"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
