"""
Job record store: persistence for entries, users and admin settings.

JobStore is the interface the routing core depends on. SqlJobStore is the
production implementation on SQLAlchemy async; memory_store.InMemoryJobStore
implements the same contract for tests.

Every method runs in its own short transaction. The only operation that
needs real mutual exclusion is claim_oldest_local_job(): it selects and
marks a row in a single conditional UPDATE so concurrent workers can never
receive the same job.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from i2v.models import status as st
from i2v.models.admin_settings import SETTINGS_ROW_ID, AdminSettings, default_admin_settings
from i2v.models.entry import MUTABLE_FIELDS, Entry
from i2v.models.user import User
from i2v.utils.clock import local_day_bounds, utcnow

logger = logging.getLogger(__name__)

ADMIN_SETTINGS_FIELDS = frozenset(default_admin_settings())


@dataclass
class QueueStats:
    in_queue: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0


@dataclass
class QueuedJob:
    """A waiting local job together with its owner's roles."""

    entry: Entry
    owner_roles: list[str]


def check_patch(patch: dict) -> None:
    unknown = set(patch) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update entry fields: {', '.join(sorted(unknown))}")


def check_settings_patch(patch: dict) -> None:
    unknown = set(patch) - ADMIN_SETTINGS_FIELDS
    if unknown:
        raise ValueError(f"Unknown admin settings: {', '.join(sorted(unknown))}")


# ── Interface ────────────────────────────────────────────────────────


class JobStore(ABC):
    # Entries

    @abstractmethod
    async def create_entry(self, user_id: uuid.UUID, original_image_url: str, **fields) -> Entry: ...

    @abstractmethod
    async def get_entry(self, entry_id: uuid.UUID) -> Entry | None: ...

    @abstractmethod
    async def update_entry(self, entry_id: uuid.UUID, patch: dict) -> Entry | None:
        """Apply a partial update; returns None if the entry does not exist."""

    @abstractmethod
    async def transition_entry(
        self,
        entry_id: uuid.UUID,
        expected_status: str,
        patch: dict,
        local_only: bool = False,
    ) -> Entry | None:
        """Apply patch only if the entry is still in expected_status (compare-and-set)."""

    @abstractmethod
    async def count_active_jobs(self, user_id: uuid.UUID) -> int: ...

    @abstractmethod
    async def count_daily_usage(self, user_id: uuid.UUID, day: date) -> int:
        """Entries created on the given local day that consumed a quota slot."""

    # Local queue

    @abstractmethod
    async def claim_oldest_local_job(self) -> Entry | None:
        """Atomically take the oldest queued local job and mark it processing."""

    @abstractmethod
    async def get_local_queue_stats(self) -> QueueStats: ...

    @abstractmethod
    async def list_queued_local_jobs(self, limit: int = 20) -> list[QueuedJob]: ...

    # Admin settings

    @abstractmethod
    async def get_admin_settings(self) -> AdminSettings: ...

    @abstractmethod
    async def update_admin_settings(self, patch: dict) -> AdminSettings: ...

    # Users

    @abstractmethod
    async def create_user(self, username: str, password_hash: str = "", roles: list[str] | None = None, email: str | None = None) -> User: ...

    @abstractmethod
    async def get_user(self, user_id: uuid.UUID) -> User | None: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> User | None: ...


# ── SQLAlchemy implementation ────────────────────────────────────────


def _daily_usage_filter(user_id: uuid.UUID, start: datetime, end: datetime):
    return and_(
        Entry.user_id == user_id,
        Entry.created_at >= start,
        Entry.created_at < end,
        or_(
            Entry.status.in_(st.QUOTA_STATUSES),
            and_(Entry.status == st.DELETED, Entry.final_video_url.is_not(None)),
        ),
    )


class SqlJobStore(JobStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_entry(self, user_id: uuid.UUID, original_image_url: str, **fields) -> Entry:
        entry = Entry(
            id=fields.pop("id", None) or uuid.uuid4(),
            user_id=user_id,
            original_image_url=original_image_url,
            status=fields.pop("status", st.UPLOADED),
            created_at=fields.pop("created_at", None) or utcnow(),
            **fields,
        )
        async with self._session_factory() as session, session.begin():
            session.add(entry)
        return entry

    async def get_entry(self, entry_id: uuid.UUID) -> Entry | None:
        async with self._session_factory() as session:
            return await session.get(Entry, entry_id)

    async def update_entry(self, entry_id: uuid.UUID, patch: dict) -> Entry | None:
        check_patch(patch)
        async with self._session_factory() as session, session.begin():
            entry = await session.get(Entry, entry_id)
            if entry is None:
                return None
            for key, value in patch.items():
                setattr(entry, key, value)
        return entry

    async def transition_entry(
        self,
        entry_id: uuid.UUID,
        expected_status: str,
        patch: dict,
        local_only: bool = False,
    ) -> Entry | None:
        check_patch(patch)
        conditions = [Entry.id == entry_id, Entry.status == expected_status]
        if local_only:
            conditions.append(Entry.is_local_job.is_(True))
        stmt = (
            update(Entry)
            .where(*conditions)
            .values(**patch)
            .returning(Entry)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def count_active_jobs(self, user_id: uuid.UUID) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(Entry)
                .where(Entry.user_id == user_id, Entry.status.in_(st.ACTIVE_STATUSES))
            )
            return result.scalar() or 0

    async def count_daily_usage(self, user_id: uuid.UUID, day: date) -> int:
        start, end = local_day_bounds(day)
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(Entry).where(_daily_usage_filter(user_id, start, end))
            )
            return result.scalar() or 0

    async def claim_oldest_local_job(self) -> Entry | None:
        now = utcnow()
        queued = aliased(Entry, name="queued")
        oldest = (
            select(queued.id)
            .where(queued.is_local_job.is_(True), queued.status == st.IN_QUEUE)
            .order_by(queued.created_at.asc(), queued.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(Entry)
            .where(Entry.id == oldest, Entry.status == st.IN_QUEUE)
            .values(
                status=st.PROCESSING,
                processing_started_at=func.coalesce(Entry.processing_started_at, now),
            )
            .returning(Entry)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            entry = result.scalar_one_or_none()

        if entry is not None:
            logger.info("Claimed local job %s for entry %s", entry.job_id, entry.id)
        return entry

    async def get_local_queue_stats(self) -> QueueStats:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Entry.status, func.count())
                .where(
                    Entry.is_local_job.is_(True),
                    Entry.status.in_([st.IN_QUEUE, st.PROCESSING, st.COMPLETED, st.FAILED]),
                )
                .group_by(Entry.status)
            )
            counts = dict(result.all())
        return QueueStats(
            in_queue=counts.get(st.IN_QUEUE, 0),
            processing=counts.get(st.PROCESSING, 0),
            completed=counts.get(st.COMPLETED, 0),
            failed=counts.get(st.FAILED, 0),
        )

    async def list_queued_local_jobs(self, limit: int = 20) -> list[QueuedJob]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Entry, User.roles)
                .join(User, User.id == Entry.user_id)
                .where(Entry.is_local_job.is_(True), Entry.status == st.IN_QUEUE)
                .order_by(Entry.created_at.asc(), Entry.id.asc())
                .limit(limit)
            )
            return [QueuedJob(entry=entry, owner_roles=list(roles or [])) for entry, roles in result.all()]

    async def get_admin_settings(self) -> AdminSettings:
        async with self._session_factory() as session, session.begin():
            row = await session.get(AdminSettings, SETTINGS_ROW_ID)
            if row is None:
                row = AdminSettings(id=SETTINGS_ROW_ID, **default_admin_settings())
                session.add(row)
        return row

    async def update_admin_settings(self, patch: dict) -> AdminSettings:
        check_settings_patch(patch)
        async with self._session_factory() as session, session.begin():
            row = await session.get(AdminSettings, SETTINGS_ROW_ID)
            if row is None:
                row = AdminSettings(id=SETTINGS_ROW_ID, **{**default_admin_settings(), **patch})
                session.add(row)
            else:
                for key, value in patch.items():
                    setattr(row, key, value)
        return row

    async def create_user(self, username: str, password_hash: str = "", roles: list[str] | None = None, email: str | None = None) -> User:
        user = User(
            id=uuid.uuid4(),
            username=username,
            email=email,
            password_hash=password_hash,
            roles=list(roles if roles is not None else ["free-tier"]),
            is_active=True,
            created_at=utcnow(),
        )
        async with self._session_factory() as session, session.begin():
            session.add(user)
        return user

    async def get_user(self, user_id: uuid.UUID) -> User | None:
        async with self._session_factory() as session:
            return await session.get(User, user_id)

    async def get_user_by_username(self, username: str) -> User | None:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.username == username))
            return result.scalar_one_or_none()
