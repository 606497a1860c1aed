"""In-memory JobStore: single-process stand-in for tests and local tinkering."""

import asyncio
import uuid
from datetime import date

from i2v.models import status as st
from i2v.models.admin_settings import SETTINGS_ROW_ID, AdminSettings, default_admin_settings
from i2v.models.entry import Entry
from i2v.models.user import User
from i2v.services.job_store import JobStore, QueuedJob, QueueStats, check_patch, check_settings_patch
from i2v.utils.clock import as_utc, local_day_bounds, utcnow

_ENTRY_DEFAULTS = {
    "last_image_url": None,
    "prompt": None,
    "is_local_job": False,
    "job_id": None,
    "final_video_url": None,
    "is_published": False,
    "processing_started_at": None,
    "processing_time_ms": None,
    "progress_percentage": None,
    "progress_details": None,
    "workflow_id": None,
    "iteration_steps": None,
    "video_duration": None,
    "video_resolution": None,
    "lora_weights": None,
    "seed": None,
}


def _fifo_key(entry: Entry):
    return (as_utc(entry.created_at), str(entry.id))


class InMemoryJobStore(JobStore):
    def __init__(self):
        self._entries: dict[uuid.UUID, Entry] = {}
        self._users: dict[uuid.UUID, User] = {}
        self._settings: AdminSettings | None = None
        self._lock = asyncio.Lock()

    # ── Entries ──────────────────────────────────────────

    async def create_entry(self, user_id: uuid.UUID, original_image_url: str, **fields) -> Entry:
        values = {**_ENTRY_DEFAULTS, **fields}
        entry = Entry(
            id=values.pop("id", None) or uuid.uuid4(),
            user_id=user_id,
            original_image_url=original_image_url,
            status=values.pop("status", st.UPLOADED),
            created_at=values.pop("created_at", None) or utcnow(),
            **values,
        )
        self._entries[entry.id] = entry
        return entry

    async def get_entry(self, entry_id: uuid.UUID) -> Entry | None:
        return self._entries.get(entry_id)

    async def update_entry(self, entry_id: uuid.UUID, patch: dict) -> Entry | None:
        check_patch(patch)
        async with self._lock:
            entry = self._entries.get(entry_id)
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
        async with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None or entry.status != expected_status:
                return None
            if local_only and not entry.is_local_job:
                return None
            for key, value in patch.items():
                setattr(entry, key, value)
            return entry

    async def count_active_jobs(self, user_id: uuid.UUID) -> int:
        return sum(
            1 for e in self._entries.values() if e.user_id == user_id and e.status in st.ACTIVE_STATUSES
        )

    async def count_daily_usage(self, user_id: uuid.UUID, day: date) -> int:
        start, end = local_day_bounds(day)
        count = 0
        for e in self._entries.values():
            if e.user_id != user_id or not (start <= as_utc(e.created_at) < end):
                continue
            if e.status in st.QUOTA_STATUSES or (e.status == st.DELETED and e.final_video_url):
                count += 1
        return count

    # ── Local queue ──────────────────────────────────────

    def _queued_local(self) -> list[Entry]:
        queued = [e for e in self._entries.values() if e.is_local_job and e.status == st.IN_QUEUE]
        return sorted(queued, key=_fifo_key)

    async def claim_oldest_local_job(self) -> Entry | None:
        async with self._lock:
            queued = self._queued_local()
            if not queued:
                return None
            entry = queued[0]
            entry.status = st.PROCESSING
            if entry.processing_started_at is None:
                entry.processing_started_at = utcnow()
            return entry

    async def get_local_queue_stats(self) -> QueueStats:
        stats = QueueStats()
        for e in self._entries.values():
            if not e.is_local_job:
                continue
            if e.status == st.IN_QUEUE:
                stats.in_queue += 1
            elif e.status == st.PROCESSING:
                stats.processing += 1
            elif e.status == st.COMPLETED:
                stats.completed += 1
            elif e.status == st.FAILED:
                stats.failed += 1
        return stats

    async def list_queued_local_jobs(self, limit: int = 20) -> list[QueuedJob]:
        jobs = []
        for entry in self._queued_local()[:limit]:
            owner = self._users.get(entry.user_id)
            jobs.append(QueuedJob(entry=entry, owner_roles=list(owner.roles) if owner else []))
        return jobs

    # ── Admin settings ───────────────────────────────────

    async def get_admin_settings(self) -> AdminSettings:
        if self._settings is None:
            self._settings = AdminSettings(id=SETTINGS_ROW_ID, **default_admin_settings())
        return self._settings

    async def update_admin_settings(self, patch: dict) -> AdminSettings:
        check_settings_patch(patch)
        row = await self.get_admin_settings()
        for key, value in patch.items():
            setattr(row, key, value)
        row.updated_at = utcnow()
        return row

    # ── Users ────────────────────────────────────────────

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
        self._users[user.id] = user
        return user

    async def get_user(self, user_id: uuid.UUID) -> User | None:
        return self._users.get(user_id)

    async def get_user_by_username(self, username: str) -> User | None:
        return next((u for u in self._users.values() if u.username == username), None)
