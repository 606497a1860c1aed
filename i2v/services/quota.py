"""Daily quota, concurrency ceiling and paid-feature gates for submissions."""

import logging
from dataclasses import dataclass

from i2v.errors import ConcurrencyLimitError, FeatureNotAllowedError, QuotaExceededError
from i2v.models.admin_settings import DEFAULT_QUOTA_PER_DAY, FREE_TIER_ROLE, AdminSettings
from i2v.models.user import User
from i2v.services.job_store import JobStore
from i2v.utils.clock import local_today

logger = logging.getLogger(__name__)

PAID_ITERATION_STEPS = 8
PAID_RESOLUTION = "720p"


@dataclass(frozen=True)
class DailyQuota:
    used: int
    limit: int

    @property
    def exceeded(self) -> bool:
        return self.used >= self.limit

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)

    def to_dict(self) -> dict:
        return {"used": self.used, "limit": self.limit, "remaining": self.remaining, "exceeded": self.exceeded}


def resolve_daily_limit(roles: list[str], quota_per_day: dict[str, int]) -> int:
    """Most generous configured tier among the user's roles, else the free tier."""
    limits = [int(quota_per_day[role]) for role in roles if role in quota_per_day]
    if limits:
        return max(limits)
    return int(quota_per_day.get(FREE_TIER_ROLE, DEFAULT_QUOTA_PER_DAY[FREE_TIER_ROLE]))


async def check_daily_quota(store: JobStore, user: User, settings: AdminSettings) -> DailyQuota:
    limit = resolve_daily_limit(list(user.roles or []), settings.quota_per_day or {})
    used = await store.count_daily_usage(user.id, local_today())
    return DailyQuota(used=used, limit=limit)


def check_feature_gates(user: User, iteration_steps: int | None, video_resolution: str | None) -> None:
    if user.is_paid:
        return
    if iteration_steps == PAID_ITERATION_STEPS:
        raise FeatureNotAllowedError(f"{PAID_ITERATION_STEPS}-step generation requires a paid plan.")
    if video_resolution == PAID_RESOLUTION:
        raise FeatureNotAllowedError(f"{PAID_RESOLUTION} output requires a paid plan.")


async def enforce_submission_limits(
    store: JobStore,
    user: User,
    settings: AdminSettings,
    iteration_steps: int | None = None,
    video_resolution: str | None = None,
) -> DailyQuota:
    """Raise a SubmissionRejected subclass if the user may not start another job."""
    check_feature_gates(user, iteration_steps, video_resolution)

    quota = await check_daily_quota(store, user, settings)
    if quota.exceeded:
        logger.info("User %s hit daily quota (%d/%d)", user.id, quota.used, quota.limit)
        raise QuotaExceededError(f"Daily quota exceeded ({quota.used}/{quota.limit}). Try again tomorrow.")

    active = await store.count_active_jobs(user.id)
    if active >= settings.max_concurrent_jobs:
        logger.info("User %s has %d active jobs (max %d)", user.id, active, settings.max_concurrent_jobs)
        raise ConcurrencyLimitError(
            f"You already have {active} jobs running (max {settings.max_concurrent_jobs}). "
            "Wait for one to finish."
        )
    return quota
