"""Daily quota, concurrency ceiling and paid-feature gates."""

from datetime import timedelta

import pytest

from i2v.errors import ConcurrencyLimitError, FeatureNotAllowedError, QuotaExceededError
from i2v.models import status as st
from i2v.services.quota import (
    check_daily_quota,
    check_feature_gates,
    enforce_submission_limits,
    resolve_daily_limit,
)
from i2v.utils.clock import local_today, utcnow

QUOTAS = {"free-tier": 10, "gmgard-user": 50, "paid-tier": 100, "premium-tier": 100}


class TestResolveDailyLimit:
    def test_most_generous_role_wins(self):
        assert resolve_daily_limit(["free-tier", "gmgard-user"], QUOTAS) == 50
        assert resolve_daily_limit(["gmgard-user", "paid-tier"], QUOTAS) == 100

    def test_unknown_roles_fall_back_to_free_tier(self):
        assert resolve_daily_limit(["admin"], QUOTAS) == 10
        assert resolve_daily_limit([], QUOTAS) == 10

    def test_missing_free_tier_setting_uses_default(self):
        assert resolve_daily_limit([], {"paid-tier": 3}) == 10

    def test_max_is_by_number_not_role_name(self):
        assert resolve_daily_limit(["premium-tier", "paid-tier"], {"premium-tier": 20, "paid-tier": 80}) == 80


class TestDailyQuota:
    async def test_counts_active_and_completed_entries(self, store, free_user, make_entry):
        await make_entry(free_user, st.IN_QUEUE, job_id="rp-1")
        await make_entry(free_user, st.PROCESSING, job_id="rp-2")
        await make_entry(free_user, st.COMPLETED, job_id="rp-3", final_video_url="https://v/3.mp4")
        await make_entry(free_user, st.FAILED, job_id="rp-4")
        await make_entry(free_user, st.UPLOADED)
        settings = await store.get_admin_settings()

        quota = await check_daily_quota(store, free_user, settings)

        assert (quota.used, quota.limit, quota.exceeded) == (3, 10, False)

    async def test_deleted_entries_count_only_if_rendered(self, store, free_user, make_entry):
        await make_entry(free_user, st.DELETED, final_video_url="https://v/1.mp4")
        await make_entry(free_user, st.DELETED)
        settings = await store.get_admin_settings()

        quota = await check_daily_quota(store, free_user, settings)

        assert quota.used == 1

    async def test_entries_from_previous_days_do_not_count(self, store, free_user, make_entry):
        await make_entry(free_user, st.COMPLETED, created_at=utcnow() - timedelta(days=2))
        settings = await store.get_admin_settings()

        quota = await check_daily_quota(store, free_user, settings)

        assert quota.used == 0

    async def test_other_users_do_not_count(self, store, free_user, paid_user, make_entry):
        await make_entry(paid_user, st.COMPLETED)
        settings = await store.get_admin_settings()

        assert (await check_daily_quota(store, free_user, settings)).used == 0

    async def test_repeated_checks_are_identical(self, store, free_user, make_entry):
        await make_entry(free_user, st.IN_QUEUE, job_id="rp-1")
        settings = await store.get_admin_settings()

        first = await check_daily_quota(store, free_user, settings)
        second = await check_daily_quota(store, free_user, settings)

        assert first == second

    async def test_exceeded_at_limit(self, store, free_user, make_entry):
        settings = await store.update_admin_settings({"quota_per_day": {"free-tier": 2}})
        await make_entry(free_user, st.COMPLETED)
        await make_entry(free_user, st.COMPLETED)

        quota = await check_daily_quota(store, free_user, settings)

        assert quota.exceeded
        assert quota.remaining == 0


class TestStoreCounts:
    async def test_daily_usage_and_active_jobs(self, any_store):
        user = await any_store.create_user("counted", roles=["free-tier"])
        other = await any_store.create_user("other")

        async def make(owner, status, **fields):
            return await any_store.create_entry(owner.id, "https://cdn.example.com/in.png", status=status, **fields)

        await make(user, st.IN_QUEUE, job_id="rp-1")
        await make(user, st.COMPLETED, job_id="rp-2", final_video_url="https://v/2.mp4")
        await make(user, st.FAILED, job_id="rp-3")
        await make(user, st.UPLOADED)
        await make(user, st.DELETED, final_video_url="https://v/4.mp4")
        await make(user, st.DELETED)
        await make(user, st.COMPLETED, created_at=utcnow() - timedelta(days=2))
        await make(other, st.PROCESSING, job_id="rp-5")

        assert await any_store.count_daily_usage(user.id, local_today()) == 3
        assert await any_store.count_active_jobs(user.id) == 1
        assert await any_store.count_active_jobs(other.id) == 1


class TestFeatureGates:
    async def test_free_user_cannot_use_paid_options(self, free_user):
        with pytest.raises(FeatureNotAllowedError):
            check_feature_gates(free_user, 8, None)
        with pytest.raises(FeatureNotAllowedError):
            check_feature_gates(free_user, None, "720p")

    async def test_paid_user_may_use_paid_options(self, paid_user):
        check_feature_gates(paid_user, 8, "720p")

    async def test_default_options_are_open(self, free_user):
        check_feature_gates(free_user, 4, "480p")


class TestEnforceSubmissionLimits:
    async def test_quota_rejection(self, store, free_user, make_entry):
        settings = await store.update_admin_settings({"quota_per_day": {"free-tier": 1}})
        await make_entry(free_user, st.COMPLETED)

        with pytest.raises(QuotaExceededError):
            await enforce_submission_limits(store, free_user, settings)

    async def test_concurrency_rejection(self, store, paid_user, make_entry):
        settings = await store.update_admin_settings({"max_concurrent_jobs": 2})
        await make_entry(paid_user, st.IN_QUEUE, job_id="rp-1")
        await make_entry(paid_user, st.PROCESSING, job_id="rp-2")

        with pytest.raises(ConcurrencyLimitError):
            await enforce_submission_limits(store, paid_user, settings)

    async def test_gates_checked_before_quota(self, store, free_user, make_entry):
        settings = await store.update_admin_settings({"quota_per_day": {"free-tier": 0}})

        with pytest.raises(FeatureNotAllowedError):
            await enforce_submission_limits(store, free_user, settings, iteration_steps=8)

    async def test_within_limits_returns_quota(self, store, free_user):
        settings = await store.get_admin_settings()

        quota = await enforce_submission_limits(store, free_user, settings)

        assert quota.used == 0 and quota.limit == 10
