"""Status polling: decision order, idempotence, graceful degradation, and retry."""

from datetime import timedelta

import pytest

from i2v.errors import InvalidEntryStateError, RemoteBackendError
from i2v.models import status as st
from i2v.services.job_router import JobRouter
from i2v.services.reconciler import RETRY_REQUEUED, RETRY_RESUBMITTED, RETRY_RESYNCED, StatusReconciler

VIDEO = {"filename": "clip.mp4", "type": "s3_url", "data": "https://cdn.example.com/clip.mp4"}


@pytest.fixture
async def remote_entry(clock, free_user, make_entry, fake_remote):
    fake_remote.set_status("rp-7", "IN_QUEUE")
    return await make_entry(free_user, st.IN_QUEUE, job_id="rp-7", processing_started_at=clock.now)


class TestPollStatus:
    async def test_terminal_entries_are_untouched(self, reconciler, free_user, make_entry, fake_remote):
        entry = await make_entry(free_user, st.COMPLETED, job_id="rp-1", final_video_url="https://v/1.mp4")

        result = await reconciler.poll_status(entry)

        assert result.status == st.COMPLETED
        assert fake_remote.requests == []

    @pytest.mark.parametrize("status", [st.IN_QUEUE, st.PROCESSING])
    async def test_active_without_job_id_self_heals(self, reconciler, store, clock, free_user, make_entry, status):
        entry = await make_entry(free_user, status, processing_started_at=clock.now)

        result = await reconciler.poll_status(entry)
        again = await reconciler.poll_status(await store.get_entry(entry.id))

        stored = await store.get_entry(entry.id)
        assert result.status == again.status == st.UPLOADED
        assert stored.processing_started_at is None

    async def test_uploaded_and_deleted_are_returned_as_is(self, reconciler, free_user, make_entry, fake_remote):
        for status in (st.UPLOADED, st.DELETED):
            entry = await make_entry(free_user, status, job_id="rp-1")
            assert (await reconciler.poll_status(entry)).status == status
        assert fake_remote.requests == []

    async def test_processing_timeout_fails_regardless_of_backend(
        self, reconciler, store, clock, free_user, make_entry, fake_remote
    ):
        fake_remote.set_status("rp-3", "IN_PROGRESS")
        entry = await make_entry(
            free_user, st.PROCESSING, job_id="rp-3", processing_started_at=clock.now - timedelta(minutes=31)
        )

        result = await reconciler.poll_status(entry)

        assert result.status == st.FAILED
        assert (await store.get_entry(entry.id)).status == st.FAILED
        assert fake_remote.requests == []

    async def test_local_job_is_push_driven(self, reconciler, clock, free_user, make_entry, fake_remote):
        entry = await make_entry(
            free_user, st.PROCESSING, is_local_job=True, job_id="local-x", processing_started_at=clock.now,
            progress_percentage=40.0,
        )

        result = await reconciler.poll_status(entry)

        assert result.status == st.PROCESSING
        assert result.progress_percentage == 40.0
        assert fake_remote.requests == []

    async def test_remote_progression(self, reconciler, store, remote_entry, fake_remote):
        fake_remote.set_status("rp-7", "IN_PROGRESS")
        assert (await reconciler.poll_status(remote_entry)).status == st.PROCESSING

        fake_remote.set_status("rp-7", "COMPLETED", files=[VIDEO])
        result = await reconciler.poll_status(await store.get_entry(remote_entry.id))

        stored = await store.get_entry(remote_entry.id)
        assert result.status == st.COMPLETED
        assert stored.final_video_url == VIDEO["data"]
        assert stored.processing_time_ms is not None

    async def test_completed_without_video_is_failed(self, reconciler, store, remote_entry, fake_remote):
        fake_remote.set_status("rp-7", "COMPLETED", files=[])

        result = await reconciler.poll_status(remote_entry)

        assert result.status == st.FAILED
        assert (await store.get_entry(remote_entry.id)).final_video_url is None

    async def test_unchanged_status_does_not_write(self, reconciler, store, remote_entry, monkeypatch):
        writes = []
        original = store.update_entry

        async def spy(entry_id, patch):
            writes.append(patch)
            return await original(entry_id, patch)

        monkeypatch.setattr(store, "update_entry", spy)

        await reconciler.poll_status(remote_entry)
        await reconciler.poll_status(remote_entry)

        assert writes == []

    async def test_backend_failure_returns_last_known(self, reconciler, store, remote_entry, fake_remote):
        fake_remote.fail_with = 503

        result = await reconciler.poll_status(remote_entry)

        assert result.status == st.IN_QUEUE
        assert (await store.get_entry(remote_entry.id)).status == st.IN_QUEUE

    async def test_unconfigured_backend_returns_last_known(self, store, local_only_router, remote_entry, clock):
        reconciler = StatusReconciler(store, local_only_router, clock=clock)

        result = await reconciler.poll_status(remote_entry)

        assert result.status == st.IN_QUEUE


class TestRetry:
    async def test_only_failed_entries(self, reconciler, free_user, make_entry):
        entry = await make_entry(free_user, st.IN_QUEUE, job_id="rp-1")

        with pytest.raises(InvalidEntryStateError):
            await reconciler.retry(entry)

    async def test_local_failure_escalates_to_remote(self, reconciler, store, free_user, make_entry, fake_remote):
        entry = await make_entry(free_user, st.FAILED, is_local_job=True, job_id="local-x", seed=7)

        result = await reconciler.retry(entry)

        stored = await store.get_entry(entry.id)
        assert result.action == RETRY_RESUBMITTED
        assert stored.is_local_job is False
        assert stored.job_id == "rp-1" and not stored.job_id.startswith("local-")
        assert stored.status == st.IN_QUEUE
        assert stored.processing_started_at is not None
        assert fake_remote.last_payload()["input"]["seed"] == 7

    async def test_remote_not_found_resubmits(self, reconciler, store, free_user, make_entry, fake_remote):
        entry = await make_entry(free_user, st.FAILED, job_id="rp-gone")

        result = await reconciler.retry(entry)

        assert result.action == RETRY_RESUBMITTED
        assert (await store.get_entry(entry.id)).job_id == "rp-1"

    async def test_remote_still_running_resyncs_without_resubmitting(
        self, reconciler, store, free_user, make_entry, fake_remote
    ):
        fake_remote.set_status("rp-5", "IN_PROGRESS")
        entry = await make_entry(free_user, st.FAILED, job_id="rp-5")

        result = await reconciler.retry(entry)

        assert result.action == RETRY_RESYNCED
        assert (await store.get_entry(entry.id)).status == st.PROCESSING
        assert fake_remote.calls("POST", "/run") == []
        assert fake_remote.calls("POST", "/retry") == []

    async def test_remote_failure_retried_in_place(self, reconciler, store, free_user, make_entry, fake_remote):
        fake_remote.set_status("rp-5", "FAILED")
        entry = await make_entry(free_user, st.FAILED, job_id="rp-5")

        result = await reconciler.retry(entry)

        stored = await store.get_entry(entry.id)
        assert result.action == RETRY_REQUEUED
        assert (stored.status, stored.job_id) == (st.IN_QUEUE, "rp-5")
        assert len(fake_remote.calls("POST", "/retry/rp-5")) == 1

    async def test_remote_completed_with_video_resyncs(self, reconciler, store, free_user, make_entry, fake_remote):
        fake_remote.set_status("rp-5", "COMPLETED", files=[VIDEO])
        entry = await make_entry(free_user, st.FAILED, job_id="rp-5")

        result = await reconciler.retry(entry)

        stored = await store.get_entry(entry.id)
        assert result.action == RETRY_RESYNCED
        assert (stored.status, stored.final_video_url) == (st.COMPLETED, VIDEO["data"])

    async def test_remote_transient_error_propagates(self, reconciler, free_user, make_entry, fake_remote):
        fake_remote.fail_with = 502
        entry = await make_entry(free_user, st.FAILED, job_id="rp-5")

        with pytest.raises(RemoteBackendError):
            await reconciler.retry(entry)

    async def test_retry_then_poll_is_consistent(self, store, remote, builder, clock, free_user, make_entry, fake_remote):
        reconciler = StatusReconciler(store, JobRouter(store, remote, builder), clock=clock)
        entry = await make_entry(free_user, st.FAILED, is_local_job=True, job_id="local-x")

        await reconciler.retry(entry)
        result = await reconciler.poll_status(await store.get_entry(entry.id))

        assert result.status == st.IN_QUEUE
