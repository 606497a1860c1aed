"""
Where an entry's status comes from.

Local jobs are push-driven: workers report through the webhook, so the
persisted row is already the truth. Remote jobs are pull-driven: the
provider is polled and its answer translated into internal vocabulary.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from i2v.models.entry import Entry
from i2v.services.remote_client import RemoteBackendClient, extract_video_url, map_status


@dataclass(frozen=True)
class StatusSnapshot:
    status: str
    final_video_url: str | None = None


class StatusSource(ABC):
    @abstractmethod
    async def fetch(self, entry: Entry) -> StatusSnapshot: ...


class PushSource(StatusSource):
    async def fetch(self, entry: Entry) -> StatusSnapshot:
        return StatusSnapshot(entry.status, entry.final_video_url)


class PollSource(StatusSource):
    def __init__(self, remote: RemoteBackendClient):
        self.remote = remote

    async def fetch(self, entry: Entry) -> StatusSnapshot:
        response = await self.remote.get_status(entry.job_id)
        return StatusSnapshot(map_status(response.status), extract_video_url(response))
