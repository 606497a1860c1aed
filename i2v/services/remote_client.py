"""
Client for the managed serverless GPU queue.

Thin request/response wrapper: every call is one bearer-authenticated HTTP
request with no retries. Transport failures and non-2xx responses surface
as RemoteBackendError; callers decide whether to degrade or fail.
"""

import logging

import httpx
from pydantic import BaseModel, ConfigDict, Field

from i2v.config import Settings
from i2v.errors import RemoteBackendError
from i2v.models import status as st

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".webm")
REMOTE_FILE_TYPE = "s3_url"

PROVIDER_STATUS_MAP = {
    "IN_QUEUE": st.IN_QUEUE,
    "IN_PROGRESS": st.PROCESSING,
    "COMPLETED": st.COMPLETED,
    "FAILED": st.FAILED,
}


class SubmitResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    status: str | None = None


class StatusResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    status: str = ""
    output: dict | None = None


class JobCounts(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    in_queue: int = Field(0, alias="inQueue")
    in_progress: int = Field(0, alias="inProgress")
    completed: int = 0
    failed: int = 0


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    jobs: JobCounts = Field(default_factory=JobCounts)
    workers: dict | None = None


def map_status(provider_status: str | None) -> str:
    """Translate a provider status into the internal vocabulary; never raises."""
    mapped = PROVIDER_STATUS_MAP.get((provider_status or "").upper())
    if mapped is None:
        logger.warning("Unknown provider status %r, treating as %s", provider_status, st.IN_QUEUE)
        return st.IN_QUEUE
    return mapped


def find_video_url(files) -> str | None:
    """First remote-storage file with a video filename, in array order."""
    if not isinstance(files, list):
        return None
    for file in files:
        if not isinstance(file, dict):
            continue
        filename = file.get("filename") or ""
        if file.get("type") == REMOTE_FILE_TYPE and filename.endswith(VIDEO_EXTENSIONS) and file.get("data"):
            return file["data"]
    return None


def extract_video_url(status: StatusResponse) -> str | None:
    if not status.output:
        return None
    return find_video_url(status.output.get("files"))


class RemoteBackendClient:
    def __init__(
        self,
        endpoint_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint_url = endpoint_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.endpoint_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RemoteBackendClient | None":
        """Build a client, or None when the endpoint or key is not configured."""
        if not settings.REMOTE_ENDPOINT_URL or not settings.REMOTE_API_KEY:
            return None
        return cls(settings.REMOTE_ENDPOINT_URL, settings.REMOTE_API_KEY, settings.REMOTE_TIMEOUT_SECONDS)

    async def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        try:
            response = await self._client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            logger.error("Remote %s %s failed: %s", method, path, e)
            raise RemoteBackendError(f"Remote backend request failed: {e}") from e

        if response.is_error:
            logger.error("Remote %s %s returned %d: %s", method, path, response.status_code, response.text[:500])
            raise RemoteBackendError(
                f"Remote backend request failed: {response.status_code}",
                http_status=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteBackendError("Remote backend returned a non-JSON response", http_status=response.status_code) from e
        if not isinstance(data, dict):
            logger.error("Remote %s %s returned a JSON %s, expected an object", method, path, type(data).__name__)
            raise RemoteBackendError("Remote backend returned an unexpected response", http_status=response.status_code)
        return data

    async def submit(self, payload: dict) -> SubmitResponse:
        data = await self._request("POST", "/run", payload)
        if not data.get("id"):
            raise RemoteBackendError("Remote backend accepted the job but returned no id")
        result = SubmitResponse.model_validate(data)
        logger.info("Submitted remote job %s", result.id)
        return result

    async def get_status(self, job_id: str) -> StatusResponse:
        return StatusResponse.model_validate(await self._request("GET", f"/status/{job_id}"))

    async def retry(self, job_id: str) -> SubmitResponse:
        data = await self._request("POST", f"/retry/{job_id}")
        data.setdefault("id", job_id)
        result = SubmitResponse.model_validate(data)
        logger.info("Retried remote job %s", job_id)
        return result

    async def health(self) -> HealthResponse:
        return HealthResponse.model_validate(await self._request("GET", "/health"))

    async def aclose(self) -> None:
        await self._client.aclose()
