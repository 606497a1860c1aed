"""Where an entry's rendering job runs.

The persisted columns (is_local_job, job_id) are a storage encoding of this
union; code outside the store works with the variants.
"""

import uuid
from dataclasses import dataclass
from typing import Union

LOCAL_JOB_PREFIX = "local-"


@dataclass(frozen=True)
class LocalPlacement:
    entry_id: uuid.UUID

    @property
    def job_id(self) -> str:
        return f"{LOCAL_JOB_PREFIX}{self.entry_id}"

    @property
    def is_local(self) -> bool:
        return True


@dataclass(frozen=True)
class RemotePlacement:
    provider_id: str

    @property
    def job_id(self) -> str:
        return self.provider_id

    @property
    def is_local(self) -> bool:
        return False


Placement = Union[LocalPlacement, RemotePlacement]


def decode_placement(entry_id: uuid.UUID, is_local_job: bool, job_id: str | None) -> Placement | None:
    if is_local_job:
        return LocalPlacement(entry_id)
    if job_id:
        return RemotePlacement(job_id)
    return None


def encode_placement(placement: Placement) -> dict:
    return {"is_local_job": placement.is_local, "job_id": placement.job_id}
