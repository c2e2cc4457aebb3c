"""Job models for long-running platform operations (export, import, migrate)."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cspark.http.models import Downloadable, Multipart


class JobStatus(str, Enum):
    """Local job state. Terminal once succeeded, failed or cancelled."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELLED)

    @classmethod
    def from_remote(cls, value: str | None) -> "JobStatus":
        """
        Normalize the platform's status vocabulary.

        Unrecognized values count as running so polling continues until the
        wait budget decides.
        """
        return _REMOTE_STATUS_MAP.get((value or "").strip().lower(), cls.RUNNING)


_REMOTE_STATUS_MAP = {
    "created": JobStatus.PENDING,
    "pending": JobStatus.PENDING,
    "queued": JobStatus.PENDING,
    "in_progress": JobStatus.RUNNING,
    "in progress": JobStatus.RUNNING,
    "processing": JobStatus.RUNNING,
    "running": JobStatus.RUNNING,
    "completed": JobStatus.SUCCEEDED,
    "closed": JobStatus.SUCCEEDED,
    "success": JobStatus.SUCCEEDED,
    "succeeded": JobStatus.SUCCEEDED,
    "error": JobStatus.FAILED,
    "failed": JobStatus.FAILED,
    "cancelled": JobStatus.CANCELLED,
    "canceled": JobStatus.CANCELLED,
}


# =============================================================================
# Wire payloads
# =============================================================================


class JobFile(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    file: str
    file_hash: str | None = None


class JobOutputs(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    files: list[JobFile] = Field(default_factory=list)


class JobStatusPayload(BaseModel):
    """Status document returned by ``.../{id}/status`` endpoints."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str | None = None
    status: str | None = None
    status_url: str | None = None
    outputs: JobOutputs | None = None
    errors: Any = None
    process_time: float | None = None

    @property
    def result_locations(self) -> list[str]:
        if self.outputs is None:
            return []
        return [f.file for f in self.outputs.files if f.file]


class JobSubmission(BaseModel):
    """Acknowledgement returned when a job is accepted."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str
    object: str | None = None
    status_url: str | None = None


# =============================================================================
# Local models
# =============================================================================


@dataclass(frozen=True)
class OperationSpec:
    """
    How to start, poll and cancel one kind of job.

    ``status_url`` and ``cancel_url`` are templates formatted with ``id``;
    a ``status_url`` returned by the platform on submission wins.
    """

    name: str
    url: str
    method: str = "POST"
    body: Any = None
    multiparts: list[Multipart] | None = None
    status_url: str | None = None
    cancel_url: str | None = None
    cancel_method: str = "PATCH"
    download_authenticated: bool = False


@dataclass
class Job:
    """
    A submitted long-running operation. Mutated only by the JobPoller.
    """

    id: str
    status: JobStatus = JobStatus.PENDING
    status_url: str = ""
    result_locations: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    spec: OperationSpec | None = None
    data: dict[str, Any] = field(default_factory=dict)
    errors: Any = None
    polls: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def cancel_url(self) -> str | None:
        if self.spec is None or not self.spec.cancel_url:
            return None
        return self.spec.cancel_url.format(id=self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "status_url": self.status_url,
            "result_locations": list(self.result_locations),
            "created_at": self.created_at.isoformat(),
            "polls": self.polls,
        }


@dataclass
class JobResult:
    """Completed job plus its downloaded artifacts (caller owns them)."""

    job: Job
    downloads: list[Downloadable] = field(default_factory=list)

    @property
    def outputs(self) -> dict[str, Any]:
        return self.job.data.get("outputs") or {}


__all__ = [
    "JobStatus",
    "JobFile",
    "JobOutputs",
    "JobStatusPayload",
    "JobSubmission",
    "OperationSpec",
    "Job",
    "JobResult",
]
