"""Long-running job models and the job poller."""

from cspark.jobs.models import (
    Job,
    JobFile,
    JobOutputs,
    JobResult,
    JobStatus,
    JobStatusPayload,
    JobSubmission,
    OperationSpec,
)
from cspark.jobs.poller import DEFAULT_MAX_WAIT_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS, JobPoller

__all__ = [
    "DEFAULT_MAX_WAIT_SECONDS",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "Job",
    "JobFile",
    "JobOutputs",
    "JobPoller",
    "JobResult",
    "JobStatus",
    "JobStatusPayload",
    "JobSubmission",
    "OperationSpec",
]
