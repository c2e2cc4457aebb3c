"""
Job poller.

Drives a long-running operation to completion:

    submit -> poll status (sleep between polls, growing interval) -> terminal
           -> download results

Transient poll failures are retried by the request executor with the same
retry policy as any other call. Exceeding the wait budget raises TimeoutError
and leaves the remote job running.
"""

import asyncio
from typing import Any

from pydantic import ValidationError as PayloadValidationError

from cspark.errors.exceptions import JobFailedError, SparkError, ValidationError
from cspark.errors.exceptions import TimeoutError as SparkTimeoutError
from cspark.http.executor import RequestExecutor
from cspark.http.models import Downloadable
from cspark.jobs.models import (
    Job,
    JobResult,
    JobStatus,
    JobStatusPayload,
    JobSubmission,
    OperationSpec,
)
from cspark.logging.context import set_log_context

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_POLL_INTERVAL_SECONDS = 30.0
DEFAULT_POLL_BACKOFF = 1.5
DEFAULT_MAX_WAIT_SECONDS = 600.0


class JobPoller:
    """
    Submits jobs and polls them until a terminal state.

    Args:
        executor: Request executor used for every call
        poll_interval_seconds: Delay before the second poll
        max_wait_seconds: Total budget across all polls of one job
        backoff: Multiplier applied to the interval after each poll
        max_poll_interval_seconds: Cap on the interval
    """

    def __init__(
        self,
        executor: RequestExecutor,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
        backoff: float = DEFAULT_POLL_BACKOFF,
        max_poll_interval_seconds: float = DEFAULT_MAX_POLL_INTERVAL_SECONDS,
    ):
        if poll_interval_seconds < 0:
            raise ValidationError(
                f"poll_interval_seconds must be >= 0, got {poll_interval_seconds}"
            )
        if max_wait_seconds <= 0:
            raise ValidationError(f"max_wait_seconds must be > 0, got {max_wait_seconds}")
        if backoff < 1:
            raise ValidationError(f"backoff must be >= 1, got {backoff}")

        self.executor = executor
        self.poll_interval_seconds = poll_interval_seconds
        self.max_wait_seconds = max_wait_seconds
        self.backoff = backoff
        self.max_poll_interval_seconds = max(max_poll_interval_seconds, poll_interval_seconds)

    @property
    def log(self):
        return self.executor.log

    async def submit(self, spec: OperationSpec) -> Job:
        """
        Start the operation with one executor call.

        Raises:
            SparkError: If the acknowledgement carries no job id or status URL
        """
        response = await self.executor.request(
            spec.url,
            method=spec.method,
            body=spec.body,
            multiparts=spec.multiparts,
        )
        try:
            ack = JobSubmission.model_validate(response.data or {})
        except PayloadValidationError as e:
            raise SparkError(
                f"{spec.name} job was not accepted: no job id in response",
                cause=e,
                context={"request_id": response.request_id},
            ) from e

        status_url = ack.status_url or (
            spec.status_url.format(id=ack.id) if spec.status_url else ""
        )
        if not status_url:
            raise SparkError(f"{spec.name} job {ack.id} has no status URL")

        job = Job(id=ack.id, status_url=status_url, spec=spec, data=dict(response.data))
        set_log_context(job_id=job.id)
        self.log.log(f"{spec.name} job submitted", operation=spec.name, job_status=job.status.value)
        return job

    async def get_status(self, job: Job) -> Job:
        """Issue one status check and update ``job`` in place."""
        response = await self.executor.request(job.status_url)
        try:
            payload = JobStatusPayload.model_validate(response.data or {})
        except PayloadValidationError as e:
            raise SparkError(
                f"unexpected status payload for job {job.id}",
                cause=e,
                context={"request_id": response.request_id},
            ) from e

        job.polls += 1
        job.status = JobStatus.from_remote(payload.status)
        job.data = dict(response.data or {})
        job.errors = payload.errors
        if payload.status_url:
            job.status_url = payload.status_url
        job.result_locations = payload.result_locations

        self.log.debug(
            f"job {job.id} is {payload.status}",
            job_status=job.status.value,
            poll_count=job.polls,
        )
        return job

    async def await_completion(
        self,
        job: Job,
        poll_interval_seconds: float | None = None,
        max_wait_seconds: float | None = None,
    ) -> Job:
        """
        Poll until ``job`` is terminal.

        The first check happens immediately; sleeps only separate non-terminal
        polls.

        Raises:
            JobFailedError: If the job ends failed or cancelled
            TimeoutError: If the wait budget is exhausted, even mid-poll (remote job untouched)
        """
        interval = (
            self.poll_interval_seconds if poll_interval_seconds is None else poll_interval_seconds
        )
        budget = self.max_wait_seconds if max_wait_seconds is None else max_wait_seconds

        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + budget

        def give_up(cause: BaseException | None = None) -> SparkTimeoutError:
            self.log.warn(
                f"gave up waiting for job {job.id}",
                job_status=job.status.value,
                poll_count=job.polls,
                elapsed_seconds=round(loop.time() - started, 3),
            )
            return SparkTimeoutError(
                f"job {job.id} did not complete within {budget}s",
                timeout_seconds=budget,
                cause=cause,
                context={"job_id": job.id, "polls": job.polls},
            )

        while True:
            # A slow status call counts against the budget too
            scope = asyncio.timeout_at(deadline)
            try:
                async with scope:
                    await self.get_status(job)
            except TimeoutError as e:
                if scope.expired():
                    raise give_up(e) from e
                raise

            if job.status is JobStatus.SUCCEEDED:
                self.log.log(
                    f"job {job.id} completed",
                    job_status=job.status.value,
                    poll_count=job.polls,
                    elapsed_seconds=round(loop.time() - started, 3),
                )
                return job
            if job.status.is_terminal:
                raise JobFailedError(
                    f"job {job.id} ended {job.status.value}",
                    job=job,
                    context={"errors": job.errors} if job.errors else None,
                )

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise give_up()

            await asyncio.sleep(min(interval, remaining))
            interval = min(interval * self.backoff, self.max_poll_interval_seconds)

    async def download_results(self, job: Job) -> list[Downloadable]:
        """One download per result location, in order."""
        authenticated = job.spec.download_authenticated if job.spec else False
        downloads = []
        for location in job.result_locations:
            downloads.append(await self.executor.download(location, authenticated=authenticated))
        return downloads

    async def cancel(self, job: Job) -> bool:
        """
        Ask the platform to cancel ``job``.

        Returns:
            False when the job kind has no cancel endpoint; polling simply stops
        """
        url = job.cancel_url
        if not url:
            self.log.debug(f"job {job.id} has no cancel endpoint", job_status=job.status.value)
            return False
        if job.is_terminal:
            return False

        method = job.spec.cancel_method if job.spec else "PATCH"
        await self.executor.request(url, method=method, body={"status": JobStatus.CANCELLED.value})
        job.status = JobStatus.CANCELLED
        self.log.log(f"job {job.id} cancelled", job_status=job.status.value)
        return True

    async def run(self, spec: OperationSpec, **wait: Any) -> JobResult:
        """Submit, await completion and download the results."""
        job = await self.submit(spec)
        await self.await_completion(job, **wait)
        return JobResult(job=job, downloads=await self.download_results(job))


__all__ = [
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DEFAULT_MAX_WAIT_SECONDS",
    "JobPoller",
]
