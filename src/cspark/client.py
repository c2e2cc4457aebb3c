"""
Client facade.

Wires one Config into a shared request executor, job poller and the resource
modules built on them.

Usage:
    async with SparkClient(base_url="https://excel.uat.us.coherent.global/my-tenant",
                           api_key="...") as spark:
        response = await spark.request(spark.config.base_url.concat("folders/list"))
        result = await spark.batch.execute("my-folder/my-service", inputs=records)
"""

from collections.abc import Callable, Iterable
from typing import Any

import aiohttp

from cspark.batch.chunker import BatchChunker, BatchOptions, BatchResult, Chunk, default_body
from cspark.config.config import Config
from cspark.http.executor import RequestExecutor
from cspark.http.models import Downloadable, HttpResponse
from cspark.jobs.models import Job, JobResult, OperationSpec
from cspark.jobs.poller import DEFAULT_MAX_WAIT_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS, JobPoller
from cspark.resources.batch import Batch
from cspark.resources.batches import Batches
from cspark.resources.impex import ImpEx


class SparkClient:
    """
    Entry point of the SDK.

    Args:
        config: Ready-made Config; otherwise built with ``Config.create(**options)``
        session: Optional aiohttp session shared with the host application
        poll_interval_seconds: Default delay between job status checks
        max_wait_seconds: Default wait budget for jobs
        **options: Forwarded to ``Config.create``
    """

    def __init__(
        self,
        config: Config | None = None,
        session: aiohttp.ClientSession | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
        **options: Any,
    ):
        self.config = config if config is not None else Config.create(**options)
        self.executor = RequestExecutor(self.config, session=session)
        self.poller = JobPoller(
            self.executor,
            poll_interval_seconds=poll_interval_seconds,
            max_wait_seconds=max_wait_seconds,
        )
        self._impex: ImpEx | None = None
        self._batch: Batch | None = None
        self._batches: Batches | None = None

    @property
    def impex(self) -> ImpEx:
        if self._impex is None:
            self._impex = ImpEx(self.executor, poller=self.poller)
        return self._impex

    @property
    def batch(self) -> Batch:
        if self._batch is None:
            self._batch = Batch(self.executor)
        return self._batch

    @property
    def batches(self) -> Batches:
        """Asynchronous batch pipelines."""
        if self._batches is None:
            self._batches = Batches(self.executor)
        return self._batches

    async def __aenter__(self) -> "SparkClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.executor.close()
        await self.config.auth.close()

    # =========================================================================
    # Core capabilities
    # =========================================================================

    async def request(self, url: str, **kwargs: Any) -> HttpResponse:
        return await self.executor.request(url, **kwargs)

    async def download(self, url: str, authenticated: bool = False, **kwargs: Any) -> Downloadable:
        return await self.executor.download(url, authenticated=authenticated, **kwargs)

    async def submit_job(self, spec: OperationSpec) -> Job:
        return await self.poller.submit(spec)

    async def await_completion(self, job: Job, **wait: Any) -> Job:
        return await self.poller.await_completion(job, **wait)

    async def run_job(self, spec: OperationSpec, **wait: Any) -> JobResult:
        return await self.poller.run(spec, **wait)

    async def run_batch(
        self,
        url: str,
        records: Iterable[Any],
        options: BatchOptions | None = None,
        body_factory: Callable[[list[Any], Chunk], Any] = default_body,
        **kwargs: Any,
    ) -> BatchResult:
        chunker = BatchChunker(self.executor, url, body_factory=body_factory, **kwargs)
        return await chunker.run(records, options)

    def __repr__(self) -> str:
        return f"SparkClient({self.config!r})"


__all__ = ["SparkClient"]
