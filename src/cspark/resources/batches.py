"""
Asynchronous batch pipelines.

A pipeline is created against a hosted service, fed with chunks of records,
drained of chunk results, then closed (or cancelled):

    create -> push ... pull ... -> close | cancel

The pipeline's local state only guards against pushing to a disposed
pipeline; ``get_status`` reports what the platform actually thinks.
"""

import json
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PayloadValidationError

from cspark.batch.chunker import create_chunks
from cspark.config.base_url import Uri, UriParams
from cspark.errors.exceptions import SparkError, ValidationError
from cspark.http.models import HttpResponse
from cspark.resources.base import SDK_SOURCE_SYSTEM, ApiResource, require_service

if TYPE_CHECKING:
    from cspark.http.executor import RequestExecutor

BATCHES_API_VERSION = "api/v4"
PIPELINE_CALL_PURPOSE = "Async Batch Execution"
DEFAULT_PIPELINE_CHUNK_SIZE = 200
DEFAULT_PULL_MAX_CHUNKS = 100


class PipelineState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class DuplicateChunkPolicy(str, Enum):
    """What ``Pipeline.push`` does with a chunk id it has already seen."""

    IGNORE = "ignore"
    REPLACE = "replace"
    THROW = "throw"


# =============================================================================
# Chunks
# =============================================================================


class ChunkData(BaseModel):
    model_config = ConfigDict(extra="allow")

    inputs: list[Any] = Field(default_factory=list)
    parameters: dict[str, Any] = Field(default_factory=dict)
    summary: dict[str, Any] | None = None


class PipelineChunk(BaseModel):
    """One chunk pushed to a pipeline. ``size`` counts records, not headers."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    data: ChunkData = Field(default_factory=ChunkData)
    size: int | None = None


def pipeline_chunks(
    dataset: list[Any],
    chunk_size: int = DEFAULT_PIPELINE_CHUNK_SIZE,
    headers: list[str] | tuple[str, ...] | None = None,
    parameters: dict[str, Any] | None = None,
    summary: dict[str, Any] | None = None,
) -> list[PipelineChunk]:
    """
    Split a tabular dataset into pipeline chunks.

    Every chunk's inputs start with the header row. When ``headers`` is not
    given the first row of ``dataset`` is taken as the header row.

    Raises:
        ValidationError: If no header row can be found
    """
    rows = list(dataset)
    if headers is None:
        headers = rows.pop(0) if rows else []
    if not isinstance(headers, (list, tuple)) or not headers:
        raise ValidationError("missing headers for the input dataset")

    return [
        PipelineChunk(
            data=ChunkData(
                inputs=[list(headers), *chunk.records],
                parameters=dict(parameters or {}),
                summary=summary,
            ),
            size=chunk.size,
        )
        for chunk in create_chunks(rows, chunk_size)
    ]


def parse_chunks(raw: str) -> list[PipelineChunk]:
    """
    Read chunks from a JSON document: a list of chunks, a single chunk, or an
    object holding them under ``chunks``.

    Raises:
        SparkError: If ``raw`` is not valid chunk JSON
    """
    try:
        data = json.loads(raw)
        items = data.get("chunks", data) if isinstance(data, dict) else data
        if not isinstance(items, list):
            items = [items]
        chunks = [PipelineChunk.model_validate(item) for item in items]
    except (ValueError, AttributeError, PayloadValidationError) as e:
        raise SparkError("failed to parse string data as JSON", cause=e) from e

    for chunk in chunks:
        if chunk.size is None:
            chunk.size = len(chunk.data.inputs)
    return chunks


# =============================================================================
# Pipeline
# =============================================================================


@dataclass(frozen=True)
class PipelineOptions:
    """
    Sizing hints for the platform's batch runners.

    Attributes:
        min_runners: Runners started before ramping up
        max_runners: Upper bound of concurrent runners
        chunks_per_vm: Chunks each VM pulls at a time
        runners_per_vm: Runners per VM
        max_input_size: Input buffer in MB
        max_output_size: Output buffer in MB
        accuracy: Share of records that must succeed, 0.0 to 1.0
    """

    min_runners: int | None = None
    max_runners: int | None = None
    chunks_per_vm: int | None = None
    runners_per_vm: int | None = None
    max_input_size: float | None = None
    max_output_size: float | None = None
    accuracy: float = 1.0

    def to_payload(self) -> dict[str, Any]:
        accuracy = min(max(self.accuracy, 0.0), 1.0)
        payload = {
            "initial_workers": self.min_runners,
            "max_workers": self.max_runners,
            "chunks_per_request": self.chunks_per_vm,
            "runner_thread_count": self.runners_per_vm,
            "max_input_size": self.max_input_size,
            "max_output_size": self.max_output_size,
            "acceptable_error_percentage": round((1 - accuracy) * 100),
        }
        return {k: v for k, v in payload.items() if v is not None}


def _join(value: str | list[str] | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return ",".join(v.strip() for v in value if v and v.strip()) or None


class Batches(ApiResource):
    """
    Usage:
        created = await spark.batches.create("my-folder/my-service")
        pipeline = spark.batches.of(created.data["id"])
        await pipeline.push(inputs=rows)
        results = await pipeline.pull()
        await pipeline.close()
    """

    async def describe(self) -> HttpResponse:
        """Pipelines in progress and recently run across the tenant."""
        return await self.request(self.url("batch/status", version=BATCHES_API_VERSION))

    async def create(
        self,
        service_uri: UriParams | str,
        options: PipelineOptions | None = None,
        version_id: str | None = None,
        active_since: datetime | str | None = None,
        subservices: str | list[str] | None = None,
        selected_outputs: str | list[str] | None = None,
        call_purpose: str | None = None,
        source_system: str | None = None,
        correlation_id: str | None = None,
        input_key: str | None = None,
    ) -> HttpResponse:
        """
        Create a pipeline for a hosted service.

        Raises:
            ValidationError: If the service locator is empty
        """
        params = require_service(service_uri)
        service = params.service_id or Uri.encode(
            UriParams(folder=params.folder, service=params.service, version=params.version),
            long=False,
        )
        if isinstance(active_since, datetime):
            active_since = active_since.isoformat()

        payload = {
            "service": service or None,
            "version_id": version_id or params.version_id,
            "version_by_timestamp": active_since,
            "subservice": _join(subservices),
            "output": _join(selected_outputs),
            "call_purpose": call_purpose or PIPELINE_CALL_PURPOSE,
            "source_system": source_system or SDK_SOURCE_SYSTEM,
            "correlation_id": correlation_id,
            "unique_record_key": input_key,
            **(options or PipelineOptions()).to_payload(),
        }
        response = await self.request(
            self.url("batch", version=BATCHES_API_VERSION),
            method="POST",
            body={k: v for k, v in payload.items() if v is not None},
        )
        batch_id = response.data.get("id") if isinstance(response.data, dict) else None
        self.log.log(f"batch pipeline <{batch_id}> created", resource="batches")
        return response

    def of(self, batch_id: str) -> "Pipeline":
        return Pipeline(batch_id, self.executor)


class Pipeline(ApiResource):
    """
    Handle on one batch pipeline.

    Tracks the chunk ids pushed through this handle so duplicates can be
    ignored, renamed or rejected.
    """

    def __init__(self, batch_id: str, executor: "RequestExecutor"):
        super().__init__(executor)
        self.id = (batch_id or "").strip()
        if not self.id:
            self.log.error("batch pipeline id is required to proceed")
            raise ValidationError("batch pipeline id is required to proceed")
        self._state = PipelineState.OPEN
        self._chunks: dict[str, int] = {}

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_disposed(self) -> bool:
        return self._state in (PipelineState.CLOSED, PipelineState.CANCELLED)

    @property
    def stats(self) -> dict[str, int]:
        """Chunks and records pushed through this handle."""
        return {"chunks": len(self._chunks), "records": sum(self._chunks.values())}

    def _url(self, endpoint: str = "") -> str:
        path = f"batch/{self.id}/{endpoint}" if endpoint else f"batch/{self.id}"
        return self.url(path, version=BATCHES_API_VERSION)

    def _assert_not(self, *states: PipelineState) -> None:
        if self._state in states:
            message = f"batch pipeline <{self.id}> is already {self._state.value}"
            self.log.error(message)
            raise SparkError(message, context={"batch_id": self.id, "state": self._state.value})

    async def get_info(self) -> HttpResponse:
        return await self.request(self._url())

    async def get_status(self) -> HttpResponse:
        return await self.request(self._url("status"))

    async def push(
        self,
        chunks: list[PipelineChunk | dict] | None = None,
        data: ChunkData | dict | None = None,
        inputs: list[Any] | None = None,
        raw: str | None = None,
        if_chunk_id_duplicated: DuplicateChunkPolicy | str = DuplicateChunkPolicy.REPLACE,
        chunk_size: int = DEFAULT_PIPELINE_CHUNK_SIZE,
    ) -> HttpResponse:
        """
        Submit records to the pipeline.

        Exactly one source is used, in this order: ``raw`` JSON, ``chunks``,
        a single chunk's ``data``, or tabular ``inputs`` (header row first)
        split into chunks of ``chunk_size``.

        Raises:
            SparkError: If the pipeline is closed or cancelled, or a chunk id is
                duplicated under the ``throw`` policy
            ValidationError: If no records were given
        """
        self._assert_not(PipelineState.CLOSED, PipelineState.CANCELLED)
        policy = DuplicateChunkPolicy(if_chunk_id_duplicated)
        prepared = self._assess(self._collect(chunks, data, inputs, raw, chunk_size), policy)

        response = await self.request(
            self._url("chunks"),
            method="POST",
            body={"chunks": [c.model_dump(exclude_none=True) for c in prepared]},
        )
        submitted = response.data.get("record_submitted") if isinstance(response.data, dict) else 0
        self.log.log(
            f"pushed {submitted} records to batch pipeline <{self.id}>",
            resource="batches",
            chunk_count=len(prepared),
        )
        return response

    async def pull(self, max_chunks: int = DEFAULT_PULL_MAX_CHUNKS) -> HttpResponse:
        """
        Fetch up to ``max_chunks`` chunk results.

        Still allowed once closed: the platform keeps processing what was pushed.
        """
        self._assert_not(PipelineState.CANCELLED)
        response = await self.request(self._url("chunkresults"), params={"max_chunks": max_chunks})
        status = response.data.get("status") if isinstance(response.data, dict) else None
        available = status.get("records_available") if isinstance(status, dict) else None
        self.log.log(
            f"{available} available records from batch pipeline <{self.id}>",
            resource="batches",
        )
        return response

    async def close(self) -> HttpResponse:
        """Stop accepting records; results remain available to ``pull``."""
        return await self._dispose(PipelineState.CLOSED)

    async def cancel(self) -> HttpResponse:
        """Stop processing immediately; no further results can be pulled."""
        return await self._dispose(PipelineState.CANCELLED)

    async def _dispose(self, state: PipelineState) -> HttpResponse:
        self._assert_not(PipelineState.CLOSED, PipelineState.CANCELLED)
        response = await self.request(
            self._url(), method="PATCH", body={"batch_status": state.value}
        )
        self._state = state
        self.log.log(f"batch pipeline <{self.id}> has been {state.value}", resource="batches")
        return response

    # =========================================================================
    # Chunk bookkeeping
    # =========================================================================

    def _collect(
        self,
        chunks: list[PipelineChunk | dict] | None,
        data: ChunkData | dict | None,
        inputs: list[Any] | None,
        raw: str | None,
        chunk_size: int,
    ) -> list[PipelineChunk]:
        if raw and raw.strip():
            return parse_chunks(raw)
        if chunks:
            return [PipelineChunk.model_validate(c) for c in chunks]
        if data is not None:
            chunk_data = ChunkData.model_validate(data)
            if chunk_data.inputs:
                return [PipelineChunk(data=chunk_data)]
        if inputs:
            collected = pipeline_chunks(inputs, chunk_size=chunk_size)
            if collected:
                return collected

        message = (
            f"wrong data params were provided for this pipeline <{self.id}>; "
            "provide either chunks, data, inputs or raw to proceed"
        )
        self.log.error(message)
        raise ValidationError(message)

    def _assess(
        self, chunks: list[PipelineChunk], policy: DuplicateChunkPolicy
    ) -> list[PipelineChunk]:
        """Apply the duplicate policy, then record ids and sizes."""
        seen = dict(self._chunks)
        for chunk in chunks:
            chunk.id = (chunk.id or "").strip() or str(uuid.uuid4())
            if chunk.size is None:
                chunk.size = len(chunk.data.inputs)

            if chunk.id in seen:
                if policy is DuplicateChunkPolicy.THROW:
                    raise SparkError(
                        f"chunk id <{chunk.id}> is duplicated for batch pipeline <{self.id}>",
                        context={"batch_id": self.id, "chunk_id": chunk.id},
                    )
                if policy is DuplicateChunkPolicy.IGNORE:
                    self.log.warn(
                        f"chunk id <{chunk.id}> appears to be duplicated for this pipeline "
                        f"<{self.id}> and may cause unexpected behavior",
                        resource="batches",
                    )
                    continue
                duplicated, chunk.id = chunk.id, str(uuid.uuid4())
                self.log.log(
                    f"chunk id <{duplicated}> is duplicated for this pipeline <{self.id}> "
                    f"and has been replaced with <{chunk.id}>",
                    resource="batches",
                )
            seen[chunk.id] = chunk.size

        self._chunks = seen
        return chunks


__all__ = [
    "BATCHES_API_VERSION",
    "DEFAULT_PIPELINE_CHUNK_SIZE",
    "PipelineState",
    "DuplicateChunkPolicy",
    "ChunkData",
    "PipelineChunk",
    "PipelineOptions",
    "Batches",
    "Pipeline",
    "pipeline_chunks",
    "parse_chunks",
]
