"""
Batch chunker.

Splits a record set into ordered chunks and submits one request per chunk,
either strictly sequentially or with a bounded number of chunks in flight.
A failing chunk is recorded and the remaining chunks still run.
"""

import asyncio
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cspark.errors.exceptions import SparkError, ValidationError
from cspark.http.executor import RequestExecutor
from cspark.http.models import Compression, HttpResponse

DEFAULT_CHUNK_SIZE = 100
DEFAULT_CONCURRENCY = 4


def _check_positive(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}")


class DispatchMode(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


@dataclass(frozen=True)
class BatchOptions:
    """
    Attributes:
        chunk_size: Maximum records per request
        mode: Sequential (chunk N+1 starts after N resolves) or bounded-parallel
        concurrency: Maximum chunks in flight in parallel mode
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    mode: DispatchMode = DispatchMode.SEQUENTIAL
    concurrency: int = DEFAULT_CONCURRENCY

    def __post_init__(self):
        try:
            object.__setattr__(self, "mode", DispatchMode(self.mode))
        except ValueError as e:
            raise ValidationError(f"unknown dispatch mode <{self.mode}>") from e
        _check_positive("chunk_size", self.chunk_size)
        _check_positive("concurrency", self.concurrency)


@dataclass
class ChunkResult:
    outputs: list[Any] = field(default_factory=list)
    errors: list[Any] = field(default_factory=list)
    data: Any = None


@dataclass
class Chunk:
    """One bounded partition of the record set. ``index`` is 0-based."""

    index: int
    records: list[Any]
    result: ChunkResult | None = None
    error: SparkError | None = None

    @property
    def size(self) -> int:
        return len(self.records)

    @property
    def succeeded(self) -> bool:
        return self.result is not None and self.error is None


@dataclass
class BatchResult:
    """Aggregate of all chunk outcomes, ordered by chunk index."""

    chunks: list[Chunk] = field(default_factory=list)

    @property
    def total_submitted(self) -> int:
        return sum(c.size for c in self.chunks)

    @property
    def total_failed(self) -> int:
        """Records in chunks that failed."""
        return sum(c.size for c in self.chunks if not c.succeeded)

    @property
    def chunks_succeeded(self) -> int:
        return sum(1 for c in self.chunks if c.succeeded)

    @property
    def chunks_failed(self) -> int:
        return sum(1 for c in self.chunks if not c.succeeded)

    @property
    def failed_chunks(self) -> list[Chunk]:
        return [c for c in self.chunks if not c.succeeded]

    @property
    def outputs(self) -> list[Any]:
        """Outputs of successful chunks in original record order."""
        outputs: list[Any] = []
        for chunk in self.chunks:
            if chunk.succeeded:
                outputs.extend(chunk.result.outputs)  # type: ignore[union-attr]
        return outputs

    @property
    def errors(self) -> list[Any]:
        errors: list[Any] = []
        for chunk in self.chunks:
            if chunk.error is not None:
                errors.append(chunk.error)
            elif chunk.result is not None:
                errors.extend(chunk.result.errors)
        return errors

    def to_dict(self) -> dict[str, int]:
        return {
            "chunk_count": len(self.chunks),
            "records_submitted": self.total_submitted,
            "records_failed": self.total_failed,
            "chunks_succeeded": self.chunks_succeeded,
            "chunks_failed": self.chunks_failed,
        }


def create_chunks(records: Iterable[Any], chunk_size: int) -> list[Chunk]:
    """Partition ``records`` into ordered chunks of at most ``chunk_size``."""
    _check_positive("chunk_size", chunk_size)
    items = list(records)
    return [
        Chunk(index=i, records=items[start : start + chunk_size])
        for i, start in enumerate(range(0, len(items), chunk_size))
    ]


def default_body(records: list[Any], chunk: Chunk) -> dict[str, Any]:
    return {"inputs": records}


def default_result(response: HttpResponse) -> ChunkResult:
    data = response.data if isinstance(response.data, dict) else {}
    return ChunkResult(
        outputs=list(data.get("outputs") or []),
        errors=list(data.get("errors") or []),
        data=response.data,
    )


class BatchChunker:
    """
    Dispatches chunks of records through the request executor.

    Args:
        executor: Request executor
        url: Endpoint receiving each chunk
        body_factory: Builds the request body for a chunk
        result_parser: Turns a chunk's response into a ChunkResult
        method: HTTP method
        encoding: Optional gzip/deflate body compression
    """

    def __init__(
        self,
        executor: RequestExecutor,
        url: str,
        body_factory: Callable[[list[Any], Chunk], Any] = default_body,
        result_parser: Callable[[HttpResponse], ChunkResult] = default_result,
        method: str = "POST",
        encoding: Compression | str | None = None,
    ):
        self.executor = executor
        self.url = url
        self.body_factory = body_factory
        self.result_parser = result_parser
        self.method = method
        self.encoding = encoding

    @property
    def log(self):
        return self.executor.log

    async def run(
        self, records: Sequence[Any] | Iterable[Any], options: BatchOptions | None = None
    ) -> BatchResult:
        """
        Submit every chunk and aggregate the outcomes.

        Chunk failures are recorded on the chunk and never abort sibling
        chunks. Non-SDK exceptions from the body factory, the result parser
        or an interceptor are wrapped in a SparkError.
        """
        options = options or BatchOptions()
        chunks = create_chunks(records, options.chunk_size)

        self.log.debug(
            f"dispatching {len(chunks)} chunks ({options.mode.value})",
            chunk_count=len(chunks),
            chunk_size=options.chunk_size,
        )

        if options.mode is DispatchMode.PARALLEL:
            semaphore = asyncio.Semaphore(options.concurrency)

            async def bounded(chunk: Chunk) -> None:
                async with semaphore:
                    await self._dispatch(chunk, len(chunks))

            await asyncio.gather(*(bounded(chunk) for chunk in chunks))
        else:
            for chunk in chunks:
                await self._dispatch(chunk, len(chunks))

        result = BatchResult(chunks=chunks)
        self.log.log("batch completed", operation="batch", **result.to_dict())
        return result

    async def _dispatch(self, chunk: Chunk, total: int) -> None:
        try:
            response = await self.executor.request(
                self.url,
                method=self.method,
                body=self.body_factory(chunk.records, chunk),
                encoding=self.encoding,
            )
            chunk.result = self.result_parser(response)
            self.log.debug(
                f"chunk {chunk.index + 1}/{total} processed",
                chunk_index=chunk.index,
                chunk_size=chunk.size,
            )
        except Exception as e:
            chunk.result = None
            chunk.error = (
                e
                if isinstance(e, SparkError)
                else SparkError(f"chunk {chunk.index + 1}/{total} could not be processed", cause=e)
            )
            self.log.warn(
                f"failed to process chunk {chunk.index + 1}/{total} ({chunk.size} records)",
                chunk_index=chunk.index,
                chunk_size=chunk.size,
                error=str(e)[:200],
                error_type=type(e).__name__,
            )


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_CONCURRENCY",
    "DispatchMode",
    "BatchOptions",
    "ChunkResult",
    "Chunk",
    "BatchResult",
    "BatchChunker",
    "create_chunks",
    "default_body",
    "default_result",
]
