"""Chunked batch submission."""

from cspark.batch.chunker import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONCURRENCY,
    BatchChunker,
    BatchOptions,
    BatchResult,
    Chunk,
    ChunkResult,
    DispatchMode,
    create_chunks,
    default_body,
    default_result,
)

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_CONCURRENCY",
    "BatchChunker",
    "BatchOptions",
    "BatchResult",
    "Chunk",
    "ChunkResult",
    "DispatchMode",
    "create_chunks",
    "default_body",
    "default_result",
]
