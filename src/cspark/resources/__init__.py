"""Resource modules layered over the request executor."""

from cspark.resources.base import ApiResource
from cspark.resources.batch import Batch
from cspark.resources.batches import (
    Batches,
    DuplicateChunkPolicy,
    Pipeline,
    PipelineChunk,
    PipelineOptions,
    PipelineState,
)
from cspark.resources.impex import ImpEx

__all__ = [
    "ApiResource",
    "Batch",
    "Batches",
    "DuplicateChunkPolicy",
    "ImpEx",
    "Pipeline",
    "PipelineChunk",
    "PipelineOptions",
    "PipelineState",
]
