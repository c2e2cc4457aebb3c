"""Synchronous batch execution of a hosted service over large record sets."""

from typing import Any

from cspark.batch.chunker import BatchChunker, BatchOptions, BatchResult, Chunk
from cspark.config.base_url import Uri, UriParams
from cspark.http.models import Compression
from cspark.resources.base import SDK_SOURCE_SYSTEM, ApiResource, require_service

BATCH_API_VERSION = "api/v4"
BATCH_CALL_PURPOSE = "Sync Batch Execution"


class Batch(ApiResource):
    """
    Usage:
        result = await spark.batch.execute(
            "my-folder/my-service",
            inputs=records,
            options=BatchOptions(chunk_size=100, mode="parallel", concurrency=4),
        )
        print(result.total_submitted, result.total_failed)
    """

    def _metadata(
        self,
        params: UriParams,
        call_purpose: str | None,
        source_system: str | None,
        correlation_id: str | None,
    ) -> dict[str, Any]:
        service = params.service_id or Uri.encode(
            UriParams(folder=params.folder, service=params.service, version=params.version),
            long=False,
        )
        meta = {
            "service": service or None,
            "version_id": params.version_id,
            "call_purpose": call_purpose or BATCH_CALL_PURPOSE,
            "source_system": source_system or SDK_SOURCE_SYSTEM,
            "correlation_id": correlation_id,
        }
        return {k: v for k, v in meta.items() if v is not None}

    async def execute(
        self,
        service_uri: UriParams | str,
        inputs: list[Any],
        options: BatchOptions | None = None,
        call_purpose: str | None = None,
        source_system: str | None = None,
        correlation_id: str | None = None,
        encoding: Compression | str | None = None,
    ) -> BatchResult:
        """
        Execute ``inputs`` against a service in chunks on ``api/v4/execute``.

        Raises:
            ValidationError: If the service locator is empty
        """
        params = require_service(service_uri)
        meta = self._metadata(params, call_purpose, source_system, correlation_id)

        def body(records: list[Any], chunk: Chunk) -> dict[str, Any]:
            return {"inputs": records, **meta}

        chunker = BatchChunker(
            self.executor,
            url=self.service_url(UriParams(public=params.public), "execute", BATCH_API_VERSION),
            body_factory=body,
            encoding=encoding,
        )
        return await chunker.run(inputs, options)


__all__ = ["Batch", "BATCH_API_VERSION"]
