"""
Import / export / migration of hosted services.

Each operation is a long-running job: submit, poll ``.../{id}/status`` until
closed or completed, then fetch the artifacts listed in ``outputs.files``.
"""

import json
from typing import TYPE_CHECKING, Any, IO

from cspark.errors.exceptions import SparkError, ValidationError
from cspark.http.models import Downloadable, Multipart
from cspark.jobs.models import JobResult, OperationSpec
from cspark.jobs.poller import JobPoller
from cspark.resources.base import SDK_SOURCE_SYSTEM, ApiResource

if TYPE_CHECKING:
    from cspark.http.executor import RequestExecutor

IMPEX_API_VERSION = "api/v4"

FILE_FILTERS = ("migrate", "onpremises")
VERSION_FILTERS = ("latest", "all")
IF_PRESENT_OPTIONS = ("abort", "replace", "add_version")


class ImpEx(ApiResource):
    """
    Usage:
        async with SparkClient(config) as spark:
            exported = await spark.impex.export(services=["my-folder/my-service"])
            imported = await spark.impex.import_(
                destination={"my-folder/my-service": "new-folder/my-service"},
                file=exported.downloads[0],
            )
    """

    def __init__(self, executor: "RequestExecutor", poller: JobPoller | None = None):
        super().__init__(executor)
        self.poller = poller or JobPoller(executor)

    # =========================================================================
    # Export
    # =========================================================================

    def export_spec(
        self,
        folders: list[str] | None = None,
        services: list[str] | None = None,
        version_ids: list[str] | None = None,
        file_filter: str = "migrate",
        version_filter: str = "all",
        source_system: str | None = None,
        correlation_id: str | None = None,
    ) -> OperationSpec:
        """
        Raises:
            ValidationError: If no folder, service or version id is given,
                or a filter is unknown
        """
        inputs: dict[str, list[str]] = {}
        if folders:
            inputs["folders"] = list(folders)
        if services:
            inputs["services"] = list(services)
        if version_ids:
            inputs["version_ids"] = list(version_ids)
        if not inputs:
            raise ValidationError(
                "at least one of folders, services, or version_ids must be provided"
            )
        if file_filter not in FILE_FILTERS:
            raise ValidationError(f"file_filter must be one of {FILE_FILTERS}, got {file_filter!r}")
        if version_filter not in VERSION_FILTERS:
            raise ValidationError(
                f"version_filter must be one of {VERSION_FILTERS}, got {version_filter!r}"
            )

        body = {
            "inputs": inputs,
            "file_filter": file_filter,
            "version_filter": version_filter,
            "source_system": source_system or SDK_SOURCE_SYSTEM,
            "correlation_id": correlation_id,
        }
        return OperationSpec(
            name="export",
            url=self.url("export", version=IMPEX_API_VERSION),
            body={k: v for k, v in body.items() if v is not None},
            status_url=self.url("export/{id}/status", version=IMPEX_API_VERSION),
        )

    async def export(self, **params: Any) -> JobResult:
        """
        Export services and download the resulting archive(s).

        Accepts the keyword arguments of ``export_spec`` plus
        ``max_wait_seconds`` and ``poll_interval_seconds``.
        """
        wait = _pop_wait(params)
        result = await self.poller.run(self.export_spec(**params), **wait)
        self.log.log(
            f"exported {len(result.downloads)} file(s)",
            operation="export",
            resource="impex",
        )
        return result

    # =========================================================================
    # Import
    # =========================================================================

    def import_spec(
        self,
        destination: dict[str, str] | list[dict[str, str]],
        file: Downloadable | bytes | IO[bytes],
        if_present: str = "add_version",
        file_name: str = "package.zip",
        source_system: str | None = None,
        correlation_id: str | None = None,
    ) -> OperationSpec:
        """
        Args:
            destination: ``{source_uri: target_uri}`` or a list of
                ``{"source": ..., "target": ...}`` entries
            file: Archive produced by an export
            if_present: What to do when the target service exists

        Raises:
            ValidationError: If no destination is given or if_present is unknown
        """
        services = _import_services(destination)
        if if_present not in IF_PRESENT_OPTIONS:
            raise ValidationError(
                f"if_present must be one of {IF_PRESENT_OPTIONS}, got {if_present!r}"
            )

        content = file.content if isinstance(file, Downloadable) else file
        name = file.file_name if isinstance(file, Downloadable) and file.file_name else file_name
        entity = {
            "inputs": {"services_modify": services},
            "services_existing": if_present,
            "source_system": source_system or SDK_SOURCE_SYSTEM,
            "correlation_id": correlation_id,
        }
        return OperationSpec(
            name="import",
            url=self.url("import", version=IMPEX_API_VERSION),
            multiparts=[
                Multipart(
                    name="importRequestEntity",
                    content=json.dumps({k: v for k, v in entity.items() if v is not None}),
                ),
                Multipart(
                    name="file",
                    content=content,
                    file_name=name,
                    content_type="application/zip",
                ),
            ],
            status_url=self.url("import/{id}/status", version=IMPEX_API_VERSION),
        )

    async def import_(self, **params: Any) -> JobResult:
        """Import an exported archive and wait for the job to finish."""
        wait = _pop_wait(params)
        result = await self.poller.run(self.import_spec(**params), **wait)
        self.log.log("import completed", operation="import", resource="impex")
        return result

    # =========================================================================
    # Migrate
    # =========================================================================

    async def migrate(self, to: "ImpEx", **params: Any) -> tuple[JobResult, JobResult]:
        """
        Export from this tenant and import into the tenant behind ``to``.

        ``params`` combine export options (folders, services, version_ids,
        filters) with import options (destination, if_present). Without an
        explicit destination, services keep their URIs.

        Returns:
            (export result, import result)
        """
        wait = _pop_wait(params)
        import_keys = ("destination", "if_present")
        import_params = {k: params.pop(k) for k in import_keys if k in params}

        exported = await self.export(**params, **wait)
        if not exported.downloads:
            raise SparkError(
                "export produced no file to import", context={"job_id": exported.job.id}
            )

        destination = import_params.pop("destination", None) or {
            s: s for s in params.get("services") or []
        }
        imported = await to.import_(
            destination=destination,
            file=exported.downloads[0],
            source_system=params.get("source_system"),
            correlation_id=params.get("correlation_id"),
            **import_params,
            **wait,
        )
        return exported, imported


def _pop_wait(params: dict[str, Any]) -> dict[str, Any]:
    return {k: params.pop(k) for k in ("max_wait_seconds", "poll_interval_seconds") if k in params}


def _import_services(destination: dict[str, str] | list[dict[str, str]]) -> list[dict[str, str]]:
    if isinstance(destination, dict):
        services = [
            {"service_uri_source": s, "service_uri_destination": t}
            for s, t in destination.items()
        ]
    else:
        services = [
            {
                "service_uri_source": d.get("source", ""),
                "service_uri_destination": d.get("target") or d.get("source", ""),
            }
            for d in destination or []
        ]
    if not services or not all(s["service_uri_source"] for s in services):
        raise ValidationError("at least one source service URI is required for import")
    return services


__all__ = ["ImpEx", "IMPEX_API_VERSION"]
