"""Shared plumbing for resource modules."""

from typing import TYPE_CHECKING, Any

from cspark.config.base_url import DEFAULT_API_VERSION, Uri, UriParams
from cspark.errors.exceptions import ValidationError
from cspark.http.executor import RequestExecutor
from cspark.http.models import HttpResponse

if TYPE_CHECKING:
    from cspark.config.config import Config

SDK_SOURCE_SYSTEM = "Spark Python SDK"


class ApiResource:
    """
    Resource module composed over a shared request executor.

    Resources never own the executor; the client that built them does.
    """

    def __init__(self, executor: RequestExecutor):
        self.executor = executor

    @property
    def config(self) -> "Config":
        return self.executor.config

    @property
    def log(self):
        return self.executor.log

    def url(self, endpoint: str, version: str = DEFAULT_API_VERSION, public: bool = False) -> str:
        return self.config.base_url.concat(endpoint, version=version, public=public)

    def service_url(
        self,
        uri: UriParams | str,
        endpoint: str = "",
        version: str = DEFAULT_API_VERSION,
    ) -> str:
        return self.config.base_url.add(uri, endpoint=endpoint, version=version)

    async def request(self, url: str, **kwargs: Any) -> HttpResponse:
        return await self.executor.request(url, **kwargs)


def require_service(uri: UriParams | str) -> UriParams:
    """
    Decode a service locator and insist it identifies a service.

    Raises:
        ValidationError: If nothing usable was decoded
    """
    params = Uri.to_params(uri)
    if params.is_empty:
        raise ValidationError(
            "service URI locator is required (folder/service[version], "
            "service/{id} or version/{id})",
            context={"uri": str(uri)},
        )
    return params


__all__ = ["ApiResource", "SDK_SOURCE_SYSTEM", "require_service"]
