"""
Base URL and endpoint URI resolution.

A BaseUrl is the platform origin plus the tenant namespace, e.g.
``https://excel.uat.us.coherent.global/my-tenant``. Endpoint URIs are built
from it without mutating it.
"""

import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode, urlsplit

from cspark.errors.exceptions import ConfigurationError, ValidationError

DEFAULT_API_VERSION = "api/v3"

PLATFORM_HOST_TEMPLATE = "https://excel.{env}.coherent.global"

PLATFORM_SERVICES = ("excel", "keycloak", "utility", "entitystore")

# folder/service[version]
_LOCATOR_PATTERN = re.compile(r"^([^/]+)/([^\[]+)(?:\[(.*?)\])?$")


def sanitize_path(path: str) -> str:
    """Collapse duplicate slashes and strip leading/trailing ones."""
    return re.sub(r"/{2,}", "/", path or "").strip("/")


class BaseUrl:
    """
    Platform origin plus tenant.

    Build it with ``BaseUrl.from_options`` from (a) a full URL whose first
    path segment is the tenant, (b) a bare origin plus explicit tenant, or
    (c) an environment name plus tenant.
    """

    __slots__ = ("_origin", "_tenant")

    def __init__(self, origin: str, tenant: str):
        self._origin = origin.rstrip("/")
        self._tenant = tenant

    @classmethod
    def from_options(
        cls,
        url: str | None = None,
        tenant: str | None = None,
        env: str | None = None,
    ) -> "BaseUrl":
        """
        Resolve a BaseUrl from partial inputs.

        Raises:
            ValidationError: If ``url`` is not an absolute http(s) URL
            ConfigurationError: If no tenant can be determined
        """
        if url:
            parts = urlsplit(url.strip())
            if parts.scheme not in ("http", "https") or not parts.netloc:
                raise ValidationError(
                    f"<{url}> must be a valid absolute URL", context={"url": url}
                )
            segments = [s for s in parts.path.split("/") if s]
            resolved = segments[0] if segments else (tenant or "").strip()
            if not resolved:
                raise ConfigurationError("tenant name is required", context={"url": url})
            return cls(f"{parts.scheme}://{parts.netloc}", resolved)

        if env and tenant:
            env = env.strip().lower()
            tenant = tenant.strip().lower()
            if env and tenant:
                return cls(PLATFORM_HOST_TEMPLATE.format(env=env), tenant)

        if not tenant:
            raise ConfigurationError(
                "tenant name is required",
                context={"url": url, "tenant": tenant, "env": env},
            )
        raise ConfigurationError(
            "base URL or environment is required to build the base URL",
            context={"tenant": tenant, "env": env},
        )

    @property
    def value(self) -> str:
        """Scheme, host and port only."""
        return self._origin

    @property
    def tenant(self) -> str:
        return self._tenant

    @property
    def full(self) -> str:
        return f"{self._origin}/{self._tenant}"

    def to(self, service: str, with_tenant: bool = False) -> str:
        """
        Base URL of a sibling platform service (keycloak, utility, entitystore).

        Only the first ``excel`` label is swapped.
        """
        if service not in PLATFORM_SERVICES:
            raise ValidationError(
                f"unknown platform service <{service}>", context={"service": service}
            )
        base = self.full if with_tenant else self._origin
        return base.replace("excel", service, 1)

    @property
    def oauth2(self) -> str:
        """Keycloak realm of the tenant."""
        return f"{self.to('keycloak')}/auth/realms/{self._tenant}"

    @property
    def token_url(self) -> str:
        """Client-credentials token endpoint of the tenant's realm."""
        return f"{self.oauth2}/protocol/openid-connect/token"

    def concat(
        self,
        endpoint: str = "",
        version: str | None = DEFAULT_API_VERSION,
        public: bool = False,
    ) -> str:
        """
        Build a tenant-scoped endpoint URI, e.g. ``{full}/api/v3/public/{endpoint}``.

        ``version`` of None or "" omits the version segment.
        """
        segments = [self.full]
        if version:
            segments.append(sanitize_path(version))
        if public:
            segments.append("public")
        endpoint = sanitize_path(endpoint)
        if endpoint:
            segments.append(endpoint)
        return "/".join(segments)

    def add(
        self,
        params: "UriParams | str | None" = None,
        endpoint: str = "",
        version: str = DEFAULT_API_VERSION,
    ) -> str:
        """Build a service-scoped endpoint URI from locator params."""
        return Uri.build(params, base=self.full, version=version, endpoint=endpoint)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, BaseUrl) and other.full == self.full

    def __hash__(self) -> int:
        return hash(self.full)

    def __str__(self) -> str:
        return self.full

    def __repr__(self) -> str:
        return f"BaseUrl({self.full!r})"


@dataclass(frozen=True)
class UriParams:
    """
    Locator of a hosted service.

    Priority when building a URI: folder+service > service_id > version_id > proxy.
    """

    folder: str | None = None
    service: str | None = None
    service_id: str | None = None
    version: str | None = None
    version_id: str | None = None
    proxy: str | None = None
    public: bool = False

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.folder, self.service, self.service_id, self.version_id, self.proxy)
        )


class Uri:
    """Helpers for building and (de)coding service URIs."""

    @staticmethod
    def decode(locator: str) -> UriParams:
        """
        Decode a service locator.

        Understands ``folder/service[version]`` (optionally in the long
        ``folders/f/services/s`` form), ``service/{id}`` and
        ``version/{id}``. Anything else decodes to empty params.
        """
        locator = sanitize_path(locator).replace("folders/", "", 1).replace("services/", "", 1)
        match = _LOCATOR_PATTERN.match(locator)
        if not match:
            return UriParams()

        folder, service, version = match.groups()
        if folder == "version":
            return UriParams(version_id=service)
        if folder == "service":
            return UriParams(service_id=service)
        return UriParams(folder=folder, service=service, version=version or None)

    @staticmethod
    def encode(params: UriParams, long: bool = True) -> str:
        """Encode params back into a service locator."""
        if params.version_id:
            return f"version/{params.version_id}"
        if params.service_id:
            return f"service/{params.service_id}"
        if params.folder and params.service:
            prefix = f"folders/{params.folder}/services" if long else params.folder
            suffix = f"[{params.version}]" if params.version else ""
            return f"{prefix}/{params.service}{suffix}"
        return ""

    @staticmethod
    def to_params(uri: "UriParams | str | None") -> UriParams:
        if uri is None:
            return UriParams()
        if isinstance(uri, UriParams):
            return uri
        return Uri.decode(uri)

    @staticmethod
    def build(
        uri: "UriParams | str | None",
        base: str,
        version: str = DEFAULT_API_VERSION,
        endpoint: str = "",
    ) -> str:
        """
        Build an endpoint URI from locator params.

        Raises:
            ValidationError: If the result is not an absolute URL
        """
        params = Uri.to_params(uri)
        path = sanitize_path(version)
        if params.public:
            path += "/public"
        if params.folder and params.service:
            path += f"/folders/{quote(params.folder)}/services/{quote(params.service)}"
        elif params.service_id:
            path += f"/service/{params.service_id}"
        elif params.version_id:
            path += f"/version/{params.version_id}"
        elif params.proxy:
            path += f"/proxy/{sanitize_path(params.proxy)}"

        endpoint = sanitize_path(endpoint)
        if endpoint and not params.proxy:
            path += f"/{endpoint}"

        url = f"{base.rstrip('/')}/{sanitize_path(path)}"
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValidationError("invalid URI params", context={"uri": str(uri), "base": base})
        return url

    @staticmethod
    def with_query(url: str, params: dict[str, Any] | None = None) -> str:
        """Append query parameters, dropping those whose value is None."""
        query = {
            k: (str(v).lower() if isinstance(v, bool) else v)
            for k, v in (params or {}).items()
            if v is not None
        }
        if not query:
            return url
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}{urlencode(query, doseq=True)}"


__all__ = [
    "DEFAULT_API_VERSION",
    "PLATFORM_SERVICES",
    "sanitize_path",
    "BaseUrl",
    "UriParams",
    "Uri",
]
