"""
Request executor.

Single point where outgoing platform calls are built and sent:

    1. default + extra + caller headers, auth header from the Config's strategy
    2. before_request interceptors (registration order)
    3. body serialization (JSON, form, octet-stream, multipart; gzip/deflate)
    4. send with per-attempt timeout; retry 429/5xx/transport failures
    5. after_response interceptors (registration order, once, final outcome)
    6. decode the body or raise a typed SparkError
"""

import asyncio
import json
import uuid
from typing import TYPE_CHECKING, IO, Any

import aiohttp

from cspark.config.base_url import Uri
from cspark.errors.exceptions import NetworkError, SparkError
from cspark.errors.exceptions import TimeoutError as SparkTimeoutError
from cspark.errors.status import HttpStatusError
from cspark.http.encoding import PreparedBody, prepare_body
from cspark.http.models import (
    Compression,
    ContentType,
    Downloadable,
    HttpRequest,
    HttpResponse,
    Multipart,
)
from cspark.logging.adapter import SparkLogger
from cspark.logging.context import set_log_context
from cspark.resilience.retry import log_retry_attempt
from cspark.version import SDK_UA_HEADER, USER_AGENT

if TYPE_CHECKING:
    from cspark.config.config import Config

REQUEST_ID_HEADER = "x-request-id"
TENANT_HEADER = "x-tenant-name"
SDK_HEADER = "x-spark-ua"


def _decode_json(content: bytes) -> Any:
    if not content:
        return None
    return json.loads(content.decode("utf-8"))


def _is_json(content_type: str) -> bool:
    return "json" in content_type.lower()


class RequestExecutor:
    """
    Sends requests for one Config.

    The aiohttp session is created lazily and owned by the executor unless one
    is injected. Safe to share across concurrent tasks.

    Usage:
        async with RequestExecutor(config) as executor:
            response = await executor.request(url, method="POST", body={...})
    """

    def __init__(self, config: "Config", session: aiohttp.ClientSession | None = None):
        self.config = config
        self._session = session
        self._owns_session = session is None

    @property
    def log(self) -> SparkLogger:
        return self.config.logger

    async def __aenter__(self) -> "RequestExecutor":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None

    # =========================================================================
    # Public API
    # =========================================================================

    def default_headers(self, request_id: str | None = None) -> dict[str, str]:
        headers = {
            "User-Agent": USER_AGENT,
            SDK_HEADER: SDK_UA_HEADER,
            REQUEST_ID_HEADER: request_id or str(uuid.uuid4()),
            TENANT_HEADER: self.config.base_url.tenant,
        }
        headers.update(self.config.extra_headers)
        return headers

    async def request(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        body: Any = None,
        multiparts: list[Multipart] | None = None,
        file: bytes | IO[bytes] | None = None,
        content_type: ContentType | str = ContentType.JSON,
        encoding: Compression | str | None = None,
        authenticated: bool = True,
        timeout_seconds: float | None = None,
        raw: bool = False,
    ) -> HttpResponse:
        """
        Perform one logical call, retrying transient failures.

        Args:
            url: Absolute endpoint URI
            method: GET, POST, PUT, PATCH or DELETE
            headers: Caller headers; override the defaults
            params: Query parameters; None values are dropped
            body: JSON-serializable body (or a mapping for form-urlencoded)
            multiparts: Multipart parts; switches the body to multipart/form-data
            file: Body for application/octet-stream
            content_type: Body encoding when not multipart
            encoding: Optional gzip/deflate compression of the serialized body
            authenticated: Attach the auth header
            timeout_seconds: Per-attempt timeout; defaults to the Config's
            raw: Do not decode the body (binary downloads)

        Returns:
            HttpResponse with decoded ``data`` and raw ``content``

        Raises:
            HttpStatusError: On a 4xx/5xx once retries are exhausted or not allowed
            NetworkError: On transport failure once retries are exhausted
            TimeoutError: When one attempt exceeds its timeout
            AuthenticationError: If the OAuth token exchange fails
            ValidationError: On an unencodable body
        """
        caller_headers = dict(headers or {})
        request_id = next(
            (v for k, v in caller_headers.items() if k.lower() == REQUEST_ID_HEADER), None
        )
        merged = self.default_headers(request_id)
        merged.update({k: v for k, v in caller_headers.items() if k.lower() != REQUEST_ID_HEADER})

        request = HttpRequest(
            method=method,
            url=url,
            headers=merged,
            params=params,
            body=body,
            multiparts=multiparts,
            file=file,
            content_type=content_type,
            encoding=encoding,
            authenticated=authenticated,
            timeout_seconds=timeout_seconds,
        )
        set_log_context(request_id=request.request_id, tenant=self.config.base_url.tenant)

        outcome: HttpResponse | BaseException
        try:
            if authenticated:
                await self._attach_auth(request)
        except SparkError as auth_error:
            outcome = auth_error
        else:
            request = await self.config.interceptors.run_before(request)
            prepared = prepare_body(request)
            outcome = await self._send_with_retry(request, prepared, raw)
        outcome = await self.config.interceptors.run_after(outcome, request)

        if isinstance(outcome, BaseException):
            fields: dict[str, Any] = {
                "http_method": request.method,
                "http_url": request.url,
                "request_id": request.request_id,
                "error": str(outcome)[:200],
                "error_type": type(outcome).__name__,
            }
            if isinstance(outcome, SparkError):
                fields["retries"] = outcome.retries
            if isinstance(outcome, HttpStatusError):
                fields["http_status"] = outcome.status
            self.log.error(f"request failed <{request.url}>", **fields)
            raise outcome
        return outcome

    async def download(
        self,
        url: str,
        authenticated: bool = False,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        file_name: str = "",
    ) -> Downloadable:
        """
        Fetch a binary artifact.

        Pre-signed URLs issued by the platform need no credentials, hence
        ``authenticated`` defaults to False.
        """
        response = await self.request(
            url,
            method="GET",
            headers=headers,
            params=params,
            authenticated=authenticated,
            raw=True,
        )
        self.log.debug(
            "downloaded resource",
            http_url=url,
            bytes_downloaded=len(response.content),
            request_id=response.request_id,
        )
        return Downloadable.from_response(response, file_name=file_name)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _attach_auth(self, request: HttpRequest) -> None:
        header = await self.config.auth.resolve_header(self.config)
        if header is not None:
            request.headers[header.name] = header.value

    async def _refresh_auth(self, request: HttpRequest) -> bool:
        """Renew credentials after a 401; True if the request should be re-sent."""
        stale = request.headers.get("Authorization", "")
        stale = stale[7:] if stale.startswith("Bearer ") else stale
        if not await self.config.auth.refresh(self.config, stale=stale or None):
            return False
        await self._attach_auth(request)
        return True

    async def _send_with_retry(
        self, request: HttpRequest, prepared: PreparedBody, raw: bool
    ) -> HttpResponse | SparkError:
        policy = self.config.retry_policy
        operation = f"{request.method} {request.url}"
        attempt = 0
        auth_refreshed = False

        while True:
            try:
                response = await self._send(request, prepared, raw, attempt)
                response.retries = attempt
                return response
            except SparkError as error:
                unauthorized = isinstance(error, HttpStatusError) and error.status == 401
                if unauthorized and request.authenticated and not auth_refreshed:
                    auth_refreshed = True
                    try:
                        refreshed = await self._refresh_auth(request)
                    except SparkError as auth_error:
                        auth_error.retries = attempt
                        return auth_error
                    if refreshed:
                        self.log.warn(
                            "access unauthorized, re-sending with refreshed credentials",
                            http_url=request.url,
                            request_id=request.request_id,
                        )
                        continue

                if not policy.should_retry(error, attempt):
                    error.retries = attempt
                    return error

                delay = policy.get_delay(attempt, error)
                log_retry_attempt(self.log, operation, attempt, policy, delay, error)
                await asyncio.sleep(delay)
                attempt += 1

    async def _send(
        self, request: HttpRequest, prepared: PreparedBody, raw: bool, attempt: int
    ) -> HttpResponse:
        session = await self._ensure_session()
        url = Uri.with_query(request.url, request.params)
        headers = {**request.headers, **prepared.headers}
        timeout = request.timeout_seconds or self.config.timeout_seconds

        self.log.debug(
            f"sending request <{request.method} {url}>",
            http_method=request.method,
            http_url=url,
            request_id=request.request_id,
            attempt=attempt + 1,
        )

        try:
            async with session.request(
                request.method,
                url,
                headers=headers,
                data=prepared.build(),
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                status = response.status
                response_headers = dict(response.headers)
                content = await response.read()
        except asyncio.TimeoutError as e:
            raise SparkTimeoutError(
                f"request timed out after {timeout}s <{url}>",
                timeout_seconds=timeout,
                cause=e,
                context={"request_id": request.request_id},
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkError(
                f"failed to fetch <{url}>",
                cause=e,
                context={"request_id": request.request_id},
            ) from e

        content_type = next(
            (v for k, v in response_headers.items() if k.lower() == "content-type"), ""
        )

        if status >= 400:
            payload = None
            if _is_json(content_type):
                try:
                    payload = _decode_json(content)
                except ValueError:
                    payload = None
            raise HttpStatusError.from_status(
                status,
                f"failed to fetch <{url}>",
                payload=payload,
                raw=content.decode("utf-8", errors="replace"),
                headers=response_headers,
                request_id=request.request_id,
            )

        data: Any = None
        if not raw and content:
            if _is_json(content_type):
                try:
                    data = _decode_json(content)
                except ValueError as e:
                    raise SparkError(
                        f"invalid JSON in response <{url}>",
                        cause=e,
                        context={"request_id": request.request_id, "status": status},
                    ) from e
            elif content_type.startswith("text/"):
                data = content.decode("utf-8", errors="replace")

        return HttpResponse(
            status=status,
            headers=response_headers,
            data=data,
            content=content,
            request_id=request.request_id,
            url=url,
        )


__all__ = ["RequestExecutor", "REQUEST_ID_HEADER", "TENANT_HEADER", "SDK_HEADER"]
