"""Request, response and downloadable models for the request executor."""

import io
from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Any

from cspark.errors.exceptions import ValidationError
from cspark.types import HttpMethod


class ContentType(str, Enum):
    """Request body encodings the executor knows how to serialize."""

    JSON = "application/json"
    JSON_PATCH = "application/json-patch+json"
    FORM = "application/x-www-form-urlencoded"
    OCTET_STREAM = "application/octet-stream"
    MULTIPART = "multipart/form-data"


class Compression(str, Enum):
    GZIP = "gzip"
    DEFLATE = "deflate"


@dataclass
class Multipart:
    """
    One part of a multipart/form-data body.

    ``content`` is a plain value for form fields, or bytes / a binary stream
    for file uploads (set ``file_name`` then).
    """

    name: str
    content: bytes | str | IO[bytes] | dict | list
    file_name: str | None = None
    content_type: str | None = None

    @property
    def is_file(self) -> bool:
        return self.file_name is not None or not isinstance(self.content, (str, dict, list))


@dataclass
class HttpRequest:
    """
    Outgoing request as seen by interceptors.

    ``before_request`` hooks may mutate it or return a replacement.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] | None = None
    body: Any = None
    multiparts: list[Multipart] | None = None
    file: bytes | IO[bytes] | None = None
    content_type: ContentType | str = ContentType.JSON
    encoding: Compression | str | None = None
    authenticated: bool = True
    timeout_seconds: float | None = None

    def __post_init__(self):
        try:
            self.method = HttpMethod(str(self.method).upper()).value
        except ValueError as e:
            raise ValidationError(f"unsupported HTTP method <{self.method}>") from e

    @property
    def request_id(self) -> str:
        return self.headers.get("x-request-id", "")


@dataclass
class HttpResponse:
    """
    Decoded response of one logical call.

    ``data`` holds the decoded JSON (or text) body; ``content`` the raw bytes.
    ``retries`` is how many retries it took to obtain this response.
    """

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    data: Any = None
    content: bytes = b""
    request_id: str = ""
    url: str = ""
    retries: int = 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def stream(self) -> io.BytesIO:
        """Fresh binary stream over the raw body. The caller owns and closes it."""
        return io.BytesIO(self.content)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default


@dataclass
class Downloadable:
    """
    A downloaded artifact. Ownership passes to the caller on return.
    """

    content: bytes
    file_name: str = ""
    content_type: str = "application/octet-stream"
    url: str = ""

    @property
    def size(self) -> int:
        return len(self.content)

    def stream(self) -> io.BytesIO:
        return io.BytesIO(self.content)

    @classmethod
    def from_response(cls, response: HttpResponse, file_name: str = "") -> "Downloadable":
        return cls(
            content=response.content,
            file_name=file_name or file_name_from(response),
            content_type=response.header("content-type", "application/octet-stream")
            or "application/octet-stream",
            url=response.url,
        )


def file_name_from(response: HttpResponse) -> str:
    """Best-effort file name from Content-Disposition or the URL path."""
    disposition = response.header("content-disposition") or ""
    for part in disposition.split(";"):
        key, _, value = part.strip().partition("=")
        if key.lower() == "filename" and value:
            return value.strip('"')
    path = response.url.split("?", 1)[0].rstrip("/")
    return path.rsplit("/", 1)[-1] if path else ""


__all__ = [
    "ContentType",
    "Compression",
    "Multipart",
    "HttpRequest",
    "HttpResponse",
    "Downloadable",
    "file_name_from",
]
