"""
Request body serialization and compression.

Bodies are prepared once per logical call and rebuilt for every attempt, so a
retry never re-reads a consumed stream.
"""

import gzip
import json
import zlib
from dataclasses import dataclass, field
from typing import IO, Any
from urllib.parse import urlencode

import aiohttp

from cspark.errors.exceptions import ValidationError
from cspark.http.models import Compression, ContentType, HttpRequest, Multipart

DEFAULT_FILE_NAME = "file"


def read_content(content: bytes | bytearray | str | IO[bytes]) -> bytes:
    """Read bytes, text or a binary stream fully into bytes."""
    if isinstance(content, (bytes, bytearray)):
        return bytes(content)
    if isinstance(content, str):
        return content.encode("utf-8")
    read = getattr(content, "read", None)
    if not callable(read):
        raise ValidationError(
            "file content must be bytes, str or a readable binary stream",
            context={"content_type": type(content).__name__},
        )
    data = read()
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def compress(data: bytes, encoding: Compression | str) -> bytes:
    """Compress ``data`` with gzip or deflate (zlib stream)."""
    encoding = Compression(str(getattr(encoding, "value", encoding)).lower())
    if encoding is Compression.GZIP:
        return gzip.compress(data)
    return zlib.compress(data)


def _serialize(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


@dataclass
class _FormPart:
    name: str
    value: bytes | str
    file_name: str | None = None
    content_type: str | None = None


@dataclass
class PreparedBody:
    """
    Serialized body ready to be sent, possibly more than once.

    Attributes:
        content: Raw bytes for non-multipart bodies (None when there is no body)
        parts: Multipart parts, each already read into memory
        headers: Content-Type / Content-Encoding headers implied by the body
    """

    content: bytes | None = None
    parts: list[_FormPart] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_multipart(self) -> bool:
        return bool(self.parts)

    def build(self) -> bytes | aiohttp.FormData | None:
        """Fresh payload for one attempt."""
        if not self.parts:
            return self.content
        form = aiohttp.FormData()
        for part in self.parts:
            if part.file_name is None:
                form.add_field(part.name, part.value)
            else:
                form.add_field(
                    part.name,
                    part.value,
                    filename=part.file_name,
                    content_type=part.content_type or ContentType.OCTET_STREAM.value,
                )
        return form


def _prepare_parts(multiparts: list[Multipart]) -> list[_FormPart]:
    parts = []
    for item in multiparts:
        if item.content is None:
            raise ValidationError(
                "multipart item must have either a serializable body or file content",
                context={"name": item.name},
            )
        if item.is_file:
            parts.append(
                _FormPart(
                    name=item.name,
                    value=read_content(item.content),  # type: ignore[arg-type]
                    file_name=item.file_name or DEFAULT_FILE_NAME,
                    content_type=item.content_type,
                )
            )
        else:
            parts.append(_FormPart(name=item.name, value=_serialize(item.content)))
    return parts


def prepare_body(request: HttpRequest) -> PreparedBody:
    """
    Serialize the request body according to its content type.

    GET requests, and JSON requests without a body, send no payload. Multipart takes precedence over
    ``content_type`` when ``multiparts`` is set.

    Raises:
        ValidationError: On an unsupported content type, an octet-stream
            request without a file, or compression of a multipart body
    """
    if request.method == "GET":
        return PreparedBody()

    if request.multiparts:
        if request.encoding:
            raise ValidationError("compression is not supported for multipart bodies")
        # aiohttp sets the multipart Content-Type with its boundary
        return PreparedBody(parts=_prepare_parts(request.multiparts))

    try:
        raw_type = getattr(request.content_type, "value", request.content_type)
        content_type = ContentType(str(raw_type))
    except ValueError as e:
        raise ValidationError(
            f"unsupported content type <{request.content_type}>",
            context={"content_type": str(request.content_type)},
        ) from e

    if content_type in (ContentType.JSON, ContentType.JSON_PATCH):
        if request.body is None:
            return PreparedBody()
        content = json.dumps(request.body, default=str).encode("utf-8")
    elif content_type is ContentType.FORM:
        body = request.body or {}
        if not isinstance(body, dict):
            raise ValidationError("form-urlencoded body must be a mapping")
        content = urlencode({k: v for k, v in body.items() if v is not None}).encode("utf-8")
    elif content_type is ContentType.OCTET_STREAM:
        if request.file is None:
            raise ValidationError("file content is required for application/octet-stream")
        content = read_content(request.file)
    else:
        raise ValidationError("multipart/form-data requires multiparts")

    headers = {"Content-Type": content_type.value}
    if request.encoding:
        encoding = str(getattr(request.encoding, "value", request.encoding)).lower()
        try:
            content = compress(content, encoding)
        except ValueError as e:
            raise ValidationError(f"unsupported compression <{request.encoding}>") from e
        headers["Content-Encoding"] = encoding

    return PreparedBody(content=content, headers=headers)


__all__ = ["PreparedBody", "prepare_body", "compress", "read_content"]
