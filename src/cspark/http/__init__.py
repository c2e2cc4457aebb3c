"""HTTP layer: request/response models, interceptors, body encoding, executor."""

from cspark.http.encoding import PreparedBody, compress, prepare_body, read_content
from cspark.http.executor import RequestExecutor
from cspark.http.interceptors import Interceptor, InterceptorRegistry
from cspark.http.models import (
    Compression,
    ContentType,
    Downloadable,
    HttpRequest,
    HttpResponse,
    Multipart,
)

__all__ = [
    "Compression",
    "ContentType",
    "Downloadable",
    "HttpRequest",
    "HttpResponse",
    "Interceptor",
    "InterceptorRegistry",
    "Multipart",
    "PreparedBody",
    "RequestExecutor",
    "compress",
    "prepare_body",
    "read_content",
]
