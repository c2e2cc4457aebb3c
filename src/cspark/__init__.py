"""
cspark - async client core for the Coherent Spark platform.

Provides configuration and authentication resolution, URI construction, a
retrying HTTP executor with interceptors, job polling for long-running
operations and chunked batch submission.
"""

from cspark.auth import (
    ApiKeyAuth,
    AuthStrategy,
    BearerAuth,
    OAuthClientCredentials,
    OpenAuth,
    resolve_auth,
)
from cspark.batch import BatchOptions, BatchResult, DispatchMode
from cspark.client import SparkClient
from cspark.config import BaseUrl, Config, Uri, UriParams, load_config
from cspark.errors import (
    AuthenticationError,
    ConfigurationError,
    HttpStatusError,
    JobFailedError,
    NetworkError,
    SparkError,
    TimeoutError,
    ValidationError,
)
from cspark.http import (
    ContentType,
    Downloadable,
    HttpRequest,
    HttpResponse,
    InterceptorRegistry,
    Multipart,
    RequestExecutor,
)
from cspark.jobs import Job, JobPoller, JobResult, JobStatus, OperationSpec
from cspark.logging import StdLogger, setup_logging
from cspark.version import __version__

__all__ = [
    "__version__",
    "SparkClient",
    # config
    "BaseUrl",
    "Config",
    "Uri",
    "UriParams",
    "load_config",
    # auth
    "ApiKeyAuth",
    "AuthStrategy",
    "BearerAuth",
    "OAuthClientCredentials",
    "OpenAuth",
    "resolve_auth",
    # errors
    "AuthenticationError",
    "ConfigurationError",
    "HttpStatusError",
    "JobFailedError",
    "NetworkError",
    "SparkError",
    "TimeoutError",
    "ValidationError",
    # http
    "ContentType",
    "Downloadable",
    "HttpRequest",
    "HttpResponse",
    "InterceptorRegistry",
    "Multipart",
    "RequestExecutor",
    # jobs
    "Job",
    "JobPoller",
    "JobResult",
    "JobStatus",
    "OperationSpec",
    # batch
    "BatchOptions",
    "BatchResult",
    "DispatchMode",
    # logging
    "StdLogger",
    "setup_logging",
]
