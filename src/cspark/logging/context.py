"""Context variables for structured logging."""

from contextvars import ContextVar

_request_id: ContextVar[str] = ContextVar("request_id", default="")
_tenant: ContextVar[str] = ContextVar("tenant", default="")
_job_id: ContextVar[str] = ContextVar("job_id", default="")


def set_log_context(
    request_id: str | None = None,
    tenant: str | None = None,
    job_id: str | None = None,
) -> None:
    if request_id is not None:
        _request_id.set(request_id)
    if tenant is not None:
        _tenant.set(tenant)
    if job_id is not None:
        _job_id.set(job_id)


def get_log_context() -> dict[str, str]:
    return {
        "request_id": _request_id.get(),
        "tenant": _tenant.get(),
        "job_id": _job_id.get(),
    }


def clear_log_context() -> None:
    _request_id.set("")
    _tenant.set("")
    _job_id.set("")
