"""
Interceptor pipeline.

An interceptor is any object exposing ``before_request(request)`` and/or
``after_response(outcome, request)``. Hooks may be plain or async.

Ordering: hooks run in registration order on the way in AND on the way out.
``after_response`` runs exactly once per logical call, on the final outcome
(the decoded response, or the error that is about to be raised). Retries in
between are not visible to it.

Return values: ``None`` leaves the value unchanged. ``before_request`` may
return a replacement HttpRequest; ``after_response`` may return a replacement
HttpResponse or exception. Returning a response in place of an error is the
explicit way to suppress the error.
"""

import inspect
import logging
from collections.abc import Iterable, Iterator
from typing import Any, Protocol, runtime_checkable

from cspark.errors.exceptions import ConfigurationError
from cspark.http.models import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

Outcome = HttpResponse | BaseException


@runtime_checkable
class Interceptor(Protocol):
    """Capability interface. Implement either hook, or both."""

    def before_request(self, request: HttpRequest) -> Any: ...

    def after_response(self, outcome: Outcome, request: HttpRequest) -> Any: ...


def _is_interceptor(obj: Any) -> bool:
    return callable(getattr(obj, "before_request", None)) or callable(
        getattr(obj, "after_response", None)
    )


async def _call(hook: Any, *args: Any) -> Any:
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class InterceptorRegistry:
    """
    Append-only ordered set of interceptors.

    Registering the same object twice is a no-op. There is no removal API.
    """

    def __init__(self, interceptors: Iterable[Any] = ()):
        self._items: list[Any] = []
        self.add(*interceptors)

    def add(self, *interceptors: Any) -> "InterceptorRegistry":
        """
        Register interceptors in order.

        Raises:
            ConfigurationError: If an object has neither hook
        """
        for interceptor in interceptors:
            if not _is_interceptor(interceptor):
                raise ConfigurationError(
                    "interceptor must implement before_request or after_response",
                    context={"interceptor_type": type(interceptor).__name__},
                )
            if any(existing is interceptor for existing in self._items):
                continue
            self._items.append(interceptor)
        return self

    def copy(self) -> "InterceptorRegistry":
        return InterceptorRegistry(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __repr__(self) -> str:
        names = ", ".join(type(i).__name__ for i in self._items)
        return f"InterceptorRegistry([{names}])"

    async def run_before(self, request: HttpRequest) -> HttpRequest:
        """
        Run ``before_request`` hooks in registration order.

        An exception raised by a hook propagates and the request is never sent.
        """
        for interceptor in list(self._items):
            hook = getattr(interceptor, "before_request", None)
            if not callable(hook):
                continue
            replaced = await _call(hook, request)
            if replaced is not None:
                if not isinstance(replaced, HttpRequest):
                    raise ConfigurationError(
                        "before_request must return an HttpRequest or None",
                        context={"interceptor": type(interceptor).__name__},
                    )
                request = replaced
        return request

    async def run_after(self, outcome: Outcome, request: HttpRequest) -> Outcome:
        """Run ``after_response`` hooks in registration order on the final outcome."""
        for interceptor in list(self._items):
            hook = getattr(interceptor, "after_response", None)
            if not callable(hook):
                continue
            replaced = await _call(hook, outcome, request)
            if replaced is None:
                continue
            if not isinstance(replaced, (HttpResponse, BaseException)):
                raise ConfigurationError(
                    "after_response must return an HttpResponse, an exception or None",
                    context={"interceptor": type(interceptor).__name__},
                )
            if isinstance(outcome, BaseException) and isinstance(replaced, HttpResponse):
                logger.debug(
                    "Interceptor replaced error with response",
                    extra={"interceptor": type(interceptor).__name__},
                )
            outcome = replaced
        return outcome


__all__ = ["Interceptor", "InterceptorRegistry", "Outcome"]
