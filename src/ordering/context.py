"""Per-request context passed explicitly into every ordering operation.

Carries the correlation id used in log lines, an optional deadline and a
cancellation flag. Gateways and stores call ``check()`` before blocking work
so that a cancelled or expired request aborts (and rolls back) instead of
committing.
"""

import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any
from uuid import uuid4

import structlog

from ordering.errors import RequestCancelledError

DEFAULT_TIMEOUT_SECONDS = 30


def _default_timeout() -> float:
    from ordering.domain import ordering

    return float(getattr(ordering, "request_timeout_seconds", DEFAULT_TIMEOUT_SECONDS))


@dataclass
class RequestContext:
    correlation_id: str = field(default_factory=lambda: str(uuid4()))
    deadline: float | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)
    _log: Any = field(default=None, repr=False)

    @classmethod
    def with_timeout(cls, seconds: float | None = None, correlation_id: str | None = None) -> "RequestContext":
        """Build a context that expires ``seconds`` from now (configured default when omitted)."""
        if seconds is None:
            seconds = _default_timeout()
        kwargs = {"deadline": time.monotonic() + seconds}
        if correlation_id:
            kwargs["correlation_id"] = correlation_id
        return cls(**kwargs)

    @property
    def log(self):
        if self._log is None:
            self._log = structlog.get_logger("ordering").bind(correlation_id=self.correlation_id)
        return self._log

    def bind(self, **kwargs: Any) -> "RequestContext":
        """A copy whose log lines carry ``kwargs`` as well.

        The copy shares the deadline and the cancellation flag, so cancelling
        either one stops both. The receiver's own logger is left untouched.
        """
        return replace(self, _log=self.log.bind(**kwargs))

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise ``RequestCancelledError`` if the request should no longer proceed."""
        if self.cancelled:
            raise RequestCancelledError(
                "request was cancelled",
                extra_info={"correlation_id": self.correlation_id},
            )
        if self.expired:
            raise RequestCancelledError(
                "request deadline exceeded",
                extra_info={"correlation_id": self.correlation_id},
            )


def ensure_context(ctx: RequestContext | None) -> RequestContext:
    """Return ``ctx``, or a fresh context without a deadline."""
    return ctx if ctx is not None else RequestContext()
