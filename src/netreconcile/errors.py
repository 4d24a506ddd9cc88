"""Error types raised by object stores and the reconciliation engine.

Store errors carry the HTTP-like status code returned by the appliance so
callers can tell "doesn't exist yet" (404) apart from real failures.
"""
from contextlib import contextmanager
from typing import Optional


class StoreError(Exception):
    """Base error for a failed object store call."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        path: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.path = path
        super().__init__(message)


class NotFoundError(StoreError):
    """The object does not exist on the appliance (404)."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, status_code=404, path=path)


class ConflictError(StoreError):
    """The appliance rejected the change during validation."""


class TransientError(StoreError):
    """A failure expected to clear up on its own (timeouts, 5xx, busy)."""


CONFLICT_STATUS_CODES = {400, 409, 422}
TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


def error_for_status(
    status_code: int, message: str, path: Optional[str] = None
) -> StoreError:
    """Map an HTTP status code to the matching StoreError subclass."""
    if status_code == 404:
        return NotFoundError(message, path=path)
    if status_code in CONFLICT_STATUS_CODES:
        return ConflictError(message, status_code=status_code, path=path)
    if status_code in TRANSIENT_STATUS_CODES:
        return TransientError(message, status_code=status_code, path=path)
    return StoreError(message, status_code=status_code, path=path)


class ReconcileError(Exception):
    """Raised to the caller when a reconciliation phase fails.

    The message is the underlying error verbatim, prefixed with the phase
    and object class that were being processed.
    """

    def __init__(
        self,
        message: str,
        phase: str,
        object_class: Optional[str] = None,
    ):
        self.message = message
        self.phase = phase
        self.object_class = object_class
        location = f"{phase}/{object_class}" if object_class else phase
        super().__init__(f"[{location}] {message}")

    @property
    def status_code(self) -> Optional[int]:
        cause = self.__cause__
        return getattr(cause, "status_code", None)


@contextmanager
def annotate(phase: str, object_class: Optional[str] = None):
    """Re-raise any failure inside the block as a ReconcileError.

    Errors that are already annotated pass through untouched so the
    innermost phase/class wins.

    Usage:
        with annotate("network", "SelfIp"):
            await reconciler.reconcile(...)
    """
    try:
        yield
    except ReconcileError:
        raise
    except Exception as e:
        message = getattr(e, "message", None) or str(e)
        raise ReconcileError(message, phase, object_class) from e
