from datetime import datetime, timezone
from typing import Any, Dict

from .sync_exceptions import ErrorKind, SyncException


def error_kind_of(exc: BaseException) -> ErrorKind:
    """Classify any exception into the sync error taxonomy"""
    if isinstance(exc, SyncException):
        return exc.error_kind
    return ErrorKind.UNEXPECTED


def format_error(exc: BaseException, **kwargs) -> Dict[str, Any]:
    """Format an exception for results and health payloads"""
    payload = {
        "error_kind": error_kind_of(exc).value,
        "message": getattr(exc, "message", None) or str(exc),
        "type": type(exc).__name__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if isinstance(exc, SyncException) and exc.metadata:
        payload["metadata"] = exc.metadata
    payload.update(kwargs)
    return payload
