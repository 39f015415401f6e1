from .sync_exceptions import (
    ErrorKind,
    SyncException,
    ValidationError,
    TransformError,
    StorageError,
    TransportError,
    EnvelopeError
)

from .utils import (
    error_kind_of,
    format_error
)

__all__ = [
    # Exceptions
    "ErrorKind",
    "SyncException",
    "ValidationError",
    "TransformError",
    "StorageError",
    "TransportError",
    "EnvelopeError",

    # Utils
    "error_kind_of",
    "format_error"
]
