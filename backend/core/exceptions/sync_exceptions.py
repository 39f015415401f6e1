from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Failure taxonomy used to decide how far an error may propagate"""
    VALIDATION = "validation"
    TRANSFORM = "transform"
    STORAGE = "storage"
    TRANSPORT = "transport"
    ENVELOPE = "envelope"
    UNEXPECTED = "unexpected"


class SyncException(Exception):
    """Base exception for sync failures with a kind and structured metadata"""

    error_kind: ErrorKind = ErrorKind.UNEXPECTED
    retryable: bool = False

    def __init__(
        self,
        message: str = "Sync operation failed",
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.metadata = metadata or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_kind": self.error_kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "metadata": self.metadata,
        }


class ValidationError(SyncException):
    """Malformed or incomplete input. Never retried."""

    error_kind = ErrorKind.VALIDATION
    prefix = "Validation failed: "

    def __init__(self, message: str = "Validation failed", metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message, metadata)

    def wrapped(self) -> "ValidationError":
        """Copy of this error carrying the prefix that marks a bad event upstream"""
        if self.message.startswith(self.prefix):
            return self
        return ValidationError(f"{self.prefix}{self.message}", self.metadata)


class TransformError(SyncException):
    """Payload could not be mapped to the canonical shape"""

    error_kind = ErrorKind.TRANSFORM

    def __init__(self, message: str = "Transformation failed", metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message, metadata)


class StorageError(SyncException):
    """Write or lookup against the relational store failed"""

    error_kind = ErrorKind.STORAGE
    retryable = True

    def __init__(
        self,
        message: str = "Storage operation failed",
        table: Optional[str] = None,
        key: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.table = table
        self.key = key or {}
        merged = {"table": table, "key": self.key}
        merged.update(metadata or {})
        super().__init__(message, merged)


class TransportError(SyncException):
    """External content API unreachable or returned an unusable response"""

    error_kind = ErrorKind.TRANSPORT
    retryable = True

    def __init__(
        self,
        message: str = "External service error",
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.service = service
        self.status_code = status_code
        merged = {"service": service, "status_code": status_code}
        merged.update(metadata or {})
        super().__init__(message, merged)


class EnvelopeError(SyncException):
    """Inbound message lacks eventType or data"""

    error_kind = ErrorKind.ENVELOPE

    def __init__(self, message: str = "Invalid event envelope", metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message, metadata)
