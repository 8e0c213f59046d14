"""Custom exceptions for notesflow.

Provides a structured exception hierarchy with error codes and
machine-readable error information. Looking up or mutating an unknown
note id is deliberately NOT an error: mutators no-op and lookups return
None.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003
    STORAGE_QUOTA_EXCEEDED = 4004
    STORAGE_CORRUPTED = 4005

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    INVALID_NOTE_FIELDS = 7002
    INVALID_SORT_KEY = 7003


class NotesflowError(Exception):
    """Base exception for all notesflow errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class StorageError(NotesflowError):
    """Raised for key-value store errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        key: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if key:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.key = key
        self.original_error = original_error


class StoreReadError(StorageError):
    """Raised when the store itself cannot be read (not bad data)."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message,
            operation="get",
            key=key,
            code=ErrorCode.STORAGE_READ_FAILED,
            original_error=original_error
        )


class StoreWriteError(StorageError):
    """Raised when a write to the store fails.

    Mutators surface this synchronously. A caller must not assume the
    change was persisted unless the mutator returned normally.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        operation: str = "set",
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message,
            operation=operation,
            key=key,
            code=code,
            original_error=original_error
        )


class StoreQuotaExceededError(StoreWriteError):
    """Raised when a write would push the store past its size limit.

    Attributes:
        quota_bytes: Configured store limit
        required_bytes: Store size the rejected write would have produced
    """

    def __init__(
        self,
        key: str,
        quota_bytes: int,
        required_bytes: int,
    ):
        super().__init__(
            f"Store quota exceeded writing '{key}'",
            key=key,
            code=ErrorCode.STORAGE_QUOTA_EXCEEDED,
        )
        self.quota_bytes = quota_bytes
        self.required_bytes = required_bytes
        self.details["quota_bytes"] = quota_bytes
        self.details["required_bytes"] = required_bytes


class StoreCorruptionError(StorageError):
    """Raised when stored data cannot be decoded.

    The repositories catch this and degrade to an empty collection;
    it never reaches the UI layer.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message,
            operation="decode",
            key=key,
            code=ErrorCode.STORAGE_CORRUPTED,
            original_error=original_error
        )


class ConfigurationError(NotesflowError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key


class ValidationError(NotesflowError):
    """Raised for invalid arguments (unknown fields, bad sort keys)."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value
