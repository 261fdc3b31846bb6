"""Error codes and error handling utilities for MusicDedupe."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for MusicDedupe operations."""

    # File system errors
    FILE_NOT_FOUND = auto()
    FILE_ACCESS_DENIED = auto()
    FILE_CORRUPT = auto()
    DISK_FULL = auto()
    DEST_EXISTS = auto()

    # Tag errors
    TAG_READ_FAILED = auto()
    TAG_CORRUPT = auto()
    TAG_UNSUPPORTED_FORMAT = auto()
    TAG_MISSING_REQUIRED = auto()

    # Embedded key recovery, one code per decoding stage
    KEY_PREFIX_MISMATCH = auto()
    KEY_BASE64_INVALID = auto()
    KEY_CIPHER_FAILED = auto()
    KEY_NOT_UTF8 = auto()
    KEY_JSON_INVALID = auto()

    # Proprietary container
    CONTAINER_INVALID = auto()

    # Operation errors
    OPERATION_FAILED = auto()

    # Configuration errors
    CONFIG_INVALID = auto()
    CONFIG_OUTPUT_DIR = auto()


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.FILE_NOT_FOUND: "The file was not found. It may have been moved or deleted.",
    ErrorCode.FILE_ACCESS_DENIED: "Access denied. Check file permissions or if the file is read-only.",
    ErrorCode.FILE_CORRUPT: "The file appears to be corrupt or incomplete.",
    ErrorCode.DISK_FULL: "The destination disk is full. Free up space and try again.",
    ErrorCode.DEST_EXISTS: "The destination file already exists and was left untouched.",

    ErrorCode.TAG_READ_FAILED: "Failed to read tags. The file format may not be supported.",
    ErrorCode.TAG_CORRUPT: "The tag metadata is corrupt. Try re-downloading the file.",
    ErrorCode.TAG_UNSUPPORTED_FORMAT: "This file format is not supported.",
    ErrorCode.TAG_MISSING_REQUIRED: "No track title could be found in the tags or the file name.",

    ErrorCode.KEY_PREFIX_MISMATCH: "The embedded key does not start with the expected prefix.",
    ErrorCode.KEY_BASE64_INVALID: "The embedded key is not valid base64.",
    ErrorCode.KEY_CIPHER_FAILED: "The embedded key could not be decrypted.",
    ErrorCode.KEY_NOT_UTF8: "The decrypted key is not valid UTF-8 text.",
    ErrorCode.KEY_JSON_INVALID: "The decrypted key does not carry a numeric music id.",

    ErrorCode.CONTAINER_INVALID: "The protected container could not be decoded.",

    ErrorCode.OPERATION_FAILED: "Operation failed. See details for more information.",

    ErrorCode.CONFIG_INVALID: "Configuration is invalid. Fix or delete the settings file.",
    ErrorCode.CONFIG_OUTPUT_DIR: "Cannot create the output directory. Check the path and permissions.",
}


@dataclass
class DedupeError(Exception):
    """Base exception for MusicDedupe with error code and context."""

    code: ErrorCode
    message: str = ""
    path: Path | None = None
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = ERROR_MESSAGES.get(self.code, "An unexpected error occurred.")
        if not self.suggestion and self.code in ERROR_MESSAGES:
            self.suggestion = ERROR_MESSAGES[self.code]

    def __str__(self) -> str:
        parts = [self.message]
        if self.path:
            parts.append(f"\nFile: {self.path}")
        if self.details:
            details_str = " | ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"\nDetails: {details_str}")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "code": self.code.name,
            "message": self.message,
            "path": str(self.path) if self.path else None,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class KeyDecodeError(DedupeError):
    """Raised by the embedded key decoder; the code names the failing stage."""


def classify_exception(exc: Exception, path: Path | None = None) -> DedupeError:
    """Classify a generic exception into a DedupeError with appropriate code."""
    if isinstance(exc, DedupeError):
        return exc

    exc_name = type(exc).__name__
    exc_str = str(exc).lower()

    # File system errors
    if isinstance(exc, FileExistsError):
        return DedupeError(ErrorCode.DEST_EXISTS, path=path, details={"original": exc_str})
    if isinstance(exc, FileNotFoundError) or "no such file" in exc_str:
        return DedupeError(ErrorCode.FILE_NOT_FOUND, path=path, details={"original": exc_str})
    if isinstance(exc, PermissionError) or "access is denied" in exc_str or "permission denied" in exc_str:
        return DedupeError(ErrorCode.FILE_ACCESS_DENIED, path=path, details={"original": exc_str})
    if "disk full" in exc_str or "no space left" in exc_str:
        return DedupeError(ErrorCode.DISK_FULL, path=path, details={"original": exc_str})

    # Tag errors - mutagen/music-tag raise these names
    if "HeaderNotFoundError" in exc_name or "sync" in exc_str or "frame" in exc_str:
        return DedupeError(ErrorCode.TAG_CORRUPT, path=path, details={"original": exc_str})
    if "NotImplementedError" in exc_name or "mutagen type" in exc_str or "not implemented" in exc_str:
        return DedupeError(ErrorCode.TAG_UNSUPPORTED_FORMAT, path=path, details={"original": exc_str})
    if "tag" in exc_str and "read" in exc_str:
        return DedupeError(ErrorCode.TAG_READ_FAILED, path=path, details={"original": exc_str})
    if "corrupt" in exc_str or "invalid" in exc_str:
        return DedupeError(ErrorCode.FILE_CORRUPT, path=path, details={"original": exc_str})

    return DedupeError(
        ErrorCode.OPERATION_FAILED,
        message=f"{exc_name}: {exc}",
        path=path,
        details={"original": exc_str},
    )


def format_error_for_user(error: DedupeError | Exception) -> str:
    """Format an error for display on the terminal."""
    if isinstance(error, DedupeError):
        parts = [error.message]
        if error.path:
            parts.append(f" ({error.path})")
        if error.suggestion and error.suggestion != error.message:
            parts.append(f"\n  hint: {error.suggestion}")
        return "".join(parts)

    classified = classify_exception(error)
    return format_error_for_user(classified)
