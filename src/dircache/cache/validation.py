"""Key and path validation, key sanitization, and the cache error types."""

import re
from enum import Enum
from typing import List, Optional

MAX_KEY_LENGTH = 255
MAX_TOKEN_LENGTH = 100
REPLACEMENT = "!"

# Characters that are reserved on at least one common filesystem
_RESERVED_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f-\x9f]')
_ONLY_DOTS = re.compile(r"^\.+$")
_REPEATED_REPLACEMENT = re.compile(re.escape(REPLACEMENT) + r"{2,}")
_WINDOWS_RESERVED_NAMES = re.compile(
    r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])$", re.IGNORECASE
)


class ErrorKind(str, Enum):
    """Kinds of failure a cache operation can report."""

    VALIDATION = "validation"
    EXPANSION = "expansion"
    ARCHIVE_TOOL = "archive_tool"


class CacheError(Exception):
    """Base exception for cache operations.

    Every error carries a ``kind`` so callers can branch on it without
    depending on the concrete subclass.
    """

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ValidationError(CacheError):
    """Raised when a key or path list is rejected before any I/O."""

    kind = ErrorKind.VALIDATION


class ExpansionError(CacheError):
    """Raised when no path spec resolves to an existing filesystem entry."""

    kind = ErrorKind.EXPANSION


class ArchiveToolError(CacheError):
    """Raised when the archive process fails or cannot be started."""

    kind = ErrorKind.ARCHIVE_TOOL

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


def check_paths(paths: Optional[List[str]]) -> None:
    """Validate that at least one path was supplied.

    Args:
        paths: Path specs from the caller

    Raises:
        ValidationError: If the list is missing or empty
    """
    if not paths:
        raise ValidationError(
            "Path Validation Error: At least one directory or file path is required"
        )


def check_key(key: str) -> None:
    """Validate a cache key.

    Args:
        key: Cache key from the caller

    Raises:
        ValidationError: If the key is empty, longer than 255 characters,
            or contains a comma
    """
    # An empty key would scan as a bare "*" and match every bundle
    if not key:
        raise ValidationError("Key Validation Error: key cannot be empty.")
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationError(
            f"Key Validation Error: {key} cannot be larger than "
            f"{MAX_KEY_LENGTH} characters."
        )
    if "," in key:
        raise ValidationError(f"Key Validation Error: {key} cannot contain commas.")


def sanitize_key(key: str) -> str:
    """Convert a cache key into a token that is safe as a filename.

    The mapping is stable, so saving and restoring the same key always
    agree on the bundle filename.

    Args:
        key: Cache key

    Returns:
        Filesystem-safe token

    Examples:
        >>> sanitize_key("node-modules-linux-abc123")
        'node-modules-linux-abc123'
        >>> sanitize_key("deps/linux:x64")
        'deps!linux!x64'
        >>> sanitize_key("<<con>>")
        'con!'
    """
    token = _RESERVED_CHARS.sub(REPLACEMENT, key)
    token = _ONLY_DOTS.sub(REPLACEMENT, token)
    token = _REPEATED_REPLACEMENT.sub(REPLACEMENT, token)
    if len(token) > 1:
        token = token.strip(REPLACEMENT)
    if _WINDOWS_RESERVED_NAMES.match(token):
        token += REPLACEMENT
    return token[:MAX_TOKEN_LENGTH]
