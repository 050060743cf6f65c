"""Error taxonomy for the RTX command/session engine.

Every error raised towards a caller is an ``RTXError`` tagged with an
``ErrorClass``. Retry decisions look only at that tag, never at message text.
Router output is mapped to errors in exactly one place: ``classify_output``.
"""
import re
from enum import Enum
from typing import Optional


class ErrorClass(Enum):
    """Coarse classification used by the retry policy."""
    TRANSIENT = "transient"
    FATAL = "fatal"
    NOT_FOUND = "not_found"


class RTXError(Exception):
    """Base class for all engine errors."""

    error_class = ErrorClass.FATAL

    def __init__(self, message: str, key: Optional[str] = None, attempts: int = 0):
        super().__init__(message)
        self.message = message
        self.key = key
        self.attempts = attempts

    @property
    def transient(self) -> bool:
        return self.error_class is ErrorClass.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message]
        if self.key:
            parts.append(f"cmd={self.key}")
        if self.attempts:
            parts.append(f"attempts={self.attempts}")
        return " | ".join(parts)


class RTXConnectionError(RTXError):
    """Channel could not be opened, was reset, or lost synchronization."""
    error_class = ErrorClass.TRANSIENT


class SFTPError(RTXConnectionError):
    """Secondary file-transfer channel is unavailable or closed."""


class CommandTimeout(RTXError):
    """No recognized prompt arrived before the read timeout."""
    error_class = ErrorClass.TRANSIENT


class RouterBusyError(RTXError):
    """Router reported that another operation is in progress."""
    error_class = ErrorClass.TRANSIENT


class AuthenticationError(RTXError):
    """Login was rejected or the login dialog went somewhere unexpected."""


class PrivilegeError(AuthenticationError):
    """Administrator escalation failed (permission denied)."""


class CommandError(RTXError):
    """Router rejected the submitted command."""


class NotFoundError(RTXError):
    """The queried entity does not exist on the router."""
    error_class = ErrorClass.NOT_FOUND


class ParseError(RTXError):
    """A configuration line matched a feature but not its grammar."""

    def __init__(self, message: str, line_number: int = 0, line: str = ""):
        super().__init__(message)
        self.line_number = line_number
        self.line = line

    def __str__(self) -> str:
        if self.line_number:
            return f"line {self.line_number}: {self.message}: {self.line!r}"
        return self.message


# Ordered: first match wins. Busy banners are checked before generic errors
# because some of them start with "Error:".
BUSY_PATTERNS = [
    r"\bbusy\b",
    r"another user",
    r"try again later",
    r"他のユーザ",
]

NOT_FOUND_PATTERNS = [
    r"not found",
    r"no such",
    r"見つかりません",
]

PERMISSION_PATTERNS = [
    r"permission denied",
    r"administrator (?:privilege|mode) (?:is )?required",
    r"権限がありません",
]

COMMAND_ERROR_PATTERNS = [
    r"^%?\s*error\s*:",
    r"^command failed:",
    r"invalid parameter",
    r"invalid command",
    r"unknown command",
    r"コマンド名が確認できません",
    r"incomplete command",
    r"already exists",
    r"^エラー\s*:",
]

# Lines that look like errors but are counters
INFO_PATTERNS = [
    r"\d+\s+(input\s+|output\s+)?errors",
    r"errors,",
]


def _first_matching_line(output: str, patterns: list[str]) -> Optional[str]:
    for line in output.split("\n"):
        stripped = line.strip()
        if not stripped:
            continue
        if any(re.search(p, stripped, re.IGNORECASE) for p in INFO_PATTERNS):
            continue
        for pattern in patterns:
            if re.search(pattern, stripped, re.IGNORECASE):
                return stripped
    return None


def classify_output(output: str, key: Optional[str] = None) -> Optional[RTXError]:
    """Map router output to an error, or None if the output is clean.

    Args:
        output: Captured command output (echo and prompt already removed)
        key: Command key, attached to the returned error

    Returns:
        An unraised RTXError subclass instance, or None
    """
    checks = [
        (BUSY_PATTERNS, RouterBusyError),
        (PERMISSION_PATTERNS, PrivilegeError),
        (NOT_FOUND_PATTERNS, NotFoundError),
        (COMMAND_ERROR_PATTERNS, CommandError),
    ]
    for patterns, error_type in checks:
        line = _first_matching_line(output, patterns)
        if line is not None:
            return error_type(line, key=key)
    return None


def is_not_found(error: BaseException) -> bool:
    """True if the error means the entity is absent on the router."""
    return isinstance(error, RTXError) and error.error_class is ErrorClass.NOT_FOUND
