"""Prompt recognition for the RTX command line.

The router prints its prompt without a trailing newline, so a prompt can
only ever be the last line of the buffer. Prompt patterns are therefore
matched against that last line only, structurally:

    [RTX1210] >      normal mode, configured hostname
    RTX830#          administrator mode, bare hostname
    >                normal mode, no hostname

Login failure banners can appear anywhere in the output and are looked up
separately with ``find_banner``.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PromptKind(Enum):
    LOGIN = "login"
    PASSWORD = "password"
    ADMIN_PASSWORD = "admin_password"
    NORMAL = "normal"
    PRIVILEGED = "privileged"
    PAGINATION = "pagination"
    SAVE_CONFIRM = "save_confirm"
    # Banners
    LOGIN_FAILED = "login_failed"


TERMINAL_KINDS = frozenset({PromptKind.NORMAL, PromptKind.PRIVILEGED})


@dataclass(frozen=True)
class PromptPattern:
    """A named matcher.

    Anchored patterns must match the whole last line of the buffer.
    Unanchored patterns are searched line by line across the whole text.
    """
    kind: PromptKind
    regex: re.Pattern
    anchored: bool = True


@dataclass(frozen=True)
class PromptMatch:
    kind: PromptKind
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


_HOST = r"(?:\[[^\]\r\n]*\]\s*|[\w.\-]+\s*)?"

DEFAULT_PATTERNS: tuple[PromptPattern, ...] = (
    PromptPattern(
        PromptKind.PAGINATION,
        re.compile(r"\s*-+\s*(?:More|つづく)\s*-+\s*|\s*Press any key.*", re.IGNORECASE),
    ),
    PromptPattern(
        PromptKind.SAVE_CONFIRM,
        re.compile(
            r".*(?:\(y/n\)|\(yes/no\)|save (?:new )?(?:configuration|changes)\s*\?|保存しますか).*",
            re.IGNORECASE,
        ),
    ),
    PromptPattern(PromptKind.LOGIN, re.compile(r"\s*(?:Login|Username)\s*:\s*", re.IGNORECASE)),
    # Only distinguishable from the login password prompt by the echoed
    # "administrator" line that precedes it; see PromptDetector.match
    PromptPattern(PromptKind.ADMIN_PASSWORD, re.compile(r"\s*Password\s*:\s*", re.IGNORECASE)),
    PromptPattern(PromptKind.PASSWORD, re.compile(r"\s*(?:Password|パスワード)\s*:\s*", re.IGNORECASE)),
    PromptPattern(PromptKind.PRIVILEGED, re.compile(_HOST + r"#\s*")),
    PromptPattern(PromptKind.NORMAL, re.compile(_HOST + r">\s*")),
    PromptPattern(
        PromptKind.LOGIN_FAILED,
        re.compile(r"(?:login|password)\s+incorrect|incorrect\s+password|authentication failed|"
                   r"invalid password|パスワードが違います", re.IGNORECASE),
        anchored=False,
    ),
)

_ECHO_PROMPT = re.compile(_HOST + r"[>#]\s*")

ADMIN_COMMAND = "administrator"
_ADMIN_ECHO = re.compile(r"(?:^|\n)[^\n]*\badministrator\s*\n", re.IGNORECASE)


def normalize(text: str) -> str:
    """Normalize terminal output: CRLF to LF, carriage-return overwrites collapsed."""
    text = text.replace("\r\n", "\n")
    if "\r" not in text:
        return text
    lines = []
    for line in text.split("\n"):
        line = line.rstrip("\r")
        if "\r" in line:
            line = line.rsplit("\r", 1)[1]
        lines.append(line)
    return "\n".join(lines)


def strip_echo(buffer: str, echo: str) -> Optional[str]:
    """Remove the echoed command line from the start of ``buffer``.

    Returns the text following the echo, the buffer unchanged if the router
    did not echo, or None while the echo is still arriving.
    """
    needle = echo.strip()
    if not needle:
        return buffer
    lead = len(buffer) - len(buffer.lstrip())
    newline = buffer.find("\n", lead)
    if newline < 0:
        head = buffer.strip()
        # Partial echo, possibly behind a re-printed prompt
        candidates = [head] + [head[i + 1:].lstrip() for i, c in enumerate(head) if c in ">#"]
        if any(needle.startswith(c) for c in candidates):
            return None
        return buffer
    # Only the first line can carry the echo
    first = buffer[lead:newline].strip()
    if first == needle or (first.endswith(needle) and _ECHO_PROMPT.fullmatch(first[:-len(needle)])):
        return buffer[newline + 1:]
    return buffer


class PromptDetector:
    """Classifies the tail of a read buffer.

    Patterns form an ordered set; the first one that matches wins.
    """

    def __init__(self, patterns: Optional[tuple[PromptPattern, ...]] = None):
        self.patterns = patterns or DEFAULT_PATTERNS

    def match(self, buffer: str, echo: Optional[str] = None) -> Optional[PromptMatch]:
        """Return the prompt at the end of ``buffer``, or None if output continues.

        Args:
            buffer: Normalized text read since the command was submitted
            echo: The submitted line; its echo is never treated as a prompt
        """
        offset = 0
        if echo is not None:
            body = strip_echo(buffer, echo)
            if body is None:
                return None
            offset = len(buffer) - len(body)
        else:
            body = buffer

        line_start = body.rfind("\n") + 1
        last_line = body[line_start:]
        if not last_line.strip():
            return None

        for pattern in self.patterns:
            if not pattern.anchored:
                continue
            if not pattern.regex.fullmatch(last_line):
                continue
            kind = pattern.kind
            if kind is PromptKind.ADMIN_PASSWORD and not _ADMIN_ECHO.search(buffer[:offset + line_start]):
                continue
            start = offset + line_start
            return PromptMatch(kind, start, len(buffer))
        return None

    def find_banner(self, text: str) -> Optional[PromptKind]:
        """Return the kind of the first banner found anywhere in ``text``."""
        for pattern in self.patterns:
            if pattern.anchored:
                continue
            if pattern.regex.search(text):
                return pattern.kind
        return None
