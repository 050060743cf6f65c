"""Command execution over a single interactive shell.

One line goes out, the runner reads until the next recognized prompt,
continues pagination transparently, and hands back the text in between.
Only one exchange is ever in flight on the transport.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from .prompt import (
    PromptDetector,
    PromptKind,
    PromptMatch,
    TERMINAL_KINDS,
    normalize,
    strip_echo,
)
from ..errors import CommandError, CommandTimeout, RTXConnectionError
from ..transport.base import Transport
from ..utils.logging_config import sanitize

logger = logging.getLogger(__name__)

LINE_ENDING = "\r"
CONTINUE_KEY = " "

# Commands that only read state. Everything else needs administrator mode.
UNPRIVILEGED_PREFIXES = (
    "show status",
    "show ip route",
    "show ipv6 route",
    "show environment",
    "show interface",
    "show log",
    "show arp",
    "console ",
    "ping",
    "traceroute",
    "less ",
    "exit",
    "quit",
)

READ_ONLY_PREFIXES = ("show", "less", "ping", "traceroute", "console", "exit", "quit")

# Longest single read before re-checking the deadline
READ_SLICE = 0.5


@dataclass(frozen=True)
class Command:
    """A line (or lines) to submit, with a key for logging and correlation.

    Attributes:
        key: Identifier used in logs and errors
        payload: Literal text; multiple lines are submitted one at a time
        privileged: Force or waive administrator mode (None = infer)
        timeout: Per-command read timeout override (seconds)
    """
    key: str
    payload: str
    privileged: Optional[bool] = None
    timeout: Optional[float] = None

    @classmethod
    def of(cls, command: Union["Command", str], key: Optional[str] = None) -> "Command":
        if isinstance(command, Command):
            return command
        text = command.strip()
        return cls(key=key or " ".join(text.split()[:3]) or "empty", payload=text)

    @property
    def lines(self) -> list[str]:
        return [line.strip() for line in self.payload.splitlines() if line.strip()]

    @property
    def requires_privilege(self) -> bool:
        if self.privileged is not None:
            return self.privileged
        return any(not line.lower().startswith(UNPRIVILEGED_PREFIXES) for line in self.lines)

    @property
    def mutates(self) -> bool:
        """True if any line can change router state."""
        return any(not line.lower().startswith(READ_ONLY_PREFIXES) for line in self.lines)


class CommandRunner:
    """Drives line/prompt exchanges on one transport.

    After a timeout or a cancelled wait the session is considered
    desynchronized: leftover output may still be in flight. The next
    exchange first calls ``resync``.
    """

    def __init__(
        self,
        transport: Transport,
        detector: Optional[PromptDetector] = None,
        router_id: str = "",
        default_timeout: float = 60,
    ):
        self.transport = transport
        self.detector = detector or PromptDetector()
        self.router_id = router_id
        self.default_timeout = default_timeout
        self.desynchronized = False
        self.last_prompt: Optional[PromptKind] = None
        self._io_lock = asyncio.Lock()

    async def _read_until_prompt(
        self,
        timeout: float,
        echo: Optional[str] = None,
        auto_continue: bool = True,
    ) -> tuple[str, PromptMatch]:
        """Read until any anchored prompt; continue through pagination.

        ``timeout`` is an inactivity timeout: it restarts whenever data arrives.
        """
        loop = asyncio.get_running_loop()
        segments: list[str] = []
        raw = ""
        deadline = loop.time() + timeout

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                self.desynchronized = True
                raise CommandTimeout(f"No prompt from {self.router_id or 'router'} within {timeout:.1f}s")

            chunk = await self.transport.read(min(READ_SLICE, remaining))
            if not chunk:
                continue
            raw += chunk
            deadline = loop.time() + timeout

            buffer = normalize(raw)
            match = self.detector.match(buffer, echo=echo)
            if match is None:
                continue

            if match.kind is PromptKind.PAGINATION and auto_continue:
                segments.append(self._body(buffer, match, echo))
                raw = ""
                echo = None
                await self.transport.write(CONTINUE_KEY)
                continue

            segments.append(self._body(buffer, match, echo))
            self.last_prompt = match.kind
            return "".join(segments), match

    def _body(self, buffer: str, match: PromptMatch, echo: Optional[str]) -> str:
        start = 0
        if echo is not None:
            body = strip_echo(buffer, echo)
            if body is not None:
                start = len(buffer) - len(body)
        return buffer[start:match.start]

    async def exchange(
        self,
        line: str,
        timeout: Optional[float] = None,
        secret: bool = False,
    ) -> tuple[str, PromptMatch]:
        """Submit one line and wait for whatever prompt follows.

        Args:
            line: Text to send (without line ending)
            timeout: Inactivity timeout, defaults to ``default_timeout``
            secret: Do not log or expect an echo (passwords)

        Returns:
            (output, prompt match) where output excludes echo and prompt
        """
        timeout = timeout or self.default_timeout
        async with self._io_lock:
            if self.desynchronized:
                await self._resync(timeout)
            logger.debug(f"{self.router_id}: >> {'********' if secret else sanitize(line)}")
            try:
                await self.transport.write(line + LINE_ENDING)
                output, match = await self._read_until_prompt(
                    timeout, echo=None if secret or not line.strip() else line,
                )
            except asyncio.CancelledError:
                self.desynchronized = True
                raise
            if secret:
                # Echo is off for passwords, but a stray newline may lead
                output = output.lstrip("\n")
            return output, match

    async def wait_for_prompt(self, timeout: Optional[float] = None) -> tuple[str, PromptMatch]:
        """Read until a prompt without sending anything (login banner)."""
        async with self._io_lock:
            try:
                return await self._read_until_prompt(timeout or self.default_timeout)
            except asyncio.CancelledError:
                self.desynchronized = True
                raise

    async def execute(self, command: Command, timeout: Optional[float] = None) -> str:
        """Run every line of ``command`` and return the combined output.

        Raises:
            CommandTimeout: no prompt arrived in time
            RTXConnectionError: the shell fell back to a login dialog or died
            CommandError: the router stopped at an interactive question
        """
        timeout = timeout or command.timeout or self.default_timeout
        outputs = []
        for line in command.lines:
            output, match = await self.exchange(line, timeout=timeout)
            if match.kind in (PromptKind.LOGIN, PromptKind.PASSWORD, PromptKind.ADMIN_PASSWORD):
                self.desynchronized = True
                raise RTXConnectionError(
                    f"Session on {self.router_id or 'router'} returned to a login prompt", key=command.key,
                )
            if match.kind not in TERMINAL_KINDS:
                self.desynchronized = True
                raise CommandError(
                    f"Router is waiting for input ({match.kind.value}) after {sanitize(line)!r}",
                    key=command.key,
                )
            outputs.append(output.strip("\n"))
        return "\n".join(o for o in outputs if o)

    async def resync(self, timeout: Optional[float] = None) -> None:
        """Send a neutral line and wait for a fresh prompt."""
        async with self._io_lock:
            await self._resync(timeout or self.default_timeout)

    async def _resync(self, timeout: float) -> None:
        logger.info(f"{self.router_id}: resynchronizing session")
        loop = asyncio.get_running_loop()
        await self.transport.write(LINE_ENDING)

        # Drain stale output until the channel goes quiet on a terminal prompt
        raw = ""
        deadline = loop.time() + timeout
        while True:
            chunk = await self.transport.read(READ_SLICE)
            if chunk:
                raw += chunk
                deadline = loop.time() + timeout
                continue
            match = self.detector.match(normalize(raw))
            if match is not None and match.kind in TERMINAL_KINDS:
                break
            if match is not None and match.kind is PromptKind.PAGINATION:
                raw = ""
                await self.transport.write(CONTINUE_KEY)
                continue
            if match is not None:
                raise RTXConnectionError(
                    f"Resync on {self.router_id or 'router'} ended at a {match.kind.value} prompt"
                )
            if loop.time() >= deadline:
                raise RTXConnectionError(f"Resync on {self.router_id or 'router'} found no prompt")

        self.last_prompt = match.kind
        self.desynchronized = False
