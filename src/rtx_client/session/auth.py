"""Login and administrator escalation dialogs.

    login:     [Login:] -> username -> [Password:] -> password -> ">" | "#"
    escalate:  "administrator" -> Password: -> admin password -> "#"
    logout:    "exit" -> [Save new configuration ? (Y/N)] -> "N" -> ">" -> "exit"

Any prompt other than the one the current step expects is fatal. None of
these dialogs are retried here.
"""
import logging
from typing import Optional

from .prompt import ADMIN_COMMAND, PromptKind, PromptMatch, TERMINAL_KINDS
from .runner import CommandRunner
from .state import SessionState
from ..errors import AuthenticationError, PrivilegeError, RTXConnectionError, classify_output

logger = logging.getLogger(__name__)

# Sent once after login; failures are logged and ignored
SESSION_SETUP_COMMANDS = (
    "console character ascii",
    "console lines infinity",
)

ADMIN_FAILURE_WORDS = ("incorrect", "failed", "invalid", "denied")


class Authenticator:
    """Runs the credential dialogs over a CommandRunner."""

    def __init__(
        self,
        runner: CommandRunner,
        username: str,
        password: str,
        admin_password: str,
        router_id: str = "",
        timeout: float = 30,
    ):
        self.runner = runner
        self.username = username
        self.password = password
        self.admin_password = admin_password
        self.router_id = router_id
        self.timeout = timeout

    def _reject(self, message: str, output: str = "") -> AuthenticationError:
        detail = output.strip().splitlines()[-1] if output.strip() else ""
        if detail:
            message = f"{message}: {detail}"
        return AuthenticationError(f"{self.router_id or 'router'}: {message}")

    async def login(self) -> SessionState:
        """Answer the login dialog until a command prompt appears.

        Returns:
            SessionState.AUTHENTICATED or SessionState.PRIVILEGED

        Raises:
            AuthenticationError: credentials rejected or unexpected prompt
        """
        output, match = await self.runner.wait_for_prompt(self.timeout)
        sent_username = sent_password = False

        while True:
            if self.runner.detector.find_banner(output) is PromptKind.LOGIN_FAILED:
                raise self._reject("login rejected", output)

            if match.kind is PromptKind.NORMAL:
                logger.info(f"{self.router_id}: logged in as {self.username}")
                return SessionState.AUTHENTICATED
            if match.kind is PromptKind.PRIVILEGED:
                logger.info(f"{self.router_id}: logged in as {self.username} (administrator)")
                return SessionState.PRIVILEGED

            if match.kind is PromptKind.LOGIN and not sent_username:
                sent_username = True
                output, match = await self.runner.exchange(self.username, timeout=self.timeout)
            elif match.kind in (PromptKind.PASSWORD, PromptKind.ADMIN_PASSWORD) and not sent_password:
                sent_password = True
                output, match = await self.runner.exchange(self.password, timeout=self.timeout, secret=True)
            else:
                raise self._reject(f"unexpected {match.kind.value} prompt during login", output)

    async def setup_session(self) -> None:
        """Switch the console to ASCII and disable paging where supported."""
        for line in SESSION_SETUP_COMMANDS:
            output, match = await self.runner.exchange(line, timeout=self.timeout)
            error = classify_output(output, key=line)
            if error is not None or match.kind not in TERMINAL_KINDS:
                logger.warning(f"{self.router_id}: '{line}' not accepted: {error or match.kind.value}")

    async def escalate(self) -> SessionState:
        """Enter administrator mode.

        Raises:
            PrivilegeError: admin password rejected or dialog went elsewhere
        """
        output, match = await self.runner.exchange(ADMIN_COMMAND, timeout=self.timeout)
        if match.kind is PromptKind.PRIVILEGED:
            return SessionState.PRIVILEGED
        if match.kind not in (PromptKind.ADMIN_PASSWORD, PromptKind.PASSWORD):
            raise PrivilegeError(
                f"{self.router_id or 'router'}: administrator command answered with {match.kind.value} prompt"
            )

        output, match = await self.runner.exchange(self.admin_password, timeout=self.timeout, secret=True)
        lowered = output.lower()
        if any(word in lowered for word in ADMIN_FAILURE_WORDS) or match.kind is not PromptKind.PRIVILEGED:
            detail = output.strip().splitlines()[-1] if output.strip() else match.kind.value
            raise PrivilegeError(f"{self.router_id or 'router'}: administrator password rejected: {detail}")

        logger.info(f"{self.router_id}: entered administrator mode")
        return SessionState.PRIVILEGED

    async def logout(self, privileged: bool) -> Optional[PromptMatch]:
        """Leave administrator mode without saving, then end the session.

        The channel usually closes under the final ``exit``; that is reported
        as RTXConnectionError by the runner and treated as success here.
        """
        try:
            if privileged:
                _, match = await self.runner.exchange("exit", timeout=self.timeout)
                if match.kind is PromptKind.SAVE_CONFIRM:
                    _, match = await self.runner.exchange("N", timeout=self.timeout)
                if match.kind is not PromptKind.NORMAL:
                    return match
            await self.runner.transport.write("exit\r")
        except RTXConnectionError:
            return None
        return None
