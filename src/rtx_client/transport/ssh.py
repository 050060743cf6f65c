"""SSH interactive-shell transport built on paramiko.

Technical details:
- Password or key authentication happens at the SSH layer; the router may
  still present its own Login:/Password: dialog inside the shell
- Interactive shell via invoke_shell(), blocking paramiko calls are pushed
  to the default executor
- ANSI escape sequences are stripped on read
"""
import asyncio
import codecs
import logging
import re
import socket
from pathlib import Path
from typing import Optional

import paramiko

from .base import Transport
from ..errors import AuthenticationError, RTXConnectionError

logger = logging.getLogger(__name__)

ANSI_PATTERN = re.compile(r"\x1b\[[0-9;?]*[a-zA-Z]")

# Idle time between recv_ready() polls
POLL_INTERVAL = 0.05


def build_ssh_client(
    host: str,
    known_hosts_file: Optional[str] = None,
    skip_host_key_check: bool = False,
) -> paramiko.SSHClient:
    """SSH client that rejects unknown host keys unless checking is skipped."""
    client = paramiko.SSHClient()
    if skip_host_key_check:
        logger.warning(f"Host key verification disabled for {host}")
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        return client
    client.load_system_host_keys()
    if known_hosts_file:
        path = Path(known_hosts_file).expanduser()
        if path.exists():
            client.load_host_keys(str(path))
        else:
            logger.warning(f"Known hosts file not found: {path}")
    client.set_missing_host_key_policy(paramiko.RejectPolicy())
    return client


class SSHTransport(Transport):
    """Paramiko-backed shell channel."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        timeout: float = 30,
        private_key_file: Optional[str] = None,
        known_hosts_file: Optional[str] = None,
        skip_host_key_check: bool = False,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self.private_key_file = private_key_file
        self.known_hosts_file = known_hosts_file
        self.skip_host_key_check = skip_host_key_check
        self._client: Optional[paramiko.SSHClient] = None
        self._shell: Optional[paramiko.Channel] = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def is_open(self) -> bool:
        return self._shell is not None and not self._shell.closed

    async def connect(self) -> None:
        """Establish SSH connection with interactive shell."""
        loop = asyncio.get_running_loop()

        def _connect() -> paramiko.SSHClient:
            client = build_ssh_client(self.host, self.known_hosts_file, self.skip_host_key_check)
            client.connect(
                self.host,
                port=self.port,
                username=self.username,
                password=self.password or None,
                key_filename=self.private_key_file,
                timeout=self.timeout,
                banner_timeout=self.timeout,
                auth_timeout=self.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            return client

        def _get_shell() -> paramiko.Channel:
            shell = self._client.invoke_shell(term="vt100", width=512, height=24)
            shell.settimeout(self.timeout)
            return shell

        try:
            self._client = await loop.run_in_executor(None, _connect)
            self._shell = await loop.run_in_executor(None, _get_shell)
        except paramiko.AuthenticationException as e:
            await self.close()
            raise AuthenticationError(f"SSH authentication failed for {self.username}@{self.host}: {e}")
        except (paramiko.SSHException, socket.timeout, OSError, EOFError) as e:
            await self.close()
            raise RTXConnectionError(f"Failed to connect to {self.host}:{self.port}: {e}")
        logger.debug(f"SSH shell open to {self.host}:{self.port}")

    async def close(self) -> None:
        """Close SSH connection."""
        shell, client = self._shell, self._client
        self._shell = None
        self._client = None
        for resource in (shell, client):
            if resource is None:
                continue
            try:
                resource.close()
            except (paramiko.SSHException, OSError, EOFError) as e:
                logger.debug(f"Ignoring error while closing {self.host}: {e}")

    async def write(self, data: str) -> None:
        """Send raw string to shell."""
        if not self.is_open:
            raise RTXConnectionError(f"Not connected to {self.host}")
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._shell.sendall, data.encode("utf-8"))
        except (paramiko.SSHException, socket.timeout, OSError, EOFError) as e:
            raise RTXConnectionError(f"Write to {self.host} failed: {e}")

    async def read(self, timeout: float) -> str:
        """Read whatever is available within ``timeout`` seconds."""
        if not self.is_open:
            raise RTXConnectionError(f"Not connected to {self.host}")

        loop = asyncio.get_running_loop()
        shell = self._shell
        deadline = loop.time() + max(timeout, 0)

        def _recv() -> Optional[bytes]:
            if shell.recv_ready():
                return shell.recv(65535)
            if shell.closed or shell.exit_status_ready():
                return b""
            return None

        while True:
            try:
                data = await loop.run_in_executor(None, _recv)
            except (paramiko.SSHException, socket.timeout, OSError, EOFError) as e:
                raise RTXConnectionError(f"Read from {self.host} failed: {e}")
            if data == b"":
                await self.close()
                raise RTXConnectionError(f"Channel to {self.host} closed by remote")
            if data:
                text = self._decoder.decode(data)
                return ANSI_PATTERN.sub("", text)
            if loop.time() >= deadline:
                return ""
            await asyncio.sleep(POLL_INTERVAL)
