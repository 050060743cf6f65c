"""SFTP fetcher: the secondary channel used to pull the full configuration file."""
import asyncio
import io
import logging
import posixpath
import socket
from contextlib import contextmanager
from typing import Iterator, Optional

import paramiko

from .ssh import build_ssh_client
from ..errors import AuthenticationError, SFTPError

logger = logging.getLogger(__name__)

# Router config files are written in the console character set
ENCODINGS = ("utf-8", "cp932")


def decode_config(data: bytes) -> str:
    """Decode a configuration file, trying UTF-8 first and then Shift_JIS."""
    for encoding in ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    return data.decode("utf-8", errors="replace")


def _norm_remote(path: str) -> str:
    path = (path or "").replace("\\", "/")
    if not path.startswith("/"):
        path = "/" + path
    return posixpath.normpath(path)


class SFTPFetcher:
    """Downloads files from the router into memory over SFTP.

    Each fetch opens and closes its own SSH transport so the interactive
    shell session is never disturbed.
    """

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
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def _sftp_open(self) -> Iterator[paramiko.SFTPClient]:
        """Yield a connected SFTP client. Always closes cleanly."""
        client = build_ssh_client(self.host, self.known_hosts_file, self.skip_host_key_check)
        sftp = None
        try:
            client.connect(
                self.host,
                port=int(self.port),
                username=self.username,
                password=self.password or None,
                key_filename=self.private_key_file,
                timeout=self.timeout,
                banner_timeout=self.timeout,
                auth_timeout=self.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            sftp = client.open_sftp()
            sftp.get_channel().settimeout(self.timeout)
            yield sftp
        finally:
            try:
                if sftp:
                    sftp.close()
            finally:
                client.close()

    async def fetch(self, remote_path: str) -> str:
        """Download ``remote_path`` and return it as text."""
        if self._closed:
            raise SFTPError("SFTP fetcher is closed")

        path = _norm_remote(remote_path)

        def _download() -> bytes:
            buffer = io.BytesIO()
            with self._sftp_open() as sftp:
                sftp.getfo(path, buffer)
            return buffer.getvalue()

        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, _download)
        except paramiko.AuthenticationException as e:
            raise AuthenticationError(f"SFTP authentication failed for {self.username}@{self.host}: {e}")
        except FileNotFoundError as e:
            raise SFTPError(f"Remote file not found: {path}: {e}")
        except (paramiko.SSHException, socket.timeout, OSError, EOFError) as e:
            raise SFTPError(f"SFTP download of {path} from {self.host} failed: {e}")

        logger.debug(f"Fetched {len(data)} bytes from {self.host}:{path}")
        return decode_config(data)

    def close(self) -> None:
        self._closed = True
