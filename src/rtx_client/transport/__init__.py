"""Channels to the router: interactive shell and file transfer."""
from .base import Transport
from .sftp import SFTPFetcher
from .ssh import SSHTransport

__all__ = ["Transport", "SSHTransport", "SFTPFetcher"]
