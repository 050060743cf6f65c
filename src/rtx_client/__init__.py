"""Command/session engine and configuration snapshot reader for Yamaha RTX routers."""
from .client import RTXClient
from .config import RouterConfig, RouterInventory
from .errors import (
    AuthenticationError,
    CommandError,
    CommandTimeout,
    ErrorClass,
    NotFoundError,
    ParseError,
    PrivilegeError,
    RouterBusyError,
    RTXConnectionError,
    RTXError,
    SFTPError,
    classify_output,
    is_not_found,
)
from .session import Command, SessionState
from .snapshot import ParsedConfig, parse_config

__version__ = "0.1.0"

__all__ = [
    "AuthenticationError",
    "Command",
    "CommandError",
    "CommandTimeout",
    "ErrorClass",
    "NotFoundError",
    "ParseError",
    "ParsedConfig",
    "PrivilegeError",
    "RTXClient",
    "RTXConnectionError",
    "RTXError",
    "RouterBusyError",
    "RouterConfig",
    "RouterInventory",
    "SFTPError",
    "SessionState",
    "classify_output",
    "is_not_found",
    "parse_config",
]
