"""Find the path of the active configuration file on the router."""
import logging
import re
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/system/config0"

CONFIG_FILE_PATTERNS = [
    re.compile(r"Default config file:\s*(config\d+)", re.IGNORECASE),
    re.compile(r"デフォルト設定ファイル:\s*(config\d+)"),
]


def parse_config_path(environment: str) -> Optional[str]:
    """Extract ``/system/configN`` from ``show environment`` output."""
    for pattern in CONFIG_FILE_PATTERNS:
        match = pattern.search(environment)
        if match:
            return f"/system/{match.group(1)}"
    return None


class ConfigPathResolver:
    """Resolves and remembers the configuration file path.

    Args:
        run: Coroutine function that runs a read-only command and returns its output
        router_id: Used in log lines only
    """

    def __init__(self, run: Callable[[str], Awaitable[str]], router_id: str = ""):
        self._run = run
        self.router_id = router_id
        self._path: Optional[str] = None

    async def resolve(self) -> str:
        if self._path is not None:
            return self._path
        output = await self._run("show environment")
        path = parse_config_path(output)
        if path is None:
            logger.warning(f"{self.router_id}: default config file not reported, using {DEFAULT_CONFIG_PATH}")
            path = DEFAULT_CONFIG_PATH
        self._path = path
        return path
