"""Router inventory management from YAML configuration.

```yaml
defaults:
  username: admin
  password_env: RTX_PASSWORD
  use_sftp: true

routers:
  rtx-home:
    host: 192.168.1.1
  rtx-office:
    host: 10.0.0.1
    port: 2222
```
"""
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import yaml

from .settings import RouterConfig

if TYPE_CHECKING:
    from ..client import RTXClient

logger = logging.getLogger(__name__)


class RouterInventory:
    """Manages the router inventory loaded from YAML config."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._find_config()
        self._config: dict = {}
        self._clients: dict[str, "RTXClient"] = {}
        self._load_config()

    def _find_config(self) -> str:
        """Find the routers.yaml config file."""
        search_paths = [
            Path.cwd() / "configs" / "routers.yaml",
            Path.cwd() / "routers.yaml",
            Path.home() / ".config" / "rtx-client" / "routers.yaml",
            Path("/etc/rtx-client/routers.yaml"),
        ]

        for path in search_paths:
            if path.exists():
                return str(path)

        raise FileNotFoundError(
            "Could not find routers.yaml. Create one in ./configs/routers.yaml"
        )

    def _load_config(self) -> None:
        """Load the YAML configuration."""
        with open(self.config_path) as f:
            self._config = yaml.safe_load(f) or {}

        routers = self._config.get("routers") or {}
        if not isinstance(routers, dict):
            raise ValueError(f"{self.config_path}: 'routers' must be a mapping")

        # Apply defaults
        defaults = self._config.get("defaults", {}) or {}
        for router_id, router_config in routers.items():
            if router_config is None:
                router_config = routers[router_id] = {}
            for key, value in defaults.items():
                if key not in router_config:
                    router_config[key] = value
        self._config["routers"] = routers

    def get_router_ids(self) -> list[str]:
        """Get all router IDs."""
        return list(self._config.get("routers", {}).keys())

    def get_router_config(self, router_id: str) -> RouterConfig:
        """Get validated settings for a router."""
        routers = self._config.get("routers", {})
        if router_id not in routers:
            raise KeyError(f"Unknown router: {router_id}")
        config = RouterConfig.from_dict(router_id, dict(routers[router_id]))
        config.validate()
        return config

    def get_client(self, router_id: str) -> "RTXClient":
        """Get or create the client for a router."""
        from ..client import RTXClient

        if router_id not in self._clients:
            self._clients[router_id] = RTXClient(self.get_router_config(router_id))
        return self._clients[router_id]

    async def close_all(self) -> None:
        """Close all router sessions."""
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
