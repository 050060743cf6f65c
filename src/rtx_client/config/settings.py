"""Connection settings for one router."""
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Optional

logger = logging.getLogger(__name__)

TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class RouterConfig:
    """Configuration for a Yamaha RTX router."""
    host: str
    username: str
    port: int = 22
    name: str = ""
    password: Optional[str] = None
    password_env: str = "RTX_PASSWORD"
    admin_password: Optional[str] = None
    admin_password_env: str = "RTX_ADMIN_PASSWORD"
    timeout: float = 30
    command_timeout: float = 60
    # Retry policy
    max_attempts: int = 3
    retry_base_delay: float = 0.1
    retry_max_delay: float = 10
    retry_jitter: float = 0.1
    # Snapshot channel
    use_sftp: bool = False
    sftp_config_path: str = ""
    # SSH
    skip_host_key_check: bool = False
    known_hosts_file: Optional[str] = "~/.ssh/known_hosts"
    private_key_file: Optional[str] = None
    # Behaviour
    escalate_on_dial: bool = False
    auto_save: bool = True
    extra: dict = field(default_factory=dict)

    @property
    def router_id(self) -> str:
        return self.name or self.host

    def get_password(self) -> str:
        """Get password from config or environment variable."""
        if self.password:
            return self.password
        return os.environ.get(self.password_env, "")

    def get_admin_password(self) -> str:
        """Admin password from config, environment, then the login password."""
        if self.admin_password:
            return self.admin_password
        return os.environ.get(self.admin_password_env, "") or self.get_password()

    def validate(self) -> None:
        """Raise ValueError if the settings cannot work."""
        if not self.host:
            raise ValueError("host is required")
        if not self.username:
            raise ValueError("username is required")
        if not 1 <= int(self.port) <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")
        if self.timeout <= 0 or self.command_timeout <= 0:
            raise ValueError("timeouts must be positive")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "RouterConfig":
        """Build from an inventory entry; unknown keys are kept in ``extra``."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        extra = {}
        for key, value in data.items():
            if key in known and key != "extra":
                kwargs[key] = value
            else:
                extra[key] = value
        if extra:
            logger.warning(f"Router {name}: ignoring unknown settings {sorted(extra)}")
        kwargs.setdefault("name", name)
        if "host" not in kwargs or "username" not in kwargs:
            raise ValueError(f"Router {name}: host and username are required")
        return cls(extra=extra, **kwargs)

    @classmethod
    def from_env(cls) -> "RouterConfig":
        """Build from RTX_* environment variables."""
        config = cls(
            host=os.environ.get("RTX_HOST", ""),
            username=os.environ.get("RTX_USERNAME", ""),
            port=_env_int("RTX_PORT", 22),
            timeout=_env_int("RTX_TIMEOUT", 30),
            max_attempts=_env_int("RTX_MAX_ATTEMPTS", 3),
            use_sftp=_env_bool("RTX_USE_SFTP"),
            sftp_config_path=os.environ.get("RTX_SFTP_CONFIG_PATH", ""),
            skip_host_key_check=_env_bool("RTX_SKIP_HOST_KEY_CHECK"),
            known_hosts_file=os.environ.get("RTX_KNOWN_HOSTS_FILE", "~/.ssh/known_hosts"),
            private_key_file=os.environ.get("RTX_PRIVATE_KEY_FILE") or None,
        )
        config.validate()
        return config
