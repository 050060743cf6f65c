"""RTX router client: one session, serialized commands, cached snapshot reads.

Usage:
    config = RouterConfig(host="192.168.1.1", username="admin", password="...")
    async with RTXClient(config) as client:
        info = await client.get_system_info()
        await client.run("ip route 10.0.0.0/8 gateway 192.168.1.254")
"""
import asyncio
import logging
from typing import Callable, Optional, Protocol, Union

from .config.settings import RouterConfig
from .errors import (
    AuthenticationError,
    CommandError,
    RTXConnectionError,
    RTXError,
    SFTPError,
    classify_output,
)
from .services import DNSService, IPFilterService, StaticRouteService, SystemService
from .session.auth import Authenticator
from .session.prompt import PromptDetector
from .session.runner import Command, CommandRunner
from .session.state import SessionState, SessionStateMachine
from .snapshot.cache import SnapshotCache
from .snapshot.parser import ConfigFileParser, ParsedConfig
from .snapshot.records import DNSConfig, InterfaceConfig, IPFilter, Route, StaticRoute, SystemInfo
from .snapshot.resolver import ConfigPathResolver
from .transport.base import Transport
from .transport.sftp import SFTPFetcher
from .transport.ssh import SSHTransport
from .utils.logging_config import sanitize, timed
from .utils.retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)

# Upper bound for the polite logout dialog in close()
LOGOUT_TIMEOUT = 5


class Fetcher(Protocol):
    async def fetch(self, remote_path: str) -> str: ...

    def close(self) -> None: ...


def ssh_transport(config: RouterConfig) -> Transport:
    return SSHTransport(
        config.host,
        config.port,
        config.username,
        config.get_password(),
        timeout=config.timeout,
        private_key_file=config.private_key_file,
        known_hosts_file=config.known_hosts_file,
        skip_host_key_check=config.skip_host_key_check,
    )


def sftp_fetcher(config: RouterConfig) -> Fetcher:
    return SFTPFetcher(
        config.host,
        config.port,
        config.username,
        config.get_password(),
        timeout=config.timeout,
        private_key_file=config.private_key_file,
        known_hosts_file=config.known_hosts_file,
        skip_host_key_check=config.skip_host_key_check,
    )


class RTXClient:
    """Facade over one router session.

    Owns the transport, the session state and the snapshot cache. All
    commands pass through a single gate so at most one is in flight.
    """

    def __init__(
        self,
        config: RouterConfig,
        transport_factory: Optional[Callable[[RouterConfig], Transport]] = None,
        fetcher_factory: Optional[Callable[[RouterConfig], Fetcher]] = None,
        detector: Optional[PromptDetector] = None,
    ):
        self.config = config
        self.router_id = config.router_id
        self.retry_policy = RetryPolicy(
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
            max_attempts=config.max_attempts,
            jitter=config.retry_jitter,
        )
        self._transport_factory = transport_factory or ssh_transport
        self._fetcher_factory = fetcher_factory or sftp_fetcher
        self._detector = detector or PromptDetector()
        self._session = SessionStateMachine(self.router_id)
        self._gate = asyncio.Lock()
        self._transport: Optional[Transport] = None
        self._runner: Optional[CommandRunner] = None
        self._auth: Optional[Authenticator] = None
        self._fetcher: Optional[Fetcher] = None
        self._parser = ConfigFileParser()
        self._resolver = ConfigPathResolver(self.run, router_id=self.router_id)
        self.cache = SnapshotCache(self._fetch_snapshot, parser=self._parser, router_id=self.router_id)

        self.system = SystemService(self)
        self.static_routes = StaticRouteService(self)
        self.ip_filters = IPFilterService(self)
        self.dns = DNSService(self)

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def is_privileged(self) -> bool:
        return self._session.is_privileged

    @property
    def is_connected(self) -> bool:
        return self._session.state in (SessionState.AUTHENTICATED, SessionState.PRIVILEGED, SessionState.BUSY)

    async def __aenter__(self) -> "RTXClient":
        await self.dial()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # === Session lifecycle ===

    @with_retry()
    @timed("dial")
    async def dial(self) -> None:
        """Connect and log in. Transient failures are retried per policy.

        Raises:
            AuthenticationError: credentials rejected (session ends Closed)
            RTXConnectionError: router unreachable after all attempts
        """
        async with self._gate:
            await self._dial_locked()

    async def _dial_locked(self) -> None:
        if self._session.is_ready:
            return
        self._session.transition(SessionState.CONNECTING)
        transport = self._transport_factory(self.config)
        logger.info(f"Connecting to {self.router_id} at {self.config.host}:{self.config.port}")

        try:
            state = await asyncio.wait_for(self._open_session(transport), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            await self._discard(transport)
            self._session.drop()
            raise RTXConnectionError(
                f"{self.router_id}: not authenticated within {self.config.timeout}s"
            )
        except AuthenticationError:
            await self._discard(transport)
            self._session.close()
            raise
        except BaseException:
            await self._discard(transport)
            self._session.drop()
            raise

        self._session.transition(state)
        logger.info(f"Connected to {self.router_id} ({state.value})")

    async def _open_session(self, transport: Transport) -> SessionState:
        await transport.connect()
        runner = CommandRunner(
            transport,
            self._detector,
            router_id=self.router_id,
            default_timeout=self.config.command_timeout,
        )
        auth = Authenticator(
            runner,
            self.config.username,
            self.config.get_password(),
            self.config.get_admin_password(),
            router_id=self.router_id,
            timeout=self.config.timeout,
        )
        state = await auth.login()
        self._transport, self._runner, self._auth = transport, runner, auth
        await auth.setup_session()
        if state is SessionState.AUTHENTICATED and self.config.escalate_on_dial:
            state = await auth.escalate()
        return state

    async def _discard(self, transport: Optional[Transport] = None) -> None:
        transport = transport or self._transport
        if transport is not None:
            await transport.close()
        self._transport = self._runner = self._auth = None

    async def _escalate_locked(self) -> None:
        try:
            state = await self._auth.escalate()
        except AuthenticationError:
            # The shell may be parked at a password prompt; nothing to salvage
            await self._discard()
            self._session.close()
            raise
        except RTXConnectionError:
            await self._discard()
            self._session.drop()
            raise
        self._session.transition(state)

    async def close(self) -> None:
        """End the session. Idempotent; never raises."""
        if self._session.state is SessionState.CLOSED and self._transport is None:
            return

        if self._gate.locked():
            # A command is in flight; tearing down the channel aborts it
            logger.warning(f"{self.router_id}: closing while a command is running")
            await self._discard()
            self._session.close()
        else:
            async with self._gate:
                if self._auth is not None and self._session.is_ready:
                    try:
                        await asyncio.wait_for(
                            self._auth.logout(self._session.is_privileged), timeout=LOGOUT_TIMEOUT,
                        )
                    except (RTXError, asyncio.TimeoutError) as e:
                        logger.debug(f"{self.router_id}: logout incomplete: {e}")
                await self._discard()
                self._session.close()

        if self._fetcher is not None:
            self._fetcher.close()
            self._fetcher = None
        self.cache.invalidate()
        logger.info(f"Disconnected from {self.router_id}")

    # === Commands ===

    @with_retry()
    async def run(
        self,
        command: Union[Command, str],
        timeout: Optional[float] = None,
        check: Optional[bool] = None,
    ) -> str:
        """Run a command and return its output.

        Args:
            command: Command or plain command line
            timeout: Read timeout override (seconds)
            check: Raise classified errors found in the output. Defaults to
                whether the command mutates router state; read output is
                returned as is

        Raises:
            CommandError, NotFoundError, PrivilegeError: router rejected the command
            CommandTimeout, RTXConnectionError: after all retry attempts
        """
        cmd = Command.of(command)
        async with self._gate:
            return await self._run_locked(cmd, timeout, check)

    async def _run_locked(self, cmd: Command, timeout: Optional[float], check: Optional[bool]) -> str:
        if self._session.state is SessionState.CLOSED:
            raise RTXError(f"{self.router_id}: session is closed", key=cmd.key)
        if self._session.state is SessionState.DISCONNECTED:
            await self._dial_locked()
        if cmd.requires_privilege and not self._session.is_privileged:
            await self._escalate_locked()

        logger.debug(f"{self.router_id}: run [{cmd.key}] {sanitize(cmd.payload)}")
        self._session.begin_command()
        try:
            output = await self._runner.execute(cmd, timeout)
        except RTXError as e:
            if e.key is None:
                e.key = cmd.key
            if isinstance(e, RTXConnectionError):
                await self._discard()
                self._session.drop()
            raise
        finally:
            self._session.end_command()
            if cmd.mutates:
                self.cache.invalidate()

        if check is None:
            check = cmd.mutates
        if check:
            error = classify_output(output, key=cmd.key)
            if error is not None:
                raise error
        return output

    async def save_config(self) -> None:
        """Persist the running configuration."""
        await self.run(Command("save", "save", privileged=True))

    async def save_if_enabled(self) -> None:
        if self.config.auto_save:
            await self.save_config()

    # === Snapshot ===

    def sftp_enabled(self) -> bool:
        return self.config.use_sftp

    async def _fetch_snapshot(self) -> str:
        path = self.config.sftp_config_path or await self._resolver.resolve()
        if self._fetcher is None:
            self._fetcher = self._fetcher_factory(self.config)
        return await self._fetcher.fetch(path)

    async def get_cached_config(self) -> ParsedConfig:
        """Parsed full configuration, fetched at most once between writes.

        Raises:
            SFTPError: snapshot channel disabled or unavailable
        """
        if not self.sftp_enabled():
            raise SFTPError(f"{self.router_id}: SFTP snapshot channel is disabled")
        return await self.cache.get_cached()

    def invalidate_cache(self) -> None:
        self.cache.invalidate()

    async def query_config(self, *patterns: str) -> ParsedConfig:
        """Parse ``show config`` filtered by grep patterns (direct read path).

        The result is never stored in the snapshot cache.
        """
        if not patterns:
            output = await self.run(Command("show_config", "show config"), check=False)
        else:
            outputs = []
            for pattern in patterns:
                quoted = pattern.replace('"', "")
                output = await self.run(
                    Command(f"show_config:{quoted.strip()}", f'show config | grep "{quoted}"'), check=False,
                )
                outputs.append(output)
            output = "\n".join(outputs)
        first_line = output.split("\n", 1)[0]
        error = classify_output(first_line)
        if isinstance(error, CommandError):
            raise error
        return self._parser.parse(output)

    async def read_config(self, *patterns: str) -> ParsedConfig:
        """Snapshot if available, otherwise a direct filtered query."""
        if self.sftp_enabled():
            try:
                return await self.get_cached_config()
            except (RTXConnectionError, AuthenticationError) as e:
                logger.warning(f"{self.router_id}: snapshot unavailable, using direct query: {e}")
        return await self.query_config(*patterns)

    # === Feature operations ===

    async def get_system_info(self) -> SystemInfo:
        return await self.system.get_system_info()

    async def get_routes(self) -> list[Route]:
        return await self.system.get_routes()

    async def get_interfaces(self) -> list[InterfaceConfig]:
        config = await self.read_config("ip lan", "ip bridge", "description ", "ethernet ")
        return config.extract_interfaces()

    async def get_static_route(self, prefix: str, mask: str) -> StaticRoute:
        return await self.static_routes.get(prefix, mask)

    async def list_static_routes(self) -> list[StaticRoute]:
        return await self.static_routes.list_all()

    async def create_static_route(self, route: StaticRoute) -> None:
        await self.static_routes.create(route)

    async def update_static_route(self, route: StaticRoute) -> None:
        await self.static_routes.update(route)

    async def delete_static_route(self, prefix: str, mask: str) -> None:
        await self.static_routes.delete(prefix, mask)

    async def get_ip_filter(self, number: int) -> IPFilter:
        return await self.ip_filters.get(number)

    async def list_ip_filters(self) -> list[IPFilter]:
        return await self.ip_filters.list_all()

    async def create_ip_filter(self, ip_filter: IPFilter) -> None:
        await self.ip_filters.create(ip_filter)

    async def update_ip_filter(self, ip_filter: IPFilter) -> None:
        await self.ip_filters.update(ip_filter)

    async def delete_ip_filter(self, number: int) -> None:
        await self.ip_filters.delete(number)

    async def get_dns_server(self) -> DNSConfig:
        return await self.dns.get()

    async def update_dns_server(self, config: DNSConfig) -> None:
        await self.dns.update(config)

    async def delete_dns_server(self) -> None:
        await self.dns.delete()
