"""DNS resolver/relay settings (``dns ...``)."""
import logging
from typing import TYPE_CHECKING, Optional

from ..errors import NotFoundError
from ..session.runner import Command
from ..snapshot.records import DNSConfig, DNSServerSelect

if TYPE_CHECKING:
    from ..client import RTXClient

logger = logging.getLogger(__name__)

MAX_NAME_SERVERS = 3


def _select_line(select: DNSServerSelect) -> str:
    parts = ["dns server select", str(select.id)] + list(select.servers)
    if select.record_type:
        parts.append(select.record_type)
    parts.append(select.query_pattern or ".")
    if select.original_sender:
        parts.append(select.original_sender)
    if select.restrict_pp:
        parts += ["restrict pp", str(select.restrict_pp)]
    return " ".join(parts)


def build_dns_commands(desired: DNSConfig, current: Optional[DNSConfig] = None) -> list[str]:
    """Commands that move the router from ``current`` to ``desired``."""
    if len(desired.name_servers) > MAX_NAME_SERVERS:
        raise ValueError(f"at most {MAX_NAME_SERVERS} name servers are supported")
    current = current or DNSConfig()
    commands = []

    commands.append(f"dns domain lookup {'on' if desired.domain_lookup else 'off'}")
    if desired.domain_name:
        commands.append(f"dns domain {desired.domain_name}")
    elif current.domain_name:
        commands.append("no dns domain")
    if desired.name_servers:
        commands.append("dns server " + " ".join(desired.name_servers))
    elif current.name_servers:
        commands.append("no dns server")

    wanted_selects = {s.id for s in desired.server_select}
    for select in current.server_select:
        if select.id not in wanted_selects:
            commands.append(f"no dns server select {select.id}")
    for select in desired.server_select:
        commands.append(_select_line(select))

    wanted_hosts = {(h.record_type, h.name) for h in desired.hosts}
    for host in current.hosts:
        if (host.record_type, host.name) not in wanted_hosts:
            commands.append(f"no dns static {host.record_type} {host.name}")
    for host in desired.hosts:
        commands.append(f"dns static {host.record_type} {host.name} {host.address}")

    if desired.service:
        commands.append(f"dns service {desired.service}")
    commands.append(f"dns private address spoof {'on' if desired.private_spoof else 'off'}")
    return commands


def build_dns_delete_commands(current: DNSConfig) -> list[str]:
    commands = []
    if current.name_servers:
        commands.append("no dns server")
    if current.domain_name:
        commands.append("no dns domain")
    for select in current.server_select:
        commands.append(f"no dns server select {select.id}")
    for host in current.hosts:
        commands.append(f"no dns static {host.record_type} {host.name}")
    if current.private_spoof:
        commands.append("dns private address spoof off")
    return commands


class DNSService:
    """Singleton DNS configuration."""

    def __init__(self, client: "RTXClient"):
        self.client = client

    async def get(self) -> DNSConfig:
        config = await self.client.read_config("dns ")
        dns = config.extract_dns_server()
        if dns is None:
            raise NotFoundError("dns configuration not found", key="dns_server")
        return dns

    async def update(self, desired: DNSConfig) -> None:
        try:
            current = await self.get()
        except NotFoundError:
            current = None
        commands = build_dns_commands(desired, current)
        await self.client.run(Command("dns_server:update", "\n".join(commands)))
        await self.client.save_if_enabled()

    async def delete(self) -> None:
        current = await self.get()
        commands = build_dns_delete_commands(current)
        if not commands:
            return
        await self.client.run(Command("dns_server:delete", "\n".join(commands)))
        await self.client.save_if_enabled()
