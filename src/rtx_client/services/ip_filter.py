"""Static IP filters (``ip filter N ...``)."""
import logging
from typing import TYPE_CHECKING

from ..errors import NotFoundError
from ..session.runner import Command
from ..snapshot.records import IPFilter

if TYPE_CHECKING:
    from ..client import RTXClient

logger = logging.getLogger(__name__)

FILTER_ACTIONS = (
    "pass", "reject", "restrict",
    "pass-log", "reject-log", "restrict-log",
    "pass-nolog", "reject-nolog", "restrict-nolog",
)


def build_filter_command(ip_filter: IPFilter) -> str:
    if ip_filter.number <= 0:
        raise ValueError("filter number must be positive")
    if ip_filter.action not in FILTER_ACTIONS:
        raise ValueError(f"unknown filter action {ip_filter.action!r}")
    if not ip_filter.source_address:
        raise ValueError("filter needs a source address")

    protocol = ip_filter.protocol
    if ip_filter.established and not protocol:
        protocol = "established"
    fields = [
        ip_filter.source_address,
        ip_filter.dest_address,
        protocol,
        ip_filter.source_port,
        ip_filter.dest_port,
    ]
    # Trailing unset fields are omitted, gaps become wildcards
    while fields and not fields[-1]:
        fields.pop()
    fields = [value or "*" for value in fields]
    return f"ip filter {ip_filter.number} {ip_filter.action} " + " ".join(fields)


class IPFilterService:
    """CRUD for numbered IP filters."""

    def __init__(self, client: "RTXClient"):
        self.client = client

    async def get(self, number: int) -> IPFilter:
        config = await self.client.read_config(f"ip filter {number} ")
        for ip_filter in config.extract_ip_filters():
            if ip_filter.number == number:
                return ip_filter
        raise NotFoundError(f"ip filter {number} not found", key="ip_filter")

    async def list_all(self) -> list[IPFilter]:
        config = await self.client.read_config("ip filter ")
        return config.extract_ip_filters()

    async def create(self, ip_filter: IPFilter) -> None:
        command = build_filter_command(ip_filter)
        await self.client.run(Command(f"ip_filter:{ip_filter.number}", command))
        await self.client.save_if_enabled()

    async def update(self, ip_filter: IPFilter) -> None:
        await self.create(ip_filter)

    async def delete(self, number: int) -> None:
        await self.get(number)
        await self.client.run(Command(f"ip_filter:{number}:delete", f"no ip filter {number}"))
        await self.client.save_if_enabled()
