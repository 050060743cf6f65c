"""Router identity and live routing table."""
import logging
import re
from typing import TYPE_CHECKING

from ..snapshot.records import Route, SystemInfo
from ..session.runner import Command
from ..snapshot.resolver import parse_config_path

if TYPE_CHECKING:
    from ..client import RTXClient

logger = logging.getLogger(__name__)

MODEL_PATTERN = re.compile(r"((?:RTX|NVR)\d+\w*)\s+Rev\.")
FIRMWARE_PATTERN = re.compile(r"(?:RTX|NVR)\d+\w*\s+Rev\.([\d.]+)")
SERIAL_PATTERN = re.compile(r"serial=([A-Z0-9]+)", re.IGNORECASE)
MAC_PATTERN = re.compile(r"MAC-Address=([0-9a-fA-F:]+)")
UPTIME_PATTERN = re.compile(r"(?:Elapsed time from boot|起動からの経過時間)\s*:\s*(.+)")

# "S   0.0.0.0/0   via 192.168.1.1   dev LAN1 metric 1"
COMPACT_ROUTE = re.compile(
    r"^([SCROBPD])\s+(\S+)\s+(?:via\s+(\S+))?\s*(?:dev\s+(\S+))?\s*(?:metric\s+(\d+))?"
)


def parse_system_info(output: str) -> SystemInfo:
    """Parse ``show environment`` output."""
    info = SystemInfo()

    model_match = MODEL_PATTERN.search(output)
    if model_match:
        info.model = model_match.group(1)
    firmware_match = FIRMWARE_PATTERN.search(output)
    if firmware_match:
        info.firmware_version = firmware_match.group(1)
    serial_match = SERIAL_PATTERN.search(output)
    if serial_match:
        info.serial_number = serial_match.group(1)
    mac_match = MAC_PATTERN.search(output)
    if mac_match:
        info.mac_address = mac_match.group(1).lower()
    uptime_match = UPTIME_PATTERN.search(output)
    if uptime_match:
        info.uptime = uptime_match.group(1).strip()

    info.config_file = parse_config_path(output)
    return info


def _is_destination(token: str) -> bool:
    return token == "default" or bool(re.match(r"^\d+\.\d+\.\d+\.\d+(?:/\d+)?$", token))


def parse_routes(output: str) -> list[Route]:
    """Parse ``show ip route`` in either the compact or the tabular layout."""
    routes = []
    for line in output.split("\n"):
        line = line.strip()
        if not line:
            continue

        match = COMPACT_ROUTE.match(line)
        if match and _is_destination(match.group(2)):
            routes.append(Route(
                destination=match.group(2),
                gateway=match.group(3) or "*",
                interface=match.group(4) or "",
                protocol=match.group(1),
                metric=int(match.group(5)) if match.group(5) else 0,
            ))
            continue

        words = line.split()
        if len(words) < 4 or not _is_destination(words[0]):
            continue  # header or footer
        metric = 0
        for extra in words[4:]:
            value = extra.split("=", 1)[-1]
            if value.isdigit():
                metric = int(value)
                break
        gateway = words[1]
        routes.append(Route(
            destination=words[0],
            gateway="*" if gateway == "-" else gateway,
            interface=words[2],
            protocol=words[3],
            metric=metric,
        ))
    return routes


class SystemService:
    """Read-only queries about the router itself."""

    def __init__(self, client: "RTXClient"):
        self.client = client

    async def get_system_info(self) -> SystemInfo:
        output = await self.client.run(Command("system_info", "show environment"))
        info = parse_system_info(output)
        if not info.model:
            logger.warning(f"{self.client.router_id}: model not found in show environment output")
        return info

    async def get_routes(self) -> list[Route]:
        output = await self.client.run(Command("routes", "show ip route"))
        return parse_routes(output)
