"""Static routes (``ip route``)."""
import logging
from typing import TYPE_CHECKING

from ..errors import NotFoundError
from ..session.runner import Command
from ..snapshot.extractors import normalize_destination, route_destination
from ..snapshot.records import NextHop, StaticRoute

if TYPE_CHECKING:
    from ..client import RTXClient

logger = logging.getLogger(__name__)


def build_hop(hop: NextHop) -> str:
    if hop.interface:
        parts = ["gateway", hop.interface]
    elif hop.next_hop:
        parts = ["gateway", hop.next_hop]
    else:
        raise ValueError("next hop needs an address or an interface")
    if hop.distance and hop.distance != 1:
        parts += ["weight", str(hop.distance)]
    if hop.filter:
        parts += ["filter", str(hop.filter)]
    if hop.permanent:
        parts.append("hide")
    return " ".join(parts)


def build_route_command(route: StaticRoute) -> str:
    """One ``ip route`` line carrying every next hop (ECMP)."""
    if not route.next_hops:
        raise ValueError(f"static route {route.route_id} has no next hop")
    dest = route_destination(route.prefix, route.mask)
    return f"ip route {dest} " + " ".join(build_hop(hop) for hop in route.next_hops)


def build_route_delete_command(prefix: str, mask: str) -> str:
    return f"no ip route {route_destination(prefix, mask)}"


class StaticRouteService:
    """CRUD for static routes."""

    def __init__(self, client: "RTXClient"):
        self.client = client

    async def get(self, prefix: str, mask: str) -> StaticRoute:
        """Look up one route by destination.

        Raises:
            NotFoundError: no route for this destination
        """
        prefix, mask = normalize_destination(route_destination(prefix, mask))
        dest = route_destination(prefix, mask)
        config = await self.client.read_config(f"ip route {dest} ")
        for route in config.extract_static_routes():
            if route.prefix == prefix and route.mask == mask:
                return route
        raise NotFoundError(f"static route {prefix}/{mask} not found", key="static_route")

    async def list_all(self) -> list[StaticRoute]:
        config = await self.client.read_config("ip route ")
        return config.extract_static_routes()

    async def create(self, route: StaticRoute) -> None:
        command = build_route_command(route)
        logger.info(f"{self.client.router_id}: configuring static route {route.route_id}")
        await self.client.run(Command(f"static_route:{route.route_id}", command))
        await self.client.save_if_enabled()

    async def update(self, route: StaticRoute) -> None:
        # The router replaces the whole line, so an update drops hops not listed
        await self.create(route)

    async def delete(self, prefix: str, mask: str) -> None:
        route = await self.get(prefix, mask)
        logger.info(f"{self.client.router_id}: removing static route {route.route_id}")
        await self.client.run(Command(
            f"static_route:{route.route_id}:delete",
            build_route_delete_command(route.prefix, route.mask),
        ))
        await self.client.save_if_enabled()
