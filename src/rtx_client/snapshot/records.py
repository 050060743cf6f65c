"""Typed records extracted from a router configuration.

Absent numeric fields are 0, absent booleans False, absent strings "".
"""
from dataclasses import asdict, dataclass, field
from typing import Optional


@dataclass
class InterfaceConfig:
    """Layer-3 settings of a LAN/bridge interface."""
    name: str
    description: str = ""
    ip_address: str = ""  # "a.b.c.d/nn" or "dhcp"
    secure_filter_in: list[int] = field(default_factory=list)
    secure_filter_out: list[int] = field(default_factory=list)
    dynamic_filter_out: list[int] = field(default_factory=list)
    ethernet_filter_in: list[int] = field(default_factory=list)
    ethernet_filter_out: list[int] = field(default_factory=list)
    nat_descriptor: int = 0
    proxyarp: bool = False
    mtu: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class NextHop:
    """One gateway of a static route."""
    next_hop: str = ""  # gateway address, empty for interface hops
    interface: str = ""  # "pp 1", "tunnel 2", "dhcp lan2", "null", "loopback"
    distance: int = 1  # RTX "weight"
    filter: int = 0
    permanent: bool = False  # RTX "hide"
    name: str = ""


@dataclass
class StaticRoute:
    """Static route; several next hops mean ECMP."""
    prefix: str
    mask: str
    next_hops: list[NextHop] = field(default_factory=list)

    @property
    def route_id(self) -> str:
        return f"{self.prefix}/{self.mask}"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class IPFilter:
    number: int
    action: str
    source_address: str
    dest_address: str = ""
    protocol: str = ""
    source_port: str = ""
    dest_port: str = ""
    established: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DynamicFilter:
    number: int
    source: str
    destination: str
    protocol: str
    syslog: bool = False
    options: str = ""


@dataclass
class DNSServerSelect:
    id: int
    servers: list[str] = field(default_factory=list)
    record_type: str = ""
    query_pattern: str = ""
    original_sender: str = ""
    restrict_pp: int = 0


@dataclass
class DNSHost:
    name: str
    address: str
    record_type: str = "a"


@dataclass
class DNSConfig:
    domain_lookup: bool = True
    domain_name: str = ""
    name_servers: list[str] = field(default_factory=list)
    server_select: list[DNSServerSelect] = field(default_factory=list)
    hosts: list[DNSHost] = field(default_factory=list)
    service: str = ""  # "on", "off", "recursive"
    private_spoof: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SyslogHost:
    address: str
    port: int = 0


@dataclass
class SyslogConfig:
    hosts: list[SyslogHost] = field(default_factory=list)
    local_address: str = ""
    facility: str = ""
    notice: bool = False
    info: bool = False
    debug: bool = False


@dataclass
class PacketBuffer:
    size: str  # small, middle, large
    max_buffer: int = 0
    max_free: int = 0


@dataclass
class SystemConfig:
    timezone: str = ""
    console_character: str = ""
    console_lines: str = ""
    console_prompt: str = ""
    packet_buffers: list[PacketBuffer] = field(default_factory=list)
    statistics_traffic: bool = False
    statistics_nat: bool = False


@dataclass
class AdminConfig:
    login_password: str = ""
    login_password_encrypted: bool = False
    admin_password: str = ""
    admin_password_encrypted: bool = False


@dataclass
class AdminUser:
    username: str
    password: str = ""
    encrypted: bool = False
    administrator: bool = False
    connections: list[str] = field(default_factory=list)
    gui_pages: list[str] = field(default_factory=list)
    login_timer: int = 0


@dataclass
class DHCPBinding:
    address: str
    mac_address: str = ""
    client_id: bool = False


@dataclass
class DHCPScope:
    scope_id: int
    range_start: str
    range_end: str
    prefix_length: int = 0
    gateway: str = ""
    dns_servers: list[str] = field(default_factory=list)
    expire: str = ""
    max_expire: str = ""
    bindings: list[DHCPBinding] = field(default_factory=list)


@dataclass
class NATStaticEntry:
    entry: int
    inside_address: str
    protocol: str = ""
    outside_port: str = ""
    inside_port: str = ""


@dataclass
class NATMasquerade:
    descriptor_id: int
    outer_address: str = ""
    inner_network: str = ""
    static_entries: list[NATStaticEntry] = field(default_factory=list)


@dataclass
class ServiceConfig:
    """Management daemon (httpd, sshd, sftpd, telnetd)."""
    name: str
    enabled: bool = False
    hosts: list[str] = field(default_factory=list)


@dataclass
class TunnelConfig:
    tunnel_id: int
    description: str = ""
    encapsulation: str = ""
    ipsec_tunnel_id: int = 0
    remote_endpoint: str = ""
    enabled: bool = False


@dataclass
class SystemInfo:
    """Hardware and firmware identity from ``show environment``."""
    model: str = ""
    firmware_version: str = ""
    serial_number: str = ""
    mac_address: str = ""
    uptime: str = ""
    config_file: Optional[str] = None


@dataclass
class Route:
    """One row of the live routing table (``show ip route``)."""
    destination: str
    gateway: str = ""
    interface: str = ""
    protocol: str = ""
    metric: int = 0
