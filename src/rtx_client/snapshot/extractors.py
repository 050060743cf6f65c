"""Per-feature parsers over configuration lines.

Each parser receives the ParsedCommand objects selected by ParsedConfig and
returns records in order of first appearance. Lines a parser does not
recognize are skipped. A line that names a feature but breaks its grammar
raises ParseError with the line number.
"""
import ipaddress
import re
from typing import TYPE_CHECKING, Iterable, Optional

from ..errors import ParseError
from .records import (
    AdminConfig,
    AdminUser,
    DHCPBinding,
    DHCPScope,
    DNSConfig,
    DNSHost,
    DNSServerSelect,
    DynamicFilter,
    InterfaceConfig,
    IPFilter,
    NATMasquerade,
    NATStaticEntry,
    NextHop,
    PacketBuffer,
    ServiceConfig,
    StaticRoute,
    SyslogConfig,
    SyslogHost,
    SystemConfig,
    TunnelConfig,
)

if TYPE_CHECKING:
    from .parser import ParsedCommand

Lines = Iterable["ParsedCommand"]

INTERFACE_RE = re.compile(r"^(?:lan\d+(?:/\d+)?|bridge\d+|vlan\d+)$")
MAC_RE = re.compile(r"^(?:[0-9a-fA-F]{2}[:-]){5}[0-9a-fA-F]{2}$")


def is_interface(word: str) -> bool:
    return bool(INTERFACE_RE.match(word))


def _malformed(cmd: "ParsedCommand", message: str) -> ParseError:
    return ParseError(message, line_number=cmd.line_number, line=cmd.line)


def _int(value: str, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _on(value: str) -> bool:
    return value.lower() in ("on", "yes", "enable", "true")


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _looks_like_address(value: str) -> bool:
    head = value.split("/", 1)[0]
    try:
        ipaddress.ip_address(head)
    except ValueError:
        return False
    return True


def _options(words: list[str]) -> dict[str, str]:
    """Collect key=value tokens."""
    result = {}
    for word in words:
        if "=" in word:
            key, _, value = word.partition("=")
            result[key] = value
    return result


# === Interfaces ===

def parse_interfaces(lines: Lines) -> list[InterfaceConfig]:
    interfaces: dict[str, InterfaceConfig] = {}

    def get(name: str) -> InterfaceConfig:
        if name not in interfaces:
            interfaces[name] = InterfaceConfig(name=name)
        return interfaces[name]

    for cmd in lines:
        words = cmd.line.split()
        if len(words) < 3 or not is_interface(words[1]):
            continue
        name, rest = words[1], words[2:]

        if words[0] == "description":
            get(name).description = _unquote(cmd.line.split(None, 2)[2])
        elif words[0] == "ethernet" and rest[0] == "filter" and len(rest) >= 2:
            numbers = [_int(w) for w in rest[2:] if w.isdigit()]
            if rest[1] == "in":
                get(name).ethernet_filter_in = numbers
            elif rest[1] == "out":
                get(name).ethernet_filter_out = numbers
        elif words[0] == "ip":
            _apply_ip_interface(cmd, get(name), rest)

    return list(interfaces.values())


def _apply_ip_interface(cmd: "ParsedCommand", iface: InterfaceConfig, rest: list[str]) -> None:
    key = rest[0]
    if key == "address":
        if len(rest) < 2:
            raise _malformed(cmd, "interface address without value")
        iface.ip_address = rest[1]
    elif key == "secure" and len(rest) >= 3 and rest[1] == "filter":
        direction, numbers = rest[2], rest[3:]
        static, dynamic = numbers, []
        if "dynamic" in numbers:
            split = numbers.index("dynamic")
            static, dynamic = numbers[:split], numbers[split + 1:]
        if direction == "in":
            iface.secure_filter_in = [_int(n) for n in static if n.isdigit()]
        elif direction == "out":
            iface.secure_filter_out = [_int(n) for n in static if n.isdigit()]
            iface.dynamic_filter_out = [_int(n) for n in dynamic if n.isdigit()]
    elif key == "nat" and len(rest) >= 3 and rest[1] == "descriptor":
        iface.nat_descriptor = _int(rest[2])
    elif key == "proxyarp" and len(rest) >= 2:
        iface.proxyarp = _on(rest[1])
    elif key == "mtu" and len(rest) >= 2:
        iface.mtu = _int(rest[1])


# === Static routes ===

def normalize_destination(dest: str) -> tuple[str, str]:
    """``default`` / ``a.b.c.d/nn`` / ``a.b.c.d`` -> (prefix, dotted mask)."""
    if dest == "default":
        return "0.0.0.0", "0.0.0.0"
    network = ipaddress.IPv4Network(dest, strict=False)
    return str(network.network_address), str(network.netmask)


def route_destination(prefix: str, mask: str) -> str:
    """Inverse of normalize_destination, in the router's own syntax."""
    if prefix == "0.0.0.0" and mask == "0.0.0.0":
        return "default"
    network = ipaddress.IPv4Network(f"{prefix}/{mask}", strict=False)
    if network.prefixlen == 32:
        return str(network.network_address)
    return str(network)


def _parse_hop(cmd: "ParsedCommand", tokens: list[str]) -> NextHop:
    if not tokens:
        raise _malformed(cmd, "gateway without next hop")
    hop = NextHop()
    head = tokens[0]
    i = 1
    if head in ("pp", "tunnel", "dhcp") and len(tokens) >= 2:
        hop.interface = f"{head} {tokens[1]}"
        i = 2
    elif head in ("null", "loopback"):
        hop.interface = head
    elif _looks_like_address(head):
        hop.next_hop = head
    else:
        raise _malformed(cmd, f"unknown gateway {head!r}")

    while i < len(tokens):
        token = tokens[i]
        value = tokens[i + 1] if i + 1 < len(tokens) else ""
        if token == "weight" and value.isdigit():
            hop.distance = int(value)
            i += 2
        elif token == "filter" and value.isdigit():
            hop.filter = int(value)
            i += 2
        elif token == "hide":
            hop.permanent = True
            i += 1
        elif token.startswith("name="):
            hop.name = _unquote(token[5:])
            i += 1
        elif token == "keepalive" and value.isdigit():
            i += 2
        else:
            i += 1
    return hop


def parse_static_routes(lines: Lines) -> list[StaticRoute]:
    routes: dict[tuple[str, str], StaticRoute] = {}
    for cmd in lines:
        words = cmd.line.split()
        if len(words) < 3 or words[:2] != ["ip", "route"]:
            continue
        dest = words[2]
        if dest != "default" and not _looks_like_address(dest):
            continue  # e.g. "ip route change log on"
        if "gateway" not in words[3:]:
            raise _malformed(cmd, "route without gateway")
        try:
            prefix, mask = normalize_destination(dest)
        except ValueError:
            raise _malformed(cmd, f"invalid destination {dest!r}")

        route = routes.setdefault((prefix, mask), StaticRoute(prefix=prefix, mask=mask))
        hop_tokens: list[list[str]] = []
        for word in words[3:]:
            if word == "gateway":
                hop_tokens.append([])
            elif hop_tokens:
                hop_tokens[-1].append(word)
        for tokens in hop_tokens:
            route.next_hops.append(_parse_hop(cmd, tokens))
    return list(routes.values())


# === IP filters ===

def parse_ip_filters(lines: Lines) -> list[IPFilter]:
    filters = []
    for cmd in lines:
        words = cmd.line.split()
        if len(words) < 3 or words[:2] != ["ip", "filter"] or not words[2].isdigit():
            continue  # "ip filter source-route on" and friends
        fields = words[3:]
        if len(fields) < 2:
            raise _malformed(cmd, "filter needs an action and a source address")
        # "established" may stand in the protocol or a later position
        established = "established" in fields[3:]
        padded = fields[:6] + [""] * (6 - len(fields[:6]))
        filters.append(IPFilter(
            number=int(words[2]),
            action=padded[0],
            source_address=padded[1],
            dest_address=padded[2],
            protocol=padded[3],
            source_port=padded[4],
            dest_port=padded[5],
            established=established,
        ))
    return filters


def parse_dynamic_filters(lines: Lines) -> list[DynamicFilter]:
    filters = []
    for cmd in lines:
        words = cmd.line.split()
        if len(words) < 4 or words[:3] != ["ip", "filter", "dynamic"] or not words[3].isdigit():
            continue
        fields = words[4:]
        if len(fields) < 3:
            raise _malformed(cmd, "dynamic filter needs source, destination and protocol")
        extra = fields[3:]
        syslog = False
        if extra[:2] == ["syslog", "on"]:
            syslog = True
        filters.append(DynamicFilter(
            number=int(words[3]),
            source=fields[0],
            destination=fields[1],
            protocol=fields[2],
            syslog=syslog,
            options=" ".join(extra),
        ))
    return filters


# === DNS ===

DNS_RECORD_TYPES = ("a", "aaaa", "ptr", "mx", "ns", "cname", "any")


def _parse_server_select(cmd: "ParsedCommand", words: list[str]) -> DNSServerSelect:
    # dns server select ID SERVER [SERVER2] [edns=on] [TYPE] QUERY [ORIGINAL-SENDER] [restrict pp N]
    if len(words) < 5 or not words[3].isdigit():
        raise _malformed(cmd, "dns server select needs an id and a server")
    select = DNSServerSelect(id=int(words[3]))
    rest = words[4:]
    while rest:
        if _looks_like_address(rest[0]):
            select.servers.append(rest.pop(0))
        elif rest[0] in ("pp", "dhcp") and len(rest) >= 2:
            select.servers.append(f"{rest.pop(0)} {rest.pop(0)}")
        else:
            break
    rest = [w for w in rest if "=" not in w]
    if rest and rest[0] in DNS_RECORD_TYPES:
        select.record_type = rest.pop(0)
    if "restrict" in rest:
        idx = rest.index("restrict")
        tail = rest[idx + 1:]
        if len(tail) >= 2 and tail[0] == "pp":
            select.restrict_pp = _int(tail[1])
        rest = rest[:idx]
    if rest:
        select.query_pattern = rest.pop(0)
    if rest:
        select.original_sender = rest.pop(0)
    if not select.servers:
        raise _malformed(cmd, "dns server select without server address")
    return select


def parse_dns(lines: Lines) -> Optional[DNSConfig]:
    config = DNSConfig()
    seen = False
    for cmd in lines:
        words = cmd.line.split()
        if words[:4] == ["no", "dns", "domain", "lookup"]:
            config.domain_lookup = False
            seen = True
            continue
        if words[0] != "dns" or len(words) < 3:
            continue
        seen = True
        if words[1:3] == ["domain", "lookup"]:
            config.domain_lookup = len(words) < 4 or _on(words[3])
        elif words[1] == "domain":
            config.domain_name = words[2]
        elif words[1:3] == ["server", "select"]:
            config.server_select.append(_parse_server_select(cmd, words))
        elif words[1] == "server":
            config.name_servers = [w for w in words[2:] if _looks_like_address(w)]
        elif words[1] == "static":
            rest = words[2:]
            record_type = "a"
            if rest[0] in DNS_RECORD_TYPES:
                record_type = rest.pop(0)
            if len(rest) < 2:
                raise _malformed(cmd, "dns static needs a name and a value")
            config.hosts.append(DNSHost(name=rest[0], address=rest[1], record_type=record_type))
        elif words[1] == "service":
            config.service = words[2]
        elif words[1:4] == ["private", "address", "spoof"] and len(words) >= 5:
            config.private_spoof = _on(words[4])
    return config if seen else None


# === Syslog ===

def parse_syslog(lines: Lines) -> Optional[SyslogConfig]:
    config = SyslogConfig()
    seen = False
    for cmd in lines:
        words = cmd.line.split()
        if len(words) < 3 or words[0] != "syslog":
            continue
        seen = True
        if words[1] == "host":
            port = _int(words[3]) if len(words) >= 4 and words[3].isdigit() else 0
            config.hosts.append(SyslogHost(address=words[2], port=port))
        elif words[1:3] == ["local", "address"] and len(words) >= 4:
            config.local_address = words[3]
        elif words[1] == "facility":
            config.facility = words[2]
        elif words[1] in ("notice", "info", "debug"):
            setattr(config, words[1], _on(words[2]))
    return config if seen else None


# === System ===

def parse_system(lines: Lines) -> Optional[SystemConfig]:
    config = SystemConfig()
    seen = False
    for cmd in lines:
        words = cmd.line.split()
        if len(words) < 2:
            continue
        if words[0] == "timezone":
            config.timezone = words[1]
        elif words[0] == "console" and len(words) >= 3:
            if words[1] == "character":
                config.console_character = words[2]
            elif words[1] == "lines":
                config.console_lines = words[2]
            elif words[1] == "prompt":
                config.console_prompt = _unquote(cmd.line.split(None, 2)[2])
            else:
                continue
        elif words[:2] == ["system", "packet-buffer"]:
            if len(words) < 3:
                raise _malformed(cmd, "packet-buffer without size class")
            opts = _options(words[3:])
            config.packet_buffers.append(PacketBuffer(
                size=words[2],
                max_buffer=_int(opts.get("max-buffer", "")),
                max_free=_int(opts.get("max-free", "")),
            ))
        elif words[0] == "statistics" and len(words) >= 3:
            if words[1] == "traffic":
                config.statistics_traffic = _on(words[2])
            elif words[1] == "nat":
                config.statistics_nat = _on(words[2])
            else:
                continue
        else:
            continue
        seen = True
    return config if seen else None


# === Administration ===

def _password_value(words: list[str]) -> tuple[str, bool]:
    if words and words[0] == "encrypted":
        return (words[1] if len(words) > 1 else ""), True
    return (words[0] if words else ""), False


def parse_admin(lines: Lines) -> Optional[AdminConfig]:
    config = AdminConfig()
    seen = False
    for cmd in lines:
        words = cmd.line.split()
        if words[:2] == ["login", "password"]:
            config.login_password, config.login_password_encrypted = _password_value(words[2:])
            seen = True
        elif words[:2] == ["administrator", "password"]:
            config.admin_password, config.admin_password_encrypted = _password_value(words[2:])
            seen = True
    return config if seen else None


def parse_admin_users(lines: Lines) -> list[AdminUser]:
    users: dict[str, AdminUser] = {}
    for cmd in lines:
        words = cmd.line.split()
        if words[:2] == ["login", "user"]:
            if len(words) < 3:
                raise _malformed(cmd, "login user without name")
            user = users.setdefault(words[2], AdminUser(username=words[2]))
            user.password, user.encrypted = _password_value(words[3:])
        elif words[:2] == ["user", "attribute"] and len(words) >= 3 and "=" not in words[2]:
            user = users.setdefault(words[2], AdminUser(username=words[2]))
            opts = _options(words[3:])
            if "administrator" in opts:
                user.administrator = _on(opts["administrator"])
            if "connection" in opts:
                user.connections = [c for c in opts["connection"].split(",") if c]
            if "gui-page" in opts:
                user.gui_pages = [p for p in opts["gui-page"].split(",") if p]
            if "login-timer" in opts:
                user.login_timer = _int(opts["login-timer"])
    return list(users.values())


# === DHCP ===

def parse_dhcp_scopes(lines: Lines) -> list[DHCPScope]:
    scopes: dict[int, DHCPScope] = {}
    bindings: list[tuple[int, DHCPBinding]] = []
    options: list[tuple[int, dict[str, str]]] = []

    for cmd in lines:
        words = cmd.line.split()
        if len(words) < 3 or words[:2] != ["dhcp", "scope"]:
            continue
        if words[2] == "bind":
            if len(words) < 5 or not words[3].isdigit():
                raise _malformed(cmd, "dhcp scope bind needs scope, address and client")
            rest = words[5:]
            client_id = words[5] == "01" if len(words) > 5 else False
            if words[5:6] == ["ethernet"]:
                rest = words[6:]
            mac = rest[-1] if rest and MAC_RE.match(rest[-1]) else " ".join(rest)
            bindings.append((int(words[3]), DHCPBinding(address=words[4], mac_address=mac.lower(), client_id=client_id)))
        elif words[2] == "option":
            if len(words) < 5 or not words[3].isdigit():
                raise _malformed(cmd, "dhcp scope option needs scope and value")
            options.append((int(words[3]), _options(words[4:])))
        elif words[2].isdigit():
            if len(words) < 4:
                raise _malformed(cmd, "dhcp scope without address range")
            scope_id = int(words[2])
            range_part, _, prefix = words[3].partition("/")
            start, _, end = range_part.partition("-")
            if not end or not _looks_like_address(start) or not _looks_like_address(end):
                raise _malformed(cmd, f"invalid dhcp range {words[3]!r}")
            scope = DHCPScope(scope_id=scope_id, range_start=start, range_end=end, prefix_length=_int(prefix))
            rest = words[4:]
            for i, token in enumerate(rest[:-1]):
                if token == "gateway":
                    scope.gateway = rest[i + 1]
                elif token == "expire":
                    scope.expire = rest[i + 1]
                elif token == "maxexpire":
                    scope.max_expire = rest[i + 1]
            scopes[scope_id] = scope

    for scope_id, opts in options:
        if scope_id in scopes and "dns" in opts:
            scopes[scope_id].dns_servers = [s for s in opts["dns"].split(",") if s]
    for scope_id, binding in bindings:
        if scope_id in scopes:
            scopes[scope_id].bindings.append(binding)
    return list(scopes.values())


# === NAT ===

def parse_nat_masquerade(lines: Lines) -> list[NATMasquerade]:
    types: dict[int, str] = {}
    descriptors: dict[int, NATMasquerade] = {}

    def get(cmd: "ParsedCommand", value: str) -> NATMasquerade:
        if not value.isdigit():
            raise _malformed(cmd, f"invalid nat descriptor id {value!r}")
        number = int(value)
        return descriptors.setdefault(number, NATMasquerade(descriptor_id=number))

    for cmd in lines:
        words = cmd.line.split()
        if words[:2] != ["nat", "descriptor"] or len(words) < 4:
            continue
        if words[2] == "type":
            get(cmd, words[3])
            if len(words) >= 5:
                types[int(words[3])] = words[4]
        elif words[2] == "address" and len(words) >= 6:
            nat = get(cmd, words[4])
            if words[3] == "outer":
                nat.outer_address = words[5]
            elif words[3] == "inner":
                nat.inner_network = words[5]
        elif words[2:4] == ["masquerade", "static"]:
            if len(words) < 7:
                raise _malformed(cmd, "masquerade static needs descriptor, entry and inside address")
            nat = get(cmd, words[4])
            protocol = words[7] if len(words) > 7 else ""
            outside_port = inside_port = ""
            if len(words) > 8:
                outside_port, _, inside_port = words[8].partition("=")
                inside_port = inside_port or outside_port
            nat.static_entries.append(NATStaticEntry(
                entry=_int(words[5]),
                inside_address=words[6],
                protocol=protocol,
                outside_port=outside_port,
                inside_port=inside_port,
            ))

    return [nat for number, nat in descriptors.items() if "masquerade" in types.get(number, "")]


# === Management services ===

def parse_services(lines: Lines) -> list[ServiceConfig]:
    services: dict[str, ServiceConfig] = {}
    for cmd in lines:
        words = cmd.line.split()
        if len(words) < 3:
            continue
        if words[1] == "host":
            if words[2] == "key":
                continue  # "sshd host key generate"
            service = services.setdefault(words[0], ServiceConfig(name=words[0]))
            service.hosts = words[2:]
            # httpd/sftpd have no separate service switch
            if words[0] in ("httpd", "sftpd"):
                service.enabled = words[2] != "none"
        elif words[1] == "service":
            service = services.setdefault(words[0], ServiceConfig(name=words[0]))
            service.enabled = _on(words[2])
    return list(services.values())


# === Tunnels ===

def parse_tunnels(blocks: dict[str, list["ParsedCommand"]]) -> list[TunnelConfig]:
    tunnels = []
    for tunnel_id, commands in blocks.items():
        if not tunnel_id.isdigit():
            continue
        tunnel = TunnelConfig(tunnel_id=int(tunnel_id))
        for cmd in commands:
            words = cmd.line.split()
            if words[0] == "description" and len(words) >= 2:
                tunnel.description = _unquote(cmd.line.split(None, 1)[1])
            elif words[:2] == ["tunnel", "encapsulation"] and len(words) >= 3:
                tunnel.encapsulation = words[2]
            elif words[:2] == ["ipsec", "tunnel"] and len(words) >= 3:
                tunnel.ipsec_tunnel_id = _int(words[2])
            elif words[:4] == ["ipsec", "ike", "remote", "address"] and len(words) >= 6:
                tunnel.remote_endpoint = words[5]
            elif words[:2] == ["l2tp", "tunnel"] and len(words) >= 3 and words[2] == "remote" and len(words) >= 4:
                tunnel.remote_endpoint = words[3]
            elif words[0] == "tunnel" and len(words) >= 2 and words[1] in ("enable", "disable"):
                tunnel.enabled = words[1] == "enable"
        tunnels.append(tunnel)
    return tunnels
