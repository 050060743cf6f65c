"""Parser for RTX configuration dumps (``show config`` / /system/configN).

The dump is line oriented. Most commands are global; a few open a context
that following lines belong to:

    tunnel select 1
     description tunnel HQ
     ipsec tunnel 101
      ipsec sa policy 101 1 esp aes-cbc sha-hmac
     tunnel enable 1
    pp select 1
     pppoe use lan2
     pp enable 1

``tunnel|pp enable|disable`` closes its context. A non-indented command that
is not one of the context's own keywords closes it as well.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from . import extractors
from .records import (
    AdminConfig,
    AdminUser,
    DHCPScope,
    DNSConfig,
    DynamicFilter,
    InterfaceConfig,
    IPFilter,
    NATMasquerade,
    ServiceConfig,
    StaticRoute,
    SyslogConfig,
    SystemConfig,
    TunnelConfig,
)

logger = logging.getLogger(__name__)

# Non-indented lines with these prefixes stay in the open context
CONTEXT_PREFIXES: dict[str, tuple[str, ...]] = {
    "tunnel": ("tunnel ", "ipsec ", "l2tp ", "description "),
    "pp": ("pp ", "pppoe ", "ppp ", "ip pp ", "description "),
    "ipsec": ("ipsec ",),
}

# Global section names, longest prefix first
SECTION_PREFIXES = (
    "ip filter dynamic",
    "ipv6 filter dynamic",
    "ip route",
    "ipv6 route",
    "ip filter",
    "ipv6 filter",
    "nat descriptor",
    "dhcp scope",
    "dhcp service",
    "dhcp server",
    "user attribute",
    "login user",
    "login password",
    "administrator password",
    "dns",
    "syslog",
    "httpd",
    "sshd",
    "sftpd",
    "telnetd",
    "console",
    "system",
    "statistics",
    "timezone",
    "schedule",
    "ipsec",
    "ethernet filter",
    "snmp",
    "ntp",
)


@dataclass(frozen=True)
class ParsedContext:
    """A ``tunnel select`` / ``pp select`` / ``ipsec tunnel`` block."""
    kind: str
    id: str
    line_number: int
    parent: Optional["ParsedContext"] = None

    @property
    def name(self) -> str:
        return f"{self.kind} {self.id}"

    @property
    def root(self) -> "ParsedContext":
        ctx = self
        while ctx.parent is not None:
            ctx = ctx.parent
        return ctx


@dataclass(frozen=True)
class ParsedCommand:
    line: str
    line_number: int
    indent_level: int = 0
    context: Optional[ParsedContext] = None

    @property
    def is_global(self) -> bool:
        return self.context is None


@dataclass(frozen=True)
class ParsedConfig:
    """A parsed dump: commands in order plus a section index.

    ``extract_*`` methods are pure. Calling one twice yields equal records.
    """
    raw: str
    line_count: int
    commands: tuple[ParsedCommand, ...] = ()
    contexts: tuple[ParsedContext, ...] = ()
    sections: dict[str, str] = field(default_factory=dict)

    @property
    def command_count(self) -> int:
        return len(self.commands)

    def section(self, name: str) -> str:
        """Raw text of a section, "" if the feature is not configured."""
        return self.sections.get(name, "")

    def get_global_commands(self) -> list[ParsedCommand]:
        return [cmd for cmd in self.commands if cmd.is_global]

    def get_commands_in_context(self, kind: str, id: Optional[str] = None) -> list[ParsedCommand]:
        """Commands inside contexts of ``kind`` (nested contexts included)."""
        result = []
        for cmd in self.commands:
            if cmd.context is None:
                continue
            root = cmd.context.root
            if root.kind == kind and (id is None or root.id == str(id)):
                result.append(cmd)
        return result

    def global_with_prefix(self, *prefixes: str, exclude: tuple[str, ...] = ()) -> list[ParsedCommand]:
        return [
            cmd for cmd in self.commands
            if cmd.is_global and cmd.line.startswith(prefixes) and not cmd.line.startswith(exclude)
        ]

    # === Extractors ===

    def extract_interfaces(self) -> list[InterfaceConfig]:
        return extractors.parse_interfaces(self.global_with_prefix("ip ", "description ", "ethernet "))

    def extract_static_routes(self) -> list[StaticRoute]:
        return extractors.parse_static_routes(self.global_with_prefix("ip route "))

    def extract_ip_filters(self) -> list[IPFilter]:
        return extractors.parse_ip_filters(self.global_with_prefix("ip filter ", exclude=("ip filter dynamic ",)))

    def extract_ip_filters_dynamic(self) -> list[DynamicFilter]:
        return extractors.parse_dynamic_filters(self.global_with_prefix("ip filter dynamic "))

    def extract_dns_server(self) -> Optional[DNSConfig]:
        return extractors.parse_dns(self.global_with_prefix("dns ", "no dns "))

    def extract_syslog(self) -> Optional[SyslogConfig]:
        return extractors.parse_syslog(self.global_with_prefix("syslog "))

    def extract_system(self) -> Optional[SystemConfig]:
        return extractors.parse_system(
            self.global_with_prefix("timezone ", "console ", "system packet-buffer ", "statistics ")
        )

    def extract_admin(self) -> Optional[AdminConfig]:
        return extractors.parse_admin(self.global_with_prefix("login password ", "administrator password "))

    def extract_admin_users(self) -> list[AdminUser]:
        return extractors.parse_admin_users(self.global_with_prefix("login user ", "user attribute "))

    def extract_dhcp_scopes(self) -> list[DHCPScope]:
        return extractors.parse_dhcp_scopes(self.global_with_prefix("dhcp scope "))

    def extract_nat_masquerade(self) -> list[NATMasquerade]:
        return extractors.parse_nat_masquerade(self.global_with_prefix("nat descriptor "))

    def extract_services(self) -> list[ServiceConfig]:
        return extractors.parse_services(self.global_with_prefix("httpd ", "sshd ", "sftpd ", "telnetd "))

    def extract_tunnels(self) -> list[TunnelConfig]:
        by_id: dict[str, list[ParsedCommand]] = {}
        for ctx in self.contexts:
            if ctx.kind == "tunnel" and ctx.parent is None:
                by_id.setdefault(ctx.id, [])
        for cmd in self.get_commands_in_context("tunnel"):
            by_id.setdefault(cmd.context.root.id, []).append(cmd)
        return extractors.parse_tunnels(by_id)


def section_name(cmd: ParsedCommand) -> str:
    """Name of the section a command belongs to."""
    if cmd.context is not None:
        return cmd.context.root.name
    words = cmd.line.split()
    if len(words) >= 2 and words[0] in ("ip", "description", "ethernet") and extractors.is_interface(words[1]):
        return f"interface {words[1]}"
    for prefix in SECTION_PREFIXES:
        if cmd.line == prefix or cmd.line.startswith(prefix + " "):
            return prefix
    if words[0] == "no" and len(words) > 1:
        return section_name(ParsedCommand(" ".join(words[1:]), cmd.line_number))
    return words[0]


class ConfigFileParser:
    """Parse a configuration dump into a ParsedConfig."""

    def parse(self, raw: str) -> ParsedConfig:
        """
        Parse a configuration dump.

        Args:
            raw: Full text as fetched from the router

        Returns:
            ParsedConfig with every command and its context
        """
        text = raw.replace("\r\n", "\n").replace("\r", "\n")
        lines = text.split("\n")

        commands: list[ParsedCommand] = []
        contexts: list[ParsedContext] = []
        stack: list[ParsedContext] = []

        for number, raw_line in enumerate(lines, start=1):
            stripped = raw_line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            indent = len(raw_line) - len(raw_line.lstrip(" \t"))
            words = stripped.split()

            opened = self._opens_context(words, number, stack)
            if opened is not None:
                if opened.kind != "ipsec":
                    stack.clear()
                elif stack and stack[-1].kind == "ipsec":
                    stack.pop()
                opened = ParsedContext(opened.kind, opened.id, number, stack[-1] if stack else None)
                stack.append(opened)
                contexts.append(opened)
                commands.append(ParsedCommand(stripped, number, indent, opened))
                continue

            if stack and indent == 0 and not self._is_contextual(stripped, stack):
                stack.clear()

            current = stack[-1] if stack else None
            commands.append(ParsedCommand(stripped, number, indent, current))

            # "tunnel enable 1" / "pp disable 1" close their context
            if stack and len(words) >= 2 and words[0] in ("tunnel", "pp") and words[1] in ("enable", "disable"):
                stack.clear()

        sections: dict[str, list[str]] = {}
        for cmd in commands:
            sections.setdefault(section_name(cmd), []).append(cmd.line)

        parsed = ParsedConfig(
            raw=raw,
            line_count=len(lines),
            commands=tuple(commands),
            contexts=tuple(contexts),
            sections={name: "\n".join(body) for name, body in sections.items()},
        )
        logger.debug(
            f"Parsed config: {parsed.line_count} lines, {parsed.command_count} commands, "
            f"{len(parsed.contexts)} contexts, {len(parsed.sections)} sections"
        )
        return parsed

    @staticmethod
    def _opens_context(words: list[str], number: int, stack: list[ParsedContext]) -> Optional[ParsedContext]:
        if len(words) == 3 and words[1] == "select" and words[0] in ("tunnel", "pp"):
            if words[2].isdigit() or words[2] == "anonymous":
                return ParsedContext(words[0], words[2], number)
        # "ipsec tunnel 101" inside a tunnel context
        if (len(words) == 3 and words[0] == "ipsec" and words[1] == "tunnel" and words[2].isdigit()
                and stack and stack[0].kind == "tunnel"):
            return ParsedContext("ipsec", words[2], number)
        return None

    @staticmethod
    def _is_contextual(line: str, stack: list[ParsedContext]) -> bool:
        return any(line.startswith(CONTEXT_PREFIXES.get(ctx.kind, ())) for ctx in stack)


def parse_config(raw: str) -> ParsedConfig:
    """Convenience wrapper around ConfigFileParser."""
    return ConfigFileParser().parse(raw)
