"""Shared fixtures: a scripted RTX shell and a fake snapshot fetcher."""
import asyncio
from typing import Callable, Optional, Union

import pytest

from rtx_client.client import RTXClient
from rtx_client.config.settings import RouterConfig
from rtx_client.errors import RTXConnectionError, SFTPError
from rtx_client.transport.base import Transport

Response = Union[str, list[str], Callable[[str], Union[str, list[str]]]]

SAMPLE_CONFIG = """\
# RTX1210 Rev.14.01.38 (Fri Jul 10 09:36:38 2020)
# MAC Address : 00:a0:de:01:02:03, 00:a0:de:01:02:04, 00:a0:de:01:02:05
# Memory 256Mbytes, 3LAN, 1BRI
# main:  RTX1210 ver=00 serial=S4K000000 MAC-Address=00:a0:de:01:02:03
# Reporting Date: Jan 1 00:00:00 2024
login password encrypted AAAAAAAAAAAA
administrator password encrypted BBBBBBBBBBBB
login user admin encrypted CCCCCCCCCCCC
user attribute admin administrator=on connection=ssh,telnet gui-page=dashboard,config login-timer=300
timezone +09:00
console character ascii
console lines infinity
console prompt "RTX1210"
system packet-buffer small max-buffer=5000 max-free=1300
ip route default gateway pp 1
ip route 10.0.0.0/8 gateway 192.168.1.254 weight 2 gateway 192.168.1.253
ip route 172.16.0.0/16 gateway tunnel 1 hide
ip lan1 address 192.168.1.1/24
ip lan1 secure filter in 100 101
ip lan1 proxyarp on
description lan1 "Main LAN"
ip lan2 address dhcp
ip lan2 secure filter out 200 dynamic 300 301
ip lan2 nat descriptor 1000
ip lan2 mtu 1454
ethernet lan1 filter in 1 2
pp select 1
 description pp PRV/PPPoE
 pppoe use lan2
 pp auth accept pap chap
 pp auth myname user@example.jp password1
 ppp lcp mru on 1454
 ip pp nat descriptor 1000
 pp enable 1
tunnel select 1
 tunnel encapsulation ipsec
 ipsec tunnel 101
  ipsec sa policy 101 1 esp aes-cbc sha-hmac
  ipsec ike pre-shared-key 1 text secretkey
  ipsec ike remote address 1 203.0.113.10
 tunnel enable 1
ip filter source-route on
ip filter 100 pass 192.168.1.0/24 * tcp * 22
ip filter 101 reject * * * * *
ip filter 200 pass * * established
ip filter dynamic 300 * * www
ip filter dynamic 301 * * ftp syslog on
nat descriptor type 1000 masquerade
nat descriptor address outer 1000 ipcp
nat descriptor address inner 1000 auto
nat descriptor masquerade static 1000 1 192.168.1.10 tcp 8080=80
dhcp service server
dhcp scope 1 192.168.1.100-192.168.1.199/24 gateway 192.168.1.1 expire 24:00
dhcp scope option 1 dns=192.168.1.1,8.8.8.8
dhcp scope bind 1 192.168.1.150 00:A0:DE:11:22:33
dns domain lookup on
dns domain example.jp
dns server 8.8.8.8 8.8.4.4
dns server select 1 192.168.100.1 any internal.example.jp
dns static a nas.example.jp 192.168.1.20
dns service recursive
dns private address spoof on
syslog host 192.168.1.50
syslog local address 192.168.1.1
syslog facility local0
syslog notice on
syslog info off
statistics traffic on
statistics nat on
httpd host lan1
sshd service on
sshd host lan1
sshd host key generate *
sftpd host lan1
"""

SHOW_ENVIRONMENT = """\
RTX1210 BootROM Ver. 1.04
RTX1210 FlashROM Table Ver. 1.02
RTX1210 Rev.14.01.38 (Fri Jul 10 09:36:38 2020)
  main:  RTX1210 ver=00 serial=S4K000000 MAC-Address=00:A0:DE:01:02:03 MAC-Address=00:a0:de:01:02:04
CPU:   5%(5sec)   3%(1min)   3%(5min)    Memory: 28% used
Packet Buffer: 0%(small) 0%(middle) 7%(large) 0%(huge) used
Firmware: exec0 - Internal flash ROM
Default config file: config0
Boot time: 2024/01/01 09:00:00 +09:00
Current time: 2024/01/03 12:30:00 +09:00
Elapsed time from boot: 2days 03:30:00
Security Class Level: 1, Forget: ON, Telnet: OFF
"""


class FakeRouterShell(Transport):
    """Scripted stand-in for the router's interactive shell.

    Responses map a command line to output text, a list of pages (served
    behind ---More--- prompts) or a callable receiving the line. A callable
    returning None has emitted its own text and no prompt follows.
    """

    def __init__(
        self,
        responses: Optional[dict[str, Response]] = None,
        hostname: str = "RTX1210",
        login_dialog: bool = False,
        username: str = "admin",
        password: str = "secret",
        admin_password: str = "adminpw",
        echo: bool = True,
        chunk_size: int = 0,
        hang_on: tuple[str, ...] = (),
        connect_errors: Optional[list[Exception]] = None,
    ):
        self.responses = dict(responses or {})
        self.hostname = hostname
        self.login_dialog = login_dialog
        self.username = username
        self.password = password
        self.admin_password = admin_password
        self.echo = echo
        self.chunk_size = chunk_size
        self.hang_on = hang_on
        self.connect_errors = list(connect_errors or [])
        self.written: list[str] = []
        self.commands: list[str] = []
        self.connect_count = 0
        self.admin = False
        self.dirty = False
        self._open = False
        self._outbox: list[str] = []
        self._pages: list[str] = []
        self._awaiting: Optional[str] = None

    # --- helpers ---

    @property
    def prompt(self) -> str:
        return f"[{self.hostname}] {'#' if self.admin else '>'} "

    def _emit(self, text: str) -> None:
        if self.chunk_size:
            for i in range(0, len(text), self.chunk_size):
                self._outbox.append(text[i:i + self.chunk_size])
        elif text:
            self._outbox.append(text)

    def _emit_output(self, output: str) -> None:
        body = output.replace("\n", "\r\n")
        if body and not body.endswith("\r\n"):
            body += "\r\n"
        self._emit(body + self.prompt)

    def _emit_pages(self, pages: list[str]) -> None:
        first, *rest = pages
        if not rest:
            self._emit_output(first)
            return
        self._pages = rest
        self._emit(first.replace("\n", "\r\n") + "\r\n---More---")

    # --- Transport ---

    @property
    def is_open(self) -> bool:
        return self._open

    async def connect(self) -> None:
        self.connect_count += 1
        if self.connect_errors:
            raise self.connect_errors.pop(0)
        self._open = True
        self.admin = False
        self._outbox.clear()
        if self.login_dialog:
            self._awaiting = "username"
            self._emit("\r\nLogin: ")
        else:
            self._emit("\r\nRTX1210 Rev.14.01.38 (Fri Jul 10 09:36:38 2020)\r\n\r\n" + self.prompt)

    async def close(self) -> None:
        self._open = False

    async def read(self, timeout: float) -> str:
        if not self._open:
            raise RTXConnectionError("fake shell closed")
        if self._outbox:
            return self._outbox.pop(0)
        await asyncio.sleep(min(timeout, 0.01))
        return ""

    async def write(self, data: str) -> None:
        if not self._open:
            raise RTXConnectionError("fake shell closed")
        self.written.append(data)

        if data == " " and self._pages:
            page = self._pages.pop(0)
            # The router erases the pagination prompt before the next page
            text = "\r          \r" + page.replace("\n", "\r\n")
            if self._pages:
                self._emit(text + "\r\n---More---")
            else:
                self._emit(text + "\r\n" + self.prompt)
            return

        line = data.rstrip("\r")
        self._handle_line(line)

    def _handle_line(self, line: str) -> None:
        awaiting, self._awaiting = self._awaiting, None

        if awaiting == "username":
            self._emit(f"{line}\r\nPassword: ")
            self._awaiting = "password" if line == self.username else "password-bad"
            return
        if awaiting in ("password", "password-bad"):
            if awaiting == "password" and line == self.password:
                self._emit("\r\n\r\n" + self.prompt)
            else:
                self._awaiting = "username"
                self._emit("\r\nLogin incorrect\r\nLogin: ")
            return
        if awaiting == "admin":
            if line == self.admin_password:
                self.admin = True
                self._emit("\r\n" + self.prompt)
            else:
                self._emit("\r\nPassword incorrect.\r\n" + self.prompt)
            return
        if awaiting == "save":
            self.admin = False
            self._emit(f"{line}\r\n" + self.prompt)
            return

        if self.echo:
            self._emit(f"{line}\r\n")
        if not line:
            self._emit(self.prompt)
            return

        self.commands.append(line)
        if line in self.hang_on:
            return
        if line == "administrator":
            self._awaiting = "admin"
            self._emit("Password: ")
            return
        if line == "exit":
            if self.admin and self.dirty:
                self._awaiting = "save"
                self._emit("Save new configuration ? (Y/N)")
            elif self.admin:
                self.admin = False
                self._emit(self.prompt)
            else:
                self._open = False
            return
        if not line.startswith(("show", "console", "save")):
            self.dirty = True
        if line == "save":
            self.dirty = False

        response = self.responses.get(line, "")
        if callable(response):
            response = response(line)
        if response is None:
            return  # the callable emitted its own text
        if isinstance(response, list):
            self._emit_pages(response)
        else:
            self._emit_output(response)


class FakeFetcher:
    """Snapshot fetcher returning canned text and counting calls."""

    def __init__(self, text: str = SAMPLE_CONFIG, fail: bool = False):
        self.text = text
        self.fail = fail
        self.paths: list[str] = []
        self.closed = False

    async def fetch(self, remote_path: str) -> str:
        self.paths.append(remote_path)
        if self.fail:
            raise SFTPError("sftp subsystem unavailable")
        return self.text

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def sample_config_text() -> str:
    return SAMPLE_CONFIG


@pytest.fixture
def show_environment_text() -> str:
    return SHOW_ENVIRONMENT


@pytest.fixture
def router_config() -> RouterConfig:
    return RouterConfig(
        host="192.0.2.1",
        username="admin",
        password="secret",
        admin_password="adminpw",
        name="rtx-test",
        timeout=2,
        command_timeout=0.5,
        max_attempts=3,
        retry_base_delay=0,
        retry_max_delay=0,
        retry_jitter=0,
        auto_save=False,
        known_hosts_file=None,
    )


@pytest.fixture
def make_shell() -> Callable[..., FakeRouterShell]:
    return FakeRouterShell


@pytest.fixture
def make_fetcher() -> Callable[..., FakeFetcher]:
    return FakeFetcher


@pytest.fixture
def make_client(router_config):
    """Build a client wired to a fake shell (and optionally a fake fetcher)."""

    def _make(shell: Optional[FakeRouterShell] = None, fetcher: Optional[FakeFetcher] = None, **overrides):
        shell = shell or FakeRouterShell()
        for key, value in overrides.items():
            setattr(router_config, key, value)
        client = RTXClient(
            router_config,
            transport_factory=lambda config: shell,
            fetcher_factory=(lambda config: fetcher) if fetcher is not None else None,
        )
        return client, shell

    return _make
