"""Tests for show-command parsers and config path resolution."""
import pytest

from rtx_client.services.system import parse_routes, parse_system_info
from rtx_client.snapshot.resolver import DEFAULT_CONFIG_PATH, ConfigPathResolver, parse_config_path


class TestParseSystemInfo:
    """Tests for parse_system_info."""

    def test_show_environment(self, show_environment_text):
        info = parse_system_info(show_environment_text)
        assert info.model == "RTX1210"
        assert info.firmware_version == "14.01.38"
        assert info.serial_number == "S4K000000"
        assert info.mac_address == "00:a0:de:01:02:03"
        assert info.uptime == "2days 03:30:00"
        assert info.config_file == "/system/config0"

    def test_japanese_labels(self):
        output = (
            "RTX830 Rev.15.02.30 (Mon Feb 20 10:00:00 2023)\n"
            "起動からの経過時間: 10days 01:02:03\n"
            "デフォルト設定ファイル: config2\n"
        )
        info = parse_system_info(output)
        assert info.model == "RTX830"
        assert info.uptime == "10days 01:02:03"
        assert info.config_file == "/system/config2"

    def test_unrecognized_output(self):
        info = parse_system_info("nothing useful")
        assert info.model == ""
        assert info.config_file is None


class TestParseRoutes:
    """Tests for parse_routes."""

    def test_tabular(self):
        output = (
            "Destination         Gateway          Interface       Kind  Additional Info.\n"
            "default             -                PP[01]          static\n"
            "10.0.0.0/8          192.168.1.254    LAN1            static   metric=5\n"
        )
        routes = parse_routes(output)
        assert len(routes) == 2
        assert routes[0].gateway == "*"
        assert routes[1].metric == 5

    def test_compact(self):
        output = (
            "S   0.0.0.0/0   via 192.168.1.1   dev LAN1 metric 1\n"
            "C   192.168.1.0/24   dev LAN1\n"
        )
        routes = parse_routes(output)
        assert routes[0].protocol == "S"
        assert routes[0].gateway == "192.168.1.1"
        assert routes[0].interface == "LAN1"
        assert routes[0].metric == 1
        assert routes[1].gateway == "*"

    def test_empty(self):
        assert parse_routes("") == []


class TestConfigPathResolver:
    """Tests for ConfigPathResolver."""

    def test_parse_config_path(self):
        assert parse_config_path("Default config file: config1") == "/system/config1"
        assert parse_config_path("") is None

    @pytest.mark.asyncio
    async def test_resolves_once(self, show_environment_text):
        call_count = 0

        async def run(command):
            nonlocal call_count
            call_count += 1
            assert command == "show environment"
            return show_environment_text

        resolver = ConfigPathResolver(run, router_id="rtx-test")
        assert await resolver.resolve() == "/system/config0"
        assert await resolver.resolve() == "/system/config0"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_default_when_unreported(self):
        async def run(command):
            return "RTX1210 Rev.14.01.38"

        assert await ConfigPathResolver(run).resolve() == DEFAULT_CONFIG_PATH
