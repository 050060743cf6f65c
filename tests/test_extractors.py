"""Tests for per-feature extraction from a parsed configuration."""
import pytest

from rtx_client.snapshot.extractors import normalize_destination, route_destination
from rtx_client.snapshot.parser import parse_config
from rtx_client.snapshot.records import DNSHost, NextHop


@pytest.fixture
def parsed(sample_config_text):
    return parse_config(sample_config_text)


class TestInterfaces:
    """Tests for extract_interfaces."""

    def test_lan1(self, parsed):
        lan1 = {i.name: i for i in parsed.extract_interfaces()}["lan1"]
        assert lan1.ip_address == "192.168.1.1/24"
        assert lan1.description == "Main LAN"
        assert lan1.secure_filter_in == [100, 101]
        assert lan1.proxyarp is True
        assert lan1.ethernet_filter_in == [1, 2]
        assert lan1.mtu == 0

    def test_lan2(self, parsed):
        lan2 = {i.name: i for i in parsed.extract_interfaces()}["lan2"]
        assert lan2.ip_address == "dhcp"
        assert lan2.secure_filter_out == [200]
        assert lan2.dynamic_filter_out == [300, 301]
        assert lan2.nat_descriptor == 1000
        assert lan2.mtu == 1454

    def test_pp_lines_are_not_interfaces(self, parsed):
        assert [i.name for i in parsed.extract_interfaces()] == ["lan1", "lan2"]


class TestStaticRoutes:
    """Tests for extract_static_routes."""

    def test_default_route(self, parsed):
        route = parsed.extract_static_routes()[0]
        assert (route.prefix, route.mask) == ("0.0.0.0", "0.0.0.0")
        assert route.next_hops == [NextHop(interface="pp 1")]

    def test_ecmp(self, parsed):
        route = parsed.extract_static_routes()[1]
        assert route.route_id == "10.0.0.0/255.0.0.0"
        assert [h.next_hop for h in route.next_hops] == ["192.168.1.254", "192.168.1.253"]
        assert [h.distance for h in route.next_hops] == [2, 1]

    def test_hidden_tunnel_route(self, parsed):
        hop = parsed.extract_static_routes()[2].next_hops[0]
        assert hop.interface == "tunnel 1"
        assert hop.permanent is True

    def test_same_destination_merged(self):
        parsed = parse_config(
            "ip route 10.0.0.0/8 gateway 192.168.1.1\n"
            "ip route 10.0.0.0/8 gateway 192.168.1.2 filter 5\n"
        )
        routes = parsed.extract_static_routes()
        assert len(routes) == 1
        assert routes[0].next_hops[1].filter == 5

    def test_host_route(self):
        route = parse_config("ip route 10.1.2.3 gateway null\n").extract_static_routes()[0]
        assert route.mask == "255.255.255.255"
        assert route.next_hops[0].interface == "null"


class TestDestinations:
    """Tests for destination normalization."""

    @pytest.mark.parametrize("dest,expected", [
        ("default", ("0.0.0.0", "0.0.0.0")),
        ("10.0.0.0/8", ("10.0.0.0", "255.0.0.0")),
        ("10.1.2.3", ("10.1.2.3", "255.255.255.255")),
        ("192.168.1.77/24", ("192.168.1.0", "255.255.255.0")),
    ])
    def test_normalize(self, dest, expected):
        assert normalize_destination(dest) == expected

    @pytest.mark.parametrize("prefix,mask,expected", [
        ("0.0.0.0", "0.0.0.0", "default"),
        ("10.0.0.0", "255.0.0.0", "10.0.0.0/8"),
        ("10.1.2.3", "255.255.255.255", "10.1.2.3"),
    ])
    def test_route_destination(self, prefix, mask, expected):
        assert route_destination(prefix, mask) == expected


class TestFilters:
    """Tests for static and dynamic IP filters."""

    def test_static_filters(self, parsed):
        filters = {f.number: f for f in parsed.extract_ip_filters()}
        assert filters[100].action == "pass"
        assert filters[100].source_address == "192.168.1.0/24"
        assert filters[100].protocol == "tcp"
        assert filters[100].dest_port == "22"
        assert filters[101].action == "reject"
        assert filters[200].protocol == "established"
        assert filters[200].established is True

    def test_established_in_later_field(self):
        ip_filter = parse_config("ip filter 5 pass * * tcp * * established\n").extract_ip_filters()[0]
        assert ip_filter.established is True
        assert ip_filter.protocol == "tcp"

    def test_missing_fields_are_empty(self):
        ip_filter = parse_config("ip filter 7 reject 10.0.0.0/8\n").extract_ip_filters()[0]
        assert ip_filter.dest_address == ""
        assert ip_filter.protocol == ""

    def test_dynamic_filters(self, parsed):
        filters = parsed.extract_ip_filters_dynamic()
        assert [f.number for f in filters] == [300, 301]
        assert filters[0].protocol == "www"
        assert not filters[0].syslog
        assert filters[1].syslog
        assert filters[1].options == "syslog on"


class TestDNS:
    """Tests for extract_dns_server."""

    def test_dns(self, parsed):
        dns = parsed.extract_dns_server()
        assert dns.domain_lookup is True
        assert dns.domain_name == "example.jp"
        assert dns.name_servers == ["8.8.8.8", "8.8.4.4"]
        assert dns.service == "recursive"
        assert dns.private_spoof is True
        assert dns.hosts == [DNSHost(name="nas.example.jp", address="192.168.1.20")]

    def test_server_select(self, parsed):
        select = parsed.extract_dns_server().server_select[0]
        assert select.id == 1
        assert select.servers == ["192.168.100.1"]
        assert select.record_type == "any"
        assert select.query_pattern == "internal.example.jp"

    def test_server_select_pp(self):
        dns = parse_config("dns server select 2 pp 1 any . restrict pp 1\n").extract_dns_server()
        select = dns.server_select[0]
        assert select.servers == ["pp 1"]
        assert select.query_pattern == "."
        assert select.restrict_pp == 1

    def test_lookup_off(self):
        assert parse_config("no dns domain lookup\n").extract_dns_server().domain_lookup is False
        assert parse_config("dns domain lookup off\n").extract_dns_server().domain_lookup is False


class TestOtherFeatures:
    """Tests for the remaining extractors."""

    def test_syslog(self, parsed):
        syslog = parsed.extract_syslog()
        assert [h.address for h in syslog.hosts] == ["192.168.1.50"]
        assert syslog.local_address == "192.168.1.1"
        assert syslog.facility == "local0"
        assert syslog.notice is True
        assert syslog.info is False

    def test_system(self, parsed):
        system = parsed.extract_system()
        assert system.timezone == "+09:00"
        assert system.console_character == "ascii"
        assert system.console_lines == "infinity"
        assert system.console_prompt == "RTX1210"
        assert system.packet_buffers[0].size == "small"
        assert system.packet_buffers[0].max_buffer == 5000
        assert system.packet_buffers[0].max_free == 1300
        assert system.statistics_traffic and system.statistics_nat

    def test_admin(self, parsed):
        admin = parsed.extract_admin()
        assert admin.login_password == "AAAAAAAAAAAA"
        assert admin.login_password_encrypted
        assert admin.admin_password_encrypted

    def test_admin_users(self, parsed):
        user = parsed.extract_admin_users()[0]
        assert user.username == "admin"
        assert user.encrypted
        assert user.administrator
        assert user.connections == ["ssh", "telnet"]
        assert user.gui_pages == ["dashboard", "config"]
        assert user.login_timer == 300

    def test_dhcp_scopes(self, parsed):
        scope = parsed.extract_dhcp_scopes()[0]
        assert scope.scope_id == 1
        assert (scope.range_start, scope.range_end) == ("192.168.1.100", "192.168.1.199")
        assert scope.prefix_length == 24
        assert scope.gateway == "192.168.1.1"
        assert scope.expire == "24:00"
        assert scope.dns_servers == ["192.168.1.1", "8.8.8.8"]
        assert scope.bindings[0].address == "192.168.1.150"
        assert scope.bindings[0].mac_address == "00:a0:de:11:22:33"

    def test_nat_masquerade(self, parsed):
        nat = parsed.extract_nat_masquerade()[0]
        assert nat.descriptor_id == 1000
        assert nat.outer_address == "ipcp"
        assert nat.inner_network == "auto"
        entry = nat.static_entries[0]
        assert (entry.inside_address, entry.protocol) == ("192.168.1.10", "tcp")
        assert (entry.outside_port, entry.inside_port) == ("8080", "80")

    def test_services(self, parsed):
        services = {s.name: s for s in parsed.extract_services()}
        assert services["sshd"].enabled
        assert services["sshd"].hosts == ["lan1"]
        assert services["httpd"].enabled
        assert services["sftpd"].hosts == ["lan1"]
        assert "telnetd" not in services

    def test_tunnels(self, parsed):
        tunnel = parsed.extract_tunnels()[0]
        assert tunnel.tunnel_id == 1
        assert tunnel.encapsulation == "ipsec"
        assert tunnel.ipsec_tunnel_id == 101
        assert tunnel.remote_endpoint == "203.0.113.10"
        assert tunnel.enabled

    def test_unconfigured_features(self):
        parsed = parse_config("ip lan1 address 192.168.1.1/24\n")
        assert parsed.extract_syslog() is None
        assert parsed.extract_system() is None
        assert parsed.extract_admin() is None
        assert parsed.extract_dhcp_scopes() == []
        assert parsed.extract_tunnels() == []
