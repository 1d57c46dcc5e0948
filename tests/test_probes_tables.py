"""Tests for netstartup/probes/neighbors.py and routes.py"""

from netstartup.probes.models import ProbeOutcome, RouteKind, RouteRecord
from netstartup.probes.neighbors import NUD_FAILED, NUD_INCOMPLETE, NeighborProbe, build_snapshot, resolved
from netstartup.probes.routes import RouteProbe, classify_route, default_gateway
from netstartup.probes.routes import build_snapshot as build_route_snapshot


class TestClassifyRoute:
    """Tests for route classification."""

    def test_default(self):
        """Test no destination / zero prefix is a default route."""
        assert classify_route(RouteRecord(dst=None, dst_len=0)) == RouteKind.DEFAULT
        assert classify_route(RouteRecord(dst="0.0.0.0", dst_len=0)) == RouteKind.DEFAULT

    def test_host(self):
        """Test /32 is a host route."""
        assert classify_route(RouteRecord(dst="10.0.0.5", dst_len=32)) == RouteKind.HOST

    def test_network(self):
        """Test any other prefix is a network route."""
        assert classify_route(RouteRecord(dst="10.0.0.0", dst_len=8)) == RouteKind.NETWORK


class TestRouteSnapshot:
    """Tests for build_snapshot and default_gateway."""

    def test_snapshot_resolves_interface_names(self, default_route):
        """Test output interface indices are mapped to names."""
        snap = build_route_snapshot(
            [default_route("192.168.1.1", oif=2), RouteRecord(dst="192.168.1.0", dst_len=24, oif=2, priority=100)],
            {2: "eth0"},
        )
        assert snap.count(RouteKind.DEFAULT) == 1
        assert snap.count(RouteKind.NETWORK) == 1
        assert str(snap.default_routes[0]) == "default via 192.168.1.1 dev eth0 metric 100"
        assert str(snap.routes[1]) == "192.168.1.0/24 dev eth0 metric 100"

    def test_default_gateway_none_without_gateway(self):
        """Test a default route without a gateway (point-to-point) yields no gateway."""
        assert default_gateway([RouteRecord(dst=None, dst_len=0, oif=3)]) is None
        assert default_gateway([]) is None


class TestRouteProbe:
    """Tests for RouteProbe."""

    def test_ready_with_default_route(self, fake_netlink, default_route, log_messages):
        """Test a default route makes the table valid."""
        fake_netlink.routes.return_value = [default_route(), RouteRecord(dst="10.1.1.1", dst_len=32, oif=2)]
        fake_netlink.link_names.return_value = {2: "eth0"}
        result = RouteProbe(fake_netlink).probe()
        assert result.outcome == ProbeOutcome.READY
        assert "Routing table: 2 total routes" in log_messages
        assert "Routing table: 1 host routes" in log_messages
        assert "Default route: default via 192.168.1.1 dev eth0 metric 100" in log_messages

    def test_no_default_route(self, fake_netlink, log_messages):
        """Test only local routes is not ready."""
        fake_netlink.routes.return_value = [RouteRecord(dst="192.168.1.0", dst_len=24, oif=2)]
        assert RouteProbe(fake_netlink).probe().outcome == ProbeOutcome.NOT_READY
        assert "Routing table: NO DEFAULT ROUTE" in log_messages

    def test_empty_table(self, fake_netlink, log_messages):
        """Test an empty table is not ready."""
        assert RouteProbe(fake_netlink).probe().outcome == ProbeOutcome.NOT_READY
        assert "Routing table: NO ROUTES FOUND" in log_messages


class TestNeighborSnapshot:
    """Tests for neighbour filtering and counting."""

    def test_failed_and_incomplete_are_unresolved(self, neighbor):
        """Test FAILED and INCOMPLETE entries do not count."""
        assert resolved(neighbor("10.0.0.1")) is True
        assert resolved(neighbor("10.0.0.1", state=NUD_FAILED)) is False
        assert resolved(neighbor("10.0.0.1", state=NUD_INCOMPLETE, mac="")) is False

    def test_counts_only_monitored_interfaces(self, neighbor):
        """Test per-interface counts are limited to the given interfaces."""
        snap = build_snapshot(
            [neighbor("10.0.0.1", ifindex=2), neighbor("10.0.0.2", ifindex=2), neighbor("172.17.0.2", ifindex=5)],
            {2: "eth0", 5: "docker0"},
            ["eth0"],
            None,
        )
        assert snap.interface_entries == {"eth0": 2}
        assert snap.total_entries == 3

    def test_gateway_resolution(self, neighbor):
        """Test the gateway's MAC is looked up across the table."""
        snap = build_snapshot([neighbor("10.0.0.1", mac="00:11:22:33:44:55")], {2: "eth0"}, ["eth0"], "10.0.0.1")
        assert snap.gateway_resolved is True
        assert snap.gateway_mac == "00:11:22:33:44:55"


class TestNeighborProbe:
    """Tests for NeighborProbe."""

    def test_gateway_resolved_ready(self, fake_netlink, default_route, neighbor, log_messages):
        """Test a resolved gateway makes the table valid."""
        fake_netlink.routes.return_value = [default_route("10.0.0.1")]
        fake_netlink.neighbors.return_value = [neighbor("10.0.0.1", mac="00:11:22:33:44:55")]
        fake_netlink.link_names.return_value = {1: "lo", 2: "eth0"}
        result = NeighborProbe(fake_netlink).probe()
        assert result.outcome == ProbeOutcome.READY
        assert "ARP table eth0: 1 entries (gateway 10.0.0.1 -> 00:11:22:33:44:55)" in log_messages
        assert "ARP table gateway: 10.0.0.1 RESOLVED" in log_messages

    def test_gateway_unresolved_not_ready(self, fake_netlink, default_route, neighbor, log_messages):
        """Test entries exist but the gateway is not resolved."""
        fake_netlink.routes.return_value = [default_route("10.0.0.1")]
        fake_netlink.neighbors.return_value = [neighbor("10.0.0.7"), neighbor("10.0.0.1", state=NUD_FAILED)]
        fake_netlink.link_names.return_value = {2: "eth0"}
        assert NeighborProbe(fake_netlink).probe().outcome == ProbeOutcome.NOT_READY
        assert "ARP table gateway: 10.0.0.1 NOT RESOLVED" in log_messages

    def test_no_gateway_any_entry_ready(self, fake_netlink, neighbor, log_messages):
        """Test without a gateway any resolved entry suffices."""
        fake_netlink.neighbors.return_value = [neighbor("10.0.0.7")]
        fake_netlink.link_names.return_value = {2: "eth0"}
        assert NeighborProbe(fake_netlink).probe().outcome == ProbeOutcome.READY
        assert "ARP table: POPULATED (no gateway to check)" in log_messages

    def test_no_gateway_empty_not_ready(self, fake_netlink, log_messages):
        """Test without a gateway an empty table is not ready."""
        fake_netlink.link_names.return_value = {2: "eth0"}
        assert NeighborProbe(fake_netlink).probe().outcome == ProbeOutcome.NOT_READY
        assert "ARP table: EMPTY" in log_messages

    def test_interface_source_is_called_each_time(self, fake_netlink):
        """Test the monitored interface list is fetched fresh per check."""
        source_calls = []

        def source():
            source_calls.append(1)
            return ["eth0"]

        probe = NeighborProbe(fake_netlink, source)
        probe.probe()
        probe.probe()
        assert len(source_calls) == 2
