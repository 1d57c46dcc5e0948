"""Tests for netstartup/probes/bonding.py"""

import pytest

from netstartup.exceptions import BondRecordError, ProbeError
from netstartup.probes.bonding import (
    BondEvaluator,
    assess_bond,
    evaluate_bond_health,
    parse_bond_record,
)
from netstartup.probes.models import BondMode, BondStatus, SlaveLACPState
from netstartup.probes.sysfs import SysfsReader

LACP_RECORD = """\
Ethernet Channel Bonding Driver: v5.15.0

Bonding Mode: IEEE 802.3ad Dynamic link aggregation
Transmit Hash Policy: layer3+4 (1)
MII Status: up
MII Polling Interval (ms): 100

Slave Interface: eth0
MII Status: up
Speed: 10000 Mbps
Actor LACP PDU:
    state: {eth0}

Slave Interface: eth1
MII Status: up
Speed: 10000 Mbps
Actor LACP PDU:
    state: {eth1}
"""

KERNEL_LACP_RECORD = """\
Ethernet Channel Bonding Driver: v6.1.0

Bonding Mode: IEEE 802.3ad Dynamic link aggregation
Transmit Hash Policy: layer2 (0)
MII Status: up
MII Polling Interval (ms): 100
Up Delay (ms): 0
Down Delay (ms): 0

802.3ad info
LACP active: on
LACP rate: slow
System MAC address: 52:54:00:12:34:56
Active Aggregator Info:
\tAggregator ID: 1
\tNumber of ports: 2
\tPartner Mac Address: 52:54:00:ab:cd:ef

Slave Interface: enp1s0
MII Status: up
Speed: 1000 Mbps
Duplex: full
Permanent HW addr: 52:54:00:00:00:01
Aggregator ID: 1
Actor Churn State: none
details actor lacp pdu:
    system priority: 65535
    system mac address: 52:54:00:12:34:56
    port key: 15
    port number: 1
    port state: {enp1s0}
details partner lacp pdu:
    system priority: 65535
    oper key: 15
    port number: 1
    port state: 61

Slave Interface: enp2s0
MII Status: up
Speed: 1000 Mbps
Duplex: full
details actor lacp pdu:
    port key: 15
    port state: 61
details partner lacp pdu:
    port state: 61
"""

ACTIVE_BACKUP_RECORD = """\
Ethernet Channel Bonding Driver: v5.15.0

Bonding Mode: fault-tolerance (active-backup)
Primary Slave: None
Currently Active Slave: {active}
MII Status: up
MII Polling Interval (ms): 100

Slave Interface: eth0
MII Status: up
Link Failure Count: 0

Slave Interface: eth1
MII Status: down
Link Failure Count: 3
"""

ROUND_ROBIN_RECORD = """\
Ethernet Channel Bonding Driver: v5.15.0

Bonding Mode: load balancing (round-robin)
MII Status: up
MII Polling Interval (ms): 100

Slave Interface: eth0
MII Status: {eth0}

Slave Interface: eth1
MII Status: {eth1}
"""

NO_SLAVES_RECORD = """\
Ethernet Channel Bonding Driver: v5.15.0

Bonding Mode: {mode}
MII Status: up
MII Polling Interval (ms): 100
"""


class TestParseBondRecord:
    """Tests for parse_bond_record."""

    def test_parses_mode_and_bond_level_mii(self):
        """Test the bond-level MII status is the one before the first slave."""
        status = parse_bond_record("bond0", ACTIVE_BACKUP_RECORD.format(active="eth0"))
        assert status.mode == BondMode.ACTIVE_BACKUP
        assert status.mode_description == "fault-tolerance (active-backup)"
        assert status.mii_status == "up"
        assert status.lacp_complete is False

    def test_parses_slaves_and_their_mii(self):
        """Test per-slave MII status is read from each Slave Interface block."""
        status = parse_bond_record("bond0", ACTIVE_BACKUP_RECORD.format(active="eth0"))
        assert [s.name for s in status.slaves] == ["eth0", "eth1"]
        assert [s.mii_status for s in status.slaves] == ["up", "down"]
        assert status.total_slaves == 2
        assert status.slaves_up == 1

    def test_active_slave_field(self):
        """Test Currently Active Slave is captured, and 'Primary Slave' is ignored."""
        status = parse_bond_record("bond0", ACTIVE_BACKUP_RECORD.format(active="eth0"))
        assert status.active_slave == "eth0"
        assert status.has_active_slave_field is True

    def test_round_robin_has_no_active_slave_field(self):
        """Test modes without an active slave report no field."""
        status = parse_bond_record("bond0", ROUND_ROBIN_RECORD.format(eth0="up", eth1="up"))
        assert status.mode == BondMode.OTHER
        assert status.has_active_slave_field is False
        assert status.active_slave is None

    def test_hex_state_field(self):
        """Test a bare 'state:' value is parsed as hexadecimal."""
        status = parse_bond_record("bond0", LACP_RECORD.format(eth0="0x3F", eth1="3d"))
        assert status.mode == BondMode.LACP
        assert [s.actor_state for s in status.slaves] == [0x3F, 0x3D]

    def test_kernel_port_state_is_decimal(self):
        """Test 'port state:' in the kernel's actor block is decimal (61 == 0x3d)."""
        status = parse_bond_record("bond0", KERNEL_LACP_RECORD.format(enp1s0="61"))
        assert [s.actor_state for s in status.slaves] == [61, 61]
        assert all(s.negotiated for s in status.slaves)

    def test_partner_block_ignored(self):
        """Test the partner's port state never overwrites the actor's."""
        status = parse_bond_record("bond0", KERNEL_LACP_RECORD.format(enp1s0="7"))
        assert status.slaves[0].actor_state == 7
        assert status.slaves[0].negotiated is False

    def test_aggregator_info_does_not_create_slaves(self):
        """Test bond-level 802.3ad info lines are not mistaken for slave data."""
        status = parse_bond_record("bond0", KERNEL_LACP_RECORD.format(enp1s0="61"))
        assert [s.name for s in status.slaves] == ["enp1s0", "enp2s0"]
        assert status.mii_status == "up"

    def test_empty_record(self):
        """Test an empty record yields an unknown bond with no slaves."""
        status = parse_bond_record("bond0", "")
        assert status.mii_status == "unknown"
        assert status.slaves == []


class TestSlaveLACPState:
    """Tests for SlaveLACPState bit helpers."""

    @pytest.mark.parametrize(
        "state, negotiated",
        [(0x3F, True), (0x3D, True), (0x30, True), (0x07, False), (0x1F, False), (0x2F, False), (None, False)],
    )
    def test_negotiated_needs_collecting_and_distributing(self, state, negotiated):
        """Test both 0x10 and 0x20 must be set."""
        assert SlaveLACPState(name="eth0", actor_state=state).negotiated is negotiated


class TestEvaluateBondHealth:
    """Tests for the per-mode health policy."""

    def test_lacp_all_negotiated_is_healthy(self):
        """Test two slaves at 0x3F make the bond healthy."""
        status = parse_bond_record("bond0", LACP_RECORD.format(eth0="0x3F", eth1="0x3F"))
        assert evaluate_bond_health(status) == (True, "")

    def test_lacp_single_slave_not_negotiated_fails_bond(self):
        """Test one slave at 0x07 makes the whole bond unhealthy."""
        status = parse_bond_record("bond0", LACP_RECORD.format(eth0="0x3F", eth1="0x07"))
        healthy, reason = evaluate_bond_health(status)
        assert healthy is False
        assert "eth1" in reason

    def test_active_backup_with_active_slave_is_healthy(self):
        """Test active-backup with a named active slave."""
        status = parse_bond_record("bond0", ACTIVE_BACKUP_RECORD.format(active="eth0"))
        assert evaluate_bond_health(status)[0] is True

    def test_active_backup_none_sentinel_is_unhealthy(self):
        """Test the literal 'None' active slave."""
        status = parse_bond_record("bond0", ACTIVE_BACKUP_RECORD.format(active="None"))
        assert evaluate_bond_health(status) == (False, "no active slave")

    def test_round_robin_with_slave_up_is_healthy(self):
        """Test other modes without an active-slave field need one slave up."""
        status = parse_bond_record("bond0", ROUND_ROBIN_RECORD.format(eth0="down", eth1="up"))
        assert evaluate_bond_health(status)[0] is True

    def test_round_robin_without_active_slave_line_is_healthy(self):
        """Test a round-robin record with no 'Currently Active Slave' line is judged on slave MII alone."""
        status = parse_bond_record("bond0", ROUND_ROBIN_RECORD.format(eth0="up", eth1="up"))
        assert status.has_active_slave_field is False
        assert status.active_slave is None
        assert evaluate_bond_health(status) == (True, "")

    def test_round_robin_all_slaves_down_is_unhealthy(self):
        """Test other modes with no slave up."""
        status = parse_bond_record("bond0", ROUND_ROBIN_RECORD.format(eth0="down", eth1="down"))
        assert evaluate_bond_health(status) == (False, "no slave with MII up")

    def test_other_mode_with_none_active_slave_is_unhealthy(self):
        """Test other modes that report an active slave field need it set."""
        status = BondStatus(
            name="bond0",
            mode=BondMode.OTHER,
            mii_status="up",
            active_slave="None",
            has_active_slave_field=True,
            slaves=[SlaveLACPState(name="eth0", mii_status="up")],
        )
        assert evaluate_bond_health(status)[0] is False

    @pytest.mark.parametrize(
        "mode", ["IEEE 802.3ad Dynamic link aggregation", "fault-tolerance (active-backup)", "load balancing (xor)"]
    )
    def test_zero_slaves_never_healthy(self, mode):
        """Test a bond with zero slaves is unhealthy in every mode."""
        status = parse_bond_record("bond0", NO_SLAVES_RECORD.format(mode=mode))
        assert evaluate_bond_health(status) == (False, "no slaves")

    def test_bond_mii_down_overrides_slave_state(self):
        """Test bond-level MII down is unhealthy even with negotiated slaves."""
        record = LACP_RECORD.format(eth0="0x3F", eth1="0x3F").replace("MII Status: up\nMII Polling", "MII Status: down\nMII Polling")
        status = parse_bond_record("bond0", record)
        assert status.mii_status == "down"
        assert evaluate_bond_health(status) == (False, "MII status down")

    def test_assess_bond_sets_lacp_complete(self):
        """Test assess_bond returns a copy with the verdict."""
        status = parse_bond_record("bond0", LACP_RECORD.format(eth0="0x3F", eth1="0x3F"))
        assessed = assess_bond(status)
        assert assessed.lacp_complete is True
        assert status.lacp_complete is False


class TestBondEvaluator:
    """Tests for BondEvaluator against a fake procfs."""

    def test_evaluate_reads_record(self, sysfs_tree, log_messages):
        """Test evaluate parses the bond file and logs a HEALTHY verdict."""
        sysfs_tree.bond("bond0", KERNEL_LACP_RECORD.format(enp1s0="61"))
        status = BondEvaluator(SysfsReader(sysfs_tree.root)).evaluate("bond0")
        assert status.lacp_complete is True
        assert "Bond bond0: HEALTHY" in log_messages
        assert "Bond bond0 slave enp1s0: LACP negotiated (state: 0x3d)" in log_messages

    def test_evaluate_unhealthy_logs_reason(self, sysfs_tree, log_messages):
        """Test an unhealthy bond is logged with the reason."""
        sysfs_tree.bond("bond0", LACP_RECORD.format(eth0="0x3F", eth1="0x07"))
        status = BondEvaluator(SysfsReader(sysfs_tree.root)).evaluate("bond0")
        assert status.lacp_complete is False
        assert any(m.startswith("Bond bond0: UNHEALTHY") for m in log_messages)

    def test_missing_record_raises_probe_error(self, tmp_path):
        """Test a missing bonding record raises BondRecordError (a ProbeError)."""
        evaluator = BondEvaluator(SysfsReader(tmp_path))
        with pytest.raises(BondRecordError) as exc_info:
            evaluator.evaluate("bond9")
        assert isinstance(exc_info.value, ProbeError)
