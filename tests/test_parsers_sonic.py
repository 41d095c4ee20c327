from __future__ import annotations

import pytest

from nbrmap.parsers import ParseError
from nbrmap.parsers.sonic import parse_lldp_neighbors

from .conftest import SONIC_LLDP


def test_single_interface_block():
    res = parse_lldp_neighbors("leaf1", SONIC_LLDP)
    assert len(res.entries) == 1
    e = res.entries[0]
    assert e.local_device == "leaf1"
    assert e.local_port == "Ethernet0"
    assert e.remote_device == "sonic"
    assert e.remote_port == "local Ethernet0"
    assert e.capabilities == ["ROUTER"]
    assert e.mgmt_ips == ["192.168.126.50"]
    assert e.raw.startswith("Interface:    Ethernet0, via: LLDP")
    assert res.identity_hint_ips == ["192.168.126.50"]


def test_multiple_blocks_and_capability_states():
    text = (
        "Interface:    Ethernet4, via: LLDP\n"
        "    SysName:      spine1\n"
        "    MgmtIP:       10.1.0.1\n"
        "    MgmtIP:       fe80::1\n"
        "    Capability:   Bridge, ON\n"
        "    Capability:   Router, on\n"
        "    Capability:   Wlan, off\n"
        "    PortID:       ifname Ethernet48\n"
        "Interface:    Ethernet8, via: LLDP, RID: 7\n"
        "    ChassisID:    mac aa:bb:cc:dd:ee:ff\n"
        "Interface:    Ethernet12, via: LLDP\n"
        "    SysName:      spine2\n"
    )
    res = parse_lldp_neighbors("leaf1", text)
    assert [e.local_port for e in res.entries] == ["Ethernet4", "Ethernet12"]
    first = res.entries[0]
    assert first.capabilities == ["BRIDGE", "ROUTER"]
    assert first.mgmt_ips == ["10.1.0.1", "fe80::1"]
    assert first.remote_port == "ifname Ethernet48"
    assert res.entries[1].remote_device == "spine2"


def test_invalid_mgmt_ip_warns_once():
    text = (
        "Interface:    Ethernet0, via: LLDP\n"
        "    SysName:      sonic\n"
        "    MgmtIP:       not-an-ip\n"
        "    MgmtIP:       not-an-ip\n"
    )
    res = parse_lldp_neighbors("leaf1", text)
    assert res.entries[0].mgmt_ips == []
    assert res.warnings == ["sonic: invalid MgmtIP token: not-an-ip"]


def test_empty_neighbor_table_is_success():
    text = (
        "-------------------------------------------------------------------------------\n"
        "LLDP neighbors:\n"
        "-------------------------------------------------------------------------------\n"
    )
    res = parse_lldp_neighbors("leaf1", text)
    assert res.entries == []


def test_unrecognized_output_fails():
    with pytest.raises(ParseError, match="sonic"):
        parse_lldp_neighbors("leaf1", "bash: show: command not found\n")
