from __future__ import annotations

import pytest

from nbrmap.inventory import config_from_dict

IOSXE_LLDP_TABLE = """\
Capability codes:
    (R) Router, (B) Bridge, (T) Telephone, (C) DOCSIS Cable Device
    (W) WLAN Access Point, (P) Repeater, (S) Station, (O) Other

Device ID           Local Intf     Hold-time  Capability      Port ID
sonic               Gi2            120        R               Ethernet1
Total entries displayed: 1
"""

IOSXE_LLDP_DETAIL = """\
------------------------------------------------
Local Intf: Gi2
Chassis id: 5254.003f.e750
Port id: Ethernet1
Port Description: Eth1/2
System Name: sonic

System Description:
SONiC Software Version: SONiC.4.1.0-Enterprise_Base

Time remaining: 99 seconds
System Capabilities: B,W,R,S
Enabled Capabilities: R
Management Addresses:
    IP: 192.168.129.174
Auto Negotiation - not supported
Physical media capabilities - not advertised
Media Attachment Unit type - not advertised
Vlan ID: - not advertised

Total entries displayed: 1
"""

IOSXE_CDP = """\
Capability Codes: R - Router, T - Trans Bridge, B - Source Route Bridge
                  S - Switch, H - Host, I - IGMP, r - Repeater, P - Phone

Device ID        Local Intrfce     Holdtme    Capability  Platform  Port ID
sonic            Gig 2             153        R S I       N3K-C3064 Eth 1/1
rtr2             Gig 3             171        R I         CSR1000V  Gig 1

Total cdp entries displayed : 2
"""

SONIC_LLDP = """\
-------------------------------------------------------------------------------
LLDP neighbors:
-------------------------------------------------------------------------------
Interface:    Ethernet0, via: LLDP, RID: 2, Time: 4 days, 16:32:36
  Chassis:
    ChassisID:    mac 52:54:00:3f:e7:50
    SysName:      sonic
    SysDescr:     SONiC Software Version: SONiC.4.1.0
    MgmtIP:       192.168.126.50
    Capability:   Bridge, off
    Capability:   Router, on
  Port:
    PortID:       local Ethernet0
    PortDescr:    Ethernet0
-------------------------------------------------------------------------------
"""


@pytest.fixture
def inventory_data() -> dict:
    return {
        "defaults": {"username": "admin", "port": 22},
        "groups": [
            {"name": "dc1", "default_user": "netops", "default_port": 2222},
            {"name": "dc2"},
        ],
        "hosts": [
            {"name": "rtr1.dc1.example.com", "group": "dc1", "network_os": "cisco_iosxe",
             "extras": {"router_id": "10.255.0.1"}},
            {"name": "rtr2.dc1.example.com", "group": "dc1", "network_os": "cisco_iosxe",
             "user": "ops", "port": 830},
            {"name": "leaf1", "group": "dc2", "network_os": "sonic_dell",
             "extras": {"mgmt_ip": "192.168.126.50"}},
        ],
    }


@pytest.fixture
def config(inventory_data):
    return config_from_dict(inventory_data)
