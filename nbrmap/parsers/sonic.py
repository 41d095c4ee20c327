"""Parsers for SONiC (Software for Open Networking in the Cloud) output."""

from __future__ import annotations

import logging
import re

from nbrmap.hostmatch import uniq_strings
from nbrmap.parsers.base import (
    NeighborEntry,
    ParseError,
    ParseResult,
    normalize_capability,
    validate_ip_token,
)

log = logging.getLogger(__name__)

# Builds differ in what follows "via: LLDP" (RID, Time, ...).
_INTERFACE = re.compile(r"^\s*Interface:\s*(?P<intf>[^,]+),\s*via:\s*LLDP(?:,.*)?\s*$")
_SYS_NAME = re.compile(r"^\s*SysName:\s*(?P<name>.+?)\s*$")
_MGMT_IP = re.compile(r"^\s*MgmtIP:\s*(?P<ip>\S+)\s*$")
# PortID often carries a subtype prefix ("local Ethernet0"); kept verbatim.
_PORT_ID = re.compile(r"^\s*PortID:\s*(?P<port>.+?)\s*$")
_CAPABILITY = re.compile(r"^\s*Capability:\s*(?P<cap>[^,]+),\s*(?P<state>on|off)\s*$", re.IGNORECASE)
_BANNER = re.compile(r"^\s*LLDP neighbors:?\s*$", re.IGNORECASE | re.MULTILINE)


class _Block:
    __slots__ = ("local_intf", "remote_name", "remote_port", "mgmt_ips", "caps", "raw_lines")

    def __init__(self, local_intf: str, first_line: str) -> None:
        self.local_intf = local_intf
        self.remote_name = ""
        self.remote_port = ""
        self.mgmt_ips: list[str] = []
        self.caps: list[str] = []
        self.raw_lines = [first_line]

    def to_entry(self, local_device: str) -> NeighborEntry | None:
        if not self.local_intf.strip() or not self.remote_name.strip():
            return None
        return NeighborEntry(
            local_device=local_device,
            local_port=self.local_intf.strip(),
            remote_device=self.remote_name.strip(),
            remote_port=self.remote_port.strip(),
            capabilities=uniq_strings(self.caps),
            mgmt_ips=uniq_strings(self.mgmt_ips),
            raw="\n".join(self.raw_lines).strip(),
        )


def parse_lldp_neighbors(local_device: str, output: str) -> ParseResult:
    """Parse SONiC ``show lldp neighbors`` (lldpctl-style blocks).

    Example block (abridged)::

        -------------------------------------------------------------------------------
        LLDP neighbors:
        -------------------------------------------------------------------------------
        Interface:    Ethernet0, via: LLDP, RID: 2, Time: 4 days, 16:32:36
          Chassis:
            ChassisID:    mac 52:54:00:3f:e7:50
            SysName:      sonic
            MgmtIP:       192.168.126.50
            Capability:   Bridge, off
            Capability:   Router, on
          Port:
            PortID:       local Ethernet0
            PortDescr:    Ethernet0
    """
    result = ParseResult.for_output(local_device, output)
    warnings: list[str] = []
    block: _Block | None = None
    saw_interface = False

    def flush() -> None:
        if block is None:
            return
        entry = block.to_entry(result.local_device)
        if entry is not None:
            result.entries.append(entry)

    for line in output.splitlines():
        trim = line.strip()

        m = _INTERFACE.match(line)
        if m:
            flush()
            saw_interface = True
            block = _Block(m.group("intf").strip(), line)
            continue

        if block is None:
            continue
        block.raw_lines.append(line)

        # blank lines and dashed rules stay in the raw text only
        if not trim or trim.startswith("-----"):
            continue

        m = _SYS_NAME.match(line)
        if m:
            block.remote_name = m.group("name").strip()
            continue
        m = _MGMT_IP.match(line)
        if m:
            ip = validate_ip_token(m.group("ip"), warnings, "sonic: invalid MgmtIP token: ")
            if ip is not None:
                block.mgmt_ips.append(ip)
            continue
        m = _PORT_ID.match(line)
        if m:
            block.remote_port = m.group("port").strip()
            continue
        m = _CAPABILITY.match(line)
        if m:
            if m.group("state").upper() == "ON":
                block.caps.append(normalize_capability(m.group("cap")))
            continue

    flush()
    result.warnings = uniq_strings(warnings)

    # An empty neighbor table still prints the "LLDP neighbors" banner.
    if not result.entries and not saw_interface and not _BANNER.search(output):
        raise ParseError("sonic lldp parse: missing expected Interface blocks")

    log.debug("%s: %d SONiC LLDP entries", result.local_device, len(result.entries))
    return result
