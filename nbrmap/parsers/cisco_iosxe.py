"""Parsers for Cisco IOS / IOS-XE neighbor output.

``show lldp neighbors detail`` is preferred because it carries management
addresses; the LLDP summary table and ``show cdp neighbors`` are fallbacks.

Capability note: the detail parser reads *System Capabilities* (e.g.
``B,W,R,S``) rather than *Enabled Capabilities*. This is an approximation and
may need revisiting if a multi-neighbor edge case shows up.
"""

from __future__ import annotations

import enum
import logging
import re

from nbrmap.hostmatch import uniq_strings
from nbrmap.parsers.base import (
    NeighborEntry,
    ParseError,
    ParseResult,
    split_capabilities,
    validate_ip_token,
)

log = logging.getLogger(__name__)

# ``show lldp neighbors`` row:
#   sonic               Gi2            120        R               Ethernet1
_LLDP_ROW = re.compile(
    r"^\s*(?P<device>\S+)\s+(?P<local>\S+)\s+(?P<hold>\d+)\s+(?P<caps>[A-Za-z,]+)\s+(?P<port>\S+)\s*$"
)

# ``show lldp neighbors detail`` fields
_DETAIL_LOCAL_INTF = re.compile(r"^\s*Local\s+Intf:\s*(?P<intf>\S+)\s*$")
_DETAIL_PORT_ID = re.compile(r"^\s*Port\s+id:\s*(?P<port>\S+)\s*$")
_DETAIL_SYS_NAME = re.compile(r"^\s*System\s+Name:\s*(?P<name>.+?)\s*$")
_DETAIL_SYS_CAPS = re.compile(r"^\s*System\s+Capabilities:\s*(?P<caps>.+?)\s*$")
_DETAIL_MGMT_IP = re.compile(r"^\s*IP:\s*(?P<ip>\S+)\s*$")

# Sections that may follow "Management Addresses:" and end it.
_MGMT_EXIT_PREFIXES = (
    "Auto Negotiation",
    "Physical media",
    "MED Information",
    "Time remaining",
    "Vlan ID",
)

# ``show cdp neighbors`` header:
#   Device ID        Local Intrfce     Holdtme    Capability  Platform  Port ID
_CDP_HEADER = re.compile(r"^\s*Device\s+ID\s+Local\s+Intrfce.*Port\s+ID\s*$")


# ─── show lldp neighbors ────────────────────────────────────────────────────

def parse_lldp_neighbors(local_device: str, output: str) -> ParseResult:
    """Parse the ``show lldp neighbors`` summary table.

    Example::

        Device ID           Local Intf     Hold-time  Capability      Port ID
        sonic               Gi2            120        R               Ethernet1

        Total entries displayed: 1
    """
    result = ParseResult.for_output(local_device, output)
    warnings: list[str] = []
    in_table = False

    for line in output.splitlines():
        trim = line.strip()

        if not in_table:
            if trim.startswith("Device ID") and "Local Intf" in trim and "Port ID" in trim:
                in_table = True
            continue

        if not trim or trim.startswith("Total entries"):
            break
        if trim.startswith("Capability codes"):
            continue

        m = _LLDP_ROW.match(line)
        if not m:
            # wrapped rows on narrow terminals end up here
            warnings.append(f"unparsed row: {trim}")
            continue

        result.entries.append(NeighborEntry(
            local_device=result.local_device,
            local_port=m.group("local").strip(),
            remote_device=m.group("device").strip(),
            remote_port=m.group("port").strip(),
            capabilities=split_capabilities(m.group("caps")),
            raw=trim,
        ))

    result.warnings = uniq_strings(warnings)

    if not result.entries and "Device ID" not in output:
        raise ParseError("cisco iosxe lldp parse: missing expected header")

    log.debug("%s: %d LLDP table entries", result.local_device, len(result.entries))
    return result


# ─── show lldp neighbors detail ─────────────────────────────────────────────

class DetailState(enum.Enum):
    """Scanner state for ``show lldp neighbors detail``."""

    OUTSIDE_BLOCK = "outside_block"
    IN_BLOCK = "in_block"
    IN_MGMT_ADDRS = "in_mgmt_addrs"


def _is_detail_field(line: str) -> bool:
    return bool(
        _DETAIL_PORT_ID.match(line)
        or _DETAIL_SYS_NAME.match(line)
        or _DETAIL_SYS_CAPS.match(line)
    )


def next_detail_state(state: DetailState, line: str) -> DetailState:
    """Return the scanner state after consuming *line*.

    - ``Local Intf:`` always opens a new block.
    - ``Management Addresses:`` enters the address sub-state.
    - The sub-state ends on a known next-section prefix or on a non-indented
      line that is not an ``IP:`` line. Blank lines keep it open.
    """
    if _DETAIL_LOCAL_INTF.match(line):
        return DetailState.IN_BLOCK
    if state is DetailState.OUTSIDE_BLOCK:
        return state
    if _is_detail_field(line):
        return state

    trim = line.strip()
    if trim.lower() == "management addresses:":
        return DetailState.IN_MGMT_ADDRS

    if state is DetailState.IN_MGMT_ADDRS:
        if trim.startswith(_MGMT_EXIT_PREFIXES):
            return DetailState.IN_BLOCK
        if not trim or _DETAIL_MGMT_IP.match(line) or line.startswith(("    ", "\t")):
            return state
        return DetailState.IN_BLOCK

    return state


class _DetailBlock:
    __slots__ = ("local_intf", "remote_port", "remote_name", "caps", "mgmt_ips", "raw_lines")

    def __init__(self, local_intf: str, first_line: str) -> None:
        self.local_intf = local_intf
        self.remote_port = ""
        self.remote_name = ""
        self.caps: list[str] = []
        self.mgmt_ips: list[str] = []
        self.raw_lines = [first_line]

    def to_entry(self, local_device: str) -> NeighborEntry | None:
        # incomplete blocks are dropped, not reported
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


def parse_lldp_neighbors_detail(local_device: str, output: str) -> ParseResult:
    """Parse ``show lldp neighbors detail`` into one entry per ``Local Intf`` block.

    Example block::

        ------------------------------------------------
        Local Intf: Gi2
        Chassis id: 5254.003f.e750
        Port id: Ethernet1
        Port Description: Eth1/2
        System Name: sonic
        System Capabilities: B,W,R,S
        Enabled Capabilities: R
        Management Addresses:
            IP: 192.168.129.174
        Auto Negotiation - not supported

        Total entries displayed: 1
    """
    result = ParseResult.for_output(local_device, output)
    warnings: list[str] = []
    state = DetailState.OUTSIDE_BLOCK
    block: _DetailBlock | None = None

    def flush() -> None:
        if block is None:
            return
        entry = block.to_entry(result.local_device)
        if entry is not None:
            result.entries.append(entry)

    for line in output.splitlines():
        if line.strip().startswith("Total entries"):
            break

        m = _DETAIL_LOCAL_INTF.match(line)
        if m:
            flush()
            block = _DetailBlock(m.group("intf").strip(), line)
            state = DetailState.IN_BLOCK
            continue

        state = next_detail_state(state, line)
        if state is DetailState.OUTSIDE_BLOCK or block is None:
            continue
        block.raw_lines.append(line)

        m = _DETAIL_PORT_ID.match(line)
        if m:
            block.remote_port = m.group("port").strip()
            continue
        m = _DETAIL_SYS_NAME.match(line)
        if m:
            block.remote_name = m.group("name").strip()
            continue
        m = _DETAIL_SYS_CAPS.match(line)
        if m:
            block.caps.extend(split_capabilities(m.group("caps")))
            continue

        if state is DetailState.IN_MGMT_ADDRS:
            m = _DETAIL_MGMT_IP.match(line)
            if m:
                ip = validate_ip_token(m.group("ip"), warnings, "cisco detail: invalid mgmt ip token: ")
                if ip is not None:
                    block.mgmt_ips.append(ip)

    flush()
    result.warnings = uniq_strings(warnings)

    if not result.entries and "Local Intf:" not in output:
        raise ParseError("cisco iosxe lldp detail parse: missing expected Local Intf blocks")

    log.debug("%s: %d LLDP detail entries", result.local_device, len(result.entries))
    return result


# ─── show cdp neighbors ─────────────────────────────────────────────────────

def parse_cdp_neighbors(local_device: str, output: str) -> ParseResult:
    """Parse the ``show cdp neighbors`` table with a token heuristic.

    Example::

        Device ID        Local Intrfce     Holdtme    Capability  Platform  Port ID
        sonic            Gig 2             153        R S I       ...       Eth 1/1

    - remote device: first token
    - remote port: last two tokens joined (``Eth 1/1``)
    - local port: second token, plus the third when it is purely numeric (``Gig 2``)

    Capability and platform columns vary too much to be positioned reliably,
    so capabilities are left empty. The output carries no management IPs.
    """
    result = ParseResult.for_output(local_device, output)
    in_table = False

    for line in output.splitlines():
        trim = line.strip()
        if not trim:
            continue

        if not in_table:
            if _CDP_HEADER.match(line):
                in_table = True
            continue

        if trim.startswith("Total") and "entries" in trim:
            break

        toks = line.split()
        if len(toks) < 4:
            continue

        remote_port = f"{toks[-2]} {toks[-1]}".strip() or toks[-1]

        local_port = toks[1]
        if toks[2].isdigit():
            local_port = f"{toks[1]} {toks[2]}"

        result.entries.append(NeighborEntry(
            local_device=result.local_device,
            local_port=local_port.strip(),
            remote_device=toks[0].strip(),
            remote_port=remote_port,
            raw=trim,
        ))

    if not result.entries and "Device ID" not in output:
        raise ParseError("cisco iosxe cdp parse: missing expected header")

    log.debug("%s: %d CDP entries", result.local_device, len(result.entries))
    return result
