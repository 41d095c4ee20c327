"""Platform registry — maps network OS families to neighbor-discovery commands."""

from __future__ import annotations

from dataclasses import dataclass

from nbrmap.parsers import (
    CISCO_IOSXE_CDP,
    CISCO_IOSXE_LLDP,
    CISCO_IOSXE_LLDP_DETAIL,
    SONIC_LLDP,
)

# Network OS families; these match the inventory ``network_os`` / extras ``device_os`` values.
CISCO_IOSXE = "cisco_iosxe"
SONIC_DELL = "sonic_dell"

# Discovery preferences
PREF_AUTO = "auto"
PREF_LLDP = "lldp"
PREF_CDP = "cdp"
PREFERENCES = (PREF_AUTO, PREF_LLDP, PREF_CDP)


@dataclass(frozen=True)
class CommandSpec:
    """How to retrieve neighbors on one OS family.

    ``timeout`` (seconds) is advisory; the collector decides how to apply it.
    """

    os: str
    name: str
    command: str
    timeout: float
    parser_id: str

    @property
    def is_cdp(self) -> bool:
        return self.parser_id == CISCO_IOSXE_CDP


# Priority-ordered command specs per OS family
_COMMAND_MAP: dict[str, tuple[CommandSpec, ...]] = {
    CISCO_IOSXE: (
        # detail first: carries Management Addresses for identity matching
        CommandSpec(CISCO_IOSXE, "show lldp neighbors detail", "show lldp neighbors detail", 12.0, CISCO_IOSXE_LLDP_DETAIL),
        CommandSpec(CISCO_IOSXE, "show lldp neighbors", "show lldp neighbors", 8.0, CISCO_IOSXE_LLDP),
        CommandSpec(CISCO_IOSXE, "show cdp neighbors", "show cdp neighbors", 8.0, CISCO_IOSXE_CDP),
    ),
    SONIC_DELL: (
        CommandSpec(SONIC_DELL, "show lldp neighbors", "show lldp neighbors", 10.0, SONIC_LLDP),
    ),
}

# Mapping: OS family  →  netmiko device_type
_NETMIKO_MAP: dict[str, str] = {
    CISCO_IOSXE: "cisco_xe",
    SONIC_DELL:  "dell_sonic",
}


def normalize_os(os_family: str) -> str:
    return (os_family or "").strip().lower()


def default_commands(os_family: str) -> list[CommandSpec]:
    """Return the prioritized command specs for *os_family* (empty if unknown).

    Callers try specs in order until one runs and parses.
    """
    return list(_COMMAND_MAP.get(normalize_os(os_family), ()))


def commands_for_host(os_family: str, pref: str = PREF_AUTO) -> list[CommandSpec]:
    """Return the specs to try for a host, honoring its discovery preference.

    - ``auto`` (or empty / unrecognized): default order
    - ``lldp``: LLDP specs only (no CDP fallback)
    - ``cdp``:  CDP specs only

    Only IOS-XE has a CDP alternative; other families ignore the preference.
    """
    os_family = normalize_os(os_family)
    pref = (pref or "").strip().lower() or PREF_AUTO

    specs = default_commands(os_family)
    if os_family != CISCO_IOSXE:
        return specs

    if pref == PREF_LLDP:
        return [s for s in specs if not s.is_cdp]
    if pref == PREF_CDP:
        return [s for s in specs if s.is_cdp]
    return specs


def netmiko_device_type(os_family: str) -> str:
    """Return the Netmiko ``device_type`` used to reach *os_family* devices."""
    device_type = _NETMIKO_MAP.get(normalize_os(os_family))
    if not device_type:
        raise ValueError(
            f"Unsupported network_os '{os_family}'. "
            f"Supported: {supported_os_families()}"
        )
    return device_type


def supported_os_families() -> list[str]:
    """Return the OS families that have discovery commands."""
    return sorted(_COMMAND_MAP.keys())
