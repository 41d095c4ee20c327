"""Neighbor-output parsers and the parser-ID dispatcher."""

from __future__ import annotations

from importlib import import_module

from nbrmap.parsers.base import (
    NbrmapError,
    NeighborEntry,
    ParseError,
    ParseResult,
    UnknownParserError,
    normalize_capability,
)

# Parser IDs decouple command selection from parser function names.
CISCO_IOSXE_LLDP = "cisco_iosxe_show_lldp_neighbors"
CISCO_IOSXE_LLDP_DETAIL = "cisco_iosxe_show_lldp_neighbors_detail"
CISCO_IOSXE_CDP = "cisco_iosxe_show_cdp_neighbors"
SONIC_LLDP = "sonic_cli_show_lldp_neighbor"

# Mapping: parser id  →  "module:function"
_PARSER_MAP: dict[str, str] = {
    CISCO_IOSXE_LLDP:        "nbrmap.parsers.cisco_iosxe:parse_lldp_neighbors",
    CISCO_IOSXE_LLDP_DETAIL: "nbrmap.parsers.cisco_iosxe:parse_lldp_neighbors_detail",
    CISCO_IOSXE_CDP:         "nbrmap.parsers.cisco_iosxe:parse_cdp_neighbors",
    SONIC_LLDP:              "nbrmap.parsers.sonic:parse_lldp_neighbors",
}


def get_parser(parser_id: str):
    """Return the parse function registered under *parser_id*."""
    key = (parser_id or "").strip().lower()
    target = _PARSER_MAP.get(key)
    if not target:
        raise UnknownParserError(f"unknown lldp parser id: {key!r}")
    mod_path, func_name = target.split(":")
    return getattr(import_module(mod_path), func_name)


def parse_output(parser_id: str, local_device: str, output: str) -> ParseResult:
    """Parse *output* collected on *local_device* with the parser for *parser_id*.

    Raises :class:`UnknownParserError` for unregistered IDs and
    :class:`ParseError` when the output does not look like the expected format.
    """
    return get_parser(parser_id)(local_device, output)


def supported_parsers() -> list[str]:
    """Return the registered parser IDs."""
    return sorted(_PARSER_MAP.keys())


__all__ = [
    "CISCO_IOSXE_CDP",
    "CISCO_IOSXE_LLDP",
    "CISCO_IOSXE_LLDP_DETAIL",
    "SONIC_LLDP",
    "NbrmapError",
    "NeighborEntry",
    "ParseError",
    "ParseResult",
    "UnknownParserError",
    "get_parser",
    "normalize_capability",
    "parse_output",
    "supported_parsers",
]
