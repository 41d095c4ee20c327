"""Shared data model and helpers for neighbor-output parsers."""

from __future__ import annotations

from dataclasses import dataclass, field

from nbrmap.hostmatch import canonical_ip, extract_ips_from_text, uniq_strings


class NbrmapError(Exception):
    """Base class for nbrmap errors."""


class ParseError(NbrmapError, ValueError):
    """Output did not look like the format the parser expects.

    Callers treat this as a signal to try the next command spec.
    """


class UnknownParserError(NbrmapError, ValueError):
    """No parser is registered under the requested identifier."""


# Single-letter LLDP capability codes → stable labels.
CAPABILITY_CODES: dict[str, str] = {
    "R": "ROUTER",
    "B": "BRIDGE",
    "T": "TELEPHONE",
    "W": "WLAN_AP",
    "P": "REPEATER",
    "S": "STATION",
    "O": "OTHER",
}


def normalize_capability(token: str) -> str:
    """Map a capability token to its label; unknown tokens pass through upper-cased."""
    token = (token or "").strip().upper()
    if not token:
        return ""
    return CAPABILITY_CODES.get(token, token)


def split_capabilities(raw: str) -> list[str]:
    """Normalize a comma-separated capability list such as ``B,W,R,S``."""
    return uniq_strings(normalize_capability(tok) for tok in (raw or "").split(","))


@dataclass
class NeighborEntry:
    """One directional adjacency: *local_device* sees *remote_device* on *local_port*."""

    local_device: str
    local_port: str
    remote_device: str
    remote_port: str = ""
    capabilities: list[str] = field(default_factory=list)
    mgmt_ips: list[str] = field(default_factory=list)
    raw: str = ""


@dataclass
class ParseResult:
    """Outcome of parsing one command's output on one device."""

    local_device: str
    entries: list[NeighborEntry] = field(default_factory=list)
    identity_hint_ips: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def for_output(cls, local_device: str, output: str) -> "ParseResult":
        """Start a result with identity hints scanned from the whole output."""
        return cls(
            local_device=(local_device or "").strip(),
            identity_hint_ips=extract_ips_from_text(output),
        )


def validate_ip_token(token: str, warnings: list[str], prefix: str) -> str | None:
    """Return the canonical IP for *token*, or record a warning and return ``None``."""
    token = (token or "").strip()
    ip = canonical_ip(token)
    if ip is None and token:
        warnings.append(f"{prefix}{token}")
    return ip
