"""Host-name normalization and identity-IP helpers used for topology matching.

These helpers are meant for comparing discovered neighbor names against the
configured inventory. They do not try to emulate DNS or SSH resolution.
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Iterable

# Delimiters used when scanning free text for IP literals.
_IP_TOKEN_SPLIT = re.compile(r"[\s,;|()\[\]{}<>\"'=]+")


def canonical_ip(value: str) -> str | None:
    """Return the canonical string form of an IP literal, or ``None``.

    IPv4-mapped IPv6 folds to its IPv4 form. Zone-scoped addresses
    (``fe80::1%Ethernet0``) are rejected.
    """
    value = (value or "").strip()
    if not value or "%" in value:
        return None
    try:
        addr = ipaddress.ip_address(value)
    except ValueError:
        return None
    if addr.version == 6 and addr.ipv4_mapped is not None:
        return str(addr.ipv4_mapped)
    return str(addr)


def normalize_host_full(name: str) -> str:
    """Normalize a host/system name for exact comparison.

    - trim spaces
    - drop a trailing dot (FQDN form)
    - strip surrounding brackets from IPv6 literals like ``[2001:db8::1]``
    - lower-case
    """
    name = (name or "").strip()
    if not name:
        return ""
    name = name.removesuffix(".")
    if len(name) >= 2 and name[0] == "[" and name[-1] == "]":
        name = name[1:-1]
    return name.strip().lower()


def normalize_host_short(name: str) -> str:
    """Return the short name: canonical IP for IP literals, else the first DNS label."""
    full = normalize_host_full(name)
    if not full:
        return ""
    ip = canonical_ip(full)
    if ip is not None:
        return ip
    return full.split(".", 1)[0]


def host_name_matches(configured: str, discovered: str) -> bool:
    """Exact full-name match first, then short-name match. No globbing."""
    a_full = normalize_host_full(configured)
    b_full = normalize_host_full(discovered)
    if not a_full or not b_full:
        return False
    if a_full == b_full:
        return True
    return normalize_host_short(a_full) == normalize_host_short(b_full)


def uniq_strings(values: Iterable[str]) -> list[str]:
    """Trim, drop empties and de-duplicate while keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        value = (value or "").strip()
        if not value or value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


# Same contract, kept under the name the graph builder reads naturally.
dedup_non_empty = uniq_strings


def dedup_ips(values: Iterable[str]) -> list[str]:
    """Keep only valid IP literals, canonicalized and de-duplicated in order."""
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        ip = canonical_ip(value)
        if ip is None or ip in seen:
            continue
        seen.add(ip)
        out.append(ip)
    return out


def extract_ips_from_text(text: str) -> list[str]:
    """Return every IP literal found in *text*, canonicalized and de-duplicated.

    Best-effort identity-hint scan; IPv6 detection in free text is not exact.
    """
    text = (text or "").strip()
    if not text:
        return []
    candidates: list[str] = []
    for tok in _IP_TOKEN_SPLIT.split(text):
        tok = tok.strip(".,;")
        tok = tok.removeprefix("[").removesuffix("]")
        if tok:
            candidates.append(tok)
    return dedup_ips(candidates)


def choose_identity_ips(router_id: str, mgmt_ips: Iterable[str]) -> list[str]:
    """Identity IPs for matching: router-id first, then management IPs."""
    return dedup_ips([router_id or "", *mgmt_ips])
