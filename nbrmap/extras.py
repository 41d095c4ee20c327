"""Per-host extras — supplemental discovery settings kept outside the inventory.

Extras come from two places:

- an ``extras:`` mapping on the host in the YAML inventory
- ``<extras dir>/<host key>.conf`` files using ``key=value`` lines::

      # nbrmap per-host extras
      device_os=cisco_iosxe
      neighbor_discovery=auto    # or: lldp | cdp
      mgmt_ip=192.0.2.10
      router_id=10.255.0.1

Keys are case-insensitive and unknown keys are ignored.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol

from nbrmap.inventory import Config, Host
from nbrmap.platforms import PREF_AUTO, PREFERENCES

log = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[/\\:*?\"<>|\s]")


@dataclass(frozen=True)
class HostExtras:
    """Discovery-related extras for one host."""

    host_key: str
    device_os: str = ""
    neighbor_discovery: str = PREF_AUTO
    mgmt_ip: str = ""
    router_id: str = ""

    def normalize(self) -> "HostExtras":
        pref = self.neighbor_discovery.strip().lower() or PREF_AUTO
        if pref not in PREFERENCES:
            pref = PREF_AUTO
        return replace(
            self,
            host_key=self.host_key.strip(),
            device_os=self.device_os.strip().lower(),
            neighbor_discovery=pref,
            mgmt_ip=self.mgmt_ip.strip(),
            router_id=self.router_id.strip(),
        )


@dataclass(frozen=True)
class ExtrasLookup:
    """Result of an extras lookup: the extras (if any) and why they are missing."""

    extras: HostExtras | None
    diagnostic: str = ""

    @property
    def found(self) -> bool:
        return self.extras is not None


class ExtrasStore(Protocol):
    def lookup(self, host_name: str) -> ExtrasLookup: ...


_KNOWN_KEYS = ("device_os", "neighbor_discovery", "mgmt_ip", "router_id")


def extras_from_mapping(host_key: str, values: Mapping[str, str]) -> HostExtras:
    """Build extras from a key/value mapping, ignoring unknown keys."""
    kwargs = {
        key: str(values[key])
        for key in _KNOWN_KEYS
        if values.get(key) is not None
    }
    return HostExtras(host_key=host_key, **kwargs).normalize()


def _split_kv(line: str) -> tuple[str, str] | None:
    # key=value preferred, key: value accepted
    for sep in ("=", ":"):
        if sep in line:
            key, _, value = line.partition(sep)
            return key.strip(), value.strip()
    return None


def parse_extras_text(text: str, host_key: str) -> HostExtras:
    """Parse the ``key=value`` extras file format."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith(("#", ";")):
            continue
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        kv = _split_kv(line)
        if kv is None:
            continue
        values[kv[0].lower()] = kv[1]
    return extras_from_mapping(host_key, values)


def sanitize_host_key(host_key: str) -> str:
    """Turn a host key into a filesystem-safe file stem."""
    stem = _UNSAFE_CHARS.sub("_", (host_key or "").strip())
    stem = re.sub(r"_{2,}", "_", stem).strip("._-")
    return stem or "host"


def default_extras_dir() -> Path:
    """``$XDG_CONFIG_HOME/nbrmap/hosts``, else ``~/.config/nbrmap/hosts``."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "").strip()
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "nbrmap" / "hosts"


class FileExtrasStore:
    """Read extras from one ``.conf`` file per host."""

    def __init__(self, directory: str | Path | None = None) -> None:
        self.directory = Path(directory) if directory else default_extras_dir()

    def path_for(self, host_key: str) -> Path:
        return self.directory / f"{sanitize_host_key(host_key)}.conf"

    def lookup(self, host_name: str) -> ExtrasLookup:
        host_key = (host_name or "").strip()
        if not host_key:
            return ExtrasLookup(None, "extras: host key is empty")
        path = self.path_for(host_key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ExtrasLookup(HostExtras(host_key=host_key))
        except OSError as exc:
            return ExtrasLookup(None, f"extras: cannot read {path}: {exc}")
        return ExtrasLookup(parse_extras_text(text, host_key))


class InventoryExtrasStore:
    """Extras declared inline on inventory hosts, with an optional fallback store."""

    def __init__(self, config: Config, fallback: ExtrasStore | None = None) -> None:
        self._hosts: dict[str, Host] = {}
        for host in config.hosts:
            self._hosts.setdefault(host.name.strip().lower(), host)
        self.fallback = fallback

    def lookup(self, host_name: str) -> ExtrasLookup:
        host_key = (host_name or "").strip()
        host = self._hosts.get(host_key.lower())
        if host is not None and host.extras:
            return ExtrasLookup(extras_from_mapping(host_key, host.extras))
        if self.fallback is not None:
            return self.fallback.lookup(host_key)
        if not host_key:
            return ExtrasLookup(None, "extras: host key is empty")
        return ExtrasLookup(HostExtras(host_key=host_key))


def effective_os(host: Host, extras: HostExtras | None) -> str:
    """Extras ``device_os`` overrides the inventory ``network_os``."""
    if extras is not None and extras.device_os:
        return extras.device_os
    return host.network_os.strip().lower()
