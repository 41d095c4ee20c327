"""Inventory loader — read the YAML host/group inventory file."""

from __future__ import annotations

import getpass
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from nbrmap.hostmatch import normalize_host_full

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Group:
    """Defaults shared by the hosts referencing this group."""

    name: str
    default_user: str = ""
    default_port: int = 0


@dataclass(frozen=True)
class Host:
    """One configured device. ``name`` may carry a DNS suffix."""

    name: str
    group: str = ""
    user: str = ""
    port: int = 0
    tags: tuple[str, ...] = ()
    network_os: str = ""
    extras: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}), hash=False)


@dataclass(frozen=True)
class ResolvedHost:
    """A host merged with its group and inventory defaults."""

    host: Host
    group: Group | None
    user: str
    port: int
    password: str = ""
    timeout: int = 30

    @property
    def name(self) -> str:
        return self.host.name


@dataclass
class Config:
    """Parsed inventory."""

    hosts: list[Host] = field(default_factory=list)
    groups: list[Group] = field(default_factory=list)
    defaults: dict[str, Any] = field(default_factory=dict)

    def group_by_name(self) -> dict[str, Group]:
        return {g.name: g for g in self.groups}

    def host_by_name(self, name: str) -> Host | None:
        """Return the first host whose normalized full name equals *name*'s."""
        key = normalize_host_full(name)
        if not key:
            return None
        for host in self.hosts:
            if normalize_host_full(host.name) == key:
                return host
        return None

    def resolve_effective(self, host: Host) -> ResolvedHost:
        """Merge *host* with its group and the inventory defaults.

        - user: host.user > group.default_user > defaults.username > $USER
        - port: host.port > group.default_port > defaults.port > 22
        """
        grp = self.group_by_name().get(host.group) if host.group else None

        user = host.user.strip()
        if not user and grp is not None:
            user = grp.default_user.strip()
        if not user:
            user = str(self.defaults.get("username", "")).strip()
        if not user:
            user = _current_username()

        port = host.port
        if not port and grp is not None:
            port = grp.default_port
        if not port:
            port = int(self.defaults.get("port", 22) or 22)

        return ResolvedHost(
            host=host,
            group=grp,
            user=user,
            port=port,
            password=str(self.defaults.get("password", "")),
            timeout=int(self.defaults.get("timeout", 30)),
        )


def _current_username() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def _host_from_dict(raw: dict[str, Any]) -> Host:
    extras = raw.get("extras") or {}
    return Host(
        name=str(raw["name"]).strip(),
        group=str(raw.get("group", "") or "").strip(),
        user=str(raw.get("user", "") or "").strip(),
        port=int(raw.get("port", 0) or 0),
        tags=tuple(str(t) for t in raw.get("tags", []) or []),
        network_os=str(raw.get("network_os", "") or "").strip().lower(),
        extras=MappingProxyType({str(k).lower(): str(v) for k, v in extras.items()}),
    )


def config_from_dict(data: dict[str, Any] | None) -> Config:
    """Build a :class:`Config` from already-parsed inventory data."""
    data = data or {}
    defaults: dict[str, Any] = data.get("defaults", {}) or {}

    groups: list[Group] = []
    for grp in data.get("groups", []) or []:
        if not grp.get("name"):
            log.warning("Skipping group without a name: %r", grp)
            continue
        groups.append(Group(
            name=str(grp["name"]).strip(),
            default_user=str(grp.get("default_user", "") or ""),
            default_port=int(grp.get("default_port", 0) or 0),
        ))

    hosts: list[Host] = []
    for dev in data.get("hosts", []) or []:
        if not dev.get("name"):
            log.warning("Skipping host without a name: %r", dev)
            continue
        host = _host_from_dict(dev)
        hosts.append(host)
        log.debug("Loaded host %s (%s)", host.name, host.network_os or "no network_os")

    return Config(hosts=hosts, groups=groups, defaults=defaults)


def load_inventory(path: str | Path) -> Config:
    """Parse an inventory YAML file.

    Expected YAML structure
    -----------------------
    ```yaml
    defaults:
      username: admin
      password: secret
      timeout: 30

    groups:
      - name: dc1
        default_user: netops

    hosts:
      - name: rtr1.dc1.example.com
        group: dc1
        network_os: cisco_iosxe
        tags: [core]
        extras:
          router_id: 10.255.0.1
          mgmt_ip: 192.0.2.10
      - name: leaf1
        network_os: sonic_dell
    ```
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Inventory file not found: {path}")

    with open(path, encoding="utf-8") as fh:
        data: dict[str, Any] = yaml.safe_load(fh) or {}

    config = config_from_dict(data)
    if not config.hosts:
        log.warning("Inventory is empty — no hosts defined.")
    else:
        log.info("Loaded %d hosts from %s", len(config.hosts), path)
    return config
