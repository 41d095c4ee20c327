"""Topology builder — map per-device neighbor results onto the configured inventory.

Discovered neighbors are matched to configured hosts by:

1. exact full-name match (normalized)
2. short-name match, only when unambiguous
3. identity IP match (router-id / mgmt-ip extras) against IPs seen in the output

Anything left over becomes an *unknown* node. Selected hosts that end up with no
edges are marked as *islands*.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from nbrmap.extras import ExtrasLookup, ExtrasStore, HostExtras, InventoryExtrasStore
from nbrmap.hostmatch import (
    canonical_ip,
    choose_identity_ips,
    dedup_ips,
    dedup_non_empty,
    normalize_host_full,
    normalize_host_short,
)
from nbrmap.inventory import Config, Host, ResolvedHost
from nbrmap.parsers.base import NeighborEntry, ParseResult

log = logging.getLogger(__name__)

NO_RESULT_ERROR = "lldp: no result (collection not run or failed)"


class NodeKind(str, enum.Enum):
    UNKNOWN = "unknown"
    CONFIGURED = "configured"


@dataclass
class TopologyNode:
    """A device in the topology, configured or discovered-only."""

    id: str
    kind: NodeKind
    label: str
    host: Host | None = None
    resolved: ResolvedHost | None = None
    extras: HostExtras | None = None
    identity_ips: list[str] = field(default_factory=list)
    discovered_names: list[str] = field(default_factory=list)
    # configured: neighbor output was parsed for it; unknown: always True
    has_data: bool = False
    island: bool = False
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_configured(self) -> bool:
        return self.kind is NodeKind.CONFIGURED


@dataclass(frozen=True)
class TopologyEdge:
    """A directional adjacency: local (from) → remote (to)."""

    from_id: str
    to_id: str
    local_port: str = ""
    remote_port: str = ""
    capabilities: tuple[str, ...] = ()
    mgmt_ips: tuple[str, ...] = ()
    raw: str = ""


@dataclass(frozen=True)
class BuildOptions:
    """Matching behavior for :func:`build_topology_graph`."""

    include_unknown: bool = True
    include_islands: bool = True
    ip_identity_matching: bool = True


@dataclass
class TopologyGraph:
    """Nodes keyed by stable ID; edges reference node IDs only."""

    nodes: dict[str, TopologyNode] = field(default_factory=dict)
    edges: list[TopologyEdge] = field(default_factory=list)
    adj_out: dict[str, list[int]] = field(default_factory=dict)
    adj_in: dict[str, list[int]] = field(default_factory=dict)

    # -- building API --------------------------------------------------------
    def add_edge(self, edge: TopologyEdge) -> int:
        self.edges.append(edge)
        pos = len(self.edges) - 1
        self.adj_out.setdefault(edge.from_id, []).append(pos)
        self.adj_in.setdefault(edge.to_id, []).append(pos)
        return pos

    def degree(self, node_id: str) -> int:
        return len(self.adj_out.get(node_id, ())) + len(self.adj_in.get(node_id, ()))

    def drop_unknown_nodes(self) -> None:
        """Remove unknown nodes and every edge touching them.

        Edges and both adjacency indices are rebuilt first and swapped in
        together, so no stale positions survive.
        """
        edges: list[TopologyEdge] = []
        adj_out: dict[str, list[int]] = {}
        adj_in: dict[str, list[int]] = {}
        for e in self.edges:
            fn = self.nodes.get(e.from_id)
            tn = self.nodes.get(e.to_id)
            if fn is None or tn is None:
                continue
            if fn.kind is NodeKind.UNKNOWN or tn.kind is NodeKind.UNKNOWN:
                continue
            edges.append(e)
            pos = len(edges) - 1
            adj_out.setdefault(e.from_id, []).append(pos)
            adj_in.setdefault(e.to_id, []).append(pos)

        self.edges, self.adj_out, self.adj_in = edges, adj_out, adj_in
        self.nodes = {
            nid: n for nid, n in self.nodes.items() if n.kind is not NodeKind.UNKNOWN
        }

    # -- queries -------------------------------------------------------------
    def node_ids_sorted(self) -> list[str]:
        return sorted(self.nodes)

    def edges_for(self, node_id: str) -> list[TopologyEdge]:
        """Outgoing then incoming edges of *node_id*."""
        positions = self.adj_out.get(node_id, []) + self.adj_in.get(node_id, [])
        return [self.edges[i] for i in positions]

    def node_by_label_match(self, query: str) -> list[str]:
        """IDs of nodes whose label or discovered names contain *query* (case-insensitive)."""
        q = (query or "").strip().lower()
        if not q:
            return []
        out: list[str] = []
        for nid, node in self.nodes.items():
            names = [node.label, *node.discovered_names]
            if any(q in (name or "").strip().lower() for name in names):
                out.append(nid)
        return sorted(out)

    # -- serialisation -------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": {
                nid: {
                    "kind": n.kind.value,
                    "label": n.label,
                    "host": n.host.name if n.host else "",
                    "identity_ips": list(n.identity_ips),
                    "discovered_names": list(n.discovered_names),
                    "has_data": n.has_data,
                    "island": n.island,
                    "errors": list(n.errors),
                    "warnings": list(n.warnings),
                }
                for nid, n in self.nodes.items()
            },
            "edges": [
                {
                    "from": e.from_id,
                    "to": e.to_id,
                    "local_port": e.local_port,
                    "remote_port": e.remote_port,
                    "capabilities": list(e.capabilities),
                    "mgmt_ips": list(e.mgmt_ips),
                }
                for e in self.edges
            ],
        }


# ─── Configured-host index ─────────────────────────────────────────────────

@dataclass
class ConfiguredIndex:
    """Lookup tables over the inventory, built once per discovery run."""

    by_full: dict[str, Host] = field(default_factory=dict)
    by_short: dict[str, list[Host]] = field(default_factory=dict)
    by_ip: dict[str, Host] = field(default_factory=dict)
    extras: dict[str, ExtrasLookup] = field(default_factory=dict)
    diagnostics: list[str] = field(default_factory=list)

    @classmethod
    def build(cls, config: Config, extras_store: ExtrasStore | None = None) -> "ConfiguredIndex":
        store = extras_store if extras_store is not None else InventoryExtrasStore(config)
        idx = cls()
        for host in config.hosts:
            full = normalize_host_full(host.name)
            if not full:
                continue
            # first wins; inventory validation is expected to keep names unique
            idx.by_full.setdefault(full, host)

            short = normalize_host_short(host.name)
            if short:
                idx.by_short.setdefault(short, []).append(host)

            lookup = idx.extras.get(full)
            if lookup is None:
                lookup = store.lookup(host.name)
                idx.extras[full] = lookup
            if not lookup.found:
                log.debug("No extras for %s: %s", host.name, lookup.diagnostic)
                idx.diagnostics.append(f"{host.name}: {lookup.diagnostic}")
                continue

            for ip in choose_identity_ips(lookup.extras.router_id, [lookup.extras.mgmt_ip]):
                idx.by_ip.setdefault(ip, host)
        return idx

    def extras_for(self, host: Host) -> HostExtras | None:
        lookup = self.extras.get(normalize_host_full(host.name))
        return lookup.extras if lookup is not None else None

    def resolve_by_name(self, discovered_name: str) -> Host | None:
        """Full-name match, else an unambiguous short-name match, else ``None``."""
        full = normalize_host_full(discovered_name)
        if not full:
            return None

        host = self.by_full.get(full)
        if host is not None:
            return host

        candidates = self.by_short.get(normalize_host_short(discovered_name), [])
        if len(candidates) == 1:
            return candidates[0]
        for cand in candidates:
            if normalize_host_full(cand.name) == full:
                return cand
        # ambiguous: never guess
        return None

    def resolve_by_ip(self, ip_str: str) -> Host | None:
        ip = canonical_ip(ip_str)
        if ip is None:
            return None
        return self.by_ip.get(ip)


# ─── Graph assembly ────────────────────────────────────────────────────────

def _ensure_unknown_node(graph: TopologyGraph, discovered_name: str) -> TopologyNode:
    name = (discovered_name or "").strip()
    nid = "unk:" + (normalize_host_full(name) or name)
    node = graph.nodes.get(nid)
    if node is not None:
        node.discovered_names = dedup_non_empty([*node.discovered_names, name])
        return node

    node = TopologyNode(
        id=nid,
        kind=NodeKind.UNKNOWN,
        label=name,
        discovered_names=dedup_non_empty([name]),
        has_data=True,
    )
    graph.nodes[nid] = node
    return node


def _ensure_configured_node(
    graph: TopologyGraph,
    config: Config,
    idx: ConfiguredIndex,
    host_name: str,
) -> TopologyNode:
    host = idx.resolve_by_name(host_name)
    if host is None:
        return _ensure_unknown_node(graph, host_name)

    nid = "cfg:" + normalize_host_full(host.name)
    node = graph.nodes.get(nid)
    if node is not None:
        return node

    extras = idx.extras_for(host)
    identity_ips = choose_identity_ips(extras.router_id, [extras.mgmt_ip]) if extras else []
    node = TopologyNode(
        id=nid,
        kind=NodeKind.CONFIGURED,
        label=host.name,
        host=host,
        resolved=config.resolve_effective(host),
        extras=extras,
        identity_ips=identity_ips,
    )
    graph.nodes[nid] = node
    return node


def _resolve_remote_node(
    graph: TopologyGraph,
    config: Config,
    idx: ConfiguredIndex,
    entry: NeighborEntry,
    result: ParseResult,
    opts: BuildOptions,
) -> TopologyNode | None:
    remote_name = (entry.remote_device or "").strip()

    host = idx.resolve_by_name(remote_name)
    if host is not None:
        return _ensure_configured_node(graph, config, idx, host.name)

    if opts.ip_identity_matching:
        for ip in dedup_ips([*entry.mgmt_ips, *result.identity_hint_ips]):
            host = idx.resolve_by_ip(ip)
            if host is not None:
                log.debug("Matched %r to %s by identity IP %s", remote_name, host.name, ip)
                return _ensure_configured_node(graph, config, idx, host.name)

    if not opts.include_unknown:
        return None

    node = _ensure_unknown_node(graph, remote_name)
    node.identity_ips = dedup_ips([*node.identity_ips, *entry.mgmt_ips])
    return node


def build_topology_graph(
    config: Config | None,
    selected: Sequence[ResolvedHost | Host],
    results: Iterable[ParseResult],
    options: BuildOptions | None = None,
    extras_store: ExtrasStore | None = None,
) -> TopologyGraph:
    """Build a :class:`TopologyGraph` for the *selected* root hosts.

    Parameters
    ----------
    config
        Inventory used to resolve discovered names to configured hosts.
    selected
        Hosts the discovery ran against, in the order nodes/edges are created.
    results
        One :class:`ParseResult` per host that was collected successfully.
        Roots without a result are kept (marked with an error) rather than dropped.
    options
        Matching behavior; defaults to :class:`BuildOptions` ().
    extras_store
        Where router-id / mgmt-ip extras come from; defaults to the inline
        inventory extras.
    """
    if config is None:
        raise ValueError("build_topology_graph: config is required")
    opts = options if options is not None else BuildOptions()

    graph = TopologyGraph()
    idx = ConfiguredIndex.build(config, extras_store)

    # ── 1.  Every selected root gets a node, even without edges ─────────
    selected_ids: list[str] = []
    for sel in selected:
        node = _ensure_configured_node(graph, config, idx, sel.name)
        if node.id not in selected_ids:
            selected_ids.append(node.id)

    # ── 2.  Index results by local device ───────────────────────────────
    by_local: dict[str, ParseResult] = {}
    for res in results:
        key = normalize_host_full(res.local_device)
        if key:
            by_local[key] = res

    # ── 3.  One directional edge per neighbor entry ─────────────────────
    processed: set[str] = set()
    for sel in selected:
        local = _ensure_configured_node(graph, config, idx, sel.name)
        if local.id in processed:
            continue
        processed.add(local.id)
        res = by_local.get(normalize_host_full(sel.name))
        if res is None:
            local.errors.append(NO_RESULT_ERROR)
            local.has_data = False
            continue

        local.has_data = True
        local.warnings.extend(res.warnings)

        for entry in res.entries:
            remote = _resolve_remote_node(graph, config, idx, entry, res, opts)
            if remote is None:
                continue
            graph.add_edge(TopologyEdge(
                from_id=local.id,
                to_id=remote.id,
                local_port=(entry.local_port or "").strip(),
                remote_port=(entry.remote_port or "").strip(),
                capabilities=tuple(dedup_non_empty(entry.capabilities)),
                mgmt_ips=tuple(dedup_ips(entry.mgmt_ips)),
                raw=(entry.raw or "").strip(),
            ))

    # ── 4.  Islands ─────────────────────────────────────────────────────
    for nid in selected_ids:
        node = graph.nodes.get(nid)
        if node is None or node.kind is not NodeKind.CONFIGURED:
            continue
        if graph.degree(nid) == 0:
            if opts.include_islands:
                node.island = True
            else:
                del graph.nodes[nid]

    # ── 5.  Unknown suppression ─────────────────────────────────────────
    if not opts.include_unknown:
        graph.drop_unknown_nodes()

    log.info("Topology: %d nodes, %d edges", len(graph.nodes), len(graph.edges))
    return graph
