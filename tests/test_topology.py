from __future__ import annotations

import dataclasses

import pytest

from nbrmap.extras import ExtrasLookup, HostExtras
from nbrmap.inventory import Host, config_from_dict
from nbrmap.parsers import NeighborEntry, ParseResult
from nbrmap.topology import (
    NO_RESULT_ERROR,
    BuildOptions,
    ConfiguredIndex,
    NodeKind,
    TopologyEdge,
    TopologyGraph,
    TopologyNode,
    build_topology_graph,
)


def _entry(local, port, remote, rport="", caps=(), ips=()):
    return NeighborEntry(
        local_device=local,
        local_port=port,
        remote_device=remote,
        remote_port=rport,
        capabilities=list(caps),
        mgmt_ips=list(ips),
    )


def _assert_consistent(graph: TopologyGraph) -> None:
    for pos, edge in enumerate(graph.edges):
        assert edge.from_id in graph.nodes
        assert edge.to_id in graph.nodes
        assert pos in graph.adj_out[edge.from_id]
        assert pos in graph.adj_in[edge.to_id]
    for positions in list(graph.adj_out.values()) + list(graph.adj_in.values()):
        assert all(0 <= p < len(graph.edges) for p in positions)


@pytest.fixture
def results():
    rtr1 = "rtr1.dc1.example.com"
    return [
        ParseResult(
            local_device=rtr1,
            entries=[
                _entry(rtr1, "Gi2", "leaf1.dc2.example.com", "Ethernet0", ["ROUTER"]),
                _entry(rtr1, "Gi3", "sonic", "Ethernet4", ips=["192.168.126.50"]),
                _entry(rtr1, "Gi4", "phone-1", "P1", ["TELEPHONE"], ["10.9.9.9"]),
            ],
            warnings=["unparsed row: junk"],
        ),
        ParseResult(
            local_device="leaf1",
            entries=[_entry("leaf1", "Ethernet0", "Router", "Gi2", ips=["10.255.0.1"])],
        ),
    ]


# ─── Graph assembly ────────────────────────────────────────────────────────

def test_build_maps_names_and_identity_ips(config, results):
    selected = [config.resolve_effective(config.hosts[0]), config.host_by_name("leaf1")]
    graph = build_topology_graph(config, selected, results)

    assert graph.node_ids_sorted() == ["cfg:leaf1", "cfg:rtr1.dc1.example.com", "unk:phone-1"]
    rtr1 = graph.nodes["cfg:rtr1.dc1.example.com"]
    leaf1 = graph.nodes["cfg:leaf1"]
    phone = graph.nodes["unk:phone-1"]

    assert rtr1.is_configured and rtr1.has_data and not rtr1.island
    assert rtr1.identity_ips == ["10.255.0.1"]
    assert rtr1.warnings == ["unparsed row: junk"]
    assert rtr1.resolved.user == "netops"
    assert leaf1.identity_ips == ["192.168.126.50"]
    assert phone.kind is NodeKind.UNKNOWN
    assert phone.has_data
    assert phone.identity_ips == ["10.9.9.9"]

    assert [(e.from_id, e.to_id, e.local_port) for e in graph.edges] == [
        ("cfg:rtr1.dc1.example.com", "cfg:leaf1", "Gi2"),
        ("cfg:rtr1.dc1.example.com", "cfg:leaf1", "Gi3"),
        ("cfg:rtr1.dc1.example.com", "unk:phone-1", "Gi4"),
        ("cfg:leaf1", "cfg:rtr1.dc1.example.com", "Ethernet0"),
    ]
    assert graph.edges[2].capabilities == ("TELEPHONE",)
    assert graph.edges[1].mgmt_ips == ("192.168.126.50",)
    assert graph.degree("cfg:rtr1.dc1.example.com") == 4
    _assert_consistent(graph)


def test_identity_matching_can_be_disabled(config, results):
    selected = [config.hosts[0], config.host_by_name("leaf1")]
    graph = build_topology_graph(config, selected, results, BuildOptions(ip_identity_matching=False))
    assert "unk:sonic" in graph.nodes
    assert "unk:router" in graph.nodes
    assert graph.nodes["unk:router"].label == "Router"


def test_identity_hints_from_whole_output_are_used(config):
    res = ParseResult(
        local_device="leaf1",
        entries=[_entry("leaf1", "Ethernet0", "core-router", "Gi2")],
        identity_hint_ips=["203.0.113.1", "10.255.0.1"],
    )
    graph = build_topology_graph(config, [config.host_by_name("leaf1")], [res])
    assert graph.edges[0].to_id == "cfg:rtr1.dc1.example.com"


def test_ambiguous_short_name_is_not_matched():
    cfg = config_from_dict({"hosts": [{"name": "rtr1.dc1.example.com"}, {"name": "rtr1.dc2.example.com"}, {"name": "core"}]})
    res = ParseResult(local_device="core", entries=[_entry("core", "Gi1", "rtr1", "Gi0")])

    graph = build_topology_graph(cfg, [cfg.host_by_name("core")], [res])
    assert graph.edges[0].to_id == "unk:rtr1"
    assert "cfg:rtr1.dc1.example.com" not in graph.nodes
    assert "cfg:rtr1.dc2.example.com" not in graph.nodes

    graph = build_topology_graph(cfg, [cfg.host_by_name("core")], [res], BuildOptions(include_unknown=False))
    assert graph.edges == []
    assert list(graph.nodes) == ["cfg:core"]
    assert graph.nodes["cfg:core"].island


def test_full_name_wins_over_short_name():
    cfg = config_from_dict({"hosts": [{"name": "rtr1.dc1.example.com"}, {"name": "RTR1"}, {"name": "core"}]})
    idx = ConfiguredIndex.build(cfg)
    assert idx.resolve_by_name("rtr1").name == "RTR1"
    assert idx.resolve_by_name("rtr1.dc1.example.com.").name == "rtr1.dc1.example.com"
    assert idx.resolve_by_name("core.lab.example.net").name == "core"
    assert idx.resolve_by_name("") is None


def test_root_with_empty_result_is_island_with_data(config):
    res = ParseResult(local_device="rtr2.dc1.example.com")
    graph = build_topology_graph(config, [config.host_by_name("rtr2.dc1.example.com")], [res])
    node = graph.nodes["cfg:rtr2.dc1.example.com"]
    assert node.island
    assert node.has_data
    assert node.errors == []
    assert node.warnings == []


def test_root_without_result_is_kept_with_error(config):
    graph = build_topology_graph(config, [config.host_by_name("rtr2.dc1.example.com")], [])
    node = graph.nodes["cfg:rtr2.dc1.example.com"]
    assert not node.has_data
    assert node.errors == [NO_RESULT_ERROR]
    assert node.island


def test_islands_can_be_dropped(config, results):
    selected = [config.hosts[0], config.host_by_name("leaf1"), config.host_by_name("rtr2.dc1.example.com")]
    graph = build_topology_graph(config, selected, results, BuildOptions(include_islands=False))
    assert "cfg:rtr2.dc1.example.com" not in graph.nodes
    assert "cfg:leaf1" in graph.nodes
    _assert_consistent(graph)


def test_root_linked_by_peer_is_not_island(config, results):
    # leaf1 has no result of its own but rtr1 sees it
    graph = build_topology_graph(config, [config.hosts[0], config.host_by_name("leaf1")], results[:1])
    leaf1 = graph.nodes["cfg:leaf1"]
    assert not leaf1.island
    assert leaf1.errors == [NO_RESULT_ERROR]


def test_root_outside_inventory_becomes_unknown(config):
    res = ParseResult(local_device="mystery", entries=[_entry("mystery", "e0", "leaf1", "Ethernet8")])
    graph = build_topology_graph(config, [Host(name="mystery")], [res])
    assert graph.nodes["unk:mystery"].kind is NodeKind.UNKNOWN
    assert graph.edges[0].from_id == "unk:mystery"
    assert graph.edges[0].to_id == "cfg:leaf1"


def test_unknown_suppression_leaves_no_dangling_edges(config, results):
    selected = [config.hosts[0], config.host_by_name("leaf1")]
    graph = build_topology_graph(config, selected, results, BuildOptions(include_unknown=False))
    assert all(n.kind is NodeKind.CONFIGURED for n in graph.nodes.values())
    assert len(graph.edges) == 3
    _assert_consistent(graph)


def test_repeated_unknown_neighbor_shares_one_node(config):
    res = ParseResult(
        local_device="leaf1",
        entries=[
            _entry("leaf1", "Ethernet0", "Phone-1", ips=["10.9.9.9"]),
            _entry("leaf1", "Ethernet4", "phone-1.", ips=["10.9.9.10"]),
        ],
    )
    graph = build_topology_graph(config, [config.host_by_name("leaf1")], [res])
    node = graph.nodes["unk:phone-1"]
    assert node.discovered_names == ["Phone-1", "phone-1."]
    assert node.identity_ips == ["10.9.9.9", "10.9.9.10"]
    assert graph.degree(node.id) == 2


def test_config_is_required():
    with pytest.raises(ValueError):
        build_topology_graph(None, [], [])


def test_nodes_hold_immutable_snapshots(config, results):
    graph = build_topology_graph(config, [config.hosts[0]], results)
    node = graph.nodes["cfg:rtr1.dc1.example.com"]
    with pytest.raises(dataclasses.FrozenInstanceError):
        node.host.network_os = "sonic_dell"
    with pytest.raises(dataclasses.FrozenInstanceError):
        node.resolved.user = "root"


# ─── Configured index ──────────────────────────────────────────────────────

class _BrokenStore:
    def lookup(self, host_name):
        if host_name == "leaf1":
            return ExtrasLookup(None, "extras: cannot read leaf1.conf: permission denied")
        return ExtrasLookup(HostExtras(host_key=host_name, router_id="10.255.0.1"))


def test_index_records_missing_extras(config):
    idx = ConfiguredIndex.build(config, _BrokenStore())
    assert idx.diagnostics == ["leaf1: extras: cannot read leaf1.conf: permission denied"]
    assert idx.extras_for(config.host_by_name("leaf1")) is None
    assert idx.resolve_by_ip("192.168.126.50") is None
    # first host wins for a shared identity IP
    assert idx.resolve_by_ip("10.255.0.1").name == "rtr1.dc1.example.com"
    assert idx.resolve_by_ip("not-an-ip") is None


def test_missing_extras_do_not_break_graph(config, results):
    graph = build_topology_graph(config, [config.host_by_name("leaf1")], results, extras_store=_BrokenStore())
    leaf1 = graph.nodes["cfg:leaf1"]
    assert leaf1.extras is None
    assert leaf1.identity_ips == []


# ─── Graph structure ───────────────────────────────────────────────────────

def _node(nid, kind=NodeKind.CONFIGURED):
    return TopologyNode(id=nid, kind=kind, label=nid.split(":", 1)[1])


def test_drop_unknown_nodes_rebuilds_indices():
    graph = TopologyGraph()
    for nid in ("cfg:a", "cfg:b", "cfg:c"):
        graph.nodes[nid] = _node(nid)
    for nid in ("unk:x", "unk:y"):
        graph.nodes[nid] = _node(nid, NodeKind.UNKNOWN)
    graph.add_edge(TopologyEdge("cfg:a", "unk:x", "e1"))
    graph.add_edge(TopologyEdge("cfg:a", "cfg:b", "e2"))
    graph.add_edge(TopologyEdge("unk:y", "cfg:c", "e3"))
    graph.add_edge(TopologyEdge("cfg:b", "cfg:c", "e4"))

    graph.drop_unknown_nodes()

    assert sorted(graph.nodes) == ["cfg:a", "cfg:b", "cfg:c"]
    assert [e.local_port for e in graph.edges] == ["e2", "e4"]
    assert graph.adj_out == {"cfg:a": [0], "cfg:b": [1]}
    assert graph.adj_in == {"cfg:b": [0], "cfg:c": [1]}
    _assert_consistent(graph)


def test_edges_for_and_label_search(config, results):
    graph = build_topology_graph(config, [config.hosts[0], config.host_by_name("leaf1")], results)
    assert [e.local_port for e in graph.edges_for("cfg:leaf1")] == ["Ethernet0", "Gi2", "Gi3"]
    assert graph.node_by_label_match("RTR1") == ["cfg:rtr1.dc1.example.com"]
    assert graph.node_by_label_match("phone") == ["unk:phone-1"]
    assert graph.node_by_label_match("  ") == []


def test_to_dict(config, results):
    graph = build_topology_graph(config, [config.hosts[0]], results)
    data = graph.to_dict()
    assert data["nodes"]["cfg:rtr1.dc1.example.com"]["kind"] == "configured"
    assert data["nodes"]["unk:phone-1"]["host"] == ""
    assert data["edges"][0] == {
        "from": "cfg:rtr1.dc1.example.com",
        "to": "cfg:leaf1",
        "local_port": "Gi2",
        "remote_port": "Ethernet0",
        "capabilities": ["ROUTER"],
        "mgmt_ips": [],
    }


@pytest.mark.parametrize("second", ["rtr1.dc1.example.com", "RTR1.dc1.example.com."])
def test_root_listed_twice_yields_one_edge_per_neighbor(config, second):
    res = ParseResult(
        local_device="rtr1.dc1.example.com",
        entries=[_entry("rtr1.dc1.example.com", "Gi2", "leaf1", "Ethernet0")],
    )
    selected = [config.hosts[0], Host(name=second)]
    graph = build_topology_graph(config, selected, [res])
    assert [(e.from_id, e.to_id) for e in graph.edges] == [("cfg:rtr1.dc1.example.com", "cfg:leaf1")]
    assert graph.adj_out["cfg:rtr1.dc1.example.com"] == [0]
    _assert_consistent(graph)


def test_root_listed_twice_without_result_has_one_error(config):
    rtr2 = config.host_by_name("rtr2.dc1.example.com")
    graph = build_topology_graph(config, [rtr2, rtr2], [])
    assert graph.nodes["cfg:rtr2.dc1.example.com"].errors == [NO_RESULT_ERROR]
