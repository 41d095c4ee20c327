"""Diagram generators — render a TopologyGraph into Graphviz DOT and Mermaid."""

from __future__ import annotations

import logging
from pathlib import Path

from nbrmap.topology import NodeKind, TopologyEdge, TopologyGraph, TopologyNode

log = logging.getLogger(__name__)

# ─── Shape / icon hints per node kind ──────────────────────────────────────
_SHAPE_MAP: dict[str, str] = {
    "cisco_iosxe": "box3d",
    "sonic_dell":  "box3d",
    "":            "box",
}

_MERMAID_ICON: dict[str, str] = {
    "configured": "🔀",
    "island":     "🏝️",
    "unknown":    "❔",
}


def _node_os(node: TopologyNode) -> str:
    if node.extras is not None and node.extras.device_os:
        return node.extras.device_os
    return node.host.network_os if node.host else ""


def _style_key(node: TopologyNode) -> str:
    if node.kind is NodeKind.UNKNOWN:
        return "unknown"
    return "island" if node.island else "configured"


def _edge_label(edge: TopologyEdge) -> str:
    parts = [p for p in (edge.local_port, edge.remote_port) if p]
    return " ↔ ".join(parts)


# ─── GRAPHVIZ ───────────────────────────────────────────────────────────────

def _gv_safe(text: str) -> str:
    """Escape a string for Graphviz labels."""
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def generate_graphviz_dot(graph: TopologyGraph) -> str:
    """Return a Graphviz DOT source string for the topology."""
    lines: list[str] = [
        "digraph network_topology {",
        '    graph [layout=dot, rankdir=LR, overlap=false, splines=true, bgcolor="#f8f9fa"];',
        '    node  [style=filled, fillcolor="#dce6f1", fontname="Helvetica", fontsize=10];',
        '    edge  [fontname="Helvetica", fontsize=8, color="#555555"];',
        "",
    ]

    for nid in graph.node_ids_sorted():
        node = graph.nodes[nid]
        label = _gv_safe(node.label or nid)
        style = _style_key(node)
        if style == "unknown":
            attrs = 'shape=ellipse, style="filled,dashed", fillcolor="#eeeeee"'
        elif style == "island":
            attrs = f'shape={_SHAPE_MAP.get(_node_os(node), "box")}, style="filled,dashed", fillcolor="#f9d6d5"'
        else:
            attrs = f'shape={_SHAPE_MAP.get(_node_os(node), "box")}'
        lines.append(f'    "{_gv_safe(nid)}" [label="{label}", {attrs}];')

    lines.append("")

    for edge in graph.edges:
        lines.append(
            f'    "{_gv_safe(edge.from_id)}" -> "{_gv_safe(edge.to_id)}" '
            f'[label="{_gv_safe(_edge_label(edge))}"];'
        )

    lines.append("}")
    return "\n".join(lines)


def render_graphviz(
    graph: TopologyGraph,
    output_path: Path,
    fmt: str = "png",
) -> Path:
    """Render the topology to an image file using the ``graphviz`` package.

    Requires the ``graphviz`` Python package **and** the ``dot`` binary.
    Returns the path of the generated file.
    """
    try:
        import graphviz  # type: ignore[import-untyped]
    except ImportError:
        log.error("Install the 'graphviz' Python package:  pip install graphviz")
        raise

    src = graphviz.Source(generate_graphviz_dot(graph))
    rendered = src.render(
        filename=str(Path(output_path).with_suffix("")),
        format=fmt,
        cleanup=True,
    )
    log.info("Graphviz diagram saved to %s", rendered)
    return Path(rendered)


# ─── MERMAID ────────────────────────────────────────────────────────────────

def _mermaid_ids(graph: TopologyGraph) -> dict[str, str]:
    """Map each node ID to a Mermaid-safe ID, ``n0``, ``n1`` … in sorted order."""
    return {nid: f"n{i}" for i, nid in enumerate(graph.node_ids_sorted())}


def _mermaid_text(text: str) -> str:
    return text.replace('"', "#quot;")


def generate_mermaid(graph: TopologyGraph) -> str:
    """Return Mermaid graph syntax for the topology."""
    lines: list[str] = ["graph LR"]
    classes: dict[str, list[str]] = {"configured": [], "island": [], "unknown": []}
    ids = _mermaid_ids(graph)

    for nid in graph.node_ids_sorted():
        node = graph.nodes[nid]
        mid = ids[nid]
        style = _style_key(node)
        lines.append(f'    {mid}["{_MERMAID_ICON[style]} {_mermaid_text(node.label or nid)}"]')
        classes[style].append(mid)

    lines.append("")

    for edge in graph.edges:
        src = ids[edge.from_id]
        tgt = ids[edge.to_id]
        label = _edge_label(edge)
        if label:
            lines.append(f'    {src} -- "{_mermaid_text(label)}" --> {tgt}')
        else:
            lines.append(f"    {src} --> {tgt}")

    # Styling
    lines.append("")
    lines.append("    %% Styling")
    lines.append("    classDef configured fill:#dce6f1,stroke:#333,stroke-width:1px;")
    lines.append("    classDef island fill:#f9d6d5,stroke:#333,stroke-dasharray:4 2;")
    lines.append("    classDef unknown fill:#eeeeee,stroke:#999,stroke-dasharray:4 2;")
    for name, members in classes.items():
        if members:
            lines.append(f"    class {','.join(members)} {name};")

    return "\n".join(lines)


def save_mermaid(graph: TopologyGraph, output_path: Path) -> Path:
    """Write Mermaid diagram source to a ``.mmd`` file."""
    output_path = Path(output_path).with_suffix(".mmd")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(generate_mermaid(graph), encoding="utf-8")
    log.info("Mermaid diagram saved to %s", output_path)
    return output_path
