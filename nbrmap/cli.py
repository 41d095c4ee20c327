"""nbrmap CLI — command-line interface for LLDP/CDP topology discovery."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from nbrmap import __version__
from nbrmap.collector import CollectResult, collect_for_hosts, results_from_records
from nbrmap.diagram import generate_graphviz_dot, generate_mermaid, render_graphviz, save_mermaid
from nbrmap.extras import ExtrasStore, FileExtrasStore, InventoryExtrasStore, effective_os
from nbrmap.hostmatch import normalize_host_full
from nbrmap.inventory import Config, Host, config_from_dict, load_inventory
from nbrmap.parsers import ParseResult, parse_output, supported_parsers
from nbrmap.platforms import PREFERENCES, commands_for_host
from nbrmap.storage import load_outputs, save_json, save_outputs
from nbrmap.topology import BuildOptions, TopologyGraph, build_topology_graph

console = Console()
log = logging.getLogger("nbrmap")


# ─── CLI Argument Parser ───────────────────────────────────────────────────

def _add_graph_options(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--hosts", nargs="+", default=None,
        help="Root hosts to discover from (default: every host with a network_os in the inventory or its extras).",
    )
    p.add_argument(
        "--extras-dir", type=Path, default=None,
        help="Directory of per-host extras .conf files (default: ~/.config/nbrmap/hosts).",
    )
    p.add_argument("--no-unknown", action="store_true", help="Drop neighbors not in the inventory.")
    p.add_argument("--no-islands", action="store_true", help="Drop selected hosts that have no links.")
    p.add_argument("--no-ip-match", action="store_true", help="Disable router-id / mgmt-ip matching.")
    p.add_argument(
        "-o", "--output-dir", default=Path("output"), type=Path,
        help="Directory for saved outputs and generated diagrams.",
    )
    p.add_argument(
        "-f", "--format", nargs="+", default=["mermaid", "dot"],
        choices=["mermaid", "dot", "json", "png", "svg", "pdf"],
        help="Output format(s). png/svg/pdf require the graphviz binary.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nbrmap",
        description="Build a neighbor topology graph from LLDP/CDP command output "
                    "and map it onto a device inventory.",
    )
    parser.add_argument("-V", "--version", action="version", version=f"nbrmap {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Increase verbosity (-v INFO, -vv DEBUG).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # ── commands ────────────────────────────────────────────────────────
    p_cmds = sub.add_parser("commands", help="List the discovery commands tried for an OS family.")
    p_cmds.add_argument("os", help="Network OS family (e.g. cisco_iosxe, sonic_dell).")
    p_cmds.add_argument("--pref", default="auto", choices=list(PREFERENCES))

    # ── parse ───────────────────────────────────────────────────────────
    p_parse = sub.add_parser("parse", help="Parse a captured command output file.")
    p_parse.add_argument("parser_id", help=f"One of: {', '.join(supported_parsers())}")
    p_parse.add_argument("file", type=Path, help="File holding the raw command output.")
    p_parse.add_argument("--local", default="", help="Name of the device the output came from.")

    # ── discover ────────────────────────────────────────────────────────
    p_disc = sub.add_parser("discover", help="SSH to hosts, collect neighbors and build the topology.")
    p_disc.add_argument("-i", "--inventory", required=True, type=Path, help="YAML inventory file.")
    p_disc.add_argument("-c", "--concurrency", type=int, default=6, help="Hosts collected in parallel.")
    _add_graph_options(p_disc)

    # ── diagram ─────────────────────────────────────────────────────────
    p_dia = sub.add_parser("diagram", help="Rebuild the topology from saved outputs and render it.")
    p_dia.add_argument("-i", "--inventory", required=True, type=Path, help="YAML inventory file.")
    p_dia.add_argument(
        "--outputs", default=Path("output/outputs.json"), type=Path,
        help="Saved outputs JSON (from 'discover').",
    )
    _add_graph_options(p_dia)

    # ── search ──────────────────────────────────────────────────────────
    p_search = sub.add_parser("search", help="Find nodes whose label contains a string.")
    p_search.add_argument("query")
    p_search.add_argument("-i", "--inventory", required=True, type=Path, help="YAML inventory file.")
    p_search.add_argument("--outputs", default=Path("output/outputs.json"), type=Path)

    # ── demo ────────────────────────────────────────────────────────────
    p_demo = sub.add_parser("demo", help="Run with built-in sample outputs (no real devices required).")
    p_demo.add_argument("-o", "--output-dir", default=Path("output"), type=Path)

    return parser


# ─── Helpers ───────────────────────────────────────────────────────────────

def _options(args: argparse.Namespace) -> BuildOptions:
    return BuildOptions(
        include_unknown=not args.no_unknown,
        include_islands=not args.no_islands,
        ip_identity_matching=not args.no_ip_match,
    )


def _extras_store(config: Config, extras_dir: Path | None) -> InventoryExtrasStore:
    return InventoryExtrasStore(config, fallback=FileExtrasStore(extras_dir))


def _select_hosts(config: Config, names: list[str] | None, store: ExtrasStore | None = None) -> list[Host]:
    if not names:
        selected: list[Host] = []
        for h in config.hosts:
            extras = store.lookup(h.name).extras if store is not None else None
            if effective_os(h, extras) or h.extras.get("device_os"):
                selected.append(h)
            else:
                log.info("Skipping %s: no network_os in inventory or extras", h.name)
        return selected
    selected = []
    seen: set[str] = set()
    for name in names:
        host = config.host_by_name(name)
        if host is None:
            console.print(f"[yellow]⚠ {name} is not in the inventory[/yellow]")
            host = Host(name=name)
        key = normalize_host_full(host.name)
        if key in seen:
            continue
        seen.add(key)
        selected.append(host)
    return selected


def _hosts_from_records(config: Config, records: list[dict[str, Any]]) -> list[Host]:
    names: list[str] = []
    for rec in records:
        name = rec.get("host", "")
        if name and name not in names:
            names.append(name)
    return [config.host_by_name(n) or Host(name=n) for n in names]


def _render(graph: TopologyGraph, out_dir: Path, formats: list[str]) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for fmt in formats:
        if fmt == "mermaid":
            p = save_mermaid(graph, out_dir / "topology.mmd")
            console.print(f"[green]✓ Mermaid → {p}[/green]")
        elif fmt == "dot":
            dot_path = out_dir / "topology.dot"
            dot_path.write_text(generate_graphviz_dot(graph), encoding="utf-8")
            console.print(f"[green]✓ Graphviz DOT → {dot_path}[/green]")
        elif fmt == "json":
            p = save_json(graph.to_dict(), out_dir / "topology.json")
            console.print(f"[green]✓ Topology JSON → {p}[/green]")
        else:
            try:
                p = render_graphviz(graph, out_dir / "topology", fmt=fmt)
                console.print(f"[green]✓ Graphviz {fmt.upper()} → {p}[/green]")
            except Exception as exc:
                log.debug("Graphviz %s render failed", fmt, exc_info=True)
                console.print(f"[red]Failed to render {fmt}: {exc}[/red]")


def _show_entries(result: ParseResult) -> None:
    table = Table(title=f"Neighbors of {result.local_device or '(local)'}", show_lines=True)
    table.add_column("Local Port", style="cyan")
    table.add_column("Remote Device", style="bold")
    table.add_column("Remote Port")
    table.add_column("Capabilities")
    table.add_column("Mgmt IPs")
    for e in result.entries:
        table.add_row(
            e.local_port, e.remote_device, e.remote_port,
            ", ".join(e.capabilities), ", ".join(e.mgmt_ips),
        )
    console.print(table)
    for w in result.warnings:
        console.print(f"  [yellow]⚠ {w}[/yellow]")


def _show_graph(graph: TopologyGraph) -> None:
    table = Table(title="Topology Nodes", show_lines=True)
    table.add_column("ID", style="cyan")
    table.add_column("Kind")
    table.add_column("Label", style="bold")
    table.add_column("Identity IPs")
    table.add_column("Links", justify="right")
    table.add_column("Notes")
    for nid in graph.node_ids_sorted():
        n = graph.nodes[nid]
        notes = [*n.errors, *n.warnings]
        if n.island:
            notes.insert(0, "island")
        table.add_row(
            nid, n.kind.value, n.label, ", ".join(n.identity_ips),
            str(graph.degree(nid)), "\n".join(notes),
        )
    console.print(table)

    etable = Table(title="Topology Edges", show_lines=True)
    etable.add_column("From", style="cyan")
    etable.add_column("Local Port")
    etable.add_column("To", style="green")
    etable.add_column("Remote Port")
    etable.add_column("Capabilities")
    for e in graph.edges:
        etable.add_row(e.from_id, e.local_port, e.to_id, e.remote_port, ", ".join(e.capabilities))
    console.print(etable)


# ─── Command Handlers ──────────────────────────────────────────────────────

def _cmd_commands(args: argparse.Namespace) -> int:
    specs = commands_for_host(args.os, args.pref)
    if not specs:
        console.print(f"[yellow]No discovery commands for network_os '{args.os}'.[/yellow]")
        return 1
    table = Table(title=f"Discovery commands for {args.os} ({args.pref})", show_lines=True)
    table.add_column("#", justify="right")
    table.add_column("Command", style="bold")
    table.add_column("Timeout", justify="right")
    table.add_column("Parser")
    for i, spec in enumerate(specs, 1):
        table.add_row(str(i), spec.command, f"{spec.timeout:g}s", spec.parser_id)
    console.print(table)
    return 0


def _cmd_parse(args: argparse.Namespace) -> int:
    text = args.file.read_text(encoding="utf-8")
    try:
        result = parse_output(args.parser_id, args.local, text)
    except ValueError as exc:
        console.print(f"[red]✗ {exc}[/red]")
        return 1
    _show_entries(result)
    if result.identity_hint_ips:
        console.print(f"Identity hints: {', '.join(result.identity_hint_ips)}")
    return 0


def _cmd_discover(args: argparse.Namespace) -> int:
    config = load_inventory(args.inventory)
    store = _extras_store(config, args.extras_dir)
    hosts = _select_hosts(config, args.hosts, store)
    if not hosts:
        console.print("[yellow]No discoverable hosts in inventory.[/yellow]")
        return 1

    targets = [config.resolve_effective(h) for h in hosts]
    console.print(f"[cyan]Collecting neighbors from {len(targets)} host(s) …[/cyan]")
    outcomes = collect_for_hosts(targets, store, concurrency=args.concurrency)

    results: list[ParseResult] = []
    for outcome in outcomes:
        if isinstance(outcome, CollectResult):
            results.append(outcome.parsed)
            console.print(
                f"  [green]✓ {outcome.host.name}: {len(outcome.parsed.entries)} neighbor(s) "
                f"via '{outcome.spec.command}'[/green]"
            )
        else:
            console.print(f"  [yellow]⚠ {outcome.host.name}: {outcome.error}[/yellow]")

    save_outputs([o.to_dict() for o in outcomes], args.output_dir / "outputs.json")

    graph = build_topology_graph(config, targets, results, _options(args), store)
    _show_graph(graph)
    _render(graph, args.output_dir, args.format)
    return 0


def _graph_from_saved(args: argparse.Namespace, options: BuildOptions | None = None) -> TopologyGraph:
    config = load_inventory(args.inventory)
    records = load_outputs(args.outputs)
    results, errors = results_from_records(records)
    for err in errors:
        console.print(f"  [yellow]⚠ {err}[/yellow]")
    names = getattr(args, "hosts", None)
    store = _extras_store(config, getattr(args, "extras_dir", None))
    hosts = _select_hosts(config, names, store) if names else _hosts_from_records(config, records)
    return build_topology_graph(config, hosts, results, options, store)


def _cmd_diagram(args: argparse.Namespace) -> int:
    graph = _graph_from_saved(args, _options(args))
    _show_graph(graph)
    _render(graph, args.output_dir, args.format)
    return 0


def _cmd_search(args: argparse.Namespace) -> int:
    graph = _graph_from_saved(args)
    ids = graph.node_by_label_match(args.query)
    if not ids:
        console.print(f"[yellow]No nodes match '{args.query}'.[/yellow]")
        return 1
    for nid in ids:
        console.print(f"{nid}  [bold]{graph.nodes[nid].label}[/bold]")
    return 0


# ─── Demo data ─────────────────────────────────────────────────────────────

_DEMO_INVENTORY: dict[str, Any] = {
    "groups": [{"name": "dc1", "default_user": "netops"}],
    "hosts": [
        {"name": "rtr1.dc1.example.com", "group": "dc1", "network_os": "cisco_iosxe",
         "extras": {"router_id": "10.255.0.1"}},
        {"name": "rtr2.dc1.example.com", "group": "dc1", "network_os": "cisco_iosxe",
         "extras": {"neighbor_discovery": "cdp"}},
        {"name": "leaf1.dc1.example.com", "group": "dc1", "network_os": "sonic_dell"},
        {"name": "rtr3.dc1.example.com", "group": "dc1", "network_os": "cisco_iosxe"},
    ],
}

_DEMO_OUTPUTS: list[dict[str, Any]] = [
    {
        "host": "rtr1.dc1.example.com",
        "parser_id": "cisco_iosxe_show_lldp_neighbors_detail",
        "output": """\
------------------------------------------------
Local Intf: Gi2
Chassis id: 5254.003f.e750
Port id: Ethernet0
Port Description: Ethernet0
System Name: leaf1
System Capabilities: B,R
Enabled Capabilities: R
Management Addresses:
    IP: 192.168.126.50
Auto Negotiation - not supported

------------------------------------------------
Local Intf: Gi3
Chassis id: 5254.0011.2233
Port id: Gi1
System Name: rtr2.dc1.example.com
System Capabilities: B,R
Enabled Capabilities: R
Management Addresses:
    IP: 10.0.12.2

------------------------------------------------
Local Intf: Gi4
Chassis id: 0004.f2aa.bbcc
Port id: 0004f2aabbcc:P1
System Name: SEP0004F2AABBCC
System Capabilities: B,T
Enabled Capabilities: T

Total entries displayed: 3
""",
    },
    {
        "host": "rtr2.dc1.example.com",
        "parser_id": "cisco_iosxe_show_cdp_neighbors",
        "output": """\
Capability Codes: R - Router, T - Trans Bridge, B - Source Route Bridge
                  S - Switch, H - Host, I - IGMP, r - Repeater, P - Phone

Device ID             Local Intrfce  Holdtme  Capability  Platform  Port ID
rtr1.dc1.example.com  Gig 1          153      R I         CSR1000V  Gig 3
SEP0004F2AABBCC       Gig 4          171      H P         IP Phone  Port 1

Total cdp entries displayed : 2
""",
    },
    {
        "host": "leaf1.dc1.example.com",
        "parser_id": "sonic_cli_show_lldp_neighbor",
        "output": """\
-------------------------------------------------------------------------------
LLDP neighbors:
-------------------------------------------------------------------------------
Interface:    Ethernet0, via: LLDP, RID: 2, Time: 4 days, 16:32:36
  Chassis:
    ChassisID:    mac 52:54:00:3f:e7:50
    SysName:      Router
    MgmtIP:       10.255.0.1
    Capability:   Bridge, off
    Capability:   Router, on
  Port:
    PortID:       ifname Gi2
    PortDescr:    GigabitEthernet2
-------------------------------------------------------------------------------
""",
    },
    {"host": "rtr3.dc1.example.com", "error": "ssh failed: timed out"},
]


def _cmd_demo(args: argparse.Namespace) -> int:
    """Run the full pipeline with sample outputs — no SSH needed."""
    console.print("[bold cyan]━━━ nbrmap Demo Mode ━━━[/bold cyan]\n")

    config = config_from_dict(_DEMO_INVENTORY)
    out: Path = args.output_dir
    save_outputs(_DEMO_OUTPUTS, out / "outputs.json")

    results, errors = results_from_records(_DEMO_OUTPUTS)
    for res in results:
        _show_entries(res)
    for err in errors:
        console.print(f"[yellow]⚠ {err}[/yellow]")

    console.print("\n[bold cyan]Building topology …[/bold cyan]")
    graph = build_topology_graph(config, config.hosts, results)
    _show_graph(graph)

    console.print("\n[bold cyan]Generating diagrams …[/bold cyan]")
    _render(graph, out, ["mermaid", "dot", "json"])
    console.print("\n[bold]Mermaid source (paste into https://mermaid.live):[/bold]")
    console.print(generate_mermaid(graph), markup=False)

    console.print(f"\n[bold green]Demo complete! Check the {out}/ directory.[/bold green]")
    return 0


# ─── Entry Point ───────────────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Logging setup
    level = logging.WARNING
    if args.verbose >= 2:
        level = logging.DEBUG
    elif args.verbose >= 1:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )

    dispatch = {
        "commands": _cmd_commands,
        "parse":    _cmd_parse,
        "discover": _cmd_discover,
        "diagram":  _cmd_diagram,
        "search":   _cmd_search,
        "demo":     _cmd_demo,
    }
    handler = dispatch.get(args.command)
    if handler is None:
        parser.print_help()
        return
    rc = handler(args)
    if rc:
        sys.exit(rc)


if __name__ == "__main__":
    main()
