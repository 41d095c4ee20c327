"""Collector — run neighbor commands on devices and parse the first usable output.

For each host the command specs for its OS family are tried in priority order
until one runs and parses. A parsed result with zero neighbors is a success.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from nbrmap.connector import SSHConnector
from nbrmap.extras import ExtrasStore, HostExtras, effective_os
from nbrmap.inventory import ResolvedHost
from nbrmap.parsers import ParseError, ParseResult, parse_output
from nbrmap.platforms import PREF_AUTO, CommandSpec, commands_for_host, netmiko_device_type

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_CONCURRENCY = 6

ConnectorFactory = Callable[[ResolvedHost, str], Any]


@dataclass
class CollectAttempt:
    """One command spec tried against one host."""

    spec: CommandSpec
    output: str = ""
    exec_error: str = ""
    parse_error: str = ""
    duration: float = 0.0


@dataclass
class CollectResult:
    """A host whose output parsed successfully."""

    host: ResolvedHost
    spec: CommandSpec
    parsed: ParseResult
    output: str
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host.name,
            "os": self.spec.os,
            "command": self.spec.command,
            "parser_id": self.spec.parser_id,
            "output": self.output,
        }


@dataclass
class CollectFailure:
    """A host where no command spec produced a usable parse."""

    host: ResolvedHost
    error: str
    attempts: list[CollectAttempt] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"host": self.host.name, "error": self.error}


def _summarize(attempts: list[CollectAttempt]) -> str:
    if attempts:
        last = attempts[-1]
        if last.exec_error:
            return f"ssh failed: {last.exec_error}"
        if last.parse_error:
            return f"parse failed: {last.parse_error}"
    return "lldp: all command attempts failed"


def collect_host(
    resolved: ResolvedHost,
    extras: HostExtras | None = None,
    connector_factory: ConnectorFactory = SSHConnector,
) -> CollectResult | CollectFailure:
    """Collect and parse neighbor output for one host."""
    name = resolved.name.strip()
    if not name:
        return CollectFailure(resolved, "empty host name")

    os_family = effective_os(resolved.host, extras)
    pref = extras.neighbor_discovery if extras is not None else PREF_AUTO
    specs = commands_for_host(os_family, pref)
    if not specs:
        return CollectFailure(resolved, f"no LLDP command specs for network_os={os_family!r}")

    attempts: list[CollectAttempt] = []
    try:
        with connector_factory(resolved, netmiko_device_type(os_family)) as ssh:
            for spec in specs:
                attempt = CollectAttempt(spec=spec)
                attempts.append(attempt)
                start = time.monotonic()
                try:
                    attempt.output = ssh.send(spec.command, read_timeout=spec.timeout or DEFAULT_TIMEOUT)
                except Exception as exc:
                    attempt.duration = time.monotonic() - start
                    attempt.exec_error = str(exc)
                    log.warning("%s: '%s' failed: %s", name, spec.command, exc)
                    continue
                attempt.duration = time.monotonic() - start

                try:
                    parsed = parse_output(spec.parser_id, name, attempt.output)
                except ParseError as exc:
                    attempt.parse_error = str(exc)
                    log.info("%s: '%s' did not parse, trying next: %s", name, spec.command, exc)
                    continue

                log.info("%s: %d neighbor(s) via '%s'", name, len(parsed.entries), spec.command)
                return CollectResult(resolved, spec, parsed, attempt.output, attempt.duration)
    except Exception as exc:
        log.error("Could not connect to %s: %s", name, exc)
        return CollectFailure(resolved, f"ssh failed: {exc}", attempts)

    return CollectFailure(resolved, _summarize(attempts), attempts)


def collect_for_hosts(
    targets: Sequence[ResolvedHost],
    extras_store: ExtrasStore,
    concurrency: int = DEFAULT_CONCURRENCY,
    connector_factory: ConnectorFactory = SSHConnector,
) -> list[CollectResult | CollectFailure]:
    """Collect from every target concurrently; results come back in input order.

    Graph assembly must wait for this to return.
    """
    if not targets:
        return []
    workers = max(1, min(concurrency if concurrency > 0 else DEFAULT_CONCURRENCY, len(targets)))

    def _one(resolved: ResolvedHost) -> CollectResult | CollectFailure:
        lookup = extras_store.lookup(resolved.name)
        if not lookup.found:
            log.debug("No extras for %s: %s", resolved.name, lookup.diagnostic)
        return collect_host(resolved, lookup.extras, connector_factory)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(_one, targets))


def results_from_records(records: Sequence[dict[str, Any]]) -> tuple[list[ParseResult], list[str]]:
    """Re-parse saved raw outputs (see :meth:`CollectResult.to_dict`).

    Failure records (``{"host", "error"}``) yield no result, so those hosts
    come out of graph assembly with the no-result error. Returns the parse
    results plus one error string per failed or unparseable record.
    """
    results: list[ParseResult] = []
    errors: list[str] = []
    for rec in records:
        host = rec.get("host", "")
        if rec.get("error"):
            errors.append(f"{host}: {rec['error']}")
            continue
        try:
            results.append(parse_output(rec.get("parser_id") or "", host, rec.get("output") or ""))
        except ValueError as exc:
            errors.append(f"{host}: {exc}")
            log.warning("Saved output for %s did not parse: %s", host, exc)
    return results, errors
