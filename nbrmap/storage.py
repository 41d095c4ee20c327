"""JSON storage for collected raw outputs.

Only raw command output is saved; graphs are always rebuilt from it.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from nbrmap import __version__

log = logging.getLogger(__name__)


def save_json(data: Any, path: str | Path) -> Path:
    """Write *data* to a pretty-printed JSON file, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2, default=str)
    log.info("Saved JSON → %s", path)
    return path


def load_json(path: str | Path) -> Any:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"JSON file not found: {path}")
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


def save_outputs(records: Sequence[dict[str, Any]], path: str | Path) -> Path:
    """Save collected output records (host, parser_id, output, ...) with run metadata."""
    return save_json(
        {
            "nbrmap_version": __version__,
            "collected_at": datetime.now(timezone.utc).isoformat(),
            "outputs": list(records),
        },
        path,
    )


def load_outputs(path: str | Path) -> list[dict[str, Any]]:
    """Load records written by :func:`save_outputs` (a bare list is accepted too)."""
    data = load_json(path)
    if isinstance(data, dict):
        data = data.get("outputs", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of output records")
    return [rec for rec in data if isinstance(rec, dict)]
