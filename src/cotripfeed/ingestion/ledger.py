from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def safe_append_ledger_entry(path: Path, entry: dict[str, Any]) -> None:
    """Append a single JSON line to the run ledger.

    This is best-effort: a run should not fail if the ledger cannot be written.
    """

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(entry, ensure_ascii=False, separators=(",", ":"))
        with path.open("a", encoding="utf-8") as f:
            f.write(payload + "\n")
    except OSError:
        return


def read_latest_ledger_entry(path: Path) -> dict[str, Any] | None:
    """Return the latest valid JSON entry from a JSONL ledger, or None if not available."""

    if not path.exists():
        return None

    try:
        lines = path.read_text(encoding="utf-8", errors="ignore").splitlines()
    except OSError:
        return None

    for raw_line in reversed(lines):
        line = raw_line.strip()
        if not line:
            continue
        try:
            parsed = json.loads(line)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None
