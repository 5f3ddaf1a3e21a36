# zendesk_export/storage.py
"""
Flat-file persistence under the export folder.

Incremental resources (tickets, users, comments) are append-only
newline-delimited JSON. Small resources (views, triggers, ...) are a
single JSON document rewritten on every run.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional


def ensure_dir(p) -> None:
    Path(p).mkdir(parents=True, exist_ok=True)


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class ExportFolder:
    def __init__(self, root):
        self.root = Path(root)
        self.attachments = self.root / "attachments"

    def prepare(self) -> None:
        for p in (self.root, self.attachments):
            if not p.exists():
                ensure_dir(p)
                logging.info('Folder "%s" created', p)

    def path(self, name: str) -> Path:
        return self.root / name

    @property
    def tickets(self) -> Path:
        return self.path("tickets.json")

    @property
    def users(self) -> Path:
        return self.path("users.json")

    @property
    def comments(self) -> Path:
        return self.path("comments.json")

    @property
    def errors(self) -> Path:
        return self.path("errors.txt")

    @property
    def cursors(self) -> Path:
        return self.path("cursors.json")

    @property
    def summary(self) -> Path:
        return self.path("run_summary.json")


def append_records(path: Path, records: Iterable[Dict[str, Any]]) -> int:
    """Append one JSON object per line. Returns the number written."""
    lines = [_dumps(r) + "\n" for r in records]
    if lines:
        with open(path, "a", encoding="utf-8") as f:
            f.write("".join(lines))
    return len(lines)


def append_comments(path: Path, ticket_id: int, comments: list) -> None:
    # single write so the id line and its array land together
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"{ticket_id}\n{_dumps(comments)}\n")


def write_snapshot(path: Path, value: Any) -> None:
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(_dumps(value) + "\n")
    os.replace(tmp, path)


def iter_records(path: Path) -> Iterator[Dict[str, Any]]:
    """Read back a newline-delimited JSON file; blank lines are ignored."""
    if not path.exists():
        return
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                yield json.loads(line)


class ErrorLog:
    """Append-only text log of skipped items, for manual follow-up."""

    def __init__(self, path: Path):
        self.path = path
        self.count = 0

    def write(self, message: str) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(message.replace("\n", " ") + "\n")
        self.count += 1


class CursorStore:
    """Last persisted `after_cursor` per cursor-style resource."""

    def __init__(self, path: Path):
        self.path = path

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except ValueError:
                logging.warning("Ignoring unreadable cursor file %s", self.path)
                return {}
        return data if isinstance(data, dict) else {}

    def get(self, resource: str) -> Optional[str]:
        return self._load().get(resource)

    def set(self, resource: str, token: str) -> None:
        data = self._load()
        data[resource] = token
        write_snapshot(self.path, data)
