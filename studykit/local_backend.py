"""JSON-file stand-ins for the data service and blob store.

Used when Supabase is not configured, so the app still runs end to end on a
single machine. Each table is one JSON file holding a list of rows.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO string."""

    return datetime.now(timezone.utc).isoformat()


def _matches(row: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    return all(str(row.get(key)) == str(value) for key, value in (filters or {}).items())


class LocalTable:
    """A table stored as ``<directory>/<name>.json``."""

    def __init__(
        self,
        directory: Path,
        name: str,
        *,
        timestamp_fields: Sequence[str] = ("created_at",),
    ) -> None:
        self.directory = Path(directory)
        self.name = name
        self.timestamp_fields = tuple(timestamp_fields)

    @property
    def path(self) -> Path:
        return self.directory / f"{self.name}.json"

    def _read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return payload if isinstance(payload, list) else []

    def _write(self, rows: Iterable[Dict[str, Any]]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as handle:
            json.dump(list(rows), handle, indent=2)
            handle.write("\n")

    def insert(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        rows = self._read()
        stored = dict(row)
        stored.setdefault("id", str(uuid.uuid4()))
        now = utc_timestamp()
        for name in self.timestamp_fields:
            stored.setdefault(name, now)
        rows.append(stored)
        self._write(rows)
        return dict(stored)

    def update(self, filters: Mapping[str, Any], values: Mapping[str, Any]) -> List[Dict[str, Any]]:
        rows = self._read()
        updated: List[Dict[str, Any]] = []
        for row in rows:
            if not _matches(row, filters):
                continue
            row.update(values)
            if "updated_at" in self.timestamp_fields:
                row["updated_at"] = utc_timestamp()
            updated.append(dict(row))
        if updated:
            self._write(rows)
        return updated

    def select(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        rows = [dict(row) for row in self._read() if _matches(row, filters)]
        if order:
            rows.sort(key=lambda row: str(row.get(order) or ""), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def delete(self, filters: Mapping[str, Any]) -> None:
        rows = self._read()
        remaining = [row for row in rows if not _matches(row, filters)]
        if len(remaining) != len(rows):
            self._write(remaining)

    def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        return sum(1 for row in self._read() if _matches(row, filters))


class LocalBlobStore:
    """Files under ``root`` addressed by relative paths."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise ValueError(f"Invalid storage path: {path}")
        return target

    def upload(self, path: str, data: bytes, content_type: str = "text/csv") -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("xb") as handle:
            handle.write(data)

    def download(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def remove(self, path: str) -> None:
        self._resolve(path).unlink(missing_ok=True)


__all__ = ["LocalBlobStore", "LocalTable", "utc_timestamp"]
