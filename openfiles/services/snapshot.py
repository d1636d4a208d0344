"""JSON snapshot of the registry.

The snapshot is a single JSON array of file records, rewritten wholesale on
every mutation and read wholesale at startup. Writes go to a sibling temp
file first and are moved into place with ``os.replace``.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Sequence

import pydantic

from openfiles.core.errors import PersistenceError
from openfiles.schemas import FileRecord


def save_snapshot(path: Path, records: Sequence[FileRecord]) -> None:
    """Atomically overwrite the snapshot with ``records``."""
    path = Path(path)
    tmp_path = path.with_name(f"{path.name}.tmp")
    try:
        payload = json.dumps([r.model_dump(mode="json") for r in records], indent=1)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_path, path)
    except (OSError, TypeError, ValueError) as e:
        raise PersistenceError(f"Failed to save snapshot {path}: {e}") from e


def load_snapshot(path: Path) -> List[FileRecord]:
    """Read the snapshot; a missing file is an empty registry."""
    path = Path(path)
    if not path.exists():
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise PersistenceError(f"Failed to read snapshot {path}: {e}") from e

    # older snapshots hold "null" for an empty list
    if data is None:
        return []
    if not isinstance(data, list):
        raise PersistenceError(f"Snapshot {path} is not a JSON array")

    try:
        return [FileRecord.model_validate(item) for item in data]
    except pydantic.ValidationError as e:
        raise PersistenceError(f"Snapshot {path} holds an invalid record: {e}") from e
