"""
Process-wide index of uploaded files.

All mutations and the snapshot write they trigger run under one lock, and
reads return copies taken under the same lock, so concurrent request
threads never see a half-applied change or interleave snapshot writes.
"""

from __future__ import annotations

import datetime as dt
import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from openfiles.core.errors import NotFoundError, PersistenceError
from openfiles.core.logging import persistence_logger
from openfiles.schemas import FileRecord
from openfiles.services.sanitize import reserved_names, sanitize_filename
from openfiles.services.snapshot import load_snapshot, save_snapshot


class FileRegistry:
    """Thread-safe registry of file records backed by a JSON snapshot."""

    def __init__(self, snapshot_path: Path, clock: Callable[[], float] = time.time):
        self.snapshot_path = Path(snapshot_path)
        self.last_persist_ok = True
        self._records: List[FileRecord] = []
        self._lock = threading.Lock()
        self._clock = clock
        self._id_second: Optional[int] = None
        self._id_seq = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def new_id(self) -> str:
        """
        Mint ``file-<unix-seconds>``; further ids in the same second get a
        ``-<n>`` suffix. Ids already live in the registry are skipped.
        """
        with self._lock:
            return self._mint_id_locked()

    def _mint_id_locked(self) -> str:
        # the minting second never goes backwards, even if the wall clock does
        now = int(self._clock())
        if self._id_second is not None and now <= self._id_second:
            now = self._id_second
            self._id_seq += 1
        else:
            self._id_second, self._id_seq = now, 0

        live = {r.id for r in self._records}
        while True:
            candidate = f"file-{now}" if self._id_seq == 0 else f"file-{now}-{self._id_seq}"
            if candidate not in live:
                return candidate
            self._id_seq += 1

    def create(self, *, filename: str, size: int, purpose: str) -> Tuple[FileRecord, bool]:
        """Mint an id, append the new record and persist in one locked step."""
        with self._lock:
            record = FileRecord(
                id=self._mint_id_locked(),
                bytes=int(size),
                created_at=dt.datetime.now(dt.timezone.utc),
                filename=filename,
                purpose=purpose,
            )
            self._records.append(record)
            return record, self._persist_locked()

    def add(self, record: FileRecord) -> bool:
        """Append ``record`` and persist. Returns whether the snapshot was written."""
        with self._lock:
            if any(r.id == record.id for r in self._records):
                raise ValueError(f"duplicate file id {record.id}")
            self._records.append(record)
            return self._persist_locked()

    def list(self, purpose: Optional[str] = None) -> List[FileRecord]:
        with self._lock:
            if purpose is None:
                return list(self._records)
            return [r for r in self._records if r.purpose == purpose]

    def find_by_id(self, file_id: str) -> FileRecord:
        with self._lock:
            for r in self._records:
                if r.id == file_id:
                    return r
        raise NotFoundError(f"unable to find file id {file_id}")

    def remove(self, file_id: str) -> Tuple[FileRecord, bool]:
        """Drop the record with ``file_id``, keeping the order of the rest."""
        with self._lock:
            for i, r in enumerate(self._records):
                if r.id == file_id:
                    del self._records[i]
                    return r, self._persist_locked()
        raise NotFoundError(f"unable to find file id {file_id}")

    def persist(self) -> bool:
        with self._lock:
            return self._persist_locked()

    def _persist_locked(self) -> bool:
        try:
            save_snapshot(self.snapshot_path, self._records)
        except PersistenceError as e:
            persistence_logger().error("%s; %d record(s) held in memory only", e, len(self._records))
            self.last_persist_ok = False
            return False
        self.last_persist_ok = True
        return True

    def load(self) -> int:
        """Replace the in-memory set with the snapshot contents.

        An absent or unreadable snapshot leaves the registry empty.
        """
        if not self.snapshot_path.exists():
            persistence_logger().info("No snapshot at %s; starting with an empty registry", self.snapshot_path)
        try:
            records = load_snapshot(self.snapshot_path)
        except PersistenceError as e:
            persistence_logger().error("%s; starting with an empty registry", e)
            records = []

        with self._lock:
            self._records = records
        logging.info(f"Loaded {len(records)} file record(s) from {self.snapshot_path}")
        return len(records)

    def check_storage(self, upload_dir: str) -> Tuple[List[str], List[str]]:
        """
        Compare the registry with the upload directory and log mismatches.

        Returns (ids whose file is missing, unclaimed filenames). Nothing is
        repaired.
        """
        records = self.list()
        claimed = set()
        missing = []
        for r in records:
            name = sanitize_filename(r.filename)
            claimed.add(name)
            if not os.path.isfile(os.path.join(upload_dir, name)):
                missing.append(r.id)
                logging.warning(f"File record {r.id} has no backing file {name}")

        skip = reserved_names(self.snapshot_path.name)
        orphans = []
        if os.path.isdir(upload_dir):
            for fn in sorted(os.listdir(upload_dir)):
                if fn in skip or fn in claimed or not os.path.isfile(os.path.join(upload_dir, fn)):
                    continue
                orphans.append(fn)
                logging.info(f"Upload directory holds unregistered file {fn}")
        return missing, orphans
