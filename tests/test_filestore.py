"""
Unit tests for the upload, delete and content handlers.
"""

import io
import os
import tempfile
import unittest
import datetime as dt
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest import mock

from openfiles.core.config import Settings
from openfiles.core.errors import NotFoundError, StorageError, ValidationError
from openfiles.services.filestore import (
    delete_file,
    get_file,
    list_files,
    read_content,
    save_upload,
)
from openfiles.schemas import FileRecord
from openfiles.services.registry import FileRegistry
from openfiles.services.snapshot import load_snapshot


def make_record(file_id, filename):
    return FileRecord(
        id=file_id,
        bytes=1,
        created_at=dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc),
        filename=filename,
        purpose="fine-tune",
    )


class _FailingStream(io.RawIOBase):
    def readable(self):
        return True

    def read(self, size=-1):
        raise OSError("disk went away")


class FilestoreTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.upload_dir = Path(self._tmp.name)
        self.settings = Settings(UPLOAD_DIR=str(self.upload_dir), UPLOAD_LIMIT_MB=1, LOG_DIR="")
        self.registry = FileRegistry(self.settings.snapshot_path)

    def tearDown(self):
        self._tmp.cleanup()

    def upload(self, name, data=b"0123456789", purpose="fine-tune", size=None):
        return save_upload(self.registry, self.settings, io.BytesIO(data), name, purpose, size=size)

    def data_files(self):
        return sorted(
            fn for fn in os.listdir(self.upload_dir)
            if fn != self.settings.SNAPSHOT_FILENAME
        )


class TestSaveUpload(FilestoreTestCase):

    def test_upload_creates_record_and_file(self):
        record, persisted = self.upload("train.jsonl")

        self.assertTrue(persisted)
        self.assertEqual(record.object, "file")
        self.assertEqual(record.bytes, 10)
        self.assertEqual(record.purpose, "fine-tune")
        self.assertTrue(record.id.startswith("file-"))
        self.assertEqual((self.upload_dir / "train.jsonl").read_bytes(), b"0123456789")
        self.assertEqual(load_snapshot(self.settings.snapshot_path), [record])

    def test_size_measured_when_not_declared(self):
        record, _ = self.upload("measured.bin", data=b"x" * 1234)
        self.assertEqual(record.bytes, 1234)

    def test_oversized_upload_rejected(self):
        data = b"x" * (2 * 1024 * 1024)
        with self.assertRaises(ValidationError) as ctx:
            self.upload("big.bin", data=data, size=len(data))

        self.assertIn("exceeds upload limit", str(ctx.exception))
        self.assertEqual(len(self.registry), 0)
        self.assertEqual(self.data_files(), [])

    def test_missing_stream_rejected(self):
        with self.assertRaises(ValidationError):
            save_upload(self.registry, self.settings, None, "x.txt", "fine-tune")

    def test_empty_purpose_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.upload("nopurpose.txt", purpose="")
        self.assertEqual(str(ctx.exception), "Purpose is not defined")
        self.assertEqual(self.data_files(), [])

    def test_duplicate_destination_rejected(self):
        first, _ = self.upload("same.txt", data=b"first")

        with self.assertRaises(ValidationError) as ctx:
            self.upload("same.txt", data=b"second")

        self.assertIn("already exists", str(ctx.exception))
        self.assertEqual(self.registry.list(), [first])
        self.assertEqual((self.upload_dir / "same.txt").read_bytes(), b"first")

    def test_sanitized_collision_rejected(self):
        self.upload("notes.txt")
        with self.assertRaises(ValidationError):
            self.upload("../elsewhere/notes.txt")
        self.assertEqual(len(self.registry), 1)

    def test_traversal_stays_inside_upload_dir(self):
        record, _ = self.upload("../../etc/passwd")

        self.assertEqual(record.filename, "../../etc/passwd")
        self.assertEqual(self.data_files(), ["passwd"])
        self.assertEqual(read_content(self.registry, self.settings, record.id), b"0123456789")

    def test_snapshot_name_rejected(self):
        with self.assertRaises(ValidationError):
            self.upload("uploadedFiles.json")
        self.assertEqual(len(self.registry), 0)

    def test_write_failure_leaves_registry_unchanged(self):
        with self.assertRaises(StorageError):
            save_upload(self.registry, self.settings, _FailingStream(), "broken.bin", "fine-tune", size=5)

        self.assertEqual(len(self.registry), 0)
        self.assertEqual(self.data_files(), [])

    def test_concurrent_uploads(self):
        count = 24

        def worker(i):
            return self.upload(f"part-{i}.jsonl", data=f"payload {i}".encode())

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(worker, range(count)))

        ids = [record.id for record, _ in results]
        self.assertEqual(len(set(ids)), count)
        self.assertEqual(len(self.registry), count)
        self.assertEqual(load_snapshot(self.settings.snapshot_path), self.registry.list())
        self.assertEqual(len(self.data_files()), count)


class TestQueryAndDelete(FilestoreTestCase):

    def test_list_files_wrapper(self):
        a, _ = self.upload("a.txt", purpose="fine-tune")
        b, _ = self.upload("b.txt", purpose="other")

        everything = list_files(self.registry)
        self.assertEqual(everything.object, "list")
        self.assertEqual(everything.data, [a, b])
        self.assertEqual(list_files(self.registry, "").data, [a, b])
        self.assertEqual(list_files(self.registry, "other").data, [b])

        empty = list_files(self.registry, "missing")
        self.assertEqual(empty.data, [])
        self.assertEqual(empty.model_dump()["data"], [])

    def test_get_file_requires_id(self):
        with self.assertRaises(ValidationError):
            get_file(self.registry, "")
        with self.assertRaises(NotFoundError):
            get_file(self.registry, "file-0")

    def test_delete_removes_file_and_record(self):
        record, _ = self.upload("gone.txt")

        status, persisted = delete_file(self.registry, self.settings, record.id)

        self.assertTrue(persisted)
        self.assertEqual(status.model_dump(), {"id": record.id, "object": "file", "deleted": True})
        self.assertEqual(self.data_files(), [])
        self.assertEqual(load_snapshot(self.settings.snapshot_path), [])
        with self.assertRaises(NotFoundError):
            get_file(self.registry, record.id)

    def test_delete_tolerates_missing_file(self):
        record, _ = self.upload("vanished.txt")
        os.remove(self.upload_dir / "vanished.txt")

        status, _ = delete_file(self.registry, self.settings, record.id)

        self.assertTrue(status.deleted)
        self.assertEqual(len(self.registry), 0)

    def test_delete_unknown_id(self):
        with self.assertRaises(NotFoundError):
            delete_file(self.registry, self.settings, "file-123")

    def test_read_content_missing_file(self):
        record, _ = self.upload("lost.txt")
        os.remove(self.upload_dir / "lost.txt")
        with self.assertRaises(StorageError):
            read_content(self.registry, self.settings, record.id)

    def test_record_without_storable_name_can_be_deleted(self):
        self.upload("keep.txt")
        odd = [
            make_record("file-1", ".."),
            make_record("file-2", "../uploadedFiles.json"),
        ]
        for record in odd:
            self.registry.add(record)

        for record in odd:
            with self.assertRaises(StorageError):
                read_content(self.registry, self.settings, record.id)
            status, _ = delete_file(self.registry, self.settings, record.id)
            self.assertTrue(status.deleted)

        self.assertEqual(len(self.registry), 1)
        self.assertTrue(self.settings.snapshot_path.exists())
        self.assertEqual(self.data_files(), ["keep.txt"])


class TestRegistration(FilestoreTestCase):

    def test_clock_stepping_back_keeps_uploads_distinct(self):
        ticks = iter([100, 101, 100])
        self.registry = FileRegistry(self.settings.snapshot_path, clock=lambda: next(ticks))

        ids = [self.upload(f"clock-{i}.txt")[0].id for i in range(3)]

        self.assertEqual(ids, ["file-100", "file-101", "file-101-1"])
        self.assertEqual(len(self.registry), 3)
        self.assertEqual(len(self.data_files()), 3)

    def test_registration_failure_discards_file(self):
        with mock.patch.object(self.registry, "create", side_effect=RuntimeError("boom")):
            with self.assertRaises(RuntimeError):
                self.upload("unregistered.txt")

        self.assertEqual(len(self.registry), 0)
        self.assertEqual(self.data_files(), [])


if __name__ == "__main__":
    unittest.main()
