# openfiles/services/filestore.py
import logging
import os
from pathlib import Path
from typing import BinaryIO, Optional, Tuple

from openfiles.core.config import Settings
from openfiles.core.errors import StorageError, ValidationError
from openfiles.schemas import DeleteStatus, FileList, FileRecord
from openfiles.services.registry import FileRegistry
from openfiles.services.sanitize import reserved_names, resolve_upload_path, sanitize_filename

CHUNK_SIZE = 1024 * 1024  # 1MB


def _measure(stream: BinaryIO) -> int:
    pos = stream.tell()
    end = stream.seek(0, os.SEEK_END)
    stream.seek(pos)
    return end - pos


def _stored_path(settings: Settings, record: FileRecord) -> Optional[Path]:
    """Where an existing record's copy lives; None when no upload could have written one."""
    name = sanitize_filename(record.filename)
    if name in ("", ".") or name in reserved_names(settings.SNAPSHOT_FILENAME):
        return None
    return Path(settings.UPLOAD_DIR) / name


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logging.error(f"Failed to remove partial upload {path}: {e}")


def save_upload(
    registry: FileRegistry,
    settings: Settings,
    stream: Optional[BinaryIO],
    filename: str,
    purpose: str,
    size: Optional[int] = None,
) -> Tuple[FileRecord, bool]:
    """
    Validate an upload, write it under the upload directory and register it.

    Returns the new record and whether the registry snapshot was written.
    """
    if stream is None:
        raise ValidationError("file is required")

    if size is None:
        size = _measure(stream)
    if size > settings.upload_limit_bytes:
        raise ValidationError(f"File size {size} exceeds upload limit {settings.UPLOAD_LIMIT_MB}")

    if not purpose:
        raise ValidationError("Purpose is not defined")

    dest = resolve_upload_path(settings.UPLOAD_DIR, filename, settings.SNAPSHOT_FILENAME)
    dest.parent.mkdir(parents=True, exist_ok=True)

    # exclusive create: the existence check and the write are one step
    try:
        out = open(dest, "xb")
    except FileExistsError:
        raise ValidationError("File already exists")
    except OSError as e:
        raise StorageError(f"Failed to save file: {e}")

    try:
        with out:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
    except OSError as e:
        _discard(dest)
        raise StorageError(f"Failed to save file: {e}")

    try:
        record, persisted = registry.create(filename=filename, size=size, purpose=purpose)
    except Exception:
        logging.exception(f"Failed to register {dest}")
        _discard(dest)
        raise
    logging.info(f"Stored {record.id} ({record.bytes} bytes, purpose={purpose}) at {dest}")
    return record, persisted


def list_files(registry: FileRegistry, purpose: Optional[str] = None) -> FileList:
    return FileList(data=registry.list(purpose or None))


def get_file(registry: FileRegistry, file_id: str) -> FileRecord:
    if not file_id:
        raise ValidationError("file_id parameter is required")
    return registry.find_by_id(file_id)


def delete_file(registry: FileRegistry, settings: Settings, file_id: str) -> Tuple[DeleteStatus, bool]:
    """Unlink the stored copy (already gone is fine), then drop the record."""
    record = get_file(registry, file_id)
    path = _stored_path(settings, record)
    if path is None:
        logging.warning(f"{record.id}: filename {record.filename!r} maps to no stored copy; removing record")
    else:
        try:
            path.unlink()
        except FileNotFoundError:
            logging.warning(f"{record.id}: backing file {path.name} already absent; removing record")
        except OSError as e:
            raise StorageError(f"Unable to delete file: {record.filename}, {e}")

    _, persisted = registry.remove(record.id)
    logging.info(f"Deleted {record.id}")
    return DeleteStatus(id=record.id), persisted


def read_content(registry: FileRegistry, settings: Settings, file_id: str) -> bytes:
    record = get_file(registry, file_id)
    path = _stored_path(settings, record)
    if path is None:
        raise StorageError(f"No stored copy for {record.id} ({record.filename!r})")
    try:
        return path.read_bytes()
    except OSError as e:
        raise StorageError(str(e))
