# openfiles/services/sanitize.py
from __future__ import annotations

import os
import posixpath
from pathlib import Path

from openfiles.core.errors import ValidationError


def sanitize_filename(name: str) -> str:
    """
    Reduce an untrusted client filename to a single safe path element.

    Both "/" and "\\" count as separators, since Windows clients send
    backslash paths: ``a\\b.txt`` is directory ``a``, file ``b.txt``. The
    path is normalized, only its last element is kept, and any ".." left
    over is stripped. Names containing neither separator nor ".." come
    back unchanged. Distinct inputs may map to the same output.
    """
    cleaned = posixpath.normpath((name or "").replace("\\", "/"))
    base = posixpath.basename(cleaned)
    return base.replace("..", "")


def reserved_names(snapshot_filename: str) -> set:
    return {snapshot_filename, f"{snapshot_filename}.tmp"}


def resolve_upload_path(upload_dir: str, filename: str, snapshot_filename: str) -> Path:
    """Sanitize ``filename`` and join it onto the upload directory."""
    safe = sanitize_filename(filename)
    if safe in ("", "."):
        raise ValidationError(f"Invalid filename: {filename!r}")
    if safe in reserved_names(snapshot_filename):
        raise ValidationError(f"Filename {safe} is reserved")

    root = os.path.abspath(upload_dir)
    dest = os.path.abspath(os.path.join(root, safe))
    if os.path.dirname(dest) != root:
        raise ValidationError(f"Invalid filename: {filename!r}")
    return Path(dest)
