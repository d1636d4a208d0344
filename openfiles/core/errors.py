"""Error kinds raised by the registry and file handlers.

Service code stays HTTP-agnostic; the app maps each kind to a status code
through a single exception handler (see ``openfiles.main``).
"""

from __future__ import annotations


class FilesError(Exception):
    """Base class for request-scoped failures."""

    status_code = 500


class ValidationError(FilesError):
    """Missing stream, empty purpose, oversized payload, existing destination."""

    status_code = 400


class NotFoundError(FilesError):
    """No live record carries the requested id."""

    status_code = 404


class StorageError(FilesError):
    """Write, read or delete failure on the upload directory."""

    status_code = 500


class PersistenceError(Exception):
    """Snapshot marshal, write or read failure.

    Deliberately not a ``FilesError``: the registry logs it and the request
    that triggered it still succeeds.
    """
