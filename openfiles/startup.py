"""FastAPI startup registration.

Routers and services stay free of import-time side effects; logging setup,
the upload directory and the registry snapshot are all handled here.
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from openfiles.core.logging import configure_logging


def register_startup(app: FastAPI) -> None:
    """Register startup hooks on the provided FastAPI app."""

    @app.on_event("startup")
    def _load_registry() -> None:
        settings = app.state.settings
        configure_logging(settings)
        os.makedirs(settings.UPLOAD_DIR, exist_ok=True)

        registry = app.state.registry
        registry.load()
        missing, orphans = registry.check_storage(settings.UPLOAD_DIR)
        if missing or orphans:
            logging.warning(
                f"Upload directory out of sync: {len(missing)} record(s) without a file, "
                f"{len(orphans)} unregistered file(s)"
            )
