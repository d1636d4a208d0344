"""
OpenFiles
- OpenAI-style files API: upload, list, retrieve, delete, download content
- Routes are served both under /v1 and at the root
- File metadata lives in an in-memory registry mirrored to <UPLOAD_DIR>/uploadedFiles.json
"""

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from openfiles.api.routes.files import router as files_router
from openfiles.core.config import Settings, settings as default_settings
from openfiles.core.errors import FilesError, NotFoundError
from openfiles.services.registry import FileRegistry
from openfiles.startup import register_startup


async def _files_error(request: Request, exc: FilesError):
    status = exc.status_code
    if isinstance(exc, NotFoundError) and request.app.state.settings.LEGACY_NOT_FOUND_STATUS:
        status = 500
    if status >= 500:
        logging.error(f"{request.method} {request.url.path} -> {status}: {exc}")
    return PlainTextResponse(str(exc), status_code=status)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(title="OpenFiles", version="0.1.0")
    app.state.settings = settings
    app.state.registry = FileRegistry(settings.snapshot_path)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"], allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )
    app.add_exception_handler(FilesError, _files_error)
    register_startup(app)

    # APIs
    app.include_router(files_router, prefix="/v1", tags=["files"])
    app.include_router(files_router, tags=["files"])

    @app.get("/health")
    def health():
        return {"status": "ok", "registry_persisted": app.state.registry.last_persist_ok}

    return app

app = create_app()

def run():
    uvicorn.run("openfiles.main:app", host=default_settings.HOST, port=default_settings.PORT)
