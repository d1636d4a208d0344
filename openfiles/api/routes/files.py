from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile

from openfiles.core.config import Settings
from openfiles.core.errors import ValidationError
from openfiles.schemas import DeleteStatus, FileList, FileRecord
from openfiles.services.filestore import delete_file, get_file, list_files, read_content, save_upload
from openfiles.services.registry import FileRegistry

router = APIRouter()

PERSISTED_HEADER = "X-Registry-Persisted"


def get_registry(request: Request) -> FileRegistry:
    return request.app.state.registry


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _mark_persisted(response: Response, persisted: bool) -> None:
    response.headers[PERSISTED_HEADER] = "true" if persisted else "false"


# Handlers are plain defs: FastAPI runs each one on its worker thread pool.

@router.post("/files", response_model=FileRecord)
def upload(
    response: Response,
    file: Optional[UploadFile] = File(None),
    purpose: str = Form(""),
    registry: FileRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
):
    if file is None:
        raise ValidationError("file is required")
    try:
        record, persisted = save_upload(
            registry, settings, file.file, file.filename or "", purpose, size=file.size
        )
    finally:
        file.file.close()
    _mark_persisted(response, persisted)
    return record


@router.get("/files", response_model=FileList)
def list_(purpose: Optional[str] = None, registry: FileRegistry = Depends(get_registry)):
    return list_files(registry, purpose)


@router.get("/files/{file_id}", response_model=FileRecord)
def retrieve(file_id: str, registry: FileRegistry = Depends(get_registry)):
    return get_file(registry, file_id)


@router.delete("/files/{file_id}", response_model=DeleteStatus)
def delete(
    file_id: str,
    response: Response,
    registry: FileRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
):
    status, persisted = delete_file(registry, settings, file_id)
    _mark_persisted(response, persisted)
    return status


@router.get("/files/{file_id}/content")
def content(
    file_id: str,
    registry: FileRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
):
    data = read_content(registry, settings, file_id)
    return Response(content=data, media_type="application/octet-stream")
