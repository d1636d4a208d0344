import datetime as dt
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class FileRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    object: Literal["file"] = "file"
    bytes: int
    created_at: dt.datetime
    filename: str
    purpose: str


class FileList(BaseModel):
    data: list[FileRecord] = Field(default_factory=list)
    object: Literal["list"] = "list"


class DeleteStatus(BaseModel):
    id: str
    object: Literal["file"] = "file"
    deleted: bool = True
