"""File Data Transfer Objects."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FileRecord(BaseModel):
    """Full metadata row, including the fields never sent to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    filename: str
    size: int
    uploaded_at: datetime
    uploaded_by: int
    hash: str
    blob_ref: str
    expired_at: datetime | None = None
    locked: bool = False
    tags: str = ""
    note_id: str | None = None

    @property
    def label(self) -> str:
        return self.hash[:6]

    def is_expired(self, now: datetime) -> bool:
        return self.expired_at is not None and self.expired_at <= now


class FileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    filename: str
    size: int
    uploaded_at: datetime
    hash: str
    label: str
    expired_at: datetime | None = None
    locked: bool = False
    tags: str = ""


class FileListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    files: list[FileResponse]
    total_count: int = Field(alias="totalCount")
    page: int
    limit: int


class DownloadedFileResponse(FileResponse):
    downloaded_at: datetime


class DownloadedFileListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    files: list[DownloadedFileResponse]
    total_count: int = Field(alias="totalCount")
    page: int
    limit: int


class RankedFile(BaseModel):
    file_id: int
    filename: str
    download_count: int


class RankResponse(BaseModel):
    files: list[RankedFile]


class NoteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    note_id: str = Field(alias="noteID")
    note_title: str = Field(alias="noteTitle")


class FileInfoUpdate(BaseModel):
    filename: str = Field(min_length=1, max_length=255)
    tags: str = ""


class FilesRequest(BaseModel):
    files: list[str]


class TagsRequest(FilesRequest):
    tags: str = ""
