"""Files controller: API routes for file management."""

from fastapi import APIRouter, Depends, HTTPException, Query

from auth import get_caller, get_context
from api.files.dto.batch import BatchResponse
from api.files.dto.file import (
    DownloadedFileListResponse,
    FileInfoUpdate,
    FileListResponse,
    FilesRequest,
    NoteResponse,
    RankResponse,
    TagsRequest,
)
from api.files.services import files_service
from context import StoreContext
from roles import Caller

router = APIRouter(tags=["Files"])


@router.get("/allfiles", response_model=FileListResponse, response_model_by_alias=True)
def list_files(
    page: str | None = Query(None),
    limit: str | None = Query(None),
    keyword: str | None = Query(None),
    tag: str | None = Query(None),
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    page_number, page_size = files_service.parse_pagination(page, limit)
    return files_service.list_files(ctx, caller, page_number, page_size, keyword, tag)


@router.post("/files/delete", response_model=BatchResponse, response_model_by_alias=True)
def delete_files(
    body: FilesRequest,
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    return files_service.delete_files(ctx, caller, body.files)


@router.post("/files/lock/{status}", response_model=BatchResponse, response_model_by_alias=True)
def lock_files(
    status: str,
    body: FilesRequest,
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    if status not in ("true", "false"):
        raise HTTPException(status_code=400, detail="Lock status must be true or false")
    return files_service.lock_files(ctx, caller, body.files, status == "true")


@router.post("/files/tags", response_model=BatchResponse, response_model_by_alias=True)
def tag_files(
    body: TagsRequest,
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    return files_service.tag_files(ctx, caller, body.files, body.tags)


@router.get("/files/tags", response_model=dict[str, int])
def tag_counts(
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    return files_service.tag_counts(ctx, caller)


@router.get("/files/uploads", response_model=FileListResponse, response_model_by_alias=True)
def list_uploads(
    page: str | None = Query(None),
    limit: str | None = Query(None),
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    page_number, page_size = files_service.parse_pagination(page, limit)
    return files_service.list_uploads(ctx, caller, page_number, page_size)


@router.get("/files/downloads", response_model=DownloadedFileListResponse, response_model_by_alias=True)
def list_downloads(
    page: str | None = Query(None),
    limit: str | None = Query(None),
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    page_number, page_size = files_service.parse_pagination(page, limit)
    return files_service.list_downloads(ctx, caller, page_number, page_size)


@router.get("/files/rank", response_model=RankResponse)
def download_rank(ctx: StoreContext = Depends(get_context)):
    return files_service.download_rank(ctx)


@router.put("/files/{identifier}/info")
def update_info(
    identifier: str,
    body: FileInfoUpdate,
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    files_service.update_info(ctx, caller, identifier, body.filename, body.tags)
    return {"message": "File info updated"}


@router.get("/files/{identifier}/note", response_model=NoteResponse, response_model_by_alias=True)
def get_note(
    identifier: str,
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    return files_service.get_note(ctx, caller, identifier)
