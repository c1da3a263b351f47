"""Download controller: streams file content."""

import mimetypes
from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from auth import get_caller, get_context
from api.download.services import download_service
from context import StoreContext
from roles import Caller

router = APIRouter(tags=["Download"])


def _disposition(kind: str, filename: str) -> str:
    return f"{kind}; filename*=UTF-8''{quote(filename)}"


@router.get("/files/download/{identifier}")
def download_file(
    identifier: str,
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    """Stream a file as an attachment and record the download."""
    download = download_service.get_file_for_download(ctx, caller, identifier)

    return StreamingResponse(
        download.chunks,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": _disposition("attachment", download.filename),
            "Content-Length": str(download.record.size),
        },
        background=BackgroundTask(
            download_service.record_download, ctx, caller, download.record.id,
        ),
    )


@router.get("/files/preview/{identifier}")
def preview_file(
    identifier: str,
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    """Stream a file inline. Previews are not recorded as downloads."""
    download = download_service.get_file_for_download(ctx, caller, identifier)

    content_type, _ = mimetypes.guess_type(download.filename)
    if not content_type:
        content_type = "application/octet-stream"

    return StreamingResponse(
        download.chunks,
        media_type=content_type,
        headers={
            "Content-Disposition": _disposition("inline", download.filename),
            "Content-Length": str(download.record.size),
        },
    )
