"""Upload controller: handles multipart file uploads."""

from fastapi import APIRouter, Depends, File, UploadFile

from auth import get_caller, get_context
from api.files.dto.batch import BatchResponse
from api.upload.services import upload_service
from api.upload.services.upload_service import UploadItem
from context import StoreContext
from roles import Caller

router = APIRouter(tags=["Upload"])


@router.post("/files/upload", response_model=BatchResponse, response_model_by_alias=True)
def upload_files(
    files: list[UploadFile] = File(...),
    ctx: StoreContext = Depends(get_context),
    caller: Caller = Depends(get_caller),
):
    """Upload every file in the ``files`` field; failures are reported per file."""
    items = [UploadItem(filename=f.filename or "unnamed", stream=f.file) for f in files]
    return upload_service.save_uploads(ctx, caller, items)
