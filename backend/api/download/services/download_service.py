"""Download service: resolve, authorize and stream a file."""

import logging
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

from api.files.dto.file import FileRecord
from api.files.repositories import files_repository
from api.files.services.resolve_service import decision_for, resolve
from context import StoreContext
from database import utcnow
from errors import BlobNotFound, BlobReadFailed, FileExpired, Forbidden, HashdropError
from roles import Caller

logger = logging.getLogger(__name__)


@dataclass
class FileDownload:
    record: FileRecord
    filename: str
    chunks: Iterator[bytes]


def get_file_for_download(ctx: StoreContext, caller: Caller, identifier: str) -> FileDownload:
    """Resolve the identifier, apply the access policy and open the blob.

    Raises:
        FileExpired: If the record is past its expiry and the caller may
            not see it.
        Forbidden: If the record is locked by another user.
        BlobReadFailed: If the record's blob cannot be read.
    """
    resolved = resolve(ctx, caller, identifier)
    decision = decision_for(caller, resolved.record, utcnow())
    if not decision.visible:
        raise FileExpired(f"File {identifier} has expired")
    if not decision.downloadable:
        raise Forbidden("File is locked and you are not allowed to download it.")

    try:
        chunks = ctx.blobs.open(resolved.blob_ref)
    except BlobNotFound as error:
        logger.error(
            "File record %s points at missing blob %s",
            resolved.record.id,
            resolved.blob_ref,
        )
        raise BlobReadFailed("File content is missing from the blob store") from error

    return FileDownload(record=resolved.record, filename=resolved.filename, chunks=chunks)


def record_download(ctx: StoreContext, caller: Caller, file_id: int) -> None:
    """Append a download event. Failures are logged, the download stands."""
    try:
        with ctx.session() as session:
            files_repository.record_download(session, file_id, caller.owner_id, utcnow())
    except (SQLAlchemyError, HashdropError):
        logger.warning("Failed to record download of file %s", file_id, exc_info=True)
