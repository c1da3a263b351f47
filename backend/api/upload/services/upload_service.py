"""Upload service: hash, store, record and cache each uploaded file."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO

from sqlalchemy.exc import SQLAlchemyError

from api.files.dto.batch import BatchResponse
from api.files.repositories import files_repository
from api.upload.dto.upload import UploadedFile
from context import StoreContext
from database import utcnow
from errors import HashdropError, IOFailure, StoreUnavailable
from hasher import content_identifier
from lookup_cache import CacheEntry, short_label
from roles import Caller, Role

logger = logging.getLogger(__name__)


@dataclass
class UploadItem:
    filename: str
    stream: BinaryIO


def expiry_for(ctx: StoreContext, caller: Caller, now: datetime) -> datetime | None:
    """Admin uploads are permanent, everything else lives for the retention window."""
    if caller.is_admin:
        return None
    return now + ctx.settings.file_live_time


def _rewind(stream: BinaryIO) -> int:
    """Return the stream size and seek back to the start."""
    try:
        size = stream.tell()
        stream.seek(0)
    except (OSError, ValueError) as error:
        raise IOFailure(f"Failed to rewind stream: {error}") from error
    return size


def save_upload(ctx: StoreContext, caller: Caller, item: UploadItem) -> UploadedFile:
    content_id = content_identifier(item.stream, ctx.settings.hash_type)
    size = _rewind(item.stream)

    now = utcnow()
    blob_ref = ctx.blobs.put(
        item.filename,
        item.stream,
        content_id,
        ephemeral=caller.role is Role.GUEST,
    )

    try:
        with ctx.session() as session:
            record = files_repository.create(
                session,
                filename=item.filename,
                size=size,
                uploaded_at=now,
                uploaded_by=caller.owner_id,
                hash=content_id,
                blob_ref=blob_ref,
                expired_at=expiry_for(ctx, caller, now),
            )
    except Exception:
        ctx.blobs.rollback_put(blob_ref)
        raise
    logger.info("File record %s created: %s", record.id, item.filename)

    label = short_label(content_id)
    ctx.cache.put(
        label,
        CacheEntry(fid=record.id, file_id=blob_ref, file_name=record.filename, hash=content_id),
        ttl=ctx.settings.file_live_time,
    )
    return UploadedFile(file_name=record.filename, label=label)


def save_uploads(ctx: StoreContext, caller: Caller, items: list[UploadItem]) -> BatchResponse:
    """Upload every item independently; one failure never aborts the rest."""
    result = BatchResponse(message="Upload completed")
    for item in items:
        try:
            uploaded = save_upload(ctx, caller, item)
        except StoreUnavailable:
            raise
        except HashdropError as e:
            logger.warning("Upload of %s failed: %s", item.filename, e)
            result.add_failure(item.filename, str(e))
        except SQLAlchemyError:
            logger.exception("Failed to save record for %s", item.filename)
            result.add_failure(item.filename, "Failed to save file record")
        except Exception:
            logger.exception("Unexpected failure uploading %s", item.filename)
            result.add_failure(item.filename, "Internal error")
        else:
            result.add_success(fileName=uploaded.file_name, label=uploaded.label)
    return result
