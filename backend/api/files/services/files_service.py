"""Files service: listing, deletion and metadata updates."""

import logging
import uuid
from collections import Counter

from api.files.dto.batch import BatchResponse
from api.files.dto.file import (
    DownloadedFileListResponse,
    DownloadedFileResponse,
    FileListResponse,
    FileResponse,
    NoteResponse,
    RankedFile,
    RankResponse,
)
from api.files.repositories import files_repository
from api.files.services.resolve_service import decision_for, full_identifier, resolve
from context import StoreContext
from database import utcnow
from errors import BlobNotFound, FileNotFound, Forbidden, HashdropError, NoMatchingRecord, StoreUnavailable
from roles import Caller

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100


def parse_pagination(page: str | int | None, limit: str | int | None) -> tuple[int, int]:
    """Parse page/limit query values; invalid or non-positive values fall back to defaults."""
    return _positive_int(page, DEFAULT_PAGE), _positive_int(limit, DEFAULT_LIMIT)


def _positive_int(value: str | int | None, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


def list_files(
    ctx: StoreContext,
    caller: Caller,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
    keyword: str | None = None,
    tag: str | None = None,
) -> FileListResponse:
    with ctx.session() as session:
        records, total = files_repository.query(
            session,
            caller,
            utcnow(),
            keyword=keyword,
            tag=tag,
            page=page,
            limit=limit,
        )
    return FileListResponse(
        files=[FileResponse.model_validate(r) for r in records],
        total_count=total,
        page=page,
        limit=limit,
    )


def _run_batch(identifiers: list[str], handler, message: str) -> BatchResponse:
    """Apply ``handler`` to each identifier, isolating failures per item."""
    result = BatchResponse(message=message)
    for identifier in identifiers:
        try:
            handler(identifier)
        except StoreUnavailable:
            raise
        except HashdropError as e:
            logger.info("Batch item %s failed: %s", identifier, e)
            result.add_failure(identifier, str(e))
        except Exception:
            logger.exception("Unexpected failure on batch item %s", identifier)
            result.add_failure(identifier, "Internal error")
        else:
            result.add_success(hash=identifier)
    return result


def delete_file(ctx: StoreContext, caller: Caller, identifier: str) -> None:
    """Delete the blob, the metadata row and the cache entry of one file."""
    resolved = resolve(ctx, caller, identifier)
    record = resolved.record
    if not decision_for(caller, record, utcnow()).mutable:
        raise NoMatchingRecord(f"No file of yours matches {identifier}")

    try:
        ctx.blobs.delete(resolved.blob_ref)
    except BlobNotFound:
        logger.warning("File %s points at a missing blob %s", record.id, resolved.blob_ref)

    with ctx.session() as session:
        count = files_repository.delete(session, record.id, caller)
    if count == 0:
        raise NoMatchingRecord(f"No file of yours matches {identifier}")
    logger.info("Deleted file record %s (%s)", record.id, record.hash)

    ctx.cache.delete(record.hash)


def delete_files(ctx: StoreContext, caller: Caller, identifiers: list[str]) -> BatchResponse:
    return _run_batch(
        identifiers,
        lambda identifier: delete_file(ctx, caller, identifier),
        "Delete completed",
    )


def _update(ctx: StoreContext, caller: Caller, identifier: str, **fields) -> str:
    record = resolve(ctx, caller, identifier).record
    if not decision_for(caller, record, utcnow()).mutable:
        raise NoMatchingRecord(f"No file of yours matches {identifier}")

    content_id = record.hash
    with ctx.session() as session:
        count = files_repository.update_fields(session, content_id, caller, **fields)
    if count == 0:
        raise NoMatchingRecord(f"No file of yours matches {identifier}")
    return content_id


def normalize_tags(tags: str | None) -> str:
    return " ".join((tags or "").split())


def lock_files(ctx: StoreContext, caller: Caller, identifiers: list[str], locked: bool) -> BatchResponse:
    return _run_batch(
        identifiers,
        lambda identifier: _update(ctx, caller, identifier, locked=locked),
        "Operation completed",
    )


def tag_files(ctx: StoreContext, caller: Caller, identifiers: list[str], tags: str) -> BatchResponse:
    tags = normalize_tags(tags)
    return _run_batch(
        identifiers,
        lambda identifier: _update(ctx, caller, identifier, tags=tags),
        "Operation completed",
    )


def update_info(ctx: StoreContext, caller: Caller, identifier: str, filename: str, tags: str) -> None:
    """Rename a file and replace its tags."""
    filename = filename.strip()
    content_id = _update(ctx, caller, identifier, filename=filename, tags=normalize_tags(tags))
    ctx.cache.rename(content_id, filename)


def rename_files(
    ctx: StoreContext,
    caller: Caller,
    identifiers: list[str],
    filename: str,
    tags: str,
) -> BatchResponse:
    return _run_batch(
        identifiers,
        lambda identifier: update_info(ctx, caller, identifier, filename, tags),
        "Operation completed",
    )


def get_note(ctx: StoreContext, caller: Caller, identifier: str) -> NoteResponse:
    """Return the note linked to a permanent file, creating the link on first view."""
    content_id = full_identifier(ctx, caller, identifier)
    with ctx.session() as session:
        record = files_repository.find_permanent_by_hash(session, content_id)
        if record is None:
            raise FileNotFound(f"No permanent file matches {identifier}")
        note_id = record.note_id
        if not note_id:
            note_id = files_repository.assign_note_id(session, record.id, str(uuid.uuid4()))
            logger.info("Linked note %s to file %s", note_id, record.id)
    return NoteResponse(note_id=note_id, note_title=record.filename)


def tag_counts(ctx: StoreContext, caller: Caller) -> dict[str, int]:
    counts: Counter[str] = Counter()
    with ctx.session() as session:
        for tags in files_repository.tags_of(session, caller.owner_id):
            counts.update(tags.split())
    return dict(counts)


def _require_member(caller: Caller) -> None:
    if caller.is_anonymous:
        raise Forbidden("History is only available to signed-in members")


def list_uploads(ctx: StoreContext, caller: Caller, page: int, limit: int) -> FileListResponse:
    _require_member(caller)
    with ctx.session() as session:
        records, total = files_repository.list_uploaded_by(session, caller.owner_id, page, limit)
    return FileListResponse(
        files=[FileResponse.model_validate(r) for r in records],
        total_count=total,
        page=page,
        limit=limit,
    )


def list_downloads(ctx: StoreContext, caller: Caller, page: int, limit: int) -> DownloadedFileListResponse:
    _require_member(caller)
    with ctx.session() as session:
        rows, total = files_repository.list_downloads(session, caller.owner_id, page, limit)
    files = [
        DownloadedFileResponse(
            **FileResponse.model_validate(record).model_dump(),
            downloaded_at=downloaded_at,
        )
        for record, downloaded_at in rows
    ]
    return DownloadedFileListResponse(files=files, total_count=total, page=page, limit=limit)


def download_rank(ctx: StoreContext) -> RankResponse:
    with ctx.session() as session:
        rows = files_repository.download_rank(session, utcnow())
    return RankResponse(files=[
        RankedFile(file_id=file_id, filename=filename, download_count=count)
        for file_id, filename, count in rows
    ])
