"""Files repository, the metadata store's data access layer.

Every list and find query is scoped by the caller's visibility, and every
mutation carries the ownership predicate in the same statement, so that
authorization and mutation cannot race.
"""

from datetime import datetime
from typing import Final, Iterator

from sqlalchemy import and_, case, false, func, or_
from sqlalchemy.orm import Session

from api.files.dto.file import FileRecord
from api.files.orm.file_model import DownloadModel, FileModel
from roles import Caller

SEARCH_MAX_LENGTH: Final = 10
RANK_SIZE: Final = 10


def _model_to_dto(model: FileModel) -> FileRecord:
    return FileRecord.model_validate(model)


def search_terms(text: str | None) -> list[str]:
    """Cap, trim and split a free-text query into AND-ed tokens."""
    if not text:
        return []
    return text[:SEARCH_MAX_LENGTH].strip().split()


def owned_by(caller: Caller):
    if not caller.can_own:
        return false()
    return FileModel.uploaded_by == caller.owner_id


def _live(now: datetime):
    return and_(FileModel.expired_at.isnot(None), FileModel.expired_at > now)


def visible_to(caller: Caller, now: datetime):
    conditions = [owned_by(caller), _live(now)]
    if caller.is_admin:
        conditions.append(FileModel.expired_at.is_(None))
    return or_(*conditions)


def _lookup_order(caller: Caller | None, now: datetime | None) -> list:
    """Caller's own copy first, then copies the caller may see, newest first."""
    order = []
    if caller is not None and caller.can_own:
        order.append(case((FileModel.uploaded_by == caller.owner_id, 0), else_=1))
    if now is not None and not (caller is not None and caller.is_admin):
        not_expired = or_(FileModel.expired_at.is_(None), FileModel.expired_at > now)
        order.append(case((not_expired, 0), else_=1))
    order.append(FileModel.id.desc())
    return order


def create(
    session: Session,
    filename: str,
    size: int,
    uploaded_at: datetime,
    uploaded_by: int,
    hash: str,
    blob_ref: str,
    expired_at: datetime | None = None,
) -> FileRecord:
    model = FileModel(
        filename=filename,
        size=size,
        uploaded_at=uploaded_at,
        uploaded_by=uploaded_by,
        hash=hash,
        blob_ref=blob_ref,
        expired_at=expired_at,
        locked=False,
        tags="",
    )
    session.add(model)
    session.commit()
    session.refresh(model)
    return _model_to_dto(model)


def find_by_id(session: Session, file_id: int) -> FileRecord | None:
    model = session.get(FileModel, file_id)
    return _model_to_dto(model) if model else None


def find_by_hash(
    session: Session,
    content_id: str,
    caller: Caller | None = None,
    now: datetime | None = None,
) -> FileRecord | None:
    """Best record with this hash for the caller, see ``_lookup_order``."""
    model = (
        session.query(FileModel)
        .filter(FileModel.hash == content_id)
        .order_by(*_lookup_order(caller, now))
        .first()
    )
    return _model_to_dto(model) if model else None


def find_by_label(
    session: Session,
    label: str,
    caller: Caller | None = None,
    now: datetime | None = None,
) -> FileRecord | None:
    model = (
        session.query(FileModel)
        .filter(FileModel.hash.startswith(label, autoescape=True))
        .order_by(*_lookup_order(caller, now))
        .first()
    )
    return _model_to_dto(model) if model else None


def find_permanent_by_hash(session: Session, content_id: str) -> FileRecord | None:
    model = (
        session.query(FileModel)
        .filter(FileModel.hash == content_id, FileModel.expired_at.is_(None))
        .order_by(FileModel.id.desc())
        .first()
    )
    return _model_to_dto(model) if model else None


def update_fields(session: Session, content_id: str, caller: Caller, **fields) -> int:
    """Update the caller's records with this hash. Returns affected rows."""
    count = (
        session.query(FileModel)
        .filter(FileModel.hash == content_id, owned_by(caller))
        .update(fields, synchronize_session=False)
    )
    session.commit()
    return count


def delete(session: Session, file_id: int, caller: Caller) -> int:
    count = (
        session.query(FileModel)
        .filter(FileModel.id == file_id, owned_by(caller))
        .delete(synchronize_session=False)
    )
    session.commit()
    return count


def assign_note_id(session: Session, file_id: int, note_id: str) -> str:
    """Set the note id unless one already exists; return the stored one."""
    session.query(FileModel).filter(
        FileModel.id == file_id,
        FileModel.note_id.is_(None),
    ).update({"note_id": note_id}, synchronize_session=False)
    session.commit()
    return session.query(FileModel.note_id).filter(FileModel.id == file_id).scalar()


def query(
    session: Session,
    caller: Caller,
    now: datetime,
    keyword: str | None = None,
    tag: str | None = None,
    page: int = 1,
    limit: int = 100,
) -> tuple[list[FileRecord], int]:
    q = session.query(FileModel).filter(visible_to(caller, now))
    for word in search_terms(keyword):
        q = q.filter(FileModel.filename.contains(word, autoescape=True))
    for word in search_terms(tag):
        q = q.filter(FileModel.tags.contains(word, autoescape=True))

    total = q.count()
    models = (
        q.order_by(FileModel.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return [_model_to_dto(m) for m in models], total


def list_uploaded_by(
    session: Session,
    owner_id: int,
    page: int = 1,
    limit: int = 100,
) -> tuple[list[FileRecord], int]:
    q = session.query(FileModel).filter(FileModel.uploaded_by == owner_id)
    total = q.count()
    models = (
        q.order_by(FileModel.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return [_model_to_dto(m) for m in models], total


def tags_of(session: Session, owner_id: int) -> list[str]:
    rows = session.query(FileModel.tags).filter(FileModel.uploaded_by == owner_id).all()
    return [row.tags or "" for row in rows]


def record_download(session: Session, file_id: int, downloaded_by: int, downloaded_at: datetime) -> None:
    session.add(DownloadModel(
        file_id=file_id,
        downloaded_at=downloaded_at,
        downloaded_by=downloaded_by,
    ))
    session.commit()


def list_downloads(
    session: Session,
    downloaded_by: int,
    page: int = 1,
    limit: int = 100,
) -> tuple[list[tuple[FileRecord, datetime]], int]:
    q = (
        session.query(FileModel, DownloadModel.downloaded_at)
        .join(DownloadModel, DownloadModel.file_id == FileModel.id)
        .filter(DownloadModel.downloaded_by == downloaded_by)
    )
    total = q.count()
    rows = (
        q.order_by(DownloadModel.downloaded_at.desc(), DownloadModel.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return [(_model_to_dto(model), downloaded_at) for model, downloaded_at in rows], total


def download_rank(session: Session, now: datetime, size: int = RANK_SIZE) -> list[tuple[int, str, int]]:
    """Most downloaded live files as (file id, filename, count)."""
    download_count = func.count(DownloadModel.id).label("download_count")
    rows = (
        session.query(FileModel.id, FileModel.filename, download_count)
        .join(DownloadModel, DownloadModel.file_id == FileModel.id)
        .filter(_live(now))
        .group_by(FileModel.id, FileModel.filename)
        .order_by(download_count.desc(), FileModel.id.desc())
        .limit(size)
        .all()
    )
    return [(row.id, row.filename, row.download_count) for row in rows]


def iter_blob_refs(session: Session) -> Iterator[tuple[int, str]]:
    for row in session.query(FileModel.id, FileModel.blob_ref).yield_per(500):
        yield row.id, row.blob_ref
