"""Identifier resolution shared by the download and mutation pipelines."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime

from api.files.dto.file import FileRecord
from api.files.repositories import files_repository
from context import StoreContext
from database import utcnow
from errors import FileNotFound, InvalidIdentifier, InvalidIdentifierLength
from lookup_cache import LABEL_LENGTH
from policy import Decision, decide
from roles import Caller

logger = logging.getLogger(__name__)

FULL_IDENTIFIER_MIN_LENGTH = 32

_HEX_PATTERN = re.compile(r"^[0-9a-f]+$")


@dataclass(frozen=True)
class Resolved:
    record: FileRecord
    blob_ref: str
    filename: str


def validate_identifier(identifier: str) -> str:
    """Check the identifier's form before any store is touched.

    Labels feed a prefix match, so only lowercase hex gets through.
    """
    identifier = (identifier or "").strip()
    if len(identifier) != LABEL_LENGTH and len(identifier) < FULL_IDENTIFIER_MIN_LENGTH:
        raise InvalidIdentifierLength(identifier)
    if not _HEX_PATTERN.match(identifier):
        raise InvalidIdentifier(f"Identifier {identifier!r} is not a lowercase hex string")
    return identifier


def resolve(ctx: StoreContext, caller: Caller, identifier: str) -> Resolved:
    """Find the record an identifier points to.

    Six-character labels go through the lookup cache and fall back to a
    prefix match in the metadata store on a miss; longer identifiers are
    looked up by full hash.
    """
    identifier = validate_identifier(identifier)
    now = utcnow()

    with ctx.session() as session:
        if len(identifier) == LABEL_LENGTH:
            entry = ctx.cache.get(identifier)
            if entry is not None:
                record = files_repository.find_by_id(session, entry.fid)
                if record is not None and record.hash == entry.hash:
                    logger.info("Resolved %s via lookup cache: blob %s", identifier, entry.file_id)
                    return Resolved(record, entry.file_id, entry.file_name)
                logger.warning("Stale lookup cache entry for %s", identifier)
                ctx.cache.delete(entry.hash)
            record = files_repository.find_by_label(session, identifier, caller, now)
        else:
            record = files_repository.find_by_hash(session, identifier, caller, now)

    if record is None:
        raise FileNotFound(f"File {identifier} has expired or does not exist")
    return Resolved(record, record.blob_ref, record.filename)


def full_identifier(ctx: StoreContext, caller: Caller, identifier: str) -> str:
    """Expand a short label to the full content identifier."""
    identifier = validate_identifier(identifier)
    if len(identifier) == LABEL_LENGTH:
        return resolve(ctx, caller, identifier).record.hash
    return identifier


def decision_for(caller: Caller, record: FileRecord, now: datetime) -> Decision:
    return decide(
        caller.role,
        is_owner=caller.owns(record.uploaded_by),
        locked=record.locked,
        expired=record.is_expired(now),
    )
