"""Chunked blob storage on an S3-compatible backend.

Every blob is written as a multipart upload: the upload id is the
transaction, each chunk is a part, and completing the upload commits the
object into the bucket's index. A write that dies before completion leaves
its parts behind as an unfinished upload, which the retention sweeper
reclaims.
"""

import logging
import math
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, Final, Iterator
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from errors import BlobNotFound, BlobReadFailed, BlobWriteFailed, IOFailure

logger = logging.getLogger(__name__)

EXPIRY_TAG_KEY: Final = "retention"
EXPIRY_TAG_VALUE: Final = "ephemeral"
EXPIRY_RULE_ID: Final = "hashdrop-ephemeral-expiry"

_REF_PATTERN: Final = re.compile(r"^[0-9a-f]{32,128}/[0-9a-f]{32}$")
_MISSING_CODES: Final = frozenset({"404", "NoSuchKey", "NotFound"})


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


@dataclass(frozen=True)
class ChunkGroup:
    """An unfinished multipart upload."""

    key: str
    upload_id: str
    initiated: datetime


class BlobStore:
    def __init__(
        self,
        client: Any,
        bucket: str,
        chunk_size: int = 5 * 1024 * 1024,
        ephemeral_ttl: timedelta = timedelta(hours=8),
    ) -> None:
        self.client = client
        self.bucket = bucket
        self.chunk_size = chunk_size
        self.ephemeral_ttl = ephemeral_ttl

    def ensure_bucket(self) -> None:
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError:
            logger.info("Creating bucket: %s", self.bucket)
            self.client.create_bucket(Bucket=self.bucket)

    @staticmethod
    def is_valid_ref(ref: str) -> bool:
        return bool(ref) and _REF_PATTERN.match(ref) is not None

    def put(
        self,
        name: str,
        stream: BinaryIO,
        content_id: str,
        ephemeral: bool = False,
    ) -> str:
        """Store the stream and return its blob reference.

        Identical content gets a fresh reference each time; the content id
        only prefixes the key.

        Raises:
            BlobWriteFailed: If any part of the write fails. The upload is
                aborted; parts that could not be aborted are left for the
                sweeper.
        """
        ref = f"{content_id}/{uuid.uuid4().hex}"
        try:
            upload = self.client.create_multipart_upload(
                Bucket=self.bucket,
                Key=ref,
                Metadata={"filename": quote(name)},
            )
        except (BotoCoreError, ClientError) as error:
            logger.exception("Failed to start blob upload: %s", name)
            raise BlobWriteFailed(f"Failed to start upload: {error}") from error

        upload_id = upload["UploadId"]
        try:
            parts = self._upload_parts(ref, upload_id, stream)
            self.client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=ref,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except (BotoCoreError, ClientError, IOFailure) as error:
            logger.exception("Failed to upload blob %s (%s)", ref, name)
            self._abort(ref, upload_id)
            raise BlobWriteFailed(f"Failed to upload file to blob store: {error}") from error

        if ephemeral:
            try:
                self._mark_ephemeral(ref)
            except (BotoCoreError, ClientError) as error:
                logger.exception("Failed to set expiry on blob %s", ref)
                self.rollback_put(ref)
                raise BlobWriteFailed(f"Failed to set blob expiry: {error}") from error

        logger.info("Stored blob %s for %s", ref, name)
        return ref

    def _upload_parts(self, ref: str, upload_id: str, stream: BinaryIO) -> list[dict]:
        parts: list[dict] = []
        number = 1
        while True:
            try:
                chunk = stream.read(self.chunk_size)
            except (OSError, ValueError) as error:
                raise IOFailure(f"Failed to read stream: {error}") from error
            # Empty content still needs one (empty) part to complete
            if parts and not chunk:
                break
            response = self.client.upload_part(
                Bucket=self.bucket,
                Key=ref,
                UploadId=upload_id,
                PartNumber=number,
                Body=chunk,
            )
            parts.append({"ETag": response["ETag"], "PartNumber": number})
            number += 1
            if len(chunk) < self.chunk_size:
                break
        return parts

    def _abort(self, ref: str, upload_id: str) -> None:
        try:
            self.client.abort_multipart_upload(
                Bucket=self.bucket,
                Key=ref,
                UploadId=upload_id,
            )
        except (BotoCoreError, ClientError):
            logger.exception("Failed to abort upload %s, parts left for cleanup", ref)

    def _mark_ephemeral(self, ref: str) -> None:
        self.client.put_object_tagging(
            Bucket=self.bucket,
            Key=ref,
            Tagging={"TagSet": [{"Key": EXPIRY_TAG_KEY, "Value": EXPIRY_TAG_VALUE}]},
        )
        self._ensure_expiry_rule()

    def _ensure_expiry_rule(self) -> None:
        """Make sure the bucket expires objects tagged as ephemeral."""
        try:
            current = self.client.get_bucket_lifecycle_configuration(Bucket=self.bucket)
            rules = current.get("Rules", [])
        except ClientError as error:
            if _error_code(error) != "NoSuchLifecycleConfiguration":
                raise
            rules = []

        if any(rule.get("ID") == EXPIRY_RULE_ID for rule in rules):
            return

        days = max(1, math.ceil(self.ephemeral_ttl / timedelta(days=1)))
        rules.append({
            "ID": EXPIRY_RULE_ID,
            "Status": "Enabled",
            "Filter": {"Tag": {"Key": EXPIRY_TAG_KEY, "Value": EXPIRY_TAG_VALUE}},
            "Expiration": {"Days": days},
        })
        self.client.put_bucket_lifecycle_configuration(
            Bucket=self.bucket,
            LifecycleConfiguration={"Rules": rules},
        )
        logger.info("Installed expiry rule on bucket %s (%d days)", self.bucket, days)

    def open(self, ref: str) -> Iterator[bytes]:
        """Open a blob for reading from offset 0.

        Raises:
            BlobNotFound: If the reference is malformed or unknown.
            BlobReadFailed: If the store cannot be read.
        """
        if not self.is_valid_ref(ref):
            raise BlobNotFound(f"Malformed blob reference: {ref!r}")
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=ref)
        except ClientError as error:
            if _error_code(error) in _MISSING_CODES:
                raise BlobNotFound(f"Blob not found: {ref}") from error
            logger.exception("Failed to open blob %s", ref)
            raise BlobReadFailed(f"Failed to read blob: {error}") from error
        except BotoCoreError as error:
            logger.exception("Failed to open blob %s", ref)
            raise BlobReadFailed(f"Failed to read blob: {error}") from error
        return response["Body"].iter_chunks(chunk_size=self.chunk_size)

    def read(self, ref: str) -> bytes:
        return b"".join(self.open(ref))

    def exists(self, ref: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=ref)
        except ClientError as error:
            if _error_code(error) in _MISSING_CODES:
                return False
            raise
        return True

    def delete(self, ref: str) -> bool:
        """Delete a blob. Returns False (and logs) if it did not exist.

        Raises:
            BlobNotFound: If the reference is malformed.
            BlobWriteFailed: If the store rejects the delete.
        """
        if not self.is_valid_ref(ref):
            raise BlobNotFound(f"Malformed blob reference: {ref!r}")
        try:
            if not self.exists(ref):
                logger.warning("No blob found with ref %s, skipping deletion", ref)
                return False
            self.client.delete_object(Bucket=self.bucket, Key=ref)
        except (BotoCoreError, ClientError) as error:
            logger.exception("Failed to delete blob %s", ref)
            raise BlobWriteFailed(f"Failed to delete blob: {error}") from error
        logger.info("Deleted blob %s", ref)
        return True

    def rollback_put(self, ref: str) -> None:
        """Best-effort delete of a blob whose metadata write failed."""
        try:
            logger.warning("Rolling back upload, deleting blob: %s", ref)
            self.client.delete_object(Bucket=self.bucket, Key=ref)
        except (BotoCoreError, ClientError):
            logger.exception("Failed to rollback upload, orphaned blob: %s", ref)

    def chunk_groups(self) -> Iterator[ChunkGroup]:
        """Enumerate unfinished multipart uploads in the bucket."""
        paginator = self.client.get_paginator("list_multipart_uploads")
        for page in paginator.paginate(Bucket=self.bucket):
            for upload in page.get("Uploads", []):
                initiated = upload.get("Initiated") or datetime.now(timezone.utc)
                if initiated.tzinfo is None:
                    initiated = initiated.replace(tzinfo=timezone.utc)
                yield ChunkGroup(
                    key=upload["Key"],
                    upload_id=upload["UploadId"],
                    initiated=initiated,
                )

    def delete_chunk_group(self, group: ChunkGroup) -> None:
        self.client.abort_multipart_upload(
            Bucket=self.bucket,
            Key=group.key,
            UploadId=group.upload_id,
        )
