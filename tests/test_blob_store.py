"""Tests for the S3 blob store."""

import io

import pytest

from blob_store import EXPIRY_RULE_ID, EXPIRY_TAG_KEY, EXPIRY_TAG_VALUE
from errors import BlobNotFound, BlobWriteFailed

CONTENT_ID = "5eb63bbbe01eeed093cb22bb8f5acdc3"


@pytest.fixture
def blobs(ctx):
    return ctx.blobs


class BrokenStream(io.RawIOBase):
    def readable(self):
        return True

    def read(self, size=-1):
        raise OSError("connection reset")


class TestPut:
    """Tests for BlobStore.put and reads."""

    def test_round_trip(self, blobs):
        ref = blobs.put("a.txt", io.BytesIO(b"hello world"), CONTENT_ID)
        assert ref.startswith(CONTENT_ID + "/")
        assert blobs.is_valid_ref(ref)
        assert blobs.read(ref) == b"hello world"

    def test_empty_content(self, blobs):
        ref = blobs.put("empty.txt", io.BytesIO(b""), CONTENT_ID)
        assert blobs.read(ref) == b""

    def test_multi_part_round_trip(self, blobs):
        data = b"a" * blobs.chunk_size + b"tail"
        ref = blobs.put("big.bin", io.BytesIO(data), CONTENT_ID)
        assert blobs.read(ref) == data

    def test_same_content_gets_fresh_ref(self, blobs):
        first = blobs.put("a.txt", io.BytesIO(b"x"), CONTENT_ID)
        second = blobs.put("a.txt", io.BytesIO(b"x"), CONTENT_ID)
        assert first != second

    def test_filename_kept_in_metadata(self, blobs, s3_client):
        ref = blobs.put("résumé v2.pdf", io.BytesIO(b"x"), CONTENT_ID)
        head = s3_client.head_object(Bucket=blobs.bucket, Key=ref)
        assert head["Metadata"]["filename"] == "r%C3%A9sum%C3%A9%20v2.pdf"

    def test_read_failure_aborts_upload(self, blobs):
        with pytest.raises(BlobWriteFailed):
            blobs.put("a.txt", BrokenStream(), CONTENT_ID)
        assert list(blobs.chunk_groups()) == []

    def test_ephemeral_blob_is_tagged(self, blobs, s3_client):
        ref = blobs.put("a.txt", io.BytesIO(b"x"), CONTENT_ID, ephemeral=True)
        tags = s3_client.get_object_tagging(Bucket=blobs.bucket, Key=ref)["TagSet"]
        assert {"Key": EXPIRY_TAG_KEY, "Value": EXPIRY_TAG_VALUE} in tags

        rules = s3_client.get_bucket_lifecycle_configuration(Bucket=blobs.bucket)["Rules"]
        rule = next(r for r in rules if r["ID"] == EXPIRY_RULE_ID)
        assert rule["Expiration"]["Days"] == 1

    def test_expiry_rule_installed_once(self, blobs, s3_client):
        blobs.put("a.txt", io.BytesIO(b"x"), CONTENT_ID, ephemeral=True)
        blobs.put("b.txt", io.BytesIO(b"y"), CONTENT_ID, ephemeral=True)
        rules = s3_client.get_bucket_lifecycle_configuration(Bucket=blobs.bucket)["Rules"]
        assert [r["ID"] for r in rules] == [EXPIRY_RULE_ID]


class TestOpenAndDelete:
    """Tests for BlobStore.open, exists and delete."""

    def test_malformed_ref(self, blobs):
        with pytest.raises(BlobNotFound):
            blobs.open("../etc/passwd")

    def test_unknown_ref(self, blobs):
        with pytest.raises(BlobNotFound):
            blobs.open(CONTENT_ID + "/" + "0" * 32)

    def test_delete(self, blobs):
        ref = blobs.put("a.txt", io.BytesIO(b"x"), CONTENT_ID)
        assert blobs.delete(ref) is True
        assert not blobs.exists(ref)

    def test_delete_missing_returns_false(self, blobs):
        assert blobs.delete(CONTENT_ID + "/" + "0" * 32) is False

    def test_delete_malformed_ref(self, blobs):
        with pytest.raises(BlobNotFound):
            blobs.delete("not-a-ref")

    def test_rollback_put(self, blobs):
        ref = blobs.put("a.txt", io.BytesIO(b"x"), CONTENT_ID)
        blobs.rollback_put(ref)
        assert not blobs.exists(ref)


class TestChunkGroups:
    """Tests for unfinished multipart uploads."""

    def test_lists_and_deletes_unfinished_upload(self, blobs, s3_client):
        key = CONTENT_ID + "/" + "1" * 32
        upload = s3_client.create_multipart_upload(Bucket=blobs.bucket, Key=key)
        s3_client.upload_part(
            Bucket=blobs.bucket, Key=key, UploadId=upload["UploadId"], PartNumber=1, Body=b"part",
        )

        groups = list(blobs.chunk_groups())
        assert [(g.key, g.upload_id) for g in groups] == [(key, upload["UploadId"])]
        assert groups[0].initiated.tzinfo is not None

        blobs.delete_chunk_group(groups[0])
        assert list(blobs.chunk_groups()) == []

    def test_finished_upload_is_not_a_group(self, blobs):
        blobs.put("a.txt", io.BytesIO(b"x"), CONTENT_ID)
        assert list(blobs.chunk_groups()) == []
