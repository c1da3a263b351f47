"""Shared fixtures: mocked S3, fake Redis and an in-memory metadata store."""

import io
from datetime import timedelta

import boto3
import fakeredis
import pytest
from moto import mock_aws

from api.files.orm.file_model import FileModel
from api.upload.services.upload_service import UploadItem, save_upload
from config import AppSettings
from context import StoreContext
from database import build_engine, init_db, utcnow
from roles import Caller

BUCKET = "hashdrop-test"
ADMIN_ID = 1000


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def s3_client(aws_credentials):
    """Mock S3 service with the test bucket.

    Yields:
        boto3 S3 client with the bucket created.
    """
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket=BUCKET)
        yield client


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def settings():
    return AppSettings(
        database_url="sqlite://",
        s3_bucket=BUCKET,
        admin_id=str(ADMIN_ID),
        auth_disabled=False,
        hash_type="md5",
        file_live_time=timedelta(hours=8),
        cleanup_grace=timedelta(0),
        cleanup_enabled=False,
    )


@pytest.fixture
def ctx(settings, engine, redis_client, s3_client):
    return StoreContext(settings, engine=engine, redis_client=redis_client, s3_client=s3_client)


@pytest.fixture
def admin():
    return Caller.admin(ADMIN_ID)


@pytest.fixture
def member():
    return Caller.member(42)


@pytest.fixture
def other_member():
    return Caller.member(43)


@pytest.fixture
def guest():
    return Caller.guest()


@pytest.fixture
def upload(ctx):
    """Upload ``content`` as ``caller`` and return the uploaded file."""

    def _upload(caller, content=b"hello world", filename="hello.txt"):
        return save_upload(ctx, caller, UploadItem(filename, io.BytesIO(content)))

    return _upload


@pytest.fixture
def expire(ctx):
    """Move the expiry of every record with this label into the past."""

    def _expire(label):
        with ctx.session() as session:
            session.query(FileModel).filter(FileModel.hash.startswith(label)).update(
                {"expired_at": utcnow() - timedelta(hours=1)},
                synchronize_session=False,
            )
            session.commit()

    return _expire
