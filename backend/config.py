"""Application configuration."""

import os
from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel

DATA_DIR = Path(os.environ.get("DATA_DIR", str(Path(__file__).parent.parent / "data")))
DATA_DIR.mkdir(parents=True, exist_ok=True)

DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{DATA_DIR}/hashdrop.db")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

# Blob store (any S3-compatible endpoint: MinIO, R2, AWS)
S3_BUCKET = os.environ.get("S3_BUCKET", "hashdrop")
S3_ENDPOINT_URL = os.environ.get("S3_ENDPOINT_URL") or None
S3_REGION = os.environ.get("S3_REGION", "us-east-1")
BLOB_CHUNK_SIZE = int(os.environ.get("BLOB_CHUNK_SIZE", str(5 * 1024 * 1024)))

# Identity
ADMIN_ID = os.environ.get("ADMIN_ID", "").strip()
AUTH_DISABLED = os.environ.get("AUTH_DISABLED", "").lower() in ("1", "true", "yes")

HASH_TYPE = os.environ.get("HASH_TYPE", "md5")
FILE_LIVE_HOURS = int(os.environ.get("FILE_LIVE_HOURS", "8"))

CLEANUP_HOUR = int(os.environ.get("CLEANUP_HOUR", "4"))
CLEANUP_GRACE_MINUTES = int(os.environ.get("CLEANUP_GRACE_MINUTES", "60"))
CLEANUP_ENABLED = os.environ.get("CLEANUP_ENABLED", "true").lower() in ("1", "true", "yes")
CLEANUP_AUDIT = os.environ.get("CLEANUP_AUDIT", "").lower() in ("1", "true", "yes")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


class AppSettings(BaseModel):
    database_url: str = DATABASE_URL
    redis_url: str = REDIS_URL
    s3_bucket: str = S3_BUCKET
    s3_endpoint_url: str | None = S3_ENDPOINT_URL
    s3_region: str = S3_REGION
    blob_chunk_size: int = BLOB_CHUNK_SIZE
    admin_id: str = ADMIN_ID
    auth_disabled: bool = AUTH_DISABLED
    hash_type: str = HASH_TYPE
    file_live_time: timedelta = timedelta(hours=FILE_LIVE_HOURS)
    cleanup_hour: int = CLEANUP_HOUR
    cleanup_grace: timedelta = timedelta(minutes=CLEANUP_GRACE_MINUTES)
    cleanup_enabled: bool = CLEANUP_ENABLED
    cleanup_audit: bool = CLEANUP_AUDIT

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls()
