"""Process-wide store handles, created lazily and exactly once."""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator

import boto3
import redis
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from blob_store import BlobStore
from config import AppSettings
from database import build_engine, build_session_factory
from errors import StoreUnavailable
from lookup_cache import LookupCache

logger = logging.getLogger(__name__)


class StoreContext:
    """Owns the metadata engine, the Redis client and the S3 client.

    Built once at startup and handed to every service. Clients may be
    injected (tests do); otherwise each is created on first use.
    """

    def __init__(
        self,
        settings: AppSettings | None = None,
        engine: Engine | None = None,
        redis_client: Any = None,
        s3_client: Any = None,
    ) -> None:
        self.settings = settings or AppSettings.from_env()
        self._engine = engine
        self._session_factory: sessionmaker | None = None
        self._redis = redis_client
        self._s3 = s3_client
        self._blobs: BlobStore | None = None
        self._cache: LookupCache | None = None
        self._lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    logger.info("Connecting metadata store")
                    self._engine = build_engine(self.settings.database_url)
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            engine = self.engine
            with self._lock:
                if self._session_factory is None:
                    self._session_factory = build_session_factory(engine)
        return self._session_factory

    @property
    def blobs(self) -> BlobStore:
        if self._blobs is None:
            with self._lock:
                if self._blobs is None:
                    if self._s3 is None:
                        logger.info("Connecting blob store")
                        self._s3 = boto3.client(
                            "s3",
                            endpoint_url=self.settings.s3_endpoint_url,
                            region_name=self.settings.s3_region,
                        )
                    self._blobs = BlobStore(
                        self._s3,
                        self.settings.s3_bucket,
                        chunk_size=self.settings.blob_chunk_size,
                        ephemeral_ttl=self.settings.file_live_time,
                    )
        return self._blobs

    @property
    def cache(self) -> LookupCache:
        if self._cache is None:
            with self._lock:
                if self._cache is None:
                    if self._redis is None:
                        logger.info("Connecting lookup cache")
                        self._redis = redis.Redis.from_url(
                            self.settings.redis_url,
                            decode_responses=True,
                        )
                    self._cache = LookupCache(self._redis)
        return self._cache

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
        except OperationalError as error:
            session.rollback()
            logger.exception("Metadata store unavailable")
            raise StoreUnavailable("Metadata store unavailable") from error
        finally:
            session.close()
