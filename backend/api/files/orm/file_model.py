"""File ORM models."""

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String, Text

from database import Base, utcnow


class FileModel(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String(255), nullable=False)
    size = Column(BigInteger, default=0)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)
    uploaded_by = Column(BigInteger, nullable=False, index=True)
    hash = Column(String(128), nullable=False, index=True)
    blob_ref = Column(String(255), nullable=False)
    expired_at = Column(DateTime, nullable=True, index=True)
    locked = Column(Boolean, default=False, nullable=False)
    tags = Column(Text, default="", nullable=False)
    note_id = Column(String(36), nullable=True)


class DownloadModel(Base):
    __tablename__ = "downloaded_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(Integer, nullable=False, index=True)
    downloaded_at = Column(DateTime, default=utcnow, nullable=False)
    downloaded_by = Column(BigInteger, nullable=False, index=True)
