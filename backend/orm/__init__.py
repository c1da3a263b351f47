"""Central ORM module, imports all models for Alembic metadata discovery."""

from api.files.orm import DownloadModel, FileModel

__all__ = [
    "DownloadModel",
    "FileModel",
]
