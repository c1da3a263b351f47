from api.files.orm.file_model import DownloadModel, FileModel

__all__ = [
    "DownloadModel",
    "FileModel",
]
