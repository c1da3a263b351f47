"""Upload Data Transfer Objects."""

from pydantic import BaseModel, ConfigDict, Field


class UploadedFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    label: str
