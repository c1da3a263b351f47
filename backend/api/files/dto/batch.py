"""Aggregate response for per-item batch pipelines."""

from pydantic import BaseModel, ConfigDict, Field


class BatchFailure(BaseModel):
    id: str
    reason: str


class BatchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success_files: list[dict[str, str]] = Field(default_factory=list, alias="successFiles")
    failure_files: list[BatchFailure] = Field(default_factory=list, alias="failureFiles")
    failure_count: int = Field(0, alias="failureCount")
    message: str = ""

    def add_success(self, **fields: str) -> None:
        self.success_files.append(fields)

    def add_failure(self, item_id: str, reason: str) -> None:
        self.failure_files.append(BatchFailure(id=item_id, reason=reason))
        self.failure_count += 1
