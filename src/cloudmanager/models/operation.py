"""Models for Deployment Manager operations and deployments.

These mirror the subset of the Deployment Manager v2 REST resources that the
lifecycle controller reads. Unknown response fields are ignored.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class OperationStatus(str, Enum):
    """Status of an asynchronous remote operation."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"

    def matches(self, operation: Operation) -> bool:
        """Return True if the operation currently reports this status."""
        return OperationStatus(operation.status) is self


class OperationErrorEntry(BaseModel):
    """A single error reported by a completed operation."""

    model_config = ConfigDict(extra="ignore")

    code: str | None = Field(default=None, description="Error type identifier")
    location: str | None = Field(default=None, description="Where the error occurred")
    message: str | None = Field(default=None, description="Human-readable message")

    def __str__(self) -> str:
        parts = [f"[{self.code}]" if self.code else "", self.message or ""]
        text = " ".join(part for part in parts if part)
        if self.location:
            text = f"{text} (at {self.location})"
        return text or "Unknown operation error"


class OperationErrorInfo(BaseModel):
    """Error payload of a completed operation."""

    model_config = ConfigDict(extra="ignore")

    errors: list[OperationErrorEntry] = Field(default_factory=list)


class Operation(BaseModel):
    """Handle to an asynchronous insert or delete.

    Instances are never updated in place: every poll returns a new Operation
    that replaces the previous one.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    name: str | None = Field(default=None, description="Operation handle")
    status: OperationStatus = Field(..., description="Current operation status")
    operation_type: str | None = Field(default=None, alias="operationType")
    target_link: str | None = Field(default=None, alias="targetLink")
    progress: int | None = Field(default=None)
    error: OperationErrorInfo | None = Field(default=None)

    @property
    def error_entries(self) -> list[OperationErrorEntry]:
        """Error entries reported by the operation, empty when there are none."""
        return self.error.errors if self.error else []


class Deployment(BaseModel):
    """A deployment as reported by the service."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(..., description="Deployment name")
    id: str | None = Field(default=None, description="Service-assigned identifier")
    description: str | None = Field(default=None)
    manifest: str | None = Field(default=None, description="URL of the manifest")
    operation: Operation | None = Field(
        default=None, description="Last operation run against the deployment"
    )
    insert_time: str | None = Field(default=None, alias="insertTime")
    update_time: str | None = Field(default=None, alias="updateTime")
