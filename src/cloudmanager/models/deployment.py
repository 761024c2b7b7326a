"""Pydantic models for deployment specs and deployment configuration.

This module defines the request body submitted to Deployment Manager and the
schema of the ``cloudmanager.yaml`` file describing which deployment to
manage.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cloudmanager.config.defaults import DEFAULT_CREDENTIALS


class DeploymentKind(str, Enum):
    """Kinds of managed deployments."""

    TEMPLATED = "templated"
    DELETE_ONLY = "delete_only"


class ImportFile(BaseModel):
    """An auxiliary file imported by the primary configuration."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., description="Name the configuration imports it by")
    content: str = Field(..., description="Full file content")


class DeploymentSpec(BaseModel):
    """Deployment request built for a single insert call.

    Attributes:
        name: Resolved deployment name
        config: Raw content of the primary configuration
        imports: Import files, in the order they were listed
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., min_length=1, description="Resolved deployment name")
    config: str = Field(..., description="Primary configuration content")
    imports: tuple[ImportFile, ...] = Field(default=(), description="Import files")

    def to_request_body(self) -> dict[str, Any]:
        """Render the Deployment Manager ``deployments.insert`` body."""
        return {
            "name": self.name,
            "target": {
                "config": {"content": self.config},
                "imports": [
                    {"name": item.name, "content": item.content}
                    for item in self.imports
                ],
            },
        }


class _BaseDeploymentConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    credentials: str = Field(
        default=DEFAULT_CREDENTIALS,
        description=(
            "Credentials reference: 'default' for application default "
            "credentials or a path to a service account key file"
        ),
    )
    name: str = Field(
        ..., description="Deployment name, may contain $VAR build variables"
    )
    api_endpoint: str | None = Field(
        default=None, description="Override for the Deployment Manager endpoint"
    )

    @field_validator("credentials", "name")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject blank values."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v


class TemplatedDeploymentConfig(_BaseDeploymentConfig):
    """A deployment created from a config file and its imports.

    Attributes:
        config_file: Workspace-relative path to the primary config
        import_paths: Comma-separated workspace-relative import paths
    """

    kind: Literal["templated"] = "templated"
    config_file: str = Field(..., description="Workspace-relative config path")
    import_paths: str = Field(
        default="", description="Comma-separated workspace-relative import paths"
    )

    @field_validator("config_file")
    @classmethod
    def validate_config_file(cls, v: str) -> str:
        """Require a config file path."""
        if not v.strip():
            raise ValueError("config_file must be specified")
        return v

    @field_validator("import_paths", mode="before")
    @classmethod
    def join_import_list(cls, v: Any) -> Any:
        """Accept a YAML list as well as a comma-separated string."""
        if isinstance(v, list):
            return ", ".join(str(item) for item in v)
        if v is None:
            return ""
        return v


class DeleteOnlyDeploymentConfig(_BaseDeploymentConfig):
    """A deployment that is only ever deleted.

    Used to tear down deployments created by other tooling, so the resolved
    name is not restricted to the templated name charset.
    """

    kind: Literal["delete_only"] = "delete_only"


DeploymentConfig = Annotated[
    TemplatedDeploymentConfig | DeleteOnlyDeploymentConfig,
    Field(discriminator="kind"),
]
