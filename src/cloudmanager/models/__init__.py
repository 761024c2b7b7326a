"""Data models for cloudmanager."""

from cloudmanager.models.deployment import (
    DeleteOnlyDeploymentConfig,
    DeploymentConfig,
    DeploymentKind,
    DeploymentSpec,
    ImportFile,
    TemplatedDeploymentConfig,
)
from cloudmanager.models.operation import (
    Deployment,
    Operation,
    OperationErrorEntry,
    OperationErrorInfo,
    OperationStatus,
)

__all__ = [
    "DeleteOnlyDeploymentConfig",
    "Deployment",
    "DeploymentConfig",
    "DeploymentKind",
    "DeploymentSpec",
    "ImportFile",
    "Operation",
    "OperationErrorEntry",
    "OperationErrorInfo",
    "OperationStatus",
    "TemplatedDeploymentConfig",
]
