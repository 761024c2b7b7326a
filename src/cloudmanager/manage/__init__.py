"""Deployment lifecycle management.

This package inserts and deletes Deployment Manager deployments, polling the
remote operations to completion and rolling back failed insertions.
"""

from cloudmanager.manage.client import ServiceClient
from cloudmanager.manage.deployment import (
    CloudDeployment,
    CloudDeploymentDeleter,
    InsertPlan,
    LogSink,
    TemplatedCloudDeployment,
)
from cloudmanager.manage.deployment_manager import (
    CloudDeploymentModule,
    DeploymentManagerClient,
    ServiceSession,
)
from cloudmanager.manage.ephemeral import ephemeral_deployment
from cloudmanager.manage.registry import (
    ConsumerContext,
    create_deployment,
    get_compatible_kinds,
)
from cloudmanager.manage.spec_builder import build_deployment_spec, split_list

__all__ = [
    "CloudDeployment",
    "CloudDeploymentDeleter",
    "CloudDeploymentModule",
    "ConsumerContext",
    "DeploymentManagerClient",
    "InsertPlan",
    "LogSink",
    "ServiceClient",
    "ServiceSession",
    "TemplatedCloudDeployment",
    "build_deployment_spec",
    "create_deployment",
    "ephemeral_deployment",
    "get_compatible_kinds",
    "split_list",
]
