"""Registration table of deployment kinds.

Each kind declares which consumer contexts it can be used from. A
single-action consumer runs one lifecycle call per build (a post-build
step). A paired consumer inserts on setup and deletes on teardown.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cloudmanager.lib.errors import ConfigError
from cloudmanager.manage.deployment import (
    CloudDeployment,
    CloudDeploymentDeleter,
    TemplatedCloudDeployment,
)
from cloudmanager.manage.deployment_manager import CloudDeploymentModule
from cloudmanager.models.deployment import (
    DeleteOnlyDeploymentConfig,
    DeploymentKind,
    TemplatedDeploymentConfig,
)


class ConsumerContext(str, Enum):
    """Ways a caller can drive a deployment."""

    SINGLE_ACTION = "single-action"
    PAIRED = "paired"


@dataclass(frozen=True)
class DeploymentKindInfo:
    """Registry entry for a deployment kind."""

    kind: DeploymentKind
    deployment_class: type[CloudDeployment]
    contexts: frozenset[ConsumerContext]

    @property
    def display_name(self) -> str:
        return self.deployment_class.display_name

    def is_applicable(self, context: ConsumerContext) -> bool:
        """Return True if the kind can be used from ``context``."""
        return context in self.contexts


DEPLOYMENT_KINDS: dict[DeploymentKind, DeploymentKindInfo] = {
    DeploymentKind.TEMPLATED: DeploymentKindInfo(
        kind=DeploymentKind.TEMPLATED,
        deployment_class=TemplatedCloudDeployment,
        contexts=frozenset({ConsumerContext.SINGLE_ACTION, ConsumerContext.PAIRED}),
    ),
    # Deleting on setup and again on teardown makes no sense
    DeploymentKind.DELETE_ONLY: DeploymentKindInfo(
        kind=DeploymentKind.DELETE_ONLY,
        deployment_class=CloudDeploymentDeleter,
        contexts=frozenset({ConsumerContext.SINGLE_ACTION}),
    ),
}


def get_compatible_kinds(context: ConsumerContext) -> list[DeploymentKindInfo]:
    """Return the registered kinds usable from a consumer context."""
    return [info for info in DEPLOYMENT_KINDS.values() if info.is_applicable(context)]


def ensure_applicable(kind: DeploymentKind, context: ConsumerContext) -> None:
    """Raise ConfigError if ``kind`` cannot be used from ``context``."""
    info = DEPLOYMENT_KINDS[DeploymentKind(kind)]
    if not info.is_applicable(context):
        raise ConfigError(
            field="kind",
            message=(
                f"{info.display_name} ('{info.kind.value}') cannot be used "
                f"in a {context.value} context"
            ),
        )


def create_deployment(
    config: TemplatedDeploymentConfig | DeleteOnlyDeploymentConfig,
    module: CloudDeploymentModule | None = None,
) -> CloudDeployment:
    """Create the deployment object described by a configuration model."""
    if isinstance(config, TemplatedDeploymentConfig):
        return TemplatedCloudDeployment.from_config(config, module)
    if isinstance(config, DeleteOnlyDeploymentConfig):
        return CloudDeploymentDeleter.from_config(config, module)

    raise ConfigError(
        field="kind", message=f"Unsupported deployment kind: {config.kind}"
    )
