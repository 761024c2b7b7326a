"""Base interface for Deployment Manager service clients."""

from __future__ import annotations

from abc import ABC, abstractmethod

from cloudmanager.models.deployment import DeploymentSpec
from cloudmanager.models.operation import Deployment, Operation


class ServiceClient(ABC):
    """Abstract client for the remote orchestration service.

    Implementations raise ``TransportError`` for network and service failures
    and ``ResourceNotFoundError`` when the target resource does not exist.
    """

    @abstractmethod
    def submit_insert(self, project_id: str, spec: DeploymentSpec) -> Operation | None:
        """Submit a request creating the deployment described by ``spec``.

        Args:
            project_id: Cloud project owning the deployment.
            spec: Deployment request to submit.

        Returns:
            The operation tracking the insertion.

        Raises:
            TransportError: If the request fails.
        """

    @abstractmethod
    def submit_delete(self, project_id: str, name: str) -> Operation | None:
        """Submit a request deleting the named deployment.

        Args:
            project_id: Cloud project owning the deployment.
            name: Resolved deployment name.

        Returns:
            The operation tracking the deletion, or None if the service
            returned no usable operation.

        Raises:
            ResourceNotFoundError: If the deployment does not exist.
            TransportError: If the request fails.
        """

    @abstractmethod
    def fetch_operation(self, project_id: str, operation_name: str) -> Operation:
        """Fetch the current state of an operation by its handle.

        Raises:
            ResourceNotFoundError: If the operation does not exist.
            TransportError: If the request fails.
        """

    @abstractmethod
    def fetch_deployment(self, project_id: str, name: str) -> Deployment:
        """Fetch a deployment by its resolved name.

        Raises:
            ResourceNotFoundError: If the deployment does not exist.
            TransportError: If the request fails.
        """

    @abstractmethod
    def sleep(self) -> None:
        """Block for the fixed interval between two status fetches."""
