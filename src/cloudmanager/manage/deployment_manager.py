"""Google Cloud Deployment Manager client implementation."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from cloudmanager.config.defaults import (
    API_ENDPOINT_ENV_VAR,
    DEFAULT_CREDENTIALS,
    DEPLOYMENT_MANAGER_API,
    DEPLOYMENT_MANAGER_SCOPES,
    DEPLOYMENT_MANAGER_VERSION,
    POLL_INTERVAL_SECONDS,
)
from cloudmanager.lib.errors import (
    CloudManagementError,
    CloudSDKNotInstalledError,
    ResourceNotFoundError,
    TransportError,
)
from cloudmanager.lib.logging_config import get_logger
from cloudmanager.manage.client import ServiceClient
from cloudmanager.models.deployment import DeploymentSpec
from cloudmanager.models.operation import Deployment, Operation

if TYPE_CHECKING:
    from google.auth.credentials import Credentials
    from googleapiclient.discovery import Resource

logger = get_logger(__name__)

HTTP_NOT_FOUND = 404


class DeploymentManagerClient(ServiceClient):
    """Talk to Deployment Manager v2 through the Google API discovery client."""

    def __init__(
        self, credentials: Credentials, api_endpoint: str | None = None
    ) -> None:
        """Initialize the client.

        Args:
            credentials: google-auth credentials scoped for Deployment Manager
            api_endpoint: Optional endpoint override (e.g. a test server)

        Raises:
            CloudSDKNotInstalledError: If google-api-python-client is missing
        """
        try:
            from googleapiclient import discovery
            from googleapiclient.errors import HttpError
            from httplib2 import HttpLib2Error
        except ImportError as exc:
            raise CloudSDKNotInstalledError(
                sdk_name="google-api-python-client"
            ) from exc
        try:
            from google.auth.exceptions import GoogleAuthError
        except ImportError as exc:
            raise CloudSDKNotInstalledError(sdk_name="google-auth") from exc

        client_options: dict[str, str] | None = None
        if api_endpoint:
            client_options = {"api_endpoint": api_endpoint}

        self._HttpError: type[HttpError] = HttpError
        # Raised below googleapiclient for DNS, socket and token refresh failures
        self._connection_errors: tuple[type[Exception], ...] = (
            HttpLib2Error,
            GoogleAuthError,
            OSError,
        )
        self._service: Resource = discovery.build(
            DEPLOYMENT_MANAGER_API,
            DEPLOYMENT_MANAGER_VERSION,
            credentials=credentials,
            client_options=client_options,
            cache_discovery=False,
        )

    def submit_insert(self, project_id: str, spec: DeploymentSpec) -> Operation | None:
        """Submit a deployments.insert request."""
        request = self._service.deployments().insert(
            project=project_id, body=spec.to_request_body()
        )
        return self._parse_operation(self._execute(request, "insert", spec.name))

    def submit_delete(self, project_id: str, name: str) -> Operation | None:
        """Submit a deployments.delete request."""
        request = self._service.deployments().delete(
            project=project_id, deployment=name
        )
        return self._parse_operation(self._execute(request, "delete", name))

    def fetch_operation(self, project_id: str, operation_name: str) -> Operation:
        """Fetch an operation through operations.get."""
        request = self._service.operations().get(
            project=project_id, operation=operation_name
        )
        operation = self._parse_operation(
            self._execute(request, "poll", operation_name)
        )
        if operation is None:
            raise TransportError(f"Empty response for operation {operation_name}")
        return operation

    def fetch_deployment(self, project_id: str, name: str) -> Deployment:
        """Fetch a deployment through deployments.get."""
        request = self._service.deployments().get(project=project_id, deployment=name)
        response = self._execute(request, "status", name)
        try:
            return Deployment.model_validate(response)
        except ValidationError as exc:
            raise TransportError(f"Unrecognized deployment response: {exc}") from exc

    def sleep(self) -> None:
        """Wait a fixed interval before the next status fetch."""
        time.sleep(POLL_INTERVAL_SECONDS)

    def _execute(
        self, request: Any, operation: str, resource: str
    ) -> dict[str, Any] | None:
        """Execute a request, translating HTTP failures into client errors."""
        try:
            response: dict[str, Any] | None = request.execute()
        except self._HttpError as exc:
            status = getattr(exc.resp, "status", None)
            if status is not None and int(status) == HTTP_NOT_FOUND:
                raise ResourceNotFoundError(
                    operation=operation, resource=resource
                ) from exc
            raise TransportError(
                f"Deployment Manager request failed: {exc}",
                status_code=int(status) if status is not None else None,
            ) from exc
        except self._connection_errors as exc:
            raise TransportError(
                f"Failed to reach Deployment Manager: {exc}"
            ) from exc
        return response

    @staticmethod
    def _parse_operation(response: dict[str, Any] | None) -> Operation | None:
        if not response:
            return None
        try:
            return Operation.model_validate(response)
        except ValidationError as exc:
            # Includes status strings outside PENDING/RUNNING/DONE
            raise TransportError(f"Unrecognized operation response: {exc}") from exc


@dataclass(frozen=True)
class ServiceSession:
    """A freshly authenticated client and the project it acts on."""

    client: ServiceClient
    project_id: str


class CloudDeploymentModule:
    """Provide service clients for deployments.

    The module resolves a credentials reference into google-auth credentials
    and the owning project, then builds a client for each lifecycle call.
    """

    def __init__(self, api_endpoint: str | None = None) -> None:
        """Initialize the module.

        Args:
            api_endpoint: Endpoint override; falls back to the
                CLOUDMANAGER_API_ENDPOINT environment variable
        """
        self.api_endpoint = api_endpoint or os.environ.get(API_ENDPOINT_ENV_VAR)

    def connect(self, credentials_ref: str) -> ServiceSession:
        """Create a client session for the given credentials reference.

        Raises:
            CloudManagementError: If the credentials cannot be loaded or carry
                no project id
        """
        credentials, project_id = self.resolve_credentials(credentials_ref)
        if not project_id:
            raise CloudManagementError(
                operation="connect",
                message=(
                    f"No project id found for credentials '{credentials_ref}'. "
                    "Set GOOGLE_CLOUD_PROJECT or use a service account key file."
                ),
            )
        logger.debug(f"Connecting to Deployment Manager for project {project_id}")
        client = DeploymentManagerClient(credentials, api_endpoint=self.api_endpoint)
        return ServiceSession(client=client, project_id=project_id)

    def resolve_credentials(self, credentials_ref: str) -> tuple[Credentials, str | None]:
        """Load credentials for a reference.

        ``default`` selects application default credentials; any other value
        is the path of a service account key file.
        """
        try:
            import google.auth
            from google.auth.exceptions import DefaultCredentialsError
            from google.oauth2 import service_account
        except ImportError as exc:
            raise CloudSDKNotInstalledError(sdk_name="google-auth") from exc

        try:
            if credentials_ref == DEFAULT_CREDENTIALS:
                credentials, project_id = google.auth.default(
                    scopes=DEPLOYMENT_MANAGER_SCOPES
                )
                return credentials, project_id

            key_credentials = service_account.Credentials.from_service_account_file(
                credentials_ref, scopes=DEPLOYMENT_MANAGER_SCOPES
            )
            return key_credentials, key_credentials.project_id
        except (DefaultCredentialsError, OSError, ValueError) as exc:
            raise CloudManagementError(
                operation="connect",
                message=f"Failed to load credentials '{credentials_ref}': {exc}",
            ) from exc
