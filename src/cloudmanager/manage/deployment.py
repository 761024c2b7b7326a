"""Deployment lifecycle controller.

A ``CloudDeployment`` inserts a deployment and waits for the remote operation
to finish, rolling the deployment back if anything fails after the spec was
built. It deletes a deployment the same way, treating a deployment that is
already gone as deleted.

Only one lifecycle call runs at a time per deployment instance. The caller's
log sink is bound to the instance for the duration of that call and cleared
on every exit path.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Generator, Iterable, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

from cloudmanager.config.defaults import (
    DEPLOYMENT_NAME_PATTERN,
    MAX_CHECKS_UNTIL_TIMEOUT,
)
from cloudmanager.config.env_loader import replace_macros
from cloudmanager.lib.errors import (
    CloudManagementError,
    OperationError,
    OperationTimeoutError,
    ResourceNotFoundError,
    RollbackError,
    TransportError,
)
from cloudmanager.lib.logging_config import get_logger
from cloudmanager.manage.deployment_manager import CloudDeploymentModule, ServiceSession
from cloudmanager.manage.spec_builder import (
    build_deployment_spec,
    read_config_file,
    resolve_workspace_paths,
    split_list,
)
from cloudmanager.models.deployment import (
    DeleteOnlyDeploymentConfig,
    DeploymentKind,
    DeploymentSpec,
    TemplatedDeploymentConfig,
)
from cloudmanager.models.operation import Deployment, Operation, OperationStatus

logger = get_logger(__name__)

LogSink = Callable[[str], None]

CREATE_FAILED = "Failed to create deployment"
DELETE_FAILED = "Failed to delete deployment"
FETCH_FAILED = "Failed to fetch deployment"
WAIT_DEPLOY = "Waiting for deployment to finish..."
WAIT_DELETE = "Waiting for deletion to finish..."
TIMEOUT_DEPLOY = "Timed out waiting for deployment to finish"
TIMEOUT_DELETE = "Timed out waiting for deletion to finish"
POLL_FAILED_DEPLOY = "Error while waiting for deployment to finish"
POLL_FAILED_DELETE = "Error while waiting for deletion to finish"
UNEXPECTED_DEPLOY = "Unexpected error while deploying"
UNEXPECTED_DELETE = "Unexpected error while deleting"


@dataclass(frozen=True)
class InsertPlan:
    """Inputs for an insert, resolved from a workspace."""

    config_content: str
    import_paths: list[Path] = field(default_factory=list)


class CloudDeployment(ABC):
    """A deployment managed through Deployment Manager.

    Attributes:
        credentials: Credentials reference used to open service sessions
        name: Unresolved deployment name, may contain ``$VAR`` references
        module: Provider of service sessions
    """

    kind: ClassVar[DeploymentKind]
    display_name: ClassVar[str]
    # Whether the resolved name must match DEPLOYMENT_NAME_PATTERN
    restrict_name_charset: ClassVar[bool] = True

    def __init__(
        self,
        credentials: str,
        name: str,
        module: CloudDeploymentModule | None = None,
    ) -> None:
        """Initialize the deployment.

        Args:
            credentials: Credentials reference ('default' or a key file path)
            name: Unresolved deployment name
            module: Session provider; a default module is created when omitted
        """
        self.credentials = credentials
        self.name = name
        self.module = module if module is not None else CloudDeploymentModule()
        self._lock = threading.Lock()
        self._log_sink: LogSink | None = None

    @abstractmethod
    def build_insert_plan(
        self, workspace: Path, environment: Mapping[str, str]
    ) -> InsertPlan | None:
        """Resolve the insert inputs from a workspace.

        Returns:
            The plan to insert, or None when inserting this kind of
            deployment means deleting it.

        Raises:
            ConfigReadError: If the config file cannot be read
        """

    def insert_from_workspace(
        self,
        workspace: Path,
        environment: Mapping[str, str],
        log_sink: LogSink | None = None,
    ) -> None:
        """Insert the deployment using files from a workspace directory."""
        plan = self.build_insert_plan(workspace, environment)
        if plan is None:
            self.delete(environment, log_sink)
            return
        self.insert(plan.config_content, plan.import_paths, environment, log_sink)

    def resolve_name(self, environment: Mapping[str, str]) -> str:
        """Substitute build variables into the deployment name and validate it.

        Raises:
            CloudManagementError: If the resolved name is empty or, for kinds
                that restrict it, contains invalid characters
        """
        resolved = replace_macros(self.name, environment)
        if not resolved:
            raise CloudManagementError(
                operation="resolve", message="Deployment name must not be empty"
            )
        if self.restrict_name_charset and not DEPLOYMENT_NAME_PATTERN.match(resolved):
            raise CloudManagementError(
                operation="resolve",
                message=(
                    f"Invalid deployment name '{resolved}': must match "
                    f"{DEPLOYMENT_NAME_PATTERN.pattern}"
                ),
            )
        return resolved

    def insert(
        self,
        config_content: str,
        import_paths: Iterable[Path],
        environment: Mapping[str, str],
        log_sink: LogSink | None = None,
    ) -> None:
        """Create the deployment and block until it is deployed.

        If submission or polling fails, the deployment is deleted again
        before the failure propagates.

        Args:
            config_content: Primary configuration content
            import_paths: Paths of the files the configuration imports
            environment: Build variables for name resolution
            log_sink: Receives human-readable progress lines

        Raises:
            CloudManagementError: If the insertion fails or times out. A
                RollbackError is raised when the rollback failed as well.
        """
        with self._lifecycle_session(log_sink):
            name = self.resolve_name(environment)
            logger.debug(f"Inserting deployment {name}")

            try:
                spec = build_deployment_spec(name, config_content, import_paths)
            except CloudManagementError as exc:
                self._log("Invalid deployment specification")
                logger.error(f"Failed to build deployment spec for {name}: {exc}")
                raise

            session = self.module.connect(self.credentials)

            try:
                self._create_deployment_and_wait(session, spec)
            except CloudManagementError as exc:
                self._log(f"Deployment of {name} failed: {exc.message}")
                logger.error(f"Deployment of {name} failed: {exc}", exc_info=exc)
                self._log("Rolling back the failed deployment...")
                try:
                    self._delete_deployment_and_wait(name)
                except CloudManagementError as rollback_exc:
                    self._log(f"Rollback of {name} failed: {rollback_exc.message}")
                    logger.error(f"Rollback of {name} failed: {rollback_exc}")
                    raise RollbackError(exc, rollback_exc) from exc
                self._log("Rollback complete")
                raise

            self._log("Deployment complete")

    def delete(
        self, environment: Mapping[str, str], log_sink: LogSink | None = None
    ) -> None:
        """Delete the deployment and block until it is gone.

        A deployment that does not exist counts as deleted.

        Raises:
            CloudManagementError: If the deletion fails or times out
        """
        with self._lifecycle_session(log_sink):
            name = self.resolve_name(environment)
            logger.debug(f"Deleting deployment {name}")
            self._delete_deployment_and_wait(name)

    def describe(self, environment: Mapping[str, str]) -> Deployment:
        """Fetch the deployment's current state from the service.

        Raises:
            ResourceNotFoundError: If the deployment does not exist
            CloudManagementError: If the request fails
        """
        name = self.resolve_name(environment)
        session = self.module.connect(self.credentials)
        try:
            return session.client.fetch_deployment(session.project_id, name)
        except TransportError as exc:
            raise CloudManagementError(operation="status", message=FETCH_FAILED) from exc

    @contextmanager
    def _lifecycle_session(
        self, log_sink: LogSink | None
    ) -> Generator[None, None, None]:
        with self._lock:
            self._log_sink = log_sink
            try:
                yield
            finally:
                self._log_sink = None

    def _create_deployment_and_wait(
        self, session: ServiceSession, spec: DeploymentSpec
    ) -> None:
        try:
            operation = self._create_deployment(session, spec)
            self._wait_until_done(session, operation, deploying=True)
        except CloudManagementError:
            raise
        except Exception as exc:
            # Anything a client lets through still means the insert failed
            raise CloudManagementError(
                operation="insert", message=f"{UNEXPECTED_DEPLOY}: {exc}"
            ) from exc

    def _delete_deployment_and_wait(self, name: str) -> None:
        # Caller must hold the lifecycle lock
        session = self.module.connect(self.credentials)
        try:
            operation = self._delete_deployment(session, name)
            self._wait_until_done(session, operation, deploying=False)
        except CloudManagementError:
            raise
        except Exception as exc:
            raise CloudManagementError(
                operation="delete", message=f"{UNEXPECTED_DELETE}: {exc}"
            ) from exc
        self._log("Deletion complete")

    def _create_deployment(
        self, session: ServiceSession, spec: DeploymentSpec
    ) -> Operation:
        try:
            operation = session.client.submit_insert(session.project_id, spec)
        except TransportError as exc:
            raise CloudManagementError(operation="insert", message=CREATE_FAILED) from exc
        if operation is None:
            raise CloudManagementError(operation="insert", message=CREATE_FAILED)

        self._log(f"Created deployment {spec.name}")
        return operation

    def _delete_deployment(self, session: ServiceSession, name: str) -> Operation:
        try:
            operation = session.client.submit_delete(session.project_id, name)
        except ResourceNotFoundError:
            # Nothing to delete; a retried delete may also land here
            logger.info(f"Deployment {name} not found, treating as deleted")
            return Operation(status=OperationStatus.DONE)
        except TransportError as exc:
            raise CloudManagementError(operation="delete", message=DELETE_FAILED) from exc
        if operation is None:
            raise CloudManagementError(operation="delete", message=DELETE_FAILED)

        self._log(f"Deleting deployment {name}")
        return operation

    def _wait_until_done(
        self, session: ServiceSession, operation: Operation, deploying: bool
    ) -> None:
        """Poll an operation until DONE, then check it for errors.

        Polls at a fixed cadence and gives up after MAX_CHECKS_UNTIL_TIMEOUT
        fetches. A not-found response while polling is not recovered.
        """
        mode = "insert" if deploying else "delete"
        checks = MAX_CHECKS_UNTIL_TIMEOUT
        while not OperationStatus.DONE.matches(operation):
            self._log(WAIT_DEPLOY if deploying else WAIT_DELETE)
            session.client.sleep()
            if checks <= 0:
                raise OperationTimeoutError(
                    operation=mode,
                    message=TIMEOUT_DEPLOY if deploying else TIMEOUT_DELETE,
                )
            if not operation.name:
                raise CloudManagementError(
                    operation=mode, message="Operation has no name to poll"
                )
            try:
                operation = session.client.fetch_operation(
                    session.project_id, operation.name
                )
            except TransportError as exc:
                raise CloudManagementError(
                    operation=mode,
                    message=POLL_FAILED_DEPLOY if deploying else POLL_FAILED_DELETE,
                ) from exc
            checks -= 1

        if operation.error_entries:
            raise OperationError(operation=mode, errors=operation.error_entries)

    def _log(self, message: str) -> None:
        """Write a progress line to the caller's sink, if there is one."""
        if self._log_sink is not None:
            self._log_sink(message)


class TemplatedCloudDeployment(CloudDeployment):
    """A deployment built from a config file and its imports.

    Attributes:
        config_file: Workspace-relative config path, may contain ``$VAR``
        import_paths: Comma-separated workspace-relative import paths
    """

    kind = DeploymentKind.TEMPLATED
    display_name = "Templated deployment"

    def __init__(
        self,
        credentials: str,
        name: str,
        config_file: str,
        import_paths: str = "",
        module: CloudDeploymentModule | None = None,
    ) -> None:
        """Initialize a templated deployment."""
        super().__init__(credentials, name, module)
        self.config_file = config_file
        self.import_paths = import_paths

    @classmethod
    def from_config(
        cls,
        config: TemplatedDeploymentConfig,
        module: CloudDeploymentModule | None = None,
    ) -> TemplatedCloudDeployment:
        """Create the deployment from its configuration model."""
        return cls(
            credentials=config.credentials,
            name=config.name,
            config_file=config.config_file,
            import_paths=config.import_paths,
            module=module or CloudDeploymentModule(api_endpoint=config.api_endpoint),
        )

    def build_insert_plan(
        self, workspace: Path, environment: Mapping[str, str]
    ) -> InsertPlan:
        """Read the config file and resolve the import paths."""
        config_path = workspace / replace_macros(self.config_file, environment)
        return InsertPlan(
            config_content=read_config_file(config_path),
            import_paths=resolve_workspace_paths(
                split_list(self.import_paths), workspace, environment
            ),
        )


class CloudDeploymentDeleter(CloudDeployment):
    """A deployment that is only ever deleted.

    Inserting it deletes it, so it can tear down deployments created by
    other tooling. Its name is not restricted to the templated charset.
    """

    kind = DeploymentKind.DELETE_ONLY
    display_name = "Delete deployment"
    restrict_name_charset = False

    @classmethod
    def from_config(
        cls,
        config: DeleteOnlyDeploymentConfig,
        module: CloudDeploymentModule | None = None,
    ) -> CloudDeploymentDeleter:
        """Create the deployment from its configuration model."""
        return cls(
            credentials=config.credentials,
            name=config.name,
            module=module or CloudDeploymentModule(api_endpoint=config.api_endpoint),
        )

    def build_insert_plan(
        self, workspace: Path, environment: Mapping[str, str]
    ) -> None:
        """Deleters have nothing to insert."""
        return None
