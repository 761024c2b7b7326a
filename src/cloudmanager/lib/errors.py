"""Custom exception hierarchy for cloudmanager configuration and operations."""

from __future__ import annotations

from collections.abc import Sequence


class CloudManagerError(Exception):
    """Base exception for all cloudmanager errors.

    All cloudmanager-specific exceptions inherit from this class, enabling
    centralized exception handling in the CLI.
    """

    pass


class ConfigError(CloudManagerError):
    """Exception raised for errors in the tool's own configuration.

    Attributes:
        field: The configuration field that caused the error
        message: Human-readable error message describing the issue
    """

    def __init__(self, field: str, message: str) -> None:
        """Initialize ConfigError with field and message.

        Args:
            field: Configuration field name where error occurred
            message: Descriptive error message
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class TransportError(CloudManagerError):
    """Network or service failure reported by a service client.

    Service clients raise this; the lifecycle controller always wraps it
    into a CloudManagementError with a message describing what it was doing.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Create a transport error with an optional HTTP status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class CloudManagementError(CloudManagerError):
    """Umbrella error for a failed deployment lifecycle operation.

    Every failure surfaced by the lifecycle controller is an instance of this
    class. The underlying cause, when there is one, is chained with
    ``raise ... from``.

    Attributes:
        operation: Lifecycle operation that failed ("insert", "delete", ...)
        message: Human-readable error message
    """

    def __init__(self, operation: str, message: str) -> None:
        """Create a lifecycle error for an operation."""
        self.operation = operation
        self.message = message
        super().__init__(message)


class ConfigReadError(CloudManagementError):
    """Raised when a deployment config or import file cannot be read.

    Attributes:
        path: Path of the unreadable file
    """

    def __init__(self, path: str, message: str) -> None:
        """Create a read error for the given path."""
        self.path = path
        super().__init__(operation="insert", message=message)


class ResourceNotFoundError(CloudManagementError):
    """Raised when the remote resource does not exist.

    Never wrapped by the controller so callers can special-case it. Deletion
    treats it as success when it is returned for the delete request itself.
    """

    def __init__(self, operation: str, resource: str) -> None:
        """Create a not-found error for a remote resource."""
        self.resource = resource
        super().__init__(operation=operation, message=f"Resource not found: {resource}")


class OperationTimeoutError(CloudManagementError):
    """Raised when polling exhausts its attempt budget."""

    pass


class OperationError(CloudManagementError):
    """Raised when a remote operation completes with error entries.

    Attributes:
        errors: The individual error entries, in the order reported
    """

    def __init__(self, operation: str, errors: Sequence[object]) -> None:
        """Create an operation error from the reported entries."""
        self.errors = list(errors)
        super().__init__(
            operation=operation,
            message="\n".join(str(error) for error in self.errors),
        )


class RollbackError(CloudManagementError):
    """Raised when an insert failed and the automatic rollback failed too.

    Both failures stay observable: ``original`` is the insert failure and
    ``rollback_error`` is the failure of the compensating delete.

    Attributes:
        original: The error that triggered the rollback
        rollback_error: The error raised by the rollback itself
    """

    def __init__(
        self, original: CloudManagementError, rollback_error: CloudManagementError
    ) -> None:
        """Compose the insert failure and the rollback failure."""
        self.original = original
        self.rollback_error = rollback_error
        super().__init__(
            operation="insert",
            message=(
                f"{original.message}\n"
                f"Rollback of the failed deployment also failed: "
                f"{rollback_error.message}"
            ),
        )


class CloudSDKNotInstalledError(CloudManagementError):
    """Raised when the Google API client libraries are not installed."""

    def __init__(self, sdk_name: str) -> None:
        """Create an error describing the missing SDK."""
        self.sdk_name = sdk_name
        super().__init__(
            operation="connect",
            message=(
                f"The '{sdk_name}' package is required to talk to "
                f"Deployment Manager. Install it with: pip install {sdk_name}"
            ),
        )
