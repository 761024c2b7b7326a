"""Unit tests for the deployment lifecycle controller."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from cloudmanager.config.defaults import MAX_CHECKS_UNTIL_TIMEOUT
from cloudmanager.lib.errors import (
    CloudManagementError,
    ConfigReadError,
    OperationError,
    OperationTimeoutError,
    ResourceNotFoundError,
    RollbackError,
    TransportError,
)
from cloudmanager.manage.deployment import (
    CREATE_FAILED,
    DELETE_FAILED,
    POLL_FAILED_DELETE,
    TIMEOUT_DEPLOY,
    UNEXPECTED_DELETE,
    UNEXPECTED_DEPLOY,
    CloudDeploymentDeleter,
    TemplatedCloudDeployment,
)
from cloudmanager.models.operation import Operation, OperationStatus

PROJECT_ID = "test-project"
DEPLOYMENT_NAME = "test-deployment"
CONFIG_CONTENTS = "resources:\n- name: vm\n  type: vm.jinja\n"
IMPORT_PATHS = "templates/vm.jinja, templates/network.py"


def _running(name: str = "operation-1") -> Operation:
    return Operation(name=name, status=OperationStatus.RUNNING)


def _done(name: str = "operation-1") -> Operation:
    return Operation(name=name, status=OperationStatus.DONE)


def _with_errors(*messages: str) -> Operation:
    return Operation.model_validate(
        {
            "name": "operation-1",
            "status": "DONE",
            "error": {
                "errors": [
                    {"code": "RESOURCE_ERROR", "message": message}
                    for message in messages
                ]
            },
        }
    )


def _transport_error(message: str = "test") -> TransportError:
    return TransportError(message, status_code=500)


def _not_found(name: str = DEPLOYMENT_NAME) -> ResourceNotFoundError:
    return ResourceNotFoundError(operation="delete", resource=name)


@pytest.fixture
def templated(module: MagicMock) -> TemplatedCloudDeployment:
    """Create a templated deployment wired to the scripted client."""
    return TemplatedCloudDeployment(
        credentials="default",
        name=DEPLOYMENT_NAME,
        config_file="config.yaml",
        import_paths=IMPORT_PATHS,
        module=module,
    )


@pytest.fixture
def import_files(workspace: Path) -> list[Path]:
    """Return the workspace's import file paths."""
    return [workspace / "templates" / "vm.jinja", workspace / "templates" / "network.py"]


class TestInsert:
    """Tests for inserting deployments."""

    def test_insert_waits_until_done(
        self,
        templated: TemplatedCloudDeployment,
        client: Any,
        import_files: list[Path],
        log_lines: list[str],
    ) -> None:
        """Insert submits the spec and polls until the operation is DONE."""
        client.when("submit_insert", _running())
        client.when("fetch_operation", _running(), _done())

        templated.insert(CONFIG_CONTENTS, import_files, {}, log_lines.append)

        assert client.saw_all()
        ((project_id, spec),) = client.calls_to("submit_insert")
        assert project_id == PROJECT_ID
        assert spec.name == DEPLOYMENT_NAME
        assert spec.config == CONFIG_CONTENTS
        assert [item.name for item in spec.imports] == ["vm.jinja", "network.py"]
        assert spec.imports[0].content == "resources: []\n"
        assert client.calls_to("fetch_operation") == [
            (PROJECT_ID, "operation-1"),
            (PROJECT_ID, "operation-1"),
        ]
        assert client.sleeps == 2
        assert log_lines[-1] == "Deployment complete"
        assert "Waiting for deployment to finish..." in log_lines

    def test_insert_already_done_does_not_poll(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """An operation that is DONE on submission is not polled."""
        client.when("submit_insert", _done())

        templated.insert(CONFIG_CONTENTS, [], {})

        assert client.calls_to("fetch_operation") == []
        assert client.sleeps == 0

    def test_insert_then_delete_leaves_nothing(
        self,
        templated: TemplatedCloudDeployment,
        client: Any,
        import_files: list[Path],
    ) -> None:
        """Insert followed by delete runs both operations to completion."""
        client.when("submit_insert", _running("insert-op"))
        client.when("fetch_operation", _done("insert-op"), _running("delete-op"), _done("delete-op"))
        client.when("submit_delete", _running("delete-op"))

        templated.insert(CONFIG_CONTENTS, import_files, {})
        templated.delete({})

        assert client.saw_all()
        assert [name for name, _ in client.calls] == [
            "submit_insert",
            "fetch_operation",
            "submit_delete",
            "fetch_operation",
            "fetch_operation",
        ]
        assert client.calls_to("submit_delete") == [(PROJECT_ID, DEPLOYMENT_NAME)]

    def test_insert_resolves_name_from_environment(
        self, module: MagicMock, client: Any
    ) -> None:
        """Build variables in the name are substituted before submission."""
        deployment = TemplatedCloudDeployment(
            credentials="default",
            name="foo-$BUILD_NUMBER",
            config_file="config.yaml",
            module=module,
        )
        client.when("submit_insert", _done())

        deployment.insert(CONFIG_CONTENTS, [], {"BUILD_NUMBER": "7"})

        ((_, spec),) = client.calls_to("submit_insert")
        assert spec.name == "foo-7"

    def test_insert_rejects_invalid_name(self, module: MagicMock) -> None:
        """A resolved name outside the allowed charset never reaches the service."""
        deployment = TemplatedCloudDeployment(
            credentials="default",
            name="foo-$MISSING",
            config_file="config.yaml",
            module=module,
        )

        with pytest.raises(CloudManagementError, match="Invalid deployment name"):
            deployment.insert(CONFIG_CONTENTS, [], {})

        module.connect.assert_not_called()

    def test_insert_missing_import_aborts_before_submit(
        self,
        templated: TemplatedCloudDeployment,
        module: MagicMock,
        client: Any,
        workspace: Path,
        log_lines: list[str],
    ) -> None:
        """An unreadable import fails the insert without any remote call."""
        missing = workspace / "templates" / "missing.jinja"

        with pytest.raises(ConfigReadError) as exc_info:
            templated.insert(
                CONFIG_CONTENTS,
                [workspace / "templates" / "vm.jinja", missing],
                {},
                log_lines.append,
            )

        assert isinstance(exc_info.value.__cause__, OSError)
        assert exc_info.value.path == str(missing)
        module.connect.assert_not_called()
        assert client.calls == []
        assert log_lines == ["Invalid deployment specification"]

    def test_submit_failure_rolls_back_once(
        self, templated: TemplatedCloudDeployment, client: Any, log_lines: list[str]
    ) -> None:
        """A failed submission deletes the deployment before propagating."""
        cause = _transport_error()
        client.when("submit_insert", cause)
        client.when("submit_delete", _done("delete-op"))

        with pytest.raises(CloudManagementError) as exc_info:
            templated.insert(CONFIG_CONTENTS, [], {}, log_lines.append)

        assert not isinstance(exc_info.value, RollbackError)
        assert exc_info.value.message == CREATE_FAILED
        assert exc_info.value.__cause__ is cause
        assert client.calls_to("submit_delete") == [(PROJECT_ID, DEPLOYMENT_NAME)]
        assert "Rolling back the failed deployment..." in log_lines
        assert log_lines[-1] == "Rollback complete"

    def test_submit_returning_nothing_rolls_back(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """A submission without an operation counts as a failed insert."""
        client.when("submit_insert", None)
        client.when("submit_delete", _done())

        with pytest.raises(CloudManagementError, match=CREATE_FAILED):
            templated.insert(CONFIG_CONTENTS, [], {})

        assert len(client.calls_to("submit_delete")) == 1

    def test_rollback_not_found_keeps_original_error(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """Rolling back a deployment that was never created succeeds."""
        cause = _transport_error("forbidden")
        client.when("submit_insert", cause)
        client.when("submit_delete", _not_found())

        with pytest.raises(CloudManagementError) as exc_info:
            templated.insert(CONFIG_CONTENTS, [], {})

        assert not isinstance(exc_info.value, RollbackError)
        assert exc_info.value.__cause__ is cause
        assert client.calls_to("fetch_operation") == []

    def test_failed_rollback_reports_both_errors(
        self, templated: TemplatedCloudDeployment, client: Any, log_lines: list[str]
    ) -> None:
        """When the rollback fails too, both failures are surfaced."""
        client.when("submit_insert", _transport_error())
        client.when("submit_delete", _transport_error("unable to rollback"))

        with pytest.raises(RollbackError) as exc_info:
            templated.insert(CONFIG_CONTENTS, [], {}, log_lines.append)

        error = exc_info.value
        assert error.original.message == CREATE_FAILED
        assert error.rollback_error.message == DELETE_FAILED
        assert error.__cause__ is error.original
        assert CREATE_FAILED in error.message
        assert DELETE_FAILED in error.message
        assert any(line.startswith("Rollback of test-deployment failed") for line in log_lines)

    def test_rollback_returning_nothing_is_a_rollback_failure(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """A delete without an operation during rollback fails the rollback."""
        client.when("submit_insert", _transport_error())
        client.when("submit_delete", None)

        with pytest.raises(RollbackError):
            templated.insert(CONFIG_CONTENTS, [], {})

    def test_insert_times_out_after_max_checks(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """Polling gives up after exactly MAX_CHECKS_UNTIL_TIMEOUT fetches."""
        client.when("submit_insert", _running())
        client.when(
            "fetch_operation", *[_running() for _ in range(MAX_CHECKS_UNTIL_TIMEOUT)]
        )
        client.when("submit_delete", _done("delete-op"))

        with pytest.raises(OperationTimeoutError, match=TIMEOUT_DEPLOY):
            templated.insert(CONFIG_CONTENTS, [], {})

        assert MAX_CHECKS_UNTIL_TIMEOUT == 100
        assert len(client.calls_to("fetch_operation")) == 100
        assert client.sleeps == 101
        assert len(client.calls_to("submit_delete")) == 1

    def test_insert_operation_errors_are_joined(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """A DONE operation with errors fails with the joined error entries."""
        operation = _with_errors("quota exceeded", "name already taken")
        client.when("submit_insert", _running())
        client.when("fetch_operation", operation)
        client.when("submit_delete", _done("delete-op"))

        with pytest.raises(OperationError) as exc_info:
            templated.insert(CONFIG_CONTENTS, [], {})

        expected = "\n".join(str(entry) for entry in operation.error_entries)
        assert exc_info.value.message == expected
        assert expected.index("quota exceeded") < expected.index("name already taken")
        assert len(client.calls_to("submit_delete")) == 1

    def test_transport_error_while_polling_rolls_back(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """A failed status fetch fails the insert and triggers the rollback."""
        client.when("submit_insert", _running())
        client.when("fetch_operation", _transport_error())
        client.when("submit_delete", _done("delete-op"))

        with pytest.raises(CloudManagementError, match="waiting for deployment"):
            templated.insert(CONFIG_CONTENTS, [], {})

        assert client.saw_all()

    def test_unexpected_polling_error_rolls_back(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """An error the client did not translate still fails the insert and rolls back."""
        cause = RuntimeError("token revoked")
        client.when("submit_insert", _running())
        client.when("fetch_operation", cause)
        client.when("submit_delete", _done("delete-op"))

        with pytest.raises(CloudManagementError) as exc_info:
            templated.insert(CONFIG_CONTENTS, [], {})

        assert exc_info.value.operation == "insert"
        assert exc_info.value.message == f"{UNEXPECTED_DEPLOY}: token revoked"
        assert exc_info.value.__cause__ is cause
        assert client.calls_to("submit_delete") == [(PROJECT_ID, DEPLOYMENT_NAME)]

    def test_unexpected_rollback_error_keeps_insert_error(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """An untranslated rollback failure is reported next to the insert failure."""
        client.when("submit_insert", _transport_error())
        client.when("submit_delete", RuntimeError("dns lookup failed"))

        with pytest.raises(RollbackError) as exc_info:
            templated.insert(CONFIG_CONTENTS, [], {})

        assert exc_info.value.original.message == CREATE_FAILED
        assert exc_info.value.rollback_error.message == (
            f"{UNEXPECTED_DELETE}: dns lookup failed"
        )


class TestDelete:
    """Tests for deleting deployments."""

    def test_delete_waits_until_done(
        self, templated: TemplatedCloudDeployment, client: Any, log_lines: list[str]
    ) -> None:
        """Delete polls the delete operation until it is DONE."""
        client.when("submit_delete", _running())
        client.when("fetch_operation", _running(), _done())

        templated.delete({}, log_lines.append)

        assert client.saw_all()
        assert log_lines.count("Waiting for deletion to finish...") == 2
        assert log_lines[-1] == "Deletion complete"

    def test_delete_not_found_skips_polling(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """A deployment that does not exist is already deleted."""
        client.when("submit_delete", _not_found())

        templated.delete({})

        assert client.calls_to("fetch_operation") == []
        assert client.sleeps == 0

    def test_delete_not_found_while_polling_is_fatal(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """Losing the operation while polling is not treated as success."""
        client.when("submit_delete", _running())
        client.when("fetch_operation", _not_found("operation-1"))

        with pytest.raises(ResourceNotFoundError):
            templated.delete({})

    def test_delete_returning_nothing_fails(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """A delete without an operation is an error, not a not-found."""
        client.when("submit_delete", None)

        with pytest.raises(CloudManagementError, match=DELETE_FAILED):
            templated.delete({})

    def test_delete_transport_error_is_wrapped(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """Transport failures keep their cause."""
        cause = _transport_error()
        client.when("submit_delete", cause)

        with pytest.raises(CloudManagementError) as exc_info:
            templated.delete({})

        assert exc_info.value.operation == "delete"
        assert exc_info.value.__cause__ is cause

    def test_delete_polling_failure_uses_delete_message(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """Polling failures during delete name the deletion."""
        client.when("submit_delete", _running())
        client.when("fetch_operation", _transport_error())

        with pytest.raises(CloudManagementError, match=POLL_FAILED_DELETE):
            templated.delete({})

    def test_delete_unexpected_error_is_wrapped(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """Untranslated client errors surface as lifecycle errors."""
        cause = RuntimeError("boom")
        client.when("submit_delete", _running())
        client.when("fetch_operation", cause)

        with pytest.raises(CloudManagementError) as exc_info:
            templated.delete({})

        assert exc_info.value.operation == "delete"
        assert exc_info.value.__cause__ is cause

    def test_deleter_keeps_unresolved_placeholder(
        self, module: MagicMock, client: Any
    ) -> None:
        """Unknown build variables stay literal in delete-only names."""
        deleter = CloudDeploymentDeleter(
            credentials="default", name="other tool/$MISSING", module=module
        )
        client.when("submit_delete", _done())

        deleter.delete({})

        assert client.calls_to("submit_delete") == [(PROJECT_ID, "other tool/$MISSING")]


class TestLifecycleSession:
    """Tests for the per-call session state."""

    def test_log_sink_cleared_after_success(
        self, templated: TemplatedCloudDeployment, client: Any, log_lines: list[str]
    ) -> None:
        """The sink is released once the call returns."""
        client.when("submit_insert", _done())

        templated.insert(CONFIG_CONTENTS, [], {}, log_lines.append)

        assert templated._log_sink is None

    def test_log_sink_cleared_after_failure(
        self, templated: TemplatedCloudDeployment, client: Any, log_lines: list[str]
    ) -> None:
        """The sink is released when the call raises."""
        client.when("submit_delete", _transport_error())

        with pytest.raises(CloudManagementError):
            templated.delete({}, log_lines.append)

        assert templated._log_sink is None
        assert not templated._lock.locked()

    def test_missing_sink_drops_progress(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """Calls without a sink run normally."""
        client.when("submit_delete", _running())
        client.when("fetch_operation", _done())

        templated.delete({}, None)

        assert client.saw_all()

    def test_concurrent_calls_are_serialized(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """A second call on the same instance waits for the first to finish."""
        entered = threading.Event()
        release = threading.Event()
        order: list[str] = []

        original_sleep = client.sleep

        def blocking_sleep() -> None:
            original_sleep()
            if client.sleeps == 1:
                entered.set()
                assert release.wait(timeout=5)

        client.sleep = blocking_sleep
        client.when("submit_insert", _running("insert-op"))
        client.when("fetch_operation", _done("insert-op"))
        client.when("submit_delete", _done("delete-op"))

        def do_insert() -> None:
            templated.insert(CONFIG_CONTENTS, [], {})
            order.append("insert")

        def do_delete() -> None:
            templated.delete({})
            order.append("delete")

        inserter = threading.Thread(target=do_insert)
        inserter.start()
        assert entered.wait(timeout=5)

        deleter = threading.Thread(target=do_delete)
        deleter.start()
        deleter.join(timeout=0.2)

        assert deleter.is_alive()
        assert client.calls_to("submit_delete") == []

        release.set()
        inserter.join(timeout=5)
        deleter.join(timeout=5)

        assert order == ["insert", "delete"]
        assert client.saw_all()


class TestInsertFromWorkspace:
    """Tests for inserting from workspace files."""

    def test_templated_reads_config_and_imports(
        self, module: MagicMock, client: Any, workspace: Path
    ) -> None:
        """Config and import paths are resolved against the workspace."""
        deployment = TemplatedCloudDeployment(
            credentials="default",
            name="app-$BUILD_NUMBER",
            config_file="${CONFIG_NAME}.yaml",
            import_paths="templates/vm.jinja ,  templates/network.py",
            module=module,
        )
        client.when("submit_insert", _done())

        deployment.insert_from_workspace(
            workspace, {"BUILD_NUMBER": "12", "CONFIG_NAME": "config"}
        )

        ((_, spec),) = client.calls_to("submit_insert")
        assert spec.name == "app-12"
        assert spec.config == (workspace / "config.yaml").read_text(encoding="utf-8")
        assert [item.name for item in spec.imports] == ["vm.jinja", "network.py"]

    def test_templated_without_imports(
        self, module: MagicMock, client: Any, workspace: Path
    ) -> None:
        """An empty import list submits no imports."""
        deployment = TemplatedCloudDeployment(
            credentials="default",
            name=DEPLOYMENT_NAME,
            config_file="config.yaml",
            import_paths="   ",
            module=module,
        )
        client.when("submit_insert", _done())

        deployment.insert_from_workspace(workspace, {})

        ((_, spec),) = client.calls_to("submit_insert")
        assert spec.imports == ()

    def test_templated_missing_config_fails_without_rollback(
        self, module: MagicMock, client: Any, workspace: Path
    ) -> None:
        """A missing config file fails before anything is submitted."""
        deployment = TemplatedCloudDeployment(
            credentials="default",
            name=DEPLOYMENT_NAME,
            config_file="missing.yaml",
            module=module,
        )

        with pytest.raises(ConfigReadError):
            deployment.insert_from_workspace(workspace, {})

        assert client.calls == []

    def test_deleter_insert_deletes(
        self, module: MagicMock, client: Any, workspace: Path
    ) -> None:
        """Inserting a delete-only deployment deletes it."""
        deleter = CloudDeploymentDeleter(
            credentials="default", name=DEPLOYMENT_NAME, module=module
        )
        client.when("submit_delete", _running())
        client.when("fetch_operation", _done())

        deleter.insert_from_workspace(workspace, {})

        assert client.calls_to("submit_insert") == []
        assert client.saw_all()

    def test_deleter_has_no_insert_plan(self, workspace: Path) -> None:
        """Delete-only deployments short-circuit the insert plan."""
        deleter = CloudDeploymentDeleter(
            credentials="default", name=DEPLOYMENT_NAME, module=MagicMock()
        )

        assert deleter.build_insert_plan(workspace, {}) is None


class TestDescribe:
    """Tests for fetching deployment state."""

    def test_describe_returns_deployment(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """Describe fetches the deployment by its resolved name."""
        from cloudmanager.models.operation import Deployment

        client.when("fetch_deployment", Deployment(name=DEPLOYMENT_NAME, operation=_done()))

        deployment = templated.describe({})

        assert deployment.name == DEPLOYMENT_NAME
        assert client.calls_to("fetch_deployment") == [(PROJECT_ID, DEPLOYMENT_NAME)]

    def test_describe_not_found_is_not_wrapped(
        self, templated: TemplatedCloudDeployment, client: Any
    ) -> None:
        """A missing deployment propagates as ResourceNotFoundError."""
        client.when("fetch_deployment", _not_found())

        with pytest.raises(ResourceNotFoundError):
            templated.describe({})
