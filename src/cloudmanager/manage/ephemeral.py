"""Deployments that live only for the duration of a block."""

from __future__ import annotations

from collections.abc import Generator, Mapping
from contextlib import contextmanager
from pathlib import Path

from cloudmanager.lib.logging_config import get_logger
from cloudmanager.manage.deployment import CloudDeployment, LogSink
from cloudmanager.manage.registry import ConsumerContext, ensure_applicable

logger = get_logger(__name__)


@contextmanager
def ephemeral_deployment(
    deployment: CloudDeployment,
    workspace: Path,
    environment: Mapping[str, str],
    log_sink: LogSink | None = None,
) -> Generator[CloudDeployment, None, None]:
    """Insert a deployment on enter and delete it on exit.

    The deletion runs even when the block raises. The block's error is
    logged before the teardown starts, so it stays visible when the teardown
    fails too and its error propagates instead. If the insert fails, the
    block never runs; the insert has already rolled itself back.

    Example:
        >>> with ephemeral_deployment(deployment, Path("."), os.environ):
        ...     run_integration_tests()

    Raises:
        ConfigError: If the deployment kind cannot be paired
        CloudManagementError: If the insert or the teardown fails
    """
    ensure_applicable(deployment.kind, ConsumerContext.PAIRED)

    deployment.insert_from_workspace(workspace, environment, log_sink)
    try:
        yield deployment
    except Exception as exc:
        logger.error(
            f"Block using ephemeral deployment {deployment.name} failed: {exc}"
        )
        if log_sink is not None:
            log_sink(f"Tearing down after failure: {exc}")
        raise
    finally:
        logger.debug(f"Tearing down ephemeral deployment {deployment.name}")
        deployment.delete(environment, log_sink)
