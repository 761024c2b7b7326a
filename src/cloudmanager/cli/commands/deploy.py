"""CLI commands for managing deployments.

Implements the build-step surface of cloudmanager: inserting and deleting
deployments, checking their status, and running a command against an
ephemeral deployment.
"""

from __future__ import annotations

import os
import subprocess
import sys
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path

import click

from cloudmanager.config.defaults import DEFAULT_CONFIG_FILE
from cloudmanager.config.env_loader import parse_env_pairs
from cloudmanager.config.loader import ConfigLoader
from cloudmanager.lib.errors import (
    CloudManagementError,
    ConfigError,
    ResourceNotFoundError,
    RollbackError,
)
from cloudmanager.lib.logging_config import get_logger, setup_logging
from cloudmanager.manage.deployment import CloudDeployment, LogSink
from cloudmanager.manage.ephemeral import ephemeral_deployment
from cloudmanager.manage.registry import (
    ConsumerContext,
    create_deployment,
    ensure_applicable,
    get_compatible_kinds,
)

logger = get_logger(__name__)


@contextmanager
def handle_deployment_errors() -> Generator[None, None, None]:
    """Context manager for consistent error handling in deployment commands.

    Catches ConfigError, CloudManagementError and unexpected exceptions, and
    turns each into an error message and exit code.

    Exit codes:
        2: Configuration error
        3: Deployment lifecycle or unexpected error
    """
    try:
        yield
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        click.secho("Error: Configuration error", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(2)
    except RollbackError as e:
        logger.error(f"Insert and rollback failed: {e}")
        click.secho("Error: insert failed and could not be rolled back", fg="red", err=True)
        click.echo(f"  Insert:   {e.original.message}", err=True)
        click.echo(f"  Rollback: {e.rollback_error.message}", err=True)
        sys.exit(3)
    except CloudManagementError as e:
        logger.error(f"Deployment error: {e}")
        click.secho(f"Error: {e.operation} failed", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        if e.__cause__ is not None:
            click.echo(f"  Cause: {e.__cause__}", err=True)
        sys.exit(3)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(3)


def common_options(func: Callable[..., None]) -> Callable[..., None]:
    """Attach the options shared by every lifecycle command."""
    options = [
        click.option(
            "--env",
            "-e",
            "env_pairs",
            multiple=True,
            help="Build variable as KEY=VALUE (overrides the process environment)",
        ),
        click.option(
            "--verbose", "-v", is_flag=True, help="Enable verbose debug logging"
        ),
        click.option("--quiet", "-q", is_flag=True, help="Suppress progress output"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


config_argument = click.argument(
    "deployment_config",
    type=click.Path(exists=True, dir_okay=False),
    default=DEFAULT_CONFIG_FILE,
    required=False,
)

workspace_option = click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Directory the config and import paths are relative to",
)


@click.command()
@config_argument
@workspace_option
@common_options
def insert(
    deployment_config: str,
    workspace: str,
    env_pairs: tuple[str, ...],
    verbose: bool,
    quiet: bool,
) -> None:
    """Insert a deployment and wait for it to finish.

    DEPLOYMENT_CONFIG is the path to the cloudmanager.yaml file. A failed
    insertion is rolled back before the command exits.

    Example:

        cloudmanager insert cloudmanager.yaml -e BUILD_NUMBER=42
    """
    if not quiet:
        setup_logging(verbose=verbose, quiet=quiet)

    with handle_deployment_errors():
        deployment = _load_deployment(deployment_config, ConsumerContext.SINGLE_ACTION)
        environment = _build_environment(env_pairs)

        deployment.insert_from_workspace(
            Path(workspace).resolve(), environment, _log_sink(quiet)
        )

        if not quiet:
            click.secho("Insert Successful!", fg="green", bold=True)


@click.command()
@config_argument
@click.option("--force", is_flag=True, help="Skip confirmation prompt")
@common_options
def delete(
    deployment_config: str,
    force: bool,
    env_pairs: tuple[str, ...],
    verbose: bool,
    quiet: bool,
) -> None:
    """Delete a deployment and wait for it to be gone."""
    if not quiet:
        setup_logging(verbose=verbose, quiet=quiet)

    with handle_deployment_errors():
        deployment = _load_deployment(deployment_config, ConsumerContext.SINGLE_ACTION)
        environment = _build_environment(env_pairs)
        name = deployment.resolve_name(environment)

        if not force:
            confirm = click.confirm(f"Delete deployment '{name}'?", default=False)
            if not confirm:
                click.secho("Delete aborted.", fg="yellow")
                sys.exit(0)

        deployment.delete(environment, _log_sink(quiet))

        if not quiet:
            click.secho("Delete Successful!", fg="green", bold=True)


@click.command()
@config_argument
@common_options
def status(
    deployment_config: str,
    env_pairs: tuple[str, ...],
    verbose: bool,
    quiet: bool,
) -> None:
    """Show the current state of a deployment."""
    if not quiet:
        setup_logging(verbose=verbose, quiet=quiet)

    with handle_deployment_errors():
        deployment = _load_deployment(deployment_config, ConsumerContext.SINGLE_ACTION)
        environment = _build_environment(env_pairs)

        try:
            remote = deployment.describe(environment)
        except ResourceNotFoundError:
            if quiet:
                click.echo("NOT_FOUND")
            else:
                name = deployment.resolve_name(environment)
                click.secho(f"Deployment '{name}' does not exist", fg="yellow")
            sys.exit(1)

        last_operation = remote.operation
        operation_status = last_operation.status.value if last_operation else "UNKNOWN"

        if quiet:
            click.echo(operation_status)
            return

        click.echo()
        click.secho("Deployment Status", bold=True)
        click.echo(f"  Name:      {remote.name}")
        if remote.id:
            click.echo(f"  ID:        {remote.id}")
        click.echo(f"  Operation: {operation_status}")
        if last_operation and last_operation.operation_type:
            click.echo(f"  Type:      {last_operation.operation_type}")
        for entry in last_operation.error_entries if last_operation else []:
            click.secho(f"  Error:     {entry}", fg="red")
        if remote.update_time or remote.insert_time:
            click.echo(f"  Updated:   {remote.update_time or remote.insert_time}")
        click.echo()


@click.command(context_settings={"ignore_unknown_options": True})
@click.option(
    "--config",
    "-c",
    "deployment_config",
    type=click.Path(exists=True, dir_okay=False),
    default=DEFAULT_CONFIG_FILE,
    help="Path to the cloudmanager.yaml file",
)
@workspace_option
@common_options
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
def run(
    deployment_config: str,
    workspace: str,
    env_pairs: tuple[str, ...],
    verbose: bool,
    quiet: bool,
    command: tuple[str, ...],
) -> None:
    """Run COMMAND against a deployment that exists only while it runs.

    The deployment is inserted first and deleted after COMMAND exits, whether
    it succeeded or not. The command's exit code is returned.

    Example:

        cloudmanager run -c cloudmanager.yaml -- pytest tests/integration
    """
    if not quiet:
        setup_logging(verbose=verbose, quiet=quiet)

    with handle_deployment_errors():
        deployment = _load_deployment(deployment_config, ConsumerContext.PAIRED)
        environment = _build_environment(env_pairs)
        workspace_path = Path(workspace).resolve()

        with ephemeral_deployment(
            deployment, workspace_path, environment, _log_sink(quiet)
        ):
            logger.debug(f"Running command: {' '.join(command)}")
            result = subprocess.run(
                list(command), cwd=workspace_path, env=environment, check=False
            )

    sys.exit(result.returncode)


@click.command()
@click.option(
    "--context",
    "context",
    type=click.Choice([c.value for c in ConsumerContext]),
    default=None,
    help="Only list kinds usable from this context",
)
def kinds(context: str | None) -> None:
    """List the supported deployment kinds."""
    contexts = [ConsumerContext(context)] if context else list(ConsumerContext)
    seen: set[str] = set()
    for consumer in contexts:
        for info in get_compatible_kinds(consumer):
            if info.kind.value in seen:
                continue
            seen.add(info.kind.value)
            usable = ", ".join(sorted(c.value for c in info.contexts))
            click.echo(f"{info.kind.value:<12} {info.display_name} ({usable})")


def _load_deployment(
    deployment_config: str, context: ConsumerContext
) -> CloudDeployment:
    config = ConfigLoader().load_deployment_config(deployment_config)
    ensure_applicable(config.kind, context)
    return create_deployment(config)


def _build_environment(env_pairs: tuple[str, ...]) -> dict[str, str]:
    environment = dict(os.environ)
    environment.update(parse_env_pairs(env_pairs))
    return environment


def _log_sink(quiet: bool) -> LogSink | None:
    return None if quiet else click.echo
