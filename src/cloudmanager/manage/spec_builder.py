"""Assemble deployment specs from a config payload and its import files."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from pathlib import Path

from cloudmanager.config.env_loader import replace_macros
from cloudmanager.lib.errors import ConfigReadError
from cloudmanager.models.deployment import DeploymentSpec, ImportFile

_LIST_SEPARATOR = re.compile(r"\s*,\s*")


def split_list(comma_separated: str) -> list[str]:
    """Split a comma-separated list, ignoring whitespace around commas.

    Empty or whitespace-only input yields no items rather than a single
    empty item.

    Example:
        >>> split_list("a, b")
        ['a', 'b']
        >>> split_list("  ")
        []
    """
    if not comma_separated.strip():
        return []
    return _LIST_SEPARATOR.split(comma_separated)


def resolve_workspace_paths(
    paths: Iterable[str], workspace: Path, environment: Mapping[str, str]
) -> list[Path]:
    """Substitute build variables in each path and join it onto the workspace."""
    return [workspace / replace_macros(path, environment) for path in paths]


def read_config_file(path: Path) -> str:
    """Read a deployment file.

    Raises:
        ConfigReadError: If the file cannot be read
    """
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigReadError(
            path=str(path), message=f"Failed to read {path}: {exc}"
        ) from exc


def build_deployment_spec(
    name: str, config_content: str, import_paths: Iterable[Path]
) -> DeploymentSpec:
    """Build the deployment request for one insert call.

    Every import is read in full before anything is returned; one unreadable
    import aborts the whole build.

    Args:
        name: Resolved deployment name, already validated by the caller
        config_content: Primary configuration content
        import_paths: Paths of the import files, resolved against the workspace

    Returns:
        The assembled DeploymentSpec

    Raises:
        ConfigReadError: If any import cannot be read
    """
    imports = tuple(
        ImportFile(name=path.name, content=read_config_file(path))
        for path in import_paths
    )
    return DeploymentSpec(name=name, config=config_content, imports=imports)
