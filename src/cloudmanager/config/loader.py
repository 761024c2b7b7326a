"""Configuration loader for cloudmanager.

Loads the YAML file that describes which deployment to manage and validates
it into a deployment configuration model.
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from cloudmanager.config.validator import to_config_error
from cloudmanager.lib.errors import ConfigError
from cloudmanager.models.deployment import (
    DeleteOnlyDeploymentConfig,
    DeploymentConfig,
    DeploymentKind,
    TemplatedDeploymentConfig,
)

logger = logging.getLogger(__name__)

_DEPLOYMENT_CONFIG_ADAPTER: TypeAdapter[
    TemplatedDeploymentConfig | DeleteOnlyDeploymentConfig
] = TypeAdapter(DeploymentConfig)


class ConfigLoader:
    """Load and validate deployment configuration files.

    Example:
        >>> loader = ConfigLoader()
        >>> config = loader.load_deployment_config("cloudmanager.yaml")
        >>> config.kind
        'templated'
    """

    def load_deployment_config(
        self, path: str | Path
    ) -> TemplatedDeploymentConfig | DeleteOnlyDeploymentConfig:
        """Load a deployment configuration file.

        Build variables in the file are left unresolved; they are
        substituted per lifecycle call.

        Args:
            path: Path to the YAML file

        Returns:
            The validated deployment configuration

        Raises:
            ConfigError: If the file cannot be read, parsed or validated
        """
        config_path = Path(path)
        data = self.parse_yaml(config_path)
        return self.validate_deployment_config(data, source=str(config_path))

    def parse_yaml(self, path: Path) -> dict[str, Any]:
        """Read a YAML mapping from disk.

        Raises:
            ConfigError: If the file is missing, unreadable, invalid YAML, or
                not a mapping
        """
        try:
            content = yaml.safe_load(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(
                field=str(path), message=f"Failed to read configuration: {exc}"
            ) from exc
        except yaml.YAMLError as exc:
            raise ConfigError(
                field=str(path), message=f"Invalid YAML syntax: {exc}"
            ) from exc

        if content is None:
            raise ConfigError(field=str(path), message="Configuration file is empty")
        if not isinstance(content, dict):
            raise ConfigError(
                field=str(path),
                message="Configuration must be a mapping of settings",
            )
        return content

    def validate_deployment_config(
        self, data: dict[str, Any], source: str = "deployment"
    ) -> TemplatedDeploymentConfig | DeleteOnlyDeploymentConfig:
        """Validate raw configuration data.

        A missing ``kind`` defaults to a templated deployment.

        Raises:
            ConfigError: If validation fails
        """
        payload = dict(data)
        payload.setdefault("kind", DeploymentKind.TEMPLATED.value)

        try:
            config = _DEPLOYMENT_CONFIG_ADAPTER.validate_python(payload)
        except PydanticValidationError as exc:
            raise to_config_error(exc, source) from exc

        logger.debug(f"Loaded {config.kind} deployment '{config.name}' from {source}")
        return config
