"""Configuration loading, validation and defaults for cloudmanager.

Main components:
- loader.ConfigLoader: Load and validate cloudmanager.yaml files
- Build variable substitution ($VAR and ${VAR})
- Fixed polling and naming constants

The loader is not re-exported here because the models import the defaults
module from this package.
"""

from cloudmanager.config.env_loader import parse_env_pairs, replace_macros

__all__ = [
    "parse_env_pairs",
    "replace_macros",
]
