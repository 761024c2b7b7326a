"""cloudmanager - Manage Google Cloud Deployment Manager deployments from builds.

cloudmanager inserts a deployment from a configuration file and its imports,
waits for the remote operation to finish and rolls the deployment back when
the insertion fails. It deletes deployments the same way.

Main features:
- Templated deployments with $VAR build variables in names and paths
- Delete-only deployments for tearing down deployments made elsewhere
- Fixed-cadence polling with a bounded number of status checks
- Ephemeral deployments that live for the duration of a command
"""

from cloudmanager.config.loader import ConfigLoader
from cloudmanager.lib.errors import (
    CloudManagementError,
    CloudManagerError,
    ConfigError,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CloudManagementError",
    "CloudManagerError",
    "ConfigError",
    "ConfigLoader",
]
