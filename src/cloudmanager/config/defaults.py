"""Default settings and fixed constants for cloudmanager."""

import re

# Status fetches allowed before a pending operation times out
MAX_CHECKS_UNTIL_TIMEOUT = 100

# Fixed delay between two status fetches (no backoff)
POLL_INTERVAL_SECONDS = 5.0

# Valid resolved name for templated deployments
DEPLOYMENT_NAME_PATTERN = re.compile(r"^[-a-zA-Z0-9_]{1,64}$")

DEFAULT_CONFIG_FILE = "cloudmanager.yaml"

# Credentials reference meaning "use application default credentials"
DEFAULT_CREDENTIALS = "default"

DEPLOYMENT_MANAGER_API = "deploymentmanager"
DEPLOYMENT_MANAGER_VERSION = "v2"

DEPLOYMENT_MANAGER_SCOPES: list[str] = [
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/ndev.cloudman",
]

# Environment variable overriding the Deployment Manager endpoint
API_ENDPOINT_ENV_VAR = "CLOUDMANAGER_API_ENDPOINT"
