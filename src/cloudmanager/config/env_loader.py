"""Environment variable helpers.

Deployment names and workspace paths may embed build variables written as
``$NAME`` or ``${NAME}``. They are substituted from the environment of the
current lifecycle call; unknown variables are left untouched.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from cloudmanager.lib.errors import ConfigError

# $NAME or ${NAME}; braces also allow dotted names
MACRO_PATTERN = re.compile(r"\$([A-Za-z0-9_]+)|\$\{([A-Za-z0-9_.]+)\}")


def replace_macros(text: str, environment: Mapping[str, str]) -> str:
    """Substitute ``$VAR`` and ``${VAR}`` references in text.

    Args:
        text: Text that may contain variable references
        environment: Variables available for substitution

    Returns:
        Text with every known reference replaced. References with no
        matching variable keep their literal form.

    Example:
        >>> replace_macros("app-$BUILD_NUMBER", {"BUILD_NUMBER": "7"})
        'app-7'
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1) or match.group(2)
        value = environment.get(key)
        return match.group(0) if value is None else value

    return MACRO_PATTERN.sub(_replace, text)


def parse_env_pairs(pairs: Iterable[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` strings into a dictionary.

    Raises:
        ConfigError: If a pair has no ``=`` or an empty key
    """
    parsed: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigError(
                field="env",
                message=f"Expected KEY=VALUE, got '{pair}'",
            )
        parsed[key] = value
    return parsed
