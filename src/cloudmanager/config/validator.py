"""Validation helpers for deployment configuration files."""

from pydantic import ValidationError as PydanticValidationError

from cloudmanager.lib.errors import ConfigError


def flatten_pydantic_errors(exc: PydanticValidationError) -> list[str]:
    """Flatten a Pydantic ValidationError into one message per field.

    Discriminated unions prefix locations with the tag (``templated.name``);
    the tag is kept so the user can tell which deployment kind was checked.

    Args:
        exc: Pydantic ValidationError exception

    Returns:
        List of human-readable error messages
    """
    messages: list[str] = []

    for error in exc.errors():
        loc = error.get("loc", ())
        field_path = ".".join(str(part) for part in loc) if loc else "unknown"
        msg = error.get("msg", "Unknown error")

        if error.get("type") == "value_error":
            messages.append(
                f"Field '{field_path}': {msg} (received: {error.get('input')!r})"
            )
        else:
            messages.append(f"Field '{field_path}': {msg}")

    return messages or ["Validation failed with unknown error"]


def to_config_error(exc: PydanticValidationError, source: str) -> ConfigError:
    """Convert a Pydantic ValidationError into a ConfigError for ``source``."""
    details = "\n".join(f"  - {line}" for line in flatten_pydantic_errors(exc))
    return ConfigError(field=source, message=f"Invalid deployment configuration:\n{details}")
