"""
Configuration resolution and environment variable substitution.

Supports ``${VAR_NAME}``, ``${VAR_NAME:-default}`` and the ``{env}``
placeholder. An unset variable without a default is left as written so the
problem shows up in ``stackweave config`` output.
"""

import os
import re
from typing import Any

_ENV_VAR_RE = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def resolve_config(config_data: dict[str, Any], env: str = "dev") -> dict[str, Any]:
    """
    Resolve configuration with environment variable substitution.

    Args:
        config_data: Configuration dictionary
        env: Current environment name

    Returns:
        Resolved configuration
    """
    return _resolve_value(config_data, env)


def _resolve_value(value: Any, env: str) -> Any:
    """Recursively resolve values in configuration."""
    if isinstance(value, dict):
        return {k: _resolve_value(v, env) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_value(item, env) for item in value]
    elif isinstance(value, str):
        result = _ENV_VAR_RE.sub(_substitute, value)
        result = result.replace("{env}", env)
        return result
    else:
        return value


def _substitute(match: re.Match) -> str:
    name, default = match.group(1), match.group(2)
    value = os.getenv(name)
    if value is not None:
        return value
    if default is not None:
        return default
    return match.group(0)
