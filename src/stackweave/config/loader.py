"""
Configuration file loading.

Reads ``config.yaml`` from the project directory, merges ``config.{env}.yaml``
over it and substitutes environment variables.
"""

import copy
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from stackweave.config.resolver import resolve_config
from stackweave.exceptions import ConfigurationError

_MISSING = object()

#: Values used when a key is absent from every config file
DEFAULTS: dict[str, Any] = {
    "name": "my-k8s-cluster",
    "gcp": {"region": "us-central1"},
    "nodes_per_zone": 1,
    "app": {"replicas": 2, "image": "nginx:latest"},
    "executor": {"max_concurrency": None, "task_timeout": None},
    "retry": {"max_attempts": 3, "initial_delay": 1.0, "max_delay": 30.0, "jitter": True},
    "state": {"path": ".stackweave/state.yaml"},
}


class Config:
    """Stackweave configuration container with dict-like access."""

    def __init__(self, data: dict[str, Any] | None = None, *, defaults: bool = True):
        merged = copy.deepcopy(DEFAULTS) if defaults else {}
        _merge_dict(merged, copy.deepcopy(data or {}))
        self.data = merged

    def __repr__(self) -> str:
        return f"Config(name={self.data.get('name')!r})"

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        value = self._lookup(key)
        return default if value is _MISSING or value is None else value

    def require(self, key: str) -> Any:
        """
        Get a value that must be set.

        Raises:
            ConfigurationError: If the key is missing or empty
        """
        value = self._lookup(key)
        if value is _MISSING or value is None or value == "":
            raise ConfigurationError(
                f"Missing required configuration value '{key}'",
                details={"key": key, "suggestion": f"Set '{key}' in config.yaml"},
            )
        return value

    def _lookup(self, key: str) -> Any:
        value: Any = self.data
        for k in key.split("."):
            if not isinstance(value, dict) or k not in value:
                return _MISSING
            value = value[k]
        return value

    def __getitem__(self, key: str) -> Any:
        """Dict-like access: config['key'] or config['nested.key']."""
        value = self._lookup(key)
        if value is _MISSING:
            raise KeyError(f"Config key '{key}' not found")
        return value

    def __contains__(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def keys(self):
        return self.data.keys()

    def items(self):
        return self.data.items()

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self.data)

    def validate(self) -> None:
        """
        Validate configuration structure and content.

        Raises:
            ConfigurationError: Listing every problem found
        """
        errors = []

        for section in ("gcp", "app", "executor", "retry", "state", "logging"):
            value = self.data.get(section)
            if value is not None and not isinstance(value, dict):
                errors.append(f"'{section}' must be a mapping, got {type(value).__name__}")

        if not self.get("gcp.project"):
            errors.append("'gcp.project' is required")

        name = self.data.get("name")
        if not isinstance(name, str) or not name:
            errors.append(f"'name' must be a non-empty string, got {name!r}")

        for key, minimum in (("nodes_per_zone", 1), ("app.replicas", 0)):
            value = self.get(key)
            if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
                errors.append(f"'{key}' must be an integer >= {minimum}, got {value!r}")

        max_concurrency = self.get("executor.max_concurrency")
        if max_concurrency is not None and (
            not isinstance(max_concurrency, int) or isinstance(max_concurrency, bool) or max_concurrency < 1
        ):
            errors.append(f"'executor.max_concurrency' must be a positive integer, got {max_concurrency!r}")

        task_timeout = self.get("executor.task_timeout")
        if task_timeout is not None and (not isinstance(task_timeout, (int, float)) or task_timeout <= 0):
            errors.append(f"'executor.task_timeout' must be a positive number, got {task_timeout!r}")

        if errors:
            raise ConfigurationError(
                "Invalid configuration:\n  " + "\n  ".join(errors),
                details={"errors": errors},
            )


def load_config(project_path: Path | None = None, env: str | None = None) -> Config:
    """
    Load Stackweave configuration.

    Args:
        project_path: Path to project root (default: current directory)
        env: Environment name (dev, staging, prod)

    Returns:
        Config instance with merged configuration

    Raises:
        ConfigurationError: If config.yaml is missing or cannot be parsed
    """
    if project_path is None:
        project_path = Path.cwd()
    project_path = Path(project_path)

    base_config_path = project_path / "config.yaml"
    if not base_config_path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {base_config_path}",
            details={"suggestion": "Create a config.yaml file in your project root"},
        )

    config_data = _read_yaml(base_config_path)

    if env:
        env_config_path = project_path / f"config.{env}.yaml"
        if env_config_path.exists():
            _merge_dict(config_data, _read_yaml(env_config_path))

    env_name = env or "dev"
    config_data = resolve_config(config_data, env_name)

    return Config(config_data)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        if hasattr(e, "problem_mark"):
            mark = e.problem_mark
            raise ConfigurationError(
                f"Error parsing {path.name} at line {mark.line + 1}, column {mark.column + 1}: {e}",
                details={"file": str(path), "suggestion": "Check YAML syntax, ensure proper indentation and quotes"},
            ) from e
        raise ConfigurationError(f"Error parsing {path.name}: {e}", details={"file": str(path)}) from e
    except PermissionError as e:
        raise ConfigurationError(f"Permission denied reading {path}", details={"file": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path.name} must contain a mapping, got {type(data).__name__}")
    return data


def _merge_dict(base: dict, override: dict):
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
