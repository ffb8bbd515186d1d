"""
Provisioner backed by a local YAML state file.

Each resource is recorded as ``{kind, properties, outputs}`` under its name.
When a resource is provisioned again with unchanged properties the stored
outputs are returned as-is, so retries and repeated runs are idempotent.
"""

import copy
import os
import threading
from pathlib import Path
from typing import Any

import yaml

from stackweave.exceptions import ConfigurationError
from stackweave.provisioners.synthetic import synthesize_outputs
from stackweave.utils.logging import get_logger

logger = get_logger("stackweave.provisioners.local")

STATE_VERSION = 1


class LocalStateProvisioner:
    """
    Records resources in a YAML file and synthesizes their outputs.

    Safe to call from the executor's worker threads: state reads and writes
    are serialized by a lock and the file is replaced atomically.
    """

    def __init__(self, path: str | Path, *, project: str, region: str = "us-central1"):
        self.path = Path(path)
        self.project = project
        self.region = region
        self._lock = threading.Lock()
        self._resources: dict[str, dict[str, Any]] = self._load()

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid state file {self.path}: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("resources", {}), dict):
            raise ConfigurationError(f"Invalid state file {self.path}: expected a 'resources' mapping")
        version = data.get("version", STATE_VERSION)
        if version != STATE_VERSION:
            raise ConfigurationError(f"Unsupported state file version {version!r} in {self.path}")
        return data.get("resources") or {}

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w") as f:
            yaml.safe_dump({"version": STATE_VERSION, "resources": self._resources}, f, sort_keys=True)
        os.replace(tmp_path, self.path)

    @property
    def resources(self) -> dict[str, dict[str, Any]]:
        """Snapshot of the recorded state, keyed by resource name."""
        with self._lock:
            return copy.deepcopy(self._resources)

    def provision(self, kind: str, name: str, properties: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            record = self._resources.get(name)
            if record is not None and record.get("kind") == kind and record.get("properties") == properties:
                logger.debug(f"'{name}' is unchanged, reusing recorded outputs")
                return copy.deepcopy(record["outputs"])

            action = "Updating" if record is not None else "Creating"
            logger.debug(f"{action} {kind} '{name}' in {self.path}")
            outputs = synthesize_outputs(kind, name, properties, project=self.project, region=self.region)
            self._resources[name] = {
                "kind": kind,
                "properties": copy.deepcopy(properties),
                "outputs": copy.deepcopy(outputs),
            }
            try:
                self._save()
            except Exception:
                # Keep memory in line with what is on disk
                if record is None:
                    del self._resources[name]
                else:
                    self._resources[name] = record
                raise
            return outputs
