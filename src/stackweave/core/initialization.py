"""
Stackweave startup initialization.

Orchestrates initialization of all components in the correct order:
1. Config (with validation)
2. Logging
3. Stack declaration and dependency graph (validation, cycle detection)
"""

import os
from pathlib import Path

from stackweave.config.loader import Config, load_config
from stackweave.core.graph import ResourceGraph
from stackweave.core.stack import Stack
from stackweave.exceptions import InitializationError, StackweaveError
from stackweave.topology.gke import declare_gke_stack
from stackweave.utils.logging import setup_logging_from_config


class StackweaveInitializer:
    """Handles complete initialization of a Stackweave project."""

    def __init__(self, project_dir: Path, env: str | None = None, verbose: bool = False):
        self.project_dir = Path(project_dir)
        self.env = env or os.environ.get("STACKWEAVE_ENV", "dev")
        self.verbose = verbose

        self.config: Config | None = None
        self.stack: Stack | None = None
        self.graph: ResourceGraph | None = None

    def initialize_all(self) -> tuple[Config, Stack, ResourceGraph]:
        """
        Initialize all components in the correct order.

        Returns:
            Tuple of (config, stack, dependency_graph)

        Raises:
            InitializationError: If config loading or logging setup fails
            ConfigurationError: If the config or the declared stack is invalid
        """
        self.config = self._initialize_config()
        self._initialize_logging()
        self.stack, self.graph = self._initialize_stack()
        return self.config, self.stack, self.graph

    def _initialize_config(self) -> Config:
        try:
            config = load_config(self.project_dir, env=self.env)
            config.validate()
            return config
        except StackweaveError:
            raise
        except Exception as e:
            raise InitializationError(f"Unexpected error loading config: {e}") from None

    def _initialize_logging(self) -> None:
        try:
            logging_config = dict(self.config.get("logging") or {})
            if self.verbose:
                logging_config["level"] = "DEBUG"
            setup_logging_from_config({"logging": logging_config}, self.project_dir)
        except (OSError, ValueError) as e:
            raise InitializationError(f"Failed to initialize logging: {e}") from None

    def _initialize_stack(self) -> tuple[Stack, ResourceGraph]:
        """Declare the stack and build its graph; nothing is provisioned."""
        stack = declare_gke_stack(self.config)
        graph = stack.build_graph()
        return stack, graph


def initialize(
    project_dir: Path | str, env: str | None = None, verbose: bool = False
) -> tuple[Config, Stack, ResourceGraph]:
    """
    Initialize Stackweave for a project directory.

    Returns:
        Tuple of (config, stack, dependency_graph)
    """
    return StackweaveInitializer(Path(project_dir), env=env, verbose=verbose).initialize_all()
