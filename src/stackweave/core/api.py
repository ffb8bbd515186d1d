"""
Programmatic API for Stackweave.
"""

import asyncio
from collections.abc import Iterable
from pathlib import Path

from stackweave.config.loader import Config
from stackweave.core.executor import Executor
from stackweave.core.initialization import initialize
from stackweave.core.provisioner import Provisioner
from stackweave.core.run import RunReport
from stackweave.provisioners import LocalStateProvisioner, PreviewProvisioner
from stackweave.utils.async_utils import dual
from stackweave.utils.logging import get_logger

logger = get_logger("stackweave.api")


def make_provisioner(config: Config, project_dir: Path, *, preview: bool = False) -> Provisioner:
    """Provisioner for a project: local state file, or a dry run with ``preview``."""
    project = config.require("gcp.project")
    region = config.get("gcp.region", "us-central1")
    if preview:
        return PreviewProvisioner(project=project, region=region)
    state_path = Path(config.get("state.path", ".stackweave/state.yaml"))
    if not state_path.is_absolute():
        state_path = project_dir / state_path
    return LocalStateProvisioner(state_path, project=project, region=region)


@dual
async def up(
    project_dir: Path | str | None = None,
    env: str | None = None,
    *,
    preview: bool = False,
    targets: Iterable[str] | None = None,
    provisioner: Provisioner | None = None,
    cancel_event: asyncio.Event | None = None,
    verbose: bool = False,
) -> RunReport:
    """
    Declare the project's stack and provision it, in sync or async contexts.

    Args:
        project_dir: Project directory (default: current directory)
        env: Environment name (default: from STACKWEAVE_ENV env var or "dev")
        preview: Dry run with placeholder outputs; nothing is recorded
        targets: Only provision these resources and their dependencies
        provisioner: Use this collaborator instead of the configured one
        cancel_event: Stop dispatching new resources once set
        verbose: Enable debug logging

    Returns:
        The run report

    Raises:
        ConfigurationError: If the config or the declared stack is invalid
        InitializationError: If the project cannot be loaded

    Examples:
        # Sync usage (auto-detected)
        report = up("infra/")

        # Async usage (auto-detected)
        report = await up("infra/", preview=True)
    """
    project_dir = Path(project_dir) if project_dir is not None else Path.cwd()

    config, stack, _graph = initialize(project_dir, env=env, verbose=verbose)
    if provisioner is None:
        provisioner = make_provisioner(config, project_dir, preview=preview)

    executor = Executor.from_config(provisioner, config)
    report = await executor.execute(stack, targets=targets, cancel_event=cancel_event)

    if not report.succeeded:
        logger.warning(f"Stack '{stack.name}' finished with status {report.status.value}")
    return report
