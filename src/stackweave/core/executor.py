"""
Resource graph execution engine.

Provisions resources in dependency order, running independent branches
concurrently on an asyncio event loop.
"""

import asyncio
import copy
import functools
import inspect
import os
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from stackweave.core.graph import ResourceGraph, build_graph
from stackweave.core.node import ResourceNode
from stackweave.core.provisioner import Provisioner
from stackweave.core.retry import RetryManager, RetryPolicy, RetryState
from stackweave.core.run import NodeStatus, NodeTask, Run, RunReport
from stackweave.core.stack import Stack
from stackweave.exceptions import (
    ConfigurationError,
    InterpolationError,
    ProvisioningError,
    StackweaveError,
    TransientProvisioningError,
)
from stackweave.utils.logging import get_logger

logger = get_logger("stackweave.executor")


class Executor:
    """
    Walks a resource graph and provisions each node through a Provisioner.

    A node is dispatched once every dependency has succeeded; ready nodes are
    dispatched in declaration order. When a node fails, everything that
    depends on it, directly or transitively, is skipped without a
    provisioning call.

    Attributes:
        provisioner: Collaborator that creates the real resources
        max_concurrency: Upper bound on in-flight provisioning calls (None = unbounded)
        retry_manager: Retries transient provisioning failures
        task_timeout: Per-attempt timeout in seconds (None = no timeout)
        thread_pool_size: Worker threads used for synchronous provisioners
    """

    DEFAULT_TASK_TIMEOUT = None
    DEFAULT_THREAD_POOL_SIZE = None  # None means auto-detect (use CPU count)

    def __init__(
        self,
        provisioner: Provisioner,
        *,
        max_concurrency: int | None = None,
        retry_policy: RetryPolicy | None = None,
        task_timeout: float | None = DEFAULT_TASK_TIMEOUT,
        max_workers: int | str | None = DEFAULT_THREAD_POOL_SIZE,
    ):
        if not isinstance(provisioner, Provisioner):
            raise TypeError(f"provisioner must implement provision(kind, name, properties), got {provisioner!r}")
        if max_concurrency is not None and (not isinstance(max_concurrency, int) or max_concurrency <= 0):
            raise ValueError(f"max_concurrency must be a positive integer or None, got {max_concurrency!r}")

        self.provisioner = provisioner
        self.max_concurrency = max_concurrency
        self.retry_manager = RetryManager(retry_policy)
        self.task_timeout = task_timeout
        self.thread_pool_size = self._determine_thread_pool_size(max_workers)

    @classmethod
    def from_config(cls, provisioner: Provisioner, config: Mapping[str, Any]) -> "Executor":
        """Create an executor from the ``executor`` and ``retry`` config sections."""
        executor_config = config.get("executor") or {}
        return cls(
            provisioner,
            max_concurrency=executor_config.get("max_concurrency"),
            retry_policy=RetryPolicy.from_config(config.get("retry")),
            task_timeout=executor_config.get("task_timeout", cls.DEFAULT_TASK_TIMEOUT),
            max_workers=executor_config.get("max_workers", cls.DEFAULT_THREAD_POOL_SIZE),
        )

    def _determine_thread_pool_size(self, max_workers: int | str | None) -> int:
        """
        Determine thread pool size from configuration.

        Provisioning calls are I/O-bound, so the default uses
        min(32, (CPU count * 2) + 4).
        """
        if max_workers is None or (isinstance(max_workers, str) and max_workers.lower() == "auto"):
            cpu_count = os.cpu_count()
            if cpu_count is None:
                logger.warning("Could not determine CPU count, defaulting to 8 workers")
                return 8
            return min(32, (cpu_count * 2) + 4)
        elif isinstance(max_workers, int):
            if max_workers <= 0:
                raise ValueError(f"max_workers must be positive, got {max_workers}")
            return max_workers
        else:
            raise ValueError(
                f"max_workers must be an integer, 'auto', or None, got {type(max_workers).__name__}: {max_workers}"
            )

    async def execute(
        self,
        target: Stack | ResourceGraph | Iterable[ResourceNode],
        *,
        targets: Iterable[str] | None = None,
        cancel_event: asyncio.Event | None = None,
        cancel_in_flight: bool = False,
    ) -> RunReport:
        """
        Provision every node of ``target`` and return the run report.

        Args:
            target: A Stack, an already built ResourceGraph, or declared nodes
            targets: Restrict the run to these resources and their dependencies
            cancel_event: Once set, no further node is dispatched
            cancel_in_flight: Also cancel provisioning calls already running
                when ``cancel_event`` is set

        Raises:
            ConfigurationError: If the declarations are invalid; raised before
                any provisioning call
        """
        stack = target if isinstance(target, Stack) else None
        if isinstance(target, Stack):
            graph = target.build_graph()
        elif isinstance(target, ResourceGraph):
            graph = target
        else:
            graph = build_graph(target)

        if targets:
            graph = graph.subgraph(targets)

        evaluated = [n.name for n in graph.nodes.values() if any(c.is_settled for c in n.outputs.values())]
        if evaluated:
            raise ConfigurationError(
                f"Resources already evaluated by an earlier run: {', '.join(evaluated)}. Declare the stack again.",
                nodes=evaluated,
            )

        order = graph.topological_sort()
        run = Run(stack_name=stack.name if stack else "")
        for name in order:
            node = graph.nodes[name]
            task = NodeTask(
                node_name=name,
                kind=node.kind,
                run_id=run.run_id,
                dependencies=sorted(graph.get_dependencies(name)),
            )
            run.tasks[name] = task
            task.enqueue()
            task.mark_waiting()

        run.start()
        logger.info(f"Run {run.run_id[:8]}: {len(order)} resources to provision")

        pool = ThreadPoolExecutor(max_workers=self.thread_pool_size)
        try:
            interrupted = await self._execute_loop(graph, run, order, pool, cancel_event, cancel_in_flight)
        finally:
            pool.shutdown(wait=False)

        exports: dict[str, Any] = {}
        export_errors: dict[str, str] = {}
        if stack is not None:
            exports, export_errors = stack.resolve_exports()

        if interrupted or (cancel_event is not None and cancel_event.is_set()):
            run.cancel()
        else:
            run.complete(success=all(t.status == NodeStatus.SUCCESS for t in run.tasks.values()))

        summary = run.get_summary()
        parts = [f"{summary['succeeded']}/{summary['total']} resources succeeded"]
        if summary["failed"]:
            parts.append(f"{summary['failed']} failed")
        if summary["skipped"]:
            parts.append(f"{summary['skipped']} skipped")
        logger.info(f"Run {run.run_id[:8]} {run.status.value}: {', '.join(parts)} in {_format_duration(summary['duration'] or 0.0)}")

        return run.to_report(order, exports, export_errors)

    async def _execute_loop(
        self,
        graph: ResourceGraph,
        run: Run,
        order: list[str],
        pool: ThreadPoolExecutor,
        cancel_event: asyncio.Event | None,
        cancel_in_flight: bool,
    ) -> bool:
        """
        Dispatch ready nodes and process completions until nothing is left.

        Returns:
            True if the run was interrupted from outside (task cancellation)
        """
        index = {name: i for i, name in enumerate(graph.node_names)}
        pending = set(order)
        succeeded: set[str] = set()
        ready = [name for name in order if not graph.get_dependencies(name)]
        running: dict[asyncio.Task, str] = {}
        cancel_waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
        cancelled = False

        for name in ready:
            run.tasks[name].mark_ready()

        try:
            while pending or running:
                if cancel_event is not None and cancel_event.is_set() and not cancelled:
                    cancelled = True
                    logger.warning("Cancellation requested, no further resources will be provisioned")
                    self._skip_all(graph, run, pending, "cancelled")
                    pending.clear()
                    ready.clear()
                    if cancel_in_flight:
                        for task in running:
                            task.cancel()

                if not cancelled:
                    ready.sort(key=index.__getitem__)
                    while ready and (self.max_concurrency is None or len(running) < self.max_concurrency):
                        name = ready.pop(0)
                        pending.discard(name)
                        task = asyncio.create_task(self._provision(graph.nodes[name], run, pool))
                        running[task] = name

                if not running:
                    if pending:
                        # Only reachable when dependencies live outside the graph
                        logger.error(f"Resources can never become ready: {sorted(pending)}")
                        self._skip_all(graph, run, pending, "dependencies never completed")
                        pending.clear()
                    break

                waiters: set[asyncio.Future] = set(running)
                if cancel_waiter is not None and not cancelled:
                    waiters.add(cancel_waiter)
                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

                for task in done:
                    if task is cancel_waiter:
                        continue
                    name = running.pop(task)
                    error = _task_error(task, name)
                    if error is None:
                        run.tasks[name].succeed(task.result())
                        succeeded.add(name)
                        for dependent in graph.get_dependents(name):
                            if (
                                dependent in pending
                                and dependent not in ready
                                and all(dep in succeeded for dep in graph.get_dependencies(dependent))
                            ):
                                run.tasks[dependent].mark_ready()
                                ready.append(dependent)
                    else:
                        self._record_failure(graph, run, name, error, pending, ready)

        except (KeyboardInterrupt, asyncio.CancelledError):
            logger.info("Run interrupted, cancelling in-flight provisioning")
            for task in running:
                if not task.done():
                    task.cancel()
            if running:
                try:
                    await asyncio.wait_for(
                        asyncio.shield(asyncio.gather(*running, return_exceptions=True)),
                        timeout=2.0,
                    )
                except (asyncio.TimeoutError, asyncio.CancelledError):
                    logger.warning("In-flight provisioning did not stop within 2s")
            for task, name in running.items():
                error = _task_error(task, name) if task.done() else ProvisioningError(name, "cancelled")
                if error is None:
                    run.tasks[name].succeed(task.result())
                else:
                    self._record_failure(graph, run, name, error, pending, ready)
            self._skip_all(graph, run, pending, "cancelled")
            return True
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        return False

    async def _provision(self, node: ResourceNode, run: Run, pool: ThreadPoolExecutor) -> dict[str, Any]:
        """Resolve inputs, call the provisioner (with retries) and settle outputs."""
        task = run.tasks[node.name]
        task.start()
        run.dispatch_order.append(node.name)
        logger.info(f"Provisioning {node.kind} '{node.name}'")

        # A path that cannot be followed fails the node with an InterpolationError
        properties = node.resolve_properties()

        state = RetryState(node_name=node.name)
        try:
            outputs = await self.retry_manager.execute(
                self._call_provisioner,
                node,
                properties,
                pool,
                node_name=node.name,
                state=state,
            )
        finally:
            task.attempts = state.total_attempts

        node.settle_outputs(outputs)
        logger.info(f"Completed '{node.name}' in {_format_duration(task.get_duration() or 0.0)}")
        return {key: outputs[key] for key in node.outputs}

    async def _call_provisioner(
        self, node: ResourceNode, properties: dict[str, Any], pool: ThreadPoolExecutor
    ) -> Mapping[str, Any]:
        """One provisioning attempt; collaborator errors become ProvisioningError."""
        provision = self.provisioner.provision
        # Each attempt gets its own copy so a collaborator cannot alter retries
        properties = copy.deepcopy(properties)

        async def attempt() -> Mapping[str, Any]:
            if inspect.iscoroutinefunction(provision):
                result = await provision(node.kind, node.name, properties)
            else:
                loop = asyncio.get_running_loop()
                result = await loop.run_in_executor(
                    pool, functools.partial(provision, node.kind, node.name, properties)
                )
            # Plain functions may hand back an awaitable
            if inspect.isawaitable(result):
                result = await result
            return result

        try:
            call = attempt()
            if self.task_timeout:
                return await asyncio.wait_for(call, self.task_timeout)
            return await call
        except asyncio.TimeoutError:
            raise TransientProvisioningError(node.name, f"timed out after {self.task_timeout}s") from None
        except StackweaveError:
            raise
        except Exception as e:
            raise ProvisioningError(node.name, str(e) or type(e).__name__, cause=e) from e

    def _record_failure(
        self,
        graph: ResourceGraph,
        run: Run,
        name: str,
        error: BaseException,
        pending: set[str],
        ready: list[str],
    ) -> None:
        """Mark ``name`` failed and skip everything downstream of it."""
        task = run.tasks[name]
        task.fail(error)
        graph.nodes[name].fail_outputs(error)
        logger.error(f"Failed '{name}' after {_format_duration(task.get_duration() or 0.0)}: {task.error_message}")

        reason = f"dependency '{name}' failed"
        downstream = [d for d in graph.transitive_dependents(name) if d in pending]
        for dependent in downstream:
            if dependent in ready:
                ready.remove(dependent)
        self._skip_all(graph, run, downstream, reason)
        pending.difference_update(downstream)

    def _skip_all(self, graph: ResourceGraph, run: Run, names: Iterable[str], reason: str) -> None:
        """Skip ``names`` in declaration order and fail their output cells."""
        names = set(names)
        for name in graph.node_names:
            if name not in names:
                continue
            run.tasks[name].skip(reason)
            graph.nodes[name].fail_outputs(InterpolationError(f"Resource '{name}' was skipped: {reason}"))
            logger.warning(f"Skipped '{name}': {reason}")


def _task_error(task: asyncio.Task, name: str) -> BaseException | None:
    """Return the failure of a finished provisioning task, or None on success."""
    if task.cancelled():
        return ProvisioningError(name, "cancelled")
    return task.exception()


def _format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, secs = divmod(seconds, 60)
    return f"{int(minutes)}m {secs:.0f}s"


async def execute_stack(
    stack: Stack,
    provisioner: Provisioner,
    config: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> RunReport:
    """Provision ``stack`` with an executor configured from ``config``."""
    executor = Executor.from_config(provisioner, config or {})
    return await executor.execute(stack, **kwargs)


def run_sync(
    stack: Stack,
    provisioner: Provisioner,
    config: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> RunReport:
    """Blocking wrapper around execute_stack for scripts and the CLI."""
    return asyncio.run(execute_stack(stack, provisioner, config, **kwargs))
