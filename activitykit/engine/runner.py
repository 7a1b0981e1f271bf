"""Top-level driver: runs every node once its dependencies are done."""

from __future__ import annotations

import graphlib
import logging
import os
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Sequence

from activitykit.build_result import BuildOutcome, BuildResult
from activitykit.config import ActivityGraphConfig
from activitykit.engine.failures import find_failed_nodes, raise_on_any_failure
from activitykit.engine.node import ActivityNode, utc_now
from activitykit.exceptions import DependencyCycleError, NodeStateError
from activitykit.logging_utils import setup_run_logger

logger = logging.getLogger(__name__)


@dataclass
class GraphRunResult:
    started_at: datetime
    finished_at: datetime | None = None
    nodes: list[ActivityNode] = field(default_factory=list)
    build_result: BuildResult = BuildResult.SUCCESS

    @property
    def failed_nodes(self) -> list[ActivityNode]:
        return find_failed_nodes(self.nodes) or []

    @property
    def success(self) -> bool:
        return not self.failed_nodes

    def as_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "build_result": self.build_result.name,
            "failed": [node.name for node in self.failed_nodes],
            "nodes": [node.as_dict() for node in self.nodes],
        }


class GraphRunner:
    """Drive a set of nodes through prepare -> run -> cleanup in dependency order.

    With `max_workers == 1` nodes run one after another in input order among the
    ready ones. With more workers, independent nodes run concurrently; each node's
    whole lifecycle stays on a single worker.
    """

    def __init__(
        self,
        nodes: Iterable[ActivityNode],
        *,
        max_workers: int = 1,
        raise_on_failure: bool = True,
        failure_prefix: str = "Activities",
        build_outcome: BuildOutcome | None = None,
        log: logging.Logger | None = None,
    ):
        self._nodes: list[ActivityNode] = list(nodes)
        if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
            raise ValueError(f"max_workers must be an int >= 1 (got {max_workers!r})")
        for node in self._nodes:
            if not isinstance(node, ActivityNode):
                raise TypeError(f"GraphRunner expects ActivityNode items (type={type(node).__name__})")
        self._max_workers = max_workers
        self._raise_on_failure = raise_on_failure
        self._failure_prefix = failure_prefix
        self._build_outcome = build_outcome
        self._logger = log or logger

    @classmethod
    def from_config(
        cls,
        nodes: Iterable[ActivityNode],
        config: ActivityGraphConfig | str | os.PathLike[str] | None = None,
        *,
        run_id: str = "run",
        build_outcome: BuildOutcome | None = None,
    ) -> "GraphRunner":
        """Build a runner from a parsed config, or from a YAML path passed to `ActivityGraphConfig.load`."""

        warnings: list[str] = []
        if not isinstance(config, ActivityGraphConfig):
            config, warnings = ActivityGraphConfig.load(config)
        log = None
        if config.log_dir:
            log, _log_file = setup_run_logger(config.log_dir, run_id)
        for warning in warnings:
            (log or logger).warning("Config: %s", warning)
        return cls(
            nodes,
            max_workers=config.runner.max_workers,
            raise_on_failure=config.runner.raise_on_failure,
            failure_prefix=config.runner.failure_prefix,
            build_outcome=build_outcome,
            log=log,
        )

    @property
    def nodes(self) -> tuple[ActivityNode, ...]:
        return tuple(self._nodes)

    def validate(self) -> None:
        members = set(self._nodes)
        sorter: graphlib.TopologicalSorter[ActivityNode] = graphlib.TopologicalSorter()
        for node in self._nodes:
            dependencies = list(node.dependencies)
            for dependency in dependencies:
                if dependency not in members and not dependency.is_done:
                    raise NodeStateError(
                        f"{node.name} depends on {dependency.name}, which is neither scheduled nor done"
                    )
            sorter.add(node, *(d for d in dependencies if d in members))
        try:
            sorter.prepare()
        except graphlib.CycleError as exc:
            cycle = exc.args[1] if len(exc.args) > 1 else []
            raise DependencyCycleError([n.name for n in cycle]) from exc

    def run(self) -> GraphRunResult:
        self.validate()
        result = GraphRunResult(started_at=utc_now(), nodes=list(self._nodes))
        self._logger.info(
            "Running %d activities (max_workers=%d)", len(self._nodes), self._max_workers
        )

        if self._max_workers == 1:
            self._run_sequential()
        else:
            self._run_parallel()

        result.finished_at = utc_now()
        result.build_result = self._resolve_build_result()
        self._logger.info(
            "Finished %d activities: %d failed, build result %s",
            len(self._nodes),
            len(result.failed_nodes),
            result.build_result.name,
        )
        for node in self._nodes:
            self._logger.debug("%s: %s", node.name, node.build_state_history_string())

        if self._raise_on_failure:
            raise_on_any_failure(self._failure_prefix, self._nodes)
        return result

    def _run_sequential(self) -> None:
        pending = [node for node in self._nodes if not node.is_done]
        while pending:
            ready = self._next_ready(pending)
            if not ready:
                self._raise_stuck(pending)
            for node in ready:
                pending.remove(node)
                self._run_node(node)

    def _run_parallel(self) -> None:
        pending = [node for node in self._nodes if not node.is_done]
        running: dict[Future[None], ActivityNode] = {}
        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="activitykit"
        ) as executor:
            while pending or running:
                for node in self._next_ready(pending):
                    pending.remove(node)
                    running[executor.submit(self._run_node, node)] = node
                if not running:
                    self._raise_stuck(pending)
                done, _not_done = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    running.pop(future)
                    future.result()

    @staticmethod
    def _next_ready(pending: Sequence[ActivityNode]) -> list[ActivityNode]:
        return [node for node in pending if not node.ready_to_run(only_first=True)]

    @staticmethod
    def _raise_stuck(pending: Sequence[ActivityNode]) -> None:
        blocked = {node.name: node.ready_to_run(only_first=False) for node in pending}
        raise NodeStateError(f"No runnable activity left; blocked: {blocked}")

    def _run_node(self, node: ActivityNode) -> None:
        node.prepare_node()
        if node.is_done:
            self._logger.warning(
                "Not running %s after failed preparation: %s", node.name, node.build_failed_message()
            )
        else:
            node.run_activity()
        node.cleanup_node()

    def _resolve_build_result(self) -> BuildResult:
        if self._build_outcome is not None:
            return self._build_outcome.result
        worst = BuildResult.SUCCESS
        seen: set[int] = set()
        for node in self._nodes:
            outcome = node.build_outcome
            if id(outcome) in seen:
                continue
            seen.add(id(outcome))
            if outcome.result.is_worse_than(worst):
                worst = outcome.result
        return worst
