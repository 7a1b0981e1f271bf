"""ActivityNode: one schedulable activity with dependency edges and a run protocol.

A node's lifecycle is `prepare_node -> run_activity -> cleanup_node`, driven by a
caller once every dependency is done. Failures of the wrapped activity and of the
interceptors are captured on the node and surfaced through `is_failed` and
`build_failed_message`; only scheduler-ordering mistakes raise (`NodeStateError`).
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import types
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from activitykit.activity import Activity, activity_name, resolve_cleanup
from activitykit.artifact_store import ArtifactSettings, ArtifactStore
from activitykit.build_result import BuildOutcome
from activitykit.engine.failures import build_failed_nodes_message, find_failed_nodes
from activitykit.engine.interceptors import AroundActivity, InterceptorChain
from activitykit.exceptions import ArtifactStoreMissingError, NodeStateError
from activitykit.published import Published, PublishedLink
from activitykit.testresults import (
    TestRecordSource,
    TestResult,
    TestResultAggregator,
    TestSummary,
    filter_test_cases,
)

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"
UNKNOWN_FAILURE_MESSAGE = "Unknown (BUG?!)"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_date(value: datetime | None) -> str:
    return value.strftime(DATE_FORMAT) if value else ""


def error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ActivityNode:
    def __init__(
        self,
        activity: Activity,
        around_activities: Iterable[AroundActivity] = (),
        *,
        build_outcome: BuildOutcome | None = None,
        artifact_store: ArtifactStore | None = None,
        test_record_source: TestRecordSource | None = None,
        artifact_settings: ArtifactSettings | None = None,
        log: logging.Logger | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._activity = activity
        self._name = activity_name(activity)
        self._cleanup = resolve_cleanup(activity)
        self._logger = log or logger
        self._chain = InterceptorChain(around_activities, log=self._logger)
        self._build_outcome = build_outcome if build_outcome is not None else BuildOutcome()
        self._artifact_store = artifact_store
        self._test_record_source = test_record_source
        self._artifact_settings = artifact_settings or ArtifactSettings()
        self._clock = clock

        # Keys are compared by identity; insertion order drives readiness and message order.
        self._depends_on: dict[ActivityNode, bool] = {}

        self._created_at = clock()
        self._prepare_error: Exception | None = None
        self._started_at: datetime | None = None
        self._finished_at: datetime | None = None
        self._run_error: Exception | None = None
        self._failed_dependencies: list[ActivityNode] | None = None
        self._around_error: Exception | None = None
        self._cleanup_error: Exception | None = None

        self._published: list[Published] = []
        self._tests = TestResultAggregator()

        self._state_lock = threading.RLock()
        self._lifecycle_lock = threading.RLock()

    def __repr__(self) -> str:
        return f"ActivityNode(name={self._name!r})"

    # -- identity ---------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def activity(self) -> Activity:
        return self._activity

    @property
    def build_outcome(self) -> BuildOutcome:
        return self._build_outcome

    @property
    def interceptors(self) -> tuple[AroundActivity, ...]:
        return self._chain.interceptors

    @property
    def created_at(self) -> datetime:
        return self._created_at

    # -- dependency edges -------------------------------------------------

    def add_dependency(self, node: "ActivityNode", propagate_failure: bool = True) -> None:
        """Depend on `node`. Re-adding an edge can upgrade propagation to True but never downgrade it."""
        if not isinstance(node, ActivityNode):
            raise TypeError(f"Dependency must be an ActivityNode (type={type(node).__name__})")
        if node is self:
            raise ValueError(f"{self._name} cannot depend on itself")
        with self._state_lock:
            current = self._depends_on.get(node)
            if not current:
                self._depends_on[node] = bool(propagate_failure)

    @property
    def dependencies(self) -> Mapping["ActivityNode", bool]:
        with self._state_lock:
            return types.MappingProxyType(dict(self._depends_on))

    def ready_to_run(self, *, only_first: bool = False) -> list[str]:
        """Names of dependencies that are not done yet; empty when ready."""
        with self._state_lock:
            dependencies = list(self._depends_on)
        not_done: list[str] = []
        for dependency in dependencies:
            if not dependency.is_done:
                not_done.append(dependency.name)
                if only_first:
                    break
        return not_done

    def _find_failed_dependencies(self) -> list["ActivityNode"] | None:
        with self._state_lock:
            propagating = dict.fromkeys(
                node for node, propagate in self._depends_on.items() if propagate
            )
        return find_failed_nodes(propagating)

    # -- state ------------------------------------------------------------

    @property
    def started_at(self) -> datetime | None:
        with self._state_lock:
            return self._started_at

    @property
    def finished_at(self) -> datetime | None:
        with self._state_lock:
            return self._finished_at

    @property
    def prepare_error(self) -> Exception | None:
        with self._state_lock:
            return self._prepare_error

    def set_prepare_error(self, error: Exception) -> None:
        if error is None:
            raise ValueError("prepare error is None")
        with self._state_lock:
            self._prepare_error = error

    @property
    def failed_dependencies(self) -> tuple["ActivityNode", ...] | None:
        with self._state_lock:
            return tuple(self._failed_dependencies) if self._failed_dependencies else None

    @property
    def run_error(self) -> Exception | None:
        with self._state_lock:
            return self._run_error

    @property
    def around_error(self) -> Exception | None:
        with self._state_lock:
            return self._around_error

    @property
    def cleanup_error(self) -> Exception | None:
        with self._state_lock:
            return self._cleanup_error

    @property
    def is_failed(self) -> bool:
        with self._state_lock:
            return bool(
                self._prepare_error is not None
                or self._failed_dependencies
                or self._run_error is not None
                or self._around_error is not None
            )

    @property
    def is_done(self) -> bool:
        with self._state_lock:
            return self.is_failed or self._finished_at is not None

    @property
    def is_running(self) -> bool:
        with self._state_lock:
            return self._started_at is not None and not self.is_done

    @property
    def failure_phase(self) -> str | None:
        with self._state_lock:
            if self._prepare_error is not None:
                return "prepare"
            if self._failed_dependencies:
                return "dependencies"
            if self._run_error is not None:
                return "run"
            if self._around_error is not None:
                return "around"
            return None

    def build_failed_message(self) -> str | None:
        with self._state_lock:
            if not self.is_failed:
                return None
            if self._prepare_error is not None:
                return error_message(self._prepare_error)
            if self._failed_dependencies:
                return build_failed_nodes_message("Dependencies", self._failed_dependencies)
            if self._run_error is not None:
                return error_message(self._run_error)
            if self._around_error is not None:
                return error_message(self._around_error)
            return UNKNOWN_FAILURE_MESSAGE

    def build_state_history_string(self) -> str:
        parts = [f"Created: {format_date(self._created_at)}"]
        with self._state_lock:
            if self.is_failed:
                parts.append(f"Failed: {self.build_failed_message()}")
            if self._started_at:
                parts.append(f"Started: {format_date(self._started_at)}")
            if self._finished_at:
                parts.append(f"Finished: {format_date(self._finished_at)}")
        summary = self.test_summary
        if not summary.empty:
            parts.append(
                f"TestResults: {summary.count_passed}/{summary.count_total} ({summary.count_failed} failed)"
            )
        return " | ".join(parts)

    # -- lifecycle --------------------------------------------------------

    def prepare_node(self) -> None:
        with self._lifecycle_lock:
            try:
                self._activity.prepare_node()
            except Exception as exc:
                with self._state_lock:
                    self._prepare_error = exc
                self._logger.exception("prepare_node failed for %s", self._name)

    def run_activity(self) -> None:
        with self._lifecycle_lock:
            not_done = self.ready_to_run(only_first=True)
            if not_done:
                raise NodeStateError(
                    f"At least one not done dependency exists for {self._name}: {not_done}"
                )
            if self.is_done:
                raise NodeStateError(f"Already done: {self._name}")

            failed_dependencies = self._find_failed_dependencies()
            with self._state_lock:
                self._failed_dependencies = failed_dependencies
            if failed_dependencies:
                self._record_around_error(self._chain.notify_failed_dependencies(self))
                return

            self._record_around_error(self._chain.notify_before_started(self))
            if self.around_error is not None:
                return

            try:
                with self._state_lock:
                    self._started_at = self._clock()
                self._chain.run_around(self, lambda: self._activity.run_activity(self))
            except Exception as exc:
                with self._state_lock:
                    self._run_error = exc
                self._logger.exception("run_activity failed for %s", self._name)
            finally:
                with self._state_lock:
                    self._finished_at = self._clock()

            if self.run_error is not None:
                self._build_outcome.mark_failure()
            elif not self.test_summary.stable:
                self._build_outcome.mark_unstable()

            self._record_around_error(self._chain.notify_after_finished(self))

    def _record_around_error(self, error: Exception | None) -> None:
        if error is not None:
            with self._state_lock:
                self._around_error = error

    def cleanup_node(self) -> None:
        with self._lifecycle_lock:
            if self._cleanup is None:
                return
            try:
                self._cleanup()
            except Exception as exc:
                with self._state_lock:
                    self._cleanup_error = exc
                self._logger.exception("cleanup_node failed for %s", self._name)

    # -- artifacts --------------------------------------------------------

    def _require_store(self, operation: str) -> ArtifactStore:
        if self._artifact_store is None:
            raise ArtifactStoreMissingError(self._name, operation)
        return self._artifact_store

    def archive_files(
        self,
        includes: Iterable[str] | None = None,
        excludes: Iterable[str] | None = None,
        use_default_excludes: bool | None = None,
        allow_empty: bool | None = None,
    ) -> None:
        store = self._require_store("archive_files")
        store.archive_files(
            *self._artifact_settings.archive.resolve(
                includes, excludes, use_default_excludes, allow_empty
            )
        )

    def stash(
        self,
        stash_id: str,
        includes: Iterable[str] | None = None,
        excludes: Iterable[str] | None = None,
        use_default_excludes: bool | None = None,
        allow_empty: bool | None = None,
    ) -> None:
        if not isinstance(stash_id, str) or not stash_id.strip():
            raise ValueError("stash_id must be a non-empty string")
        store = self._require_store("stash")
        store.stash(
            stash_id.strip(),
            *self._artifact_settings.stash.resolve(
                includes, excludes, use_default_excludes, allow_empty
            ),
        )

    def unstash(self, stash_id: str) -> None:
        if not isinstance(stash_id, str) or not stash_id.strip():
            raise ValueError("stash_id must be a non-empty string")
        self._require_store("unstash").unstash(stash_id.strip())

    def archive_file(self, path: str) -> Published:
        published = self._require_store("archive_file").archive_file(path)
        if not isinstance(published, Published):
            raise TypeError(
                f"Artifact store returned non-Published for {path} (type={type(published).__name__})"
            )
        return published

    def archive_log_file(self, path: str) -> Published:
        return self.archive_file(path)

    def publish_file(self, path: str, title: str | None = None) -> None:
        self.add_published(self.archive_file(path), title)

    def publish_log_file(self, path: str, title: str | None = None) -> None:
        self.add_published(self.archive_log_file(path), title)

    def publish_link(self, url: str, title: str | None = None) -> None:
        self.add_published(PublishedLink(url), title)

    def add_published(self, item: Published, title: str | None = None) -> None:
        if not isinstance(item, Published):
            raise TypeError(f"Expected Published (type={type(item).__name__})")
        if title:
            if dataclasses.is_dataclass(item):
                item = dataclasses.replace(item, title=title)
            else:
                item.title = title
        with self._state_lock:
            self._published.append(item)

    @property
    def published(self) -> tuple[Published, ...]:
        with self._state_lock:
            return tuple(self._published)

    # -- test results -----------------------------------------------------

    def add_passed_test(self, description: str) -> None:
        with self._state_lock:
            self._tests.add_passed(description)

    def add_failed_test(self, description: str, failing_age: int) -> None:
        with self._state_lock:
            self._tests.add_failed(description, failing_age)

    def add_test_records(
        self,
        source: TestRecordSource | None = None,
        include_regex: str | None = None,
        exclude_regex: str | None = None,
    ) -> int:
        """Copy filtered records from the test-record source; returns how many were added."""
        source = source if source is not None else self._test_record_source
        if source is None:
            raise ValueError(f"No test record source configured for {self._name}")

        added = 0
        # The source reads from the shared build, which parallel nodes update as well.
        with self._build_outcome.lock:
            passed = filter_test_cases(
                source.passed_tests() or (),
                include_regex=include_regex,
                exclude_regex=exclude_regex,
            )
            failed = filter_test_cases(
                source.failed_tests() or (),
                include_regex=include_regex,
                exclude_regex=exclude_regex,
            )
            for record in passed:
                self.add_passed_test(record.full_name)
                added += 1
            for record in failed:
                self.add_failed_test(record.full_name, record.age)
                added += 1
        self._logger.debug("Added %d test records to %s", added, self._name)
        return added

    @property
    def test_summary(self) -> TestSummary:
        with self._state_lock:
            return self._tests.summary

    @property
    def test_results(self) -> tuple[TestResult, ...]:
        with self._state_lock:
            return self._tests.test_results

    @property
    def new_failing_test_results(self) -> tuple[TestResult, ...]:
        with self._state_lock:
            return self._tests.new_failing

    @property
    def still_failing_test_results(self) -> tuple[TestResult, ...]:
        with self._state_lock:
            return self._tests.still_failing

    def as_dict(self) -> dict[str, Any]:
        """JSON-friendly snapshot of the node for reports."""
        with self._state_lock:
            return {
                "name": self._name,
                "created_at": self._created_at.isoformat(),
                "started_at": self._started_at.isoformat() if self._started_at else None,
                "finished_at": self._finished_at.isoformat() if self._finished_at else None,
                "failed": self.is_failed,
                "failure_phase": self.failure_phase,
                "failed_message": self.build_failed_message(),
                "cleanup_error": error_message(self._cleanup_error) if self._cleanup_error else None,
                "dependencies": {node.name: propagate for node, propagate in self._depends_on.items()},
                "published": [
                    {"locator": item.locator, "title": item.title} for item in self._published
                ],
                "tests": self._tests.summary.as_dict(),
            }
