"""Shared build outcome, mutated by every node of a run."""

from __future__ import annotations

import enum
import threading


class BuildResult(enum.Enum):
    SUCCESS = 0
    UNSTABLE = 1
    FAILURE = 2

    def is_worse_than(self, other: "BuildResult") -> bool:
        return self.value > other.value


class BuildOutcome:
    """Thread-safe holder of the overall build result.

    The result only ever gets worse: once FAILURE is recorded a later UNSTABLE
    is ignored. `lock` is exposed so callers can serialize other access to the
    shared build (test-record extraction) against result updates.
    """

    def __init__(self, result: BuildResult = BuildResult.SUCCESS):
        if not isinstance(result, BuildResult):
            raise TypeError(f"result must be a BuildResult (type={type(result).__name__})")
        self._result = result
        self.lock = threading.RLock()

    @property
    def result(self) -> BuildResult:
        with self.lock:
            return self._result

    def set_result(self, result: BuildResult) -> BuildResult:
        if not isinstance(result, BuildResult):
            raise TypeError(f"result must be a BuildResult (type={type(result).__name__})")
        with self.lock:
            if result.is_worse_than(self._result):
                self._result = result
            return self._result

    def mark_failure(self) -> BuildResult:
        return self.set_result(BuildResult.FAILURE)

    def mark_unstable(self) -> BuildResult:
        return self.set_result(BuildResult.UNSTABLE)

    def __repr__(self) -> str:
        return f"BuildOutcome(result={self.result.name})"
