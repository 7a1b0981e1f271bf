"""Per-activity aggregation of already-parsed test records."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence


@dataclass(frozen=True)
class TestResult:
    """One test outcome.

    `failing_age` is None for a passed test, 0 for a test that started failing
    in this run and N > 0 for a test that has been failing for N runs.
    """

    __test__ = False

    description: str
    failing_age: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.description, str):
            raise TypeError(
                f"TestResult.description must be a string (type={type(self.description).__name__})"
            )
        if self.failing_age is not None:
            if isinstance(self.failing_age, bool) or not isinstance(self.failing_age, int):
                raise TypeError(
                    f"TestResult.failing_age must be an int or None (type={type(self.failing_age).__name__})"
                )
            if self.failing_age < 0:
                raise ValueError(f"TestResult.failing_age must be >= 0 (got {self.failing_age})")

    @property
    def failed(self) -> bool:
        return self.failing_age is not None

    @property
    def new_failing(self) -> bool:
        return self.failing_age == 0

    @property
    def still_failing(self) -> bool:
        return self.failing_age is not None and self.failing_age > 0


@dataclass(frozen=True)
class TestSummary:
    __test__ = False

    count_total: int = 0
    count_passed: int = 0
    count_failed: int = 0

    @property
    def empty(self) -> bool:
        return self.count_total == 0

    @property
    def stable(self) -> bool:
        return self.count_failed == 0

    def as_dict(self) -> dict[str, int | bool]:
        return {
            "total": self.count_total,
            "passed": self.count_passed,
            "failed": self.count_failed,
            "stable": self.stable,
        }


class TestResultAggregator:
    __test__ = False

    def __init__(self) -> None:
        self._results: list[TestResult] = []

    def add(self, result: TestResult) -> None:
        if not isinstance(result, TestResult):
            raise TypeError(f"Expected TestResult (type={type(result).__name__})")
        self._results.append(result)

    def add_passed(self, description: str) -> None:
        self.add(TestResult(description))

    def add_failed(self, description: str, failing_age: int) -> None:
        self.add(TestResult(description, failing_age))

    @property
    def test_results(self) -> tuple[TestResult, ...]:
        return tuple(self._results)

    @property
    def summary(self) -> TestSummary:
        failed = sum(1 for result in self._results if result.failed)
        return TestSummary(
            count_total=len(self._results),
            count_passed=len(self._results) - failed,
            count_failed=failed,
        )

    @property
    def stable(self) -> bool:
        return not any(result.failed for result in self._results)

    @property
    def new_failing(self) -> tuple[TestResult, ...]:
        return tuple(result for result in self._results if result.new_failing)

    @property
    def still_failing(self) -> tuple[TestResult, ...]:
        return tuple(result for result in self._results if result.still_failing)


@dataclass(frozen=True)
class TestCaseRecord:
    """A parsed test case as reported by the external test-record source."""

    __test__ = False

    class_name: str
    full_name: str
    age: int = 0


class TestRecordSource(Protocol):
    def passed_tests(self) -> Sequence[TestCaseRecord]:
        ...

    def failed_tests(self) -> Sequence[TestCaseRecord]:
        ...


def _compile_optional(pattern: str | None, label: str) -> re.Pattern[str] | None:
    if pattern is None:
        return None
    if not isinstance(pattern, str):
        raise TypeError(f"{label} must be a string or None (type={type(pattern).__name__})")
    if not pattern.strip():
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"Invalid {label}: {pattern!r} ({exc})") from exc


def filter_test_cases(
    records: Iterable[TestCaseRecord],
    *,
    include_regex: str | None = None,
    exclude_regex: str | None = None,
) -> list[TestCaseRecord]:
    """Keep records whose class name fully matches include and does not fully match exclude."""

    include = _compile_optional(include_regex, "include_regex")
    exclude = _compile_optional(exclude_regex, "exclude_regex")

    kept: list[TestCaseRecord] = []
    for record in records:
        if include is not None and not include.fullmatch(record.class_name):
            continue
        if exclude is not None and exclude.fullmatch(record.class_name):
            continue
        kept.append(record)
    return kept
