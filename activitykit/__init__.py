"""Dependency-aware activity scheduling kernel.

Nodes wrap build/test activities, carry dependency edges with per-edge failure
propagation, run their activity inside a chain of around-interceptors and
collect published artifacts and test results. Execution substrates, artifact
storage and result reporting are injected collaborators.
"""

from activitykit.activity import Activity, ActivityWithCleanup
from activitykit.artifact_store import ArtifactSettings, ArtifactStore, FileSetDefaults
from activitykit.build_result import BuildOutcome, BuildResult
from activitykit.config import ActivityGraphConfig, RunnerSettings
from activitykit.engine import (
    ActivityNode,
    AroundActivity,
    GraphRunner,
    GraphRunResult,
    InterceptorChain,
    LoggingAroundActivity,
    NullAroundActivity,
    build_failed_nodes_message,
    find_failed_nodes,
    raise_on_any_failure,
)
from activitykit.exceptions import (
    ActivityGraphError,
    AggregateFailureError,
    ArtifactStoreMissingError,
    DependencyCycleError,
    NodeStateError,
)
from activitykit.published import Published, PublishedFile, PublishedLink
from activitykit.testresults import (
    TestCaseRecord,
    TestRecordSource,
    TestResult,
    TestResultAggregator,
    TestSummary,
)

__all__ = [
    "Activity",
    "ActivityGraphConfig",
    "ActivityGraphError",
    "ActivityNode",
    "ActivityWithCleanup",
    "AggregateFailureError",
    "AroundActivity",
    "ArtifactSettings",
    "ArtifactStore",
    "ArtifactStoreMissingError",
    "BuildOutcome",
    "BuildResult",
    "DependencyCycleError",
    "FileSetDefaults",
    "GraphRunResult",
    "GraphRunner",
    "InterceptorChain",
    "LoggingAroundActivity",
    "NodeStateError",
    "NullAroundActivity",
    "Published",
    "PublishedFile",
    "PublishedLink",
    "RunnerSettings",
    "TestCaseRecord",
    "TestRecordSource",
    "TestResult",
    "TestResultAggregator",
    "TestSummary",
    "build_failed_nodes_message",
    "find_failed_nodes",
    "raise_on_any_failure",
]
