"""Engine primitives: nodes, interceptor chains, failure scanning and the graph runner."""

from activitykit.engine.failures import (
    build_failed_nodes_message,
    find_failed_nodes,
    raise_on_any_failure,
)
from activitykit.engine.interceptors import (
    AroundActivity,
    InterceptorChain,
    LoggingAroundActivity,
    NullAroundActivity,
)
from activitykit.engine.node import ActivityNode
from activitykit.engine.runner import GraphRunner, GraphRunResult

__all__ = [
    "ActivityNode",
    "AroundActivity",
    "GraphRunResult",
    "GraphRunner",
    "InterceptorChain",
    "LoggingAroundActivity",
    "NullAroundActivity",
    "build_failed_nodes_message",
    "find_failed_nodes",
    "raise_on_any_failure",
]
