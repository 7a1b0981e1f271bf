from __future__ import annotations

from typing import Any, Sequence


class ActivityGraphError(Exception):
    """Base class for errors raised by activitykit itself."""


class NodeStateError(ActivityGraphError):
    """Raised when a node is driven out of order (a scheduler bug, not an activity failure)."""


class DependencyCycleError(NodeStateError):
    def __init__(self, cycle: Sequence[str]):
        self.cycle = tuple(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class AggregateFailureError(ActivityGraphError):
    def __init__(self, message: str, failed_nodes: Sequence[Any]):
        self.failed_nodes = tuple(failed_nodes)
        super().__init__(message)


class ArtifactStoreMissingError(ActivityGraphError):
    def __init__(self, node_name: str, operation: str):
        self.node_name = node_name
        self.operation = operation
        super().__init__(f"No artifact store configured for {node_name} (operation={operation})")
