"""Capability interfaces implemented by the activities a node wraps."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Protocol

if TYPE_CHECKING:
    from activitykit.engine.node import ActivityNode


class Activity(Protocol):
    name: str

    def prepare_node(self) -> None:
        """Acquire node-scoped resources (workspace, tools) before running."""

    def run_activity(self, context: "ActivityNode") -> None:
        """Do the actual work. `context` exposes publishing, stashing and test recording."""


class ActivityWithCleanup(Protocol):
    def cleanup_node(self) -> None:
        ...


def resolve_cleanup(activity: object) -> Callable[[], None] | None:
    """Return the activity's bound cleanup callable, or None when it has no cleanup capability."""

    cleanup = getattr(activity, "cleanup_node", None)
    if cleanup is None:
        return None
    if not callable(cleanup):
        raise TypeError(
            f"Activity cleanup_node must be callable (type={type(cleanup).__name__})"
        )
    return cleanup


def activity_name(activity: object) -> str:
    name = getattr(activity, "name", None)
    if not isinstance(name, str) or not name.strip():
        raise TypeError(
            f"Activity name must be a non-empty string (activity={type(activity).__name__})"
        )
    return name.strip()
