"""Around-activity interceptors and the chain that composes them around a node's run step.

Hooks run in list order for every phase, after-hooks included (they are not
reversed). The run step is wrapped onion-style: interceptor 0 is outermost and
receives a `proceed` continuation that enters interceptor 1, and so on until
the wrapped activity itself runs.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Iterable, Protocol

if TYPE_CHECKING:
    from activitykit.engine.node import ActivityNode

logger = logging.getLogger(__name__)

Proceed = Callable[[], None]

HOOK_NAMES: tuple[str, ...] = (
    "handle_failed_dependencies",
    "before_activity_started",
    "run_around_activity",
    "after_activity_finished",
)


class AroundActivity(Protocol):
    def handle_failed_dependencies(self, node: "ActivityNode") -> None:
        ...

    def before_activity_started(self, node: "ActivityNode") -> None:
        ...

    def run_around_activity(self, node: "ActivityNode", proceed: Proceed) -> None:
        ...

    def after_activity_finished(self, node: "ActivityNode") -> None:
        ...


class NullAroundActivity:
    """Pass-through interceptor; subclass it and override only the hooks you need."""

    def handle_failed_dependencies(self, node: "ActivityNode") -> None:
        return

    def before_activity_started(self, node: "ActivityNode") -> None:
        return

    def run_around_activity(self, node: "ActivityNode", proceed: Proceed) -> None:
        proceed()

    def after_activity_finished(self, node: "ActivityNode") -> None:
        return


class LoggingAroundActivity(NullAroundActivity):
    def __init__(self, log: logging.Logger | None = None):
        self._logger = log or logger

    def handle_failed_dependencies(self, node: "ActivityNode") -> None:
        self._logger.warning(
            "Skipping %s: %s", node.name, node.build_failed_message() or "<no message>"
        )

    def before_activity_started(self, node: "ActivityNode") -> None:
        self._logger.info("Starting %s", node.name)

    def after_activity_finished(self, node: "ActivityNode") -> None:
        tokens: list[str] = []
        if node.started_at is not None and node.finished_at is not None:
            duration = (node.finished_at - node.started_at).total_seconds()
            tokens.append(f"duration={duration:.2f}s")
        tokens.append("failed" if node.is_failed else "ok")
        self._logger.info("Finished %s (%s)", node.name, ", ".join(tokens))
        self._logger.debug("State of %s: %s", node.name, node.build_state_history_string())


def _validate_interceptor(interceptor: object) -> None:
    for name in HOOK_NAMES:
        method = getattr(interceptor, name, None)
        if method is None or not callable(method):
            raise TypeError(
                f"Interceptor {type(interceptor).__name__} missing required method: {name}"
            )


class InterceptorChain:
    """Immutable, ordered sequence of interceptors.

    Each notify pass runs every interceptor's hook even when an earlier one
    raised; the pass returns the last raised exception (or None) so the caller
    can record it.
    """

    def __init__(
        self,
        interceptors: Iterable[AroundActivity] = (),
        *,
        log: logging.Logger | None = None,
    ):
        items = tuple(interceptors)
        for interceptor in items:
            _validate_interceptor(interceptor)
        self._interceptors: tuple[AroundActivity, ...] = items
        self._logger = log or logger

    @property
    def interceptors(self) -> tuple[AroundActivity, ...]:
        return self._interceptors

    def notify_failed_dependencies(self, node: "ActivityNode") -> Exception | None:
        return self._notify("handle_failed_dependencies", node)

    def notify_before_started(self, node: "ActivityNode") -> Exception | None:
        return self._notify("before_activity_started", node)

    def notify_after_finished(self, node: "ActivityNode") -> Exception | None:
        return self._notify("after_activity_finished", node)

    def run_around(self, node: "ActivityNode", terminal: Proceed) -> None:
        """Run `terminal` wrapped by every interceptor; exceptions propagate to the caller."""
        self._proceed(node, 0, terminal)

    def _proceed(self, node: "ActivityNode", index: int, terminal: Proceed) -> None:
        if index < len(self._interceptors):
            self._interceptors[index].run_around_activity(
                node, lambda: self._proceed(node, index + 1, terminal)
            )
        else:
            terminal()

    def _notify(self, hook: str, node: "ActivityNode") -> Exception | None:
        last_error: Exception | None = None
        for interceptor in self._interceptors:
            try:
                getattr(interceptor, hook)(node)
            except Exception as exc:
                last_error = exc
                self._logger.exception(
                    "%s failed in %s for %s", hook, type(interceptor).__name__, node.name
                )
        return last_error
