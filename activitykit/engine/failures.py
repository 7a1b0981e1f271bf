"""Failure scanning across a collection of nodes.

Used by a node to judge its own dependencies and by the top-level caller to
abort a whole run when anything failed.
"""

from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from activitykit.exceptions import AggregateFailureError


class FailureReporting(Protocol):
    @property
    def name(self) -> str:
        ...

    @property
    def is_failed(self) -> bool:
        ...

    def build_failed_message(self) -> str | None:
        ...


def find_failed_nodes(nodes: Iterable[FailureReporting]) -> list[FailureReporting] | None:
    """Failed nodes in input order, or None (never an empty list) when none failed."""
    failed = [node for node in nodes if node.is_failed]
    return failed or None


def build_failed_nodes_message(
    prefix: str, failed_nodes: Sequence[FailureReporting] | None
) -> str | None:
    if not failed_nodes:
        return None
    parts = [f"{node.name} = {node.build_failed_message()}" for node in failed_nodes]
    return f"{prefix} failed: [{', '.join(parts)}]"


def raise_on_any_failure(prefix: str, nodes: Iterable[FailureReporting]) -> None:
    failed = find_failed_nodes(nodes)
    message = build_failed_nodes_message(prefix, failed)
    if message:
        raise AggregateFailureError(message, failed or ())
