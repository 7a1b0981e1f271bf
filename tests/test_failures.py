import logging

import pytest

from activitykit import (
    ActivityNode,
    AggregateFailureError,
    build_failed_nodes_message,
    find_failed_nodes,
    raise_on_any_failure,
)


class Activity:
    def __init__(self, name, error=None):
        self.name = name
        self.error = error

    def prepare_node(self):
        pass

    def run_activity(self, context):
        if self.error is not None:
            raise self.error


def _node(name, error=None):
    log = logging.getLogger("test.failures")
    log.handlers.clear()
    log.addHandler(logging.NullHandler())
    log.propagate = False
    node = ActivityNode(Activity(name, error), log=log)
    node.run_activity()
    return node


def test_find_failed_nodes_returns_none_when_nothing_failed():
    assert find_failed_nodes([_node("a"), _node("b")]) is None
    assert find_failed_nodes([]) is None


def test_find_failed_nodes_keeps_input_order():
    a = _node("a", RuntimeError("x"))
    b = _node("b")
    c = _node("c", RuntimeError("y"))

    assert find_failed_nodes([c, b, a]) == [c, a]


def test_message_format_lists_every_failed_node():
    a = _node("a", RuntimeError("x"))
    c = _node("c", RuntimeError("y"))

    assert build_failed_nodes_message("Stage", [a, c]) == "Stage failed: [a = x, c = y]"


def test_message_is_none_for_empty_input():
    assert build_failed_nodes_message("Stage", None) is None
    assert build_failed_nodes_message("Stage", []) is None


def test_nested_dependency_messages():
    a = _node("a", RuntimeError("x"))
    b = ActivityNode(Activity("b"))
    b.add_dependency(a)
    b.run_activity()

    assert build_failed_nodes_message("All", [a, b]) == (
        "All failed: [a = x, b = Dependencies failed: [a = x]]"
    )


def test_raise_on_any_failure_raises_with_failed_nodes():
    a = _node("a")
    b = _node("b", RuntimeError("broken"))

    with pytest.raises(AggregateFailureError, match=r"^Build failed: \[b = broken\]$") as excinfo:
        raise_on_any_failure("Build", [a, b])

    assert excinfo.value.failed_nodes == (b,)


def test_raise_on_any_failure_is_silent_when_all_succeeded():
    raise_on_any_failure("Build", [_node("a"), _node("b")])
