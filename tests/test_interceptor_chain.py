import logging

import pytest

from activitykit import ActivityNode, InterceptorChain, LoggingAroundActivity, NullAroundActivity


class Activity:
    def __init__(self, name, events):
        self.name = name
        self.events = events

    def prepare_node(self):
        pass

    def run_activity(self, context):
        self.events.append("activity")


class Wrapping(NullAroundActivity):
    def __init__(self, label, events):
        self.label = label
        self.events = events

    def run_around_activity(self, node, proceed):
        self.events.append(f"{self.label}>")
        try:
            proceed()
        finally:
            self.events.append(f"<{self.label}")


class Replacing(NullAroundActivity):
    def run_around_activity(self, node, proceed):
        node.add_passed_test("replaced")


def test_run_around_nests_interceptor_zero_outermost():
    events = []
    chain = InterceptorChain([Wrapping("a", events), Wrapping("b", events), Wrapping("c", events)])
    node = ActivityNode(Activity("n", events))

    chain.run_around(node, lambda: events.append("terminal"))

    assert events == ["a>", "b>", "c>", "terminal", "<c", "<b", "<a"]


def test_empty_chain_calls_terminal_directly():
    events = []
    node = ActivityNode(Activity("n", events))

    InterceptorChain().run_around(node, lambda: events.append("terminal"))

    assert events == ["terminal"]


def test_interceptor_can_replace_the_run_step():
    events = []
    node = ActivityNode(Activity("n", events), [Replacing()])

    node.run_activity()

    assert events == []
    assert [r.description for r in node.test_results] == ["replaced"]
    assert node.finished_at is not None


def test_exception_inside_around_chain_becomes_run_error():
    events = []

    class Exploding(NullAroundActivity):
        def run_around_activity(self, node, proceed):
            raise ValueError("wrapper broke")

    log = logging.getLogger("test.interceptor_chain.exploding")
    log.handlers.clear()
    log.addHandler(logging.NullHandler())
    log.propagate = False
    node = ActivityNode(Activity("n", events), [Wrapping("a", events), Exploding()], log=log)

    node.run_activity()

    assert events == ["a>", "<a"]
    assert node.build_failed_message() == "wrapper broke"
    assert node.failure_phase == "run"


def test_notify_pass_returns_last_error_and_runs_every_hook():
    calls = []

    class Failing(NullAroundActivity):
        def __init__(self, label):
            self.label = label

        def after_activity_finished(self, node):
            calls.append(self.label)
            raise RuntimeError(self.label)

    log = logging.getLogger("test.interceptor_chain.notify")
    log.handlers.clear()
    log.addHandler(logging.NullHandler())
    log.propagate = False
    chain = InterceptorChain([Failing("x"), NullAroundActivity(), Failing("y")], log=log)
    node = ActivityNode(Activity("n", []))

    error = chain.notify_after_finished(node)

    assert calls == ["x", "y"]
    assert str(error) == "y"


def test_notify_pass_without_failures_returns_none():
    chain = InterceptorChain([NullAroundActivity(), NullAroundActivity()])

    assert chain.notify_before_started(ActivityNode(Activity("n", []))) is None
    assert len(chain.interceptors) == 2


def test_chain_rejects_objects_missing_hooks():
    class Partial:
        def before_activity_started(self, node):
            pass

    with pytest.raises(TypeError, match="missing required method: handle_failed_dependencies"):
        InterceptorChain([Partial()])


def test_logging_interceptor_reports_lifecycle(caplog):
    logger = logging.getLogger("test.interceptor_chain.logging")
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG)
    logger.propagate = True
    node = ActivityNode(Activity("compile", []), [LoggingAroundActivity(logger)])

    with caplog.at_level(logging.DEBUG, logger="test.interceptor_chain.logging"):
        node.run_activity()

    messages = [record.getMessage() for record in caplog.records]
    assert "Starting compile" in messages
    assert any(m.startswith("Finished compile (duration=") and m.endswith(", ok)") for m in messages)
    assert any(m.startswith("State of compile: Created: ") for m in messages)


def test_logging_interceptor_reports_skipped_node(caplog):
    logger = logging.getLogger("test.interceptor_chain.skipped")
    logger.handlers.clear()
    logger.propagate = True

    class Failing(Activity):
        def run_activity(self, context):
            raise RuntimeError("boom")

    quiet = logging.getLogger("test.interceptor_chain.quiet")
    quiet.handlers.clear()
    quiet.addHandler(logging.NullHandler())
    quiet.propagate = False
    upstream = ActivityNode(Failing("upstream", []), log=quiet)
    node = ActivityNode(Activity("downstream", []), [LoggingAroundActivity(logger)])
    node.add_dependency(upstream)
    upstream.run_activity()

    with caplog.at_level(logging.WARNING, logger="test.interceptor_chain.skipped"):
        node.run_activity()

    assert any(
        record.getMessage() == "Skipping downstream: Dependencies failed: [upstream = boom]"
        for record in caplog.records
    )
