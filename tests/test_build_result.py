import threading

import pytest

from activitykit.build_result import BuildOutcome, BuildResult


def test_outcome_starts_successful():
    assert BuildOutcome().result is BuildResult.SUCCESS


def test_unstable_then_failure_ends_failed():
    outcome = BuildOutcome()

    outcome.mark_unstable()
    assert outcome.result is BuildResult.UNSTABLE
    outcome.mark_failure()
    assert outcome.result is BuildResult.FAILURE


def test_failure_is_never_downgraded():
    outcome = BuildOutcome()

    outcome.mark_failure()
    outcome.mark_unstable()
    outcome.set_result(BuildResult.SUCCESS)

    assert outcome.result is BuildResult.FAILURE


def test_set_result_rejects_non_enum():
    with pytest.raises(TypeError, match="BuildResult"):
        BuildOutcome().set_result("FAILURE")


def test_concurrent_updates_keep_worst_result():
    outcome = BuildOutcome()
    barrier = threading.Barrier(8)

    def worker(index: int) -> None:
        barrier.wait()
        if index == 3:
            outcome.mark_failure()
        else:
            outcome.mark_unstable()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcome.result is BuildResult.FAILURE
