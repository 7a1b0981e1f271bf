import pytest

from activitykit.logging_utils import setup_run_logger


def test_run_logger_writes_utf8_file(tmp_path):
    logger, log_file = setup_run_logger(str(tmp_path / "logs"), "build-42")
    try:
        logger.info("Published report → résumé.html")
        for handler in logger.handlers:
            handler.flush()

        with open(log_file, "r", encoding="utf-8") as file:
            content = file.read()
    finally:
        for handler in logger.handlers:
            handler.close()

    assert log_file.endswith("build-42_activities.log")
    assert "Operational logging initialized for run build-42" in content
    assert "| INFO | Published report → résumé.html" in content
    assert logger.propagate is False


def test_run_logger_replaces_handlers_on_reuse(tmp_path):
    first, _ = setup_run_logger(str(tmp_path), "again")
    second, _ = setup_run_logger(str(tmp_path), "again")
    try:
        assert first is second
        assert len(second.handlers) == 2
    finally:
        for handler in second.handlers:
            handler.close()


def test_run_logger_requires_run_id(tmp_path):
    with pytest.raises(ValueError, match="run_id"):
        setup_run_logger(str(tmp_path), " ")
