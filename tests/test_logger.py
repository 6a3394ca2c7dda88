from __future__ import annotations

import pytest

from pr_line_counter.logger import get_logger, log_failure, log_success, log_timing, render_context


@pytest.fixture
def records():
    logger = get_logger()
    captured = []
    sink_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(sink_id)


def test_render_context_sorts_keys():
    assert render_context({"repository": "acme/widgets", "delivery_id": "d-1"}) == (
        "delivery_id=d-1 repository=acme/widgets"
    )
    assert render_context({}) == ""


def test_log_success_uses_success_level(records):
    log_success(get_logger(), "Processed PR #42", repository="acme/widgets", delivery_id=None)

    [record] = records
    assert record["level"].name == "SUCCESS"
    assert record["message"] == "Processed PR #42"
    assert record["extra"] == {"repository": "acme/widgets"}


def test_log_failure_binds_error_type(records):
    log_failure(get_logger(), "Could not mint installation token", KeyError("token"), pull_number=42)

    [record] = records
    assert record["level"].name == "ERROR"
    assert record["message"] == "Could not mint installation token: 'token'"
    assert record["extra"] == {"pull_number": 42, "error_type": "KeyError"}


def test_log_timing_reraises_and_tags_step(records):
    with pytest.raises(ValueError):
        with log_timing(get_logger(), "post_summary", pull_number=42) as step_logger:
            step_logger.info("posting")
            raise ValueError("boom")

    assert [r["level"].name for r in records] == ["DEBUG", "INFO", "WARNING"]
    assert all(r["extra"]["step"] == "post_summary" for r in records)
    assert "ValueError" in records[-1]["message"]
