import json
import logging

from prometheus_client import CollectorRegistry

from isitspam.logs import JsonFormatter, TextFormatter
from isitspam.metrics import MetricsManager


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="isitspam.gate",
        level=logging.ERROR,
        pathname=__file__,
        lineno=1,
        msg="Spam check API error: %s",
        args=("boom",),
        exc_info=None,
    )
    record.__dict__.update(extra)
    return record


def test_json_formatter_emits_core_fields():
    """Level, logger and rendered message are always present."""
    payload = json.loads(JsonFormatter().format(make_record()))

    assert payload["level"] == "ERROR"
    assert payload["logger"] == "isitspam.gate"
    assert payload["msg"] == "Spam check API error: boom"
    assert isinstance(payload["time_ms"], int)
    assert "lineno" not in payload
    assert "spam_check" not in payload


def test_json_formatter_groups_spam_check_context():
    """Gate context is nested under `spam_check`; other extras stay on top."""
    record = make_record(
        path="/contact",
        method="POST",
        outcome="api_error",
        status_code=503,
        redirect_to=None,
        request_id="abc",
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload["spam_check"] == {
        "outcome": "api_error",
        "path": "/contact",
        "method": "POST",
        "status_code": 503,
    }
    assert payload["request_id"] == "abc"
    assert "path" not in payload


def test_json_formatter_keeps_core_fields_over_extras():
    """An `extra` named like a core field does not replace it."""
    payload = json.loads(JsonFormatter().format(make_record(level="custom")))

    assert payload["level"] == "ERROR"


def test_text_formatter_appends_spam_check_context():
    """Plain text lines end with key=value context pairs."""
    record = make_record(outcome="spam", path="/contact", redirect_to="/thanks")

    line = TextFormatter().format(record)

    assert line == (
        "ERROR isitspam.gate Spam check API error: boom "
        "outcome=spam path=/contact redirect_to=/thanks"
    )


def test_metrics_render_outcomes():
    """Recorded outcomes show up in the exposition output."""
    manager = MetricsManager(registry=CollectorRegistry())

    manager.record("spam")
    manager.record("spam")

    assert manager.registry.get_sample_value(
        "spam_checks_total", {"outcome": "spam"}
    ) == 2
    assert b"spam_checks_total" in manager.render()
