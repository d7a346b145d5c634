import json
import logging

from cush.core.logging import (
    ContextFilter,
    DevelopmentFormatter,
    LogContext,
    StructuredFormatter,
    get_logger,
)


def make_record(**extra):
    logger = logging.getLogger("cush.test")
    record = logger.makeRecord("cush.test", logging.INFO, __file__, 1, "payment %s", ("pi_1",), None, extra=extra)
    ContextFilter().filter(record)
    return record


def test_get_logger_namespace():
    assert get_logger("services.auth").name == "cush.services.auth"


def test_structured_output_carries_context_and_extras():
    with LogContext(user_id="u1", path="/api/payments"):
        record = make_record(payment_id="pi_1")

    entry = json.loads(StructuredFormatter().format(record))
    assert entry["msg"] == "payment pi_1"
    assert entry["level"] == "INFO"
    assert entry["user_id"] == "u1"
    assert entry["path"] == "/api/payments"
    assert entry["payment_id"] == "pi_1"


def test_context_is_reset_after_block():
    with LogContext(user_id="u1"):
        with LogContext(role="admin"):
            inner = make_record()
        outer = make_record()
    after = make_record()

    assert (inner.user_id, inner.role) == ("u1", "admin")
    assert not hasattr(outer, "role")
    assert not hasattr(after, "user_id")


def test_explicit_extra_wins_over_context():
    with LogContext(user_id="from-context"):
        record = make_record(user_id="explicit")
    assert record.user_id == "explicit"


def test_credentials_are_masked():
    record = make_record(password="hunter2", reset_token="abc", user_id="u1")
    line = DevelopmentFormatter().format(record)
    assert "hunter2" not in line
    assert "abc" not in line
    assert "user_id=u1" in line
