# tests/unit/test_error_handler.py
from usecase_registry.error_handler import (
    ErrorCode,
    ErrorOrigin,
    NextAction,
    make_error,
    new_correlation_id,
    summarize_for_log,
)

ENVELOPE_KEYS = {
    "code",
    "origin",
    "retryable",
    "status",
    "user_message",
    "next_actions",
    "dev_message",
    "details",
    "timestamp",
    "correlation_id",
}


def test_envelope_shape_and_defaults():
    err = make_error(code=ErrorCode.EMPTY_INPUT, origin=ErrorOrigin.INPUT, retryable=False)
    assert set(err) == ENVELOPE_KEYS
    assert err["code"] == "EMPTY_INPUT"
    assert err["origin"] == "input"
    assert err["status"] == 400
    assert err["user_message"]
    assert err["next_actions"] == ["TRY_REPHRASE", "SELECT_ROLE"]
    assert err["correlation_id"].startswith("turn-")


def test_default_statuses():
    assert make_error(code=ErrorCode.UPSTREAM_TIMEOUT, retryable=True)["status"] == 504
    assert make_error(code=ErrorCode.UPSTREAM_UNAVAILABLE, retryable=True)["status"] == 502
    assert make_error(code=ErrorCode.UPSTREAM_HTTP_ERROR, retryable=True)["status"] == 502
    assert make_error(code=ErrorCode.CONFIG_MISSING, retryable=False)["status"] == 500


def test_explicit_status_and_overrides_win():
    err = make_error(
        code=ErrorCode.UPSTREAM_HTTP_ERROR,
        origin="upstream",
        retryable=True,
        status=401,
        user_message="  Bad key.  ",
        next_actions=[NextAction.CHECK_CONFIG, "CHECK_CONFIG", "RETRY_LATER", "TRY_REPHRASE", "SELECT_ROLE"],
        details={"model": "gpt-4o-mini"},
        correlation_id="turn-abc",
        now="2025-01-01T00:00:00+00:00",
    )
    assert err["status"] == 401
    assert err["user_message"] == "Bad key."
    assert err["next_actions"] == ["CHECK_CONFIG", "RETRY_LATER", "TRY_REPHRASE"]
    assert err["details"] == {"model": "gpt-4o-mini"}
    assert err["correlation_id"] == "turn-abc"
    assert err["timestamp"] == "2025-01-01T00:00:00+00:00"


def test_unknown_code_and_origin_degrade():
    err = make_error(code="NOT_A_CODE", origin="mars", retryable=False)
    assert err["code"] == "UNKNOWN_ERROR"
    assert err["origin"] == "unknown"
    assert err["status"] == 500


def test_correlation_ids_are_unique():
    assert new_correlation_id() != new_correlation_id()
    assert new_correlation_id("store").startswith("store-")


def test_summarize_for_log():
    assert summarize_for_log(None) == ""
    err = make_error(code=ErrorCode.UPSTREAM_TIMEOUT, origin="upstream", retryable=True, correlation_id="turn-1")
    assert summarize_for_log(err) == "UPSTREAM_TIMEOUT origin=upstream status=504 retryable=True cid=turn-1"
