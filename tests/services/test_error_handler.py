"""Tests for the error taxonomy and error tracking"""

import logging
from datetime import datetime, timedelta

import pytest

from agent_mcp.services.error_handler import (
    OUTCOME_NOT_EXECUTED,
    OUTCOME_REVERTED,
    OUTCOME_UNKNOWN,
    UNKNOWN_TOOL_KEY,
    ConstraintViolation,
    ErrorHandler,
    InvalidInput,
    MissingField,
    Timeout,
    TypeMismatch,
    UnknownTool,
    UpstreamFailure,
)


class TestErrorTypes:
    def test_invalid_input_wraps_validation_error(self):
        error = InvalidInput(TypeMismatch("count", "integer", "string"), tool_name="web_search")

        assert error.to_wire() == {
            "status": "error",
            "kind": "InvalidInput",
            "message": "Invalid input: count: expected integer, got string",
            "details": {
                "reason": "type_mismatch",
                "path": "count",
                "expected": "integer",
                "actual": "string",
                "tool": "web_search",
            },
        }

    def test_validation_reasons(self):
        assert MissingField("a").details["reason"] == "missing_field"
        assert ConstraintViolation("a", "bad").details["reason"] == "constraint_violation"

    def test_timeout_outcomes(self):
        read = Timeout("eth_get_balance", 15.0)
        assert read.details == {
            "tool": "eth_get_balance",
            "timeout": 15.0,
            "outcome": "no_side_effects",
            "retry_safe": True,
        }

        write = Timeout("eth_send", 120.0, OUTCOME_UNKNOWN)
        assert write.details["retry_safe"] is False
        assert "may still complete" in write.message

    def test_upstream_failure_details(self):
        error = UpstreamFailure("0x API error: 429", upstream="0x", status_code=429, body=None)
        assert error.details == {"status_code": 429, "upstream": "0x"}
        assert error.outcome is None

        error.set_outcome(OUTCOME_NOT_EXECUTED)
        assert error.details["retry_safe"] is True

    def test_reverted_is_not_retry_safe(self):
        error = UpstreamFailure("reverted", outcome=OUTCOME_REVERTED)
        assert error.details == {"outcome": "reverted", "retry_safe": False}


class TestErrorHandler:
    def test_tracks_errors_per_tool_and_kind(self):
        handler = ErrorHandler()
        handler.handle_error("eth_send", Timeout("eth_send", 1.0, OUTCOME_UNKNOWN))
        handler.handle_error("eth_send", UpstreamFailure("boom"))
        handler.handle_error("eth_send", UpstreamFailure("boom again"))

        stats = handler.get_tool_error_stats("eth_send")
        assert stats["total_errors"] == 3
        assert stats["errors_by_kind"] == {"Timeout": 1, "UpstreamFailure": 2}
        assert stats["recent_errors"] == 3

    def test_recent_window(self):
        handler = ErrorHandler(error_window=timedelta(seconds=30))
        handler.handle_error("web_search", UpstreamFailure("boom"))
        handler.error_timestamps["web_search"] = [datetime.now() - timedelta(minutes=5)]

        assert handler.get_tool_error_stats("web_search")["recent_errors"] == 0
        assert handler.get_tool_error_stats("web_search")["total_errors"] == 1

    def test_summary_and_reset(self):
        handler = ErrorHandler()
        handler.handle_error("a", Timeout("a", 1.0))
        handler.handle_error("b", UpstreamFailure("boom"))

        summary = handler.get_error_summary()
        assert summary["total_tools_with_errors"] == 2
        assert summary["error_counts"]["a"] == {"Timeout": 1}

        handler.reset_error_tracking("a")
        assert handler.get_tool_error_stats("a")["total_errors"] == 0
        assert handler.get_error_summary()["total_tools_with_errors"] == 1

    def test_unknown_tool_names_share_one_entry(self, caplog):
        caplog.set_level(logging.INFO, logger="agent_mcp.services.error_handler")
        handler = ErrorHandler()
        for i in range(500):
            handler.handle_error(f"nope_{i}", UnknownTool(f"nope_{i}"))

        assert list(handler.error_counts) == [UNKNOWN_TOOL_KEY]
        assert list(handler.error_timestamps) == [UNKNOWN_TOOL_KEY]
        assert handler.get_tool_error_stats(UNKNOWN_TOOL_KEY)["total_errors"] == 500
        assert "nope_499" in caplog.text

    @pytest.mark.parametrize(
        "error, level",
        [
            (UnknownTool("x"), logging.INFO),
            (InvalidInput(MissingField("a")), logging.INFO),
            (Timeout("x", 1.0), logging.WARNING),
            (UpstreamFailure("boom"), logging.WARNING),
        ],
    )
    def test_log_level_by_kind(self, caplog, error, level):
        caplog.set_level(logging.DEBUG, logger="agent_mcp.services.error_handler")
        info = ErrorHandler().handle_error("x", error, context="test")

        assert info["kind"] == error.kind
        assert caplog.records[-1].levelno == level
