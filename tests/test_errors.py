"""Tests for failure classification."""

import pytest

from roundtable.errors import (
    MALFORMED_PANEL_MESSAGE,
    QUOTA_MESSAGE,
    UNKNOWN_ERROR_MESSAGE,
    MalformedResponseError,
    describe_failure,
    is_rate_limit_error,
)

from conftest import FakeRateLimitError


class TestRateLimitDetection:
    @pytest.mark.parametrize("message", [
        "Error code: 429 - Too Many Requests",
        "RESOURCE_EXHAUSTED: quota exceeded",
        "429 Resource has been exhausted",
    ])
    def test_message_patterns(self, message):
        assert is_rate_limit_error(RuntimeError(message))

    def test_status_code_attribute(self):
        assert is_rate_limit_error(FakeRateLimitError("slow down"))

    @pytest.mark.parametrize("message", [
        "connection reset",
        "You exceeded your current quota, please check your plan and billing details.",
    ])
    def test_other_errors(self, message):
        assert not is_rate_limit_error(RuntimeError(message))


class TestDescribeFailure:
    def test_quota_message_is_fixed(self):
        assert describe_failure(2, RuntimeError("429 Too Many Requests")) == QUOTA_MESSAGE

    def test_generic_failure_names_step(self):
        assert describe_failure(4, RuntimeError("boom")) == "步驟 4 失敗: boom"

    def test_malformed_response(self):
        assert describe_failure(3, MalformedResponseError()) == f"步驟 3 失敗: {MALFORMED_PANEL_MESSAGE}"

    def test_empty_message(self):
        assert describe_failure(1, RuntimeError()) == UNKNOWN_ERROR_MESSAGE
