"""
Unit Tests for logging and trace context
"""

import asyncio
import logging

from grader.logging import TraceIdFilter
from grader.logging.trace import filter_dict_secrets, filter_secrets, get_trace_id, trace_context


class TestTraceContext:
    def test_trace_context_when_exited_then_cleared(self):
        with trace_context(trace_id="t-1") as ctx:
            assert get_trace_id() == "t-1"
            assert ctx.to_headers()["X-Trace-ID"] == "t-1"
        assert get_trace_id() is None

    def test_trace_context_when_tasks_overlap_then_isolated(self):
        async def worker(trace_id):
            with trace_context(trace_id=trace_id):
                await asyncio.sleep(0.01)
                return get_trace_id()

        async def main():
            return await asyncio.gather(worker("a"), worker("b"))

        assert asyncio.run(main()) == ["a", "b"]

    def test_filter_when_record_logged_then_carries_trace_id(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        with trace_context(trace_id="t-9"):
            TraceIdFilter().filter(record)
        assert record.trace_id == "t-9"


class TestSecretFiltering:
    def test_filter_secrets_when_provider_keys_then_redacted(self):
        text = "bad key sk-abcdefghijklmnopqrstuvwx and AIzaSyA1234567890abcdefghijklmnopqrstu"
        filtered = filter_secrets(text)
        assert "sk-abcdefghijklmnopqrstuvwx" not in filtered
        assert "AIzaSy" not in filtered
        assert "[REDACTED]" in filtered

    def test_filter_secrets_when_key_value_then_value_redacted(self):
        assert filter_secrets("api_key=abc123") == "api_key: [REDACTED]"

    def test_filter_dict_when_sensitive_keys_then_redacted(self):
        data = {"credential": "x", "nested": {"api_key": "y"}, "model": "gpt-4o-mini"}
        assert filter_dict_secrets(data) == {
            "credential": "[REDACTED]",
            "nested": {"api_key": "[REDACTED]"},
            "model": "gpt-4o-mini",
        }

