"""
Unit Tests for Error Sinks
==========================
"""

from unittest.mock import AsyncMock, Mock

import pytest

from feedalert.recovery.error_sink import LoggingErrorSink, NotifyingErrorSink
from feedalert.utils.exceptions import ErrorCode, NetworkError


class TestLoggingErrorSink:

    def test_report_is_kept_and_logged(self, clock, now, caplog):
        sink = LoggingErrorSink(clock)
        error = NetworkError("refused", feed_url="https://news.example.com/rss.xml")

        with caplog.at_level("WARNING"):
            sink.report("https://news.example.com/rss.xml", error.user_message, error)

        report = sink.reports[0]
        assert report.context == "https://news.example.com/rss.xml"
        assert report.error_code == ErrorCode.FEED_NETWORK_ERROR.value
        assert report.reported_at == now
        assert "refused" in caplog.text

    def test_report_without_error(self, clock):
        sink = LoggingErrorSink(clock)

        sink.report("dedup", "lookup failed")

        assert sink.reports[0].error_code is None

    @pytest.mark.asyncio
    async def test_flush_clears_reports(self, clock):
        sink = LoggingErrorSink(clock)
        sink.report("dedup", "lookup failed")

        await sink.flush()

        assert sink.reports == []


class TestNotifyingErrorSink:

    @pytest.fixture
    def policy(self):
        policy = Mock()
        policy.present_error = AsyncMock(return_value=True)
        return policy

    @pytest.mark.asyncio
    async def test_alerts_are_queued_until_flush(self, policy, clock):
        sink = NotifyingErrorSink(policy, title="Feed trouble", clock=clock)

        sink.report("https://news.example.com/rss.xml", "Strange response code 500")

        policy.present_error.assert_not_awaited()
        await sink.flush()
        policy.present_error.assert_awaited_once_with(
            "Feed trouble", "https://news.example.com/rss.xml\nStrange response code 500"
        )
        assert sink.pending == []
        assert sink.reports == []

    @pytest.mark.asyncio
    async def test_item_level_contexts_are_only_logged(self, policy, clock):
        sink = NotifyingErrorSink(policy, clock=clock)

        sink.report("dedup", "lookup failed")
        sink.report("persist", "insert failed")
        await sink.flush()

        policy.present_error.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_every_document_error_is_presented(self, policy, clock):
        sink = NotifyingErrorSink(policy, clock=clock)

        sink.report("https://a.example.com/feed", "timeout")
        sink.report("https://b.example.com/feed", "timeout")
        await sink.flush()

        assert policy.present_error.await_count == 2

    @pytest.mark.asyncio
    async def test_presentation_failure_is_swallowed(self, policy, clock):
        policy.present_error.side_effect = RuntimeError("surface gone")
        sink = NotifyingErrorSink(policy, clock=clock)
        sink.report("https://news.example.com/rss.xml", "timeout")

        await sink.flush()

        assert sink.pending == []
