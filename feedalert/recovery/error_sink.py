"""
Error Sinks
===========

Receivers for recovered and document-level failures. ``report`` never
raises; the notifying sink queues error alerts and shows them when the
refresh cycle flushes it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol

from ..utils.dates import Clock, utc_now
from ..utils.exceptions import FeedAlertError
from ..utils.logging import get_logger_for_component


@dataclass
class ErrorReport:
    context: str
    message: str
    error_code: Optional[str] = None
    reported_at: Optional[datetime] = None


class ErrorSink(Protocol):
    def report(self, context: str, message: str, error: Optional[FeedAlertError] = None) -> None:
        ...

    async def flush(self) -> None:
        ...


class LoggingErrorSink:
    """Logs every report and keeps the reports of the current cycle."""

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock
        self.reports: List[ErrorReport] = []
        self.logger = get_logger_for_component("error_sink")

    def report(self, context: str, message: str, error: Optional[FeedAlertError] = None) -> None:
        entry = ErrorReport(
            context=context,
            message=message,
            error_code=error.error_code.value if error is not None and error.error_code else None,
            reported_at=self.clock(),
        )
        self.reports.append(entry)

        extra = error.to_dict() if error is not None else {}
        self.logger.warning(f"{context}: {message}", extra=extra)

    async def flush(self) -> None:
        self.reports = []


class NotifyingErrorSink(LoggingErrorSink):
    """Logs reports and raises an error alert for document-level failures.

    Per-item reports (dedup, persist) are only logged. All error alerts
    share one key, so the last one of a cycle is what remains visible.
    """

    ALERT_CONTEXTS_EXCLUDED = ("dedup", "persist")

    def __init__(self, policy, title: str = "FeedAlert error", clock: Clock = utc_now):
        super().__init__(clock)
        self.policy = policy
        self.title = title
        self.pending: List[ErrorReport] = []

    def report(self, context: str, message: str, error: Optional[FeedAlertError] = None) -> None:
        super().report(context, message, error)
        if context not in self.ALERT_CONTEXTS_EXCLUDED:
            self.pending.append(self.reports[-1])

    async def flush(self) -> None:
        pending, self.pending = self.pending, []
        for entry in pending:
            try:
                await self.policy.present_error(self.title, f"{entry.context}\n{entry.message}")
            except Exception as e:
                self.logger.error(f"Error alert could not be shown: {e}", exc_info=True)
        await super().flush()
