"""
FeedAlert Recovery Module
=========================

Error sinks receiving failures the pipeline recovers from.
"""

from .error_sink import ErrorReport, ErrorSink, LoggingErrorSink, NotifyingErrorSink

__all__ = [
    "ErrorReport",
    "ErrorSink",
    "LoggingErrorSink",
    "NotifyingErrorSink",
]
