"""
Server-Sent Events
==================

SSE formatting for export progress streams.
"""

from .events import format_sse_event, progress_event_stream

__all__ = ["format_sse_event", "progress_event_stream"]
