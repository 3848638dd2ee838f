"""
SSE Events
==========

Formatting of export progress events for the Server-Sent Events protocol.
"""

from typing import Any, AsyncIterator, Dict, List, Optional
import json

from batchqr.models.schemas import ExportStatus, ProgressEvent

TERMINAL_EVENTS = {
    ExportStatus.COMPLETED: "export.completed",
    ExportStatus.FAILED: "export.failed",
    ExportStatus.CANCELLED: "export.cancelled",
}


def format_sse_event(
    event_type: str,
    data: Dict[str, Any],
    event_id: Optional[str] = None,
    retry_after: Optional[int] = None,
) -> str:
    """
    Format data for Server-Sent Events protocol.

    Args:
        event_type: Event type identifier
        data: Event data dictionary
        event_id: Optional event ID for client-side event tracking
        retry_after: Optional retry interval in milliseconds

    Returns:
        Formatted SSE message string
    """
    lines: List[str] = []

    if event_id:
        lines.append(f"id: {event_id}")

    lines.append(f"event: {event_type}")

    if retry_after:
        lines.append(f"retry: {retry_after}")

    data_json = json.dumps(data, default=str, separators=(",", ":"))
    lines.append(f"data: {data_json}")

    # Blank line terminates the event
    lines.append("")
    lines.append("")

    return "\n".join(lines)


async def progress_event_stream(events: AsyncIterator[ProgressEvent]) -> AsyncIterator[str]:
    """Render progress events as SSE messages; terminal statuses get their own event type."""
    sequence = 0
    async for event in events:
        sequence += 1
        event_type = TERMINAL_EVENTS.get(event.status, "export.progress")
        yield format_sse_event(
            event_type=event_type,
            data=event.model_dump(mode="json"),
            event_id=f"{event.job_id}-{sequence}",
        )
