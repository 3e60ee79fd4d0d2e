"""Server-Sent Events framing for fetcher progress."""

import json
import logging
from collections.abc import AsyncIterator

from .models import DoneEvent, StreamEvent

logger = logging.getLogger(__name__)

SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def encode_event(event: StreamEvent) -> str:
    """Frame one event as an SSE ``data:`` message."""
    payload = event.model_dump(mode="json", by_alias=True)
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def sse_stream(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    """Encode an event iterator as SSE text frames.

    The frame iterator ends right after the ``done`` event, which closes the
    response channel. If the event source fails unexpectedly, the error is
    logged and a ``done`` frame is still sent.
    """
    count = 0
    try:
        async for event in events:
            count += 1
            yield encode_event(event)
    except Exception as e:
        logger.error(f"Stream failed after {count} events: {e}", exc_info=True)
        yield encode_event(DoneEvent())
        return
    logger.debug(f"Stream closed after {count} events")
