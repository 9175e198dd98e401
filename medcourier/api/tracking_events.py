"""
Tracking Events SSE Endpoint.

Provides a Server-Sent Events stream of tracking notifications (traffic
updates, simulated positions, arrivals) for live map viewers.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from typing import Optional
import json

from medcourier.api.dependencies import get_event_bus
from medcourier.core.events import TrackingEventBus


router = APIRouter(prefix="/tracking-events", tags=["tracking-events"])


@router.get("/stream")
async def tracking_events_stream(
    delivery_id: Optional[str] = Query(None, description="Filter by delivery ID"),
    event_bus: TrackingEventBus = Depends(get_event_bus),
):
    """
    Server-Sent Events endpoint for tracking events.

    Args:
        delivery_id: Optional delivery ID to filter events

    Returns:
        SSE stream of tracking events
    """

    async def event_generator():
        init_event = {
            "type": "connected",
            "message": "SSE connection established",
            "filter_delivery_id": delivery_id,
        }
        yield f"data: {json.dumps(init_event)}\n\n"

        # Catch up on recent events for this delivery
        if delivery_id:
            for event in event_bus.get_recent_events(delivery_id=delivery_id):
                yield f"data: {json.dumps(event)}\n\n"

        async for event in event_bus.subscribe():
            if delivery_id and event.get("delivery_id") != delivery_id:
                continue
            yield f"data: {json.dumps(event)}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


@router.get("/recent")
async def get_recent_events(
    delivery_id: Optional[str] = Query(None, description="Filter by delivery ID"),
    limit: int = Query(50, ge=1, le=200, description="Maximum events to return"),
    event_bus: TrackingEventBus = Depends(get_event_bus),
):
    """
    Get recent tracking events (non-streaming).

    Args:
        delivery_id: Optional delivery ID to filter events
        limit: Maximum number of events to return

    Returns:
        List of recent tracking events
    """
    events = event_bus.get_recent_events(
        delivery_id=delivery_id,
        limit=limit,
    )
    return {"events": events, "count": len(events)}
