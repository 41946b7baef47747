import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from analytics_app.realtime.broadcaster import AnalyticsBroadcaster, ANALYTICS_ERROR
from analytics_app.realtime.models import RealtimeMessage
from analytics_app.dependencies import get_broadcaster

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["realtime"])


@router.websocket("/ws")
async def analytics_socket(
    websocket: WebSocket,
    broadcaster: AnalyticsBroadcaster = Depends(get_broadcaster)
):
    """
    Realtime analytics channel.
    
    Client messages: requestAnalyticsUpdate, subscribeToAnalytics,
    unsubscribeFromAnalytics. Server messages: analyticsUpdate,
    analyticsError, visitorActivity, liveVisitorCount.
    """
    await websocket.accept()
    await broadcaster.connect(websocket)
    
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = RealtimeMessage.model_validate_json(raw)
            except ValidationError:
                await websocket.send_json({"event": ANALYTICS_ERROR, "data": {"message": "Malformed message"}})
                continue
            
            if message.event == "requestAnalyticsUpdate":
                await broadcaster.send_snapshot(websocket)
            elif message.event == "subscribeToAnalytics":
                await broadcaster.subscribe(websocket)
            elif message.event == "unsubscribeFromAnalytics":
                broadcaster.unsubscribe(websocket)
            else:
                await websocket.send_json({
                    "event": ANALYTICS_ERROR,
                    "data": {"message": f"Unknown event: {message.event}"},
                })
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(websocket)
