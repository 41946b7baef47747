"""
Analytics broadcaster: websocket connection registry and fan-out.

Every connected client may join the "analytics room". Accepted visits push
a visitor activity record and a freshly computed comprehensive snapshot to
the room. Pushes are best effort: failures are logged, dead connections are
dropped, nothing is retried and nothing reaches the ingestion caller.
"""

from typing import Callable, Optional, Set
import logging

from fastapi import WebSocket
from sqlalchemy.orm import Session

from analytics_app.config import settings
from analytics_app.services.date_ranges import TimePeriod
from analytics_app.services.report_service import ReportService
from .models import RealtimeMessage, VisitorActivity
from .notifier import RealtimeNotifier

logger = logging.getLogger(__name__)


ANALYTICS_UPDATE = "analyticsUpdate"
ANALYTICS_ERROR = "analyticsError"
VISITOR_ACTIVITY = "visitorActivity"
LIVE_VISITOR_COUNT = "liveVisitorCount"


class AnalyticsBroadcaster(RealtimeNotifier):
    """
    Keeps track of connected websockets and the subscribed room.
    
    Snapshots are computed with a short-lived session from session_factory,
    independent of any request session.
    """
    
    def __init__(self, session_factory: Callable[[], Session], period: Optional[str] = None):
        """
        Args:
            session_factory: Creates database sessions for snapshot queries
            period: Reporting period used for pushed snapshots
        """
        self.session_factory = session_factory
        self.period = TimePeriod(period or settings.default_period)
        self._connections: Set[WebSocket] = set()
        self._room: Set[WebSocket] = set()
    
    # ---- connection lifecycle ----
    
    async def connect(self, websocket: WebSocket):
        """Register an accepted websocket and send it the current snapshot"""
        self._connections.add(websocket)
        logger.info("Realtime client connected (%d connected)", len(self._connections))
        await self.send_snapshot(websocket)
        await self.broadcast_live_visitor_count()
    
    async def disconnect(self, websocket: WebSocket):
        self._connections.discard(websocket)
        self._room.discard(websocket)
        logger.info("Realtime client disconnected (%d connected)", len(self._connections))
        await self.broadcast_live_visitor_count()
    
    async def subscribe(self, websocket: WebSocket):
        self._room.add(websocket)
        logger.info("Realtime client subscribed to analytics updates")
        await self.send_snapshot(websocket)
    
    def unsubscribe(self, websocket: WebSocket):
        self._room.discard(websocket)
        logger.info("Realtime client unsubscribed from analytics updates")
    
    def connected_clients(self) -> int:
        return len(self._connections)
    
    def subscribers(self) -> int:
        return len(self._room)
    
    # ---- pushes ----
    
    async def build_snapshot(self) -> dict:
        """Compute the comprehensive snapshot as a JSON-ready dict"""
        db = self.session_factory()
        try:
            snapshot = await ReportService(db).get_comprehensive_analytics(self.period)
            return snapshot.model_dump(mode="json", by_alias=True)
        finally:
            db.close()
    
    async def send_snapshot(self, websocket: WebSocket):
        """Send a snapshot to one client, or an analyticsError if it cannot be built"""
        try:
            snapshot = await self.build_snapshot()
        except Exception:
            logger.exception("Error building analytics snapshot")
            await self._send(websocket, ANALYTICS_ERROR, {"message": "Failed to fetch analytics data"})
            return
        await self._send(websocket, ANALYTICS_UPDATE, snapshot)
    
    async def broadcast_analytics_update(self):
        if not self._room:
            return
        try:
            snapshot = await self.build_snapshot()
        except Exception:
            logger.exception("Error broadcasting analytics update")
            return
        await self._broadcast(ANALYTICS_UPDATE, snapshot)
        logger.debug("Analytics update broadcast to %d subscribers", len(self._room))
    
    async def broadcast_visitor_activity(self, activity: VisitorActivity):
        await self._broadcast(VISITOR_ACTIVITY, activity.model_dump(mode="json", by_alias=True))
        logger.debug("Visitor activity broadcast: %s", activity.type)
    
    async def broadcast_live_visitor_count(self):
        await self._broadcast(LIVE_VISITOR_COUNT, {"count": self.connected_clients()})
    
    async def visit_recorded(self, activity: VisitorActivity) -> None:
        await self.broadcast_visitor_activity(activity)
        await self.broadcast_analytics_update()
    
    # ---- transport ----
    
    async def _send(self, websocket: WebSocket, event: str, data) -> bool:
        message = RealtimeMessage(event=event, data=data)
        try:
            await websocket.send_json(message.model_dump(mode="json"))
            return True
        except Exception as e:
            logger.warning("Dropping realtime client after failed send: %s", e)
            self._connections.discard(websocket)
            self._room.discard(websocket)
            return False
    
    async def _broadcast(self, event: str, data):
        # Copy: failed sends remove members while iterating
        for websocket in list(self._room):
            await self._send(websocket, event, data)
