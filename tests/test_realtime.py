import asyncio
from datetime import datetime

from fastapi.testclient import TestClient

from analytics_app.config import settings
from analytics_app.dependencies import get_notifier
from analytics_app.realtime.broadcaster import AnalyticsBroadcaster
from analytics_app.realtime.notifier import NullNotifier
from analytics_app.realtime.models import VisitorActivity


SNAPSHOT_KEYS = {
    "overview", "trafficGrowth", "deviceBreakdown", "browserStats", "osStats",
    "trafficSources", "topPages", "contactSubmissions", "projectEngagement",
    "cvDownloads", "period",
}


class FakeWebSocket:
    """Collects frames sent by the broadcaster"""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(data)

    def events(self):
        return [frame["event"] for frame in self.sent]


def run(coro):
    return asyncio.run(coro)


class TestAnalyticsBroadcaster:
    """Test connection registry and fan-out with fake sockets"""

    def test_connect_sends_snapshot(self, broadcaster):
        websocket = FakeWebSocket()

        run(broadcaster.connect(websocket))

        assert broadcaster.connected_clients() == 1
        assert websocket.events() == ["analyticsUpdate"]
        assert set(websocket.sent[0]["data"]) == SNAPSHOT_KEYS

    def test_live_count_goes_to_room(self, broadcaster):
        dashboard = FakeWebSocket()
        run(broadcaster.connect(dashboard))
        run(broadcaster.subscribe(dashboard))
        dashboard.sent.clear()

        other = FakeWebSocket()
        run(broadcaster.connect(other))
        run(broadcaster.disconnect(other))

        assert dashboard.sent == [
            {"event": "liveVisitorCount", "data": {"count": 2}},
            {"event": "liveVisitorCount", "data": {"count": 1}},
        ]

    def test_visit_recorded_reaches_room_only(self, broadcaster):
        subscribed = FakeWebSocket()
        idle = FakeWebSocket()
        for websocket in (subscribed, idle):
            run(broadcaster.connect(websocket))
        run(broadcaster.subscribe(subscribed))
        subscribed.sent.clear()
        idle.sent.clear()

        activity = VisitorActivity(page="/projects", timestamp=datetime(2025, 3, 12, 10), user_agent="UA")
        run(broadcaster.visit_recorded(activity))

        assert subscribed.events() == ["visitorActivity", "analyticsUpdate"]
        assert subscribed.sent[0]["data"] == {
            "type": "visit",
            "page": "/projects",
            "action": None,
            "timestamp": "2025-03-12T10:00:00",
            "userAgent": "UA",
            "location": None,
        }
        assert idle.sent == []

    def test_unsubscribe(self, broadcaster):
        websocket = FakeWebSocket()
        run(broadcaster.connect(websocket))
        run(broadcaster.subscribe(websocket))
        broadcaster.unsubscribe(websocket)
        websocket.sent.clear()

        run(broadcaster.visit_recorded(VisitorActivity(page="/")))

        assert websocket.sent == []
        assert broadcaster.subscribers() == 0

    def test_failed_send_drops_client(self, broadcaster):
        healthy = FakeWebSocket()
        broken = FakeWebSocket()
        for websocket in (healthy, broken):
            run(broadcaster.connect(websocket))
            run(broadcaster.subscribe(websocket))
        broken.fail = True

        run(broadcaster.visit_recorded(VisitorActivity(page="/")))

        assert broadcaster.connected_clients() == 1
        assert broadcaster.subscribers() == 1
        assert healthy.events()[-2:] == ["visitorActivity", "analyticsUpdate"]

    def test_snapshot_failure_sends_error(self):
        def broken_session_factory():
            raise RuntimeError("database unavailable")

        broadcaster = AnalyticsBroadcaster(session_factory=broken_session_factory)
        websocket = FakeWebSocket()

        run(broadcaster.connect(websocket))

        assert websocket.sent == [
            {"event": "analyticsError", "data": {"message": "Failed to fetch analytics data"}}
        ]


class TestAnalyticsSocket:
    """Test the websocket route end to end"""

    def test_snapshot_on_connect(self, client: TestClient):
        with client.websocket_connect("/analytics/ws") as websocket:
            message = websocket.receive_json()

        assert message["event"] == "analyticsUpdate"
        assert set(message["data"]) == SNAPSHOT_KEYS

    def test_subscribe_and_request_update(self, client: TestClient):
        with client.websocket_connect("/analytics/ws") as websocket:
            websocket.receive_json()

            websocket.send_json({"event": "subscribeToAnalytics"})
            subscribed = websocket.receive_json()

            websocket.send_json({"event": "requestAnalyticsUpdate", "data": None})
            requested = websocket.receive_json()

        assert subscribed["event"] == "analyticsUpdate"
        assert requested["event"] == "analyticsUpdate"

    def test_unknown_event(self, client: TestClient):
        with client.websocket_connect("/analytics/ws") as websocket:
            websocket.receive_json()

            websocket.send_json({"event": "dropTables"})
            message = websocket.receive_json()

        assert message == {"event": "analyticsError", "data": {"message": "Unknown event: dropTables"}}

    def test_malformed_message(self, client: TestClient):
        with client.websocket_connect("/analytics/ws") as websocket:
            websocket.receive_json()

            websocket.send_text("not json")
            message = websocket.receive_json()

        assert message["event"] == "analyticsError"

    def test_live_visitor_count_while_connected(self, client: TestClient, auth_headers):
        with client.websocket_connect("/analytics/ws") as websocket:
            websocket.receive_json()
            response = client.get("/analytics/live-visitors", headers=auth_headers)

        assert response.json() == {"count": 1}


class TestNotifierSelection:

    def test_broadcaster_when_enabled(self, broadcaster):
        assert get_notifier(broadcaster) is broadcaster

    def test_null_notifier_when_disabled(self, broadcaster, monkeypatch):
        monkeypatch.setattr(settings, "realtime_enabled", False)

        notifier = get_notifier(broadcaster)

        assert isinstance(notifier, NullNotifier)
        assert run(notifier.visit_recorded(VisitorActivity(page="/"))) is None
        assert notifier.connected_clients() == 0
