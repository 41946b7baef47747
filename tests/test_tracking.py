import asyncio
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from analytics_app.admission.strategies import InMemoryAdmissionGuard
from analytics_app.models import VisitEvent, VisitAggregate, DeviceAnalytics, TrafficSource, UserInteraction
from analytics_app.realtime.notifier import RealtimeNotifier
from analytics_app.schemas.tracking import VisitData
from analytics_app.services.collection_service import CollectionService, ADMIN_PATHS


CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class RecordingNotifier(RealtimeNotifier):
    def __init__(self, fail=False):
        self.activities = []
        self.fail = fail

    async def visit_recorded(self, activity):
        if self.fail:
            raise RuntimeError("socket gone")
        self.activities.append(activity)

    def connected_clients(self) -> int:
        return 0


class TestTrackingEndpoints:
    """Test the public collection endpoints"""

    def test_track_visit(self, client: TestClient, db_session):
        response = client.post("/analytics/track-visit", json={"path": "/projects", "sessionId": "s-1"})
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["tracked"] is True
        assert data["id"] is not None

        visit = db_session.query(VisitEvent).one()
        assert visit.path == "/projects"
        assert visit.session_id == "s-1"
        assert visit.ip_address == "testclient"
        assert visit.is_unique is True

    def test_admin_path_is_not_tracked(self, client: TestClient, db_session):
        response = client.post("/analytics/track-visit", json={"path": "/admin/dashboard"})
        assert response.status_code == 200
        assert response.json() == {"success": True, "id": None, "tracked": False}
        assert db_session.query(VisitEvent).count() == 0

    def test_repeat_visit_is_not_tracked(self, client: TestClient):
        first = client.post("/analytics/track-visit", json={"path": "/projects"})
        second = client.post("/analytics/track-visit", json={"path": "/projects"})

        assert first.json()["tracked"] is True
        assert second.json() == {"success": True, "id": None, "tracked": False}

    def test_same_ip_other_path_is_tracked(self, client: TestClient):
        client.post("/analytics/track-visit", json={"path": "/projects"})
        response = client.post("/analytics/track-visit", json={"path": "/about"})
        assert response.json()["tracked"] is True

    def test_track_page_view_parses_user_agent(self, client: TestClient, db_session):
        response = client.post(
            "/analytics/track-page-view",
            json={"path": "/about", "duration": 42, "referer": "https://www.google.com/search"},
            headers={"User-Agent": CHROME_WINDOWS},
        )
        assert response.json()["tracked"] is True

        visit = db_session.query(VisitEvent).one()
        assert (visit.device, visit.browser, visit.os) == ("Desktop", "Chrome", "Windows")
        assert visit.duration == 42

        device_row = db_session.query(DeviceAnalytics).one()
        assert device_row.device_type == "Desktop"
        source_row = db_session.query(TrafficSource).one()
        assert (source_row.source, source_row.medium, source_row.campaign) == ("Google", "organic", "google-search")

    def test_track_interaction(self, client: TestClient, db_session):
        payload = {"type": "download", "element": "cv-button", "value": "resume.pdf", "path": "/about"}

        first = client.post("/analytics/track-interaction", json=payload)
        second = client.post("/analytics/track-interaction", json=payload)

        # Interactions are never deduplicated
        assert first.json()["tracked"] is True
        assert second.json()["tracked"] is True

        interactions = db_session.query(UserInteraction).all()
        assert len(interactions) == 2
        assert interactions[0].session_id == "anonymous"
        assert interactions[0].action == "download"

    def test_track_interaction_on_admin_path(self, client: TestClient, db_session):
        response = client.post("/analytics/track-interaction", json={"type": "click", "path": "/admin/settings"})
        assert response.json() == {"success": True, "id": None, "tracked": False}
        assert db_session.query(UserInteraction).count() == 0

    def test_missing_path_is_rejected(self, client: TestClient):
        response = client.post("/analytics/track-visit", json={"sessionId": "s-1"})
        assert response.status_code == 422

    def test_negative_duration_is_rejected(self, client: TestClient):
        response = client.post("/analytics/track-page-view", json={"path": "/", "duration": -1})
        assert response.status_code == 422


class TestCollectionService:
    """Test ingestion logic directly"""

    @pytest.mark.parametrize("path", list(ADMIN_PATHS) + ["/admin/projects/42/edit", "/admin/login/"])
    def test_admin_paths_are_skipped(self, db_session, path):
        service = CollectionService(db_session)

        result = asyncio.run(service.track_visit(VisitData(path=path, ip_address="1.2.3.4")))

        assert result is None
        assert db_session.query(VisitEvent).count() == 0

    def test_admin_lookalike_is_tracked(self, db_session):
        service = CollectionService(db_session)

        result = asyncio.run(service.track_visit(VisitData(path="/administrator", ip_address="1.2.3.4")))

        assert result is not None

    def test_dedup_window(self, db_session, clock):
        service = CollectionService(
            db_session,
            guard=InMemoryAdmissionGuard(clock=clock.timestamp),
            clock=clock,
        )
        visit = VisitData(path="/projects", ip_address="10.0.0.1")

        assert asyncio.run(service.track_visit(visit)) is not None

        clock.advance(minutes=59, seconds=59)
        assert asyncio.run(service.track_visit(visit)) is None

        clock.advance(seconds=2)  # 60 min 1 s after the first visit
        assert asyncio.run(service.track_visit(visit)) is not None

        assert db_session.query(VisitEvent).count() == 2

    def test_missing_ip_is_always_tracked(self, db_session, clock):
        service = CollectionService(db_session, guard=InMemoryAdmissionGuard(), clock=clock)

        for ip in (None, "", None):
            assert asyncio.run(service.track_visit(VisitData(path="/", ip_address=ip))) is not None

        assert db_session.query(VisitEvent).count() == 3

    def test_held_claim_rejects_visit(self, db_session):
        """A concurrent request that already claimed (ip, path) wins"""
        guard = InMemoryAdmissionGuard()
        asyncio.run(guard.claim("visit:10.0.0.1:/projects", 3600))
        service = CollectionService(db_session, guard=guard)

        result = asyncio.run(service.track_visit(VisitData(path="/projects", ip_address="10.0.0.1")))

        assert result is None
        assert db_session.query(VisitEvent).count() == 0

    def test_aggregate_counts_accepted_visits(self, db_session, clock):
        service = CollectionService(db_session, clock=clock)

        for n in range(5):
            asyncio.run(service.track_visit(VisitData(path="/blog", ip_address=f"10.0.0.{n}")))
        # Repeat from the first IP is dropped and not counted
        asyncio.run(service.track_visit(VisitData(path="/blog", ip_address="10.0.0.0")))

        aggregate = db_session.query(VisitAggregate).one()
        assert aggregate.date == date(2025, 3, 12)
        assert aggregate.visitors == aggregate.page_views == 5
        assert aggregate.unique_visitors == 5

    def test_rollups_count_every_visit_across_sessions(self, db_session, clock):
        """A worker holding a stale copy of the row must not overwrite another worker's increment"""
        other_session = sessionmaker(bind=db_session.get_bind())()
        try:
            this_worker = CollectionService(db_session, clock=clock)
            other_worker = CollectionService(other_session, clock=clock)
            day = clock.now.date()

            asyncio.run(other_worker.track_page_view("/blog", {"ip_address": "a", "user_agent": CHROME_WINDOWS}))
            stale_aggregate = db_session.query(VisitAggregate).one()
            stale_device_row = db_session.query(DeviceAnalytics).one()
            assert stale_aggregate.visitors == stale_device_row.visitors == 1

            asyncio.run(other_worker.track_page_view("/blog", {"ip_address": "b", "user_agent": CHROME_WINDOWS}))
            this_worker._update_daily_aggregates(
                VisitData(path="/blog", ip_address="c", device="Desktop", browser="Chrome", os="Windows"),
                day,
            )

            db_session.expire_all()
            aggregate = db_session.query(VisitAggregate).one()
            device_row = db_session.query(DeviceAnalytics).one()
            assert aggregate.visitors == aggregate.page_views == 3
            assert device_row.visitors == device_row.sessions == 3
        finally:
            other_session.close()

    def test_first_rollup_row_created_by_another_session(self, db_session, clock):
        other_session = sessionmaker(bind=db_session.get_bind())()
        try:
            day = clock.now.date()
            visit = VisitData(path="/contact", ip_address="a", referer="https://www.google.com/")

            # Neither session has seen a row for this key yet; both insert
            CollectionService(other_session, clock=clock)._update_daily_aggregates(visit, day)
            CollectionService(db_session, clock=clock)._update_daily_aggregates(visit, day)

            assert db_session.query(VisitAggregate).one().visitors == 2
            assert db_session.query(TrafficSource).one().visitors == 2
        finally:
            other_session.close()

    def test_aggregate_keeps_running_averages(self, db_session, clock):
        service = CollectionService(db_session, clock=clock)

        asyncio.run(service.track_visit(VisitData(path="/", ip_address="a", duration=10)))
        asyncio.run(service.track_visit(VisitData(path="/", ip_address="b", duration=30, is_bounce=True)))
        asyncio.run(service.track_visit(VisitData(path="/", ip_address="c")))

        aggregate = db_session.query(VisitAggregate).one()
        assert aggregate.avg_duration == 20
        assert aggregate.bounce_rate == pytest.approx(100 / 3)

    def test_device_rows_follow_every_visit(self, db_session, clock):
        service = CollectionService(db_session, clock=clock)

        asyncio.run(service.track_page_view("/", {"ip_address": "a", "user_agent": CHROME_WINDOWS, "duration": 10}))
        asyncio.run(service.track_page_view("/", {"ip_address": "b", "user_agent": CHROME_WINDOWS, "duration": 20}))

        row = db_session.query(DeviceAnalytics).one()
        assert (row.device_type, row.browser, row.os) == ("Desktop", "Chrome", "Windows")
        assert row.visitors == row.sessions == 2
        assert row.avg_duration == 15

    def test_no_traffic_source_row_without_referer(self, db_session):
        service = CollectionService(db_session)

        asyncio.run(service.track_visit(VisitData(path="/", ip_address="a")))

        assert db_session.query(TrafficSource).count() == 0

    def test_aggregate_failure_keeps_visit(self, db_session, monkeypatch):
        service = CollectionService(db_session)

        def broken_upsert(data, day):
            raise RuntimeError("aggregate table locked")

        monkeypatch.setattr(service, "_upsert_visit_aggregate", broken_upsert)

        result = asyncio.run(service.track_visit(VisitData(path="/", ip_address="a")))

        assert result is not None
        assert db_session.query(VisitEvent).count() == 1
        assert db_session.query(VisitAggregate).count() == 0

    def test_notifier_receives_activity(self, db_session, clock):
        notifier = RecordingNotifier()
        service = CollectionService(db_session, notifier=notifier, clock=clock)

        asyncio.run(service.track_visit(VisitData(path="/projects", ip_address="a", country="DE", user_agent="UA")))

        assert len(notifier.activities) == 1
        activity = notifier.activities[0]
        assert activity.type == "visit"
        assert activity.page == "/projects"
        assert activity.location == "DE"
        assert activity.timestamp == clock.now

    def test_notifier_failure_is_not_surfaced(self, db_session):
        service = CollectionService(db_session, notifier=RecordingNotifier(fail=True))

        result = asyncio.run(service.track_visit(VisitData(path="/", ip_address="a")))

        assert result is not None

    def test_skipped_visit_does_not_notify(self, db_session):
        notifier = RecordingNotifier()
        service = CollectionService(db_session, notifier=notifier)

        asyncio.run(service.track_visit(VisitData(path="/admin", ip_address="a")))

        assert notifier.activities == []

    def test_interaction_path_fallbacks(self, db_session, clock):
        service = CollectionService(db_session, clock=clock)

        from_data = asyncio.run(service.track_interaction("click", {"path": "/contact"}, {}))
        default = asyncio.run(service.track_interaction("click", {}, {"session_id": "s-9"}))

        assert from_data.path == "/contact"
        assert default.path == "/"
        assert default.session_id == "s-9"
        assert default.timestamp == clock.now
