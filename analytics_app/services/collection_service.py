from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Optional
import logging

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from analytics_app.admission.strategies import AdmissionGuard
from analytics_app.config import settings
from analytics_app.models import VisitEvent, UserInteraction, VisitAggregate, DeviceAnalytics, TrafficSource
from analytics_app.realtime.models import VisitorActivity
from analytics_app.realtime.notifier import RealtimeNotifier
from analytics_app.schemas.tracking import VisitData
from analytics_app.services.traffic_source import classify_referer
from analytics_app.services.user_agent import parse_user_agent

logger = logging.getLogger(__name__)

# Dialects with INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


ADMIN_PATHS = (
    "/admin",
    "/admin/",
    "/admin/dashboard",
    "/admin/analytics",
    "/admin/projects",
    "/admin/settings",
    "/admin/media",
    "/admin/contacts",
    "/admin/services",
    "/admin/team",
    "/admin/skills",
    "/admin/technologies",
    "/admin/login",
)


def is_admin_path(path: str) -> bool:
    """Admin pages are never tracked: exact match or anything below one"""
    return any(path == admin or path.startswith(admin + "/") for admin in ADMIN_PATHS)


class CollectionService:
    """
    Visit and interaction ingestion.

    Flow for a visit:
    1. Drop admin paths
    2. Drop repeat visits (same IP + path inside the dedup window)
    3. Store the VisitEvent
    4. Update the daily rollups (best effort)
    5. Notify realtime subscribers (best effort)

    Dependencies are injected so tests can swap the guard, the notifier
    and the clock.
    """

    def __init__(
        self,
        db: Session,
        guard: Optional[AdmissionGuard] = None,
        notifier: Optional[RealtimeNotifier] = None,
        clock: Callable[[], datetime] = datetime.now,
        dedup_window: Optional[int] = None,
    ):
        """
        Initialize collection service with dependencies.

        Args:
            db: Database session
            guard: Admission guard closing the dedup race (optional)
            notifier: Realtime notifier (optional)
            clock: Returns server-local "now"
            dedup_window: Dedup window in seconds (defaults to settings)
        """
        self.db = db
        self.guard = guard
        self.notifier = notifier
        self.clock = clock
        self.dedup_window = dedup_window or settings.dedup_window_seconds

    async def track_visit(self, data: VisitData) -> Optional[VisitEvent]:
        """
        Record a visit.

        Returns the stored VisitEvent, or None when the visit was skipped
        (admin path or repeat visit). Storage errors propagate.
        """
        if is_admin_path(data.path):
            return None

        if not await self._is_unique_visit(data.ip_address, data.path):
            return None

        now = self.clock()
        visit = VisitEvent(
            path=data.path,
            ip_address=data.ip_address,
            user_agent=data.user_agent,
            referer=data.referer,
            country=data.country,
            device=data.device,
            browser=data.browser,
            os=data.os,
            session_id=data.session_id,
            duration=data.duration,
            is_unique=True,  # Only unique visits get this far
            is_bounce=data.is_bounce,
            timestamp=now,
        )
        try:
            self.db.add(visit)
            self.db.commit()
        except Exception:
            self.db.rollback()
            await self._release_claim(data.ip_address, data.path)
            raise
        self.db.refresh(visit)

        # Rollups never undo the stored event
        self._update_daily_aggregates(data, now.date())

        if self.notifier:
            await self._notify(data, now)

        return visit

    async def track_page_view(self, path: str, session_data: Dict[str, Any]) -> Optional[VisitEvent]:
        """Record a page view: a visit enriched with device/browser/os from the user agent"""
        if is_admin_path(path):
            return None

        device_info = parse_user_agent(session_data.get("user_agent"))

        return await self.track_visit(VisitData(**{
            **session_data,
            "path": path,
            "device": device_info.device,
            "browser": device_info.browser,
            "os": device_info.os,
        }))

    async def track_interaction(
        self,
        action: str,
        data: Dict[str, Any],
        session_data: Dict[str, Any],
    ) -> Optional[UserInteraction]:
        """
        Record an interaction (click, download...).

        No dedup, no rollups, no realtime push.
        """
        path = session_data.get("path") or data.get("path") or "/"
        if is_admin_path(path):
            return None

        interaction = UserInteraction(
            session_id=session_data.get("session_id") or "anonymous",
            path=path,
            action=action,
            element=data.get("element"),
            value=data.get("value"),
            details=data.get("metadata"),
            timestamp=self.clock(),
        )
        self.db.add(interaction)
        self.db.commit()
        self.db.refresh(interaction)
        return interaction

    async def _is_unique_visit(self, ip_address: Optional[str], path: str) -> bool:
        """
        Same IP on the same path counts once per dedup window.

        Requests without an IP are always counted. The storage lookup
        is the source of truth; the guard claim then makes sure only one
        of several concurrent identical requests gets through.
        """
        if not ip_address:
            return True

        since = self.clock() - timedelta(seconds=self.dedup_window)
        recent_visit = self.db.query(VisitEvent.id).filter(
            VisitEvent.ip_address == ip_address,
            VisitEvent.path == path,
            VisitEvent.timestamp >= since,
        ).first()

        if recent_visit is not None:
            return False

        if self.guard:
            return await self.guard.claim(self._claim_key(ip_address, path), self.dedup_window)

        return True

    async def _release_claim(self, ip_address: Optional[str], path: str):
        if self.guard and ip_address:
            await self.guard.release(self._claim_key(ip_address, path))

    @staticmethod
    def _claim_key(ip_address: str, path: str) -> str:
        return f"visit:{ip_address}:{path}"

    def _update_daily_aggregates(self, data: VisitData, day: date):
        """
        Upsert the path, device and traffic source rollups for one visit.

        The three upserts commit together. Any failure is logged and rolled
        back, the visit itself stays stored.
        """
        try:
            self._upsert_visit_aggregate(data, day)

            if data.device:
                self._upsert_device_analytics(data, day)

            if data.referer:
                self._upsert_traffic_source(data, day)

            self.db.commit()

        except Exception:
            self.db.rollback()
            logger.exception("Error updating daily aggregates for %s", data.path)

    def _increment(self, model, key: Dict[str, Any], increments: Dict[str, Any]):
        """
        Add increments to the row identified by key, creating it on first use.

        One INSERT ... ON CONFLICT DO UPDATE statement, so concurrent writers
        (other workers included) neither lose increments nor collide on the
        first insert of the day. key must match the table's unique constraint.
        """
        dialect = self.db.get_bind().dialect.name
        if dialect not in _UPSERT_INSERTS:
            raise ValueError(f"Rollup upserts are not supported on {dialect}")

        table = model.__table__
        statement = _UPSERT_INSERTS[dialect](table).values(**key, **increments)
        statement = statement.on_conflict_do_update(
            index_elements=list(key),
            set_={name: table.c[name] + statement.excluded[name] for name in increments},
        )
        self.db.execute(statement)

    def _upsert_visit_aggregate(self, data: VisitData, day: date):
        self._increment(
            VisitAggregate,
            {"date": day, "path": data.path},
            {
                "visitors": 1,
                "page_views": 1,
                "unique_visitors": 1 if data.is_unique else 0,
                **VisitAggregate.sample_increments(data.duration, data.is_bounce),
            },
        )

    def _upsert_device_analytics(self, data: VisitData, day: date):
        self._increment(
            DeviceAnalytics,
            {
                "date": day,
                "device_type": data.device or "Unknown",
                "browser": data.browser or "Unknown",
                "os": data.os or "Unknown",
            },
            {
                "visitors": 1,
                "sessions": 1,
                **DeviceAnalytics.sample_increments(data.duration, data.is_bounce),
            },
        )

    def _upsert_traffic_source(self, data: VisitData, day: date):
        source = classify_referer(data.referer)
        self._increment(
            TrafficSource,
            {
                "date": day,
                "source": source.source,
                "medium": source.medium,
                "campaign": source.campaign,
            },
            {"visitors": 1, "sessions": 1},
        )

    async def _notify(self, data: VisitData, now: datetime):
        activity = VisitorActivity(
            type="visit",
            page=data.path,
            timestamp=now,
            user_agent=data.user_agent,
            location=data.country,
        )
        try:
            await self.notifier.visit_recorded(activity)
        except Exception:
            logger.exception("Realtime notification failed for %s", data.path)
