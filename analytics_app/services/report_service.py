from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from analytics_app.config import settings
from analytics_app.models import VisitEvent, VisitAggregate, UserInteraction, Contact
from analytics_app.schemas.reports import (
    AnalyticsOverview,
    BrowserStat,
    ComprehensiveAnalytics,
    DeviceBreakdown,
    OperatingSystemStat,
    OverviewGrowth,
    OverviewReport,
    PagePerformance,
    PeriodInfo,
    ProjectEngagement,
    TrafficGrowthPoint,
    TrafficSourceStat,
)
from analytics_app.services.date_ranges import (
    DateRange,
    GroupBy,
    TimePeriod,
    calculate_growth,
    resolve_date_range,
)
from analytics_app.services.traffic_source import classify_referer


def _percentage(part: int, total: int) -> float:
    return part / total * 100 if total > 0 else 0.0


def _bucket_key(day: date, group_by: GroupBy) -> str:
    if group_by == GroupBy.WEEK:
        # Weeks start on Sunday
        week_start = day - timedelta(days=(day.weekday() + 1) % 7)
        return week_start.isoformat()
    if group_by == GroupBy.MONTH:
        return f"{day.year}-{day.month:02d}"
    return day.isoformat()


class ReportService:
    """
    Read-only analytics reports over an inclusive [start, end] range.

    Rollup tables (VisitAggregate) are filtered by calendar date, raw
    visit events by timestamp.
    """

    def __init__(self, db: Session):
        self.db = db

    def _aggregate_range(self, start: datetime, end: datetime):
        return VisitAggregate.date.between(start.date(), end.date())

    def _event_range(self, start: datetime, end: datetime):
        return VisitEvent.timestamp.between(start, end)

    async def get_analytics_overview(
        self,
        start: datetime,
        end: datetime,
        previous_start: Optional[datetime] = None,
        previous_end: Optional[datetime] = None,
    ) -> AnalyticsOverview:
        """
        Totals for the range. Averages are weighted over every sample in range.

        With a previous range, visitor growth is reported against it.
        """
        overview = self._overview_totals(start, end)

        if previous_start is not None and previous_end is not None:
            previous_visitors = self.db.query(
                func.coalesce(func.sum(VisitAggregate.visitors), 0)
            ).filter(self._aggregate_range(previous_start, previous_end)).scalar()
            overview.visitor_growth = calculate_growth(overview.total_visitors, previous_visitors)

        return overview

    async def get_overview_report(self, date_range: DateRange, period: TimePeriod) -> OverviewReport:
        """Overview plus growth of every metric against the preceding window"""
        previous = date_range.previous()
        overview = self._overview_totals(date_range.start, date_range.end)
        prior = self._overview_totals(previous.start, previous.end)

        overview.visitor_growth = calculate_growth(overview.total_visitors, prior.total_visitors)

        return OverviewReport(
            **overview.model_dump(),
            growth=OverviewGrowth(
                visitors=overview.visitor_growth,
                page_views=calculate_growth(overview.total_page_views, prior.total_page_views),
                avg_session_duration=calculate_growth(overview.avg_session_duration, prior.avg_session_duration),
                bounce_rate=calculate_growth(overview.bounce_rate, prior.bounce_rate),
            ),
            period=PeriodInfo(start=date_range.start, end=date_range.end, type=TimePeriod(period).value),
        )

    def _overview_totals(self, start: datetime, end: datetime) -> AnalyticsOverview:
        visitors, page_views, total_duration, samples, bounces = self.db.query(
            func.coalesce(func.sum(VisitAggregate.visitors), 0),
            func.coalesce(func.sum(VisitAggregate.page_views), 0),
            func.coalesce(func.sum(VisitAggregate.total_duration), 0.0),
            func.coalesce(func.sum(VisitAggregate.duration_samples), 0),
            func.coalesce(func.sum(VisitAggregate.bounces), 0),
        ).filter(self._aggregate_range(start, end)).one()

        return AnalyticsOverview(
            total_visitors=visitors,
            total_page_views=page_views,
            avg_session_duration=total_duration / samples if samples else 0.0,
            bounce_rate=_percentage(bounces, page_views),
        )

    async def get_traffic_growth_chart(
        self,
        start: datetime,
        end: datetime,
        group_by: GroupBy = GroupBy.DAY,
    ) -> List[TrafficGrowthPoint]:
        rows = self.db.query(VisitAggregate).filter(
            self._aggregate_range(start, end)
        ).order_by(VisitAggregate.date.asc()).all()

        # Rows arrive sorted, so insertion order is chronological
        buckets: Dict[str, Dict[str, int]] = OrderedDict()
        for row in rows:
            key = _bucket_key(row.date, GroupBy(group_by))
            bucket = buckets.setdefault(key, {"visitors": 0, "page_views": 0})
            bucket["visitors"] += row.visitors
            bucket["page_views"] += row.page_views

        return [
            TrafficGrowthPoint(date=key, visitors=b["visitors"], page_views=b["page_views"])
            for key, b in buckets.items()
        ]

    def _count_events_by(self, column, start: datetime, end: datetime, limit: Optional[int] = None):
        """(value, count) pairs for non-null values of column, most frequent first"""
        count = func.count(VisitEvent.id)
        query = self.db.query(column, count).filter(
            self._event_range(start, end),
            column.isnot(None),
        ).group_by(column).order_by(count.desc(), column.asc())
        if limit:
            query = query.limit(limit)
        return query.all()

    async def get_device_breakdown(self, start: datetime, end: datetime) -> List[DeviceBreakdown]:
        rows = self._count_events_by(VisitEvent.device, start, end)
        total = sum(count for _, count in rows)
        return [
            DeviceBreakdown(device_type=device, visitors=count, percentage=_percentage(count, total))
            for device, count in rows
        ]

    async def get_browser_stats(self, start: datetime, end: datetime) -> List[BrowserStat]:
        """Top 10 browsers; percentages are of all visits with a known browser"""
        total = self.db.query(func.count(VisitEvent.id)).filter(
            self._event_range(start, end), VisitEvent.browser.isnot(None)
        ).scalar()
        rows = self._count_events_by(VisitEvent.browser, start, end, limit=10)
        return [
            BrowserStat(browser=browser, visitors=count, percentage=_percentage(count, total))
            for browser, count in rows
        ]

    async def get_operating_system_stats(self, start: datetime, end: datetime) -> List[OperatingSystemStat]:
        """Top 10 operating systems"""
        total = self.db.query(func.count(VisitEvent.id)).filter(
            self._event_range(start, end), VisitEvent.os.isnot(None)
        ).scalar()
        rows = self._count_events_by(VisitEvent.os, start, end, limit=10)
        return [
            OperatingSystemStat(os=os_name, visitors=count, percentage=_percentage(count, total))
            for os_name, count in rows
        ]

    async def get_traffic_sources(self, start: datetime, end: datetime) -> List[TrafficSourceStat]:
        """Visits per source, classified from the raw referer and merged by source"""
        rows = self.db.query(VisitEvent.referer, func.count(VisitEvent.id)).filter(
            self._event_range(start, end)
        ).group_by(VisitEvent.referer).all()

        per_source: Dict[str, int] = {}
        for referer, count in rows:
            source = classify_referer(referer).source
            per_source[source] = per_source.get(source, 0) + count

        total = sum(per_source.values())
        return [
            TrafficSourceStat(source=source, visitors=count, percentage=_percentage(count, total))
            for source, count in sorted(per_source.items(), key=lambda item: (-item[1], item[0]))
        ]

    async def get_top_pages(
        self,
        start: datetime,
        end: datetime,
        limit: int = 10,
    ) -> List[PagePerformance]:
        rows = self.db.query(VisitAggregate).filter(
            self._aggregate_range(start, end)
        ).order_by(VisitAggregate.page_views.desc(), VisitAggregate.path.asc()).limit(limit).all()

        return [
            PagePerformance(
                path=row.path or "/",
                page_views=row.page_views,
                avg_time_on_page=row.avg_duration,
                bounce_rate=row.bounce_rate,
            )
            for row in rows
        ]

    async def get_contact_form_submissions(self, start: datetime, end: datetime) -> int:
        return self.db.query(func.count(Contact.id)).filter(
            Contact.created_at.between(start, end)
        ).scalar()

    async def get_project_engagement(self, start: datetime, end: datetime) -> List[ProjectEngagement]:
        """Visits and average time per project page (paths under /projects/)"""
        count = func.count(VisitEvent.id)
        rows = self.db.query(VisitEvent.path, count, func.avg(VisitEvent.duration)).filter(
            self._event_range(start, end),
            VisitEvent.path.startswith("/projects/"),
        ).group_by(VisitEvent.path).order_by(count.desc(), VisitEvent.path.asc()).all()

        return [
            ProjectEngagement(path=path, views=views, avg_time=avg_time)
            for path, views, avg_time in rows
        ]

    async def get_cv_downloads(self, start: datetime, end: datetime) -> int:
        """Download interactions whose element or value looks like a CV/resume"""
        return self.db.query(func.count(UserInteraction.id)).filter(
            UserInteraction.timestamp.between(start, end),
            UserInteraction.action == "download",
            or_(
                UserInteraction.element.contains("cv"),
                UserInteraction.element.contains("resume"),
                UserInteraction.value.contains(".pdf"),
                UserInteraction.value.contains("cv"),
                UserInteraction.value.contains("resume"),
            ),
        ).scalar()

    async def get_comprehensive_analytics(
        self,
        period: TimePeriod = TimePeriod.LAST_30_DAYS,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        date_range: Optional[DateRange] = None,
    ) -> ComprehensiveAnalytics:
        """
        Every report for one resolved range in a single payload.

        Served by the HTTP report endpoint and pushed to realtime subscribers.
        """
        date_range = date_range or resolve_date_range(period, start_date, end_date)
        start, end = date_range.start, date_range.end

        return ComprehensiveAnalytics(
            overview=await self.get_analytics_overview(start, end),
            traffic_growth=await self.get_traffic_growth_chart(start, end, GroupBy.DAY),
            device_breakdown=await self.get_device_breakdown(start, end),
            browser_stats=await self.get_browser_stats(start, end),
            os_stats=await self.get_operating_system_stats(start, end),
            traffic_sources=await self.get_traffic_sources(start, end),
            top_pages=await self.get_top_pages(start, end, settings.top_pages_limit),
            contact_submissions=await self.get_contact_form_submissions(start, end),
            project_engagement=await self.get_project_engagement(start, end),
            cv_downloads=await self.get_cv_downloads(start, end),
            period=PeriodInfo(start=start, end=end, type=TimePeriod(period).value),
        )
