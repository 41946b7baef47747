from typing import List
from fastapi import APIRouter, Depends, Query
from analytics_app.config import settings
from analytics_app.schemas.reports import (
    BrowserStat,
    ComprehensiveAnalytics,
    DeviceBreakdown,
    LiveVisitorCount,
    OperatingSystemStat,
    OverviewReport,
    PagePerformance,
    TrafficGrowthPoint,
    TrafficSourceStat,
)
from analytics_app.services.date_ranges import DateRange, GroupBy, TimePeriod
from analytics_app.services.report_service import ReportService
from analytics_app.realtime.broadcaster import AnalyticsBroadcaster
from analytics_app.dependencies import get_report_service, get_date_range, get_broadcaster
from analytics_app.security import get_current_user

# Every report requires a valid access token
router = APIRouter(
    prefix="/analytics",
    tags=["reports"],
    dependencies=[Depends(get_current_user)],
)


@router.get("/overview", response_model=OverviewReport)
async def get_analytics_overview(
    period: TimePeriod = Query(TimePeriod(settings.default_period)),
    date_range: DateRange = Depends(get_date_range),
    report_service: ReportService = Depends(get_report_service)
):
    """Totals for the period, with growth against the preceding window of equal length"""
    return await report_service.get_overview_report(date_range, period)


@router.get("/traffic-growth", response_model=List[TrafficGrowthPoint])
async def get_traffic_growth_chart(
    group_by: GroupBy = Query(GroupBy.DAY, alias="groupBy"),
    date_range: DateRange = Depends(get_date_range),
    report_service: ReportService = Depends(get_report_service)
):
    return await report_service.get_traffic_growth_chart(date_range.start, date_range.end, group_by)


@router.get("/device-breakdown", response_model=List[DeviceBreakdown])
async def get_device_breakdown(
    date_range: DateRange = Depends(get_date_range),
    report_service: ReportService = Depends(get_report_service)
):
    return await report_service.get_device_breakdown(date_range.start, date_range.end)


@router.get("/browser-stats", response_model=List[BrowserStat])
async def get_browser_stats(
    date_range: DateRange = Depends(get_date_range),
    report_service: ReportService = Depends(get_report_service)
):
    return await report_service.get_browser_stats(date_range.start, date_range.end)


@router.get("/operating-systems", response_model=List[OperatingSystemStat])
async def get_operating_system_stats(
    date_range: DateRange = Depends(get_date_range),
    report_service: ReportService = Depends(get_report_service)
):
    return await report_service.get_operating_system_stats(date_range.start, date_range.end)


@router.get("/traffic-sources", response_model=List[TrafficSourceStat])
async def get_traffic_sources(
    date_range: DateRange = Depends(get_date_range),
    report_service: ReportService = Depends(get_report_service)
):
    return await report_service.get_traffic_sources(date_range.start, date_range.end)


@router.get("/top-pages", response_model=List[PagePerformance])
async def get_top_pages(
    limit: int = Query(settings.top_pages_limit, ge=1, le=100),
    date_range: DateRange = Depends(get_date_range),
    report_service: ReportService = Depends(get_report_service)
):
    return await report_service.get_top_pages(date_range.start, date_range.end, limit)


@router.get("/comprehensive", response_model=ComprehensiveAnalytics)
async def get_comprehensive_analytics(
    period: TimePeriod = Query(TimePeriod(settings.default_period)),
    date_range: DateRange = Depends(get_date_range),
    report_service: ReportService = Depends(get_report_service)
):
    return await report_service.get_comprehensive_analytics(period, date_range=date_range)


@router.get("/live-visitors", response_model=LiveVisitorCount)
async def get_live_visitor_count(
    broadcaster: AnalyticsBroadcaster = Depends(get_broadcaster)
):
    """Number of dashboards currently connected to the realtime channel"""
    return LiveVisitorCount(count=broadcaster.connected_clients())
