"""
Report payloads. Serialized with camelCase keys.
"""

from datetime import datetime
from typing import List, Optional

from analytics_app.schemas.tracking import CamelModel


class AnalyticsOverview(CamelModel):
    total_visitors: int = 0
    total_page_views: int = 0
    avg_session_duration: float = 0.0
    bounce_rate: float = 0.0
    visitor_growth: int = 0


class OverviewGrowth(CamelModel):
    visitors: int
    page_views: int
    avg_session_duration: int
    bounce_rate: int


class PeriodInfo(CamelModel):
    start: datetime
    end: datetime
    type: str


class OverviewReport(AnalyticsOverview):
    growth: OverviewGrowth
    period: PeriodInfo


class TrafficGrowthPoint(CamelModel):
    date: str
    visitors: int
    page_views: int


class DeviceBreakdown(CamelModel):
    device_type: str
    visitors: int
    percentage: float


class BrowserStat(CamelModel):
    browser: str
    visitors: int
    percentage: float


class OperatingSystemStat(CamelModel):
    os: str
    visitors: int
    percentage: float


class TrafficSourceStat(CamelModel):
    source: str
    visitors: int
    percentage: float


class PagePerformance(CamelModel):
    path: str
    page_views: int
    avg_time_on_page: float
    bounce_rate: float


class ProjectEngagement(CamelModel):
    path: str
    views: int
    avg_time: Optional[float] = None


class ComprehensiveAnalytics(CamelModel):
    overview: AnalyticsOverview
    traffic_growth: List[TrafficGrowthPoint]
    device_breakdown: List[DeviceBreakdown]
    browser_stats: List[BrowserStat]
    os_stats: List[OperatingSystemStat]
    traffic_sources: List[TrafficSourceStat]
    top_pages: List[PagePerformance]
    contact_submissions: int
    project_engagement: List[ProjectEngagement]
    cv_downloads: int
    period: PeriodInfo


class LiveVisitorCount(CamelModel):
    count: int
