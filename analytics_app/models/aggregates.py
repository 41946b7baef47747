"""
Daily rollup tables.

Each row is keyed by a calendar date plus a dimension and only ever grows.
Averages are not stored: rows keep running sums and the average is derived
when read. Counters are only ever incremented by the database itself.
"""

from sqlalchemy import Column, Integer, String, Date, Float, UniqueConstraint
from analytics_app.database.connection import Base


class RunningAveragesMixin:
    """Duration and bounce sums shared by the path and device rollups"""

    total_duration = Column(Float, default=0.0, nullable=False)
    duration_samples = Column(Integer, default=0, nullable=False)
    bounces = Column(Integer, default=0, nullable=False)

    @staticmethod
    def sample_increments(duration, is_bounce: bool) -> dict:
        """Column increments contributed by one visit"""
        return {
            "total_duration": duration or 0.0,
            "duration_samples": 1 if duration is not None else 0,
            "bounces": 1 if is_bounce else 0,
        }

    @property
    def avg_duration(self) -> float:
        if not self.duration_samples:
            return 0.0
        return self.total_duration / self.duration_samples


class VisitAggregate(RunningAveragesMixin, Base):
    """Per (date, path) visit counters."""
    __tablename__ = "visit_aggregates"
    __table_args__ = (UniqueConstraint("date", "path", name="uq_visit_aggregate_date_path"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True)
    path = Column(String, nullable=False)
    visitors = Column(Integer, default=0, nullable=False)
    page_views = Column(Integer, default=0, nullable=False)
    unique_visitors = Column(Integer, default=0, nullable=False)

    @property
    def bounce_rate(self) -> float:
        if not self.page_views:
            return 0.0
        return self.bounces / self.page_views * 100


class DeviceAnalytics(RunningAveragesMixin, Base):
    """Per (date, device type, browser, os) counters."""
    __tablename__ = "device_analytics"
    __table_args__ = (
        UniqueConstraint("date", "device_type", "browser", "os", name="uq_device_analytics_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True)
    device_type = Column(String, nullable=False)
    browser = Column(String, nullable=False)
    os = Column(String, nullable=False)
    visitors = Column(Integer, default=0, nullable=False)
    sessions = Column(Integer, default=0, nullable=False)

    @property
    def bounce_rate(self) -> float:
        if not self.sessions:
            return 0.0
        return self.bounces / self.sessions * 100


class TrafficSource(Base):
    """Per (date, source, medium, campaign) counters."""
    __tablename__ = "traffic_sources"
    __table_args__ = (
        UniqueConstraint("date", "source", "medium", "campaign", name="uq_traffic_source_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True)
    source = Column(String, nullable=False)
    medium = Column(String, nullable=False)
    campaign = Column(String, nullable=False)
    visitors = Column(Integer, default=0, nullable=False)
    sessions = Column(Integer, default=0, nullable=False)
