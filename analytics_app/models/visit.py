from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, JSON, Index
from analytics_app.database.connection import Base


class VisitEvent(Base):
    """
    One row per accepted visit.
    
    Admin paths and repeated visits (same IP + path inside the dedup window)
    never reach this table. Rows are never updated after insert.
    """
    __tablename__ = "visit_events"
    __table_args__ = (
        # Dedup lookup: same IP + path since (now - window)
        Index("ix_visit_events_ip_path_ts", "ip_address", "path", "timestamp"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    path = Column(String, nullable=False)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    referer = Column(String, nullable=True)
    country = Column(String, nullable=True)
    device = Column(String, nullable=True)
    browser = Column(String, nullable=True)
    os = Column(String, nullable=True)
    session_id = Column(String, nullable=True)
    duration = Column(Float, nullable=True)  # seconds
    is_unique = Column(Boolean, default=True, nullable=False)
    is_bounce = Column(Boolean, default=False, nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)


class UserInteraction(Base):
    """Tracked interaction (click, download...). Not deduplicated."""
    __tablename__ = "user_interactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    session_id = Column(String, nullable=False, default="anonymous")
    path = Column(String, nullable=False)
    action = Column(String, nullable=False, index=True)
    element = Column(String, nullable=True)
    value = Column(String, nullable=True)
    details = Column(JSON, nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)
