"""
Database models for visitor analytics.

Raw events (visits, interactions) are written once and never mutated.
Daily rollups are upserted on every accepted visit.
"""

from .visit import VisitEvent, UserInteraction
from .aggregates import VisitAggregate, DeviceAnalytics, TrafficSource
from .contact import Contact

__all__ = [
    "VisitEvent",
    "UserInteraction",
    "VisitAggregate",
    "DeviceAnalytics",
    "TrafficSource",
    "Contact",
]
