"""
FastAPI dependencies for dependency injection.

This module provides the singleton admission guard and realtime
broadcaster, and builds request-scoped services around them.
Tests replace any of these through app.dependency_overrides.
"""

from datetime import datetime
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from analytics_app.admission.factory import AdmissionGuardFactory, AdmissionBackend
from analytics_app.admission.strategies import AdmissionGuard
from analytics_app.config import settings
from analytics_app.database.connection import SessionLocal, get_db
from analytics_app.realtime.broadcaster import AnalyticsBroadcaster
from analytics_app.realtime.notifier import NullNotifier, RealtimeNotifier
from analytics_app.services.collection_service import CollectionService
from analytics_app.services.date_ranges import DateRange, InvalidDateRange, TimePeriod, resolve_date_range
from analytics_app.services.report_service import ReportService


@lru_cache()
def get_admission_guard() -> AdmissionGuard:
    """
    Get admission guard instance (singleton).
    
    Factory gets config from settings internally.
    """
    backend = AdmissionBackend(settings.admission_backend)
    return AdmissionGuardFactory.create(backend)


@lru_cache()
def get_broadcaster() -> AnalyticsBroadcaster:
    """
    Get the realtime broadcaster (singleton).
    
    Built once; the collection service receives it as a RealtimeNotifier.
    """
    return AnalyticsBroadcaster(session_factory=SessionLocal)


def get_notifier(
    broadcaster: AnalyticsBroadcaster = Depends(get_broadcaster),
) -> RealtimeNotifier:
    """The broadcaster, or a no-op notifier when realtime is switched off"""
    if not settings.realtime_enabled:
        return NullNotifier()
    return broadcaster


def get_collection_service(
    db: Session = Depends(get_db),
    guard: AdmissionGuard = Depends(get_admission_guard),
    notifier: RealtimeNotifier = Depends(get_notifier),
) -> CollectionService:
    """Get CollectionService with all dependencies injected."""
    return CollectionService(db=db, guard=guard, notifier=notifier)


def get_report_service(db: Session = Depends(get_db)) -> ReportService:
    return ReportService(db=db)


def get_date_range(
    period: TimePeriod = Query(TimePeriod(settings.default_period)),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
) -> DateRange:
    """Resolve the period/startDate/endDate query parameters"""
    try:
        return resolve_date_range(period, start_date, end_date)
    except InvalidDateRange as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
