"""
Realtime analytics updates over websockets.
"""

from .models import VisitorActivity, RealtimeMessage
from .notifier import RealtimeNotifier, NullNotifier
from .broadcaster import AnalyticsBroadcaster

__all__ = [
    "VisitorActivity",
    "RealtimeMessage",
    "RealtimeNotifier",
    "NullNotifier",
    "AnalyticsBroadcaster",
]
