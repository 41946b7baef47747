"""
Realtime notifier interface.

The collection service only knows this interface; the broadcaster that
implements it is built once at start-up and injected, so ingestion and
reporting never hold references to each other.
"""

from abc import ABC, abstractmethod

from .models import VisitorActivity


class RealtimeNotifier(ABC):
    
    @abstractmethod
    async def visit_recorded(self, activity: VisitorActivity) -> None:
        """
        Announce an accepted visit.
        
        Implementations must not raise: push failures are logged and dropped.
        """
        pass
    
    @abstractmethod
    def connected_clients(self) -> int:
        """Number of currently connected realtime clients"""
        pass


class NullNotifier(RealtimeNotifier):
    """Null Object Pattern - used when realtime updates are disabled"""
    
    async def visit_recorded(self, activity: VisitorActivity) -> None:
        return None
    
    def connected_clients(self) -> int:
        return 0
