"""
Admission guard strategies using Strategy Pattern.

The visit dedup check ("has this IP seen this path in the last hour?") is a
read followed by a write, so two identical requests arriving together can
both pass it. A guard closes that gap with an atomic claim: only the first
caller to claim a key inside the window is admitted.

Backends: Redis (shared by every worker process), In-Memory (single
process), Null (no claim, the storage check alone decides).
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict
import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class AdmissionGuard(ABC):
    """
    Abstract base class for admission guards.
    
    All methods are async because claims involve I/O (network for Redis).
    """
    
    @abstractmethod
    async def claim(self, key: str, ttl: int) -> bool:
        """
        Atomically claim a key for ttl seconds.
        
        Args:
            key: Claim key (e.g. "visit:<ip>:<path>")
            ttl: Lifetime of the claim in seconds
            
        Returns:
            True if this caller now holds the claim, False if it was already held
        """
        pass
    
    @abstractmethod
    async def release(self, key: str) -> bool:
        """
        Drop a claim before it expires.
        
        Returns:
            True if a claim was removed
        """
        pass
    
    @abstractmethod
    async def clear(self) -> bool:
        """Drop every claim."""
        pass


class RedisAdmissionGuard(AdmissionGuard):
    """
    Redis guard: SET key NX EX ttl.
    
    Atomic across every process sharing the Redis instance, and the
    TTL makes claims expire on their own.
    """
    
    key_prefix = "admission:"
    
    def __init__(self, redis_client):
        """
        Args:
            redis_client: Redis client instance (redis.Redis)
        """
        self.redis = redis_client
    
    async def claim(self, key: str, ttl: int) -> bool:
        return bool(self.redis.set(self.key_prefix + key, b"1", nx=True, ex=ttl))
    
    async def release(self, key: str) -> bool:
        return bool(self.redis.delete(self.key_prefix + key))
    
    async def clear(self) -> bool:
        keys = list(self.redis.scan_iter(match=self.key_prefix + "*"))
        if keys:
            self.redis.delete(*keys)
        return True


class InMemoryAdmissionGuard(AdmissionGuard):
    """
    In-memory guard backed by a dict of expiry times.
    
    Claims are atomic within one process (one event loop) thanks to the lock.
    Not shared between workers: use Redis when running more than one.
    """
    
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            clock: Returns the current time in seconds (injectable for tests)
        """
        self._expiry: Dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
    
    async def claim(self, key: str, ttl: int) -> bool:
        async with self._lock:
            now = self._clock()
            expires_at = self._expiry.get(key)
            if expires_at is not None and expires_at > now:
                return False
            self._expiry[key] = now + ttl
            self._purge(now)
            return True
    
    async def release(self, key: str) -> bool:
        async with self._lock:
            return self._expiry.pop(key, None) is not None
    
    async def clear(self) -> bool:
        async with self._lock:
            self._expiry.clear()
            return True
    
    def _purge(self, now: float):
        """Forget expired claims so the dict does not grow forever"""
        expired = [k for k, expires_at in self._expiry.items() if expires_at <= now]
        for k in expired:
            del self._expiry[k]


class NullAdmissionGuard(AdmissionGuard):
    """
    Null Object Pattern - admits everyone.
    
    Used when the guard is disabled; dedup then relies on the
    storage check only (with its check-then-act race).
    """
    
    async def claim(self, key: str, ttl: int) -> bool:
        return True
    
    async def release(self, key: str) -> bool:
        return False
    
    async def clear(self) -> bool:
        return True
