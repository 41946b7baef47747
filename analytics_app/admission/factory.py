"""
Factory for creating admission guard instances.
Simple factory with singleton caching.
"""

from enum import Enum
import logging

from .strategies import AdmissionGuard, RedisAdmissionGuard, InMemoryAdmissionGuard, NullAdmissionGuard
from analytics_app.config import settings

logger = logging.getLogger(__name__)


class AdmissionBackend(Enum):
    """Available admission guard backends"""
    REDIS = "redis"
    MEMORY = "memory"
    NULL = "null"


class AdmissionGuardFactory:
    """
    Creates the admission guard once and reuses it.
    Gets configuration from settings (not passed as parameters).
    """
    
    _instance: AdmissionGuard = None
    
    @classmethod
    def create(cls, backend: AdmissionBackend) -> AdmissionGuard:
        """
        Create or return cached admission guard.
        
        Args:
            backend: Type of guard backend (from enum)
            
        Returns:
            Singleton guard instance
        """
        if cls._instance is not None:
            return cls._instance
        
        if backend == AdmissionBackend.REDIS:
            import redis
            
            try:
                redis_client = redis.from_url(
                    settings.redis_url,
                    decode_responses=False,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )
                
                # Fail fast here rather than on the first visit
                redis_client.ping()
                
                cls._instance = RedisAdmissionGuard(redis_client)
                logger.info("Redis admission guard initialized")
                
            except Exception as e:
                logger.warning("Redis connection failed (%s), falling back to in-memory admission guard", e)
                cls._instance = InMemoryAdmissionGuard()
            
        elif backend == AdmissionBackend.MEMORY:
            cls._instance = InMemoryAdmissionGuard()
            logger.info("In-memory admission guard initialized")
            
        elif backend == AdmissionBackend.NULL:
            cls._instance = NullAdmissionGuard()
            logger.info("Null admission guard initialized")
            
        else:
            raise ValueError(f"Unknown admission backend: {backend}")
        
        return cls._instance
    
    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
