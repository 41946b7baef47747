"""
Admission guard module for visit deduplication.
Implements Strategy Pattern for flexible claim backends.
"""

from .strategies import AdmissionGuard, RedisAdmissionGuard, InMemoryAdmissionGuard, NullAdmissionGuard
from .factory import AdmissionGuardFactory, AdmissionBackend

__all__ = [
    "AdmissionGuard",
    "RedisAdmissionGuard",
    "InMemoryAdmissionGuard",
    "NullAdmissionGuard",
    "AdmissionGuardFactory",
    "AdmissionBackend",
]
