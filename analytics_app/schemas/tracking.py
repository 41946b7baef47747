from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys (what the frontend sends)"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VisitData(BaseModel):
    """
    Visit event handed to the collection service.
    
    Request metadata (IP, user agent) comes from the HTTP request,
    device fields are filled in by user-agent parsing.
    """
    
    path: str = Field(..., min_length=1, description="Visited path")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="User agent string")
    referer: Optional[str] = Field(None, description="HTTP referer")
    
    # Parsed metadata
    country: Optional[str] = None
    device: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    
    session_id: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0, description="Time on page in seconds")
    is_unique: bool = True
    is_bounce: bool = False


class TrackVisitRequest(CamelModel):
    path: str = Field(..., min_length=1)
    session_id: Optional[str] = None
    referer: Optional[str] = None


class TrackPageViewRequest(TrackVisitRequest):
    duration: Optional[float] = Field(None, ge=0)


class TrackInteractionRequest(CamelModel):
    type: str = Field(..., min_length=1, description="Action tag, e.g. click or download")
    element: Optional[str] = None
    value: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    session_id: Optional[str] = None
    path: Optional[str] = None


class TrackResponse(BaseModel):
    """Skipped events (admin path, repeat visit) are still a success"""
    success: bool = True
    id: Optional[int] = None
    tracked: bool
