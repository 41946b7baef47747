"""
Data models for realtime messages.
"""

from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Literal, Optional


class VisitorActivity(BaseModel):
    """
    Lightweight activity record pushed to the analytics room
    whenever a visit is accepted.
    """
    
    type: Literal["visit", "page_view", "interaction", "download"] = "visit"
    page: Optional[str] = Field(None, description="Visited path")
    action: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)
    user_agent: Optional[str] = None
    location: Optional[str] = Field(None, description="Visitor country")
    
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "type": "visit",
                "page": "/projects",
                "timestamp": "2025-10-29T10:30:00",
                "userAgent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
                "location": "US",
            }
        },
    )


class RealtimeMessage(BaseModel):
    """Frame exchanged on the analytics websocket"""
    
    event: str
    data: Optional[Any] = None
