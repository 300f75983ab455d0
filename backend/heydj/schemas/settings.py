"""Pydantic schemas for DJ settings and profile"""
from typing import Dict, Optional
from pydantic import BaseModel, Field


class DJSettingsUpdate(BaseModel):
    """Partial update; range checks happen in the settings service"""
    theme: Optional[str] = None
    show_vote_count: Optional[bool] = None
    request_limit: Optional[int] = None


class ProfileUpdate(BaseModel):
    dj_name: Optional[str] = Field(None, max_length=100)
    avatar_url: Optional[str] = Field(None, max_length=500)
    bio: Optional[str] = Field(None, max_length=1000)
    social_links: Optional[Dict[str, str]] = None
