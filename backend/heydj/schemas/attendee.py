"""Pydantic schemas for the public attendee API"""
from typing import Optional
from pydantic import BaseModel


class SongRequestCreate(BaseModel):
    """Lengths and link are checked by the request service so errors stay user-facing"""
    title: Optional[str] = None
    artist: Optional[str] = None
    song_link: Optional[str] = None
