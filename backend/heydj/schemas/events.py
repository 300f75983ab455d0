"""Pydantic schemas for events and the DJ queue"""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class EventCreate(BaseModel):
    name: str = Field(..., max_length=200)
    start_time: Optional[str] = Field(None, max_length=20)
    end_time: Optional[str] = Field(None, max_length=20)
    location: Optional[str] = Field(None, max_length=255)


class SongStatusUpdate(BaseModel):
    status: Literal["pending", "played", "rejected"]


class QueueReorderRequest(BaseModel):
    ordered_ids: List[str]
