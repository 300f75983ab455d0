"""Pydantic schemas for the contact form"""
from pydantic import BaseModel, Field


class ContactMessage(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    message: str = Field(..., min_length=1, max_length=5000)
