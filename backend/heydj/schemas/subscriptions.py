"""Pydantic schemas for billing and subscriptions"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan: str
    period: str
    email: Optional[str] = None
    user_id: str = Field(..., alias="userId")
    name: Optional[str] = None


class StartTrialRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    email: Optional[str] = None


class CancelSubscriptionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")


class CheckUserExistsRequest(BaseModel):
    email: str


class RedeemCodeRequest(BaseModel):
    code: str = Field(..., max_length=64)
