"""Plan types, feature gates and billing-period arithmetic"""
import calendar
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional, Any

from heydj.core.config import settings
from heydj.models.base import as_utc


class PlanType(str, Enum):
    NONE = "none"
    TRIAL = "trial"
    PRO = "pro"
    LIFETIME = "lifetime"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PlanType":
        """Map stored values (including legacy 'free'/NULL) onto the enum"""
        if value in (None, "", "free"):
            return cls.NONE
        return cls(value)


class BillingPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"


@dataclass(frozen=True)
class PlanFeatures:
    max_events: Optional[int]  # None = unlimited
    pro_badge: bool


PLAN_FEATURES: Dict[PlanType, PlanFeatures] = {
    PlanType.NONE: PlanFeatures(max_events=1, pro_badge=False),
    PlanType.TRIAL: PlanFeatures(max_events=None, pro_badge=False),
    PlanType.PRO: PlanFeatures(max_events=None, pro_badge=True),
    PlanType.LIFETIME: PlanFeatures(max_events=None, pro_badge=True),
}


def features_for(plan: PlanType) -> PlanFeatures:
    return PLAN_FEATURES[plan]


def add_months(start: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length.

    2024-01-31 + 1 month -> 2024-02-29
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def compute_expiry(start: datetime, period: str) -> Optional[datetime]:
    """Expiry timestamp for a subscription started at ``start``"""
    period = BillingPeriod(period)
    if period == BillingPeriod.MONTHLY:
        return add_months(start, 1)
    if period == BillingPeriod.YEARLY:
        return add_months(start, 12)
    if period == BillingPeriod.WEEKLY:
        return start + timedelta(days=settings.TRIAL_DAYS)
    return None


def plan_fields(user) -> Dict[str, Any]:
    """Raw subscription fields, JSON-serializable for the plan cache"""
    start = as_utc(user.subscription_start)
    expires = as_utc(user.subscription_expires)
    return {
        "plan": PlanType.parse(user.subscription_plan).value,
        "period": user.subscription_period,
        "started_at": start.isoformat() if start else None,
        "expires_at": expires.isoformat() if expires else None,
        "cancelled": bool(user.subscription_cancelled),
        "trial_used": bool(user.trial_used),
    }


def derive_status(fields: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Add the derived ``expired``/``effective_plan``/``features`` keys to raw plan fields"""
    plan = PlanType(fields["plan"])
    expires_at = datetime.fromisoformat(fields["expires_at"]) if fields["expires_at"] else None
    expired = plan != PlanType.NONE and expires_at is not None and now > expires_at
    effective = PlanType.NONE if expired else plan
    return {
        **fields,
        "expired": expired,
        "effective_plan": effective.value,
        "features": asdict(features_for(effective)),
    }
