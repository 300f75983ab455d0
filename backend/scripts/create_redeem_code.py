#!/usr/bin/env python3
"""
Create single-use redemption codes.

Usage:
    # One lifetime code
    python create_redeem_code.py

    # Five lifetime codes
    python create_redeem_code.py --count 5

    # A specific code granting Pro
    python create_redeem_code.py --code LAUNCH-PARTY --plan pro
"""

import argparse
import os
import secrets
import sys

# Add backend directory to path so heydj imports resolve
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from heydj.db.session import SessionLocal  # noqa: E402
from heydj.models import RedemptionCode  # noqa: E402
from heydj.services.subscription_service import REDEMPTION_PERIODS  # noqa: E402
from heydj.services.plan import PlanType  # noqa: E402


def generate_code() -> str:
    """Readable code like HEYDJ-3F9K-QX2M"""
    alphabet = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    groups = ["".join(secrets.choice(alphabet) for _ in range(4)) for _ in range(2)]
    return "HEYDJ-" + "-".join(groups)


def create_codes(count: int, plan: str, code: str = None) -> list:
    db = SessionLocal()
    try:
        created = []
        for _ in range(count):
            value = code or generate_code()
            if db.query(RedemptionCode).filter(RedemptionCode.code == value).first():
                print(f"❌ Code already exists: {value}")
                continue
            db.add(RedemptionCode(code=value, plan=plan))
            created.append(value)
        db.commit()
        return created
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create redemption codes")
    parser.add_argument("--count", type=int, default=1, help="Number of codes to create")
    parser.add_argument("--plan", default=PlanType.LIFETIME.value,
                        choices=[p.value for p in REDEMPTION_PERIODS], help="Plan granted by the code")
    parser.add_argument("--code", help="Use this exact code (only with --count 1)")
    args = parser.parse_args()

    if args.code and args.count != 1:
        parser.error("--code can only be used with --count 1")

    created = create_codes(args.count, args.plan, args.code)
    for value in created:
        print(f"✅ {value} ({args.plan})")
    return 0 if created else 1


if __name__ == "__main__":
    sys.exit(main())
