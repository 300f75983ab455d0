#!/usr/bin/env python3
"""
Run the subscription expiry sweep once (for cron).

Usage:
    python run_expiry_sweep.py
"""

import os
import sys

# Add backend directory to path so heydj imports resolve
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from heydj.core.logging import setup_logging  # noqa: E402
from heydj.tasks.scheduler import run_expiry_sweep  # noqa: E402


def main():
    setup_logging()
    downgraded = run_expiry_sweep()
    print(f"✅ Expiry sweep complete: {downgraded} user(s) downgraded")
    return 0


if __name__ == "__main__":
    sys.exit(main())
