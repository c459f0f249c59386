"""
Script to run one task expiration sweep by hand.
Useful when the in-process scheduler is disabled (ENABLE_TASK_EXPIRATION_SWEEP = False)
and the sweep is driven by cron instead.
"""
import sys
import logging
from datetime import datetime, timezone
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskflow.services.scheduler.task_expiration import run_expiration_sweep

logging.basicConfig(level=logging.INFO)


def parse_now(value: str) -> datetime:
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description='Expire overdue open tasks')
    parser.add_argument('--now', default=None, help='Reference time (ISO-8601, defaults to current UTC time)')

    args = parser.parse_args()
    count = run_expiration_sweep(now=parse_now(args.now) if args.now else None)
    if count is None:
        print("❌ Expiration sweep failed, see log for details")
        sys.exit(1)
    print(f"✅ Expired {count} task(s)")
