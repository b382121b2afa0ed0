"""
Prune low-risk audit logs older than the retention period.

Entries with a risk score of 5 or more are always kept.

Usage:
  python scripts/cleanup_audit_logs.py
  python scripts/cleanup_audit_logs.py --days 180
  python scripts/cleanup_audit_logs.py --days 180 --dry-run
"""

import argparse
import os
import sys
from datetime import datetime, timedelta

# Ensure project root is on sys.path when running as a script
CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from app import create_app
from models.audit import AuditLog
from services.audit_service import RETAINED_RISK_SCORE, AuditService


def main():
    parser = argparse.ArgumentParser(description="Prune low-risk audit logs")
    parser.add_argument('--days', type=int, help="Retention in days (default: AUDIT_RETENTION_DAYS)")
    parser.add_argument('--dry-run', action='store_true', help="Only count what would be removed")
    args = parser.parse_args()

    if args.days is not None and args.days < 1:
        raise SystemExit("--days must be at least 1")

    app = create_app()
    with app.app_context():
        days = args.days if args.days is not None else app.config['AUDIT_RETENTION_DAYS']
        if args.dry_run:
            cutoff = datetime.utcnow() - timedelta(days=days)
            count = (AuditLog.query
                     .filter(AuditLog.timestamp < cutoff, AuditLog.risk_score < RETAINED_RISK_SCORE)
                     .count())
            print(f"[DRY RUN] {count} audit log(s) older than {days} days would be removed")
            return
        deleted = AuditService.cleanup_old_logs(days)
        print(f"Removed {deleted} audit log(s) older than {days} days")


if __name__ == '__main__':
    main()
