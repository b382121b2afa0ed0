"""
Background runner for scheduled reports and audit retention.

Polls for due scheduled reports every SCHEDULER_POLL_MINUTES and prunes
low-risk audit logs once a day at 02:30.

Usage:
  python scripts/run_scheduler.py
"""

import logging
import os
import sys
import time

# Ensure project root is on sys.path when running as a script
CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from app import create_app
from services.audit_service import AuditService
from services.scheduled_report_service import ScheduledReportService

logger = logging.getLogger('scheduler')


def build_scheduler(app):
    """BackgroundScheduler with the report and retention jobs registered"""

    def run_due_reports():
        with app.app_context():
            ScheduledReportService.run_due_reports()

    def cleanup_audit_logs():
        with app.app_context():
            AuditService.cleanup_old_logs()

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        func=run_due_reports,
        trigger='interval',
        minutes=app.config.get('SCHEDULER_POLL_MINUTES', 5),
        id='run_due_reports',
        name='Generate due scheduled reports',
        replace_existing=True,
    )
    scheduler.add_job(
        func=cleanup_audit_logs,
        trigger=CronTrigger(hour=2, minute=30),
        id='cleanup_audit_logs',
        name='Prune low-risk audit logs',
        replace_existing=True,
    )
    return scheduler


def main():
    app = create_app()
    scheduler = build_scheduler(app)
    scheduler.start()
    logger.info("Scheduler started, polling every %s minutes", app.config.get('SCHEDULER_POLL_MINUTES', 5))
    try:
        while True:
            time.sleep(60)
    except (KeyboardInterrupt, SystemExit):
        scheduler.shutdown()
        logger.info("Scheduler stopped")


if __name__ == '__main__':
    main()
