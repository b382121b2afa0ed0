"""
Scheduled report service for the Lecturer Attendance Management System
Cron-driven report definitions, manual triggers and the due-report runner
"""

import json
import logging
import os
import re
from datetime import datetime, timedelta, timezone

from apscheduler.triggers.cron import CronTrigger

from database import db, handle_db_error
from models.report import ScheduledReport
from models.user import User, UserRole
from services.notification_service import NotificationService
from services.reporting_service import DATE_RANGES, EXPORT_FORMATS, MIME_TYPES, REPORT_TABS, ReportingService
from utils.db_helpers import get_or_404, paginate
from utils.errors import PermissionDeniedError, ValidationError
from utils.validators import validate_cron_expression, validate_email

logger = logging.getLogger(__name__)


CRON_DAY_NAMES = ('sun', 'mon', 'tue', 'wed', 'thu', 'fri', 'sat')
WEEKDAY_ITEM = re.compile(r'^(\*|\d+)(?:-(\d+))?(?:/(\d+))?$')


def _weekday_names(item):
    """One crontab weekday item (n, a-b, a-b/s, */s) as explicit day names"""
    match = WEEKDAY_ITEM.match(item)
    if not match:
        return item
    first, last, step = match.groups()
    if first == '*':
        if last or not step:
            return item
        start, end = 0, 6
    else:
        start = int(first)
        end = int(last) if last else (7 if step else start)
    step = int(step) if step else 1
    if end > 7 or start > end or step < 1:
        raise ValidationError(f"Invalid day of week in schedule: {item}")

    names = []
    for day in range(start, end + 1, step):
        if CRON_DAY_NAMES[day % 7] not in names:
            names.append(CRON_DAY_NAMES[day % 7])
    return ','.join(names)


def _named_weekdays(expression):
    # CronTrigger counts weekdays from Monday; crontab counts from Sunday (0 or 7)
    fields = expression.split()
    fields[4] = ','.join(_weekday_names(item) for item in fields[4].split(','))
    return ' '.join(fields)


def cron_trigger(expression):
    """CronTrigger for a 5-field expression, ValidationError when it does not parse"""
    is_valid, message = validate_cron_expression(expression)
    if not is_valid:
        raise ValidationError(message)
    try:
        return CronTrigger.from_crontab(_named_weekdays(expression), timezone=timezone.utc)
    except ValueError as e:
        raise ValidationError(f"Invalid cron expression: {e}")


def next_run_after(expression, now=None):
    """First fire time strictly after now, as a naive UTC datetime"""
    now = (now or datetime.utcnow()).replace(microsecond=0) + timedelta(seconds=1)
    fire_time = cron_trigger(expression).get_next_fire_time(None, now.replace(tzinfo=timezone.utc))
    return fire_time.astimezone(timezone.utc).replace(tzinfo=None) if fire_time else None


class ScheduledReportService:
    """Scheduled report service class"""

    @staticmethod
    def _require_manager(user):
        if user.role not in UserRole.MANAGERS:
            raise PermissionDeniedError("Only administrators and coordinators can manage scheduled reports")

    @staticmethod
    def _clean(data, partial=False):
        """Validate the writable fields present in data"""
        cleaned = {}
        if not partial or 'name' in data:
            name = (data.get('name') or '').strip()
            if not name:
                raise ValidationError("Name is required")
            cleaned['name'] = name
        if 'description' in data:
            cleaned['description'] = data.get('description')

        if not partial or 'report_type' in data:
            report_type = data.get('report_type') or 'overview'
            if report_type not in REPORT_TABS:
                raise ValidationError(f"Report type must be one of: {', '.join(REPORT_TABS)}")
            cleaned['report_type'] = report_type

        if not partial or 'parameters' in data:
            params = data.get('parameters') or {}
            if not isinstance(params, dict):
                raise ValidationError("Parameters must be an object")
            if params.get('range', 'month') not in DATE_RANGES:
                raise ValidationError(f"Range must be one of: {', '.join(DATE_RANGES)}")
            cleaned['parameters'] = json.dumps(params)

        if not partial or 'schedule' in data:
            schedule = (data.get('schedule') or '').strip()
            cron_trigger(schedule)
            cleaned['schedule'] = schedule

        if not partial or 'recipients' in data:
            recipients = data.get('recipients') or []
            if isinstance(recipients, str):
                recipients = [r.strip() for r in recipients.split(',') if r.strip()]
            if not recipients:
                raise ValidationError("At least one recipient is required")
            bad = [r for r in recipients if not validate_email(r)[0]]
            if bad:
                raise ValidationError("Invalid recipient e-mail addresses", details=bad)
            cleaned['recipients'] = ','.join(recipients)

        if not partial or 'format' in data:
            export_format = data.get('format') or 'pdf'
            if export_format not in EXPORT_FORMATS:
                raise ValidationError(f"Format must be one of: {', '.join(EXPORT_FORMATS)}")
            cleaned['format'] = export_format

        if 'is_active' in data:
            cleaned['is_active'] = bool(data['is_active'])
        return cleaned

    @staticmethod
    def list_scheduled(user, is_active=None, report_type=None, limit=10, offset=0):
        ScheduledReportService._require_manager(user)
        query = ScheduledReport.query
        if is_active is not None:
            query = query.filter(ScheduledReport.is_active == is_active)
        if report_type:
            query = query.filter(ScheduledReport.report_type == report_type)
        items, total = paginate(query.order_by(ScheduledReport.created_at.desc()), limit, offset)
        return {'scheduled_reports': [s.to_dict() for s in items], 'total': total}

    @staticmethod
    def get_scheduled(user, scheduled_id):
        ScheduledReportService._require_manager(user)
        return get_or_404(ScheduledReport, scheduled_id, 'Scheduled report')

    @staticmethod
    @handle_db_error
    def create_scheduled(user, data, now=None):
        ScheduledReportService._require_manager(user)
        cleaned = ScheduledReportService._clean(data)
        scheduled = ScheduledReport(created_by=user.id, **cleaned)
        scheduled.next_run = next_run_after(scheduled.schedule, now)
        db.session.add(scheduled)
        db.session.commit()
        logger.info("Scheduled report %s created by user %s, next run %s",
                    scheduled.id, user.id, scheduled.next_run)
        return scheduled

    @staticmethod
    @handle_db_error
    def update_scheduled(user, scheduled_id, data, now=None):
        scheduled = ScheduledReportService.get_scheduled(user, scheduled_id)
        if user.role != UserRole.ADMIN and scheduled.created_by != user.id:
            raise PermissionDeniedError("You can only edit your own scheduled reports")

        for field, value in ScheduledReportService._clean(data, partial=True).items():
            setattr(scheduled, field, value)
        if 'schedule' in data or 'is_active' in data:
            scheduled.next_run = next_run_after(scheduled.schedule, now) if scheduled.is_active else None
        db.session.commit()
        return scheduled

    @staticmethod
    @handle_db_error
    def delete_scheduled(user, scheduled_id):
        scheduled = ScheduledReportService.get_scheduled(user, scheduled_id)
        if user.role != UserRole.ADMIN and scheduled.created_by != user.id:
            raise PermissionDeniedError("You can only delete your own scheduled reports")
        db.session.delete(scheduled)
        db.session.commit()

    @staticmethod
    def run(scheduled, now=None):
        """
        Generate one scheduled report, deliver it and advance the schedule.

        The report is built with the creator's visibility. Recipients are
        e-mailed the file; recipients who have accounts also get an in-app
        notification pointing at the stored report.
        """
        creator = scheduled.creator
        data = dict(scheduled.get_parameters(), tab=scheduled.report_type,
                    format=scheduled.format, title=scheduled.name)
        report = ReportingService.generate_report(creator, data)

        if report.status == 'completed':
            with open(report.file_path, 'rb') as handle:
                content = handle.read()
            filename = os.path.basename(report.file_path)
            body = (f'Your scheduled report "{scheduled.name}" has been generated.\n\n'
                    f'Type: {scheduled.report_type}\n'
                    f'Format: {scheduled.format.upper()}\n'
                    f'Schedule: {scheduled.schedule}\n'
                    f'File Size: {report.file_size / 1024:.2f} KB\n\n'
                    f'Download: /api/reports/{report.id}/download\n')
            for email in scheduled.get_recipients():
                NotificationService.send_email(email, f"Scheduled Report: {scheduled.name}", body,
                                               attachments=[(filename, MIME_TYPES[report.format], content)])

            users = User.query.filter(User.email.in_(scheduled.get_recipients())).all()
            for recipient in users:
                NotificationService.create(
                    recipient.id, 'Report ready', f'Scheduled report "{scheduled.name}" is ready for download',
                    type='report_generated', category='reports',
                    data={'report_id': report.id, 'report_url': f'/api/reports/{report.id}/download'},
                    sender_id=creator.id if creator else None,
                )
        else:
            logger.error("Scheduled report %s failed: %s", scheduled.id, report.error_message)

        scheduled.last_run = now or datetime.utcnow()
        scheduled.run_count = (scheduled.run_count or 0) + 1
        scheduled.next_run = next_run_after(scheduled.schedule, scheduled.last_run)
        db.session.commit()
        return report

    @staticmethod
    def trigger(user, scheduled_id, now=None):
        """Run a scheduled report immediately"""
        scheduled = ScheduledReportService.get_scheduled(user, scheduled_id)
        if not scheduled.is_active:
            raise ValidationError("Scheduled report is inactive")
        logger.info("User %s triggered scheduled report %s", user.id, scheduled.id)
        return ScheduledReportService.run(scheduled, now)

    @staticmethod
    def run_due_reports(now=None):
        """Run every active report whose next run has passed; returns how many ran"""
        now = now or datetime.utcnow()
        due = (ScheduledReport.query
               .filter(ScheduledReport.is_active.is_(True),
                       ScheduledReport.next_run.isnot(None),
                       ScheduledReport.next_run <= now)
               .order_by(ScheduledReport.next_run).all())

        ran = 0
        for scheduled in due:
            try:
                ScheduledReportService.run(scheduled, now)
                ran += 1
            except Exception:
                db.session.rollback()
                logger.exception("Scheduled report %s failed", scheduled.id)
        if due:
            logger.info("Ran %d of %d due scheduled reports", ran, len(due))
        return ran
