"""
Tests for cron scheduled reports
"""

import unittest
from datetime import datetime
from unittest import mock

from database import db
from models.notification import Notification
from models.report import Report, ScheduledReport
from services.scheduled_report_service import ScheduledReportService, next_run_after
from utils.errors import PermissionDeniedError, ValidationError
from factories import AppTestCase, make_world

NOW = datetime(2025, 3, 10, 12, 0)  # a Monday


class TestCron(unittest.TestCase):

    def test_next_run_weekly(self):
        """Test a weekly Monday 08:00 schedule"""
        self.assertEqual(next_run_after('0 8 * * 1', NOW), datetime(2025, 3, 17, 8, 0))

    def test_next_run_daily(self):
        """Test a daily schedule later the same day"""
        self.assertEqual(next_run_after('30 18 * * *', NOW), datetime(2025, 3, 10, 18, 30))

    def test_sunday_is_zero(self):
        """Test day 0 is Sunday as in crontab"""
        self.assertEqual(next_run_after('0 8 * * 0', NOW), datetime(2025, 3, 16, 8, 0))
        self.assertEqual(next_run_after('0 8 * * 7', NOW), datetime(2025, 3, 16, 8, 0))

    def test_weekday_ranges(self):
        """Test ranges spanning Sunday run on the next day"""
        for expression in ('0 8 * * 0-6', '0 8 * * 0-5', '0 8 * * 1-7', '0 8 * * 1-5'):
            self.assertEqual(next_run_after(expression, NOW), datetime(2025, 3, 11, 8, 0), expression)

    def test_weekday_steps_and_lists(self):
        """Test stepped ranges and lists of weekdays"""
        # Monday, Wednesday, Friday
        self.assertEqual(next_run_after('0 8 * * 1-5/2', NOW), datetime(2025, 3, 12, 8, 0))
        # Sunday, Tuesday, Thursday, Saturday
        self.assertEqual(next_run_after('0 8 * * */2', NOW), datetime(2025, 3, 11, 8, 0))
        self.assertEqual(next_run_after('0 8 * * 0,6', NOW), datetime(2025, 3, 15, 8, 0))

    def test_next_run_strictly_after(self):
        """Test a run exactly on its fire time advances to the following one"""
        monday_eight = datetime(2025, 3, 17, 8, 0)
        self.assertEqual(next_run_after('0 8 * * 1', monday_eight), datetime(2025, 3, 24, 8, 0))
        self.assertEqual(next_run_after('30 18 * * *', datetime(2025, 3, 10, 18, 30)),
                         datetime(2025, 3, 11, 18, 30))

    def test_invalid_expressions(self):
        """Test malformed cron expressions"""
        for expression in ('every monday', '0 8 * *', '61 8 * * *', '0 8 * * 5-2', '0 8 * * 0-9', ''):
            with self.assertRaises(ValidationError, msg=expression):
                next_run_after(expression, NOW)


class TestScheduledReportService(AppTestCase):

    def setUp(self):
        super().setUp()
        self.world = make_world()

    def _data(self, **overrides):
        data = {
            'name': 'Weekly overview',
            'report_type': 'overview',
            'parameters': {'range': 'week'},
            'schedule': '0 8 * * 1',
            'recipients': 'dean@test.edu, coordinator@test.edu',
            'format': 'csv',
        }
        data.update(overrides)
        return data

    def test_create(self):
        """Test creating computes the next run"""
        scheduled = ScheduledReportService.create_scheduled(self.admin, self._data(), now=NOW)

        self.assertEqual(scheduled.next_run, datetime(2025, 3, 17, 8, 0))
        self.assertEqual(scheduled.get_recipients(), ['dean@test.edu', 'coordinator@test.edu'])
        self.assertEqual(scheduled.get_parameters(), {'range': 'week'})
        self.assertTrue(scheduled.is_active)

    def test_create_validation(self):
        """Test each field is checked"""
        for overrides in ({'name': ''}, {'report_type': 'marks'}, {'parameters': {'range': 'decade'}},
                          {'schedule': 'weekly'}, {'recipients': []}, {'recipients': 'not-an-email'},
                          {'format': 'docx'}):
            with self.assertRaises(ValidationError, msg=str(overrides)):
                ScheduledReportService.create_scheduled(self.admin, self._data(**overrides), now=NOW)

    def test_only_managers(self):
        """Test lecturers cannot schedule reports"""
        with self.assertRaises(PermissionDeniedError):
            ScheduledReportService.create_scheduled(self.world['lecturer'].user, self._data(), now=NOW)
        with self.assertRaises(PermissionDeniedError):
            ScheduledReportService.list_scheduled(self.world['class_rep'])

    def test_update_recomputes_next_run(self):
        """Test changing the schedule or deactivating updates next_run"""
        scheduled = ScheduledReportService.create_scheduled(self.admin, self._data(), now=NOW)

        updated = ScheduledReportService.update_scheduled(self.admin, scheduled.id,
                                                          {'schedule': '0 6 * * *'}, now=NOW)
        self.assertEqual(updated.next_run, datetime(2025, 3, 11, 6, 0))

        updated = ScheduledReportService.update_scheduled(self.admin, scheduled.id, {'is_active': False}, now=NOW)
        self.assertIsNone(updated.next_run)

    def test_coordinator_edits_own_only(self):
        """Test coordinators cannot edit an admin's schedule"""
        scheduled = ScheduledReportService.create_scheduled(self.admin, self._data(), now=NOW)
        with self.assertRaises(PermissionDeniedError):
            ScheduledReportService.update_scheduled(self.world['coordinator'], scheduled.id, {'name': 'Mine'})
        with self.assertRaises(PermissionDeniedError):
            ScheduledReportService.delete_scheduled(self.world['coordinator'], scheduled.id)

    def test_list_and_delete(self):
        """Test listing with filters and deleting"""
        first = ScheduledReportService.create_scheduled(self.admin, self._data(), now=NOW)
        ScheduledReportService.create_scheduled(self.admin, self._data(name='Trends', report_type='trends'),
                                                now=NOW)

        self.assertEqual(ScheduledReportService.list_scheduled(self.admin)['total'], 2)
        self.assertEqual(ScheduledReportService.list_scheduled(self.admin, report_type='trends')['total'], 1)

        ScheduledReportService.delete_scheduled(self.admin, first.id)
        self.assertEqual(ScheduledReport.query.count(), 1)

    def test_run_delivers_report(self):
        """Test a run stores the file, e-mails it and notifies account holders"""
        scheduled = ScheduledReportService.create_scheduled(self.admin, self._data(), now=NOW)

        with mock.patch('services.scheduled_report_service.NotificationService.send_email',
                        return_value=(True, 'Email sent')) as send:
            report = ScheduledReportService.run(scheduled, now=NOW)

        self.assertEqual(report.status, 'completed')
        self.assertEqual(report.title, 'Weekly overview')
        self.assertEqual(send.call_count, 2)
        filename, content_type, _ = send.call_args[1]['attachments'][0]
        self.assertTrue(filename.endswith('.csv'))
        self.assertEqual(content_type, 'text/csv')

        # Only coordinator@test.edu has an account
        notes = Notification.query.filter_by(type='report_generated').all()
        self.assertEqual([n.recipient_id for n in notes], [self.world['coordinator'].id])

        self.assertEqual(scheduled.run_count, 1)
        self.assertEqual(scheduled.last_run, NOW)
        self.assertEqual(scheduled.next_run, datetime(2025, 3, 17, 8, 0))

    def test_run_on_fire_time_advances(self):
        """Test a run at exactly the fire time schedules the next week"""
        scheduled = ScheduledReportService.create_scheduled(self.admin, self._data(), now=NOW)
        fire_time = scheduled.next_run

        with mock.patch('services.scheduled_report_service.NotificationService.send_email',
                        return_value=(True, 'Email sent')):
            ScheduledReportService.run(scheduled, now=fire_time)

        self.assertEqual(scheduled.next_run, datetime(2025, 3, 24, 8, 0))
        self.assertEqual(ScheduledReportService.run_due_reports(now=fire_time), 0)

    def test_trigger_inactive(self):
        """Test inactive schedules cannot be triggered"""
        scheduled = ScheduledReportService.create_scheduled(self.admin, self._data(is_active=False), now=NOW)
        with self.assertRaises(ValidationError):
            ScheduledReportService.trigger(self.admin, scheduled.id, now=NOW)

    def test_run_due_reports(self):
        """Test only active, due schedules run"""
        due = ScheduledReportService.create_scheduled(self.admin, self._data(), now=NOW)
        later = ScheduledReportService.create_scheduled(self.admin, self._data(name='Later'), now=NOW)
        paused = ScheduledReportService.create_scheduled(self.admin, self._data(name='Paused'), now=NOW)
        due.next_run = datetime(2025, 3, 10, 8, 0)
        paused.next_run = datetime(2025, 3, 10, 8, 0)
        paused.is_active = False
        db.session.commit()

        self.assertEqual(ScheduledReportService.run_due_reports(now=NOW), 1)
        self.assertEqual(Report.query.count(), 1)
        self.assertEqual(due.run_count, 1)
        self.assertEqual(later.run_count, 0)
        self.assertEqual(paused.run_count, 0)

    def test_run_due_reports_isolates_failures(self):
        """Test one failing report does not stop the others"""
        first = ScheduledReportService.create_scheduled(self.admin, self._data(), now=NOW)
        second = ScheduledReportService.create_scheduled(self.admin, self._data(name='Second'), now=NOW)
        first.next_run = second.next_run = datetime(2025, 3, 10, 8, 0)
        db.session.commit()

        original = ScheduledReportService.run
        calls = []

        def flaky(scheduled, now=None):
            calls.append(scheduled.id)
            if len(calls) == 1:
                raise RuntimeError('disk full')
            return original(scheduled, now)

        with mock.patch.object(ScheduledReportService, 'run', side_effect=flaky):
            self.assertEqual(ScheduledReportService.run_due_reports(now=NOW), 1)
        self.assertEqual(len(calls), 2)

    def test_non_account_recipient_allowed(self):
        """Test external addresses are accepted as recipients"""
        scheduled = ScheduledReportService.create_scheduled(
            self.admin, self._data(recipients=['external@partner.org']), now=NOW)
        self.assertEqual(scheduled.get_recipients(), ['external@partner.org'])


if __name__ == '__main__':
    unittest.main()
