"""
Tests for in-app notifications
"""

from unittest import mock

from models.notification import Notification
from models.user import UserRole
from services.notification_service import NotificationService
from utils.errors import NotFoundError, PermissionDeniedError, ValidationError
from factories import AppTestCase, make_user


class TestNotificationService(AppTestCase):

    def setUp(self):
        super().setUp()
        self.user = make_user('lecturer@test.edu', UserRole.LECTURER)

    def test_create_and_list(self):
        """Test a created notification shows as unread"""
        NotificationService.create(self.user.id, 'Welcome', 'Hello there', data={'a': 1})

        result = NotificationService.list_for_user(self.user.id)
        self.assertEqual(result['total'], 1)
        self.assertEqual(result['unread_count'], 1)
        self.assertEqual(result['notifications'][0]['data'], {'a': 1})
        self.assertFalse(result['notifications'][0]['is_read'])

    def test_create_validation(self):
        """Test priority, content and recipient checks"""
        with self.assertRaises(ValidationError):
            NotificationService.create(self.user.id, 'Title', 'Body', priority='critical')
        with self.assertRaises(ValidationError):
            NotificationService.create(self.user.id, '', 'Body')
        with self.assertRaises(NotFoundError):
            NotificationService.create(9999, 'Title', 'Body')

    def test_high_priority_is_emailed(self):
        """Test only high and urgent notifications go out by e-mail"""
        with mock.patch.object(NotificationService, 'send_email', return_value=(False, 'disabled')) as send:
            NotificationService.create(self.user.id, 'FYI', 'Body')
            send.assert_not_called()
            NotificationService.create(self.user.id, 'Dispute', 'Body', priority='high')
            send.assert_called_once()
            self.assertEqual(send.call_args[0][0], 'lecturer@test.edu')

    def test_email_disabled(self):
        """Test mail delivery is off in tests"""
        sent, message = NotificationService.send_email('x@test.edu', 'Subject', 'Body')
        self.assertFalse(sent)
        self.assertEqual(message, 'Mail delivery disabled')

    def test_email_sent_through_flask_mail(self):
        """Test enabled mail hands the message to Flask-Mail"""
        self.app.config['MAIL_ENABLED'] = True
        with mock.patch('services.notification_service.mail.send') as send:
            sent, _ = NotificationService.send_email('x@test.edu', 'Subject', 'Body',
                                                     attachments=[('r.csv', 'text/csv', b'a,b')])
        self.assertTrue(sent)
        message = send.call_args[0][0]
        self.assertEqual(message.recipients, ['x@test.edu'])
        self.assertEqual(len(message.attachments), 1)

    def test_email_failure_marks_notification(self):
        """Test a delivery failure is recorded on the notification"""
        self.app.config['MAIL_ENABLED'] = True
        with mock.patch('services.notification_service.mail.send', side_effect=OSError('refused')):
            notification = NotificationService.create(self.user.id, 'Urgent', 'Body', priority='urgent')
        self.assertEqual(notification.status, 'failed')
        self.assertEqual(notification.error_message, 'refused')

    def test_mark_read(self):
        """Test marking selected and all notifications read"""
        first = NotificationService.create(self.user.id, 'One', 'Body')
        NotificationService.create(self.user.id, 'Two', 'Body')

        self.assertEqual(NotificationService.mark_read(self.user.id, [first.id]), 1)
        self.assertEqual(NotificationService.list_for_user(self.user.id, unread_only=True)['total'], 1)
        self.assertEqual(NotificationService.mark_read(self.user.id, mark_all=True), 1)
        self.assertEqual(NotificationService.list_for_user(self.user.id)['unread_count'], 0)

        with self.assertRaises(ValidationError):
            NotificationService.mark_read(self.user.id)

    def test_mark_read_ignores_other_users(self):
        """Test users cannot touch someone else's notifications"""
        other = make_user('other@test.edu', UserRole.LECTURER)
        theirs = NotificationService.create(other.id, 'Private', 'Body')
        self.assertEqual(NotificationService.mark_read(self.user.id, [theirs.id]), 0)
        self.assertEqual(NotificationService.delete(self.user.id, [theirs.id]), 0)

    def test_delete(self):
        """Test deleting read, selected and all notifications"""
        first = NotificationService.create(self.user.id, 'One', 'Body')
        second = NotificationService.create(self.user.id, 'Two', 'Body')
        NotificationService.create(self.user.id, 'Three', 'Body')
        NotificationService.mark_read(self.user.id, [first.id])

        self.assertEqual(NotificationService.delete(self.user.id, delete_read=True), 1)
        self.assertEqual(NotificationService.delete(self.user.id, [second.id]), 1)
        self.assertEqual(NotificationService.delete(self.user.id, delete_all=True), 1)
        self.assertEqual(Notification.query.count(), 0)

        with self.assertRaises(ValidationError):
            NotificationService.delete(self.user.id)

    def test_create_for_requires_manager(self):
        """Test only managers send notifications to others"""
        with self.assertRaises(PermissionDeniedError):
            NotificationService.create_for(self.user, {'recipient_id': self.admin.id,
                                                       'title': 'Hi', 'message': 'Body'})

        created = NotificationService.create_for(self.admin, {'recipient_ids': [self.user.id, 9999],
                                                              'title': 'Notice', 'message': 'Body'})
        self.assertEqual(len(created), 1)
        self.assertEqual(created[0].sender_id, self.admin.id)

    def test_notify_role(self):
        """Test notifying every active user of a role"""
        make_user('second@test.edu', UserRole.LECTURER)
        created = NotificationService.notify_role(UserRole.LECTURER, 'Timetable', 'Updated')
        self.assertEqual(len(created), 2)
