"""
Tests for recording and verifying lecturer attendance
"""

from datetime import date, datetime, time, timedelta

from database import db
from models.attendance import AttendanceRecord, SupervisorLog
from models.notification import Notification
from models.user import UserRole
from services.attendance_service import AttendanceService
from utils.errors import NotFoundError, PermissionDeniedError, ValidationError
from factories import CAMPUS, AppTestCase, make_lecturer, make_user, make_virtual_schedule, make_world


def today_at(hour, minute=0):
    return datetime.combine(date.today(), time(hour, minute))


class TestOnsiteAttendance(AppTestCase):

    def setUp(self):
        super().setUp()
        self.world = make_world()
        self.lecturer_user = self.world['lecturer'].user

    def _take(self, latitude=CAMPUS[0], longitude=CAMPUS[1], **extra):
        data = {'schedule_id': self.world['schedule'].id, 'method': 'onsite',
                'latitude': latitude, 'longitude': longitude}
        data.update(extra)
        return AttendanceService.take_attendance(self.lecturer_user, data, user_agent='Mozilla/5.0',
                                                 ip_address='203.0.113.9', now=today_at(8, 5))

    def test_onsite_within_geofence(self):
        """Test attendance taken at the building is verified"""
        record, message = self._take(remarks='On time')

        self.assertEqual(message, 'Attendance recorded successfully')
        self.assertTrue(record.location_verified)
        self.assertEqual(record.location_distance, 0)
        self.assertEqual(record.method, 'onsite')
        self.assertEqual(record.remarks, 'On time')
        self.assertEqual(len(record.device_fingerprint), 16)
        self.assertEqual(record.verification_status, 'pending')

    def test_onsite_outside_geofence(self):
        """Test attendance far from the building is refused"""
        with self.assertRaises(ValidationError) as ctx:
            self._take(latitude=5.65)
        self.assertTrue(ctx.exception.message.startswith('Location verification failed: You are '))
        self.assertIn('(max allowed: 300m)', ctx.exception.message)
        self.assertEqual(AttendanceRecord.query.count(), 0)

    def test_classroom_point_preferred(self):
        """Test a room's own GPS point overrides its building's"""
        room = self.world['classroom']
        room.gps_latitude, room.gps_longitude = 5.65, -0.1870
        db.session.commit()

        with self.assertRaises(ValidationError):
            self._take()
        record, _ = self._take(latitude=5.65)
        self.assertTrue(record.location_verified)

    def test_campus_point_without_classroom(self):
        """Test slots without a room fall back to the campus point"""
        self.world['schedule'].classroom_id = None
        db.session.commit()

        record, _ = self._take(latitude=self.app.config['CAMPUS_LATITUDE'],
                               longitude=self.app.config['CAMPUS_LONGITUDE'])
        self.assertTrue(record.location_verified)

    def test_coordinates_required(self):
        """Test onsite attendance needs valid coordinates"""
        with self.assertRaises(ValidationError) as ctx:
            self._take(latitude=None)
        self.assertIn('GPS coordinates are required', ctx.exception.message)

        with self.assertRaises(ValidationError) as ctx:
            self._take(latitude=123)
        self.assertEqual(ctx.exception.message, 'Invalid GPS coordinates')

    def test_duplicate_same_day(self):
        """Test only one record per slot per day"""
        self._take()
        with self.assertRaises(ValidationError) as ctx:
            self._take()
        self.assertEqual(ctx.exception.message, 'Attendance already recorded for this session today')

    def test_bad_method(self):
        """Test unknown methods are refused"""
        with self.assertRaises(ValidationError):
            AttendanceService.take_attendance(self.lecturer_user, {'schedule_id': self.world['schedule'].id,
                                                                   'method': 'carrier-pigeon'})

    def test_only_lecturers(self):
        """Test other roles cannot take attendance"""
        with self.assertRaises(PermissionDeniedError):
            AttendanceService.take_attendance(self.admin, {'schedule_id': self.world['schedule'].id,
                                                           'method': 'onsite'})

    def test_schedule_must_belong_to_lecturer(self):
        """Test a lecturer cannot take attendance for someone else's slot"""
        other = make_lecturer('other@test.edu', 'EMP002')
        with self.assertRaises(NotFoundError) as ctx:
            AttendanceService.take_attendance(other.user, {
                'schedule_id': self.world['schedule'].id, 'method': 'onsite',
                'latitude': CAMPUS[0], 'longitude': CAMPUS[1]})
        self.assertEqual(ctx.exception.message, 'Schedule not found or unauthorized')

    def test_attendance_audited(self):
        """Test recording writes an audit entry"""
        from models.audit import AuditLog
        record, _ = self._take()
        entry = AuditLog.query.filter_by(action='ATTENDANCE_RECORDED').one()
        self.assertEqual(entry.target_id, str(record.id))
        self.assertEqual(entry.user_id, self.lecturer_user.id)


class TestVirtualAttendance(AppTestCase):

    def setUp(self):
        super().setUp()
        self.world = make_world()
        self.schedule = make_virtual_schedule(self.world)
        self.lecturer_user = self.world['lecturer'].user

    def _call(self, now, action=None):
        data = {'schedule_id': self.schedule.id, 'method': 'virtual'}
        if action:
            data['action'] = action
        return AttendanceService.take_attendance(self.lecturer_user, data, now=now)

    def test_start_and_end_session(self):
        """Test a full virtual session meets the duration rule"""
        record, message = self._call(today_at(18, 5), 'start')
        self.assertEqual(message, 'Virtual session started successfully')
        self.assertTrue(record.time_window_verified)
        self.assertTrue(record.meeting_link_verified)
        self.assertFalse(record.session_duration_met)
        self.assertEqual(record.session_start_time, today_at(18, 5))

        record, message = self._call(today_at(19, 40), 'end')
        self.assertEqual(message, 'Virtual session ended successfully')
        self.assertTrue(record.session_duration_met)
        self.assertEqual(record.session_duration_minutes, 95)

    def test_short_session(self):
        """Test ending early fails the duration rule but keeps the record"""
        self._call(today_at(18, 0), 'start')
        record, _ = self._call(today_at(19, 29), 'end')
        self.assertFalse(record.session_duration_met)
        self.assertEqual(AttendanceRecord.query.count(), 1)

    def test_outside_time_window(self):
        """Test starting long after the slot began"""
        with self.assertRaises(ValidationError) as ctx:
            self._call(today_at(18, 16), 'start')
        self.assertEqual(ctx.exception.message, 'Virtual classroom verification failed')
        self.assertIn('outside allowed window', ctx.exception.details[0])

    def test_unsupported_meeting_link(self):
        """Test links on unsupported platforms"""
        self.schedule.meeting_link = 'https://meet.example.com/room'
        db.session.commit()
        with self.assertRaises(ValidationError) as ctx:
            self._call(today_at(18, 0))
        self.assertIn('supported platform', ctx.exception.details[0])

    def test_start_twice(self):
        """Test a second start the same day"""
        self._call(today_at(18, 0), 'start')
        with self.assertRaises(ValidationError) as ctx:
            self._call(today_at(18, 5), 'start')
        self.assertEqual(ctx.exception.message, 'Virtual session already started for this class today')

    def test_end_without_start(self):
        """Test ending a session that was never started"""
        with self.assertRaises(ValidationError) as ctx:
            self._call(today_at(19, 40), 'end')
        self.assertEqual(ctx.exception.message, 'No active virtual session found to end')

    def test_end_twice(self):
        """Test ending an already closed session"""
        self._call(today_at(18, 0), 'start')
        self._call(today_at(19, 40), 'end')
        with self.assertRaises(ValidationError) as ctx:
            self._call(today_at(19, 45), 'end')
        self.assertEqual(ctx.exception.message, 'Virtual session already ended')


class TestAttendanceVerification(AppTestCase):

    def setUp(self):
        super().setUp()
        self.world = make_world()
        self.record, _ = AttendanceService.take_attendance(
            self.world['lecturer'].user,
            {'schedule_id': self.world['schedule'].id, 'method': 'onsite',
             'latitude': CAMPUS[0], 'longitude': CAMPUS[1]},
            now=today_at(8, 5))

    def test_class_rep_confirms(self):
        """Test a class rep confirming notifies the lecturer"""
        record = AttendanceService.class_rep_verify(self.world['class_rep'], self.record.id, True, 'Present')

        self.assertTrue(record.class_rep_verified)
        self.assertEqual(record.verification_status, 'verified')
        notification = Notification.query.filter_by(recipient_id=self.world['lecturer'].user_id).one()
        self.assertEqual(notification.title, 'Attendance verified')
        self.assertEqual(notification.priority, 'normal')

    def test_class_rep_disputes(self):
        """Test a dispute is raised with high priority"""
        record = AttendanceService.class_rep_verify(self.world['class_rep'], self.record.id, False, 'Absent')

        self.assertEqual(record.verification_status, 'disputed')
        notification = Notification.query.filter_by(recipient_id=self.world['lecturer'].user_id).one()
        self.assertEqual(notification.priority, 'high')

    def test_class_rep_answers_once(self):
        """Test a record cannot be verified twice"""
        AttendanceService.class_rep_verify(self.world['class_rep'], self.record.id, True)
        with self.assertRaises(ValidationError):
            AttendanceService.class_rep_verify(self.world['class_rep'], self.record.id, False)

    def test_class_rep_only_for_own_class(self):
        """Test reps of other classes are refused"""
        stranger = make_user('stranger@test.edu', UserRole.CLASS_REP)
        with self.assertRaises(PermissionDeniedError):
            AttendanceService.class_rep_verify(stranger, self.record.id, True)

    def test_verified_must_be_boolean(self):
        """Test strings are not accepted as a decision"""
        with self.assertRaises(ValidationError):
            AttendanceService.class_rep_verify(self.world['class_rep'], self.record.id, 'yes')

    def test_pending_for_class_rep(self):
        """Test pending records disappear once answered"""
        pending = AttendanceService.pending_for_class_rep(self.world['class_rep'])
        self.assertEqual([r['id'] for r in pending], [self.record.id])

        AttendanceService.class_rep_verify(self.world['class_rep'], self.record.id, True)
        self.assertEqual(AttendanceService.pending_for_class_rep(self.world['class_rep']), [])

    def test_supervisor_check_in_marks_record(self):
        """Test an 'ongoing' check-in verifies today's record"""
        log, record = AttendanceService.supervisor_check_in(self.world['supervisor'], self.world['schedule'].id,
                                                            'ongoing', 'Class in session')
        self.assertEqual(log.status, 'ongoing')
        self.assertFalse(log.is_online)
        self.assertEqual(record.id, self.record.id)
        self.assertTrue(record.supervisor_verified)

    def test_supervisor_check_in_is_upserted(self):
        """Test a second check-in the same day updates the first"""
        AttendanceService.supervisor_check_in(self.world['supervisor'], self.world['schedule'].id, 'ongoing')
        log, record = AttendanceService.supervisor_check_in(self.world['supervisor'], self.world['schedule'].id,
                                                            'absent', 'Room empty')

        self.assertEqual(SupervisorLog.query.count(), 1)
        self.assertEqual(log.status, 'absent')
        self.assertFalse(record.supervisor_verified)
        self.assertEqual(record.verification_status, 'disputed')

    def test_supervisor_check_in_without_record(self):
        """Test check-ins are logged even before attendance is taken"""
        other_day = date.today() + timedelta(days=1)
        log, record = AttendanceService.supervisor_check_in(self.world['supervisor'], self.world['schedule'].id,
                                                            'not_started', day=other_day)
        self.assertIsNotNone(log.id)
        self.assertIsNone(record)

    def test_lecturer_cannot_check_in(self):
        """Test only supervisors log rounds"""
        with self.assertRaises(PermissionDeniedError):
            AttendanceService.supervisor_check_in(self.world['lecturer'].user, self.world['schedule'].id,
                                                  'ongoing')

    def test_record_scoping(self):
        """Test lecturers only list their own records"""
        other = make_lecturer('other@test.edu', 'EMP002')
        self.assertEqual(AttendanceService.list_records(other.user)['total'], 0)
        self.assertEqual(AttendanceService.list_records(self.world['lecturer'].user)['total'], 1)
        self.assertEqual(AttendanceService.list_records(self.admin, status='pending')['total'], 1)
        self.assertEqual(AttendanceService.list_records(self.admin, status='verified')['total'], 0)

        with self.assertRaises(PermissionDeniedError):
            AttendanceService.get_record(other.user, self.record.id)

    def test_lecturer_edits_only_remarks(self):
        """Test lecturers cannot mark their own attendance verified"""
        record = AttendanceService.update_record(self.world['lecturer'].user, self.record.id,
                                                 {'remarks': 'Started late', 'supervisor_verified': True})
        self.assertEqual(record.remarks, 'Started late')
        self.assertIsNone(record.supervisor_verified)

    def test_admin_edit_flags_must_be_boolean(self):
        """Test verification flags reject strings and leave no audit entry"""
        from models.audit import AuditLog
        for field in ('class_rep_verified', 'supervisor_verified', 'location_verified'):
            with self.assertRaises(ValidationError, msg=field):
                AttendanceService.update_record(self.admin, self.record.id, {field: 'yes'})
        with self.assertRaises(ValidationError):
            AttendanceService.update_record(self.admin, self.record.id, {'location_verified': None})
        self.assertEqual(AuditLog.query.filter_by(action='ATTENDANCE_MODIFIED').count(), 0)

        record = AttendanceService.update_record(self.admin, self.record.id,
                                                 {'supervisor_verified': True, 'remarks': 'Confirmed'})
        self.assertTrue(record.supervisor_verified)
        record = AttendanceService.update_record(self.admin, self.record.id, {'supervisor_verified': None})
        self.assertIsNone(record.supervisor_verified)
        self.assertEqual(AuditLog.query.filter_by(action='ATTENDANCE_MODIFIED').count(), 2)

    def test_admin_deletes_record(self):
        """Test admin deletion"""
        AttendanceService.delete_record(self.admin, self.record.id)
        self.assertEqual(AttendanceRecord.query.count(), 0)

        with self.assertRaises(NotFoundError):
            AttendanceService.get_record(self.admin, self.record.id)
