"""
Unit tests for authentication and management services
"""

from database import db
from models.audit import AuditLog
from models.notification import Notification
from models.user import Lecturer, User, UserRole
from services.auth_service import AuthService
from services.management_service import ManagementService
from services.notification_service import NotificationService
from utils.errors import (AuthenticationError, ConflictError, NotFoundError,
                          PermissionDeniedError, ValidationError)
from factories import PASSWORD, AppTestCase, make_user, make_world


class TestAuthService(AppTestCase):

    def setUp(self):
        super().setUp()
        self.user = make_user('kojo@test.edu', UserRole.LECTURER, 'Kojo', 'Appiah')

    def test_authenticate(self):
        """Test login is case-insensitive on e-mail and records the login"""
        success, user, message = AuthService.authenticate('Kojo@Test.edu', PASSWORD)
        self.assertTrue(success)
        self.assertEqual(user.id, self.user.id)
        self.assertEqual(message, 'Login successful')
        self.assertIsNotNone(user.last_login_at)

    def test_authenticate_failures(self):
        """Test wrong password, missing fields and deactivated accounts"""
        self.assertEqual(AuthService.authenticate('kojo@test.edu', 'wrong')[2], 'Invalid email or password')
        self.assertEqual(AuthService.authenticate('nobody@test.edu', PASSWORD)[2], 'Invalid email or password')
        self.assertEqual(AuthService.authenticate('', '')[2], 'Email and password are required')

        self.user.is_active = False
        self.assertEqual(AuthService.authenticate('kojo@test.edu', PASSWORD)[2], 'Account is deactivated')

    def test_change_password(self):
        """Test the current password is checked and the new one validated"""
        with self.assertRaises(AuthenticationError):
            AuthService.change_password(self.user.id, 'wrong', 'newpassword')
        with self.assertRaises(ValidationError):
            AuthService.change_password(self.user.id, PASSWORD, 'abc')

        success, _ = AuthService.change_password(self.user.id, PASSWORD, 'newpassword')
        self.assertTrue(success)
        self.assertTrue(self.user.check_password('newpassword'))

    def test_get_user_skips_inactive(self):
        """Test deactivated users have no session user"""
        self.assertEqual(AuthService.get_user(self.user.id), self.user)
        self.user.is_active = False
        self.assertIsNone(AuthService.get_user(self.user.id))
        self.assertIsNone(AuthService.get_user(None))


class TestManagementService(AppTestCase):

    def test_create_user_generates_password(self):
        """Test a password is generated when none is given"""
        user, password = ManagementService.create_user(self.admin, {
            'email': 'Yaa@Test.edu', 'first_name': 'Yaa', 'last_name': 'Asantewaa', 'role': UserRole.COORDINATOR})

        self.assertEqual(user.email, 'yaa@test.edu')
        self.assertEqual(len(password), 10)
        self.assertTrue(user.check_password(password))

        _, password = ManagementService.create_user(self.admin, {
            'email': 'abena@test.edu', 'first_name': 'Abena', 'last_name': 'Osei',
            'role': UserRole.SUPERVISOR, 'password': 'chosen-password'})
        self.assertIsNone(password)

    def test_create_lecturer_profile(self):
        """Test lecturer accounts need and get a profile"""
        data = {'email': 'kwesi@test.edu', 'first_name': 'Kwesi', 'last_name': 'Ofori',
                'role': UserRole.LECTURER, 'password': PASSWORD}
        with self.assertRaises(ValidationError):
            ManagementService.create_user(self.admin, data)

        user, _ = ManagementService.create_user(self.admin, dict(data, employee_id='EMP050', rank='Lecturer'))
        self.assertEqual(user.lecturer.employee_id, 'EMP050')
        self.assertEqual(user.lecturer.rank, 'Lecturer')

        with self.assertRaises(ConflictError):
            ManagementService.create_user(self.admin, dict(data, email='other@test.edu', employee_id='EMP050'))

    def test_create_user_checks(self):
        """Test duplicates, bad roles and non-admin callers"""
        make_user('taken@test.edu', UserRole.SUPERVISOR)
        base = {'first_name': 'Ato', 'last_name': 'Kwamena', 'role': UserRole.SUPERVISOR}

        with self.assertRaises(ConflictError):
            ManagementService.create_user(self.admin, dict(base, email='TAKEN@test.edu'))
        with self.assertRaises(ValidationError):
            ManagementService.create_user(self.admin, dict(base, email='new@test.edu', role='DEAN'))

        coordinator = make_user('coord@test.edu', UserRole.COORDINATOR)
        with self.assertRaises(PermissionDeniedError):
            ManagementService.create_user(coordinator, dict(base, email='new@test.edu'))

    def test_update_user(self):
        """Test self-service updates and admin-only fields"""
        user = make_user('self@test.edu', UserRole.SUPERVISOR, 'Esi', 'Owusu')

        ManagementService.update_user(user, user.id, {'phone_number': '+233200000000'})
        self.assertEqual(user.phone_number, '+233200000000')

        with self.assertRaises(PermissionDeniedError):
            ManagementService.update_user(user, user.id, {'is_active': False})
        with self.assertRaises(PermissionDeniedError):
            ManagementService.update_user(user, self.admin.id, {'first_name': 'Nope'})
        with self.assertRaises(ValidationError):
            ManagementService.update_user(self.admin, self.admin.id, {'role': UserRole.LECTURER})

        ManagementService.update_user(self.admin, user.id, {'role': UserRole.ONLINE_SUPERVISOR})
        self.assertEqual(user.role, UserRole.ONLINE_SUPERVISOR)

    def test_delete_user(self):
        """Test users with history are deactivated rather than deleted"""
        world = make_world()
        lecturer_user_id = world['lecturer'].user_id
        supervisor_id = world['supervisor'].id

        self.assertTrue(ManagementService.delete_user(self.admin, lecturer_user_id))
        self.assertFalse(db.session.get(User, lecturer_user_id).is_active)

        self.assertFalse(ManagementService.delete_user(self.admin, supervisor_id))
        self.assertIsNone(User.query.filter_by(id=supervisor_id).first())

        self.assertFalse(ManagementService.delete_user(self.admin, world['coordinator'].id))
        self.assertFalse(ManagementService.delete_user(self.admin, world['class_rep'].id))
        self.assertIsNone(world['programme'].coordinator_id)
        self.assertIsNone(world['class_group'].class_rep_id)

        with self.assertRaises(ValidationError):
            ManagementService.delete_user(self.admin, self.admin.id)

    def test_delete_user_who_logged_in(self):
        """Test accounts referenced by the audit trail are deactivated"""
        rounds = make_user('rounds@test.edu', UserRole.SUPERVISOR)
        self.assertEqual(self.login('rounds@test.edu').status_code, 200)

        self.assertTrue(ManagementService.delete_user(self.admin, rounds.id))
        self.assertFalse(db.session.get(User, rounds.id).is_active)
        self.assertEqual(AuditLog.query.filter_by(user_id=rounds.id).count(), 1)

    def test_delete_notification_sender(self):
        """Test senders of notifications are kept for the recipients' history"""
        sender = make_user('sender@test.edu', UserRole.COORDINATOR)
        recipient = make_user('recipient@test.edu', UserRole.LECTURER)
        NotificationService.create(recipient.id, 'Timetable', 'Room changed', sender_id=sender.id)

        self.assertTrue(ManagementService.delete_user(self.admin, sender.id))
        self.assertFalse(ManagementService.delete_user(self.admin, recipient.id))
        self.assertEqual(Notification.query.count(), 0)

    def test_coordinator_programmes(self):
        """Test coordinators own the programmes they create and only those"""
        coordinator = make_user('coord@test.edu', UserRole.COORDINATOR)
        programme = ManagementService.create_programme(coordinator, {
            'name': 'MSc Finance', 'level': 'Masters', 'duration_semesters': 4,
            'delivery_modes': 'Weekday, Weekend'})

        self.assertEqual(programme.coordinator_id, coordinator.id)
        self.assertEqual(programme.delivery_modes, 'Weekday,Weekend')
        self.assertEqual([p['name'] for p in ManagementService.list_programmes(coordinator)], ['MSc Finance'])

        ManagementService.create_programme(self.admin, {
            'name': 'MPhil Economics', 'level': 'MPhil', 'duration_semesters': 4, 'delivery_modes': 'Weekday'})
        self.assertEqual(len(ManagementService.list_programmes(self.admin)), 2)

        with self.assertRaises(ConflictError):
            ManagementService.create_programme(self.admin, {
                'name': 'MSc Finance', 'level': 'Masters', 'duration_semesters': 4, 'delivery_modes': 'Weekday'})

    def test_courses(self):
        """Test course codes are unique and scoped to the coordinator"""
        world = make_world()
        course = ManagementService.create_course(self.admin, {
            'course_code': 'acc602', 'title': 'Auditing', 'programme_id': world['programme'].id})
        self.assertEqual(course.course_code, 'ACC602')

        with self.assertRaises(ConflictError):
            ManagementService.create_course(self.admin, {
                'course_code': 'ACC602', 'title': 'Auditing', 'programme_id': world['programme'].id})

        stranger = make_user('coord2@test.edu', UserRole.COORDINATOR)
        with self.assertRaises(PermissionDeniedError):
            ManagementService.create_course(stranger, {
                'course_code': 'ACC603', 'title': 'Tax', 'programme_id': world['programme'].id})
        self.assertEqual(ManagementService.list_courses(stranger), [])
        self.assertEqual(len(ManagementService.list_courses(world['coordinator'])), 2)

        with self.assertRaises(ConflictError):
            ManagementService.delete_course(self.admin, world['course'].id)

    def test_my_class(self):
        """Test class reps see their class and timetable"""
        world = make_world()
        groups = ManagementService.my_class(world['class_rep'])
        self.assertEqual(groups[0]['name'], 'MBA ACC 2025')
        self.assertEqual(len(groups[0]['schedules']), 1)

        with self.assertRaises(NotFoundError):
            ManagementService.my_class(make_user('rep2@test.edu', UserRole.CLASS_REP))
        with self.assertRaises(PermissionDeniedError):
            ManagementService.my_class(world['lecturer'].user)

    def test_class_rep_assignment(self):
        """Test only class rep accounts can represent a class"""
        world = make_world()
        with self.assertRaises(ValidationError):
            ManagementService.update_class_group(self.admin, world['class_group'].id,
                                                 {'class_rep_id': world['supervisor'].id})

    def test_building_coordinates(self):
        """Test buildings need valid coordinates"""
        with self.assertRaises(ValidationError):
            ManagementService.create_building(self.admin, {'code': 'LB', 'name': 'Library',
                                                           'gps_latitude': 95, 'gps_longitude': 0})
        building = ManagementService.create_building(self.admin, {'code': 'lb', 'name': 'Library',
                                                                  'gps_latitude': '5.6', 'gps_longitude': '-0.18'})
        self.assertEqual(building.code, 'LB')
        self.assertEqual(building.gps_latitude, 5.6)

    def test_dashboard_stats(self):
        """Test admin stats include account totals"""
        make_world()
        stats = ManagementService.get_dashboard_stats(self.admin)

        self.assertEqual(stats['total_sessions'], 0)
        self.assertEqual(stats['active_courses'], 1)
        self.assertEqual(stats['total_lecturers'], Lecturer.query.count())
        self.assertEqual(stats['total_users'], 5)

        lecturer_stats = ManagementService.get_dashboard_stats(Lecturer.query.first().user)
        self.assertNotIn('total_users', lecturer_stats)
