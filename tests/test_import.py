"""
Tests for spreadsheet imports
"""

import io

from openpyxl import Workbook, load_workbook

from models.audit import AuditLog
from models.facilities import Building, Classroom
from models.schedule import CourseSchedule
from models.user import Lecturer, User, UserRole
from services.import_service import ImportService
from utils.errors import PermissionDeniedError, ValidationError
from factories import AppTestCase, make_user, make_world, today_day_of_week


def workbook(header, *rows):
    wb = Workbook()
    ws = wb.active
    ws.append(header)
    for row in rows:
        ws.append(list(row))
    stream = io.BytesIO()
    wb.save(stream)
    stream.seek(0)
    return stream


BUILDING_HEADER = ['code', 'name', 'gps_latitude', 'gps_longitude', 'address']


class TestImportService(AppTestCase):

    def _import(self, import_type, stream, actor=None, file_name='upload.xlsx'):
        return ImportService.import_file(actor or self.admin, import_type, stream, file_name)

    def test_import_buildings(self):
        """Test each valid row becomes a building"""
        job = self._import('buildings', workbook(
            BUILDING_HEADER,
            ['lb', 'Library Block', 5.6040, -0.1875, 'Main campus'],
            ['AUD', 'Auditorium', 5.6031, -0.1862, None]))

        self.assertEqual(job.status, 'completed')
        self.assertEqual(job.records_processed, 2)
        self.assertEqual(job.errors_count, 0)
        self.assertEqual(job.get_errors(), [])
        self.assertEqual(sorted(b.code for b in Building.query.all()), ['AUD', 'LB'])

    def test_row_errors_are_numbered(self):
        """Test bad rows are reported by sheet row and good rows are kept"""
        self._import('buildings', workbook(BUILDING_HEADER, ['GS', 'Graduate School', 5.6037, -0.1870]))

        job = self._import('classrooms', workbook(
            ['room_code', 'name', 'building_code', 'capacity'],
            ['GS-101', 'Room 101', 'gs', 40],
            ['XX-1', 'Nowhere', 'XX', 20],
            ['GS-102', 'Room 102', 'GS', 'lots']))

        self.assertEqual(job.status, 'completed_with_errors')
        self.assertEqual(job.records_processed, 1)
        errors = job.get_errors()
        self.assertEqual([e['row'] for e in errors], [3, 4])
        self.assertEqual(errors[0]['error'], "Building 'XX' not found")
        self.assertEqual([c.room_code for c in Classroom.query.all()], ['GS-101'])

    def test_duplicate_rows_conflict(self):
        """Test a repeated code is a row error"""
        job = self._import('buildings', workbook(
            BUILDING_HEADER,
            ['LB', 'Library Block', 5.6040, -0.1875],
            ['LB', 'Library Block Again', 5.6040, -0.1875]))

        self.assertEqual(job.records_processed, 1)
        self.assertEqual(job.get_errors()[0]['row'], 3)
        self.assertEqual(job.get_errors()[0]['error'], "Building with this code already exists")

    def test_missing_columns_fail_the_job(self):
        """Test a header without required columns"""
        job = self._import('buildings', workbook(['code', 'name'], ['LB', 'Library Block']))

        self.assertEqual(job.status, 'failed')
        self.assertEqual(job.records_processed, 0)
        error = job.get_errors()[0]
        self.assertIsNone(error['row'])
        self.assertEqual(error['error'], 'Missing required columns')
        self.assertEqual(error['details'], ['gps_latitude', 'gps_longitude'])

    def test_header_names_are_normalised(self):
        """Test headers in title case with spaces"""
        job = self._import('buildings', workbook(
            ['Code', 'Name', 'GPS Latitude', 'GPS Longitude'],
            ['LB', 'Library Block', 5.6040, -0.1875]))
        self.assertEqual(job.status, 'completed')

    def test_blank_rows_skipped(self):
        """Test empty rows are not counted"""
        job = self._import('buildings', workbook(
            BUILDING_HEADER,
            ['LB', 'Library Block', 5.6040, -0.1875],
            [None, None, None, None],
            ['AUD', 'Auditorium', 5.6031, -0.1862]))
        self.assertEqual(job.records_processed, 2)
        self.assertEqual(job.errors_count, 0)

    def test_file_checks(self):
        """Test unsupported files and types are refused"""
        with self.assertRaises(ValidationError):
            self._import('buildings', workbook(BUILDING_HEADER), file_name='buildings.csv')
        with self.assertRaises(ValidationError):
            self._import('students', workbook(BUILDING_HEADER))

        job = self._import('buildings', io.BytesIO(b'not a workbook'))
        self.assertEqual(job.status, 'failed')
        self.assertTrue(job.get_errors()[0]['error'].startswith('Could not read workbook'))

    def test_permissions(self):
        """Test lecturers cannot import and coordinators cannot import users"""
        lecturer = make_user('lecturer@test.edu', UserRole.LECTURER)
        coordinator = make_user('coordinator@test.edu', UserRole.COORDINATOR)

        with self.assertRaises(PermissionDeniedError):
            self._import('buildings', workbook(BUILDING_HEADER), actor=lecturer)
        with self.assertRaises(PermissionDeniedError):
            self._import('users', workbook(['email', 'first_name', 'last_name', 'role']), actor=coordinator)

        job = self._import('buildings', workbook(BUILDING_HEADER, ['LB', 'Library', 5.6, -0.18]),
                           actor=coordinator)
        self.assertEqual(job.status, 'completed')

    def test_import_users(self):
        """Test lecturer rows get a profile and bad roles are reported"""
        job = self._import('users', workbook(
            ['email', 'first_name', 'last_name', 'role', 'employee_id', 'department'],
            ['Jane.Doe@test.edu', 'Jane', 'Doe', 'LECTURER', 'EMP010', 'Finance'],
            ['rep2@test.edu', 'Yaw', 'Darko', 'CLASS_REP', None, None],
            ['dean@test.edu', 'Efua', 'Asante', 'DEAN', None, None]))

        self.assertEqual(job.records_processed, 2)
        self.assertEqual(job.get_errors()[0]['row'], 4)
        lecturer = Lecturer.query.filter_by(employee_id='EMP010').one()
        self.assertEqual(lecturer.user.email, 'jane.doe@test.edu')
        self.assertEqual(lecturer.department, 'Finance')
        self.assertIsNotNone(User.query.filter_by(email='rep2@test.edu').first())

    def test_import_schedules(self):
        """Test schedule rows resolve codes, names and employee IDs"""
        world = make_world()
        day = today_day_of_week()

        job = self._import('schedules', workbook(
            ['course_code', 'class_group_name', 'lecturer_employee_id', 'day_of_week',
             'start_time', 'end_time', 'room_code', 'session_type'],
            ['acc601', 'MBA ACC 2025', 'EMP001', day, '14:00', '16:00', 'gs-101', 'LECTURE'],
            ['ACC601', 'MBA ACC 2025', 'EMP999', day, '17:00', '18:00', None, None],
            ['ACC601', 'MBA ACC 2025', 'EMP001', day, '09:00', '11:00', None, None]))

        self.assertEqual(job.records_processed, 1)
        errors = job.get_errors()
        self.assertEqual([e['row'] for e in errors], [3, 4])
        self.assertEqual(errors[0]['error'], "Lecturer 'EMP999' not found")

        imported = CourseSchedule.query.filter_by(start_time='14:00').one()
        self.assertEqual(imported.classroom_id, world['classroom'].id)
        self.assertEqual(imported.day_of_week, day)

    def test_import_is_audited(self):
        """Test each import writes a BULK_IMPORT audit entry"""
        job = self._import('buildings', workbook(BUILDING_HEADER, ['LB', 'Library', 5.6, -0.18]))

        entry = AuditLog.query.filter_by(action='BULK_IMPORT').one()
        self.assertEqual(entry.target_id, str(job.id))
        self.assertEqual(entry.get_metadata()['records_processed'], 1)

    def test_template(self):
        """Test templates carry the columns and instructions"""
        content = ImportService.template('schedules')
        wb = load_workbook(io.BytesIO(content))

        self.assertIn('Instructions', wb.sheetnames)
        header = [cell.value for cell in wb.worksheets[0][1]]
        self.assertEqual(header[:3], ['course_code', 'class_group_name', 'lecturer_employee_id'])

        with self.assertRaises(ValidationError):
            ImportService.template('students')
