"""
Bulk import service for the Lecturer Attendance Management System
Spreadsheet (.xlsx) import of users, programmes, courses, class groups,
buildings, classrooms and schedules, with row-numbered error reporting
"""

import json
import logging
import zipfile
from datetime import datetime, time
from io import BytesIO

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from database import DatabaseError, db
from models.academic import ClassGroup, Course, Programme
from models.facilities import Building, Classroom
from models.report import ImportJob
from models.user import Lecturer, User, UserRole
from services.audit_service import AuditAction, AuditService
from services.excel_export_service import ExcelExportService
from services.management_service import ManagementService
from services.schedule_service import ScheduleService
from utils.errors import PermissionDeniedError, ServiceError, ValidationError

logger = logging.getLogger(__name__)

# Column layout per import type: (required columns, optional columns)
IMPORT_COLUMNS = {
    'users': (['email', 'first_name', 'last_name', 'role'],
              ['password', 'phone_number', 'employee_id', 'rank', 'department', 'employment_type']),
    'programmes': (['name', 'level', 'duration_semesters', 'delivery_modes'],
                   ['description', 'coordinator_email']),
    'courses': (['course_code', 'title', 'programme_name'],
                ['credit_hours', 'semester_level', 'is_elective', 'virtual_enabled', 'description']),
    'class_groups': (['name', 'programme_name', 'admission_year', 'delivery_mode'],
                     ['student_count', 'semester', 'academic_year', 'class_rep_email']),
    'buildings': (['code', 'name', 'gps_latitude', 'gps_longitude'],
                  ['address', 'total_floors', 'description']),
    'classrooms': (['room_code', 'name', 'building_code'],
                   ['capacity', 'room_type', 'gps_latitude', 'gps_longitude', 'virtual_link']),
    'schedules': (['course_code', 'class_group_name', 'lecturer_employee_id',
                   'day_of_week', 'start_time', 'end_time'],
                  ['room_code', 'session_type', 'meeting_link']),
}

TEMPLATE_EXAMPLES = {
    'users': ['jane.doe@example.edu', 'Jane', 'Doe', 'LECTURER', '', '', 'EMP001', 'Senior Lecturer',
              'Accounting', 'FULL_TIME'],
    'programmes': ['MBA Finance', 'Masters', 4, 'Weekday,Weekend', 'Finance specialisation', ''],
    'courses': ['FIN601', 'Corporate Finance', 'MBA Finance', 3, 1, 'no', 'yes', ''],
    'class_groups': ['MBA Finance 2025 Weekday', 'MBA Finance', 2025, 'Weekday', 40, '', '2025/2026', ''],
    'buildings': ['GS', 'Graduate School Block', 5.6037, -0.1870, 'Main campus', 3, ''],
    'classrooms': ['GS-101', 'Lecture Room 101', 'GS', 60, 'LECTURE_HALL', '', '', ''],
    'schedules': ['FIN601', 'MBA Finance 2025 Weekday', 'EMP001', 1, '08:00', '10:00', 'GS-101', 'LECTURE', ''],
}

TRUE_VALUES = ('1', 'true', 'yes', 'y')


def _text(value):
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, (datetime, time)):
        return value.strftime('%H:%M')
    value = str(value).strip()
    return value or None


def _flag(value):
    return str(value).strip().lower() in TRUE_VALUES if value not in (None, '') else False


def _lookup(model, label, **criteria):
    obj = model.query.filter_by(**criteria).first()
    if obj is None:
        raise ValidationError(f"{label} '{list(criteria.values())[0]}' not found")
    return obj


class ImportService:
    """Import service class"""

    @staticmethod
    def read_rows(file_stream, import_type):
        """Yield (row_number, dict) for each non-empty data row"""
        required, optional = IMPORT_COLUMNS[import_type]
        try:
            wb = openpyxl.load_workbook(BytesIO(file_stream.read()), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
            raise ValidationError(f"Could not read workbook: {e}")

        ws = wb.active
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            raise ValidationError("The workbook is empty")
        columns = [(_text(h) or '').lower().replace(' ', '_') for h in header]
        missing = [c for c in required if c not in columns]
        if missing:
            raise ValidationError("Missing required columns", details=missing)

        known = set(required) | set(optional)
        for row_number, values in enumerate(rows, 2):
            if values is None or all(v in (None, '') for v in values):
                continue
            yield row_number, {col: _text(val) for col, val in zip(columns, values) if col in known}
        wb.close()

    # Row converters: map a sheet row to the payload the service layer takes

    @staticmethod
    def _user(actor, row):
        user, _ = ManagementService.create_user(actor, row)
        return user

    @staticmethod
    def _programme(actor, row):
        data = dict(row)
        email = data.pop('coordinator_email', None)
        if email:
            data['coordinator_id'] = _lookup(User, 'Coordinator', email=email.lower()).id
        return ManagementService.create_programme(actor, data)

    @staticmethod
    def _course(actor, row):
        data = dict(row)
        data['programme_id'] = _lookup(Programme, 'Programme', name=data.pop('programme_name')).id
        for field in ('is_elective', 'virtual_enabled'):
            data[field] = _flag(data.get(field))
        for field in ('credit_hours', 'semester_level'):
            if not data.get(field):
                data.pop(field, None)
        return ManagementService.create_course(actor, data)

    @staticmethod
    def _class_group(actor, row):
        data = dict(row)
        data['programme_id'] = _lookup(Programme, 'Programme', name=data.pop('programme_name')).id
        email = data.pop('class_rep_email', None)
        if email:
            data['class_rep_id'] = _lookup(User, 'Class representative', email=email.lower()).id
        return ManagementService.create_class_group(actor, data)

    @staticmethod
    def _building(actor, row):
        return ManagementService.create_building(actor, row)

    @staticmethod
    def _classroom(actor, row):
        data = dict(row)
        data['building_id'] = _lookup(Building, 'Building', code=data.pop('building_code').upper()).id
        return ManagementService.create_classroom(actor, data)

    @staticmethod
    def _schedule(actor, row):
        data = dict(row)
        data['course_id'] = _lookup(Course, 'Course', course_code=data.pop('course_code').upper()).id
        data['class_group_id'] = _lookup(ClassGroup, 'Class group', name=data.pop('class_group_name')).id
        data['lecturer_id'] = _lookup(Lecturer, 'Lecturer', employee_id=data.pop('lecturer_employee_id')).id
        room_code = data.pop('room_code', None)
        if room_code:
            data['classroom_id'] = _lookup(Classroom, 'Classroom', room_code=room_code.upper()).id
        return ScheduleService.create_schedule(actor, data)

    @staticmethod
    def import_file(actor, import_type, file_stream, file_name):
        """
        Import every row of an uploaded workbook.

        Rows are committed one by one, so a bad row is reported with its
        sheet row number and does not undo the rows that succeeded.
        """
        if actor.role not in UserRole.MANAGERS:
            raise PermissionDeniedError("Only administrators and coordinators can import data")
        if import_type not in IMPORT_COLUMNS:
            raise ValidationError(f"Import type must be one of: {', '.join(IMPORT_COLUMNS)}")
        if not file_name or not file_name.lower().endswith('.xlsx'):
            raise ValidationError("Only .xlsx files are supported")
        if import_type == 'users' and actor.role != UserRole.ADMIN:
            raise PermissionDeniedError("Only administrators can import users")

        converters = {
            'users': ImportService._user,
            'programmes': ImportService._programme,
            'courses': ImportService._course,
            'class_groups': ImportService._class_group,
            'buildings': ImportService._building,
            'classrooms': ImportService._classroom,
            'schedules': ImportService._schedule,
        }

        job = ImportJob(initiated_by=actor.id, job_type=import_type, file_name=file_name)
        db.session.add(job)
        db.session.commit()

        processed, errors = 0, []
        try:
            for row_number, row in ImportService.read_rows(file_stream, import_type):
                try:
                    converters[import_type](actor, row)
                    processed += 1
                except ServiceError as e:
                    db.session.rollback()
                    errors.append({'row': row_number, 'error': e.message, 'details': e.details})
                except DatabaseError as e:
                    errors.append({'row': row_number, 'error': str(e)})
        except ValidationError as e:
            job.status = 'failed'
            errors.append({'row': None, 'error': e.message, 'details': e.details})
        else:
            job.status = 'completed' if not errors else 'completed_with_errors'

        job.records_processed = processed
        job.errors_count = len(errors)
        job.error_log = json.dumps(errors) if errors else None
        job.completed_at = datetime.utcnow()
        db.session.commit()
        logger.info("Import %s (%s): %d rows imported, %d errors", job.id, import_type, processed, len(errors))

        AuditService.log(actor.id, AuditAction.BULK_IMPORT, 'ImportJob', job.id,
                         {'import_type': import_type, 'file_name': file_name,
                          'records_processed': processed, 'errors_count': len(errors)})
        return job

    @staticmethod
    def template(import_type):
        """Template workbook bytes for an import type"""
        if import_type not in IMPORT_COLUMNS:
            raise ValidationError(f"Import type must be one of: {', '.join(IMPORT_COLUMNS)}")
        required, optional = IMPORT_COLUMNS[import_type]
        notes = [
            f"Required columns: {', '.join(required)}",
            f"Optional columns: {', '.join(optional)}",
            "Keep the header row. Each following row is imported on its own.",
        ]
        if import_type == 'users':
            notes.append(f"Roles: {', '.join(UserRole.ALL)}. LECTURER rows need an employee_id.")
            notes.append("Leave password empty to generate one.")
        if import_type == 'schedules':
            notes.append("day_of_week: 0 = Sunday ... 6 = Saturday. Times as HH:MM.")
        example = dict(zip(required + optional, TEMPLATE_EXAMPLES[import_type]))
        return ExcelExportService.build_template(import_type.replace('_', ' ').title(),
                                                 required + optional, [example], notes)
