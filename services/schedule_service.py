"""
Schedule service for the Lecturer Attendance Management System
Weekly timetable management with conflict detection and role scoping
"""

import logging
from datetime import date

from database import db, handle_db_error
from models.academic import Course, ClassGroup, Programme
from models.attendance import AttendanceRecord
from models.facilities import Classroom
from models.schedule import CourseSchedule, python_weekday_to_day_of_week
from models.user import Lecturer, UserRole
from services.audit_service import AuditService, AuditAction
from utils.db_helpers import get_or_404
from utils.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from utils.validators import (validate_day_of_week, validate_positive_int, validate_session_type,
                              validate_time_range, validate_url)

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = ('course_id', 'class_group_id', 'lecturer_id', 'classroom_id',
                   'day_of_week', 'start_time', 'end_time', 'session_type',
                   'meeting_link', 'is_overload')


def times_overlap(start_a, end_a, start_b, end_b):
    """Half-open interval overlap on zero-padded HH:MM strings"""
    return start_a < end_b and start_b < end_a


def lecturer_for(user):
    """Lecturer profile of a LECTURER user"""
    lecturer = Lecturer.query.filter_by(user_id=user.id).first()
    if lecturer is None:
        raise NotFoundError("Lecturer not found")
    return lecturer


def coordinated_programme_ids(user):
    return [p.id for p in Programme.query.filter_by(coordinator_id=user.id).all()]


def rep_class_group_ids(user):
    return [g.id for g in ClassGroup.query.filter_by(class_rep_id=user.id).all()]


class ScheduleService:
    """Schedule service class"""

    @staticmethod
    def scoped_query(user):
        """Schedules visible to a user: lecturer own, coordinator programmes, class rep classes"""
        query = CourseSchedule.query
        if user.role == UserRole.LECTURER:
            query = query.filter(CourseSchedule.lecturer_id == lecturer_for(user).id)
        elif user.role == UserRole.COORDINATOR:
            query = query.join(Course, CourseSchedule.course_id == Course.id).filter(
                Course.programme_id.in_(coordinated_programme_ids(user)))
        elif user.role == UserRole.CLASS_REP:
            query = query.filter(CourseSchedule.class_group_id.in_(rep_class_group_ids(user)))
        return query

    @staticmethod
    def list_schedules(user, day_of_week=None, lecturer_id=None, class_group_id=None, course_id=None):
        query = ScheduleService.scoped_query(user)
        if day_of_week is not None:
            query = query.filter(CourseSchedule.day_of_week == day_of_week)
        if lecturer_id:
            query = query.filter(CourseSchedule.lecturer_id == lecturer_id)
        if class_group_id:
            query = query.filter(CourseSchedule.class_group_id == class_group_id)
        if course_id:
            query = query.filter(CourseSchedule.course_id == course_id)

        schedules = query.order_by(CourseSchedule.day_of_week, CourseSchedule.start_time).all()
        results = []
        for schedule in schedules:
            data = schedule.to_dict()
            data['attendance_count'] = schedule.attendance_records.count()
            results.append(data)
        return results

    @staticmethod
    def get_schedule(user, schedule_id):
        schedule = get_or_404(CourseSchedule, schedule_id, 'Schedule')
        if ScheduleService.scoped_query(user).filter(CourseSchedule.id == schedule.id).first() is None:
            raise PermissionDeniedError("You cannot view this schedule")
        include_secrets = user.role in UserRole.MANAGERS or (
            user.role == UserRole.LECTURER and schedule.lecturer.user_id == user.id)
        return schedule.to_dict(include_secrets=include_secrets)

    @staticmethod
    def todays_schedules(user, day=None):
        """Today's slots with whether attendance has been taken yet"""
        day = day or date.today()
        day_of_week = python_weekday_to_day_of_week(day.weekday())
        schedules = (ScheduleService.scoped_query(user)
                     .filter(CourseSchedule.day_of_week == day_of_week)
                     .order_by(CourseSchedule.start_time).all())

        results = []
        for schedule in schedules:
            record = AttendanceRecord.find_for_day(schedule.id, day)
            if user.role == UserRole.LECTURER and record is not None:
                continue
            data = schedule.to_dict(include_secrets=user.role == UserRole.LECTURER)
            data['session_date'] = day.isoformat()
            data['attendance_taken'] = record is not None
            data['attendance_record_id'] = record.id if record else None
            results.append(data)
        return results

    @staticmethod
    def _validate(data):
        for field in ('start_time', 'end_time'):
            if data.get(field) is not None:
                data[field] = str(data[field]).strip()

        errors = []
        for field in ('course_id', 'class_group_id', 'lecturer_id', 'start_time', 'end_time'):
            if data.get(field) in (None, ''):
                errors.append(f"{field} is required")
        if data.get('day_of_week') in (None, ''):
            errors.append("day_of_week is required")
        if errors:
            raise ValidationError("Missing required fields", details=errors)

        id_fields = ['course_id', 'class_group_id', 'lecturer_id']
        if data.get('classroom_id'):
            id_fields.append('classroom_id')
        for field in id_fields:
            is_valid, message = validate_positive_int(data[field], field)
            if not is_valid:
                raise ValidationError(message)

        for is_valid, message in (
            validate_day_of_week(data['day_of_week']),
            validate_time_range(str(data['start_time']), str(data['end_time'])),
            validate_session_type(data.get('session_type') or 'LECTURE'),
        ):
            if not is_valid:
                raise ValidationError(message)

        if data.get('meeting_link'):
            is_valid, message = validate_url(data['meeting_link'], "Meeting link")
            if not is_valid:
                raise ValidationError(message)

    @staticmethod
    def find_conflict(day_of_week, start_time, end_time, lecturer_id, class_group_id,
                      classroom_id=None, exclude_id=None):
        """Return a message describing the first clash, or None"""
        query = CourseSchedule.query.filter(
            CourseSchedule.day_of_week == day_of_week,
            CourseSchedule.start_time < end_time,
            CourseSchedule.end_time > start_time,
        )
        if exclude_id is not None:
            query = query.filter(CourseSchedule.id != exclude_id)

        if query.filter(CourseSchedule.lecturer_id == lecturer_id).first():
            return "Scheduling conflict: The lecturer is already booked for this time slot."
        if query.filter(CourseSchedule.class_group_id == class_group_id).first():
            return "Scheduling conflict: The class group is already booked for this time slot."
        if classroom_id and query.filter(CourseSchedule.classroom_id == classroom_id).first():
            return "Scheduling conflict: The classroom is already booked for this time slot."
        return None

    @staticmethod
    def _check_references(user, data):
        course = get_or_404(Course, int(data['course_id']), 'Course')
        get_or_404(ClassGroup, int(data['class_group_id']), 'Class group')
        get_or_404(Lecturer, int(data['lecturer_id']), 'Lecturer')
        if data.get('classroom_id'):
            get_or_404(Classroom, int(data['classroom_id']), 'Classroom')

        if user.role == UserRole.COORDINATOR and (
                course.programme is None or course.programme.coordinator_id != user.id):
            raise PermissionDeniedError(
                "You can only create schedules for courses in your assigned programmes")

    @staticmethod
    @handle_db_error
    def create_schedule(user, data):
        """Create a weekly slot after validation, ownership and conflict checks"""
        if user.role not in UserRole.MANAGERS:
            raise PermissionDeniedError("Insufficient permissions")

        ScheduleService._validate(data)
        ScheduleService._check_references(user, data)

        day_of_week = int(data['day_of_week'])
        start_time, end_time = str(data['start_time']), str(data['end_time'])
        classroom_id = int(data['classroom_id']) if data.get('classroom_id') else None

        conflict = ScheduleService.find_conflict(day_of_week, start_time, end_time,
                                                 int(data['lecturer_id']), int(data['class_group_id']),
                                                 classroom_id)
        if conflict:
            raise ConflictError(conflict)

        schedule = CourseSchedule(
            course_id=int(data['course_id']),
            class_group_id=int(data['class_group_id']),
            lecturer_id=int(data['lecturer_id']),
            classroom_id=classroom_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            session_type=data.get('session_type') or 'LECTURE',
            meeting_link=data.get('meeting_link') or None,
            is_overload=bool(data.get('is_overload', False)),
        )
        if data.get('meeting_password'):
            schedule.set_meeting_password(data['meeting_password'])

        db.session.add(schedule)
        db.session.commit()
        logger.info("Schedule %s created by user %s", schedule.id, user.id)

        AuditService.log(user.id, AuditAction.SCHEDULE_CREATED, 'CourseSchedule', schedule.id,
                         {'course_id': schedule.course_id, 'day_of_week': day_of_week,
                          'start_time': start_time, 'end_time': end_time})
        return schedule

    @staticmethod
    @handle_db_error
    def update_schedule(user, schedule_id, data):
        if user.role not in UserRole.MANAGERS:
            raise PermissionDeniedError("Insufficient permissions")

        schedule = get_or_404(CourseSchedule, schedule_id, 'Schedule')
        merged = {field: getattr(schedule, field) for field in SCHEDULE_FIELDS}
        merged.update({k: v for k, v in data.items() if k in SCHEDULE_FIELDS})

        ScheduleService._validate(merged)
        ScheduleService._check_references(user, merged)
        if user.role == UserRole.COORDINATOR and (
                schedule.course.programme is None or schedule.course.programme.coordinator_id != user.id):
            raise PermissionDeniedError("You can only edit schedules in your assigned programmes")

        classroom_id = int(merged['classroom_id']) if merged.get('classroom_id') else None
        conflict = ScheduleService.find_conflict(int(merged['day_of_week']), str(merged['start_time']),
                                                 str(merged['end_time']), int(merged['lecturer_id']),
                                                 int(merged['class_group_id']), classroom_id,
                                                 exclude_id=schedule.id)
        if conflict:
            raise ConflictError(conflict)

        changes = {}
        for field in SCHEDULE_FIELDS:
            value = merged[field]
            if field in ('course_id', 'class_group_id', 'lecturer_id', 'day_of_week'):
                value = int(value)
            elif field == 'classroom_id':
                value = classroom_id
            elif field == 'is_overload':
                value = bool(value)
            if getattr(schedule, field) != value:
                changes[field] = value
                setattr(schedule, field, value)
        if 'meeting_password' in data:
            schedule.set_meeting_password(data['meeting_password'])
            changes['meeting_password'] = '***'

        db.session.commit()
        AuditService.log(user.id, AuditAction.SCHEDULE_UPDATED, 'CourseSchedule', schedule.id, changes)
        return schedule

    @staticmethod
    @handle_db_error
    def delete_schedule(user, schedule_id):
        if user.role not in UserRole.MANAGERS:
            raise PermissionDeniedError("Insufficient permissions")

        schedule = get_or_404(CourseSchedule, schedule_id, 'Schedule')
        if user.role == UserRole.COORDINATOR and (
                schedule.course.programme is None or schedule.course.programme.coordinator_id != user.id):
            raise PermissionDeniedError("You can only delete schedules in your assigned programmes")

        snapshot = schedule.to_dict()
        db.session.delete(schedule)
        db.session.commit()
        AuditService.log(user.id, AuditAction.SCHEDULE_DELETED, 'CourseSchedule', schedule_id, snapshot)

    @staticmethod
    @handle_db_error
    def update_meeting_link(user, schedule_id, link, password=None):
        """Lecturers set the meeting link of their own slots"""
        schedule = get_or_404(CourseSchedule, schedule_id, 'Schedule')
        if user.role != UserRole.LECTURER or schedule.lecturer.user_id != user.id:
            raise PermissionDeniedError("You can only edit your own schedules")

        if link:
            is_valid, message = validate_url(link, "Meeting link")
            if not is_valid:
                raise ValidationError(message)

        schedule.meeting_link = link or None
        if password is not None:
            schedule.set_meeting_password(password)
        db.session.commit()

        AuditService.log(user.id, AuditAction.SCHEDULE_UPDATED, 'CourseSchedule', schedule.id,
                         {'meeting_link': schedule.meeting_link})
        return schedule
