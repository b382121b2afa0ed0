"""
Management service for the Lecturer Attendance Management System
Business logic for users, academic structure, facilities and dashboards
"""

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import or_

from database import db, handle_db_error
from models.academic import Programme, Course, ClassGroup
from models.attendance import AttendanceRecord, SupervisorLog
from models.audit import AuditLog
from models.facilities import Building, Classroom
from models.notification import Notification
from models.report import ImportJob, Report, ScheduledReport
from models.verification import VerificationRequest
from models.schedule import CourseSchedule
from models.user import User, UserRole, Lecturer
from services.attendance_service import AttendanceService
from services.audit_service import AuditService, AuditAction
from services.auth_service import AuthService
from services.schedule_service import ScheduleService, coordinated_programme_ids, lecturer_for
from utils.db_helpers import get_or_404, safe_add_and_commit, safe_update_and_commit
from utils.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from utils.validators import (validate_admission_year, validate_coordinates, validate_course_code,
                              validate_email, validate_employee_id, validate_name,
                              validate_password, validate_positive_int, validate_role, validate_url)

logger = logging.getLogger(__name__)

USER_FIELDS = ('first_name', 'last_name', 'phone_number', 'timezone', 'is_active')
LECTURER_FIELDS = ('employee_id', 'rank', 'department', 'employment_type', 'specialization',
                   'office_location', 'is_verified', 'is_adjunct')


def _require(condition, message):
    if not condition:
        raise ValidationError(message)


def _check(result):
    is_valid, message = result
    if not is_valid:
        raise ValidationError(message)


def _require_manager(user):
    if user.role not in UserRole.MANAGERS:
        raise PermissionDeniedError("Insufficient permissions")


def _require_admin(user):
    if user.role != UserRole.ADMIN:
        raise PermissionDeniedError("Insufficient permissions")


def _has_history(user):
    """True when any record still points at the user and must keep its author"""
    if user.lecturer is not None and (
            user.lecturer.attendance_records.count() or user.lecturer.schedules.count()):
        return True
    references = (
        (AuditLog, AuditLog.user_id),
        (Notification, Notification.sender_id),
        (VerificationRequest, VerificationRequest.requester_id),
        (VerificationRequest, VerificationRequest.reviewed_by),
        (SupervisorLog, SupervisorLog.supervisor_id),
        (Report, Report.generated_by),
        (ScheduledReport, ScheduledReport.created_by),
        (ImportJob, ImportJob.initiated_by),
    )
    return any(db.session.query(model.id).filter(column == user.id).first() is not None
               for model, column in references)


class ManagementService:
    """Management service class"""

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @staticmethod
    def list_users(actor, role=None, search='', limit=50, offset=0):
        _require_manager(actor)
        query = User.query
        if role:
            query = query.filter(User.role == role)
        if search:
            like = f'%{search}%'
            query = query.filter(or_(User.first_name.ilike(like), User.last_name.ilike(like),
                                     User.email.ilike(like)))
        total = query.count()
        users = query.order_by(User.last_name, User.first_name).limit(limit).offset(offset).all()
        return {'users': [u.to_dict() for u in users], 'total': total,
                'has_more': offset + limit < total}

    @staticmethod
    def get_user(actor, user_id):
        if actor.role not in UserRole.MANAGERS and actor.id != user_id:
            raise PermissionDeniedError("Insufficient permissions")
        return get_or_404(User, user_id, 'User')

    @staticmethod
    @handle_db_error
    def create_user(actor, data):
        """Create an account; LECTURER accounts get a lecturer profile"""
        _require_admin(actor)

        email = (data.get('email') or '').strip().lower()
        _check(validate_email(email))
        _check(validate_name(data.get('first_name'), "First name"))
        _check(validate_name(data.get('last_name'), "Last name"))
        role = data.get('role')
        _check(validate_role(role))

        password = data.get('password') or AuthService.generate_password()
        _check(validate_password(password))

        if User.query.filter(db.func.lower(User.email) == email).first():
            raise ConflictError("User with this email already exists")

        user = User(
            email=email,
            first_name=data['first_name'].strip(),
            last_name=data['last_name'].strip(),
            role=role,
            phone_number=data.get('phone_number'),
            timezone=data.get('timezone') or 'UTC',
        )
        user.set_password(password)

        if role == UserRole.LECTURER:
            employee_id = (data.get('employee_id') or '').strip()
            _check(validate_employee_id(employee_id))
            if Lecturer.query.filter_by(employee_id=employee_id).first():
                raise ConflictError("Lecturer with this employee ID already exists")
            user.lecturer = Lecturer(
                employee_id=employee_id,
                **{field: data.get(field) for field in LECTURER_FIELDS
                   if field != 'employee_id' and data.get(field) is not None}
            )

        safe_add_and_commit(user)
        logger.info("User %s created with role %s", user.email, role)
        AuditService.log(actor.id, AuditAction.USER_CREATED, 'User', user.id,
                         {'email': user.email, 'role': role})
        return user, password if not data.get('password') else None

    @staticmethod
    @handle_db_error
    def update_user(actor, user_id, data):
        user = get_or_404(User, user_id, 'User')
        is_self = actor.id == user.id
        if actor.role != UserRole.ADMIN and not is_self:
            raise PermissionDeniedError("Insufficient permissions")

        changes = {}
        for field in USER_FIELDS:
            if field not in data:
                continue
            if field == 'is_active' and actor.role != UserRole.ADMIN:
                raise PermissionDeniedError("Only administrators can activate or deactivate accounts")
            if field in ('first_name', 'last_name'):
                _check(validate_name(data[field], field.replace('_', ' ').capitalize()))
            if getattr(user, field) != data[field]:
                changes[field] = data[field]
                setattr(user, field, data[field])

        if 'email' in data and data['email'] != user.email:
            email = data['email'].strip().lower()
            _check(validate_email(email))
            if User.query.filter(User.email == email, User.id != user.id).first():
                raise ConflictError("User with this email already exists")
            changes['email'] = user.email = email

        old_role = user.role
        if 'role' in data and data['role'] != user.role:
            _require_admin(actor)
            _check(validate_role(data['role']))
            if is_self:
                raise ValidationError("You cannot change your own role")
            user.role = data['role']
            changes['role'] = data['role']
            if user.role == UserRole.LECTURER and user.lecturer is None:
                employee_id = (data.get('employee_id') or '').strip()
                _check(validate_employee_id(employee_id))
                user.lecturer = Lecturer(employee_id=employee_id)

        if user.lecturer is not None and actor.role == UserRole.ADMIN:
            for field in LECTURER_FIELDS:
                if field in data and getattr(user.lecturer, field) != data[field]:
                    changes[field] = data[field]
                    setattr(user.lecturer, field, data[field])

        safe_update_and_commit()

        if 'role' in changes:
            AuditService.log(actor.id, AuditAction.ROLE_CHANGED, 'User', user.id,
                             {'from': old_role, 'to': user.role})
        if changes:
            AuditService.log(actor.id, AuditAction.USER_UPDATED, 'User', user.id, changes)
        return user

    @staticmethod
    @handle_db_error
    def delete_user(actor, user_id):
        """Delete an account; accounts with history are deactivated instead"""
        _require_admin(actor)
        user = get_or_404(User, user_id, 'User')
        if user.id == actor.id:
            raise ValidationError("You cannot delete your own account")

        has_history = _has_history(user)
        snapshot = {'email': user.email, 'role': user.role}
        if has_history:
            user.is_active = False
            db.session.commit()
            snapshot['deactivated'] = True
        else:
            for programme in user.coordinated_programmes:
                programme.coordinator_id = None
            for class_group in user.classes_as_rep:
                class_group.class_rep_id = None
            db.session.delete(user)
            db.session.commit()

        AuditService.log(actor.id, AuditAction.USER_DELETED, 'User', user_id, snapshot)
        return snapshot.get('deactivated', False)

    @staticmethod
    def list_lecturers(actor, search=''):
        _require_manager(actor)
        query = Lecturer.query.join(User, Lecturer.user_id == User.id).filter(User.is_active.is_(True))
        if search:
            like = f'%{search}%'
            query = query.filter(or_(User.first_name.ilike(like), User.last_name.ilike(like),
                                     Lecturer.employee_id.ilike(like), Lecturer.department.ilike(like)))
        lecturers = query.order_by(User.last_name, User.first_name).all()
        results = []
        for lecturer in lecturers:
            data = lecturer.to_dict()
            data['total_schedules'] = lecturer.schedules.count()
            data['total_attendance'] = lecturer.attendance_records.count()
            results.append(data)
        return results

    # ------------------------------------------------------------------
    # Programmes and courses
    # ------------------------------------------------------------------

    @staticmethod
    def list_programmes(actor):
        query = Programme.query
        if actor.role == UserRole.COORDINATOR:
            query = query.filter(Programme.coordinator_id == actor.id)
        return [p.to_dict() for p in query.order_by(Programme.name).all()]

    @staticmethod
    def _programme_for(actor, programme_id):
        programme = get_or_404(Programme, programme_id, 'Programme')
        if actor.role == UserRole.COORDINATOR and programme.coordinator_id != actor.id:
            raise PermissionDeniedError("You can only manage your assigned programmes")
        return programme

    @staticmethod
    def get_programme(actor, programme_id):
        _require_manager(actor)
        programme = ManagementService._programme_for(actor, programme_id)
        data = programme.to_dict()
        data['courses'] = [c.to_dict() for c in programme.courses.order_by(Course.course_code)]
        data['class_groups'] = [g.to_dict() for g in programme.class_groups.order_by(ClassGroup.name)]
        return data

    @staticmethod
    def _apply_programme(programme, data):
        if 'name' in data:
            _require(data['name'] and data['name'].strip(), "Programme name is required")
            programme.name = data['name'].strip()
        if 'level' in data:
            _require(data['level'], "Programme level is required")
            programme.level = data['level']
        if 'duration_semesters' in data:
            _check(validate_positive_int(data['duration_semesters'], "Duration"))
            programme.duration_semesters = int(data['duration_semesters'])
        if 'delivery_modes' in data:
            modes = data['delivery_modes']
            if isinstance(modes, str):
                modes = [m.strip() for m in modes.split(',')]
            modes = [m for m in modes or [] if m]
            _require(modes, "At least one delivery mode is required")
            programme.delivery_modes = ','.join(modes)
        for field in ('description', 'is_active'):
            if field in data:
                setattr(programme, field, data[field])
        if 'coordinator_id' in data:
            coordinator_id = data['coordinator_id']
            if coordinator_id:
                coordinator = get_or_404(User, coordinator_id, 'Coordinator')
                _require(coordinator.role == UserRole.COORDINATOR, "Assigned user is not a coordinator")
            programme.coordinator_id = coordinator_id or None

    @staticmethod
    @handle_db_error
    def create_programme(actor, data):
        _require_manager(actor)
        for field in ('name', 'level', 'duration_semesters', 'delivery_modes'):
            _require(data.get(field), f"{field} is required")
        if Programme.query.filter_by(name=data['name'].strip()).first():
            raise ConflictError("Programme with this name already exists")

        programme = Programme()
        ManagementService._apply_programme(programme, data)
        if actor.role == UserRole.COORDINATOR and not programme.coordinator_id:
            programme.coordinator_id = actor.id
        return safe_add_and_commit(programme)

    @staticmethod
    @handle_db_error
    def update_programme(actor, programme_id, data):
        _require_manager(actor)
        programme = ManagementService._programme_for(actor, programme_id)
        if actor.role == UserRole.COORDINATOR and 'coordinator_id' in data:
            raise PermissionDeniedError("Only administrators can reassign coordinators")
        ManagementService._apply_programme(programme, data)
        safe_update_and_commit()
        return programme

    @staticmethod
    @handle_db_error
    def delete_programme(actor, programme_id):
        _require_admin(actor)
        programme = get_or_404(Programme, programme_id, 'Programme')
        if programme.courses.count() or programme.class_groups.count():
            raise ConflictError("Programme still has courses or class groups")
        db.session.delete(programme)
        db.session.commit()

    @staticmethod
    def list_courses(actor, programme_id=None, search=''):
        query = Course.query
        if actor.role == UserRole.COORDINATOR:
            query = query.filter(Course.programme_id.in_(coordinated_programme_ids(actor)))
        elif actor.role == UserRole.LECTURER:
            taught = db.session.query(CourseSchedule.course_id).filter(
                CourseSchedule.lecturer_id == lecturer_for(actor).id)
            query = query.filter(Course.id.in_(taught))
        elif actor.role != UserRole.ADMIN:
            raise PermissionDeniedError("Insufficient permissions")
        if programme_id:
            query = query.filter(Course.programme_id == programme_id)
        if search:
            like = f'%{search}%'
            query = query.filter(or_(Course.course_code.ilike(like), Course.title.ilike(like)))
        return [c.to_dict() for c in query.order_by(Course.course_code).all()]

    @staticmethod
    def get_course(actor, course_id):
        course = get_or_404(Course, course_id, 'Course')
        if actor.role == UserRole.COORDINATOR and course.programme.coordinator_id != actor.id:
            raise PermissionDeniedError("You can only view courses in your assigned programmes")
        data = course.to_dict()
        data['schedules'] = [s.to_dict() for s in course.schedules.order_by(
            CourseSchedule.day_of_week, CourseSchedule.start_time)]
        return data

    @staticmethod
    def _apply_course(actor, course, data):
        if 'course_code' in data:
            _check(validate_course_code(data['course_code']))
            course.course_code = data['course_code'].strip().upper()
        if 'title' in data:
            _require(data['title'] and data['title'].strip(), "Course title is required")
            course.title = data['title'].strip()
        if 'programme_id' in data:
            ManagementService._programme_for(actor, data['programme_id'])
            course.programme_id = int(data['programme_id'])
        for field in ('credit_hours', 'semester_level'):
            if field in data:
                _check(validate_positive_int(data[field], field.replace('_', ' ').capitalize()))
                setattr(course, field, int(data[field]))
        for field in ('is_elective', 'description', 'virtual_enabled', 'hybrid_enabled', 'is_active'):
            if field in data:
                setattr(course, field, data[field])

    @staticmethod
    @handle_db_error
    def create_course(actor, data):
        _require_manager(actor)
        for field in ('course_code', 'title', 'programme_id'):
            _require(data.get(field), f"{field} is required")
        if Course.query.filter_by(course_code=data['course_code'].strip().upper()).first():
            raise ConflictError("Course with this code already exists")
        course = Course()
        ManagementService._apply_course(actor, course, data)
        return safe_add_and_commit(course)

    @staticmethod
    @handle_db_error
    def update_course(actor, course_id, data):
        _require_manager(actor)
        course = get_or_404(Course, course_id, 'Course')
        ManagementService._programme_for(actor, course.programme_id)
        ManagementService._apply_course(actor, course, data)
        safe_update_and_commit()
        return course

    @staticmethod
    @handle_db_error
    def delete_course(actor, course_id):
        _require_admin(actor)
        course = get_or_404(Course, course_id, 'Course')
        if course.schedules.count():
            raise ConflictError("Course still has schedules")
        db.session.delete(course)
        db.session.commit()

    # ------------------------------------------------------------------
    # Class groups
    # ------------------------------------------------------------------

    @staticmethod
    def list_class_groups(actor, programme_id=None):
        query = ClassGroup.query
        if actor.role == UserRole.COORDINATOR:
            query = query.filter(ClassGroup.programme_id.in_(coordinated_programme_ids(actor)))
        elif actor.role == UserRole.LECTURER:
            taught = db.session.query(CourseSchedule.class_group_id).filter(
                CourseSchedule.lecturer_id == lecturer_for(actor).id)
            query = query.filter(ClassGroup.id.in_(taught))
        elif actor.role == UserRole.CLASS_REP:
            query = query.filter(ClassGroup.class_rep_id == actor.id)
        elif actor.role != UserRole.ADMIN:
            raise PermissionDeniedError("Insufficient permissions")
        if programme_id:
            query = query.filter(ClassGroup.programme_id == programme_id)
        return [g.to_dict() for g in query.order_by(ClassGroup.admission_year.desc(), ClassGroup.name).all()]

    @staticmethod
    def my_class(actor):
        """Class groups represented by a class rep, with their timetable"""
        if actor.role != UserRole.CLASS_REP:
            raise PermissionDeniedError("Only class representatives have a class")
        groups = ClassGroup.query.filter_by(class_rep_id=actor.id).all()
        if not groups:
            raise NotFoundError("Class group not found")
        results = []
        for group in groups:
            data = group.to_dict()
            data['schedules'] = [s.to_dict() for s in group.schedules.order_by(
                CourseSchedule.day_of_week, CourseSchedule.start_time)]
            results.append(data)
        return results

    @staticmethod
    def _apply_class_group(actor, group, data):
        if 'name' in data:
            _require(data['name'] and data['name'].strip(), "Class group name is required")
            group.name = data['name'].strip()
        if 'programme_id' in data:
            ManagementService._programme_for(actor, data['programme_id'])
            group.programme_id = int(data['programme_id'])
        if 'admission_year' in data:
            _check(validate_admission_year(data['admission_year']))
            group.admission_year = int(data['admission_year'])
        if 'delivery_mode' in data:
            _require(data['delivery_mode'], "Delivery mode is required")
            group.delivery_mode = data['delivery_mode']
        if 'class_rep_id' in data:
            rep_id = data['class_rep_id']
            if rep_id:
                rep = get_or_404(User, rep_id, 'Class representative')
                _require(rep.role == UserRole.CLASS_REP, "Assigned user is not a class representative")
            group.class_rep_id = rep_id or None
        if 'student_count' in data and data['student_count'] is not None:
            _check(validate_positive_int(data['student_count'], "Student count", minimum=0))
            group.student_count = int(data['student_count'])
        for field in ('semester', 'academic_year', 'is_active'):
            if field in data:
                setattr(group, field, data[field])

    @staticmethod
    @handle_db_error
    def create_class_group(actor, data):
        _require_manager(actor)
        for field in ('name', 'programme_id', 'admission_year', 'delivery_mode'):
            _require(data.get(field), f"{field} is required")
        group = ClassGroup()
        ManagementService._apply_class_group(actor, group, data)
        return safe_add_and_commit(group)

    @staticmethod
    @handle_db_error
    def update_class_group(actor, group_id, data):
        _require_manager(actor)
        group = get_or_404(ClassGroup, group_id, 'Class group')
        ManagementService._programme_for(actor, group.programme_id)
        ManagementService._apply_class_group(actor, group, data)
        safe_update_and_commit()
        return group

    # ------------------------------------------------------------------
    # Facilities
    # ------------------------------------------------------------------

    @staticmethod
    def list_buildings():
        return [b.to_dict() for b in Building.query.order_by(Building.code).all()]

    @staticmethod
    @handle_db_error
    def create_building(actor, data):
        _require_manager(actor)
        for field in ('code', 'name'):
            _require(data.get(field), f"{field} is required")
        _check(validate_coordinates(data.get('gps_latitude'), data.get('gps_longitude')))
        if Building.query.filter_by(code=data['code'].strip().upper()).first():
            raise ConflictError("Building with this code already exists")

        building = Building(
            code=data['code'].strip().upper(),
            name=data['name'].strip(),
            description=data.get('description'),
            address=data.get('address'),
            gps_latitude=float(data['gps_latitude']),
            gps_longitude=float(data['gps_longitude']),
            total_floors=int(data['total_floors']) if data.get('total_floors') else None,
        )
        return safe_add_and_commit(building)

    @staticmethod
    def list_classrooms(building_id=None):
        query = Classroom.query
        if building_id:
            query = query.filter(Classroom.building_id == building_id)
        return [c.to_dict() for c in query.order_by(Classroom.room_code).all()]

    @staticmethod
    @handle_db_error
    def create_classroom(actor, data):
        _require_manager(actor)
        for field in ('room_code', 'name', 'building_id'):
            _require(data.get(field), f"{field} is required")
        get_or_404(Building, data['building_id'], 'Building')
        if data.get('gps_latitude') is not None or data.get('gps_longitude') is not None:
            _check(validate_coordinates(data.get('gps_latitude'), data.get('gps_longitude')))
        if data.get('virtual_link'):
            _check(validate_url(data['virtual_link'], "Virtual link"))
        if Classroom.query.filter_by(room_code=data['room_code'].strip().upper()).first():
            raise ConflictError("Classroom with this code already exists")

        equipment = data.get('equipment_list') or []
        if isinstance(equipment, list):
            equipment = ','.join(equipment)
        classroom = Classroom(
            room_code=data['room_code'].strip().upper(),
            name=data['name'].strip(),
            building_id=int(data['building_id']),
            capacity=int(data['capacity']) if data.get('capacity') else None,
            room_type=data.get('room_type'),
            equipment_list=equipment or None,
            gps_latitude=float(data['gps_latitude']) if data.get('gps_latitude') is not None else None,
            gps_longitude=float(data['gps_longitude']) if data.get('gps_longitude') is not None else None,
            availability_status=data.get('availability_status') or 'available',
            virtual_link=data.get('virtual_link'),
        )
        return safe_add_and_commit(classroom)

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    @staticmethod
    def get_dashboard_stats(actor, today=None):
        """Per-role headline numbers for the current Sunday-to-Saturday week"""
        today = today or date.today()
        week_start = datetime(today.year, today.month, today.day) - timedelta(days=(today.weekday() + 1) % 7)
        week_end = week_start + timedelta(days=7)

        records = AttendanceService.scoped_query(actor)
        schedules = ScheduleService.scoped_query(actor)

        total_sessions = records.count()
        total_schedules = schedules.count()
        this_week = records.filter(AttendanceRecord.timestamp >= week_start,
                                   AttendanceRecord.timestamp < week_end).count()
        pending = records.filter(AttendanceRecord.class_rep_verified.is_(None),
                                 AttendanceRecord.supervisor_verified.is_(None)).count()

        if actor.role in (UserRole.ADMIN, UserRole.COORDINATOR) or actor.role in UserRole.SUPERVISORS:
            active_courses = (Course.query.filter(Course.programme_id.in_(coordinated_programme_ids(actor)))
                              if actor.role == UserRole.COORDINATOR else Course.query).filter(
                Course.is_active.is_(True)).count()
        else:
            active_courses = schedules.with_entities(CourseSchedule.course_id).distinct().count()

        stats = {
            'total_sessions': total_sessions,
            'attendance_rate': round(total_sessions / total_schedules * 100) if total_schedules else 0,
            'active_courses': active_courses,
            'this_week': this_week,
            'pending_verifications': pending,
        }
        if actor.role == UserRole.ADMIN:
            stats['total_users'] = User.query.filter_by(is_active=True).count()
            stats['total_lecturers'] = Lecturer.query.count()
            stats['total_programmes'] = Programme.query.count()
        return stats
