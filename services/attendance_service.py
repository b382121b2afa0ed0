"""
Attendance service for the Lecturer Attendance Management System
Recording, class rep verification and supervisor check-ins
"""

import logging
from datetime import date, datetime

from flask import current_app

from database import db, handle_db_error
from models.academic import Course
from models.attendance import AttendanceRecord, AttendanceMethod, SupervisorLog, day_bounds
from models.schedule import CourseSchedule
from models.user import UserRole
from services.audit_service import AuditService, AuditAction
from services.notification_service import NotificationService
from services.schedule_service import (ScheduleService, coordinated_programme_ids,
                                       lecturer_for, rep_class_group_ids)
from utils.db_helpers import get_or_404
from utils.errors import NotFoundError, PermissionDeniedError, ValidationError
from utils.geolocation import verify_location_for_attendance, is_valid_coordinates
from utils.virtual_verification import (generate_device_fingerprint, verify_session_duration,
                                        verify_virtual_classroom)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('remarks', 'class_rep_verified', 'class_rep_comment',
                   'supervisor_verified', 'supervisor_comment', 'location_verified')
# None clears a verification back to pending
NULLABLE_FLAGS = ('class_rep_verified', 'supervisor_verified')
FLAG_FIELDS = NULLABLE_FLAGS + ('location_verified',)


class AttendanceService:
    """Attendance service class"""

    @staticmethod
    def scoped_query(user):
        """Records visible to a user, mirroring schedule visibility"""
        query = AttendanceRecord.query.join(
            CourseSchedule, AttendanceRecord.course_schedule_id == CourseSchedule.id)
        if user.role == UserRole.LECTURER:
            query = query.filter(AttendanceRecord.lecturer_id == lecturer_for(user).id)
        elif user.role == UserRole.CLASS_REP:
            query = query.filter(CourseSchedule.class_group_id.in_(rep_class_group_ids(user)))
        elif user.role == UserRole.COORDINATOR:
            query = query.join(Course, CourseSchedule.course_id == Course.id).filter(
                Course.programme_id.in_(coordinated_programme_ids(user)))
        return query

    @staticmethod
    def take_attendance(user, data, user_agent=None, ip_address=None, now=None):
        """
        Record a lecturer's attendance for one of their slots today.

        Onsite submissions must carry coordinates within the geofence of the
        slot's classroom (or building, or campus). Virtual submissions must
        fall inside the start time window and use a supported meeting link;
        with action=start/end the session is opened and later closed, and
        the duration rule is evaluated on close.
        """
        if user.role != UserRole.LECTURER:
            raise PermissionDeniedError("Only lecturers can take attendance")

        method = data.get('method')
        if method not in AttendanceMethod.ALL:
            raise ValidationError("Method must be 'onsite' or 'virtual'")
        action = data.get('action')
        if action not in (None, 'start', 'end'):
            raise ValidationError("Action must be 'start' or 'end'")

        latitude, longitude = data.get('latitude'), data.get('longitude')
        if method == AttendanceMethod.ONSITE:
            if latitude is None or longitude is None:
                raise ValidationError("GPS coordinates are required for onsite attendance")
            if not is_valid_coordinates(latitude, longitude):
                raise ValidationError("Invalid GPS coordinates")
            latitude, longitude = float(latitude), float(longitude)

        lecturer = lecturer_for(user)
        schedule_id = data.get('schedule_id')
        schedule = CourseSchedule.query.filter_by(id=schedule_id, lecturer_id=lecturer.id).first() \
            if schedule_id else None
        if schedule is None:
            raise NotFoundError("Schedule not found or unauthorized")

        now = now or datetime.now()
        fingerprint = generate_device_fingerprint(user_agent, ip_address)
        existing = AttendanceRecord.find_for_day(schedule.id, now.date(), lecturer_id=lecturer.id)

        if method == AttendanceMethod.VIRTUAL and action == 'end':
            return AttendanceService._end_virtual_session(user, schedule, existing, now)

        if existing is not None:
            if action == 'start':
                raise ValidationError("Virtual session already started for this class today")
            raise ValidationError("Attendance already recorded for this session today")

        record = AttendanceRecord(
            lecturer_id=lecturer.id,
            course_schedule_id=schedule.id,
            timestamp=now,
            method=method,
            ip_address=ip_address,
            user_agent=(user_agent or '')[:255] or None,
            device_fingerprint=fingerprint,
        )
        audit_details = {'schedule_id': schedule.id, 'course': schedule.course.title,
                         'class_group': schedule.class_group.name, 'method': method}

        if method == AttendanceMethod.ONSITE:
            check = verify_location_for_attendance((latitude, longitude), AttendanceService.reference_point(schedule))
            if not check['verified']:
                raise ValidationError(
                    f"Location verification failed: You are {check['distance']}m away from campus "
                    f"(max allowed: {check['radius']}m)")
            record.gps_latitude = latitude
            record.gps_longitude = longitude
            record.location_verified = True
            record.location_distance = check['distance']
            record.location_accuracy = data.get('accuracy')
            record.session_duration_met = True
            audit_details.update({'location': {'latitude': latitude, 'longitude': longitude},
                                  'distance': check['distance']})
        else:
            check = verify_virtual_classroom(schedule.get_meeting_link(), schedule.start_time,
                                             schedule.end_time, now=now)
            if not check['verified']:
                raise ValidationError("Virtual classroom verification failed", details=check['errors'])
            record.time_window_verified = check['time_window_verified']
            record.meeting_link_verified = check['meeting_link_verified']
            record.session_start_time = now
            record.session_duration_met = False

        record.remarks = data.get('remarks')
        AttendanceService._save(record)
        logger.info("Attendance %s recorded for schedule %s (%s)", record.id, schedule.id, method)

        AuditService.log(user.id, AuditAction.ATTENDANCE_RECORDED, 'AttendanceRecord', record.id, audit_details)

        message = 'Virtual session started successfully' if action == 'start' else 'Attendance recorded successfully'
        return record, message

    @staticmethod
    def _end_virtual_session(user, schedule, record, now):
        if record is None:
            raise ValidationError("No active virtual session found to end")
        if record.session_end_time is not None:
            raise ValidationError("Virtual session already ended")

        record.session_end_time = now
        if record.session_start_time is not None:
            check = verify_session_duration(record.session_start_time, now,
                                            schedule.start_time, schedule.end_time)
            record.session_duration_met = check['verified']
        else:
            record.session_duration_met = True
        AttendanceService._save(record)

        AuditService.log(user.id, AuditAction.ATTENDANCE_MODIFIED, 'AttendanceRecord', record.id,
                         {'session_end_time': now, 'session_duration_met': record.session_duration_met})
        return record, 'Virtual session ended successfully'

    @staticmethod
    @handle_db_error
    def _save(record):
        db.session.add(record)
        db.session.commit()

    @staticmethod
    def reference_point(schedule):
        """Classroom GPS, else building GPS, else the configured campus point"""
        if schedule.classroom is not None:
            point = schedule.classroom.get_reference_point()
            if point is not None:
                return point
        return (current_app.config['CAMPUS_LATITUDE'], current_app.config['CAMPUS_LONGITUDE'])

    @staticmethod
    def pending_for_class_rep(user):
        """Unanswered records of the class rep's class groups"""
        if user.role != UserRole.CLASS_REP:
            raise PermissionDeniedError("Only class representatives can verify attendance")
        records = (AttendanceService.scoped_query(user)
                   .filter(AttendanceRecord.class_rep_verified.is_(None))
                   .order_by(AttendanceRecord.timestamp.desc()).all())
        return [r.to_dict() for r in records]

    @staticmethod
    @handle_db_error
    def class_rep_verify(user, record_id, verified, comment=None):
        """Class rep confirms or disputes a record of their class"""
        if user.role != UserRole.CLASS_REP:
            raise PermissionDeniedError("Only class representatives can verify attendance")
        if not isinstance(verified, bool):
            raise ValidationError("verified must be true or false")

        record = get_or_404(AttendanceRecord, record_id, 'Attendance record')
        if record.course_schedule.class_group_id not in rep_class_group_ids(user):
            raise PermissionDeniedError("You can only verify attendance for your class")
        if record.class_rep_verified is not None:
            raise ValidationError("Attendance record has already been verified")

        record.class_rep_verified = verified
        record.class_rep_comment = comment
        db.session.commit()

        action = AuditAction.ATTENDANCE_VERIFIED if verified else AuditAction.ATTENDANCE_DISPUTED
        AuditService.log(user.id, action, 'AttendanceRecord', record.id,
                         {'verified': verified, 'comment': comment})

        course = record.course_schedule.course
        NotificationService.create(
            record.lecturer.user_id,
            'Attendance verified' if verified else 'Attendance disputed',
            f"Your attendance for {course.course_code} on {record.timestamp.date().isoformat()} "
            f"was {'verified' if verified else 'disputed'} by the class representative.",
            type='verification', category='attendance',
            priority='normal' if verified else 'high',
            data={'attendance_record_id': record.id, 'comment': comment},
            sender_id=user.id,
        )
        return record

    @staticmethod
    @handle_db_error
    def supervisor_check_in(user, schedule_id, status, comments=None, day=None):
        """
        Upsert the supervisor's log for a slot today and mirror the outcome
        onto today's attendance record, if one exists.
        """
        if user.role not in UserRole.SUPERVISORS + (UserRole.ADMIN,):
            raise PermissionDeniedError("Only supervisors can verify sessions")
        if not status:
            raise ValidationError("Status is required")

        schedule = get_or_404(CourseSchedule, schedule_id, 'Schedule')
        day = day or date.today()
        start, end = day_bounds(day)

        log = (SupervisorLog.query
               .filter(SupervisorLog.course_schedule_id == schedule.id,
                       SupervisorLog.supervisor_id == user.id,
                       SupervisorLog.check_in_time >= start,
                       SupervisorLog.check_in_time < end)
               .first())
        if log is None:
            log = SupervisorLog(supervisor_id=user.id, course_schedule_id=schedule.id)
            db.session.add(log)
        log.status = status
        log.comments = comments
        log.check_in_time = datetime.now()
        log.is_online = user.role == UserRole.ONLINE_SUPERVISOR

        record = AttendanceRecord.find_for_day(schedule.id, day)
        if record is not None:
            record.supervisor_verified = log.implies_presence()
            record.supervisor_comment = comments
        db.session.commit()

        if record is not None:
            action = AuditAction.ATTENDANCE_VERIFIED if record.supervisor_verified else AuditAction.ATTENDANCE_DISPUTED
            AuditService.log(user.id, action, 'AttendanceRecord', record.id,
                             {'supervisor_status': status, 'comments': comments})
        return log, record

    @staticmethod
    def list_records(user, start_date=None, end_date=None, lecturer_id=None, course_id=None,
                     method=None, status=None, limit=50, offset=0):
        query = AttendanceService.scoped_query(user)
        if start_date:
            query = query.filter(AttendanceRecord.timestamp >= start_date)
        if end_date:
            query = query.filter(AttendanceRecord.timestamp <= end_date)
        if lecturer_id:
            query = query.filter(AttendanceRecord.lecturer_id == lecturer_id)
        if course_id:
            query = query.filter(CourseSchedule.course_id == course_id)
        if method:
            query = query.filter(AttendanceRecord.method == method)

        records = query.order_by(AttendanceRecord.timestamp.desc()).all()
        if status:
            records = [r for r in records if r.verification_status == status]

        total = len(records)
        page = records[offset:offset + limit]
        return {
            'records': [r.to_dict() for r in page],
            'total': total,
            'has_more': offset + limit < total,
        }

    @staticmethod
    def recent_records(user, limit=10):
        records = (AttendanceService.scoped_query(user)
                   .order_by(AttendanceRecord.timestamp.desc()).limit(limit).all())
        return [r.to_dict() for r in records]

    @staticmethod
    def get_record(user, record_id):
        record = get_or_404(AttendanceRecord, record_id, 'Attendance record')
        if AttendanceService.scoped_query(user).filter(AttendanceRecord.id == record.id).first() is None:
            raise PermissionDeniedError("You cannot view this attendance record")
        start, end = day_bounds(record.timestamp.date())
        logs = record.course_schedule.supervisor_logs.filter(
            SupervisorLog.check_in_time >= start, SupervisorLog.check_in_time < end)

        data = record.to_dict()
        data['supervisor_logs'] = [log.to_dict() for log in logs]
        return data

    @staticmethod
    @handle_db_error
    def update_record(user, record_id, data):
        """Admins edit any field; lecturers only the remarks of their own records"""
        record = get_or_404(AttendanceRecord, record_id, 'Attendance record')
        if user.role == UserRole.LECTURER:
            if record.lecturer.user_id != user.id:
                raise PermissionDeniedError("You can only edit your own attendance records")
            allowed = ('remarks',)
        elif user.role == UserRole.ADMIN:
            allowed = EDITABLE_FIELDS
        else:
            raise PermissionDeniedError("Insufficient permissions")

        for field in FLAG_FIELDS:
            if field in allowed and field in data and not isinstance(data[field], bool) \
                    and not (data[field] is None and field in NULLABLE_FLAGS):
                raise ValidationError(f"{field} must be true or false")

        changes = {}
        for field in allowed:
            if field in data and getattr(record, field) != data[field]:
                changes[field] = {'from': getattr(record, field), 'to': data[field]}
                setattr(record, field, data[field])
        if not changes:
            return record

        db.session.commit()
        AuditService.log(user.id, AuditAction.ATTENDANCE_MODIFIED, 'AttendanceRecord', record.id, changes)
        return record

    @staticmethod
    @handle_db_error
    def delete_record(user, record_id):
        if user.role != UserRole.ADMIN:
            raise PermissionDeniedError("Insufficient permissions")
        record = get_or_404(AttendanceRecord, record_id, 'Attendance record')
        snapshot = record.to_dict()
        db.session.delete(record)
        db.session.commit()
        AuditService.log(user.id, AuditAction.ATTENDANCE_MODIFIED, 'AttendanceRecord', record_id,
                         {'deleted': True, 'record': snapshot})

    @staticmethod
    def supervisor_schedules(user, day=None):
        """Today's sessions with the supervisor's own check-in, for the rounds view"""
        if user.role not in UserRole.SUPERVISORS + (UserRole.ADMIN,):
            raise PermissionDeniedError("Only supervisors can view rounds")
        day = day or date.today()
        start, end = day_bounds(day)
        results = []
        for data in ScheduleService.todays_schedules(user, day):
            if user.role == UserRole.ONLINE_SUPERVISOR and data['session_type'] not in ('VIRTUAL', 'HYBRID'):
                continue
            log = (SupervisorLog.query
                   .filter(SupervisorLog.course_schedule_id == data['id'],
                           SupervisorLog.supervisor_id == user.id,
                           SupervisorLog.check_in_time >= start,
                           SupervisorLog.check_in_time < end)
                   .first())
            data['supervisor_log'] = log.to_dict() if log else None
            results.append(data)
        return results
