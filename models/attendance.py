"""
Attendance models for the Lecturer Attendance Management System
AttendanceRecord and SupervisorLog models
"""

from database import db
from datetime import datetime, date, timedelta


class AttendanceMethod:
    ONSITE = 'onsite'
    VIRTUAL = 'virtual'

    ALL = (ONSITE, VIRTUAL)


def day_bounds(day=None):
    """Return [start, end) datetimes covering a calendar day"""
    day = day or date.today()
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


class AttendanceRecord(db.Model):
    """A lecturer's attendance for one scheduled session on one day"""
    __tablename__ = 'attendance_records'

    id = db.Column(db.Integer, primary_key=True)
    lecturer_id = db.Column(db.Integer, db.ForeignKey('lecturers.id'), nullable=False, index=True)
    course_schedule_id = db.Column(db.Integer, db.ForeignKey('course_schedules.id'), nullable=False, index=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=datetime.now, index=True)
    gps_latitude = db.Column(db.Float, nullable=True)
    gps_longitude = db.Column(db.Float, nullable=True)
    location_verified = db.Column(db.Boolean, nullable=False, default=False)
    location_accuracy = db.Column(db.Float, nullable=True)
    location_distance = db.Column(db.Integer, nullable=True)
    method = db.Column(db.String(10), nullable=False)
    class_rep_verified = db.Column(db.Boolean, nullable=True)
    class_rep_comment = db.Column(db.String(500), nullable=True)
    supervisor_verified = db.Column(db.Boolean, nullable=True)
    supervisor_comment = db.Column(db.String(500), nullable=True)
    remarks = db.Column(db.String(500), nullable=True)
    session_start_time = db.Column(db.DateTime, nullable=True)
    session_end_time = db.Column(db.DateTime, nullable=True)
    time_window_verified = db.Column(db.Boolean, nullable=False, default=False)
    meeting_link_verified = db.Column(db.Boolean, nullable=False, default=False)
    session_duration_met = db.Column(db.Boolean, nullable=False, default=False)
    device_fingerprint = db.Column(db.String(64), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    verification_requests = db.relationship('VerificationRequest', backref='attendance_record', lazy='dynamic',
                                            cascade='all, delete-orphan')

    @property
    def verification_status(self):
        """'disputed' if anyone said no, 'verified' if anyone said yes, else 'pending'"""
        if self.class_rep_verified is False or self.supervisor_verified is False:
            return 'disputed'
        if self.class_rep_verified or self.supervisor_verified:
            return 'verified'
        return 'pending'

    @property
    def session_duration_minutes(self):
        if self.session_start_time and self.session_end_time:
            return int((self.session_end_time - self.session_start_time).total_seconds() // 60)
        return None

    @staticmethod
    def find_for_day(course_schedule_id, day=None, lecturer_id=None):
        """Record for a schedule on a given day, if one was taken"""
        start, end = day_bounds(day)
        query = AttendanceRecord.query.filter(
            AttendanceRecord.course_schedule_id == course_schedule_id,
            AttendanceRecord.timestamp >= start,
            AttendanceRecord.timestamp < end
        )
        if lecturer_id is not None:
            query = query.filter(AttendanceRecord.lecturer_id == lecturer_id)
        return query.first()

    def to_dict(self):
        """Convert attendance record to dictionary"""
        schedule = self.course_schedule
        classroom = schedule.classroom if schedule else None
        return {
            'id': self.id,
            'lecturer_id': self.lecturer_id,
            'lecturer_name': self.lecturer.name if self.lecturer else None,
            'employee_id': self.lecturer.employee_id if self.lecturer else None,
            'course_schedule_id': self.course_schedule_id,
            'course_code': schedule.course.course_code if schedule and schedule.course else None,
            'course_title': schedule.course.title if schedule and schedule.course else None,
            'class_group_name': schedule.class_group.name if schedule and schedule.class_group else None,
            'session_type': schedule.session_type if schedule else None,
            'classroom': classroom.name if classroom else 'Virtual',
            'building': classroom.building.name if classroom and classroom.building else 'Virtual',
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'method': self.method,
            'gps_latitude': self.gps_latitude,
            'gps_longitude': self.gps_longitude,
            'location_verified': self.location_verified,
            'location_distance': self.location_distance,
            'class_rep_verified': self.class_rep_verified,
            'class_rep_comment': self.class_rep_comment,
            'supervisor_verified': self.supervisor_verified,
            'supervisor_comment': self.supervisor_comment,
            'verification_status': self.verification_status,
            'remarks': self.remarks,
            'session_start_time': self.session_start_time.isoformat() if self.session_start_time else None,
            'session_end_time': self.session_end_time.isoformat() if self.session_end_time else None,
            'session_duration_minutes': self.session_duration_minutes,
            'time_window_verified': self.time_window_verified,
            'meeting_link_verified': self.meeting_link_verified,
            'session_duration_met': self.session_duration_met,
        }

    def __repr__(self):
        return f'<AttendanceRecord schedule={self.course_schedule_id} {self.timestamp} {self.method}>'


class SupervisorLog(db.Model):
    """Supervisor's spot check of a scheduled session"""
    __tablename__ = 'supervisor_logs'

    PRESENT_STATUSES = ('ongoing', 'online')

    id = db.Column(db.Integer, primary_key=True)
    supervisor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    course_schedule_id = db.Column(db.Integer, db.ForeignKey('course_schedules.id'), nullable=False)
    check_in_time = db.Column(db.DateTime, nullable=False, default=datetime.now)
    status = db.Column(db.String(30), nullable=False)
    comments = db.Column(db.String(500), nullable=True)
    is_online = db.Column(db.Boolean, default=False)

    supervisor = db.relationship('User')

    def implies_presence(self):
        return self.status in self.PRESENT_STATUSES

    def to_dict(self):
        return {
            'id': self.id,
            'supervisor_id': self.supervisor_id,
            'supervisor_name': self.supervisor.full_name if self.supervisor else None,
            'course_schedule_id': self.course_schedule_id,
            'check_in_time': self.check_in_time.isoformat() if self.check_in_time else None,
            'status': self.status,
            'comments': self.comments,
            'is_online': self.is_online,
        }

    def __repr__(self):
        return f'<SupervisorLog schedule={self.course_schedule_id} {self.status}>'
