"""
Scheduling models for the Lecturer Attendance Management System
CourseSchedule: a recurring weekly slot binding course, class group, lecturer and room
"""

from database import db
from datetime import datetime

DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


class SessionType:
    LECTURE = 'LECTURE'
    SEMINAR = 'SEMINAR'
    LAB = 'LAB'
    VIRTUAL = 'VIRTUAL'
    HYBRID = 'HYBRID'

    ALL = (LECTURE, SEMINAR, LAB, VIRTUAL, HYBRID)


def python_weekday_to_day_of_week(weekday):
    """Convert date.weekday() (Monday=0) to the stored day_of_week (Sunday=0)"""
    return (weekday + 1) % 7


class CourseSchedule(db.Model):
    """Weekly timetable slot"""
    __tablename__ = 'course_schedules'

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id'), nullable=False)
    class_group_id = db.Column(db.Integer, db.ForeignKey('class_groups.id'), nullable=False)
    lecturer_id = db.Column(db.Integer, db.ForeignKey('lecturers.id'), nullable=False)
    day_of_week = db.Column(db.Integer, nullable=False, index=True)  # 0 = Sunday
    start_time = db.Column(db.String(5), nullable=False)  # HH:MM
    end_time = db.Column(db.String(5), nullable=False)  # HH:MM
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.id'), nullable=True)
    session_type = db.Column(db.String(20), nullable=False, default=SessionType.LECTURE)
    meeting_link = db.Column(db.String(500), nullable=True)
    meeting_password_encrypted = db.Column(db.Text, nullable=True)
    is_overload = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    attendance_records = db.relationship('AttendanceRecord', backref='course_schedule', lazy='dynamic',
                                         cascade='all, delete-orphan')
    supervisor_logs = db.relationship('SupervisorLog', backref='course_schedule', lazy='dynamic',
                                      cascade='all, delete-orphan')

    @property
    def is_virtual(self):
        return self.session_type in (SessionType.VIRTUAL, SessionType.HYBRID)

    def get_meeting_link(self):
        """Meeting link for the slot, falling back to the classroom's standing link"""
        if self.meeting_link:
            return self.meeting_link
        if self.classroom is not None and self.classroom.virtual_link:
            return self.classroom.virtual_link
        return None

    def set_meeting_password(self, password):
        """Store the meeting password encrypted"""
        from utils.encryption import password_encryptor
        self.meeting_password_encrypted = password_encryptor.encrypt_password(password) if password else None

    def get_meeting_password(self):
        """Decrypted meeting password, or None"""
        from utils.encryption import password_encryptor
        if self.meeting_password_encrypted:
            return password_encryptor.decrypt_password(self.meeting_password_encrypted)
        return None

    def to_dict(self, include_secrets=False):
        """Convert schedule to dictionary"""
        data = {
            'id': self.id,
            'course_id': self.course_id,
            'course_code': self.course.course_code if self.course else None,
            'course_title': self.course.title if self.course else None,
            'class_group_id': self.class_group_id,
            'class_group_name': self.class_group.name if self.class_group else None,
            'lecturer_id': self.lecturer_id,
            'lecturer_name': self.lecturer.name if self.lecturer else None,
            'day_of_week': self.day_of_week,
            'day_name': DAY_NAMES[self.day_of_week] if 0 <= self.day_of_week <= 6 else None,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'classroom_id': self.classroom_id,
            'classroom_name': self.classroom.name if self.classroom else None,
            'building_name': self.classroom.building.name if self.classroom and self.classroom.building else None,
            'session_type': self.session_type,
            'meeting_link': self.get_meeting_link(),
            'is_overload': self.is_overload,
        }
        if include_secrets:
            data['meeting_password'] = self.get_meeting_password()
        return data

    def __repr__(self):
        return f'<CourseSchedule {self.course_id} day={self.day_of_week} {self.start_time}-{self.end_time}>'
