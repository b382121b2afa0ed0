"""
Academic structure models for the Lecturer Attendance Management System
Programme, Course, and ClassGroup models
"""

from database import db
from datetime import datetime


class Programme(db.Model):
    """Academic programme (e.g. MBA, MPhil) that owns courses and class groups"""
    __tablename__ = 'programmes'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), unique=True, nullable=False, index=True)
    level = db.Column(db.String(50), nullable=False)
    duration_semesters = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)
    delivery_modes = db.Column(db.String(200), nullable=False)  # comma separated
    coordinator_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    courses = db.relationship('Course', backref='programme', lazy='dynamic')
    class_groups = db.relationship('ClassGroup', backref='programme', lazy='dynamic')

    def get_delivery_modes(self):
        """Delivery modes as a list"""
        return [mode.strip() for mode in (self.delivery_modes or '').split(',') if mode.strip()]

    def to_dict(self):
        """Convert programme to dictionary"""
        return {
            'id': self.id,
            'name': self.name,
            'level': self.level,
            'duration_semesters': self.duration_semesters,
            'description': self.description,
            'delivery_modes': self.get_delivery_modes(),
            'coordinator_id': self.coordinator_id,
            'coordinator_name': self.coordinator.full_name if self.coordinator else None,
            'is_active': self.is_active,
            'total_courses': self.courses.count(),
            'total_class_groups': self.class_groups.count(),
        }

    def __repr__(self):
        return f'<Programme {self.name}>'


class Course(db.Model):
    """Course taught within a programme"""
    __tablename__ = 'courses'

    id = db.Column(db.Integer, primary_key=True)
    course_code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    credit_hours = db.Column(db.Integer, nullable=False, default=3)
    programme_id = db.Column(db.Integer, db.ForeignKey('programmes.id'), nullable=False)
    semester_level = db.Column(db.Integer, nullable=False, default=1)
    is_elective = db.Column(db.Boolean, default=False)
    description = db.Column(db.Text, nullable=True)
    virtual_enabled = db.Column(db.Boolean, default=False)
    hybrid_enabled = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)

    # Relationships
    schedules = db.relationship('CourseSchedule', backref='course', lazy='dynamic')

    def to_dict(self):
        """Convert course to dictionary"""
        return {
            'id': self.id,
            'course_code': self.course_code,
            'title': self.title,
            'credit_hours': self.credit_hours,
            'programme_id': self.programme_id,
            'programme_name': self.programme.name if self.programme else None,
            'semester_level': self.semester_level,
            'is_elective': self.is_elective,
            'description': self.description,
            'virtual_enabled': self.virtual_enabled,
            'hybrid_enabled': self.hybrid_enabled,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<Course {self.course_code}: {self.title}>'


class ClassGroup(db.Model):
    """Cohort of students attending scheduled sessions together"""
    __tablename__ = 'class_groups'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    programme_id = db.Column(db.Integer, db.ForeignKey('programmes.id'), nullable=False)
    admission_year = db.Column(db.Integer, nullable=False)
    delivery_mode = db.Column(db.String(50), nullable=False)
    class_rep_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    student_count = db.Column(db.Integer, nullable=True)
    semester = db.Column(db.String(20), nullable=True)
    academic_year = db.Column(db.String(20), nullable=True)
    is_active = db.Column(db.Boolean, default=True)

    # Relationships
    schedules = db.relationship('CourseSchedule', backref='class_group', lazy='dynamic')

    __table_args__ = (db.UniqueConstraint('name', 'programme_id', 'admission_year',
                                          name='unique_class_group_per_programme_year'),)

    def to_dict(self):
        """Convert class group to dictionary"""
        return {
            'id': self.id,
            'name': self.name,
            'programme_id': self.programme_id,
            'programme_name': self.programme.name if self.programme else None,
            'admission_year': self.admission_year,
            'delivery_mode': self.delivery_mode,
            'class_rep_id': self.class_rep_id,
            'class_rep_name': self.class_rep.full_name if self.class_rep else None,
            'student_count': self.student_count,
            'semester': self.semester,
            'academic_year': self.academic_year,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<ClassGroup {self.name} ({self.admission_year})>'
