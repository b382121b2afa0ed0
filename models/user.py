"""
User models for the Lecturer Attendance Management System
User accounts and Lecturer profiles
"""

from database import db
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash


class UserRole:
    """Role names stored on User.role"""
    ADMIN = 'ADMIN'
    COORDINATOR = 'COORDINATOR'
    LECTURER = 'LECTURER'
    CLASS_REP = 'CLASS_REP'
    SUPERVISOR = 'SUPERVISOR'
    ONLINE_SUPERVISOR = 'ONLINE_SUPERVISOR'

    ALL = (ADMIN, COORDINATOR, LECTURER, CLASS_REP, SUPERVISOR, ONLINE_SUPERVISOR)
    SUPERVISORS = (SUPERVISOR, ONLINE_SUPERVISOR)
    MANAGERS = (ADMIN, COORDINATOR)


class User(db.Model):
    """User account shared by every role"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(20), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    phone_number = db.Column(db.String(30), nullable=True)
    timezone = db.Column(db.String(50), default='UTC')
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    lecturer = db.relationship('Lecturer', backref='user', uselist=False, cascade='all, delete-orphan')
    classes_as_rep = db.relationship('ClassGroup', backref='class_rep', lazy='dynamic',
                                     foreign_keys='ClassGroup.class_rep_id')
    coordinated_programmes = db.relationship('Programme', backref='coordinator', lazy='dynamic',
                                             foreign_keys='Programme.coordinator_id')

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check password against hash"""
        return check_password_hash(self.password_hash, password)

    def update_last_login(self):
        """Update last login timestamp"""
        self.last_login_at = datetime.utcnow()
        db.session.commit()

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        """Convert user to dictionary for JSON serialization"""
        data = {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'name': self.full_name,
            'role': self.role,
            'is_active': self.is_active,
            'phone_number': self.phone_number,
            'timezone': self.timezone,
            'last_login_at': self.last_login_at.isoformat() if self.last_login_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if self.lecturer:
            data['lecturer'] = self.lecturer.to_dict(include_user=False)
        return data

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'


class Lecturer(db.Model):
    """Lecturer profile attached to a LECTURER user"""
    __tablename__ = 'lecturers'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    employee_id = db.Column(db.String(30), unique=True, nullable=False, index=True)
    rank = db.Column(db.String(50), nullable=True)
    department = db.Column(db.String(100), nullable=True)
    employment_type = db.Column(db.String(30), nullable=True)
    specialization = db.Column(db.String(120), nullable=True)
    office_location = db.Column(db.String(120), nullable=True)
    is_verified = db.Column(db.Boolean, default=False)
    is_adjunct = db.Column(db.Boolean, default=False)

    # Relationships
    schedules = db.relationship('CourseSchedule', backref='lecturer', lazy='dynamic')
    attendance_records = db.relationship('AttendanceRecord', backref='lecturer', lazy='dynamic')

    @property
    def name(self):
        return self.user.full_name if self.user else self.employee_id

    def to_dict(self, include_user=True):
        """Convert lecturer to dictionary"""
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'employee_id': self.employee_id,
            'rank': self.rank,
            'department': self.department,
            'employment_type': self.employment_type,
            'specialization': self.specialization,
            'office_location': self.office_location,
            'is_verified': self.is_verified,
            'is_adjunct': self.is_adjunct,
        }
        if include_user and self.user:
            data['name'] = self.user.full_name
            data['email'] = self.user.email
            data['is_active'] = self.user.is_active
        return data

    def __repr__(self):
        return f'<Lecturer {self.employee_id}: {self.name}>'
