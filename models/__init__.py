"""
Database models package for the Lecturer Attendance Management System
"""

from .user import User, UserRole, Lecturer
from .academic import Programme, Course, ClassGroup
from .facilities import Building, Classroom
from .schedule import CourseSchedule, SessionType
from .attendance import AttendanceRecord, AttendanceMethod, SupervisorLog
from .verification import VerificationRequest, VerificationStatus
from .notification import Notification
from .audit import AuditLog
from .report import Report, ScheduledReport, ImportJob

__all__ = [
    'User', 'UserRole', 'Lecturer', 'Programme', 'Course', 'ClassGroup',
    'Building', 'Classroom', 'CourseSchedule', 'SessionType',
    'AttendanceRecord', 'AttendanceMethod', 'SupervisorLog',
    'VerificationRequest', 'VerificationStatus', 'Notification', 'AuditLog',
    'Report', 'ScheduledReport', 'ImportJob'
]
