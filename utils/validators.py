"""
Validation utilities for the Lecturer Attendance Management System
Every validator returns (is_valid, message)
"""

import re
from datetime import datetime, date

from models.user import UserRole
from models.schedule import SessionType

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')
CRON_FIELD_PATTERN = re.compile(r'^[\d\*/,\-A-Za-z]+$')


def validate_email(email):
    """Validate e-mail address format"""
    if not email or len(email.strip()) == 0:
        return False, "Email is required"

    if len(email) > 120:
        return False, "Email must be 120 characters or less"

    if not EMAIL_PATTERN.match(email.strip()):
        return False, "Invalid email address"

    return True, "Valid email"


def validate_password(password):
    """Validate password strength"""
    if not password:
        return False, "Password is required"

    if len(password) < 6:
        return False, "Password must be at least 6 characters long"

    if len(password) > 128:
        return False, "Password must be 128 characters or less"

    return True, "Valid password"


def validate_name(name, field_name="Name"):
    """Validate person name"""
    if not name or len(name.strip()) == 0:
        return False, f"{field_name} is required"

    if len(name) > 100:
        return False, f"{field_name} must be 100 characters or less"

    # Allow letters, spaces, and common name characters
    if not re.match(r"^[^\W\d_][\w\s\.\-']*$", name.strip()):
        return False, f"{field_name} can only contain letters, spaces, periods, hyphens, and apostrophes"

    return True, f"Valid {field_name.lower()}"


def validate_role(role):
    if role not in UserRole.ALL:
        return False, f"Role must be one of: {', '.join(UserRole.ALL)}"
    return True, "Valid role"


def validate_employee_id(employee_id):
    """Validate lecturer employee ID format"""
    if not employee_id or len(str(employee_id).strip()) == 0:
        return False, "Employee ID is required"

    if len(employee_id) > 30:
        return False, "Employee ID must be 30 characters or less"

    if not re.match(r'^[A-Za-z0-9_/-]+$', employee_id):
        return False, "Employee ID can only contain letters, numbers, slashes, hyphens, and underscores"

    return True, "Valid employee ID"


def validate_course_code(course_code):
    """Validate course code format"""
    if not course_code or len(course_code.strip()) == 0:
        return False, "Course code is required"

    if len(course_code) > 20:
        return False, "Course code must be 20 characters or less"

    if not re.match(r'^[A-Za-z0-9 _-]+$', course_code):
        return False, "Course code can only contain letters, numbers, spaces, hyphens, and underscores"

    return True, "Valid course code"


def validate_positive_int(value, field_name, minimum=1):
    try:
        number = int(value)
    except (ValueError, TypeError):
        return False, f"{field_name} must be a number"
    if number < minimum:
        return False, f"{field_name} must be at least {minimum}"
    return True, f"Valid {field_name.lower()}"


def validate_admission_year(year):
    """Admission year between 2000 and next year"""
    try:
        year_int = int(year)
    except (ValueError, TypeError):
        return False, "Admission year must be a number"
    if year_int < 2000 or year_int > date.today().year + 1:
        return False, f"Admission year must be between 2000 and {date.today().year + 1}"
    return True, "Valid admission year"


def validate_time(value, field_name="Time"):
    """Validate a 24-hour HH:MM time"""
    if not value or not TIME_PATTERN.match(str(value).strip()):
        return False, f"{field_name} must be in HH:MM format"
    return True, f"Valid {field_name.lower()}"


def validate_time_range(start_time, end_time):
    """Both times valid and end strictly after start"""
    for value, label in ((start_time, "Start time"), (end_time, "End time")):
        is_valid, message = validate_time(value, label)
        if not is_valid:
            return False, message
    if end_time <= start_time:
        return False, "End time must be after start time"
    return True, "Valid time range"


def validate_day_of_week(day):
    """Validate day of week (0 = Sunday ... 6 = Saturday)"""
    try:
        day_int = int(day)
    except (ValueError, TypeError):
        return False, "Day of week must be a number"
    if day_int < 0 or day_int > 6:
        return False, "Day of week must be between 0 and 6"
    return True, "Valid day of week"


def validate_session_type(session_type):
    if session_type not in SessionType.ALL:
        return False, f"Session type must be one of: {', '.join(SessionType.ALL)}"
    return True, "Valid session type"


def validate_coordinates(latitude, longitude):
    """Validate GPS coordinates"""
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (ValueError, TypeError):
        return False, "Coordinates must be numbers"
    if lat < -90 or lat > 90:
        return False, "Latitude must be between -90 and 90"
    if lon < -180 or lon > 180:
        return False, "Longitude must be between -180 and 180"
    return True, "Valid coordinates"


def validate_url(url, field_name="URL"):
    if not url:
        return False, f"{field_name} is required"
    if not re.match(r'^https?://[^\s/$.?#].[^\s]*$', url.strip(), re.IGNORECASE):
        return False, f"{field_name} must be a valid http(s) URL"
    return True, f"Valid {field_name.lower()}"


def validate_cron_expression(expression):
    """Shape check for a 5-field cron expression"""
    if not expression:
        return False, "Schedule is required"
    fields = expression.split()
    if len(fields) != 5:
        return False, "Schedule must be a 5-field cron expression"
    if not all(CRON_FIELD_PATTERN.match(field) for field in fields):
        return False, "Schedule contains invalid characters"
    return True, "Valid schedule"


def parse_date(value):
    """Parse YYYY-MM-DD or an ISO datetime into a datetime, None when empty"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    value = str(value).strip()
    try:
        return datetime.strptime(value[:10], '%Y-%m-%d') if len(value) == 10 \
            else datetime.fromisoformat(value.replace('Z', '+00:00')).replace(tzinfo=None)
    except ValueError:
        return None
