"""
Attendance API routes for the Lecturer Attendance Management System
Taking attendance, class rep verification and supervisor check-ins
"""

from flask import Blueprint, jsonify, request

from models.user import UserRole
from routes.auth import current_user, int_arg, json_body, login_required
from services.attendance_service import AttendanceService
from utils.errors import ValidationError
from utils.validators import parse_date
from utils.virtual_verification import get_client_ip_address

attendance_bp = Blueprint('attendance', __name__)


def _date_arg(name):
    value = request.args.get(name)
    parsed = parse_date(value)
    if value and parsed is None:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)")
    return parsed


@attendance_bp.route('/attendance', methods=['GET'])
@login_required()
def list_attendance():
    result = AttendanceService.list_records(
        current_user(),
        start_date=_date_arg('start_date'),
        end_date=_date_arg('end_date'),
        lecturer_id=int_arg('lecturer_id'),
        course_id=int_arg('course_id'),
        method=request.args.get('method'),
        status=request.args.get('status'),
        limit=min(int_arg('limit', 50), 500),
        offset=int_arg('offset', 0),
    )
    return jsonify(result)


@attendance_bp.route('/attendance/take', methods=['POST'])
@login_required(UserRole.LECTURER)
def take_attendance():
    record, message = AttendanceService.take_attendance(
        current_user(), json_body(),
        user_agent=request.headers.get('User-Agent', ''),
        ip_address=get_client_ip_address(request.headers, request.remote_addr),
    )
    return jsonify({'message': message, 'record': record.to_dict()}), 201


@attendance_bp.route('/attendance/recent', methods=['GET'])
@login_required()
def recent_attendance():
    limit = min(int_arg('limit', 10), 100)
    return jsonify({'records': AttendanceService.recent_records(current_user(), limit)})


@attendance_bp.route('/attendance/verify', methods=['GET'])
@login_required(UserRole.CLASS_REP)
def pending_verifications():
    return jsonify({'records': AttendanceService.pending_for_class_rep(current_user())})


@attendance_bp.route('/attendance/verify', methods=['POST'])
@login_required(UserRole.CLASS_REP)
def verify_attendance():
    data = json_body()
    if not data.get('attendance_record_id'):
        raise ValidationError("attendance_record_id is required")
    record = AttendanceService.class_rep_verify(current_user(), data['attendance_record_id'],
                                                data.get('verified'), data.get('comment'))
    status = 'verified' if record.class_rep_verified else 'disputed'
    return jsonify({'message': f'Attendance {status} successfully', 'record': record.to_dict()})


@attendance_bp.route('/attendance/<int:record_id>', methods=['GET'])
@login_required()
def get_attendance(record_id):
    return jsonify({'record': AttendanceService.get_record(current_user(), record_id)})


@attendance_bp.route('/attendance/<int:record_id>', methods=['PUT', 'PATCH'])
@login_required(UserRole.ADMIN, UserRole.LECTURER)
def update_attendance(record_id):
    record = AttendanceService.update_record(current_user(), record_id, json_body())
    return jsonify({'message': 'Attendance record updated', 'record': record.to_dict()})


@attendance_bp.route('/attendance/<int:record_id>', methods=['DELETE'])
@login_required(UserRole.ADMIN)
def delete_attendance(record_id):
    AttendanceService.delete_record(current_user(), record_id)
    return jsonify({'message': 'Attendance record deleted'})


@attendance_bp.route('/supervisor/verify', methods=['GET'])
@login_required(UserRole.ADMIN, *UserRole.SUPERVISORS)
def supervisor_rounds():
    return jsonify({'schedules': AttendanceService.supervisor_schedules(current_user())})


@attendance_bp.route('/supervisor/verify', methods=['POST'])
@login_required(UserRole.ADMIN, *UserRole.SUPERVISORS)
def supervisor_verify():
    data = json_body()
    if not data.get('schedule_id'):
        raise ValidationError("schedule_id is required")
    log, record = AttendanceService.supervisor_check_in(current_user(), data['schedule_id'],
                                                        data.get('status'), data.get('comments'))
    return jsonify({
        'message': 'Session check-in recorded',
        'log': log.to_dict(),
        'record': record.to_dict() if record else None,
    })
