"""
Schedule API routes for the Lecturer Attendance Management System
"""

from flask import Blueprint, jsonify

from models.user import UserRole
from routes.auth import current_user, int_arg, json_body, login_required
from services.schedule_service import ScheduleService
from utils.errors import ValidationError
from utils.validators import validate_day_of_week

schedules_bp = Blueprint('schedules', __name__)


@schedules_bp.route('/schedules', methods=['GET'])
@login_required()
def list_schedules():
    day_of_week = int_arg('day_of_week')
    if day_of_week is not None:
        is_valid, message = validate_day_of_week(day_of_week)
        if not is_valid:
            raise ValidationError(message)
    schedules = ScheduleService.list_schedules(
        current_user(),
        day_of_week=day_of_week,
        lecturer_id=int_arg('lecturer_id'),
        class_group_id=int_arg('class_group_id'),
        course_id=int_arg('course_id'),
    )
    return jsonify({'schedules': schedules})


@schedules_bp.route('/schedules', methods=['POST'])
@login_required(*UserRole.MANAGERS)
def create_schedule():
    schedule = ScheduleService.create_schedule(current_user(), json_body())
    return jsonify({'message': 'Schedule created successfully', 'schedule': schedule.to_dict()}), 201


@schedules_bp.route('/schedules/today', methods=['GET'])
@login_required()
def todays_schedules():
    return jsonify({'schedules': ScheduleService.todays_schedules(current_user())})


@schedules_bp.route('/schedules/<int:schedule_id>', methods=['GET'])
@login_required()
def get_schedule(schedule_id):
    return jsonify({'schedule': ScheduleService.get_schedule(current_user(), schedule_id)})


@schedules_bp.route('/schedules/<int:schedule_id>', methods=['PUT', 'PATCH'])
@login_required(*UserRole.MANAGERS)
def update_schedule(schedule_id):
    schedule = ScheduleService.update_schedule(current_user(), schedule_id, json_body())
    return jsonify({'message': 'Schedule updated successfully', 'schedule': schedule.to_dict()})


@schedules_bp.route('/schedules/<int:schedule_id>', methods=['DELETE'])
@login_required(*UserRole.MANAGERS)
def delete_schedule(schedule_id):
    ScheduleService.delete_schedule(current_user(), schedule_id)
    return jsonify({'message': 'Schedule deleted successfully'})


@schedules_bp.route('/schedules/<int:schedule_id>/link', methods=['PUT', 'PATCH'])
@login_required(UserRole.LECTURER)
def update_meeting_link(schedule_id):
    data = json_body()
    schedule = ScheduleService.update_meeting_link(current_user(), schedule_id, data.get('meeting_link'),
                                                   data.get('meeting_password'))
    return jsonify({'message': 'Meeting link updated', 'schedule': schedule.to_dict(include_secrets=True)})
