"""
Management API routes for the Lecturer Attendance Management System
Users, lecturers, programmes, courses, class groups, facilities and dashboard stats
"""

from flask import Blueprint, jsonify, request

from models.user import UserRole
from routes.auth import current_user, int_arg, json_body, login_required, permission_required
from services.management_service import ManagementService
from utils.permissions import Permission

management_bp = Blueprint('management', __name__)


# Users

@management_bp.route('/users', methods=['GET'])
@permission_required(Permission.USER_LIST)
def list_users():
    result = ManagementService.list_users(
        current_user(),
        role=request.args.get('role'),
        search=request.args.get('search', '').strip(),
        limit=int_arg('limit', 50),
        offset=int_arg('offset', 0),
    )
    return jsonify(result)


@management_bp.route('/users', methods=['POST'])
@login_required(UserRole.ADMIN)
def create_user():
    user, generated_password = ManagementService.create_user(current_user(), json_body())
    payload = {'message': 'User created successfully', 'user': user.to_dict()}
    if generated_password:
        payload['generated_password'] = generated_password
    return jsonify(payload), 201


@management_bp.route('/users/<int:user_id>', methods=['GET'])
@login_required()
def get_user(user_id):
    return jsonify({'user': ManagementService.get_user(current_user(), user_id).to_dict()})


@management_bp.route('/users/<int:user_id>', methods=['PUT', 'PATCH'])
@permission_required(Permission.USER_UPDATE)
def update_user(user_id):
    user = ManagementService.update_user(current_user(), user_id, json_body())
    return jsonify({'message': 'User updated successfully', 'user': user.to_dict()})


@management_bp.route('/users/<int:user_id>', methods=['DELETE'])
@login_required(UserRole.ADMIN)
def delete_user(user_id):
    deactivated = ManagementService.delete_user(current_user(), user_id)
    message = 'User deactivated (has attendance history)' if deactivated else 'User deleted successfully'
    return jsonify({'message': message, 'deactivated': deactivated})


@management_bp.route('/lecturers', methods=['GET'])
@permission_required(Permission.LECTURER_LIST)
def list_lecturers():
    lecturers = ManagementService.list_lecturers(current_user(), request.args.get('search', '').strip())
    return jsonify({'lecturers': lecturers})


# Programmes

@management_bp.route('/programmes', methods=['GET'])
@permission_required(Permission.PROGRAMME_LIST)
def list_programmes():
    return jsonify({'programmes': ManagementService.list_programmes(current_user())})


@management_bp.route('/programmes', methods=['POST'])
@permission_required(Permission.PROGRAMME_CREATE)
def create_programme():
    programme = ManagementService.create_programme(current_user(), json_body())
    return jsonify({'message': 'Programme created successfully', 'programme': programme.to_dict()}), 201


@management_bp.route('/programmes/<int:programme_id>', methods=['GET'])
@permission_required(Permission.PROGRAMME_READ)
def get_programme(programme_id):
    return jsonify({'programme': ManagementService.get_programme(current_user(), programme_id)})


@management_bp.route('/programmes/<int:programme_id>', methods=['PUT', 'PATCH'])
@permission_required(Permission.PROGRAMME_UPDATE)
def update_programme(programme_id):
    programme = ManagementService.update_programme(current_user(), programme_id, json_body())
    return jsonify({'message': 'Programme updated successfully', 'programme': programme.to_dict()})


@management_bp.route('/programmes/<int:programme_id>', methods=['DELETE'])
@permission_required(Permission.PROGRAMME_DELETE)
def delete_programme(programme_id):
    ManagementService.delete_programme(current_user(), programme_id)
    return jsonify({'message': 'Programme deleted successfully'})


@management_bp.route('/programmes/<int:programme_id>/courses', methods=['GET'])
@permission_required(Permission.COURSE_LIST)
def programme_courses(programme_id):
    return jsonify({'courses': ManagementService.list_courses(current_user(), programme_id=programme_id)})


# Courses

@management_bp.route('/courses', methods=['GET'])
@permission_required(Permission.COURSE_LIST, Permission.COURSE_READ)
def list_courses():
    courses = ManagementService.list_courses(current_user(), programme_id=int_arg('programme_id'),
                                             search=request.args.get('search', '').strip())
    return jsonify({'courses': courses})


@management_bp.route('/courses', methods=['POST'])
@permission_required(Permission.COURSE_CREATE)
def create_course():
    course = ManagementService.create_course(current_user(), json_body())
    return jsonify({'message': 'Course created successfully', 'course': course.to_dict()}), 201


@management_bp.route('/courses/<int:course_id>', methods=['GET'])
@permission_required(Permission.COURSE_READ)
def get_course(course_id):
    return jsonify({'course': ManagementService.get_course(current_user(), course_id)})


@management_bp.route('/courses/<int:course_id>', methods=['PUT', 'PATCH'])
@permission_required(Permission.COURSE_UPDATE)
def update_course(course_id):
    course = ManagementService.update_course(current_user(), course_id, json_body())
    return jsonify({'message': 'Course updated successfully', 'course': course.to_dict()})


@management_bp.route('/courses/<int:course_id>', methods=['DELETE'])
@permission_required(Permission.COURSE_DELETE)
def delete_course(course_id):
    ManagementService.delete_course(current_user(), course_id)
    return jsonify({'message': 'Course deleted successfully'})


# Class groups

@management_bp.route('/class-groups', methods=['GET'])
@login_required(UserRole.ADMIN, UserRole.COORDINATOR, UserRole.LECTURER, UserRole.CLASS_REP)
def list_class_groups():
    groups = ManagementService.list_class_groups(current_user(), programme_id=int_arg('programme_id'))
    return jsonify({'class_groups': groups})


@management_bp.route('/class-groups', methods=['POST'])
@permission_required(Permission.CLASS_GROUP_CREATE)
def create_class_group():
    group = ManagementService.create_class_group(current_user(), json_body())
    return jsonify({'message': 'Class group created successfully', 'class_group': group.to_dict()}), 201


@management_bp.route('/class-groups/<int:group_id>', methods=['PUT', 'PATCH'])
@permission_required(Permission.CLASS_GROUP_UPDATE)
def update_class_group(group_id):
    group = ManagementService.update_class_group(current_user(), group_id, json_body())
    return jsonify({'message': 'Class group updated successfully', 'class_group': group.to_dict()})


@management_bp.route('/class-groups/my-class', methods=['GET'])
@login_required(UserRole.CLASS_REP)
def my_class():
    return jsonify({'class_groups': ManagementService.my_class(current_user())})


# Buildings and classrooms

@management_bp.route('/buildings', methods=['GET'])
@login_required()
def list_buildings():
    return jsonify({'buildings': ManagementService.list_buildings()})


@management_bp.route('/buildings', methods=['POST'])
@permission_required(Permission.BUILDING_CREATE)
def create_building():
    building = ManagementService.create_building(current_user(), json_body())
    return jsonify({'message': 'Building created successfully', 'building': building.to_dict()}), 201


@management_bp.route('/classrooms', methods=['GET'])
@login_required()
def list_classrooms():
    return jsonify({'classrooms': ManagementService.list_classrooms(int_arg('building_id'))})


@management_bp.route('/classrooms', methods=['POST'])
@permission_required(Permission.CLASSROOM_CREATE)
def create_classroom():
    classroom = ManagementService.create_classroom(current_user(), json_body())
    return jsonify({'message': 'Classroom created successfully', 'classroom': classroom.to_dict()}), 201


# Dashboard

@management_bp.route('/dashboard/stats', methods=['GET'])
@login_required()
def dashboard_stats():
    return jsonify(ManagementService.get_dashboard_stats(current_user()))
