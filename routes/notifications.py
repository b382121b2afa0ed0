"""
Notification API routes for the Lecturer Attendance Management System
"""

from flask import Blueprint, jsonify, request

from routes.auth import current_user, int_arg, json_body, login_required, permission_required
from services.audit_service import AuditService, AuditAction
from services.notification_service import NotificationService
from utils.errors import ValidationError
from utils.permissions import Permission

notifications_bp = Blueprint('notifications', __name__)


def _ids(data):
    ids = data.get('notification_ids') or []
    if not isinstance(ids, list):
        raise ValidationError("notification_ids must be a list")
    try:
        return [int(i) for i in ids]
    except (TypeError, ValueError):
        raise ValidationError("notification_ids must be numbers")


@notifications_bp.route('/notifications', methods=['GET'])
@login_required()
def list_notifications():
    result = NotificationService.list_for_user(
        current_user().id,
        unread_only=request.args.get('unread_only', '').lower() == 'true',
        limit=min(int_arg('limit', 50), 200),
        offset=int_arg('offset', 0),
    )
    return jsonify(result)


@notifications_bp.route('/notifications', methods=['POST'])
@permission_required(Permission.NOTIFICATION_CREATE)
def create_notification():
    sender = current_user()
    data = json_body()
    created = NotificationService.create_for(sender, data)
    AuditService.log(sender.id, AuditAction.NOTIFICATION_SENT, 'Notification',
                     created[0].id if created else None,
                     {'recipients': len(created), 'title': data.get('title')})
    return jsonify({'message': 'Notification sent',
                    'notifications': [n.to_dict() for n in created]}), 201


@notifications_bp.route('/notifications', methods=['PATCH'])
@login_required()
def mark_notifications_read():
    data = json_body()
    updated = NotificationService.mark_read(current_user().id, _ids(data),
                                            mark_all=bool(data.get('mark_all')))
    return jsonify({'message': f'{updated} notification(s) marked as read', 'updated': updated})


@notifications_bp.route('/notifications', methods=['DELETE'])
@login_required()
def delete_notifications():
    data = json_body()
    deleted = NotificationService.delete(current_user().id, _ids(data),
                                         delete_all=bool(data.get('delete_all')),
                                         delete_read=bool(data.get('delete_read')))
    return jsonify({'message': f'{deleted} notification(s) deleted', 'deleted': deleted})
