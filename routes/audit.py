"""
Audit trail API routes for the Lecturer Attendance Management System
"""

from datetime import datetime

from flask import Blueprint, Response, jsonify, request

from models.user import UserRole
from routes.auth import current_user, int_arg, json_body, login_required, permission_required
from services.audit_service import AuditService, AuditAction
from utils.errors import ValidationError
from utils.permissions import Permission
from utils.validators import parse_date

audit_bp = Blueprint('audit', __name__)


def _filters():
    filters = {
        'user_id': int_arg('user_id'),
        'action': request.args.get('action'),
        'target_type': request.args.get('target_type'),
        'risk_min': int_arg('risk_min'),
        'risk_max': int_arg('risk_max'),
    }
    for name in ('start_date', 'end_date'):
        value = request.args.get(name)
        parsed = parse_date(value)
        if value and parsed is None:
            raise ValidationError(f"{name} must be a date (YYYY-MM-DD)")
        filters[name] = parsed
    return filters


@audit_bp.route('/audit/logs', methods=['GET'])
@permission_required(Permission.AUDIT_READ)
def list_logs():
    result = AuditService.get_logs(limit=min(int_arg('limit', 50), 500), offset=int_arg('offset', 0),
                                   **_filters())
    return jsonify(result)


@audit_bp.route('/audit/analytics', methods=['GET'])
@permission_required(Permission.AUDIT_READ)
def analytics():
    days = int_arg('days', 30)
    if days < 1:
        raise ValidationError("days must be at least 1")
    return jsonify(AuditService.get_analytics(days))


@audit_bp.route('/audit/integrity/<int:log_id>', methods=['GET'])
@permission_required(Permission.AUDIT_READ)
def verify_integrity(log_id):
    valid = AuditService.verify_integrity(log_id)
    return jsonify({'log_id': log_id, 'valid': valid})


@audit_bp.route('/audit/export', methods=['GET'])
@permission_required(Permission.AUDIT_READ)
def export_logs():
    export_format = request.args.get('format', 'csv')
    if export_format not in ('csv', 'json'):
        raise ValidationError("Format must be 'csv' or 'json'")
    content = AuditService.export_logs(export_format, **_filters())
    filename = f"audit-logs-{datetime.now().strftime('%Y%m%d')}.{export_format}"
    mimetype = 'text/csv' if export_format == 'csv' else 'application/json'
    return Response(content, mimetype=mimetype,
                    headers={'Content-Disposition': f'attachment; filename="{filename}"'})


@audit_bp.route('/audit/cleanup', methods=['POST'])
@login_required(UserRole.ADMIN)
def cleanup():
    data = json_body()
    retention_days = data.get('retention_days')
    if retention_days is not None:
        try:
            retention_days = int(retention_days)
        except (TypeError, ValueError):
            raise ValidationError("retention_days must be a number")
        if retention_days < 30:
            raise ValidationError("retention_days must be at least 30")

    deleted = AuditService.cleanup_old_logs(retention_days)
    user = current_user()
    AuditService.log(user.id, AuditAction.BULK_DELETE, 'AuditLog', 'all',
                     {'deleted': deleted, 'retention_days': retention_days})
    return jsonify({'message': f'{deleted} audit log(s) removed', 'deleted': deleted})
