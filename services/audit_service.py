"""
Audit service for the Lecturer Attendance Management System
Risk-scored, hash-sealed audit trail with querying, analytics, export and retention
"""

import csv
import hashlib
import io
import json
import logging
from collections import Counter
from datetime import datetime, timedelta

from flask import current_app, has_app_context, has_request_context, request, session

from database import db
from models.audit import AuditLog
from utils.errors import NotFoundError
from utils.virtual_verification import get_client_ip_address

logger = logging.getLogger(__name__)


class AuditAction:
    # User management
    USER_CREATED = 'USER_CREATED'
    USER_UPDATED = 'USER_UPDATED'
    USER_DELETED = 'USER_DELETED'
    USER_LOGIN = 'USER_LOGIN'
    USER_LOGOUT = 'USER_LOGOUT'
    ROLE_CHANGED = 'ROLE_CHANGED'

    # Attendance
    ATTENDANCE_RECORDED = 'ATTENDANCE_RECORDED'
    ATTENDANCE_VERIFIED = 'ATTENDANCE_VERIFIED'
    ATTENDANCE_DISPUTED = 'ATTENDANCE_DISPUTED'
    ATTENDANCE_MODIFIED = 'ATTENDANCE_MODIFIED'

    # Verification
    VERIFICATION_REQUEST_CREATED = 'VERIFICATION_REQUEST_CREATED'
    VERIFICATION_REQUEST_UPDATED = 'VERIFICATION_REQUEST_UPDATED'
    VERIFICATION_OVERRIDDEN = 'VERIFICATION_OVERRIDDEN'

    # System
    SYSTEM_CONFIG_CHANGED = 'SYSTEM_CONFIG_CHANGED'
    BULK_IMPORT = 'BULK_IMPORT'
    BULK_DELETE = 'BULK_DELETE'
    SECURITY_SETTING_CHANGED = 'SECURITY_SETTING_CHANGED'

    # Schedules
    SCHEDULE_CREATED = 'SCHEDULE_CREATED'
    SCHEDULE_UPDATED = 'SCHEDULE_UPDATED'
    SCHEDULE_DELETED = 'SCHEDULE_DELETED'

    # Notifications
    NOTIFICATION_SENT = 'NOTIFICATION_SENT'
    NOTIFICATION_PREFERENCES_UPDATED = 'NOTIFICATION_PREFERENCES_UPDATED'


HIGH_RISK_ACTIONS = {
    AuditAction.USER_DELETED,
    AuditAction.ROLE_CHANGED,
    AuditAction.SYSTEM_CONFIG_CHANGED,
    AuditAction.BULK_DELETE,
    AuditAction.SECURITY_SETTING_CHANGED,
}

MEDIUM_RISK_ACTIONS = {
    AuditAction.ATTENDANCE_MODIFIED,
    AuditAction.VERIFICATION_OVERRIDDEN,
    AuditAction.SCHEDULE_DELETED,
    AuditAction.USER_CREATED,
}

SUSPICIOUS_RISK_SCORE = 7
RETAINED_RISK_SCORE = 5


def risk_level(score):
    if score >= 8:
        return 'High'
    if score >= 5:
        return 'Medium'
    if score >= 2:
        return 'Low'
    return 'Minimal'


class AuditService:
    """Audit trail service class"""

    @staticmethod
    def calculate_risk_score(action, ip_address=None, now=None):
        """Score an action from 1 (routine) to 10 (critical)"""
        now = now or datetime.now()
        score = 1

        if action in HIGH_RISK_ACTIONS:
            score += 7
        elif action in MEDIUM_RISK_ACTIONS:
            score += 3
        elif 'DELETE' in action:
            score += 2
        elif 'CREATE' in action or 'UPDATE' in action:
            score += 1

        # Outside working hours
        if now.hour < 6 or now.hour > 22:
            score += 1

        # Internal network
        if ip_address and ip_address.startswith('10.'):
            score -= 1

        return min(max(score, 1), 10)

    @staticmethod
    def compute_data_hash(user_id, action, target_type, target_id, metadata, timestamp):
        """SHA-256 over the canonical JSON of the sealed fields"""
        payload = {
            'user_id': user_id,
            'action': action,
            'target_type': target_type,
            'target_id': str(target_id),
            'metadata': metadata,
            'timestamp': timestamp.isoformat() if timestamp else None,
        }
        canonical = json.dumps(payload, sort_keys=True, separators=(',', ':'), default=str)
        return hashlib.sha256(canonical.encode('utf-8')).hexdigest()

    @staticmethod
    def log(user_id, action, target_type, target_id, metadata=None,
            ip_address=None, user_agent=None, session_id=None):
        """
        Write an audit entry.

        Request details are taken from the active request when not given.
        Failures are logged and swallowed so the calling operation still succeeds.
        """
        try:
            if has_request_context():
                ip_address = ip_address or get_client_ip_address(request.headers, request.remote_addr)
                user_agent = user_agent or (request.user_agent.string or None)
                session_id = session_id or session.get('session_id')

            timestamp = datetime.utcnow().replace(microsecond=0)
            metadata = json.loads(json.dumps(metadata, default=str)) if metadata is not None else None

            entry = AuditLog(
                user_id=user_id,
                action=action,
                target_type=target_type,
                target_id=str(target_id),
                metadata_json=json.dumps(metadata, default=str) if metadata is not None else None,
                ip_address=ip_address,
                user_agent=(user_agent or '')[:255] or None,
                session_id=session_id,
                risk_score=AuditService.calculate_risk_score(action, ip_address),
                timestamp=timestamp,
            )
            entry.data_hash = AuditService.compute_data_hash(
                user_id, action, target_type, target_id, metadata, timestamp
            )
            db.session.add(entry)
            db.session.commit()
            return entry
        except Exception as e:
            db.session.rollback()
            logger.error("Failed to create audit log for %s: %s", action, e)
            return None

    @staticmethod
    def _filtered_query(user_id=None, action=None, target_type=None, start_date=None,
                        end_date=None, risk_min=None, risk_max=None):
        query = AuditLog.query
        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if action:
            query = query.filter(AuditLog.action.ilike(f'%{action}%'))
        if target_type:
            query = query.filter(AuditLog.target_type == target_type)
        if start_date:
            query = query.filter(AuditLog.timestamp >= start_date)
        if end_date:
            query = query.filter(AuditLog.timestamp <= end_date)
        if risk_min is not None:
            query = query.filter(AuditLog.risk_score >= risk_min)
        if risk_max is not None:
            query = query.filter(AuditLog.risk_score <= risk_max)
        return query

    @staticmethod
    def get_logs(limit=50, offset=0, **filters):
        """Filtered logs, newest first, with total and has_more"""
        query = AuditService._filtered_query(**filters)
        total = query.count()
        logs = (query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
                .limit(limit).offset(offset).all())
        return {
            'logs': [log.to_dict() for log in logs],
            'total': total,
            'has_more': offset + limit < total,
        }

    @staticmethod
    def get_analytics(days=30):
        """Totals, top actions, risk distribution and daily activity over the last N days"""
        since = datetime.utcnow() - timedelta(days=days)
        logs = AuditLog.query.filter(AuditLog.timestamp >= since).all()

        actions = Counter(log.action for log in logs)
        levels = Counter(risk_level(log.risk_score) for log in logs)
        daily = Counter(log.timestamp.date().isoformat() for log in logs)

        return {
            'total_logs': len(logs),
            'unique_users': len({log.user_id for log in logs if log.user_id is not None}),
            'top_actions': [{'action': a, 'count': c} for a, c in actions.most_common(10)],
            'risk_distribution': [{'level': level, 'count': levels[level]}
                                  for level in ('High', 'Medium', 'Low', 'Minimal') if levels[level]],
            'daily_activity': [{'date': d, 'count': daily[d]} for d in sorted(daily)],
            'suspicious_activity': sum(1 for log in logs if log.risk_score >= SUSPICIOUS_RISK_SCORE),
        }

    @staticmethod
    def verify_integrity(log_id):
        """Recompute the seal of a stored entry"""
        log = db.session.get(AuditLog, log_id)
        if log is None:
            raise NotFoundError("Audit log not found")
        if not log.data_hash:
            return False
        expected = AuditService.compute_data_hash(
            log.user_id, log.action, log.target_type, log.target_id,
            log.get_metadata(), log.timestamp
        )
        return expected == log.data_hash

    @staticmethod
    def export_logs(export_format='csv', **filters):
        """Export up to 10 000 filtered logs as CSV or JSON text"""
        logs = AuditService.get_logs(limit=10000, offset=0, **filters)['logs']

        if export_format == 'json':
            return json.dumps(logs, indent=2)

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(['ID', 'User ID', 'User Name', 'Action', 'Target Type', 'Target ID',
                         'Timestamp', 'Risk Score', 'IP Address'])
        for log in logs:
            writer.writerow([
                log['id'],
                log['user_id'] or '',
                log['user']['name'] if log['user'] else '',
                log['action'],
                log['target_type'],
                log['target_id'],
                log['timestamp'],
                log['risk_score'],
                log['ip_address'] or '',
            ])
        return output.getvalue()

    @staticmethod
    def cleanup_old_logs(retention_days=None):
        """Delete low-risk logs older than the retention period; returns the count"""
        if retention_days is None:
            retention_days = current_app.config.get('AUDIT_RETENTION_DAYS', 365) if has_app_context() else 365
        cutoff = datetime.utcnow() - timedelta(days=retention_days)
        try:
            deleted = (AuditLog.query
                       .filter(AuditLog.timestamp < cutoff, AuditLog.risk_score < RETAINED_RISK_SCORE)
                       .delete(synchronize_session=False))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.info("Audit cleanup removed %d entries older than %d days", deleted, retention_days)
        return deleted
