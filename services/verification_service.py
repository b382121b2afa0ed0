"""
Verification request service for the Lecturer Attendance Management System
Approve / reject / dispute workflow between requesters and lecturers
"""

import json
import logging
from datetime import datetime

from database import db, handle_db_error
from models.attendance import AttendanceRecord
from models.user import UserRole
from models.verification import VerificationRequest, VerificationStatus
from services.audit_service import AuditService, AuditAction
from services.notification_service import NotificationService
from services.schedule_service import lecturer_for, rep_class_group_ids
from utils.db_helpers import get_or_404
from utils.errors import ConflictError, PermissionDeniedError, ValidationError

logger = logging.getLogger(__name__)

SESSION_QUALITIES = ('excellent', 'good', 'fair', 'poor')


class VerificationService:
    """Verification request service class"""

    @staticmethod
    def _validate_student_data(data):
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ValidationError("student_attendance_data must be an object")
        present = data.get('total_students_present')
        if not isinstance(present, int) or present < 0:
            raise ValidationError("total_students_present must be a non-negative integer")
        if data.get('session_quality') not in SESSION_QUALITIES:
            raise ValidationError(f"session_quality must be one of: {', '.join(SESSION_QUALITIES)}")
        return data

    @staticmethod
    @handle_db_error
    def create_request(user, data):
        """Open a request against an attendance record; one per record"""
        record = get_or_404(AttendanceRecord, data.get('attendance_record_id'), 'Attendance record')

        if user.role == UserRole.CLASS_REP:
            if record.course_schedule.class_group_id not in rep_class_group_ids(user):
                raise PermissionDeniedError("You can only raise requests for your class")
        elif user.role not in UserRole.SUPERVISORS:
            raise PermissionDeniedError("Only supervisors and class representatives can create verification requests")

        if VerificationRequest.query.filter_by(attendance_record_id=record.id).first():
            raise ConflictError("Verification request already exists for this attendance record")

        evidence = data.get('evidence_urls') or []
        if not isinstance(evidence, list) or not all(isinstance(url, str) for url in evidence):
            raise ValidationError("evidence_urls must be a list of strings")
        student_data = VerificationService._validate_student_data(data.get('student_attendance_data'))

        request = VerificationRequest(
            attendance_record_id=record.id,
            requester_id=user.id,
            status=VerificationStatus.PENDING,
            priority=data.get('priority') or 'normal',
            description=data.get('verification_notes') or 'Verification Request',
            evidence=json.dumps(evidence) if evidence else None,
            student_attendance_data=json.dumps(student_data) if student_data else None,
        )
        db.session.add(request)
        db.session.commit()

        schedule = record.course_schedule
        NotificationService.create(
            record.lecturer.user_id,
            'Attendance Verification Request',
            f"A verification request was submitted for your {schedule.course.title} session",
            type='verification_request', category='verification',
            data={'verification_request_id': request.id, 'attendance_record_id': record.id,
                  'course': schedule.course.title, 'class_group': schedule.class_group.name,
                  'timestamp': record.timestamp},
            sender_id=user.id,
        )
        AuditService.log(user.id, AuditAction.VERIFICATION_REQUEST_CREATED, 'VerificationRequest', request.id,
                         {'attendance_record_id': record.id, 'lecturer_name': record.lecturer.name,
                          'course': schedule.course.title, 'class_group': schedule.class_group.name,
                          'evidence_count': len(evidence), 'has_student_data': student_data is not None})
        return request

    @staticmethod
    def list_requests(user, status=None):
        """Requesters see their own, lecturers those on their records, managers all"""
        query = VerificationRequest.query
        if user.role in UserRole.SUPERVISORS or user.role == UserRole.CLASS_REP:
            query = query.filter(VerificationRequest.requester_id == user.id)
        elif user.role == UserRole.LECTURER:
            lecturer = lecturer_for(user)
            query = (query.join(AttendanceRecord,
                                VerificationRequest.attendance_record_id == AttendanceRecord.id)
                     .filter(AttendanceRecord.lecturer_id == lecturer.id))
        elif user.role not in UserRole.MANAGERS:
            raise PermissionDeniedError("Insufficient permissions")

        if status:
            if status not in VerificationStatus.ALL:
                raise ValidationError(f"Status must be one of: {', '.join(VerificationStatus.ALL)}")
            query = query.filter(VerificationRequest.status == status)

        requests = query.order_by(VerificationRequest.created_at.desc()).all()
        return [r.to_dict() for r in requests]

    @staticmethod
    @handle_db_error
    def update_request(user, request_id, status, review_notes=None, escalate=False):
        """
        Decide a request.

        Approval without escalation marks the record supervisor-verified,
        rejection marks it not verified; disputes and escalations leave the
        record untouched for a manager to resolve.
        """
        if status not in VerificationStatus.DECISIONS:
            raise ValidationError(f"Status must be one of: {', '.join(VerificationStatus.DECISIONS)}")

        request = get_or_404(VerificationRequest, request_id, 'Verification request')
        record = request.attendance_record
        lecturer_user_id = record.lecturer.user_id

        is_lecturer = user.role == UserRole.LECTURER and lecturer_user_id == user.id
        is_requester = request.requester_id == user.id
        is_manager = user.role in UserRole.MANAGERS
        if not (is_lecturer or is_requester or is_manager):
            raise PermissionDeniedError("Unauthorized to update this verification request")

        now = datetime.utcnow()
        request.status = status
        request.review_notes = review_notes
        request.reviewed_by = user.id
        request.reviewed_at = now
        if escalate:
            request.escalated_at = now

        if status == VerificationStatus.APPROVED and not escalate:
            record.supervisor_verified = True
            record.supervisor_comment = f"Verified via request: {review_notes or 'Approved'}"
        elif status == VerificationStatus.REJECTED:
            record.supervisor_verified = False
            record.supervisor_comment = f"Rejected via request: {review_notes or 'Rejected'}"
        db.session.commit()

        # Tell the other side
        recipient_id = request.requester_id if user.id == lecturer_user_id else lecturer_user_id
        if recipient_id != user.id:
            NotificationService.create(
                recipient_id,
                f"Verification request {status}",
                f"The verification request for {record.course_schedule.course.title} was {status}"
                + (" and escalated" if escalate else ""),
                type='verification_update', category='verification',
                priority='high' if escalate or status == VerificationStatus.DISPUTED else 'normal',
                data={'verification_request_id': request.id, 'status': status, 'review_notes': review_notes},
                sender_id=user.id,
            )
        if escalate:
            NotificationService.notify_role(
                UserRole.ADMIN, 'Verification request escalated',
                f"Verification request #{request.id} for {record.course_schedule.course.title} needs review",
                type='escalation', category='verification', sender_id=user.id,
                data={'verification_request_id': request.id},
            )

        action = (AuditAction.VERIFICATION_OVERRIDDEN if is_manager and not is_requester
                  else AuditAction.VERIFICATION_REQUEST_UPDATED)
        AuditService.log(user.id, action, 'VerificationRequest', request.id,
                         {'status': status, 'review_notes': review_notes, 'escalated': bool(escalate),
                          'attendance_record_id': record.id})
        return request

    @staticmethod
    def pending_count_for_lecturer(lecturer_id):
        return (VerificationRequest.query
                .join(AttendanceRecord, VerificationRequest.attendance_record_id == AttendanceRecord.id)
                .filter(AttendanceRecord.lecturer_id == lecturer_id,
                        VerificationRequest.status == VerificationStatus.PENDING)
                .count())
