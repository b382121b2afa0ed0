"""
Verification workflow model for the Lecturer Attendance Management System
"""

import json

from database import db
from datetime import datetime


class VerificationStatus:
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    DISPUTED = 'disputed'

    ALL = (PENDING, APPROVED, REJECTED, DISPUTED)
    DECISIONS = (APPROVED, REJECTED, DISPUTED)


class VerificationRequest(db.Model):
    """Request to confirm or contest an attendance record"""
    __tablename__ = 'verification_requests'

    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    attendance_record_id = db.Column(db.Integer, db.ForeignKey('attendance_records.id', ondelete='CASCADE'),
                                     nullable=False, unique=True)
    status = db.Column(db.String(20), nullable=False, default=VerificationStatus.PENDING, index=True)
    priority = db.Column(db.String(20), nullable=False, default='normal')
    description = db.Column(db.Text, nullable=False)
    evidence = db.Column(db.Text, nullable=True)  # JSON list of URLs
    student_attendance_data = db.Column(db.Text, nullable=True)  # JSON object
    review_notes = db.Column(db.Text, nullable=True)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    escalated_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    requester = db.relationship('User', foreign_keys=[requester_id])
    reviewer = db.relationship('User', foreign_keys=[reviewed_by])

    def get_evidence(self):
        return json.loads(self.evidence) if self.evidence else []

    def get_student_attendance_data(self):
        return json.loads(self.student_attendance_data) if self.student_attendance_data else None

    def to_dict(self):
        record = self.attendance_record
        return {
            'id': self.id,
            'status': self.status,
            'priority': self.priority,
            'description': self.description,
            'evidence_urls': self.get_evidence(),
            'student_attendance_data': self.get_student_attendance_data(),
            'review_notes': self.review_notes,
            'reviewed_by': self.reviewed_by,
            'submitted_at': self.created_at.isoformat() if self.created_at else None,
            'reviewed_at': self.reviewed_at.isoformat() if self.reviewed_at else None,
            'escalated_at': self.escalated_at.isoformat() if self.escalated_at else None,
            'attendance_record': record.to_dict() if record else None,
            'requester': {
                'id': self.requester.id,
                'name': self.requester.full_name,
                'email': self.requester.email,
                'role': self.requester.role,
            } if self.requester else None,
        }

    def __repr__(self):
        return f'<VerificationRequest {self.id} record={self.attendance_record_id} {self.status}>'
