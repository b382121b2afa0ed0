"""
Audit trail model for the Lecturer Attendance Management System
"""

import json

from database import db
from datetime import datetime


class AuditLog(db.Model):
    """Append-only record of a security-relevant action"""
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    action = db.Column(db.String(60), nullable=False, index=True)
    target_type = db.Column(db.String(60), nullable=False)
    target_id = db.Column(db.String(60), nullable=False)
    metadata_json = db.Column('metadata', db.Text, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    session_id = db.Column(db.String(100), nullable=True)
    risk_score = db.Column(db.Integer, nullable=False, default=1, index=True)
    data_hash = db.Column(db.String(64), nullable=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    user = db.relationship('User')

    def get_metadata(self):
        return json.loads(self.metadata_json) if self.metadata_json else None

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'user': {
                'id': self.user.id,
                'name': self.user.full_name,
                'email': self.user.email,
                'role': self.user.role,
            } if self.user else None,
            'action': self.action,
            'target_type': self.target_type,
            'target_id': self.target_id,
            'metadata': self.get_metadata(),
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'session_id': self.session_id,
            'risk_score': self.risk_score,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f'<AuditLog {self.action} {self.target_type}:{self.target_id}>'
