"""
Reporting models for the Lecturer Attendance Management System
Report, ScheduledReport and ImportJob models
"""

import json

from database import db
from datetime import datetime


class Report(db.Model):
    """A generated report file kept for download"""
    __tablename__ = 'reports'

    id = db.Column(db.Integer, primary_key=True)
    generated_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    title = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(50), nullable=False)
    format = db.Column(db.String(10), nullable=False)
    parameters = db.Column(db.Text, nullable=True)
    file_path = db.Column(db.String(500), nullable=True)
    file_size = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='generating')
    error_message = db.Column(db.Text, nullable=True)
    download_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def get_parameters(self):
        return json.loads(self.parameters) if self.parameters else {}

    def to_dict(self):
        return {
            'id': self.id,
            'generated_by': self.generated_by,
            'title': self.title,
            'type': self.type,
            'format': self.format,
            'parameters': self.get_parameters(),
            'file_size': self.file_size,
            'status': self.status,
            'error_message': self.error_message,
            'download_count': self.download_count,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Report {self.id} {self.type}.{self.format} {self.status}>'


class ScheduledReport(db.Model):
    """Report definition re-generated on a cron schedule"""
    __tablename__ = 'scheduled_reports'

    id = db.Column(db.Integer, primary_key=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    report_type = db.Column(db.String(50), nullable=False)
    parameters = db.Column(db.Text, nullable=False, default='{}')
    schedule = db.Column(db.String(100), nullable=False)  # 5-field cron expression
    recipients = db.Column(db.Text, nullable=False)  # comma separated e-mails
    format = db.Column(db.String(10), nullable=False, default='pdf')
    is_active = db.Column(db.Boolean, default=True)
    last_run = db.Column(db.DateTime, nullable=True)
    next_run = db.Column(db.DateTime, nullable=True, index=True)
    run_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    creator = db.relationship('User')

    def get_parameters(self):
        return json.loads(self.parameters) if self.parameters else {}

    def get_recipients(self):
        return [r.strip() for r in (self.recipients or '').split(',') if r.strip()]

    def to_dict(self):
        return {
            'id': self.id,
            'created_by': self.created_by,
            'name': self.name,
            'description': self.description,
            'report_type': self.report_type,
            'parameters': self.get_parameters(),
            'schedule': self.schedule,
            'recipients': self.get_recipients(),
            'format': self.format,
            'is_active': self.is_active,
            'last_run': self.last_run.isoformat() if self.last_run else None,
            'next_run': self.next_run.isoformat() if self.next_run else None,
            'run_count': self.run_count,
        }

    def __repr__(self):
        return f'<ScheduledReport {self.name} [{self.schedule}]>'


class ImportJob(db.Model):
    """Bookkeeping for a bulk spreadsheet import"""
    __tablename__ = 'import_jobs'

    id = db.Column(db.Integer, primary_key=True)
    initiated_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    job_type = db.Column(db.String(30), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='processing')
    file_name = db.Column(db.String(255), nullable=False)
    records_processed = db.Column(db.Integer, nullable=False, default=0)
    errors_count = db.Column(db.Integer, nullable=False, default=0)
    error_log = db.Column(db.Text, nullable=True)
    started_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)

    def get_errors(self):
        return json.loads(self.error_log) if self.error_log else []

    def to_dict(self):
        return {
            'id': self.id,
            'job_type': self.job_type,
            'status': self.status,
            'file_name': self.file_name,
            'records_processed': self.records_processed,
            'errors_count': self.errors_count,
            'errors': self.get_errors(),
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self):
        return f'<ImportJob {self.job_type} {self.status}>'
