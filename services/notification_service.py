"""
Notification service for the Lecturer Attendance Management System
In-app notifications with optional e-mail delivery through Flask-Mail
"""

import json
import logging
from datetime import datetime

from flask import current_app
from flask_mail import Mail, Message

from database import db
from models.notification import Notification
from models.user import User, UserRole
from utils.errors import NotFoundError, PermissionDeniedError, ValidationError

logger = logging.getLogger(__name__)

mail = Mail()

PRIORITIES = ('low', 'normal', 'high', 'urgent')
EMAIL_PRIORITIES = ('high', 'urgent')


class NotificationService:
    """Notification service class"""

    @staticmethod
    def create(recipient_id, title, message, type='info', category='general',
               priority='normal', data=None, sender_id=None, commit=True):
        """Create a notification and e-mail it when the priority calls for it"""
        if priority not in PRIORITIES:
            raise ValidationError(f"Priority must be one of: {', '.join(PRIORITIES)}")
        if not title or not message:
            raise ValidationError("Title and message are required")

        recipient = db.session.get(User, recipient_id)
        if recipient is None:
            raise NotFoundError("Recipient not found")

        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=type,
            category=category,
            title=title,
            message=message,
            data=json.dumps(data, default=str) if data is not None else None,
            priority=priority,
            status='sent',
            sent_at=datetime.utcnow(),
        )
        db.session.add(notification)
        if commit:
            db.session.commit()

        if priority in EMAIL_PRIORITIES:
            NotificationService.send_email(recipient.email, title, message, notification)

        return notification

    @staticmethod
    def notify_many(recipient_ids, title, message, **kwargs):
        """Create the same notification for several users; unknown ids are skipped"""
        created = []
        for recipient_id in set(recipient_ids):
            try:
                created.append(NotificationService.create(recipient_id, title, message, **kwargs))
            except NotFoundError:
                logger.warning("Skipping notification for unknown user %s", recipient_id)
        return created

    @staticmethod
    def notify_role(role, title, message, **kwargs):
        ids = [u.id for u in User.query.filter_by(role=role, is_active=True).all()]
        return NotificationService.notify_many(ids, title, message, **kwargs)

    @staticmethod
    def send_email(recipient_email, subject, body, notification=None, attachments=None):
        """Send through Flask-Mail when enabled. Returns (sent, message)."""
        if not current_app.config.get('MAIL_ENABLED'):
            return False, "Mail delivery disabled"

        try:
            msg = Message(subject=subject, recipients=[recipient_email],
                          sender=current_app.config.get('MAIL_DEFAULT_SENDER'))
            msg.body = body
            for filename, content_type, content in attachments or []:
                msg.attach(filename, content_type, content)
            mail.send(msg)
            return True, "Email sent"
        except Exception as e:
            logger.error("Failed to e-mail %s: %s", recipient_email, e)
            if notification is not None:
                notification.status = 'failed'
                notification.error_message = str(e)
                db.session.commit()
            return False, str(e)

    @staticmethod
    def list_for_user(user_id, unread_only=False, limit=50, offset=0):
        """Page of a user's notifications with total and unread counts"""
        base = Notification.query.filter_by(recipient_id=user_id)
        query = base.filter(Notification.read_at.is_(None)) if unread_only else base

        total = query.count()
        notifications = (query.order_by(Notification.created_at.desc(), Notification.id.desc())
                         .limit(limit).offset(offset).all())
        unread = base.filter(Notification.read_at.is_(None)).count()

        return {
            'notifications': [n.to_dict() for n in notifications],
            'total': total,
            'unread_count': unread,
            'has_more': offset + limit < total,
        }

    @staticmethod
    def mark_read(user_id, notification_ids=None, mark_all=False):
        """Mark the given notifications (or all) as read; returns the number updated"""
        query = Notification.query.filter(Notification.recipient_id == user_id,
                                          Notification.read_at.is_(None))
        if not mark_all:
            if not notification_ids:
                raise ValidationError("Provide notification_ids or mark_all")
            query = query.filter(Notification.id.in_(notification_ids))

        updated = 0
        for notification in query.all():
            notification.mark_read()
            updated += 1
        db.session.commit()
        return updated

    @staticmethod
    def delete(user_id, notification_ids=None, delete_all=False, delete_read=False):
        """Delete by ids, all, or only read ones; returns the number deleted"""
        query = Notification.query.filter(Notification.recipient_id == user_id)
        if delete_all:
            pass
        elif delete_read:
            query = query.filter(Notification.read_at.isnot(None))
        elif notification_ids:
            query = query.filter(Notification.id.in_(notification_ids))
        else:
            raise ValidationError("Provide notification_ids, delete_all or delete_read")

        deleted = query.delete(synchronize_session=False)
        db.session.commit()
        return deleted

    @staticmethod
    def create_for(sender, payload):
        """Create a notification on behalf of a user (admins and coordinators only)"""
        if sender.role not in UserRole.MANAGERS:
            raise PermissionDeniedError("Insufficient permissions")

        recipient_ids = payload.get('recipient_ids') or ([payload['recipient_id']] if payload.get('recipient_id') else [])
        if not recipient_ids:
            raise ValidationError("recipient_id or recipient_ids is required")

        created = NotificationService.notify_many(
            recipient_ids,
            payload.get('title'),
            payload.get('message'),
            type=payload.get('type', 'info'),
            category=payload.get('category', 'general'),
            priority=payload.get('priority', 'normal'),
            data=payload.get('data'),
            sender_id=sender.id,
        )
        return created
