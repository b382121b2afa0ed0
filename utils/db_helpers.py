"""
Database helper utilities for the Lecturer Attendance Management System
"""

from database import db, handle_db_error
from sqlalchemy.exc import IntegrityError

from utils.errors import ConflictError, NotFoundError


@handle_db_error
def safe_add_and_commit(obj):
    """Add and commit, turning constraint violations into a conflict"""
    try:
        db.session.add(obj)
        db.session.commit()
        return obj
    except IntegrityError as e:
        db.session.rollback()
        if 'UNIQUE' in str(e.orig).upper():
            raise ConflictError("Record with this identifier already exists")
        raise ConflictError("Database constraint violation")


@handle_db_error
def safe_delete_and_commit(obj):
    """Delete and commit, refusing when other rows still reference the object"""
    try:
        db.session.delete(obj)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Record is still referenced by other records")


@handle_db_error
def safe_update_and_commit():
    """Commit pending changes"""
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if 'UNIQUE' in str(e.orig).upper():
            raise ConflictError("Duplicate entry found")
        raise ConflictError("Database constraint violation")


def get_or_404(model, object_id, label=None):
    """Fetch by primary key or raise NotFoundError"""
    try:
        obj = db.session.get(model, int(object_id))
    except (TypeError, ValueError):
        obj = None
    if obj is None:
        raise NotFoundError(f"{label or model.__name__} not found")
    return obj


def paginate(query, limit=50, offset=0, max_limit=500):
    """Apply limit/offset and return (items, total)"""
    total = query.order_by(None).count()
    limit = max(1, min(int(limit or 50), max_limit))
    offset = max(0, int(offset or 0))
    return query.limit(limit).offset(offset).all(), total
