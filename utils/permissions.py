"""
Role based permissions for the Lecturer Attendance Management System
Permissions are 'resource:action' strings; ownership and class scoped
variants are 'resource:own:action' and 'resource:class:action'.
"""

from models.user import UserRole


class Permission:
    # User management
    USER_CREATE = 'user:create'
    USER_READ = 'user:read'
    USER_UPDATE = 'user:update'
    USER_DELETE = 'user:delete'
    USER_LIST = 'user:list'
    USER_IMPORT = 'user:import'

    # Programme management
    PROGRAMME_CREATE = 'programme:create'
    PROGRAMME_READ = 'programme:read'
    PROGRAMME_UPDATE = 'programme:update'
    PROGRAMME_DELETE = 'programme:delete'
    PROGRAMME_LIST = 'programme:list'

    # Course management
    COURSE_CREATE = 'course:create'
    COURSE_READ = 'course:read'
    COURSE_UPDATE = 'course:update'
    COURSE_DELETE = 'course:delete'
    COURSE_LIST = 'course:list'

    # Class group management
    CLASS_GROUP_CREATE = 'class_group:create'
    CLASS_GROUP_READ = 'class_group:read'
    CLASS_GROUP_UPDATE = 'class_group:update'
    CLASS_GROUP_DELETE = 'class_group:delete'
    CLASS_GROUP_LIST = 'class_group:list'

    # Schedule management
    SCHEDULE_CREATE = 'schedule:create'
    SCHEDULE_READ = 'schedule:read'
    SCHEDULE_UPDATE = 'schedule:update'
    SCHEDULE_DELETE = 'schedule:delete'
    SCHEDULE_LIST = 'schedule:list'
    SCHEDULE_OWN_READ = 'schedule:own:read'

    # Attendance management
    ATTENDANCE_CREATE = 'attendance:create'
    ATTENDANCE_READ = 'attendance:read'
    ATTENDANCE_UPDATE = 'attendance:update'
    ATTENDANCE_DELETE = 'attendance:delete'
    ATTENDANCE_LIST = 'attendance:list'
    ATTENDANCE_VERIFY = 'attendance:verify'
    ATTENDANCE_OWN_READ = 'attendance:own:read'
    ATTENDANCE_CLASS_READ = 'attendance:class:read'

    # Lecturer management
    LECTURER_CREATE = 'lecturer:create'
    LECTURER_READ = 'lecturer:read'
    LECTURER_UPDATE = 'lecturer:update'
    LECTURER_DELETE = 'lecturer:delete'
    LECTURER_LIST = 'lecturer:list'

    # Buildings and classrooms
    BUILDING_CREATE = 'building:create'
    BUILDING_READ = 'building:read'
    BUILDING_UPDATE = 'building:update'
    BUILDING_DELETE = 'building:delete'
    BUILDING_LIST = 'building:list'

    CLASSROOM_CREATE = 'classroom:create'
    CLASSROOM_READ = 'classroom:read'
    CLASSROOM_UPDATE = 'classroom:update'
    CLASSROOM_DELETE = 'classroom:delete'
    CLASSROOM_LIST = 'classroom:list'

    # Analytics and reporting
    ANALYTICS_READ = 'analytics:read'
    ANALYTICS_ADVANCED = 'analytics:advanced'
    REPORTS_GENERATE = 'reports:generate'
    REPORTS_SCHEDULE = 'reports:schedule'

    # Notifications
    NOTIFICATION_CREATE = 'notification:create'
    NOTIFICATION_READ = 'notification:read'
    NOTIFICATION_UPDATE = 'notification:update'
    NOTIFICATION_DELETE = 'notification:delete'
    NOTIFICATION_ANALYTICS = 'notification:analytics'

    # Audit and system
    AUDIT_READ = 'audit:read'
    SYSTEM_SETTINGS = 'system:settings'
    SYSTEM_BACKUP = 'system:backup'
    SYSTEM_RESTORE = 'system:restore'

    # Import / export
    DATA_IMPORT = 'data:import'
    DATA_EXPORT = 'data:export'

    @classmethod
    def all(cls):
        return [value for name, value in vars(cls).items()
                if name.isupper() and isinstance(value, str)]


ROLE_PERMISSIONS = {
    UserRole.ADMIN: [p for p in Permission.all()
                     if p not in (Permission.SCHEDULE_OWN_READ,
                                  Permission.ATTENDANCE_OWN_READ,
                                  Permission.ATTENDANCE_CLASS_READ)],

    UserRole.COORDINATOR: [
        Permission.USER_READ, Permission.USER_LIST,
        Permission.PROGRAMME_CREATE, Permission.PROGRAMME_READ,
        Permission.PROGRAMME_UPDATE, Permission.PROGRAMME_LIST,
        Permission.COURSE_CREATE, Permission.COURSE_READ,
        Permission.COURSE_UPDATE, Permission.COURSE_LIST,
        Permission.CLASS_GROUP_CREATE, Permission.CLASS_GROUP_READ,
        Permission.CLASS_GROUP_UPDATE, Permission.CLASS_GROUP_LIST,
        Permission.SCHEDULE_CREATE, Permission.SCHEDULE_READ,
        Permission.SCHEDULE_UPDATE, Permission.SCHEDULE_LIST,
        Permission.ATTENDANCE_READ, Permission.ATTENDANCE_LIST,
        Permission.ATTENDANCE_VERIFY,
        Permission.LECTURER_READ, Permission.LECTURER_LIST,
        Permission.BUILDING_CREATE, Permission.BUILDING_READ,
        Permission.BUILDING_UPDATE, Permission.BUILDING_LIST,
        Permission.CLASSROOM_CREATE, Permission.CLASSROOM_READ,
        Permission.CLASSROOM_UPDATE, Permission.CLASSROOM_LIST,
        Permission.ANALYTICS_READ, Permission.REPORTS_GENERATE,
        Permission.NOTIFICATION_CREATE, Permission.NOTIFICATION_READ,
        Permission.NOTIFICATION_ANALYTICS,
        Permission.DATA_IMPORT, Permission.DATA_EXPORT,
    ],

    UserRole.LECTURER: [
        Permission.SCHEDULE_OWN_READ,
        Permission.ATTENDANCE_CREATE,
        Permission.ATTENDANCE_OWN_READ,
        Permission.ATTENDANCE_UPDATE,
        Permission.CLASS_GROUP_READ,
        Permission.COURSE_READ,
        Permission.NOTIFICATION_READ,
        Permission.ANALYTICS_READ,
    ],

    UserRole.CLASS_REP: [
        Permission.ATTENDANCE_CLASS_READ,
        Permission.ATTENDANCE_VERIFY,
        Permission.NOTIFICATION_READ,
        Permission.ANALYTICS_READ,
    ],

    UserRole.SUPERVISOR: [
        Permission.ATTENDANCE_READ, Permission.ATTENDANCE_LIST,
        Permission.ATTENDANCE_VERIFY,
        Permission.SCHEDULE_READ, Permission.SCHEDULE_LIST,
        Permission.NOTIFICATION_READ,
    ],

    UserRole.ONLINE_SUPERVISOR: [
        Permission.ATTENDANCE_READ, Permission.ATTENDANCE_LIST,
        Permission.ATTENDANCE_VERIFY,
        Permission.SCHEDULE_READ, Permission.SCHEDULE_LIST,
        Permission.NOTIFICATION_READ,
    ],
}


def get_role_permissions(role):
    return list(ROLE_PERMISSIONS.get(role, []))


def has_permission(role, permission):
    return permission in ROLE_PERMISSIONS.get(role, ())


def has_any_permission(role, permissions):
    return any(has_permission(role, p) for p in permissions)


def has_all_permissions(role, permissions):
    return all(has_permission(role, p) for p in permissions)


def can_access_resource(role, resource, action):
    return has_permission(role, f'{resource}:{action}')


def can_access_own_resource(role, resource, action):
    """Full permission, or the ownership-scoped one"""
    return (has_permission(role, f'{resource}:own:{action}')
            or has_permission(role, f'{resource}:{action}'))


def can_access_class_resource(role, resource, action):
    """Full permission, or the class-scoped one"""
    return (has_permission(role, f'{resource}:class:{action}')
            or has_permission(role, f'{resource}:{action}'))


def check_resource_permission(role, resource, action, is_owner=False, is_class_member=False):
    """Check full, then ownership, then class scoped permission for a resource action"""
    if can_access_resource(role, resource, action):
        return True
    if is_owner and has_permission(role, f'{resource}:own:{action}'):
        return True
    if is_class_member and has_permission(role, f'{resource}:class:{action}'):
        return True
    return False
