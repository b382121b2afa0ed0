"""
Unit tests for role based permissions
"""

import unittest

from models.user import UserRole
from utils.permissions import (Permission, check_resource_permission, can_access_class_resource,
                               can_access_own_resource, can_access_resource, get_role_permissions,
                               has_all_permissions, has_any_permission, has_permission)


class TestPermissions(unittest.TestCase):

    def test_admin_has_management_permissions(self):
        """Test admins hold every unscoped permission"""
        for permission in (Permission.USER_CREATE, Permission.AUDIT_READ, Permission.SYSTEM_SETTINGS,
                           Permission.REPORTS_SCHEDULE, Permission.DATA_IMPORT):
            self.assertTrue(has_permission(UserRole.ADMIN, permission), permission)
        self.assertFalse(has_permission(UserRole.ADMIN, Permission.ATTENDANCE_OWN_READ))

    def test_coordinator_cannot_manage_users_or_audit(self):
        """Test coordinators read users but cannot create them"""
        self.assertTrue(has_permission(UserRole.COORDINATOR, Permission.USER_LIST))
        self.assertFalse(has_permission(UserRole.COORDINATOR, Permission.USER_CREATE))
        self.assertFalse(has_permission(UserRole.COORDINATOR, Permission.AUDIT_READ))

    def test_lecturer_scoped_permissions(self):
        """Test lecturers act on their own schedule and attendance"""
        self.assertTrue(has_permission(UserRole.LECTURER, Permission.ATTENDANCE_CREATE))
        self.assertTrue(can_access_own_resource(UserRole.LECTURER, 'schedule', 'read'))
        self.assertFalse(has_permission(UserRole.LECTURER, Permission.SCHEDULE_READ))
        self.assertFalse(has_permission(UserRole.LECTURER, Permission.ATTENDANCE_VERIFY))

    def test_class_rep_scoped_permissions(self):
        """Test class reps read and verify their class's attendance"""
        self.assertTrue(can_access_class_resource(UserRole.CLASS_REP, 'attendance', 'read'))
        self.assertTrue(has_permission(UserRole.CLASS_REP, Permission.ATTENDANCE_VERIFY))
        self.assertFalse(has_permission(UserRole.CLASS_REP, Permission.ATTENDANCE_CREATE))

    def test_supervisors_verify(self):
        """Test both supervisor roles can verify attendance"""
        for role in UserRole.SUPERVISORS:
            self.assertTrue(has_permission(role, Permission.ATTENDANCE_VERIFY))
            self.assertFalse(has_permission(role, Permission.ATTENDANCE_CREATE))

    def test_unknown_role_has_nothing(self):
        """Test an unknown role"""
        self.assertEqual(get_role_permissions('GUEST'), [])
        self.assertFalse(has_permission('GUEST', Permission.NOTIFICATION_READ))

    def test_any_and_all(self):
        """Test permission set helpers"""
        self.assertTrue(has_any_permission(UserRole.LECTURER,
                                           [Permission.USER_CREATE, Permission.NOTIFICATION_READ]))
        self.assertFalse(has_all_permissions(UserRole.LECTURER,
                                             [Permission.USER_CREATE, Permission.NOTIFICATION_READ]))
        self.assertTrue(has_all_permissions(UserRole.ADMIN,
                                            [Permission.USER_CREATE, Permission.NOTIFICATION_READ]))

    def test_unscoped_resource_access(self):
        """Test resource:action lookups ignore scoped permissions"""
        self.assertTrue(can_access_resource(UserRole.COORDINATOR, 'schedule', 'create'))
        self.assertFalse(can_access_resource(UserRole.LECTURER, 'schedule', 'read'))
        self.assertFalse(can_access_resource(UserRole.CLASS_REP, 'attendance', 'read'))
        self.assertFalse(can_access_resource('GUEST', 'notification', 'read'))

    def test_resource_check_order(self):
        """Test full, ownership and class scoped checks"""
        self.assertTrue(check_resource_permission(UserRole.ADMIN, 'attendance', 'read'))
        self.assertFalse(check_resource_permission(UserRole.LECTURER, 'attendance', 'read'))
        self.assertTrue(check_resource_permission(UserRole.LECTURER, 'attendance', 'read', is_owner=True))
        self.assertFalse(check_resource_permission(UserRole.CLASS_REP, 'attendance', 'read', is_owner=True))
        self.assertTrue(check_resource_permission(UserRole.CLASS_REP, 'attendance', 'read',
                                                  is_class_member=True))

    def test_role_permissions_copy(self):
        """Test callers cannot mutate the role table"""
        permissions = get_role_permissions(UserRole.LECTURER)
        permissions.append(Permission.USER_DELETE)
        self.assertFalse(has_permission(UserRole.LECTURER, Permission.USER_DELETE))


if __name__ == '__main__':
    unittest.main()
