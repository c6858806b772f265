import pytest

from discipleship import permissions as perms
from discipleship.permissions import NavItem


def test_role_permission_table():
    assert perms.has_permission('pastor', 'study:list')
    assert not perms.has_permission('teacher', 'study:list')
    assert perms.has_permission('teacher', 'study:list-own')
    assert perms.has_permission('platform_admin', 'system:manage-churches')
    assert not perms.has_permission('admin', 'system:manage-churches')
    assert not perms.has_permission(None, 'church:read')
    assert not perms.has_permission('ghost', 'church:read')
    assert perms.get_permissions_for_role(None) == []
    assert 'student:read-self' in perms.get_permissions_for_role('student')


def test_any_and_all():
    assert perms.has_any_permission('teacher', ['study:list', 'study:list-own'])
    assert not perms.has_all_permissions('teacher', ['study:list', 'study:list-own'])
    assert perms.has_all_permissions('admin', ['study:list', 'study:delete'])
    assert not perms.has_all_permissions(None, [])


@pytest.mark.parametrize('role,manager,leader', [
    ('platform_admin', True, True),
    ('admin', True, True),
    ('pastor', True, True),
    ('teacher', False, True),
    ('member', False, False),
    ('student', False, False),
    (None, False, False),
])
def test_hierarchy(role, manager, leader):
    assert perms.is_manager(role) is manager
    assert perms.is_leader(role) is leader


def test_role_assignment():
    assert perms.can_assign_role('pastor', 'teacher')
    assert not perms.can_assign_role('pastor', 'admin')
    assert perms.can_assign_role('teacher', 'student')
    assert not perms.can_assign_role('member', 'student')
    assert not perms.can_assign_role(None, 'student')
    assert perms.is_admin('platform_admin') and not perms.is_admin('pastor')


def test_nav_item_gates():
    reports = NavItem('Reports', '/reports', permissions=['reports:view-church'])
    assert perms.can_access_nav_item('pastor', reports)
    assert not perms.can_access_nav_item('teacher', reports)
    my_journey = NavItem('My Journey', '/journey', show_for_roles=['student'])
    assert perms.can_access_nav_item('student', my_journey)
    assert not perms.can_access_nav_item('admin', my_journey)
    hidden = NavItem('Students', '/students', hide_for_roles=['student'], permissions=['nothing'])
    assert perms.can_access_nav_item('member', hidden)
    assert perms.can_access_nav_item('member', NavItem('Home', '/'))
    assert not perms.can_access_nav_item(None, NavItem('Home', '/'))


def test_can_access():
    assert perms.can_access('platform_admin', role_required='student')
    assert perms.can_access('pastor', permission='study:list', roles=['pastor', 'admin'])
    assert not perms.can_access('teacher', permissions=['study:list', 'study:list-own'], require_all=True)
    assert perms.can_access('teacher', permissions=['study:list', 'study:list-own'])
    assert not perms.can_access(None)


def test_display_helpers():
    assert perms.get_role_display_name('platform_admin') == 'System Administrator'
    assert perms.get_role_display_name('custom') == 'custom'
    assert perms.get_role_badge_color('student') == 'bg-orange-100 text-orange-800'
    assert perms.get_role_badge_color('custom') == perms.DEFAULT_BADGE_COLOR
