"""Role-based access control.

Pure predicates over a role value. The same functions back the API's
permission dependencies and the frontend's conditional rendering, so
nothing here touches the database or the request. Every predicate
returns False when `role` is None (no signed-in user).
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

ROLES = ('platform_admin', 'admin', 'pastor', 'teacher', 'member', 'student')

PERMISSIONS: Dict[str, str] = {
    # System administration
    'system:access': 'Access system admin panel',
    'system:manage-churches': 'Create, update, delete any church',
    'system:view-all-data': 'View data across all churches',
    'system:manage-subscriptions': 'Manage church subscriptions',
    # Church management
    'church:create': 'Create new churches',
    'church:read': 'View church details',
    'church:update': 'Update church settings',
    'church:delete': 'Delete church',
    'church:manage-settings': 'Manage church settings and preferences',
    # User management
    'user:list': 'List users in church',
    'user:read': 'View user details',
    'user:create': 'Create new users',
    'user:update': 'Update user details',
    'user:delete': 'Delete/deactivate users',
    'user:assign-role': 'Change user roles',
    'user:manage-self': 'Update own profile',
    # Student management
    'student:list': 'List students',
    'student:list-own': 'List only assigned students',
    'student:read': 'View student details',
    'student:read-self': 'View own student record',
    'student:create': 'Create student records',
    'student:update': 'Update student records',
    'student:update-self': 'Update own student record',
    'student:delete': 'Delete student records',
    'student:assign-teacher': 'Assign teachers to students',
    'student:update-milestones': 'Update New Birth milestones',
    # Bible study management
    'study:list': 'List all studies',
    'study:list-own': 'List only own studies',
    'study:read': 'View study details',
    'study:create': 'Create new studies',
    'study:update': 'Update studies',
    'study:update-own': 'Update own studies only',
    'study:delete': 'Delete studies',
    'study:assign-students': 'Add/remove students from studies',
    # First Steps
    'firststeps:view': 'View First Steps progress',
    'firststeps:update': 'Update First Steps progress',
    # Reports
    'reports:view-church': 'View church-wide reports',
    'reports:view-own': 'View own progress reports',
    'reports:export': 'Export report data',
    # Members
    'member:list': 'List church members',
    'member:manage': 'Manage church members',
}

ROLE_HIERARCHY: Dict[str, int] = {
    'student': 0,
    'member': 1,
    'teacher': 2,
    'pastor': 3,
    'admin': 4,
    'platform_admin': 5,
}

_CHURCH_ADMIN = [
    'church:read', 'church:update', 'church:manage-settings',
    'user:list', 'user:read', 'user:create', 'user:update', 'user:delete',
    'user:assign-role', 'user:manage-self',
    'student:list', 'student:read', 'student:create', 'student:update',
    'student:delete', 'student:assign-teacher', 'student:update-milestones',
    'study:list', 'study:read', 'study:create', 'study:update', 'study:delete',
    'study:assign-students',
    'firststeps:view', 'firststeps:update',
    'reports:view-church', 'reports:export',
    'member:list', 'member:manage',
]

ROLE_PERMISSIONS: Dict[str, List[str]] = {
    'platform_admin': [
        'system:access', 'system:manage-churches', 'system:view-all-data',
        'system:manage-subscriptions', 'church:create', 'church:delete',
    ] + _CHURCH_ADMIN,
    'admin': list(_CHURCH_ADMIN),
    'pastor': [
        'church:read',
        'user:list', 'user:read', 'user:create', 'user:update', 'user:assign-role',
        'user:manage-self',
        'student:list', 'student:read', 'student:create', 'student:update',
        'student:assign-teacher', 'student:update-milestones',
        'study:list', 'study:read', 'study:create', 'study:update',
        'study:assign-students',
        'firststeps:view', 'firststeps:update',
        'reports:view-church', 'reports:export',
        'member:list', 'member:manage',
    ],
    'teacher': [
        'user:manage-self',
        'student:list-own', 'student:read', 'student:create', 'student:update',
        'student:update-milestones',
        'study:list-own', 'study:read', 'study:create', 'study:update-own',
        'study:assign-students',
        'firststeps:view', 'firststeps:update',
        'reports:view-own',
    ],
    'member': ['user:manage-self', 'church:read', 'reports:view-own'],
    'student': [
        'user:manage-self', 'student:read-self', 'student:update-self',
        'study:list-own', 'study:read', 'firststeps:view', 'reports:view-own',
    ],
}

ROLE_CREATION_PERMISSIONS: Dict[str, List[str]] = {
    'platform_admin': ['platform_admin', 'admin', 'pastor', 'teacher', 'member', 'student'],
    'admin': ['admin', 'pastor', 'teacher', 'member', 'student'],
    'pastor': ['teacher', 'member', 'student'],
    'teacher': ['student'],
    'member': [],
    'student': [],
}

ROLE_DISPLAY_NAMES: Dict[str, str] = {
    'platform_admin': 'System Administrator',
    'admin': 'Church Administrator',
    'pastor': 'Pastor',
    'teacher': 'Teacher',
    'member': 'Member',
    'student': 'Student',
}

DEFAULT_BADGE_COLOR = 'bg-gray-100 text-gray-800'

ROLE_COLORS: Dict[str, str] = {
    'platform_admin': 'bg-purple-100 text-purple-800',
    'admin': 'bg-blue-100 text-blue-800',
    'pastor': 'bg-green-100 text-green-800',
    'teacher': 'bg-yellow-100 text-yellow-800',
    'member': DEFAULT_BADGE_COLOR,
    'student': 'bg-orange-100 text-orange-800',
}


def _rank(role: Optional[str]) -> int:
    return ROLE_HIERARCHY.get(role, -1) if role else -1


def has_permission(role: Optional[str], permission: str) -> bool:
    """Return True if `role` grants `permission`."""
    if not role:
        return False
    return permission in ROLE_PERMISSIONS.get(role, ())


def has_any_permission(role: Optional[str], permissions: Iterable[str]) -> bool:
    return any(has_permission(role, p) for p in permissions)


def has_all_permissions(role: Optional[str], permissions: Iterable[str]) -> bool:
    if not role:
        return False
    return all(has_permission(role, p) for p in permissions)


def get_permissions_for_role(role: Optional[str]) -> List[str]:
    if not role:
        return []
    return list(ROLE_PERMISSIONS.get(role, ()))


def is_role_at_least(role: Optional[str], minimum: str) -> bool:
    """Return True if `role` sits at or above `minimum` in the hierarchy."""
    if not role or role not in ROLE_HIERARCHY:
        return False
    return _rank(role) >= ROLE_HIERARCHY[minimum]


def is_platform_admin(role: Optional[str]) -> bool:
    return role == 'platform_admin'


def is_admin(role: Optional[str]) -> bool:
    return role in ('admin', 'platform_admin')


def is_manager(role: Optional[str]) -> bool:
    """Pastor, church admin or platform admin."""
    return is_role_at_least(role, 'pastor')


def is_leader(role: Optional[str]) -> bool:
    """Teacher or above."""
    return is_role_at_least(role, 'teacher')


def can_assign_role(assigner: Optional[str], target: str) -> bool:
    if not assigner:
        return False
    return target in ROLE_CREATION_PERMISSIONS.get(assigner, ())


@dataclass
class NavItem:
    """A navigation entry with optional role/permission gates."""
    name: str
    href: str
    icon: str = ''
    permissions: List[str] = field(default_factory=list)
    roles: List[str] = field(default_factory=list)
    show_for_roles: List[str] = field(default_factory=list)
    hide_for_roles: List[str] = field(default_factory=list)


def can_access_nav_item(role: Optional[str], item: NavItem) -> bool:
    """Evaluate the first gate that `item` declares.

    Gates are checked in priority order: `show_for_roles`,
    `hide_for_roles`, `roles`, then `permissions`. An item without gates
    is visible to every signed-in user.
    """
    if not role:
        return False
    if item.show_for_roles:
        return role in item.show_for_roles
    if item.hide_for_roles:
        return role not in item.hide_for_roles
    if item.roles:
        return role in item.roles
    if item.permissions:
        return has_any_permission(role, item.permissions)
    return True


def can_access(
    role: Optional[str],
    *,
    permission: Optional[str] = None,
    permissions: Sequence[str] = (),
    role_required: Optional[str] = None,
    roles: Sequence[str] = (),
    require_all: bool = False,
) -> bool:
    """Generic check combining role and permission requirements.

    Platform admins always pass. Every supplied requirement must hold;
    `permissions` is any-of unless `require_all` is set.
    """
    if not role:
        return False
    if is_platform_admin(role):
        return True
    if role_required and role != role_required:
        return False
    if roles and role not in roles:
        return False
    if permission and not has_permission(role, permission):
        return False
    if permissions:
        check = has_all_permissions if require_all else has_any_permission
        if not check(role, permissions):
            return False
    return True


def get_role_display_name(role: str) -> str:
    return ROLE_DISPLAY_NAMES.get(role, role)


def get_role_badge_color(role: str) -> str:
    return ROLE_COLORS.get(role, DEFAULT_BADGE_COLOR)
