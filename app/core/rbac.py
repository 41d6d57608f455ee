# app/core/rbac.py

from enum import Enum
from typing import Iterable, Optional, Union

from app.models.enums import SubjectType


class Role(str, Enum):
    # --- ADMIN ROLES ---
    SuperAdmin = "super_admin"
    Principal = "principal"
    DepartmentAdmin = "department_admin"
    HOD = "hod"
    ExamCellAdmin = "exam_cell_admin"
    LibraryAdmin = "library_admin"
    BusAdmin = "bus_admin"
    CanteenAdmin = "canteen_admin"
    FinanceAdmin = "finance_admin"

    # --- TEACHER ROLES (not admins) ---
    SubjectTeacher = "subject_teacher"
    ClassTeacher = "class_teacher"
    Mentor = "mentor"
    Coordinator = "coordinator"

    Student = "student"


class Permission(str, Enum):
    # System Administration
    FULL_SYSTEM_ACCESS = "full_system_access"
    CREATE_DELETE_ADMINS = "create_delete_admins"
    MANAGE_GLOBAL_SETTINGS = "manage_global_settings"

    # User Management
    VIEW_ALL_USERS = "view_all_users"
    VIEW_DEPT_USERS = "view_dept_users"
    BLOCK_UNBLOCK_USERS = "block_unblock_users"
    BLOCK_DEPT_USERS = "block_dept_users"

    # Academic Management
    MANAGE_ACADEMIC_STRUCTURE = "manage_academic_structure"
    MANAGE_TIMETABLE = "manage_timetable"
    MANAGE_COURSES = "manage_courses"

    # Exams & Results
    SCHEDULE_EXAMS = "schedule_exams"
    VERIFY_MARKS = "verify_marks"
    PUBLISH_RESULTS = "publish_results"
    MANAGE_EXAM_SCHEDULES = "manage_exam_schedules"

    # Approvals
    APPROVE_PLANNER_LEVEL_1 = "approve_planner_level_1"
    APPROVE_PLANNER_FINAL = "approve_planner_final"
    APPROVE_DIARY_LEVEL_1 = "approve_diary_level_1"
    APPROVE_DIARY_FINAL = "approve_diary_final"
    APPROVE_STUDENT_LEAVE = "approve_student_leave"
    APPROVE_SUBSTITUTIONS = "approve_substitutions"
    MONITOR_PLANNERS = "monitor_planners"

    # Library
    MANAGE_LIBRARY = "manage_library"
    MANAGE_BOOKS = "manage_books"
    ISSUE_RETURN_BOOKS = "issue_return_books"

    # Transportation
    MANAGE_BUS = "manage_bus"
    MANAGE_BUS_ROUTES = "manage_bus_routes"
    TRACK_BUS_LOCATIONS = "track_bus_locations"

    # Canteen
    MANAGE_CANTEEN = "manage_canteen"
    MANAGE_CANTEEN_MENU = "manage_canteen_menu"
    MANAGE_CANTEEN_TOKENS = "manage_canteen_tokens"

    # Finance
    MANAGE_FEES = "manage_fees"
    MANAGE_FEE_STRUCTURES = "manage_fee_structures"
    PROCESS_PAYMENTS = "process_payments"
    VIEW_FINANCIAL_REPORTS = "view_financial_reports"

    # Notices & Communication
    POST_GLOBAL_NOTICES = "post_global_notices"
    POST_DEPT_NOTICES = "post_dept_notices"
    SEND_NOTIFICATIONS = "send_notifications"

    # Assignments
    MANAGE_ASSIGNMENTS = "manage_assignments"
    GRADE_ASSIGNMENTS = "grade_assignments"

    # Attendance
    MANAGE_ATTENDANCE = "manage_attendance"
    VIEW_ATTENDANCE_REPORTS = "view_attendance_reports"


class Module(str, Enum):
    Dashboard = "dashboard"
    Users = "users"
    Academic = "academic"
    Exams = "exams"
    Assignments = "assignments"
    Library = "library"
    Fees = "fees"
    Bus = "bus"
    Canteen = "canteen"
    Notices = "notices"
    Settings = "settings"
    Attendance = "attendance"
    Analytics = "analytics"
    Audit = "audit"


SUPER_ROLE = Role.SuperAdmin

ADMIN_ROLES = frozenset({
    Role.SuperAdmin,
    Role.Principal,
    Role.DepartmentAdmin,
    Role.HOD,
    Role.ExamCellAdmin,
    Role.LibraryAdmin,
    Role.BusAdmin,
    Role.CanteenAdmin,
    Role.FinanceAdmin,
})

# Highest first; used for display and "acting as" decisions
ROLE_PRIORITY = (
    Role.SuperAdmin,
    Role.Principal,
    Role.ExamCellAdmin,
    Role.HOD,
    Role.DepartmentAdmin,
    Role.FinanceAdmin,
    Role.LibraryAdmin,
    Role.BusAdmin,
    Role.CanteenAdmin,
)

ROLE_LABELS = {
    Role.SuperAdmin: "Super Admin",
    Role.Principal: "Principal",
    Role.DepartmentAdmin: "Department Admin",
    Role.HOD: "Head of Department",
    Role.ExamCellAdmin: "Exam Cell Admin",
    Role.LibraryAdmin: "Library Admin",
    Role.BusAdmin: "Bus Admin",
    Role.CanteenAdmin: "Canteen Admin",
    Role.FinanceAdmin: "Finance Admin",
    Role.SubjectTeacher: "Subject Teacher",
    Role.ClassTeacher: "Class Teacher",
    Role.Mentor: "Mentor",
    Role.Coordinator: "Coordinator",
    Role.Student: "Student",
}

# ==========================================================
# ROLE -> PERMISSIONS
# ==========================================================
ROLE_PERMISSIONS = {
    # GOD MODE (also short-circuited in has_permission)
    Role.SuperAdmin: frozenset({
        Permission.FULL_SYSTEM_ACCESS,
        Permission.CREATE_DELETE_ADMINS,
        Permission.MANAGE_GLOBAL_SETTINGS,
        Permission.VIEW_ALL_USERS,
        Permission.BLOCK_UNBLOCK_USERS,
        Permission.MANAGE_ACADEMIC_STRUCTURE,
        Permission.MANAGE_TIMETABLE,
        Permission.MANAGE_COURSES,
        Permission.SCHEDULE_EXAMS,
        Permission.VERIFY_MARKS,
        Permission.PUBLISH_RESULTS,
        Permission.MANAGE_EXAM_SCHEDULES,
        Permission.APPROVE_PLANNER_FINAL,
        Permission.APPROVE_DIARY_FINAL,
        Permission.MANAGE_LIBRARY,
        Permission.MANAGE_BUS,
        Permission.MANAGE_CANTEEN,
        Permission.MANAGE_FEES,
        Permission.POST_GLOBAL_NOTICES,
        Permission.SEND_NOTIFICATIONS,
        Permission.MANAGE_ASSIGNMENTS,
        Permission.GRADE_ASSIGNMENTS,
        Permission.MANAGE_ATTENDANCE,
    }),

    # Academic authority, final approver
    Role.Principal: frozenset({
        Permission.VIEW_ALL_USERS,
        Permission.BLOCK_UNBLOCK_USERS,
        Permission.APPROVE_PLANNER_FINAL,
        Permission.APPROVE_DIARY_FINAL,
        Permission.MONITOR_PLANNERS,
        Permission.POST_GLOBAL_NOTICES,
        Permission.SEND_NOTIFICATIONS,
        Permission.VIEW_ATTENDANCE_REPORTS,
    }),

    Role.DepartmentAdmin: frozenset({
        Permission.VIEW_DEPT_USERS,
        Permission.BLOCK_DEPT_USERS,
        Permission.POST_DEPT_NOTICES,
    }),

    # Department head, first-level approver
    Role.HOD: frozenset({
        Permission.VIEW_DEPT_USERS,
        Permission.APPROVE_PLANNER_LEVEL_1,
        Permission.APPROVE_DIARY_LEVEL_1,
        Permission.APPROVE_SUBSTITUTIONS,
        Permission.POST_DEPT_NOTICES,
        Permission.MANAGE_ATTENDANCE,
    }),

    Role.ExamCellAdmin: frozenset({
        Permission.SCHEDULE_EXAMS,
        Permission.VERIFY_MARKS,
        Permission.PUBLISH_RESULTS,
        Permission.MANAGE_EXAM_SCHEDULES,
    }),

    Role.LibraryAdmin: frozenset({
        Permission.MANAGE_LIBRARY,
        Permission.MANAGE_BOOKS,
        Permission.ISSUE_RETURN_BOOKS,
    }),

    Role.BusAdmin: frozenset({
        Permission.MANAGE_BUS,
        Permission.MANAGE_BUS_ROUTES,
        Permission.TRACK_BUS_LOCATIONS,
    }),

    Role.CanteenAdmin: frozenset({
        Permission.MANAGE_CANTEEN,
        Permission.MANAGE_CANTEEN_MENU,
        Permission.MANAGE_CANTEEN_TOKENS,
    }),

    Role.FinanceAdmin: frozenset({
        Permission.MANAGE_FEES,
        Permission.MANAGE_FEE_STRUCTURES,
        Permission.PROCESS_PAYMENTS,
        Permission.VIEW_FINANCIAL_REPORTS,
    }),

    Role.SubjectTeacher: frozenset({
        Permission.MANAGE_ASSIGNMENTS,
        Permission.GRADE_ASSIGNMENTS,
        Permission.MANAGE_ATTENDANCE,
    }),

    # Reviews leave applications of their own section
    Role.ClassTeacher: frozenset({
        Permission.APPROVE_STUDENT_LEAVE,
        Permission.MANAGE_ATTENDANCE,
        Permission.VIEW_ATTENDANCE_REPORTS,
    }),

    Role.Mentor: frozenset({
        Permission.VIEW_ATTENDANCE_REPORTS,
    }),

    Role.Coordinator: frozenset({
        Permission.MONITOR_PLANNERS,
        Permission.VIEW_ATTENDANCE_REPORTS,
    }),

    Role.Student: frozenset(),
}

# ==========================================================
# MODULE -> ALLOWED ROLES
# ==========================================================
MODULE_ACCESS = {
    Module.Dashboard: ADMIN_ROLES,
    Module.Users: frozenset({Role.SuperAdmin, Role.Principal, Role.DepartmentAdmin}),
    Module.Academic: frozenset({Role.SuperAdmin}),
    Module.Exams: frozenset({Role.SuperAdmin, Role.ExamCellAdmin}),
    Module.Assignments: frozenset({Role.SuperAdmin, Role.HOD, Role.ExamCellAdmin}),
    Module.Library: frozenset({Role.SuperAdmin, Role.LibraryAdmin}),
    Module.Fees: frozenset({Role.SuperAdmin, Role.FinanceAdmin}),
    Module.Bus: frozenset({Role.SuperAdmin, Role.BusAdmin}),
    Module.Canteen: frozenset({Role.SuperAdmin, Role.CanteenAdmin}),
    Module.Notices: frozenset({Role.SuperAdmin, Role.Principal, Role.DepartmentAdmin, Role.HOD}),
    Module.Settings: frozenset({Role.SuperAdmin}),
    Module.Attendance: frozenset({Role.SuperAdmin, Role.HOD}),
    Module.Analytics: frozenset({Role.SuperAdmin, Role.Principal, Role.HOD}),
    Module.Audit: frozenset({Role.SuperAdmin}),
}

# Which permission resolves which level of each document's approval chain
APPROVAL_PERMISSIONS = {
    SubjectType.LessonPlanner: {
        "hod": Permission.APPROVE_PLANNER_LEVEL_1,
        "final": Permission.APPROVE_PLANNER_FINAL,
    },
    SubjectType.WorkDiary: {
        "hod": Permission.APPROVE_DIARY_LEVEL_1,
        "final": Permission.APPROVE_DIARY_FINAL,
    },
    SubjectType.LeaveApplication: {
        "final": Permission.APPROVE_STUDENT_LEAVE,
    },
    SubjectType.SubstitutionRequest: {
        "final": Permission.APPROVE_SUBSTITUTIONS,
    },
}

RoleLike = Union[Role, str]

# Enum members hash by name, so raw permission strings are matched by value
_PERMISSION_VALUES = {
    role: frozenset(p.value for p in permissions)
    for role, permissions in ROLE_PERMISSIONS.items()
}


# ----------------------------------------------------------
# RESOLVER
# ----------------------------------------------------------
def _to_role(value) -> Optional[Role]:
    """Map a raw value from the store onto the catalog. Unknown ids -> None."""
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        return None


def canonical_role_id(value) -> str:
    """Catalog roles collapse to their enum value; unknown ids are kept as stored."""
    role = _to_role(value)
    if role is None:
        return str(value)
    return role.value


def known_roles(active_roles: Iterable[RoleLike]) -> set[Role]:
    roles = set()
    for value in active_roles:
        role = _to_role(value)
        if role is not None:
            roles.add(role)
    return roles


def is_super_admin(active_roles: Iterable[RoleLike]) -> bool:
    return SUPER_ROLE in known_roles(active_roles)


def is_admin(active_roles: Iterable[RoleLike]) -> bool:
    return bool(known_roles(active_roles) & ADMIN_ROLES)


def has_permission(active_roles: Iterable[RoleLike], permission) -> bool:
    """
    True if any held role grants `permission`.
    super_admin passes every check, including permissions no role lists.
    """
    roles = known_roles(active_roles)
    if SUPER_ROLE in roles:
        return True

    permission = str(getattr(permission, "value", permission))
    return any(permission in _PERMISSION_VALUES[role] for role in roles)


def can_access_module(active_roles: Iterable[RoleLike], module) -> bool:
    roles = known_roles(active_roles)
    if SUPER_ROLE in roles:
        return True

    try:
        module = Module(getattr(module, "value", module))
    except ValueError:
        return False
    return bool(roles & MODULE_ACCESS[module])


def highest_role(active_roles: Iterable[RoleLike]) -> Optional[RoleLike]:
    """
    First held role in ROLE_PRIORITY order. Otherwise the first role the
    caller listed (teacher roles, or ids the catalog does not know), or None.
    """
    held = list(active_roles)
    roles = known_roles(held)
    for role in ROLE_PRIORITY:
        if role in roles:
            return role

    if not held:
        return None
    return _to_role(held[0]) or held[0]


def user_permissions(active_roles: Iterable[RoleLike]) -> set[Permission]:
    """Union of the held roles' permissions. For display only, gate with has_permission."""
    permissions = set()
    for role in known_roles(active_roles):
        permissions |= ROLE_PERMISSIONS[role]
    return permissions


def accessible_modules(active_roles: Iterable[RoleLike]) -> set[Module]:
    held = list(active_roles)
    return {module for module in Module if can_access_module(held, module)}


def role_display_name(role: RoleLike) -> str:
    known = _to_role(role)
    if known is None:
        return str(role)
    return ROLE_LABELS[known]


def can_manage_users(active_roles: Iterable[RoleLike], scope: str) -> bool:
    if scope == "all":
        return has_permission(active_roles, Permission.VIEW_ALL_USERS)
    return has_permission(active_roles, Permission.VIEW_DEPT_USERS)


def can_approve(active_roles: Iterable[RoleLike], subject_type: SubjectType, level: str) -> bool:
    """
    level: "hod" for the first level of a two-level chain,
    "principal" / "final" for the deciding level.
    """
    levels = APPROVAL_PERMISSIONS[SubjectType(subject_type)]
    key = "hod" if level == "hod" else "final"
    permission = levels.get(key)
    if permission is None:
        return False
    return has_permission(active_roles, permission)
