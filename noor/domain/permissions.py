from __future__ import annotations

from typing import Any

PERM_WILDCARD = "*"
PERM_EMPLOYEE_READ = "employee.read"
PERM_EMPLOYEE_WRITE = "employee.write"
PERM_SITE_READ = "site.read"
PERM_SITE_WRITE = "site.write"
PERM_TASK_READ = "task.read"
PERM_TASK_WRITE = "task.write"
PERM_TASK_SUBMIT = "task.submit"
PERM_TASK_APPROVE = "task.approve"
PERM_FILE_READ = "file.read"
PERM_FILE_DELETE = "file.delete"
PERM_ACTIVITY_READ = "activity.read"
PERM_ACTIVITY_WRITE = "activity.write"
PERM_MILESTONE_WRITE = "milestone.write"
PERM_MATERIAL_READ = "material.read"
PERM_MATERIAL_WRITE = "material.write"
PERM_MATERIAL_APPROVE = "material.approve"
PERM_FINANCE_READ = "finance.read"
PERM_FINANCE_WRITE = "finance.write"
PERM_REPORT_READ = "report.read"

DEFAULT_PERMISSION_NAMES = [
    PERM_WILDCARD,
    PERM_EMPLOYEE_READ,
    PERM_EMPLOYEE_WRITE,
    PERM_SITE_READ,
    PERM_SITE_WRITE,
    PERM_TASK_READ,
    PERM_TASK_WRITE,
    PERM_TASK_SUBMIT,
    PERM_TASK_APPROVE,
    PERM_FILE_READ,
    PERM_FILE_DELETE,
    PERM_ACTIVITY_READ,
    PERM_ACTIVITY_WRITE,
    PERM_MILESTONE_WRITE,
    PERM_MATERIAL_READ,
    PERM_MATERIAL_WRITE,
    PERM_MATERIAL_APPROVE,
    PERM_FINANCE_READ,
    PERM_FINANCE_WRITE,
    PERM_REPORT_READ,
]

ROLE_PERMISSIONS: dict[str, list[str]] = {
    "admin": [PERM_WILDCARD],
    "supervisor": [
        PERM_EMPLOYEE_READ,
        PERM_SITE_READ,
        PERM_SITE_WRITE,
        PERM_TASK_READ,
        PERM_TASK_WRITE,
        PERM_TASK_SUBMIT,
        PERM_TASK_APPROVE,
        PERM_FILE_READ,
        PERM_ACTIVITY_READ,
        PERM_MILESTONE_WRITE,
        PERM_MATERIAL_READ,
        PERM_MATERIAL_WRITE,
        PERM_MATERIAL_APPROVE,
        PERM_FINANCE_READ,
    ],
    "employee": [
        PERM_SITE_READ,
        PERM_TASK_READ,
        PERM_TASK_SUBMIT,
        PERM_FILE_READ,
        PERM_MATERIAL_READ,
        PERM_MATERIAL_WRITE,
    ],
}


def permissions_for_role(role: str) -> list[str]:
    return list(ROLE_PERMISSIONS.get(role, []))


def has_permission(claims: dict[str, Any], permission: str) -> bool:
    permissions = claims.get("permissions", [])
    if not isinstance(permissions, list):
        return False
    return permission in permissions or PERM_WILDCARD in permissions
