"""Role-based access checks.

Global permissions come from the user's role (``role_permissions`` table).
Project permissions come from the user's project role, resolved from an
explicit team entry, then project creator, then project client.
"""

from __future__ import annotations

from .. import db
from ..auth import AuthenticatedUser
from ..permission_defs import (
    ALL_PERMISSIONS,
    PROJECT_ROLE_CLIENT,
    PROJECT_ROLE_MANAGER,
    PROJECT_ROLE_PERMISSIONS,
    PROJECT_VIEW_ALL,
    SCOPE_GLOBAL,
    SCOPE_OWN,
    permission_scope,
)


def global_permissions(conn, user: AuthenticatedUser) -> set[str]:
    if user.is_admin:
        return set(ALL_PERMISSIONS)
    return db.role_permission_set(conn, user.role)


def project_role(conn, user: AuthenticatedUser, project_row) -> str | None:
    member = db.get_project_member(conn, int(project_row["id"]), user.id)
    if member:
        return str(member["project_role"])
    if project_row["created_by"] is not None and int(project_row["created_by"]) == user.id:
        return PROJECT_ROLE_MANAGER
    if project_row["client_id"] is not None and int(project_row["client_id"]) == user.id:
        return PROJECT_ROLE_CLIENT
    return None


def project_permissions(conn, user: AuthenticatedUser, project_row) -> set[str]:
    role = project_role(conn, user, project_row)
    if role is None:
        return set()
    return set(PROJECT_ROLE_PERMISSIONS.get(role, ()))


def has_permission(conn, user: AuthenticatedUser, permission: str, project_id: int | None = None) -> bool:
    scope = permission_scope(permission)
    if scope == SCOPE_OWN:
        return True

    granted = global_permissions(conn, user)
    if scope == SCOPE_GLOBAL or project_id is None:
        return permission in granted

    project = db.get_project(conn, project_id)
    if not project or int(project["organization_id"]) != user.organization_id:
        return False
    if permission in granted:
        return True
    return permission in project_permissions(conn, user, project)


def has_any_permission(conn, user: AuthenticatedUser, permissions: list[str], project_id: int | None = None) -> bool:
    return any(has_permission(conn, user, p, project_id) for p in permissions)


def has_all_permissions(conn, user: AuthenticatedUser, permissions: list[str], project_id: int | None = None) -> bool:
    return all(has_permission(conn, user, p, project_id) for p in permissions)


def require_permission(conn, user: AuthenticatedUser, permission: str, project_id: int | None = None) -> None:
    if not has_permission(conn, user, permission, project_id):
        raise PermissionError("not_authorized")


def can_access_project(conn, user: AuthenticatedUser, project_row) -> bool:
    if int(project_row["organization_id"]) != user.organization_id:
        return False
    if user.is_admin:
        return True
    if PROJECT_VIEW_ALL in global_permissions(conn, user):
        return True
    return project_role(conn, user, project_row) is not None


def accessible_project_ids(conn, user: AuthenticatedUser, *, include_archived: bool = True) -> list[int]:
    if user.is_admin or PROJECT_VIEW_ALL in global_permissions(conn, user):
        rows = db.list_projects(conn, user.organization_id, include_archived=include_archived)
        return [int(r["id"]) for r in rows]
    ids = db.list_member_project_ids(conn, user.organization_id, user.id)
    if include_archived:
        return ids
    live = {int(r["id"]) for r in db.list_projects(conn, user.organization_id)}
    return [pid for pid in ids if pid in live]


def require_project(conn, user: AuthenticatedUser, project_id: int):
    project = db.get_org_project(conn, user.organization_id, project_id)
    if not project:
        raise FileNotFoundError("project_not_found")
    if not can_access_project(conn, user, project):
        raise PermissionError("not_authorized")
    return project
