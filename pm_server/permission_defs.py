from __future__ import annotations


USER_CREATE = "user:create"
USER_READ = "user:read"
USER_UPDATE = "user:update"
USER_DELETE = "user:delete"
USER_INVITE = "user:invite"
USER_ACTIVATE = "user:activate"
USER_DEACTIVATE = "user:deactivate"
USER_MANAGE_ROLES = "user:manage_roles"

ORGANIZATION_READ = "organization:read"
ORGANIZATION_UPDATE = "organization:update"
ORGANIZATION_DELETE = "organization:delete"
ORGANIZATION_MANAGE_SETTINGS = "organization:manage_settings"

PROJECT_CREATE = "project:create"
PROJECT_READ = "project:read"
PROJECT_UPDATE = "project:update"
PROJECT_DELETE = "project:delete"
PROJECT_MANAGE_TEAM = "project:manage_team"
PROJECT_ARCHIVE = "project:archive"
PROJECT_RESTORE = "project:restore"
PROJECT_VIEW_ALL = "project:view_all"

TASK_CREATE = "task:create"
TASK_READ = "task:read"
TASK_UPDATE = "task:update"
TASK_DELETE = "task:delete"
TASK_ASSIGN = "task:assign"
TASK_CHANGE_STATUS = "task:change_status"
TASK_MANAGE_COMMENTS = "task:manage_comments"
TASK_VIEW_ALL = "task:view_all"
TASK_EDIT_ALL = "task:edit_all"
TASK_DELETE_ALL = "task:delete_all"

TEAM_READ = "team:read"
TEAM_INVITE = "team:invite"
TEAM_EDIT = "team:edit"
TEAM_DELETE = "team:delete"
TEAM_REMOVE = "team:remove"
TEAM_MANAGE_PERMISSIONS = "team:manage_permissions"

TIME_TRACKING_CREATE = "time_tracking:create"
TIME_TRACKING_READ = "time_tracking:read"
TIME_TRACKING_UPDATE = "time_tracking:update"
TIME_TRACKING_DELETE = "time_tracking:delete"
TIME_TRACKING_APPROVE = "time_tracking:approve"
TIME_TRACKING_EXPORT = "time_tracking:export"
TIME_TRACKING_VIEW_ALL = "time_tracking:view_all"
TIME_TRACKING_VIEW_ASSIGNED = "time_tracking:view_assigned"
TIME_TRACKING_VIEW_ALL_TIMER = "time_tracking:view_all_timer"

REPORTING_VIEW = "reporting:view"
REPORTING_CREATE = "reporting:create"
REPORTING_EXPORT = "reporting:export"
REPORTING_SHARE = "reporting:share"

SETTINGS_VIEW = "settings:view"
SETTINGS_UPDATE = "settings:update"
SETTINGS_MANAGE_EMAIL = "settings:manage_email"
SETTINGS_MANAGE_DATABASE = "settings:manage_database"
SETTINGS_MANAGE_SECURITY = "settings:manage_security"

EPIC_CREATE = "epic:create"
EPIC_VIEW = "epic:view"
EPIC_READ = "epic:read"
EPIC_UPDATE = "epic:update"
EPIC_DELETE = "epic:delete"
EPIC_VIEW_ALL = "epic:view_all"

SPRINT_CREATE = "sprint:create"
SPRINT_VIEW = "sprint:view"
SPRINT_READ = "sprint:read"
SPRINT_UPDATE = "sprint:update"
SPRINT_DELETE = "sprint:delete"
SPRINT_MANAGE = "sprint:manage"
SPRINT_VIEW_ALL = "sprint:view_all"
SPRINT_START = "sprint:start"
SPRINT_COMPLETE = "sprint:complete"

STORY_CREATE = "story:create"
STORY_READ = "story:read"
STORY_UPDATE = "story:update"
STORY_DELETE = "story:delete"
STORY_VIEW_ALL = "story:view_all"
STORY_MANAGE_ALL = "story:manage_all"

BACKLOG_READ = "backlog:read"
BACKLOG_MANAGE = "backlog:manage"

ALL_PERMISSIONS: tuple[str, ...] = tuple(
    v for k, v in sorted(globals().items()) if k.isupper() and isinstance(v, str) and ":" in v
)


ROLE_SUPER_ADMIN = "super_admin"
ROLE_ADMIN = "admin"
ROLE_HUMAN_RESOURCE = "human_resource"
ROLE_PROJECT_MANAGER = "project_manager"
ROLE_TEAM_MEMBER = "team_member"
ROLE_CLIENT = "client"
ROLE_VIEWER = "viewer"

PROJECT_ROLE_MANAGER = "project_manager"
PROJECT_ROLE_MEMBER = "project_member"
PROJECT_ROLE_VIEWER = "project_viewer"
PROJECT_ROLE_CLIENT = "project_client"


_READ_ONLY = [
    USER_READ,
    ORGANIZATION_READ,
    PROJECT_READ,
    TASK_READ,
    TEAM_READ,
    TIME_TRACKING_READ,
    REPORTING_VIEW,
    EPIC_VIEW,
    EPIC_READ,
    SPRINT_VIEW,
    SPRINT_READ,
    STORY_READ,
    BACKLOG_READ,
]

_MANAGER = [
    USER_CREATE,
    USER_READ,
    USER_UPDATE,
    USER_DELETE,
    USER_INVITE,
    USER_ACTIVATE,
    USER_DEACTIVATE,
    USER_MANAGE_ROLES,
    ORGANIZATION_READ,
    ORGANIZATION_UPDATE,
    ORGANIZATION_MANAGE_SETTINGS,
    PROJECT_CREATE,
    PROJECT_READ,
    PROJECT_UPDATE,
    PROJECT_DELETE,
    PROJECT_MANAGE_TEAM,
    PROJECT_ARCHIVE,
    PROJECT_RESTORE,
    PROJECT_VIEW_ALL,
    TASK_CREATE,
    TASK_READ,
    TASK_UPDATE,
    TASK_DELETE,
    TASK_ASSIGN,
    TASK_CHANGE_STATUS,
    TASK_MANAGE_COMMENTS,
    TASK_VIEW_ALL,
    TASK_EDIT_ALL,
    TASK_DELETE_ALL,
    TEAM_READ,
    TEAM_INVITE,
    TEAM_DELETE,
    TEAM_REMOVE,
    TEAM_MANAGE_PERMISSIONS,
    TIME_TRACKING_CREATE,
    TIME_TRACKING_READ,
    TIME_TRACKING_DELETE,
    TIME_TRACKING_APPROVE,
    TIME_TRACKING_EXPORT,
    TIME_TRACKING_VIEW_ALL,
    TIME_TRACKING_VIEW_ALL_TIMER,
    REPORTING_VIEW,
    REPORTING_CREATE,
    REPORTING_EXPORT,
    REPORTING_SHARE,
    SETTINGS_UPDATE,
    EPIC_CREATE,
    EPIC_VIEW,
    EPIC_READ,
    EPIC_UPDATE,
    EPIC_DELETE,
    EPIC_VIEW_ALL,
    SPRINT_CREATE,
    SPRINT_VIEW,
    SPRINT_READ,
    SPRINT_UPDATE,
    SPRINT_DELETE,
    SPRINT_MANAGE,
    SPRINT_VIEW_ALL,
    SPRINT_START,
    SPRINT_COMPLETE,
    STORY_CREATE,
    STORY_READ,
    STORY_UPDATE,
    STORY_DELETE,
    STORY_VIEW_ALL,
    STORY_MANAGE_ALL,
    BACKLOG_READ,
    BACKLOG_MANAGE,
]

ROLE_PERMISSIONS: dict[str, list[str]] = {
    ROLE_SUPER_ADMIN: list(ALL_PERMISSIONS),
    ROLE_ADMIN: [p for p in ALL_PERMISSIONS if p != ORGANIZATION_DELETE],
    ROLE_HUMAN_RESOURCE: _MANAGER + [TIME_TRACKING_UPDATE, TIME_TRACKING_VIEW_ASSIGNED, SETTINGS_VIEW],
    ROLE_PROJECT_MANAGER: list(_MANAGER),
    ROLE_TEAM_MEMBER: [
        USER_READ,
        ORGANIZATION_READ,
        PROJECT_READ,
        TASK_READ,
        TASK_UPDATE,
        TASK_CHANGE_STATUS,
        TASK_MANAGE_COMMENTS,
        STORY_READ,
        TEAM_READ,
        TIME_TRACKING_CREATE,
        TIME_TRACKING_READ,
        TIME_TRACKING_DELETE,
        REPORTING_VIEW,
        EPIC_VIEW,
        EPIC_READ,
        SPRINT_VIEW,
        SPRINT_READ,
        BACKLOG_READ,
    ],
    ROLE_CLIENT: list(_READ_ONLY),
    ROLE_VIEWER: list(_READ_ONLY),
}

PROJECT_ROLE_PERMISSIONS: dict[str, list[str]] = {
    PROJECT_ROLE_MANAGER: [
        PROJECT_READ,
        PROJECT_UPDATE,
        PROJECT_MANAGE_TEAM,
        TASK_CREATE,
        TASK_READ,
        TASK_UPDATE,
        TASK_DELETE,
        TASK_ASSIGN,
        TASK_CHANGE_STATUS,
        TASK_MANAGE_COMMENTS,
        TEAM_READ,
        TEAM_INVITE,
        TEAM_REMOVE,
        TIME_TRACKING_READ,
        TIME_TRACKING_APPROVE,
        TIME_TRACKING_EXPORT,
        EPIC_CREATE,
        EPIC_VIEW,
        EPIC_READ,
        EPIC_UPDATE,
        EPIC_DELETE,
        SPRINT_CREATE,
        SPRINT_VIEW,
        SPRINT_READ,
        SPRINT_UPDATE,
        SPRINT_DELETE,
        SPRINT_MANAGE,
        SPRINT_START,
        SPRINT_COMPLETE,
        STORY_CREATE,
        STORY_READ,
        STORY_UPDATE,
        STORY_DELETE,
        BACKLOG_READ,
        BACKLOG_MANAGE,
    ],
    PROJECT_ROLE_MEMBER: [
        PROJECT_READ,
        TASK_CREATE,
        TASK_READ,
        TASK_UPDATE,
        TASK_CHANGE_STATUS,
        TASK_MANAGE_COMMENTS,
        TEAM_READ,
        TIME_TRACKING_CREATE,
        TIME_TRACKING_READ,
        TIME_TRACKING_DELETE,
        EPIC_READ,
        SPRINT_VIEW,
        SPRINT_READ,
        STORY_CREATE,
        STORY_READ,
        STORY_UPDATE,
        BACKLOG_READ,
    ],
    PROJECT_ROLE_VIEWER: [
        PROJECT_READ,
        TASK_READ,
        TEAM_READ,
        TIME_TRACKING_READ,
        EPIC_READ,
        SPRINT_VIEW,
        SPRINT_READ,
        STORY_READ,
        BACKLOG_READ,
    ],
}
PROJECT_ROLE_PERMISSIONS[PROJECT_ROLE_CLIENT] = list(PROJECT_ROLE_PERMISSIONS[PROJECT_ROLE_VIEWER])


SCOPE_GLOBAL = "global"
SCOPE_PROJECT = "project"
SCOPE_OWN = "own"

GLOBAL_PERMISSIONS = frozenset(
    {
        USER_CREATE,
        USER_DELETE,
        USER_INVITE,
        USER_MANAGE_ROLES,
        ORGANIZATION_UPDATE,
        ORGANIZATION_DELETE,
        ORGANIZATION_MANAGE_SETTINGS,
        PROJECT_CREATE,
        PROJECT_VIEW_ALL,
        TASK_VIEW_ALL,
        TASK_EDIT_ALL,
        TASK_DELETE_ALL,
        EPIC_VIEW,
        EPIC_READ,
        EPIC_VIEW_ALL,
        STORY_VIEW_ALL,
        SPRINT_VIEW,
        SPRINT_READ,
        SPRINT_VIEW_ALL,
        TEAM_INVITE,
        TEAM_EDIT,
        TEAM_REMOVE,
        TEAM_DELETE,
        TIME_TRACKING_VIEW_ALL,
        TIME_TRACKING_VIEW_ASSIGNED,
        TIME_TRACKING_VIEW_ALL_TIMER,
        REPORTING_VIEW,
        REPORTING_CREATE,
        REPORTING_EXPORT,
        REPORTING_SHARE,
        SETTINGS_MANAGE_EMAIL,
        SETTINGS_MANAGE_DATABASE,
        SETTINGS_MANAGE_SECURITY,
    }
)

OWN_PERMISSIONS = frozenset(
    {
        USER_READ,
        USER_UPDATE,
        TIME_TRACKING_CREATE,
        TIME_TRACKING_UPDATE,
        TIME_TRACKING_DELETE,
    }
)


def permission_scope(permission: str) -> str:
    if permission in GLOBAL_PERMISSIONS:
        return SCOPE_GLOBAL
    if permission in OWN_PERMISSIONS:
        return SCOPE_OWN
    return SCOPE_PROJECT
