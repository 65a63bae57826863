from __future__ import annotations

from ._db.connection import connect, dump_json, load_json
from ._db.epics_stories import (
    create_epic,
    create_story,
    delete_epic,
    delete_story,
    get_epic,
    get_story,
    list_epics,
    list_stories,
    update_epic,
    update_story,
)
from ._db.notifications import (
    count_unread_notifications,
    create_notifications,
    list_notifications,
    mark_all_notifications_read,
    mark_notification_read,
)
from ._db.orgs import (
    create_organization,
    get_org_time_tracking_defaults,
    get_organization,
    set_org_time_tracking_defaults,
    update_organization,
)
from ._db.projects import (
    create_project,
    get_org_project,
    get_project,
    get_project_by_number,
    get_project_member,
    list_member_project_ids,
    list_project_members,
    list_projects,
    remove_project_member,
    set_project_member,
    update_project,
)
from ._db.rbac import ensure_default_roles, list_roles, role_exists, role_permission_set, save_role
from ._db.schema import init_db
from ._db.sprints import create_sprint, delete_sprint, get_sprint, list_sprints, update_sprint
from ._db.tasks import (
    add_task_comment,
    create_task,
    delete_task,
    get_task,
    get_task_by_display_id,
    list_task_comments,
    list_tasks,
    update_task,
)
from ._db.time_tracking import (
    create_time_entry,
    create_timer,
    delete_time_entry,
    delete_timer,
    get_active_timer,
    get_settings_record,
    get_time_entry,
    list_active_timers,
    list_entry_owners,
    list_time_entries,
    save_settings_record,
    set_entries_approval,
    update_time_entry,
    update_timer,
)
from ._db.users import (
    create_session,
    create_user,
    delete_session,
    get_org_user,
    get_session_with_user,
    get_user_by_id,
    get_user_by_username,
    list_users,
    set_password_hash,
    update_user,
)
