from __future__ import annotations

from . import (
    api_get_admin,
    api_get_backlog,
    api_get_cron,
    api_get_me,
    api_get_notifications,
    api_get_projects,
    api_get_search,
    api_get_sprints,
    api_get_time_tracking,
    api_get_work_items,
)


def handle(handler, path: str, query: str) -> bool:
    for mod in (
        api_get_me,
        api_get_admin,
        api_get_projects,
        api_get_work_items,
        api_get_sprints,
        api_get_backlog,
        api_get_search,
        api_get_time_tracking,
        api_get_cron,
        api_get_notifications,
    ):
        if mod.try_handle(handler, path, query):
            return True
    return False
