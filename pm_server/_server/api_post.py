from __future__ import annotations

from . import (
    api_post_admin,
    api_post_auth,
    api_post_notifications,
    api_post_projects,
    api_post_sprints,
    api_post_time_tracking,
    api_post_work_items,
)


def handle(handler, path: str, query: str) -> bool:
    for mod in (
        api_post_auth,
        api_post_admin,
        api_post_projects,
        api_post_work_items,
        api_post_sprints,
        api_post_time_tracking,
        api_post_notifications,
    ):
        if mod.try_handle(handler, path, query):
            return True
    return False
