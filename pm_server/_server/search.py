"""Global search across projects, work items, sprints and users.

Scoring is against the item's title (or name): exact 100, prefix 90,
substring 70, close typo 60, every query word found 50.
"""

from __future__ import annotations

import re
import time
from typing import Any

from .. import db
from ..auth import AuthenticatedUser
from .permissions import accessible_project_ids
from .serializers import task_display_id


FILTER_KEYS = ("type", "status", "priority", "assignee", "project")
ENTITY_TYPES = ("project", "task", "story", "epic", "sprint", "user")
SORT_KEYS = ("score", "title", "createdAt")

_FILTER_RE = re.compile(r"\b(" + "|".join(FILTER_KEYS) + r"):(\w+)")
_TASK_DISPLAY_RE = re.compile(r"^\d+\.\d+$")


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j], current[j - 1], previous[j - 1]) + 1)
        previous = current
    return previous[-1]


def fuzzy_match(query: str, text: str) -> float:
    if not query:
        return 1.0
    if not text:
        return 0.0
    return 1 - levenshtein(query, text) / max(len(query), len(text))


def calculate_score(query: str, text: str) -> int:
    q = query.lower()
    t = text.lower()
    if t == q:
        return 100
    if t.startswith(q):
        return 90
    if q in t:
        return 70
    if fuzzy_match(q, t) > 0.7:
        return 60

    words = t.split()
    query_words = q.split()
    matched = 0
    for qw in query_words:
        if any(qw in w or w in qw for w in words):
            matched += 1
    if matched == len(query_words):
        return 50
    return 0


def generate_highlights(query: str, text: str) -> list[str]:
    lowered = text.lower()
    return [w for w in query.lower().split() if w in lowered]


def parse_query(query: str) -> tuple[str, dict[str, list[str]]]:
    filters: dict[str, list[str]] = {}
    for key, value in _FILTER_RE.findall(query):
        filters.setdefault(key, []).append(value.lower())
    text = " ".join(_FILTER_RE.sub(" ", query).split())
    return text, filters


def _empty_response(started: float, types: dict[str, int] | None = None) -> dict[str, Any]:
    return {
        "results": [],
        "total": 0,
        "aggregations": {"types": types or {}, "statuses": {}, "priorities": {}, "projects": {}},
        "suggestions": [],
        "took": int((time.perf_counter() - started) * 1000),
    }


def _result(
    *,
    kind: str,
    item_id: int,
    title: str,
    description: str,
    url: str,
    score: int,
    highlights: list[str],
    created_at: int,
    status: str | None = None,
    priority: str | None = None,
    project_id: int | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    metadata: dict[str, Any] = {"created_at": created_at}
    if status is not None:
        metadata["status"] = status
    if priority is not None:
        metadata["priority"] = priority
    if project_id is not None:
        metadata["project"] = project_id
    if extra:
        metadata.update(extra)
    return {
        "id": item_id,
        "type": kind,
        "title": title,
        "description": description,
        "url": url,
        "score": score,
        "highlights": highlights,
        "metadata": metadata,
    }


def _contains(needle: str, *values: Any) -> bool:
    return any(needle in str(v).lower() for v in values if v)


def _wanted(filters: dict[str, list[str]], kind: str) -> bool:
    types = filters.get("type")
    return not types or kind in types


def _fast_path(conn, user: AuthenticatedUser, query: str, limit: int, started: float) -> dict[str, Any] | None:
    if query.isdigit():
        project = db.get_project_by_number(conn, user.organization_id, int(query))
        results = []
        if project and int(project["id"]) in set(accessible_project_ids(conn, user)):
            results.append(
                _result(
                    kind="project",
                    item_id=int(project["id"]),
                    title=str(project["name"]),
                    description=str(project["description"]),
                    url=f"/projects/{int(project['id'])}",
                    score=100,
                    highlights=[query],
                    created_at=int(project["created_at"]),
                    status=str(project["status"]),
                )
            )
        out = _empty_response(started, {"project": len(results)})
        out.update({"results": results[:limit], "total": len(results)})
        return out

    if _TASK_DISPLAY_RE.match(query):
        project_number, task_number = (int(x) for x in query.split("."))
        task = db.get_task_by_display_id(conn, user.organization_id, project_number, task_number)
        results = []
        if task and int(task["project_id"]) in set(accessible_project_ids(conn, user)):
            results.append(
                _result(
                    kind="task",
                    item_id=int(task["id"]),
                    title=str(task["title"]),
                    description=str(task["description"]),
                    url=f"/tasks/{int(task['id'])}",
                    score=100,
                    highlights=[query],
                    created_at=int(task["created_at"]),
                    status=str(task["status"]),
                    priority=str(task["priority"]),
                    project_id=int(task["project_id"]),
                    extra={"display_id": task_display_id(task)},
                )
            )
        out = _empty_response(started, {"task": len(results)})
        out.update({"results": results[:limit], "total": len(results)})
        return out
    return None


def run_search(
    conn,
    user: AuthenticatedUser,
    query: str,
    *,
    limit: int = 20,
    offset: int = 0,
    sort_by: str = "score",
    sort_order: str = "desc",
    include_archived: bool = False,
) -> dict[str, Any]:
    started = time.perf_counter()
    query = query.strip()
    if sort_by not in SORT_KEYS:
        raise ValueError("invalid_sort")
    if sort_order not in ("asc", "desc"):
        raise ValueError("invalid_sort")

    if len(query) < 2 and not query.isdigit():
        return _empty_response(started)
    fast = _fast_path(conn, user, query, limit, started)
    if fast is not None:
        return fast

    text, filters = parse_query(query)
    needle = text.lower()
    project_ids = set(accessible_project_ids(conn, user, include_archived=include_archived))
    projects = {
        int(p["id"]): p for p in db.list_projects(conn, user.organization_id, include_archived=True) if int(p["id"]) in project_ids
    }
    project_filter = filters.get("project")
    if project_filter:
        scoped_ids = {
            pid
            for pid, p in projects.items()
            if any(f in str(p["name"]).lower() or f == str(p["project_number"]) for f in project_filter)
        }
    else:
        scoped_ids = set(projects)

    results: list[dict[str, Any]] = []

    def _add(kind: str, row, title: str, url: str, **meta: Any) -> None:
        description = str(row["description"] or "") if "description" in row.keys() else ""
        if needle and not _contains(needle, title, description):
            return
        score = calculate_score(text, title)
        if score <= 0:
            return
        results.append(
            _result(
                kind=kind,
                item_id=int(row["id"]),
                title=title,
                description=description,
                url=url,
                score=score,
                highlights=generate_highlights(text, title + " " + description),
                created_at=int(row["created_at"]),
                **meta,
            )
        )

    if _wanted(filters, "project"):
        for pid, p in projects.items():
            if pid not in scoped_ids:
                continue
            if not include_archived and bool(p["archived"]):
                continue
            _add("project", p, str(p["name"]), f"/projects/{pid}", status=str(p["status"]), priority=str(p["priority"]))

    if _wanted(filters, "task"):
        usernames = {int(u["id"]): str(u["username"]).lower() for u in db.list_users(conn, user.organization_id)}
        statuses = filters.get("status")
        priorities = filters.get("priority")
        assignees = filters.get("assignee")
        for t in db.list_tasks(
            conn, user.organization_id, project_ids=sorted(scoped_ids), include_archived=include_archived
        ):
            if statuses and str(t["status"]) not in statuses:
                continue
            if priorities and str(t["priority"]) not in priorities:
                continue
            if assignees:
                names = {usernames.get(int(uid), "") for uid in db.load_json(t["assigned_to_json"], [])}
                if not any(a in n for a in assignees for n in names if n):
                    continue
            _add(
                "task",
                t,
                str(t["title"]),
                f"/tasks/{int(t['id'])}",
                status=str(t["status"]),
                priority=str(t["priority"]),
                project_id=int(t["project_id"]),
                extra={"display_id": task_display_id(t)},
            )

    if _wanted(filters, "story"):
        for s in db.list_stories(conn, user.organization_id, include_archived=include_archived):
            if int(s["project_id"]) not in scoped_ids:
                continue
            _add(
                "story",
                s,
                str(s["title"]),
                f"/stories/{int(s['id'])}",
                status=str(s["status"]),
                priority=str(s["priority"]),
                project_id=int(s["project_id"]),
            )

    if _wanted(filters, "epic"):
        for e in db.list_epics(conn, user.organization_id, include_archived=include_archived):
            if int(e["project_id"]) not in scoped_ids:
                continue
            _add(
                "epic",
                e,
                str(e["title"]),
                f"/epics/{int(e['id'])}",
                status=str(e["status"]),
                priority=str(e["priority"]),
                project_id=int(e["project_id"]),
            )

    if _wanted(filters, "sprint"):
        for sp in db.list_sprints(conn, user.organization_id, project_ids=sorted(scoped_ids), include_archived=include_archived):
            _add(
                "sprint",
                sp,
                str(sp["name"]),
                f"/sprints/{int(sp['id'])}",
                status=str(sp["status"]),
                project_id=int(sp["project_id"]),
            )

    if _wanted(filters, "user") and not project_filter:
        for u in db.list_users(conn, user.organization_id):
            if not bool(u["is_active"]):
                continue
            full_name = str(u["display_name"] or u["username"])
            if needle and not _contains(needle, full_name, u["username"], u["email"], u["role"]):
                continue
            score = max(calculate_score(text, full_name), calculate_score(text, str(u["username"])))
            if score <= 0:
                continue
            results.append(
                _result(
                    kind="user",
                    item_id=int(u["id"]),
                    title=full_name,
                    description=str(u["email"] or u["role"]),
                    url=f"/team/members/{int(u['id'])}",
                    score=score,
                    highlights=generate_highlights(text, full_name),
                    created_at=int(u["created_at"]),
                    extra={"role": str(u["role"])},
                )
            )

    reverse = sort_order == "desc"
    if sort_by == "score":
        results.sort(key=lambda r: r["score"], reverse=reverse)
    elif sort_by == "title":
        results.sort(key=lambda r: r["title"].casefold(), reverse=reverse)
    else:
        results.sort(key=lambda r: r["metadata"]["created_at"], reverse=reverse)

    aggregations: dict[str, dict[str, int]] = {"types": {}, "statuses": {}, "priorities": {}, "projects": {}}
    for r in results:
        meta = r["metadata"]
        _bump(aggregations["types"], r["type"])
        if meta.get("status"):
            _bump(aggregations["statuses"], meta["status"])
        if meta.get("priority"):
            _bump(aggregations["priorities"], meta["priority"])
        if meta.get("project") is not None:
            _bump(aggregations["projects"], str(meta["project"]))

    suggestions = [s for s in (f"type:{query}", f"status:active {query}", f"priority:high {query}", f"project:{query}") if s != query]
    return {
        "results": results[offset : offset + limit],
        "total": len(results),
        "aggregations": aggregations,
        "suggestions": suggestions,
        "took": int((time.perf_counter() - started) * 1000),
    }


def _bump(counter: dict[str, int], key: str) -> None:
    counter[key] = counter.get(key, 0) + 1
