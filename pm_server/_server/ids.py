from __future__ import annotations


def parse_path_id(path: str, suffix: str = "") -> int:
    core = path if not suffix else path[: -len(suffix)]
    parts = core.rstrip("/").split("/")
    return int(parts[-1])


def match_item_path(path: str, prefix: str, suffix: str = "") -> bool:
    """True for ``{prefix}{id}{suffix}`` where id is a single path segment."""
    if not path.startswith(prefix) or not path.endswith(suffix):
        return False
    middle = path[len(prefix) : len(path) - len(suffix)] if suffix else path[len(prefix) :]
    return bool(middle) and "/" not in middle
