"""Dot-path walking helper shared by the resolver and processors."""

from __future__ import annotations

from typing import Any, List, Sequence

MISSING = object()


def split_path(path: str) -> List[str]:
    return [part.strip() for part in path.split(".") if part.strip()]


def walk_path(data: Any, parts: Sequence[str]) -> Any:
    """Walk ``parts`` over ``data``; returns ``MISSING`` at the first absent segment."""
    cur = data
    for part in parts:
        if isinstance(cur, dict):
            if part not in cur:
                return MISSING
            cur = cur[part]
        elif isinstance(cur, (list, tuple)):
            if not part.isdigit():
                return MISSING
            idx = int(part)
            if idx >= len(cur):
                return MISSING
            cur = cur[idx]
        else:
            return MISSING
    return cur


def get_path(data: Any, path: str) -> Any:
    if not path:
        return data
    value = walk_path(data, split_path(path))
    return None if value is MISSING else value


__all__ = ["MISSING", "split_path", "walk_path", "get_path"]
