"""
Path helpers for the flat, ``/``-joined index keys.

The root's path is its bare name; every other path is the root name
followed by one segment per directory level.
"""

from typing import Optional

from .errors import InvalidArgumentError

SEPARATOR = "/"


def is_root_path(path: str) -> bool:
    return SEPARATOR not in path


def parent_path(path: str) -> str:
    """Parent of ``path``; the root is its own parent."""
    if SEPARATOR not in path:
        return path
    return path[: path.rindex(SEPARATOR)]


def entry_name(path: str) -> str:
    return path[path.rfind(SEPARATOR) + 1 :]


def join_path(base: str, name: str) -> str:
    return f"{base}{SEPARATOR}{name}"


def is_descendant(path: str, ancestor: str) -> bool:
    """True if ``path`` lies strictly below ``ancestor``."""
    return path.startswith(ancestor + SEPARATOR)


def is_at_or_under(path: str, ancestor: str) -> bool:
    return path == ancestor or is_descendant(path, ancestor)


def ensure_path(path: Optional[str]) -> str:
    """Reject empty or malformed paths before any store call is made."""
    if not path or not isinstance(path, str):
        raise InvalidArgumentError(f"Invalid path: {path!r}", path)
    if path.startswith(SEPARATOR) or path.endswith(SEPARATOR) or "//" in path:
        raise InvalidArgumentError(f"Invalid path: {path}", path)
    return path


def ensure_name(name: Optional[str], path: Optional[str] = None) -> str:
    """Reject names that are empty or would introduce a path separator."""
    if not name or not isinstance(name, str) or SEPARATOR in name or name in (".", ".."):
        raise InvalidArgumentError(f"Invalid name: {name!r}", path)
    return name


def split_name(name: str) -> tuple[str, str]:
    """Split ``name`` into (base, extension) at the last dot.

    >>> split_name("report.final.txt")
    ('report.final', '.txt')
    >>> split_name("Makefile")
    ('Makefile', '')
    """
    dot = name.rfind(".")
    if dot <= 0:
        return name, ""
    return name[:dot], name[dot:]
