"""
Build/vendor directory filter.
"""

from ..paths import SEPARATOR
from .defaults import VENDOR_DIRECTORY_NAMES


class DistFilter:
    """Excludes any path below the root that passes through a build/vendor directory."""

    def __init__(self, names=VENDOR_DIRECTORY_NAMES) -> None:
        self.names = frozenset(names)

    async def ignore(self, path: str, handle) -> bool:
        segments = path.split(SEPARATOR)[1:]
        return any(segment in self.names for segment in segments)


async def dist_filter() -> DistFilter:
    return DistFilter()
