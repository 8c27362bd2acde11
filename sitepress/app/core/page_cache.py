############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# page_cache.py: Rendered public page cache with path revalidation
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Public page cache.

Public listing/detail responses are cached by path and dropped when a post
mutation revalidates that path. Entries also expire after a TTL so pages pick
up changes made outside the admin actions (e.g. image optimization).
"""

import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, List, Optional

from sitepress.app.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class _Entry:
    value: Any
    stored_at: float


class PageCache:
    """In-process cache of rendered public pages keyed by path."""

    def __init__(self, ttl_seconds: float = 3600.0, history_size: int = 256):
        self._ttl = ttl_seconds
        self._entries: Dict[str, _Entry] = {}
        # Most recent revalidations only
        self._revalidated: Deque[str] = deque(maxlen=history_size)

    def get(self, path: str) -> Optional[Any]:
        """Return the cached page for path, or None when missing or stale."""
        entry = self._entries.get(path)
        if entry is None:
            return None
        if self._ttl and time.monotonic() - entry.stored_at > self._ttl:
            self._entries.pop(path, None)
            return None
        return entry.value

    def set(self, path: str, value: Any) -> None:
        """Store a rendered page."""
        self._entries[path] = _Entry(value=value, stored_at=time.monotonic())

    def invalidate(self, paths: Iterable[str]) -> List[str]:
        """
        Drop cached pages for each path.

        Returns:
            The paths that were revalidated, in order
        """
        revalidated = []
        for path in paths:
            self._entries.pop(path, None)
            revalidated.append(path)
        self._revalidated.extend(revalidated)
        if revalidated:
            logger.info("pages_revalidated", paths=revalidated)
        return revalidated

    def clear(self) -> None:
        """Drop every cached page."""
        self._entries.clear()

    @property
    def revalidated_paths(self) -> List[str]:
        """Most recently revalidated paths, oldest first (diagnostics)."""
        return list(self._revalidated)

    def __contains__(self, path: str) -> bool:
        return self.get(path) is not None

    def __len__(self) -> int:
        return len(self._entries)
