"""
Cache-invalidation signals for the rendering layer.

Actions call `revalidate_path` after a successful write. Paths are kept in a
bounded log so a renderer can poll for what went stale, and any registered
listener is called synchronously.
"""

import logging
from collections import deque
from typing import Callable, List

logger = logging.getLogger(__name__)

MAX_RECENT = 500

_recent = deque(maxlen=MAX_RECENT)
_listeners: List[Callable[[str], None]] = []


def subscribe(listener: Callable[[str], None]):
    _listeners.append(listener)


def unsubscribe(listener: Callable[[str], None]):
    if listener in _listeners:
        _listeners.remove(listener)


def revalidate_path(*paths: str):
    for path in paths:
        if not path:
            continue
        _recent.append(path)
        logger.debug("revalidate %s", path)
        for listener in list(_listeners):
            try:
                listener(path)
            except Exception:
                # a broken listener must not undo the write that triggered it
                logger.exception("Revalidation listener failed for %s", path)


def recent_paths() -> List[str]:
    return list(_recent)


def reset():
    _recent.clear()
    _listeners.clear()
