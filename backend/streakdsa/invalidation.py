"""
Cache invalidation signal.

After any mutation of user-visible streak, gems or today state the engine
calls `emit(user_id, reason)`. Presentation layers register with
`subscribe`. A failing subscriber is logged and does not undo the mutation.
"""
import logging
from typing import Callable

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, str], None]

_subscribers: list[Subscriber] = []


def subscribe(fn: Subscriber) -> Subscriber:
    _subscribers.append(fn)
    return fn


def unsubscribe(fn: Subscriber) -> None:
    if fn in _subscribers:
        _subscribers.remove(fn)


def emit(user_id: str, reason: str) -> None:
    logger.debug("Invalidate %s... (%s)", user_id[:8], reason)
    for fn in list(_subscribers):
        try:
            fn(user_id, reason)
        except Exception as e:
            logger.error("Invalidation subscriber %r failed for %s...: %s", fn, user_id[:8], e)
