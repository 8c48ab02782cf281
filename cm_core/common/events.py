# cm_core/common/events.py
"""
In-process event bus between apps.

Publishers and subscribers only share event names and ID-based (string) payloads,
so `progression` never imports `audit` and vice versa.
"""
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Payload = Dict[str, Any]
Handler = Callable[[Payload], None]

_subscribers: Dict[str, List[Handler]] = defaultdict(list)


def subscribe(event_name: str):
    """
    Register `fn` for `event_name`; registering the same function twice is a no-op
    (app modules may be imported more than once under test runners).

        @subscribe("progression.stage_advanced")
        def on_stage_advanced(payload): ...
    """
    def _register(fn: Handler) -> Handler:
        if fn not in _subscribers[event_name]:
            _subscribers[event_name].append(fn)
        return fn
    return _register


def handlers_for(event_name: str) -> List[Handler]:
    return list(_subscribers.get(event_name, ()))


def publish(event_name: str, payload: Payload) -> int:
    """
    Call every handler of `event_name` in registration order and return how many ran.
    Handler errors propagate to the publisher.
    """
    handlers = handlers_for(event_name)
    logger.debug("Publishing %s to %d handler(s)", event_name, len(handlers))
    for handler in handlers:
        handler(payload)
    return len(handlers)
