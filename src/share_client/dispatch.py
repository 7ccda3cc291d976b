"""Non-blocking dispatch of share requests.

``dispatch`` schedules one request on the running event loop and returns the
task immediately. When the request finishes, exactly one ``ShareEvent`` is
emitted on the given bus: the one built by ``on_success`` from the response,
or ``share.error`` built from the ``OcsError``. The task resolves to that
same event.

The coroutine built by ``request`` is the request's continuation: whatever
call parameters it closes over are private to it and are dropped with it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from .events import SERVER_ERROR, EventBus, ShareEvent
from .ocs.errors import OcsError

logger = logging.getLogger(__name__)

# Strong references so in-flight tasks are not garbage collected.
_in_flight: set[asyncio.Task[ShareEvent]] = set()


def error_event(source: Any, error: OcsError) -> ShareEvent:
    return ShareEvent(
        event_type=SERVER_ERROR,
        source=source,
        code=error.status_code,
        message=error.message,
    )


def dispatch(
    request: Callable[[], Awaitable[Any]],
    *,
    bus: EventBus,
    source: Any,
    on_success: Callable[[Any], ShareEvent],
    on_error: Callable[[OcsError], ShareEvent] | None = None,
    name: str | None = None,
) -> asyncio.Task[ShareEvent]:
    """Schedule ``request`` and route its outcome to ``bus``.

    ``on_success`` may raise ``OcsError`` (e.g. a malformed record), which is
    reported like any other failure. ``on_error`` defaults to a plain
    ``share.error`` event.

    Must be called with a running event loop.
    """
    loop = asyncio.get_running_loop()

    async def run() -> ShareEvent:
        try:
            result = await request()
            event = on_success(result)
        except OcsError as e:
            logger.warning(
                'Share request %s failed: %s',
                name or 'request',
                e,
                extra={'status_code': e.status_code},
            )
            event = on_error(e) if on_error is not None else error_event(source, e)
        return bus.emit(event)

    task = loop.create_task(run(), name=name)
    _in_flight.add(task)
    task.add_done_callback(_in_flight.discard)
    return task


def in_flight_count() -> int:
    """Number of dispatched requests that have not finished yet."""
    return len(_in_flight)
