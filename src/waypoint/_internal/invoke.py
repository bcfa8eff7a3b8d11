"""Invoke helpers — call sync or async handlers uniformly.

Route handlers can be ``def`` or ``async def``. The sync/async check
lives here and nowhere else.

Usage::

    from waypoint._internal.invoke import invoke

    result = await invoke(route.handler, context)
    result = await invoke(route.handler, context, threaded=True)
"""

import functools
import inspect
from typing import Any

import anyio.to_thread


async def invoke(handler: Any, *args: Any, threaded: bool = False, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable.

    With *threaded*, plain ``def`` handlers run in an anyio worker thread
    so blocking work does not stall the event loop.
    """
    if threaded and not inspect.iscoroutinefunction(handler):
        call = functools.partial(handler, *args, **kwargs)
        result = await anyio.to_thread.run_sync(call, abandon_on_cancel=True)
    else:
        result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
