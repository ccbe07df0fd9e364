from __future__ import annotations

import asyncio
from typing import Any

from starlette.websockets import WebSocket


class WebSocketChannel:
    """
    Adapts a Starlette WebSocket to the registry's sync `Channel` protocol.

    Sends are issued from dispatcher worker threads, so they are scheduled onto
    the event loop that owns the socket and awaited with a bound.
    """

    def __init__(self, websocket: WebSocket, loop: asyncio.AbstractEventLoop, *, send_timeout_s: float = 2.0):
        self._ws = websocket
        self._loop = loop
        self._send_timeout_s = send_timeout_s

    def send(self, payload: dict[str, Any]) -> None:
        fut = asyncio.run_coroutine_threadsafe(self._ws.send_json(payload), self._loop)
        try:
            fut.result(timeout=self._send_timeout_s)
        except BaseException:
            fut.cancel()
            raise
