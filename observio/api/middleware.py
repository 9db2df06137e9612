"""
Request lifetime middleware.

Bounds each HTTP request by a time budget and by the client connection. The
handler runs in its own task; it is cancelled when the budget expires or when
the client disconnects before the response is complete. Cancellation lets the
connector kill the running engine query. On expiry the client gets a 504 with
the common error body; a disconnected client gets nothing.
"""

import asyncio
import contextlib
import json
import logging

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Request timed out"


class RequestTimeoutMiddleware:
    """Pure ASGI middleware; only HTTP scopes are bounded."""

    def __init__(self, app: ASGIApp, timeout_seconds: float):
        self.app = app
        self.timeout_seconds = timeout_seconds

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False
        response_complete = False
        client_gone = False
        # Only the watcher reads from the server; the app reads from this queue
        inbox: asyncio.Queue[Message] = asyncio.Queue()

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started, response_complete
            if message["type"] == "http.response.start":
                response_started = True
            elif message["type"] == "http.response.body" and not message.get("more_body"):
                response_complete = True
            await send(message)

        async def receive_wrapper() -> Message:
            message = await inbox.get()
            if message["type"] == "http.disconnect":
                # Later reads must keep seeing the disconnect
                inbox.put_nowait(message)
            return message

        handler = asyncio.create_task(self.app(scope, receive_wrapper, send_wrapper))

        async def watch_disconnect() -> None:
            nonlocal client_gone
            while True:
                message = await receive()
                await inbox.put(message)
                if message["type"] == "http.disconnect":
                    if not response_complete and not handler.done():
                        client_gone = True
                        handler.cancel()
                    return

        watcher = asyncio.create_task(watch_disconnect())

        try:
            done, _ = await asyncio.wait({handler}, timeout=self.timeout_seconds)
        finally:
            watcher.cancel()
            if not handler.done():
                handler.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher

        if handler in done:
            if handler.cancelled():
                if client_gone:
                    logger.info(
                        f"Client left during {scope.get('method')} {scope.get('path')}; "
                        "request cancelled"
                    )
                    return
                raise asyncio.CancelledError()
            # Re-raise anything the app raised
            handler.result()
            return

        with contextlib.suppress(asyncio.CancelledError):
            await handler

        logger.warning(
            f"Request {scope.get('method')} {scope.get('path')} timed out "
            f"after {self.timeout_seconds}s"
        )
        if response_started:
            # Headers are already out; nothing more can be sent
            return
        await self._send_timeout(send)

    @staticmethod
    async def _send_timeout(send: Send) -> None:
        body = json.dumps({"error": TIMEOUT_MESSAGE}).encode("utf-8")
        await send(
            {
                "type": "http.response.start",
                "status": 504,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode("latin-1")),
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
