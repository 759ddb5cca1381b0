"""Request/response channel between page sessions and the background service.

Requests are ``{type, data}``; responses are ``{success, data}`` or
``{success: false, error}``. The background side handles one message at a
time and always answers, even when a handler fails. The page side never
waits forever: if the background service is down, or goes down while a
request is in flight, ``send`` raises ``ChannelUnavailableError``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from applytrack.errors import ChannelUnavailableError, MessageTimeoutError

logger = logging.getLogger(__name__)

# Message catalogue
JOB_APPLICATION = "JOB_APPLICATION"
EXTERNAL_APPLY_CACHED = "EXTERNAL_APPLY_CACHED"
UPDATE_BADGE = "UPDATE_BADGE"
CLEAR_BADGE = "CLEAR_BADGE"
RETRY_FAILED = "RETRY_FAILED"
GET_FAILED_COUNT = "GET_FAILED_COUNT"

NO_RECEIVER = "Could not establish connection. Receiving end does not exist."

Handler = Callable[[dict], Union[Any, Awaitable[Any]]]


@dataclass
class Message:
    type: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, "data": self.data}


@dataclass
class Response:
    success: bool
    data: Any = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"success": self.success}
        if self.success:
            d["data"] = self.data
        else:
            d["error"] = self.error
        return d


class MessageBus:
    """In-process stand-in for the two-context runtime messaging channel."""

    def __init__(self, request_timeout: Optional[float] = 30.0):
        self.request_timeout = request_timeout
        self._handlers: dict[str, Handler] = {}
        self._inbox: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._in_flight: set[asyncio.Future] = set()

    # ------------------------------------------------------------------
    # Receiving side
    # ------------------------------------------------------------------

    def register_handlers(self, handlers: dict[str, Handler]) -> None:
        self._handlers.update(handlers)
        logger.debug("Registered handlers: %s", ", ".join(sorted(handlers)))

    @property
    def alive(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start accepting messages. Must be called from a running event loop."""
        if self.alive:
            return
        self._inbox = asyncio.Queue()
        self._worker = asyncio.ensure_future(self._serve(self._inbox))
        logger.info("Message bus started")

    async def stop(self) -> None:
        """Tear the receiving side down; pending and future requests fail fast."""
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

        for reply in list(self._in_flight):
            if not reply.done():
                reply.set_exception(ChannelUnavailableError(NO_RECEIVER))
        self._in_flight.clear()
        self._inbox = None
        logger.info("Message bus stopped")

    async def _serve(self, inbox: asyncio.Queue) -> None:
        while True:
            message, reply = await inbox.get()
            try:
                response = await self.dispatch(message)
            finally:
                inbox.task_done()
            if not reply.done():
                reply.set_result(response)

    async def dispatch(self, message: Message) -> Response:
        """Run the handler for ``message`` and wrap its outcome in a response."""
        handler = self._handlers.get(message.type)
        if handler is None:
            logger.warning("No handler for message type %s", message.type)
            return Response(success=False, error=f"Unknown message type: {message.type}")

        try:
            result = handler(message.data)
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Handler for %s failed: %s", message.type, exc)
            return Response(success=False, error=str(exc) or exc.__class__.__name__)

        return Response(success=True, data=result)

    # ------------------------------------------------------------------
    # Sending side
    # ------------------------------------------------------------------

    async def send(self, type: str, data: Optional[dict] = None) -> Response:
        """Send a request and wait for its response.

        Raises ChannelUnavailableError if nothing is listening, if the
        receiver stops before answering, or (as MessageTimeoutError) if no
        answer arrives within ``request_timeout`` seconds.
        """
        if not self.alive or self._inbox is None:
            raise ChannelUnavailableError(NO_RECEIVER)

        reply: asyncio.Future = asyncio.get_running_loop().create_future()
        self._in_flight.add(reply)
        try:
            self._inbox.put_nowait((Message(type, data or {}), reply))
            if self.request_timeout is None:
                return await reply
            return await asyncio.wait_for(reply, self.request_timeout)
        except asyncio.TimeoutError:
            raise MessageTimeoutError(
                f"No response to {type} within {self.request_timeout:.0f}s"
            ) from None
        finally:
            self._in_flight.discard(reply)
