"""Relay-aware websocket server."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

from .protocol import RelayServerOptions
from .transport import RelayListener, RelayTransport, WebsocketsTransport

logger = logging.getLogger(__name__)

ConnectionListener = Callable[[Any], Any]


class RelayedServer:
    """Accept websocket connections relayed through a hybrid connection.

    Every registered connection listener is called once per accepted
    connection; async listeners run concurrently and the connection is closed
    after all of them return.
    """

    def __init__(
        self,
        options: RelayServerOptions,
        *,
        transport: RelayTransport | None = None,
    ) -> None:
        self._options = options
        self._transport = transport or WebsocketsTransport()
        self._listeners: list[ConnectionListener] = []
        self._listener: RelayListener | None = None
        self._lock = asyncio.Lock()

    @property
    def options(self) -> RelayServerOptions:
        return self._options

    def is_listening(self) -> bool:
        return self._listener is not None

    def on_connection(self, listener: ConnectionListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        """Start listening on the relay. Calling start on a listening server does nothing."""

        async with self._lock:
            if self._listener is not None:
                return
            self._listener = await self._transport.listen(self._options, self._dispatch)

    async def close(self) -> None:
        async with self._lock:
            listener = self._listener
            self._listener = None
            if listener is None:
                return
            await listener.close()

    async def serve_forever(self) -> None:
        """Start listening and wait until the relay closes the control channel."""

        await self.start()
        listener = self._listener
        if listener is not None:
            await listener.wait_closed()

    async def __aenter__(self) -> RelayedServer:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _dispatch(self, connection: Any) -> None:
        pending = []
        for listener in list(self._listeners):
            try:
                result = listener(connection)
            except Exception as exc:
                logger.exception("Connection listener failed: %s", exc)
                continue
            if inspect.isawaitable(result):
                pending.append(result)
        if not pending:
            return
        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error("Connection listener failed: %s", result, exc_info=result)


def create_relayed_server(
    options: RelayServerOptions,
    on_connection: ConnectionListener | None = None,
    *,
    transport: RelayTransport | None = None,
) -> RelayedServer:
    """Create a RelayedServer, registering on_connection when it is callable.

    The server is returned without being started.
    """

    server = RelayedServer(options, transport=transport)
    if callable(on_connection):
        server.on_connection(on_connection)
    return server
