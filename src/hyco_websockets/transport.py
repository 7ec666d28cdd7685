"""Transport abstraction for relayed connections (websockets by default)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Protocol, runtime_checkable

from websockets import connect as connect_websocket
from websockets.exceptions import ConnectionClosedError

from .config import DEFAULT_PING_INTERVAL_SECONDS, DEFAULT_PING_TIMEOUT_SECONDS
from .protocol import (
    RelayServerOptions,
    RendezvousAccept,
    accept_from_message,
    connect_options,
    describe_uri,
    parse_control_message,
)

logger = logging.getLogger(__name__)

ConnectionHandler = Callable[[Any], Awaitable[None]]


@runtime_checkable
class RelayListener(Protocol):
    """Handle of a running listener returned by RelayTransport.listen."""

    async def close(self) -> None: ...
    async def wait_closed(self) -> None: ...


@runtime_checkable
class RelayTransport(Protocol):
    """Protocol for opening relayed connections and listening for inbound ones."""

    async def connect(self, address: str, options: Mapping[str, Any]) -> Any: ...
    async def listen(self, options: RelayServerOptions, handler: ConnectionHandler) -> RelayListener: ...


class WebsocketsListener:
    """Accept loop over a hybrid connection control channel.

    Each accept message opens the rendezvous websocket and runs handler on it;
    the rendezvous connection is closed once handler returns.
    """

    def __init__(
        self,
        control: Any,
        handler: ConnectionHandler,
        open_rendezvous: Callable[[str], Awaitable[Any]],
    ) -> None:
        self._control = control
        self._handler = handler
        self._open_rendezvous = open_rendezvous
        self._connection_tasks: set[asyncio.Task[None]] = set()
        self._task: asyncio.Task[None] = asyncio.create_task(self._run())

    async def _run(self) -> None:
        try:
            async for raw in self._control:
                try:
                    message = parse_control_message(raw)
                    accept = accept_from_message(message)
                except ValueError as exc:
                    logger.warning("Invalid control message: %s", exc)
                    continue
                if accept is None:
                    logger.debug("Ignoring control message: %s", ", ".join(message))
                    continue
                task = asyncio.create_task(self._accept(accept))
                self._connection_tasks.add(task)
                task.add_done_callback(self._connection_tasks.discard)
        except ConnectionClosedError as exc:
            logger.warning("Relay control channel closed: %s", exc)
        except Exception as exc:
            logger.exception("Relay listener failed: %s", exc)
        finally:
            await self._control.close()
        logger.info("Relay listener stopped")

    async def _accept(self, accept: RendezvousAccept) -> None:
        connection_id = accept.get("id")
        try:
            connection = await self._open_rendezvous(accept["address"])
        except Exception as exc:
            logger.exception("Failed to open rendezvous connection (id=%s): %s", connection_id, exc)
            return
        logger.info("Accepted relayed connection (id=%s)", connection_id)
        try:
            await self._handler(connection)
        except Exception as exc:
            logger.exception("Relayed connection handler failed (id=%s): %s", connection_id, exc)
        finally:
            await connection.close()

    async def close(self) -> None:
        """Stop accepting and cancel handlers of connections still open."""

        tasks = [self._task, *self._connection_tasks]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def wait_closed(self) -> None:
        """Wait for the control channel to close and every accepted connection to finish."""

        await asyncio.wait({self._task})
        if self._connection_tasks:
            await asyncio.wait(set(self._connection_tasks))


class WebsocketsTransport:
    """Default RelayTransport backed by the websockets library."""

    def __init__(
        self,
        *,
        ping_interval: float | None = DEFAULT_PING_INTERVAL_SECONDS,
        ping_timeout: float | None = DEFAULT_PING_TIMEOUT_SECONDS,
    ) -> None:
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout

    async def connect(self, address: str, options: Mapping[str, Any]) -> Any:
        kwargs: dict[str, Any] = {
            "ping_interval": self._ping_interval,
            "ping_timeout": self._ping_timeout,
        }
        kwargs.update(options)
        return await connect_websocket(address, **kwargs)

    async def listen(self, options: RelayServerOptions, handler: ConnectionHandler) -> WebsocketsListener:
        control = await self.connect(
            options.listen_uri,
            connect_options(options.resolve_token(), options.proxy),
        )
        logger.info("Listening on relay %s", describe_uri(options.listen_uri))
        rendezvous_options = connect_options(proxy=options.proxy)

        async def open_rendezvous(address: str) -> Any:
            return await self.connect(address, rendezvous_options)

        return WebsocketsListener(control, handler, open_rendezvous)
