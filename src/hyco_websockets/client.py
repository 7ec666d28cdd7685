"""Client-side relayed connection factory."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable

from .protocol import connect_options, describe_uri
from .transport import RelayTransport, WebsocketsTransport

logger = logging.getLogger(__name__)

OpenListener = Callable[[Any], Any]


async def relayed_connect(
    address: str,
    token: str | None = None,
    *,
    proxy: Any = None,
    on_open: OpenListener | None = None,
    transport: RelayTransport | None = None,
    **connect_kwargs: Any,
) -> Any:
    """Open a websocket connection to a relay address.

    token is sent in the ServiceBusAuthorization header and proxy is handed to
    the transport. on_open, sync or async, runs once with the connection after
    the opening handshake; the connection is closed if on_open raises. Extra
    keyword arguments are passed to the transport, with additional_headers
    merged under the authorization header.
    """

    options = connect_options(token, proxy)
    extra_headers = connect_kwargs.pop("additional_headers", None)
    options.update(connect_kwargs)
    if extra_headers:
        options["additional_headers"] = {**dict(extra_headers), **options.get("additional_headers", {})}
    connection = await (transport or WebsocketsTransport()).connect(address, options)
    logger.info("Connected to relay %s", describe_uri(address))

    if callable(on_open):
        try:
            result = on_open(connection)
            if inspect.isawaitable(result):
                await result
        except BaseException:
            await connection.close()
            raise
    return connection
