"""Minimal listener example."""

import asyncio
import os

from hyco_websockets import RelayServerOptions, create_relay_listen_uri, create_relay_token, create_relayed_server

NAMESPACE = "contoso.servicebus.windows.net"
PATH = "echo"


async def echo(connection) -> None:
    async for message in connection:
        await connection.send(message)


async def main() -> None:
    uri = create_relay_listen_uri(NAMESPACE, PATH)
    options = RelayServerOptions(
        listen_uri=uri,
        token=lambda: create_relay_token(uri, "RootManageSharedAccessKey", os.environ["HYCO_SAS_KEY"]),
    )
    await create_relayed_server(options, echo).serve_forever()


if __name__ == "__main__":
    asyncio.run(main())
