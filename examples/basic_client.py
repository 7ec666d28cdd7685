"""Minimal sender example."""

import asyncio
import os

from hyco_websockets import create_relay_send_uri, create_relay_token, relayed_connect

NAMESPACE = "contoso.servicebus.windows.net"
PATH = "echo"


async def send() -> None:
    uri = create_relay_send_uri(NAMESPACE, PATH)
    token = create_relay_token(uri, "RootManageSharedAccessKey", os.environ["HYCO_SAS_KEY"])
    async with await relayed_connect(uri, token) as connection:
        await connection.send("hello")
        print(await connection.recv())


if __name__ == "__main__":
    asyncio.run(send())
