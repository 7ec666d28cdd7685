from __future__ import annotations

import asyncio
import hmac
import json
import socket
import time
from typing import Any, Awaitable, Callable

import pytest
import uvicorn
from fastapi import FastAPI, WebSocket
from fastapi.websockets import WebSocketDisconnect
from websockets.exceptions import InvalidHandshake

from hyco_websockets.client import relayed_connect
from hyco_websockets.protocol import RelayServerOptions
from hyco_websockets.sas import SasToken, create_relay_token, sign
from hyco_websockets.server import create_relayed_server

KEY_NAME = "RootManageSharedAccessKey"
KEY = "integration-secret"


def _get_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _wait_for(predicate: Callable[[], bool], timeout_seconds: float = 5.0) -> None:
    start = asyncio.get_running_loop().time()
    while True:
        if predicate():
            return
        if asyncio.get_running_loop().time() - start > timeout_seconds:
            raise TimeoutError("Timed out waiting for condition")
        await asyncio.sleep(0.05)


async def _start_server(app: FastAPI, *, port: int) -> tuple[uvicorn.Server, Awaitable[None]]:
    config = uvicorn.Config(
        app,
        host="127.0.0.1",
        port=port,
        log_level="warning",
        lifespan="on",
    )
    server = uvicorn.Server(config)
    task = asyncio.create_task(server.serve())
    await _wait_for(lambda: server.started)
    return server, task


async def _stop_server(server: uvicorn.Server, task: Awaitable[None]) -> None:
    server.should_exit = True
    await asyncio.wait_for(task, timeout=5)


def _is_authorized(token: str | None) -> bool:
    if not token:
        return False
    try:
        parsed = SasToken.parse(token)
    except ValueError:
        return False
    if parsed.key_name != KEY_NAME or parsed.is_expired(time.time()):
        return False
    return hmac.compare_digest(parsed.signature, sign(parsed.resource, parsed.expiry, KEY))


def _build_relay_app(port: int) -> tuple[FastAPI, dict[str, Any]]:
    """Stand-in relay: checks SAS tokens, echoes senders and hands listeners a rendezvous."""

    app = FastAPI()
    state: dict[str, Any] = {"actions": [], "replies": []}

    @app.websocket("/$hc/{path}")
    async def hybrid_connection(websocket: WebSocket, path: str) -> None:
        if not _is_authorized(websocket.headers.get("ServiceBusAuthorization")):
            await websocket.close(code=1008)
            return
        action = websocket.query_params.get("sb-hc-action")
        state["actions"].append((path, action))
        await websocket.accept()
        try:
            if action == "connect":
                message = await websocket.receive_text()
                await websocket.send_text(f"relay:{message}")
                return
            await websocket.send_text(json.dumps({"renewToken": {"token": "ignored"}}))
            accept = {
                "accept": {
                    "address": f"ws://127.0.0.1:{port}/rendezvous/{path}",
                    "id": "rendezvous-1",
                    "connectHeaders": {},
                }
            }
            await websocket.send_text(json.dumps(accept))
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass

    @app.websocket("/rendezvous/{path}")
    async def rendezvous(websocket: WebSocket, path: str) -> None:
        await websocket.accept()
        await websocket.send_text(f"hello:{path}")
        try:
            state["replies"].append(await websocket.receive_text())
        except WebSocketDisconnect:
            pass

    return app, state


@pytest.mark.asyncio
async def test_relayed_connect_roundtrip_and_rejection() -> None:
    port = _get_free_port()
    app, state = _build_relay_app(port)
    server, task = await _start_server(app, port=port)
    address = f"ws://127.0.0.1:{port}/$hc/echo?sb-hc-action=connect"
    try:
        token = create_relay_token(address, KEY_NAME, KEY)
        opened: list[Any] = []
        connection = await relayed_connect(address, token, on_open=opened.append, ping_interval=None)
        try:
            assert opened == [connection]
            await connection.send("ping")
            assert await connection.recv() == "relay:ping"
        finally:
            await connection.close()
        assert state["actions"] == [("echo", "connect")]

        bad_token = create_relay_token(address, KEY_NAME, "wrong-key")
        with pytest.raises(InvalidHandshake):
            await relayed_connect(address, bad_token)

        with pytest.raises(InvalidHandshake):
            await relayed_connect(address)
    finally:
        await _stop_server(server, task)


@pytest.mark.asyncio
async def test_relayed_server_accepts_rendezvous_connection() -> None:
    port = _get_free_port()
    app, state = _build_relay_app(port)
    server, task = await _start_server(app, port=port)
    listen_uri = f"ws://127.0.0.1:{port}/$hc/echo?sb-hc-action=listen"

    async def on_connection(connection: Any) -> None:
        greeting = await connection.recv()
        await connection.send(f"echo:{greeting}")

    relayed = create_relayed_server(
        RelayServerOptions(
            listen_uri=listen_uri,
            token=lambda: create_relay_token(listen_uri, KEY_NAME, KEY),
        ),
        on_connection,
    )
    try:
        await relayed.start()
        await _wait_for(lambda: state["replies"] == ["echo:hello:echo"])
        assert state["actions"] == [("echo", "listen")]
    finally:
        await relayed.close()
        await _stop_server(server, task)
