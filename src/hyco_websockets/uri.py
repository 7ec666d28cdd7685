"""Relay hybrid connection URI builders."""

from __future__ import annotations

import time
from urllib.parse import urlsplit, urlunsplit

from .config import (
    ACTION_CONNECT,
    ACTION_LISTEN,
    ACTION_QUERY_PARAM,
    HYBRID_CONNECTION_PATH_PREFIX,
    ID_QUERY_PARAM,
    RELAY_PORT,
    RELAY_SCHEME,
    TOKEN_QUERY_PARAM,
)
from .protocol import encode_uri_component
from .sas import Clock, create_relay_token


def append_relay_token(
    uri: str,
    key_name: str,
    key: str,
    expiration_seconds: int | None = None,
    *,
    clock: Clock = time.time,
) -> str:
    """Create a relay token for uri and append it as the sb-hc-token query parameter."""

    token = create_relay_token(uri, key_name, key, expiration_seconds, clock=clock)
    parts = urlsplit(uri)
    param = f"{TOKEN_QUERY_PARAM}={encode_uri_component(token)}"
    query = f"{parts.query}&{param}" if parts.query else param
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def create_relay_base_uri(namespace: str, path: str) -> str:
    """Return the wss URI of a hybrid connection, e.g. for 'contoso.servicebus.windows.net'."""

    return f"{RELAY_SCHEME}://{namespace}:{RELAY_PORT}/{HYBRID_CONNECTION_PATH_PREFIX}{path}"


def create_relay_send_uri(
    namespace: str,
    path: str,
    token: str | None = None,
    id: str | None = None,
) -> str:
    """Return a URI for sending to a hybrid connection endpoint.

    token authenticates the sender; id is an optional correlation GUID.
    """

    return _action_uri(namespace, path, ACTION_CONNECT, token, id)


def create_relay_listen_uri(
    namespace: str,
    path: str,
    token: str | None = None,
    id: str | None = None,
) -> str:
    """Return a URI for listening on a hybrid connection endpoint."""

    return _action_uri(namespace, path, ACTION_LISTEN, token, id)


def _action_uri(namespace: str, path: str, action: str, token: str | None, id: str | None) -> str:
    uri = create_relay_base_uri(namespace, path)
    uri = f"{uri}{'&' if '?' in uri else '?'}{ACTION_QUERY_PARAM}={action}"
    if token is not None:
        uri = f"{uri}&{TOKEN_QUERY_PARAM}={encode_uri_component(token)}"
    if id is not None:
        uri = f"{uri}&{ID_QUERY_PARAM}={encode_uri_component(id)}"
    return uri
