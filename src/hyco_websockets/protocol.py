"""Shared protocol definitions for relayed websockets."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, TypedDict, Union
from urllib.parse import quote, unquote, urlsplit

from .config import AUTHORIZATION_HEADER

# Characters encodeURIComponent leaves alone in addition to alphanumerics and "-_.~".
_URI_COMPONENT_SAFE = "!*'()"

TokenSource = Union[str, Callable[[], str], None]


@dataclass(frozen=True)
class RelayServerOptions:
    """Settings for a relayed server.

    token may be a callable so every listener connection gets a freshly minted token.
    """

    listen_uri: str
    token: TokenSource = None
    proxy: Any = None

    def resolve_token(self) -> str | None:
        if callable(self.token):
            return self.token()
        return self.token


class RendezvousAccept(TypedDict, total=False):
    address: str
    id: str
    connectHeaders: dict[str, str]


def encode_uri_component(value: str) -> str:
    """Percent-encode a value the way relay tokens and query strings expect."""

    return quote(value, safe=_URI_COMPONENT_SAFE)


def decode_uri_component(value: str) -> str:
    return unquote(value)


def connect_options(token: str | None = None, proxy: Any = None) -> dict[str, Any]:
    """Build websockets connect keyword arguments for a relayed connection."""

    options: dict[str, Any] = {}
    if token is not None:
        options["additional_headers"] = {AUTHORIZATION_HEADER: token}
    if proxy is not None:
        options["proxy"] = proxy
    return options


def describe_uri(uri: str) -> str:
    """Return uri without its query string, for logging without leaking tokens."""

    parts = urlsplit(uri)
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


def parse_control_message(raw: str | bytes) -> dict[str, Any]:
    """Decode a listener control channel message.

    Raises ValueError when the payload is not a JSON object.
    """

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    message = json.loads(raw)
    if not isinstance(message, dict):
        raise ValueError("Control message must be a JSON object.")
    return message


def accept_from_message(message: dict[str, Any]) -> RendezvousAccept | None:
    """Return the accept payload of a control message, or None for other message kinds."""

    accept = message.get("accept")
    if accept is None:
        return None
    if not isinstance(accept, dict) or not accept.get("address"):
        raise ValueError("Accept message is missing a rendezvous address.")
    return accept  # type: ignore[return-value]
