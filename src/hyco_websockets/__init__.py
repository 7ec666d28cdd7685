"""Azure Relay Hybrid Connections helpers for websockets."""

from .client import relayed_connect
from .protocol import RelayServerOptions, connect_options
from .sas import SasToken, create_relay_token
from .server import RelayedServer, create_relayed_server
from .transport import RelayTransport, WebsocketsTransport
from .uri import append_relay_token, create_relay_base_uri, create_relay_listen_uri, create_relay_send_uri

__all__ = [
    "RelayServerOptions",
    "RelayTransport",
    "RelayedServer",
    "SasToken",
    "WebsocketsTransport",
    "append_relay_token",
    "connect_options",
    "create_relay_base_uri",
    "create_relay_listen_uri",
    "create_relay_send_uri",
    "create_relay_token",
    "create_relayed_server",
    "relayed_connect",
]
