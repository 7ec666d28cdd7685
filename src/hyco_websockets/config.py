"""Configuration defaults for relayed websockets."""

from __future__ import annotations

DEFAULT_TOKEN_EXPIRATION_SECONDS = 3600
DEFAULT_PING_INTERVAL_SECONDS = 20.0
DEFAULT_PING_TIMEOUT_SECONDS = 20.0

RELAY_SCHEME = "wss"
RELAY_PORT = 443
HYBRID_CONNECTION_PATH_PREFIX = "$hc/"

AUTHORIZATION_HEADER = "ServiceBusAuthorization"
TOKEN_PREFIX = "SharedAccessSignature"

ACTION_QUERY_PARAM = "sb-hc-action"
TOKEN_QUERY_PARAM = "sb-hc-token"
ID_QUERY_PARAM = "sb-hc-id"
ACTION_CONNECT = "connect"
ACTION_LISTEN = "listen"

DEFAULT_KEY_ENV_VAR = "HYCO_SAS_KEY"
