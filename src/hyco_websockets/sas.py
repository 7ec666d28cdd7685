"""Shared-Access-Signature tokens for relay hybrid connections."""

from __future__ import annotations

import base64
import hashlib
import hmac
import math
import time
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlsplit, urlunsplit

from .config import DEFAULT_TOKEN_EXPIRATION_SECONDS, HYBRID_CONNECTION_PATH_PREFIX, TOKEN_PREFIX
from .protocol import decode_uri_component, encode_uri_component

Clock = Callable[[], float]

_TOKEN_FIELDS = ("sr", "sig", "se", "skn")


@dataclass(frozen=True)
class SasToken:
    """Parsed form of a SharedAccessSignature token."""

    resource: str
    signature: str
    expiry: int
    key_name: str

    def to_string(self) -> str:
        return (
            f"{TOKEN_PREFIX} sr={encode_uri_component(self.resource)}"
            f"&sig={encode_uri_component(self.signature)}"
            f"&se={self.expiry}"
            f"&skn={self.key_name}"
        )

    def is_expired(self, now: float) -> bool:
        return now >= self.expiry

    @classmethod
    def parse(cls, text: str) -> SasToken:
        prefix = f"{TOKEN_PREFIX} "
        if not text.startswith(prefix):
            raise ValueError(f"Token must start with {TOKEN_PREFIX!r}.")
        fields: dict[str, str] = {}
        for pair in text[len(prefix):].split("&"):
            key, sep, value = pair.partition("=")
            if sep:
                fields[key] = value
        missing = [name for name in _TOKEN_FIELDS if name not in fields]
        if missing:
            raise ValueError(f"Token is missing field(s): {', '.join(missing)}.")
        try:
            expiry = int(fields["se"])
        except ValueError as exc:
            raise ValueError(f"Token expiry is not an integer: {fields['se']!r}.") from exc
        return cls(
            resource=decode_uri_component(fields["sr"]),
            signature=decode_uri_component(fields["sig"]),
            expiry=expiry,
            key_name=fields["skn"],
        )


def signed_resource(uri: str) -> str:
    """Normalize uri into the resource string that gets signed.

    The scheme becomes http, userinfo/port/query/fragment are dropped and a
    leading ``$hc/`` path segment is removed.
    """

    parts = urlsplit(uri)
    if not parts.hostname:
        raise ValueError(f"Cannot sign a URI without a host: {uri!r}.")
    path = parts.path
    hc_prefix = f"/{HYBRID_CONNECTION_PATH_PREFIX}"
    if path.startswith(hc_prefix):
        path = "/" + path[len(hc_prefix):]
    elif not path:
        path = "/"
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    return urlunsplit(("http", host, path, "", ""))


def sign(resource: str, expiry: int, key: str) -> str:
    string_to_sign = f"{encode_uri_component(resource)}\n{expiry}"
    digest = hmac.new(key.encode("utf-8"), string_to_sign.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def create_relay_token(
    uri: str,
    key_name: str,
    key: str,
    expiration_seconds: int | None = None,
    *,
    clock: Clock = time.time,
) -> str:
    """Create a SharedAccessSignature token for uri.

    expiration_seconds defaults to one hour when unset or zero; the expiry is
    taken from clock at call time.
    """

    resource = signed_resource(uri)
    if not expiration_seconds:
        expiration_seconds = DEFAULT_TOKEN_EXPIRATION_SECONDS
    expiry = math.floor(clock() + expiration_seconds)
    token = SasToken(
        resource=resource,
        signature=sign(resource, expiry, key),
        expiry=expiry,
        key_name=key_name,
    )
    return token.to_string()
