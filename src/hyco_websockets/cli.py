"""Command line helpers for minting relay tokens and URIs."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Callable, TextIO

from .config import DEFAULT_KEY_ENV_VAR, DEFAULT_TOKEN_EXPIRATION_SECONDS
from .sas import create_relay_token
from .uri import create_relay_base_uri, create_relay_listen_uri, create_relay_send_uri


def _resolve_key(cli_key: str | None, key_env_var: str | None) -> str:
    if cli_key:
        return cli_key
    if not key_env_var:
        raise ValueError(f"Key is required. Pass --key or set {DEFAULT_KEY_ENV_VAR}.")
    value = os.environ.get(key_env_var)
    if value:
        return value
    raise ValueError(f"Key is required. Pass --key or set {key_env_var}.")


def _token_command(args: argparse.Namespace, key: str) -> str:
    return create_relay_token(args.uri, args.key_name, key, args.expiration)


def _endpoint_command(
    build: Callable[..., str],
) -> Callable[[argparse.Namespace, str | None], str]:
    def run(args: argparse.Namespace, key: str | None) -> str:
        token = None
        if args.key_name:
            resource = create_relay_base_uri(args.namespace, args.path)
            token = create_relay_token(resource, args.key_name, key, args.expiration)
        return build(args.namespace, args.path, token, args.id)

    return run


def _add_key_arguments(parser: argparse.ArgumentParser, *, key_name_required: bool) -> None:
    parser.add_argument(
        "--key-name",
        required=key_name_required,
        help="SharedAccessSignature key (rule) name.",
    )
    parser.add_argument("--key", help="SharedAccessSignature key value.")
    parser.add_argument(
        "--key-env",
        default=DEFAULT_KEY_ENV_VAR,
        help=f"Env var name to read the key from if --key is unset (default: {DEFAULT_KEY_ENV_VAR}).",
    )
    parser.add_argument(
        "--expiration",
        type=int,
        default=DEFAULT_TOKEN_EXPIRATION_SECONDS,
        help="Token lifetime in seconds.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hyco-websockets",
        description="Mint relay hybrid connection tokens and URIs.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    token_parser = subparsers.add_parser("token", help="Create a SharedAccessSignature token.")
    token_parser.add_argument("--uri", required=True, help="Resource URI to sign.")
    _add_key_arguments(token_parser, key_name_required=True)
    token_parser.set_defaults(handler=_token_command, needs_key=True)

    for name, build, action in (
        ("send-uri", create_relay_send_uri, "sending to"),
        ("listen-uri", create_relay_listen_uri, "listening on"),
    ):
        endpoint_parser = subparsers.add_parser(name, help=f"Create a URI for {action} a hybrid connection.")
        endpoint_parser.add_argument(
            "--namespace",
            required=True,
            help="Relay namespace, e.g. contoso.servicebus.windows.net.",
        )
        endpoint_parser.add_argument("--path", required=True, help="Hybrid connection path.")
        endpoint_parser.add_argument("--id", help="Correlation id.")
        _add_key_arguments(endpoint_parser, key_name_required=False)
        endpoint_parser.set_defaults(handler=_endpoint_command(build), needs_key=False)
    return parser


def main(argv: list[str] | None = None, stdout: TextIO | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    key = None
    if args.key and not args.key_name:
        parser.error("--key-name is required when --key is given.")
    if args.needs_key or args.key_name:
        try:
            key = _resolve_key(args.key, args.key_env)
        except ValueError as exc:
            parser.error(str(exc))
    try:
        output = args.handler(args, key)
    except ValueError as exc:
        parser.error(str(exc))
    print(output, file=stdout or sys.stdout)


if __name__ == "__main__":  # pragma: no cover
    main()
