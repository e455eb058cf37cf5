"""CLI entry point for the OpenAPI connector."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from .config import CacheSettings, get_settings
from .connector import OpenApiConnector
from .errors import ConnectorError, SpecValidationError
from .indexer import get_operation_spec
from .logging import configure_logging
from .models import SWAGGER_V2
from .pg_cache import PostgresCache
from .spec_resolver import SpecResolver


def _parse_params(values: List[str]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for item in values:
        name, sep, raw = item.partition("=")
        if not sep:
            raise SystemExit(f"Invalid parameter {item!r}; expected name=value")
        try:
            params[name] = json.loads(raw)
        except ValueError:
            params[name] = raw
    return params


def _build_connector(spec: str, cache_ttl: Optional[float]) -> OpenApiConnector:
    settings = get_settings()
    overrides: Dict[str, Any] = {"spec": spec}
    if cache_ttl:
        if not settings.database_url:
            raise SystemExit("--cache-ttl requires OPENAPI_CONNECTOR_DATABASE_URL")
        overrides["cache"] = CacheSettings(
            model=PostgresCache(settings.database_url), ttl=cache_ttl
        )
    return OpenApiConnector(settings, **overrides)


async def _list_methods(args: argparse.Namespace) -> int:
    connector = _build_connector(args.spec, None)
    async with connector:
        for tag, table in connector.apis.items():
            print(f"{tag}:")
            for name in table:
                print(f"  {name}")
    return 0


async def _call(args: argparse.Namespace) -> int:
    connector = _build_connector(args.spec, args.cache_ttl)
    params = _parse_params(args.param or [])
    options: Dict[str, Any] = {}
    async with connector:
        if args.body is not None:
            body = json.loads(args.body)
            operation = get_operation_spec(connector.api, args.operation_id)
            if operation.dialect == SWAGGER_V2 and operation.body_parameter is not None:
                params[operation.body_parameter.name] = body
            else:
                options["requestBody"] = body
        response = await connector.execute(args.operation_id, params, options)

    output = response.body if isinstance(response.body, (dict, list)) else response.text
    print(json.dumps(output, indent=2) if not isinstance(output, str) else output)
    return 0 if response.status < 400 else 1


async def _validate(args: argparse.Namespace) -> int:
    try:
        await SpecResolver(get_settings().http_client_options).validate(args.spec)
    except SpecValidationError as exc:
        print(f"Invalid specification: {exc}", file=sys.stderr)
        for error in exc.errors:
            print(f"  - {error}", file=sys.stderr)
        return 1
    print("Specification is valid")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Call REST APIs described by OpenAPI specifications")
    subparsers = parser.add_subparsers(dest="command", required=True)

    methods = subparsers.add_parser("methods", help="List generated method names per tag")
    methods.add_argument("spec", help="Spec URL or path to a .json/.yaml/.yml file")
    methods.set_defaults(handler=_list_methods)

    call = subparsers.add_parser("call", help="Invoke an operation and print the response")
    call.add_argument("spec", help="Spec URL or path to a .json/.yaml/.yml file")
    call.add_argument("operation_id", help="Operation id, e.g. getPetById or get_ping")
    call.add_argument(
        "-p",
        "--param",
        action="append",
        help="Parameter as name=value; values are parsed as JSON when possible",
    )
    call.add_argument("--body", default=None, help="Request body as JSON")
    call.add_argument(
        "--cache-ttl",
        type=float,
        default=None,
        help="Cache GET responses in Postgres for this many seconds",
    )
    call.set_defaults(handler=_call)

    validate = subparsers.add_parser("validate", help="Validate a specification")
    validate.add_argument("spec", help="Spec URL or path to a .json/.yaml/.yml file")
    validate.set_defaults(handler=_validate)
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)
    try:
        code = asyncio.run(args.handler(args))
    except ConnectorError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        code = 1
    raise SystemExit(code)


if __name__ == "__main__":
    main()
