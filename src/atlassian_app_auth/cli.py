"""atlassian-app-auth CLI."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from urllib.parse import urlsplit

from atlassian_app_auth.canonical import canonical_request, query_string_hash, request_from_url
from atlassian_app_auth.client import AppAuthClient
from atlassian_app_auth.credentials import load_credentials
from atlassian_app_auth.errors import AppAuthError, VerificationError
from atlassian_app_auth.tokens import DEFAULT_VALID_FOR_SECONDS, build_token, verify_token


def _add_request_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("method", help='HTTP method such as "get"')
    parser.add_argument("url", help="URL such as https://mycorp.atlassian.net/rest/api/3/project/search?query=KEY")
    parser.add_argument("--base-url", default=None, help="Product base URL whose context path is not hashed")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="atlassian-app-auth", description="Atlassian Connect JWT tools")
    parser.add_argument("--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    canonical_parser = subparsers.add_parser("canonical", help="Print the canonical request")
    _add_request_arguments(canonical_parser)
    canonical_parser.add_argument("--json", action="store_true")

    qsh_parser = subparsers.add_parser("qsh", help="Print the query string hash")
    _add_request_arguments(qsh_parser)
    qsh_parser.add_argument("--json", action="store_true")

    token_parser = subparsers.add_parser("token", help="Create a signed JWT for a request")
    _add_request_arguments(token_parser)
    token_parser.add_argument("--creds", default=None, help="JSON credentials file with key and secret")
    token_parser.add_argument("--ttl", type=int, default=DEFAULT_VALID_FOR_SECONDS)
    token_parser.add_argument("--now", type=int, default=None, help="Issued-at time in epoch seconds")
    token_parser.add_argument("--json", action="store_true")

    verify_parser = subparsers.add_parser("verify", help="Verify a JWT against a request")
    verify_parser.add_argument("token")
    _add_request_arguments(verify_parser)
    verify_parser.add_argument("--creds", default=None, help="JSON credentials file with key and secret")
    verify_parser.add_argument("--now", type=int, default=None, help="Verification time in epoch seconds")
    verify_parser.add_argument("--leeway", type=int, default=0)
    verify_parser.add_argument("--json", action="store_true")

    request_parser = subparsers.add_parser("request", help="Send a signed request and print the JSON response")
    _add_request_arguments(request_parser)
    request_parser.add_argument("--creds", default=None, help="JSON credentials file with key and secret")
    request_parser.add_argument("--data", default=None, help="JSON request body")

    return parser


def _now(explicit: int | None) -> int:
    return explicit if explicit is not None else int(datetime.now(timezone.utc).timestamp())


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def _run(args: argparse.Namespace) -> int:
    if args.command in ("canonical", "qsh"):
        request = request_from_url(args.method, args.url, base_url=args.base_url)
        value = canonical_request(request) if args.command == "canonical" else query_string_hash(request)
        if args.json:
            print(json.dumps({"command": args.command, args.command: value}, sort_keys=True))
        else:
            print(value)
        return 0

    credentials = load_credentials(args.creds)

    if args.command == "token":
        request = request_from_url(args.method, args.url, base_url=args.base_url)
        issued_at = _now(args.now)
        token = build_token(credentials, request, issued_at, args.ttl)
        if args.json:
            print(
                json.dumps(
                    {
                        "command": "token",
                        "issuer": credentials.issuer,
                        "iat": issued_at,
                        "exp": issued_at + args.ttl,
                        "qsh": query_string_hash(request),
                        "token": token,
                    },
                    sort_keys=True,
                )
            )
        else:
            print(token)
        return 0

    if args.command == "verify":
        request = request_from_url(args.method, args.url, base_url=args.base_url)
        try:
            claims = verify_token(credentials, args.token, request, _now(args.now), leeway=args.leeway)
        except VerificationError as error:
            if args.json:
                print(json.dumps({"command": "verify", "valid": False, "code": error.code}, sort_keys=True))
            else:
                print(f"{error.public_message} ({error.code}): {error}")
            return 1
        if args.json:
            print(json.dumps({"command": "verify", "valid": True, "claims": claims.claims}, sort_keys=True))
        else:
            print(f"valid: issuer={claims.issuer} exp={claims.expires_at}")
        return 0

    if args.command == "request":
        client = AppAuthClient(credentials, base_url=args.base_url or _origin(args.url))
        payload = json.loads(args.data) if args.data is not None else None
        response = client.request_json(args.url, method=args.method, payload=payload)
        print(json.dumps(response, indent=2))
        return 0

    return 2


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        return _run(args)
    except AppAuthError as error:
        print(f"error ({error.code}): {error}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
