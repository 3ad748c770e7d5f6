"""
Command-line interface for the cpapi client.

Calls a single API specified by METHOD and URL and prints the result as JSON.

Examples:
    # Get an access_token
    cpapi --host clearpass.example.com -z POST /oauth grant_type=client_credentials \\
        client_id=Client1 client_secret=ClientSecret

    # Create a guest account; show full request/response
    export host=clearpass.example.com
    export access_token=...
    cpapi -v POST /guest username=demo@example.com password=123456 role_id=2

    # Lookup a guest account by ID
    cpapi get /guest/3001

    # Modify a guest account
    cpapi patch /guest/3001 password=654321
"""

import argparse
import json
import re
import sys
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from cpapi.client.types import HTTP_METHODS
from cpapi.core.exceptions import ApiConnectionError, ApiError, ConfigurationError
from cpapi.core.logger import configure_root_logger, get_logger
from cpapi.models.settings import load_settings
from cpapi.wiring import build_api_client

logger = get_logger(__name__)

PARAM_PATTERN = re.compile(r"^(?P<name>\w+)(?P<op>==|=)(?P<value>.*)$", re.DOTALL)

EPILOG = """\
PARAMS may be expressed as:
  * name=value     for JSON body parameters (POST, PATCH, PUT)
  * name==value    for query string parameters (GET)

Authorization requires ONE of the following:
  * --access-token (if you already performed OAuth2 authentication)
  * --client-id, --client-secret (for grant_type=client_credentials)
  * --client-id, --username, --password (for grant_type=password, public client)
  * --client-id, --client-secret, --username, --password (for grant_type=password)

Most options can be stored in environment variables; use _ in place of -.
"""


class _ArgumentParser(argparse.ArgumentParser):
    """Report usage problems as configuration errors instead of exiting."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise ConfigurationError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="cpapi",
        description="API client tool. Calls a single API specified by METHOD and URL and prints the result.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("-?", "--help", action="help", help="Show this screen.")
    parser.add_argument("-h", "--host", metavar="HOSTNAME", help="Set the API server hostname.")
    parser.add_argument(
        "-k", "--insecure", action="store_true", default=None,
        help="Allow insecure SSL certificate checks.",
    )
    parser.add_argument("--timeout", type=float, metavar="SECONDS", help="Maximum time to wait for HTTP operations.")
    parser.add_argument("--access-token", metavar="TOKEN", help="Use TOKEN as the OAuth2 Bearer access_token.")
    parser.add_argument("--client-id", metavar="CLIENT", help="OAuth2 client identifier.")
    parser.add_argument("--client-secret", metavar="SECRET", help="OAuth2 client secret.")
    parser.add_argument("--username", metavar="USERNAME", help="OAuth2 username, for grant_type password.")
    parser.add_argument("--password", metavar="PASSWORD", help="OAuth2 password, for grant_type password.")
    parser.add_argument(
        "-z", "--unauthorized", action="store_true",
        help="Skip OAuth2 authorization. Only useful for /oauth.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", default=None,
        help="Print HTTP request and response traffic.",
    )
    parser.add_argument("--debug", action="store_true", default=None, help="Print connection traces.")
    parser.add_argument("method", metavar="METHOD")
    parser.add_argument("url", metavar="URL")
    parser.add_argument("params", metavar="PARAMS", nargs="*")
    return parser


def validate_method(method: str) -> str:
    method = method.upper()
    if method not in HTTP_METHODS:
        raise ConfigurationError(f"Invalid HTTP method: {method}")
    return method


def parse_params(params: Sequence[str]) -> Tuple[Optional[Dict[str, str]], Optional[Dict[str, str]]]:
    """Split PARAMS into (query, body); empty maps come back as None."""
    query: Dict[str, str] = {}
    body: Dict[str, str] = {}
    bad_params: List[str] = []

    for param in params:
        match = PARAM_PATTERN.match(param)
        if match is None:
            bad_params.append(param)
        elif match.group("op") == "==":
            query[match.group("name")] = match.group("value")
        else:
            body[match.group("name")] = match.group("value")

    if bad_params:
        raise ConfigurationError(f"Invalid parameter(s): {', '.join(bad_params)}")

    return query or None, body or None


def _dumps(value: Any) -> str:
    return json.dumps(value, indent=4, ensure_ascii=False, default=str)


def run(argv: Optional[Sequence[str]] = None, *, client: Optional[httpx.Client] = None) -> int:
    """
    Execute one API call from command-line arguments and return the exit status.

    Exit status:
        0 success (result printed on stdout)
        1 API error (status >= 400)
        2 connection error
        3 configuration error

    Args:
        argv: Arguments without the program name (defaults to sys.argv[1:])
        client: Optional httpx.Client to send requests with
    """
    try:
        args = build_parser().parse_args(argv)

        try:
            settings = load_settings({
                "host": args.host,
                "insecure": args.insecure,
                "verbose": args.verbose,
                "debug": args.debug,
                "timeout": args.timeout,
                "access_token": args.access_token,
                "client_id": args.client_id,
                "client_secret": args.client_secret,
                "username": args.username,
                "password": args.password,
            })
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e

        configure_root_logger("DEBUG" if settings.debug else "INFO" if settings.verbose else "WARNING")

        method = validate_method(args.method)
        query, body = parse_params(args.params)

        api = build_api_client(settings, client=client)
        result = api.invoke(method, args.url, query, body, not args.unauthorized)
        print(_dumps(result))
        return 0

    except ConfigurationError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 3
    except ApiConnectionError as e:
        print(f"FATAL: Connection error: {e}", file=sys.stderr)
        return 2
    except ApiError as e:
        print(f"ERROR: API error: {e.message}", file=sys.stderr)
        if e.details is not None:
            print(_dumps(e.details.to_dict()), file=sys.stderr)
        return 1


def cli() -> None:
    """Console-script entry point."""
    sys.exit(run())


if __name__ == "__main__":
    cli()
