"""CLI entry point for flickr-rest.

Handles argument parsing and dispatches to the call, echo or login modes.
Credentials come from a YAML config (--config) or an INI file (--ini,
default ~/.flickcurl.conf).
"""

from __future__ import annotations

import argparse
import logging
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path

from flickr_rest import methods
from flickr_rest.config_loader import ConfigError, load_ini_config, load_session_config
from flickr_rest.errors import FlickrError
from flickr_rest.models import SessionConfig
from flickr_rest.session import Session


def non_negative_int(value: str) -> int:
    """Parse and validate a non-negative integer value.

    Raises:
        argparse.ArgumentTypeError: If value is not an integer >= 0.
    """
    try:
        result = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid integer '{value}'.")
    if result < 0:
        raise argparse.ArgumentTypeError(f"Value must be >= 0, got {result}.")
    return result


def parse_param(value: str) -> tuple[str, str]:
    """Parse NAME=VALUE format.

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    if "=" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid parameter '{value}'. Expected NAME=VALUE (e.g., 'photo_id=123')"
        )
    name, param_value = value.split("=", 1)
    if not name:
        raise argparse.ArgumentTypeError(
            f"Invalid parameter '{value}'. Name cannot be empty."
        )
    return (name, param_value)


@dataclass
class CommonArgs:
    """Options shared by every subcommand."""

    config: Path | None
    ini: Path | None
    delay_ms: int | None
    verbose: bool


@dataclass
class CallArgs(CommonArgs):
    """Parsed arguments for call mode."""

    method: str
    params: list[tuple[str, str]]
    write: bool
    raw: bool
    dry_run: bool


@dataclass
class EchoArgs(CommonArgs):
    """Parsed arguments for echo mode."""

    key: str
    value: str


@dataclass
class LoginArgs(CommonArgs):
    """Parsed arguments for login mode."""


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML session config",
    )
    source.add_argument(
        "--ini",
        type=Path,
        default=None,
        help="Path to INI credentials file (default: ~/.flickcurl.conf)",
    )
    parser.add_argument(
        "--delay-ms",
        type=non_negative_int,
        default=None,
        help="Minimum delay between requests in milliseconds (overrides config)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log request URIs and signature details",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with call, echo and login subcommands."""
    parser = argparse.ArgumentParser(
        prog="flickr-rest",
        description="Call the Flickr REST API with signed, rate-limited requests.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Mode")

    call_parser = subparsers.add_parser(
        "call",
        help="Call any API method and print the response",
    )
    call_parser.add_argument(
        "method",
        help="API method name, e.g. flickr.photos.getInfo",
    )
    call_parser.add_argument(
        "params",
        type=parse_param,
        nargs="*",
        metavar="NAME=VALUE",
        help="Method parameters",
    )
    call_parser.add_argument(
        "--write",
        action="store_true",
        help="Send as a POST (for methods that modify data)",
    )
    call_parser.add_argument(
        "--raw",
        action="store_true",
        help="Print the response body as received, without envelope checks",
    )
    call_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the signed request target without sending it",
    )
    _add_common_arguments(call_parser)

    echo_parser = subparsers.add_parser(
        "echo",
        help="Call flickr.test.echo with one parameter",
    )
    echo_parser.add_argument("key", help="Parameter name")
    echo_parser.add_argument("value", help="Parameter value")
    _add_common_arguments(echo_parser)

    login_parser = subparsers.add_parser(
        "login",
        help="Call flickr.test.login and print the authenticated username",
    )
    _add_common_arguments(login_parser)

    return parser


def parse_args(args: list[str] | None = None) -> CallArgs | EchoArgs | LoginArgs:
    """Parse command-line arguments and return typed args dataclass.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    common = {
        "config": namespace.config,
        "ini": namespace.ini,
        "delay_ms": namespace.delay_ms,
        "verbose": namespace.verbose,
    }
    if namespace.command == "call":
        return CallArgs(
            method=namespace.method,
            params=namespace.params or [],
            write=namespace.write,
            raw=namespace.raw,
            dry_run=namespace.dry_run,
            **common,
        )
    elif namespace.command == "echo":
        return EchoArgs(key=namespace.key, value=namespace.value, **common)
    elif namespace.command == "login":
        return LoginArgs(**common)
    else:
        # Should not happen with required=True on subparsers
        parser.error(f"Unknown command: {namespace.command}")


def load_config(args: CommonArgs) -> SessionConfig:
    """Build the SessionConfig selected by --config / --ini."""
    if args.config is not None:
        config = load_session_config(args.config)
    else:
        config = load_ini_config(args.ini)
    if args.delay_ms is not None:
        config = config.model_copy(update={"request_delay_ms": args.delay_ms})
    return config


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed = parse_args(argv)

        logging.basicConfig(
            level=logging.DEBUG if parsed.verbose else logging.WARNING,
            format="%(name)s: %(levelname)s: %(message)s",
        )

        try:
            config = load_config(parsed)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        with Session(config) as session:
            try:
                if isinstance(parsed, CallArgs):
                    return run_call(session, parsed)
                elif isinstance(parsed, EchoArgs):
                    return run_echo(session, parsed)
                else:
                    return run_login(session)
            except FlickrError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def run_call(session: Session, args: CallArgs) -> int:
    """Run call mode."""
    session.begin(is_write=args.write)
    session.add_all(args.params)
    session.finish()
    prepared = session.build_and_sign(args.method)
    if prepared is None:
        return 1

    if args.dry_run:
        print(f"{prepared.http_method} {prepared.url}")
        if prepared.body is not None:
            print(prepared.body.decode("utf-8", errors="replace"))
        return 0

    result = session.invoke(raw=args.raw)
    if not result.ok:
        return 1
    if result.content is not None:
        sys.stdout.write(result.content.decode("utf-8", errors="replace"))
    elif result.document is not None:
        ET.indent(result.document)
        print(ET.tostring(result.document, encoding="unicode"))
    return 0


def run_echo(session: Session, args: EchoArgs) -> int:
    """Run echo mode."""
    if not methods.echo(session, args.key, args.value):
        return 1
    print(f"Flickr echo returned {session.total_bytes} bytes")
    return 0


def run_login(session: Session) -> int:
    """Run login mode."""
    username = methods.login(session)
    if username is None:
        print("Error: no username in response", file=sys.stderr)
        return 1
    print(username)
    return 0


if __name__ == "__main__":
    sys.exit(main())
