"""Command line entry point."""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional, Tuple

from udprelay import __version__
from udprelay.config.settings import Mode, RelayConfig, Role
from udprelay.errors import ConfigError, RelayError
from udprelay.relay import Relay, resolve_address
from udprelay.transports.stdio import open_stdin, open_stdout

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_LEVEL_ENV = "UDPRELAY_LOG_LEVEL"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def parse_port(text: str, allow_zero: bool = False) -> int:
    """
    Parse a UDP port number.

    Raises:
        ConfigError: If ``text`` is not a valid port
    """
    try:
        port = int(text)
    except ValueError:
        raise ConfigError(f"Invalid port number {text}") from None
    low = 0 if allow_zero else 1
    if not low <= port <= 65535:
        raise ConfigError(f"Invalid port number {text}")
    return port


def parse_target(text: str) -> Tuple[str, int]:
    """
    Split ``host:port`` (or ``[v6addr]:port``) into its parts.

    Raises:
        ConfigError: If the port is missing or invalid
    """
    host, sep, port = text.rpartition(":")
    if not sep or not host:
        raise ConfigError(f"Invalid target {text}, expected host:port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, parse_port(port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="udprelay",
        description=(
            "Relay UDP datagrams to and from base64 lines on stdin/stdout. "
            "Examples: udprelay listen 8080, udprelay send 192.168.0.1:8080"
        ),
    )
    parser.add_argument("role", choices=[r.value for r in Role], help="listen or send")
    parser.add_argument(
        "address", help="port to listen on, or host:port to send to"
    )
    parser.add_argument(
        "--single",
        action="store_true",
        help="talk to exactly one peer using bare base64 lines",
    )
    parser.add_argument("--bind", metavar="HOST", help="local address to bind")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=os.environ.get(LOG_LEVEL_ENV, "WARNING").upper(),
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="disable all logging output"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> RelayConfig:
    role = Role(args.role)
    mode = Mode.SINGLE if args.single else Mode.MULTIPLEXED
    if role is Role.LISTEN:
        return RelayConfig(
            role=role,
            mode=mode,
            host=args.bind,
            port=parse_port(args.address, allow_zero=True),
            log_level=args.log_level,
        )
    return RelayConfig(
        role=role,
        mode=mode,
        host=args.bind,
        target=parse_target(args.address),
        log_level=args.log_level,
    )


def configure_logging(level: str, quiet: bool = False) -> None:
    # stdout carries frames, so logs go to stderr
    logging.basicConfig(format=LOG_FORMAT, level=level, stream=sys.stderr)
    if quiet:
        logging.disable(logging.CRITICAL)


async def serve(config: RelayConfig) -> None:
    """Resolve the target, attach to stdio and relay until done."""
    target = None
    family = None
    if config.target is not None:
        family, target = await resolve_address(*config.target)

    reader = await open_stdin()
    writer = await open_stdout()
    relay = Relay(config, reader, writer, target=target, family=family)
    try:
        await relay.run()
    finally:
        writer.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.log_level not in LOG_LEVELS:
        parser.error(f"invalid log level {args.log_level}")
    configure_logging(args.log_level, args.quiet)

    try:
        config = config_from_args(args)
    except ConfigError as e:
        parser.error(str(e))

    try:
        asyncio.run(serve(config))
    except ConfigError as e:
        _report(e, args.quiet)
        return EXIT_USAGE
    except (RelayError, ConnectionError) as e:
        _report(e, args.quiet)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        return EXIT_FAILURE
    return EXIT_OK


def _report(error: Exception, quiet: bool) -> None:
    if quiet:
        print(f"udprelay: {error}", file=sys.stderr)
    else:
        logger.error("%s", error)


def run() -> None:
    sys.exit(main())
