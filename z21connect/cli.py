"""
Command line interface.

Usage::

    z21connect cv set cv1=3 cv29=6 -l 3 --verify
    z21connect cv get cv1-cv8 -t prog
    echo "cv17, cv18" | z21connect cv get -l 1234 -
    z21connect fn 0 -l 3 [--off]
    z21connect fn list -l 3
    z21connect speed set 40 -l 3 --forward --steps 28
    z21connect speed get -l 3

Every command runs inside ``async with CommandStation(...)``, so track power
is restored after programming-track use however the command ends.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import IO, Sequence

from z21connect.client import CommandStation
from z21connect.config import StationConfig, load_config
from z21connect.exceptions import Z21Error
from z21connect.models.records import LocoCV, RequestContext
from z21connect.protocol.constants import Mode, ProtocolConstants, SpeedSteps
from z21connect.syntax import parse_cv_string
from z21connect.transport.udp_async import AsyncUDPTransport

logger = logging.getLogger(__name__)

STDIN_MARKER = "-"
DEFAULT_SETTLE_MS = 300


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def create_station(config: StationConfig) -> CommandStation:
    """Build an unopened station for ``config``."""
    transport = AsyncUDPTransport(config.address, config.port, default_timeout=config.timeout)
    return CommandStation(transport, timeout=config.timeout)


def resolve_track(track: str | None, loco: int) -> Mode:
    """Explicit track, else POM when a locomotive is given, else the programming track."""
    if track:
        return Mode(track)
    return Mode.MAIN if loco else Mode.PROG


def collect_cv_text(args: Sequence[str], stdin: IO[str] | None = None) -> str:
    """
    Join CV arguments into one comma-separated list.

    A trailing ``-`` appends entries read from ``stdin``, one or more per line.

    Raises:
        ValueError: If no CV entry was given.
    """
    parts = [a.strip() for a in args]
    if parts and parts[-1] == STDIN_MARKER:
        parts.pop()
        stream = stdin if stdin is not None else sys.stdin
        parts.extend(line.strip() for line in stream.read().splitlines())

    parts = [p for p in parts if p]
    if not parts:
        raise ValueError("No CV argument provided")
    return ",".join(parts)


# ===== Command handlers =====


async def cmd_cv_set(station: CommandStation, args: argparse.Namespace) -> int:
    entries = parse_cv_string(collect_cv_text(args.cvs))
    mode = resolve_track(args.track, args.loco)
    settle = args.settle / 1000
    ctx = RequestContext(timeout=args.timeout, verify=args.verify, settle=settle)

    for entry in entries:
        await station.write_cv(mode, LocoCV.of(args.loco, entry.number, entry.value), ctx)
        await asyncio.sleep(settle)
    return 0


async def cmd_cv_get(station: CommandStation, args: argparse.Namespace) -> int:
    entries = parse_cv_string(collect_cv_text(args.cvs))
    mode = resolve_track(args.track, args.loco)
    ctx = RequestContext(timeout=args.timeout, retries=args.retry)

    if len(entries) == 1:
        entry = entries[0]
        print(await station.read_cv(mode, LocoCV.of(args.loco, entry.number), ctx))
        return 0

    last_error: Exception | None = None
    for entry in entries:
        try:
            value = await station.read_cv(mode, LocoCV.of(args.loco, entry.number), ctx)
        except Z21Error as e:
            logger.error("cv%d: %s", entry.number, e)
            print(f"cv{entry.number}=ERROR")
            last_error = e
        else:
            print(f"cv{entry.number}={value}")

    if last_error is not None:
        raise last_error
    return 0


async def cmd_fn(station: CommandStation, args: argparse.Namespace) -> int:
    if args.function == "list":
        active = await station.list_functions(args.loco)
        if not active:
            print("No active functions")
        for fn in active:
            print(f"F{fn} = On")
        return 0

    try:
        function = int(args.function)
    except ValueError:
        raise ValueError(f"Invalid function number {args.function!r}") from None
    await station.send_fn(resolve_track(args.track, args.loco), args.loco, function, on=not args.off)
    return 0


async def cmd_speed_set(station: CommandStation, args: argparse.Namespace) -> int:
    await station.set_speed(args.loco, args.speed, args.forward, args.steps)
    return 0


async def cmd_speed_get(station: CommandStation, args: argparse.Namespace) -> int:
    print(await station.get_speed(args.loco))
    return 0


# ===== Parser =====


def _add_loco(parser: argparse.ArgumentParser, required: bool = False) -> None:
    parser.add_argument(
        "-l", "--loco", type=int, default=0, required=required,
        help="Locomotive address",
    )


def _add_track(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-t", "--track", choices=[m.value for m in Mode], default=None,
        help="'pom' for programming on main, 'prog' for the programming track "
        "(default: pom with --loco, prog otherwise)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="z21connect",
        description="Program DCC decoders and drive locomotives through a Z21 command station",
    )
    parser.add_argument("-v", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("-c", "--config", default=None, help="Path to a JSON config file")
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    # cv
    cv = commands.add_parser("cv", help="Read and write CVs")
    cv_commands = cv.add_subparsers(dest="cv_command", metavar="ACTION")

    cv_set = cv_commands.add_parser("set", help="Write CV values to the decoder")
    cv_set.add_argument("cvs", nargs="+", metavar="CV", help="Entries like cv1=3 or cv1-cv4=0; '-' reads stdin")
    _add_loco(cv_set)
    _add_track(cv_set)
    cv_set.add_argument("--verify", action="store_true", help="Read each CV back after writing")
    cv_set.add_argument("--timeout", type=float, default=None, help="Response timeout in seconds")
    cv_set.add_argument(
        "--settle", type=int, default=DEFAULT_SETTLE_MS,
        help=f"Pause after each write in milliseconds (default: {DEFAULT_SETTLE_MS})",
    )
    cv_set.set_defaults(handler=cmd_cv_set)

    cv_get = cv_commands.add_parser("get", help="Read CV values from the decoder")
    cv_get.add_argument("cvs", nargs="+", metavar="CV", help="Entries like cv1 or cv1-cv8; '-' reads stdin")
    _add_loco(cv_get)
    _add_track(cv_get)
    cv_get.add_argument("--timeout", type=float, default=None, help="Response timeout in seconds")
    cv_get.add_argument(
        "--retry", type=int, default=ProtocolConstants.DEFAULT_RETRIES,
        help=f"Extra attempts after a timeout (default: {ProtocolConstants.DEFAULT_RETRIES})",
    )
    cv_get.set_defaults(handler=cmd_cv_get)

    # fn
    fn = commands.add_parser("fn", help="Switch decoder functions or list active ones")
    fn.add_argument("function", metavar="NUM|list", help="Function number 0-31, or 'list'")
    _add_loco(fn)
    _add_track(fn)
    fn.add_argument("-d", "--off", action="store_true", help="Switch the function off")
    fn.set_defaults(handler=cmd_fn)

    # speed
    speed = commands.add_parser("speed", help="Get or set speed and direction")
    speed_commands = speed.add_subparsers(dest="speed_command", metavar="ACTION")

    speed_set = speed_commands.add_parser("set", help="Set speed and direction")
    speed_set.add_argument("speed", type=int, help="0 stop, 1 emergency stop, 2.. running")
    _add_loco(speed_set, required=True)
    speed_set.add_argument("-f", "--forward", action="store_true", help="Drive forward (default: reverse)")
    speed_set.add_argument(
        "-s", "--steps", type=int, choices=[int(s) for s in SpeedSteps], default=int(SpeedSteps.STEPS_128),
        help="Speed steps (default: 128)",
    )
    speed_set.set_defaults(handler=cmd_speed_set)

    speed_get = speed_commands.add_parser("get", help="Show speed and direction")
    _add_loco(speed_get, required=True)
    speed_get.set_defaults(handler=cmd_speed_get)

    return parser


async def run(args: argparse.Namespace, config: StationConfig) -> int:
    async with create_station(config) as station:
        return await args.handler(station, args)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the ``z21connect`` console script."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.debug)

    if getattr(args, "handler", None) is None:
        parser.print_help(sys.stderr)
        return 1

    try:
        config = load_config(args.config)
        return asyncio.run(run(args, config))
    except (Z21Error, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
