#!/usr/bin/env python3
"""
doorlockd -- Token + directory gated door lock controller.

Console driver: builds the access engine from settings and feeds it one JSON
request per input line, printing one response identifier per line. Useful for
checking directory settings and token handling against the simulated door
before real hardware is attached.

Usage:
  python main.py < requests.jsonl
  python main.py --file requests.jsonl
  python main.py --door-state unlocked --no-qr
  python main.py --show-token

Environment variables (or .env):
  LDAP_URI, BIND_DN, LDAP_VERSION, LDAP_TIMEOUT_SECONDS
  TOKEN_TIMEOUT_SECONDS, WEB_PREFIX, QR_OUTPUT_PATH, LOG_LEVEL, DEBUG
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional, TextIO

from auth.directory import DirectoryAuthenticator
from auth.tokens import TokenStore
from core.config import Settings, get_settings
from core.models import DoorState
from core.pipeline import AccessEngine
from core.ports import Authenticator, Notifier
from door.controller import DoorController
from door.simulated import SimulatedDoor
from notify.qr import NullNotifier, notifier_for

logger = logging.getLogger("doorlockd.main")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def build_engine(
    settings: Settings,
    driver=None,
    notifier: Optional[Notifier] = None,
    authenticator: Optional[Authenticator] = None,
) -> tuple[AccessEngine, TokenStore]:
    """Wire settings into a ready (not yet started) engine.

    Any collaborator can be overridden; the defaults are the LDAP
    authenticator, a locked SimulatedDoor, and the QR notifier from settings.
    """
    if notifier is None:
        notifier = notifier_for(settings.qr_output_path)
    if authenticator is None:
        authenticator = DirectoryAuthenticator.from_settings(settings)
    if driver is None:
        driver = SimulatedDoor()

    tokens = TokenStore(settings.web_prefix, notifier=notifier)
    engine = AccessEngine(
        tokens=tokens,
        authenticator=authenticator,
        door=DoorController(driver),
        token_timeout=settings.token_timeout_seconds,
    )
    return engine, tokens


def serve_lines(engine: AccessEngine, lines: Iterable[str], out: TextIO) -> int:
    """Handle each non-blank line as one request. Returns the number handled."""
    handled = 0
    for line in lines:
        payload = line.strip()
        if not payload:
            continue
        response = engine.handle(payload)
        print(response.value, file=out, flush=True)
        handled += 1
    return handled


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="doorlockd",
        description="Token and directory gated door lock controller (console driver).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Each input line is one JSON request:
  {"action": "unlock", "ip": "10.0.0.5", "user": "alice", "password": "...", "token": "00a1b2c3d4e5f607"}
        """,
    )
    parser.add_argument(
        "--file",
        metavar="PATH",
        help="Read requests from PATH instead of stdin (one JSON object per line)",
    )
    parser.add_argument(
        "--door-state",
        choices=["locked", "unlocked"],
        default="locked",
        help="Initial state of the simulated door (default: locked)",
    )
    parser.add_argument(
        "--no-qr",
        action="store_true",
        help="Do not write the QR code image, regardless of QR_OUTPUT_PATH",
    )
    parser.add_argument(
        "--show-token",
        action="store_true",
        help="Print the current token URI to stderr at startup",
    )
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        print(f"  [!] Invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    initial = DoorState.LOCKED if args.door_state == "locked" else DoorState.UNLOCKED
    engine, tokens = build_engine(
        settings,
        driver=SimulatedDoor(initial),
        notifier=NullNotifier() if args.no_qr else None,
    )

    if args.show_token:
        print(f"  Token URI: {tokens.uri}", file=sys.stderr)

    if args.file:
        file_path = Path(args.file).resolve()
        if not file_path.is_file():
            print(f"  [!] '{args.file}' is not a readable file.", file=sys.stderr)
            return 1

    with engine:
        if args.file:
            with file_path.open(encoding="utf-8") as fh:
                handled = serve_lines(engine, fh, sys.stdout)
        else:
            handled = serve_lines(engine, sys.stdin, sys.stdout)

    logger.info("Handled %d request(s)", handled)
    return 0


if __name__ == "__main__":
    sys.exit(main())
