"""Allow python -m market_fetch <command>."""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from . import __version__


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = argparse.ArgumentParser(
        prog="market-fetch",
        description=f"market-fetch {__version__}: resilient multi-provider market-data fetching",
    )
    subparsers = parser.add_subparsers(dest="command", help="command")
    subparsers.add_parser("doctor", help="Register configured providers and report health")

    args, rest = parser.parse_known_args(argv)
    if not args.command:
        parser.print_help()
        return 0
    if args.command == "doctor":
        from .doctor import main as doctor_main

        return doctor_main(rest)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
