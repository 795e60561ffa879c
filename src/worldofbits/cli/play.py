from __future__ import annotations

import argparse
from typing import Sequence

from worldofbits.cli.pygame_viewer import _env_flag_enabled, run_pygame_viewer
from worldofbits.content.rules import DEFAULT_RULES_PATH
from worldofbits.sim.movement import DEFAULT_FEED_INTERVAL_SECONDS

DEFAULT_SAVE_PATH = "saves/world_of_bits.json"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="worldofbits-play", description="Canonical World of Bits launcher.")
    parser.add_argument("--save-path", default=DEFAULT_SAVE_PATH, help="Snapshot JSON loaded at startup and kept current.")
    parser.add_argument("--rules-path", default=DEFAULT_RULES_PATH, help="Rules JSON used for this session.")
    parser.add_argument("--track-file", help="Position log replayed when tracking is enabled.")
    parser.add_argument(
        "--track-interval",
        type=float,
        default=DEFAULT_FEED_INTERVAL_SECONDS,
        help="Seconds between replayed positions from --track-file.",
    )
    parser.add_argument("--headless", action="store_true", help="Run startup path in headless mode.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    return run_pygame_viewer(
        args.rules_path,
        save_path=args.save_path,
        headless=args.headless or _env_flag_enabled("WORLDOFBITS_HEADLESS"),
        track_file=args.track_file,
        track_interval=args.track_interval,
    )


if __name__ == "__main__":
    raise SystemExit(main())
