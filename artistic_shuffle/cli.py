"""Command-line entry point.

    artistic-shuffle [options] INPUTS -- OUTPUTS

Everything after the first ``--`` is an output file; INPUTS default to the
current directory and OUTPUTS to the terminal.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from pydantic import ValidationError

from artistic_shuffle.config import get_settings
from artistic_shuffle.emitter import print_playlist, write_playlist
from artistic_shuffle.errors import ArtisticShuffleError
from artistic_shuffle.library import resolve_entries, scan_input
from shufflecore.models import FavouriteMode, SpacingPolicy
from shufflecore.registry import TrackRegistry
from shufflecore.shuffle import shuffle_tracks

logger = logging.getLogger(__name__)

SEPARATOR = "--"

_DESCRIPTION = """\
Create a shuffled playlist where songs from the same artist are spread out.
Artist names are taken from the files' tags; when a tag is missing the artist
is the first directory below the input path. Favourites (4 stars and up) are
picked more eagerly. Output paths are relative to each output file when the
inputs were given as relative paths."""

_EPILOG = """\
arguments:
  INPUTS   directories or .m3u/.m3u8/.csv/.txt/.json files ("." if empty)
  OUTPUTS  files (written to the terminal if empty)

examples:
  artistic-shuffle ~/Music -- playlist.m3u
  artistic-shuffle playlist1.m3u playlist2.m3u -- shuffled.m3u"""


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="artistic-shuffle",
        usage="%(prog)s [options] INPUTS -- OUTPUTS",
        description=_DESCRIPTION,
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("inputs", nargs="*", metavar="INPUTS", help=argparse.SUPPRESS)
    parser.add_argument("--seed", type=int, help="random seed for a reproducible order")
    parser.add_argument(
        "--spacing",
        choices=[p.value for p in SpacingPolicy],
        help="same-artist gap policy (default: adaptive)",
    )
    parser.add_argument("--min-gap", type=_positive_int, help="gap used by --spacing fixed")
    parser.add_argument(
        "--favourite-weight", type=_positive_int, help="weight of 4+ star tracks (default: 2)"
    )
    parser.add_argument(
        "--favourite-mode",
        choices=[m.value for m in FavouriteMode],
        help="'weight' picks favourites earlier, 'duplicate' repeats them",
    )
    parser.add_argument("--workers", type=_positive_int, help="threads reading tags")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging on stderr")
    return parser


def split_arguments(argv: Sequence[str]) -> Tuple[List[str], Optional[List[str]]]:
    """Split at the first ``--``; outputs are None when there is no separator."""
    argv = [a.strip() for a in argv]
    if SEPARATOR not in argv:
        return argv, None
    i = argv.index(SEPARATOR)
    return argv[:i], argv[i + 1:]


def configure_logging(verbose: bool, level: str) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the shuffle; returns the process exit code."""
    left, outputs = split_arguments(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    try:
        args = parser.parse_args(left)
    except SystemExit as exc:  # argparse exits on --help and usage errors
        return int(exc.code or 0)

    if outputs is None and not args.inputs:
        parser.print_help()
        return 0

    try:
        settings = get_settings()
    except ValidationError as exc:
        sys.stderr.write(f"{parser.prog}: invalid settings: {exc}\n")
        return 2
    configure_logging(args.verbose, settings.log_level)
    config = settings.shuffle_config(
        seed=args.seed,
        spacing=args.spacing,
        min_gap=args.min_gap,
        favourite_weight=args.favourite_weight,
        favourite_mode=args.favourite_mode,
    )

    failed = False
    entries = []
    for raw in args.inputs or ["."]:
        try:
            entries.extend(scan_input(Path(raw), settings.audio_extensions))
        except ArtisticShuffleError as exc:
            logger.error("%s", exc)
            failed = True

    registry = TrackRegistry()
    registry.extend(
        resolve_entries(
            entries,
            config,
            favourite_rating=settings.favourite_rating,
            workers=args.workers or settings.workers,
        )
    )
    logger.info("Registered %d tracks from %d artists", len(registry), len(registry.artists()))
    playlist = shuffle_tracks(registry.tracks(), config)

    if not outputs:
        print_playlist(playlist)
    for raw in outputs or []:
        try:
            write_playlist(playlist, Path(raw), config)
        except ArtisticShuffleError as exc:
            logger.error("%s", exc)
            failed = True

    return 1 if failed else 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
