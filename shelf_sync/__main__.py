"""Entry point for Shelf Watcher.

Usage:
    python -m shelf_sync --input /openaudible --output /audiobookshelf
    python -m shelf_sync --once                 Single pass, no watching
    python -m shelf_sync --watch-mode polling   Poll instead of OS events
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from shelf_sync import __app_name__, __version__
from shelf_sync.config import WATCH_MODES, Config
from shelf_sync.models import ManifestNotFoundError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shelf-watcher",
        description=(
            "Mirror an OpenAudible library into an AudioBookshelf folder "
            "layout and keep it in sync as books.json changes."
        ),
    )
    parser.add_argument(
        "--input",
        help="OpenAudible directory that contains books.json (env: INPUT)",
    )
    parser.add_argument(
        "--output",
        help="AudioBookshelf directory that contains all your audiobooks (env: OUTPUT)",
    )
    parser.add_argument(
        "--template",
        help="Output directory structure, default '{author}/{title_short}' (env: TEMPLATE)",
    )
    parser.add_argument(
        "--watch-mode",
        choices=WATCH_MODES,
        help="Use native filesystem events or polling (env: WATCH_MODE)",
    )
    parser.add_argument(
        "--debounce",
        type=float,
        metavar="SECONDS",
        help="Quiet period after a change before syncing (env: DEBOUNCE_SECONDS)",
    )
    parser.add_argument(
        "--watch-directory",
        action="store_true",
        default=None,
        help="Re-sync on any change in the input folder, not just books.json",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        default=None,
        help="Run a single sync pass and exit",
    )
    parser.add_argument("--config", type=Path, help="Path to a JSON config file")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-file", help="Also write a rotating log to this file")
    parser.add_argument(
        "--version", action="version", version=f"{__app_name__} {__version__}"
    )
    return parser


def load_config(argv: list[str] | None = None) -> Config:
    """Build a validated :class:`Config` from file, environment and *argv*."""
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    cfg = Config(args.config)
    cfg.apply_env()
    cfg.update(
        {
            "input_folder": args.input,
            "output_folder": args.output,
            "template": args.template,
            "watch_mode": args.watch_mode,
            "debounce_seconds": args.debounce,
            "watch_directory": args.watch_directory,
            "once": args.once,
            "log_level": args.log_level,
            "log_file": args.log_file,
        }
    )

    errors = cfg.validate()
    if errors:
        parser.error("\n".join(errors))
    return cfg


def main(argv: list[str] | None = None) -> int:
    """Parse options and run the watcher."""
    from shelf_sync.app import App, setup_logging

    try:
        cfg = load_config(argv)
    except ValueError as exc:
        print(f"shelf-watcher: error: {exc}", file=sys.stderr)
        return 2
    setup_logging(cfg)

    try:
        return App(cfg).run()
    except ManifestNotFoundError:
        return 1


if __name__ == "__main__":
    sys.exit(main())
