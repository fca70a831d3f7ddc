"""
Application entry point and dark-theme stylesheet.

Usage:
    python -m trombinoscope.app crop PHOTO_FOLDER [--output DIR]
    python -m trombinoscope.app export PHOTO_FOLDER OUTPUT_DIR
    trombinoscope ...          (after pip install)

``crop`` opens the interactive editor; ``export`` regenerates the cropped
derivatives and the roster from the crops already embedded in the photos.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from trombinoscope.config import DEFAULT_OUTPUT_FOLDER
from trombinoscope.image_io import scan_images
from trombinoscope.roster import save_roster
from trombinoscope.session import load_sessions
from trombinoscope.settings import load_settings
from trombinoscope.worker import export_all

logger = logging.getLogger(__name__)

DARK_STYLESHEET = """
    QMainWindow { background: #2b2b2b; }
    QWidget { background: #2b2b2b; color: #ddd; font-size: 10pt; }
    QListWidget { background: #1e1e1e; border: 1px solid #444; }
    QListWidget::item { padding: 4px; }
    QListWidget::item:selected { background: #3a6ea5; }
    QGroupBox { border: 1px solid #555; border-radius: 4px; margin-top: 8px; padding-top: 12px; font-weight: bold; }
    QGroupBox::title { subcontrol-origin: margin; left: 8px; padding: 0 4px; }
    QStatusBar { background: #333; border-top: 1px solid #444; }
"""

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logging(verbose: bool = False) -> None:
    """Single stderr handler; TROMBINOSCOPE_LOG_LEVEL overrides the default level."""
    level = logging.DEBUG if verbose else logging.INFO
    env_level = (os.getenv("TROMBINOSCOPE_LOG_LEVEL") or "").strip().lower()
    level = _LEVELS.get(env_level, level)
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trombinoscope",
        description="Crop class photos and keep each crop inside its own JPEG.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    crop = sub.add_parser("crop", help="crop photos interactively")
    crop.add_argument("folder", type=Path, help="folder of JPEG photos")
    crop.add_argument(
        "--output", type=Path, default=None,
        help=f"where derivatives go on save (default: FOLDER/{DEFAULT_OUTPUT_FOLDER})",
    )
    crop.add_argument(
        "--skip-corrupt", action="store_true",
        help="skip photos whose embedded crop record is corrupt instead of aborting",
    )

    export = sub.add_parser("export", help="regenerate cropped derivatives from embedded crops")
    export.add_argument("folder", type=Path, help="folder of JPEG photos")
    export.add_argument("output", type=Path, help="output folder")
    return parser


def run_crop(args, settings) -> int:
    from PyQt6.QtWidgets import QApplication

    from trombinoscope.main_window import MainWindow

    sessions = load_sessions(scan_images(args.folder), settings.aspect_ratio, skip_corrupt=args.skip_corrupt)
    output = args.output or args.folder / DEFAULT_OUTPUT_FOLDER

    app = QApplication(sys.argv[:1])
    app.setStyleSheet(DARK_STYLESHEET)

    window = MainWindow(sessions, output, settings)
    window.show()
    return app.exec()


def run_export(args, settings) -> int:
    paths = scan_images(args.folder)
    results = export_all(paths, args.output, jpeg_quality=settings.jpeg_quality, ratio=settings.aspect_ratio)
    failed = [r for r in results if not r["success"]]
    for r in failed:
        print(f"{r['name']}: {r['error']}", file=sys.stderr)

    exported = {paths[r["index"]] for r in results if r["success"]}
    sessions = load_sessions(sorted(exported), settings.aspect_ratio, skip_corrupt=True)
    save_roster(args.output, sessions)
    return 1 if failed else 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    settings = load_settings()

    if not args.folder.is_dir():
        logger.error("Not a folder: %s", args.folder)
        sys.exit(2)

    try:
        if args.command == "crop":
            sys.exit(run_crop(args, settings))
        sys.exit(run_export(args, settings))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
