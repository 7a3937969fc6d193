"""
NanoCleanse - Main Entry Point
==============================
Command line tool that removes the generator's corner logo overlay.

Usage:
    python main.py IMAGE [IMAGE ...] [-o OUTPUT_DIR] [--codec pillow|opencv]

Architecture:
    - Model: nanocleanse/core/ (pure algorithms)
    - Workers: nanocleanse/workers/ (QThread processing)
    - Controller: This file (signal/slot connections, headless event loop)
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import QCoreApplication

from nanocleanse import __app_name__, __version__, config
from nanocleanse.core import available_codecs
from nanocleanse.logging_config import configure_logging
from nanocleanse.workers import BatchRemovalWorker, RemovalConfig, RemovalOutcome

logger = logging.getLogger("nanocleanse.main")


class RemovalController:
    """
    Connects a BatchRemovalWorker to the console.

    Responsibilities:
    - Create and manage the worker thread
    - Report progress and per-image results
    - Quit the event loop when the batch is done
    """

    def __init__(self, app: QCoreApplication, removal_config: RemovalConfig):
        self.app = app
        self.config = removal_config
        self.results: List[RemovalOutcome] = []
        self._worker: Optional[BatchRemovalWorker] = None

    def start(self):
        """Create the worker, connect its signals and start it."""
        self._worker = BatchRemovalWorker(self.config)

        self._worker.progress.connect(self._on_progress)
        self._worker.image_completed.connect(self._on_image_completed)
        self._worker.finished_all.connect(self._on_finished)
        self._worker.error.connect(self._on_error)

        self._worker.start()

    def _on_progress(self, current: int, total: int, filename: str):
        logger.info("Processing %s (%d/%d)", filename, current, total)

    def _on_image_completed(self, outcome: RemovalOutcome):
        if not outcome.success:
            print(f"FAIL  {outcome.source_path.name}: {outcome.error_message}")
        elif outcome.applied:
            print(f"OK    {outcome.source_path.name} -> {outcome.output_path}")
        else:
            print(f"SKIP  {outcome.source_path.name} -> {outcome.output_path} "
                  f"(image too small for the overlay, copied unchanged)")

    def _on_error(self, error_message: str):
        logger.error(error_message)

    def _on_finished(self, results: list):
        self.results = results

        success_count = sum(1 for r in results if r.success)
        fail_count = len(results) - success_count
        print(f"\nDone: {success_count} succeeded, {fail_count} failed")

        if self._worker is not None:
            self._worker.wait()
            self._worker.deleteLater()
            self._worker = None

        self.app.quit()

    @property
    def exit_code(self) -> int:
        if not self.results:
            return 1
        return 0 if all(r.success for r in self.results) else 1


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="nanocleanse",
        description="Remove the corner logo overlay from generated images.",
    )
    parser.add_argument("images", nargs="+", type=Path, help="Input PNG/JPEG files")
    parser.add_argument(
        "-o", "--output-dir", type=Path, default=Path.cwd() / "output",
        help="Directory for cleaned PNG files (default: ./output)",
    )
    parser.add_argument(
        "--codec", choices=available_codecs(), default=config.DEFAULT_CODEC,
        help="Image codec backend",
    )
    parser.add_argument(
        "--log-level", default=None,
        help=f"Logging level (default: ${config.LOG_LEVEL_ENV_VAR} or {config.DEFAULT_LOG_LEVEL})",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point."""
    args = parse_args(argv)
    configure_logging(args.log_level or config.log_level(), config.log_file())

    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName(__app_name__)
    app.setApplicationVersion(__version__)

    removal_config = RemovalConfig(
        image_paths=args.images,
        output_dir=args.output_dir,
        codec=args.codec,
    )
    controller = RemovalController(app, removal_config)
    controller.start()

    app.exec()
    return controller.exit_code


if __name__ == "__main__":
    sys.exit(main())
