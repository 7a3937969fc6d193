"""
Removal Workers - Async Watermark Removal
=========================================
QThread workers that run the engine off the calling thread.

Workflow (batch):
1. For each image in the queue:
   a. Run the engine on the file
   b. Save the PNG result to the output directory
2. Emit progress signals during processing
3. Emit finished signal with results

Naming Convention:
- filename_unwatermarked.png
- A numeric suffix is added when two inputs share a stem or the
  output directory already holds the name
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set

from PyQt6.QtCore import QThread, pyqtSignal

from nanocleanse.config import DEFAULT_CODEC, OUTPUT_FORMAT, OUTPUT_SUFFIX
from nanocleanse.core.captures import missing_captures_hint
from nanocleanse.core.codec import get_codec
from nanocleanse.core.engine import RemovalResult, WatermarkEngine
from nanocleanse.core.errors import ProcessingError, ReferenceCaptureError

logger = logging.getLogger(__name__)

# Processing states reported through status_changed
STATUS_IDLE = "idle"
STATUS_PROCESSING = "processing"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"

MSG_ANALYZING = "Analyzing alpha maps..."
MSG_REMOVING = "Removing watermark..."


@dataclass
class RemovalConfig:
    """Configuration for a batch removal run."""
    image_paths: List[Path] = field(default_factory=list)
    output_dir: Path = field(default_factory=lambda: Path.cwd() / "output")
    codec: str = DEFAULT_CODEC
    output_suffix: str = OUTPUT_SUFFIX


@dataclass
class RemovalOutcome:
    """Result of removal for a single image."""
    source_path: Path
    output_path: Optional[Path] = None
    result: Optional[RemovalResult] = None
    success: bool = False
    error_message: str = ""

    @property
    def applied(self) -> bool:
        """True if the overlay footprint was actually unblended."""
        return self.result is not None and self.result.applied


def _run_engine(engine: WatermarkEngine, outcome: RemovalOutcome) -> None:
    """Fill `outcome` by running the engine on its source path."""
    try:
        outcome.result = engine.process(outcome.source_path)
        outcome.success = True
    except ProcessingError as e:
        outcome.success = False
        outcome.error_message = str(e)
        logger.error("Failed to process %s: %s", outcome.source_path, e)
    except Exception as e:
        outcome.success = False
        outcome.error_message = f"Processing failed: {e}"
        logger.exception("Unexpected error processing %s", outcome.source_path)


class RemovalWorker(QThread):
    """
    Worker thread for removing the overlay from one image.

    The cleaned PNG is returned in the outcome and written to disk only
    when an output path is given.

    Signals:
        status_changed(str, str): (state, message)
        result_ready(RemovalOutcome): Emitted with the outcome
        error(str): Emitted on failure
    """

    status_changed = pyqtSignal(str, str)  # state, message
    result_ready = pyqtSignal(object)  # RemovalOutcome
    error = pyqtSignal(str)  # Error message

    def __init__(
            self,
            image_path: Path,
            output_path: Optional[Path] = None,
            engine: Optional[WatermarkEngine] = None,
            parent=None
    ):
        super().__init__(parent)
        self.image_path = Path(image_path)
        self.output_path = Path(output_path) if output_path is not None else None
        self._engine = engine

    def run(self):
        outcome = RemovalOutcome(source_path=self.image_path)
        engine = self._engine or WatermarkEngine()

        self.status_changed.emit(STATUS_PROCESSING, MSG_ANALYZING)
        try:
            engine.init()
        except ReferenceCaptureError as e:
            outcome.error_message = f"{e}. {missing_captures_hint()}"
            logger.error("Cannot initialise engine: %s", outcome.error_message)
        except ProcessingError as e:
            outcome.error_message = str(e)
            logger.error("Cannot initialise engine: %s", e)
        except Exception as e:
            outcome.error_message = f"Processing failed: {e}"
            logger.exception("Cannot initialise engine")
        else:
            self.status_changed.emit(STATUS_PROCESSING, MSG_REMOVING)
            _run_engine(engine, outcome)

        if outcome.success and self.output_path is not None:
            try:
                self.output_path.parent.mkdir(parents=True, exist_ok=True)
                self.output_path.write_bytes(outcome.result.png_bytes)
                outcome.output_path = self.output_path
            except OSError as e:
                outcome.success = False
                outcome.error_message = f"Cannot write {self.output_path}: {e}"
                logger.error(outcome.error_message)

        if outcome.success:
            self.status_changed.emit(STATUS_SUCCESS, "")
        else:
            self.status_changed.emit(STATUS_ERROR, outcome.error_message)
            self.error.emit(outcome.error_message)

        self.result_ready.emit(outcome)


class BatchRemovalWorker(QThread):
    """
    Worker thread for removing the overlay from a list of images.

    Signals:
        progress(int, int, str): (current, total, current_file_name)
        image_completed(RemovalOutcome): Emitted when each image is processed
        finished_all(list[RemovalOutcome]): Emitted when all images are done
        error(str): Emitted on critical errors
    """

    progress = pyqtSignal(int, int, str)  # current, total, filename
    image_completed = pyqtSignal(object)  # RemovalOutcome
    finished_all = pyqtSignal(list)  # List[RemovalOutcome]
    error = pyqtSignal(str)  # Error message

    def __init__(
            self,
            config: RemovalConfig,
            engine: Optional[WatermarkEngine] = None,
            parent=None
    ):
        super().__init__(parent)
        self.config = config
        self._engine = engine
        self._is_cancelled = False
        self._used_names: Set[str] = set()

    def cancel(self):
        """Request cancellation; takes effect before the next image."""
        self._is_cancelled = True

    def _generate_output_filename(self, source_path: Path) -> str:
        """
        Build an output filename not used in this batch or on disk.

        Returns:
            `<stem><suffix>.png`, or `<stem><suffix>_<n>.png` on collision.
        """
        base_name = f"{source_path.stem}{self.config.output_suffix}"
        extension = f".{OUTPUT_FORMAT}"

        name = f"{base_name}{extension}"
        counter = 1
        while name in self._used_names or (self.config.output_dir / name).exists():
            name = f"{base_name}_{counter}{extension}"
            counter += 1

        self._used_names.add(name)
        return name

    def _process_single_image(self, engine: WatermarkEngine, image_path: Path) -> RemovalOutcome:
        outcome = RemovalOutcome(source_path=image_path)
        _run_engine(engine, outcome)
        if not outcome.success:
            return outcome

        output_path = self.config.output_dir / self._generate_output_filename(image_path)
        try:
            output_path.write_bytes(outcome.result.png_bytes)
            outcome.output_path = output_path
        except OSError as e:
            outcome.success = False
            outcome.error_message = f"Cannot write {output_path}: {e}"
            logger.error(outcome.error_message)

        return outcome

    def run(self):
        results: List[RemovalOutcome] = []
        total = len(self.config.image_paths)

        if total == 0:
            self.error.emit("No images to process")
            self.finished_all.emit(results)
            return

        try:
            engine = self._engine or WatermarkEngine(codec=get_codec(self.config.codec))
            engine.init()
            self.config.output_dir.mkdir(parents=True, exist_ok=True)

            for idx, image_path in enumerate(self.config.image_paths):
                if self._is_cancelled:
                    logger.info("Batch cancelled after %d/%d images", idx, total)
                    break

                image_path = Path(image_path)
                self.progress.emit(idx + 1, total, image_path.name)

                outcome = self._process_single_image(engine, image_path)
                results.append(outcome)
                self.image_completed.emit(outcome)

        except ReferenceCaptureError as e:
            self.error.emit(f"Critical error: {e}. {missing_captures_hint()}")
            logger.error("Batch aborted: %s", e)

        except (ProcessingError, ValueError, OSError) as e:
            self.error.emit(f"Critical error: {e}")
            logger.error("Batch aborted: %s", e)

        except Exception as e:
            self.error.emit(f"Critical error: {e}")
            logger.exception("Batch aborted")

        self.finished_all.emit(results)
