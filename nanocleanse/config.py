"""Project-wide defaults and environment overrides.

Values are read from the environment at call time, never at import time,
so tests and the command line can change them freely.
"""

import os
from pathlib import Path
from typing import Optional

# Reference captures
PACKAGED_ASSETS_DIR = Path(__file__).parent / "core" / "assets"
ASSETS_DIR_ENV_VAR = "NANOCLEANSE_ASSETS_DIR"
CAPTURE_FILENAME = "bg_{size}.png"

# Logging
DEFAULT_LOG_LEVEL = "INFO"
LOG_LEVEL_ENV_VAR = "NANOCLEANSE_LOG_LEVEL"
LOG_FILE_ENV_VAR = "NANOCLEANSE_LOG_FILE"

# Output
DEFAULT_CODEC = "pillow"
OUTPUT_SUFFIX = "_unwatermarked"
OUTPUT_FORMAT = "png"


def assets_dir() -> Path:
    """Directory holding bg_48.png and bg_96.png."""
    override = os.environ.get(ASSETS_DIR_ENV_VAR)
    if override:
        return Path(override)
    return PACKAGED_ASSETS_DIR


def log_level() -> str:
    return os.environ.get(LOG_LEVEL_ENV_VAR, DEFAULT_LOG_LEVEL)


def log_file() -> Optional[str]:
    return os.environ.get(LOG_FILE_ENV_VAR) or None
