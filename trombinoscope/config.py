"""
Application constants and configuration.

DEFAULT_ASPECT_RATIO and the nudge constants are the built-in fallbacks.
Runtime values are loaded from settings.json via the settings module.  All
other constants control the embedded metadata segment, export, and folder
scanning.

The ``config_dir()`` helper returns the platform-appropriate config
directory and is shared by the persistence modules.
"""

import os
import sys
from pathlib import Path

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "trombinoscope"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


# =============================================================================
# EMBEDDED METADATA: the private JPEG segment holding a CropRecord
# =============================================================================
# APP14.  Adobe also writes APP14 segments, so ours carry a label prefix.
OUR_MARKER = 0xEE
OUR_LABEL = b"trombinoscope\x00"

# =============================================================================
# CROP GEOMETRY
# =============================================================================
# (height_units, width_units): a width of 200 gives a height of 160
DEFAULT_ASPECT_RATIO = (4, 5)

# Initial crop width is the image width divided by this
INITIAL_WIDTH_DIVISOR = 5

# Shown as the family name when the file name has no "@" separator
FAMILY_PLACEHOLDER = "Separate given and family names with `@`"

# Nudge amount (pixels in image coordinates) before modifier scaling
NUDGE_BASE = 10

# Multipliers compose: Shift+Alt moves 15x the base step
DEFAULT_MODIFIER_MULTIPLIERS = {
    "shift": 5,
    "control": 0.1,
    "alt": 3,
}

# =============================================================================
# EXPORT
# =============================================================================
JPEG_QUALITY_DEFAULT = 95
JPEG_QUALITY_MIN = 1
JPEG_QUALITY_MAX = 100

# Cropped derivatives go here unless a folder is given on the command line
DEFAULT_OUTPUT_FOLDER = "cropped"

# Only JPEG containers can carry the embedded crop record
IMAGE_EXTENSIONS = {".jpg", ".jpeg"}
