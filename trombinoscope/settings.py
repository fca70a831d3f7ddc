"""
Settings persistence: load, save, and validate user settings.

Runtime settings are stored in a JSON file in the user's config directory
(provided by ``config.config_dir()``).  On first launch (or if the file is
missing/corrupt), the file is created from the built-in defaults.  This
module is Qt-free and safe for worker import.

The on-disk format uses a versioned envelope::

    {
        "version": 1,
        "settings": {
            "aspect_ratio": [4, 5],
            "step_base": 10,
            "modifier_multipliers": {"shift": 5, "control": 0.1, "alt": 3},
            "jpeg_quality": 95
        }
    }
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path

from trombinoscope.config import (
    DEFAULT_ASPECT_RATIO, DEFAULT_MODIFIER_MULTIPLIERS, JPEG_QUALITY_DEFAULT,
    JPEG_QUALITY_MAX, JPEG_QUALITY_MIN, NUDGE_BASE, config_dir,
)

logger = logging.getLogger(__name__)

_SETTINGS_FILENAME = "settings.json"
_FORMAT_VERSION = 1

_REQUIRED_KEYS = {"aspect_ratio", "step_base", "modifier_multipliers", "jpeg_quality"}
_MODIFIER_NAMES = frozenset(DEFAULT_MODIFIER_MULTIPLIERS)


@dataclass
class Settings:
    aspect_ratio: tuple[int, int] = DEFAULT_ASPECT_RATIO
    step_base: int = NUDGE_BASE
    modifier_multipliers: dict = field(default_factory=lambda: dict(DEFAULT_MODIFIER_MULTIPLIERS))
    jpeg_quality: int = JPEG_QUALITY_DEFAULT

    def to_json(self) -> dict:
        data = asdict(self)
        data["aspect_ratio"] = list(self.aspect_ratio)
        return data

    @classmethod
    def from_json(cls, data: dict) -> "Settings":
        return cls(
            aspect_ratio=tuple(data["aspect_ratio"]),
            step_base=data["step_base"],
            modifier_multipliers=dict(data["modifier_multipliers"]),
            jpeg_quality=data["jpeg_quality"],
        )


def _settings_path() -> Path:
    """Return the full path to settings.json."""
    return config_dir() / _SETTINGS_FILENAME


def _is_number(val: object) -> bool:
    return isinstance(val, (int, float)) and not isinstance(val, bool)


# =============================================================================
# Validation
# =============================================================================
def validate_settings(data: object) -> list[str]:
    """
    Validate a settings dict (the ``settings`` part of the envelope).

    Returns a list of error strings (empty means valid).
    """
    errors: list[str] = []

    if not isinstance(data, dict):
        return ["Settings data must be a dict"]

    missing = _REQUIRED_KEYS - data.keys()
    if missing:
        return [f"missing keys: {', '.join(sorted(missing))}"]

    ratio = data["aspect_ratio"]
    if (
        not isinstance(ratio, (list, tuple)) or len(ratio) != 2
        or not all(isinstance(v, int) and not isinstance(v, bool) and v > 0 for v in ratio)
    ):
        errors.append(f"aspect_ratio must be two positive integers, got {ratio!r}")

    step = data["step_base"]
    if not isinstance(step, int) or isinstance(step, bool) or step <= 0:
        errors.append(f"step_base must be a positive integer, got {step!r}")

    mults = data["modifier_multipliers"]
    if not isinstance(mults, dict):
        errors.append("modifier_multipliers must be a dict")
    else:
        unknown = set(mults) - _MODIFIER_NAMES
        if unknown:
            errors.append(f"modifier_multipliers has unknown modifiers: {', '.join(sorted(unknown))}")
        for name, val in mults.items():
            if not _is_number(val) or val <= 0:
                errors.append(f"modifier_multipliers[{name!r}] must be a positive number, got {val!r}")

    quality = data["jpeg_quality"]
    if (
        not isinstance(quality, int) or isinstance(quality, bool)
        or not JPEG_QUALITY_MIN <= quality <= JPEG_QUALITY_MAX
    ):
        errors.append(
            f"jpeg_quality must be an integer in {JPEG_QUALITY_MIN}..{JPEG_QUALITY_MAX}, got {quality!r}"
        )

    return errors


# =============================================================================
# Load / Save
# =============================================================================
def load_settings() -> Settings:
    """
    Load settings from settings.json.

    If the file is missing, corrupt, or fails validation, writes the
    defaults and returns them.
    """
    path = _settings_path()

    if not path.exists():
        logger.info("settings.json not found, creating with defaults at %s", path)
        _write_defaults(path)
        return Settings()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read settings.json (%s), restoring defaults", exc)
        _write_defaults(path)
        return Settings()

    if not isinstance(raw, dict) or raw.get("version") != _FORMAT_VERSION or "settings" not in raw:
        logger.warning("settings.json missing version envelope, restoring defaults")
        _write_defaults(path)
        return Settings()

    data = raw["settings"]
    errors = validate_settings(data)
    if errors:
        logger.warning(
            "settings.json validation failed:\n  %s\nRestoring defaults.",
            "\n  ".join(errors),
        )
        _write_defaults(path)
        return Settings()

    return Settings.from_json(data)


def save_settings(settings: Settings) -> None:
    """
    Validate and write settings to settings.json in versioned envelope.

    Raises ValueError if validation fails.
    Raises OSError if the file cannot be written.
    """
    data = settings.to_json()
    errors = validate_settings(data)
    if errors:
        raise ValueError("Invalid settings:\n  " + "\n  ".join(errors))

    envelope = {"version": _FORMAT_VERSION, "settings": data}
    path = _settings_path()
    path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Saved settings to %s", path)


def _write_defaults(path: Path) -> None:
    """Write the default settings to the given path in versioned envelope."""
    try:
        envelope = {"version": _FORMAT_VERSION, "settings": Settings().to_json()}
        path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    except OSError as exc:
        logger.error("Could not write default settings to %s: %s", path, exc)
