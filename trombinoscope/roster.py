"""
Roster of the people photographed, written next to the cropped derivatives.

The layout step reads it to place each derivative under its name, ordered
by family name then given name (both case-insensitive).

The on-disk format uses a versioned envelope::

    {
        "version": 1,
        "entries": [
            {"image": "Alice @ Dupont", "given": "Alice", "family": "Dupont"}
        ]
    }

``image`` is the derivative's file stem.  This module is Qt-free.
"""

import json
import logging
from pathlib import Path

from trombinoscope.models import PersonIdentity

logger = logging.getLogger(__name__)

ROSTER_FILENAME = "roster.json"
_ROSTER_VERSION = 1


def sort_key(identity: PersonIdentity) -> tuple[str, str]:
    return identity.family.upper(), identity.given.upper()


def roster_entries(sessions) -> list[dict]:
    """Roster entries for ``sessions``, sorted by family then given name."""
    ordered = sorted(sessions, key=lambda s: sort_key(s.identity))
    return [
        {"image": s.path.stem, "given": s.identity.given, "family": s.identity.family}
        for s in ordered
    ]


def save_roster(folder: Path, sessions) -> Path:
    """
    Write the roster for ``sessions`` into ``folder``.

    Raises OSError if the file cannot be written.
    """
    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / ROSTER_FILENAME
    envelope = {"version": _ROSTER_VERSION, "entries": roster_entries(sessions)}
    path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Wrote roster (%d entries) to %s", len(envelope["entries"]), path)
    return path


def load_roster(folder: Path) -> list[dict]:
    """
    Load the roster from ``folder``.

    Returns an empty list if the file is missing, corrupt, or has an
    unexpected version.
    """
    path = Path(folder) / ROSTER_FILENAME

    if not path.exists():
        logger.debug("No roster found at %s", path)
        return []

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read roster (%s)", exc)
        return []

    if not isinstance(raw, dict) or raw.get("version") != _ROSTER_VERSION:
        logger.warning("Roster version mismatch or invalid format at %s", path)
        return []

    entries = raw.get("entries")
    if not isinstance(entries, list):
        logger.warning("Roster missing 'entries' list at %s", path)
        return []

    return [
        e for e in entries
        if isinstance(e, dict) and all(isinstance(e.get(k), str) for k in ("image", "given", "family"))
    ]
