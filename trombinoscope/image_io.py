"""
Qt-free image I/O utilities.

Provides helpers to open photos, derive a person's name from a file name,
scan a folder for photos, and write files atomically.  Safe to import in
worker processes.
"""

import os
import shutil
import tempfile
from pathlib import Path

from PIL import Image

from trombinoscope.config import FAMILY_PLACEHOLDER, IMAGE_EXTENSIONS
from trombinoscope.models import PersonIdentity

# Class photos straight off a camera can be large
Image.MAX_IMAGE_PIXELS = None

NAME_SEPARATOR = "@"


def identity_from_filename(path: Path) -> PersonIdentity:
    """
    Split a file stem on ``@`` into given and family names.

    ``"Alice @ Dupont.jpg"`` gives ``("Alice", "Dupont")``.  Without a
    separator the whole stem is the given name and the family name is
    ``FAMILY_PLACEHOLDER``.
    """
    given, sep, family = Path(path).stem.partition(NAME_SEPARATOR)
    if not sep:
        return PersonIdentity(given.strip(), FAMILY_PLACEHOLDER)
    # Only the first "@" separates; anything after a second one is dropped
    family = family.split(NAME_SEPARATOR, 1)[0]
    return PersonIdentity(given.strip(), family.strip())


class UnsupportedImageError(OSError):
    """Pillow can read the file but it cannot carry a crop record."""


def open_image(path: Path) -> Image.Image:
    """
    Open and fully decode a JPEG photo as RGB.

    Raises OSError (including Pillow's UnidentifiedImageError) if the file
    cannot be read, and UnsupportedImageError if it is not a JPEG.
    """
    with Image.open(path) as img:
        if img.format != "JPEG":
            raise UnsupportedImageError(f"{Path(path).name} is {img.format}, not JPEG")
        return img.convert("RGB")


def scan_images(folder: Path) -> list[Path]:
    """Photos directly inside ``folder``, sorted case-insensitively by name."""
    return sorted(
        [f for f in Path(folder).iterdir() if f.is_file() and f.suffix.lower() in IMAGE_EXTENSIONS],
        key=lambda f: f.name.lower(),
    )


def write_atomic(path: Path, data: bytes) -> None:
    """
    Replace ``path`` with ``data`` via a temporary file in the same folder.

    Either the old or the new contents are on disk afterwards, never a
    truncated mix.  The temporary file is removed if anything fails.
    """
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600; keep the permissions of the file being replaced
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
