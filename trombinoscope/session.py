"""
One photo's editable crop state.

A CropSession owns the decoded pixels, a rotated copy of them, the person's
identity, the crop rectangle and the rotation.  The rectangle is expressed
in the rotated frame.  Turning the photo does not move the rectangle, so it
may fall outside the new frame; further edits are then rejected until it
fits again.

Nothing here touches disk except ``persist()``.  This module is Qt-free.
"""

import logging
from pathlib import Path

from PIL import Image

from trombinoscope.config import DEFAULT_ASPECT_RATIO
from trombinoscope.image_io import identity_from_filename, open_image, write_atomic
from trombinoscope.metadata import ContainerError, DecodeError, decode, write_record
from trombinoscope.models import (
    CropRecord, CropRect, Direction, PersonIdentity, crop_box, default_rect, move,
)

logger = logging.getLogger(__name__)

# Clockwise quarter turns -> Pillow transpose
_ROTATIONS = {
    1: Image.Transpose.ROTATE_270,
    2: Image.Transpose.ROTATE_180,
    3: Image.Transpose.ROTATE_90,
}


class CropSession:
    def __init__(
        self,
        path: Path,
        image: Image.Image,
        identity: PersonIdentity | None = None,
        rect: CropRect | None = None,
        rotation: int = 0,
        ratio: tuple[int, int] = DEFAULT_ASPECT_RATIO,
    ):
        self.path = Path(path)
        self._image = image
        self.identity = identity or identity_from_filename(self.path)
        self.rotation = rotation % 4
        self._rotated = self._build_rotated()
        self.rect = rect or default_rect(self._rotated.width, self._rotated.height, ratio)

    # --- Loading ---

    @classmethod
    def load(cls, path: Path, ratio: tuple[int, int] = DEFAULT_ASPECT_RATIO) -> "CropSession | None":
        """
        Decode a photo and apply its embedded crop record, if any.

        Returns None if the file cannot be decoded, is not a JPEG, or its
        segment list cannot be parsed.
        Raises DecodeError if the file carries a corrupt crop record.
        """
        path = Path(path)
        try:
            image = open_image(path)
            raw = path.read_bytes()
        except OSError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return None

        try:
            record = decode(raw)
        except ContainerError as exc:
            logger.warning("Skipping %s, cannot parse its JPEG segments: %s", path, exc)
            return None

        session = cls(path, image, ratio=ratio)
        if record is not None:
            session.apply_record(record)
            logger.debug("Restored crop for %s: %s", path.name, record)
        logger.info("Loaded %s (%dx%d)", path.name, image.width, image.height)
        return session

    def apply_record(self, record: CropRecord) -> None:
        self.identity = PersonIdentity(record.given, record.family)
        self.set_rotation(record.rotation)
        self.rect = CropRect(record.x, record.y, record.w, self.rect.ratio)

    # --- Pixels ---

    def _build_rotated(self) -> Image.Image:
        transpose = _ROTATIONS.get(self.rotation)
        if transpose is None:
            return self._image
        return self._image.transpose(transpose)

    @property
    def rotated_image(self) -> Image.Image:
        return self._rotated

    @property
    def size(self) -> tuple[int, int]:
        """Size of the photo as stored, before rotation."""
        return self._image.size

    @property
    def bounds(self) -> tuple[int, int]:
        """Size of the rotated frame the rectangle lives in."""
        return self._rotated.width, self._rotated.height

    def current_crop_image(self) -> Image.Image:
        """The rotated photo cropped to the current rectangle."""
        return self._rotated.crop(crop_box(self.rect))

    # --- Mutation ---

    def mutate(self, direction: Direction, step: int) -> None:
        self.rect = move(self.rect, direction, step, self.bounds)

    def set_rotation(self, k: int) -> None:
        self.rotation = k % 4
        self._rotated = self._build_rotated()

    def rotate(self, delta: int) -> None:
        self.set_rotation(self.rotation + delta)

    # --- Persistence ---

    def record(self) -> CropRecord:
        return CropRecord(
            self.identity.given, self.identity.family,
            self.rect.x, self.rect.y, self.rect.w, self.rotation,
        )

    def persist(self) -> None:
        """
        Embed the current crop record in the source file.

        The new file is fully encoded in memory and swapped in atomically;
        on any error the source file is left as it was.
        """
        data = write_record(self.path.read_bytes(), self.record())
        write_atomic(self.path, data)
        logger.info("Embedded crop metadata in %s", self.path.name)

    def __repr__(self) -> str:
        return f"CropSession({self.path.name!r}, rect={self.rect}, rotation={self.rotation})"


def load_sessions(
    paths, ratio: tuple[int, int] = DEFAULT_ASPECT_RATIO, skip_corrupt: bool = False,
) -> list[CropSession]:
    """
    Load every readable photo in ``paths``, keeping their order.

    Unreadable files are skipped.  A corrupt crop record aborts the batch
    unless ``skip_corrupt`` is set, in which case that file is skipped too.
    """
    sessions = []
    for path in paths:
        try:
            session = CropSession.load(path, ratio)
        except DecodeError as exc:
            if not skip_corrupt:
                raise
            logger.error("Skipping %s, its crop record is corrupt: %s", path, exc)
            continue
        if session is not None:
            sessions.append(session)
    logger.info("Loaded %d photo(s)", len(sessions))
    return sessions
