"""
Embedded crop metadata: a CropRecord stored in a private JPEG segment.

A JPEG file is a list of marker segments between SOI and EOI.  The record
lives in an APP14 segment whose payload starts with ``OUR_LABEL``; APP14
segments without the label (Adobe writes one) are left alone.

Payload layout after the label::

    u16 len | given (UTF-8) | u16 len | family (UTF-8) | i32 x | i32 y | i32 w | i8 rotation

All integers are big-endian, like the JPEG length fields around them.

``write_record`` replaces our segment where it already sits, or inserts it
before the last segment (the final scan) so that re-writing the same
record yields identical bytes.  This module is Qt-free.
"""

import struct
from dataclasses import dataclass, field

from trombinoscope.config import OUR_LABEL, OUR_MARKER
from trombinoscope.models import CropRecord

SOI = 0xD8
EOI = 0xD9
SOS = 0xDA

# Markers with no length field: RST0-RST7 and TEM
_STANDALONE = frozenset(range(0xD0, 0xD8)) | {0x01}

_NAME_LEN = struct.Struct(">H")
_NUMBERS = struct.Struct(">iiib")

# Segment length field counts itself
_MAX_PAYLOAD = 0xFFFF - 2


# =============================================================================
# Errors
# =============================================================================
class MetadataError(ValueError):
    """Base class for embedded-metadata failures."""


class ContainerError(MetadataError):
    """The bytes are not a JPEG container we can parse."""


class DecodeError(MetadataError):
    """Our segment is present but its payload is corrupt."""


class EncodeError(MetadataError):
    """A record cannot be represented in the payload format."""


# =============================================================================
# Segment list
# =============================================================================
@dataclass
class Segment:
    marker: int
    payload: bytes = b""
    # Entropy-coded data following an SOS header
    scan_data: bytes = b""
    # Extra 0xFF fill bytes found before the marker
    fill: int = 0

    def to_bytes(self) -> bytes:
        prefix = b"\xff" * self.fill
        if self.marker in _STANDALONE:
            return prefix + bytes((0xFF, self.marker)) + self.scan_data
        if len(self.payload) > _MAX_PAYLOAD:
            raise EncodeError(f"segment payload too large ({len(self.payload)} bytes)")
        head = prefix + bytes((0xFF, self.marker)) + struct.pack(">H", len(self.payload) + 2)
        return head + self.payload + self.scan_data


@dataclass
class JpegFile:
    """Segments between SOI and EOI, plus anything found after EOI."""
    segments: list[Segment] = field(default_factory=list)
    trailer: bytes = b""
    eoi_fill: int = 0

    def to_bytes(self) -> bytes:
        parts = [bytes((0xFF, SOI))]
        parts.extend(seg.to_bytes() for seg in self.segments)
        parts.append(b"\xff" * self.eoi_fill + bytes((0xFF, EOI)))
        parts.append(self.trailer)
        return b"".join(parts)

    def find_ours(self) -> int | None:
        """Index of the segment carrying our label, or None."""
        for i, seg in enumerate(self.segments):
            if seg.marker == OUR_MARKER and seg.payload.startswith(OUR_LABEL):
                return i
        return None


def _scan_end(data: bytes, pos: int) -> int:
    """Return the offset of the first marker after entropy-coded data at ``pos``."""
    n = len(data)
    while True:
        pos = data.find(b"\xff", pos)
        if pos < 0 or pos + 1 >= n:
            raise ContainerError("scan data runs past end of file")
        nxt = data[pos + 1]
        # Stuffed zero byte or restart marker: still inside the scan
        if nxt == 0x00 or 0xD0 <= nxt <= 0xD7:
            pos += 2
            continue
        return pos


def parse_segments(data: bytes) -> JpegFile:
    """Split a JPEG byte stream into its marker segments."""
    if len(data) < 4 or data[0] != 0xFF or data[1] != SOI:
        raise ContainerError("missing JPEG start-of-image marker")

    jpeg = JpegFile()
    n = len(data)
    pos = 2
    while True:
        if pos >= n or data[pos] != 0xFF:
            raise ContainerError(f"expected a marker at offset {pos}")
        # Any number of 0xFF fill bytes may precede a marker
        start = pos
        while pos < n and data[pos] == 0xFF:
            pos += 1
        fill = pos - start - 1
        if pos >= n:
            raise ContainerError("file ends inside a marker")
        marker = data[pos]
        pos += 1

        if marker == EOI:
            jpeg.trailer = data[pos:]
            jpeg.eoi_fill = fill
            return jpeg
        if marker in _STANDALONE:
            jpeg.segments.append(Segment(marker, fill=fill))
            continue
        if marker == SOI or marker == 0x00:
            raise ContainerError(f"unexpected marker 0x{marker:02X} at offset {pos - 1}")

        if pos + 2 > n:
            raise ContainerError("truncated segment length")
        (length,) = struct.unpack_from(">H", data, pos)
        if length < 2 or pos + length > n:
            raise ContainerError(f"bad length {length} for marker 0x{marker:02X}")
        payload = data[pos + 2:pos + length]
        pos += length

        seg = Segment(marker, payload, fill=fill)
        if marker == SOS:
            end = _scan_end(data, pos)
            seg.scan_data = data[pos:end]
            pos = end
        jpeg.segments.append(seg)


# =============================================================================
# Record payload
# =============================================================================
def encode(record: CropRecord) -> bytes:
    """Serialize a CropRecord to a labelled segment payload."""
    parts = [OUR_LABEL]
    for name in (record.given, record.family):
        raw = name.encode("utf-8")
        if len(raw) > 0xFFFF:
            raise EncodeError(f"name too long to embed ({len(raw)} bytes)")
        parts.append(_NAME_LEN.pack(len(raw)))
        parts.append(raw)
    try:
        parts.append(_NUMBERS.pack(record.x, record.y, record.w, record.rotation))
    except struct.error as exc:
        raise EncodeError(f"crop values out of range: {exc}") from exc
    payload = b"".join(parts)
    if len(payload) > _MAX_PAYLOAD:
        raise EncodeError(f"record too large to embed ({len(payload)} bytes)")
    return payload


def decode_payload(payload: bytes) -> CropRecord:
    """Deserialize a labelled payload; raise DecodeError on any inconsistency."""
    if not payload.startswith(OUR_LABEL):
        raise DecodeError("payload does not carry our label")
    pos = len(OUR_LABEL)
    names = []
    try:
        for _ in range(2):
            (size,) = _NAME_LEN.unpack_from(payload, pos)
            pos += _NAME_LEN.size
            raw = payload[pos:pos + size]
            if len(raw) != size:
                raise DecodeError("name field runs past end of payload")
            names.append(raw.decode("utf-8"))
            pos += size
        x, y, w, rotation = _NUMBERS.unpack_from(payload, pos)
    except struct.error as exc:
        raise DecodeError(f"payload too short: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise DecodeError(f"name is not valid UTF-8: {exc}") from exc
    pos += _NUMBERS.size
    if pos != len(payload):
        raise DecodeError(f"{len(payload) - pos} unexpected trailing byte(s)")
    given, family = names
    return CropRecord(given, family, x, y, w, rotation)


# =============================================================================
# Container operations
# =============================================================================
def decode(jpeg_bytes: bytes) -> CropRecord | None:
    """Return the embedded CropRecord, or None if the file has never been cropped."""
    jpeg = parse_segments(jpeg_bytes)
    idx = jpeg.find_ours()
    if idx is None:
        return None
    return decode_payload(jpeg.segments[idx].payload)


def write_record(jpeg_bytes: bytes, record: CropRecord) -> bytes:
    """Return ``jpeg_bytes`` with our segment replaced or inserted."""
    jpeg = parse_segments(jpeg_bytes)
    new_segment = Segment(OUR_MARKER, encode(record))
    idx = jpeg.find_ours()
    if idx is not None:
        jpeg.segments[idx] = new_segment
    else:
        jpeg.segments.insert(max(len(jpeg.segments) - 1, 0), new_segment)
    return jpeg.to_bytes()
