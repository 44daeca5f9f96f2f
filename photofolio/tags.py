"""
Typed EXIF tags kept in the catalog.

Each tag keeps the TIFF data type it was declared with, so its encoded size can
be computed without guessing from the Python value. Tags whose size is unknown
or too large are dropped before they are stored.
"""

import base64
import binascii
import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from loguru import logger

from photofolio.errors import MalformedCatalog

DEFAULT_MAX_TAG_BYTES = 1024


class TagType(enum.Enum):
    UNKNOWN = 0
    BYTE = 1
    ASCII = 2
    SHORT = 3
    LONG = 4
    RATIONAL = 5
    SBYTE = 6
    UNDEFINED = 7
    SSHORT = 8
    SLONG = 9
    SRATIONAL = 10
    FLOAT = 11
    DOUBLE = 12
    IFD = 13
    LONG8 = 16
    SLONG8 = 17
    IFD8 = 18

    @classmethod
    def from_code(cls, code) -> "TagType":
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN

    @property
    def width(self) -> Optional[int]:
        """
        Byte width of one scalar of this type, or None if not fixed.
        """
        return TYPE_WIDTHS.get(self)


TYPE_WIDTHS = {
    TagType.BYTE: 1,
    TagType.SBYTE: 1,
    TagType.UNDEFINED: 1,
    TagType.SHORT: 2,
    TagType.SSHORT: 2,
    TagType.LONG: 4,
    TagType.SLONG: 4,
    TagType.FLOAT: 4,
    TagType.IFD: 4,
    TagType.RATIONAL: 8,
    TagType.SRATIONAL: 8,
    TagType.DOUBLE: 8,
    TagType.LONG8: 8,
    TagType.SLONG8: 8,
    TagType.IFD8: 8,
}


@dataclass(frozen=True)
class Rational:
    numerator: int
    denominator: int

    def __float__(self):
        if self.denominator == 0:
            return float("nan")
        return self.numerator / self.denominator

    def __str__(self):
        return f"{self.numerator}/{self.denominator}"


@dataclass(frozen=True)
class Tag:
    type: TagType
    value: Any


# -----------------------------
# SIZE FILTER
# -----------------------------

def tag_size(tag: Tag) -> Optional[int]:
    """
    Encoded size of a tag in bytes, or None when it cannot be determined.
    bytes and tuples are arrays: one element per byte / item.
    """
    value = tag.value
    if isinstance(value, (bytes, tuple, list)):
        total = 0
        for element in value:
            size = _value_size(tag.type, element)
            if size is None:
                return None
            total += size
        return total
    return _value_size(tag.type, value)


def _value_size(tag_type: TagType, value) -> Optional[int]:
    if value is None:
        return 0
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    return tag_type.width


def filter_tags(tags: Optional[Dict[str, Tag]], max_entry_bytes: int) -> Optional[Dict[str, Tag]]:
    """
    Return a copy of `tags` without the entries that are unknown-sized or
    larger than `max_entry_bytes`.
    """
    if tags is None:
        return None

    kept = {}
    for name, tag in tags.items():
        size = tag_size(tag)
        if size is None or size > max_entry_bytes:
            logger.debug("drop tag {} ({}, {} bytes)", name, tag.type.name, size)
            continue
        kept[name] = tag
    return kept


# -----------------------------
# JSON ENCODING
# -----------------------------

def encode_tags(tags: Dict[str, Tag]) -> dict:
    return {
        name: {"type": tag.type.name, "value": _encode_value(tag.value)}
        for name, tag in tags.items()
    }


def _encode_value(value):
    if isinstance(value, Rational):
        return [value.numerator, value.denominator]
    if isinstance(value, bytes):
        return {"base64": base64.b64encode(value).decode("ascii")}
    if isinstance(value, (tuple, list)):
        return [_encode_value(v) for v in value]
    return value


def decode_tags(raw) -> Dict[str, Tag]:
    if not isinstance(raw, dict):
        raise MalformedCatalog("tags must be an object")

    tags = {}
    for name, entry in raw.items():
        try:
            tag_type = TagType[entry["type"]]
            tags[name] = Tag(tag_type, _decode_value(tag_type, entry.get("value")))
        except (KeyError, TypeError, ValueError, binascii.Error) as e:
            raise MalformedCatalog(f"invalid tag {name}: {e}") from e
    return tags


def _decode_value(tag_type: TagType, raw):
    if isinstance(raw, dict):
        return base64.b64decode(raw["base64"], validate=True)
    if isinstance(raw, list):
        is_pair = len(raw) == 2 and all(isinstance(v, int) for v in raw)
        if tag_type in (TagType.RATIONAL, TagType.SRATIONAL) and is_pair:
            return Rational(raw[0], raw[1])
        return tuple(_decode_value(tag_type, v) for v in raw)
    return raw


# -----------------------------
# LOOKUPS
# -----------------------------

CAPTION_TAGS = ("XPComment", "ImageDescription", "UserComment")

DATETIME_TAGS = (
    ("DateTime", "OffsetTime"),
    ("DateTimeOriginal", "OffsetTimeOriginal"),
    ("DateTimeDigitized", "OffsetTimeDigitized"),
)

USER_COMMENT_CHARSETS = {
    b"ASCII\x00\x00\x00": "ascii",
    b"UNICODE\x00": "utf-16-le",
    b"JIS\x00\x00\x00\x00\x00": "shift_jis",
}


def caption(tags: Optional[Dict[str, Tag]]) -> Optional[str]:
    if not tags:
        return None

    for name in CAPTION_TAGS:
        tag = tags.get(name)
        if tag is None:
            continue
        text = _clean(_tag_text(name, tag.value))
        if text:
            return text
    return None


def _tag_text(name: str, value) -> Optional[str]:
    if isinstance(value, str):
        return value
    if not isinstance(value, bytes):
        return None
    if name.startswith("XP"):
        return value.decode("utf-16-le", errors="ignore")
    if name == "UserComment":
        charset = USER_COMMENT_CHARSETS.get(value[:8], "utf-8")
        return value[8:].decode(charset, errors="replace")
    return value.decode("utf-8", errors="replace")


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip().strip("\x00").strip()
    return text or None


def _string(tags: Dict[str, Tag], name: str) -> Optional[str]:
    tag = tags.get(name)
    if tag is None:
        return None
    value = tag.value
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None
    return _clean(value)


def taken_at(tags: Optional[Dict[str, Tag]]) -> Optional[datetime]:
    """
    Best-known capture time. Times recorded without an offset are read as UTC.
    """
    if not tags:
        return None

    for datetime_name, offset_name in DATETIME_TAGS:
        value = _parse_datetime(_string(tags, datetime_name), _string(tags, offset_name))
        if value is not None:
            return value

    date = _string(tags, "GPSDateStamp")
    if date:
        try:
            return datetime.strptime(date, "%Y:%m:%d").replace(tzinfo=timezone.utc)
        except ValueError:
            return None
    return None


def _parse_datetime(value: Optional[str], offset: Optional[str]) -> Optional[datetime]:
    if not value:
        return None

    if offset:
        try:
            return datetime.strptime(f"{value}{offset}", "%Y:%m:%d %H:%M:%S%z")
        except ValueError:
            pass

    try:
        return datetime.strptime(value, "%Y:%m:%d %H:%M:%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return None
