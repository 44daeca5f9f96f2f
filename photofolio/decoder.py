"""
Photo decoding: dimensions, perceptual hash and EXIF tags via Pillow.

EXIF is read with TiffImagePlugin.ImageFileDirectory_v2 directly instead of
Image.getexif(), because the directory keeps the declared TIFF type of every
entry, which the tag size filter needs.
"""

import io
from dataclasses import dataclass
from typing import BinaryIO, Dict, Optional

import imagehash
from loguru import logger
from PIL import ExifTags, Image, TiffImagePlugin, UnidentifiedImageError

from photofolio.errors import FetchFailure
from photofolio.tags import Rational, Tag, TagType

EXIF_HEADER = b"Exif\x00\x00"

# Sub-directory pointers in IFD0, with the name table for their entries.
EXIF_IFD_POINTER = 0x8769
GPS_IFD_POINTER = 0x8825
INTEROP_IFD_POINTER = 0xA005
POINTER_TAGS = {EXIF_IFD_POINTER, GPS_IFD_POINTER, INTEROP_IFD_POINTER}


@dataclass(frozen=True)
class DecodedPhoto:
    width: int
    height: int
    perceptual_hash: Optional[str]
    tags: Optional[Dict[str, Tag]]


class PhotoDecoder:
    """
    Decodes a fetched photo stream into the values stored in the catalog.
    """

    def __init__(self, hash_size: int = 8):
        self.hash_size = hash_size

    def decode(self, stream: BinaryIO) -> DecodedPhoto:
        try:
            with Image.open(stream) as image:
                image.load()
                width, height = image.size
                phash = str(imagehash.phash(image, hash_size=self.hash_size))
                exif_bytes = image.info.get("exif")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise FetchFailure(f"cannot decode image: {e}") from e

        tags = read_exif(exif_bytes) if exif_bytes else None
        return DecodedPhoto(width=width, height=height, perceptual_hash=phash, tags=tags)


def read_exif(data: bytes) -> Dict[str, Tag]:
    """
    Read IFD0 plus the Exif and GPS sub-directories into one tag map keyed by
    tag name.
    """
    if data.startswith(EXIF_HEADER):
        data = data[len(EXIF_HEADER):]

    fp = io.BytesIO(data)
    head = fp.read(8)
    try:
        ifd0 = TiffImagePlugin.ImageFileDirectory_v2(head)
        fp.seek(ifd0.next)
        ifd0.load(fp)
    except (SyntaxError, OSError, ValueError) as e:
        logger.warning("unreadable exif block: {}", e)
        return {}

    tags = _collect(ifd0, ExifTags.TAGS)
    for pointer, names in ((EXIF_IFD_POINTER, ExifTags.TAGS), (GPS_IFD_POINTER, ExifTags.GPSTAGS)):
        offset = ifd0.get(pointer)
        if not isinstance(offset, int):
            continue
        try:
            sub = TiffImagePlugin.ImageFileDirectory_v2(head)
            fp.seek(offset)
            sub.load(fp)
        except (SyntaxError, OSError, ValueError) as e:
            logger.warning("unreadable exif sub-directory {:#06x}: {}", pointer, e)
            continue
        tags.update(_collect(sub, names))
    return tags


def _collect(ifd, names) -> Dict[str, Tag]:
    tags = {}
    for tag_id in list(ifd):
        if tag_id in POINTER_TAGS:
            continue
        try:
            value = ifd[tag_id]
        except (ValueError, TypeError, KeyError) as e:
            logger.debug("skip exif tag {:#06x}: {}", tag_id, e)
            continue
        name = names.get(tag_id, f"0x{tag_id:04x}")
        tags[name] = Tag(TagType.from_code(ifd.tagtype.get(tag_id)), _convert(value))
    return tags


def _convert(value):
    if isinstance(value, TiffImagePlugin.IFDRational):
        return Rational(int(value.numerator), int(value.denominator))
    if isinstance(value, (tuple, list)):
        return tuple(_convert(v) for v in value)
    return value
