import gzip
import json
import os
import tempfile
import zlib
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Union

from loguru import logger

from photofolio.errors import MalformedCatalog
from photofolio.models import Catalog, CatalogPhoto
from photofolio.tags import decode_tags, encode_tags

# Where a published site carries its catalog, relative to the site root.
PUBLIC_CATALOG_PATH = ".portfolio/catalog.json.gz"

################################################################
# DATA STRUCTURE in catalog.json(.gz):
# {
#   "photos": [
#     {
#       "id": "1AbC...",
#       "path": ["Portfolio", "01. Travel", "Paris", "IMG_0001.jpg"],
#       "url": "https://drive.google.com/uc?id=1AbC...&export=download",
#       "width": 4000,
#       "height": 3000,
#       "phash": "c3d4e5f6a7b8c9d0",          (optional)
#       "etag": "12",
#       "ctag": "9e107d9d372bb6826bd81d3542a419d6",
#       "modifiedAt": 1700000000,
#       "tags": {"DateTimeOriginal": {"type": "ASCII", "value": "..."}}   (optional)
#     }
#   ]
# }
################################################################


def photo_to_dict(photo: CatalogPhoto) -> dict:
    record = {
        "id": photo.id,
        "path": list(photo.path),
        "url": photo.location,
        "width": photo.width,
        "height": photo.height,
        "etag": photo.meta_fingerprint,
        "ctag": photo.content_fingerprint,
        "modifiedAt": int(photo.modified_at.timestamp()),
    }
    if photo.perceptual_hash is not None:
        record["phash"] = photo.perceptual_hash
    if photo.tags is not None:
        record["tags"] = encode_tags(photo.tags)
    return record


def _field(record: dict, key: str, kind):
    if key not in record:
        raise MalformedCatalog(f"photo record without '{key}'")
    value = record[key]
    if not isinstance(value, kind) or isinstance(value, bool):
        raise MalformedCatalog(f"photo field '{key}' has unexpected type {type(value).__name__}")
    return value


def _timestamp(record: dict, key: str) -> datetime:
    seconds = _field(record, key, int)
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise MalformedCatalog(f"photo field '{key}' out of range: {seconds}") from e


def photo_from_dict(record) -> CatalogPhoto:
    """
    Build a CatalogPhoto from its JSON record. Unknown keys are ignored.
    """
    if not isinstance(record, dict):
        raise MalformedCatalog("photo record must be an object")

    path = _field(record, "path", list)
    if not path or not all(isinstance(segment, str) for segment in path):
        raise MalformedCatalog("photo path must be a non-empty list of names")

    phash = record.get("phash")
    if phash is not None and not isinstance(phash, str):
        raise MalformedCatalog("photo field 'phash' must be a string")

    tags = record.get("tags")
    return CatalogPhoto(
        id=_field(record, "id", str),
        path=tuple(path),
        location=_field(record, "url", str),
        width=_field(record, "width", int),
        height=_field(record, "height", int),
        meta_fingerprint=_field(record, "etag", str),
        content_fingerprint=_field(record, "ctag", str),
        modified_at=_timestamp(record, "modifiedAt"),
        perceptual_hash=phash,
        tags=decode_tags(tags) if tags is not None else None,
    )


def catalog_to_dict(catalog: Catalog) -> dict:
    return {"photos": [photo_to_dict(photo) for photo in catalog.photos]}


def catalog_from_dict(data) -> Catalog:
    if not isinstance(data, dict):
        raise MalformedCatalog("catalog must be a JSON object")
    photos = data.get("photos")
    if not isinstance(photos, list):
        raise MalformedCatalog("catalog without a 'photos' array")
    try:
        return Catalog(tuple(photo_from_dict(record) for record in photos))
    except ValueError as e:
        raise MalformedCatalog(str(e)) from e


# -----------------------------
# STREAMS
# -----------------------------

def load_json(stream: BinaryIO) -> Catalog:
    try:
        data = json.load(stream)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedCatalog(f"invalid catalog json: {e}") from e
    return catalog_from_dict(data)


def load_gzip(stream: BinaryIO) -> Catalog:
    try:
        with gzip.GzipFile(fileobj=stream, mode="rb") as gz:
            return load_json(gz)
    except (OSError, EOFError, zlib.error) as e:
        raise MalformedCatalog(f"invalid catalog gzip: {e}") from e


def save_json(catalog: Catalog, stream: BinaryIO):
    text = json.dumps(catalog_to_dict(catalog), indent=2, ensure_ascii=False)
    stream.write(text.encode("utf-8"))


def save_gzip(catalog: Catalog, stream: BinaryIO):
    with gzip.GzipFile(fileobj=stream, mode="wb", compresslevel=9, mtime=0) as gz:
        save_json(catalog, gz)


# -----------------------------
# FILES
# -----------------------------

def is_gzip_name(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() == ".gz"


def load_file(path: Union[str, Path]) -> Catalog:
    """
    Load a catalog file. The format follows the file extension.
    """
    path = Path(path)
    with open(path, "rb") as f:
        catalog = load_gzip(f) if is_gzip_name(path) else load_json(f)
    logger.debug("loaded {} photos from {}", len(catalog.photos), path)
    return catalog


def save_file(catalog: Catalog, path: Union[str, Path]):
    """
    Write a catalog file through a temporary file next to it, so a failed
    write never leaves a truncated catalog behind.
    """
    path = Path(path)
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            if is_gzip_name(path):
                save_gzip(catalog, f)
            else:
                save_json(catalog, f)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    logger.debug("saved {} photos to {}", len(catalog.photos), path)
