"""
Builds the presentation tree of a catalog: collections, their sections and
the photos of each section, all in display order.

Ordering rule, shared by all three levels: entries with an ordinal name prefix
come first, in ascending ordinal order; the rest follow newest first. Equal
keys fall back to the id (photos) or the bucket key (sections, collections),
so the result does not depend on the order of the catalog.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from loguru import logger

from photofolio import paths
from photofolio.errors import InvalidPath
from photofolio.models import Catalog, CatalogPhoto


@dataclass(frozen=True)
class Section:
    name: Optional[str]
    slug: str
    ordinal: Optional[int]
    photos: Tuple[CatalogPhoto, ...]


@dataclass(frozen=True)
class Collection:
    name: str
    slug: str
    ordinal: Optional[int]
    cover: CatalogPhoto
    sections: Tuple[Section, ...]

    @property
    def photos(self) -> Tuple[CatalogPhoto, ...]:
        return tuple(photo for section in self.sections for photo in section.photos)


def order_key(ordinal: Optional[int], timestamp: float, tie: str):
    if ordinal is not None:
        return (0, ordinal, 0.0, tie)
    return (1, 0, -timestamp, tie)


def photo_timestamp(photo: CatalogPhoto) -> float:
    """
    Best-known capture time in epoch seconds: EXIF time, else drive
    modification time, else 0.
    """
    moment = photo.taken_at or photo.modified_at
    return moment.timestamp() if moment is not None else 0.0


def _photo_key(photo: CatalogPhoto):
    return order_key(paths.ordinal(photo.file_name), photo_timestamp(photo), photo.id)


def _build_section(key: Optional[str], photos: List[CatalogPhoto]) -> Section:
    name = paths.strip_ordinal(key) if key is not None else None
    return Section(
        name=name,
        slug=paths.slug(name) if name is not None else "",
        ordinal=paths.ordinal(key) if key is not None else None,
        photos=tuple(sorted(photos, key=_photo_key)),
    )


def _newest(photos) -> float:
    return max((photo_timestamp(photo) for photo in photos), default=0.0)


def group(catalog: Catalog) -> List[Collection]:
    buckets: Dict[str, Dict[Optional[str], List[CatalogPhoto]]] = {}
    for photo in catalog.photos:
        try:
            parts = paths.decompose(photo.path)
        except InvalidPath as e:
            logger.warning("skip photo {}: {}", photo.id, e)
            continue
        buckets.setdefault(parts.collection, {}).setdefault(parts.section, []).append(photo)

    ordered = []
    for key, section_buckets in buckets.items():
        built = []
        for section_key, photos in section_buckets.items():
            section = _build_section(section_key, photos)
            built.append((order_key(section.ordinal, _newest(section.photos), section_key or ""), section))
        built.sort(key=lambda pair: pair[0])
        sections = [section for _, section in built]

        flattened = [photo for section in sections for photo in section.photos]
        cover = next((photo for photo in flattened if photo.is_cover), flattened[0])
        name = paths.strip_ordinal(key)
        collection = Collection(
            name=name,
            slug=paths.slug(name),
            ordinal=paths.ordinal(key),
            cover=cover,
            sections=tuple(sections),
        )
        ordered.append((order_key(collection.ordinal, _newest(flattened), key), collection))

    ordered.sort(key=lambda pair: pair[0])
    return [collection for _, collection in ordered]
