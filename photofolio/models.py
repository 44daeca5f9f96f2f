"""
Catalog records. Both types are immutable; a changed entry is a new value
built with dataclasses.replace().
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple

from photofolio import paths
from photofolio import tags as exif
from photofolio.tags import Tag


@dataclass(frozen=True)
class CatalogPhoto:
    id: str
    path: Tuple[str, ...]
    location: str
    width: int
    height: int
    meta_fingerprint: str
    content_fingerprint: str
    modified_at: datetime
    perceptual_hash: Optional[str] = None
    tags: Optional[Dict[str, Tag]] = field(default=None, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "path", tuple(self.path))

    @property
    def collection(self) -> str:
        return paths.decompose(self.path).collection

    @property
    def section(self) -> Optional[str]:
        return paths.decompose(self.path).section

    @property
    def file_name(self) -> str:
        return self.path[-1]

    @property
    def is_cover(self) -> bool:
        return paths.is_cover(self.file_name)

    @property
    def caption(self) -> Optional[str]:
        return exif.caption(self.tags)

    @property
    def taken_at(self) -> Optional[datetime]:
        return exif.taken_at(self.tags)


@dataclass(frozen=True)
class Catalog:
    photos: Tuple[CatalogPhoto, ...] = ()

    def __post_init__(self):
        photos = tuple(self.photos)
        seen = set()
        for photo in photos:
            if photo.id in seen:
                raise ValueError(f"duplicate photo id in catalog: {photo.id}")
            seen.add(photo.id)
        object.__setattr__(self, "photos", photos)

    @classmethod
    def from_photos(cls, photos: Iterable[CatalogPhoto]) -> "Catalog":
        """
        Build a catalog ordered by photo id.
        """
        return cls(tuple(sorted(photos, key=lambda p: p.id)))

    def by_id(self) -> Dict[str, CatalogPhoto]:
        return {photo.id: photo for photo in self.photos}
