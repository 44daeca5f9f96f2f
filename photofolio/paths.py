"""
Helpers for turning drive paths into gallery names.

A gallery photo lives at  <root>/<collection>/[<section>/...]<file name>.
Names may carry an ordinal prefix ("03. Spain", "#2 - Day two") that forces
manual ordering and is stripped for display.
"""

import re
from typing import NamedTuple, Optional, Sequence

from photofolio.errors import InvalidPath

MIN_PATH_DEPTH = 3
SECTION_SEPARATOR = " - "

COVER_PATTERN = re.compile(r"\bcover\b", re.IGNORECASE)
ORDINAL_PATTERN = re.compile(r"^#?(\d+)[.\-\s]+")
SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


class PathParts(NamedTuple):
    collection: str
    section: Optional[str]
    file_name: str


def decompose(path: Sequence[str]) -> PathParts:
    """
    Split a root-relative path into collection, section and file name.
    path[0] is the shared root folder and is not part of the gallery.
    """
    if len(path) < MIN_PATH_DEPTH:
        raise InvalidPath(path)

    middle = list(path[2:-1])
    section = SECTION_SEPARATOR.join(middle) if middle else None
    return PathParts(collection=path[1], section=section, file_name=path[-1])


def is_cover(file_name: str) -> bool:
    return COVER_PATTERN.search(file_name) is not None


def ordinal(name: str) -> Optional[int]:
    match = ORDINAL_PATTERN.match(name)
    if match is None:
        return None
    return int(match.group(1))


def strip_ordinal(name: str) -> str:
    match = ORDINAL_PATTERN.match(name)
    if match is None:
        return name
    return name[match.end():]


def slug(name: str) -> str:
    return SLUG_PATTERN.sub("-", name.lower()).strip("-")
