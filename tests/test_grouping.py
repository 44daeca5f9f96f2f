import random
from datetime import datetime, timedelta, timezone

from photofolio.grouping import group
from photofolio.models import Catalog, CatalogPhoto
from photofolio.tags import Tag, TagType

BASE = datetime(2023, 1, 1, tzinfo=timezone.utc)


def _photo(pid, *folders, file_name=None, days=0, taken=None) -> CatalogPhoto:
    tags = None
    if taken is not None:
        tags = {"DateTimeOriginal": Tag(TagType.ASCII, taken)}
    return CatalogPhoto(
        id=pid,
        path=("Portfolio",) + folders + (file_name or f"{pid}.jpg",),
        location=f"https://drive.example/{pid}",
        width=10,
        height=10,
        meta_fingerprint="1",
        content_fingerprint="c",
        modified_at=BASE + timedelta(days=days),
        tags=tags,
    )


def test_ordinal_photos_come_first_in_ascending_order():
    catalog = Catalog((
        _photo("a", "Trips", file_name="2. second.jpg", days=30),
        _photo("b", "Trips", file_name="1. first.jpg", days=1),
    ))

    [collection] = group(catalog)

    assert [p.id for p in collection.sections[0].photos] == ["b", "a"]


def test_unnumbered_photos_are_newest_first_after_numbered_ones():
    catalog = Catalog((
        _photo("old", "Trips", days=1),
        _photo("new", "Trips", days=9),
        _photo("numbered", "Trips", file_name="3 - last.jpg", days=0),
    ))

    [collection] = group(catalog)

    assert [p.id for p in collection.photos] == ["numbered", "new", "old"]


def test_capture_time_is_preferred_over_modification_time():
    catalog = Catalog((
        _photo("shot-early", "Trips", days=50, taken="2020:01:01 00:00:00"),
        _photo("shot-late", "Trips", days=1, taken="2022:01:01 00:00:00"),
    ))

    [collection] = group(catalog)

    assert [p.id for p in collection.photos] == ["shot-late", "shot-early"]


def test_collections_and_sections_order_and_names():
    catalog = Catalog((
        _photo("a", "Recent", days=100),
        _photo("b", "02. Spain", "Madrid", days=1),
        _photo("c", "01. Italy", "2. Rome", days=2),
        _photo("d", "01. Italy", "1. Milan", days=3),
        _photo("e", "01. Italy", "Venice", days=50),
        _photo("f", "Older", days=10),
    ))

    collections = group(catalog)

    assert [c.name for c in collections] == ["Italy", "Spain", "Recent", "Older"]
    assert [c.ordinal for c in collections] == [1, 2, None, None]
    italy = collections[0]
    assert italy.slug == "italy"
    assert [s.name for s in italy.sections] == ["Milan", "Rome", "Venice"]
    assert [s.slug for s in italy.sections] == ["milan", "rome", "venice"]


def test_photos_without_section():
    [collection] = group(Catalog((_photo("a", "Trips"),)))

    [section] = collection.sections
    assert section.name is None
    assert section.slug == ""


def test_cover_is_first_cover_photo_in_order():
    catalog = Catalog((
        _photo("a", "Trips", "1. Day one", days=5),
        _photo("b", "Trips", "2. Day two", file_name="Cover.jpg", days=1),
        _photo("c", "Trips", "2. Day two", file_name="cover - night.jpg", days=3),
    ))

    [collection] = group(catalog)

    assert collection.cover.id == "c"


def test_cover_defaults_to_first_photo():
    catalog = Catalog((
        _photo("a", "Trips", days=1),
        _photo("b", "Trips", days=7),
    ))

    [collection] = group(catalog)

    assert collection.cover.id == "b"


def test_ties_are_broken_by_id_regardless_of_input_order():
    photos = [_photo(f"p{i:02d}", "Trips", f"Day {i % 3}", days=0) for i in range(20)]
    photos += [_photo(f"n{i:02d}", "Trips", file_name="1. same.jpg") for i in range(5)]
    expected = group(Catalog(tuple(photos)))

    shuffled = list(photos)
    random.Random(7).shuffle(shuffled)

    assert group(Catalog(tuple(shuffled))) == expected
    numbered = [p.id for p in expected[0].photos if p.id.startswith("n")]
    assert numbered == sorted(numbered)


def test_short_paths_are_skipped():
    broken = CatalogPhoto(
        id="x", path=("Portfolio", "x.jpg"), location="u", width=1, height=1,
        meta_fingerprint="1", content_fingerprint="c", modified_at=BASE,
    )

    collections = group(Catalog((broken, _photo("a", "Trips"))))

    assert [c.name for c in collections] == ["Trips"]
