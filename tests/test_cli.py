import json
import os

import pytest

from photofolio import catalog_store
from photofolio.cli import format_tags, main
from photofolio.tags import Rational, Tag, TagType

DOCUMENT = {
    "photos": [
        {
            "id": "b",
            "path": ["Portfolio", "Trips", "Paris", "b.jpg"],
            "url": "https://img.example/b.jpg",
            "width": 30,
            "height": 20,
            "etag": "1",
            "ctag": "c",
            "modifiedAt": 1700000000,
            "tags": {"ImageDescription": {"type": "ASCII", "value": "Pont Neuf"}},
        },
        {
            "id": "a",
            "path": ["Portfolio", "Trips", "a.jpg"],
            "url": "https://img.example/a.jpg",
            "width": 10,
            "height": 10,
            "etag": "1",
            "ctag": "c",
            "modifiedAt": 1700000000,
        },
    ]
}


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("PHOTOFOLIO_"):
            monkeypatch.delenv(name)
    (tmp_path / "catalog.json").write_text(json.dumps(DOCUMENT), encoding="utf-8")
    return tmp_path


def test_show_photos(workdir, capsys):
    assert main(["catalog", "show-photos", "catalog.json"]) == 0

    out = capsys.readouterr().out.splitlines()
    assert out[0].startswith("Portfolio/Trips/Paris/b.jpg  id=b 30x20")
    assert out[0].endswith("caption=Pont Neuf")
    assert out[1].startswith("Portfolio/Trips/a.jpg  id=a")


def test_show_photos_missing_file(workdir):
    assert main(["catalog", "show-photos", "nope.json"]) == 1


def test_without_command_prints_help(workdir, capsys):
    assert main([]) == 2
    assert "usage: photofolio" in capsys.readouterr().out


def test_site_generate(workdir):
    templates = workdir / "templates"
    templates.mkdir()
    (templates / "home.j2").write_text("{% for c in collections %}{{ c.name }}{% endfor %}", encoding="utf-8")
    (templates / "collection.j2").write_text("{{ collection.photos | length }}", encoding="utf-8")

    assert main(["site", "generate", "templates", "catalog.json", "public"]) == 0

    assert (workdir / "public" / "index.html").read_text(encoding="utf-8") == "Trips"
    assert (workdir / "public" / "trips" / "index.html").read_text(encoding="utf-8") == "2"
    assert (workdir / "public" / ".portfolio" / "catalog.json.gz").exists()


def test_catalog_from_drive_refuses_existing_output(workdir):
    settings = workdir / "custom.json"
    settings.write_text(json.dumps({"drive": {"folder_id": "root-folder"}}), encoding="utf-8")

    assert main(["--settings", str(settings), "catalog", "from-drive", "catalog.json"]) == 1


def test_request_build_without_hook_setting(workdir):
    assert main(["site", "request-build"]) == 1


def test_exif_from_catalog(workdir, capsys):
    catalog_store.save_file(catalog_store.load_file(workdir / "catalog.json"), workdir / "catalog.json.gz")

    assert main(["exif", "from-catalog", "catalog.json.gz"]) == 0

    out = capsys.readouterr().out
    assert "Portfolio/Trips/a.jpg\nno exif data present" in out
    assert "ImageDescription | ASCII | 9     | Pont Neuf" in out


def test_format_tags_table():
    table = format_tags({
        "ExposureTime": Tag(TagType.RATIONAL, Rational(1, 125)),
        "Mystery": Tag(TagType.UNKNOWN, 3),
    }).splitlines()

    assert table[0] == "Tag          | Type     | Bytes | Value"
    assert table[1] == "ExposureTime | RATIONAL | 8     | 1/125"
    assert table[2] == "Mystery      | UNKNOWN  | ?     | 3"


def test_site_generate_missing_catalog(workdir):
    (workdir / "templates").mkdir()

    assert main(["site", "generate", "templates", "missing.json.gz", "public"]) == 1
    assert not (workdir / "public").exists()
