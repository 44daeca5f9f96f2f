from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
import requests

from photofolio import drive_api
from photofolio.cancel import CancelToken
from photofolio.drive import DriveClient
from photofolio.errors import Cancelled, DriveError

CREDS = SimpleNamespace(valid=True, token="secret")


class FakeAuth:
    def authenticate(self):
        return CREDS


def _file(fid, name, mime="image/jpeg", **extra):
    item = {
        "id": fid,
        "name": name,
        "mimeType": mime,
        "md5Checksum": f"md5-{fid}",
        "version": 7,
        "modifiedTime": "2023-05-01T10:00:00.000Z",
        "webContentLink": f"https://drive.example/{fid}",
    }
    item.update(extra)
    return item


def _folder(fid, name):
    return {"id": fid, "name": name, "mimeType": drive_api.FOLDER_MIME_TYPE}


class FakeResponse:
    def __init__(self, data, status=200):
        self.data = data
        self.status_code = status
        self.text = "error"

    def json(self):
        return self.data


@pytest.fixture
def drive_tree(monkeypatch):
    items = {
        "root": _folder("root", "Portfolio"),
    }
    pages = {
        ("root", None): {"files": [_file("loose", "loose.jpg"), _folder("trips", "Trips")],
                         "nextPageToken": "page2"},
        ("root", "page2"): {"files": [_folder("empty", "Empty")]},
        ("trips", None): {"files": [
            _file("p1", "p1.jpg"),
            _file("doc", "notes.pdf", mime="application/pdf"),
            _folder("paris", "Paris"),
        ]},
        ("paris", None): {"files": [_file("p2", "p2.jpg")]},
        ("empty", None): {"files": []},
    }
    requests_seen = []

    def fake_get(url, headers=None, params=None, timeout=None, **kwargs):
        requests_seen.append(headers)
        if url.endswith("/files"):
            folder_id = params["q"].split("'")[1]
            return FakeResponse(pages[(folder_id, params.get("pageToken"))])
        file_id = url.rsplit("/", 1)[1]
        if file_id not in items:
            return FakeResponse({}, status=404)
        return FakeResponse(items[file_id])

    monkeypatch.setattr(requests, "get", fake_get)
    return SimpleNamespace(items=items, pages=pages, headers=requests_seen)


def test_enumerate_walks_folders_and_pages(drive_tree):
    photos = list(DriveClient(FakeAuth(), "root").enumerate(CancelToken()))

    assert [p.path for p in photos] == [
        ("Portfolio", "loose.jpg"),
        ("Portfolio", "Trips", "p1.jpg"),
        ("Portfolio", "Trips", "Paris", "p2.jpg"),
    ]
    p1 = photos[1]
    assert p1.content_fingerprint == "md5-p1"
    assert p1.meta_fingerprint == "7"
    assert p1.location == "https://drive.example/p1"
    assert p1.modified_at == datetime(2023, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert drive_tree.headers[0] == {"Authorization": "Bearer secret"}


def test_root_must_be_a_folder(drive_tree):
    drive_tree.items["file"] = _file("file", "a.jpg")

    with pytest.raises(DriveError, match="not a folder"):
        list(DriveClient(FakeAuth(), "file").enumerate(CancelToken()))


def test_missing_root_is_a_drive_error(drive_tree):
    with pytest.raises(DriveError, match="404"):
        list(DriveClient(FakeAuth(), "gone").enumerate(CancelToken()))


def test_photo_without_checksum_is_a_drive_error(drive_tree):
    broken = _file("p9", "p9.jpg")
    del broken["md5Checksum"]
    drive_tree.pages[("paris", None)] = {"files": [broken]}

    with pytest.raises(DriveError, match="md5Checksum"):
        list(DriveClient(FakeAuth(), "root").enumerate(CancelToken()))


def test_enumeration_stops_when_cancelled(drive_tree):
    cancel = CancelToken()
    photos = DriveClient(FakeAuth(), "root").enumerate(cancel)

    next(photos)
    cancel.cancel("command interrupted")

    with pytest.raises(Cancelled):
        next(photos)
