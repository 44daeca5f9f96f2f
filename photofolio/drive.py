import io
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Tuple

from loguru import logger

from photofolio import drive_api as dapi
from photofolio.auth import AuthManager
from photofolio.cancel import CancelToken
from photofolio.errors import DriveError

PHOTO_MIME_TYPES = {"image/jpeg"}


@dataclass(frozen=True)
class RemotePhoto:
    """
    A photo as listed by the drive. path[0] is the shared root folder.
    """

    id: str
    content_fingerprint: str
    meta_fingerprint: str
    path: Tuple[str, ...]
    modified_at: datetime
    location: str

    def __post_init__(self):
        object.__setattr__(self, "path", tuple(self.path))


def _parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class DriveClient:
    """
    Lists the photos below one shared Google Drive folder and fetches
    their content.
    """

    def __init__(self, auth_manager: AuthManager, folder_id: str):
        self.auth_manager = auth_manager
        self.folder_id = folder_id
        self.creds = None

    def authenticate(self):
        if self.creds is None:
            self.creds = self.auth_manager.authenticate()
        return self.creds

    def enumerate(self, cancel: CancelToken) -> Iterator[RemotePhoto]:
        logger.info("enumerate drive photos")
        creds = self.authenticate()
        cancel.raise_if_cancelled()

        root = dapi.get_file(creds, self.folder_id, fields="id,name,mimeType")
        if root.get("mimeType") != dapi.FOLDER_MIME_TYPE:
            raise DriveError(f"drive item {self.folder_id} is not a folder")

        yield from self._walk((root["name"],), root["id"], cancel)

    def fetch(self, photo_id: str, cancel: CancelToken) -> io.BytesIO:
        logger.info("download photo {}", photo_id)
        cancel.raise_if_cancelled()
        return dapi.download_file(self.authenticate(), photo_id, cancel)

    # -----------------------------
    # INTERNAL HELPERS
    # -----------------------------

    def _walk(self, path: Tuple[str, ...], folder_id: str, cancel: CancelToken) -> Iterator[RemotePhoto]:
        next_page_token = None

        while True:
            cancel.raise_if_cancelled()
            data = dapi.list_children(self.creds, folder_id, next_page_token)

            for item in data.get("files", []):
                cancel.raise_if_cancelled()
                mime_type = item.get("mimeType")
                if mime_type == dapi.FOLDER_MIME_TYPE:
                    yield from self._walk(path + (item["name"],), item["id"], cancel)
                elif mime_type in PHOTO_MIME_TYPES:
                    yield self._to_remote_photo(path, item)

            next_page_token = data.get("nextPageToken")
            if not next_page_token:
                break

    @staticmethod
    def _to_remote_photo(path: Tuple[str, ...], item: dict) -> RemotePhoto:
        try:
            return RemotePhoto(
                id=item["id"],
                content_fingerprint=item["md5Checksum"],
                meta_fingerprint=str(item["version"]),
                path=path + (item["name"],),
                modified_at=_parse_time(item["modifiedTime"]),
                location=item["webContentLink"],
            )
        except KeyError as e:
            raise DriveError(f"drive item {item.get('id')} without {e}") from e
