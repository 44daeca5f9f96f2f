import io
from typing import Optional

import requests
from google.auth.transport.requests import Request

from photofolio.cancel import CancelToken
from photofolio.errors import DriveError, FetchFailure

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = "id,name,mimeType,md5Checksum,version,modifiedTime,webContentLink"

PAGE_SIZE = 100
REQUEST_TIMEOUT = 60
DOWNLOAD_CHUNK_SIZE = 256 * 1024


def get_headers(creds):
    """
    Return headers for authorized requests to Google Drive.
    """
    if not creds.valid:
        creds.refresh(Request())
    return {
        "Authorization": f"Bearer {creds.token}",
    }


def get_file(creds, file_id: str, fields: str = FILE_FIELDS) -> dict:
    """
    Retrieve the metadata of a single file or folder.
    """
    url = f"{DRIVE_API_URL}/files/{file_id}"
    params = {"fields": fields, "supportsAllDrives": "true"}
    try:
        resp = requests.get(url, headers=get_headers(creds), params=params, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise DriveError(f"cannot get drive item {file_id}: {e}") from e
    if resp.status_code != 200:
        raise DriveError(f"cannot get drive item {file_id}: {resp.status_code} {resp.text}")
    return resp.json()


def list_children(creds, folder_id: str, page_token: Optional[str] = None) -> dict:
    """
    One page of the non-trashed children of a folder.
    Returns the JSON response with "files" and, if more remain, "nextPageToken".
    """
    url = f"{DRIVE_API_URL}/files"
    params = {
        "q": f"'{folder_id}' in parents and trashed = false",
        "fields": f"nextPageToken,files({FILE_FIELDS})",
        "pageSize": PAGE_SIZE,
        "orderBy": "name",
        "supportsAllDrives": "true",
        "includeItemsFromAllDrives": "true",
    }
    if page_token:
        params["pageToken"] = page_token

    try:
        resp = requests.get(url, headers=get_headers(creds), params=params, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise DriveError(f"cannot list drive folder {folder_id}: {e}") from e
    if resp.status_code != 200:
        raise DriveError(f"cannot list drive folder {folder_id}: {resp.status_code} {resp.text}")
    return resp.json()


def download_file(creds, file_id: str, cancel: CancelToken) -> io.BytesIO:
    """
    Download the content of a file into memory, checking for
    cancellation between chunks.
    """
    url = f"{DRIVE_API_URL}/files/{file_id}"
    params = {"alt": "media", "supportsAllDrives": "true"}
    buffer = io.BytesIO()
    try:
        with requests.get(url, headers=get_headers(creds), params=params,
                          stream=True, timeout=REQUEST_TIMEOUT) as resp:
            if resp.status_code != 200:
                raise FetchFailure(f"download failed for {file_id}: {resp.status_code}")
            for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                cancel.raise_if_cancelled()
                buffer.write(chunk)
    except requests.RequestException as e:
        raise FetchFailure(f"download failed for {file_id}: {e}") from e

    buffer.seek(0)
    return buffer
