"""Google Drive client used as the screenshot blob store.

Every client is built from one user's access/refresh token pair; there is
no process-wide credential. All Google errors surface as
:class:`~libs.core.exceptions.ProviderError` so callers can decide whether
to degrade or fail.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload
from httplib2 import HttpLib2Error

from libs.core.exceptions import ProviderError
from libs.core.settings import Settings, get_settings

logger = logging.getLogger(__name__)

FOLDER_MIME = "application/vnd.google-apps.folder"
TOKEN_URI = "https://oauth2.googleapis.com/token"
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.file"]

_GOOGLE_ERRORS = (HttpError, GoogleAuthError, HttpLib2Error, OSError)
_DATA_URL_PREFIX = re.compile(r"^data:[\w.+/-]+;base64,", re.IGNORECASE)
_FILE_PATH_ID = re.compile(r"/(?:file/)?d/([\w-]+)")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveClient:
    """Thin wrapper over the Drive v3 ``files`` and ``permissions`` resources."""

    def __init__(
        self,
        service: Any,
        root_folder: str = "ytNotes",
        screenshots_folder: str = "screenshots",
    ) -> None:
        self.service = service
        self.root_folder = root_folder
        self.screenshots_folder = screenshots_folder

    @classmethod
    def from_tokens(
        cls,
        access_token: str,
        refresh_token: str,
        settings: Optional[Settings] = None,
    ) -> "DriveClient":
        settings = settings or get_settings()
        creds = Credentials(
            token=access_token,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=settings.google_client_id or None,
            client_secret=settings.google_client_secret or None,
            scopes=DRIVE_SCOPES,
        )
        try:
            service = build("drive", "v3", credentials=creds, cache_discovery=False)
        except _GOOGLE_ERRORS as exc:
            raise ProviderError(f"Could not build Drive service: {exc}") from exc
        return cls(service, settings.drive_root_folder, settings.drive_screenshots_folder)

    # ------------------------------------------------------------------
    def _execute(self, request: Any, operation: str) -> Dict[str, Any]:
        try:
            return request.execute() or {}
        except _GOOGLE_ERRORS as exc:
            raise ProviderError(f"Drive {operation} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # public API
    def ensure_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        """Return the id of a non-trashed folder, creating it when missing.

        Drive has no atomic create-if-absent, so two concurrent callers can
        still end up with duplicate folders.
        """
        clauses = [
            f"mimeType='{FOLDER_MIME}'",
            f"name='{_escape(name)}'",
            "trashed=false",
        ]
        if parent_id:
            clauses.append(f"'{_escape(parent_id)}' in parents")
        found = self._execute(
            self.service.files().list(
                q=" and ".join(clauses), fields="files(id, name)", spaces="drive"
            ),
            "folder lookup",
        )
        files = found.get("files") or []
        if files:
            return files[0]["id"]

        body: Dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME}
        if parent_id:
            body["parents"] = [parent_id]
        created = self._execute(
            self.service.files().create(body=body, fields="id"), "folder create"
        )
        logger.info("drive_folder_created", extra={"folder": name, "parent_id": parent_id})
        return created["id"]

    def upload_binary(
        self,
        folder_id: str,
        data: bytes,
        filename: str,
        mime_type: str = "image/png",
    ) -> str:
        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=False)
        created = self._execute(
            self.service.files().create(
                body={"name": filename, "parents": [folder_id]},
                media_body=media,
                fields="id",
            ),
            "upload",
        )
        return created["id"]

    def publish(self, file_id: str) -> str:
        """Make the file readable by anyone with the link and return its content URL."""
        self._execute(
            self.service.permissions().create(
                fileId=file_id, body={"role": "reader", "type": "anyone"}
            ),
            "permission grant",
        )
        meta = self._execute(
            self.service.files().get(fileId=file_id, fields="webViewLink, webContentLink"),
            "link lookup",
        )
        # webViewLink opens the Drive viewer; images need the content link.
        return meta.get("webContentLink") or f"https://drive.google.com/uc?id={file_id}"

    def delete_blob(self, file_id: str) -> None:
        self._execute(self.service.files().delete(fileId=file_id), "delete")

    def list_files(self, folder_id: str, page_size: int = 100) -> List[Dict[str, Any]]:
        found = self._execute(
            self.service.files().list(
                q=f"'{_escape(folder_id)}' in parents and trashed=false",
                fields="files(id, name, mimeType, createdTime, webViewLink, webContentLink)",
                orderBy="createdTime desc",
                pageSize=page_size,
            ),
            "list",
        )
        return list(found.get("files") or [])

    # ------------------------------------------------------------------
    # ytNotes layout helpers
    def root_folder_id(self) -> str:
        return self.ensure_folder(self.root_folder)

    def screenshots_folder_id(self) -> str:
        return self.ensure_folder(self.screenshots_folder, self.root_folder_id())

    def upload_screenshot(self, data: bytes, filename: str) -> Tuple[str, str]:
        """Upload into ``<root>/<screenshots>`` and publish; returns ``(file_id, url)``."""
        folder_id = self.screenshots_folder_id()
        file_id = self.upload_binary(folder_id, data, filename)
        return file_id, self.publish(file_id)

    def upload_file(self, data: bytes, filename: str, mime_type: str) -> Dict[str, Any]:
        folder_id = self.root_folder_id()
        file_id = self.upload_binary(folder_id, data, filename, mime_type)
        return {"id": file_id, "name": filename, "url": self.publish(file_id)}


DriveFactory = Callable[[Any], Optional[DriveClient]]


def drive_for_user(user: Any, settings: Optional[Settings] = None) -> Optional[DriveClient]:
    """Build a client for ``user`` or return ``None`` when a token is missing."""
    access_token = getattr(user, "access_token", None)
    refresh_token = getattr(user, "refresh_token", None)
    if not access_token or not refresh_token:
        return None
    return DriveClient.from_tokens(access_token, refresh_token, settings)


# ----------------------------------------------------------------------
# path helpers

def is_remote_path(path: Optional[str]) -> bool:
    return bool(path) and path.lower().startswith(("http://", "https://"))


def extract_file_id(url: str) -> Optional[str]:
    """Pull the Drive file id out of the URL shapes Drive hands out."""
    parsed = urlparse(url)
    host = parsed.netloc.lower()
    if not (host.endswith("google.com") or host.endswith("googleusercontent.com")):
        return None
    ids = parse_qs(parsed.query).get("id")
    if ids and ids[0]:
        return ids[0]
    match = _FILE_PATH_ID.search(parsed.path)
    return match.group(1) if match else None


def screenshot_filename(video_id: str, timestamp: int) -> str:
    """``<videoId>_<timestamp as ISO-8601, ':' -> '-'>.png``.

    The same video and second always give the same name; Drive allows
    duplicates so repeated uploads simply create a second file. Offsets past
    year 9999 fall back to the raw second count.
    """
    safe_id = re.sub(r"[^\w-]", "_", video_id)
    try:
        moment = _EPOCH + timedelta(seconds=int(timestamp))
    except (OverflowError, ValueError):
        return f"{safe_id}_{int(timestamp)}.png"
    stamp = moment.strftime("%Y-%m-%dT%H-%M-%S.000Z")
    return f"{safe_id}_{stamp}.png"


def decode_image_payload(data: Optional[str]) -> Optional[bytes]:
    """Decode a base64 screenshot (optionally a ``data:`` URL); ``None`` if unusable."""
    if not data:
        return None
    payload = _DATA_URL_PREFIX.sub("", data.strip(), count=1)
    # line-wrapped base64 (MIME style) is still valid input
    payload = "".join(payload.split())
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        logger.warning("screenshot_payload_undecodable", extra={"length": len(data)})
        return None
    return raw or None


__all__ = [
    "DriveClient",
    "DriveFactory",
    "drive_for_user",
    "is_remote_path",
    "extract_file_id",
    "screenshot_filename",
    "decode_image_payload",
    "FOLDER_MIME",
    "DRIVE_SCOPES",
]
