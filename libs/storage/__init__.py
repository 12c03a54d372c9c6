"""Screenshot blob storage: Google Drive and the local screenshots directory."""

from .drive import (
    DriveClient,
    DriveFactory,
    decode_image_payload,
    drive_for_user,
    extract_file_id,
    is_remote_path,
    screenshot_filename,
)
from .local_files import LocalScreenshotStore

__all__ = [
    "DriveClient",
    "DriveFactory",
    "drive_for_user",
    "decode_image_payload",
    "extract_file_id",
    "is_remote_path",
    "screenshot_filename",
    "LocalScreenshotStore",
]
