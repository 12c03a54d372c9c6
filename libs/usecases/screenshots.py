from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from libs.core.exceptions import ProviderError
from libs.core.models import Screenshot
from libs.db import VideoRepo
from libs.storage import (
    DriveClient,
    DriveFactory,
    LocalScreenshotStore,
    extract_file_id,
    is_remote_path,
    screenshot_filename,
)

from .base import DeleteOutcome, load_video, save_or_drop, screenshot_at

logger = logging.getLogger(__name__)


class ScreenshotSync:
    """Moves screenshot binaries to and from their blob store.

    Neither method raises on storage trouble: uploads degrade to "no
    screenshot" and evictions degrade to "local state only". A blob orphaned
    that way is logged and left behind.
    """

    def __init__(self, drive_factory: DriveFactory, local_store: LocalScreenshotStore) -> None:
        self.drive_factory = drive_factory
        self.local_store = local_store

    # ------------------------------------------------------------------
    def _drive(self, user: Any) -> Optional[DriveClient]:
        try:
            return self.drive_factory(user)
        except ProviderError as exc:
            logger.warning(
                "drive_client_unavailable",
                extra={"user_id": getattr(user, "id", None), "reason": str(exc)},
            )
            return None

    async def attach(
        self, user: Any, video_id: str, timestamp: int, data: Optional[bytes]
    ) -> Optional[Screenshot]:
        """Upload ``data`` to Drive and return the screenshot entry to store."""
        if not data:
            return None
        drive = self._drive(user)
        if drive is None:
            logger.warning(
                "screenshot_skipped_no_drive",
                extra={"user_id": getattr(user, "id", None), "video_id": video_id},
            )
            return None

        filename = screenshot_filename(video_id, timestamp)
        try:
            file_id, url = await asyncio.to_thread(drive.upload_screenshot, data, filename)
        except ProviderError as exc:
            logger.warning(
                "screenshot_upload_failed",
                extra={"video_id": video_id, "file_name": filename, "reason": str(exc)},
            )
            return None
        logger.info(
            "screenshot_uploaded",
            extra={"video_id": video_id, "file_id": file_id, "file_name": filename},
        )
        return Screenshot(timestamp=timestamp, path=url)

    async def evict(self, user: Any, screenshot: Screenshot) -> None:
        """Best-effort removal of the binary behind ``screenshot``."""
        path = screenshot.path
        if not is_remote_path(path):
            await asyncio.to_thread(self.local_store.delete, path)
            return

        file_id = extract_file_id(path)
        if file_id is None:
            logger.info("screenshot_blob_not_on_drive", extra={"path": path})
            return
        drive = self._drive(user)
        if drive is None:
            logger.warning("screenshot_blob_orphaned", extra={"file_id": file_id})
            return
        try:
            await asyncio.to_thread(drive.delete_blob, file_id)
        except ProviderError as exc:
            logger.warning(
                "screenshot_blob_delete_failed",
                extra={"file_id": file_id, "reason": str(exc)},
            )


class DeleteScreenshot:
    """Delete a screenshot, its Drive blob and the note that points at it."""

    def __init__(self, videos: VideoRepo, sync: ScreenshotSync) -> None:
        self.videos = videos
        self.sync = sync

    async def __call__(self, user: Any, video_id: str, index: int) -> DeleteOutcome:
        video = await load_video(self.videos, user.id, video_id)
        shot = screenshot_at(video, index)

        await self.sync.evict(user, shot)

        note_idx = video.note_index_for(shot)
        if note_idx is not None:
            del video.notes[note_idx]
        del video.screenshots[index]
        return await save_or_drop(self.videos, video)


__all__ = ["ScreenshotSync", "DeleteScreenshot"]
