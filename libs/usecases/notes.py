from __future__ import annotations

import logging
import math
from typing import Any, Optional, Union

from libs.core.exceptions import ValidationError
from libs.core.models import Note, Video
from libs.db import VideoRepo
from libs.storage import decode_image_payload

from .base import DeleteOutcome, load_video, note_at, save_or_drop
from .screenshots import ScreenshotSync

logger = logging.getLogger(__name__)


def _required_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value


def _timestamp(value: Any) -> int:
    # bool is an int subclass; JSON `true` is not a timestamp
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("timestamp must be a number")
    if not math.isfinite(value) or value < 0:
        raise ValidationError("timestamp must be a finite number >= 0")
    return int(math.floor(value))


class CreateNote:
    """Append a note to a video, uploading its screenshot when one is given.

    A screenshot that cannot be stored (no Drive credentials, undecodable
    payload, Drive error) is dropped and the note is saved without it.
    """

    def __init__(self, videos: VideoRepo, sync: ScreenshotSync) -> None:
        self.videos = videos
        self.sync = sync

    async def __call__(
        self,
        user: Any,
        video_id: Any,
        title: Any,
        timestamp: Any,
        text: Any,
        screenshot: Optional[Union[bytes, str]] = None,
    ) -> Video:
        video_id = _required_text(video_id, "videoId")
        title = _required_text(title, "videoTitle")
        seconds = _timestamp(timestamp)
        body = _required_text(text, "note").strip()

        video = await self.videos.get(user.id, video_id)
        if video is None:
            video = Video(owner_id=user.id, video_id=video_id, title=title)

        note = Note(timestamp=seconds, text=body)

        data = decode_image_payload(screenshot) if isinstance(screenshot, str) else screenshot
        shot = await self.sync.attach(user, video_id, seconds, data)
        if shot is not None:
            note.screenshot_id = shot.id
            note.screenshot_path = shot.path
            video.screenshots.append(shot)

        video.notes.append(note)
        saved = await self.videos.upsert(video)
        logger.info(
            "note_created",
            extra={
                "user_id": user.id,
                "video_id": video_id,
                "with_screenshot": shot is not None,
            },
        )
        return saved


class EditNoteText:
    def __init__(self, videos: VideoRepo) -> None:
        self.videos = videos

    async def __call__(self, user: Any, video_id: str, index: int, text: Any) -> Video:
        video = await load_video(self.videos, user.id, video_id)
        note = note_at(video, index)
        note.text = _required_text(text, "note").strip()
        return await self.videos.upsert(video)


class ToggleNoteLike:
    def __init__(self, videos: VideoRepo) -> None:
        self.videos = videos

    async def __call__(
        self, user: Any, video_id: str, index: int, liked: Optional[bool] = None
    ) -> Video:
        """Set ``liked``; flip the current value when ``liked`` is ``None``."""
        video = await load_video(self.videos, user.id, video_id)
        note = note_at(video, index)
        note.liked = (not note.liked) if liked is None else bool(liked)
        return await self.videos.upsert(video)


class DeleteNote:
    """Delete a note together with its screenshot and the screenshot's blob."""

    def __init__(self, videos: VideoRepo, sync: ScreenshotSync) -> None:
        self.videos = videos
        self.sync = sync

    async def __call__(self, user: Any, video_id: str, index: int) -> DeleteOutcome:
        video = await load_video(self.videos, user.id, video_id)
        note = note_at(video, index)

        shot_idx = video.screenshot_index_for(note)
        if shot_idx is not None:
            await self.sync.evict(user, video.screenshots[shot_idx])
            del video.screenshots[shot_idx]

        del video.notes[index]
        return await save_or_drop(self.videos, video)


__all__ = ["CreateNote", "EditNoteText", "ToggleNoteLike", "DeleteNote"]
