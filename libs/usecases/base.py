"""Helpers shared by the note, screenshot and video use cases."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from libs.core.exceptions import NotFoundError
from libs.core.models import Note, Screenshot, Video
from libs.db import VideoRepo


@dataclass
class DeleteOutcome:
    """Result of a cascading delete.

    ``video`` is the persisted aggregate, or ``None`` when the delete left it
    empty and the whole aggregate was removed.
    """

    video: Optional[Video]
    video_deleted: bool = False


async def load_video(videos: VideoRepo, owner_id: str, video_id: str) -> Video:
    video = await videos.get(owner_id, video_id)
    if video is None:
        raise NotFoundError("Video not found")
    return video


def _in_range(index: int, size: int) -> bool:
    # negative indexes would silently address from the end
    return isinstance(index, int) and 0 <= index < size


def note_at(video: Video, index: int) -> Note:
    if not _in_range(index, len(video.notes)):
        raise NotFoundError("Note not found")
    return video.notes[index]


def screenshot_at(video: Video, index: int) -> Screenshot:
    if not _in_range(index, len(video.screenshots)):
        raise NotFoundError("Screenshot not found")
    return video.screenshots[index]


async def save_or_drop(videos: VideoRepo, video: Video) -> DeleteOutcome:
    """Persist ``video`` unless it has no notes and no screenshots left."""
    if video.is_empty():
        await videos.delete(video.owner_id, video.video_id)
        return DeleteOutcome(video=None, video_deleted=True)
    return DeleteOutcome(video=await videos.upsert(video))


__all__ = ["DeleteOutcome", "load_video", "note_at", "screenshot_at", "save_or_drop"]
