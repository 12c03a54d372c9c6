from __future__ import annotations

import logging
from typing import Any, Optional

from libs.core.models import Video
from libs.db import VideoRepo

from .base import load_video
from .screenshots import ScreenshotSync

logger = logging.getLogger(__name__)


class DeleteVideo:
    """Remove a video aggregate after evicting every screenshot blob."""

    def __init__(self, videos: VideoRepo, sync: ScreenshotSync) -> None:
        self.videos = videos
        self.sync = sync

    async def __call__(self, user: Any, video_id: str) -> None:
        video = await load_video(self.videos, user.id, video_id)
        await self.evict_all(user, video)
        await self.videos.delete(user.id, video_id)
        logger.info(
            "video_deleted",
            extra={
                "user_id": user.id,
                "video_id": video_id,
                "screenshots": len(video.screenshots),
            },
        )

    async def evict_all(self, user: Any, video: Video) -> None:
        # evict() never raises, so one bad blob does not stop the rest
        for shot in video.screenshots:
            await self.sync.evict(user, shot)


class ToggleFavorite:
    def __init__(self, videos: VideoRepo) -> None:
        self.videos = videos

    async def __call__(
        self, user: Any, video_id: str, favorite: Optional[bool] = None
    ) -> Video:
        video = await load_video(self.videos, user.id, video_id)
        video.favorite = (not video.favorite) if favorite is None else bool(favorite)
        return await self.videos.upsert(video)


__all__ = ["DeleteVideo", "ToggleFavorite"]
