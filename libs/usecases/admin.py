"""Use cases behind the admin console."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from libs.core.exceptions import NotFoundError, PermissionDeniedError
from libs.core.models import utcnow
from libs.db import UserRepo, VideoRepo

from .screenshots import ScreenshotSync
from .videos import DeleteVideo

logger = logging.getLogger(__name__)

ACTIVE_WINDOW = timedelta(minutes=5)
RECENT_WINDOW = timedelta(hours=24)
MAX_ACTIVITY_ITEMS = 10


class AdminStats:
    """Counts shown on the admin dashboard."""

    def __init__(self, users: UserRepo, videos: VideoRepo) -> None:
        self.users = users
        self.videos = videos

    async def __call__(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        recent_since = now - RECENT_WINDOW

        total_users = await self.users.count()
        active_users = len(await self.users.list_active_since(now - ACTIVE_WINDOW))
        recent_users = len(await self.users.list_active_since(recent_since))
        videos = await self.videos.list_all()

        total_notes = sum(len(v.notes) for v in videos)
        recent_videos = sum(1 for v in videos if v.created_at >= recent_since)
        recent_notes = sum(
            1 for v in videos for n in v.notes if n.created_at >= recent_since
        )

        activity: List[Dict[str, Any]] = []
        if recent_users:
            activity.append(
                {"type": "user", "message": f"{recent_users} user(s) logged in", "timestamp": now}
            )
        if recent_videos:
            activity.append(
                {"type": "video", "message": f"{recent_videos} new video(s) bookmarked", "timestamp": now}
            )
        if recent_notes:
            activity.append(
                {"type": "note", "message": f"{recent_notes} new note(s) created", "timestamp": now}
            )

        return {
            "totalUsers": total_users,
            "activeUsers": active_users,
            "totalVideos": len(videos),
            "totalNotes": total_notes,
            "totalFavorites": sum(1 for v in videos if v.favorite),
            "recentActivity": activity[:MAX_ACTIVITY_ITEMS],
        }


class DeleteUser:
    """Delete a user and every video it owns, evicting screenshot blobs first."""

    def __init__(
        self,
        users: UserRepo,
        videos: VideoRepo,
        sync: ScreenshotSync,
        admin_emails: Sequence[str] = (),
    ) -> None:
        self.users = users
        self.videos = videos
        self.delete_video = DeleteVideo(videos, sync)
        self.admin_emails = set(admin_emails)

    async def __call__(self, user_id: str) -> int:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.email in self.admin_emails:
            raise PermissionDeniedError("Cannot delete admin users")

        # the owner's own credentials are the only ones that can reach its Drive
        for video in await self.videos.list_by_owner(user.id):
            await self.delete_video.evict_all(user, video)
        removed = await self.videos.delete_by_owner(user.id)
        await self.users.delete(user)
        logger.info("user_deleted", extra={"user_id": user_id, "videos": removed})
        return removed


class AdminDeleteVideo:
    """Delete any user's video by its row id."""

    def __init__(self, users: UserRepo, videos: VideoRepo, sync: ScreenshotSync) -> None:
        self.users = users
        self.videos = videos
        self.delete_video = DeleteVideo(videos, sync)

    async def __call__(self, row_id: str) -> None:
        video = await self.videos.get_by_id(row_id)
        if video is None:
            raise NotFoundError("Video not found")
        owner = await self.users.get(video.owner_id)
        if owner is not None:
            await self.delete_video.evict_all(owner, video)
        else:
            logger.warning("video_owner_missing", extra={"video_row_id": row_id})
        await self.videos.delete(video.owner_id, video.video_id)


__all__ = ["AdminStats", "DeleteUser", "AdminDeleteVideo"]
