"""Pydantic models representing core domain entities.

Field names are snake_case in Python and camelCase on the wire (the
dashboard and the browser extension speak camelCase).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """Application user bound to a Google account."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str = Field(..., description="Internal user identifier")
    google_id: str = Field(..., alias="googleId")
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None
    access_token: Optional[str] = Field(default=None, alias="accessToken", exclude=True)
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken", exclude=True)
    last_login: Optional[datetime] = Field(default=None, alias="lastLogin")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @property
    def has_drive_credentials(self) -> bool:
        return bool(self.access_token and self.refresh_token)


class Screenshot(BaseModel):
    """Screenshot captured at a video moment, stored on Drive or locally."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    timestamp: int
    path: str
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")


class Note(BaseModel):
    """Free-text note pinned to a second offset of a video."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: int
    text: str = Field(..., alias="note")
    screenshot_id: Optional[str] = Field(default=None, alias="screenshotId")
    screenshot_path: Optional[str] = Field(default=None, alias="screenshotPath")
    liked: bool = False
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")


class Video(BaseModel):
    """Aggregate root: one per (owner, YouTube video id)."""

    model_config = ConfigDict(populate_by_name=True)

    # Row id, assigned by the store on first write.
    id: Optional[str] = Field(default=None, alias="_id")
    owner_id: str = Field(..., alias="userId")
    video_id: str = Field(..., alias="videoId")
    title: str = Field(..., alias="videoTitle")
    favorite: bool = False
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    notes: List[Note] = Field(default_factory=list)
    screenshots: List[Screenshot] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.notes and not self.screenshots

    def screenshot_index_for(self, note: Note) -> Optional[int]:
        """Index of the screenshot paired with ``note``.

        Notes written with a screenshot id are matched by id. Older notes
        only carry the path and match the first screenshot with that path.
        """
        if note.screenshot_id:
            for i, shot in enumerate(self.screenshots):
                if shot.id == note.screenshot_id:
                    return i
            return None
        if note.screenshot_path:
            for i, shot in enumerate(self.screenshots):
                if shot.path == note.screenshot_path:
                    return i
        return None

    def note_index_for(self, screenshot: Screenshot) -> Optional[int]:
        """Index of the first note that references ``screenshot``."""
        for i, note in enumerate(self.notes):
            if note.screenshot_id:
                if note.screenshot_id == screenshot.id:
                    return i
            elif note.screenshot_path and note.screenshot_path == screenshot.path:
                return i
        return None


__all__ = ["User", "Note", "Screenshot", "Video", "utcnow"]
