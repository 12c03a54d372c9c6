"""Use cases: the note/screenshot reconciliation engine and admin actions."""

from .admin import AdminDeleteVideo, AdminStats, DeleteUser
from .base import DeleteOutcome
from .notes import CreateNote, DeleteNote, EditNoteText, ToggleNoteLike
from .screenshots import DeleteScreenshot, ScreenshotSync
from .videos import DeleteVideo, ToggleFavorite

__all__ = [
    "AdminDeleteVideo",
    "AdminStats",
    "DeleteUser",
    "DeleteOutcome",
    "CreateNote",
    "DeleteNote",
    "EditNoteText",
    "ToggleNoteLike",
    "DeleteScreenshot",
    "ScreenshotSync",
    "DeleteVideo",
    "ToggleFavorite",
]
