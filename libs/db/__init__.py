"""Database utilities for the ytNotes backend."""

from . import models
from .database import get_session, init_db
from .repositories import UserRepo, VideoRepo

__all__ = ["models", "get_session", "init_db", "UserRepo", "VideoRepo"]
