from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import urlencode

from fastapi import Depends, FastAPI, Header, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from libs.auth import (
    bearer_token,
    issue_access_token,
    issue_refresh_token,
    require_admin,
    resolve_current_user,
)
from libs.auth import google_oauth
from libs.auth.tokens import REFRESH
from libs.core import models as domain
from libs.core.exceptions import (
    AuthenticationError,
    DomainError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from libs.core.settings import get_settings
from libs.db import UserRepo, VideoRepo, get_session, models
from libs.db.database import engine
from libs.logging import setup_logging
from libs.storage import (
    DriveClient,
    DriveFactory,
    LocalScreenshotStore,
    decode_image_payload,
    drive_for_user,
)
from libs.usecases.admin import ACTIVE_WINDOW
from libs.usecases import (
    AdminDeleteVideo,
    AdminStats,
    CreateNote,
    DeleteNote,
    DeleteOutcome,
    DeleteScreenshot,
    DeleteUser,
    DeleteVideo,
    EditNoteText,
    ScreenshotSync,
    ToggleFavorite,
    ToggleNoteLike,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dependency factories


def get_local_store() -> LocalScreenshotStore:
    return LocalScreenshotStore(get_settings().screenshots_dir)


def get_drive_factory() -> DriveFactory:
    return drive_for_user


async def db_session() -> AsyncIterator[AsyncSession]:
    async with get_session() as session:
        yield session


def get_users(session: AsyncSession = Depends(db_session)) -> UserRepo:
    return UserRepo(session)


def get_videos(session: AsyncSession = Depends(db_session)) -> VideoRepo:
    return VideoRepo(session)


def get_sync(
    drive_factory: DriveFactory = Depends(get_drive_factory),
    local_store: LocalScreenshotStore = Depends(get_local_store),
) -> ScreenshotSync:
    return ScreenshotSync(drive_factory, local_store)


async def current_user(
    authorization: str | None = Header(None),
    users: UserRepo = Depends(get_users),
) -> models.User:
    """Resolve the bearer token to a user or stop the request with 401."""
    user = await resolve_current_user(bearer_token(authorization), users)
    if user is None:
        raise AuthenticationError("Authentication required")
    return user


async def admin_user(user: models.User = Depends(current_user)) -> models.User:
    require_admin(user, get_settings().admin_email_list)
    return user


# ---------------------------------------------------------------------------
# Pydantic schemas


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateNoteRequest(_CamelModel):
    # Loosely typed on purpose: CreateNote owns the validation rules.
    video_id: Any = Field(None, alias="videoId")
    video_title: Any = Field(None, alias="videoTitle")
    timestamp: Any = None
    note: Any = None
    screenshot: Optional[str] = None


class EditNoteRequest(_CamelModel):
    note: Any = None


class LikeRequest(_CamelModel):
    liked: Optional[bool] = None


class FavoriteRequest(_CamelModel):
    favorite: Optional[bool] = None


class RefreshRequest(_CamelModel):
    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class UploadRequest(_CamelModel):
    file_name: str = Field(..., alias="fileName")
    file_data: str = Field(..., alias="fileData")
    mime_type: str = Field("application/octet-stream", alias="mimeType")


def _video_json(video: domain.Video) -> Dict[str, Any]:
    return video.model_dump(mode="json", by_alias=True)


def _user_json(user: models.User) -> Dict[str, Any]:
    return domain.User.model_validate(user).model_dump(mode="json", by_alias=True)


def _outcome_json(outcome: DeleteOutcome) -> Dict[str, Any]:
    if outcome.video_deleted:
        return {"success": True, "videoDeleted": True}
    return {"success": True, "video": _video_json(outcome.video)}


# ---------------------------------------------------------------------------
# FastAPI application


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    yield
    await engine.dispose()


app = FastAPI(title="ytNotes API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_methods=["*"],
    allow_headers=["*"],
)
# Legacy captures stored on the server's disk
app.mount(
    "/screenshots",
    StaticFiles(directory=get_settings().screenshots_dir, check_dir=False),
    name="screenshots",
)


_ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    for cls, code in _ERROR_STATUS:
        if isinstance(exc, cls):
            return JSONResponse(status_code=code, content={"error": str(exc)})
    # ProviderError, PersistenceError
    logger.error(
        "request_failed",
        extra={"path": request.url.path, "error_class": type(exc).__name__},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server error", "details": str(exc)},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "details": details},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_error", extra={"path": request.url.path}, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server error", "details": str(exc)},
    )


# Routes ---------------------------------------------------------------------


@app.get("/")
def health() -> Dict[str, str]:
    return {"status": "ok"}


# Auth -----------------------------------------------------------------------


@app.get("/auth/google")
def auth_google() -> RedirectResponse:
    return RedirectResponse(google_oauth.authorization_url())


@app.get("/auth/google/callback")
async def auth_google_callback(
    code: str | None = Query(None),
    users: UserRepo = Depends(get_users),
) -> RedirectResponse:
    if not code:
        raise ValidationError("Missing authorization code")
    login = await asyncio.to_thread(google_oauth.exchange_code, code)
    profile = login.profile
    user = await users.record_login(
        google_id=str(profile["id"]),
        email=profile.get("email", ""),
        name=profile.get("name"),
        picture=profile.get("picture"),
        access_token=login.access_token,
        refresh_token=login.refresh_token,
    )
    logger.info("user_logged_in", extra={"user_id": user.id})
    query = urlencode(
        {"token": issue_access_token(user), "refreshToken": issue_refresh_token(user)}
    )
    return RedirectResponse(f"{get_settings().dashboard_url}/auth/callback?{query}")


@app.get("/auth/status")
async def auth_status(
    authorization: str | None = Header(None),
    users: UserRepo = Depends(get_users),
) -> Dict[str, Any]:
    user = await resolve_current_user(bearer_token(authorization), users)
    if user is None:
        return {"authenticated": False}
    return {
        "authenticated": True,
        "user": _user_json(user),
        "driveConnected": user.has_drive_credentials,
    }


@app.post("/auth/refresh")
async def auth_refresh(
    req: RefreshRequest, users: UserRepo = Depends(get_users)
) -> Dict[str, str]:
    user = await resolve_current_user(req.refresh_token, users, expected_type=REFRESH)
    if user is None:
        raise AuthenticationError("Invalid refresh token")
    return {"token": issue_access_token(user)}


# Bookmarks ------------------------------------------------------------------


@app.get("/bookmark/{video_id}")
async def list_notes(
    video_id: str,
    videos: VideoRepo = Depends(get_videos),
    user: models.User = Depends(current_user),
) -> List[Dict[str, Any]]:
    video = await videos.get(user.id, video_id)
    if video is None:
        return []
    return [n.model_dump(mode="json", by_alias=True) for n in video.notes]


@app.post("/bookmark", status_code=status.HTTP_201_CREATED)
async def create_note(
    req: CreateNoteRequest,
    videos: VideoRepo = Depends(get_videos),
    sync: ScreenshotSync = Depends(get_sync),
    user: models.User = Depends(current_user),
) -> Dict[str, Any]:
    video = await CreateNote(videos, sync)(
        user, req.video_id, req.video_title, req.timestamp, req.note, req.screenshot
    )
    return {"success": True, "video": _video_json(video)}


@app.get("/bookmark/{video_id}/screenshots")
async def list_screenshots(
    video_id: str,
    videos: VideoRepo = Depends(get_videos),
    user: models.User = Depends(current_user),
) -> Dict[str, Any]:
    video = await videos.get(user.id, video_id)
    shots = video.screenshots if video is not None else []
    return {
        "success": True,
        "screenshots": [s.model_dump(mode="json", by_alias=True) for s in shots],
    }


def _position(raw: str, missing: str) -> int:
    """Parse a list position from the path; anything but digits is a missing item."""
    if not (raw.isascii() and raw.isdigit()):
        raise NotFoundError(missing)
    return int(raw)


@app.delete("/bookmark/{video_id}/screenshots/{index}")
async def delete_screenshot(
    video_id: str,
    index: str,
    videos: VideoRepo = Depends(get_videos),
    sync: ScreenshotSync = Depends(get_sync),
    user: models.User = Depends(current_user),
) -> Dict[str, Any]:
    outcome = await DeleteScreenshot(videos, sync)(
        user, video_id, _position(index, "Screenshot not found")
    )
    return _outcome_json(outcome)


@app.patch("/bookmark/{video_id}/{note_idx}")
async def edit_note(
    video_id: str,
    note_idx: str,
    req: EditNoteRequest,
    videos: VideoRepo = Depends(get_videos),
    user: models.User = Depends(current_user),
) -> Dict[str, Any]:
    video = await EditNoteText(videos)(
        user, video_id, _position(note_idx, "Note not found"), req.note
    )
    return {"success": True, "video": _video_json(video)}


@app.delete("/bookmark/{video_id}/{note_idx}")
async def delete_note(
    video_id: str,
    note_idx: str,
    videos: VideoRepo = Depends(get_videos),
    sync: ScreenshotSync = Depends(get_sync),
    user: models.User = Depends(current_user),
) -> Dict[str, Any]:
    outcome = await DeleteNote(videos, sync)(
        user, video_id, _position(note_idx, "Note not found")
    )
    return _outcome_json(outcome)


@app.patch("/bookmark/{video_id}/{note_idx}/like")
async def like_note(
    video_id: str,
    note_idx: str,
    req: Optional[LikeRequest] = None,
    videos: VideoRepo = Depends(get_videos),
    user: models.User = Depends(current_user),
) -> Dict[str, Any]:
    liked = req.liked if req is not None else None
    video = await ToggleNoteLike(videos)(
        user, video_id, _position(note_idx, "Note not found"), liked
    )
    return {"success": True, "video": _video_json(video)}


# Videos ---------------------------------------------------------------------


@app.get("/videos")
async def list_videos(
    videos: VideoRepo = Depends(get_videos),
    user: models.User = Depends(current_user),
) -> List[Dict[str, Any]]:
    return [_video_json(v) for v in await videos.list_by_owner(user.id)]


@app.get("/videos/favorites")
async def list_favorites(
    videos: VideoRepo = Depends(get_videos),
    user: models.User = Depends(current_user),
) -> List[Dict[str, Any]]:
    return [_video_json(v) for v in await videos.list_by_owner(user.id, favorite=True)]


@app.patch("/videos/{video_id}/favorite")
async def favorite_video(
    video_id: str,
    req: Optional[FavoriteRequest] = None,
    videos: VideoRepo = Depends(get_videos),
    user: models.User = Depends(current_user),
) -> Dict[str, Any]:
    favorite = req.favorite if req is not None else None
    video = await ToggleFavorite(videos)(user, video_id, favorite)
    return _video_json(video)


@app.delete("/videos/{video_id}")
async def delete_video(
    video_id: str,
    videos: VideoRepo = Depends(get_videos),
    sync: ScreenshotSync = Depends(get_sync),
    user: models.User = Depends(current_user),
) -> Dict[str, Any]:
    await DeleteVideo(videos, sync)(user, video_id)
    return {"success": True, "message": "Video deleted successfully"}


# Drive ----------------------------------------------------------------------
# These endpoints exist only to talk to Drive, so Drive errors fail them.


def _require_drive(user: models.User, drive_factory: DriveFactory) -> DriveClient:
    drive = drive_factory(user)
    if drive is None:
        raise ValidationError("Google Drive is not connected")
    return drive


@app.get("/drive/files")
async def drive_files(
    drive_factory: DriveFactory = Depends(get_drive_factory),
    user: models.User = Depends(current_user),
) -> Dict[str, Any]:
    drive = _require_drive(user, drive_factory)

    def _list() -> List[Dict[str, Any]]:
        return drive.list_files(drive.screenshots_folder_id())

    return {"success": True, "files": await asyncio.to_thread(_list)}


@app.post("/upload-to-drive")
async def upload_to_drive(
    req: UploadRequest,
    drive_factory: DriveFactory = Depends(get_drive_factory),
    user: models.User = Depends(current_user),
) -> Dict[str, Any]:
    data = decode_image_payload(req.file_data)
    if data is None:
        raise ValidationError("fileData must be non-empty base64")
    drive = _require_drive(user, drive_factory)
    uploaded = await asyncio.to_thread(drive.upload_file, data, req.file_name, req.mime_type)
    return {"success": True, "file": uploaded}


# Admin ----------------------------------------------------------------------


@app.get("/admin/stats")
async def admin_stats(
    users: UserRepo = Depends(get_users),
    videos: VideoRepo = Depends(get_videos),
    admin: models.User = Depends(admin_user),
) -> Dict[str, Any]:
    return await AdminStats(users, videos)()


@app.get("/admin/users")
async def admin_users(
    users: UserRepo = Depends(get_users),
    admin: models.User = Depends(admin_user),
) -> List[Dict[str, Any]]:
    return [_user_json(u) for u in await users.list()]


@app.get("/admin/users/active")
async def admin_active_users(
    users: UserRepo = Depends(get_users),
    admin: models.User = Depends(admin_user),
) -> List[Dict[str, Any]]:
    since = domain.utcnow() - ACTIVE_WINDOW
    return [_user_json(u) for u in await users.list_active_since(since)]


@app.get("/admin/videos")
async def admin_videos(
    videos: VideoRepo = Depends(get_videos),
    admin: models.User = Depends(admin_user),
) -> List[Dict[str, Any]]:
    return [_video_json(v) for v in await videos.list_all()]


@app.delete("/admin/users/{user_id}")
async def admin_delete_user(
    user_id: str,
    users: UserRepo = Depends(get_users),
    videos: VideoRepo = Depends(get_videos),
    sync: ScreenshotSync = Depends(get_sync),
    admin: models.User = Depends(admin_user),
) -> Dict[str, Any]:
    removed = await DeleteUser(users, videos, sync, get_settings().admin_email_list)(user_id)
    return {"message": "User and associated data deleted successfully", "videosDeleted": removed}


@app.delete("/admin/videos/{row_id}")
async def admin_delete_video(
    row_id: str,
    users: UserRepo = Depends(get_users),
    videos: VideoRepo = Depends(get_videos),
    sync: ScreenshotSync = Depends(get_sync),
    admin: models.User = Depends(admin_user),
) -> Dict[str, str]:
    await AdminDeleteVideo(users, videos, sync)(row_id)
    return {"message": "Video deleted successfully"}


@app.get("/admin/health")
async def admin_health(
    users: UserRepo = Depends(get_users),
    admin: models.User = Depends(admin_user),
) -> Dict[str, Any]:
    try:
        await users.count()
        database = "healthy"
    except DomainError:
        database = "unhealthy"
    return {
        "database": database,
        "apiServer": "healthy",
        "timestamp": domain.utcnow().isoformat(),
    }


__all__ = ["app"]
