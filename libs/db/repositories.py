"""Repository classes for persistence of users and video aggregates."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from libs.core.exceptions import PersistenceError
from libs.core.models import Note, Screenshot, Video, utcnow

from . import models


@contextmanager
def _persistence_errors() -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise PersistenceError(str(exc)) from exc


def _as_utc(value: Optional[datetime]) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is None:
        return utcnow()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_domain(row: models.Video) -> Video:
    return Video(
        id=row.id,
        owner_id=row.user_id,
        video_id=row.video_id,
        title=row.video_title,
        favorite=bool(row.favorite),
        created_at=_as_utc(row.created_at),
        notes=[Note.model_validate(n) for n in row.notes or []],
        screenshots=[Screenshot.model_validate(s) for s in row.screenshots or []],
    )


class UserRepo:
    """CRUD operations for :class:`models.User`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: str) -> Optional[models.User]:
        with _persistence_errors():
            return await self.session.get(models.User, user_id)

    async def get_by_google_id(self, google_id: str) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.google_id == google_id)
        with _persistence_errors():
            res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def record_login(
        self,
        google_id: str,
        email: str,
        name: Optional[str] = None,
        picture: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> models.User:
        """Create the user on first login, otherwise refresh its credentials.

        Google only hands out a refresh token on the first consent, so an
        empty one never overwrites the stored token.
        """
        user = await self.get_by_google_id(google_id)
        if user is None:
            user = models.User(google_id=google_id, email=email)
            self.session.add(user)
        user.email = email
        user.name = name
        user.picture = picture
        user.access_token = access_token
        if refresh_token:
            user.refresh_token = refresh_token
        user.last_login = utcnow()
        with _persistence_errors():
            await self.session.flush()
        return user

    async def list(self) -> List[models.User]:
        stmt = select(models.User).order_by(models.User.last_login.desc())
        with _persistence_errors():
            res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def list_active_since(self, since: datetime) -> List[models.User]:
        stmt = (
            select(models.User)
            .where(models.User.last_login.is_not(None))
            .where(models.User.last_login >= since)
            .order_by(models.User.last_login.desc())
        )
        with _persistence_errors():
            res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def count(self) -> int:
        with _persistence_errors():
            res = await self.session.execute(select(func.count(models.User.id)))
        return int(res.scalar_one())

    async def delete(self, user: models.User) -> None:
        with _persistence_errors():
            await self.session.delete(user)
            await self.session.flush()


class VideoRepo:
    """Load and store whole :class:`Video` aggregates.

    Every write replaces the full row (notes and screenshots included). There
    is no version check, so concurrent writers to the same aggregate follow
    last-writer-wins.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _row(self, owner_id: str, video_id: str) -> Optional[models.Video]:
        stmt = select(models.Video).where(
            models.Video.user_id == owner_id, models.Video.video_id == video_id
        )
        with _persistence_errors():
            res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def get(self, owner_id: str, video_id: str) -> Optional[Video]:
        row = await self._row(owner_id, video_id)
        return _to_domain(row) if row is not None else None

    async def get_by_id(self, row_id: str) -> Optional[Video]:
        with _persistence_errors():
            row = await self.session.get(models.Video, row_id)
        return _to_domain(row) if row is not None else None

    async def upsert(self, video: Video) -> Video:
        row = await self._row(video.owner_id, video.video_id)
        if row is None:
            row = models.Video(
                user_id=video.owner_id,
                video_id=video.video_id,
                created_at=video.created_at,
            )
            self.session.add(row)
        row.video_title = video.title
        row.favorite = video.favorite
        row.notes = [n.model_dump(mode="json") for n in video.notes]
        row.screenshots = [s.model_dump(mode="json") for s in video.screenshots]
        with _persistence_errors():
            await self.session.flush()
        return _to_domain(row)

    async def delete(self, owner_id: str, video_id: str) -> bool:
        stmt = delete(models.Video).where(
            models.Video.user_id == owner_id, models.Video.video_id == video_id
        )
        with _persistence_errors():
            res = await self.session.execute(stmt)
        return bool(res.rowcount)

    async def list_by_owner(
        self, owner_id: str, favorite: Optional[bool] = None
    ) -> List[Video]:
        stmt = select(models.Video).where(models.Video.user_id == owner_id)
        if favorite is not None:
            stmt = stmt.where(models.Video.favorite == favorite)
        stmt = stmt.order_by(models.Video.created_at.desc())
        with _persistence_errors():
            res = await self.session.execute(stmt)
        return [_to_domain(row) for row in res.scalars().all()]

    async def list_all(self) -> List[Video]:
        stmt = select(models.Video).order_by(models.Video.created_at.desc())
        with _persistence_errors():
            res = await self.session.execute(stmt)
        return [_to_domain(row) for row in res.scalars().all()]

    async def delete_by_owner(self, owner_id: str) -> int:
        stmt = delete(models.Video).where(models.Video.user_id == owner_id)
        with _persistence_errors():
            res = await self.session.execute(stmt)
        return int(res.rowcount or 0)

    async def count(self) -> int:
        with _persistence_errors():
            res = await self.session.execute(select(func.count(models.Video.id)))
        return int(res.scalar_one())


__all__ = ["UserRepo", "VideoRepo"]
