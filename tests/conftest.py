import asyncio
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List, Optional, Tuple

import pytest

# Ensure project root on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("JWT_SECRET", "test-secret")

from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from libs.core.exceptions import ProviderError
from libs.core.models import Video
from libs.db import UserRepo, init_db
from libs.storage import LocalScreenshotStore, drive_for_user
from libs.storage.drive import DriveClient
from libs.usecases import ScreenshotSync


class FakeDrive:
    """In-memory stand-in for :class:`DriveClient` used by the engine."""

    def __init__(self) -> None:
        self.uploads: List[Tuple[str, str, bytes]] = []
        self.deleted: List[str] = []
        self.fail_upload = False
        self.fail_delete_ids: set[str] = set()

    def upload_screenshot(self, data: bytes, filename: str) -> Tuple[str, str]:
        if self.fail_upload:
            raise ProviderError("Drive upload failed: quota exceeded")
        file_id = f"file{len(self.uploads) + 1}"
        self.uploads.append((file_id, filename, data))
        return file_id, f"https://drive.google.com/uc?id={file_id}&export=download"

    def delete_blob(self, file_id: str) -> None:
        if file_id in self.fail_delete_ids:
            raise ProviderError("Drive delete failed: 500")
        self.deleted.append(file_id)

    def screenshots_folder_id(self) -> str:
        return "folder-screenshots"

    def list_files(self, folder_id: str) -> List[Dict[str, str]]:
        return [{"id": file_id, "name": name} for file_id, name, _ in self.uploads]

    def upload_file(self, data: bytes, filename: str, mime_type: str) -> Dict[str, str]:
        if self.fail_upload:
            raise ProviderError("Drive upload failed: quota exceeded")
        return {"id": "upload1", "name": filename, "url": "https://drive.google.com/uc?id=upload1"}


class MemoryVideoRepo:
    """Document-store double: every read and write is a deep copy."""

    def __init__(self) -> None:
        self.docs: Dict[Tuple[str, str], Video] = {}
        self.writes = 0
        self.deletes = 0

    async def get(self, owner_id: str, video_id: str) -> Optional[Video]:
        doc = self.docs.get((owner_id, video_id))
        return doc.model_copy(deep=True) if doc is not None else None

    async def upsert(self, video: Video) -> Video:
        self.writes += 1
        stored = video.model_copy(deep=True)
        if stored.id is None:
            stored.id = f"row-{stored.owner_id}-{stored.video_id}"
        self.docs[(video.owner_id, video.video_id)] = stored
        return stored.model_copy(deep=True)

    async def get_by_id(self, row_id: str) -> Optional[Video]:
        for doc in self.docs.values():
            if doc.id == row_id:
                return doc.model_copy(deep=True)
        return None

    async def delete(self, owner_id: str, video_id: str) -> bool:
        self.deletes += 1
        return self.docs.pop((owner_id, video_id), None) is not None

    async def list_by_owner(self, owner_id: str, favorite: Optional[bool] = None) -> List[Video]:
        return [
            v.model_copy(deep=True)
            for (owner, _), v in self.docs.items()
            if owner == owner_id and (favorite is None or v.favorite == favorite)
        ]

    async def delete_by_owner(self, owner_id: str) -> int:
        keys = [k for k in self.docs if k[0] == owner_id]
        for key in keys:
            del self.docs[key]
        return len(keys)


@pytest.fixture()
def fake_drive(monkeypatch) -> FakeDrive:
    """Route every per-user Drive client to one FakeDrive."""

    drive = FakeDrive()
    monkeypatch.setattr(
        DriveClient,
        "from_tokens",
        classmethod(lambda cls, access_token, refresh_token, settings=None: drive),
    )
    return drive


@pytest.fixture()
def video_repo() -> MemoryVideoRepo:
    return MemoryVideoRepo()


@pytest.fixture()
def sync(tmp_path, fake_drive) -> ScreenshotSync:
    return ScreenshotSync(drive_for_user, LocalScreenshotStore(tmp_path / "screenshots"))


@pytest.fixture()
def user() -> SimpleNamespace:
    return SimpleNamespace(
        id="u1", email="u1@example.com", access_token="access", refresh_token="refresh"
    )


@pytest.fixture()
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture()
def session_scope(db_url):
    """Factory for a committed SQLite session with the schema created."""

    @asynccontextmanager
    async def _scope():
        engine = create_async_engine(db_url, poolclass=NullPool)
        await init_db(engine, max_attempts=1)
        maker = async_sessionmaker(engine, expire_on_commit=False)
        try:
            async with maker() as session:
                yield session
                await session.commit()
        finally:
            await engine.dispose()

    return _scope


@pytest.fixture()
def api(tmp_path, db_url, fake_drive):
    """TestClient over a SQLite database with one signed-in user."""

    from apps.api.main import app, db_session, get_local_store
    from libs.auth import issue_access_token, issue_refresh_token

    engine = create_async_engine(db_url, poolclass=NullPool)
    maker = async_sessionmaker(engine, expire_on_commit=False)

    async def _seed():
        await init_db(engine, max_attempts=1)
        async with maker() as session:
            users = UserRepo(session)
            owner = await users.record_login(
                google_id="g-1",
                email="owner@example.com",
                name="Owner",
                access_token="access",
                refresh_token="refresh",
            )
            await session.commit()
            return owner

    owner = asyncio.run(_seed())

    async def _session():
        async with maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[db_session] = _session
    app.dependency_overrides[get_local_store] = lambda: LocalScreenshotStore(
        tmp_path / "screenshots"
    )

    with TestClient(app) as client:
        yield SimpleNamespace(
            client=client,
            user=owner,
            drive=fake_drive,
            maker=maker,
            headers={"Authorization": f"Bearer {issue_access_token(owner)}"},
            refresh_token=issue_refresh_token(owner),
        )

    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())
