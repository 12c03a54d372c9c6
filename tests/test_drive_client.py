from types import SimpleNamespace
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from libs.core.exceptions import ProviderError
from libs.storage import (
    DriveClient,
    decode_image_payload,
    drive_for_user,
    extract_file_id,
    is_remote_path,
    screenshot_filename,
)
from libs.storage.drive import FOLDER_MIME


def _request(result=None, error=None):
    req = MagicMock()
    if error is not None:
        req.execute.side_effect = error
    else:
        req.execute.return_value = result
    return req


def _http_error(status: int = 500) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b"boom")


def test_ensure_folder_reuses_existing() -> None:
    service = MagicMock()
    service.files.return_value.list.return_value = _request({"files": [{"id": "f-1"}]})
    client = DriveClient(service)

    assert client.ensure_folder("ytNotes") == "f-1"
    service.files.return_value.create.assert_not_called()
    query = service.files.return_value.list.call_args.kwargs["q"]
    assert f"mimeType='{FOLDER_MIME}'" in query
    assert "name='ytNotes'" in query
    assert "trashed=false" in query
    assert "in parents" not in query


def test_ensure_folder_creates_under_parent() -> None:
    service = MagicMock()
    files = service.files.return_value
    files.list.return_value = _request({"files": []})
    files.create.return_value = _request({"id": "new-folder"})
    client = DriveClient(service)

    assert client.ensure_folder("screenshots", "root-id") == "new-folder"
    assert "'root-id' in parents" in files.list.call_args.kwargs["q"]
    body = files.create.call_args.kwargs["body"]
    assert body == {"name": "screenshots", "mimeType": FOLDER_MIME, "parents": ["root-id"]}


def test_ensure_folder_escapes_quotes() -> None:
    service = MagicMock()
    service.files.return_value.list.return_value = _request({"files": [{"id": "x"}]})

    DriveClient(service).ensure_folder("it's")

    assert "name='it\\'s'" in service.files.return_value.list.call_args.kwargs["q"]


def test_publish_prefers_content_link() -> None:
    service = MagicMock()
    service.permissions.return_value.create.return_value = _request({})
    service.files.return_value.get.return_value = _request(
        {"webViewLink": "https://view", "webContentLink": "https://content"}
    )

    assert DriveClient(service).publish("abc") == "https://content"
    service.permissions.return_value.create.assert_called_once_with(
        fileId="abc", body={"role": "reader", "type": "anyone"}
    )


def test_publish_falls_back_to_uc_link() -> None:
    service = MagicMock()
    service.permissions.return_value.create.return_value = _request({})
    service.files.return_value.get.return_value = _request({})

    assert DriveClient(service).publish("abc") == "https://drive.google.com/uc?id=abc"


def test_http_error_becomes_provider_error() -> None:
    service = MagicMock()
    service.files.return_value.delete.return_value = _request(error=_http_error(404))

    with pytest.raises(ProviderError):
        DriveClient(service).delete_blob("gone")


def test_upload_screenshot_goes_into_screenshots_folder() -> None:
    client = DriveClient(MagicMock(), root_folder="ytNotes", screenshots_folder="shots")
    calls = []
    client.ensure_folder = lambda name, parent_id=None: calls.append((name, parent_id)) or f"id-{name}"
    client.upload_binary = MagicMock(return_value="file-9")
    client.publish = MagicMock(return_value="https://content/file-9")

    result = client.upload_screenshot(b"png", "abc_x.png")

    assert result == ("file-9", "https://content/file-9")
    assert calls == [("ytNotes", None), ("shots", "id-ytNotes")]
    client.upload_binary.assert_called_once_with("id-shots", b"png", "abc_x.png")
    client.publish.assert_called_once_with("file-9")


def test_drive_for_user_needs_both_tokens() -> None:
    assert drive_for_user(SimpleNamespace(access_token="a", refresh_token=None)) is None
    assert drive_for_user(SimpleNamespace(access_token=None, refresh_token="r")) is None
    assert drive_for_user(object()) is None


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://drive.google.com/uc?id=abc123&export=download", "abc123"),
        ("https://drive.google.com/file/d/abc-123_X/view?usp=sharing", "abc-123_X"),
        ("https://docs.google.com/document/d/xyz/edit", "xyz"),
        ("https://lh3.googleusercontent.com/d/img1", "img1"),
        ("https://example.com/uc?id=abc", None),
        ("https://drive.google.com/drive/my-drive", None),
    ],
)
def test_extract_file_id(url, expected) -> None:
    assert extract_file_id(url) == expected


def test_is_remote_path() -> None:
    assert is_remote_path("https://drive.google.com/uc?id=x")
    assert is_remote_path("HTTP://host/x.png")
    assert not is_remote_path("screenshots/x.png")
    assert not is_remote_path(None)
    assert not is_remote_path("")


def test_screenshot_filename() -> None:
    assert screenshot_filename("abc", 0) == "abc_1970-01-01T00-00-00.000Z.png"
    assert screenshot_filename("abc", 3725) == "abc_1970-01-01T01-02-05.000Z.png"
    assert screenshot_filename("a/b c", 1) == "a_b_c_1970-01-01T00-00-01.000Z.png"


def test_decode_image_payload() -> None:
    assert decode_image_payload("aGVsbG8=") == b"hello"
    assert decode_image_payload("data:image/png;base64,aGVsbG8=") == b"hello"
    assert decode_image_payload("not base64!!") is None
    assert decode_image_payload("") is None
    assert decode_image_payload(None) is None


def test_screenshot_filename_past_year_9999() -> None:
    assert screenshot_filename("abc", 300000000000) == "abc_300000000000.png"


def test_decode_wrapped_base64() -> None:
    wrapped = "aGVs\nbG8g\r\nd29y bGQ=\n"
    assert decode_image_payload(wrapped) == b"hello world"
    assert decode_image_payload("data:image/png;base64,aGVs\nbG8=") == b"hello"


class _FolderStore:
    """Drive ``files`` resource that remembers the folders it created."""

    def __init__(self) -> None:
        self.folders = {}
        self.creates = 0

    def files(self):
        return self

    def list(self, q, **_):
        matches = [
            {"id": folder_id}
            for folder_id, (name, parent) in self.folders.items()
            if f"name='{name}'" in q and (parent is None or f"'{parent}' in parents" in q)
        ]
        return _request({"files": matches})

    def create(self, body, **_):
        self.creates += 1
        folder_id = f"folder-{self.creates}"
        self.folders[folder_id] = (body["name"], (body.get("parents") or [None])[0])
        return _request({"id": folder_id})


def test_ensure_folder_twice_returns_same_id() -> None:
    store = _FolderStore()
    client = DriveClient(store)

    first = client.ensure_folder("ytNotes")
    second = client.ensure_folder("ytNotes")
    child = client.ensure_folder("screenshots", first)

    assert first == second == "folder-1"
    assert child == client.ensure_folder("screenshots", first) == "folder-2"
    assert store.creates == 2
