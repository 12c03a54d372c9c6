import json
import logging
import sys
from datetime import datetime, timezone

from libs.logging import _JsonFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("libs.usecases.notes", logging.INFO, __file__, 1, "note_created", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_merges_extras() -> None:
    line = _JsonFormatter().format(
        _record(video_id="abc", created=datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp())
    )
    data = json.loads(line)

    assert data["message"] == "note_created"
    assert data["level"] == "INFO"
    assert data["logger"] == "libs.usecases.notes"
    assert data["video_id"] == "abc"
    assert data["timestamp"] == "2024-01-01T00:00:00.000000Z"
    assert "service" in data and "environment" in data


def test_formatter_renders_unserializable_values() -> None:
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    data = json.loads(_JsonFormatter().format(_record(when=moment)))

    assert data["when"] == str(moment)


def test_formatter_reports_exception_class() -> None:
    try:
        raise ValueError("bad payload")
    except ValueError:
        record = _record()
        record.exc_info = sys.exc_info()

    data = json.loads(_JsonFormatter().format(record))

    assert data["error"] == {"class": "ValueError", "message": "bad payload"}
