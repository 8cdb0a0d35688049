from __future__ import annotations
import json
import re
from pathlib import Path
from flightqc.logging.error_log import ErrorLogBuffer, ErrorRecord

KEYS = {"timestamp", "file", "sheet", "row", "field", "error_type", "message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(
        file="log.xlsx",
        sheet="ARSENIO 004",
        row=10,
        field="MISSION DATE",
        error_type="INVALID_DATE",
        message="unparseable date: 'tomorrow'",
    )
    data = json.loads(rec.to_json_line())
    assert set(data) == KEYS
    assert data["row"] == 10
    assert data["field"] == "MISSION DATE"
    assert data["timestamp"].endswith("Z")


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f.xlsx", "S", 3, "FUEL USED", "INVALID_NUMBER", "not a number: 'x'"))
    buf.append(ErrorRecord.create("f.xlsx", "S", 4, "MISSION DATE", "INVALID_DATE", "unparseable date: 'y'"))
    assert buf.total == 2
    path = buf.flush()
    assert path is not None and path.exists()
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    assert path.parent.resolve() == (temp_workdir / "logs").resolve()
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    assert all(set(json.loads(raw)) == KEYS for raw in lines)
    # flush 後バッファクリア, total は累計
    assert len(buf) == 0
    assert buf.total == 2


def test_error_log_buffer_multiple_flushes_append(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f.xlsx", "S", 1, "", "INVALID_NUMBER", "a"))
    path = buf.flush()
    buf.append(ErrorRecord.create("f.xlsx", "S", 2, "", "INVALID_NUMBER", "b"))
    assert buf.flush() == path
    assert len(path.read_text(encoding="utf-8").splitlines()) == 2


def test_error_log_buffer_empty_flush_creates_no_file(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()
