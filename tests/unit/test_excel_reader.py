from __future__ import annotations

import math

import pytest

from flightqc.excel.reader import (
    SheetHeaderError,
    header_candidates,
    is_blank,
    is_blank_row,
    list_sheet_names,
    read_workbook,
    split_at_header,
)


def test_header_candidates_skip_empty_rows_and_keep_indices():
    rows = [
        [None, None],
        ["Flight Log 2025", None],
        ["", "   "],
        ["DRONE MODEL", "FLIGHT ID"],
        ["Arsenio 004", "ARS-001"],
    ]
    cands = header_candidates(rows)
    assert [c.row_index for c in cands] == [1, 3, 4]
    assert cands[1].cells == ["DRONE MODEL", "FLIGHT ID"]


def test_header_candidates_limit():
    rows = [[f"r{i}"] for i in range(10)]
    assert [c.row_index for c in header_candidates(rows, limit=5)] == [0, 1, 2, 3, 4]
    assert len(header_candidates(rows, limit=2)) == 2


def test_header_candidates_empty_sheet():
    assert header_candidates([]) == []
    assert header_candidates([[None], [""]]) == []


def test_split_at_header():
    rows = [["title"], ["A", "B"], [1, 2], [3, 4]]
    header, data = split_at_header(rows, 1)
    assert header == ["A", "B"]
    assert data == [[1, 2], [3, 4]]


@pytest.mark.parametrize("index", [-1, 4, 100])
def test_split_at_header_out_of_range(index):
    with pytest.raises(SheetHeaderError):
        split_at_header([["a"], ["b"], ["c"], ["d"]], index)


def test_is_blank():
    assert is_blank(None)
    assert is_blank(float("nan"))
    assert is_blank("  ")
    assert not is_blank(0)
    assert not is_blank("NIL")
    assert is_blank_row([None, "", math.nan])
    assert is_blank_row(None)
    assert not is_blank_row([None, 0])


def test_read_workbook_raw_rows(make_workbook, flight_sheet_rows):
    path = make_workbook("log.xlsx", {"ARSENIO 004": flight_sheet_rows, "Other": [["x"]]})
    sheets = read_workbook(path)
    assert list(sheets) == ["ARSENIO 004", "Other"]
    rows = sheets["ARSENIO 004"].rows
    assert rows[0][0] == "Arsenio 004 Flight Log"
    assert rows[0][1] is None  # NaN -> None
    assert rows[1][3] == "FLIGHT ID"
    assert rows[2][7] == pytest.approx(12.32)
    assert is_blank_row(rows[4])
    assert len(rows) == len(flight_sheet_rows)


def test_read_workbook_target_sheets(make_workbook):
    path = make_workbook("two.xlsx", {"A": [["a"]], "B": [["b"]]})
    assert list(read_workbook(path, target_sheets=["B"])) == ["B"]
    assert list_sheet_names(path) == ["A", "B"]
