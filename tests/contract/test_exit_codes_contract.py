from __future__ import annotations

from pathlib import Path

from flightqc.cli import main as cli_main

"""Exit code contract tests: 0 success, 1 fatal, 2 partial failure."""


def test_exit_code_fatal_missing_config(temp_workdir: Path, capsys):
    code = cli_main(["--config", "config/missing.yml", "inspect", "data/none.xlsx"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR config:" in out


def test_exit_code_fatal_missing_workbook(temp_workdir: Path, capsys):
    code = cli_main(["import", "data/none.xlsx", "--header-row", "1"])
    assert code == 1
    assert "ERROR import:" in capsys.readouterr().out


def test_exit_code_all_success(temp_workdir: Path, write_config, make_workbook, flight_sheet_rows, capsys):
    path = make_workbook("clean.xlsx", {"ARSENIO 004": flight_sheet_rows[:4]})
    code = cli_main(["import", str(path), "--header-row", "1"])
    out = capsys.readouterr().out
    assert code == 0
    assert "SUMMARY sheets=1 failed_sheets=0 records=2 " in out


def test_exit_code_partial_failure_on_cell_errors(
    temp_workdir: Path, write_config, make_workbook, flight_sheet_rows, capsys
):
    path = make_workbook("partial.xlsx", {"ARSENIO 004": flight_sheet_rows})
    code = cli_main(["import", str(path), "--header-row", "1"])
    out = capsys.readouterr().out
    assert code == 2
    assert " cell_errors=1 " in out


def test_exit_code_fatal_when_every_sheet_fails(temp_workdir: Path, write_config, make_workbook, flight_sheet_rows, capsys):
    path = make_workbook("short.xlsx", {"ARSENIO 004": flight_sheet_rows})
    code = cli_main(["import", str(path), "--header-row", "50"])
    out = capsys.readouterr().out
    assert code == 1
    assert "failed_sheets=1" in out
