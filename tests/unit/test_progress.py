from __future__ import annotations

from unittest.mock import patch

from flightqc.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:

    def test_init_with_tty_enabled(self):
        with patch("flightqc.services.progress.is_tty_enabled", return_value=True), \
             patch("flightqc.services.progress.tqdm") as mock_tqdm:
            tracker = ProgressTracker(3, description="Import")
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=3,
                desc="Import",
                unit="sheet",
                leave=True,
                ncols=80,
                ascii=True,
            )

    def test_sheet_updates(self):
        with patch("flightqc.services.progress.is_tty_enabled", return_value=True), \
             patch("flightqc.services.progress.tqdm") as mock_tqdm:
            pbar = mock_tqdm.return_value
            with ProgressTracker(2, description="Import") as tracker:
                tracker.start_sheet("ARSENIO 004")
                pbar.set_description.assert_called_with("Import (ARSENIO 004)")
                tracker.set_postfix(records=4)
                pbar.set_postfix.assert_called_with(records=4)
                tracker.finish_sheet()
                pbar.update.assert_called_once_with(1)
                pbar.set_description.assert_called_with("Import")
                assert tracker.current_sheet == 1
            pbar.close.assert_called_once()
            assert tracker.pbar is None

    def test_disabled_without_tty(self):
        with patch("flightqc.services.progress.is_tty_enabled", return_value=False), \
             patch("flightqc.services.progress.tqdm") as mock_tqdm:
            with ProgressTracker(2) as tracker:
                tracker.start_sheet("S")
                tracker.set_postfix(records=1)
                tracker.finish_sheet()
            assert tracker.enabled is False
            assert tracker.pbar is None
            mock_tqdm.assert_not_called()
