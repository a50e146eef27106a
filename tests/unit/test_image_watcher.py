"""Unit tests for the image version watcher."""

import os
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from avdrollout.errors import ImageNotFoundError
from avdrollout.image_watcher import ImageWatcher


def _set_mtime(path: Path, when: datetime) -> None:
    os.utime(path, (when.timestamp(), when.timestamp()))


class TestDetectLatest:
    """Tests for ImageWatcher.detect_latest."""

    def test_returns_most_recent_folder(self, repository: Path, clock) -> None:
        record = ImageWatcher(str(repository), clock=clock).detect_latest()

        assert record.folder_name == "build.2024.05.17.03"
        assert record.last_write == datetime(2024, 5, 17, 2, 15, tzinfo=timezone.utc)

    def test_ignores_files(self, repository: Path, clock) -> None:
        stray = repository / "LatestImages" / "notes.txt"
        stray.write_text("x", encoding="utf-8")
        _set_mtime(stray, datetime(2024, 5, 17, 9, 0, tzinfo=timezone.utc))

        record = ImageWatcher(str(repository), clock=clock).detect_latest()

        assert record.folder_name == "build.2024.05.17.03"

    def test_empty_repository_raises(self, tmp_path: Path, clock) -> None:
        (tmp_path / "LatestImages").mkdir()

        with pytest.raises(ImageNotFoundError):
            ImageWatcher(str(tmp_path), clock=clock).detect_latest()

    def test_missing_location_raises(self, tmp_path: Path, clock) -> None:
        with pytest.raises(ImageNotFoundError):
            ImageWatcher(str(tmp_path / "offline-share"), clock=clock).detect_latest()


class TestCheckForNewImage:
    """Tests for the published-today gate."""

    def test_returns_image_written_today(self, repository: Path, clock) -> None:
        record = ImageWatcher(str(repository), clock=clock).check_for_new_image()

        assert record is not None
        assert record.folder_name == "build.2024.05.17.03"

    def test_stale_image_is_no_change(self, repository: Path, clock) -> None:
        watcher = ImageWatcher(str(repository), clock=clock)

        assert watcher.check_for_new_image(today=date(2024, 5, 18)) is None

    def test_compares_date_not_time(self, repository: Path) -> None:
        late_same_day = lambda: datetime(2024, 5, 17, 23, 59, 59, tzinfo=timezone.utc)

        assert ImageWatcher(str(repository), clock=late_same_day).check_for_new_image() is not None

    def test_empty_repository_is_no_change(self, tmp_path: Path, clock) -> None:
        (tmp_path / "LatestImages").mkdir()

        assert ImageWatcher(str(tmp_path), clock=clock).check_for_new_image() is None

    def test_unavailable_share_is_no_change(self, tmp_path: Path, clock) -> None:
        assert ImageWatcher(str(tmp_path / "missing"), clock=clock).check_for_new_image() is None


class TestUnreliableShare:
    """Share errors while reading folder metadata."""

    @staticmethod
    def _failing_stat(monkeypatch: pytest.MonkeyPatch, error: OSError, names) -> None:
        original = Path.stat

        def stat(self, *args, **kwargs):
            if self.name in names:
                raise error
            return original(self, *args, **kwargs)

        monkeypatch.setattr(Path, "stat", stat)

    def test_host_down_is_no_change(self, repository: Path, clock, monkeypatch: pytest.MonkeyPatch) -> None:
        self._failing_stat(
            monkeypatch,
            OSError(112, "Host is down"),
            {"build.2024.05.17.03", "build.2024.05.10.01"},
        )
        watcher = ImageWatcher(str(repository), clock=clock)

        with pytest.raises(ImageNotFoundError):
            watcher.detect_latest()
        assert watcher.check_for_new_image() is None

    def test_vanished_folder_is_skipped(self, repository: Path, clock, monkeypatch: pytest.MonkeyPatch) -> None:
        self._failing_stat(
            monkeypatch,
            FileNotFoundError(2, "No such file or directory"),
            {"build.2024.05.17.03"},
        )

        record = ImageWatcher(str(repository), clock=clock).detect_latest()

        assert record.folder_name == "build.2024.05.10.01"
