"""
Image Watcher Module

Detects whether a new image build was published to the shared repository today.
"""

import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from .errors import ImageNotFoundError
from .models import ImageVersionRecord


logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class ImageWatcher:
    """Inspect the 'latest images' folder of the image repository."""

    def __init__(self, repository_root: str, images_dir: str = 'LatestImages',
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize the ImageWatcher.

        Args:
            repository_root: Mounted path of the shared image repository
            images_dir: Folder under the root holding one subfolder per build
            clock: Returns the current aware UTC time
        """
        self.location = Path(repository_root) / images_dir
        self.clock = clock

    def detect_latest(self) -> ImageVersionRecord:
        """
        Find the most recently written build folder.

        Returns:
            Record for the newest folder

        Raises:
            ImageNotFoundError: If the location is missing, unreadable or empty
        """
        records = []
        try:
            for entry in self.location.iterdir():
                try:
                    if not entry.is_dir():
                        continue
                    mtime = entry.stat().st_mtime
                except FileNotFoundError:
                    # removed between listing and stat
                    continue
                records.append(ImageVersionRecord(
                    folder_name=entry.name,
                    last_write=datetime.fromtimestamp(mtime, tz=timezone.utc),
                ))
        except OSError as e:
            logger.debug("Cannot read %s: %s", self.location, e)
            raise ImageNotFoundError(str(self.location)) from e

        if not records:
            raise ImageNotFoundError(str(self.location))

        records.sort(key=lambda record: record.last_write, reverse=True)
        return records[0]

    def check_for_new_image(self, today: Optional[date] = None) -> Optional[ImageVersionRecord]:
        """
        Return the newest image if it was written on the current UTC date.

        Args:
            today: UTC date to compare against (defaults to the clock's date)

        Returns:
            The newest record, or None when there is nothing new to roll out
        """
        today = today or self.clock().astimezone(timezone.utc).date()

        try:
            latest = self.detect_latest()
        except ImageNotFoundError as e:
            logger.info("No change: %s", e)
            return None

        if latest.last_write.date() != today:
            logger.info(
                "No change: newest image %s was written on %s",
                latest.folder_name, latest.last_write.date().isoformat(),
            )
            return None

        logger.info("New image detected: %s", latest.folder_name)
        return latest
