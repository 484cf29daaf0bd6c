"""Year/month/day partition directories under the storage root."""
import logging
from datetime import datetime
from pathlib import Path
from typing import Union

from .schemas import DatePartition

logger = logging.getLogger(__name__)


def current_partition(root_dir: Union[str, Path], now: datetime) -> DatePartition:
    """Return the partition for ``now``, creating any missing level.

    Year, month and day are taken from ``now`` as given; callers pass the
    host's local wall-clock time. Each level is created with
    ``exist_ok=True`` so concurrent uploads on the same day never fail on
    "already exists".

    Args:
        root_dir: Storage root directory.
        now: The instant the partition is computed for.

    Returns:
        DatePartition with the absolute directory and the forward-slash
        relative path (e.g. "2023/11/14").
    """
    segments = (f"{now.year:04d}", f"{now.month:02d}", f"{now.day:02d}")

    directory = Path(root_dir)
    for segment in segments:
        directory = directory / segment
        if not directory.is_dir():
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug("[Files] Created partition level %s", directory)

    return DatePartition(
        absolutePath=str(directory),
        relativePath="/".join(segments),
    )
