"""Containment checks for client-supplied storage paths."""
import logging
import os
from pathlib import Path
from typing import Union
from urllib.parse import quote

logger = logging.getLogger(__name__)


class PathEscapeError(PermissionError):
    """Raised when a requested path resolves outside the storage root."""

    def __init__(self, requested: str) -> None:
        super().__init__(f"Path escapes storage root: {requested!r}")
        self.requested = requested


def resolve_path(root_dir: Union[str, Path], requested: str = "") -> Path:
    """Map a client-provided relative path to an absolute path inside root_dir.

    The join is purely lexical: ``..`` segments and redundant separators are
    collapsed before the check, symlinks are not followed. Containment is
    tested per path component, so a sibling such as ``<root>-secret`` never
    passes as being inside ``<root>``.

    Args:
        root_dir: Storage root directory.
        requested: Relative path sent by the client (e.g. "2024/01/05").
            Empty string or "." names the root itself.

    Returns:
        Absolute path under root_dir.

    Raises:
        PathEscapeError: If the resolved path is outside root_dir.
    """
    base = os.path.abspath(root_dir)
    target = os.path.abspath(os.path.join(base, requested or ""))

    try:
        common = os.path.commonpath([base, target])
    except ValueError:
        # Different drives on Windows
        common = None

    if common != base:
        logger.warning("[Files] Rejected path escape attempt: %r", requested)
        raise PathEscapeError(requested)

    return Path(target)


def to_public_path(*parts: str) -> str:
    """Join path segments into a URL path with forward slashes.

    Each segment is percent-encoded, so names containing "#", "?" or "%"
    survive the trip through a URL. Plain names are returned unchanged.
    """
    segments = []
    for part in parts:
        segments.extend(p for p in part.replace("\\", "/").split("/") if p)
    return "/".join(quote(s, safe="") for s in segments)
