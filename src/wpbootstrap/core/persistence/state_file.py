"""
Provisioned marker — remembers that this host was already bootstrapped.

The bootstrap is single-use: running it again re-issues every command
against a configured host.  The marker lets a second run say so in
the log before it proceeds.  Writes are atomic (temp file, then
rename).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

MARKER_FILE = "provisioned.json"


class ProvisionedMarker(BaseModel):
    """What a successful run leaves behind."""

    operation_id: str
    completed_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    site_url: str = ""


def marker_path(state_dir: Path) -> Path:
    return state_dir / MARKER_FILE


def load_marker(state_dir: Path) -> ProvisionedMarker | None:
    """Return the marker of a previous successful run, if any."""
    path = marker_path(state_dir)
    if not path.is_file():
        return None
    try:
        return ProvisionedMarker.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError) as e:
        logger.warning("Unreadable provisioned marker %s: %s", path, e)
        return None


def save_marker(marker: ProvisionedMarker, state_dir: Path) -> None:
    """Write the marker atomically. Failures are logged, never fatal."""
    path = marker_path(state_dir)
    content = json.dumps(marker.model_dump(mode="json"), indent=2) + "\n"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".marker_", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
        logger.debug("Provisioned marker written to %s", path)
    except OSError as e:
        logger.error("Failed to write provisioned marker %s: %s", path, e)
