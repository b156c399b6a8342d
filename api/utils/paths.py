"""
Centralized path management for the scene studio.
Structure:
  data/
    ├── projects/   (one {snapshot_id}.json per saved snapshot)
    ├── exports/    (zip packs: images/ + audio/)
    └── videos/     (downloaded Veo clips)
"""

import os
import re
from typing import Optional

from config.settings import DATA_DIR

_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class PathManager:
    def __init__(self, base_dir: Optional[str] = None):
        self.root = os.path.abspath(str(base_dir or DATA_DIR))

        self.projects = os.path.join(self.root, "projects")
        self.exports = os.path.join(self.root, "exports")
        self.videos = os.path.join(self.root, "videos")

    # --- Asset paths ---

    def get_snapshot_path(self, snapshot_id: str) -> str:
        if not _SAFE_ID_RE.match(snapshot_id):
            raise ValueError(f"Invalid snapshot id: {snapshot_id!r}")
        return os.path.join(self.projects, f"{snapshot_id}.json")

    def get_export_path(self, name: str) -> str:
        return os.path.join(self.exports, f"{name}.zip")

    def get_video_path(self, scene_index: int) -> str:
        return os.path.join(self.videos, f"scene-{scene_index}.mp4")

    # --- Directory management ---

    def ensure_dirs(self):
        """Create the entire directory tree."""
        for d in [self.projects, self.exports, self.videos]:
            os.makedirs(d, exist_ok=True)
        return self.root
