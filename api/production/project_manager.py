"""
Project snapshot store.

Each save writes one JSON record (data/projects/{id}.json) holding the full
scene list. Records are never patched: a new save gets a new id.
"""

import json
import logging
import os
import time
import uuid
from typing import Iterable, List, Optional

from api.production.models import ProjectSnapshot, SceneMedia
from api.utils.paths import PathManager
from config.settings import DEFAULT_ASPECT_RATIO, DEFAULT_ART_STYLE

logger = logging.getLogger("ProjectManager")


def make_snapshot(
    intro: str,
    body: str,
    scenes: Iterable[SceneMedia],
    aspect_ratio: str = DEFAULT_ASPECT_RATIO,
    art_style: str = DEFAULT_ART_STYLE,
) -> ProjectSnapshot:
    """Fresh id + current time + a copy of the scene list with flags cleared."""
    media = tuple(
        s.with_changes(
            is_processing=False,
            is_video_processing=False,
            is_audio_processing=False,
            is_upscaling=False,
        )
        for s in scenes
    )
    return ProjectSnapshot(
        id=uuid.uuid4().hex,
        timestamp=int(time.time() * 1000),
        script="\n\n".join(p for p in (intro, body) if p),
        media=media,
        aspect_ratio=aspect_ratio,
        art_style=art_style,
    )


class SnapshotStore:
    """JSON-file store for ProjectSnapshot records."""

    def __init__(self, base_dir: Optional[str] = None):
        self.pm = PathManager(base_dir)
        self.pm.ensure_dirs()

    def save(self, snapshot: ProjectSnapshot):
        path = self.pm.get_snapshot_path(snapshot.id)
        tmp_path = f"{path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.info(f"💾 Snapshot saved: {snapshot.id} ({len(snapshot.media)} scenes)")

    def get(self, snapshot_id: str) -> Optional[ProjectSnapshot]:
        path = self.pm.get_snapshot_path(snapshot_id)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return ProjectSnapshot.from_dict(json.load(f))

    def list(self) -> List[ProjectSnapshot]:
        """All snapshots, newest first."""
        snapshots = []
        for name in os.listdir(self.pm.projects):
            if not name.endswith(".json"):
                continue
            path = os.path.join(self.pm.projects, name)
            try:
                with open(path, "r", encoding="utf-8") as f:
                    snapshots.append(ProjectSnapshot.from_dict(json.load(f)))
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"⚠️ Skipping unreadable snapshot {name}: {e}")
        snapshots.sort(key=lambda s: s.timestamp, reverse=True)
        return snapshots

    def delete(self, snapshot_id: str):
        path = self.pm.get_snapshot_path(snapshot_id)
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"🗑️ Snapshot deleted: {snapshot_id}")
