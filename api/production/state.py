"""
SceneBoard: the single owner of the live scene list during a session.

The list is an immutable tuple. update() builds a new tuple by mapping over
the previous one and swaps the reference, so any reader holding an older
tuple keeps a coherent view. Per-scene locks serialize operations that write
the same field of the same scene (image + upscale share media_url).
"""

import asyncio
import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from api.production.errors import PreconditionError
from api.production.models import SceneMedia, ScenePlan

logger = logging.getLogger("scene_board")


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    UPSCALE = "upscale"


# Kinds writing the same URL field share a lock.
_LOCK_FIELD = {
    MediaKind.IMAGE: "media",
    MediaKind.UPSCALE: "media",
    MediaKind.VIDEO: "video",
    MediaKind.AUDIO: "audio",
}


class CancelToken:
    """Cooperative stop signal, checked only between loop items."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class SceneBoard:
    def __init__(self, scenes: Iterable[SceneMedia] = ()):
        self._scenes: Tuple[SceneMedia, ...] = tuple(scenes)
        self._locks: Dict[Tuple[int, str], asyncio.Lock] = {}

    @classmethod
    def from_plan(cls, plans: Iterable[ScenePlan]) -> "SceneBoard":
        return cls(SceneMedia.from_plan(p) for p in plans)

    @property
    def scenes(self) -> Tuple[SceneMedia, ...]:
        return self._scenes

    def __len__(self) -> int:
        return len(self._scenes)

    def get(self, index: int) -> SceneMedia:
        for scene in self._scenes:
            if scene.index == index:
                return scene
        raise PreconditionError(f"Scene {index} does not exist")

    def find(self, index: int) -> Optional[SceneMedia]:
        for scene in self._scenes:
            if scene.index == index:
                return scene
        return None

    def replace_all(self, scenes: Iterable[SceneMedia]):
        """Install a new scene list (new plan or loaded snapshot)."""
        self._scenes = tuple(scenes)
        # Locks stay with their index (and held locks always stay) so an
        # in-flight call still serializes with calls made against the new list.
        indexes = {s.index for s in self._scenes}
        self._locks = {
            k: v for k, v in self._locks.items()
            if k[0] in indexes or v.locked()
        }
        logger.info(f"🔄 Scene board replaced: {len(self._scenes)} scenes")

    def update(self, index: int, **changes) -> SceneMedia:
        """Apply changes to one scene; returns the new record."""
        self.get(index)
        self._scenes = tuple(
            s.with_changes(**changes) if s.index == index else s
            for s in self._scenes
        )
        return self.get(index)

    def lock(self, index: int, kind: MediaKind) -> asyncio.Lock:
        key = (index, _LOCK_FIELD[kind])
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def pending_images(self) -> List[SceneMedia]:
        return [s for s in self._scenes if not s.media_url]

