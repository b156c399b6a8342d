"""
Port interfaces for the external AI services.
The production layer depends only on these; concrete adapters live beside
them (ai.py, tts_service.py, upscale_service.py).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


class IStoryboardAnalyzer(ABC):
    """Segment batch → visual prompts, one entry per segment, same order."""

    @abstractmethod
    async def analyze_segments(self, segments: List[str]) -> List[Dict[str, Any]]:
        """Return [{"image_prompt": ..., "video_motion_prompt": ...}, ...]."""
        pass


class IImageGenerator(ABC):
    @abstractmethod
    async def generate_image(self, prompt: str) -> str:
        """Render one image; return it as a data: URL."""
        pass


class IVideoGenerator(ABC):
    @abstractmethod
    async def generate_video(self, image_data_url: str, motion_prompt: str) -> str:
        """Animate an image; return the generated video URI."""
        pass


class IVoiceSynthesizer(ABC):
    @abstractmethod
    async def synthesize(self, text: str, api_key: str, voice_id: str) -> bytes:
        """Return raw audio bytes (mp3)."""
        pass


@dataclass(frozen=True)
class UpscaleStatus:
    status: str  # IN_QUEUE | IN_PROGRESS | COMPLETED | FAILED
    image_url: Optional[str] = None
    error: Optional[str] = None


class IUpscaler(ABC):
    @abstractmethod
    async def submit(self, image_data_url: str, api_key: str) -> str:
        """Queue an upscale job; return its request id."""
        pass

    @abstractmethod
    async def poll_status(self, request_id: str, api_key: str) -> Optional[UpscaleStatus]:
        """Current job status, or None when the status endpoint did not answer OK."""
        pass
