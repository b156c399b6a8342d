"""
Shared fixtures: in-memory fakes for the service ports and a zero-delay sleep.
"""

import asyncio
from typing import List, Optional

import pytest

from api.production.models import SceneMedia
from api.production.project_manager import SnapshotStore
from api.production.state import SceneBoard
from api.services.interfaces import (
    IImageGenerator,
    IUpscaler,
    IVideoGenerator,
    IVoiceSynthesizer,
    UpscaleStatus,
)
from config.settings import Credentials


class FakeImages(IImageGenerator):
    def __init__(self, fail_on: Optional[set] = None):
        self.prompts: List[str] = []
        self.fail_on = fail_on or set()
        self.after_call = None

    async def generate_image(self, prompt: str) -> str:
        self.prompts.append(prompt)
        await asyncio.sleep(0)
        if prompt in self.fail_on:
            raise RuntimeError(f"image failed: {prompt}")
        if self.after_call:
            self.after_call(len(self.prompts))
        return f"data:image/png;base64,{prompt}"


class FakeVideos(IVideoGenerator):
    def __init__(self):
        self.calls = []

    async def generate_video(self, image_data_url: str, motion_prompt: str) -> str:
        self.calls.append((image_data_url, motion_prompt))
        return "https://files.example/video.mp4"


class FakeVoice(IVoiceSynthesizer):
    def __init__(self, fail_on_call: Optional[int] = None):
        self.texts: List[str] = []
        self.fail_on_call = fail_on_call

    async def synthesize(self, text: str, api_key: str, voice_id: str) -> bytes:
        self.texts.append(text)
        if self.fail_on_call == len(self.texts):
            raise RuntimeError("quota exceeded")
        return b"ID3audio"


class FakeUpscaler(IUpscaler):
    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.polls = 0

    async def submit(self, image_data_url: str, api_key: str) -> str:
        return "req-1"

    async def poll_status(self, request_id: str, api_key: str) -> Optional[UpscaleStatus]:
        self.polls += 1
        if self.statuses:
            return self.statuses.pop(0)
        return UpscaleStatus(status="IN_PROGRESS")


def make_scene(index: int, **changes) -> SceneMedia:
    return SceneMedia(
        original_script_segment=f"segment {index}.",
        prompt=f"prompt-{index}",
        video_motion_prompt=f"motion-{index}",
        index=index,
    ).with_changes(**changes)


@pytest.fixture
def no_sleep():
    calls = []

    async def _sleep(seconds):
        calls.append(seconds)

    _sleep.calls = calls
    return _sleep


@pytest.fixture
def credentials():
    return Credentials(
        google_api_key="g-key",
        elevenlabs_api_key="el-key",
        elevenlabs_voice_id="voice-1",
        fal_api_key="fal-key",
    )


@pytest.fixture
def store(tmp_path):
    return SnapshotStore(base_dir=str(tmp_path / "data"))


@pytest.fixture
def board():
    return SceneBoard(make_scene(i) for i in range(1, 6))
