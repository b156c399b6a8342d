"""
Scene records.

ScenePlan and SceneMedia are frozen: every state change goes through
dataclasses.replace(), so a reader holding an old instance never sees it
change. Serialized keys follow the stored project record (camelCase).
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ScenePlan:
    original_script_segment: str
    prompt: str
    video_motion_prompt: str
    index: int = 0
    is_intro: bool = False


@dataclass(frozen=True)
class SceneMedia:
    original_script_segment: str
    prompt: str
    video_motion_prompt: str
    index: int
    is_intro: bool = False
    media_url: str = ""
    video_url: Optional[str] = None
    audio_url: Optional[str] = None
    is_processing: bool = False
    is_video_processing: bool = False
    is_audio_processing: bool = False
    is_upscaling: bool = False

    @classmethod
    def from_plan(cls, plan: ScenePlan) -> "SceneMedia":
        return cls(
            original_script_segment=plan.original_script_segment,
            prompt=plan.prompt,
            video_motion_prompt=plan.video_motion_prompt,
            index=plan.index,
            is_intro=plan.is_intro,
        )

    def with_changes(self, **changes) -> "SceneMedia":
        return replace(self, **changes)

    @property
    def is_busy(self) -> bool:
        return (self.is_processing or self.is_video_processing
                or self.is_audio_processing or self.is_upscaling)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "originalScriptSegment": self.original_script_segment,
            "prompt": self.prompt,
            "videoMotionPrompt": self.video_motion_prompt,
            "mediaUrl": self.media_url,
            "index": self.index,
            "isIntro": self.is_intro,
            "isProcessing": self.is_processing,
            "isVideoProcessing": self.is_video_processing,
            "isAudioProcessing": self.is_audio_processing,
            "isUpscaling": self.is_upscaling,
        }
        if self.video_url is not None:
            data["videoUrl"] = self.video_url
        if self.audio_url is not None:
            data["audioUrl"] = self.audio_url
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SceneMedia":
        return cls(
            original_script_segment=data.get("originalScriptSegment", ""),
            prompt=data.get("prompt", ""),
            video_motion_prompt=data.get("videoMotionPrompt", ""),
            index=int(data["index"]),
            is_intro=bool(data.get("isIntro", False)),
            media_url=data.get("mediaUrl", "") or "",
            video_url=data.get("videoUrl"),
            audio_url=data.get("audioUrl"),
            is_processing=bool(data.get("isProcessing", False)),
            is_video_processing=bool(data.get("isVideoProcessing", False)),
            is_audio_processing=bool(data.get("isAudioProcessing", False)),
            is_upscaling=bool(data.get("isUpscaling", False)),
        )


@dataclass(frozen=True)
class ProjectSnapshot:
    id: str
    timestamp: int  # epoch milliseconds
    script: str
    media: Tuple[SceneMedia, ...] = field(default_factory=tuple)
    aspect_ratio: str = "16:9"
    art_style: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "script": self.script,
            "media": [m.to_dict() for m in self.media],
            "aspectRatio": self.aspect_ratio,
            "artStyle": self.art_style,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectSnapshot":
        return cls(
            id=str(data["id"]),
            timestamp=int(data.get("timestamp", 0)),
            script=data.get("script", ""),
            media=tuple(SceneMedia.from_dict(m) for m in data.get("media", [])),
            aspect_ratio=data.get("aspectRatio", "16:9"),
            art_style=data.get("artStyle", ""),
        )
