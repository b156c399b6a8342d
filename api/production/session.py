"""
Workflow session: the five-step flow around the production pipeline.

IDEATION → SCRIPT → EDIT → PLAN → PRODUCTION

Operations never raise to the caller. A failure is logged, stored in
last_error, and the method returns None/False; a cancelled operation leaves
last_error empty.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Dict, List, Optional

from api.production.errors import (
    ConfigurationError,
    PipelineCancelled,
    PreconditionError,
    as_studio_error,
)
from api.production.exporter import download_video, export_pack
from api.production.models import ProjectSnapshot, SceneMedia
from api.production.orchestrator import BatchResult, SceneOrchestrator
from api.production.project_manager import SnapshotStore
from api.production.scene_planner import build_plan
from api.production.state import CancelToken, SceneBoard
from api.services.ai import AIClient
from api.services.tts_service import ElevenLabsVoice
from api.services.upscale_service import FalUpscaler
from config.settings import (
    Credentials,
    DEFAULT_STYLE,
    PIPELINE_CONFIG,
    get_style_preset,
)

logger = logging.getLogger("WorkflowSession")


class WorkflowStep(int, Enum):
    IDEATION = 1
    SCRIPT = 2
    EDIT = 3
    PLAN = 4
    PRODUCTION = 5


class WorkflowSession:
    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        style_preset: str = DEFAULT_STYLE,
        ai: Optional[AIClient] = None,
        voice=None,
        upscaler=None,
        store: Optional[SnapshotStore] = None,
        sleep=asyncio.sleep,
    ):
        self.credentials = credentials or Credentials()
        self.style_preset = style_preset
        self.ai = ai or AIClient(api_key=self.credentials.google_api_key, style_preset=style_preset)
        self.store = store or SnapshotStore()
        self.board = SceneBoard()

        self.step = WorkflowStep.IDEATION
        self.topic = ""
        self.ideas: List[Dict[str, str]] = []
        self.selected_idea: Optional[Dict[str, str]] = None
        self.intro = ""
        self.body = ""
        self.progress = 0
        self.status = ""
        self.last_error: Optional[str] = None
        self._token: Optional[CancelToken] = None

        self.orchestrator = SceneOrchestrator(
            self.board,
            images=self.ai,
            videos=self.ai,
            voice=voice or ElevenLabsVoice(),
            upscaler=upscaler or FalUpscaler(),
            store=self.store,
            credentials=self.credentials,
            script_source=lambda: (self.intro, self.body),
            art_style=get_style_preset(style_preset)["name"],
            sleep=sleep,
            on_progress=self._on_progress,
        )

    # ---- Internals ----

    def _on_progress(self, progress: int, status: str):
        self.progress = progress
        self.status = status

    def _fail(self, error: Exception):
        error = as_studio_error(error)
        self.last_error = str(error)
        logger.error(f"❌ {self.last_error}")

    def _new_token(self) -> CancelToken:
        self._token = CancelToken()
        return self._token

    def _require_ai(self):
        if not getattr(self.ai, "client", None):
            raise ConfigurationError("Google Gemini API Key가 필요합니다.")

    @property
    def script(self) -> str:
        return "\n\n".join(p for p in (self.intro, self.body) if p)

    def cancel(self):
        """Stop the running batch after its current item."""
        if self._token is not None:
            self._token.cancel()

    def set_script(self, intro: str, body: str):
        self.intro = intro
        self.body = body
        self.step = WorkflowStep.EDIT

    def go_back(self, step: WorkflowStep):
        """Move to an earlier step. Scenes and media are kept."""
        if step > self.step:
            raise PreconditionError(f"Cannot jump forward from {self.step.name} to {step.name}")
        self.step = step

    # ---- Ideation & Script ----

    async def generate_ideas(self, topic: str) -> List[Dict[str, str]]:
        self.last_error = None
        if not topic.strip():
            self.last_error = "주제를 입력하세요."
            return []
        try:
            self._require_ai()
            self.topic = topic.strip()
            self.ideas = await self.ai.generate_content_ideas(self.topic)
        except Exception as e:
            self._fail(e)
            return []
        self.step = WorkflowStep.SCRIPT
        return self.ideas

    async def generate_script(self, idea: Dict[str, str]) -> bool:
        self.last_error = None
        try:
            self._require_ai()
            script = await self.ai.generate_full_script(idea.get("title", ""))
        except Exception as e:
            self._fail(e)
            return False
        self.selected_idea = idea
        self.set_script(script["intro"], script["body"])
        return True

    async def refine_script(self, instruction: str, part: str = "body") -> bool:
        """Rewrite the intro or body following a free-text instruction."""
        self.last_error = None
        if part not in ("intro", "body"):
            raise ValueError(f"Unknown script part: {part}")
        try:
            self._require_ai()
            refined = await self.ai.refine_script(getattr(self, part), instruction)
        except Exception as e:
            self._fail(e)
            return False
        setattr(self, part, refined.strip())
        return True

    async def generate_thumbnail_text(self) -> Optional[Dict[str, str]]:
        self.last_error = None
        try:
            self._require_ai()
            return await self.ai.generate_thumbnail_text(self.script)
        except Exception as e:
            self._fail(e)
            return None

    # ---- Planning ----

    async def plan_scenes(self, token: Optional[CancelToken] = None) -> bool:
        """Segment + analyze the script and install the plan on the board."""
        self.last_error = None
        if not self.intro.strip() and not self.body.strip():
            self.last_error = "대본이 비어 있습니다."
            return False
        if len(self.script) > PIPELINE_CONFIG["max_script_length"]:
            self.last_error = "대본이 너무 깁니다."
            return False

        if token is None:
            token = self._new_token()
        else:
            self._token = token
        self.progress = 0

        def _progress(processed: int, total: int):
            self._on_progress(
                int(processed * 100 / total) if total else 100,
                f"시각 분석 중... {processed}/{total}",
            )

        try:
            self._require_ai()
            plans = await build_plan(
                self.intro,
                self.body,
                self.ai.analyze_segments,
                batch_size=PIPELINE_CONFIG["planner_batch_size"],
                on_progress=_progress,
                token=token,
            )
        except PipelineCancelled:
            logger.info("🛑 Planning cancelled")
            return False
        except Exception as e:
            self._fail(e)
            return False

        if len(plans) > PIPELINE_CONFIG["max_images"]:
            self.last_error = f"장면이 너무 많습니다 ({len(plans)})."
            return False

        self.board.replace_all(SceneMedia.from_plan(p) for p in plans)
        self.step = WorkflowStep.PLAN
        logger.info(f"✅ Plan ready: {len(plans)} scenes")
        return True

    def confirm_plan(self):
        if self.step != WorkflowStep.PLAN or not len(self.board):
            raise PreconditionError("No plan to confirm")
        self.step = WorkflowStep.PRODUCTION

    # ---- Production ----

    async def run_batch(self) -> Optional[BatchResult]:
        self.last_error = None
        try:
            return await self.orchestrator.run_batch(self._new_token())
        except Exception as e:
            self._fail(e)
            return None

    async def generate_all_audio(self) -> List[int]:
        self.last_error = None
        try:
            return await self.orchestrator.generate_all_audio(self._new_token())
        except Exception as e:
            self._fail(e)
            return []

    async def _scene_op(self, op, index: int):
        self.last_error = None
        try:
            return await op(index)
        except Exception as e:
            self._fail(e)
            return None

    async def generate_one(self, index: int) -> Optional[str]:
        return await self._scene_op(self.orchestrator.generate_one, index)

    async def generate_video(self, index: int) -> Optional[str]:
        return await self._scene_op(self.orchestrator.generate_video, index)

    async def generate_audio(self, index: int) -> Optional[str]:
        return await self._scene_op(self.orchestrator.generate_audio, index)

    async def upscale(self, index: int) -> Optional[str]:
        return await self._scene_op(self.orchestrator.upscale, index)

    # ---- History ----

    def load_snapshot(self, snapshot: ProjectSnapshot):
        """Restore a saved project: full script into intro, media onto the board."""
        self.intro = snapshot.script
        self.body = ""
        self.board.replace_all(snapshot.media)
        self.orchestrator.art_style = snapshot.art_style or self.orchestrator.art_style
        self.orchestrator.aspect_ratio = snapshot.aspect_ratio
        self.last_error = None
        self.step = WorkflowStep.PRODUCTION
        logger.info(f"📂 Snapshot loaded: {snapshot.id} ({len(snapshot.media)} scenes)")

    # ---- Export ----

    async def download_video(self, index: int) -> Optional[str]:
        """Save a scene's generated clip under data/videos."""
        self.last_error = None
        try:
            scene = self.board.get(index)
            if not scene.video_url:
                raise PreconditionError(f"Scene {index} has no video")
            return await asyncio.to_thread(
                download_video,
                scene.video_url,
                self.credentials.google_api_key,
                self.store.pm.get_video_path(index),
            )
        except Exception as e:
            self._fail(e)
            return None

    async def export(self, output_path: Optional[str] = None) -> Optional[str]:
        """Write the zip pack; defaults to data/exports/project-{timestamp}.zip."""
        self.last_error = None
        if not output_path:
            output_path = self.store.pm.get_export_path(f"project-{int(time.time())}")
        try:
            await export_pack(self.board.scenes, output_path)
        except Exception as e:
            self._fail(e)
            return None
        return output_path
