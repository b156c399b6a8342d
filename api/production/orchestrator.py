"""
Scene Production Orchestrator.
Per-scene media generation: image → (video | audio | upscale), either one
scene at a time or as a paced, cancellable batch.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from api.production.errors import (
    ConfigurationError,
    PreconditionError,
    UpscaleFailedError,
    UpscaleTimeoutError,
    ExternalServiceError,
    as_studio_error,
)
from api.production.project_manager import SnapshotStore, make_snapshot
from api.production.state import CancelToken, MediaKind, SceneBoard
from api.services.interfaces import (
    IImageGenerator,
    IUpscaler,
    IVideoGenerator,
    IVoiceSynthesizer,
)
from api.services.tts_service import audio_data_url
from api.utils.retry import RetryPolicy
from config.settings import (
    Credentials,
    DEFAULT_ART_STYLE,
    DEFAULT_ASPECT_RATIO,
    FALLBACK_VIDEO_MOTION,
    PIPELINE_CONFIG,
)

logger = logging.getLogger("SceneOrchestrator")

ProgressCallback = Callable[[int, str], None]


def percent(done: int, total: int) -> int:
    """Rounded percentage, halves rounded up."""
    if total <= 0:
        return 0
    return int(math.floor(done * 100 / total + 0.5))


@dataclass
class BatchResult:
    generated: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    cancelled: bool = False
    snapshot_id: Optional[str] = None


class SceneOrchestrator:
    """
    Drives media generation for the scenes on a SceneBoard.

    Batch loops are strictly sequential: one external call at a time, with
    a fixed pause between calls to stay under vendor rate limits.
    Cancellation is checked only between items.
    """

    def __init__(
        self,
        board: SceneBoard,
        *,
        images: IImageGenerator,
        videos: Optional[IVideoGenerator] = None,
        voice: Optional[IVoiceSynthesizer] = None,
        upscaler: Optional[IUpscaler] = None,
        store: Optional[SnapshotStore] = None,
        credentials: Optional[Credentials] = None,
        script_source: Callable[[], Tuple[str, str]] = lambda: ("", ""),
        aspect_ratio: str = DEFAULT_ASPECT_RATIO,
        art_style: str = DEFAULT_ART_STYLE,
        image_pacing: float = PIPELINE_CONFIG["image_pacing"],
        audio_pacing: float = PIPELINE_CONFIG["audio_pacing"],
        upscale_attempts: int = PIPELINE_CONFIG["upscale_poll_attempts"],
        upscale_poll: Optional[RetryPolicy] = None,
        sleep=asyncio.sleep,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.board = board
        self.images = images
        self.videos = videos
        self.voice = voice
        self.upscaler = upscaler
        self.store = store
        self.credentials = credentials or Credentials()
        self.script_source = script_source
        self.aspect_ratio = aspect_ratio
        self.art_style = art_style
        self.image_pacing = image_pacing
        self.audio_pacing = audio_pacing
        self.upscale_attempts = upscale_attempts
        self.upscale_poll = upscale_poll or RetryPolicy(
            delay=PIPELINE_CONFIG["upscale_poll_interval"], sleep=sleep
        )
        self._sleep = sleep
        self.on_progress = on_progress

    def _report(self, progress: int, status: str):
        logger.info(f"📊 {status}")
        if self.on_progress:
            self.on_progress(progress, status)

    async def save_snapshot(self) -> Optional[str]:
        """Persist a full copy of the current scene list."""
        if self.store is None:
            return None
        intro, body = self.script_source()
        snapshot = make_snapshot(
            intro, body, self.board.scenes,
            aspect_ratio=self.aspect_ratio,
            art_style=self.art_style,
        )
        await asyncio.to_thread(self.store.save, snapshot)
        return snapshot.id

    # ---- Images ----

    async def generate_one(self, index: int) -> str:
        """Generate (or regenerate) one scene image. Does not block other scenes."""
        async with self.board.lock(index, MediaKind.IMAGE):
            scene = self.board.get(index)
            self.board.update(index, is_processing=True)
            try:
                url = await self.images.generate_image(scene.prompt)
            except Exception as e:
                self.board.update(index, is_processing=False)
                logger.error(f"❌ Scene {index}: image generation failed - {e}")
                raise as_studio_error(e)
            self.board.update(index, media_url=url, is_processing=False)

        logger.info(f"✅ Scene {index}: image ready")
        await self.save_snapshot()
        return url

    async def run_batch(self, token: Optional[CancelToken] = None) -> BatchResult:
        """
        Generate every scene that has no image yet, in index order.
        A failed scene is logged and skipped; the batch keeps going.
        """
        logger.info("🎨 ═══ Batch Image Production ═══")
        result = BatchResult()
        pending = self.board.pending_images()
        total = len(self.board)
        completed = total - len(pending)
        calls = 0

        for item in pending:
            if token is not None and token.cancelled:
                logger.info(f"🛑 Batch cancelled before scene {item.index}")
                break

            progress = percent(completed, total)
            self._report(progress, f"현재 {completed + 1} / 전체 {total} 장 생성 중... ({progress}%)")

            async with self.board.lock(item.index, MediaKind.IMAGE):
                scene = self.board.find(item.index)
                if scene is None:
                    continue
                if scene.media_url:
                    # Filled by a single-scene regenerate while we waited for the lock.
                    completed += 1
                    continue

                self.board.update(item.index, is_processing=True)
                try:
                    if calls > 0:
                        await self._sleep(self.image_pacing)
                    calls += 1
                    url = await self.images.generate_image(scene.prompt)
                    self.board.update(item.index, media_url=url, is_processing=False)
                    completed += 1
                    result.generated.append(item.index)
                except Exception as e:
                    logger.error(f"❌ Error generating scene {item.index}: {e}")
                    self.board.update(item.index, is_processing=False)
                    result.failed.append(item.index)

        result.cancelled = token is not None and token.cancelled
        if result.cancelled:
            return result

        self._report(percent(completed, total), f"{completed} / {total} 장 완료")
        result.snapshot_id = await self.save_snapshot()
        logger.info(
            f"✅ Batch complete: {len(result.generated)} generated, "
            f"{len(result.failed)} failed"
        )
        return result

    # ---- Video ----

    async def generate_video(self, index: int) -> Optional[str]:
        """Animate a scene image. No-op without an image or with an existing video."""
        if self.videos is None:
            raise ConfigurationError("Video generation is not configured")

        async with self.board.lock(index, MediaKind.VIDEO):
            scene = self.board.get(index)
            if not scene.media_url or scene.video_url:
                logger.info(f"⏭️ Scene {index}: video skipped")
                return None

            self.board.update(index, is_video_processing=True)
            try:
                uri = await self.videos.generate_video(
                    scene.media_url,
                    scene.video_motion_prompt or FALLBACK_VIDEO_MOTION,
                )
            except Exception as e:
                self.board.update(index, is_video_processing=False)
                logger.error(f"❌ Scene {index}: video generation failed - {e}")
                raise as_studio_error(e)
            self.board.update(index, video_url=uri, is_video_processing=False)

        logger.info(f"✅ Scene {index}: video ready")
        return uri

    # ---- Audio ----

    def _require_voice(self):
        if not self.credentials.elevenlabs_api_key:
            raise ConfigurationError("ElevenLabs API Key를 먼저 설정하세요.")
        if self.voice is None:
            raise ConfigurationError("Voice synthesis is not configured")

    async def generate_audio(self, index: int) -> str:
        """Narrate one scene's original script segment."""
        self._require_voice()

        async with self.board.lock(index, MediaKind.AUDIO):
            scene = self.board.get(index)
            self.board.update(index, is_audio_processing=True)
            try:
                audio = await self.voice.synthesize(
                    scene.original_script_segment,
                    self.credentials.elevenlabs_api_key,
                    self.credentials.elevenlabs_voice_id,
                )
            except Exception as e:
                self.board.update(index, is_audio_processing=False)
                logger.error(f"❌ Scene {index}: TTS failed - {e}")
                raise as_studio_error(e)
            url = audio_data_url(audio)
            self.board.update(index, audio_url=url, is_audio_processing=False)

        logger.info(f"✅ Scene {index}: TTS complete")
        return url

    async def generate_all_audio(self, token: Optional[CancelToken] = None) -> List[int]:
        """
        Narrate every scene that has no audio yet, one at a time.
        The first failure stops the loop and is raised.
        """
        self._require_voice()
        logger.info("🗣️ ═══ Batch TTS ═══")

        total = len(self.board)
        attempted = 0
        generated = []

        for scene in self.board.scenes:
            if token is not None and token.cancelled:
                logger.info("🛑 TTS batch cancelled")
                break
            current = self.board.find(scene.index)
            if current is None or current.audio_url:
                continue

            attempted += 1
            progress = percent(attempted, total)
            self._report(progress, f"음성 생성 중... {attempted} / {total} ({progress}%)")

            await self.generate_audio(scene.index)
            generated.append(scene.index)
            await self._sleep(self.audio_pacing)

        logger.info(f"✅ TTS batch complete: {len(generated)} scenes")
        return generated

    # ---- Upscale ----

    async def upscale(self, index: int) -> str:
        """
        Upscale a scene image through the async job API. The image URL is
        only replaced when the job completes.
        """
        scene = self.board.get(index)
        if not scene.media_url:
            raise PreconditionError(f"Scene {index} has no image to upscale")
        if not self.credentials.fal_api_key:
            raise ConfigurationError("Fal.ai API Key가 필요합니다.")
        if self.upscaler is None:
            raise ConfigurationError("Upscaling is not configured")

        key = self.credentials.fal_api_key

        async with self.board.lock(index, MediaKind.UPSCALE):
            scene = self.board.get(index)
            self.board.update(index, is_upscaling=True)
            try:
                request_id = await self.upscaler.submit(scene.media_url, key)

                async def _check():
                    status = await self.upscaler.poll_status(request_id, key)
                    if status is None:
                        return None
                    if status.status == "COMPLETED":
                        if not status.image_url:
                            raise ExternalServiceError("Upscale completed without an image URL")
                        return status.image_url
                    if status.status == "FAILED":
                        raise UpscaleFailedError(
                            f"Fal.ai upscaling failed: {status.error or 'Unknown error'}"
                        )
                    return None

                url = await self.upscale_poll.poll(
                    _check,
                    max_attempts=self.upscale_attempts,
                    on_timeout=lambda n: UpscaleTimeoutError(
                        f"Upscaling timed out after {n} attempts. (2분 초과)"
                    ),
                )
            except Exception as e:
                self.board.update(index, is_upscaling=False)
                logger.error(f"❌ Scene {index}: upscale failed - {e}")
                raise as_studio_error(e)
            self.board.update(index, media_url=url, is_upscaling=False)

        logger.info(f"✅ Scene {index}: upscaled")
        return url


# ---- CLI ----

def _read_script_file(path: str) -> Tuple[str, str]:
    """Intro and body separated by a line containing only '---'."""
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    lines = text.splitlines()
    for i, line in enumerate(lines):
        if line.strip() == "---":
            return "\n".join(lines[:i]).strip(), "\n".join(lines[i + 1:]).strip()
    return "", text.strip()


async def main():
    import argparse

    from api.production.session import WorkflowSession
    from config.settings import STYLE_PRESETS, load_credentials

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s"
    )

    parser = argparse.ArgumentParser(description="Scene Studio: script → narrated, illustrated scenes")
    parser.add_argument("--topic", type=str, help="Generate video ideas for a topic")
    parser.add_argument("--idea", type=int, metavar="N",
                        help="With --topic: write the script for idea N (1-based)")
    parser.add_argument("--script-file", type=str, metavar="FILE",
                        help="Use an existing script (intro, a '---' line, body)")
    parser.add_argument("--style", type=str, default="stylized_3d",
                        choices=sorted(STYLE_PRESETS.keys()))
    parser.add_argument("--plan-only", action="store_true", help="Stop after scene planning")
    parser.add_argument("--audio", action="store_true", help="Also narrate every scene")
    parser.add_argument("--videos", action="store_true",
                        help="Animate every scene and save the clips under data/videos")
    parser.add_argument("--export", type=str, nargs="?", const="", metavar="PATH",
                        help="Write a zip pack of images + audio (default: data/exports)")
    parser.add_argument("--history", action="store_true", help="List saved snapshots")
    parser.add_argument("--delete", type=str, metavar="ID", help="Delete a saved snapshot")
    args = parser.parse_args()

    session = WorkflowSession(credentials=load_credentials(), style_preset=args.style)

    if args.history:
        for snap in session.store.list():
            logger.info(f"   {snap.id}  {len(snap.media)} scenes  {snap.script[:40]!r}")
        return
    if args.delete:
        session.store.delete(args.delete)
        return

    if args.script_file:
        intro, body = _read_script_file(args.script_file)
        session.set_script(intro, body)
    elif args.topic:
        ideas = await session.generate_ideas(args.topic)
        for i, idea in enumerate(ideas, 1):
            logger.info(f"   {i}. {idea['title']} | {idea['hook']}")
        if not args.idea:
            return
        if not 1 <= args.idea <= len(ideas):
            logger.error(f"❌ Idea {args.idea} not in 1..{len(ideas)}")
            return
        await session.generate_script(ideas[args.idea - 1])
    else:
        parser.print_help()
        return

    if not await session.plan_scenes():
        logger.error(f"❌ {session.last_error}")
        return
    for scene in session.board.scenes:
        tag = "INTRO" if scene.is_intro else "BODY "
        logger.info(f"   #{scene.index:03d} [{tag}] {scene.prompt[:70]}")
    if args.plan_only:
        return

    session.confirm_plan()
    result = await session.run_batch()
    if result and result.failed:
        logger.warning(f"⚠️ Failed scenes: {result.failed}")

    if args.audio:
        await session.generate_all_audio()
    if session.last_error:
        logger.error(f"❌ {session.last_error}")

    if args.videos:
        for scene in session.board.scenes:
            await session.generate_video(scene.index)
            if session.board.get(scene.index).video_url:
                await session.download_video(scene.index)
            if session.last_error:
                logger.error(f"❌ Scene {scene.index}: {session.last_error}")

    if args.export is not None:
        if not await session.export(args.export or None):
            logger.error(f"❌ {session.last_error}")


if __name__ == "__main__":
    asyncio.run(main())
