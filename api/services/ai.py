"""
AI Client for the scene studio.
Uses Google Gemini (google-genai) for ideation, scripts, storyboard
analysis and images, and Veo for image-to-video.
"""

import asyncio
import base64
import logging
import os
from typing import Any, Dict, List, Optional

from api.production.errors import ConfigurationError, ExternalServiceError
from api.services.interfaces import IImageGenerator, IStoryboardAnalyzer, IVideoGenerator
from api.services.prompts import (
    STORYBOARD_SCHEMA,
    get_full_script_prompt,
    get_ideas_prompt,
    get_image_prompt,
    get_refine_prompt,
    get_storyboard_prompt,
    get_thumbnail_prompt,
)
from api.utils.json_parser import robust_json_parse
from api.utils.retry import RetryPolicy
from config.settings import (
    CREDENTIALS_PATH,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_STYLE,
    MODEL_CONFIG,
    PIPELINE_CONFIG,
    PROJECT_ID,
    get_style_preset,
)

logger = logging.getLogger("ai_service")

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


class AIClient(IStoryboardAnalyzer, IImageGenerator, IVideoGenerator):
    def __init__(
        self,
        api_key: str = "",
        style_preset: str = DEFAULT_STYLE,
        retry: Optional[RetryPolicy] = None,
        video_poll: Optional[RetryPolicy] = None,
        client=None,
    ):
        self.api_key = api_key
        self.style = get_style_preset(style_preset)
        self.retry = retry or RetryPolicy(
            max_retries=PIPELINE_CONFIG["retry_count"],
            delay=PIPELINE_CONFIG["retry_delay"],
        )
        self.video_poll = video_poll or RetryPolicy(
            delay=PIPELINE_CONFIG["video_poll_interval"],
        )
        self.client = client
        if self.client is None:
            self._init_client()

    def _init_client(self):
        try:
            from google import genai
        except ImportError:
            logger.warning("google-genai library not found.")
            return

        if self.api_key:
            self.client = genai.Client(api_key=self.api_key)
            logger.info("AIClient initialized with Gemini API key")
        elif os.path.exists(CREDENTIALS_PATH):
            try:
                from google.oauth2 import service_account

                creds = service_account.Credentials.from_service_account_file(
                    CREDENTIALS_PATH, scopes=SCOPES
                )
                self.client = genai.Client(
                    credentials=creds,
                    vertexai=True,
                    project=PROJECT_ID,
                    location="global",
                )
                logger.info(f"AIClient initialized with Vertex AI: {CREDENTIALS_PATH}")
            except Exception as e:
                logger.error(f"Failed to initialize GenAI client: {e}")
        else:
            logger.warning("No Gemini API key or service account configured.")

    def _require_client(self):
        if not self.client:
            raise ConfigurationError("Google Gemini API Key가 필요합니다.")

    async def _generate_content(self, model: str, contents, config=None):
        return await asyncio.to_thread(
            self.client.models.generate_content,
            model=model,
            contents=contents,
            config=config,
        )

    def _json_config(self, **extra):
        from google.genai import types

        return types.GenerateContentConfig(response_mime_type="application/json", **extra)

    # ---- Ideation & Script ----

    async def generate_content_ideas(self, topic: str) -> List[Dict[str, str]]:
        """Ten viral video ideas ({title, hook}) for a topic."""
        self._require_client()
        logger.info(f"💡 Generating ideas: {topic}")
        response = await self._generate_content(
            MODEL_CONFIG["text_analysis"],
            get_ideas_prompt(topic),
            self._json_config(),
        )
        ideas = robust_json_parse(response.text)
        if not isinstance(ideas, list):
            raise ExternalServiceError("Idea response is not a list")
        return [
            {"title": str(i.get("title", "")), "hook": str(i.get("hook", ""))}
            for i in ideas if isinstance(i, dict)
        ]

    async def generate_full_script(self, idea_title: str) -> Dict[str, str]:
        """Long-form script split into intro and body."""
        self._require_client()
        logger.info(f"✍️ Writing script: {idea_title}")
        response = await self._generate_content(
            MODEL_CONFIG["script_writer"],
            get_full_script_prompt(idea_title),
            self._json_config(),
        )
        data = robust_json_parse(response.text)
        if not isinstance(data, dict):
            raise ExternalServiceError("Script response is not an object")
        return {"intro": str(data.get("intro", "")), "body": str(data.get("body", ""))}

    async def refine_script(self, script: str, instruction: str) -> str:
        self._require_client()
        response = await self._generate_content(
            MODEL_CONFIG["text_analysis"],
            get_refine_prompt(script, instruction),
        )
        return response.text or script

    async def generate_thumbnail_text(self, script: str) -> Dict[str, str]:
        self._require_client()
        response = await self._generate_content(
            MODEL_CONFIG["text_analysis"],
            get_thumbnail_prompt(script),
            self._json_config(),
        )
        data = robust_json_parse(response.text)
        if not isinstance(data, dict):
            raise ExternalServiceError("Thumbnail response is not an object")
        return {"topText": str(data.get("topText", "")), "bottomText": str(data.get("bottomText", ""))}

    # ---- Storyboard Analysis ----

    async def analyze_segments(self, segments: List[str]) -> List[Dict[str, Any]]:
        """
        One schema-constrained call for a batch of segments.
        Not retried here; the scene planner owns retry and fallback.
        """
        self._require_client()
        prompt = get_storyboard_prompt(
            segments, self.style["style_anchor"], self.style["character"]
        )
        response = await self._generate_content(
            MODEL_CONFIG["text_analysis"],
            prompt,
            self._json_config(response_schema=STORYBOARD_SCHEMA),
        )
        return robust_json_parse(response.text)

    # ---- Image Generation ----

    async def generate_image(self, prompt: str) -> str:
        """Render a scene image and return it as a data URL."""
        self._require_client()
        from google.genai import types

        config = types.GenerateContentConfig(
            image_config=types.ImageConfig(
                aspect_ratio=DEFAULT_ASPECT_RATIO,
                image_size="1K",
            ),
        )
        contents = get_image_prompt(prompt, self.style["style_anchor"])

        response = await self.retry.call(
            self._generate_content, MODEL_CONFIG["image"], contents, config
        )

        for candidate in (response.candidates or [])[:1]:
            parts = candidate.content.parts if candidate.content else []
            for part in parts or []:
                inline = getattr(part, "inline_data", None)
                if inline and inline.data:
                    data = inline.data
                    if isinstance(data, bytes):
                        data = base64.b64encode(data).decode("ascii")
                    return f"data:{inline.mime_type};base64,{data}"

        raise ExternalServiceError("이미지 생성 도중 오류가 발생했습니다.")

    # ---- Video Generation (Veo) ----

    async def generate_video(self, image_data_url: str, motion_prompt: str) -> str:
        """
        Animate a scene image with Veo. The call returns a long-running
        operation that is polled until done.
        """
        self._require_client()
        from google.genai import types

        header, _, payload = image_data_url.partition(",")
        mime_type = "image/png"
        if header.startswith("data:") and ";" in header:
            mime_type = header[5:header.index(";")]

        logger.info(f"🎬 Veo request: {motion_prompt[:60]}")
        operation = await self.retry.call(
            asyncio.to_thread,
            self.client.models.generate_videos,
            model=MODEL_CONFIG["video"],
            prompt=motion_prompt,
            image=types.Image(image_bytes=base64.b64decode(payload), mime_type=mime_type),
            config=types.GenerateVideosConfig(
                number_of_videos=1,
                resolution="720p",
                aspect_ratio=DEFAULT_ASPECT_RATIO,
            ),
        )

        if not operation.done:
            async def _refresh():
                nonlocal operation
                operation = await asyncio.to_thread(self.client.operations.get, operation)
                return operation if operation.done else None

            operation = await self.video_poll.poll(_refresh)

        if getattr(operation, "error", None):
            raise ExternalServiceError(f"Veo operation failed: {operation.error}")

        result = operation.response
        videos = getattr(result, "generated_videos", None) if result else None
        uri = videos[0].video.uri if videos and videos[0].video else None
        if not uri:
            raise ExternalServiceError("Veo returned no video")
        logger.info("✅ Veo video ready")
        return uri
