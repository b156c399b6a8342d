"""TTS (Text-to-Speech) service for scene narration, backed by ElevenLabs."""

import asyncio
import base64
import logging
from typing import Callable, Optional

from api.production.errors import ConfigurationError, ExternalServiceError
from api.services.interfaces import IVoiceSynthesizer
from api.utils.retry import RetryPolicy
from config.settings import MODEL_CONFIG, PIPELINE_CONFIG, TTS_CONFIG

logger = logging.getLogger("tts_service")


def _default_client_factory(api_key: str):
    from elevenlabs.client import ElevenLabs
    return ElevenLabs(api_key=api_key)


def audio_data_url(audio: bytes, mime_type: str = "audio/mpeg") -> str:
    """Inline audio bytes as a data: URL (scene records carry URLs, not files)."""
    return f"data:{mime_type};base64,{base64.b64encode(audio).decode('ascii')}"


class ElevenLabsVoice(IVoiceSynthesizer):
    def __init__(
        self,
        client_factory: Optional[Callable] = None,
        retry: Optional[RetryPolicy] = None,
    ):
        self._client_factory = client_factory or _default_client_factory
        self.retry = retry or RetryPolicy(
            max_retries=PIPELINE_CONFIG["retry_count"],
            delay=PIPELINE_CONFIG["retry_delay"],
        )
        self._clients = {}

    def _client(self, api_key: str):
        if api_key not in self._clients:
            self._clients[api_key] = self._client_factory(api_key)
        return self._clients[api_key]

    def _convert(self, text: str, api_key: str, voice_id: str) -> bytes:
        from elevenlabs import VoiceSettings

        stream = self._client(api_key).text_to_speech.convert(
            voice_id=voice_id,
            text=text,
            model_id=MODEL_CONFIG["tts"],
            voice_settings=VoiceSettings(
                stability=TTS_CONFIG["stability"],
                similarity_boost=TTS_CONFIG["similarity_boost"],
            ),
        )
        if isinstance(stream, (bytes, bytearray)):
            return bytes(stream)
        return b"".join(stream)

    async def synthesize(self, text: str, api_key: str, voice_id: str) -> bytes:
        if not api_key:
            raise ConfigurationError("ElevenLabs API Key가 필요합니다.")
        if not text.strip():
            raise ExternalServiceError("Empty narration text")

        voice_id = voice_id or TTS_CONFIG["default_voice_id"]
        try:
            audio = await self.retry.call(
                asyncio.to_thread, self._convert, text, api_key, voice_id
            )
        except Exception as e:
            detail = getattr(e, "body", None) or str(e)
            raise ExternalServiceError(f"ElevenLabs 오류: {detail}") from e

        if not audio:
            raise ExternalServiceError("ElevenLabs returned empty audio")
        logger.info(f"✅ ElevenLabs audio generated ({len(audio)} bytes)")
        return audio
