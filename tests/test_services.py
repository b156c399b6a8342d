"""
Tests for the service adapters (Gemini, ElevenLabs, fal.ai) with mocked clients.
"""

import base64
from unittest.mock import MagicMock

import pytest
import requests

from api.production.errors import ConfigurationError, ExternalServiceError
from api.services.ai import AIClient
from api.services.tts_service import ElevenLabsVoice, audio_data_url
from api.services.upscale_service import FalUpscaler
from api.utils.retry import RetryPolicy


def _response(ok=True, status_code=200, payload=None):
    response = MagicMock()
    response.ok = ok
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.reason = "Bad Request"
    return response


class TestFalUpscaler:
    @pytest.mark.asyncio
    async def test_submit_and_poll(self):
        session = MagicMock()
        session.post.return_value = _response(payload={"request_id": "abc"})
        session.get.return_value = _response(payload={"status": "completed", "image": {"url": "https://fal/x.png"}})
        upscaler = FalUpscaler(session=session)

        assert await upscaler.submit("data:image/png;base64,AAAA", "fal-key") == "abc"
        headers = session.post.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Key fal-key"
        assert session.post.call_args.kwargs["json"] == {"image_url": "data:image/png;base64,AAAA"}

        status = await upscaler.poll_status("abc", "fal-key")
        assert status.status == "COMPLETED"
        assert status.image_url == "https://fal/x.png"
        assert session.get.call_args[0][0].endswith("/requests/abc")

    @pytest.mark.asyncio
    async def test_submit_error_detail(self):
        session = MagicMock()
        session.post.return_value = _response(ok=False, status_code=422, payload={"detail": "image too large"})

        with pytest.raises(ExternalServiceError, match="image too large"):
            await FalUpscaler(session=session).submit("data:x", "fal-key")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        session = MagicMock()
        with pytest.raises(ConfigurationError):
            await FalUpscaler(session=session).submit("data:x", "")
        session.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_ok_or_network_error_poll_is_skipped(self):
        session = MagicMock()
        session.get.return_value = _response(ok=False, status_code=503)
        upscaler = FalUpscaler(session=session)
        assert await upscaler.poll_status("abc", "k") is None

        session.get.side_effect = requests.ConnectionError("reset")
        assert await upscaler.poll_status("abc", "k") is None


class TestElevenLabsVoice:
    @staticmethod
    def _voice(convert, no_sleep):
        client = MagicMock()
        client.text_to_speech.convert.side_effect = convert
        return ElevenLabsVoice(
            client_factory=lambda key: client,
            retry=RetryPolicy(max_retries=1, delay=0.1, sleep=no_sleep),
        ), client

    @pytest.mark.asyncio
    async def test_joins_streamed_chunks(self, no_sleep):
        voice, client = self._voice(lambda **kw: iter([b"ab", b"cd"]), no_sleep)

        assert await voice.synthesize("안녕하세요.", "el-key", "voice-1") == b"abcd"
        kwargs = client.text_to_speech.convert.call_args.kwargs
        assert kwargs["voice_id"] == "voice-1"
        assert kwargs["model_id"] == "eleven_multilingual_v2"

    @pytest.mark.asyncio
    async def test_vendor_error_is_wrapped_after_retry(self, no_sleep):
        def convert(**kw):
            raise RuntimeError("quota_exceeded")

        voice, client = self._voice(convert, no_sleep)
        with pytest.raises(ExternalServiceError, match="quota_exceeded"):
            await voice.synthesize("text", "el-key", "voice-1")
        assert client.text_to_speech.convert.call_count == 2

    @pytest.mark.asyncio
    async def test_missing_key(self, no_sleep):
        voice, client = self._voice(lambda **kw: iter([b"x"]), no_sleep)
        with pytest.raises(ConfigurationError):
            await voice.synthesize("text", "", "voice-1")

    def test_audio_data_url(self):
        assert audio_data_url(b"ID3") == "data:audio/mpeg;base64," + base64.b64encode(b"ID3").decode()


class TestAIClient:
    @staticmethod
    def _client(no_sleep):
        client = MagicMock()
        ai = AIClient(
            client=client,
            retry=RetryPolicy(max_retries=2, delay=0.1, sleep=no_sleep),
            video_poll=RetryPolicy(delay=10.0, sleep=no_sleep),
        )
        return ai, client

    @pytest.mark.asyncio
    async def test_analyze_segments_parses_fenced_json(self, no_sleep):
        ai, client = self._client(no_sleep)
        client.models.generate_content.return_value = MagicMock(
            text='```json\n[{"image_prompt": "a", "video_motion_prompt": "b"}]\n```'
        )

        assert await ai.analyze_segments(["seg"]) == [{"image_prompt": "a", "video_motion_prompt": "b"}]
        assert client.models.generate_content.call_count == 1

    @pytest.mark.asyncio
    async def test_generate_image_returns_data_url(self, no_sleep):
        ai, client = self._client(no_sleep)
        part = MagicMock()
        part.inline_data.data = b"\x89PNG"
        part.inline_data.mime_type = "image/png"
        response = MagicMock()
        response.candidates = [MagicMock()]
        response.candidates[0].content.parts = [part]
        client.models.generate_content.side_effect = [RuntimeError("503"), response]

        url = await ai.generate_image("a bee")

        assert url == "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()
        assert client.models.generate_content.call_count == 2
        assert no_sleep.calls == [0.1]

    @pytest.mark.asyncio
    async def test_generate_image_without_image_part(self, no_sleep):
        ai, client = self._client(no_sleep)
        response = MagicMock()
        response.candidates = []
        client.models.generate_content.return_value = response

        with pytest.raises(ExternalServiceError):
            await ai.generate_image("a bee")

    @pytest.mark.asyncio
    async def test_generate_video_polls_operation(self, no_sleep):
        ai, client = self._client(no_sleep)
        pending = MagicMock(done=False)
        running = MagicMock(done=False)
        finished = MagicMock(done=True, error=None)
        finished.response.generated_videos = [MagicMock()]
        finished.response.generated_videos[0].video.uri = "https://files/v.mp4"
        client.models.generate_videos.return_value = pending
        client.operations.get.side_effect = [running, finished]

        uri = await ai.generate_video("data:image/png;base64,AAAA", "Cinematic pan.")

        assert uri == "https://files/v.mp4"
        assert client.operations.get.call_count == 2
        assert no_sleep.calls == [10.0, 10.0]

    @pytest.mark.asyncio
    async def test_no_client_is_a_configuration_error(self, no_sleep):
        ai, _ = self._client(no_sleep)
        ai.client = None
        with pytest.raises(ConfigurationError):
            await ai.generate_content_ideas("bees")
