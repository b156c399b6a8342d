"""
Tests for api.production.session (workflow steps and error surfacing)
"""

import os
from unittest.mock import patch

import pytest

from api.production.errors import PreconditionError
from api.production.session import WorkflowSession, WorkflowStep
from api.production.state import CancelToken
from api.services.interfaces import IImageGenerator, IStoryboardAnalyzer, IVideoGenerator

from conftest import FakeUpscaler, FakeVoice, make_scene


class FakeAI(IStoryboardAnalyzer, IImageGenerator, IVideoGenerator):
    def __init__(self, client=True):
        self.client = object() if client else None
        self.analyzed = []

    async def generate_content_ideas(self, topic):
        return [{"title": f"{topic} idea {i}", "hook": "hook"} for i in range(1, 4)]

    async def generate_full_script(self, idea_title):
        return {"intro": "Hook sentence. Another hook.", "body": "Body one. Body two. Body three."}

    async def refine_script(self, script, instruction):
        return f"  {script} ({instruction})  "

    async def generate_thumbnail_text(self, script):
        return {"topText": "TOP", "bottomText": "BOTTOM"}

    async def analyze_segments(self, segments):
        self.analyzed.append(list(segments))
        return [{"image_prompt": f"img: {s}", "video_motion_prompt": "zoom"} for s in segments]

    async def generate_image(self, prompt):
        return "data:image/png;base64,AAAA"

    async def generate_video(self, image_data_url, motion_prompt):
        return "https://files.example/v.mp4"


@pytest.fixture
def session(credentials, store, no_sleep):
    return WorkflowSession(
        credentials=credentials,
        ai=FakeAI(),
        voice=FakeVoice(),
        upscaler=FakeUpscaler([]),
        store=store,
        sleep=no_sleep,
    )


class TestIdeationAndScript:
    @pytest.mark.asyncio
    async def test_blank_topic(self, session):
        assert await session.generate_ideas("   ") == []
        assert session.last_error
        assert session.step == WorkflowStep.IDEATION

    @pytest.mark.asyncio
    async def test_ideas_then_script(self, session):
        ideas = await session.generate_ideas("bees")
        assert len(ideas) == 3
        assert session.step == WorkflowStep.SCRIPT

        assert await session.generate_script(ideas[0])
        assert session.step == WorkflowStep.EDIT
        assert session.intro == "Hook sentence. Another hook."
        assert session.selected_idea == ideas[0]

    @pytest.mark.asyncio
    async def test_refine_body(self, session):
        session.set_script("Intro.", "Body.")
        assert await session.refine_script("shorter")
        assert session.body == "Body. (shorter)"
        assert session.intro == "Intro."

    @pytest.mark.asyncio
    async def test_thumbnail(self, session):
        session.set_script("Intro.", "Body.")
        assert await session.generate_thumbnail_text() == {"topText": "TOP", "bottomText": "BOTTOM"}

    @pytest.mark.asyncio
    async def test_missing_gemini_key_is_surfaced(self, credentials, store):
        session = WorkflowSession(credentials=credentials, ai=FakeAI(client=False), store=store)
        assert await session.generate_ideas("bees") == []
        assert "Gemini" in session.last_error


class TestPlanning:
    @pytest.mark.asyncio
    async def test_plan_confirm_and_go_back(self, session):
        session.set_script("Hook sentence. Another hook.", "Body one. Body two.")

        assert await session.plan_scenes()
        assert session.step == WorkflowStep.PLAN
        assert len(session.board) == 2
        first, second = session.board.scenes
        assert first.is_intro and not second.is_intro
        assert first.prompt == "img: Hook sentence. Another hook."

        session.confirm_plan()
        assert session.step == WorkflowStep.PRODUCTION

        session.go_back(WorkflowStep.EDIT)
        assert session.step == WorkflowStep.EDIT
        assert len(session.board) == 2
        with pytest.raises(PreconditionError):
            session.go_back(WorkflowStep.PRODUCTION)

    @pytest.mark.asyncio
    async def test_empty_script(self, session):
        assert not await session.plan_scenes()
        assert session.last_error
        with pytest.raises(PreconditionError):
            session.confirm_plan()

    @pytest.mark.asyncio
    async def test_cancelled_planning_is_not_an_error(self, session):
        session.set_script("Intro.", "Body.")
        token = CancelToken()
        token.cancel()

        assert not await session.plan_scenes(token)
        assert session.last_error is None
        assert session.step == WorkflowStep.EDIT
        assert session.ai.analyzed == []


class TestProduction:
    @pytest.mark.asyncio
    async def test_batch_then_audio_failure_surfaces(self, session, store):
        session.board.replace_all(make_scene(i) for i in range(1, 4))
        session.orchestrator.voice = FakeVoice(fail_on_call=2)

        result = await session.run_batch()
        assert result.generated == [1, 2, 3]
        assert len(store.list()) == 1

        assert await session.generate_all_audio() == []
        assert "quota" in session.last_error
        assert session.board.get(1).audio_url
        assert session.board.get(3).audio_url is None

    @pytest.mark.asyncio
    async def test_scene_errors_become_last_error(self, session):
        session.board.replace_all([make_scene(1)])
        assert await session.upscale(1) is None
        assert session.last_error

        assert await session.generate_one(1) == "data:image/png;base64,AAAA"
        assert session.last_error is None

    def test_load_snapshot(self, session, store):
        from api.production.project_manager import make_snapshot

        snapshot = make_snapshot("Intro.", "Body.", [make_scene(1, media_url="data:1")])
        session.load_snapshot(snapshot)

        assert session.step == WorkflowStep.PRODUCTION
        assert session.intro == "Intro.\n\nBody."
        assert session.body == ""
        assert session.board.get(1).media_url == "data:1"

    def test_save_and_reload_keeps_script_stable(self, session):
        from api.production.project_manager import make_snapshot

        session.set_script("Intro.", "Body.")
        for _ in range(3):
            snapshot = make_snapshot(session.intro, session.body, [make_scene(1)])
            session.load_snapshot(snapshot)

        assert session.script == "Intro.\n\nBody."
        assert snapshot.script == "Intro.\n\nBody."


class TestExport:
    @pytest.mark.asyncio
    async def test_download_video_writes_under_data_videos(self, session, store):
        session.board.replace_all([make_scene(2, video_url="https://files.example/v.mp4")])

        with patch("api.production.session.download_video", side_effect=lambda uri, key, path: path) as mock_dl:
            path = await session.download_video(2)

        assert path == store.pm.get_video_path(2)
        mock_dl.assert_called_once_with("https://files.example/v.mp4", "g-key", store.pm.get_video_path(2))
        assert session.last_error is None

    @pytest.mark.asyncio
    async def test_download_without_video_is_surfaced(self, session):
        session.board.replace_all([make_scene(1)])
        with patch("api.production.session.download_video") as mock_dl:
            assert await session.download_video(1) is None
        mock_dl.assert_not_called()
        assert "no video" in session.last_error

    @pytest.mark.asyncio
    async def test_generated_video_is_downloaded(self, session, store):
        session.board.replace_all([make_scene(1, media_url="data:image/png;base64,AAAA")])
        assert await session.generate_video(1) == "https://files.example/v.mp4"

        with patch("api.production.session.download_video", side_effect=lambda uri, key, path: path):
            assert await session.download_video(1) == store.pm.get_video_path(1)

    @pytest.mark.asyncio
    async def test_export_defaults_to_exports_dir(self, session, store):
        session.board.replace_all([make_scene(1, media_url="data:image/png;base64,AAAA")])

        path = await session.export()

        assert os.path.dirname(path) == store.pm.exports
        assert os.path.basename(path).startswith("project-")
        assert os.path.exists(path)

    @pytest.mark.asyncio
    async def test_export_to_explicit_path(self, session, tmp_path):
        session.board.replace_all([make_scene(1, media_url="data:image/png;base64,AAAA")])
        out = str(tmp_path / "pack.zip")
        assert await session.export(out) == out
        assert os.path.exists(out)
