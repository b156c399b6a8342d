import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.getenv("SCENE_STUDIO_DATA_DIR", str(BASE_DIR / "data")))

load_dotenv(BASE_DIR / ".env")

# GCP / AI Settings (Vertex mode, used when no API key is configured)
PROJECT_ID = os.getenv("PROJECT_ID", "")
CREDENTIALS_PATH = os.getenv(
    "GOOGLE_APPLICATION_CREDENTIALS",
    str(BASE_DIR / "credentials.json")
)

# Model Config
MODEL_CONFIG = {
    "text_analysis": "gemini-3-flash-preview",
    "script_writer": "gemini-3-pro-preview",
    "image": "gemini-3-pro-image-preview",
    "video": "veo-3.1-fast-generate-preview",
    "tts": "eleven_multilingual_v2",
    "upscale": "fal-ai/aura-sr",
}

# Pipeline Config
PIPELINE_CONFIG = {
    "intro_target_length": 80,     # chars, faster-paced opening scenes
    "body_target_length": 120,     # chars, roughly one image per 100-150 chars
    "planner_batch_size": 4,
    "retry_count": 3,
    "retry_delay": 2.0,            # seconds
    "image_pacing": 2.0,           # seconds between batch image calls
    "audio_pacing": 0.5,           # seconds between batch audio calls
    "video_poll_interval": 10.0,   # seconds
    "upscale_poll_attempts": 120,
    "upscale_poll_interval": 1.0,  # seconds (~2 min bound)
    "max_script_length": 30000,
    "max_images": 500,
}

# TTS Config (ElevenLabs)
TTS_CONFIG = {
    "default_voice_id": "nPczCjzI2devNBz1zWbc",
    "stability": 0.5,
    "similarity_boost": 0.75,
}

# Upscale Config (fal.ai queue)
UPSCALE_CONFIG = {
    "queue_base": "https://queue.fal.run",
    "timeout": 30,
}

# Output defaults
DEFAULT_ASPECT_RATIO = "16:9"
DEFAULT_ART_STYLE = "Insect Cartoon style"

FALLBACK_IMAGE_PROMPT = "A stylized 3D animation scene."
FALLBACK_MOTION_PROMPT = "Cinematic pan"
FALLBACK_VIDEO_MOTION = "Cinematic pan."

# ============================================================================
# STYLE PRESETS: visual style injected into every storyboard / image prompt
#   - style_anchor: prepended to each image prompt
#   - character: protagonist description used by the storyboard analysis
# ============================================================================
STYLE_PRESETS = {
    "stylized_3d": {
        "name": "Stylized 3D Cinematic (Pixar / Dreamworks)",
        "style_anchor": (
            "stylized 3D cinematic illustration, pixar style, dreamworks style, "
            "soft warm lighting, cinematic depth of field, global illumination, "
            "smooth plastic-like skin, highly detailed, ultra clean render, "
            "professional studio lighting, cozy indoor atmosphere, warm color palette, "
            "high quality 3d character render, octane render, unreal engine, 4k"
        ),
        "character": (
            "A friendly and expressive 3D character in a stylized animation style, "
            "fitting the cozy and warm atmosphere."
        ),
    },
    "insect_cartoon": {
        "name": "Insect Cartoon",
        "style_anchor": (
            "bright 3D cartoon world seen from an insect's perspective, oversized "
            "leaves and dew drops, playful rounded shapes, saturated colors, "
            "soft rim lighting, shallow depth of field, 4k"
        ),
        "character": (
            "A small cheerful cartoon insect with big expressive eyes and tiny "
            "gesturing arms."
        ),
    },
    "watercolor": {
        "name": "Watercolor Storybook",
        "style_anchor": (
            "watercolor storybook illustration with soft washes and visible brush "
            "strokes and delicate line work, warm earthy tones, gentle diffused "
            "lighting, hand-painted quality, 4k detailed"
        ),
        "character": "A gentle storybook character drawn with soft watercolor lines.",
    },
}

DEFAULT_STYLE = "stylized_3d"


def get_style_preset(name: str) -> dict:
    """Get a style preset by name."""
    preset = STYLE_PRESETS.get(name)
    if not preset:
        available = ", ".join(STYLE_PRESETS.keys())
        raise ValueError(f"Unknown style preset: '{name}'. Available: {available}")
    return preset


@dataclass(frozen=True)
class Credentials:
    """Per-user service keys. Empty strings mean "not configured"."""
    google_api_key: str = ""
    elevenlabs_api_key: str = ""
    elevenlabs_voice_id: str = TTS_CONFIG["default_voice_id"]
    fal_api_key: str = ""


def load_credentials(env: Optional[dict] = None) -> Credentials:
    """Read credentials from the environment (after .env has been loaded)."""
    env = os.environ if env is None else env
    return Credentials(
        google_api_key=env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY", ""),
        elevenlabs_api_key=env.get("ELEVENLABS_API_KEY", ""),
        elevenlabs_voice_id=env.get("ELEVENLABS_VOICE_ID") or TTS_CONFIG["default_voice_id"],
        fal_api_key=env.get("FAL_KEY", ""),
    )
