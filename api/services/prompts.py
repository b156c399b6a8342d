"""
Prompt templates for the scene studio.
Ideation, long-form script writing, storyboard analysis, image rendering,
thumbnail copy and script refinement.
"""

import json
from typing import List

SYSTEM_PROMPT = """
[SYSTEM]
You are an expert YouTube storyteller and storyboard director.
Your goal is to turn narration into compelling, visually consistent scenes.

CRITICAL RULES:
1. Narration is written in natural, spoken Korean.
2. Visual prompts are written in English.
3. Never echo the narration text inside visual prompts.
4. Output: MUST follow the requested JSON shape exactly.
"""

# Response schema for storyboard analysis (google-genai accepts plain JSON schema dicts)
STORYBOARD_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "image_prompt": {"type": "STRING"},
            "video_motion_prompt": {"type": "STRING"},
        },
        "required": ["image_prompt", "video_motion_prompt"],
    },
}


def get_ideas_prompt(topic: str, count: int = 10) -> str:
    return f"""
    You are a YouTube viral content strategist.
    Generate {count} HIGH-CLICK-THROUGH-RATE (Clickbait/Viral) video ideas about the topic: "{topic}".

    Rules:
    1. Titles must be provocative, using psychological triggers (Curiosity, Fear, Greed, etc.).
    2. Hooks should be short sentences that explain why this video goes viral.
    3. Output MUST be in Korean (한국어).

    Return ONLY a JSON array:
    [
      {{ "title": "Stimulating Title 1", "hook": "Reason why it's interesting" }}
    ]
    """


def get_full_script_prompt(idea_title: str, target_chars: int = 8000) -> str:
    return f"""
    Role: Professional YouTube Scriptwriter.
    Task: Write a very long, comprehensive, and engaging YouTube script for the title: "{idea_title}".
    Target Length: Approximately {target_chars} characters total (Korean).

    Structure:
    1. INTRO (Hook): Grab attention immediately, state the problem/mystery, and promise a solution/reveal. (approx 500-1000 chars)
    2. BODY (Main Content): Detailed storytelling, facts, arguments, or explanation. Divide into logical sections. Make it long and deep.

    Language: Korean (Natural, spoken style, engaging).

    Return ONLY a JSON object:
    {{
      "intro": "Full intro script text...",
      "body": "Full body script text..."
    }}
    """


def get_storyboard_prompt(segments: List[str], style_anchor: str, character: str) -> str:
    """Batch analysis prompt. Items are numbered so the response order can be trusted."""
    items = "\n".join(f"      Item {idx}: {s}" for idx, s in enumerate(segments))
    return f"""
      [STYLE DEFINITION]
      {style_anchor}

      [TASK: CONTINUOUS 3D ANIMATION STORYBOARD]
      Protagonist: {character}

      Analyze the following {len(segments)} text segments and generate visual prompts.

      Segments to analyze (in order):
{items}

      OUTPUT RULES:
      1. Return a JSON Array with exactly {len(segments)} objects.
      2. The order MUST match the input order (Item 0 -> Index 0).
      3. properties:
         - image_prompt: English description of the scene. Include character actions and facial expressions matching the text emotion. Ensure it fits the style definition.
         - video_motion_prompt: Simple camera motion description.
      4. DO NOT return the original Korean text.
    """


def get_image_prompt(scene_prompt: str, style_anchor: str) -> str:
    return (
        f"High-quality 3D render, {style_anchor}\n"
        f"Scene Description: {scene_prompt}.\n"
        "IMPORTANT: If there is any text inside the image, it MUST be written in "
        "Korean (Hangul). Do not use English text in the image. "
        "Clean and sharp, no artifacts."
    )


def get_thumbnail_prompt(script: str) -> str:
    return (
        "자극적인 썸네일 문구 2줄 생성. "
        f"대본: {script[:1000]}\n"
        + json.dumps({"topText": "1행", "bottomText": "2행"}, ensure_ascii=False)
    )


def get_refine_prompt(script: str, instruction: str) -> str:
    return f"대본 수정: {instruction}\n대본: {script}"
