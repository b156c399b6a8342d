"""
Scene Planner: segments → ScenePlan list.

Segments are sent to the storyboard analyzer in small batches. The analyzer
only returns visual prompts; the narration text of every scene is always
taken from the input, so a bad response can degrade prompts but never lose
or alter script text.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional

from api.production.errors import ConfigurationError, PipelineCancelled, ResponseParseError
from api.production.models import ScenePlan
from api.production.segmenter import split_script
from api.utils.retry import RetryPolicy
from config.settings import (
    FALLBACK_IMAGE_PROMPT,
    FALLBACK_MOTION_PROMPT,
    PIPELINE_CONFIG,
)

logger = logging.getLogger("scene_planner")

BatchAnalyzer = Callable[[List[str]], Awaitable[Any]]
ProgressCallback = Callable[[int, int], None]


def _text_field(entry: Any, key: str, fallback: str) -> str:
    if not isinstance(entry, dict):
        return fallback
    value = entry.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return fallback


def merge_batch(batch: List[str], response: Any) -> List[ScenePlan]:
    """
    Pair response entry i with batch segment i. Missing, short or malformed
    responses fall back to the generic prompts for the affected positions.
    """
    entries = response if isinstance(response, list) else []
    if len(entries) != len(batch):
        logger.warning(
            f"⚠️ Analyzer returned {len(entries)} entries for {len(batch)} segments"
        )

    merged = []
    for i, original in enumerate(batch):
        entry = entries[i] if i < len(entries) else None
        merged.append(ScenePlan(
            original_script_segment=original,
            prompt=_text_field(entry, "image_prompt", FALLBACK_IMAGE_PROMPT),
            video_motion_prompt=_text_field(entry, "video_motion_prompt", FALLBACK_MOTION_PROMPT),
        ))
    return merged


def fallback_batch(batch: List[str]) -> List[ScenePlan]:
    return [
        ScenePlan(
            original_script_segment=s,
            prompt=FALLBACK_IMAGE_PROMPT,
            video_motion_prompt=FALLBACK_MOTION_PROMPT,
        )
        for s in batch
    ]


async def plan(
    segments: List[str],
    batch_size: int,
    analyze: BatchAnalyzer,
    on_progress: Optional[ProgressCallback] = None,
    retry: Optional[RetryPolicy] = None,
    token=None,
) -> List[ScenePlan]:
    """
    Build one ScenePlan per segment (index / is_intro not yet assigned).
    A batch whose analysis still fails after retries gets fallback prompts.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be > 0")

    # Unparseable output goes straight to the fallback; only call failures retry.
    retry = retry or RetryPolicy(
        max_retries=PIPELINE_CONFIG["retry_count"],
        delay=PIPELINE_CONFIG["retry_delay"],
        give_up_on=(ConfigurationError, PipelineCancelled, ResponseParseError),
    )
    total = len(segments)
    results: List[ScenePlan] = []

    for start in range(0, total, batch_size):
        if token is not None and token.cancelled:
            logger.info(f"🛑 Planning cancelled at {start}/{total}")
            raise PipelineCancelled("Planning cancelled")

        batch = segments[start:start + batch_size]
        try:
            response = await retry.call(analyze, batch)
            results.extend(merge_batch(batch, response))
        except (PipelineCancelled, ConfigurationError):
            raise
        except Exception as e:
            logger.error(f"❌ Batch {start // batch_size + 1} analysis failed, using fallback: {e}")
            results.extend(fallback_batch(batch))

        processed = min(start + batch_size, total)
        logger.info(f"🧠 Visual analysis {processed}/{total}")
        if on_progress:
            on_progress(processed, total)

    return results


async def build_plan(
    intro: str,
    body: str,
    analyze: BatchAnalyzer,
    batch_size: int = PIPELINE_CONFIG["planner_batch_size"],
    on_progress: Optional[ProgressCallback] = None,
    retry: Optional[RetryPolicy] = None,
    token=None,
) -> List[ScenePlan]:
    """Segment intro + body, plan them, and assign 1-based indexes."""
    segments, intro_count = split_script(intro, body)
    logger.info(f"✂️ {len(segments)} scenes ({intro_count} intro)")

    plans = await plan(
        segments,
        batch_size,
        analyze,
        on_progress=on_progress,
        retry=retry,
        token=token,
    )
    return [
        ScenePlan(
            original_script_segment=p.original_script_segment,
            prompt=p.prompt,
            video_motion_prompt=p.video_motion_prompt,
            index=i + 1,
            is_intro=i < intro_count,
        )
        for i, p in enumerate(plans)
    ]
