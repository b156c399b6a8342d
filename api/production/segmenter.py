"""
Script segmenter: splits narration into scene-sized chunks.

Sentences are never split. Short sentences are packed together until the
group would reach the target length, so every scene carries roughly the
same amount of narration.
"""

import re
from typing import List, Tuple

from config.settings import PIPELINE_CONFIG

# Text up to and including a run of terminators (+ optional closing quote),
# or the unterminated tail. Every character lands in some match.
SENTENCE_RE = re.compile(r"""[^.!?]*[.!?]+["']?|[^.!?]+$""")


def split_sentences(text: str) -> List[str]:
    sanitized = text.replace("\n", " ")
    sentences = [s.strip() for s in SENTENCE_RE.findall(sanitized)]
    return [s for s in sentences if s]


def segment(text: str, target_length: int) -> List[str]:
    """Group sentences of `text` into segments of about `target_length` chars."""
    if target_length <= 0:
        raise ValueError("target_length must be > 0")
    if not text or not text.strip():
        return []

    segments: List[str] = []
    current = ""

    for sentence in split_sentences(text):
        if not current:
            current = sentence
        elif len(current) + len(sentence) < target_length:
            current += " " + sentence
        else:
            segments.append(current)
            current = sentence

    if current:
        segments.append(current)

    return segments


def split_script(
    intro: str,
    body: str,
    intro_target: int = PIPELINE_CONFIG["intro_target_length"],
    body_target: int = PIPELINE_CONFIG["body_target_length"],
) -> Tuple[List[str], int]:
    """
    Segment intro and body with their own target lengths.
    Returns (all_segments, intro_count).
    """
    intro_segments = segment(intro, intro_target)
    body_segments = segment(body, body_target)
    return intro_segments + body_segments, len(intro_segments)
