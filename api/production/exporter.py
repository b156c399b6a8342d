"""
Export pack: scene images + narration as one zip.

  images/scene-{index}.png
  audio/scene-{index}.mp3
"""

import asyncio
import base64
import logging
import os
import zipfile
from typing import Callable, Iterable, Optional

import requests

from api.production.models import SceneMedia
from config.settings import UPSCALE_CONFIG

logger = logging.getLogger("exporter")

Fetcher = Callable[[str], bytes]


def decode_data_url(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not sep or not header.startswith("data:"):
        raise ValueError("Not a data URL")
    if header.endswith(";base64"):
        return base64.b64decode(payload)
    return payload.encode("utf-8")


def http_fetch(url: str) -> bytes:
    response = requests.get(url, timeout=UPSCALE_CONFIG["timeout"])
    response.raise_for_status()
    return response.content


def _load(url: str, fetch: Fetcher) -> bytes:
    if url.startswith("data:"):
        return decode_data_url(url)
    return fetch(url)


def _write_pack(scenes: Iterable[SceneMedia], output_path: str, fetch: Fetcher) -> int:
    written = 0
    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
    with zipfile.ZipFile(output_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for scene in scenes:
            for url, name in (
                (scene.media_url, f"images/scene-{scene.index}.png"),
                (scene.audio_url, f"audio/scene-{scene.index}.mp3"),
            ):
                if not url:
                    continue
                try:
                    zf.writestr(name, _load(url, fetch))
                    written += 1
                except (requests.RequestException, ValueError) as e:
                    logger.warning(f"⚠️ Skipping {name}: {e}")
    return written


async def export_pack(
    scenes: Iterable[SceneMedia],
    output_path: str,
    fetch: Optional[Fetcher] = None,
) -> int:
    """Write the zip; returns the number of files packed."""
    written = await asyncio.to_thread(_write_pack, list(scenes), output_path, fetch or http_fetch)
    logger.info(f"📦 Export pack written: {output_path} ({written} files)")
    return written


def download_video(uri: str, api_key: str, output_path: str) -> str:
    """Download a Veo result. Gemini file URIs need the API key as a query param."""
    url = uri
    if api_key:
        url = f"{uri}{'&' if '?' in uri else '?'}key={api_key}"
    response = requests.get(url, timeout=120)
    response.raise_for_status()
    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
    with open(output_path, "wb") as f:
        f.write(response.content)
    logger.info(f"🎬 Video saved: {output_path}")
    return output_path
