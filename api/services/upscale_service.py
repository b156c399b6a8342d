"""
Image upscaling via the fal.ai queue API (Aura SR).
Submit returns a request id; the status endpoint is polled by the caller.
"""

import asyncio
import logging
from typing import Optional

import requests

from api.production.errors import ConfigurationError, ExternalServiceError
from api.services.interfaces import IUpscaler, UpscaleStatus
from config.settings import MODEL_CONFIG, UPSCALE_CONFIG

logger = logging.getLogger("upscale_service")


class FalUpscaler(IUpscaler):
    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()
        self.base_url = f"{UPSCALE_CONFIG['queue_base']}/{MODEL_CONFIG['upscale']}"

    @staticmethod
    def _headers(api_key: str) -> dict:
        return {
            "Authorization": f"Key {api_key}",
            "Content-Type": "application/json",
        }

    def _submit(self, image_data_url: str, api_key: str) -> str:
        response = self.session.post(
            self.base_url,
            headers=self._headers(api_key),
            json={"image_url": image_data_url},
            timeout=UPSCALE_CONFIG["timeout"],
        )
        if not response.ok:
            try:
                body = response.json()
                detail = body.get("detail") if isinstance(body, dict) else None
                message = detail or str(body)
            except ValueError:
                message = response.reason
            raise ExternalServiceError(f"Fal.ai Error ({response.status_code}): {message}")

        request_id = response.json().get("request_id")
        if not request_id:
            raise ExternalServiceError("Fal.ai returned no request_id")
        return request_id

    def _status(self, request_id: str, api_key: str) -> Optional[UpscaleStatus]:
        response = self.session.get(
            f"{self.base_url}/requests/{request_id}",
            headers=self._headers(api_key),
            timeout=UPSCALE_CONFIG["timeout"],
        )
        if not response.ok:
            return None
        data = response.json()
        return UpscaleStatus(
            status=str(data.get("status", "")).upper(),
            image_url=data.get("image_url") or (data.get("image") or {}).get("url"),
            error=data.get("error"),
        )

    async def submit(self, image_data_url: str, api_key: str) -> str:
        if not api_key:
            raise ConfigurationError("Fal.ai API Key가 필요합니다.")
        try:
            request_id = await asyncio.to_thread(self._submit, image_data_url, api_key)
        except requests.RequestException as e:
            raise ExternalServiceError(f"Fal.ai request failed: {e}") from e
        logger.info(f"🔍 Upscale queued: {request_id}")
        return request_id

    async def poll_status(self, request_id: str, api_key: str) -> Optional[UpscaleStatus]:
        try:
            return await asyncio.to_thread(self._status, request_id, api_key)
        except requests.RequestException as e:
            logger.warning(f"⚠️ Upscale status check failed: {e}")
            return None
