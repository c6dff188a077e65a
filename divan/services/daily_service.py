"""Daily service - private video rooms and meeting tokens for video sessions"""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from ..config import Settings
from ..errors import UpstreamFailure

logger = logging.getLogger(__name__)


def room_name_for(appointment_id: str) -> str:
    """Deterministic room name, so a retried provisioning converges on the same room"""
    return f"sess-{appointment_id.replace('-', '')[:20]}"


def _epoch(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


class DailyService:
    """Service for Daily REST API operations"""

    def __init__(self, settings: Settings):
        self.api_key = settings.DAILY_API_KEY
        self.domain = settings.DAILY_DOMAIN
        self.base_url = settings.DAILY_API_URL.rstrip("/")

        if not self.api_key:
            logger.warning("DAILY_API_KEY not set; video rooms will fail until configured")

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def room_url(self, room_name: str, provider_url: Optional[str] = None) -> str:
        if provider_url:
            return provider_url
        return f"https://{self.domain}/{room_name}"

    async def ensure_room(self, room_name: str, not_before: datetime, expires_at: datetime) -> dict:
        """
        Create a private room, or update the not-before/expiry of an existing one.

        Returns:
            {"name": ..., "url": ...}
        """
        if not self.is_available():
            raise UpstreamFailure("Serviço de vídeo não configurado")

        body = {
            "name": room_name,
            "privacy": "private",
            "properties": {
                "nbf": _epoch(not_before),
                "exp": _epoch(expires_at),
                "enable_chat": True,
                "enable_knocking": False,
                "start_video_off": False,
            },
        }

        try:
            async with httpx.AsyncClient(timeout=15.0) as http_client:
                response = await http_client.post(f"{self.base_url}/rooms", headers=self._headers(), json=body)

                if response.status_code == 400 and "already exists" in response.text:
                    # Reused rooms keep the window of their first booking unless refreshed
                    logger.info(f"🔁 Daily room {room_name} already exists, refreshing its window")
                    response = await http_client.post(
                        f"{self.base_url}/rooms/{room_name}",
                        headers=self._headers(),
                        json={"properties": body["properties"]},
                    )
        except httpx.HTTPError as e:
            logger.error(f"❌ Daily room request failed for {room_name}: {e}")
            raise UpstreamFailure(f"Falha ao criar sala de vídeo: {str(e)}") from e

        if response.status_code >= 400:
            logger.error(f"❌ Daily room error {response.status_code}: {response.text}")
            raise UpstreamFailure(f"Falha ao criar sala de vídeo: {response.text}")

        data = response.json()
        logger.info(f"✅ Daily room ready: {room_name}")
        return {"name": data.get("name", room_name), "url": self.room_url(room_name, data.get("url"))}

    async def create_meeting_token(
        self, room_name: str, user_name: str, is_owner: bool, expires_at: datetime
    ) -> str:
        if not self.is_available():
            raise UpstreamFailure("Serviço de vídeo não configurado")

        body = {
            "properties": {
                "room_name": room_name,
                "user_name": user_name,
                "is_owner": is_owner,
                "exp": _epoch(expires_at),
            }
        }

        try:
            async with httpx.AsyncClient(timeout=15.0) as http_client:
                response = await http_client.post(
                    f"{self.base_url}/meeting-tokens", headers=self._headers(), json=body
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Daily meeting token request failed for {room_name}: {e}")
            raise UpstreamFailure(f"Falha ao gerar acesso à sala: {str(e)}") from e

        if response.status_code >= 400:
            logger.error(f"❌ Daily meeting token error {response.status_code}: {response.text}")
            raise UpstreamFailure(f"Falha ao gerar acesso à sala: {response.text}")

        return response.json()["token"]
