"""Client for the Tidbyt device push API."""

import base64
from urllib.parse import quote

import aiohttp

from effekt_common import get_logger

from .errors import PushError

logger = get_logger(__name__)


class TidbytClient:
    """Pushes rendered images to one Tidbyt device."""

    def __init__(
        self,
        api_key: str,
        device_id: str,
        installation_id: str = "",
        background: bool = False,
        base_url: str = "https://api.tidbyt.com",
        timeout_ms: int = 30000,
    ):
        self._api_key = api_key
        self.device_id = device_id
        self.installation_id = installation_id
        self.background = background
        self._base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms

    @property
    def push_url(self) -> str:
        return f"{self._base_url}/v0/devices/{quote(self.device_id, safe='')}/push"

    def build_payload(self, image: bytes) -> dict:
        payload = {
            "image": base64.b64encode(image).decode("ascii"),
            # Background pushes only make sense for a named installation
            "background": bool(self.background and self.installation_id),
        }
        if self.installation_id:
            payload["installationID"] = self.installation_id
        return payload

    async def push(self, image: bytes) -> None:
        """Push ``image`` (WebP bytes) to the device.

        Raises:
            PushError: The API answered with a non-2xx status
            aiohttp.ClientError, asyncio.TimeoutError: Transport failures
        """
        headers = {"Authorization": f"Bearer {self._api_key}"}
        async with aiohttp.ClientSession() as session:
            async with session.post(
                self.push_url,
                json=self.build_payload(image),
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout_ms / 1000.0),
            ) as resp:
                if resp.status >= 300:
                    try:
                        body = await resp.text()
                    except aiohttp.ClientError:
                        body = ""
                    raise PushError(resp.status, body or (resp.reason or ""))

        logger.info("Pushed image to Tidbyt", device_id=self.device_id, bytes=len(image))
