"""Display sink: the flush callback that turns a batch into a Tidbyt frame."""

from typing import Optional

from effekt_common import get_logger

from .accumulator import BatchSnapshot
from .config import WorkerConfig
from .errors import ImageTooLargeError
from .renderer import PixletRenderer
from .tidbyt_client import TidbytClient

logger = get_logger(__name__)


class DisplaySink:
    """
    Renders a batch snapshot and pushes it to the device.

    With no client configured the sink accepts every batch and does
    nothing, so the worker can run without Tidbyt credentials.
    """

    def __init__(
        self,
        renderer: PixletRenderer,
        client: Optional[TidbytClient],
        country_code: str = "??",
        currency: str = "kr",
        max_image_bytes: int = 192 * 1024,
    ):
        self.renderer = renderer
        self.client = client
        self.country_code = country_code
        self.currency = currency
        self.max_image_bytes = max_image_bytes

    @classmethod
    def from_config(cls, config: WorkerConfig) -> "DisplaySink":
        renderer = PixletRenderer(
            pixlet_bin=config.pixlet_bin,
            applet_path=config.applet_path,
            timeout_ms=config.render_timeout_ms,
        )
        client = None
        if config.push_enabled:
            client = TidbytClient(
                api_key=config.tidbyt_api_key,
                device_id=config.tidbyt_device_id,
                installation_id=config.installation_id,
                background=config.push_background,
                base_url=config.tidbyt_api_url,
                timeout_ms=config.push_timeout_ms,
            )
        return cls(
            renderer,
            client,
            country_code=config.country_code,
            currency=config.currency,
            max_image_bytes=config.max_image_bytes,
        )

    def applet_config(self, snapshot: BatchSnapshot) -> dict[str, str]:
        return {
            "count": str(snapshot.count),
            "sum": str(round(snapshot.sum)),
            "country": self.country_code,
            "currency": self.currency,
        }

    async def render(self, snapshot: BatchSnapshot) -> bytes:
        image = await self.renderer.render(self.applet_config(snapshot))
        if len(image) > self.max_image_bytes:
            raise ImageTooLargeError(len(image), self.max_image_bytes)
        return image

    async def __call__(self, snapshot: BatchSnapshot) -> None:
        if self.client is None:
            logger.info("Push disabled, batch not displayed", count=snapshot.count, sum=snapshot.sum)
            return

        image = await self.render(snapshot)
        await self.client.push(image)
