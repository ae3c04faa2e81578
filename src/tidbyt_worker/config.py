"""Worker configuration."""

from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_APPLET_PATH = Path(__file__).parent / "applets" / "donation_alert.star"

# Floors enforced by the window scheduler regardless of configuration
MIN_BATCH_WINDOW_MS = 250
MIN_MAX_BATCH_WAIT_MS = 1000


def _env(*names: str) -> AliasChoices:
    # Accept the documented env var name and the field name (for kwargs/CLI)
    return AliasChoices(*names)


class WorkerConfig(BaseSettings):
    """Configuration for the Tidbyt donation worker.

    Reads from environment variables (case-insensitive) and an optional .env.
    E.g., TIDBYT_BATCH_WINDOW_MS=8000
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # HTTP server settings
    host: str = "0.0.0.0"
    port: int = 8080
    auth_token: str = Field(
        default="",
        validation_alias=_env("TIDBYT_WORKER_AUTH_TOKEN", "auth_token"),
        description="Bearer token required on ingestion routes (empty disables auth)",
    )

    # Batching settings
    # The display refreshes slowly and the push API is rate limited, so a quiet
    # period of a few seconds coalesces bursts into a single frame.
    batch_window_ms: int = Field(
        default=8000,
        validation_alias=_env("TIDBYT_BATCH_WINDOW_MS", "batch_window_ms"),
        description="Sliding quiet period before a batch flushes (ms, floor 250)",
    )
    max_batch_wait_ms: int = Field(
        default=60000,
        validation_alias=_env("TIDBYT_MAX_BATCH_WAIT_MS", "max_batch_wait_ms"),
        description="Hard ceiling measured from a batch's first event (ms, floor 1000)",
    )
    dedupe_ttl_ms: int = Field(
        default=60 * 60 * 1000,
        validation_alias=_env("TIDBYT_DEDUPE_TTL_MS", "dedupe_ttl_ms"),
        description="How long a donation id is remembered to reject resubmission (ms)",
    )

    # Tidbyt push settings
    tidbyt_api_url: str = Field(
        default="https://api.tidbyt.com",
        validation_alias=_env("TIDBYT_API_URL", "tidbyt_api_url"),
    )
    tidbyt_api_key: str = Field(default="", validation_alias=_env("TIDBYT_API_KEY", "tidbyt_api_key"))
    tidbyt_device_id: str = Field(default="", validation_alias=_env("TIDBYT_DEVICE_ID", "tidbyt_device_id"))
    installation_id: str = Field(
        default="effekt-donation-alert",
        validation_alias=_env("TIDBYT_INSTALLATION_ID", "installation_id"),
    )
    push_background: bool = Field(
        default=False,
        validation_alias=_env("TIDBYT_PUSH_BACKGROUND", "push_background"),
    )
    push_timeout_ms: int = Field(
        default=30000,
        validation_alias=_env("TIDBYT_PUSH_TIMEOUT_MS", "push_timeout_ms"),
    )

    # Pixlet render settings
    pixlet_bin: str = Field(default="pixlet", validation_alias=_env("PIXLET_BIN", "pixlet_bin"))
    applet_path: Path = Field(
        default=DEFAULT_APPLET_PATH,
        validation_alias=_env("TIDBYT_PIXLET_APPLET", "applet_path"),
    )
    render_timeout_ms: int = Field(
        default=30000,
        validation_alias=_env("PIXLET_TIMEOUT_MS", "render_timeout_ms"),
    )
    max_image_bytes: int = Field(
        default=192 * 1024,
        validation_alias=_env("TIDBYT_MAX_IMAGE_BYTES", "max_image_bytes"),
        description="Largest WebP the push API accepts",
    )

    # Display content
    country_code: str = Field(default="??", validation_alias=_env("EFFEKT_COUNTRY_CODE", "country_code"))
    currency: str = Field(default="kr", validation_alias=_env("TIDBYT_CURRENCY", "currency"))

    @field_validator("country_code")
    @classmethod
    def _upper_country(cls, value: str) -> str:
        return value.upper()

    @property
    def push_enabled(self) -> bool:
        """Pushing needs both an API key and a target device."""
        return bool(self.tidbyt_api_key and self.tidbyt_device_id)
