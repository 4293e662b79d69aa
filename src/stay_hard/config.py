"""Runtime settings for stay-hard."""

from datetime import datetime, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Default data directory (next to the source tree, like the database)
DATA_DIR = Path(__file__).parent.parent.parent / "data"


class Settings(BaseSettings):
    """Engine policy and integration settings.

    Every value can be overridden with a ``STAY_HARD_`` prefixed
    environment variable or in a ``.env`` file.
    """

    data_dir: Path = DATA_DIR
    # "local" uses the system timezone; otherwise an IANA name
    timezone: str = "local"

    # Geofence policy (manual check-in tolerates GPS noise)
    auto_check_radius_m: float = Field(default=10.0, gt=0)
    manual_check_radius_m: float = Field(default=50.0, gt=0)

    # Position sampling
    poll_interval_seconds: int = Field(default=300, gt=0)
    position_timeout_seconds: float = Field(default=10.0, gt=0)
    position_max_age_seconds: float = Field(default=60.0, ge=0)
    position_file: Path | None = None
    position_file_max_age_seconds: float = Field(default=600.0, gt=0)

    # Upper bound on a single scheduler sleep, so wall-clock jumps are noticed
    scheduler_max_sleep_seconds: float = Field(default=30.0, gt=0)

    # Wallet policy
    penalty_rate: float = Field(default=0.1, ge=0, le=1)
    shopping_credit_rate: float = Field(default=0.2, ge=0)
    transfer_fee_rate: float = Field(default=0.05, ge=0, le=1)

    # Retell AI voice calls (optional)
    retell_api_key: str | None = None
    retell_agent_id: str | None = None
    retell_from_number: str | None = None
    retell_base_url: str = "https://api.retellai.com/v2"

    log_level: str = "INFO"
    log_file: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="STAY_HARD_",
        extra="ignore",
    )

    # Allow empty env strings for optional fields
    @field_validator(
        "position_file",
        "retell_api_key",
        "retell_agent_id",
        "retell_from_number",
        "log_file",
        mode="before",
    )
    @classmethod
    def _empty_to_none(cls, v):
        if v in ("", "null", "None"):
            return None
        return v

    @property
    def db_path(self) -> Path:
        """Database file path inside the data directory."""
        return self.data_dir / "stay_hard.db"

    @property
    def retell_configured(self) -> bool:
        return bool(self.retell_api_key and self.retell_agent_id)

    def get_tz(self) -> tzinfo:
        """Resolve the configured timezone."""
        if self.timezone == "local":
            return datetime.now().astimezone().tzinfo
        return ZoneInfo(self.timezone)


settings = Settings()
