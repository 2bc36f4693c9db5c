import json
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

GATEWAY_OVERRIDE_VALUES = frozenset({"none", "force_bulksms", "force_bulkgate"})


@dataclass(frozen=True)
class GatewayCredentials:
    """Secrets for every upstream provider, loaded once per process."""

    bulksms_token_id: str = ""
    bulksms_token_secret: str = ""
    bulkgate_api_key: str = ""

    @property
    def bulkgate_uses_bearer(self) -> bool:
        return bool(self.bulkgate_api_key) and ":" not in self.bulkgate_api_key

    def bulkgate_application(self) -> tuple[str, str]:
        """Split the BulkGate key into (application_id, application_token)."""
        key = self.bulkgate_api_key
        if ":" in key:
            application_id, application_token = key.split(":", 1)
            return application_id, application_token
        return key, key

    def __repr__(self) -> str:
        return "GatewayCredentials(bulksms=%s, bulkgate=%s)" % (
            "set" if self.bulksms_token_id else "unset",
            "set" if self.bulkgate_api_key else "unset",
        )


class Settings(BaseSettings):
    # Read from the upper-cased field name, e.g. PROVIDER_TIMEOUT_SECONDS.
    service_name: str = "sms-dispatch-engine"
    log_level: str = "INFO"

    bulksms_token_id: str = ""
    bulksms_token_secret: str = ""
    bulksms_base_url: str = "https://api.bulksms.com"

    bulkgate_api_key: str = ""
    bulkgate_v2_base_url: str = "https://api.bulkgate.com/v2.0"
    bulkgate_v1_base_url: str = "https://portal.bulkgate.com/api/1.0"
    bulkgate_info_url: str = "https://portal.bulkgate.com/api/2.0/advanced/info"

    provider_timeout_seconds: float = 10.0
    default_sender_id: str = "SMSAO"

    gateway_override: str = "none"
    gateway_override_expires_at: Optional[datetime] = None
    angola_local_heuristic: bool = True

    admin_token: Optional[str] = None
    allowed_origins: Union[List[str], str] = Field(default_factory=list)

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        """Accept ALLOWED_ORIGINS as a JSON array or a comma-separated string."""
        if v is None or v == "":
            return []
        if isinstance(v, str):
            v = v.strip()
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(item) for item in parsed]
            except json.JSONDecodeError:
                pass
            return [item.strip() for item in v.split(",") if item.strip()]
        if isinstance(v, list):
            return v
        raise TypeError("allowed_origins must be a string or list")

    @field_validator("gateway_override")
    @classmethod
    def check_override(cls, v: str) -> str:
        value = (v or "none").strip().lower()
        if value not in GATEWAY_OVERRIDE_VALUES:
            raise ValueError(f"GATEWAY_OVERRIDE must be one of {sorted(GATEWAY_OVERRIDE_VALUES)}")
        return value

    @field_validator("provider_timeout_seconds")
    @classmethod
    def check_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("PROVIDER_TIMEOUT_SECONDS must be > 0")
        return v

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    def credentials(self) -> GatewayCredentials:
        return GatewayCredentials(
            bulksms_token_id=self.bulksms_token_id.strip(),
            bulksms_token_secret=self.bulksms_token_secret.strip(),
            bulkgate_api_key=self.bulkgate_api_key.strip(),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
