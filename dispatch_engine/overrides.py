import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class GatewayOverride(str, enum.Enum):
    NONE = "none"
    FORCE_BULKSMS = "force_bulksms"
    FORCE_BULKGATE = "force_bulkgate"


@dataclass(frozen=True)
class OverrideSetting:
    override_type: GatewayOverride = GatewayOverride.NONE
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None
    updated_at: Optional[datetime] = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return _aware(self.expires_at) <= now


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class GatewayOverrideStore:
    """Process-wide administrative override.

    The setting is replaced as a whole, so a reader always sees one consistent
    snapshot. An expired override reads as ``GatewayOverride.NONE``.
    """

    def __init__(self, initial: OverrideSetting | None = None):
        self._setting = initial or OverrideSetting()

    def current(self, now: datetime | None = None) -> GatewayOverride:
        setting = self._setting
        if setting.override_type != GatewayOverride.NONE and setting.is_expired(now):
            return GatewayOverride.NONE
        return setting.override_type

    def snapshot(self) -> OverrideSetting:
        return self._setting

    def set(
        self,
        override_type: GatewayOverride,
        *,
        expires_at: datetime | None = None,
        reason: str | None = None,
    ) -> OverrideSetting:
        setting = OverrideSetting(
            override_type=GatewayOverride(override_type),
            expires_at=_aware(expires_at) if expires_at else None,
            reason=reason,
            updated_at=datetime.now(timezone.utc),
        )
        self._setting = setting
        logger.warning(
            "Gateway override set to %s.",
            setting.override_type.value,
            extra={"expires_at": setting.expires_at.isoformat() if setting.expires_at else None, "reason": reason},
        )
        return setting

    @classmethod
    def from_settings(cls, settings) -> "GatewayOverrideStore":
        override_type = GatewayOverride(settings.gateway_override.strip().lower())
        expires_at = settings.gateway_override_expires_at
        return cls(
            OverrideSetting(
                override_type=override_type,
                expires_at=_aware(expires_at) if expires_at else None,
                reason="configured" if override_type != GatewayOverride.NONE else None,
            )
        )
