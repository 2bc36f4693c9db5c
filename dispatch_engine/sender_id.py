import logging
import re
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_SENDER_ID = "SMSAO"
DEPRECATED_SENDER_IDS = frozenset({"ONSMS", "SMS"})

_SENDER_ID_FORMAT = re.compile(r"^[A-Z0-9]{1,11}$")


class SenderIdResolver(Protocol):
    """Collaborator that owns sender-id approval for a user."""

    async def resolve(self, user_id: str, requested_sender_id: Optional[str]) -> Optional[str]:
        ...


def is_valid_sender_id_format(sender_id: str) -> bool:
    return bool(_SENDER_ID_FORMAT.match(sender_id))


class StaticSenderIdResolver:
    """Applies the platform-wide sender-id rules without a per-user entitlement lookup.

    Returns ``None`` whenever the default sender id should be used.
    """

    async def resolve(self, user_id: str, requested_sender_id: Optional[str]) -> Optional[str]:
        if not requested_sender_id or not requested_sender_id.strip():
            return None

        candidate = requested_sender_id.strip().upper()
        if candidate in DEPRECATED_SENDER_IDS:
            logger.info("Deprecated sender id %r replaced by default.", requested_sender_id)
            return None
        if not is_valid_sender_id_format(candidate):
            logger.info("Invalid sender id format %r replaced by default.", requested_sender_id)
            return None
        return candidate
