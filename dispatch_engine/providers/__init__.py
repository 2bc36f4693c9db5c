from .base import BaseProvider, GatewayId, OutboundMessage, SendResult
from .bulkgate import BulkGateProvider
from .bulksms import BulkSMSProvider

__all__ = [
    "BaseProvider",
    "BulkGateProvider",
    "BulkSMSProvider",
    "GatewayId",
    "OutboundMessage",
    "SendResult",
]
