from typing import Dict

import httpx

from .config import Settings
from .providers.base import BaseProvider, GatewayId
from .providers.bulkgate import BulkGateProvider
from .providers.bulksms import BulkSMSProvider


class ProviderRegistry:
    def __init__(self):
        self._providers: Dict[GatewayId, BaseProvider] = {}

    def register(self, gateway: GatewayId, provider: BaseProvider) -> None:
        self._providers[GatewayId(gateway)] = provider

    def get(self, gateway: GatewayId) -> BaseProvider:
        return self._providers[GatewayId(gateway)]

    def names(self) -> list[GatewayId]:
        return list(self._providers.keys())

    def __contains__(self, gateway: object) -> bool:
        return gateway in self._providers


def build_registry(settings: Settings, client: httpx.AsyncClient) -> ProviderRegistry:
    """Wire both gateways with the process credentials and a shared HTTP client."""
    credentials = settings.credentials()
    registry = ProviderRegistry()
    registry.register(
        GatewayId.BULKSMS,
        BulkSMSProvider(
            client,
            credentials,
            base_url=settings.bulksms_base_url,
            timeout=settings.provider_timeout_seconds,
        ),
    )
    registry.register(
        GatewayId.BULKGATE,
        BulkGateProvider(
            client,
            credentials,
            v2_base_url=settings.bulkgate_v2_base_url,
            v1_base_url=settings.bulkgate_v1_base_url,
            info_url=settings.bulkgate_info_url,
            timeout=settings.provider_timeout_seconds,
        ),
    )
    return registry
