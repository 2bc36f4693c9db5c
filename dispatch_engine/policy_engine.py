from typing import Tuple

from .countries import CountryCode
from .overrides import GatewayOverride
from .providers.base import GatewayId

# PALOP and Timor-Leste prefer BulkGate.
BULKGATE_COUNTRIES = frozenset(
    {CountryCode.AO, CountryCode.MZ, CountryCode.CV, CountryCode.GW, CountryCode.ST, CountryCode.TL}
)

_FORCED = {
    GatewayOverride.FORCE_BULKSMS: GatewayId.BULKSMS,
    GatewayOverride.FORCE_BULKGATE: GatewayId.BULKGATE,
}


def _other(gateway: GatewayId) -> GatewayId:
    return GatewayId.BULKSMS if gateway == GatewayId.BULKGATE else GatewayId.BULKGATE


def select_gateways(
    country: CountryCode,
    override: GatewayOverride = GatewayOverride.NONE,
) -> Tuple[GatewayId, GatewayId]:
    """Return ``(primary, fallback)``; the two are always distinct."""
    forced = _FORCED.get(GatewayOverride(override))
    if forced is not None:
        primary = forced
    elif country in BULKGATE_COUNTRIES:
        primary = GatewayId.BULKGATE
    else:
        primary = GatewayId.BULKSMS
    return primary, _other(primary)
