import enum
import logging
from dataclasses import dataclass, replace
from typing import Any, Optional

import httpx

from ..countries import CountryCode
from ..errors import DispatchError, NetworkError

logger = logging.getLogger(__name__)


class GatewayId(str, enum.Enum):
    BULKSMS = "bulksms"
    BULKGATE = "bulkgate"


@dataclass(frozen=True)
class OutboundMessage:
    to: str
    text: str
    sender_id: Optional[str] = None
    campaign_id: Optional[str] = None


@dataclass(frozen=True)
class SendResult:
    success: bool
    gateway: GatewayId
    message_id: Optional[str] = None
    error: Optional[str] = None
    cost: Optional[int] = None
    error_type: Optional[str] = None
    protocol: Optional[str] = None

    def with_cost(self, cost: int) -> "SendResult":
        return replace(self, cost=cost)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "gateway": self.gateway.value}
        if self.message_id is not None:
            payload["messageId"] = self.message_id
        if self.error is not None:
            payload["error"] = self.error
        if self.cost is not None:
            payload["cost"] = self.cost
        return payload


@dataclass(frozen=True)
class ProviderResponse:
    status_code: int
    data: Any
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class BaseProvider:
    """One upstream gateway. ``send`` never raises for provider or network failures."""

    gateway: GatewayId

    def __init__(self, client: httpx.AsyncClient, *, timeout: float):
        self.client = client
        self.timeout = timeout

    async def send(self, message: OutboundMessage, *, country: CountryCode) -> SendResult:  # pragma: no cover - interface
        raise NotImplementedError

    async def get_balance(self) -> dict[str, Any]:
        return {'ok': False, 'error': 'NOT_SUPPORTED'}

    def succeeded(self, message_id: Any, protocol: Optional[str] = None) -> SendResult:
        return SendResult(
            success=True,
            gateway=self.gateway,
            message_id=None if message_id is None else str(message_id),
            protocol=protocol,
        )

    def failed(self, exc: DispatchError, protocol: Optional[str] = None) -> SendResult:
        logger.warning(
            "Provider send failed: %s",
            exc,
            extra={"gateway": self.gateway.value, "error_type": exc.error_type, "protocol": protocol},
        )
        return SendResult(
            success=False,
            gateway=self.gateway,
            error=str(exc),
            error_type=exc.error_type,
            protocol=protocol,
        )

    async def post_json(
        self, url: str, payload: dict[str, Any], headers: Optional[dict[str, str]] = None
    ) -> ProviderResponse:
        """POST once and decode the body; transport failures become ``NetworkError``."""
        request_headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        request_headers.update(headers or {})
        try:
            resp = await self.client.post(url, json=payload, headers=request_headers, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"{self.gateway.value} request timed out after {self.timeout}s") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"{self.gateway.value} connection error: {exc}") from exc
        return _decode(resp)

    async def get_json(self, url: str, headers: Optional[dict[str, str]] = None) -> ProviderResponse:
        request_headers = {'Accept': 'application/json'}
        request_headers.update(headers or {})
        try:
            resp = await self.client.get(url, headers=request_headers, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"{self.gateway.value} request timed out after {self.timeout}s") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"{self.gateway.value} connection error: {exc}") from exc
        return _decode(resp)


def _decode(resp: httpx.Response) -> ProviderResponse:
    try:
        data = resp.json() if resp.content else None
    except ValueError:
        data = None
    return ProviderResponse(status_code=resp.status_code, data=data, text=resp.text[:300])
