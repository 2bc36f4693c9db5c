import base64
import logging
from typing import Any, Dict

import httpx

from ..config import GatewayCredentials
from ..countries import CountryCode
from ..errors import DispatchError, GatewayAuthError, GatewayRejected
from ..phone import normalize_destination
from .base import BaseProvider, GatewayId, OutboundMessage, ProviderResponse, SendResult

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)


class BulkSMSProvider(BaseProvider):
    """Gateway A: single POST with HTTP Basic auth built from the token pair."""

    gateway = GatewayId.BULKSMS

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: GatewayCredentials,
        *,
        base_url: str = "https://api.bulksms.com",
        timeout: float = 10.0,
    ):
        super().__init__(client, timeout=timeout)
        self.credentials = credentials
        self.base_url = base_url.rstrip('/')

    def _auth_header(self) -> Dict[str, str]:
        if not (self.credentials.bulksms_token_id and self.credentials.bulksms_token_secret):
            raise GatewayAuthError("BulkSMS credentials are not configured")
        token = f"{self.credentials.bulksms_token_id}:{self.credentials.bulksms_token_secret}"
        return {'Authorization': 'Basic ' + base64.b64encode(token.encode()).decode()}

    async def send(self, message: OutboundMessage, *, country: CountryCode) -> SendResult:
        try:
            to = normalize_destination(message.to, country)
            headers = self._auth_header()
            payload = {'to': to, 'from': message.sender_id, 'body': message.text}
            resp = await self.post_json(f"{self.base_url}/v1/messages", payload, headers)
            return self._parse_send_response(resp)
        except DispatchError as exc:
            return self.failed(exc)

    def _parse_send_response(self, resp: ProviderResponse) -> SendResult:
        data = resp.data
        if resp.ok and isinstance(data, list) and data:
            first = data[0] if isinstance(data[0], dict) else {}
            logger.info("BulkSMS accepted message.", extra={"gateway": self.gateway.value})
            return self.succeeded(first.get('id'))

        detail = data.get('detail') if isinstance(data, dict) else None
        reason = detail or 'Failed to send via BulkSMS'
        if resp.status_code in AUTH_FAILURE_STATUSES:
            raise GatewayAuthError(f"BulkSMS HTTP {resp.status_code}: {reason}", resp.status_code)
        raise GatewayRejected(f"BulkSMS HTTP {resp.status_code}: {reason}", resp.status_code)

    async def get_balance(self) -> Dict[str, Any]:
        try:
            resp = await self.get_json(f"{self.base_url}/v1/profile", self._auth_header())
        except DispatchError as exc:
            return {'ok': False, 'error': str(exc)}
        if not resp.ok or not isinstance(resp.data, dict):
            return {'ok': False, 'error': f"HTTP {resp.status_code}: {resp.text}"}
        credit = resp.data.get('credit') or {}
        return {'ok': True, 'balance': credit.get('balance', 0), 'currency': None, 'raw': resp.data}
