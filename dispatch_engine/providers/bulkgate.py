"""BulkGate adapter (gateway B).

BulkGate exposes two incompatible send APIs. A bearer token is tried against
the v2 API first; when v2 answers 401 or 404, or when the configured key is an
``application_id:application_token`` pair, the legacy v1 ``simple/transactional``
API is used instead. Both report success as a ``data`` entry whose ``status``
is ``accepted``.

This protocol fallback happens inside one attempt. Falling back to another
provider is the dispatcher's job.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import GatewayCredentials
from ..cost import is_unicode
from ..countries import CountryCode
from ..errors import DispatchError, GatewayAuthError, GatewayRejected
from ..metrics import SMS_BULKGATE_PROTOCOL_FALLBACKS_TOTAL
from ..phone import normalize_destination
from .base import BaseProvider, GatewayId, OutboundMessage, ProviderResponse, SendResult

logger = logging.getLogger(__name__)

PROTOCOL_V2 = "v2"
PROTOCOL_V1 = "v1"

V2_FALLBACK_STATUSES = (401, 404)
AUTH_FAILURE_STATUSES = (401, 403, 404)
ACCEPTED = "accepted"


def _first_entry(envelope: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(envelope, dict):
        return None
    data = envelope.get('data')
    if isinstance(data, list):
        return data[0] if data and isinstance(data[0], dict) else None
    if isinstance(data, dict):
        return data
    return None


def _error_message(envelope: Any, entry: Optional[Dict[str, Any]], default: str) -> str:
    for source in (entry, envelope):
        if not isinstance(source, dict):
            continue
        error = source.get('error')
        if isinstance(error, dict) and error.get('message'):
            return str(error['message'])
        if isinstance(error, str) and error:
            return error
    return default


def _country_param(country: CountryCode) -> Optional[str]:
    return None if country == CountryCode.UNKNOWN else country.value.lower()


class BulkGateProvider(BaseProvider):
    gateway = GatewayId.BULKGATE

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: GatewayCredentials,
        *,
        v2_base_url: str = "https://api.bulkgate.com/v2.0",
        v1_base_url: str = "https://portal.bulkgate.com/api/1.0",
        info_url: str = "https://portal.bulkgate.com/api/2.0/advanced/info",
        timeout: float = 10.0,
    ):
        super().__init__(client, timeout=timeout)
        self.credentials = credentials
        self.v2_base_url = v2_base_url.rstrip('/')
        self.v1_base_url = v1_base_url.rstrip('/')
        self.info_url = info_url

    async def send(self, message: OutboundMessage, *, country: CountryCode) -> SendResult:
        protocol = None
        try:
            number = normalize_destination(message.to, country).lstrip('+')
            if not self.credentials.bulkgate_api_key:
                raise GatewayAuthError("BulkGate API key is not configured")

            if self.credentials.bulkgate_uses_bearer:
                protocol = PROTOCOL_V2
                try:
                    return await self._send_v2(message, number, country)
                except GatewayAuthError as exc:
                    if exc.status_code not in V2_FALLBACK_STATUSES:
                        raise
                    SMS_BULKGATE_PROTOCOL_FALLBACKS_TOTAL.labels(status_code=str(exc.status_code)).inc()
                    logger.info(
                        "BulkGate v2 answered %s, retrying on the v1 protocol.",
                        exc.status_code,
                        extra={"gateway": self.gateway.value},
                    )

            protocol = PROTOCOL_V1
            return await self._send_v1(message, number, country)
        except DispatchError as exc:
            return self.failed(exc, protocol=protocol)

    async def _send_v2(self, message: OutboundMessage, number: str, country: CountryCode) -> SendResult:
        payload = {
            'recipients': [{'number': number, 'country': _country_param(country)}],
            'text': message.text,
            'sender_id': message.sender_id,
            'sender_type': 'text',
            'unicode': is_unicode(message.text),
        }
        headers = {'Authorization': f"Bearer {self.credentials.bulkgate_api_key}"}
        resp = await self.post_json(f"{self.v2_base_url}/sms/send", payload, headers)
        return self._parse_send_response(resp, PROTOCOL_V2)

    async def _send_v1(self, message: OutboundMessage, number: str, country: CountryCode) -> SendResult:
        application_id, application_token = self.credentials.bulkgate_application()
        payload = {
            'application_id': application_id,
            'application_token': application_token,
            'number': number,
            'text': message.text,
            'country': _country_param(country),
            'sender_id': 'text',
            'sender_id_value': message.sender_id,
            'unicode': is_unicode(message.text),
        }
        resp = await self.post_json(f"{self.v1_base_url}/simple/transactional", payload)
        return self._parse_send_response(resp, PROTOCOL_V1)

    def _parse_send_response(self, resp: ProviderResponse, protocol: str) -> SendResult:
        entry = _first_entry(resp.data)
        if resp.ok and entry is not None and entry.get('status') == ACCEPTED:
            logger.info(
                "BulkGate accepted message.",
                extra={"gateway": self.gateway.value, "protocol": protocol},
            )
            return self.succeeded(entry.get('sms_id'), protocol=protocol)

        reason = _error_message(resp.data, entry, 'Failed to send via BulkGate')
        detail = f"BulkGate {protocol} HTTP {resp.status_code}: {reason}"
        if resp.status_code in AUTH_FAILURE_STATUSES:
            raise GatewayAuthError(detail, resp.status_code)
        raise GatewayRejected(detail, resp.status_code)

    async def get_balance(self) -> Dict[str, Any]:
        application_id, application_token = self.credentials.bulkgate_application()
        if not application_id:
            return {'ok': False, 'error': 'Missing BULKGATE_API_KEY'}
        payload = {'application_id': application_id, 'application_token': application_token}
        try:
            resp = await self.post_json(self.info_url, payload)
        except DispatchError as exc:
            return {'ok': False, 'error': str(exc)}
        if not resp.ok:
            return {'ok': False, 'error': f"HTTP {resp.status_code}: {_error_message(resp.data, None, resp.text[:100])}"}
        data = resp.data.get('data') if isinstance(resp.data, dict) else None
        if not isinstance(data, dict):
            return {'ok': False, 'error': 'Unexpected response format from BulkGate API'}
        return {'ok': True, 'balance': data.get('credit', 0), 'currency': data.get('currency'), 'raw': resp.data}
