"""Dispatch orchestration: routing, primary/fallback attempts and result assembly.

A dispatch walks a small state machine::

    INIT -> ATTEMPT_PRIMARY -> DONE
                            -> ATTEMPT_FALLBACK -> DONE | DONE_FAILED

Every attempt is recorded in order and the final result is always the last
attempt's result. Attempt logging and credit debit run only once the result is
final and are best effort. Cancelling the caller stops the walk where it is;
nothing is logged or debited for a cancelled dispatch.
"""

import asyncio
import enum
import logging
import time
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from . import metrics
from .collaborators import AttemptLogger, CreditLedger
from .cost import message_cost
from .countries import CountryCode, detect_country
from .errors import ValidationError, UnknownCountryWarning
from .overrides import GatewayOverride, GatewayOverrideStore
from .policy_engine import select_gateways
from .provider_registry import ProviderRegistry
from .providers.base import GatewayId, OutboundMessage, SendResult
from .schemas import DispatchRequest, describe_errors
from .sender_id import DEFAULT_SENDER_ID, SenderIdResolver

logger = logging.getLogger(__name__)


class DispatchState(enum.Enum):
    INIT = "init"
    ATTEMPT_PRIMARY = "attempt_primary"
    ATTEMPT_FALLBACK = "attempt_fallback"
    DONE = "done"
    DONE_FAILED = "done_failed"


class SenderIdSource(str, enum.Enum):
    RESOLVER = "resolver"
    DEFAULT = "default"


@dataclass(frozen=True)
class DispatchAttempt:
    gateway: GatewayId
    result: SendResult
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "gateway": self.gateway.value,
            "result": self.result.to_dict(),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class DispatchResult:
    dispatch_id: str
    final_result: SendResult
    attempts: Tuple[DispatchAttempt, ...]
    fallback_used: bool
    effective_sender_id: str
    sender_id_source: SenderIdSource
    country: CountryCode
    override_used: Optional[GatewayOverride] = None

    def __post_init__(self):
        if not 1 <= len(self.attempts) <= 2:
            raise ValueError("a dispatch has one or two attempts")
        if self.final_result != self.attempts[-1].result:
            raise ValueError("final result must be the last attempt's result")
        if self.fallback_used != (len(self.attempts) == 2):
            raise ValueError("fallback_used must match the number of attempts")
        if len(self.attempts) == 2 and self.attempts[0].gateway == self.attempts[1].gateway:
            raise ValueError("fallback must use a different gateway")

    @property
    def success(self) -> bool:
        return self.final_result.success

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "dispatchId": self.dispatch_id,
            "finalResult": self.final_result.to_dict(),
            "attempts": [attempt.to_dict() for attempt in self.attempts],
            "fallbackUsed": self.fallback_used,
            "effectiveSenderId": self.effective_sender_id,
            "country": self.country.value,
        }
        if self.override_used is not None:
            payload["overrideUsed"] = self.override_used.value
        return payload

    def audit_record(self, user_id: str, message: OutboundMessage) -> dict[str, Any]:
        """Flat record for attempt history, one row per dispatch."""
        first = self.attempts[0]
        return {
            "dispatch_id": self.dispatch_id,
            "user_id": user_id,
            "phone_number": message.to,
            "message": message.text,
            "campaign_id": message.campaign_id,
            "status": "sent" if self.success else "failed",
            "gateway_used": self.final_result.gateway.value,
            "gateway_message_id": self.final_result.message_id,
            "error_message": self.final_result.error,
            "cost_credits": self.final_result.cost or 0,
            "fallback_attempted": self.fallback_used,
            "country_code": self.country.value,
            "gateway_priority": "fallback" if self.fallback_used else "primary",
            "payload": {
                "attempts": [attempt.to_dict() for attempt in self.attempts],
                "senderIdUsed": self.effective_sender_id,
                "senderIdSource": self.sender_id_source.value,
                "overrideUsed": self.override_used.value if self.override_used else None,
                "routingDecision": {
                    "countryCode": self.country.value,
                    "selectedGateway": first.gateway.value,
                    "fallbackGateway": self.attempts[1].gateway.value if self.fallback_used else None,
                    "timestamp": first.timestamp.isoformat(),
                },
            },
        }


@dataclass(frozen=True)
class DispatchOk:
    result: DispatchResult


@dataclass(frozen=True)
class ValidationFailed:
    reason: str


DispatchOutcome = Union[DispatchOk, ValidationFailed]


def parse_dispatch_request(payload: Any) -> Tuple[OutboundMessage, str]:
    """Validate a raw request body. Raises ``ValidationError`` on any missing or malformed field."""
    if not isinstance(payload, Mapping):
        raise ValidationError("request body must be an object")
    try:
        request = DispatchRequest.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(describe_errors(exc.errors())) from exc

    message = OutboundMessage(
        to=request.message.to.strip(),
        text=request.message.text,
        sender_id=request.message.sender_id,
        campaign_id=request.message.campaign_id,
    )
    return message, request.user_id.strip()


class DispatchOrchestrator:
    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        override_store: GatewayOverrideStore,
        sender_id_resolver: SenderIdResolver,
        attempt_logger: AttemptLogger,
        credit_ledger: CreditLedger,
        default_sender_id: str = DEFAULT_SENDER_ID,
        angola_local_heuristic: bool = True,
        collaborator_timeout: float = 10.0,
    ):
        self.registry = registry
        self.override_store = override_store
        self.sender_id_resolver = sender_id_resolver
        self.attempt_logger = attempt_logger
        self.credit_ledger = credit_ledger
        self.default_sender_id = default_sender_id
        self.angola_local_heuristic = angola_local_heuristic
        self.collaborator_timeout = collaborator_timeout

    async def handle_request(self, payload: Any) -> DispatchOutcome:
        """Request boundary: validation failures come back as a value, never as a send."""
        metrics.SMS_DISPATCH_REQUESTS_TOTAL.inc()
        try:
            message, user_id = parse_dispatch_request(payload)
        except ValidationError as exc:
            metrics.SMS_DISPATCH_REJECTED_TOTAL.inc()
            logger.info("Dispatch request rejected: %s", exc)
            return ValidationFailed(reason=str(exc))
        return DispatchOk(await self.dispatch(message, user_id))

    async def dispatch(self, message: OutboundMessage, user_id: str) -> DispatchResult:
        dispatch_id = str(uuid.uuid4())
        log_extra = {"dispatch_id": dispatch_id, "user_id": user_id}

        sender_id, sender_source = await self._resolve_sender_id(user_id, message.sender_id, dispatch_id)
        outbound = replace(message, sender_id=sender_id)

        country = detect_country(message.to, angola_local_heuristic=self.angola_local_heuristic)
        if country == CountryCode.UNKNOWN:
            logger.warning(
                "Could not detect destination country; routing to default provider.",
                extra={**log_extra, "warning": UnknownCountryWarning.__name__},
            )

        override = self.override_store.current()
        primary, fallback = select_gateways(country, override)
        logger.info(
            "Routing dispatch.",
            extra={
                **log_extra,
                "country": country.value,
                "primary": primary.value,
                "fallback": fallback.value,
                "override": override.value,
            },
        )

        state = DispatchState.INIT
        attempts: list[DispatchAttempt] = []
        try:
            while state not in (DispatchState.DONE, DispatchState.DONE_FAILED):
                if state == DispatchState.INIT:
                    state = DispatchState.ATTEMPT_PRIMARY
                elif state == DispatchState.ATTEMPT_PRIMARY:
                    attempt = await self._attempt(primary, outbound, country, dispatch_id)
                    attempts.append(attempt)
                    state = DispatchState.DONE if attempt.result.success else DispatchState.ATTEMPT_FALLBACK
                elif state == DispatchState.ATTEMPT_FALLBACK:
                    metrics.SMS_PROVIDER_FAILOVERS_TOTAL.labels(
                        from_gateway=primary.value, to_gateway=fallback.value
                    ).inc()
                    logger.warning(
                        "Primary gateway failed; trying fallback.",
                        extra={**log_extra, "gateway": primary.value, "fallback": fallback.value},
                    )
                    attempt = await self._attempt(fallback, outbound, country, dispatch_id)
                    attempts.append(attempt)
                    state = DispatchState.DONE if attempt.result.success else DispatchState.DONE_FAILED
        except asyncio.CancelledError:
            logger.info("Dispatch cancelled after %d attempt(s).", len(attempts), extra=log_extra)
            raise

        result = DispatchResult(
            dispatch_id=dispatch_id,
            final_result=attempts[-1].result,
            attempts=tuple(attempts),
            fallback_used=len(attempts) == 2,
            effective_sender_id=sender_id,
            sender_id_source=sender_source,
            country=country,
            override_used=override if override != GatewayOverride.NONE else None,
        )
        metrics.SMS_DISPATCH_FINAL_STATUS_TOTAL.labels(
            status="sent" if result.success else "failed",
            fallback_used=str(result.fallback_used).lower(),
        ).inc()
        logger.info(
            "Dispatch finished.",
            extra={
                **log_extra,
                "success": result.success,
                "gateway": result.final_result.gateway.value,
                "fallback_used": result.fallback_used,
            },
        )

        await self._record(user_id, message, result)
        return result

    async def _resolve_sender_id(
        self, user_id: str, requested: Optional[str], dispatch_id: str
    ) -> Tuple[str, SenderIdSource]:
        try:
            resolved = await self.sender_id_resolver.resolve(user_id, requested)
        except Exception as exc:
            metrics.SMS_COLLABORATOR_FAILURES_TOTAL.labels(collaborator="sender_id_resolver").inc()
            logger.warning(
                "Sender id resolution failed, using default: %s",
                exc,
                extra={"dispatch_id": dispatch_id},
            )
            resolved = None
        if resolved:
            return resolved, SenderIdSource.RESOLVER
        return self.default_sender_id, SenderIdSource.DEFAULT

    async def _attempt(
        self, gateway: GatewayId, message: OutboundMessage, country: CountryCode, dispatch_id: str
    ) -> DispatchAttempt:
        timestamp = datetime.now(timezone.utc)
        started = time.perf_counter()
        try:
            provider = self.registry.get(gateway)
            result = await provider.send(message, country=country)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # adapter bug
            logger.exception("Unexpected error from %s adapter", gateway.value, extra={"dispatch_id": dispatch_id})
            result = SendResult(
                success=False,
                gateway=gateway,
                error=f"Unexpected error: {exc}",
                error_type=type(exc).__name__,
            )
        finally:
            metrics.SMS_PROVIDER_SEND_LATENCY_SECONDS.labels(gateway=gateway.value).observe(
                time.perf_counter() - started
            )

        if result.success:
            result = result.with_cost(message_cost(message.text))
        metrics.SMS_PROVIDER_SEND_ATTEMPTS_TOTAL.labels(
            gateway=gateway.value, outcome="success" if result.success else "failure"
        ).inc()
        return DispatchAttempt(gateway=gateway, result=result, timestamp=timestamp)

    async def _record(self, user_id: str, message: OutboundMessage, result: DispatchResult) -> None:
        await self._best_effort(
            "attempt_logger",
            self.attempt_logger.record(user_id, message, result),
            result.dispatch_id,
        )
        if result.success:
            await self._best_effort(
                "credit_ledger",
                self.credit_ledger.debit(user_id, result.final_result.cost or 0, dispatch_id=result.dispatch_id),
                result.dispatch_id,
            )

    async def _best_effort(self, collaborator: str, call: Awaitable[None], dispatch_id: str) -> None:
        """Await a post-dispatch side effect, bounded by ``collaborator_timeout``. Failures are logged only."""
        try:
            await asyncio.wait_for(call, timeout=self.collaborator_timeout)
        except asyncio.TimeoutError:
            metrics.SMS_COLLABORATOR_FAILURES_TOTAL.labels(collaborator=collaborator).inc()
            logger.warning(
                "%s timed out after %ss.",
                collaborator,
                self.collaborator_timeout,
                extra={"dispatch_id": dispatch_id},
            )
        except Exception as exc:
            metrics.SMS_COLLABORATOR_FAILURES_TOTAL.labels(collaborator=collaborator).inc()
            logger.warning("%s failed: %s", collaborator, exc, extra={"dispatch_id": dispatch_id})
