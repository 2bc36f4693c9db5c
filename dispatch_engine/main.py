import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .collaborators import AttemptLogger, CreditLedger, InMemoryCreditLedger, LoggingAttemptLogger
from .config import Settings, get_settings
from .dispatcher import DispatchOrchestrator, ValidationFailed
from .logging import configure_logging
from .metrics import metrics_content
from .overrides import GatewayOverrideStore
from .provider_registry import build_registry
from .providers.base import GatewayId
from .schemas import ErrorResponse, GatewayStatusOut, OverrideIn, OverrideOut
from .sender_id import SenderIdResolver, StaticSenderIdResolver

logger = logging.getLogger(__name__)


def _error_content(error_code: str, message: str, details: Optional[dict] = None) -> dict:
    return ErrorResponse(error_code=error_code, message=message, details=details).model_dump(exclude_none=True)


def create_app(
    settings: Optional[Settings] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    sender_id_resolver: Optional[SenderIdResolver] = None,
    attempt_logger: Optional[AttemptLogger] = None,
    credit_ledger: Optional[CreditLedger] = None,
) -> FastAPI:
    """Build the HTTP app. A caller-supplied ``client`` is used as-is and not closed on shutdown."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level, settings.service_name)
        logger.info("Starting up %s...", settings.service_name)

        owns_client = client is None
        http_client = client or httpx.AsyncClient(timeout=settings.provider_timeout_seconds)
        registry = build_registry(settings, http_client)
        override_store = GatewayOverrideStore.from_settings(settings)

        app.state.settings = settings
        app.state.registry = registry
        app.state.override_store = override_store
        app.state.orchestrator = DispatchOrchestrator(
            registry,
            override_store=override_store,
            sender_id_resolver=sender_id_resolver or StaticSenderIdResolver(),
            attempt_logger=attempt_logger or LoggingAttemptLogger(),
            credit_ledger=credit_ledger or InMemoryCreditLedger(),
            default_sender_id=settings.default_sender_id,
            angola_local_heuristic=settings.angola_local_heuristic,
            collaborator_timeout=settings.provider_timeout_seconds,
        )
        logger.info("Gateways registered: %s", ", ".join(g.value for g in registry.names()))
        try:
            yield
        finally:
            logger.info("Shutting down %s...", settings.service_name)
            if owns_client:
                await http_client.aclose()

    app = FastAPI(
        title="SMS Gateway Dispatch Engine",
        description="Routes outbound SMS to the right provider with fallback.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def require_admin(x_admin_token: Optional[str] = Header(None)) -> None:
        if not settings.admin_token:
            return
        if not x_admin_token or not secrets.compare_digest(x_admin_token, settings.admin_token):
            logger.warning("Admin authentication failed for gateway override.")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error_code": "UNAUTHORIZED", "message": "Invalid admin token."},
            )

    def require_admin_configured() -> None:
        if not settings.admin_token:
            logger.error("Gateway override change refused: ADMIN_TOKEN is not configured.")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error_code": "FORBIDDEN", "message": "Admin access is not configured."},
            )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if isinstance(exc.detail, dict):
            detail_payload = exc.detail
        else:
            detail_payload = {
                "error_code": "UNAUTHORIZED" if exc.status_code == status.HTTP_401_UNAUTHORIZED else "INTERNAL_ERROR",
                "message": str(exc.detail) if exc.detail else "An unexpected error occurred.",
            }
        content = _error_content(
            detail_payload.get("error_code", "INTERNAL_ERROR"),
            detail_payload.get("message", "An unexpected error occurred."),
            detail_payload.get("details"),
        )
        logger.error(
            "HTTP Exception: %s - %s",
            exc.status_code,
            content["error_code"],
            extra={"path": request.url.path, "error_details": detail_payload},
        )
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        content = _error_content(
            "INVALID_PAYLOAD",
            "Invalid request payload.",
            {"errors": jsonable_encoder(exc.errors())},
        )
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=content)

    @app.post("/api/v1/sms/dispatch", status_code=status.HTTP_200_OK)
    async def dispatch_sms(request: Request):
        try:
            payload = await request.json()
        except ValueError:
            payload = None

        outcome = await request.app.state.orchestrator.handle_request(payload)
        if isinstance(outcome, ValidationFailed):
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content=_error_content("VALIDATION_ERROR", outcome.reason),
            )
        return JSONResponse(content=outcome.result.to_dict())

    @app.get("/api/v1/gateways/{gateway}/status", response_model=GatewayStatusOut)
    async def gateway_status(gateway: str, request: Request):
        try:
            gateway_id = GatewayId(gateway.lower())
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error_code": "NOT_FOUND", "message": f"Unknown gateway '{gateway}'."},
            )
        balance = await request.app.state.registry.get(gateway_id).get_balance()
        if balance.get("ok"):
            return GatewayStatusOut(
                gateway=gateway_id.value,
                status="online",
                balance={"balance": balance.get("balance"), "currency": balance.get("currency")},
                last_checked=datetime.now(timezone.utc),
            )
        logger.warning("Gateway %s status check failed: %s", gateway_id.value, balance.get("error"))
        return GatewayStatusOut(
            gateway=gateway_id.value,
            status="offline",
            error=balance.get("error"),
            last_checked=datetime.now(timezone.utc),
        )

    @app.get("/api/v1/gateway-override", response_model=OverrideOut, dependencies=[Depends(require_admin)])
    async def get_gateway_override(request: Request):
        store: GatewayOverrideStore = request.app.state.override_store
        setting = store.snapshot()
        return OverrideOut(
            override_type=setting.override_type,
            effective=store.current(),
            expires_at=setting.expires_at,
            reason=setting.reason,
            updated_at=setting.updated_at,
        )

    @app.put(
        "/api/v1/gateway-override",
        response_model=OverrideOut,
        dependencies=[Depends(require_admin_configured), Depends(require_admin)],
    )
    async def set_gateway_override(body: OverrideIn, request: Request):
        store: GatewayOverrideStore = request.app.state.override_store
        setting = store.set(body.override_type, expires_at=body.expires_at, reason=body.reason)
        return OverrideOut(
            override_type=setting.override_type,
            effective=store.current(),
            expires_at=setting.expires_at,
            reason=setting.reason,
            updated_at=setting.updated_at,
        )

    @app.get("/healthz", status_code=status.HTTP_200_OK)
    async def healthz():
        return {"status": "ok"}

    @app.get("/metrics", status_code=status.HTTP_200_OK)
    async def get_metrics():
        return metrics_content()

    return app


app = create_app()
