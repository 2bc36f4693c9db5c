from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .overrides import GatewayOverride


class MessageIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str
    text: str
    sender_id: Optional[str] = Field(None, alias="from")
    campaign_id: Optional[str] = Field(None, alias="campaignId")

    @field_validator("to", "text")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v


class DispatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: MessageIn
    user_id: str = Field(..., alias="userId")

    @field_validator("user_id", mode="before")
    @classmethod
    def user_id_as_text(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if isinstance(v, str) and not v.strip():
            raise ValueError("must not be blank")
        return v


class OverrideIn(BaseModel):
    override_type: GatewayOverride
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None


class OverrideOut(BaseModel):
    override_type: GatewayOverride
    effective: GatewayOverride
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None
    updated_at: Optional[datetime] = None


class GatewayStatusOut(BaseModel):
    gateway: str
    status: str
    balance: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    last_checked: datetime


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None


def describe_errors(errors: List[Dict[str, Any]]) -> str:
    """Flatten pydantic errors into ``field: reason`` pairs for a client-facing message."""
    parts = []
    for err in errors:
        location = ".".join(str(item) for item in err.get("loc", ()))
        parts.append(f"{location or 'body'}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)
