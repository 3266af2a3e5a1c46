"""
Wire models for API envelopes and token responses.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ResponseEnvelope(BaseModel):
    """Standard API envelope: {"status", "message", "data", "error"}."""

    model_config = ConfigDict(extra="allow")

    status: Optional[Union[str, int]] = None
    message: Optional[str] = None
    data: Any = None
    error: Any = None


class TokenPayload(BaseModel):
    """
    Token endpoint response body.

    Only the token pair is validated. ``token_type``, ``expires_in`` and any
    other provider fields are ignored, whatever their shape.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    refresh_token: Optional[str] = None


def is_envelope(payload: Any) -> bool:
    return isinstance(payload, dict) and "data" in payload and (
        "status" in payload or "message" in payload or "error" in payload
    )


def unwrap_data(payload: Any) -> Any:
    """Return the envelope's ``data`` field, or the payload itself when it is not an envelope."""
    if is_envelope(payload):
        try:
            return ResponseEnvelope.model_validate(payload).data
        except ValidationError:
            return payload["data"]
    return payload


def envelope_message(payload: Any) -> Optional[str]:
    """Best-effort human readable message from an error body."""
    if not isinstance(payload, dict):
        return None
    try:
        envelope = ResponseEnvelope.model_validate(payload)
    except ValidationError:
        return None
    if envelope.message:
        return envelope.message
    if isinstance(envelope.error, str):
        return envelope.error
    detail = payload.get("detail")
    return str(detail) if detail else None
