"""Turn a raw chat-completion body into a trusted ComfortPayload."""

import json
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from .errors import EmptyModelOutput, InvalidEnvelope, InvalidSchema, NonJsonModelOutput
from .models import CATEGORIES, ComfortPayload, ComfortRequest
from .payload_checks import payload_warnings


@dataclass(frozen=True)
class Envelope:
    content: str
    model: str
    finish_reason: str


@dataclass(frozen=True)
class Parsed:
    value: Any


@dataclass(frozen=True)
class NonJson:
    error: str


ParseResult = Parsed | NonJson


def parse_envelope(raw: str, default_model: str = "") -> Envelope:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidEnvelope(raw_text=raw, error=str(e)) from e
    if not isinstance(data, dict):
        raise InvalidEnvelope(raw_text=raw, error="envelope is not a JSON object")

    choices = data.get("choices")
    choice = choices[0] if isinstance(choices, list) and choices and isinstance(choices[0], dict) else {}
    message = choice.get("message") if isinstance(choice.get("message"), dict) else {}

    content = message.get("content")
    finish_reason = choice.get("finish_reason")
    model = data.get("model")
    return Envelope(
        content=content if isinstance(content, str) else "",
        model=str(model) if model else default_model,
        finish_reason=str(finish_reason) if finish_reason is not None else "",
    )


def extract_brace_span(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return ""
    return text[start : end + 1]


def try_parse(content: str) -> ParseResult:
    """Direct parse first, then the outermost brace span."""
    try:
        return Parsed(json.loads(content))
    except json.JSONDecodeError as e:
        first_error = str(e)

    span = extract_brace_span(content)
    if not span:
        return NonJson(error=first_error)
    try:
        return Parsed(json.loads(span))
    except json.JSONDecodeError as e:
        return NonJson(error=str(e))


def validate_payload(value: Any, raw: str) -> ComfortPayload:
    if not isinstance(value, dict):
        raise InvalidSchema(raw_text=raw, error="model output is not a JSON object")
    try:
        return ComfortPayload.model_validate(value)
    except ValidationError as e:
        raise InvalidSchema(raw_text=raw, error=str(e)) from e


def overlay_server_fields(payload: ComfortPayload, request: ComfortRequest, envelope: Envelope) -> ComfortPayload:
    """Apply values the server knows better than the model.

    Echoed ids only fill gaps the model left; debug fields always come from
    the upstream envelope.
    """
    ext = payload.ext.model_copy(
        update={
            "clientId": payload.ext.clientId or request.client_id,
            "requestId": payload.ext.requestId or request.request_id,
            "debug": payload.ext.debug.model_copy(
                update={"model": envelope.model, "finish_reason": envelope.finish_reason}
            ),
        }
    )
    category = payload.category if payload.category in CATEGORIES else "other"
    return payload.model_copy(update={"ext": ext, "category": category})


@dataclass(frozen=True)
class ModelOutput:
    payload: ComfortPayload
    envelope: Envelope
    warnings: list[str]


def parse_model_output(raw: str, request: ComfortRequest, default_model: str = "") -> ModelOutput:
    envelope = parse_envelope(raw, default_model=default_model)
    if not envelope.content.strip():
        raise EmptyModelOutput()

    result = try_parse(envelope.content)
    if isinstance(result, NonJson):
        raise NonJsonModelOutput(raw_text=envelope.content, error=result.error)

    payload = validate_payload(result.value, envelope.content)
    return ModelOutput(
        payload=overlay_server_fields(payload, request, envelope),
        envelope=envelope,
        warnings=payload_warnings(payload),
    )
