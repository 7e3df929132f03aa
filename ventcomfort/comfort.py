from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .llm import UpstreamClient
from .models import ComfortPayload, ComfortRequest
from .parsing import parse_model_output
from .prompts import build_messages


class Stage(str, Enum):
    RECEIVING_REQUEST = "receiving_request"
    RATE_LIMITING = "rate_limiting"
    VALIDATING = "validating"
    BUILDING_PROMPT = "building_prompt"
    CALLING_UPSTREAM = "calling_upstream"
    PARSING_RESPONSE = "parsing_response"
    RESPONDING = "responding"
    FAILED = "failed"


@dataclass(frozen=True)
class ComfortResult:
    payload: ComfortPayload
    raw: str
    model: str
    finish_reason: str
    warnings: list[str]
    upstream_ms: int


def _noop(stage: Stage) -> None:
    pass


async def generate_comfort(
    request: ComfortRequest,
    *,
    upstream: UpstreamClient,
    api_key: str,
    on_stage: Callable[[Stage], None] = _noop,
) -> ComfortResult:
    on_stage(Stage.BUILDING_PROMPT)
    messages = build_messages(request)

    on_stage(Stage.CALLING_UPSTREAM)
    resp = await upstream.complete(messages, api_key=api_key)

    on_stage(Stage.PARSING_RESPONSE)
    output = parse_model_output(resp.text, request, default_model=upstream.settings.model)

    return ComfortResult(
        payload=output.payload,
        raw=output.envelope.content,
        model=output.envelope.model,
        finish_reason=output.envelope.finish_reason,
        warnings=output.warnings,
        upstream_ms=resp.elapsed_ms,
    )
