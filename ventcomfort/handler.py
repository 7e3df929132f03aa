"""One request/response cycle of the comfort endpoint.

Stages run strictly in order and nothing is retried: the first failure
becomes the response.
"""

import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from .comfort import Stage, generate_comfort
from .config import Settings
from .errors import (
    ClientError,
    ComfortError,
    ConfigurationError,
    EmptyModelOutput,
    InvalidJSONBody,
    InvalidSchema,
    MethodNotAllowed,
    NonJsonModelOutput,
    RateLimitError,
    UpstreamError,
    UpstreamHttpError,
    UpstreamTimeout,
)
from .llm import UpstreamClient
from .rate_limit import Denied, FixedWindowRateLimiter, client_identifier
from .sanitize import sanitize_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HandlerResponse:
    status: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)


def decode_body(raw: bytes) -> Any:
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError as e:
        raise InvalidJSONBody() from e


class ComfortHandler:
    def __init__(self, settings: Settings, limiter: FixedWindowRateLimiter, upstream: UpstreamClient):
        self.settings = settings
        self.limiter = limiter
        self.upstream = upstream

    async def handle(
        self,
        method: str,
        headers: Mapping[str, str],
        peer: str | None,
        read_body: Callable[[], Awaitable[bytes]],
    ) -> HandlerResponse:
        start = time.monotonic()
        identifier = client_identifier(headers, peer)
        request_id = ""
        stage = Stage.RECEIVING_REQUEST

        def advance(next_stage: Stage) -> None:
            nonlocal stage
            stage = next_stage

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            if method.upper() != "POST":
                raise MethodNotAllowed()

            advance(Stage.RATE_LIMITING)
            decision = self.limiter.check(identifier)
            if isinstance(decision, Denied):
                raise RateLimitError(decision.retry_after_seconds)

            api_key = self.settings.read_api_key()

            advance(Stage.VALIDATING)
            request = sanitize_request(decode_body(await read_body()))
            request_id = request.request_id

            result = await generate_comfort(
                request,
                upstream=self.upstream,
                api_key=api_key,
                on_stage=advance,
            )
        except ComfortError as exc:
            failed_at = stage
            advance(Stage.FAILED)
            if isinstance(exc, UpstreamError):
                exc.request_id = request_id
            self._log_failure(exc, failed_at, identifier, request_id, elapsed_ms())
            headers_out = {}
            if isinstance(exc, RateLimitError):
                headers_out["Retry-After"] = str(exc.retry_after_seconds)
            return HandlerResponse(status=exc.status, body=exc.body(), headers=headers_out)

        advance(Stage.RESPONDING)
        for warning in result.warnings:
            logger.warning("comfort.payload_warning ip=%s requestId=%s %s", identifier, request_id, warning)
        logger.info(
            "comfort.ok ip=%s requestId=%s model=%s finishReason=%s elapsedMs=%d",
            identifier,
            request_id,
            result.model,
            result.finish_reason,
            elapsed_ms(),
        )
        return HandlerResponse(status=200, body=result.payload.model_dump(mode="json"))

    def _log_failure(self, exc: ComfortError, stage: Stage, identifier: str, request_id: str, elapsed: int) -> None:
        context = f"ip={identifier} requestId={request_id} stage={stage.value} elapsedMs={elapsed}"
        if isinstance(exc, RateLimitError):
            logger.warning("comfort.rate_limited %s retryAfter=%d", context, exc.retry_after_seconds)
        elif isinstance(exc, ClientError):
            logger.info("comfort.invalid_request %s error=%s", context, exc.error)
        elif isinstance(exc, ConfigurationError):
            logger.error("comfort.configuration_error %s error=%s", context, exc.error)
        elif isinstance(exc, UpstreamHttpError):
            logger.warning("comfort.upstream_error %s status=%d", context, exc.upstream_status)
        elif isinstance(exc, UpstreamTimeout):
            logger.warning("comfort.timeout %s aborted=%s", context, exc.aborted)
        elif isinstance(exc, InvalidSchema):
            logger.warning("comfort.invalid_schema %s error=%s raw=%r", context, exc.detail, exc.raw_text)
        elif isinstance(exc, (NonJsonModelOutput, EmptyModelOutput)):
            logger.warning("comfort.non_json %s kind=%s", context, exc.kind)
        else:
            logger.warning("comfort.transport_error %s error=%s", context, exc)
