import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .config import Settings
from .errors import UpstreamHttpError, UpstreamTimeout, UpstreamTransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpstreamResponse:
    status: int
    text: str
    elapsed_ms: int


def resolve_client(client: httpx.AsyncClient | None = None) -> httpx.AsyncClient:
    if client is not None:
        return client
    return httpx.AsyncClient()


class UpstreamClient:
    """Chat-completion caller bound to one deadline per call.

    On timeout the in-flight request is cancelled and its connection released.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.settings = settings
        self.client = resolve_client(client)

    def build_body(self, messages: list[dict[str, str]]) -> dict[str, Any]:
        return {
            "model": self.settings.model,
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
            "stream": False,
            "messages": messages,
        }

    async def complete(self, messages: list[dict[str, str]], *, api_key: str) -> UpstreamResponse:
        loop = asyncio.get_running_loop()
        start = loop.time()
        try:
            resp = await asyncio.wait_for(
                self._post(messages, api_key),
                timeout=self.settings.upstream_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise UpstreamTimeout() from exc
        except httpx.HTTPError as exc:
            raise UpstreamTransportError() from exc
        elapsed_ms = int((loop.time() - start) * 1000)
        logger.debug("upstream responded status=%s elapsed_ms=%d", resp.status_code, elapsed_ms)

        if not resp.is_success:
            raise UpstreamHttpError(status=resp.status_code, body=resp.text)

        return UpstreamResponse(status=resp.status_code, text=resp.text, elapsed_ms=elapsed_ms)

    async def _post(self, messages: list[dict[str, str]], api_key: str) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        return await self.client.post(
            self.settings.completions_url,
            headers=headers,
            json=self.build_body(messages),
            timeout=self.settings.upstream_timeout,
        )

    async def aclose(self) -> None:
        await self.client.aclose()
