from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, configure_logging
from .handler import ComfortHandler
from .llm import UpstreamClient
from .rate_limit import FixedWindowRateLimiter

COMFORT_PATH = "/api/comfort"


def create_app(
    settings: Settings | None = None,
    *,
    limiter: FixedWindowRateLimiter | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    limiter = limiter or FixedWindowRateLimiter(
        window_seconds=settings.rate_limit_window,
        max_requests=settings.rate_limit_max,
        max_entries=settings.rate_limit_max_entries,
    )
    upstream = UpstreamClient(settings, client=http_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if http_client is None:
            await upstream.aclose()

    app = FastAPI(title="ventcomfort", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.handler = ComfortHandler(settings, limiter, upstream)

    @app.api_route(COMFORT_PATH, methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"])
    async def comfort(request: Request):
        peer = request.client.host if request.client else None
        result = await request.app.state.handler.handle(
            request.method,
            request.headers,
            peer,
            request.body,
        )
        return JSONResponse(
            status_code=result.status,
            content=result.body,
            headers=result.headers,
            media_type="application/json; charset=utf-8",
        )

    return app


def build_app() -> FastAPI:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return create_app(settings)
