import asyncio

import typer
import uvicorn
from rich import print, print_json

from .comfort import generate_comfort
from .config import Settings, configure_logging
from .errors import ClientError, ConfigurationError, InvalidSchema, UpstreamError
from .fallback import pick_comfort
from .llm import UpstreamClient
from .models import ComfortPayload, ComfortRequest
from .sanitize import sanitize_request

app = typer.Typer()


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """ventcomfort CLI entrypoint."""
    if ctx.invoked_subcommand is None:
        print(ctx.get_help())
        raise typer.Exit(code=0)


def _load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ConfigurationError as exc:
        print(f"[red]{exc.error}[/red]")
        raise typer.Exit(code=1)


def _read_api_key(settings: Settings) -> str:
    try:
        return settings.read_api_key()
    except ConfigurationError as exc:
        print(f"[red]{exc.error} in environment.[/red]")
        raise typer.Exit(code=1)


def _print_payload(payload: ComfortPayload) -> None:
    print(f"[bold]Category[/bold]: {payload.category}")
    print("\n[bold]Comfort[/bold]")
    for sentence in payload.comfort:
        print(f"- {sentence}")
    print(f"\n[bold]Affirmation[/bold]: {payload.affirmation}")
    if payload.tags:
        print(f"[dim]tags: {', '.join(payload.tags)}[/dim]")
    print(f"[dim]model: {payload.ext.debug.model or 'unknown'}[/dim]")


def _handle_upstream_failure(exc: UpstreamError, request: ComfortRequest) -> ComfortPayload:
    print(f"[yellow]{exc.error}.[/yellow] Falling back to local comfort.")
    if isinstance(exc, InvalidSchema):
        print(f"[dim]{exc.detail}[/dim]")
    return pick_comfort(request.problem, client_id=request.client_id, request_id=request.request_id)


async def _run_once(settings: Settings, request: ComfortRequest, api_key: str) -> ComfortPayload:
    upstream = UpstreamClient(settings)
    try:
        result = await generate_comfort(request, upstream=upstream, api_key=api_key)
    finally:
        await upstream.aclose()
    for warning in result.warnings:
        print(f"[yellow]- {warning}[/yellow]")
    return result.payload


@app.command()
def comfort(
    problem: str,
    locale: str = typer.Option("", "--locale", help="Preferred reply language, e.g. zh-CN."),
    local: bool = typer.Option(False, "--local", help="Use canned local phrases only."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw comfort.v1 payload."),
):
    """Send one worry through the comfort pipeline."""
    settings = _load_settings()

    try:
        request = sanitize_request({"problem": problem, "locale": locale})
    except ClientError as exc:
        print(f"[red]{exc.error}.[/red]")
        raise typer.Exit(code=2)

    if local:
        payload = pick_comfort(request.problem)
    else:
        api_key = _read_api_key(settings)
        try:
            payload = asyncio.run(_run_once(settings, request, api_key))
        except UpstreamError as exc:
            payload = _handle_upstream_failure(exc, request)

    if as_json:
        print_json(data=payload.model_dump(mode="json"))
    else:
        _print_payload(payload)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Run the HTTP service."""
    settings = _load_settings()
    configure_logging(settings.log_level)
    uvicorn.run("ventcomfort.server:build_app", factory=True, host=host, port=port)


if __name__ == "__main__":
    app()
