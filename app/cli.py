from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import typer
import uvicorn

from app.core.config import Settings, get_settings
from app.core.logger import mask_secrets
from desktop.voice_client.app import ask_once, run_session
from desktop.voice_client.config.store import load_settings, save_settings
from desktop.voice_client.services.api import ProxyAPI, ProxyError

cli = typer.Typer(name="erpvoice", help="Voice front-end for ERPNext")
config_cli = typer.Typer(help="Configuration")

cli.add_typer(config_cli, name="config")


def _client_settings(base_url: Optional[str], user_id: Optional[int]):
    settings = load_settings()
    if base_url:
        settings.server.base_url = base_url
    if user_id is not None:
        settings.session.user_id = user_id
    return settings


@cli.command()
def serve(reload: bool = typer.Option(False, "--reload", help="Reload on code changes")) -> None:
    """Start the proxy server."""
    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=reload)


@cli.command()
def ask(
    text: str,
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Proxy server URL"),
    user_id: Optional[int] = typer.Option(None, "--user-id"),
) -> None:
    """Process one typed command and print the reply."""
    settings = _client_settings(base_url, user_id)
    reply = asyncio.run(ask_once(text, settings))
    if reply is None:
        typer.echo("Nothing to process.")
        raise typer.Exit(code=1)
    typer.echo(reply.text)
    if reply.status == "error":
        raise typer.Exit(code=2)


@cli.command()
def listen(
    once: bool = typer.Option(False, "--once", help="Stop after a single exchange"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Proxy server URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Run a voice session on the system microphone until interrupted."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)
    settings = _client_settings(base_url, None)
    try:
        asyncio.run(run_session(settings, echo=typer.echo, once=once))
    except KeyboardInterrupt:
        typer.echo("Stopped.")


async def _fetch_history(base_url: Optional[str], limit: int):
    settings = _client_settings(base_url, None)
    api = ProxyAPI(settings)
    try:
        return await api.list_commands(settings.session.user_id, limit)
    finally:
        await api.close()


@cli.command()
def history(
    limit: int = typer.Option(20, "--limit", "-n"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Proxy server URL"),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Print recent commands, newest first."""
    try:
        records = asyncio.run(_fetch_history(base_url, limit))
    except ProxyError as exc:
        typer.echo(f"Cannot load history: {exc}")
        raise typer.Exit(code=1)
    if as_json:
        typer.echo(
            json.dumps(
                [
                    {
                        "id": r.id,
                        "command": r.command,
                        "response": r.response,
                        "status": r.status,
                        "timestamp": r.timestamp,
                    }
                    for r in records
                ],
                ensure_ascii=False,
            )
        )
        return
    for record in records:
        typer.echo(f"{record.timestamp or '-'} [{record.status}] {record.command}")
        if record.response:
            typer.echo(f"    {record.response}")


async def _connect(base_url: Optional[str], url: str, api_key: str, api_secret: str, test: bool):
    settings = _client_settings(base_url, None)
    api = ProxyAPI(settings)
    try:
        if test:
            result = await api.test_connection(url, api_key, api_secret)
            if not result.get("success"):
                return False, result.get("message") or "Connection test failed"
        connection = await api.save_connection(
            settings.session.user_id, url=url, api_key=api_key, api_secret=api_secret
        )
        return True, f"Connected to {connection.url}"
    finally:
        await api.close()


@cli.command()
def connect(
    url: str,
    api_key: str = typer.Option(..., "--api-key", prompt=True),
    api_secret: str = typer.Option(..., "--api-secret", prompt=True, hide_input=True),
    test: bool = typer.Option(True, "--test/--no-test", help="Check the credentials first"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Proxy server URL"),
) -> None:
    """Store the ERPNext connection for the configured user."""
    try:
        ok, message = asyncio.run(_connect(base_url, url, api_key, api_secret, test))
    except ProxyError as exc:
        typer.echo(f"Cannot reach the proxy: {exc}")
        raise typer.Exit(code=1)
    typer.echo(message)
    if not ok:
        raise typer.Exit(code=1)


@config_cli.command("print")
def config_print():
    s = Settings()
    typer.echo(json.dumps(mask_secrets(s.model_dump()), ensure_ascii=False, default=str))


@config_cli.command("client")
def config_client(
    base_url: Optional[str] = typer.Option(None, "--base-url"),
    user_id: Optional[int] = typer.Option(None, "--user-id"),
    result_delay: Optional[float] = typer.Option(None, "--result-delay"),
):
    """Show or update the voice client settings file."""
    settings = _client_settings(base_url, user_id)
    if result_delay is not None:
        settings.session.result_delay_seconds = result_delay
    if base_url or user_id is not None or result_delay is not None:
        save_settings(settings)
    typer.echo(
        json.dumps(
            {
                "server": {"base_url": settings.server.base_url},
                "session": {
                    "user_id": settings.session.user_id,
                    "result_delay_seconds": settings.session.result_delay_seconds,
                },
            }
        )
    )


if __name__ == "__main__":
    cli()
