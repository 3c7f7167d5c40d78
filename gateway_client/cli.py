"""Command line interface for the gateway client."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import click

from .clients import GatewayChatClient, GatewayConfigClient, GatewayDomainClient
from .config import (
    ADMIN_SCOPES,
    GatewayClientOptions,
    read_raw_value,
    resolve_options,
)
from .errors import GatewayClientError

CHAT_SCOPES: tuple[str, ...] = ("operator.read", "operator.write")

ClientT = TypeVar("ClientT", bound=GatewayDomainClient)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _resolve(
    ctx: click.Context, default_scopes: Sequence[str]
) -> GatewayClientOptions:
    params: dict[str, Any] = ctx.find_root().obj
    try:
        options = resolve_options(default_scopes=default_scopes, **params)
    except GatewayClientError as err:
        raise click.ClickException(str(err)) from err
    _configure_logging(options.debug)
    return options


def _echo_json(value: Any) -> None:
    click.echo(json.dumps(value, indent=2))


def _run(
    client: ClientT,
    action: Callable[[ClientT], Awaitable[Any]],
) -> None:
    """Run one client action, print its JSON result and always disconnect."""

    async def _main() -> Any:
        try:
            return await action(client)
        finally:
            await client.close()

    try:
        result = asyncio.run(_main())
    except GatewayClientError as err:
        raise click.ClickException(str(err)) from err
    _echo_json(result)


@click.group()
@click.option("--url", help="Gateway WebSocket URL.")
@click.option("--token", help="Gateway bearer token.")
@click.option("--password", help="Gateway password.")
@click.option("--cookie", help="Explicit Cookie header for the WebSocket upgrade.")
@click.option("--scopes", help="Comma-separated operator scopes.")
@click.option("--device-key", "device_key_file", help="Ed25519 device key (PEM).")
@click.option("--profile", type=click.Path(dir_okay=False), help="YAML profile.")
@click.option("--debug", is_flag=True, help="Verbose logging.")
@click.pass_context
def cli(ctx: click.Context, **params: Any) -> None:
    """Gateway protocol client."""
    ctx.obj = params


@cli.group()
def config() -> None:
    """Read and write the gateway configuration."""


@config.command("get")
@click.pass_context
def config_get(ctx: click.Context) -> None:
    """Print the current configuration snapshot."""
    client = GatewayConfigClient(_resolve(ctx, ADMIN_SCOPES))
    _run(client, lambda c: c.get())


@config.command("schema")
@click.pass_context
def config_schema(ctx: click.Context) -> None:
    """Print the configuration schema."""
    client = GatewayConfigClient(_resolve(ctx, ADMIN_SCOPES))
    _run(client, lambda c: c.schema())


@config.command("set")
@click.option("--base-hash", help="Hash of the snapshot being replaced.")
@click.option("--raw", help="Inline raw config document.")
@click.option("--raw-file", type=click.Path(dir_okay=False))
@click.pass_context
def config_set(
    ctx: click.Context, base_hash: str | None, raw: str | None, raw_file: str | None
) -> None:
    """Replace the configuration document."""
    document = _read_raw(raw, raw_file)
    client = GatewayConfigClient(_resolve(ctx, ADMIN_SCOPES))

    async def action(c: GatewayConfigClient) -> Any:
        resolved_hash = base_hash or await c.current_hash()
        return await c.set(document, base_hash=resolved_hash)

    _run(client, action)


@config.command("patch")
@click.option("--base-hash", help="Hash of the snapshot being replaced.")
@click.option("--raw", help="Inline raw config document.")
@click.option("--raw-file", type=click.Path(dir_okay=False))
@click.option("--session-key")
@click.option("--note")
@click.option("--restart-delay-ms", type=int)
@click.pass_context
def config_patch(
    ctx: click.Context,
    base_hash: str | None,
    raw: str | None,
    raw_file: str | None,
    session_key: str | None,
    note: str | None,
    restart_delay_ms: int | None,
) -> None:
    """Merge a partial document into the configuration."""
    document = _read_raw(raw, raw_file)
    client = GatewayConfigClient(_resolve(ctx, ADMIN_SCOPES))

    async def action(c: GatewayConfigClient) -> Any:
        return await c.patch(
            document,
            base_hash=base_hash or await c.current_hash(),
            session_key=session_key,
            note=note,
            restart_delay_ms=restart_delay_ms,
        )

    _run(client, action)


@config.command("apply")
@click.option("--base-hash", help="Hash of the snapshot being replaced.")
@click.option("--raw", help="Inline raw config document.")
@click.option("--raw-file", type=click.Path(dir_okay=False))
@click.option("--session-key")
@click.option("--note")
@click.option("--restart-delay-ms", type=int)
@click.pass_context
def config_apply(
    ctx: click.Context,
    base_hash: str | None,
    raw: str | None,
    raw_file: str | None,
    session_key: str | None,
    note: str | None,
    restart_delay_ms: int | None,
) -> None:
    """Replace the configuration and restart the gateway."""
    document = _read_raw(raw, raw_file)
    client = GatewayConfigClient(_resolve(ctx, ADMIN_SCOPES))

    async def action(c: GatewayConfigClient) -> Any:
        return await c.apply(
            document,
            base_hash=base_hash or await c.current_hash(),
            session_key=session_key,
            note=note,
            restart_delay_ms=restart_delay_ms,
        )

    _run(client, action)


def _read_raw(raw: str | None, raw_file: str | None) -> str:
    try:
        return read_raw_value(raw, raw_file)
    except GatewayClientError as err:
        raise click.ClickException(str(err)) from err


@cli.group()
def chat() -> None:
    """Chat session messaging."""


@chat.command("history")
@click.argument("session_key")
@click.option("--limit", type=int)
@click.pass_context
def chat_history(ctx: click.Context, session_key: str, limit: int | None) -> None:
    """Print the message history of a session."""
    client = GatewayChatClient(_resolve(ctx, CHAT_SCOPES))
    _run(client, lambda c: c.history(session_key, limit=limit))


@chat.command("send")
@click.argument("session_key")
@click.argument("message")
@click.option("--thinking")
@click.option("--idempotency-key")
@click.pass_context
def chat_send(
    ctx: click.Context,
    session_key: str,
    message: str,
    thinking: str | None,
    idempotency_key: str | None,
) -> None:
    """Send a message to a session."""
    client = GatewayChatClient(_resolve(ctx, CHAT_SCOPES))
    _run(
        client,
        lambda c: c.send(
            session_key,
            message,
            thinking=thinking,
            idempotency_key=idempotency_key,
        ),
    )


@chat.command("abort")
@click.argument("session_key")
@click.option("--run-id")
@click.pass_context
def chat_abort(ctx: click.Context, session_key: str, run_id: str | None) -> None:
    """Abort running turns in a session."""
    client = GatewayChatClient(_resolve(ctx, CHAT_SCOPES))
    _run(client, lambda c: c.abort(session_key, run_id=run_id))


@chat.command("inject")
@click.argument("session_key")
@click.argument("message")
@click.option("--label")
@click.pass_context
def chat_inject(
    ctx: click.Context, session_key: str, message: str, label: str | None
) -> None:
    """Append a message to a session transcript without running the agent."""
    client = GatewayChatClient(_resolve(ctx, CHAT_SCOPES))
    _run(client, lambda c: c.inject(session_key, message, label=label))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
