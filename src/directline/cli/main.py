"""
CLI interface for the Direct Line client.

This module provides the command line application using Typer, with support for:
- Chatting with a bot: posting messages and printing its replies
- Exporting a configuration template
"""

import asyncio
import functools
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from directline.clients import create_client
from directline.config.settings import AppSettings, config_manager, load_config
from directline.connection.bot_connection import BotConnection
from directline.core.errors import BotConnectionError
from directline.core.models import Activity, Auth, ChannelAccount

app = typer.Typer(
    name="directline",
    help="Talk to a Bot Framework bot over Direct Line",
    no_args_is_help=True,
)
console = Console()


class CLIError(Exception):
    """User-friendly CLI error."""

    def __init__(self, message: str, exit_code: int = 1):
        self.message = message
        self.exit_code = exit_code
        super().__init__(message)


def handle_cli_error(func):
    """Decorator to handle CLI errors gracefully."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except CLIError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(e.exit_code) from None
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            raise typer.Exit(130) from None

    return wrapper


def configure_logging(settings: AppSettings, debug: bool = False) -> None:
    level = logging.DEBUG if debug else getattr(logging, settings.log_level)
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_bot_connection(
    settings: AppSettings, secret: str | None = None, token: str | None = None
) -> BotConnection:
    """Build a connection from CLI credentials, falling back to settings."""
    if token:
        auth = Auth.token(token)
    elif secret:
        auth = Auth.secret(secret)
    else:
        try:
            auth = settings.get_auth()
        except ValueError as e:
            raise CLIError(str(e)) from e

    return BotConnection(create_client(), auth)


def display_activity(activity: Activity) -> None:
    """Print an activity received from the bot."""
    sender = (activity.from_.name or activity.from_.id) if activity.from_ else "bot"

    if activity.is_message:
        body = activity.text or ""
        if activity.attachments:
            kinds = ", ".join(a.content_type for a in activity.attachments)
            body += f"\n[dim]Attachments: {kinds}[/dim]"
        if activity.suggested_actions and activity.suggested_actions.actions:
            titles = " | ".join(
                a.title or str(a.value) for a in activity.suggested_actions.actions
            )
            body += f"\n[dim]Suggested: {titles}[/dim]"
        console.print(Panel.fit(body or "[dim](empty message)[/dim]", title=sender, border_style="cyan"))
    else:
        console.print(f"[dim]{sender}: {activity.type} activity[/dim]")


async def run_chat(
    connection: BotConnection,
    messages: list[str],
    sender: ChannelAccount,
    wait: float,
    locale: str | None = None,
) -> list[Activity]:
    """
    Post messages and collect the bot's replies.

    Args:
        connection: Connection to the bot
        messages: Texts to post, in order
        sender: Account the messages are sent from
        wait: Seconds to keep listening after the last post
        locale: Optional locale of the posted messages

    Returns:
        Activities received from other participants
    """
    replies: list[Activity] = []

    async with connection.activities.subscribe() as activities:

        async def collect() -> None:
            async for activity in activities:
                if activity.sender_id == sender.id:
                    continue
                replies.append(activity)
                display_activity(activity)

        collector = asyncio.create_task(collect())
        try:
            for text in messages:
                response = await connection.post_activity(
                    Activity.message(text=text, sender=sender, locale=locale)
                )
                console.print(f"[dim]> {text} ({response.id})[/dim]")

            done, _ = await asyncio.wait({collector}, timeout=wait)
            if done:
                collector.result()
        finally:
            if not collector.done():
                collector.cancel()
                await asyncio.gather(collector, return_exceptions=True)

    return replies


@app.command("chat")
@handle_cli_error
def chat_command(
    messages: list[str] = typer.Argument(..., help="Message(s) to send to the bot"),
    wait: float = typer.Option(
        5.0, "--wait", "-w", min=0, help="Seconds to wait for replies after sending"
    ),
    secret: str | None = typer.Option(
        None, "--secret", help="Direct Line secret"
    ),
    token: str | None = typer.Option(
        None, "--token", help="Direct Line token (takes precedence over the secret)"
    ),
    user_id: str | None = typer.Option(
        None, "--user-id", "-u", help="Sender id of the posted messages"
    ),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="YAML configuration file"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Send messages to a bot and print its replies."""
    try:
        settings = load_config(config)
    except ValueError as e:
        raise CLIError(f"Invalid configuration: {e}") from e

    configure_logging(settings, debug)

    sender = ChannelAccount(
        id=user_id or settings.client.user_id, name=settings.client.user_name
    )
    connection = create_bot_connection(settings, secret=secret, token=token)

    async def session() -> list[Activity]:
        async with connection:
            return await run_chat(
                connection, messages, sender, wait, locale=settings.client.locale
            )

    try:
        replies = asyncio.run(session())
    except BotConnectionError as e:
        raise CLIError(f"{type(e).__name__}: {e}") from e

    console.print(f"[green]{len(replies)} repl{'y' if len(replies) == 1 else 'ies'} received[/green]")


@app.command("config-template")
@handle_cli_error
def config_template_command(
    output: Path = typer.Argument(..., help="Where to write the YAML template"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
):
    """Write a configuration template."""
    if output.exists() and not force:
        raise CLIError(f"{output} already exists (use --force to overwrite)")

    config_manager.export_config_template(output)
    console.print(f"[green]Configuration template written to {output}[/green]")
