"""Main CLI application using Typer."""
import asyncio
from datetime import datetime
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..chat import ChatMessage, Error, Success
from ..config import load_config
from ..llm import GptModel, ModelProvider
from ..llm.registry import models_for
from ..log import configure_logging
from .providers import open_session

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="parley",
    help="Chat with Yandex and DeepSeek models, keeping long conversations compact",
    no_args_is_help=True,
    add_completion=True,
)
settings_app = typer.Typer(help="Show or change generation settings", no_args_is_help=True)
prompts_app = typer.Typer(help="Manage saved system prompts", no_args_is_help=True)
app.add_typer(settings_app, name="settings")
app.add_typer(prompts_app, name="prompts")

# Console for rich output
console = Console()


@app.callback()
def setup(
    log_level: str = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, error (default: PARLEY_LOG_LEVEL or warning)"
    )
):
    """Configure logging before any command runs."""
    configure_logging(log_level or load_config().log_level)


def _telemetry_line(message: ChatMessage) -> str:
    """Compact token/latency/cost summary for a reply, empty if none."""
    parts = []
    if message.request_tokens is not None or message.response_tokens is not None:
        request = message.request_tokens if message.request_tokens is not None else "?"
        response = message.response_tokens if message.response_tokens is not None else "?"
        parts.append(f"{request}/{response} tokens")
    if message.response_time_ms is not None:
        parts.append(f"{message.response_time_ms} ms")
    if message.cost_usd is not None:
        parts.append(f"${message.cost_usd:.6f}")
    return " | ".join(parts)


def _render_reply(message: ChatMessage) -> None:
    model = message.model.display_name if message.model else "assistant"
    subtitle = _telemetry_line(message) or None
    style = "red" if message.text.startswith("Error:") else "green"
    console.print(Panel(message.text, title=model, subtitle=subtitle, border_style=style))


def _resolve_model(name: str) -> GptModel:
    model = GptModel.from_name(name.upper().replace("-", "_"))
    if model is None:
        names = ", ".join(m.name.lower() for m in GptModel)
        console.print(f"[red]Error: unknown model '{name}'. Choose one of: {names}[/red]")
        raise typer.Exit(code=1)
    return model


@app.command()
def chat():
    """Interactive chat with the selected model."""
    async def _chat():
        async with open_session(load_config(), console) as session:
            orchestrator = session.orchestrator
            snapshot = await orchestrator.snapshot()
            console.print(
                f"[dim]Model: {snapshot.model.display_name}, "
                f"temperature {snapshot.temperature}, max tokens {snapshot.max_tokens}. "
                f"Type 'exit' to quit.[/dim]"
            )

            while True:
                try:
                    prompt = await asyncio.to_thread(console.input, "[bold cyan]You[/bold cyan]: ")
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                if prompt.strip().lower() in ("exit", "quit"):
                    console.print("[dim]Goodbye![/dim]")
                    break
                if not prompt.strip():
                    continue

                with console.status("[dim]Thinking...[/dim]"):
                    await orchestrator.send_prompt(prompt)
                replies = [msg for msg in orchestrator.messages.value if not msg.is_user]
                if replies:
                    _render_reply(max(replies, key=lambda msg: msg.timestamp_ms))

    asyncio.run(_chat())


@app.command()
def send(
    prompt: str = typer.Argument(..., help="Prompt to send")
):
    """Send a single prompt and print the reply."""
    async def _send():
        async with open_session(load_config(), console) as session:
            outcome = await session.orchestrator.send_prompt(prompt)
            if outcome is None:
                console.print("[yellow]Nothing to send: the prompt is blank[/yellow]")
                raise typer.Exit(code=1)

            replies = [msg for msg in session.orchestrator.messages.value if not msg.is_user]
            if isinstance(outcome, Success) and replies:
                _render_reply(max(replies, key=lambda msg: msg.timestamp_ms))
            elif isinstance(outcome, Error):
                console.print(f"[red]Error: {outcome.message}[/red]")
                raise typer.Exit(code=1)

    asyncio.run(_send())


@app.command()
def history(
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Number of most recent messages to show"
    )
):
    """Show the stored conversation."""
    async def _history():
        async with open_session(load_config(), console, with_providers=False) as session:
            messages = session.orchestrator.messages.value[-limit:]
            if not messages:
                console.print("[dim]No messages yet.[/dim]")
                return

            table = Table(title="Conversation")
            table.add_column("Time", style="dim")
            table.add_column("Role")
            table.add_column("Text")
            table.add_column("Telemetry", style="dim")

            for message in messages:
                if message.is_summary:
                    role = "[magenta]summary[/magenta]"
                elif message.is_user:
                    role = "[cyan]user[/cyan]"
                else:
                    role = "[green]assistant[/green]"
                timestamp = datetime.fromtimestamp(message.timestamp_ms / 1000)
                text = message.text if len(message.text) <= 200 else message.text[:200] + "..."
                table.add_row(timestamp.strftime("%Y-%m-%d %H:%M"), role, text, _telemetry_line(message))

            console.print(table)

    asyncio.run(_history())


@app.command()
def clear(
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt"
    )
):
    """Delete the stored conversation."""
    async def _clear():
        if not yes:
            confirm = typer.confirm("Delete the whole conversation?")
            if not confirm:
                console.print("[dim]Aborted.[/dim]")
                return

        async with open_session(load_config(), console, with_providers=False) as session:
            await session.orchestrator.clear_history()
            console.print("[green]Conversation cleared.[/green]")

    asyncio.run(_clear())


@app.command()
def models(
    provider: str = typer.Option(
        None,
        "--provider",
        "-p",
        help="Only list models served by this provider (yandex, deepseek)"
    )
):
    """List the available models."""
    try:
        vendors = [ModelProvider.from_tag(provider)] if provider else list(ModelProvider)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title="Models")
    table.add_column("Name", style="cyan")
    table.add_column("Display name")
    table.add_column("Provider")
    table.add_column("Temperature range")

    for vendor in vendors:
        for model in models_for(vendor):
            table.add_row(
                model.name.lower(),
                model.display_name,
                vendor.tag,
                f"{vendor.min_temperature} - {vendor.max_temperature}",
            )

    console.print(table)


@settings_app.command("show")
def settings_show():
    """Show the current settings."""
    async def _show():
        async with open_session(load_config(), console, with_providers=False) as session:
            current = await session.settings.load()
            prompt = await session.prompts.current_prompt()

            table = Table(title="Settings", show_header=False)
            table.add_column("Setting", style="cyan")
            table.add_column("Value")
            table.add_row("Model", current.selected_model.display_name)
            table.add_row("Temperature", str(current.temperature))
            table.add_row("Max tokens", str(current.max_tokens))
            table.add_row("System prompt", prompt.name if prompt else "(none)")
            console.print(table)

    asyncio.run(_show())


@settings_app.command("temperature")
def settings_temperature(
    value: float = typer.Argument(..., help="Sampling temperature (stored clamped to 0.0 - 2.0)")
):
    """Set the sampling temperature."""
    async def _set():
        async with open_session(load_config(), console, with_providers=False) as session:
            try:
                await session.settings.set_temperature(value)
            except ValueError as e:
                console.print(f"[red]Error: {e}[/red]")
                raise typer.Exit(code=1)
            console.print(f"[green]Temperature set to {await session.settings.temperature()}[/green]")

    asyncio.run(_set())


@settings_app.command("max-tokens")
def settings_max_tokens(
    value: int = typer.Argument(..., help="Completion budget (stored clamped to 1 - 32000)")
):
    """Set the maximum number of tokens per reply."""
    async def _set():
        async with open_session(load_config(), console, with_providers=False) as session:
            await session.settings.set_max_tokens(value)
            console.print(f"[green]Max tokens set to {await session.settings.max_tokens()}[/green]")

    asyncio.run(_set())


@settings_app.command("model")
def settings_model(
    name: str = typer.Argument(..., help="Model name as listed by 'parley models'")
):
    """Select the model used for new turns."""
    model = _resolve_model(name)

    async def _set():
        async with open_session(load_config(), console, with_providers=False) as session:
            await session.settings.set_selected_model(model)
            console.print(f"[green]Model set to {model.display_name}[/green]")

    asyncio.run(_set())


@prompts_app.command("list")
def prompts_list():
    """List saved system prompts."""
    async def _list():
        async with open_session(load_config(), console, with_providers=False) as session:
            prompts = await session.prompts.all_prompts()
            current = await session.prompts.current_prompt()

            table = Table(title="System prompts")
            table.add_column("", width=1)
            table.add_column("ID", style="dim")
            table.add_column("Name", style="cyan")
            table.add_column("Content")

            for prompt in prompts:
                marker = "*" if current is not None and prompt.id == current.id else ""
                preview = prompt.content if len(prompt.content) <= 80 else prompt.content[:80] + "..."
                table.add_row(marker, prompt.id, prompt.name, preview)

            console.print(table)

    asyncio.run(_list())


@prompts_app.command("add")
def prompts_add(
    name: str = typer.Argument(..., help="Prompt name"),
    content: str = typer.Option(None, "--content", "-c", help="Prompt text"),
    file: Path = typer.Option(
        None,
        "--file",
        "-f",
        exists=True,
        dir_okay=False,
        help="Read the prompt text from a file"
    ),
    use: bool = typer.Option(False, "--use", help="Make the new prompt current"),
):
    """Save a new system prompt."""
    text = file.read_text(encoding="utf-8") if file else (content or "")

    async def _add():
        async with open_session(load_config(), console, with_providers=False) as session:
            try:
                prompt = session.prompts.create_prompt(name, text)
            except ValueError as e:
                console.print(f"[red]Error: {e}[/red]")
                raise typer.Exit(code=1)
            await session.prompts.add_prompt(prompt)
            if use:
                await session.prompts.set_current_prompt(prompt.id)
            console.print(f"[green]Prompt added: {prompt.id}[/green]")

    asyncio.run(_add())


@prompts_app.command("use")
def prompts_use(
    prompt_id: str = typer.Argument(..., help="ID of the prompt to make current")
):
    """Select the system prompt used for new turns."""
    async def _use():
        async with open_session(load_config(), console, with_providers=False) as session:
            known = {prompt.id for prompt in await session.prompts.all_prompts()}
            if prompt_id not in known:
                console.print(f"[red]Error: no prompt with id '{prompt_id}'[/red]")
                raise typer.Exit(code=1)
            await session.prompts.set_current_prompt(prompt_id)
            console.print("[green]Current prompt changed.[/green]")

    asyncio.run(_use())


@prompts_app.command("delete")
def prompts_delete(
    prompt_id: str = typer.Argument(..., help="ID of the prompt to delete")
):
    """Delete a saved system prompt."""
    async def _delete():
        async with open_session(load_config(), console, with_providers=False) as session:
            await session.prompts.delete_prompt(prompt_id)
            console.print("[green]Prompt deleted.[/green]")

    asyncio.run(_delete())


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
