"""
Command-line interface for branchchat.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from collections.abc import Awaitable
from pathlib import Path

import yaml
from rich.console import Console
from rich.table import Table

from branchchat.adapters.openai import OpenAICompletion
from branchchat.config import ChatConfig
from branchchat.coordinator import ConversationCoordinator
from branchchat.events import REQUEST_END, STREAM_DELTA, RequestEndEvent, StreamDeltaEvent
from branchchat.logging import setup_logging

console = Console()

CONFIG_SEARCH_PATHS = [
    Path.cwd() / "branchchat.yaml",
    Path.home() / ".config" / "branchchat" / "config.yaml",
]

HELP_TEXT = """\
[bold]Commands[/bold] (N is the message number shown by /show)
  /show            show the active branch
  /regen N         regenerate message N
  /edit N TEXT     replace user message N with TEXT as a new branch
  /prev N, /next N switch message N to its previous / next variant
  /mode MODE       switch between 'reasoner' and 'chat'
  /clear           start a new conversation
  /quit            exit
Press Ctrl-C while a reply streams to interrupt it."""


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Branching chat with a language model",
        prog="branchchat",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (debug logging)",
    )
    parser.add_argument("-c", "--config", help="Path to a YAML config file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    chat_parser = subparsers.add_parser("chat", help="Start an interactive chat (default)")
    chat_parser.add_argument("--mode", choices=["reasoner", "chat"], help="Model mode")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_command", help="Config commands")
    config_subparsers.add_parser("show", help="Show current configuration")
    config_init_parser = config_subparsers.add_parser("init", help="Write a default config file")
    config_init_parser.add_argument(
        "-o", "--output", default="branchchat.yaml", help="Output file path"
    )

    args = parser.parse_args()
    setup_logging("DEBUG" if args.verbose else "WARNING")

    if args.command == "config":
        cmd_config(args)
        return

    config = load_config(args.config)
    mode = getattr(args, "mode", None)
    if mode:
        config.mode = mode
    asyncio.run(cmd_chat(config))


def load_config(path: str | None = None) -> ChatConfig:
    """Load config from *path*, the search paths, or the environment."""
    candidates = [Path(path)] if path else CONFIG_SEARCH_PATHS
    for candidate in candidates:
        if candidate.exists():
            config = ChatConfig.from_yaml(candidate)
            env = ChatConfig.from_env()
            if config.api_key is None:
                config.api_key = env.api_key
            return config
    if path:
        console.print(f"[red]Config file not found: {path}[/red]")
        sys.exit(1)
    return ChatConfig.from_env()


# ---------------------------------------------------------------------------
# Interactive chat
# ---------------------------------------------------------------------------


async def cmd_chat(config: ChatConfig) -> None:
    """Run the interactive chat loop."""
    completion = OpenAICompletion(config)
    coordinator = ConversationCoordinator(completion, config=config)
    coordinator.events.on(STREAM_DELTA, _make_stream_printer(config.show_thinking))
    coordinator.events.on(REQUEST_END, _print_request_end)

    console.print(f"[bold]branchchat[/bold] [dim]({completion.mode} mode, /help for commands)[/dim]")
    show_transcript(coordinator)

    while True:
        try:
            line = await asyncio.to_thread(console.input, "[bold cyan]> [/bold cyan]")
        except (EOFError, KeyboardInterrupt):
            console.print()
            break
        if not await handle_line(coordinator, completion, line):
            break


def _print_request_end(event: RequestEndEvent) -> None:
    if event.outcome == "error":
        console.print(f"\n[red]Request failed: {event.error}[/red]", end="")
    elif event.outcome == "aborted":
        console.print("\n[yellow]Interrupted.[/yellow]", end="")


def _make_stream_printer(show_thinking: bool):
    def on_delta(event: StreamDeltaEvent) -> None:
        if event.kind == "reasoning":
            if show_thinking:
                console.print(event.delta, end="", style="dim", markup=False, highlight=False)
        else:
            console.print(event.delta, end="", markup=False, highlight=False)

    return on_delta


async def run_interruptible(coordinator: ConversationCoordinator, request: Awaitable[str | None]) -> str | None:
    """Await *request*, aborting it if the user presses Ctrl-C."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, coordinator.abort_request)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False
    try:
        return await request
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)
        console.print()


async def handle_line(
    coordinator: ConversationCoordinator,
    completion: OpenAICompletion,
    line: str,
) -> bool:
    """Handle one line of input. Returns ``False`` when the user quits."""
    line = line.strip()
    if not line:
        return True
    if not line.startswith("/"):
        await run_interruptible(coordinator, coordinator.send(line))
        return True

    command, _, rest = line.partition(" ")
    rest = rest.strip()

    if command in ("/quit", "/exit"):
        return False
    if command == "/help":
        console.print(HELP_TEXT)
    elif command == "/show":
        show_transcript(coordinator)
    elif command == "/clear":
        coordinator.clear()
        show_transcript(coordinator)
    elif command == "/mode":
        if rest not in ("reasoner", "chat"):
            console.print("[yellow]Usage: /mode reasoner|chat[/yellow]")
        else:
            completion.mode = rest  # type: ignore[assignment]
            console.print(f"[dim]Switched to {rest} mode[/dim]")
    elif command in ("/regen", "/prev", "/next", "/edit"):
        number, _, text = rest.partition(" ")
        message_id = _message_id_at(coordinator, number)
        if message_id is None:
            console.print(f"[yellow]No message number {number!r} on this branch[/yellow]")
        elif command == "/regen":
            await run_interruptible(coordinator, coordinator.regenerate(message_id))
        elif command == "/edit":
            result = await run_interruptible(
                coordinator, coordinator.edit_user_message(message_id, text)
            )
            if result is None:
                console.print("[yellow]Only user messages can be edited, with non-empty text[/yellow]")
        else:
            direction = "previous" if command == "/prev" else "next"
            if coordinator.navigate_sibling(message_id, direction):
                show_transcript(coordinator)
            else:
                console.print(f"[yellow]No {direction} variant for message {number}[/yellow]")
    else:
        console.print(f"[yellow]Unknown command: {command} (try /help)[/yellow]")
    return True


def _message_id_at(coordinator: ConversationCoordinator, number: str) -> str | None:
    try:
        position = int(number) - 1
    except ValueError:
        return None
    path = coordinator.active_path
    if 0 <= position < len(path):
        return path[position]
    return None


def show_transcript(coordinator: ConversationCoordinator) -> None:
    """Print the active branch as a table."""
    messages = coordinator.render()
    if not messages:
        console.print("[dim]No messages yet.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Role")
    table.add_column("Variant", justify="center")
    table.add_column("Content")

    for number, message in enumerate(messages, start=1):
        variant = f"{message.sibling.index + 1}/{message.sibling.total}"
        style = "cyan" if message.role == "user" else "green"
        table.add_row(str(number), f"[{style}]{message.role}[/{style}]", variant, message.content)

    console.print(table)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


def cmd_config(args: argparse.Namespace) -> None:
    """Configuration management commands."""
    if args.config_command == "show":
        config = load_config(args.config)
        console.print("[bold]Current Configuration:[/bold]\n")
        console.print(yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False))
    elif args.config_command == "init":
        _config_init(args.output)
    else:
        console.print("[yellow]Usage: branchchat config <show|init>[/yellow]")


def _config_init(output: str) -> None:
    """Write a default config file."""
    output_path = Path(output)
    if output_path.exists():
        console.print(f"[red]File already exists: {output_path}[/red]")
        sys.exit(1)

    with open(output_path, "w") as f:
        yaml.dump(ChatConfig().to_dict(), f, default_flow_style=False, sort_keys=False)

    console.print(f"[green]Created config file: {output_path}[/green]")


if __name__ == "__main__":
    main()
