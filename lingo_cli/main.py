"""Translator REPL — text-only terminal front end.

Run with: python -m lingo_cli.main [--from en] [--to es] [--debug]

Features:
  - Rich colored output (green=input, blue=translation, dim=status)
  - Spinner while Gemini is translating
  - Commands: :from CODE, :to CODE, :swap, :langs, quit/exit/q
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.table import Table

from lingo_engine import catalog
from lingo_engine.config import settings
from lingo_engine.errors import ConfigurationError, LinguoError
from lingo_engine.gemini import create_client
from lingo_engine.translate import TranslationClient
from lingo_engine.types import TranslatorState

console = Console()


def _setup_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)-14s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )
    # Keep HTTP client debug output out of translator logs
    if debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def _print_languages() -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Code")
    table.add_column("Language")
    for lang in catalog.list_languages():
        table.add_row(lang.code, f"{lang.flag} {lang.name}")
    console.print(table)


def _describe(state: TranslatorState) -> str:
    src = catalog.language_name(state.source_lang, state.source_lang)
    tgt = catalog.language_name(state.target_lang, state.target_lang)
    return f"{src} → {tgt}"


def handle_command(state: TranslatorState, line: str) -> TranslatorState:
    """Apply a ':' command to the REPL state and return the new state."""
    parts = line[1:].split()
    if not parts:
        return state
    cmd, args = parts[0].lower(), parts[1:]

    if cmd in ("from", "to"):
        if not args or catalog.get_language(args[0]) is None:
            console.print("[red]Unknown language code. Try :langs[/]")
            return state
        if cmd == "from":
            state.source_lang = args[0]
        else:
            state.target_lang = args[0]
    elif cmd == "swap":
        state = state.swap()
        if state.input_text:
            console.print(f"[dim]Input is now:[/] {state.input_text}")
    elif cmd == "langs":
        _print_languages()
        return state
    else:
        console.print(f"[red]Unknown command: {cmd}[/]")
        return state

    console.print(f"[dim]{_describe(state)}[/]")
    return state


async def _run_repl(state: TranslatorState) -> None:
    try:
        client = create_client(settings)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/]")
        sys.exit(1)
    translator = TranslationClient(client, model=settings.translation_model)

    console.print(f"[bold]LinguoVoice[/] [dim]({_describe(state)}, {translator.model})[/]")
    console.print("[dim]Type text to translate, ':langs' for codes, 'quit' to exit.[/]\n")

    while True:
        try:
            user_input = console.input("[bold green]Text:[/] ").strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\n[dim]Goodbye![/]")
            break

        if not user_input:
            continue
        if user_input.lower() in ("quit", "exit", "q"):
            console.print("[dim]Goodbye![/]")
            break
        if user_input.startswith(":"):
            state = handle_command(state, user_input)
            continue

        state.input_text = user_input
        with console.status("[dim]Translating...[/]", spinner="dots"):
            try:
                state.translated_text = await translator.translate(
                    user_input,
                    catalog.language_name(state.source_lang, "English"),
                    catalog.language_name(state.target_lang, "Spanish"),
                )
            except LinguoError as e:
                logging.getLogger("cli").debug("Translation failed", exc_info=True)
                console.print(f"[red]{e.user_message}[/] [dim]({e})[/]\n")
                continue

        console.print(f"[bold blue]Translation:[/] {state.translated_text}\n")


def main() -> None:
    parser = argparse.ArgumentParser(description="LinguoVoice translator REPL")
    parser.add_argument("--from", dest="source", default=catalog.DEFAULT_SOURCE,
                        help="Source language code (default: en)")
    parser.add_argument("--to", dest="target", default=catalog.DEFAULT_TARGET,
                        help="Target language code (default: es)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    for code in (args.source, args.target):
        if catalog.get_language(code) is None:
            parser.error(f"unknown language code: {code}")

    _setup_logging(args.debug)
    asyncio.run(_run_repl(TranslatorState(source_lang=args.source, target_lang=args.target)))


if __name__ == "__main__":
    main()
