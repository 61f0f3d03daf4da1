"""
Command-line interface for Rosetta.

Provides commands for:
- Translating documents (any format pandoc reads)
- Managing API keys
- System diagnostics

Usage:
    rosetta translate book.docx --target French --subject "Sailing"
    rosetta translate book.docx --target French --continue
    rosetta keys set openai
    rosetta info
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from rosetta import __version__
from rosetta.errors import RosettaError, TranslationCancelled
from rosetta.job import TranslationJob
from rosetta.models import Failed, InProgress, Started, Succeeded, TranslationConfig
from rosetta.pipeline import TranslationPipeline
from rosetta.utils import default_output_path

app = typer.Typer(
    name="rosetta",
    help="Rosetta: document translation through an LLM assistant, with resume",
    add_completion=False,
)
console = Console()

EXIT_CANCELLED = 130


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route the ``rosetta`` loggers to a rich handler."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.getLevelName(os.getenv("ROSETTA_LOG", "WARNING").upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logger = logging.getLogger("rosetta")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.addHandler(RichHandler(console=console, show_path=False, rich_tracebacks=verbose))
    logger.setLevel(level)


def version_callback(value: bool):
    if value:
        console.print(f"Rosetta v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False, "--verbose",
        help="Debug logging",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Only log errors",
    ),
):
    """Rosetta: translate documents section by section, resuming where a run stopped."""
    setup_logging(verbose=verbose, quiet=quiet)


@app.command()
def translate(
    input_file: Path = typer.Argument(
        ...,
        help="Document to translate",
    ),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o",
        help="Output file path (default: <name>_translated.<ext>)",
    ),
    source_lang: str = typer.Option(
        "English", "--source", "-s",
        help="Source language",
    ),
    target_lang: str = typer.Option(
        "Russian", "--target", "-t",
        help="Target language",
    ),
    subject: str = typer.Option(
        "Unknown", "--subject",
        help="What the document is about",
    ),
    tone: str = typer.Option(
        "formal", "--tone",
        help="Tone of the translation",
    ),
    instructions: str = typer.Option(
        "", "--instructions",
        help="Additional instructions for the translator",
    ),
    max_section_len: int = typer.Option(
        5000, "--max-section-len",
        min=1,
        help="Maximum characters sent in one message",
    ),
    continue_translation: bool = typer.Option(
        False, "--continue", "-c",
        help="Continue a previous partial translation",
    ),
    backend: str = typer.Option(
        "openai", "--backend", "-b",
        help="Translation backend (openai, dummy)",
    ),
    model: Optional[str] = typer.Option(
        None, "--model", "-m",
        help="Model name for the openai backend",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config",
        help="Settings file (default: ~/.rosetta/config.toml)",
    ),
):
    """Translate a document."""
    from rosetta.config import load_settings
    from rosetta.translate.base import create_translator_builder

    if not input_file.exists():
        console.print(f"[red]Error:[/] Input file not found: {input_file}")
        raise typer.Exit(1)

    output_file = output_file or default_output_path(input_file)
    config = TranslationConfig(
        src_lang=source_lang,
        dst_lang=target_lang,
        subject=subject,
        tone=tone,
        additional_instructions=instructions,
        max_section_len=max_section_len,
        continue_translation=continue_translation,
    )

    pipeline = TranslationPipeline()
    try:
        settings = load_settings(config_file) if config_file else None
        backend_kwargs = {"model": model} if model else {}
        pipeline.translator_builder = create_translator_builder(
            backend, settings=settings, cancel_event=pipeline.cancel_event, **backend_kwargs
        )
    except (ValueError, OSError) as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    console.print(
        f"[bold]Translating[/] {input_file} -> {output_file} "
        f"({config.src_lang} -> {config.dst_lang}, backend: {backend})"
    )

    job = TranslationJob(pipeline, input_file, output_file, config)
    outcome = None
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Starting...", total=None)
            job.start()
            while outcome is None:
                status = job.statuses.get()
                if isinstance(status, Started):
                    progress.update(task, description="Translating...")
                elif isinstance(status, InProgress):
                    progress.update(
                        task,
                        total=status.progress.total_sections,
                        completed=status.progress.processed_sections,
                    )
                elif isinstance(status, (Succeeded, Failed)):
                    outcome = status
                    if isinstance(status, Succeeded):
                        progress.update(task, description="[green]Complete!")
    except KeyboardInterrupt:
        console.print("[yellow]Cancelling, waiting for the current request...[/]")
        job.cancel()
        job.join()
        console.print("Run again with [cyan]--continue[/] to pick up where it stopped.")
        raise typer.Exit(EXIT_CANCELLED)

    if isinstance(outcome, Failed):
        if isinstance(outcome.error, TranslationCancelled):
            console.print("[yellow]Translation cancelled[/]")
            raise typer.Exit(EXIT_CANCELLED)
        console.print(f"[red]Translation failed:[/] {outcome.message}")
        if isinstance(outcome.error, FileExistsError):
            console.print("Use [cyan]--continue[/] to resume the existing partial translation.")
        elif isinstance(outcome.error, RosettaError) and outcome.error.context:
            for key, value in outcome.error.context.items():
                console.print(f"  [dim]{key}:[/] {value}")
        raise typer.Exit(1)

    result = job.result
    console.print("\n[bold green]Translation complete![/]\n")
    table = Table(title="Translation Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key, value in result.to_dict().items():
        table.add_row(key.replace("_", " ").title(), str(value))
    console.print(table)


@app.command()
def info():
    """Show version, configuration and backend availability."""
    import pypandoc

    from rosetta.config import config_path, load_settings
    from rosetta.ingest.pandoc import SUPPORTED_FORMATS
    from rosetta.keys import KeyManager

    console.print(f"[bold]Rosetta v{__version__}[/]\n")

    path = config_path()
    try:
        settings = load_settings(path)
    except (ValueError, OSError) as e:
        console.print(f"[red]Error:[/] Cannot read {path}: {e}")
        raise typer.Exit(1)
    console.print(f"Config file: {path} {'' if settings.source else '[dim](not found, using defaults)[/]'}")
    console.print(f"Model: {settings.openai.model}")

    km = KeyManager({"openai": settings.openai.api_key})
    table = Table(title="Available Translation Backends")
    table.add_column("Backend", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Notes")
    has_key = km.get_key("openai") is not None
    table.add_row("openai", "✓ Available" if has_key else "⚠ No API key", "OpenAI Assistants")
    table.add_row("dummy", "✓ Available", "Offline, for testing")
    console.print(table)

    console.print("\n[bold]Format Support:[/]")
    try:
        console.print(f"  [green]✓[/] pandoc {pypandoc.get_pandoc_version()}")
    except OSError:
        console.print("  [yellow]✗[/] pandoc not found; only markdown and text input work")
    console.print(f"  Input formats: {', '.join(sorted(ext.lstrip('.') for ext in SUPPORTED_FORMATS))}")


@app.command()
def keys(
    action: str = typer.Argument(..., help="Action: list, set, status, delete"),
    service: Optional[str] = typer.Argument(None, help="Service name (openai)"),
):
    """Manage API keys securely.

    Examples:
        rosetta keys list              # List all keys
        rosetta keys set openai        # Set OpenAI key
        rosetta keys status openai     # Check OpenAI key status
        rosetta keys delete openai     # Delete OpenAI key
    """
    from keyring.errors import KeyringError

    from rosetta.keys import SERVICES, KeyManager

    km = KeyManager()

    if action == "list":
        table = Table(title="API Keys Status")
        table.add_column("Service", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Source", style="yellow")
        table.add_column("Value", style="dim")

        for key_info in km.list_keys():
            status = "✓ Set" if key_info.is_set else "✗ Not set"
            status_color = "green" if key_info.is_set else "red"
            table.add_row(
                key_info.service,
                f"[{status_color}]{status}[/]",
                key_info.source,
                key_info.masked_value if key_info.is_set else "-",
            )

        console.print(table)
        console.print("\n[dim]Priority: env > keychain > config file[/]")
        return

    if action not in ("set", "status", "delete"):
        console.print(f"[red]Error:[/] Unknown action '{action}'")
        console.print("Available actions: list, set, status, delete")
        raise typer.Exit(1)

    if not service:
        console.print("[red]Error:[/] Service name required")
        console.print(f"Usage: [cyan]rosetta keys {action} <service>[/]")
        console.print(f"Available services: {', '.join(SERVICES.keys())}")
        raise typer.Exit(1)

    if action == "set":
        key = typer.prompt(f"Enter API key for {service}", hide_input=True, default="", show_default=False)
        if not key:
            console.print("[red]Error:[/] Key cannot be empty")
            raise typer.Exit(1)
        try:
            storage = km.set_key(service, key)
        except KeyringError as e:
            console.print(f"[red]Error:[/] Cannot store key: {e}")
            env_var = SERVICES.get(service, f"{service.upper()}_API_KEY")
            console.print(f"Use an environment variable instead: [cyan]export {env_var}=...[/]")
            raise typer.Exit(1)
        console.print(f"[green]✓[/] API key for {service} saved to {storage}")

    elif action == "status":
        key_info = km.get_key_info(service)
        if key_info.is_set:
            console.print(f"[green]✓[/] API key for {service} is set")
            console.print(f"    Source: {key_info.source}")
            console.print(f"    Value: {key_info.masked_value}")
        else:
            console.print(f"[red]✗[/] No API key found for {service}")
            env_var = SERVICES.get(service, f"{service.upper()}_API_KEY")
            console.print("\nTo set the key:")
            console.print(f"  Option 1: [cyan]rosetta keys set {service}[/]")
            console.print(f"  Option 2: [cyan]export {env_var}='your-key-here'[/]")

    else:
        if km.delete_key(service):
            console.print(f"[green]✓[/] API key for {service} deleted")
        else:
            console.print(f"[yellow]⚠[/] No key found to delete for {service}")


if __name__ == "__main__":
    app()
