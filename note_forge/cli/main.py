"""
CLI interface for Note Forge.

Provides command-line access to generation, the coin ledger, note history
and export.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from note_forge.config.loader import Settings, default_settings, load_settings
from note_forge.config.logging_config import configure_logging
from note_forge.core.errors import (
    AccountNotFound,
    GenerationFailed,
    InsufficientFunds,
    InvalidRequest,
    QuotaExceeded,
)
from note_forge.core.orchestrator import GenerationOrchestrator
from note_forge.core.templates import DEFAULT_TEMPLATE_ID, TEMPLATES
from note_forge.demo.seed_demo_data import seed_demo_data
from note_forge.render.exporter import ExportFormat, NoteExporter
from note_forge.storage.ledger import LedgerRepository
from note_forge.storage.models import CoinAccount, GenerationRequest
from note_forge.storage.repository import NoteRepository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else default_settings()


def _ledger(settings: Settings) -> LedgerRepository:
    return LedgerRepository(settings.storage.db_path, settings.billing)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="NOTE_FORGE_CONFIG",
        help="Path to a YAML settings file"
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level")
):
    """Note Forge CLI."""
    try:
        ctx.obj = load_settings(config) if config else default_settings()
        configure_logging(log_level, console=Console(stderr=True))
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if ctx.invoked_subcommand is None:
        console.print("Note Forge - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the Note Forge database."""
    try:
        initialize_schema(_settings(ctx).storage.db_path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(ctx: typer.Context):
    """Show the active configuration."""
    settings = _settings(ctx)
    console.print("[green]✓[/] Note Forge is configured")
    console.print(f"Database: {settings.storage.db_path}")
    console.print(f"Model: {settings.generation.model}")
    console.print(
        f"Retries: {settings.generation.max_attempts} attempts, "
        f"{settings.generation.retry_delay_seconds:g}s apart"
    )
    deadline = settings.generation.request_deadline_seconds
    console.print(f"Request deadline: {f'{deadline:g}s' if deadline else 'none'}")
    console.print(f"Coins per page: {settings.billing.coins_per_page}")


@app.command()
def templates():
    """List available note templates."""
    table = Table(title="Note Templates")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Description")
    for template in TEMPLATES.values():
        table.add_row(template.id, template.name, template.description)
    console.print(table)


@app.command("open-account")
def open_account(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User id"),
    tier: Optional[str] = typer.Option(None, "--tier", "-t", help="Account tier"),
    coins: Optional[int] = typer.Option(None, "--coins", help="Opening coins (defaults to signup bonus)")
):
    """Open a coin account."""
    try:
        account = _ledger(_settings(ctx)).open_account(user_id, tier=tier, initial_coins=coins)
        console.print(
            f"[green]✓[/] Opened account {account.user_id} "
            f"({account.tier}) with {account.balance} coins"
        )
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def balance(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User id"),
    limit: int = typer.Option(10, "--limit", "-n", help="Transactions to show")
):
    """Show an account's balance and recent transactions."""
    ledger = _ledger(_settings(ctx))
    try:
        account = ledger.get_account(user_id)
        transactions = ledger.list_transactions(user_id, limit)
    except AccountNotFound as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    _display_account(account)
    if transactions:
        table = Table(title="Recent Transactions")
        table.add_column("When")
        table.add_column("Kind")
        table.add_column("Amount", justify="right")
        table.add_column("Balance", justify="right")
        table.add_column("Description")
        for tx in transactions:
            table.add_row(
                tx.timestamp.strftime("%Y-%m-%d %H:%M"),
                tx.kind.value,
                f"{tx.amount:+d}",
                str(tx.new_balance),
                tx.description
            )
        console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def grant(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User id"),
    amount: int = typer.Argument(..., help="Coins to add"),
    reason: str = typer.Option("Coin grant", "--reason", "-r", help="Ledger description")
):
    """Credit coins to an account."""
    try:
        tx = _ledger(_settings(ctx)).grant(user_id, amount, reason)
        console.print(f"[green]✓[/] Granted {amount} coins to {user_id}; balance {tx.new_balance}")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def refund(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User id"),
    amount: int = typer.Argument(..., help="Coins to return"),
    reason: str = typer.Option("Refund", "--reason", "-r", help="Ledger description")
):
    """Refund coins for an earlier deduction."""
    try:
        tx = _ledger(_settings(ctx)).refund(user_id, amount, reason)
        console.print(f"[green]✓[/] Refunded {amount} coins to {user_id}; balance {tx.new_balance}")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("set-tier")
def set_tier(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User id"),
    tier: str = typer.Argument(..., help="Tier name from billing.tiers")
):
    """Move an account to another billing tier."""
    try:
        account = _ledger(_settings(ctx)).set_tier(user_id, tier)
        limit = "unlimited" if account.monthly_limit is None else account.monthly_limit
        console.print(f"[green]✓[/] {user_id} is now on tier {account.tier} (monthly limit: {limit})")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def generate(
    ctx: typer.Context,
    topic: str = typer.Argument(..., help="What the note is about"),
    template: str = typer.Option(DEFAULT_TEMPLATE_ID, "--template", "-t", help="Template id"),
    pages: int = typer.Option(1, "--pages", "-p", help="Pages to generate (1-10)"),
    user_id: Optional[str] = typer.Option(None, "--user", "-u", help="Bill this account"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write HTML to this file")
):
    """
    Generate a note.

    Without --user the note is generated as a guest: nothing is billed and
    nothing is saved to history.
    """
    settings = _settings(ctx)
    try:
        orchestrator = GenerationOrchestrator.from_settings(settings)
        outcome = asyncio.run(orchestrator.generate(
            GenerationRequest(topic=topic, template_id=template, page_count=pages),
            user_id=user_id
        ))
    except InsufficientFunds as e:
        console.print(f"[red]Insufficient coins:[/] need {e.required}, have {e.available}")
        sys.exit(EXIT_CODE_FAIL)
    except QuotaExceeded as e:
        console.print(f"[red]Monthly limit reached:[/] {e.current}/{e.limit} notes")
        sys.exit(EXIT_CODE_FAIL)
    except GenerationFailed as e:
        console.print(f"[red]Generation failed[/] after {e.attempts} attempt(s): {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    except (InvalidRequest, AccountNotFound, ValueError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if output:
        output.write_text(outcome.html, encoding="utf-8")
        console.print(f"[green]✓[/] Note written to {output}")
    else:
        console.print(outcome.html, markup=False, highlight=False)

    if outcome.note_id:
        console.print(f"Note id: {outcome.note_id}")
    if outcome.coins_spent is not None:
        console.print(f"Coins spent: {outcome.coins_spent}, remaining: {outcome.coins_remaining}")
    if outcome.warning:
        console.print(f"[yellow]Warning:[/] {outcome.warning}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def history(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="User id"),
    limit: int = typer.Option(20, "--limit", "-n", help="Notes per page"),
    offset: int = typer.Option(0, "--offset", help="Notes to skip")
):
    """List a user's saved notes, newest first."""
    try:
        page = NoteRepository(_settings(ctx).storage.db_path).list_notes(user_id, limit, offset)
    except ValueError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not page.items:
        console.print("\n[dim]No notes found.[/]")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"Notes for {user_id} ({page.total} total)")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Template")
    table.add_column("Pages", justify="right")
    table.add_column("Coins", justify="right")
    table.add_column("Created")
    for note in page.items:
        table.add_row(
            note.id,
            note.title,
            note.template_id,
            str(note.page_count),
            str(note.coins_spent),
            note.created_at.strftime("%Y-%m-%d %H:%M")
        )
    console.print(table)
    if page.has_more:
        console.print(f"[dim]More notes available; use --offset {page.offset + page.limit}[/]")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def export(
    ctx: typer.Context,
    note_id: str = typer.Argument(..., help="Note id"),
    user_id: str = typer.Option(..., "--user", "-u", help="Owner of the note"),
    fmt: ExportFormat = typer.Option(ExportFormat.HTML, "--format", "-f", help="Output format"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file"),
    multi_page: bool = typer.Option(False, "--multi-page", help="PDF: split across pages")
):
    """Export a saved note as HTML, PNG or PDF."""
    settings = _settings(ctx)
    note = NoteRepository(settings.storage.db_path).get_note(user_id, note_id)
    if note is None:
        console.print(f"[red]Error:[/] note {note_id} not found")
        sys.exit(EXIT_CODE_FAIL)

    try:
        exporter = NoteExporter.from_settings(settings.export)
        result = asyncio.run(exporter.export(
            note.html_content, fmt, title=note.title, multi_page=multi_page
        ))
        target = output or Path(result.filename)
        target.write_bytes(result.content)
    except Exception as e:
        console.print(f"[red]Error exporting note:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[green]✓[/] Exported {fmt.value.upper()} to {target}")
    sys.exit(EXIT_CODE_PASS)


@app.command("seed-demo")
def seed_demo(ctx: typer.Context):
    """Insert demo accounts and sample notes."""
    settings = _settings(ctx)
    try:
        created = seed_demo_data(settings.storage.db_path, settings.billing)
    except Exception as e:
        console.print(f"[red]Error seeding demo data:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if created:
        console.print(f"[green]✓[/] Demo data inserted for: {', '.join(created)}")
    else:
        console.print("[dim]Demo accounts already exist; nothing to do.[/]")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port")
):
    """Run the HTTP API."""
    import uvicorn

    from note_forge.api.app import create_app

    try:
        api = create_app(_settings(ctx))
    except Exception as e:
        console.print(f"[red]Error starting server:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    uvicorn.run(api, host=host, port=port)


def _display_account(account: CoinAccount):
    """Display an account summary."""
    console.print(f"\n[bold]Account:[/bold] {account.user_id} ({account.tier})")
    console.print("-" * 40)
    console.print(f"Balance: {account.balance} coins")
    console.print(f"Total spent: {account.total_spent} coins")
    console.print(f"Notes generated: {account.total_generated}")
    limit = account.monthly_limit if account.monthly_limit is not None else "unlimited"
    console.print(f"This month: {account.monthly_count}/{limit}")


if __name__ == "__main__":
    app()
