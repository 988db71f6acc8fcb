"""CLI command implementations — all Gmail access goes through gmail_client()."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING

import click
import httpx
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from src.discovery.errors import DiscoveryError
from src.discovery.pipeline import discover_relevant_messages
from src.gmail.client import GmailAPIError, GmailClient, gmail_client
from src.processing.classifier import classify_email

if TYPE_CHECKING:
    from src.config import Settings
    from src.gmail.types import NormalizedEmail

logger = logging.getLogger(__name__)
console = Console(width=200)


def _connect(settings: Settings) -> AbstractAsyncContextManager[GmailClient]:
    return gmail_client(
        settings.access_token or None,
        base_url=settings.api_base_url,
        timeout=settings.timeout_seconds,
    )


# ── discover ───────────────────────────────────────────────────────────────────


@click.command()
@click.option(
    "--max-results", type=click.IntRange(min=1), default=None, help="Result hint per search run."
)
@click.option(
    "--batch-size", type=click.IntRange(min=1), default=None, help="Messages fetched concurrently."
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Abort the run after N seconds.",
)
@click.pass_obj
def discover(
    settings: Settings,
    max_results: int | None,
    batch_size: int | None,
    timeout: float | None,
) -> None:
    """Search the inbox for RFQ emails and list the accepted ones."""
    try:
        emails = asyncio.run(_discover_async(
            settings,
            settings.max_results if max_results is None else max_results,
            settings.batch_size if batch_size is None else batch_size,
            timeout,
        ))
    except DiscoveryError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise SystemExit(1) from exc
    except (TimeoutError, asyncio.TimeoutError) as exc:
        console.print(f"[red]Discovery aborted after {timeout}s[/red]")
        raise SystemExit(1) from exc
    except ValueError as exc:
        console.print(f"[red]Configuration error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    if not emails:
        console.print("[yellow]No RFQ emails found.[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=3)
    table.add_column("Subject", max_width=48)
    table.add_column("From", max_width=32)
    table.add_column("Received", width=16)
    table.add_column("Att.", width=4)
    table.add_column("Unread", width=6)

    for i, email in enumerate(emails, start=1):
        sender = f"{email.from_name} <{email.from_email}>" if email.from_name else email.from_email
        table.add_row(
            str(i),
            escape(email.subject),
            escape(sender),
            email.received_at.strftime("%Y-%m-%d %H:%M"),
            str(len(email.attachments)),
            "[bold]yes[/bold]" if email.is_unread else "",
        )

    console.print(f"\nFound [bold]{len(emails)}[/bold] RFQ email(s)\n")
    console.print(table)


async def _discover_async(
    settings: Settings,
    max_results: int,
    batch_size: int,
    timeout: float | None,
) -> list[NormalizedEmail]:
    async with _connect(settings) as gmail:
        run = discover_relevant_messages(gmail, max_results, batch_size=batch_size)
        if timeout is not None:
            return await asyncio.wait_for(run, timeout=timeout)
        return await run


# ── check ──────────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def check(settings: Settings) -> None:
    """Verify the access token against the Gmail API."""
    try:
        address = asyncio.run(_check_async(settings))
    except ValueError as exc:
        console.print(f"[red]Configuration error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    if address is None:
        console.print("[red]Gmail connection failed.[/red]")
        raise SystemExit(1)
    console.print(f"[green]Connected to Gmail as {escape(address)}[/green]")


async def _check_async(settings: Settings) -> str | None:
    async with _connect(settings) as gmail:
        try:
            profile = await gmail.get_profile()
        except (GmailAPIError, httpx.HTTPError, ValueError) as exc:
            logger.error("Gmail connection check failed: %s", exc)
            return None
        return str(profile.get("emailAddress", "unknown"))


# ── show ───────────────────────────────────────────────────────────────────────


@click.command()
@click.argument("message_id")
@click.pass_obj
def show(settings: Settings, message_id: str) -> None:
    """Show one message as normalized text with its relevance breakdown."""
    try:
        email = asyncio.run(_show_async(settings, message_id))
    except ValueError as exc:
        console.print(f"[red]Configuration error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    if email is None:
        console.print(f"[red]Could not fetch message {escape(message_id)}.[/red]")
        raise SystemExit(1)

    result = classify_email(email)
    scores = result.component_scores
    verdict = "[green]ACCEPTED[/green]" if result.is_accepted else "[red]REJECTED[/red]"
    lines = [
        f"[bold]From:[/bold] {escape(email.from_name or '')} <{escape(email.from_email)}>",
        f"[bold]Received:[/bold] {email.received_at.isoformat()}",
        f"[bold]Attachments:[/bold] "
        + escape(", ".join(a.filename for a in email.attachments) or "none"),
        "",
        escape(email.body_text[:2000] or email.snippet),
        "",
        f"{verdict} score={result.total_score} strong={scores.strong_term_count} "
        f"domain={scores.domain_term_count} context={scores.context_term_count} "
        f"bonus={scores.bonus_points}",
    ]
    lines.extend(f"  [dim]• {escape(reason)}[/dim]" for reason in result.reasons)
    console.print(Panel("\n".join(lines), title=f"[bold]{escape(email.subject)}[/bold]", border_style="blue"))


async def _show_async(settings: Settings, message_id: str) -> NormalizedEmail | None:
    async with _connect(settings) as gmail:
        return await gmail.get_email_details(message_id)


# ── mark-read ──────────────────────────────────────────────────────────────────


@click.command(name="mark-read")
@click.argument("message_id")
@click.pass_obj
def mark_read(settings: Settings, message_id: str) -> None:
    """Remove the UNREAD label from a message."""
    try:
        ok = asyncio.run(_mark_read_async(settings, message_id))
    except ValueError as exc:
        console.print(f"[red]Configuration error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    if not ok:
        console.print(f"[red]Could not mark {escape(message_id)} as read.[/red]")
        raise SystemExit(1)
    console.print(f"[green]Marked {escape(message_id)} as read.[/green]")


async def _mark_read_async(settings: Settings, message_id: str) -> bool:
    async with _connect(settings) as gmail:
        return await gmail.mark_as_read(message_id)
