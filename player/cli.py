import logging
import sys

import click
import requests
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shared.config import AppConfig
from shared.models import ReactionState
from .catalog import CatalogClient
from .interaction_ledger import InteractionLedger
from .reaction_store import ReactionStore
from .reaction_sync import ReactionSyncClient

console = Console()

REACTION_MARKERS = {
    ReactionState.LIKED: "[green]👍[/green]",
    ReactionState.DISLIKED: "[red]👎[/red]",
    ReactionState.NONE: "",
}


class VisitorContext:
    """Everything a command needs, built once per invocation."""

    def __init__(self, api_url=None, state_file=None):
        config = AppConfig.load()
        self.api_url = api_url or config.api_url
        self.catalog = CatalogClient(self.api_url, timeout=config.sync_timeout)
        self.sync = ReactionSyncClient(self.api_url, timeout=config.sync_timeout)
        self.ledger = InteractionLedger(ReactionStore(state_file), dispatcher=self.sync)

    def resolve_beat(self, prefix):
        """Find a beat by full id or unique id prefix."""
        beats = self.catalog.fetch_beats()
        matches = [b for b in beats if b.id == prefix] or [b for b in beats if b.id.startswith(prefix)]
        if not matches:
            raise click.ClickException(f"No beat matches '{prefix}'")
        if len(matches) > 1:
            raise click.ClickException(f"'{prefix}' is ambiguous ({len(matches)} beats)")
        return matches[0]


def _fail_unreachable(ctx_obj, e):
    console.print(f"[red]Cannot reach Beatfolio at {ctx_obj.api_url}: {e}[/red]")
    sys.exit(1)


@click.group()
@click.option('--api-url', envvar='BEATFOLIO_API_URL', help='Base URL of the Beatfolio API')
@click.option('--state-file', type=click.Path(dir_okay=False), help='Where your reactions are remembered')
@click.option('--verbose', '-v', is_flag=True, help='Debug logging')
@click.pass_context
def cli(ctx, api_url, state_file, verbose):
    """🎧 Beatfolio - browse and react to beats"""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    ctx.obj = VisitorContext(api_url, state_file)


@cli.command()
@click.pass_obj
def beats(obj):
    """List beats with their counters and your reaction."""
    try:
        catalog = obj.catalog.fetch_beats()
    except requests.RequestException as e:
        _fail_unreachable(obj, e)

    if not catalog:
        console.print("[yellow]No beats published yet.[/yellow]")
        return

    table = Table(title=f"Beats ({len(catalog)})")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="bold white")
    table.add_column("BPM", style="magenta", justify="right")
    table.add_column("Key", style="yellow")
    table.add_column("👍", justify="right")
    table.add_column("👎", justify="right")
    table.add_column("You")
    table.add_column("Price", style="green")

    for row in obj.catalog.ledger_rows(catalog, obj.ledger):
        beat = row.beat
        price = ""
        if beat.for_sale:
            price = f"{beat.price:.2f}" if beat.price is not None else "for sale"
        table.add_row(
            beat.id[:8],
            beat.title,
            str(beat.bpm) if beat.bpm else "-",
            beat.key or "-",
            str(row.likes),
            str(row.dislikes),
            REACTION_MARKERS[row.reaction],
            price,
        )

    console.print(table)


def _react(obj, beat_id, toggle):
    try:
        beat = obj.resolve_beat(beat_id)
    except requests.RequestException as e:
        _fail_unreachable(obj, e)

    toggle(beat.id)
    likes, dislikes = obj.ledger.display_count(beat.id, beat.like_count, beat.dislike_count)
    state = obj.ledger.get_reaction(beat.id)

    if not obj.sync.flush(timeout=obj.sync.timeout + 1):
        console.print("[yellow]Still sending your reaction in the background...[/yellow]")

    label = {
        ReactionState.LIKED: "[green]You like this beat[/green]",
        ReactionState.DISLIKED: "[red]You dislike this beat[/red]",
        ReactionState.NONE: "[dim]Reaction removed[/dim]",
    }[state]
    console.print(f"{label}  [bold]{beat.title}[/bold]  👍 {likes}  👎 {dislikes}")


@cli.command()
@click.argument('beat_id')
@click.pass_obj
def like(obj, beat_id):
    """Toggle your like on a beat."""
    _react(obj, beat_id, obj.ledger.toggle_like)


@cli.command()
@click.argument('beat_id')
@click.pass_obj
def dislike(obj, beat_id):
    """Toggle your dislike on a beat."""
    _react(obj, beat_id, obj.ledger.toggle_dislike)


@cli.command()
@click.argument('beat_id')
@click.pass_obj
def comments(obj, beat_id):
    """Show the comments on a beat."""
    try:
        beat = obj.resolve_beat(beat_id)
        items = obj.catalog.fetch_comments(beat.id)
    except requests.RequestException as e:
        _fail_unreachable(obj, e)

    if not items:
        console.print(f"[yellow]No comments on '{beat.title}' yet.[/yellow]")
        return

    console.print(f"[bold]{beat.title}[/bold] ({len(items)} comments)\n")
    for c in items:
        console.print(f"[cyan]{c.author}[/cyan] [dim]{c.created_at[:16].replace('T', ' ')}[/dim]")
        console.print(f"  {c.content}")


@cli.command()
@click.argument('beat_id')
@click.option('--author', '-a', prompt='Your name', help='Name shown with the comment')
@click.option('--message', '-m', prompt='Comment', help='Comment text')
@click.pass_obj
def comment(obj, beat_id, author, message):
    """Leave a comment on a beat."""
    if not author.strip() or not message.strip():
        raise click.ClickException("Name and comment cannot be empty")
    try:
        beat = obj.resolve_beat(beat_id)
        obj.catalog.post_comment(beat.id, author.strip(), message.strip())
    except requests.RequestException as e:
        _fail_unreachable(obj, e)
    console.print(f"[green]✓[/green] Comment posted on [bold]{beat.title}[/bold]")


@cli.command()
@click.pass_obj
def profile(obj):
    """Show the artist profile."""
    try:
        p = obj.catalog.fetch_profile()
    except requests.RequestException as e:
        _fail_unreachable(obj, e)

    lines = [f"[bold cyan]{p.pseudo}[/bold cyan]", p.tagline]
    socials = p.socials.to_dict()
    if socials:
        lines.append("")
        lines.extend(f"{name.capitalize()}: {value}" for name, value in socials.items())
    console.print(Panel.fit("\n".join(lines), border_style="cyan"))


if __name__ == '__main__':
    cli()
