"""
Command-line interface for the Beatfolio studio.

Guided setup, the API server and catalog management (upload, edit, delete,
profile) for the artist, using the Click framework.
"""

import logging
import secrets
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm, Prompt
from rich.table import Table

from shared.config import AppConfig, default_config_path
from shared.constants import DEFAULT_API_PORT, DEFAULT_BUCKET
from shared.database import DatabaseManager
from shared.models import Profile, StorageProvider
from .audio import AudioAnalyzer, AudioProcessor
from .provider_factory import StorageProviderFactory
from .uploader import BeatPublisher, MediaFile, PublishError, scan_directory

console = Console()


def _load_publisher(config: AppConfig, analyze: bool = True) -> BeatPublisher:
    try:
        storage = StorageProviderFactory.from_config(config)
    except ValueError as e:
        raise click.ClickException(f"{e}. Run 'beatfolio-studio init' first.")
    analyzer = AudioAnalyzer() if analyze and config.analyze_uploads else None
    return BeatPublisher(DatabaseManager(config.database_path), storage, analyzer)


def _find_beat(db: DatabaseManager, prefix: str):
    beat = db.get_beat(prefix)
    if beat:
        return beat
    matches = [b for b in db.get_all_beats() if b.id.startswith(prefix)]
    if len(matches) != 1:
        raise click.ClickException(
            f"No beat matches '{prefix}'" if not matches else f"'{prefix}' is ambiguous"
        )
    return matches[0]


@click.group()
@click.version_option(version="1.0.0")
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='Config file path')
@click.option('--verbose', '-v', is_flag=True, help='Debug logging')
@click.pass_context
def cli(ctx, config_path, verbose):
    """
    🎛  Beatfolio Studio

    Publish and manage your beats, profile and storage
    (local folder / Cloudflare R2 / Backblaze B2 / any S3)
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = Path(config_path) if config_path else default_config_path()
    ctx.obj['config'] = AppConfig.load(ctx.obj['config_path'])


@cli.command()
@click.pass_obj
def init(obj):
    """
    Guided configuration.

    Chooses the storage backend, tests the connection and writes the config
    file with credentials encrypted for this machine.
    """
    config: AppConfig = obj['config']
    console.print("\n")
    console.print(Panel.fit(
        "[bold cyan]🎛  Beatfolio Setup[/bold cyan]\n\n"
        "This wizard configures where your beats are stored and how the site is administered.",
        border_style="cyan"
    ))
    console.print("\n[bold]Step 1: Storage[/bold]\n")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Option", style="cyan", width=8)
    table.add_column("Storage", style="green")
    table.add_column("Best For")
    table.add_row("[1]", "Local folder", "Single machine, served by the API")
    table.add_row("[2]", "S3-compatible", "Cloudflare R2, Backblaze B2, AWS S3, MinIO")
    console.print(table)

    choice = Prompt.ask("Select storage", choices=["1", "2"],
                        default="2" if config.storage_provider == StorageProvider.S3 else "1")

    if choice == "1":
        config.storage_provider = StorageProvider.LOCAL
        config.storage_endpoint = Prompt.ask("Media directory", default=config.storage_endpoint)
        config.bucket = Prompt.ask("Sub-folder", default=config.bucket or DEFAULT_BUCKET)
    else:
        config.storage_provider = StorageProvider.S3
        endpoint = config.storage_endpoint if config.storage_endpoint.startswith("http") else ""
        config.storage_endpoint = Prompt.ask(
            "Endpoint URL (e.g. https://<account_id>.r2.cloudflarestorage.com)", default=endpoint or None
        ) or ""
        config.bucket = Prompt.ask("Bucket name", default=config.bucket or DEFAULT_BUCKET)
        config.access_key_id = Prompt.ask("Access Key ID", default=config.access_key_id or None)
        config.secret_access_key = Prompt.ask("Secret Access Key", password=True)
        config.region = Prompt.ask("Region", default=config.region or "auto")
        config.public_url = Prompt.ask("Public base URL (empty for presigned URLs)",
                                       default=config.public_url or "") or None

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                  console=console, transient=True) as progress:
        progress.add_task("Testing storage connection...", total=None)
        provider = StorageProviderFactory.create(config.storage_provider)
        connected = provider.authenticate(config.storage_credentials())

    if connected:
        console.print("[green]✓[/green] Storage is reachable\n")
    else:
        console.print("[red]✗ Could not connect to storage[/red]")
        if not Confirm.ask("Save this configuration anyway?", default=False):
            return

    console.print("[bold]Step 2: Admin access[/bold]\n")
    console.print("[dim]The admin password can also come from ADMIN_PASSWORD in the environment.[/dim]")
    if Confirm.ask("Store an admin password in the config file?", default=config.admin_password is None):
        config.admin_password = Prompt.ask("Admin password", password=True)
    if not config.secret_key:
        config.secret_key = secrets.token_hex(32)

    config.analyze_uploads = Confirm.ask("Detect BPM and key on upload?", default=config.analyze_uploads)

    path = config.save(obj['config_path'])
    DatabaseManager(config.database_path)
    console.print(f"\n[green]✓[/green] Configuration saved to [cyan]{path}[/cyan]")
    console.print(f"[green]✓[/green] Database ready at [cyan]{config.database_path}[/cyan]\n")


@cli.command()
@click.option('--host', default='0.0.0.0', help='Interface to bind')
@click.option('--port', default=DEFAULT_API_PORT, type=int, help='Port to listen on')
@click.option('--debug', is_flag=True, help='Flask debug mode')
@click.pass_obj
def serve(obj, host, port, debug):
    """Start the Beatfolio API server."""
    from shared.api import start_api
    start_api(obj['config'], host=host, port=port, debug=debug)


@cli.command()
@click.argument('source', type=click.Path(exists=True))
@click.option('--title', '-t', help='Beat title (single file only; default: title tag or filename)')
@click.option('--cover', '-c', type=click.Path(exists=True, dir_okay=False), help='Cover image')
@click.option('--bpm', type=int, help='Tempo, skips detection')
@click.option('--key', '-k', help='Musical key, e.g. "A minor"')
@click.option('--description', '-d', default="", help='Description')
@click.option('--price', type=float, help='Mark the beat for sale at this price')
@click.option('--analyze/--no-analyze', default=True, help='Detect missing BPM and key')
@click.pass_obj
def upload(obj, source, title, cover, bpm, key, description, price, analyze):
    """
    Publish a beat, or every audio file in a directory.
    """
    files = scan_directory(source)
    if not files:
        console.print(f"[yellow]No supported audio files found in {source}[/yellow]")
        return
    if title and len(files) > 1:
        raise click.ClickException("--title only applies when uploading a single file")

    publisher = _load_publisher(obj['config'], analyze)
    published = 0

    with Progress(console=console) as progress:
        task = progress.add_task(f"[green]Publishing {len(files)} beats...", total=len(files))
        for path in files:
            beat_title = title or AudioProcessor.read_title_tag(str(path)) or path.stem
            audio = MediaFile.from_path(str(path))
            cover_media = MediaFile.from_path(cover) if cover else None
            try:
                beat = publisher.publish(
                    audio, beat_title, cover=cover_media, bpm=bpm, key=key,
                    description=description, for_sale=price is not None,
                    price=price, analyze=analyze,
                )
                published += 1
                progress.console.print(
                    f"[green]✓[/green] {beat.title} "
                    f"[dim]({beat.bpm or '?'} BPM, {beat.key or 'unknown key'}) {beat.id[:8]}[/dim]"
                )
            except PublishError as e:
                progress.console.print(f"[red]✗ {path.name}: {e}[/red]")
            finally:
                audio.stream.close()
                if cover_media:
                    cover_media.stream.close()
            progress.advance(task)

    console.print(f"\n[bold green]Published {published}/{len(files)} beats[/bold green]")


@cli.command()
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
def analyze(files):
    """Detect BPM and key of audio files without publishing them."""
    analyzer = AudioAnalyzer()
    table = Table(title="Analysis")
    table.add_column("File", style="cyan")
    table.add_column("BPM", style="magenta", justify="right")
    table.add_column("Key", style="yellow")

    for path in files:
        if not AudioProcessor.is_supported_format(path):
            table.add_row(Path(path).name, "-", "[red]unsupported format[/red]")
            continue
        with console.status(f"Analyzing {Path(path).name}..."):
            result = analyzer.analyze(path)
        if result is None:
            table.add_row(Path(path).name, "-", "[red]failed[/red]")
        else:
            table.add_row(Path(path).name, str(result.bpm or "-"), result.key or "-")

    console.print(table)


@cli.command(name='list')
@click.pass_obj
def list_beats(obj):
    """List published beats with their counters."""
    db = DatabaseManager(obj['config'].database_path)
    beats = db.get_all_beats()
    if not beats:
        console.print("[yellow]No beats published yet. Use 'beatfolio-studio upload'.[/yellow]")
        return

    table = Table(title=f"Catalog ({len(beats)} beats)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="bold white")
    table.add_column("BPM", style="magenta", justify="right")
    table.add_column("Key", style="yellow")
    table.add_column("👍", justify="right")
    table.add_column("👎", justify="right")
    table.add_column("Comments", justify="right")
    table.add_column("Price", style="green")
    table.add_column("Created", style="dim")

    for b in beats:
        price = (f"{b.price:.2f}" if b.price is not None else "yes") if b.for_sale else ""
        table.add_row(
            b.id[:8], b.title, str(b.bpm or "-"), b.key or "-",
            str(b.like_count), str(b.dislike_count), str(len(db.get_comments(b.id))),
            price, b.created_at[:10],
        )
    console.print(table)


@cli.command()
@click.argument('beat_id')
@click.option('--title', '-t')
@click.option('--bpm', type=int)
@click.option('--key', '-k')
@click.option('--description', '-d')
@click.option('--price', type=float, help='Price; implies --for-sale')
@click.option('--for-sale/--not-for-sale', default=None)
@click.option('--cover', '-c', type=click.Path(exists=True, dir_okay=False), help='Replace the cover image')
@click.pass_obj
def edit(obj, beat_id, title, bpm, key, description, price, for_sale, cover):
    """Edit a beat's metadata."""
    publisher = _load_publisher(obj['config'], analyze=False)
    beat = _find_beat(publisher.db, beat_id)

    fields = {name: value for name, value in (
        ("title", title), ("bpm", bpm), ("key", key), ("description", description), ("price", price),
    ) if value is not None}
    if price is not None and for_sale is None:
        for_sale = True
    if for_sale is not None:
        fields["for_sale"] = for_sale

    if not fields and not cover:
        console.print("[yellow]Nothing to change.[/yellow]")
        return

    cover_media = MediaFile.from_path(cover) if cover else None
    try:
        updated = publisher.update_metadata(beat.id, fields, cover=cover_media)
    except PublishError as e:
        raise click.ClickException(str(e))
    finally:
        if cover_media:
            cover_media.stream.close()
    console.print(f"[green]✓[/green] Updated [bold]{updated.title}[/bold]")


@cli.command()
@click.argument('beat_id')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_obj
def delete(obj, beat_id, yes):
    """Delete a beat, its comments and its media."""
    publisher = _load_publisher(obj['config'], analyze=False)
    beat = _find_beat(publisher.db, beat_id)
    if not yes and not Confirm.ask(f"Delete '{beat.title}' and its comments?", default=False):
        return
    publisher.remove(beat.id)
    console.print(f"[green]✓[/green] Deleted [bold]{beat.title}[/bold]")


@cli.command()
@click.option('--pseudo')
@click.option('--tagline')
@click.option('--instagram')
@click.option('--twitter')
@click.option('--youtube')
@click.option('--email')
@click.option('--blur', type=int, help='Background blur in pixels')
@click.option('--picture', type=click.Path(exists=True, dir_okay=False), help='Profile picture')
@click.option('--banner', type=click.Path(exists=True, dir_okay=False))
@click.option('--background', type=click.Path(exists=True, dir_okay=False))
@click.option('--clear', multiple=True, type=click.Choice(list(Profile.IMAGE_SLOTS)), help='Remove an image')
@click.pass_obj
def profile(obj, pseudo, tagline, instagram, twitter, youtube, email, blur,
            picture, banner, background, clear):
    """Show or update the artist profile."""
    publisher = _load_publisher(obj['config'], analyze=False)

    fields = {name: value for name, value in (
        ("pseudo", pseudo), ("tagline", tagline), ("instagram", instagram),
        ("twitter", twitter), ("youtube", youtube), ("email", email), ("backgroundBlur", blur),
    ) if value is not None}
    paths = {"profilePicture": picture, "banner": banner, "backgroundImage": background}
    images = {slot: MediaFile.from_path(p) for slot, p in paths.items() if p}

    if fields or images or clear:
        try:
            current = publisher.update_profile(fields, images, clear)
        except PublishError as e:
            raise click.ClickException(str(e))
        finally:
            for media in images.values():
                media.stream.close()
        console.print("[green]✓[/green] Profile updated\n")
    else:
        current = publisher.db.get_profile()

    table = Table(show_header=False, box=None)
    table.add_column(style="cyan")
    table.add_column()
    for name, value in current.to_dict().items():
        if name == "socials":
            for social, handle in value.items():
                table.add_row(social, handle)
        else:
            table.add_row(name, "" if value is None else str(value))
    console.print(Panel.fit(table, title="Profile", border_style="cyan"))


if __name__ == '__main__':
    cli()
