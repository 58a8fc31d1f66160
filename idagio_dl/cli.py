"""Command-line interface for idagio-dl."""

import shutil
import subprocess
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from .client import IdagioClient
from .config import Config
from .downloader import Downloader
from .errors import ConfigError, IdagioError
from .quality import resolve_format


class DefaultGroup(click.Group):
    """Click group that defaults to a specified command when no command is given."""

    def __init__(self, *args, **kwargs):
        self.default_command = kwargs.pop("default_command", None)
        super().__init__(*args, **kwargs)

    def parse_args(self, ctx, args):
        # Bare URLs go to the default command; flags and known commands don't
        if (
            args
            and args[0] not in self.commands
            and self.default_command is not None
            and not args[0].startswith("-")
        ):
            args.insert(0, self.default_command)

        return super().parse_args(ctx, args)


def config_option(f):
    return click.option(
        "--config",
        "-c",
        "config_path",
        type=click.Path(dir_okay=False, path_type=Path),
        help="Config file (default: ~/.config/idagio-dl/config.yaml)",
    )(f)


def format_option(f):
    return click.option(
        "--format",
        "-f",
        "quality",
        type=int,
        help="1 = AAC 160 / 192, 2 = MP3 320 / AAC 320, 3 = 16/44 FLAC.",
    )(f)


def output_option(f):
    return click.option(
        "--output", "-o", type=click.Path(path_type=Path), help="Output path (overrides config)"
    )(f)


def cover_options(f):
    f = click.option("--write-covers", "-w", is_flag=True, help="Write covers to tracks.")(f)
    return click.option(
        "--keep-covers", "-k", is_flag=True, help="Keep covers in album folder."
    )(f)


@click.group(cls=DefaultGroup, default_command="download", invoke_without_command=True)
@click.version_option(package_name="idagio-dl")
@click.pass_context
def cli(ctx):
    """IDAGIO Downloader - albums, playlists and concerts from the IDAGIO catalog."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit()


def build_downloader(
    config_path: Optional[Path],
    quality: Optional[int],
    output: Optional[Path],
    keep_covers: bool,
    write_covers: bool,
) -> Downloader:
    """Load config, validate the quality tier and sign in.

    The tier is checked before any network activity.

    Raises:
        ConfigError: Invalid tier or missing credentials
        IdagioError: Sign-in failed
    """
    config = Config(config_path)

    format_code = resolve_format(quality if quality is not None else config.format)

    if not config.email or not config.password:
        raise ConfigError("email and password must be set in the config file")

    output_dir = output / "IDAGIO downloads" if output else config.output_dir

    client = IdagioClient()
    session = client.authenticate(config.email, config.password)
    click.echo(f"✅ Signed in successfully - {session.plan_display_name}")
    if not session.premium:
        click.echo("⚠️ No active subscription; audio quality limited.")
    click.echo()

    return Downloader(
        config,
        client,
        session,
        format_code,
        output_dir=output_dir,
        keep_covers=True if keep_covers else None,
        write_covers=True if write_covers else None,
    )


def _downloader_or_exit(*args) -> Downloader:
    try:
        return build_downloader(*args)
    except ConfigError as e:
        click.echo(f"❌ Configuration error: {e}", err=True)
        sys.exit(1)
    except IdagioError as e:
        click.echo(f"❌ Failed to sign in: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("urls", nargs=-1, required=True)
@format_option
@output_option
@cover_options
@config_option
def download(
    urls: Tuple[str, ...],
    quality: Optional[int],
    output: Optional[Path],
    keep_covers: bool,
    write_covers: bool,
    config_path: Optional[Path],
):
    """Download albums and concerts from URLs.

    URLS may also be paths to .txt files with one URL per line.
    """
    downloader = _downloader_or_exit(config_path, quality, output, keep_covers, write_covers)

    try:
        summary = downloader.run(urls)
    except ConfigError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\n⚠️ Download cancelled by user")
        sys.exit(1)

    click.echo(
        f"📊 Done: {summary['succeeded']} succeeded, {summary['failed']} failed, "
        f"{summary['invalid']} invalid"
    )
    if summary["failed"]:
        sys.exit(1)


@cli.command()
@click.argument("slug")
@format_option
@output_option
@cover_options
@config_option
def playlist(
    slug: str,
    quality: Optional[int],
    output: Optional[Path],
    keep_covers: bool,
    write_covers: bool,
    config_path: Optional[Path],
):
    """Download a playlist by slug."""
    downloader = _downloader_or_exit(config_path, quality, output, keep_covers, write_covers)

    try:
        downloader.download_playlist(slug)
    except KeyboardInterrupt:
        click.echo("\n⚠️ Download cancelled by user")
        sys.exit(1)
    except IdagioError as e:
        click.echo(f"❌ Playlist failed.\n{e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument("slug")
@click.option(
    "--filter",
    "filters",
    help="Query string, e.g. 'composers=123&soloists=456'. "
    "Allowed keys: composers, conductors, ensembles, instruments, soloists.",
)
@format_option
@output_option
@cover_options
@config_option
def artist(
    slug: str,
    filters: Optional[str],
    quality: Optional[int],
    output: Optional[Path],
    keep_covers: bool,
    write_covers: bool,
    config_path: Optional[Path],
):
    """Download every album of an artist."""
    downloader = _downloader_or_exit(config_path, quality, output, keep_covers, write_covers)

    try:
        summary = downloader.download_artist(slug, filters)
    except KeyboardInterrupt:
        click.echo("\n⚠️ Download cancelled by user")
        sys.exit(1)
    except IdagioError as e:
        click.echo(f"❌ Artist lookup failed.\n{e}", err=True)
        sys.exit(1)

    click.echo(f"📊 Done: {summary['succeeded']} succeeded, {summary['failed']} failed")
    if summary["failed"]:
        sys.exit(1)


@cli.command("check-setup")
@config_option
def check_setup(config_path: Optional[Path]):
    """Verify all dependencies are installed."""
    click.echo("🔍 Checking idagio-dl dependencies...")
    click.echo()

    import bs4
    import cryptography
    import mutagen
    import requests
    import yaml

    click.echo(f"✅ requests: {requests.__version__}")
    click.echo(f"✅ mutagen: {mutagen.version_string}")
    click.echo(f"✅ cryptography: {cryptography.__version__}")
    click.echo(f"✅ PyYAML: {yaml.__version__}")
    click.echo(f"✅ beautifulsoup4: {bs4.__version__}")
    click.echo(f"✅ click: {click.__version__}")

    all_ok = True

    config = None
    try:
        config = Config(config_path)
        click.echo(f"✅ Configuration: {config.config_path}")
    except SystemExit:
        click.echo("⚠️ Configuration: config.yaml not found")
        click.echo("   Run: idagio-dl init")
        all_ok = False

    ffmpeg = config.ffmpeg_path if config else "ffmpeg"
    try:
        subprocess.run([ffmpeg, "-version"], capture_output=True, check=True)
        click.echo(f"✅ ffmpeg: {ffmpeg}")
    except (OSError, subprocess.CalledProcessError):
        click.echo("⚠️ ffmpeg: Not found (needed for concerts)")
        click.echo("   Install ffmpeg or set ffmpeg.path in config.yaml")

    click.echo()

    if all_ok:
        click.echo("🎉 Ready! Try: idagio-dl download <url>")
    else:
        sys.exit(1)


@cli.command()
def init():
    """Initialize configuration file in ~/.config/idagio-dl/."""
    config_dir = Path.home() / ".config" / "idagio-dl"
    config_path = config_dir / "config.yaml"

    if config_path.exists():
        click.echo(f"✅ Config already exists: {config_path}")
        click.echo()
        click.echo("To reconfigure, either:")
        click.echo(f"  1. Edit: {config_path}")
        click.echo("  2. Delete and run 'idagio-dl init' again")
        return

    example = Path(__file__).parent.parent / "config.example.yaml"
    if not example.exists():
        click.echo(f"❌ Example config not found at {example}", err=True)
        click.echo("Create config.yaml manually with email, password and output_dir.", err=True)
        sys.exit(1)

    config_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy(example, config_path)

    click.echo(f"✅ Created config: {config_path}")
    click.echo()
    click.echo("📝 Fill in your IDAGIO email and password, then run:")
    click.echo("   idagio-dl download <url>")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
