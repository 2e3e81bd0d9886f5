"""CLI entry point for ciupload."""

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from ciupload import __version__
from ciupload.core.config import ConfigurationError, load_config
from ciupload.core.hosting import HostingError
from ciupload.core.uploader import UploadError, run

console = Console()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="ciupload")
@click.argument("files", nargs=-1)
@click.option("-suffix", "--suffix", "suffix", default="", help="Suffix for the names of created continuous releases")
@click.option("-relbody", "--relbody", "relbody", default="", help="Body of newly created releases")
@click.option("-preponly", "--preponly", "preponly", is_flag=True, help="Only prepare the release, upload nothing")
@click.option("-upload-to-service", "--upload-to-service", "service", default="", help="Hosting service to upload to: github or gitlab")
@click.option("-upload-to-repo", "--upload-to-repo", "repo", default="", help="Repository to upload to")
@click.option("-upload-to-repo-owner", "--upload-to-repo-owner", "owner", default="", help="Owner of the repository to upload to")
@click.option("-upload-auth-token", "--upload-auth-token", "token", default="", help="Access token for the hosting service")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file (defaults to $CIUPLOAD_CONFIG or ./.ciupload.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Print diagnostic output")
def main(
    files: tuple[str, ...],
    suffix: str,
    relbody: str,
    preponly: bool,
    service: str,
    repo: str,
    owner: str,
    token: str,
    config_path: Path | None,
    verbose: bool,
):
    """ciupload - Upload CI build artifacts to a GitHub or GitLab release.

    Creates or updates the release matching the current build, records the
    CI build log link in its description and uploads FILES as its assets,
    replacing any previous assets with the same names.

    Examples:

        ciupload build/app.zip

        ciupload -suffix=nightly dist/*.tar.gz

        ciupload -preponly -relbody="Nightly builds"
    """
    try:
        config = load_config(config_path).merged(
            filenames=files,
            release_suffix=suffix,
            release_body=relbody,
            prep_only=preponly,
            verbose=verbose,
            service=service,
            repo=repo,
            owner=owner,
            token=token,
        )
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)

    if not config.filenames and not config.prep_only:
        raise click.UsageError("No files to upload were given")

    try:
        run(config)
    except (ConfigurationError, HostingError, UploadError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
