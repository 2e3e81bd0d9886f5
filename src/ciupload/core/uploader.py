"""Release reconciliation and asset upload."""

import glob
import os
import stat
from collections.abc import Callable, Mapping
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from ciupload.core.body import update_build_log
from ciupload.core.config import UploadConfig
from ciupload.core.environment import collect_build_event_info
from ciupload.core.github import GitHubClient
from ciupload.core.gitlab import GitLabClient
from ciupload.core.hosting import HostingClient, ReleaseNotFoundError
from ciupload.models.build_event import BuildEventInfo, CIKind
from ciupload.models.release import Release, ReleaseAsset

console = Console()

ClientFactory = Callable[[str, str, str, str], HostingClient]


class UploadError(Exception):
    """A local file could not be uploaded."""

    pass


def create_client(service: str, token: str, owner: str, repo: str) -> HostingClient:
    """Create the hosting client for a service name."""
    if service == "gitlab":
        return GitLabClient(token, owner, repo)
    return GitHubClient(token, owner, repo)


def expand_filenames(filenames: list[str], expand_globs: bool | None = None) -> list[str]:
    """Expand glob patterns when the calling shell does not do it.

    Windows shells pass patterns through verbatim. A pattern matching nothing
    is kept as is so that the failure to open it is reported.
    """
    if expand_globs is None:
        expand_globs = os.name == "nt"
    if not expand_globs:
        return list(filenames)

    expanded = []
    for filename in filenames:
        matches = sorted(glob.glob(filename))
        expanded.extend(matches or [filename])
    return expanded


def _find_release(client: HostingClient, tag_name: str) -> Release | None:
    try:
        return client.get_release_by_tag(tag_name)
    except ReleaseNotFoundError:
        return None


def prepare_release(
    client: HostingClient,
    info: BuildEventInfo,
    release_body: str = "",
    verbose: bool = False,
) -> tuple[Release, list[ReleaseAsset]]:
    """Make sure a release for the build's tag exists at the build's commit.

    An existing release pointing at another commit is deleted and created
    anew; for prereleases its tag is deleted as well so that it gets
    recreated at the current commit.

    Returns the release and the assets it already had.
    """
    release = _find_release(client, info.tag)

    if release is not None:
        target_commitish = release.target_commitish
        if target_commitish and target_commitish != info.commit:
            console.print(
                "Found existing release but its commit SHA doesn't match "
                f"the current one: {info.commit} vs {target_commitish}"
            )
            console.print(
                "Deleting the existing release to recreate it with the "
                f"current commit SHA {info.commit}"
            )
            client.delete_release(release)

            if info.is_prerelease:
                console.print(
                    "Since the existing release was pre-release one, need to "
                    "also remove the tag corresponding to it"
                )
                client.delete_tag(info.tag)

            release = None

    if release is None:
        console.print("[blue]Creating new release[/blue]")
        release = client.new_release(release_body, info)
        release.body = update_build_log(release.body, info)
        release = client.create_release(release)
        console.print(f"[green]✓[/green] Created new release [bold]{escape(release.tag_name)}[/bold]")
        return release, []

    existing_assets = client.list_release_assets(release)
    if verbose:
        names = ", ".join(escape(asset.name) for asset in existing_assets) or "none"
        console.print(f"[dim]Existing release assets: {names}[/dim]")

    release.body = update_build_log(release.body, info)
    release = client.update_release(release)
    console.print(f"Updated existing release [bold]{escape(release.tag_name)}[/bold]")
    return release, existing_assets


def upload_files(
    client: HostingClient,
    release: Release,
    filenames: list[str],
    existing_assets: list[ReleaseAsset],
) -> list[ReleaseAsset]:
    """Upload files as release assets, replacing stale ones of the same name.

    Files are uploaded in the given order. Returns the release's assets as
    known after the uploads.
    """
    assets = list(existing_assets)

    for filename in filenames:
        path = Path(filename)
        try:
            mode = path.stat().st_mode
        except OSError as e:
            raise UploadError(f"Failed to open {filename}: {e}") from e

        if not stat.S_ISREG(mode):
            console.print(f"[yellow]Skipping dir {escape(filename)}[/yellow]")
            continue

        asset_name = path.name
        for asset in [a for a in assets if a.name and a.name == asset_name]:
            console.print(f"Found duplicate release asset {escape(asset.name)}, deleting it")
            client.delete_release_asset(asset)
            assets.remove(asset)

        console.print(f"Trying to upload file: {escape(filename)}")
        try:
            uploaded = client.upload_release_asset(release, asset_name, path)
        except OSError as e:
            raise UploadError(f"Failed to read {filename}: {e}") from e

        assets.append(uploaded)
        console.print(f"  [green]✓[/green] Uploaded [cyan]{escape(asset_name)}[/cyan]")

    return assets


def upload_release(
    info: BuildEventInfo,
    client: HostingClient,
    filenames: list[str],
    release_body: str = "",
    prep_only: bool = False,
    verbose: bool = False,
) -> Release:
    """Reconcile the release for a build event and upload files to it."""
    release, existing_assets = prepare_release(client, info, release_body, verbose)

    if prep_only:
        console.print("[dim]Release prepared, skipping uploads[/dim]")
        return release

    upload_files(client, release, expand_filenames(filenames), existing_assets)
    return release


def run(
    config: UploadConfig,
    environ: Mapping[str, str] | None = None,
    client_factory: ClientFactory = create_client,
) -> Release | None:
    """Run a complete upload as configured.

    Returns None when the build event calls for no action.
    """
    overrides = config.overrides
    info = collect_build_event_info(config.release_suffix, overrides, environ)
    if info is None:
        console.print("No build event info, won't do anything")
        return None

    token = overrides.token or info.token
    owner = overrides.owner or info.owner
    repo = overrides.repo or info.repo

    service = overrides.service
    if not service:
        service = "gitlab" if info.ci_kind == CIKind.GITLAB else "github"

    if config.verbose:
        console.print(
            f"[dim]Build of {info.repo_slug}, uploading to {service} "
            f"repository {owner}/{repo}[/dim]"
        )

    client = client_factory(service, token, owner, repo)
    try:
        return upload_release(
            info,
            client,
            config.filenames,
            release_body=config.release_body,
            prep_only=config.prep_only,
            verbose=config.verbose,
        )
    finally:
        client.close()
