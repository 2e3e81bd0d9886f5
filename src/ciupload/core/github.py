"""GitHub API client for managing releases and their assets."""

from pathlib import Path
from urllib.parse import quote

import httpx

from ciupload.core.hosting import HostingError, ReleaseNotFoundError, check_response
from ciupload.models.build_event import BuildEventInfo
from ciupload.models.release import GitHubRelease, GitHubReleaseAsset


GITHUB_API_BASE = "https://api.github.com"
GITHUB_UPLOADS_BASE = "https://uploads.github.com"


class GitHubError(HostingError):
    """Error from GitHub API."""

    pass


class GitHubClient:
    """Client for interacting with GitHub API."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        transport: httpx.BaseTransport | None = None,
    ):
        self.owner = owner
        self.repo = repo
        self.client = httpx.Client(
            base_url=GITHUB_API_BASE,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=30.0,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def close(self) -> None:
        self.client.close()

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    def _request(self, method: str, url: str, action: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise GitHubError(f"Failed to {action}: {e}") from e

        try:
            return check_response(response, action)
        except HostingError as e:
            raise GitHubError(str(e), e.status_code, e.status) from None

    def new_release(self, release_body: str, info: BuildEventInfo) -> GitHubRelease:
        """Build a release for the current build, not yet created on GitHub."""
        return GitHubRelease(
            tag_name=info.tag,
            name=info.release_title,
            body=release_body,
            target_commitish=info.commit,
            prerelease=info.is_prerelease,
        )

    def get_release_by_tag(self, tag_name: str) -> GitHubRelease:
        """Get a specific release by tag name.

        GitHub reports the branch the release was created from as its target,
        so the commit is resolved through the tag itself. A missing tag gives
        an empty commit.
        """
        try:
            response = self._request(
                "GET",
                f"{self._repo_path}/releases/tags/{quote(tag_name, safe='')}",
                "fetch release information",
            )
        except GitHubError as e:
            if e.status_code == 404:
                raise ReleaseNotFoundError(
                    f"Release {tag_name} not found for {self.owner}/{self.repo}",
                    status_code=404,
                    status=e.status,
                ) from None
            raise

        release = GitHubRelease.from_api_response(response.json())
        release.target_commitish = self._get_tag_commit(tag_name)
        return release

    def _get_tag_commit(self, tag_name: str) -> str:
        try:
            response = self._request(
                "GET",
                f"{self._repo_path}/commits/{quote(tag_name, safe='')}",
                "resolve the tag commit",
            )
        except GitHubError as e:
            # The release outlived its tag
            if e.status_code in (404, 422):
                return ""
            raise
        return response.json().get("sha", "")

    def create_release(self, release: GitHubRelease) -> GitHubRelease:
        """Create a new release."""
        response = self._request(
            "POST",
            f"{self._repo_path}/releases",
            "create the new release",
            json=release.to_payload(),
        )
        created = GitHubRelease.from_api_response(response.json())
        created.target_commitish = release.target_commitish
        return created

    def update_release(self, release: GitHubRelease) -> GitHubRelease:
        """Push the release's name and body to GitHub."""
        response = self._request(
            "PATCH",
            f"{self._repo_path}/releases/{release.id}",
            "update the release",
            json={"name": release.name, "body": release.body},
        )
        updated = GitHubRelease.from_api_response(response.json())
        updated.target_commitish = release.target_commitish
        return updated

    def delete_release(self, release: GitHubRelease) -> None:
        """Delete a release, leaving its tag in place."""
        self._request(
            "DELETE",
            f"{self._repo_path}/releases/{release.id}",
            "delete the release",
        )

    def delete_tag(self, tag_name: str) -> None:
        """Delete a tag through the git refs API.

        A tag that is already gone is not an error.
        """
        try:
            self._request(
                "DELETE",
                f"{self._repo_path}/git/refs/tags/{quote(tag_name, safe='')}",
                f"delete tag {tag_name}",
            )
        except GitHubError as e:
            if e.status_code not in (404, 422):
                raise

    def list_release_assets(self, release: GitHubRelease) -> list[GitHubReleaseAsset]:
        """List the assets attached to a release."""
        response = self._request(
            "GET",
            f"{self._repo_path}/releases/{release.id}/assets",
            "list release assets",
            params={"per_page": 100},
        )
        return [
            GitHubReleaseAsset.from_api_response(data, release.tag_name)
            for data in response.json()
        ]

    def delete_release_asset(self, asset: GitHubReleaseAsset) -> None:
        """Delete a release asset by its id."""
        self._request(
            "DELETE",
            f"{self._repo_path}/releases/assets/{asset.id}",
            "delete the stale release asset",
        )

    def upload_release_asset(
        self, release: GitHubRelease, asset_name: str, path: Path
    ) -> GitHubReleaseAsset:
        """Upload a file as a new release asset."""
        with open(path, "rb") as f:
            content = f.read()

        response = self._request(
            "POST",
            f"{GITHUB_UPLOADS_BASE}{self._repo_path}/releases/{release.id}/assets",
            "upload release asset",
            params={"name": asset_name},
            content=content,
            headers={"Content-Type": "application/octet-stream"},
            timeout=300.0,
        )
        return GitHubReleaseAsset.from_api_response(response.json(), release.tag_name)
