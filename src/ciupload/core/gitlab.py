"""GitLab API client for managing releases and their download links."""

from pathlib import Path
from urllib.parse import quote

import httpx

from ciupload.core.hosting import HostingError, ReleaseNotFoundError, check_response
from ciupload.models.build_event import BuildEventInfo
from ciupload.models.release import GitLabRelease, GitLabReleaseAsset


GITLAB_URL = "https://gitlab.com"


class GitLabError(HostingError):
    """Error from GitLab API."""

    pass


class GitLabClient:
    """Client for interacting with GitLab API.

    Uploaded files are attached to the project rather than to the release, so
    the release keeps track of them as markdown links in the "Downloads:"
    section of its description. Adding or removing an asset rewrites that
    section and updates the release.
    """

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        base_url: str = GITLAB_URL,
        transport: httpx.BaseTransport | None = None,
    ):
        self.owner = owner
        self.repo = repo
        self.web_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=f"{self.web_url}/api/v4",
            headers={"PRIVATE-TOKEN": token},
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
    def _project_path(self) -> str:
        return f"/projects/{quote(f'{self.owner}/{self.repo}', safe='')}"

    def _request(self, method: str, url: str, action: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise GitLabError(f"Failed to {action}: {e}") from e

        try:
            return check_response(response, action)
        except HostingError as e:
            raise GitLabError(str(e), e.status_code, e.status) from None

    def new_release(self, release_body: str, info: BuildEventInfo) -> GitLabRelease:
        """Build a release for the current build, not yet created on GitLab."""
        return GitLabRelease(
            tag_name=info.tag,
            description=release_body,
            name=info.release_title,
            target_commitish=info.commit,
            prerelease=info.is_prerelease,
        )

    def get_release_by_tag(self, tag_name: str) -> GitLabRelease:
        """Get a specific release by tag name."""
        try:
            response = self._request(
                "GET",
                f"{self._project_path}/releases/{quote(tag_name, safe='')}",
                "fetch release information",
            )
        except GitLabError as e:
            if e.status_code == 404:
                raise ReleaseNotFoundError(
                    f"Release {tag_name} not found for {self.owner}/{self.repo}",
                    status_code=404,
                    status=e.status,
                ) from None
            raise

        return GitLabRelease.from_api_response(response.json())

    def create_release(self, release: GitLabRelease) -> GitLabRelease:
        """Create a new release, creating its tag at the target commit if needed."""
        response = self._request(
            "POST",
            f"{self._project_path}/releases",
            "create the new release",
            json={
                "tag_name": release.tag_name,
                "ref": release.target_commitish,
                "name": release.name,
                "description": release.description,
            },
        )
        created = GitLabRelease.from_api_response(response.json())
        created.prerelease = release.prerelease
        return created

    def update_release(self, release: GitLabRelease) -> GitLabRelease:
        """Push the release's name and full description to GitLab."""
        response = self._request(
            "PUT",
            f"{self._project_path}/releases/{quote(release.tag_name, safe='')}",
            "update the release",
            json={"name": release.name, "description": release.description},
        )
        updated = GitLabRelease.from_api_response(response.json())
        updated.prerelease = release.prerelease
        return updated

    def delete_release(self, release: GitLabRelease) -> None:
        """Delete a release, leaving its tag in place."""
        self._request(
            "DELETE",
            f"{self._project_path}/releases/{quote(release.tag_name, safe='')}",
            "delete the release",
        )

    def delete_tag(self, tag_name: str) -> None:
        """Delete a tag. A tag that is already gone is not an error."""
        try:
            self._request(
                "DELETE",
                f"{self._project_path}/repository/tags/{quote(tag_name, safe='')}",
                f"delete tag {tag_name}",
            )
        except GitLabError as e:
            if e.status_code != 404:
                raise

    def list_release_assets(self, release: GitLabRelease) -> list[GitLabReleaseAsset]:
        """List the download links recorded in the release description."""
        return release.assets

    def delete_release_asset(self, asset: GitLabReleaseAsset) -> None:
        """Remove a download link from the release it belongs to."""
        release = self.get_release_by_tag(asset.tag_name)
        release.set_assets([a for a in release.assets if a.name != asset.name])
        self.update_release(release)

    def upload_release_asset(
        self, release: GitLabRelease, asset_name: str, path: Path
    ) -> GitLabReleaseAsset:
        """Upload a file to the project and link it from the release.

        The release is re-read before its description is rewritten so links
        added by other jobs are kept; the given release is refreshed in place.
        """
        with open(path, "rb") as f:
            response = self._request(
                "POST",
                f"{self._project_path}/uploads",
                "upload release asset",
                files={"file": (asset_name, f, "application/octet-stream")},
                timeout=300.0,
            )

        data = response.json()
        asset = GitLabReleaseAsset(
            name=asset_name,
            url=f"{self.web_url}/{self.owner}/{self.repo}{data['url']}",
            tag_name=release.tag_name,
        )

        current = self.get_release_by_tag(release.tag_name)
        assets = [a for a in current.assets if a.name != asset_name]
        assets.append(asset)
        current.set_assets(assets)
        updated = self.update_release(current)

        release.description = updated.description
        return asset
