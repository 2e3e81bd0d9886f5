"""Hosting service abstraction shared by the GitHub and GitLab clients."""

from pathlib import Path
from typing import Protocol

import httpx

from ciupload.models.build_event import BuildEventInfo
from ciupload.models.release import Release, ReleaseAsset


class HostingError(Exception):
    """Error from a hosting service API."""

    def __init__(self, message: str, status_code: int | None = None, status: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.status = status


class ReleaseNotFoundError(HostingError):
    """No release exists for the requested tag."""

    pass


def check_response(response: httpx.Response, action: str) -> httpx.Response:
    """Raise HostingError unless the response has a 2xx status code."""
    if 200 <= response.status_code <= 299:
        return response

    raise HostingError(
        f"Bad response on attempt to {action}: "
        f"HTTP {response.status_code} {response.reason_phrase}",
        status_code=response.status_code,
        status=response.reason_phrase,
    )


class HostingClient(Protocol):
    """Operations the uploader needs from a hosting service.

    Every method raises HostingError on transport failures and on responses
    outside the 2xx range.
    """

    owner: str
    repo: str

    def new_release(self, release_body: str, info: BuildEventInfo) -> Release:
        """Build a release value, not yet created on the service."""
        ...

    def get_release_by_tag(self, tag_name: str) -> Release:
        """Fetch a release by tag; raises ReleaseNotFoundError on 404."""
        ...

    def create_release(self, release: Release) -> Release: ...

    def update_release(self, release: Release) -> Release: ...

    def delete_release(self, release: Release) -> None: ...

    def delete_tag(self, tag_name: str) -> None: ...

    def list_release_assets(self, release: Release) -> list[ReleaseAsset]: ...

    def delete_release_asset(self, asset: ReleaseAsset) -> None: ...

    def upload_release_asset(
        self, release: Release, asset_name: str, path: Path
    ) -> ReleaseAsset: ...

    def close(self) -> None: ...
