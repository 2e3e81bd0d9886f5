"""Release data models for the supported hosting services."""

import re
from dataclasses import dataclass, field
from typing import Protocol

DOWNLOADS_HEADER = "Downloads:"

_DOWNLOADS_HEADER_RE = re.compile(r"^Downloads:[ \t]*$", re.MULTILINE)
_DOWNLOAD_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")


def parse_downloads(description: str) -> tuple[str, list[tuple[str, str]]]:
    """Split a description into its notes and the (name, url) download links.

    The links are read from the last "Downloads:" section; everything above
    it is returned verbatim as the notes.
    """
    headers = list(_DOWNLOADS_HEADER_RE.finditer(description))
    if not headers:
        return description, []

    header = headers[-1]
    notes = description[: header.start()]
    links = _DOWNLOAD_LINK_RE.findall(description[header.end():])
    return notes, links


def write_downloads(notes: str, links: list[tuple[str, str]]) -> str:
    """Serialize notes followed by a "Downloads:" section of markdown links."""
    notes = notes.rstrip("\n")
    if not links:
        return notes + "\n" if notes else ""

    lines = [notes] if notes else []
    lines.append(DOWNLOADS_HEADER)
    lines.extend(f" * [{name}]({url})" for name, url in links)
    return "\n".join(lines) + "\n"


class ReleaseAsset(Protocol):
    """Uniform view over a release asset."""

    tag_name: str
    name: str


class Release(Protocol):
    """Uniform view over a release."""

    tag_name: str
    name: str
    body: str
    target_commitish: str
    draft: bool
    prerelease: bool


@dataclass
class GitHubReleaseAsset:
    """Represents a GitHub release asset."""

    id: int
    name: str
    tag_name: str = ""
    download_url: str = ""
    size: int = 0
    content_type: str = "application/octet-stream"

    @classmethod
    def from_api_response(cls, data: dict, tag_name: str = "") -> "GitHubReleaseAsset":
        """Create GitHubReleaseAsset from GitHub API response."""
        return cls(
            id=data["id"],
            name=data["name"],
            tag_name=tag_name,
            download_url=data.get("browser_download_url", ""),
            size=data.get("size", 0),
            content_type=data.get("content_type", "application/octet-stream"),
        )


@dataclass
class GitHubRelease:
    """Represents a GitHub release."""

    tag_name: str
    name: str
    body: str = ""
    target_commitish: str = ""
    draft: bool = False
    prerelease: bool = False
    id: int = 0
    assets: list[GitHubReleaseAsset] = field(default_factory=list)
    upload_url: str = ""

    @classmethod
    def from_api_response(cls, data: dict) -> "GitHubRelease":
        """Create GitHubRelease from GitHub API response."""
        tag_name = data["tag_name"]
        assets = [
            GitHubReleaseAsset.from_api_response(a, tag_name)
            for a in data.get("assets", [])
        ]
        return cls(
            tag_name=tag_name,
            name=data.get("name") or tag_name,
            body=data.get("body") or "",
            target_commitish=data.get("target_commitish") or "",
            draft=data.get("draft", False),
            prerelease=data.get("prerelease", False),
            id=data["id"],
            assets=assets,
            upload_url=data.get("upload_url", ""),
        )

    def to_payload(self) -> dict:
        """Convert to the JSON payload accepted by the releases endpoints."""
        return {
            "tag_name": self.tag_name,
            "target_commitish": self.target_commitish,
            "name": self.name,
            "body": self.body,
            "draft": self.draft,
            "prerelease": self.prerelease,
        }


@dataclass
class GitLabReleaseAsset:
    """Represents a download link stored in a GitLab release description."""

    name: str
    url: str
    tag_name: str = ""


class GitLabRelease:
    """Represents a GitLab release.

    GitLab has no native asset list for uploaded files, so assets live in a
    trailing "Downloads:" section of the description. ``body`` exposes only
    the notes above that section; ``description`` is the full text stored on
    the server.
    """

    def __init__(
        self,
        tag_name: str,
        description: str = "",
        name: str = "",
        target_commitish: str = "",
        prerelease: bool = False,
    ):
        self.tag_name = tag_name
        self.name = name or tag_name
        self.description = description
        self.target_commitish = target_commitish
        self.prerelease = prerelease
        self.draft = False

    @classmethod
    def from_api_response(cls, data: dict) -> "GitLabRelease":
        """Create GitLabRelease from GitLab API response."""
        commit = data.get("commit") or {}
        return cls(
            tag_name=data["tag_name"],
            description=data.get("description") or "",
            name=data.get("name") or "",
            target_commitish=commit.get("id", ""),
        )

    @property
    def body(self) -> str:
        notes, _ = parse_downloads(self.description)
        return notes

    @body.setter
    def body(self, value: str) -> None:
        self.description = write_downloads(value, self._download_links())

    @property
    def assets(self) -> list[GitLabReleaseAsset]:
        """Assets parsed from the Downloads section of the description."""
        return [
            GitLabReleaseAsset(name=name, url=url, tag_name=self.tag_name)
            for name, url in self._download_links()
        ]

    def set_assets(self, assets: list[GitLabReleaseAsset]) -> None:
        """Rewrite the Downloads section, keeping the notes untouched."""
        self.description = write_downloads(
            self.body, [(asset.name, asset.url) for asset in assets]
        )

    def _download_links(self) -> list[tuple[str, str]]:
        _, links = parse_downloads(self.description)
        return links

    def __repr__(self) -> str:
        return f"GitLabRelease(tag_name={self.tag_name!r}, target_commitish={self.target_commitish!r})"
