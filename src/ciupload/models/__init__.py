"""Data models for ciupload."""

from ciupload.models.build_event import BuildEventInfo, CIKind
from ciupload.models.release import (
    GitHubRelease,
    GitHubReleaseAsset,
    GitLabRelease,
    GitLabReleaseAsset,
    Release,
    ReleaseAsset,
)

__all__ = [
    "BuildEventInfo",
    "CIKind",
    "GitHubRelease",
    "GitHubReleaseAsset",
    "GitLabRelease",
    "GitLabReleaseAsset",
    "Release",
    "ReleaseAsset",
]
