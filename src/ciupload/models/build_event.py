"""Build event data models."""

from dataclasses import dataclass
from enum import Enum


class CIKind(Enum):
    """Continuous integration system that triggered the run."""

    NONE = "none"
    TRAVIS = "travis"
    APPVEYOR = "appveyor"
    GITLAB = "gitlab"


@dataclass(frozen=True)
class BuildEventInfo:
    """Normalized facts about the current CI build."""

    token: str
    owner: str
    repo: str
    commit: str
    branch: str = "master"
    tag: str = ""
    is_pull_request: bool = False
    is_prerelease: bool = False
    release_title: str = ""
    build_id: str = ""
    ci_kind: CIKind = CIKind.NONE

    @property
    def repo_slug(self) -> str:
        """Get the owner/repo slug."""
        return f"{self.owner}/{self.repo}"
