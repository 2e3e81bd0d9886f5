import copy
import itertools
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from ciupload.core.hosting import HostingError, ReleaseNotFoundError
from ciupload.models.build_event import BuildEventInfo

OWNER = "d1vanov"
REPO = "ciuploadtool"
SLUG = f"{OWNER}/{REPO}"


@dataclass
class FakeReleaseAsset:
    id: int
    tag_name: str
    name: str
    content: bytes = b""


@dataclass
class FakeRelease:
    tag_name: str
    name: str
    body: str = ""
    target_commitish: str = ""
    draft: bool = False
    prerelease: bool = False
    id: int = 0
    assets: list[FakeReleaseAsset] = field(default_factory=list)


class FakeClient:
    """In-memory hosting service holding releases, tags and assets.

    Values handed out are copies, so callers only see changes they push back
    through the client. Ids come from a counter owned by the instance.
    """

    def __init__(self, token: str = "fake_token", owner: str = OWNER, repo: str = REPO):
        self.token = token
        self.owner = owner
        self.repo = repo
        self.releases: list[FakeRelease] = []
        self.tag_names: list[str] = []
        self.calls: list[tuple[str, str]] = []
        self.closed = False
        self._ids = itertools.count(1)

    def seed_release(
        self,
        tag_name: str,
        commit: str,
        body: str = "",
        prerelease: bool = True,
        assets: dict[str, bytes] | None = None,
    ) -> FakeRelease:
        release = FakeRelease(
            tag_name=tag_name,
            name=f"Continuous build ({tag_name})",
            body=body,
            target_commitish=commit,
            prerelease=prerelease,
            id=next(self._ids),
        )
        for name, content in (assets or {}).items():
            release.assets.append(
                FakeReleaseAsset(next(self._ids), tag_name, name, content)
            )
        self.releases.append(release)
        self.tag_names.append(tag_name)
        return copy.deepcopy(release)

    def release(self, tag_name: str) -> FakeRelease:
        return next(r for r in self.releases if r.tag_name == tag_name)

    def _check_token(self) -> None:
        if not self.token:
            raise HostingError("Bad credentials", status_code=401, status="Unauthorized")

    def _find(self, tag_name: str) -> FakeRelease:
        for release in self.releases:
            if release.tag_name == tag_name:
                return release
        raise HostingError("Release was not found", status_code=404, status="Not Found")

    def new_release(self, release_body: str, info: BuildEventInfo) -> FakeRelease:
        return FakeRelease(
            tag_name=info.tag,
            name=info.release_title,
            body=release_body,
            target_commitish=info.commit,
            prerelease=info.is_prerelease,
        )

    def get_release_by_tag(self, tag_name: str) -> FakeRelease:
        self.calls.append(("get_release_by_tag", tag_name))
        self._check_token()
        for release in self.releases:
            if release.tag_name == tag_name:
                return copy.deepcopy(release)
        raise ReleaseNotFoundError("Release matching tag name was not found", 404)

    def create_release(self, release: FakeRelease) -> FakeRelease:
        self.calls.append(("create_release", release.tag_name))
        self._check_token()
        if not release.tag_name:
            raise HostingError("Missing tag name", status_code=400)
        if not release.name:
            raise HostingError("Missing release name", status_code=400)

        stored = copy.deepcopy(release)
        stored.id = next(self._ids)
        stored.assets = []
        self.releases.append(stored)
        if stored.tag_name not in self.tag_names:
            self.tag_names.append(stored.tag_name)
        return copy.deepcopy(stored)

    def update_release(self, release: FakeRelease) -> FakeRelease:
        self.calls.append(("update_release", release.tag_name))
        self._check_token()
        stored = self._find(release.tag_name)
        stored.name = release.name
        stored.body = release.body
        return copy.deepcopy(stored)

    def delete_release(self, release: FakeRelease) -> None:
        self.calls.append(("delete_release", release.tag_name))
        self._check_token()
        for i, stored in enumerate(self.releases):
            if stored.id == release.id:
                del self.releases[i]
                return
        raise HostingError("No such release found", status_code=404)

    def delete_tag(self, tag_name: str) -> None:
        self.calls.append(("delete_tag", tag_name))
        self._check_token()
        if tag_name in self.tag_names:
            self.tag_names.remove(tag_name)

    def list_release_assets(self, release: FakeRelease) -> list[FakeReleaseAsset]:
        self.calls.append(("list_release_assets", release.tag_name))
        self._check_token()
        return copy.deepcopy(self._find(release.tag_name).assets)

    def delete_release_asset(self, asset: FakeReleaseAsset) -> None:
        self.calls.append(("delete_release_asset", asset.name))
        self._check_token()
        stored = self._find(asset.tag_name)
        for i, current in enumerate(stored.assets):
            if current.id == asset.id:
                del stored.assets[i]
                return
        raise HostingError("Release asset was not found", status_code=404)

    def upload_release_asset(
        self, release: FakeRelease, asset_name: str, path: Path
    ) -> FakeReleaseAsset:
        self.calls.append(("upload_release_asset", asset_name))
        self._check_token()
        stored = self._find(release.tag_name)
        if any(asset.name == asset_name for asset in stored.assets):
            raise HostingError(
                "Release asset already exists", status_code=422, status="Unprocessable Entity"
            )
        asset = FakeReleaseAsset(
            next(self._ids), release.tag_name, asset_name, path.read_bytes()
        )
        stored.assets.append(asset)
        return copy.deepcopy(asset)

    def close(self) -> None:
        self.closed = True


def travis_environ(
    commit: str,
    tag: str = "",
    branch: str = "master",
    slug: str = SLUG,
    build_id: str = "123456",
    pull_request: bool = False,
) -> dict[str, str]:
    return {
        "TRAVIS": "true",
        "GITHUB_TOKEN": "fake_token",
        "TRAVIS_BRANCH": branch,
        "TRAVIS_TAG": tag,
        "TRAVIS_COMMIT": commit,
        "TRAVIS_REPO_SLUG": slug,
        "TRAVIS_BUILD_ID": build_id,
        "TRAVIS_EVENT_TYPE": "pull_request" if pull_request else "push",
    }


def appveyor_environ(
    commit: str,
    tag: str = "",
    branch: str = "master",
    slug: str = SLUG,
    build_version: str = "0.1.0-31",
    pull_request: bool = False,
) -> dict[str, str]:
    environ = {
        "APPVEYOR": "True",
        "auth_token": "fake_token",
        "APPVEYOR_REPO_BRANCH": branch,
        "APPVEYOR_REPO_TAG_NAME": tag,
        "APPVEYOR_REPO_COMMIT": commit,
        "APPVEYOR_REPO_NAME": slug,
        "APPVEYOR_BUILD_VERSION": build_version,
    }
    if pull_request:
        environ["APPVEYOR_PULL_REQUEST_NUMBER"] = "42"
    return environ


def gitlab_environ(
    commit: str,
    tag: str = "",
    branch: str = "master",
    namespace: str = OWNER,
    project: str = REPO,
    job_id: str = "987",
) -> dict[str, str]:
    return {
        "GITLAB_CI": "true",
        "GITLAB_TOKEN": "fake_token",
        "CI_COMMIT_REF_NAME": branch,
        "CI_COMMIT_TAG": tag,
        "CI_COMMIT_SHA": commit,
        "CI_PROJECT_NAMESPACE": namespace,
        "CI_PROJECT_NAME": project,
        "CI_JOB_ID": job_id,
    }


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def make_file(tmp_path: Path):
    def _make(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content)
        return path

    return _make
