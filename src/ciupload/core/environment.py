"""Detection of the CI environment and collection of build event info."""

import os
import subprocess
from collections.abc import Mapping

from rich.console import Console
from rich.markup import escape

from ciupload.core.config import ConfigurationError, OverrideOptions
from ciupload.models.build_event import BuildEventInfo, CIKind

console = Console()

CONTINUOUS_TAG = "continuous"
DEFAULT_BRANCH = "master"

_CI_NAMES = {
    CIKind.TRAVIS: "Travis CI",
    CIKind.APPVEYOR: "AppVeyor CI",
    CIKind.GITLAB: "GitLab CI",
}


def parse_repo_slug(slug: str) -> tuple[str, str]:
    """Parse an owner/repo slug into (owner, repo)."""
    parts = slug.split("/")
    if len(parts) != 2 or not all(parts):
        raise ConfigurationError(f"Error splitting repo slug into owner and repo: {slug}")
    return parts[0], parts[1]


def detect_ci(environ: Mapping[str, str]) -> CIKind:
    """Detect which CI system the process runs under."""
    if environ.get("APPVEYOR") == "True":
        return CIKind.APPVEYOR
    if environ.get("TRAVIS") == "true":
        return CIKind.TRAVIS
    if environ.get("GITLAB_CI") == "true":
        return CIKind.GITLAB
    return CIKind.NONE


def _read_ci_vars(ci_kind: CIKind, environ: Mapping[str, str]) -> dict:
    """Read the raw build facts exposed by a CI system."""
    if ci_kind == CIKind.APPVEYOR:
        return {
            "token": environ.get("auth_token", ""),
            "branch": environ.get("APPVEYOR_REPO_BRANCH", ""),
            "tag": environ.get("APPVEYOR_REPO_TAG_NAME", ""),
            "commit": environ.get("APPVEYOR_REPO_COMMIT", ""),
            "slug": environ.get("APPVEYOR_REPO_NAME", ""),
            "build_id": environ.get("APPVEYOR_BUILD_VERSION", ""),
            "is_pull_request": bool(environ.get("APPVEYOR_PULL_REQUEST_NUMBER")),
        }
    if ci_kind == CIKind.TRAVIS:
        return {
            "token": environ.get("GITHUB_TOKEN", ""),
            "branch": environ.get("TRAVIS_BRANCH", ""),
            "tag": environ.get("TRAVIS_TAG", ""),
            "commit": environ.get("TRAVIS_COMMIT", ""),
            "slug": environ.get("TRAVIS_REPO_SLUG", ""),
            "build_id": environ.get("TRAVIS_BUILD_ID", ""),
            "is_pull_request": environ.get("TRAVIS_EVENT_TYPE") == "pull_request",
        }
    return {
        "token": environ.get("GITLAB_TOKEN", ""),
        "branch": environ.get("CI_COMMIT_REF_NAME", ""),
        "tag": environ.get("CI_COMMIT_TAG", ""),
        "commit": environ.get("CI_COMMIT_SHA", ""),
        "slug": f"{environ.get('CI_PROJECT_NAMESPACE', '')}/{environ.get('CI_PROJECT_NAME', '')}",
        "build_id": environ.get("CI_JOB_ID", ""),
        "is_pull_request": False,
    }


def _git(*args: str) -> str:
    """Run a git command in the current directory and return its output."""
    result = subprocess.run(["git", *args], capture_output=True, text=True)
    if result.returncode != 0:
        raise ConfigurationError(
            f"git {' '.join(args)} failed: {result.stderr.strip()}"
        )
    return result.stdout.strip()


def _read_local_vars(overrides: OverrideOptions) -> dict:
    """Read build facts from the local checkout when no CI is running."""
    if not overrides.token:
        raise ConfigurationError(
            "No GitHub/GitLab access token, can't proceed outside of CI"
        )
    if not overrides.owner or not overrides.repo:
        raise ConfigurationError(
            "Both the repo and its owner must be given when not running on CI"
        )

    commit = _git("rev-parse", "HEAD")
    branch = _git("rev-parse", "--abbrev-ref", "HEAD")
    try:
        tag = _git("describe", "--exact-match", "--tags", "HEAD")
    except ConfigurationError:
        tag = ""

    return {
        "token": overrides.token,
        "branch": "" if branch == "HEAD" else branch,
        "tag": tag,
        "commit": commit,
        "slug": f"{overrides.owner}/{overrides.repo}",
        "build_id": "",
        "is_pull_request": False,
    }


def resolve_release_tag(tag: str, release_suffix: str) -> tuple[str, str, bool]:
    """Decide the release tag, title and prerelease flag.

    Returns (tag, title, is_prerelease).
    """
    if (
        tag
        and not tag.startswith(CONTINUOUS_TAG)
        and (not release_suffix or release_suffix == tag)
    ):
        return tag, f"Release build ({tag})", False

    if release_suffix:
        tag = f"{CONTINUOUS_TAG}-{release_suffix}"
        return tag, f"Continuous build ({tag})", True

    return CONTINUOUS_TAG, "Continuous build", True


def collect_build_event_info(
    release_suffix: str = "",
    overrides: OverrideOptions | None = None,
    environ: Mapping[str, str] | None = None,
) -> BuildEventInfo | None:
    """Collect the facts about the current build event.

    Returns None when there is nothing to do: no CI and no overrides, a pull
    request build, or an AppVeyor job without a token (pull requests from
    forks get no secrets there).

    Raises ConfigurationError when the build cannot be described.
    """
    if environ is None:
        environ = os.environ
    if overrides is None:
        overrides = OverrideOptions()

    ci_kind = detect_ci(environ)
    if ci_kind == CIKind.NONE:
        if not overrides.any_set():
            console.print(
                "Neither Travis CI build nor AppVeyor build nor GitLab CI build. "
                "Not doing anything"
            )
            return None
        console.print("No CI detected, using the local checkout")
        raw = _read_local_vars(overrides)
    else:
        console.print(f"Running on {_CI_NAMES[ci_kind]}")
        raw = _read_ci_vars(ci_kind, environ)

    if raw["is_pull_request"]:
        console.print(
            "Current build is the one triggered by a pull request, won't do anything"
        )
        return None

    token = overrides.token or raw["token"]
    if not token:
        if ci_kind == CIKind.APPVEYOR:
            console.print("No dev token for AppVeyor CI job, won't do anything")
            return None
        raise ConfigurationError("No GitHub/GitLab access token, can't proceed")

    branch = raw["branch"]
    if not branch:
        console.print(f'No branch info was found, fallback to "{DEFAULT_BRANCH}"')
        branch = DEFAULT_BRANCH

    if not raw["commit"]:
        raise ConfigurationError("No commit info was found, can't proceed")

    owner, repo = parse_repo_slug(raw["slug"])

    if release_suffix:
        console.print(f"Suffix = {escape(release_suffix)}")
    tag, title, is_prerelease = resolve_release_tag(raw["tag"], release_suffix)

    console.print(f"Commit: {raw['commit']}")

    return BuildEventInfo(
        token=token,
        owner=owner,
        repo=repo,
        commit=raw["commit"],
        branch=branch,
        tag=tag,
        is_pull_request=False,
        is_prerelease=is_prerelease,
        release_title=title,
        build_id=raw["build_id"],
        ci_kind=ci_kind,
    )
