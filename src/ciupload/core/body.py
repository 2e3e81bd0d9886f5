"""CI build log line maintenance within release bodies."""

from ciupload.models.build_event import BuildEventInfo, CIKind


def build_log_prefix(info: BuildEventInfo) -> str:
    """Get the fixed prefix identifying this CI kind's build log line.

    Returns an empty string when the CI kind has no build log line.
    """
    if info.ci_kind == CIKind.TRAVIS:
        return f"Travis CI build log: https://travis-ci.org/{info.owner}/{info.repo}/builds/"
    if info.ci_kind == CIKind.APPVEYOR:
        return f"AppVeyor CI build log: https://ci.appveyor.com/project/{info.owner}/{info.repo}/build"
    if info.ci_kind == CIKind.GITLAB:
        return f"GitLab CI build log: https://gitlab.com/{info.owner}/{info.repo}/builds/"
    return ""


def build_log_line(info: BuildEventInfo) -> str:
    """Get the full build log line for the current build.

    Returns an empty string when no build id is known.
    """
    prefix = build_log_prefix(info)
    if not prefix or not info.build_id:
        return ""

    if info.ci_kind == CIKind.TRAVIS:
        return f"{prefix}{info.build_id}/"
    if info.ci_kind == CIKind.APPVEYOR:
        return f"{prefix}/{info.build_id}"
    return f"{prefix}{info.build_id}"


def update_build_log(body: str, info: BuildEventInfo) -> str:
    """Insert or replace the current CI kind's build log line within a body.

    Every other line is kept verbatim and in order. Lines belonging to other
    CI kinds are left alone, so builds from several CI systems can share one
    release.
    """
    expected = build_log_line(info)
    if not expected:
        return body

    prefix = build_log_prefix(info)
    lines = []
    found = False
    for line in body.splitlines():
        if line.startswith(prefix):
            # Collapse stale duplicates into a single line
            if found:
                continue
            line = expected
            found = True
        lines.append(line)

    if not found:
        lines.append(expected)

    return "\n".join(lines) + "\n"
