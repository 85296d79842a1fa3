from urllib.parse import unquote, urlsplit

from .exceptions import ConfigurationError


def _path_segments(path: str) -> list[str]:
    return [unquote(segment) for segment in path.split("/") if segment]


def parse_group_url(url: str, base_url: str | None = None) -> str | None:
    """
    Extracts the full path of a GitLab group from a URL.

    Handles instances installed under a sub-path (e.g. https://example.com/gitlab)
    by stripping the path of base_url first, and accepts both the
    https://host/group/subgroup and https://host/groups/group/subgroup forms.

    Args:
        url: URL pointing at a group or at the root of the instance
        base_url: Base URL of the GitLab instance serving the URL

    Returns:
        The group's full path (e.g. "group/subgroup"), or None if the URL
        points at the instance itself.

    Raises:
        ConfigurationError: If the URL is not served by base_url or points at
            a project rather than a group
    """
    parts = urlsplit(url)
    segments = _path_segments(parts.path)

    if base_url:
        base = urlsplit(base_url)
        if base.hostname and parts.hostname and base.hostname != parts.hostname:
            raise ConfigurationError(f"URL {url} does not belong to the GitLab instance at {base_url}")
        base_segments = _path_segments(base.path)
        if segments[: len(base_segments)] == base_segments:
            segments = segments[len(base_segments) :]

    if segments and segments[0] == "groups":
        segments = segments[1:]

    if not segments:
        return None

    # Project and sub-pages are separated from the namespace by "/-/"
    if "-" in segments:
        raise ConfigurationError(f"GitLab group URL {url} is a link to a project, not a group")

    return "/".join(segments)
