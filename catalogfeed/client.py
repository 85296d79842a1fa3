from datetime import datetime
from types import TracebackType
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ._logging import logger, redact_token, redact_url
from .config import (
    GITLAB_HOST,
    GitLabIntegrationConfig,
    IntegrationRegistry,
    get_gitlab_request_options,
)
from .exceptions import ConfigurationError, TransportError, handle_http_errors
from .models import GitLabGroup, GitLabProject, GitLabUser
from .pagination import ListOptions, PageResult, Pager, list_options_to_query_string, paginate
from .url import parse_group_url

M = TypeVar("M", bound=BaseModel)

PER_PAGE = 100
NEXT_PAGE_HEADER = "x-next-page"


class GitLabClient:
    """
    Lists projects, groups and users of a GitLab instance or group.

    Every list method resolves the integration for the target URL up front,
    so configuration errors surface immediately, and returns a lazy Pager:
    no request is made until the caller starts iterating.

    Usage:
        async with GitLabClient(IntegrationRegistry.from_config(cfg)) as client:
            async for group in client.list_groups("https://gitlab.com/groups/team-a"):
                print(group.full_path)
    """

    def __init__(
        self,
        integrations: IntegrationRegistry,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        max_pages: int | None = None,
    ) -> None:
        self.integrations = integrations
        self.max_pages = max_pages
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    # --- LIST OPERATIONS ---

    def list_projects(
        self, target_url: str, *, last_activity_after: datetime | str | None = None
    ) -> Pager[GitLabProject]:
        """
        Lists the projects of a group (including subgroups), or of the whole
        instance if target_url points at its root.
        """
        integration = self.get_integration(target_url)
        group_full_path = parse_group_url(target_url, integration.base_url)

        options: ListOptions = {"per_page": PER_PAGE}
        if group_full_path:
            endpoint = f"{integration.api_base_url}/groups/{quote(group_full_path, safe='')}/projects"
            options["include_subgroups"] = True
        else:
            endpoint = f"{integration.api_base_url}/projects"

        if last_activity_after:
            if isinstance(last_activity_after, datetime):
                last_activity_after = last_activity_after.isoformat()
            options["last_activity_after"] = last_activity_after

        return self.paged_request(endpoint, integration, options, model=GitLabProject)

    def list_groups(self, target_url: str) -> Pager[GitLabGroup]:
        """
        Lists all groups of the instance, or the descendants of a group if
        target_url points at one.
        """
        integration = self.get_integration(target_url)
        group_full_path = parse_group_url(target_url, integration.base_url)

        if not group_full_path:
            endpoint = f"{integration.api_base_url}/groups"
        else:
            endpoint = f"{integration.api_base_url}/groups/{quote(group_full_path, safe='')}/subgroups"

        return self.paged_request(endpoint, integration, {"per_page": PER_PAGE}, model=GitLabGroup)

    def list_users(
        self, target_url: str, *, inherited: bool = True, blocked: bool = False
    ) -> Pager[GitLabUser]:
        """
        Lists the members of a group, or the active users of the whole
        gitlab.com instance if target_url points at its root.

        Args:
            target_url: Group or instance URL
            inherited: Include members inherited from ancestor groups
            blocked: Only list blocked members (group targets only)

        Raises:
            ConfigurationError: If instance users are requested from any host
                other than gitlab.com
        """
        integration = self.get_integration(target_url)
        group_full_path = parse_group_url(target_url, integration.base_url)

        if group_full_path:
            endpoint = f"{integration.api_base_url}/groups/{quote(group_full_path, safe='')}/members"
            if inherited:
                endpoint += "/all"
            options: ListOptions = {"per_page": PER_PAGE}
            # blocked=false is not the same as omitting the filter
            if blocked:
                options["blocked"] = True
            return self.paged_request(endpoint, integration, options, model=GitLabUser)

        if not integration.is_saas:
            raise ConfigurationError(
                f"Getting all GitLab instance users is only supported for {GITLAB_HOST}, "
                f"not for {integration.host}."
            )

        return self.paged_request(
            f"{integration.api_base_url}/users",
            integration,
            {"active": True, "per_page": PER_PAGE},
            model=GitLabUser,
        )

    # --- REQUESTS ---

    def paged_request(
        self,
        endpoint: str,
        integration: GitLabIntegrationConfig,
        options: ListOptions | None = None,
        model: type[M] | None = None,
    ) -> Pager[Any]:
        """
        Performs requests against a paginated GitLab endpoint.

        Works with any endpoint using the X-Next-Page header. Each item is
        validated into `model` when given, otherwise returned as decoded JSON.

        Args:
            endpoint: Absolute endpoint URL, e.g. https://gitlab.com/api/v4/projects
            integration: Integration used to authenticate the requests
            options: Query options, which may also include the page variable
            model: Optional pydantic model for the items
        """

        async def fetch_page(params: ListOptions) -> PageResult[Any]:
            url = f"{endpoint}{list_options_to_query_string(params)}"
            response = await self.request(url, integration)

            try:
                data = response.json()
            except ValueError as e:
                raise TransportError(
                    f"Invalid JSON body when fetching {url}",
                    status_code=response.status_code,
                    url=url,
                    original_error=e,
                ) from e

            if not isinstance(data, list):
                raise TransportError(
                    f"Expected a JSON array when fetching {url}, got {type(data).__name__}",
                    status_code=response.status_code,
                    url=url,
                )

            items: list[Any] = data
            if model is not None:
                try:
                    items = [model.model_validate(item) for item in data]
                except PydanticValidationError as e:
                    raise TransportError(
                        f"Unexpected item shape when fetching {url}: {e!s}",
                        status_code=response.status_code,
                        url=url,
                        original_error=e,
                    ) from e

            next_page = _parse_next_page(response.headers.get(NEXT_PAGE_HEADER), url)
            return PageResult(items=items, next_page=next_page)

        return paginate(fetch_page, options, max_pages=self.max_pages)

    async def request(
        self, url: str, integration: GitLabIntegrationConfig, **kwargs: Any
    ) -> httpx.Response:
        """
        Performs an authenticated GET against the GitLab instance.

        Headers passed in kwargs take precedence over the integration's
        defaults. Any non-2xx response raises.

        Raises:
            TransportError: On network failure, timeout or unexpected status
        """
        request_options = get_gitlab_request_options(integration)
        headers = {**request_options["headers"], **kwargs.pop("headers", {})}

        logger.debug(
            "Fetching page",
            extra={
                "url": redact_url(url),
                "host": integration.host,
                "token_hash": redact_token(integration.token),
            },
        )

        with handle_http_errors(url):
            response = await self._http_client.get(url, headers=headers, **kwargs)
            response.raise_for_status()

        return response

    def get_integration(self, url: str) -> GitLabIntegrationConfig:
        integration = self.integrations.by_url(url)
        if integration is None:
            raise ConfigurationError(
                f"No GitLab integration found for URL {url}, "
                "Please add a configuration entry for it under integrations.gitlab."
            )
        return integration

    # --- LIFECYCLE ---

    async def close(self) -> None:
        if self._owns_client:
            logger.debug("Closing owned HTTP client")
            await self._http_client.aclose()

    async def __aenter__(self) -> "GitLabClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


def _parse_next_page(value: str | None, url: str) -> int | None:
    """Reads the X-Next-Page header. GitLab sends an empty value on the last page."""
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError as e:
        raise TransportError(
            f"Invalid {NEXT_PAGE_HEADER} header {value!r} when fetching {url}",
            url=url,
            original_error=e,
        ) from e
