from .client import GitLabClient
from .collator import NewlineDelimitedJsonCollatorFactory, parse_ndjson
from .config import GitLabIntegrationConfig, IntegrationRegistry, get_gitlab_request_options
from .exceptions import (
    CatalogFeedError,
    CollatorParseError,
    ConfigurationError,
    DiscoveryError,
    PaginationError,
    TransportError,
)
from .models import GitLabGroup, GitLabProject, GitLabUser
from .pagination import (
    ListOptions,
    PageResult,
    Pager,
    PagerState,
    list_options_to_query_string,
    paginate,
)
from .reader import S3UrlReader, SearchFile, UrlReader
from .url import parse_group_url

__all__ = [
    # Pagination
    "paginate",
    "Pager",
    "PagerState",
    "PageResult",
    "ListOptions",
    "list_options_to_query_string",
    # GitLab
    "GitLabClient",
    "GitLabIntegrationConfig",
    "IntegrationRegistry",
    "get_gitlab_request_options",
    "parse_group_url",
    "GitLabProject",
    "GitLabGroup",
    "GitLabUser",
    # Collator
    "NewlineDelimitedJsonCollatorFactory",
    "parse_ndjson",
    "UrlReader",
    "S3UrlReader",
    "SearchFile",
    # Exceptions
    "CatalogFeedError",
    "ConfigurationError",
    "TransportError",
    "DiscoveryError",
    "PaginationError",
    "CollatorParseError",
]
