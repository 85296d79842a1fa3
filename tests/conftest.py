"""
Shared pytest fixtures and configuration for catalogfeed tests.

This module provides common fixtures used across unit and integration tests,
including integration registries, httpx clients mocked with respx, mocked
boto3 S3 clients, and LocalStack helpers.
"""

import os
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import httpx
import pytest
import pytest_asyncio

from catalogfeed import GitLabClient, IntegrationRegistry, PageResult
from catalogfeed.pagination import ListOptions

if TYPE_CHECKING:
    from tests.helpers.localstack import LocalStackHelper

SELF_MANAGED_TOKEN = "glpat-secret-token"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests with mocked dependencies")
    config.addinivalue_line("markers", "integration: Integration tests against LocalStack")
    config.addinivalue_line("markers", "slow: Slow tests that may take longer")


class FakePages:
    """
    Request function returning canned pages in call order.

    An Exception in the list of pages is raised instead of returned.
    Every call records a copy of the options it received.
    """

    def __init__(self, pages: list[PageResult[Any] | Exception]) -> None:
        self.pages = pages
        self.calls: list[ListOptions] = []

    async def __call__(self, params: ListOptions) -> PageResult[Any]:
        self.calls.append(dict(params))
        page = self.pages[len(self.calls) - 1]
        if isinstance(page, Exception):
            raise page
        return page


@pytest.fixture
def fake_pages():
    """Factory for FakePages request functions."""
    return FakePages


@pytest.fixture
def registry() -> IntegrationRegistry:
    """
    Registry with gitlab.com, a token-protected self-managed instance,
    and a self-managed instance installed under a sub-path.
    """
    return IntegrationRegistry.from_config(
        {
            "integrations": {
                "gitlab": [
                    {"host": "gitlab.example.com", "token": SELF_MANAGED_TOKEN},
                    {
                        "host": "example.com",
                        "baseUrl": "https://example.com/gitlab",
                        "apiBaseUrl": "https://example.com/gitlab/api/v4",
                    },
                ]
            }
        }
    )


@pytest_asyncio.fixture
async def http_client():
    """Provides an httpx.AsyncClient managed by a context manager."""
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def gitlab_client(registry: IntegrationRegistry, http_client: httpx.AsyncClient) -> GitLabClient:
    return GitLabClient(registry, http_client=http_client)


def _gitlab_pages(pages: dict[int, tuple[list[dict[str, Any]], int | None]]):
    """
    Builds a respx side effect serving GitLab style pages.

    Keys are page numbers (a request without 'page' is page 1), values are
    the page's items and the value of its X-Next-Page header.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        items, next_page = pages[page]
        headers = {"X-Next-Page": str(next_page) if next_page else ""}
        return httpx.Response(200, json=items, headers=headers)

    return handler


@pytest.fixture
def gitlab_pages():
    """Factory for respx side effects serving paginated GitLab responses."""
    return _gitlab_pages


@pytest.fixture
def mock_s3_client():
    """
    Creates a fully mocked boto3 S3 client.

    This fixture provides a mock client for unit tests that don't need
    real S3 interactions.
    """
    client = MagicMock()
    client.get_paginator.return_value = MagicMock()
    return client


# Integration Test Fixtures


@pytest.fixture(scope="session")
def localstack_endpoint() -> str:
    """Get LocalStack endpoint URL from environment or default."""
    return os.getenv("LOCALSTACK_ENDPOINT", "http://localhost:4566")


@pytest.fixture(scope="session")
def localstack_helper(localstack_endpoint: str) -> "LocalStackHelper":
    """Provides a LocalStackHelper instance, skipping when LocalStack is not running."""
    from tests.helpers.localstack import LocalStackHelper

    helper = LocalStackHelper(endpoint_url=localstack_endpoint)
    if not helper.is_available():
        pytest.skip(f"LocalStack is not reachable at {localstack_endpoint}")
    return helper


@pytest.fixture
def clean_bucket(localstack_helper: "LocalStackHelper"):
    """Creates an empty bucket for each test and deletes it afterwards."""
    bucket = "catalogfeed-integration"
    localstack_helper.create_bucket(bucket)
    localstack_helper.clear_bucket(bucket)

    yield bucket

    localstack_helper.delete_bucket(bucket)
