"""
Object store readers used by the collator.

A reader knows how to find files matching a glob-like URL pattern and how to
stream one of them. S3UrlReader implements this for s3://bucket/key patterns
on top of boto3.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from fnmatch import fnmatchcase
from typing import Any, Protocol
from urllib.parse import urlsplit

import boto3

from ._logging import logger
from .exceptions import ConfigurationError, handle_s3_errors

GLOB_CHARS = "*?["


@dataclass
class SearchFile:
    """A file found by UrlReader.search()."""

    url: str
    last_modified: datetime | None = None


class ReadUrlResponse(Protocol):
    """An opened file. stream() yields its lines, without line endings."""

    def stream(self) -> Iterator[bytes]: ...


class UrlReader(Protocol):
    """Finds and reads files in a remote store."""

    def search(self, pattern: str) -> list[SearchFile]: ...

    def read_url(self, url: str) -> ReadUrlResponse: ...


def parse_s3_url(url: str) -> tuple[str, str]:
    """
    Splits an s3:// URL into bucket and key.

    Raises:
        ConfigurationError: If the URL is not an s3:// URL with a bucket
    """
    parts = urlsplit(url)
    if parts.scheme != "s3" or not parts.netloc:
        raise ConfigurationError(f"Expected an s3://bucket/key URL, got {url}")
    return parts.netloc, parts.path.lstrip("/")


def literal_prefix(key_pattern: str) -> str:
    """Returns the part of a key pattern before the first glob character."""
    for i, char in enumerate(key_pattern):
        if char in GLOB_CHARS:
            return key_pattern[:i]
    return key_pattern


class S3ReadUrlResponse:
    def __init__(self, url: str, body: Any) -> None:
        self.url = url
        self._body = body

    def stream(self) -> Iterator[bytes]:
        """Streams the object body line by line, closing it when done or abandoned."""
        try:
            with handle_s3_errors(self.url):
                yield from self._body.iter_lines()
        finally:
            self._body.close()


class S3UrlReader:
    """
    UrlReader for S3 (and S3-compatible) object stores.

    Patterns look like s3://bucket/exports/widgets-*.ndjson. Keys are listed
    using the literal prefix before the first glob character and matched
    with fnmatch, where '*' also matches '/'.
    """

    def __init__(self, client: Any | None = None) -> None:
        self._client = client

    def _get_client(self) -> Any:
        """Returns the injected client, or lazily creates a default boto3 S3 client."""
        if self._client is None:
            self._client = boto3.client("s3")
        return self._client

    def search(self, pattern: str) -> list[SearchFile]:
        bucket, key_pattern = parse_s3_url(pattern)
        prefix = literal_prefix(key_pattern)

        logger.debug("Listing objects", extra={"bucket": bucket, "prefix": prefix})

        files: list[SearchFile] = []
        with handle_s3_errors(pattern):
            paginator = self._get_client().get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    if fnmatchcase(key, key_pattern):
                        files.append(
                            SearchFile(url=f"s3://{bucket}/{key}", last_modified=obj.get("LastModified"))
                        )

        logger.debug("Search complete", extra={"bucket": bucket, "matches": len(files)})
        return files

    def read_url(self, url: str) -> S3ReadUrlResponse:
        bucket, key = parse_s3_url(url)
        with handle_s3_errors(url):
            response = self._get_client().get_object(Bucket=bucket, Key=key)
        return S3ReadUrlResponse(url, response["Body"])
