"""
Collator indexing documents from the latest newline delimited JSON file
matching a search pattern.

"Latest" is determined by the name of the file: the last one alphabetically
wins, so files named like widgets-2023-01-31.ndjson sort naturally.
"""

import json
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from ._logging import logger
from .exceptions import CollatorParseError, DiscoveryError
from .reader import UrlReader

NDJSON_SUFFIX = ".ndjson"


class NewlineDelimitedJsonCollatorFactory:
    """
    Factory producing a collator over the latest .ndjson file matching a
    glob-like search pattern.

    The reader must understand the pattern (e.g. S3UrlReader for
    s3://bucket/widgets-*).

    Usage:
        factory = NewlineDelimitedJsonCollatorFactory.from_config(
            config,
            document_type="widget",
            search_pattern="s3://bucket-x/widgets-*",
            reader=S3UrlReader(),
        )
        for document in factory.get_collator():
            index(document)
    """

    def __init__(self, document_type: str, search_pattern: str, reader: UrlReader) -> None:
        self.type = document_type
        self.search_pattern = search_pattern
        self.reader = reader

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any] | None,
        *,
        document_type: str,
        search_pattern: str,
        reader: UrlReader,
    ) -> "NewlineDelimitedJsonCollatorFactory":
        """Returns a factory instance from configuration and a set of options."""
        return cls(document_type, search_pattern, reader)

    def last_url(self) -> str | None:
        """Returns the URL of the latest matching file, or None if nothing matches."""
        logger.info(
            "Attempting to find latest .ndjson file",
            extra={"pattern": self.search_pattern, "type": self.type},
        )
        try:
            files = self.reader.search(self.search_pattern)
        except Exception:
            logger.error(
                "Could not search for pattern",
                extra={"pattern": self.search_pattern},
                exc_info=True,
            )
            raise

        candidates = sorted(f.url for f in files if f.url.endswith(NDJSON_SUFFIX))
        return candidates[-1] if candidates else None

    def get_collator(self) -> Iterator[Any]:
        """
        Opens the latest matching file and returns an iterator of its records.

        Raises:
            DiscoveryError: If no .ndjson file matches (before any stream is opened)
        """
        last_url = self.last_url()
        if not last_url:
            logger.error("Could not find an .ndjson file", extra={"pattern": self.search_pattern})
            raise DiscoveryError(self.search_pattern)

        logger.info("Using latest .ndjson file", extra={"url": last_url, "type": self.type})
        response = self.reader.read_url(last_url)
        return parse_ndjson(response.stream(), url=last_url)


def parse_ndjson(lines: Iterable[bytes], url: str = "<stream>") -> Iterator[Any]:
    """
    Decodes the lines of a newline delimited JSON file, one record per line.
    Blank lines are skipped but still counted.

    Raises:
        CollatorParseError: On the first line that is not valid JSON
    """
    for line_number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except ValueError as e:
            raise CollatorParseError(url, line_number, original_error=e) from e
        yield record
