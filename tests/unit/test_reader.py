"""
Unit tests for the S3 reader.

Tests URL parsing, key listing with glob filtering and streaming object
bodies, all against a mocked boto3 client.
"""

import io
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody

from catalogfeed.collator import parse_ndjson
from catalogfeed.exceptions import ConfigurationError, DiscoveryError, TransportError
from catalogfeed.reader import (
    S3ReadUrlResponse,
    S3UrlReader,
    SearchFile,
    literal_prefix,
    parse_s3_url,
)

MODIFIED = datetime(2024, 1, 31, tzinfo=timezone.utc)


def _listing(*pages):
    return [{"Contents": [{"Key": key, "LastModified": MODIFIED} for key in keys]} for keys in pages]


@pytest.mark.unit
class TestS3Urls:
    def test_parse_s3_url(self):
        assert parse_s3_url("s3://bucket-x/exports/widgets.ndjson") == (
            "bucket-x",
            "exports/widgets.ndjson",
        )

    def test_parse_s3_url_bucket_only(self):
        assert parse_s3_url("s3://bucket-x") == ("bucket-x", "")

    @pytest.mark.parametrize("url", ["https://bucket-x/a", "s3:///a", "bucket-x/a"])
    def test_parse_s3_url_rejects_other_urls(self, url):
        with pytest.raises(ConfigurationError):
            parse_s3_url(url)

    @pytest.mark.parametrize(
        "pattern,prefix",
        [
            ("widgets-*", "widgets-"),
            ("exports/2024-??/*.ndjson", "exports/2024-"),
            ("data[0-9].ndjson", "data"),
            ("plain.ndjson", "plain.ndjson"),
            ("*", ""),
        ],
    )
    def test_literal_prefix(self, pattern, prefix):
        assert literal_prefix(pattern) == prefix


@pytest.mark.unit
class TestS3Search:
    def test_lists_with_literal_prefix(self, mock_s3_client):
        paginator = mock_s3_client.get_paginator.return_value
        paginator.paginate.return_value = _listing(["widgets-1.ndjson"])

        S3UrlReader(mock_s3_client).search("s3://bucket-x/widgets-*")

        mock_s3_client.get_paginator.assert_called_once_with("list_objects_v2")
        paginator.paginate.assert_called_once_with(Bucket="bucket-x", Prefix="widgets-")

    def test_filters_keys_by_pattern_across_pages(self, mock_s3_client):
        paginator = mock_s3_client.get_paginator.return_value
        paginator.paginate.return_value = _listing(
            ["widgets-2024-01-01.ndjson", "widgets-2024-01-02.csv"],
            ["widgets-2024-01-03.ndjson", "widgetsX.ndjson"],
        )

        files = S3UrlReader(mock_s3_client).search("s3://bucket-x/widgets-*.ndjson")

        assert files == [
            SearchFile(url="s3://bucket-x/widgets-2024-01-01.ndjson", last_modified=MODIFIED),
            SearchFile(url="s3://bucket-x/widgets-2024-01-03.ndjson", last_modified=MODIFIED),
        ]

    def test_star_matches_across_slashes(self, mock_s3_client):
        paginator = mock_s3_client.get_paginator.return_value
        paginator.paginate.return_value = _listing(["exports/2024/widgets.ndjson"])

        files = S3UrlReader(mock_s3_client).search("s3://bucket-x/exports/*")

        assert [f.url for f in files] == ["s3://bucket-x/exports/2024/widgets.ndjson"]

    def test_empty_bucket(self, mock_s3_client):
        paginator = mock_s3_client.get_paginator.return_value
        paginator.paginate.return_value = [{"KeyCount": 0}]

        assert S3UrlReader(mock_s3_client).search("s3://bucket-x/*") == []

    def test_missing_bucket(self, mock_s3_client):
        paginator = mock_s3_client.get_paginator.return_value
        paginator.paginate.side_effect = ClientError(
            error_response={"Error": {"Code": "NoSuchBucket", "Message": "Bucket missing"}},
            operation_name="ListObjectsV2",
        )

        with pytest.raises(DiscoveryError):
            S3UrlReader(mock_s3_client).search("s3://nope/*")

    def test_access_denied(self, mock_s3_client):
        paginator = mock_s3_client.get_paginator.return_value
        paginator.paginate.side_effect = ClientError(
            error_response={
                "Error": {"Code": "AccessDenied", "Message": "Access Denied"},
                "ResponseMetadata": {"HTTPStatusCode": 403},
            },
            operation_name="ListObjectsV2",
        )

        with pytest.raises(TransportError) as exc_info:
            S3UrlReader(mock_s3_client).search("s3://bucket-x/*")
        assert exc_info.value.status_code == 403

    def test_non_s3_pattern(self, mock_s3_client):
        with pytest.raises(ConfigurationError):
            S3UrlReader(mock_s3_client).search("https://example.com/widgets-*")
        mock_s3_client.get_paginator.assert_not_called()


@pytest.mark.unit
class TestS3Read:
    def test_read_url_gets_object(self, mock_s3_client):
        body = MagicMock()
        mock_s3_client.get_object.return_value = {"Body": body}

        response = S3UrlReader(mock_s3_client).read_url("s3://bucket-x/widgets.ndjson")

        mock_s3_client.get_object.assert_called_once_with(Bucket="bucket-x", Key="widgets.ndjson")
        assert isinstance(response, S3ReadUrlResponse)
        assert response.url == "s3://bucket-x/widgets.ndjson"

    def test_read_missing_key(self, mock_s3_client):
        mock_s3_client.get_object.side_effect = ClientError(
            error_response={"Error": {"Code": "NoSuchKey", "Message": "Key missing"}},
            operation_name="GetObject",
        )

        with pytest.raises(DiscoveryError):
            S3UrlReader(mock_s3_client).read_url("s3://bucket-x/missing.ndjson")

    def test_stream_yields_lines_and_closes_body(self):
        body = MagicMock()
        body.iter_lines.return_value = iter([b'{"a": 1}', b'{"a": 2}'])

        lines = list(S3ReadUrlResponse("s3://bucket-x/a.ndjson", body).stream())

        assert lines == [b'{"a": 1}', b'{"a": 2}']
        body.close.assert_called_once()

    def test_abandoned_stream_closes_body(self):
        body = MagicMock()
        body.iter_lines.return_value = iter([b"one", b"two"])

        stream = S3ReadUrlResponse("s3://bucket-x/a.ndjson", body).stream()
        assert next(stream) == b"one"
        stream.close()

        body.close.assert_called_once()

    def test_stream_is_lazy(self):
        body = MagicMock()
        S3ReadUrlResponse("s3://bucket-x/a.ndjson", body).stream()

        body.iter_lines.assert_not_called()

    def test_record_spanning_many_chunks(self):
        """A single record far larger than the body's read chunk stays one line."""
        record = json.dumps({"title": "widget", "text": "x" * 50_000})
        data = f'{record}\n\n{{"id": 2}}\n'.encode()
        body = StreamingBody(io.BytesIO(data), len(data))

        lines = list(S3ReadUrlResponse("s3://bucket-x/a.ndjson", body).stream())

        assert lines == [record.encode(), b"", b'{"id": 2}']
        records = list(parse_ndjson(iter(lines)))
        assert records[0]["text"] == "x" * 50_000
        assert records[1] == {"id": 2}


@pytest.mark.unit
class TestS3Client:
    def test_default_client_is_created_lazily(self):
        with patch("catalogfeed.reader.boto3.client") as boto_client:
            reader = S3UrlReader()
            boto_client.assert_not_called()

            boto_client.return_value.get_paginator.return_value.paginate.return_value = []
            reader.search("s3://bucket-x/*")
            reader.search("s3://bucket-x/*")

        boto_client.assert_called_once_with("s3")

    def test_injected_client_is_used(self, mock_s3_client):
        with patch("catalogfeed.reader.boto3.client") as boto_client:
            mock_s3_client.get_paginator.return_value.paginate.return_value = []
            S3UrlReader(mock_s3_client).search("s3://bucket-x/*")

        boto_client.assert_not_called()
