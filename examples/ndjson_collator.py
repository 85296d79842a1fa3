"""
Newline Delimited JSON Collator Example

Reads the latest widgets-*.ndjson export from a bucket. Works against
LocalStack with AWS_ENDPOINT_URL=http://localhost:4566.
"""

import logging

from catalogfeed import DiscoveryError, NewlineDelimitedJsonCollatorFactory, S3UrlReader

logging.basicConfig(level=logging.INFO)

factory = NewlineDelimitedJsonCollatorFactory.from_config(
    {},
    document_type="widget",
    search_pattern="s3://bucket-x/widgets-*",
    reader=S3UrlReader(),
)

try:
    documents = factory.get_collator()
except DiscoveryError as e:
    print(f"Nothing to index: {e}")
else:
    for document in documents:
        print(f"[{factory.type}] {document.get('title')} -> {document.get('location')}")
