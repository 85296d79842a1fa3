import hashlib
import logging
from urllib.parse import urlsplit, urlunsplit

# Create the library logger
logger = logging.getLogger("catalogfeed")

# Add NullHandler to prevent "No handlers could be found" warnings
# if the application doesn't configure logging.
logger.addHandler(logging.NullHandler())


def redact_token(token: str | None) -> str:
    """
    Redacts an access token for logging.
    Hashes the value to allow correlation without revealing the secret.
    """
    if not token:
        return "<none>"
    try:
        return hashlib.sha256(token.encode("utf-8")).hexdigest()[:8]
    except Exception:
        return "<redaction_failed>"


def redact_url(url: str) -> str:
    """Strips userinfo from a URL so embedded credentials never reach the logs."""
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))
