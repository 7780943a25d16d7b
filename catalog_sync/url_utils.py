"""URL validation, pagination and product-id helpers."""

import re
from typing import Optional, Set
from urllib.parse import parse_qs, urljoin, urlparse

from catalog_sync.config import BASE_URL

__all__ = [
    "URLValidationError",
    "ALLOWED_DOMAINS",
    "sanitize_url",
    "validate_url",
    "absolute_url",
    "build_page_url",
    "product_id_from_url",
]


class URLValidationError(Exception):
    """Raised when URL validation fails."""
    pass


ALLOWED_DOMAINS: Set[str] = frozenset({
    "rebike.com",
    "www.rebike.com",
})

DANGEROUS_SCHEMES = {"javascript", "data", "vbscript", "file"}

# Query parameters that carry a numeric product id on the shop
_ID_PARAMS = ("id", "productId", "product_id", "pid", "sku")
_ID_SANITIZE_RE = re.compile(r"[^A-Za-z0-9-]")


def sanitize_url(url: Optional[str]) -> str:
    """Strip whitespace and control characters from a URL."""
    if not url:
        return ""
    url = url.strip()
    url = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", url)
    return url.replace("%00", "")


def validate_url(
    url: str,
    allowed_domains: Optional[Set[str]] = None,
) -> str:
    """Validate a URL for safety.

    Args:
        url: URL to validate
        allowed_domains: Set of allowed domains (default: ALLOWED_DOMAINS);
            an empty set allows any domain

    Returns:
        The sanitized URL

    Raises:
        URLValidationError: If the URL is invalid or from an untrusted domain
    """
    if not url:
        raise URLValidationError("URL is empty")

    url = sanitize_url(url)
    parsed = urlparse(url)

    scheme = parsed.scheme.lower()
    if scheme in DANGEROUS_SCHEMES:
        raise URLValidationError(f"Dangerous URL scheme: {scheme}")
    if scheme not in ("http", "https"):
        raise URLValidationError(f"Invalid URL scheme: {scheme}")

    domain = parsed.netloc.lower().split(":")[0]
    if not domain:
        raise URLValidationError("URL has no domain")

    domains_to_check = allowed_domains if allowed_domains is not None else ALLOWED_DOMAINS
    if domains_to_check and domain not in domains_to_check:
        raise URLValidationError(
            f"URL domain '{domain}' not in allowed domains: {sorted(domains_to_check)}"
        )

    url_lower = url.lower()
    for pattern in (r"\.\./", r"%2e%2e", r"<script", r"javascript:"):
        if re.search(pattern, url_lower):
            raise URLValidationError(f"URL contains suspicious pattern: {pattern}")

    return url


def absolute_url(href: Optional[str], base: str = BASE_URL) -> str:
    """Resolve a possibly relative href against the shop base URL."""
    href = sanitize_url(href)
    if not href:
        return ""
    return urljoin(base + "/", href)


def build_page_url(category_url: str, page_num: int) -> str:
    """Append the ``page`` parameter to a listing URL.

    >>> build_page_url("https://rebike.com/de/city-e-bikes", 2)
    'https://rebike.com/de/city-e-bikes?page=2'
    """
    separator = "&" if "?" in category_url else "?"
    return f"{category_url}{separator}page={page_num}"


def product_id_from_url(url: str) -> str:
    """Derive a stable product id from its URL.

    An embedded numeric id parameter wins; otherwise the last path segment
    is used, reduced to ``[A-Za-z0-9-]``.
    """
    parsed = urlparse(sanitize_url(url))
    query = parse_qs(parsed.query)
    for param in _ID_PARAMS:
        for value in query.get(param, []):
            if value.isdigit():
                return value

    segments = [s for s in parsed.path.split("/") if s]
    last = segments[-1] if segments else ""
    return _ID_SANITIZE_RE.sub("", last)
