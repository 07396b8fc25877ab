"""Resolve and classify reference identifiers.

Identifiers come straight from the dc:identifier column of reference
tables and may be bare DOIs, scheme-less host/paths or full URLs.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

import requests
import urllib3

# Certificate checks are off for identifier resolution, see check_url
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

USER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; dwcaudit/0.1)",
}

DEFAULT_TIMEOUT = 10
MAX_REDIRECTS = 10

REDIRECT_CODES = (301, 302, 303, 307, 308)

STATUS_OK = "ok"
STATUS_REDIRECT_OK = "redirect_ok"
STATUS_REDIRECT = "redirect"
STATUS_NOT_FOUND = "not_found"
STATUS_ERROR = "error"

# Buckets used in console and domain summaries
SUMMARY_BUCKETS = ["ok", "redirect", "not_found", "error"]

UNKNOWN_DOMAIN = "(unknown)"

DOI_PATTERN = re.compile(r"(10\.\d{1,9}/\S+)")

logger = logging.getLogger(__name__)


@dataclass
class ResolutionResult:
    """Outcome of checking one identifier."""

    identifier: str
    url: str
    http_code: int = 0
    final_url: str = ""
    status: str = STATUS_ERROR
    datasets: List[str] = field(default_factory=list)


def ensure_scheme(url: str) -> str:
    """Prepend https:// to a URL that has no scheme."""
    try:
        scheme = urlparse(url).scheme
    except ValueError:
        scheme = ""
    if not scheme:
        return "https://" + url
    return url


def candidate_urls(url: str) -> List[str]:
    """URLs to try for a normalized URL: itself, then its http:// twin if it is HTTPS."""
    urls = [url]
    if url.startswith("https://"):
        urls.append("http://" + url[len("https://"):])
    return urls


def classify_status(http_code: int, final_url: str, url: str, transport_error: bool = False) -> str:
    """Classify an HTTP outcome. The first matching rule wins.

    Args:
        http_code: Status code of the response (0 when none was received)
        final_url: Effective URL after following redirects
        url: The normalized URL that was requested
        transport_error: True if no request completed

    Returns:
        One of ok, redirect_ok, redirect, not_found, error or http_<code>
    """
    if transport_error:
        return STATUS_ERROR
    if http_code == 200:
        if final_url == url:
            return STATUS_OK
        return STATUS_REDIRECT_OK
    if http_code in REDIRECT_CODES:
        return STATUS_REDIRECT
    if http_code == 404:
        return STATUS_NOT_FOUND
    return f"http_{http_code}"


def summary_bucket(status: str) -> str:
    """Fold a classified status into ok, redirect, not_found or error."""
    if status == STATUS_OK:
        return "ok"
    if status in (STATUS_REDIRECT_OK, STATUS_REDIRECT):
        return "redirect"
    if status == STATUS_NOT_FOUND:
        return "not_found"
    return "error"


def check_url(identifier: str, timeout: float = DEFAULT_TIMEOUT) -> ResolutionResult:
    """Check whether an identifier resolves to a live web resource.

    The identifier is normalized with ensure_scheme. Each candidate URL
    (HTTPS first, then plain HTTP) is tried with HEAD, then GET, following
    up to MAX_REDIRECTS redirects. The first request that returns any
    status code ends the search, whatever that code is.

    TLS certificates are not verified: many servers cited in biodiversity
    references have broken chains.

    Args:
        identifier: Raw identifier string from a reference table
        timeout: Per-request timeout in seconds

    Returns:
        A ResolutionResult with the status code, effective URL and status
    """
    url = ensure_scheme(identifier)
    result = ResolutionResult(identifier=identifier, url=url, final_url=url)
    transport_error = True

    with requests.Session() as session:
        session.max_redirects = MAX_REDIRECTS
        session.headers.update(USER_HEADERS)

        for try_url in candidate_urls(url):
            for method in ("HEAD", "GET"):
                try:
                    response = session.request(
                        method,
                        try_url,
                        allow_redirects=True,
                        timeout=timeout,
                        verify=False,
                        stream=True,
                    )
                except (requests.exceptions.RequestException, ValueError) as e:
                    logger.debug(f"{method} {try_url} failed: {e}")
                    result.final_url = try_url
                    continue

                result.http_code = response.status_code
                result.final_url = response.url if response.history else try_url
                response.close()
                transport_error = False
                break

            if not transport_error:
                break

    if transport_error:
        result.http_code = 0

    result.status = classify_status(result.http_code, result.final_url, url, transport_error)
    return result


def get_domain(url: str) -> str:
    """Return the host of a URL, or (unknown) if it has none."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        host = None
    if not host:
        return UNKNOWN_DOMAIN
    return host


def extract_doi(identifier: str) -> Optional[str]:
    """Extract a DOI from an identifier string.

    Handles identifiers like:
        https://doi.org/10.1234/foo
        https://dx.doi.org/10.1234/foo
        doi.org/10.1234/foo
        10.1234/foo

    Returns:
        The DOI (e.g. "10.1234/foo"), or None if the identifier holds no DOI
    """
    match = DOI_PATTERN.search(identifier.strip())
    if match:
        return match.group(1)
    return None
