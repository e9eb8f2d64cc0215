"""
filing_client.py — Downloads SEC filing documents.

Purpose:
- Fetch the HTML/text of one filing document (a 10-K, 10-Q or 8-K linked
  from the FMP filing list) so its sections can be extracted.

Behaviour:
- Only http(s) URLs whose host is one of `SEC_FILING_HOSTS` (or a subdomain
  of one) are fetched; anything else raises `FilingFetchError` before any
  request is made.
- EDGAR requires a descriptive User-Agent; `SEC_USER_AGENT` is sent on
  every request.
- One GET per call, no retry. Redirects are not followed off the allowed
  hosts.

This module does NOT:
- Parse or clean the document (see finhub/services/filings.py).
"""

from __future__ import annotations

from typing import List, Optional
from urllib.parse import urljoin, urlparse

import requests

from finhub.core.config import settings
from finhub.core.logging import get_logger

logger = get_logger(__name__)

MAX_REDIRECTS = 5


class FilingFetchError(RuntimeError):
    """The filing URL is not allowed or the download failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FilingClient:
    """
    Args:
        allowed_hosts: Hosts a filing URL may point at; subdomains match too
        user_agent: Sent as the User-Agent header
        session: Optional pre-built session (tests inject a mock)
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        allowed_hosts: List[str],
        user_agent: str,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ) -> None:
        self._allowed_hosts = [h.lower() for h in allowed_hosts]
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": user_agent})
        self._timeout = timeout

    def is_allowed(self, url: str) -> bool:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        if parsed.scheme not in ("http", "https") or not host:
            return False
        return any(host == allowed or host.endswith("." + allowed) for allowed in self._allowed_hosts)

    def fetch_text(self, url: str) -> str:
        """
        Download one filing document and return its body as text.

        Raises:
            FilingFetchError: Disallowed URL, transport failure or non-2xx status
        """
        for _ in range(MAX_REDIRECTS + 1):
            if not self.is_allowed(url):
                raise FilingFetchError(f"Filing URL host not allowed: {urlparse(url).hostname or url}")

            logger.debug(f"Fetching filing document: {url}")
            try:
                response = self._session.get(url, timeout=self._timeout, allow_redirects=False)
            except requests.exceptions.RequestException as e:
                raise FilingFetchError(f"Failed to fetch filing: {e}") from e

            if response.is_redirect and response.headers.get("Location"):
                url = urljoin(url, response.headers["Location"])
                continue

            if not response.ok:
                raise FilingFetchError(
                    f"Failed to fetch filing: {response.status_code}",
                    status_code=response.status_code,
                )
            return response.text

        raise FilingFetchError("Failed to fetch filing: too many redirects")


# -----------------------------------------------------------------------------
# FastAPI Dependency
# -----------------------------------------------------------------------------

def get_filing_client() -> FilingClient:
    return FilingClient(
        allowed_hosts=settings.sec_filing_hosts,
        user_agent=settings.SEC_USER_AGENT,
        timeout=settings.SEC_FILING_TIMEOUT_SECONDS,
    )
