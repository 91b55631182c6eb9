from __future__ import annotations

import re
from typing import Callable

from bs4 import BeautifulSoup

from domovita_errors import ScrapeError

TokenExtractor = Callable[[str], str]

_META_CSRF_RE = re.compile(r'<meta name="csrf-token" content="([^"]+)">')


def extract_csrf_token(html: str) -> str:
    """Return the value of ``<meta name="csrf-token" content="...">``.

    Matches the exact attribute order and quoting the homepage renders.
    """
    match = _META_CSRF_RE.search(html or "")
    if not match:
        raise ScrapeError("CSRF token not found in page")
    return match.group(1)


def extract_csrf_token_dom(html: str) -> str:
    """Parse the page and read the ``csrf-token`` meta tag.

    Tolerates reordered attributes, single quotes and extra whitespace.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    tag = soup.find("meta", attrs={"name": "csrf-token"})
    token = tag.get("content") if tag else None
    if not token:
        raise ScrapeError("CSRF token not found in page")
    return str(token)
