"""
Result page parsers: one per provider.

Each parser turns a provider's result markup into ``ParsedResult`` entries
in the provider's native order. Advertisements, provider-internal links and
entries without a usable title or URL are dropped here.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup, Tag


@dataclass
class ParsedResult:
    """Provider-neutral parsed entry (before provider tagging)."""

    title: str
    url: str
    description: str = ""


_WS_RE = re.compile(r"\s+")


def _text(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    return _WS_RE.sub(" ", el.get_text(" ", strip=True)).strip()


def _is_external(url: str, internal_hosts: tuple) -> bool:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    host = parsed.netloc.lower()
    return not any(host == h or host.endswith("." + h) for h in internal_hosts)


# ------------------------------------------------------------------
# Bing
# ------------------------------------------------------------------

BING_HOSTS = ("bing.com", "microsoft.com", "msn.com")


def decode_bing_url(href: str) -> Optional[str]:
    """
    Resolve Bing's ``/ck/a`` click-tracking redirect.

    The target sits in the ``u`` parameter as ``a1`` + urlsafe base64.
    """
    if not href:
        return None
    parsed = urlparse(href)
    if "bing.com" not in parsed.netloc or not parsed.path.startswith("/ck/"):
        return href

    u = parse_qs(parsed.query).get("u", [""])[0]
    if not u.startswith("a1"):
        return None
    payload = u[2:]
    payload += "=" * (-len(payload) % 4)
    try:
        return base64.urlsafe_b64decode(payload).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None


def parse_bing(html: str) -> List[ParsedResult]:
    """Parse a Bing SERP (``li.b_algo`` blocks)."""
    soup = BeautifulSoup(html, "html.parser")
    results: List[ParsedResult] = []

    for block in soup.select("li.b_algo"):
        classes = block.get("class") or []
        if "b_ad" in classes or block.find_parent(class_="b_ad"):
            continue

        link = block.select_one("h2 a[href]")
        if link is None:
            continue
        url = decode_bing_url(link.get("href", ""))
        title = _text(link)
        if not url or not title or not _is_external(url, BING_HOSTS):
            continue

        desc_el = block.select_one(".b_caption p, p.b_lineclamp2, p.b_lineclamp3, .b_algoSlug, p")
        results.append(ParsedResult(title=title, url=url, description=_text(desc_el)))

    return results


# ------------------------------------------------------------------
# Brave
# ------------------------------------------------------------------

BRAVE_HOSTS = ("search.brave.com", "brave.com")


def parse_brave(html: str) -> List[ParsedResult]:
    """Parse a Brave Search SERP (``div.snippet[data-type=web]`` blocks)."""
    soup = BeautifulSoup(html, "html.parser")
    results: List[ParsedResult] = []

    for block in soup.select("div.snippet"):
        data_type = block.get("data-type", "web")
        if data_type != "web":
            continue
        classes = " ".join(block.get("class") or [])
        if "ad" in classes.split() or "sponsored" in classes:
            continue

        link = block.select_one("a[href]")
        if link is None:
            continue
        url = link.get("href", "")
        title_el = block.select_one(".title, .snippet-title, h2, h3") or link
        title = _text(title_el)
        if not url or not title or not _is_external(url, BRAVE_HOSTS):
            continue

        desc_el = block.select_one(
            ".snippet-description, .generic-snippet .content, .description, .snippet-content"
        )
        results.append(ParsedResult(title=title, url=url, description=_text(desc_el)))

    return results


# ------------------------------------------------------------------
# DuckDuckGo (HTML endpoint)
# ------------------------------------------------------------------

DUCKDUCKGO_HOSTS = ("duckduckgo.com",)


def decode_duckduckgo_url(href: str) -> Optional[str]:
    """Resolve DuckDuckGo's ``/l/?uddg=`` redirect (also protocol-relative)."""
    if not href:
        return None
    absolute = urljoin("https://duckduckgo.com/", href)
    parsed = urlparse(absolute)
    if parsed.netloc.endswith("duckduckgo.com") and parsed.path.startswith("/l/"):
        target = parse_qs(parsed.query).get("uddg", [""])[0]
        return target or None
    return absolute


def parse_duckduckgo(html: str) -> List[ParsedResult]:
    """Parse a DuckDuckGo HTML SERP (``div.result`` blocks)."""
    soup = BeautifulSoup(html, "html.parser")
    results: List[ParsedResult] = []

    for block in soup.select("div.result"):
        classes = block.get("class") or []
        if "result--ad" in classes or "result--no-result" in classes:
            continue

        link = block.select_one("a.result__a[href]")
        if link is None:
            continue
        url = decode_duckduckgo_url(link.get("href", ""))
        title = _text(link)
        if not url or not title or not _is_external(url, DUCKDUCKGO_HOSTS):
            continue
        # ad redirects that slipped past the class filter
        if "y.js" in url and "ad_provider" in url:
            continue

        desc_el = block.select_one(".result__snippet")
        results.append(ParsedResult(title=title, url=url, description=_text(desc_el)))

    return results


PARSERS: Dict[str, Callable[[str], List[ParsedResult]]] = {
    "bing": parse_bing,
    "brave": parse_brave,
    "duckduckgo": parse_duckduckgo,
}
