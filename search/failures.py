"""
Failure classification: map raw error text onto a small set of
diagnostic categories and summarize them per request.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Iterable, List, Optional

from models.enums import FailureCategory
from models.schema import FailureRecord


# Checked in order; the first matching rule wins.
_RULES = [
    (FailureCategory.TIMEOUT, ("timeout", "timed out")),
    (FailureCategory.BOT_DETECTION, (
        "bot detection",
        "bot-detection",
        "captcha",
        "unusual traffic",
        "are you a robot",
        re.compile(r"\bbots?\b"),
    )),
    (FailureCategory.ACCESS_DENIED, ("403", "forbidden", "access denied", "401", "unauthorized")),
    (FailureCategory.NOT_FOUND, ("404", "not found", "410 gone")),
    (FailureCategory.CONTENT_TOO_LARGE, ("too large", "content length", "maxcontentlength")),
    (FailureCategory.SSL_ERROR, ("ssl", "certificate", "tls", "err_cert")),
    (FailureCategory.DNS_ERROR, (
        "dns",
        "hostname",
        "name or service not known",
        "nodename nor servname",
        "getaddrinfo",
        "name resolution",
        "err_name_not_resolved",
    )),
    (FailureCategory.NETWORK_ERROR, ("network", "connection", "econnrefused", "econnreset", "unreachable")),
]


def categorize_error(message: Optional[str]) -> FailureCategory:
    """Classify a raw error message."""
    if not message:
        return FailureCategory.OTHER
    lower = message.lower()
    for category, needles in _RULES:
        for needle in needles:
            if isinstance(needle, str):
                if needle in lower:
                    return category
            elif needle.search(lower):
                return category
    return FailureCategory.OTHER


def make_failure(url: str, error: BaseException | str, provider: Optional[str] = None) -> FailureRecord:
    """Build a FailureRecord from an exception or message."""
    text = describe_error(error) if isinstance(error, BaseException) else error
    return FailureRecord(
        url=url,
        error=text,
        category=categorize_error(text),
        provider=provider,
    )


def describe_error(exc: BaseException) -> str:
    """Readable one-line message for an exception (some httpx errors have empty str())."""
    text = str(exc).strip()
    name = type(exc).__name__
    if not text:
        return name
    if name.lower() in text.lower():
        return text
    return f"{name}: {text}"


def summarize_categories(
    categories: Iterable[FailureCategory],
    limit: int = 3,
) -> List[str]:
    """
    Most common categories, most frequent first.

    Counts are appended when a category occurs more than once,
    e.g. ``["Bot detection (2)", "Timeout"]``.
    """
    counts = Counter(categories)
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], list(FailureCategory).index(kv[0])))
    return [
        f"{cat.value} ({n})" if n > 1 else cat.value
        for cat, n in ordered[:limit]
    ]
