"""
Content cleaning: reduce raw page markup to readable text.

Scripts, navigation, ads, cookie banners and other boilerplate are removed;
the main article/content container is preferred over the whole body.
"""

from __future__ import annotations

import re
from typing import Optional

from selectolax.lexbor import LexborHTMLParser


STRIP_TAGS = [
    "script", "style", "noscript", "template", "svg", "canvas", "iframe",
    "nav", "header", "footer", "aside", "form", "button", "select", "input",
]

BOILERPLATE_SELECTORS = [
    "[role=navigation]", "[role=banner]", "[role=contentinfo]",
    "[aria-hidden=true]",
    "[class*=cookie]", "[id*=cookie]", "[class*=consent]", "[id*=consent]",
    "[class*=advert]", "[id*=advert]", "[class*=sponsor]",
    "[class*=newsletter]", "[class*=subscribe]", "[class*=social-share]",
    "[class*=sidebar]", "[id*=sidebar]", "[class*=breadcrumb]",
    "[class*=related-posts]", "[class*=comments]", "[id*=comments]",
    ".ad", ".ads", ".popup", ".modal",
]

MAIN_SELECTORS = [
    "article",
    "main",
    "[role=main]",
    "#content",
    "#main-content",
    ".post-content",
    ".entry-content",
    ".article-body",
    ".content",
]

BLOCK_TAGS = {
    "p", "div", "section", "article", "main", "li", "ul", "ol", "tr", "table",
    "h1", "h2", "h3", "h4", "h5", "h6", "blockquote", "pre", "br", "dd", "dt",
}

# Markup that only challenge interstitials carry
CHALLENGE_MARKERS = [
    "cf-browser-verification",
    "cf-challenge",
    "bots use duckduckgo too",
]

CHALLENGE_TITLES = [
    "just a moment",
    "attention required! | cloudflare",
    "are you a robot",
]

# Only trusted on pages with little visible text; real articles mention these too
SHORT_PAGE_PHRASES = [
    "captcha",
    "unusual traffic",
    "are you a robot",
    "verify you are human",
    "checking your browser",
]

SHORT_PAGE_MARKERS = [
    "g-recaptcha",
    "h-captcha",
    "anomaly-modal",
]

SHORT_PAGE_TEXT_LENGTH = 500

BLOCKED_STATUS_CODES = {403, 429, 503}

TRUNCATION_MARKER = "\n\n[Content truncated at {n} characters]"

_SPACE_RE = re.compile(r"[ \t\f\v\xa0]+")
_BLANKS_RE = re.compile(r"\n\s*\n+")


def detect_bot_challenge(html: str, status_code: Optional[int] = None) -> Optional[str]:
    """
    Return a short reason when a response looks like a bot block, else None.

    Challenge-only markup and titles always count. Generic phrases such as
    "captcha" count only when the page has little visible text, so articles
    that embed a reCAPTCHA form or discuss CAPTCHAs are not flagged.
    """
    if status_code in BLOCKED_STATUS_CODES:
        return f"Bot detection: HTTP {status_code}"
    head = (html or "")[:20000].lower()
    for marker in CHALLENGE_MARKERS:
        if marker in head:
            return f"Bot detection: page contains '{marker}'"

    tree = LexborHTMLParser(html or "")
    title_node = tree.css_first("title")
    title = title_node.text(strip=True).lower() if title_node else ""
    for phrase in CHALLENGE_TITLES:
        if phrase in title:
            return f"Bot detection: page title '{title}'"

    text = _visible_text(tree).lower()
    if len(text) >= SHORT_PAGE_TEXT_LENGTH:
        return None
    for phrase in SHORT_PAGE_PHRASES:
        if phrase in text:
            return f"Bot detection: page contains '{phrase}'"
    for marker in SHORT_PAGE_MARKERS:
        if marker in head:
            return f"Bot detection: page contains '{marker}'"
    return None


def _visible_text(tree: LexborHTMLParser) -> str:
    tree.strip_tags(["script", "style", "noscript", "template"])
    body = tree.body
    if body is None:
        return ""
    return " ".join(body.text(separator=" ").split())


def _drop_all(tree: LexborHTMLParser, selector: str):
    """Decompose every match, re-querying so nested matches are never touched twice."""
    while True:
        target = None
        for node in tree.css(selector):
            # never drop the document skeleton itself
            if node.tag not in ("html", "body"):
                target = node
                break
        if target is None:
            return
        target.decompose()


def _pick_main(tree: LexborHTMLParser):
    body = tree.body or tree.root
    best = None
    best_len = 0
    for selector in MAIN_SELECTORS:
        for node in tree.css(selector):
            length = len(node.text(strip=True))
            if length > best_len:
                best, best_len = node, length
        if best is not None and best_len >= 200:
            return best
    if best is not None and body is not None and best_len >= len(body.text(strip=True)) * 0.25:
        return best
    return body


def _block_text(node) -> str:
    """Text with newlines between block elements."""
    parts = []
    for child in node.traverse(include_text=True):
        if child.tag == "-text":
            parts.append(child.text_content or "")
        elif child.tag in BLOCK_TAGS:
            parts.append("\n")
    return "".join(parts)


def clean_html_to_text(html: str) -> str:
    """Extract the main readable text from an HTML document."""
    if not html:
        return ""
    tree = LexborHTMLParser(html)
    tree.strip_tags(STRIP_TAGS)
    for selector in BOILERPLATE_SELECTORS:
        _drop_all(tree, selector)

    main = _pick_main(tree)
    if main is None:
        return ""

    text = _block_text(main)
    lines = [_SPACE_RE.sub(" ", line).strip() for line in text.split("\n")]
    text = "\n".join(line for line in lines if line)
    return _BLANKS_RE.sub("\n\n", text).strip()


def truncate_content(text: str, max_length: Optional[int]) -> str:
    """
    Cut ``text`` to ``max_length`` characters and append a truncation marker.

    ``None`` or ``0`` (or any non-positive value) means no limit.
    """
    if not max_length or max_length <= 0 or len(text) <= max_length:
        return text
    return text[:max_length] + TRUNCATION_MARKER.format(n=max_length)


def make_preview(text: str, length: int = 500) -> str:
    if len(text) <= length:
        return text
    cut = text[:length]
    space = cut.rfind(" ")
    if space > length * 0.6:
        cut = cut[:space]
    return cut.rstrip() + "..."
