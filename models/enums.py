"""
Enumerations for web search data models.
"""

from enum import Enum


class FetchStatus(str, Enum):
    """Content extraction status of a single result."""
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class FailureCategory(str, Enum):
    """Diagnostic category of a failed fetch. Values are the summary labels."""
    TIMEOUT = "Timeout"
    ACCESS_DENIED = "Access denied"
    BOT_DETECTION = "Bot detection"
    NOT_FOUND = "Not found"
    CONTENT_TOO_LARGE = "Content too long"
    SSL_ERROR = "SSL error"
    NETWORK_ERROR = "Network error"
    DNS_ERROR = "DNS error"
    OTHER = "Other error"


class EngineKind(str, Enum):
    """Headless rendering engine supported by Playwright."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"
