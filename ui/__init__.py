"""
UI package initialization.
"""

from . import search_page

__all__ = ["search_page"]
