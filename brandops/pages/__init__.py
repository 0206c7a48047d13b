"""Dashboard page definitions (KPIs, sections and insight prompts)."""

from brandops.pages.base import Page
from brandops.pages.registry import PAGES, get_page, page_names

__all__ = ["PAGES", "Page", "get_page", "page_names"]
