"""Lookup table of the dashboard pages served by the API."""

from typing import Dict, List, Optional

from brandops.exceptions import UnknownPageError
from brandops.pages.base import Page
from brandops.pages.catalog import CATALOG_PAGES
from brandops.pages.operations import OPERATIONS_PAGES

PAGES: Dict[str, Page] = {page.name: page for page in OPERATIONS_PAGES + CATALOG_PAGES}


def page_names() -> List[str]:
    return list(PAGES)


def get_page(name: str, pages: Optional[Dict[str, Page]] = None) -> Page:
    """Return the page registered under *name*.

    Raises:
        UnknownPageError: If no such page exists.
    """
    table = pages if pages is not None else PAGES
    try:
        return table[name]
    except KeyError:
        raise UnknownPageError(
            f"Unknown page '{name}'. Available pages: {', '.join(sorted(table))}"
        ) from None

