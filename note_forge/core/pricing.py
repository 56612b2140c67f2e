"""
Coin pricing for note generation.

Fixed exchange rate: one coin per generated page.
"""

from dataclasses import dataclass
from typing import Any

MIN_PAGES = 1
MAX_PAGES = 10
COINS_PER_PAGE = 1


@dataclass(frozen=True)
class PagePricing:
    """Exchange rate between pages and coins."""
    coins_per_page: int = COINS_PER_PAGE

    def coins_for(self, page_count: int) -> int:
        """Coins charged for a page count already normalized into range."""
        return page_count * self.coins_per_page


def normalize_page_count(value: Any) -> int:
    """Return the page count a request is actually served with.

    Anything that is not an integer within [MIN_PAGES, MAX_PAGES] falls back
    to a single page. Booleans are not page counts.

    Args:
        value: Raw page count from the caller

    Returns:
        Page count in [MIN_PAGES, MAX_PAGES]
    """
    if isinstance(value, bool):
        return MIN_PAGES
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return MIN_PAGES
    if isinstance(value, float):
        if not value.is_integer():
            return MIN_PAGES
        value = int(value)
    if not isinstance(value, int):
        return MIN_PAGES
    if value < MIN_PAGES or value > MAX_PAGES:
        return MIN_PAGES
    return value


def coins_required(page_count: Any, pricing: PagePricing = PagePricing()) -> int:
    """Calculate the coins a request costs after page count normalization."""
    return pricing.coins_for(normalize_page_count(page_count))
