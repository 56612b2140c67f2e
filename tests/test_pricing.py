"""
Unit tests for coin pricing and page count normalization.
"""

import pytest

from note_forge.core.pricing import (
    MAX_PAGES,
    MIN_PAGES,
    PagePricing,
    coins_required,
    normalize_page_count
)


class TestNormalizePageCount:
    """Test page count normalization."""

    @pytest.mark.parametrize("value", [1, 2, 5, 10])
    def test_in_range_values_kept(self, value):
        assert normalize_page_count(value) == value

    @pytest.mark.parametrize("value", [0, -1, 11, 100])
    def test_out_of_range_clamped_to_one(self, value):
        assert normalize_page_count(value) == MIN_PAGES

    @pytest.mark.parametrize("value", [None, "abc", "", "-", "--5", "\u00b2", 2.5, [3], {"pages": 3}, True, False])
    def test_non_integer_clamped_to_one(self, value):
        assert normalize_page_count(value) == MIN_PAGES

    def test_numeric_strings_accepted(self):
        assert normalize_page_count("3") == 3
        assert normalize_page_count(" 7 ") == 7
        assert normalize_page_count("12") == MIN_PAGES

    def test_integral_float_accepted(self):
        assert normalize_page_count(4.0) == 4

    def test_bounds(self):
        assert MIN_PAGES == 1
        assert MAX_PAGES == 10


class TestCoinsRequired:
    """Test the page-to-coin exchange rate."""

    def test_one_coin_per_page(self):
        for pages in range(MIN_PAGES, MAX_PAGES + 1):
            assert coins_required(pages) == pages

    def test_invalid_page_count_costs_one_coin(self):
        assert coins_required(15) == 1
        assert coins_required("many") == 1

    def test_custom_rate(self):
        assert coins_required(3, PagePricing(coins_per_page=2)) == 6
