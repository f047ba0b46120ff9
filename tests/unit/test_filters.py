"""
Tests for hard-constraint filtering.
"""

import pytest


def ids(items):
    return [item.id for item in items]


class TestApplyFilters:
    """Tests for apply_filters."""

    def test_no_constraints_returns_copy(self, sample_catalog):
        from recs.filter_utils import apply_filters
        from recs.models import FilterContext

        result = apply_filters(sample_catalog, FilterContext(sort_by="price-asc"))

        assert result == sample_catalog
        assert result is not sample_catalog

    def test_price_range_inclusive(self, sample_catalog):
        from recs.filter_utils import apply_filters
        from recs.models import FilterContext

        context = FilterContext.model_validate({"priceRange": {"min": 30, "max": 40}})

        assert ids(apply_filters(sample_catalog, context)) == ["product-1", "product-3"]

    def test_open_price_bound(self, sample_catalog):
        from recs.filter_utils import apply_filters
        from recs.models import FilterContext

        context = FilterContext.model_validate({"priceRange": {"min": 100}})

        assert ids(apply_filters(sample_catalog, context)) == ["product-5"]

    @pytest.mark.parametrize("category,expected", [
        ("kit", ["product-1", "product-2"]),          # product type substring
        ("TRENDING", ["product-2"]),                  # tag, case-insensitive
        ("detail", ["product-5"]),                    # tag substring
    ])
    def test_category(self, sample_catalog, category, expected):
        from recs.filter_utils import apply_filters
        from recs.models import FilterContext

        assert ids(apply_filters(sample_catalog, FilterContext(categories=[category]))) == expected

    def test_brand_case_insensitive(self, sample_catalog):
        from recs.filter_utils import apply_filters
        from recs.models import FilterContext

        result = apply_filters(sample_catalog, FilterContext(brands=["labgrow"]))

        assert ids(result) == ["product-4", "product-5"]

    def test_availability(self, sample_catalog):
        from recs.filter_utils import apply_filters
        from recs.models import FilterContext

        in_stock = apply_filters(sample_catalog, FilterContext(availability="in-stock"))
        out_of_stock = apply_filters(sample_catalog, FilterContext(availability="out_of_stock"))

        assert "product-4" not in ids(in_stock)
        assert ids(out_of_stock) == ["product-4"]

    def test_constraints_combine(self, sample_catalog):
        """Brand LabGrow in stock leaves only the tent."""
        from recs.filter_utils import apply_filters
        from recs.models import FilterContext

        context = FilterContext(brands=["LabGrow"], availability=True)

        assert ids(apply_filters(sample_catalog, context)) == ["product-5"]

    def test_everything_excluded(self, sample_catalog):
        from recs.filter_utils import apply_filters
        from recs.models import FilterContext

        assert apply_filters(sample_catalog, FilterContext(brands=["nobody"])) == []
