"""Listing Arithmetic: offsets, page counts, canonical filter keys."""

from jobboard.core.listing import canonical_filters, page_offset, total_pages


def test_page_offset_is_one_based():
    assert page_offset(1, 10) == 0
    assert page_offset(2, 5) == 5


def test_total_pages_rounds_up():
    assert total_pages(12, 5) == 3
    assert total_pages(10, 5) == 2
    assert total_pages(0, 5) == 0


def test_total_pages_with_non_positive_limit():
    assert total_pages(12, 0) == 0


def test_canonical_filters_ignore_order_and_nones():
    a = canonical_filters({"department": "Physics", "search": None, "page": 1})
    b = canonical_filters({"page": 1, "department": "Physics"})
    assert a == b
