"""Listing Arithmetic: offset pagination and listing cache keys.

Invariants:
    - Pages are 1-based; page N covers rows [(N-1)*limit, N*limit)
    - total_pages == ceil(count / limit); zero rows -> zero pages
    - Cache keys are deterministic for equal filter sets (sorted JSON)
"""

import json
import math
from typing import Any


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def total_pages(count: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return math.ceil(count / limit)


def canonical_filters(filters: dict[str, Any]) -> str:
    """Stable JSON for a filter mapping; None values are dropped."""
    cleaned = {k: v for k, v in filters.items() if v is not None}
    return json.dumps(cleaned, sort_keys=True, default=str)
