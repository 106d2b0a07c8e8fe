"""Column-only extraction from ORM rows.

Relationships are declared lazy="raise", so response models are built from
column values plus whatever projections the caller loaded explicitly.
"""

from typing import Any

from sqlalchemy import inspect as sa_inspect


def column_values(row: Any) -> dict[str, Any]:
    mapper = sa_inspect(row).mapper
    return {attr.key: getattr(row, attr.key) for attr in mapper.column_attrs}
