"""
Detection of column changes that ALTER COLUMN cannot express.
"""

import re
from typing import Optional

from .model import Column, Table


LOB_TYPES = frozenset({"text", "ntext", "image"})
TIMESTAMP_TYPES = frozenset({"timestamp", "rowversion"})


def normalize_computed_sql(sql: Optional[str]) -> str:
    """Collapse whitespace and case so cosmetic formula edits compare equal."""
    if not sql:
        return ""
    return re.sub(r"\s+", " ", sql).strip().lower()


def _lob_conversion(old: Column, new: Column) -> bool:
    old_type, new_type = old.sql_type.lower(), new.sql_type.lower()
    if old_type == new_type:
        return False
    return old_type in LOB_TYPES or new_type in LOB_TYPES


def _identity_changed(old: Column, new: Column) -> bool:
    if old.is_identity != new.is_identity:
        return True
    return old.is_identity and (
        old.identity_seed != new.identity_seed
        or old.identity_increment != new.identity_increment
    )


def _computed_changed(old: Column, new: Column) -> bool:
    if old.is_computed != new.is_computed:
        return True
    return old.is_computed and (
        normalize_computed_sql(old.computed_sql) != normalize_computed_sql(new.computed_sql)
    )


def referenced_by_computed_column(column: Column, table: Table) -> bool:
    """Whether another computed column's formula mentions ``column``."""
    pattern = re.compile(
        r"\[" + re.escape(column.name) + r"\]|\b" + re.escape(column.name) + r"\b",
        re.IGNORECASE,
    )
    for other in table.columns.values():
        if other.key == column.key or not other.is_computed or not other.computed_sql:
            continue
        if pattern.search(other.computed_sql):
            return True
    return False


def _position_change_blocked(old: Column, new: Column, table: Optional[Table]) -> bool:
    if old.ordinal_position == new.ordinal_position:
        return False
    if old.is_computed:
        return True
    if table is None:
        return False
    indexed = any(index.covers(old.name) for index in table.indexes)
    return indexed or referenced_by_computed_column(old, table)


def requires_rebuild(old: Column, new: Column, table: Optional[Table] = None) -> bool:
    """Whether changing ``old`` into ``new`` needs the column dropped and re-added.

    ``table`` is the table that currently holds ``old``; it is used to find
    index and computed-column dependencies of a moved column.
    """
    return (
        _lob_conversion(old, new)
        or _identity_changed(old, new)
        or _computed_changed(old, new)
        or _position_change_blocked(old, new, table)
        or old.sql_type.lower() in TIMESTAMP_TYPES
        or new.sql_type.lower() in TIMESTAMP_TYPES
    )
