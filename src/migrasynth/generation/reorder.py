"""
Full-table column reorder.

SQL Server cannot move a column, so restoring a column order means creating
a copy of the table, moving the rows over and swapping the names. Every
foreign key pointing at the table from elsewhere has to be dropped first and
is restored once the copy is in place.
"""

import logging
from typing import List

from ..schema.model import SchemaSnapshot, Table
from ..sql.constraints import join_statements, render_drop_foreign_key
from ..sql.naming import deterministic_suffix
from ..sql.tables import render_column_reorder
from .resolver import compute_foreign_key_groups, valid_foreign_key_groups
from .phases import render_checked_foreign_keys


logger = logging.getLogger(__name__)


def render_table_reorder(actual: Table, desired: Table, fk_snapshot: SchemaSnapshot) -> str:
    """Reorder ``actual`` to the column order of ``desired``.

    ``fk_snapshot`` supplies the foreign keys that reference the table and
    validates every recreated constraint.
    """
    sql, constraints = render_column_reorder(actual, desired, fk_snapshot)
    if not sql:
        return ""

    external = valid_foreign_key_groups(
        compute_foreign_key_groups(fk_snapshot.foreign_keys_referencing(actual.name)),
        fk_snapshot,
    )
    statements = []
    for group in external:
        first = group[0]
        suffix = deterministic_suffix(first.schema, first.table, first.name, "reorder")
        statements.append(render_drop_foreign_key(first, suffix))
    statements.append(sql)
    statements.extend(constraints)
    if external:
        logger.debug(f"Restoring {len(external)} foreign keys referencing {actual.name}")
        statements.extend(render_checked_foreign_keys(external, fk_snapshot, "reordercheck"))
    return join_statements(statements)


def generate_reorders(
    tables: List[str],
    result: SchemaSnapshot,
    desired: SchemaSnapshot,
    fk_snapshot: SchemaSnapshot,
) -> str:
    """Reorder every named table of ``result`` to its order in ``desired``."""
    statements = []
    for name in sorted(tables, key=str.lower):
        actual = result.table(name)
        wanted = desired.table(name)
        if actual is None or wanted is None:
            logger.debug(f"Skipping reorder of {name}: table missing from a snapshot")
            continue
        statements.append(render_table_reorder(actual, wanted, fk_snapshot))
    return join_statements(statements)
