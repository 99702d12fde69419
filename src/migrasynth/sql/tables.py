"""
CREATE TABLE and full-table column reorder statements.
"""

import logging
from typing import Callable, List, Optional, Tuple

from ..schema.model import Column, SchemaSnapshot, Table, group_foreign_keys
from .columns import has_default, normalize_default_value, render_identity, render_sql_type
from .constraints import (
    render_add_primary_key,
    render_create_index,
    render_drop_foreign_key,
    render_foreign_key,
)
from .naming import deterministic_suffix, primary_key_name, qualified_name, sql_literal


logger = logging.getLogger(__name__)

ConstraintNamer = Callable[[Column, str], str]


def render_column_definition(column: Column, default_name: ConstraintNamer) -> str:
    """One column line of a CREATE TABLE body, without trailing comma."""
    sql = f"    [{column.name}] "
    if column.is_computed and column.computed_sql:
        return sql + f"AS {column.computed_sql}"
    sql += render_sql_type(column)
    sql += " NULL" if column.is_nullable else " NOT NULL"
    if has_default(column):
        value = normalize_default_value(column.default_value)
        sql += f" CONSTRAINT [{default_name(column, value)}] DEFAULT {value}"
    if column.is_identity:
        sql += render_identity(column)
    return sql


def render_create_table(table: Table) -> str:
    """CREATE TABLE with inline default constraints and primary key."""

    def default_name(column: Column, value: str) -> str:
        return column.default_constraint_name or (
            f"DF_{table.name}_{column.name}_"
            f"{deterministic_suffix(table.name, column.name, value, 'create')}"
        )

    lines = [render_column_definition(c, default_name) for c in table.ordered_columns()]
    pk_columns = table.primary_key_columns()
    if pk_columns:
        names = ", ".join(f"[{c.name}]" for c in pk_columns)
        lines.append(f"    CONSTRAINT [{primary_key_name(table.name)}] PRIMARY KEY ({names})")
    body = ",\n".join(lines)
    return f"CREATE TABLE {table.qualified_name}(\n{body}\n);\n"


def _reorder_constraints(desired: Table, snapshot: Optional[SchemaSnapshot]) -> List[str]:
    statements = []
    pk_columns = desired.primary_key_columns()
    if pk_columns:
        statements.append(
            render_add_primary_key(
                desired.name,
                [c.name for c in pk_columns],
                primary_key_name(desired.name),
                desired.schema,
            )
        )
    statements.extend(render_create_index(index) for index in desired.indexes)

    groups = group_foreign_keys(desired.foreign_keys())
    for group in groups:
        sql = render_foreign_key(group, snapshot, force_no_check=True)
        if sql:
            statements.append(sql)
    for group in groups:
        if group[0].not_enforced:
            continue
        sql = render_foreign_key(group, snapshot)
        if sql:
            statements.append(render_drop_foreign_key(group[0]))
            statements.append(sql)
    return statements


def render_column_reorder(
    actual: Table,
    desired: Table,
    snapshot: Optional[SchemaSnapshot] = None,
) -> Tuple[str, List[str]]:
    """Rebuild ``actual`` so its columns follow the order of ``desired``.

    Returns the rebuild script and the statements that recreate the primary
    key, indexes and the table's own foreign keys afterwards. Both are empty
    when the order already matches. Columns of ``actual`` unknown to
    ``desired`` keep their relative order at the end of the table.
    """
    actual_columns = actual.ordered_columns()
    ordered = [c for c in desired.ordered_columns() if actual.has_column(c.name)]
    if not ordered or not actual_columns:
        logger.debug(f"Skipping reorder of {actual.name}: no shared columns")
        return "", []
    known = {c.key for c in ordered}
    ordered += [c for c in actual_columns if c.key not in known]

    if [c.key for c in ordered] == [c.key for c in actual_columns]:
        return "", []

    schema = actual.schema
    source = qualified_name(schema, actual.name)
    temp_name = f"{actual.name}_reorder_{deterministic_suffix(schema, actual.name, 'reorder')}"
    temp = qualified_name(schema, temp_name)
    logger.debug(
        f"Reordering {actual.name}: {[c.name for c in actual_columns]} -> "
        f"{[c.name for c in ordered]}"
    )

    def default_name(column: Column, value: str) -> str:
        return (
            f"DF_{actual.name}_{column.name}_"
            f"{deterministic_suffix(schema, actual.name, column.name, value, 'reorder')}"
        )

    body = ",\n".join(render_column_definition(c, default_name) for c in ordered)
    sql = (
        "-- Reorder columns to match target schema\n"
        "-- Creating temporary table with correct column order\n"
        f"CREATE TABLE {temp}(\n{body}\n);\n"
        "\n"
    )

    copied = [c for c in ordered if c.is_data_column]
    if copied:
        object_suffix = deterministic_suffix(schema, actual.name, "reorder", "objectid")
        insert_suffix = deterministic_suffix(schema, actual.name, "reorder", "insertsql")
        object_var = f"@tableObjectId_{object_suffix}"
        insert_var = f"@insertSql_{insert_suffix}"
        names = ", ".join(f"[{c.name}]" for c in copied)
        checks = " AND ".join(
            f"EXISTS (SELECT 1 FROM sys.columns WHERE object_id = {object_var} "
            f"AND name = '{sql_literal(c.name)}')"
            for c in copied
        )
        insert = f"INSERT INTO {temp} ({names}) SELECT {names} FROM {source};"
        has_identity = any(c.is_identity for c in copied)

        sql += "-- Copy data from original table to temporary table\n"
        sql += f"DECLARE {object_var} INT = OBJECT_ID('{source}', 'U');\n"
        sql += f"IF {object_var} IS NOT NULL AND {checks}\n"
        sql += "BEGIN\n"
        if has_identity:
            sql += f"    SET IDENTITY_INSERT {temp} ON;\n"
        sql += f"    DECLARE {insert_var} NVARCHAR(MAX) = N'{sql_literal(insert)}';\n"
        sql += f"    EXEC sp_executesql {insert_var};\n"
        if has_identity:
            sql += f"    SET IDENTITY_INSERT {temp} OFF;\n"
        sql += "END\n\n"

    sql += (
        "-- Drop original table (constraints and indexes will be recreated after reordering)\n"
        f"DROP TABLE {source};\n"
        "\n"
        "-- Rename temporary table to original name\n"
        f"EXEC sp_rename '{temp}', '{actual.name}', 'OBJECT';\n"
    )
    return sql, _reorder_constraints(desired, snapshot)
