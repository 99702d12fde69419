"""
Foreign key, primary key and index statements.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from ..schema.model import ForeignKey, Index, SchemaSnapshot
from .naming import qualified_name, sql_literal


logger = logging.getLogger(__name__)


def render_foreign_key(
    group: Sequence[ForeignKey],
    snapshot: Optional[SchemaSnapshot] = None,
    force_no_check: bool = False,
) -> str:
    """ADD CONSTRAINT for one (possibly composite) foreign key.

    Returns an empty string when ``snapshot`` is given and a referenced table
    or column is missing from it. Unless ``force_no_check`` is set, enforced
    keys are created WITH CHECK and followed by CHECK CONSTRAINT.
    """
    if not group:
        return ""
    first = group[0]
    if snapshot is not None:
        missing = [fk for fk in group if not snapshot.has_reference_target(fk)]
        if missing:
            logger.debug(
                f"Skipping foreign key {first.name} on {first.table}: "
                f"reference {missing[0].ref_table}.{missing[0].ref_column} not found"
            )
            return ""

    components = sorted(group, key=lambda fk: fk.column.lower())
    columns = ", ".join(f"[{fk.column}]" for fk in components)
    ref_columns = ", ".join(f"[{fk.ref_column}]" for fk in components)
    check = "NOCHECK" if force_no_check or first.not_enforced else "CHECK"
    table = qualified_name(first.schema, first.table)

    sql = (
        f"ALTER TABLE {table} WITH {check} ADD CONSTRAINT [{first.name}] "
        f"FOREIGN KEY({columns}) REFERENCES "
        f"{qualified_name(first.ref_schema, first.ref_table)}({ref_columns})"
    )
    if first.not_for_replication:
        sql += " NOT FOR REPLICATION"
    if first.delete_action.sql:
        sql += f" ON DELETE {first.delete_action.sql}"
    if first.update_action.sql:
        sql += f" ON UPDATE {first.update_action.sql}"
    sql += ";\n"

    if not force_no_check and not first.not_enforced:
        sql += f"ALTER TABLE {table} CHECK CONSTRAINT [{first.name}];\n"
    return sql


def render_drop_foreign_key(fk: ForeignKey, suffix: Optional[str] = None) -> str:
    """Drop a foreign key.

    With a ``suffix`` the drop is guarded by a lookup in ``sys.foreign_keys``
    so it can safely run against a key an earlier statement may have removed.
    """
    table = qualified_name(fk.schema, fk.table)
    if suffix is None:
        return f"ALTER TABLE {table} DROP CONSTRAINT [{fk.name}];\n"
    variable = f"@fkConstraintName_{suffix}"
    return (
        f"DECLARE {variable} NVARCHAR(128);\n"
        f"SELECT {variable} = name FROM sys.foreign_keys\n"
        f"WHERE parent_object_id = OBJECT_ID('{table}')\n"
        f"AND name = '{sql_literal(fk.name)}';\n"
        f"IF {variable} IS NOT NULL\n"
        f"    EXEC('ALTER TABLE {table} DROP CONSTRAINT [' + {variable} + ']');\n"
    )


def render_add_primary_key(
    table_name: str, column_names: Iterable[str], constraint_name: str, schema: str = "dbo"
) -> str:
    columns = ", ".join(f"[{name}]" for name in column_names)
    return (
        f"ALTER TABLE {qualified_name(schema, table_name)} ADD CONSTRAINT "
        f"[{constraint_name}] PRIMARY KEY ({columns});\n"
    )


def render_drop_primary_key(table_name: str, suffix: str, schema: str = "dbo") -> str:
    """Drop the table's primary key whatever its constraint name is."""
    table = qualified_name(schema, table_name)
    variable = f"@pkConstraintName_{suffix}"
    return (
        f"DECLARE {variable} NVARCHAR(128);\n"
        f"SELECT {variable} = name FROM sys.key_constraints\n"
        f"WHERE parent_object_id = OBJECT_ID('{table}')\n"
        f"AND type = 'PK';\n"
        f"IF {variable} IS NOT NULL\n"
        f"    EXEC('ALTER TABLE {table} DROP CONSTRAINT [' + {variable} + ']');\n"
    )


def render_create_index(index: Index) -> str:
    table = qualified_name(index.schema, index.table)
    unique = "UNIQUE " if index.is_unique else ""
    columns = ", ".join(f"[{c}]" for c in index.columns)
    return (
        f"IF NOT EXISTS (SELECT * FROM sys.indexes WHERE name = '{sql_literal(index.name)}' "
        f"AND object_id = OBJECT_ID('{table}'))\n"
        "BEGIN\n"
        f"    CREATE {unique}NONCLUSTERED INDEX [{index.name}] ON {table} ({columns});\n"
        "END\n"
    )


def render_drop_index(index: Index) -> str:
    table = qualified_name(index.schema, index.table)
    return (
        f"IF EXISTS (SELECT * FROM sys.indexes WHERE name = '{sql_literal(index.name)}' "
        f"AND object_id = OBJECT_ID('{table}'))\n"
        "BEGIN\n"
        f"    DROP INDEX [{index.name}] ON {table};\n"
        "END\n"
    )


def join_statements(statements: List[str]) -> str:
    """Concatenate non-empty statements, one per line block."""
    return "".join(s if s.endswith("\n") else s + "\n" for s in statements if s)
