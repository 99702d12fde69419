"""
Column level T-SQL: ADD/DROP/ALTER COLUMN, default constraints and the
guarded DROP+ADD forms used when a column cannot be altered in place.
"""

import logging
from dataclasses import replace
from typing import Optional

from ..schema.model import Column, normalize_default_value
from .naming import deterministic_suffix, qualified_name


logger = logging.getLogger(__name__)

_PRECISION_SCALE_TYPES = {"decimal", "numeric"}
_LENGTH_TYPES = {"char", "varchar", "nchar", "nvarchar", "binary", "varbinary"}
_FRACTIONAL_SECOND_TYPES = {"datetime2", "time", "datetimeoffset"}

_TYPE_DEFAULTS = {
    "bit": "0",
    "tinyint": "0",
    "smallint": "0",
    "int": "0",
    "bigint": "0",
    "decimal": "0",
    "numeric": "0",
    "money": "0",
    "smallmoney": "0",
    "real": "0.0",
    "float": "0.0",
    "char": "''",
    "varchar": "''",
    "text": "''",
    "nchar": "N''",
    "nvarchar": "N''",
    "ntext": "N''",
    "binary": "0x00",
    "varbinary": "0x00",
    "image": "0x00",
    "date": "CAST('1900-01-01' AS DATE)",
    "time": "CAST('00:00:00' AS TIME)",
    "datetime": "CAST('1900-01-01 00:00:00' AS DATETIME)",
    "datetime2": "CAST('1900-01-01 00:00:00' AS DATETIME2)",
    "datetimeoffset": "CAST('1900-01-01 00:00:00' AS DATETIMEOFFSET)",
    "smalldatetime": "CAST('1900-01-01 00:00:00' AS SMALLDATETIME)",
    "timestamp": "DEFAULT",
    "uniqueidentifier": "NEWID()",
}


def default_value_for_type(sql_type: str) -> str:
    """Placeholder value used to back-fill NOT NULL columns."""
    return _TYPE_DEFAULTS.get(sql_type.lower(), "NULL")


def has_default(column: Column) -> bool:
    return bool(column.default_value and column.default_value.strip())


def render_sql_type(column: Column) -> str:
    """Uppercase type name with its length, precision or scale."""
    sql_type = column.sql_type.lower()
    rendered = sql_type.upper()
    if sql_type in _PRECISION_SCALE_TYPES:
        if column.scale is not None:
            precision = column.precision if column.precision is not None else 18
            rendered += f"({precision},{column.scale})"
        elif column.precision is not None:
            rendered += f"({column.precision})"
    elif sql_type in _LENGTH_TYPES:
        if column.length is not None:
            rendered += "(MAX)" if column.length == -1 else f"({column.length})"
    elif sql_type in _FRACTIONAL_SECOND_TYPES:
        if column.precision is not None:
            rendered += f"({column.precision})"
    return rendered


def render_identity(column: Column) -> str:
    seed = column.identity_seed if column.identity_seed is not None else 1
    increment = column.identity_increment if column.identity_increment is not None else 1
    return f" IDENTITY({seed},{increment})"


def render_drop_default_constraint(
    column_name: str,
    table_name: str,
    schema: str = "dbo",
    suffix: Optional[str] = None,
) -> str:
    """Drop whatever default constraint is bound to a column, if any."""
    suffix = suffix or deterministic_suffix(schema, table_name, column_name, "dropdefault")
    table = qualified_name(schema, table_name)
    variable = f"@constraintName_{suffix}"
    return (
        f"DECLARE {variable} NVARCHAR(128);\n"
        f"SELECT {variable} = name FROM sys.default_constraints\n"
        f"WHERE parent_object_id = OBJECT_ID('{table}')\n"
        f"AND parent_column_id = COLUMNPROPERTY(OBJECT_ID('{table}'), '{column_name}', 'ColumnId');\n"
        f"IF {variable} IS NOT NULL\n"
        f"    EXEC('ALTER TABLE {table} DROP CONSTRAINT [' + {variable} + ']');\n"
    )


def render_add_column(column: Column, table_name: str, schema: str = "dbo") -> str:
    """ALTER TABLE ... ADD for one column.

    NOT NULL columns always get a DEFAULT so the statement succeeds on a
    populated table. When the column has no default of its own the placeholder
    constraint is dropped again if the table turns out to be empty.
    """
    table = qualified_name(schema, table_name)
    sql = f"ALTER TABLE {table} ADD [{column.name}] "

    if column.is_computed and column.computed_sql:
        return sql + f"AS {column.computed_sql};\n"

    sql += render_sql_type(column)
    if column.is_nullable:
        sql += " NULL"
    elif column.is_identity:
        sql += " NOT NULL"
    elif has_default(column):
        value = normalize_default_value(column.default_value)
        name = column.default_constraint_name or (
            f"DF_{table_name}_{column.name}_"
            f"{deterministic_suffix(table_name, column.name, value, 'add')}"
        )
        sql += f" NOT NULL CONSTRAINT [{name}] DEFAULT {value}"
    else:
        value = default_value_for_type(column.sql_type)
        suffix = deterministic_suffix(table_name, column.name, value, "add", "temp")
        name = f"DF_{table_name}_{column.name}_{suffix}"
        drop = render_drop_default_constraint(column.name, table_name, schema, suffix)
        return (
            f"{sql} NOT NULL CONSTRAINT [{name}] DEFAULT {value};\n"
            "-- Drop temporary default constraint (original column didn't have one)\n"
            "-- Only drop if table is empty, otherwise SQL Server requires it for NOT NULL columns\n"
            f"DECLARE @rowCount_{suffix} INT;\n"
            f"SELECT @rowCount_{suffix} = COUNT(*) FROM {table};\n"
            f"IF @rowCount_{suffix} = 0\n"
            "BEGIN\n"
            f"{drop.rstrip()}\n"
            "END\n"
        )

    if column.is_identity:
        sql += render_identity(column)
    return sql + ";\n"


def render_drop_column(column_name: str, table_name: str, schema: str = "dbo") -> str:
    """Drop a column together with its default constraint."""
    suffix = deterministic_suffix(schema, table_name, column_name, "dropcolumn")
    return (
        render_drop_default_constraint(column_name, table_name, schema, suffix)
        + f"ALTER TABLE {qualified_name(schema, table_name)} DROP COLUMN [{column_name}];\n"
    )


def render_rename_column(
    table_name: str, old_name: str, new_name: str, schema: str = "dbo"
) -> str:
    return f"EXEC sp_rename '[{schema}].[{table_name}].[{old_name}]', '{new_name}', 'COLUMN';\n"


def _default_constraint_name(
    table_name: str, column: Column, value: str, tag: str, fallback: Optional[str] = None
) -> str:
    if column.default_constraint_name:
        return column.default_constraint_name
    if fallback:
        return fallback
    return f"DF_{table_name}_{column.name}_{deterministic_suffix(table_name, column.name, value, tag)}"


def render_add_default_constraint(
    column_name: str, table_name: str, constraint_name: str, value: str, schema: str = "dbo"
) -> str:
    return (
        f"ALTER TABLE {qualified_name(schema, table_name)} ADD CONSTRAINT "
        f"[{constraint_name}] DEFAULT {value} FOR [{column_name}];\n"
    )


def render_alter_column(old: Column, new: Column, table_name: str, schema: str = "dbo") -> str:
    """ALTER COLUMN with the default-constraint bookkeeping SQL Server requires.

    Returns an empty string for computed columns, which can only be dropped
    and added again.
    """
    if new.is_computed and new.computed_sql:
        return ""

    table = qualified_name(schema, table_name)
    to_not_null = old.is_nullable and not new.is_nullable
    to_nullable = not old.is_nullable and new.is_nullable
    old_value = normalize_default_value(old.default_value or "")
    new_value = normalize_default_value(new.default_value or "")
    value_changed = old_value != new_value
    default_added = not has_default(old) and has_default(new)
    default_removed = has_default(old) and not has_default(new)
    drop_before_alter = has_default(old) and not to_not_null and not to_nullable and not new.is_identity

    sql = ""
    temporary_name = None
    if to_not_null and not new.is_identity:
        sql += render_drop_default_constraint(new.name, table_name, schema)
        if has_default(new):
            value = new_value
            name = _default_constraint_name(
                table_name, new, value, "alter", fallback=old.default_constraint_name
            )
        else:
            value = default_value_for_type(new.sql_type)
            name = (
                f"DF_{table_name}_{new.name}_"
                f"{deterministic_suffix(table_name, new.name, value, 'alter', 'temp')}"
            )
            temporary_name = name
        sql += render_add_default_constraint(new.name, table_name, name, value, schema)
        sql += f"UPDATE {table} SET [{new.name}] = {value} WHERE [{new.name}] IS NULL;\n"

    if drop_before_alter:
        sql += render_drop_default_constraint(new.name, table_name, schema)

    nullability = "NULL" if new.is_nullable else "NOT NULL"
    sql += f"ALTER TABLE {table} ALTER COLUMN [{new.name}] {render_sql_type(new)} {nullability};\n"

    if temporary_name:
        sql += f"ALTER TABLE {table} DROP CONSTRAINT [{temporary_name}];\n"

    if not to_not_null and not to_nullable and not new.is_identity:
        if default_removed or value_changed or default_added or drop_before_alter:
            if not drop_before_alter:
                sql += render_drop_default_constraint(new.name, table_name, schema)
            if has_default(new):
                fallback = old.default_constraint_name if not value_changed else None
                name = _default_constraint_name(table_name, new, new_value, "alter", fallback)
                sql += render_add_default_constraint(new.name, table_name, name, new_value, schema)

    if to_nullable and has_default(old):
        sql += render_drop_default_constraint(new.name, table_name, schema)

    return sql


def render_default_change(old: Column, new: Column, table_name: str, schema: str = "dbo") -> str:
    """Swap a column's default constraint without touching the column itself."""
    sql = ""
    if has_default(old):
        sql += render_drop_default_constraint(old.name, table_name, schema)
    if has_default(new):
        value = normalize_default_value(new.default_value)
        name = _default_constraint_name(table_name, new, value, "modify")
        sql += render_add_default_constraint(new.name, table_name, name, value, schema)
    return sql


def _temporary_column_name(schema: str, table_name: str, column_name: str) -> str:
    return f"{column_name}_tmp_{deterministic_suffix(schema, table_name, column_name, 'tmp')}"


def render_safe_column_rebuild(
    old: Column,
    new: Column,
    table_name: str,
    schema: str = "dbo",
    only_data_column: bool = False,
) -> str:
    """DROP+ADD a column without ever leaving the table without data columns.

    ``only_data_column`` tells whether ``old`` is currently the last stored
    column of the table. An identity to non-identity change keeping its name
    always goes through a temporary column so the values survive.
    """
    same_name = old.name.lower() == new.name.lower()
    identity_to_plain = old.is_identity and not new.is_identity
    table = qualified_name(schema, table_name)

    if same_name and (identity_to_plain or only_data_column):
        temp_name = _temporary_column_name(schema, table_name, new.name)
        temp_column = replace(new, name=temp_name)
        placeholder_default = not new.is_identity and not has_default(new)
        sql = render_add_column(temp_column, table_name, schema)
        if identity_to_plain:
            update_suffix = deterministic_suffix(schema, table_name, temp_name, "update")
            sql += (
                f"-- Copy values from {old.name} to {temp_name}\n"
                f"DECLARE @updateSql_{update_suffix} NVARCHAR(MAX) = "
                f"N'UPDATE {table} SET [{temp_name}] = [{old.name}];';\n"
                f"EXEC sp_executesql @updateSql_{update_suffix};\n"
                "\n"
            )
            if placeholder_default:
                drop_suffix = deterministic_suffix(
                    schema, table_name, temp_name, "drop_temp_default"
                )
                sql += (
                    "-- Drop temporary default constraint\n"
                    + render_drop_default_constraint(temp_name, table_name, schema, drop_suffix)
                    + "\n"
                )
                placeholder_default = False
        sql += render_drop_column(old.name, table_name, schema)
        sql += render_rename_column(table_name, temp_name, new.name, schema)
        if placeholder_default:
            sql += render_drop_default_constraint(new.name, table_name, schema)
        return sql

    if only_data_column:
        return render_add_column(new, table_name, schema) + render_drop_column(
            old.name, table_name, schema
        )

    return render_drop_column(old.name, table_name, schema) + render_add_column(
        new, table_name, schema
    )
