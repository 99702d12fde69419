"""
T-SQL renderers for migrasynth.

Each renderer turns one schema entity into the statement text that creates,
alters or removes it. Renderers are pure string builders.
"""

from .columns import (
    default_value_for_type,
    normalize_default_value,
    render_add_column,
    render_alter_column,
    render_default_change,
    render_drop_column,
    render_drop_default_constraint,
    render_rename_column,
    render_safe_column_rebuild,
    render_sql_type,
)
from .constraints import (
    render_add_primary_key,
    render_create_index,
    render_drop_foreign_key,
    render_drop_index,
    render_drop_primary_key,
    render_foreign_key,
)
from .naming import deterministic_suffix, primary_key_name, qualified_name
from .objects import (
    render_alter_sequence,
    render_create_procedure,
    render_create_sequence,
    render_drop_procedure,
    render_drop_sequence,
)
from .tables import render_column_reorder, render_create_table

__all__ = [
    "default_value_for_type",
    "normalize_default_value",
    "render_add_column",
    "render_alter_column",
    "render_default_change",
    "render_drop_column",
    "render_drop_default_constraint",
    "render_rename_column",
    "render_safe_column_rebuild",
    "render_sql_type",
    "render_add_primary_key",
    "render_create_index",
    "render_drop_foreign_key",
    "render_drop_index",
    "render_drop_primary_key",
    "render_foreign_key",
    "deterministic_suffix",
    "primary_key_name",
    "qualified_name",
    "render_alter_sequence",
    "render_create_procedure",
    "render_create_sequence",
    "render_drop_procedure",
    "render_drop_sequence",
    "render_column_reorder",
    "render_create_table",
]
