"""
Phase generators shared by the Up and Down scripts.

Every generator takes the diff being applied, the live snapshot the phase
runs against, the projected result snapshot and the generation context, and
returns a SQL fragment (possibly empty).
"""

import logging
from typing import Iterable, List, Optional

from ..schema.model import DEFAULT_SCHEMA, ForeignKey, SchemaSnapshot
from ..schema.operations import ChangeType, SchemaDiff
from ..sql.constraints import (
    render_add_primary_key,
    render_create_index,
    render_drop_foreign_key,
    render_drop_primary_key,
    render_foreign_key,
    join_statements,
)
from ..sql.naming import deterministic_suffix, primary_key_name, qualified_name
from .context import GenerationContext
from .resolver import (
    ForeignKeyGroup,
    compute_foreign_key_groups,
    compute_restoration_closure,
    compute_restoration_triggers,
    foreign_keys_depending_on,
    tables_requiring_primary_key_add,
    tables_requiring_primary_key_drop,
)


logger = logging.getLogger(__name__)


def _check_suffix(fk: ForeignKey, tag: str) -> str:
    return deterministic_suffix(fk.schema, fk.table, fk.name, tag)


def descending_names(names: Iterable[str]) -> List[str]:
    """Object names in the order they are dropped: case-insensitive, descending."""
    return sorted(names, key=str.lower, reverse=True)


def schema_of(entity, name: str) -> str:
    """Schema of a live table, sequence or procedure looked up by ``name``."""
    if entity is None:
        logger.debug(f"{name} not found in live schema; assuming {DEFAULT_SCHEMA}")
        return DEFAULT_SCHEMA
    return entity.schema


def generate_drop_tables(diff: SchemaDiff, live: SchemaSnapshot) -> str:
    statements = []
    for name in descending_names(diff.dropped_table_names):
        schema = schema_of(live.table(name), name)
        statements.append(f"DROP TABLE IF EXISTS {qualified_name(schema, name)};\n")
    return join_statements(statements)


def foreign_keys_to_drop(diff: SchemaDiff, live: SchemaSnapshot, result: SchemaSnapshot) -> List[ForeignKey]:
    """Components that must be gone before tables and columns change."""
    fks = []
    for table_diff in diff.sorted_table_diffs():
        for change in table_diff.foreign_key_changes:
            if change.change_type in (ChangeType.DROP, ChangeType.MODIFY):
                fks.append(change.old_foreign_key)

    for name in diff.dropped_table_names:
        table = live.table(name)
        if table is None:
            logger.debug(f"Dropped table {name} not found in live schema")
            continue
        fks.extend(table.foreign_keys())
        fks.extend(live.foreign_keys_referencing(name))

    triggers = compute_restoration_triggers(diff, live, result)
    fks.extend(foreign_keys_depending_on(live, triggers))
    return fks


def generate_drop_foreign_keys(
    diff: SchemaDiff, live: SchemaSnapshot, result: SchemaSnapshot, ctx: GenerationContext
) -> str:
    statements = []
    for group in compute_foreign_key_groups(foreign_keys_to_drop(diff, live, result)):
        first = group[0]
        if ctx.mark_foreign_key_dropped(first):
            statements.append(render_drop_foreign_key(first))
    return join_statements(statements)


def generate_drop_primary_keys(
    diff: SchemaDiff, live: SchemaSnapshot, result: SchemaSnapshot, ctx: GenerationContext
) -> str:
    statements = []
    for table in tables_requiring_primary_key_drop(diff, live, result):
        if not ctx.mark_primary_key_dropped(table.name):
            continue
        suffix = deterministic_suffix(table.schema, table.name, primary_key_name(table.name), "droppk")
        statements.append(render_drop_primary_key(table.name, suffix, table.schema))
    return join_statements(statements)


def generate_add_primary_keys(
    diff: SchemaDiff, live: SchemaSnapshot, result: SchemaSnapshot, ctx: GenerationContext
) -> str:
    statements = []
    for table in tables_requiring_primary_key_add(diff, live, result):
        if not ctx.mark_primary_key_created(table.name):
            continue
        logger.debug(f"Adding primary key to {table.name}")
        statements.append(
            render_add_primary_key(
                table.name,
                [c.name for c in table.primary_key_columns()],
                primary_key_name(table.name),
                table.schema,
            )
        )
    return join_statements(statements)


def render_checked_foreign_keys(
    groups: Iterable[ForeignKeyGroup],
    snapshot: SchemaSnapshot,
    tag: str,
    ctx: Optional[GenerationContext] = None,
) -> List[str]:
    """Create constraints WITH NOCHECK, then re-create the enforced ones WITH CHECK.

    All NOCHECK statements come first so constraints referencing each other
    can be created in any order. Enforced constraints are then dropped and
    added again, which is the only way to have SQL Server trust them.
    """
    created = []
    statements = []
    for group in groups:
        if ctx is not None and not ctx.mark_foreign_key_created(group[0]):
            continue
        sql = render_foreign_key(group, snapshot, force_no_check=True)
        if sql:
            statements.append(sql)
            created.append(group)

    for group in created:
        first = group[0]
        if first.not_enforced:
            continue
        statements.append(render_drop_foreign_key(first, _check_suffix(first, tag)))
        statements.append(render_foreign_key(group, snapshot))
    return statements


def changed_foreign_keys(diff: SchemaDiff) -> List[ForeignKey]:
    """Components of new tables plus the new side of Add/Modify entries."""
    fks = [fk for table in sorted(diff.new_tables, key=lambda t: t.key) for fk in table.foreign_keys()]
    for table_diff in diff.sorted_table_diffs():
        for change in table_diff.foreign_key_changes:
            if change.change_type in (ChangeType.ADD, ChangeType.MODIFY):
                fks.append(change.new_foreign_key)
    return fks


def generate_restored_foreign_keys(
    diff: SchemaDiff, live: SchemaSnapshot, result: SchemaSnapshot, ctx: GenerationContext
) -> List[str]:
    """New and changed foreign keys followed by the restoration closure."""
    statements = render_checked_foreign_keys(
        compute_foreign_key_groups(changed_foreign_keys(diff)), result, "check", ctx
    )
    triggers = compute_restoration_triggers(diff, live, result)
    closure = compute_restoration_closure(result, triggers, ctx.created_foreign_keys)
    if closure:
        logger.debug(f"Restoring {len(closure)} foreign keys dropped as a side effect")
    statements += render_checked_foreign_keys(closure, result, "restorecheck", ctx)
    return statements


def surviving_displaced_indexes(
    diff: SchemaDiff, result: SchemaSnapshot, ctx: GenerationContext
) -> List[str]:
    """Recreate indexes the column phase dropped that still exist in ``result``.

    Indexes named by an explicit index change are left to that change.
    """
    explicit = {
        (table_diff.key, change.name.lower())
        for table_diff in diff.modified_tables
        for change in table_diff.index_changes
    }
    statements = []
    for index in ctx.displaced_indexes:
        if (index.table.lower(), index.key) in explicit:
            continue
        table = result.table(index.table)
        current = table.index(index.name) if table is not None else None
        if current is None:
            logger.debug(f"Index {index.name} on {index.table} no longer exists; not recreated")
            continue
        statements.append(render_create_index(current))
    return statements
