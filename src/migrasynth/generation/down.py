"""
Down script phases.

The Down script restores the target snapshot from the current one. It is
generated from the inverted diff: ``live`` is the current snapshot and
``result`` the projection of the inverted diff onto it, with re-added columns
placed by their target ordinal position.
"""

import logging
from typing import List

from ..schema.model import Index, SchemaSnapshot, Table
from ..schema.operations import ChangeType, SchemaDiff, TableDiff
from ..sql.constraints import join_statements, render_create_index, render_drop_index
from ..sql.objects import (
    render_create_procedure,
    render_create_sequence,
    render_drop_procedure,
    render_drop_sequence,
)
from ..sql.tables import render_create_table
from .assembler import PhaseContent
from .context import GenerationContext
from .phases import (
    descending_names,
    generate_add_primary_keys,
    generate_drop_foreign_keys,
    generate_drop_primary_keys,
    generate_drop_tables,
    generate_restored_foreign_keys,
    schema_of,
    surviving_displaced_indexes,
)
from .planner import plan_column_changes
from .reorder import generate_reorders


logger = logging.getLogger(__name__)


def _index_must_wait(index: Index, table_diff: TableDiff, live_table: Table) -> bool:
    """An index on columns that do not exist yet, or are about to change, waits for phase 7."""
    touched = {c.name.lower() for c in table_diff.column_changes}
    return any(
        not live_table.has_column(column) or column.lower() in touched
        for column in index.columns
    )


def reverse_index_changes(diff: SchemaDiff, live: SchemaSnapshot, ctx: GenerationContext) -> str:
    statements = []
    for table_diff in diff.sorted_table_diffs():
        live_table = live.table(table_diff.table_name)
        if live_table is None:
            logger.debug(f"Table {table_diff.table_name} not found; index changes skipped")
            continue
        for change in table_diff.index_changes:
            if change.change_type in (ChangeType.DROP, ChangeType.MODIFY):
                if ctx.mark_index_dropped(change.old_index):
                    statements.append(render_drop_index(change.old_index))
            if change.change_type in (ChangeType.ADD, ChangeType.MODIFY):
                index = change.new_index
                if _index_must_wait(index, table_diff, live_table):
                    logger.debug(f"Deferring index {index.name} until columns are restored")
                    ctx.defer_index(index)
                else:
                    statements.append(render_create_index(index))
    return join_statements(statements)


def reverse_column_changes(diff: SchemaDiff, live: SchemaSnapshot, ctx: GenerationContext) -> str:
    statements = []
    for table_diff in diff.sorted_table_diffs():
        if not table_diff.column_changes:
            continue
        table = live.table(table_diff.table_name)
        if table is None:
            logger.warning(f"Table {table_diff.table_name} not found; column changes skipped")
            continue
        statements.append(plan_column_changes(table_diff, table, ctx, interleave=True))
    return join_statements(statements)


def recreate_dropped_tables(diff: SchemaDiff) -> str:
    return join_statements(
        [render_create_table(t) for t in sorted(diff.new_tables, key=lambda t: t.key)]
    )


def restore_foreign_keys(
    diff: SchemaDiff, live: SchemaSnapshot, result: SchemaSnapshot, ctx: GenerationContext
) -> str:
    """Foreign keys, then the indexes of recreated tables and the postponed ones."""
    statements = generate_restored_foreign_keys(diff, live, result, ctx)
    statements += [
        render_create_index(index)
        for table in sorted(diff.new_tables, key=lambda t: t.key)
        for index in table.indexes
    ]
    statements += [render_create_index(index) for index in ctx.deferred_indexes]
    statements += surviving_displaced_indexes(diff, result, ctx)
    return join_statements(statements)


def drop_sequences(diff: SchemaDiff, live: SchemaSnapshot) -> str:
    statements = []
    for name in descending_names(diff.dropped_sequence_names):
        statements.append(render_drop_sequence(name, schema_of(live.sequence(name), name)))
    for change in sorted(diff.modified_sequences, key=lambda c: c.old_sequence.key):
        statements.append(render_drop_sequence(change.old_sequence.name, change.old_sequence.schema))
    return join_statements(statements)


def recreate_sequences(diff: SchemaDiff) -> str:
    sequences = list(diff.new_sequences) + [c.new_sequence for c in diff.modified_sequences]
    return join_statements(
        [render_create_sequence(s) for s in sorted(sequences, key=lambda s: s.key)]
    )


def drop_procedures(diff: SchemaDiff, live: SchemaSnapshot) -> str:
    statements = []
    for name in descending_names(diff.dropped_procedure_names):
        statements.append(render_drop_procedure(name, schema_of(live.procedure(name), name)))
    for change in sorted(diff.modified_procedures, key=lambda c: c.old_procedure.key):
        statements.append(
            render_drop_procedure(change.old_procedure.name, change.old_procedure.schema)
        )
    return join_statements(statements)


def recreate_procedures(diff: SchemaDiff) -> str:
    procedures = list(diff.new_procedures) + [c.new_procedure for c in diff.modified_procedures]
    return join_statements(
        [render_create_procedure(p) for p in sorted(procedures, key=lambda p: p.key)]
    )


def tables_to_reorder(diff: SchemaDiff, current: SchemaSnapshot, target: SchemaSnapshot) -> List[str]:
    """Tables whose columns were appended, or whose order differs without column changes."""
    names = []
    for table_diff in diff.sorted_table_diffs():
        if table_diff.appends_columns():
            names.append(table_diff.table_name)
            continue
        if table_diff.column_changes:
            continue
        current_table = current.table(table_diff.table_name)
        target_table = target.table(table_diff.table_name)
        if current_table is None or target_table is None:
            logger.debug(f"Skipping order check of {table_diff.table_name}: table missing")
            continue
        if current_table.column_order() != target_table.column_order():
            names.append(table_diff.table_name)
    return names


def generate_down_phases(
    diff: SchemaDiff,
    current: SchemaSnapshot,
    target: SchemaSnapshot,
    result: SchemaSnapshot,
    ctx: GenerationContext,
) -> List[PhaseContent]:
    """Produce the Down phases for the inverted diff ``diff``."""
    return [
        PhaseContent(0, "Reverse Index Changes", reverse_index_changes(diff, current, ctx)),
        PhaseContent(1, "Drop Foreign Keys", generate_drop_foreign_keys(diff, current, result, ctx)),
        PhaseContent(
            2, "Drop Primary Key Constraints", generate_drop_primary_keys(diff, current, result, ctx)
        ),
        PhaseContent(3, "Reverse Column Changes", reverse_column_changes(diff, current, ctx)),
        PhaseContent(
            4, "Restore Primary Key Constraints", generate_add_primary_keys(diff, current, result, ctx)
        ),
        PhaseContent(5, "Drop Tables", generate_drop_tables(diff, current)),
        PhaseContent(6, "Recreate Tables", recreate_dropped_tables(diff)),
        PhaseContent(7, "Restore Foreign Keys", restore_foreign_keys(diff, current, result, ctx)),
        PhaseContent(8, "Drop Sequences", drop_sequences(diff, current)),
        PhaseContent(9, "Recreate Sequences", recreate_sequences(diff)),
        PhaseContent(10, "Drop Stored Procedures", drop_procedures(diff, current)),
        PhaseContent(11, "Recreate Stored Procedures", recreate_procedures(diff)),
        PhaseContent(
            12,
            "Reorder Columns",
            generate_reorders(tables_to_reorder(diff, current, target), result, target, target),
        ),
    ]
