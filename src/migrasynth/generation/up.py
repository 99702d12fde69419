"""
Up script phases.

The Up script turns the target snapshot (the schema as deployed) into the
current snapshot. ``live`` is the target snapshot and ``result`` the
projection of the diff onto it.
"""

import logging
from typing import List

from ..schema.model import SchemaSnapshot
from ..schema.operations import ChangeType, SchemaDiff
from ..sql.constraints import join_statements, render_create_index, render_drop_index
from ..sql.objects import (
    render_alter_sequence,
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


def drop_procedures(diff: SchemaDiff, live: SchemaSnapshot) -> str:
    statements = [
        render_drop_procedure(name, schema_of(live.procedure(name), name))
        for name in descending_names(diff.dropped_procedure_names)
    ]
    for change in sorted(diff.modified_procedures, key=lambda c: c.old_procedure.key):
        statements.append(render_drop_procedure(change.old_procedure.name, change.old_procedure.schema))
    return join_statements(statements)


def drop_sequences(diff: SchemaDiff, live: SchemaSnapshot) -> str:
    return join_statements(
        [
            render_drop_sequence(name, schema_of(live.sequence(name), name))
            for name in descending_names(diff.dropped_sequence_names)
        ]
    )


def create_sequences(diff: SchemaDiff) -> str:
    statements = [render_create_sequence(s) for s in sorted(diff.new_sequences, key=lambda s: s.key)]
    for change in sorted(diff.modified_sequences, key=lambda c: c.new_sequence.key):
        statements.append(render_alter_sequence(change.old_sequence, change.new_sequence))
    return join_statements(statements)


def create_tables(diff: SchemaDiff) -> str:
    return join_statements(
        [render_create_table(t) for t in sorted(diff.new_tables, key=lambda t: t.key)]
    )


def modify_columns(diff: SchemaDiff, live: SchemaSnapshot, ctx: GenerationContext) -> str:
    statements = []
    for table_diff in diff.sorted_table_diffs():
        if not table_diff.column_changes:
            continue
        table = live.table(table_diff.table_name)
        if table is None:
            logger.warning(f"Table {table_diff.table_name} not found; column changes skipped")
            continue
        statements.append(plan_column_changes(table_diff, table, ctx))
    return join_statements(statements)


def index_statements(diff: SchemaDiff, result: SchemaSnapshot, ctx: GenerationContext) -> List[str]:
    """Index drops, then creates, then the indexes the column phase displaced."""
    drops = []
    creates = [
        render_create_index(index)
        for table in sorted(diff.new_tables, key=lambda t: t.key)
        for index in table.indexes
    ]
    for table_diff in diff.sorted_table_diffs():
        for change in table_diff.index_changes:
            if change.change_type in (ChangeType.DROP, ChangeType.MODIFY):
                if ctx.mark_index_dropped(change.old_index):
                    drops.append(render_drop_index(change.old_index))
            if change.change_type in (ChangeType.ADD, ChangeType.MODIFY):
                creates.append(render_create_index(change.new_index))
    return drops + creates + surviving_displaced_indexes(diff, result, ctx)


def add_constraints(
    diff: SchemaDiff, live: SchemaSnapshot, result: SchemaSnapshot, ctx: GenerationContext
) -> str:
    statements = [generate_add_primary_keys(diff, live, result, ctx)]
    statements += generate_restored_foreign_keys(diff, live, result, ctx)
    statements += index_statements(diff, result, ctx)
    return join_statements(statements)


def tables_to_reorder(diff: SchemaDiff) -> List[str]:
    return [td.table_name for td in diff.sorted_table_diffs() if td.appends_columns()]


def reorder_columns(
    diff: SchemaDiff, current: SchemaSnapshot, result: SchemaSnapshot
) -> str:
    return generate_reorders(tables_to_reorder(diff), result, current, result)


def create_procedures(diff: SchemaDiff) -> str:
    procedures = list(diff.new_procedures) + [c.new_procedure for c in diff.modified_procedures]
    return join_statements(
        [render_create_procedure(p) for p in sorted(procedures, key=lambda p: p.key)]
    )


def generate_up_phases(
    diff: SchemaDiff,
    current: SchemaSnapshot,
    target: SchemaSnapshot,
    result: SchemaSnapshot,
    ctx: GenerationContext,
) -> List[PhaseContent]:
    """Produce the Up phases in execution order.

    Phases are generated in order because later phases depend on what the
    context recorded in earlier ones.
    """
    phases = [
        PhaseContent(1, "Drop Stored Procedures", drop_procedures(diff, target)),
        PhaseContent(2, "Drop Sequences", drop_sequences(diff, target)),
        PhaseContent(3, "Drop Foreign Keys", generate_drop_foreign_keys(diff, target, result, ctx)),
        PhaseContent(
            4, "Drop Primary Key Constraints", generate_drop_primary_keys(diff, target, result, ctx)
        ),
        PhaseContent(5, "Drop Tables", generate_drop_tables(diff, target)),
        PhaseContent(6, "Create Sequences", create_sequences(diff)),
        PhaseContent(7, "Create Tables", create_tables(diff)),
        PhaseContent(8, "Modify Columns", modify_columns(diff, target, ctx)),
        PhaseContent(
            9,
            "Add Foreign Key Constraints and Primary Key Constraints",
            add_constraints(diff, target, result, ctx),
        ),
        PhaseContent(10, "Reorder Columns", reorder_columns(diff, current, result)),
        PhaseContent(11, "Create Stored Procedures", create_procedures(diff)),
    ]
    return phases
