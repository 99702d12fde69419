"""
Applying a SchemaDiff to a snapshot.

The projected snapshot reproduces the physical column order the generated
script leaves behind: surviving columns keep their relative order and every
added or dropped-and-re-added column is appended in the order the column
phase emits it.
"""

import logging
from dataclasses import replace
from typing import Dict, List

from .model import Column, ForeignKey, SchemaSnapshot, Table
from .operations import ChangeType, SchemaDiff, TableDiff


logger = logging.getLogger(__name__)


def _apply_foreign_key_changes(columns: List[Column], table_diff: TableDiff) -> List[Column]:
    by_key: Dict[str, List[ForeignKey]] = {c.key: list(c.foreign_keys) for c in columns}

    def remove(fk: ForeignKey) -> None:
        owned = by_key.get(fk.column.lower())
        if owned is not None:
            by_key[fk.column.lower()] = [f for f in owned if f.name.lower() != fk.name.lower()]

    for change in table_diff.foreign_key_changes:
        if change.change_type in (ChangeType.DROP, ChangeType.MODIFY):
            remove(change.old_foreign_key)
        if change.change_type in (ChangeType.ADD, ChangeType.MODIFY):
            fk = change.new_foreign_key
            owned = by_key.get(fk.column.lower())
            if owned is None:
                logger.debug(f"Foreign key {fk.name} targets missing column {fk.table}.{fk.column}")
                continue
            remove(fk)
            by_key[fk.column.lower()].append(fk)

    return [c.with_foreign_keys(by_key[c.key]) for c in columns]


def project_table(table: Table, table_diff: TableDiff, interleave: bool = False) -> Table:
    """Return ``table`` with the column, foreign key and index changes applied."""
    rewritten = {c.old_column.key for c in table_diff.drop_add_changes()}
    dropped = {c.old_column.key for c in table_diff.changes_of(ChangeType.DROP)}
    altered = {c.old_column.key: c.new_column for c in table_diff.alter_changes()}

    columns = []
    for column in table.ordered_columns():
        if column.key in dropped or column.key in rewritten:
            continue
        new = altered.get(column.key)
        columns.append(new.with_foreign_keys(column.foreign_keys) if new else column)

    for change in table_diff.appended_changes(interleave):
        new = change.new_column
        if change.change_type is not ChangeType.ADD:
            new = new.with_foreign_keys(change.old_column.foreign_keys)
        columns = [c for c in columns if c.key != new.key]
        columns.append(new)

    columns = [replace(c, ordinal_position=i) for i, c in enumerate(columns, start=1)]
    columns = _apply_foreign_key_changes(columns, table_diff)

    indexes = {index.key: index for index in table.indexes}
    for change in table_diff.index_changes:
        if change.change_type in (ChangeType.DROP, ChangeType.MODIFY):
            indexes.pop(change.old_index.key, None)
        if change.change_type in (ChangeType.ADD, ChangeType.MODIFY):
            indexes[change.new_index.key] = change.new_index

    return replace(table.with_columns(columns), indexes=tuple(indexes.values()))


def project_schema_after_diff(
    base: SchemaSnapshot, diff: SchemaDiff, interleave: bool = False
) -> SchemaSnapshot:
    """Derive the snapshot that results from applying ``diff`` to ``base``.

    ``interleave`` selects the append order used by Down scripts, where
    re-added columns follow their target ordinal position.
    """
    tables = dict(base.tables)
    for name in diff.dropped_table_names:
        tables.pop(name.lower(), None)
    for table in diff.new_tables:
        tables[table.key] = table
    for table_diff in diff.modified_tables:
        table = tables.get(table_diff.key)
        if table is None:
            logger.debug(f"Cannot project changes for missing table {table_diff.table_name}")
            continue
        tables[table_diff.key] = project_table(table, table_diff, interleave)

    sequences = dict(base.sequences)
    for name in diff.dropped_sequence_names:
        sequences.pop(name.lower(), None)
    for sequence in diff.new_sequences:
        sequences[sequence.key] = sequence
    for change in diff.modified_sequences:
        sequences.pop(change.old_sequence.key, None)
        sequences[change.new_sequence.key] = change.new_sequence

    procedures = dict(base.procedures)
    for name in diff.dropped_procedure_names:
        procedures.pop(name.lower(), None)
    for procedure in diff.new_procedures:
        procedures[procedure.key] = procedure
    for change in diff.modified_procedures:
        procedures.pop(change.old_procedure.key, None)
        procedures[change.new_procedure.key] = change.new_procedure

    return SchemaSnapshot.build(
        tables=tables.values(),
        sequences=sequences.values(),
        procedures=procedures.values(),
    )
