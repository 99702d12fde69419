"""
Snapshot comparison for migrasynth.

``compare_schemas(source, destination)`` produces the SchemaDiff that turns
``source`` into ``destination``. For an Up script the source is the snapshot
recorded by the previous migration and the destination is the current
database schema.
"""

import logging
import re
from typing import Iterable, List, Optional

from .model import (
    ForeignKey,
    Index,
    Procedure,
    SchemaSnapshot,
    Sequence,
    Table,
    group_foreign_keys,
    normalize_default_value,
)
from .operations import (
    ChangeType,
    ColumnChange,
    ForeignKeyChange,
    IndexChange,
    ProcedureChange,
    SchemaDiff,
    SequenceChange,
    TableDiff,
)
from .rebuild import normalize_computed_sql, requires_rebuild


logger = logging.getLogger(__name__)


def columns_equal(a, b) -> bool:
    """Structural equality of two columns, ignoring ordinal position."""
    if a.is_identity and b.is_identity:
        if (a.identity_seed, a.identity_increment) != (b.identity_seed, b.identity_increment):
            return False
    return (
        a.name.lower() == b.name.lower()
        and a.sql_type.lower() == b.sql_type.lower()
        and a.is_nullable == b.is_nullable
        and a.is_identity == b.is_identity
        and a.is_computed == b.is_computed
        and a.is_primary_key == b.is_primary_key
        and a.length == b.length
        and a.precision == b.precision
        and a.scale == b.scale
        and normalize_computed_sql(a.computed_sql) == normalize_computed_sql(b.computed_sql)
        and normalize_default_value(a.default_value or "")
        == normalize_default_value(b.default_value or "")
    )


def _same_group(a: Iterable[ForeignKey], b: Iterable[ForeignKey]) -> bool:
    a, b = list(a), list(b)
    return len(a) == len(b) and all(x.same_definition(y) for x, y in zip(a, b))


def compare_foreign_keys(
    old: Iterable[ForeignKey], new: Iterable[ForeignKey]
) -> List[ForeignKeyChange]:
    old_groups = {group[0].key: group for group in group_foreign_keys(old)}
    new_groups = {group[0].key: group for group in group_foreign_keys(new)}
    changes = []

    for key in sorted(old_groups):
        if key not in new_groups:
            changes.extend(
                ForeignKeyChange(ChangeType.DROP, old_foreign_key=fk) for fk in old_groups[key]
            )
    for key in sorted(new_groups):
        new_group = new_groups[key]
        old_group = old_groups.get(key)
        if old_group is None:
            changes.extend(ForeignKeyChange(ChangeType.ADD, new_foreign_key=fk) for fk in new_group)
        elif not _same_group(old_group, new_group):
            old_columns = [fk.column.lower() for fk in old_group]
            new_columns = [fk.column.lower() for fk in new_group]
            if old_columns == new_columns:
                changes.extend(
                    ForeignKeyChange(ChangeType.MODIFY, old_foreign_key=o, new_foreign_key=n)
                    for o, n in zip(old_group, new_group)
                )
            else:
                changes.extend(
                    ForeignKeyChange(ChangeType.DROP, old_foreign_key=fk) for fk in old_group
                )
                changes.extend(
                    ForeignKeyChange(ChangeType.ADD, new_foreign_key=fk) for fk in new_group
                )
    return changes


def compare_indexes(old: Iterable[Index], new: Iterable[Index]) -> List[IndexChange]:
    old_by_key = {index.key: index for index in old}
    new_by_key = {index.key: index for index in new}
    changes = []
    for key in sorted(old_by_key):
        if key not in new_by_key:
            changes.append(IndexChange(ChangeType.DROP, old_index=old_by_key[key]))
    for key in sorted(new_by_key):
        if key not in old_by_key:
            changes.append(IndexChange(ChangeType.ADD, new_index=new_by_key[key]))
        elif not old_by_key[key].same_definition(new_by_key[key]):
            changes.append(
                IndexChange(ChangeType.MODIFY, old_index=old_by_key[key], new_index=new_by_key[key])
            )
    return changes


def compare_tables(old_table: Table, new_table: Table) -> Optional[TableDiff]:
    """Diff two versions of a table, or None when they are identical."""
    column_changes = []
    for column in new_table.ordered_columns():
        old = old_table.column(column.name)
        if old is None:
            column_changes.append(ColumnChange(ChangeType.ADD, new_column=column))
        elif not columns_equal(old, column):
            change_type = (
                ChangeType.REBUILD if requires_rebuild(old, column, old_table) else ChangeType.MODIFY
            )
            column_changes.append(ColumnChange(change_type, old_column=old, new_column=column))
    for column in old_table.ordered_columns():
        if not new_table.has_column(column.name):
            column_changes.append(ColumnChange(ChangeType.DROP, old_column=column))

    fk_changes = compare_foreign_keys(old_table.foreign_keys(), new_table.foreign_keys())
    index_changes = compare_indexes(old_table.indexes, new_table.indexes)

    if column_changes or fk_changes or index_changes:
        return TableDiff(
            table_name=new_table.name,
            column_changes=tuple(column_changes),
            foreign_key_changes=tuple(fk_changes),
            index_changes=tuple(index_changes),
        )
    if old_table.column_order() != new_table.column_order():
        logger.debug(f"Table {new_table.name} differs in column order only")
        return TableDiff(table_name=new_table.name)
    return None


def _sequences_equal(a: Sequence, b: Sequence) -> bool:
    return (
        a.data_type.lower() == b.data_type.lower()
        and a.start_value == b.start_value
        and a.increment == b.increment
        and a.min_value == b.min_value
        and a.max_value == b.max_value
        and a.is_cycling == b.is_cycling
        and a.cache_size == b.cache_size
    )


def _normalize_definition(definition: str) -> str:
    return re.sub(r"\s+", " ", definition).strip()


def _procedures_equal(a: Procedure, b: Procedure) -> bool:
    return _normalize_definition(a.definition) == _normalize_definition(b.definition)


def compare_schemas(source: SchemaSnapshot, destination: SchemaSnapshot) -> SchemaDiff:
    """Compute the diff that transforms ``source`` into ``destination``."""
    new_tables = [destination.tables[k] for k in sorted(destination.tables) if k not in source.tables]
    dropped_tables = [source.tables[k].name for k in sorted(source.tables) if k not in destination.tables]
    modified_tables = []
    for key in sorted(source.tables):
        if key in destination.tables:
            table_diff = compare_tables(source.tables[key], destination.tables[key])
            if table_diff is not None:
                modified_tables.append(table_diff)

    new_sequences = [
        destination.sequences[k] for k in sorted(destination.sequences) if k not in source.sequences
    ]
    dropped_sequences = [
        source.sequences[k].name for k in sorted(source.sequences) if k not in destination.sequences
    ]
    modified_sequences = [
        SequenceChange(source.sequences[k], destination.sequences[k])
        for k in sorted(source.sequences)
        if k in destination.sequences
        and not _sequences_equal(source.sequences[k], destination.sequences[k])
    ]

    new_procedures = [
        destination.procedures[k] for k in sorted(destination.procedures) if k not in source.procedures
    ]
    dropped_procedures = [
        source.procedures[k].name for k in sorted(source.procedures) if k not in destination.procedures
    ]
    modified_procedures = [
        ProcedureChange(source.procedures[k], destination.procedures[k])
        for k in sorted(source.procedures)
        if k in destination.procedures
        and not _procedures_equal(source.procedures[k], destination.procedures[k])
    ]

    diff = SchemaDiff(
        new_tables=tuple(new_tables),
        dropped_table_names=tuple(dropped_tables),
        modified_tables=tuple(modified_tables),
        new_sequences=tuple(new_sequences),
        dropped_sequence_names=tuple(dropped_sequences),
        modified_sequences=tuple(modified_sequences),
        new_procedures=tuple(new_procedures),
        dropped_procedure_names=tuple(dropped_procedures),
        modified_procedures=tuple(modified_procedures),
    )
    logger.info(
        f"Compared schemas: {len(new_tables)} new, {len(dropped_tables)} dropped, "
        f"{len(modified_tables)} modified tables"
    )
    return diff
