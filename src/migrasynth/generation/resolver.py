"""
Dependency and restoration resolution for foreign keys and primary keys.

Everything here is a pure function of the diff and the snapshots involved.
A table is *flagged* when its primary key has to be dropped or when some of
its columns change their on-disk representation; every foreign key that
references, or is owned by, a flagged column must be dropped before the
column statements and restored afterwards.
"""

import logging
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Optional, Tuple

from ..schema.model import ForeignKey, SchemaSnapshot, Table, group_foreign_keys
from ..schema.operations import ChangeType, ColumnChange, SchemaDiff, TableDiff


logger = logging.getLogger(__name__)

ForeignKeyGroup = Tuple[ForeignKey, ...]
RestorationTriggers = Dict[str, FrozenSet[str]]


def compute_foreign_key_groups(
    foreign_keys: Iterable[ForeignKey],
    processed: AbstractSet[Tuple[str, str]] = frozenset(),
) -> List[ForeignKeyGroup]:
    """Group components by constraint, skipping constraints already processed."""
    return [group for group in group_foreign_keys(foreign_keys) if group[0].key not in processed]


def column_storage_changed(change: ColumnChange) -> bool:
    """Whether a column change alters the column's on-disk representation.

    True for rebuilds, for changes that need DROP+ADD, and for modifications
    of type, length, precision, scale or nullability.
    """
    if change.change_type is ChangeType.REBUILD:
        return True
    if change.change_type is not ChangeType.MODIFY:
        return False
    if change.requires_drop_add:
        return True
    return change.old_column.storage_signature() != change.new_column.storage_signature()


def primary_key_requires_drop(
    table_diff: TableDiff, live_table: Table, result_table: Optional[Table]
) -> bool:
    """Whether the live primary key must be dropped before the column phase."""
    live_pk = {c.key for c in live_table.primary_key_columns()}
    if not live_pk:
        return False
    result_pk = {c.key for c in result_table.primary_key_columns()} if result_table else set()
    if live_pk != result_pk:
        return True
    for change in table_diff.column_changes:
        old = change.old_column
        if old is None or old.key not in live_pk:
            continue
        if change.change_type is ChangeType.DROP or column_storage_changed(change):
            return True
    return False


def primary_key_requires_add(
    table_diff: TableDiff, live_table: Table, result_table: Optional[Table]
) -> bool:
    """Whether the projected table needs its primary key (re)created."""
    if result_table is None or not result_table.primary_key_columns():
        return False
    if not live_table.primary_key_columns():
        return True
    return primary_key_requires_drop(table_diff, live_table, result_table)


def _modified_pairs(diff: SchemaDiff, live: SchemaSnapshot, result: SchemaSnapshot):
    for table_diff in diff.sorted_table_diffs():
        live_table = live.table(table_diff.table_name)
        if live_table is None:
            logger.debug(f"Table {table_diff.table_name} not found in live schema")
            continue
        yield table_diff, live_table, result.table(table_diff.table_name)


def tables_requiring_primary_key_drop(
    diff: SchemaDiff, live: SchemaSnapshot, result: SchemaSnapshot
) -> List[Table]:
    return [
        live_table
        for table_diff, live_table, result_table in _modified_pairs(diff, live, result)
        if primary_key_requires_drop(table_diff, live_table, result_table)
    ]


def tables_requiring_primary_key_add(
    diff: SchemaDiff, live: SchemaSnapshot, result: SchemaSnapshot
) -> List[Table]:
    return [
        result_table
        for table_diff, live_table, result_table in _modified_pairs(diff, live, result)
        if primary_key_requires_add(table_diff, live_table, result_table)
    ]


def compute_restoration_triggers(
    diff: SchemaDiff, live: SchemaSnapshot, result: SchemaSnapshot
) -> RestorationTriggers:
    """Map each flagged table to the lowercase names of its flagged columns."""
    triggers = {}
    for table_diff, live_table, result_table in _modified_pairs(diff, live, result):
        columns = set()
        for change in table_diff.column_changes:
            if change.change_type is ChangeType.DROP or column_storage_changed(change):
                columns.add(change.old_column.key)
        if primary_key_requires_drop(table_diff, live_table, result_table):
            columns.update(c.key for c in live_table.primary_key_columns())
        if columns:
            triggers[live_table.key] = frozenset(columns)
    return triggers


def _touches(fk: ForeignKey, triggers: RestorationTriggers) -> bool:
    referenced = triggers.get(fk.ref_table.lower(), frozenset())
    owned = triggers.get(fk.table.lower(), frozenset())
    return fk.ref_column.lower() in referenced or fk.column.lower() in owned


def foreign_keys_depending_on(
    snapshot: SchemaSnapshot, triggers: RestorationTriggers
) -> List[ForeignKey]:
    """All components of every constraint touching a flagged column."""
    if not triggers:
        return []
    all_fks = snapshot.foreign_keys()
    keys = {fk.key for fk in all_fks if _touches(fk, triggers)}
    return [fk for fk in all_fks if fk.key in keys]


def valid_foreign_key_groups(
    groups: Iterable[ForeignKeyGroup], snapshot: SchemaSnapshot
) -> List[ForeignKeyGroup]:
    """Drop groups whose owning or referenced columns are missing from ``snapshot``."""
    valid = []
    for group in groups:
        if all(snapshot.has_reference_target(fk) for fk in group):
            valid.append(group)
        else:
            first = group[0]
            logger.debug(
                f"Excluding foreign key {first.name} on {first.table}: "
                f"{first.ref_table} or one of its columns does not exist"
            )
    return valid


def compute_restoration_closure(
    snapshot: SchemaSnapshot,
    triggers: RestorationTriggers,
    processed: AbstractSet[Tuple[str, str]] = frozenset(),
) -> List[ForeignKeyGroup]:
    """Foreign keys of ``snapshot`` to recreate after the flagged columns changed."""
    groups = compute_foreign_key_groups(foreign_keys_depending_on(snapshot, triggers), processed)
    return valid_foreign_key_groups(groups, snapshot)
