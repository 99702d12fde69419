"""
Safe column change planning.

The planner turns the column changes of one table into statements while
tracking the table's live column set, so that no intermediate statement
leaves the table without a stored (non-computed) column.
"""

import logging
from typing import Dict, List

from ..schema.model import Column, Table, normalize_default_value
from ..schema.operations import ChangeType, ColumnChange, TableDiff
from ..sql.columns import (
    render_add_column,
    render_alter_column,
    render_default_change,
    render_drop_column,
    render_safe_column_rebuild,
)
from ..sql.constraints import render_drop_index, render_drop_primary_key
from ..sql.naming import deterministic_suffix, primary_key_name
from .context import GenerationContext
from .resolver import column_storage_changed


logger = logging.getLogger(__name__)


class LiveColumns:
    """The columns a table has at the current point of the script."""

    def __init__(self, table: Table):
        self._columns: Dict[str, Column] = {c.key: c for c in table.ordered_columns()}

    def data_count(self) -> int:
        return sum(1 for c in self._columns.values() if c.is_data_column)

    def is_only_data_column(self, name: str) -> bool:
        column = self._columns.get(name.lower())
        return column is not None and column.is_data_column and self.data_count() == 1

    def remove(self, name: str) -> None:
        self._columns.pop(name.lower(), None)

    def append(self, column: Column) -> None:
        self._columns[column.key] = column


def appended_columns_first(table_diff: TableDiff, live_table: Table) -> bool:
    """Whether Adds and DROP+ADD rebuilds must run before the column Drops.

    That is the case when the stored columns left after the Drops, not
    counting a column being rebuilt, number at most one, or when the Drops
    alone would remove every stored column.
    """
    drops = table_diff.changes_of(ChangeType.DROP)
    if not drops:
        return False
    dropped = {c.old_column.key for c in drops}
    remaining = {c.key for c in live_table.columns.values() if c.is_data_column} - dropped
    for change in table_diff.drop_add_changes():
        if len(remaining - {change.old_column.key}) <= 1:
            return True
    return not remaining and table_diff.appends_columns()


def _is_default_only(change: ColumnChange) -> bool:
    old, new = change.old_column, change.new_column
    return old.storage_signature() == new.storage_signature() and old.is_identity == new.is_identity


def _defaults_differ(change: ColumnChange) -> bool:
    old, new = change.old_column, change.new_column
    return normalize_default_value(old.default_value or "") != normalize_default_value(
        new.default_value or ""
    )


class ColumnChangePlanner:
    """Plans the column statements of one table."""

    def __init__(self, table_diff: TableDiff, live_table: Table, ctx: GenerationContext):
        self.table_diff = table_diff
        self.table = live_table
        self.ctx = ctx
        self.live = LiveColumns(live_table)

    @property
    def name(self) -> str:
        return self.table.name

    @property
    def schema(self) -> str:
        return self.table.schema

    def plan(self, interleave: bool = False) -> str:
        """Return the statements for all column changes of the table.

        With ``interleave`` (used by Down scripts) Adds, rebuilds and alters
        run in target ordinal order; otherwise they are grouped.
        """
        statements = self._drop_displaced_indexes()
        statements += self._drop_primary_key_if_needed()

        drops = self.table_diff.changes_of(ChangeType.DROP)
        appended = self.table_diff.appended_changes(interleave)
        alters = self.table_diff.alter_changes()
        if interleave:
            changes = sorted(
                appended + alters,
                key=lambda c: (c.new_column.ordinal_position, c.new_column.key),
            )
        else:
            changes = appended + alters

        if appended_columns_first(self.table_diff, self.table):
            logger.debug(f"Emitting appended columns of {self.name} before drops")
            statements += [self._emit(c) for c in changes]
            statements += [self._emit(c) for c in drops]
        else:
            statements += [self._emit(c) for c in drops]
            statements += [self._emit(c) for c in changes]
        return "".join(s for s in statements if s)

    def _drop_displaced_indexes(self) -> List[str]:
        affected = {
            c.old_column.key
            for c in self.table_diff.column_changes
            if c.change_type is ChangeType.DROP or column_storage_changed(c)
        }
        statements = []
        for index in self.table.indexes:
            if any(column.lower() in affected for column in index.columns):
                if self.ctx.mark_index_dropped(index):
                    statements.append(render_drop_index(index))
                self.ctx.displace_index(index)
        return statements

    def _drop_primary_key_if_needed(self) -> List[str]:
        needs_drop = any(
            c.old_column is not None
            and c.old_column.is_primary_key
            and (c.change_type is ChangeType.DROP or column_storage_changed(c))
            for c in self.table_diff.column_changes
        )
        if not needs_drop or not self.ctx.mark_primary_key_dropped(self.name):
            return []
        suffix = deterministic_suffix(
            self.schema, self.name, primary_key_name(self.name), "droppk"
        )
        return [render_drop_primary_key(self.name, suffix, self.schema)]

    def _emit(self, change: ColumnChange) -> str:
        if change.change_type is ChangeType.ADD:
            self.live.append(change.new_column)
            return render_add_column(change.new_column, self.name, self.schema)

        if change.change_type is ChangeType.DROP:
            old = change.old_column
            if self.live.is_only_data_column(old.name):
                logger.warning(
                    f"Dropping {self.name}.{old.name} leaves the table without stored columns"
                )
            self.live.remove(old.name)
            return render_drop_column(old.name, self.name, self.schema)

        old, new = change.old_column, change.new_column
        if change.requires_drop_add:
            only_data = self.live.is_only_data_column(old.name)
            self.live.remove(old.name)
            self.live.append(new)
            return render_safe_column_rebuild(old, new, self.name, self.schema, only_data)

        if _is_default_only(change):
            if not _defaults_differ(change):
                return ""
            return render_default_change(old, new, self.name, self.schema)
        return render_alter_column(old, new, self.name, self.schema)


def plan_column_changes(
    table_diff: TableDiff,
    live_table: Table,
    ctx: GenerationContext,
    interleave: bool = False,
) -> str:
    """Statements for every column change of ``table_diff`` against ``live_table``."""
    return ColumnChangePlanner(table_diff, live_table, ctx).plan(interleave)
