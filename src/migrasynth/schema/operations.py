"""
Structural diff model for migrasynth.

A SchemaDiff describes how one snapshot becomes another. The entities on the
``old`` side of every change come from the source snapshot and the ``new``
side from the destination snapshot, so the inverse of a diff is obtained by
swapping the two sides.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from ..exceptions import ValidationError
from .model import Column, ForeignKey, Index, Procedure, SchemaSnapshot, Sequence, Table


logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    """Types of structural changes."""

    ADD = "add"
    DROP = "drop"
    MODIFY = "modify"
    REBUILD = "rebuild"

    def inverted(self) -> "ChangeType":
        if self is ChangeType.ADD:
            return ChangeType.DROP
        if self is ChangeType.DROP:
            return ChangeType.ADD
        return self


def _check_carriage(kind: str, change_type: ChangeType, old: object, new: object) -> None:
    if change_type is ChangeType.ADD and (new is None or old is not None):
        raise ValidationError(f"{kind} Add must carry only the new definition")
    if change_type is ChangeType.DROP and (old is None or new is not None):
        raise ValidationError(f"{kind} Drop must carry only the old definition")
    if change_type in (ChangeType.MODIFY, ChangeType.REBUILD) and (old is None or new is None):
        raise ValidationError(
            f"{kind} {change_type.value.title()} must carry both definitions"
        )


@dataclass(frozen=True)
class ColumnChange:
    """A single column Add, Drop, Modify or Rebuild."""

    change_type: ChangeType
    old_column: Optional[Column] = None
    new_column: Optional[Column] = None

    def __post_init__(self):
        _check_carriage("Column", self.change_type, self.old_column, self.new_column)

    @property
    def name(self) -> str:
        column = self.new_column or self.old_column
        return column.name

    @property
    def requires_drop_add(self) -> bool:
        """Whether the change cannot be expressed as ALTER COLUMN."""
        if self.change_type is ChangeType.REBUILD:
            return True
        if self.change_type is not ChangeType.MODIFY:
            return False
        old, new = self.old_column, self.new_column
        return (
            old.is_identity != new.is_identity
            or old.is_computed
            or new.is_computed
        )

    def inverted(self) -> "ColumnChange":
        return ColumnChange(
            change_type=self.change_type.inverted(),
            old_column=self.new_column,
            new_column=self.old_column,
        )


@dataclass(frozen=True)
class ForeignKeyChange:
    """Add, Drop or Modify of one foreign key component."""

    change_type: ChangeType
    old_foreign_key: Optional[ForeignKey] = None
    new_foreign_key: Optional[ForeignKey] = None

    def __post_init__(self):
        if self.change_type is ChangeType.REBUILD:
            raise ValidationError("Foreign keys cannot be rebuilt")
        _check_carriage(
            "Foreign key", self.change_type, self.old_foreign_key, self.new_foreign_key
        )

    def inverted(self) -> "ForeignKeyChange":
        return ForeignKeyChange(
            change_type=self.change_type.inverted(),
            old_foreign_key=self.new_foreign_key,
            new_foreign_key=self.old_foreign_key,
        )


@dataclass(frozen=True)
class IndexChange:
    """Add, Drop or Modify of an index."""

    change_type: ChangeType
    old_index: Optional[Index] = None
    new_index: Optional[Index] = None

    def __post_init__(self):
        if self.change_type is ChangeType.REBUILD:
            raise ValidationError("Indexes cannot be rebuilt")
        _check_carriage("Index", self.change_type, self.old_index, self.new_index)

    @property
    def name(self) -> str:
        index = self.new_index or self.old_index
        return index.name

    def inverted(self) -> "IndexChange":
        return IndexChange(
            change_type=self.change_type.inverted(),
            old_index=self.new_index,
            new_index=self.old_index,
        )


@dataclass(frozen=True)
class SequenceChange:
    """A modified sequence."""

    old_sequence: Sequence
    new_sequence: Sequence

    def inverted(self) -> "SequenceChange":
        return SequenceChange(old_sequence=self.new_sequence, new_sequence=self.old_sequence)


@dataclass(frozen=True)
class ProcedureChange:
    """A modified stored procedure."""

    old_procedure: Procedure
    new_procedure: Procedure

    def inverted(self) -> "ProcedureChange":
        return ProcedureChange(
            old_procedure=self.new_procedure, new_procedure=self.old_procedure
        )


@dataclass(frozen=True)
class TableDiff:
    """Changes to one existing table.

    A TableDiff without any changes records a difference in column order only.
    """

    table_name: str
    column_changes: Tuple[ColumnChange, ...] = ()
    foreign_key_changes: Tuple[ForeignKeyChange, ...] = ()
    index_changes: Tuple[IndexChange, ...] = ()

    @property
    def key(self) -> str:
        return self.table_name.lower()

    @property
    def is_order_only(self) -> bool:
        return not (self.column_changes or self.foreign_key_changes or self.index_changes)

    def changes_of(self, *change_types: ChangeType) -> List[ColumnChange]:
        return [c for c in self.column_changes if c.change_type in change_types]

    def drop_add_changes(self) -> List[ColumnChange]:
        return [
            c
            for c in self.changes_of(ChangeType.MODIFY, ChangeType.REBUILD)
            if c.requires_drop_add
        ]

    def alter_changes(self) -> List[ColumnChange]:
        return [c for c in self.changes_of(ChangeType.MODIFY) if not c.requires_drop_add]

    def appends_columns(self) -> bool:
        """Whether applying the diff moves any column to the end of the table."""
        return bool(self.changes_of(ChangeType.ADD) or self.drop_add_changes())

    def appended_changes(self, interleave: bool = False) -> List[ColumnChange]:
        """Adds and DROP+ADD changes in the order their columns are appended.

        Grouped order is Adds, then DROP+ADD Modifies, then Rebuilds. When
        ``interleave`` is set the changes follow the new ordinal position.
        """
        adds = self.changes_of(ChangeType.ADD)
        modifies = [c for c in self.drop_add_changes() if c.change_type is ChangeType.MODIFY]
        rebuilds = self.changes_of(ChangeType.REBUILD)
        changes = adds + modifies + rebuilds
        if interleave:
            changes = sorted(
                changes,
                key=lambda c: (c.new_column.ordinal_position, c.new_column.key),
            )
        return changes

    def inverted(self) -> "TableDiff":
        return TableDiff(
            table_name=self.table_name,
            column_changes=tuple(c.inverted() for c in self.column_changes),
            foreign_key_changes=tuple(c.inverted() for c in self.foreign_key_changes),
            index_changes=tuple(c.inverted() for c in self.index_changes),
        )


@dataclass(frozen=True)
class SchemaDiff:
    """The full structural difference between two snapshots."""

    new_tables: Tuple[Table, ...] = ()
    dropped_table_names: Tuple[str, ...] = ()
    modified_tables: Tuple[TableDiff, ...] = ()
    new_sequences: Tuple[Sequence, ...] = ()
    dropped_sequence_names: Tuple[str, ...] = ()
    modified_sequences: Tuple[SequenceChange, ...] = ()
    new_procedures: Tuple[Procedure, ...] = ()
    dropped_procedure_names: Tuple[str, ...] = ()
    modified_procedures: Tuple[ProcedureChange, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not any(
            (
                self.new_tables,
                self.dropped_table_names,
                self.modified_tables,
                self.new_sequences,
                self.dropped_sequence_names,
                self.modified_sequences,
                self.new_procedures,
                self.dropped_procedure_names,
                self.modified_procedures,
            )
        )

    def table_diff(self, name: str) -> Optional[TableDiff]:
        target = name.lower()
        for table_diff in self.modified_tables:
            if table_diff.key == target:
                return table_diff
        return None

    def sorted_table_diffs(self) -> List[TableDiff]:
        return sorted(self.modified_tables, key=lambda td: td.key)

    def inverted(self, source: SchemaSnapshot) -> "SchemaDiff":
        """Diff that transforms the destination back into ``source``.

        Objects dropped by this diff are recovered from ``source``; names that
        cannot be found there are skipped with a warning.
        """
        recreated_tables = []
        for name in self.dropped_table_names:
            table = source.table(name)
            if table is None:
                logger.warning(f"Dropped table {name} not found in source snapshot; skipping")
                continue
            recreated_tables.append(table)

        recreated_sequences = []
        for name in self.dropped_sequence_names:
            sequence = source.sequence(name)
            if sequence is None:
                logger.warning(f"Dropped sequence {name} not found in source snapshot; skipping")
                continue
            recreated_sequences.append(sequence)

        recreated_procedures = []
        for name in self.dropped_procedure_names:
            procedure = source.procedure(name)
            if procedure is None:
                logger.warning(
                    f"Dropped procedure {name} not found in source snapshot; skipping"
                )
                continue
            recreated_procedures.append(procedure)

        return SchemaDiff(
            new_tables=tuple(recreated_tables),
            dropped_table_names=tuple(t.name for t in self.new_tables),
            modified_tables=tuple(td.inverted() for td in self.modified_tables),
            new_sequences=tuple(recreated_sequences),
            dropped_sequence_names=tuple(s.name for s in self.new_sequences),
            modified_sequences=tuple(c.inverted() for c in self.modified_sequences),
            new_procedures=tuple(recreated_procedures),
            dropped_procedure_names=tuple(p.name for p in self.new_procedures),
            modified_procedures=tuple(c.inverted() for c in self.modified_procedures),
        )
