"""
Relational schema model for migrasynth.

Snapshots are immutable: every table, column and constraint is a frozen
dataclass and the name-keyed collections are read-only mappings keyed by the
lowercase object name. Deriving a changed schema always produces a new
snapshot.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "dbo"


def _freeze(items: Dict[str, object]) -> Mapping:
    return MappingProxyType(dict(items))


class ReferentialAction(str, Enum):
    """ON DELETE / ON UPDATE behaviour of a foreign key."""

    NO_ACTION = "no_action"
    CASCADE = "cascade"
    SET_NULL = "set_null"
    SET_DEFAULT = "set_default"

    @property
    def sql(self) -> Optional[str]:
        """T-SQL keyword for the action, None when nothing is emitted."""
        return {
            ReferentialAction.CASCADE: "CASCADE",
            ReferentialAction.SET_NULL: "SET NULL",
            ReferentialAction.SET_DEFAULT: "SET DEFAULT",
        }.get(self)


@dataclass(frozen=True)
class ForeignKey:
    """One column of a (possibly composite) foreign key constraint."""

    name: str
    table: str
    column: str
    ref_table: str
    ref_column: str
    schema: str = DEFAULT_SCHEMA
    ref_schema: str = DEFAULT_SCHEMA
    delete_action: ReferentialAction = ReferentialAction.NO_ACTION
    update_action: ReferentialAction = ReferentialAction.NO_ACTION
    not_enforced: bool = False
    not_for_replication: bool = False

    @property
    def key(self) -> Tuple[str, str]:
        """Constraint identity: owning table and constraint name."""
        return (self.table.lower(), self.name.lower())

    def same_definition(self, other: "ForeignKey") -> bool:
        """Compare two components ignoring identifier case."""
        return (
            self.name.lower() == other.name.lower()
            and self.table.lower() == other.table.lower()
            and self.column.lower() == other.column.lower()
            and self.ref_table.lower() == other.ref_table.lower()
            and self.ref_column.lower() == other.ref_column.lower()
            and self.schema.lower() == other.schema.lower()
            and self.ref_schema.lower() == other.ref_schema.lower()
            and self.delete_action == other.delete_action
            and self.update_action == other.update_action
            and self.not_enforced == other.not_enforced
            and self.not_for_replication == other.not_for_replication
        )


@dataclass(frozen=True)
class Column:
    """A table column as recorded in a snapshot."""

    name: str
    sql_type: str
    is_nullable: bool = True
    ordinal_position: int = 0
    is_identity: bool = False
    is_computed: bool = False
    is_primary_key: bool = False
    computed_sql: Optional[str] = None
    length: Optional[int] = None  # -1 means MAX
    precision: Optional[int] = None
    scale: Optional[int] = None
    identity_seed: Optional[int] = None
    identity_increment: Optional[int] = None
    default_value: Optional[str] = None
    default_constraint_name: Optional[str] = None
    foreign_keys: Tuple[ForeignKey, ...] = ()

    @property
    def key(self) -> str:
        return self.name.lower()

    @property
    def is_data_column(self) -> bool:
        """Computed columns do not count as stored data columns."""
        return not self.is_computed

    def storage_signature(self) -> Tuple:
        """Attributes that ALTER COLUMN changes on disk."""
        return (
            self.sql_type.lower(),
            self.length,
            self.precision,
            self.scale,
            self.is_nullable,
        )

    def with_foreign_keys(self, foreign_keys: Iterable[ForeignKey]) -> "Column":
        return replace(self, foreign_keys=tuple(foreign_keys))


@dataclass(frozen=True)
class Index:
    """A nonclustered index."""

    name: str
    table: str
    columns: Tuple[str, ...]
    schema: str = DEFAULT_SCHEMA
    is_unique: bool = False

    @property
    def key(self) -> str:
        return self.name.lower()

    def covers(self, column_name: str) -> bool:
        """Whether the index includes the given column."""
        target = column_name.lower()
        return any(c.lower() == target for c in self.columns)

    def same_definition(self, other: "Index") -> bool:
        return (
            self.is_unique == other.is_unique
            and [c.lower() for c in self.columns] == [c.lower() for c in other.columns]
        )


@dataclass(frozen=True)
class Table:
    """A table with its columns keyed by lowercase name."""

    name: str
    columns: Mapping[str, Column] = field(default_factory=dict)
    indexes: Tuple[Index, ...] = ()
    schema: str = DEFAULT_SCHEMA

    @classmethod
    def build(
        cls,
        name: str,
        columns: Iterable[Column],
        indexes: Iterable[Index] = (),
        schema: str = DEFAULT_SCHEMA,
    ) -> "Table":
        """Build a table from a column sequence, keying columns by lowercase name."""
        return cls(
            name=name,
            columns=_freeze({c.key: c for c in columns}),
            indexes=tuple(indexes),
            schema=schema,
        )

    @property
    def key(self) -> str:
        return self.name.lower()

    @property
    def qualified_name(self) -> str:
        return f"[{self.schema}].[{self.name}]"

    def column(self, name: str) -> Optional[Column]:
        return self.columns.get(name.lower())

    def has_column(self, name: str) -> bool:
        return name.lower() in self.columns

    def ordered_columns(self) -> List[Column]:
        """Columns in physical (ordinal) order."""
        return sorted(self.columns.values(), key=lambda c: (c.ordinal_position, c.key))

    def column_order(self) -> List[str]:
        """Lowercase column names in physical order."""
        return [c.key for c in self.ordered_columns()]

    def primary_key_columns(self) -> List[Column]:
        return [c for c in self.ordered_columns() if c.is_primary_key]

    def foreign_keys(self) -> List[ForeignKey]:
        """All foreign key components owned by this table's columns."""
        return [fk for c in self.ordered_columns() for fk in c.foreign_keys]

    def index(self, name: str) -> Optional[Index]:
        target = name.lower()
        for index in self.indexes:
            if index.key == target:
                return index
        return None

    def with_columns(self, columns: Iterable[Column]) -> "Table":
        return replace(self, columns=_freeze({c.key: c for c in columns}))

    def with_indexes(self, indexes: Iterable[Index]) -> "Table":
        return replace(self, indexes=tuple(indexes))


@dataclass(frozen=True)
class Sequence:
    """A SQL Server sequence object."""

    name: str
    data_type: str = "bigint"
    schema: str = DEFAULT_SCHEMA
    start_value: Optional[int] = None
    increment: Optional[int] = None
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    is_cycling: bool = False
    cache_size: Optional[int] = None

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Procedure:
    """A stored procedure with its full CREATE definition."""

    name: str
    definition: str
    schema: str = DEFAULT_SCHEMA

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class SchemaSnapshot:
    """A full schema: tables, sequences and procedures keyed by lowercase name."""

    tables: Mapping[str, Table] = field(default_factory=dict)
    sequences: Mapping[str, Sequence] = field(default_factory=dict)
    procedures: Mapping[str, Procedure] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        tables: Iterable[Table] = (),
        sequences: Iterable[Sequence] = (),
        procedures: Iterable[Procedure] = (),
    ) -> "SchemaSnapshot":
        return cls(
            tables=_freeze({t.key: t for t in tables}),
            sequences=_freeze({s.key: s for s in sequences}),
            procedures=_freeze({p.key: p for p in procedures}),
        )

    def table(self, name: str) -> Optional[Table]:
        return self.tables.get(name.lower())

    def sequence(self, name: str) -> Optional[Sequence]:
        return self.sequences.get(name.lower())

    def procedure(self, name: str) -> Optional[Procedure]:
        return self.procedures.get(name.lower())

    def sorted_tables(self) -> List[Table]:
        return [self.tables[k] for k in sorted(self.tables)]

    def foreign_keys(self) -> List[ForeignKey]:
        return [fk for table in self.sorted_tables() for fk in table.foreign_keys()]

    def foreign_keys_referencing(self, table_name: str) -> List[ForeignKey]:
        """Foreign key components in other tables that reference the given table."""
        target = table_name.lower()
        return [
            fk
            for fk in self.foreign_keys()
            if fk.ref_table.lower() == target and fk.table.lower() != target
        ]

    def has_reference_target(self, fk: ForeignKey) -> bool:
        """Whether the owning and referenced columns of a component both exist."""
        owner = self.table(fk.table)
        referenced = self.table(fk.ref_table)
        return (
            owner is not None
            and owner.has_column(fk.column)
            and referenced is not None
            and referenced.has_column(fk.ref_column)
        )


def group_foreign_keys(foreign_keys: Iterable[ForeignKey]) -> List[Tuple[ForeignKey, ...]]:
    """Group foreign key components into constraints.

    Components sharing (table, name) form one constraint; duplicates of the
    same column are dropped. Groups are ordered by (table, name) and their
    components by column name.
    """
    groups: Dict[Tuple[str, str], Dict[str, ForeignKey]] = {}
    for fk in foreign_keys:
        components = groups.setdefault(fk.key, {})
        components.setdefault(fk.column.lower(), fk)
    return [
        tuple(components[column] for column in sorted(components))
        for _, components in sorted(groups.items())
    ]


def normalize_default_value(value: Optional[str]) -> Optional[str]:
    """Strip the balanced outer parentheses SQL Server stores around defaults.

    ``((0))`` becomes ``0`` while ``(1)+(2)`` is left untouched.
    """
    if value is None or not value.strip():
        return value
    normalized = value.strip()
    while normalized.startswith("(") and normalized.endswith(")"):
        depth = 0
        wrapped = True
        for i, char in enumerate(normalized):
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
            if depth == 0 and i < len(normalized) - 1:
                wrapped = False
                break
        if not wrapped or depth != 0:
            break
        normalized = normalized[1:-1].strip()
    return normalized
