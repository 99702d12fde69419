"""
Snapshot files for migrasynth.

Snapshots are stored as YAML (JSON files load as well). The document models
validate the file with Pydantic and convert it into the immutable schema
model; column ordinal positions follow the order of the ``columns`` list.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..exceptions import SnapshotError
from .model import (
    DEFAULT_SCHEMA,
    Column,
    ForeignKey,
    Index,
    Procedure,
    ReferentialAction,
    SchemaSnapshot,
    Sequence,
    Table,
)


logger = logging.getLogger(__name__)


class ForeignKeyDocument(BaseModel):
    """Foreign key component declared on a column."""

    name: str = Field(..., description="Constraint name")
    ref_table: str = Field(..., description="Referenced table")
    ref_column: str = Field(..., description="Referenced column")
    ref_schema: Optional[str] = Field(None, description="Referenced table schema")
    delete_action: ReferentialAction = Field(ReferentialAction.NO_ACTION)
    update_action: ReferentialAction = Field(ReferentialAction.NO_ACTION)
    not_enforced: bool = Field(False, description="Constraint is not trusted (NOCHECK)")
    not_for_replication: bool = Field(False)


class ColumnDocument(BaseModel):
    """A column entry."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    sql_type: str = Field(..., alias="type", description="SQL Server type name")
    nullable: bool = True
    primary_key: bool = False
    identity: bool = False
    identity_seed: Optional[int] = None
    identity_increment: Optional[int] = None
    computed: Optional[str] = Field(None, description="Computed column expression")
    length: Optional[int] = Field(None, description="Length, -1 for MAX")
    precision: Optional[int] = None
    scale: Optional[int] = None
    default: Optional[str] = Field(None, description="Default constraint expression")
    default_name: Optional[str] = Field(None, description="Default constraint name")
    foreign_keys: List[ForeignKeyDocument] = Field(default_factory=list)


class IndexDocument(BaseModel):
    name: str
    columns: List[str] = Field(..., min_length=1)
    unique: bool = False


class TableDocument(BaseModel):
    """A table entry."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    schema_name: Optional[str] = Field(None, alias="schema")
    columns: List[ColumnDocument] = Field(default_factory=list)
    indexes: List[IndexDocument] = Field(default_factory=list)

    def to_table(self, default_schema: str) -> Table:
        schema = self.schema_name or default_schema
        columns = []
        for position, doc in enumerate(self.columns, start=1):
            foreign_keys = tuple(
                ForeignKey(
                    name=fk.name,
                    table=self.name,
                    column=doc.name,
                    ref_table=fk.ref_table,
                    ref_column=fk.ref_column,
                    schema=schema,
                    ref_schema=fk.ref_schema or schema,
                    delete_action=fk.delete_action,
                    update_action=fk.update_action,
                    not_enforced=fk.not_enforced,
                    not_for_replication=fk.not_for_replication,
                )
                for fk in doc.foreign_keys
            )
            columns.append(
                Column(
                    name=doc.name,
                    sql_type=doc.sql_type.lower(),
                    is_nullable=doc.nullable,
                    ordinal_position=position,
                    is_identity=doc.identity,
                    is_computed=doc.computed is not None,
                    is_primary_key=doc.primary_key,
                    computed_sql=doc.computed,
                    length=doc.length,
                    precision=doc.precision,
                    scale=doc.scale,
                    identity_seed=doc.identity_seed,
                    identity_increment=doc.identity_increment,
                    default_value=doc.default,
                    default_constraint_name=doc.default_name,
                    foreign_keys=foreign_keys,
                )
            )
        indexes = [
            Index(
                name=index.name,
                table=self.name,
                columns=tuple(index.columns),
                schema=schema,
                is_unique=index.unique,
            )
            for index in self.indexes
        ]
        return Table.build(self.name, columns, indexes, schema=schema)

    @classmethod
    def from_table(cls, table: Table) -> "TableDocument":
        columns = []
        for column in table.ordered_columns():
            columns.append(
                ColumnDocument(
                    name=column.name,
                    sql_type=column.sql_type,
                    nullable=column.is_nullable,
                    primary_key=column.is_primary_key,
                    identity=column.is_identity,
                    identity_seed=column.identity_seed,
                    identity_increment=column.identity_increment,
                    computed=column.computed_sql if column.is_computed else None,
                    length=column.length,
                    precision=column.precision,
                    scale=column.scale,
                    default=column.default_value,
                    default_name=column.default_constraint_name,
                    foreign_keys=[
                        ForeignKeyDocument(
                            name=fk.name,
                            ref_table=fk.ref_table,
                            ref_column=fk.ref_column,
                            ref_schema=fk.ref_schema,
                            delete_action=fk.delete_action,
                            update_action=fk.update_action,
                            not_enforced=fk.not_enforced,
                            not_for_replication=fk.not_for_replication,
                        )
                        for fk in column.foreign_keys
                    ],
                )
            )
        return cls(
            name=table.name,
            schema_name=table.schema,
            columns=columns,
            indexes=[
                IndexDocument(name=i.name, columns=list(i.columns), unique=i.is_unique)
                for i in table.indexes
            ],
        )


class SequenceDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    schema_name: Optional[str] = Field(None, alias="schema")
    data_type: str = "bigint"
    start: Optional[int] = None
    increment: Optional[int] = None
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    cycle: bool = False
    cache: Optional[int] = None


class ProcedureDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    schema_name: Optional[str] = Field(None, alias="schema")
    definition: str


class SnapshotDocument(BaseModel):
    """Root of a snapshot file."""

    version: int = Field(1, description="Snapshot format version")
    tables: List[TableDocument] = Field(default_factory=list)
    sequences: List[SequenceDocument] = Field(default_factory=list)
    procedures: List[ProcedureDocument] = Field(default_factory=list)

    def to_snapshot(self, default_schema: str = DEFAULT_SCHEMA) -> SchemaSnapshot:
        return SchemaSnapshot.build(
            tables=[t.to_table(default_schema) for t in self.tables],
            sequences=[
                Sequence(
                    name=s.name,
                    data_type=s.data_type,
                    schema=s.schema_name or default_schema,
                    start_value=s.start,
                    increment=s.increment,
                    min_value=s.min_value,
                    max_value=s.max_value,
                    is_cycling=s.cycle,
                    cache_size=s.cache,
                )
                for s in self.sequences
            ],
            procedures=[
                Procedure(
                    name=p.name,
                    definition=p.definition,
                    schema=p.schema_name or default_schema,
                )
                for p in self.procedures
            ],
        )

    @classmethod
    def from_snapshot(cls, snapshot: SchemaSnapshot) -> "SnapshotDocument":
        return cls(
            tables=[TableDocument.from_table(t) for t in snapshot.sorted_tables()],
            sequences=[
                SequenceDocument(
                    name=s.name,
                    schema_name=s.schema,
                    data_type=s.data_type,
                    start=s.start_value,
                    increment=s.increment,
                    min_value=s.min_value,
                    max_value=s.max_value,
                    cycle=s.is_cycling,
                    cache=s.cache_size,
                )
                for _, s in sorted(snapshot.sequences.items())
            ],
            procedures=[
                ProcedureDocument(name=p.name, schema_name=p.schema, definition=p.definition)
                for _, p in sorted(snapshot.procedures.items())
            ],
        )


def load_snapshot(path: Union[str, Path], default_schema: str = DEFAULT_SCHEMA) -> SchemaSnapshot:
    """Read a snapshot file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        document = SnapshotDocument.model_validate(data)
    except FileNotFoundError:
        raise SnapshotError("Snapshot file not found", path=str(path))
    except yaml.YAMLError as e:
        raise SnapshotError("Invalid YAML in snapshot file", path=str(path), cause=e)
    except ValidationError as e:
        raise SnapshotError("Invalid snapshot", path=str(path), cause=e)

    snapshot = document.to_snapshot(default_schema)
    logger.debug(f"Loaded snapshot {path}: {len(snapshot.tables)} tables")
    return snapshot


def save_snapshot(snapshot: SchemaSnapshot, path: Union[str, Path]) -> None:
    """Write a snapshot file."""
    document = SnapshotDocument.from_snapshot(snapshot)
    data = document.model_dump(mode="json", by_alias=True, exclude_none=True)
    try:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, indent=2)
    except OSError as e:
        raise SnapshotError("Cannot write snapshot file", path=str(path), cause=e)
