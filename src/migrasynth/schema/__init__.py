"""
Schema package for migrasynth.

This package provides:
- The immutable snapshot model (tables, columns, constraints, sequences, procedures)
- The structural diff model and its inversion
- Snapshot comparison and rebuild detection
- Projection of a diff onto a snapshot
- Snapshot file loading and saving
"""

from .model import (
    Column,
    ForeignKey,
    Index,
    Procedure,
    ReferentialAction,
    SchemaSnapshot,
    Sequence,
    Table,
    group_foreign_keys,
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
from .comparer import compare_schemas
from .rebuild import requires_rebuild
from .projection import project_schema_after_diff
from .document import load_snapshot, save_snapshot

__all__ = [
    "Column",
    "ForeignKey",
    "Index",
    "Procedure",
    "ReferentialAction",
    "SchemaSnapshot",
    "Sequence",
    "Table",
    "group_foreign_keys",
    "ChangeType",
    "ColumnChange",
    "ForeignKeyChange",
    "IndexChange",
    "ProcedureChange",
    "SchemaDiff",
    "SequenceChange",
    "TableDiff",
    "compare_schemas",
    "requires_rebuild",
    "project_schema_after_diff",
    "load_snapshot",
    "save_snapshot",
]
