"""
Unit tests for the structural diff model.
"""

import pytest

from migrasynth.exceptions import ValidationError
from migrasynth.schema.model import Column, ForeignKey, Index, Procedure, SchemaSnapshot, Sequence, Table
from migrasynth.schema.operations import (
    ChangeType,
    ColumnChange,
    ForeignKeyChange,
    IndexChange,
    ProcedureChange,
    SchemaDiff,
    SequenceChange,
    TableDiff,
)


class TestChangeType:
    """Test ChangeType enum."""

    def test_change_type_values(self):
        assert ChangeType.ADD == "add"
        assert ChangeType.DROP == "drop"
        assert ChangeType.MODIFY == "modify"
        assert ChangeType.REBUILD == "rebuild"

    def test_inverted(self):
        assert ChangeType.ADD.inverted() is ChangeType.DROP
        assert ChangeType.DROP.inverted() is ChangeType.ADD
        assert ChangeType.MODIFY.inverted() is ChangeType.MODIFY
        assert ChangeType.REBUILD.inverted() is ChangeType.REBUILD


class TestColumnChange:
    """Test column change construction and classification."""

    def test_add_requires_only_new(self):
        with pytest.raises(ValidationError):
            ColumnChange(ChangeType.ADD, old_column=Column("A", "int"))
        with pytest.raises(ValidationError):
            ColumnChange(ChangeType.ADD, old_column=Column("A", "int"), new_column=Column("A", "int"))

    def test_drop_requires_only_old(self):
        with pytest.raises(ValidationError):
            ColumnChange(ChangeType.DROP, new_column=Column("A", "int"))

    def test_modify_requires_both(self):
        with pytest.raises(ValidationError):
            ColumnChange(ChangeType.MODIFY, new_column=Column("A", "int"))
        with pytest.raises(ValidationError):
            ColumnChange(ChangeType.REBUILD, old_column=Column("A", "int"))

    def test_name(self):
        assert ColumnChange(ChangeType.DROP, old_column=Column("Old", "int")).name == "Old"
        assert ColumnChange(ChangeType.ADD, new_column=Column("New", "int")).name == "New"

    def test_requires_drop_add(self):
        plain = Column("A", "int", is_nullable=False)
        identity = Column("A", "int", is_nullable=False, is_identity=True)
        computed = Column("A", "int", is_computed=True, computed_sql="[B] * 2")
        bigger = Column("A", "bigint", is_nullable=False)

        assert ColumnChange(ChangeType.MODIFY, plain, identity).requires_drop_add
        assert ColumnChange(ChangeType.MODIFY, plain, computed).requires_drop_add
        assert ColumnChange(ChangeType.REBUILD, plain, bigger).requires_drop_add
        assert not ColumnChange(ChangeType.MODIFY, plain, bigger).requires_drop_add
        assert not ColumnChange(ChangeType.ADD, new_column=plain).requires_drop_add

    def test_inverted_swaps_sides(self):
        old, new = Column("A", "int"), Column("A", "bigint")
        change = ColumnChange(ChangeType.MODIFY, old, new).inverted()
        assert change.old_column is new
        assert change.new_column is old
        added = ColumnChange(ChangeType.ADD, new_column=new).inverted()
        assert added.change_type is ChangeType.DROP
        assert added.old_column is new


class TestForeignKeyAndIndexChange:
    """Test foreign key and index changes."""

    def test_foreign_keys_cannot_be_rebuilt(self):
        fk = ForeignKey("FK", "T", "A", "R", "Id")
        with pytest.raises(ValidationError):
            ForeignKeyChange(ChangeType.REBUILD, old_foreign_key=fk, new_foreign_key=fk)

    def test_indexes_cannot_be_rebuilt(self):
        index = Index("IX", "T", ("A",))
        with pytest.raises(ValidationError):
            IndexChange(ChangeType.REBUILD, old_index=index, new_index=index)

    def test_index_change_inverted(self):
        index = Index("IX", "T", ("A",))
        change = IndexChange(ChangeType.DROP, old_index=index).inverted()
        assert change.change_type is ChangeType.ADD
        assert change.new_index is index
        assert change.name == "IX"


class TestTableDiff:
    """Test TableDiff helpers."""

    def _changes(self):
        add = ColumnChange(ChangeType.ADD, new_column=Column("D", "int", ordinal_position=1))
        drop = ColumnChange(ChangeType.DROP, old_column=Column("X", "int", ordinal_position=4))
        to_identity = ColumnChange(
            ChangeType.MODIFY,
            Column("B", "int", is_nullable=False, ordinal_position=2),
            Column("B", "int", is_nullable=False, is_identity=True, ordinal_position=3),
        )
        alter = ColumnChange(
            ChangeType.MODIFY,
            Column("C", "int", ordinal_position=3),
            Column("C", "bigint", ordinal_position=4),
        )
        rebuild = ColumnChange(
            ChangeType.REBUILD,
            Column("A", "text", ordinal_position=1),
            Column("A", "nvarchar", length=-1, ordinal_position=2),
        )
        return add, drop, to_identity, alter, rebuild

    def test_order_only(self):
        assert TableDiff("T").is_order_only
        add = self._changes()[0]
        assert not TableDiff("T", column_changes=(add,)).is_order_only

    def test_classification(self):
        add, drop, to_identity, alter, rebuild = self._changes()
        diff = TableDiff("T", column_changes=(rebuild, alter, drop, to_identity, add))
        assert diff.drop_add_changes() == [rebuild, to_identity]
        assert diff.alter_changes() == [alter]
        assert diff.changes_of(ChangeType.DROP) == [drop]
        assert diff.appends_columns()

    def test_appended_changes_grouped(self):
        add, drop, to_identity, alter, rebuild = self._changes()
        diff = TableDiff("T", column_changes=(rebuild, to_identity, add))
        assert diff.appended_changes() == [add, to_identity, rebuild]

    def test_appended_changes_interleaved(self):
        add, drop, to_identity, alter, rebuild = self._changes()
        diff = TableDiff("T", column_changes=(rebuild, to_identity, add))
        assert diff.appended_changes(interleave=True) == [add, rebuild, to_identity]

    def test_drops_do_not_append(self):
        drop = self._changes()[1]
        assert not TableDiff("T", column_changes=(drop,)).appends_columns()


class TestSchemaDiff:
    """Test SchemaDiff helpers and inversion."""

    def test_is_empty(self):
        assert SchemaDiff().is_empty
        assert not SchemaDiff(dropped_table_names=("T",)).is_empty

    def test_table_diff_lookup(self):
        diff = SchemaDiff(modified_tables=(TableDiff("Users"), TableDiff("Audit")))
        assert diff.table_diff("users").table_name == "Users"
        assert diff.table_diff("missing") is None
        assert [td.table_name for td in diff.sorted_table_diffs()] == ["Audit", "Users"]

    def test_inverted_recovers_dropped_objects(self, base_snapshot):
        sequence = Sequence("OrderNumbers")
        procedure = Procedure("GetUsers", "CREATE PROCEDURE GetUsers AS SELECT 1")
        source = SchemaSnapshot.build(
            tables=base_snapshot.tables.values(), sequences=[sequence], procedures=[procedure]
        )
        new_table = Table.build("Audit", [Column("Id", "int", ordinal_position=1)])
        diff = SchemaDiff(
            new_tables=(new_table,),
            dropped_table_names=("Orders",),
            dropped_sequence_names=("OrderNumbers",),
            dropped_procedure_names=("GetUsers",),
        )

        inverted = diff.inverted(source)
        assert inverted.new_tables == (source.table("Orders"),)
        assert inverted.dropped_table_names == ("Audit",)
        assert inverted.new_sequences == (sequence,)
        assert inverted.new_procedures == (procedure,)

    def test_inverted_skips_missing_objects(self, caplog):
        diff = SchemaDiff(dropped_table_names=("Ghost",))
        inverted = diff.inverted(SchemaSnapshot.build())
        assert inverted.new_tables == ()
        assert "Ghost" in caplog.text

    def test_inverted_swaps_modifications(self):
        old, new = Sequence("S", start_value=1), Sequence("S", start_value=10)
        p_old, p_new = Procedure("P", "A"), Procedure("P", "B")
        diff = SchemaDiff(
            modified_sequences=(SequenceChange(old, new),),
            modified_procedures=(ProcedureChange(p_old, p_new),),
        )
        inverted = diff.inverted(SchemaSnapshot.build())
        assert inverted.modified_sequences[0].new_sequence is old
        assert inverted.modified_procedures[0].new_procedure is p_old
