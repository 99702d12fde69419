"""
Unit tests for snapshot comparison and rebuild detection.
"""

from dataclasses import replace

from migrasynth.schema.comparer import (
    columns_equal,
    compare_foreign_keys,
    compare_indexes,
    compare_schemas,
    compare_tables,
)
from migrasynth.schema.model import (
    Column,
    ForeignKey,
    Index,
    Procedure,
    ReferentialAction,
    SchemaSnapshot,
    Sequence,
    Table,
)
from migrasynth.schema.operations import ChangeType
from migrasynth.schema.rebuild import (
    normalize_computed_sql,
    referenced_by_computed_column,
    requires_rebuild,
)


class TestRequiresRebuild:
    """Test detection of changes ALTER COLUMN cannot express."""

    def test_plain_type_change_does_not_rebuild(self):
        assert not requires_rebuild(Column("A", "int"), Column("A", "bigint"))

    def test_lob_conversion(self):
        assert requires_rebuild(Column("A", "text"), Column("A", "nvarchar", length=-1))
        assert requires_rebuild(Column("A", "nvarchar", length=50), Column("A", "ntext"))

    def test_identity_changes(self):
        plain = Column("A", "int", is_nullable=False)
        identity = replace(plain, is_identity=True, identity_seed=1, identity_increment=1)
        assert requires_rebuild(plain, identity)
        assert requires_rebuild(identity, replace(identity, identity_seed=100))
        assert not requires_rebuild(identity, identity)

    def test_computed_changes(self):
        computed = Column("C", "int", is_computed=True, computed_sql="[A] + [B]")
        assert requires_rebuild(computed, replace(computed, computed_sql="[A] * [B]"))
        assert not requires_rebuild(computed, replace(computed, computed_sql="[a]  +  [b]"))

    def test_timestamp_columns(self):
        assert requires_rebuild(Column("V", "rowversion"), Column("V", "rowversion", is_nullable=False))

    def test_position_change_of_indexed_column(self):
        old = Column("A", "int", ordinal_position=1)
        table = Table.build("T", [old], indexes=[Index("IX_A", "T", ("A",))])
        moved = replace(old, ordinal_position=2, sql_type="bigint")
        assert requires_rebuild(old, moved, table)
        assert not requires_rebuild(old, moved)

    def test_position_change_of_column_used_by_computed_column(self):
        base = Column("Price", "int", ordinal_position=1)
        computed = Column("Double", "int", ordinal_position=2, is_computed=True, computed_sql="[Price] * 2")
        table = Table.build("T", [base, computed])
        assert referenced_by_computed_column(base, table)
        assert requires_rebuild(base, replace(base, ordinal_position=3, is_nullable=False), table)

    def test_normalize_computed_sql(self):
        assert normalize_computed_sql("  [A]\n +  [B] ") == "[a] + [b]"
        assert normalize_computed_sql(None) == ""


class TestColumnsEqual:
    """Test structural column equality."""

    def test_ignores_ordinal_and_default_parentheses(self):
        a = Column("A", "int", ordinal_position=1, default_value="((0))")
        b = Column("a", "INT", ordinal_position=5, default_value="0")
        assert columns_equal(a, b)

    def test_detects_identity_seed(self):
        a = Column("A", "int", is_identity=True, identity_seed=1, identity_increment=1)
        assert not columns_equal(a, replace(a, identity_seed=5))


class TestCompareForeignKeys:
    """Test per-constraint foreign key comparison."""

    def test_add_drop_and_modify(self):
        kept = ForeignKey("FK_Kept", "T", "A", "R", "Id")
        dropped = ForeignKey("FK_Dropped", "T", "B", "R", "Id")
        added = ForeignKey("FK_Added", "T", "C", "R", "Id")
        cascade = replace(kept, delete_action=ReferentialAction.CASCADE)

        changes = compare_foreign_keys([kept, dropped], [cascade, added])
        kinds = [(c.change_type, (c.new_foreign_key or c.old_foreign_key).name) for c in changes]
        assert kinds == [
            (ChangeType.DROP, "FK_Dropped"),
            (ChangeType.ADD, "FK_Added"),
            (ChangeType.MODIFY, "FK_Kept"),
        ]

    def test_changed_columns_become_drop_and_add(self):
        old = ForeignKey("FK", "T", "A", "R", "Id")
        new = ForeignKey("FK", "T", "B", "R", "Id")
        changes = compare_foreign_keys([old], [new])
        assert [c.change_type for c in changes] == [ChangeType.DROP, ChangeType.ADD]


class TestCompareIndexes:
    """Test index comparison."""

    def test_changes(self):
        old = [Index("IX_A", "T", ("A",)), Index("IX_B", "T", ("B",))]
        new = [Index("IX_A", "T", ("A", "C")), Index("IX_C", "T", ("C",))]
        changes = compare_indexes(old, new)
        assert [(c.change_type, c.name) for c in changes] == [
            (ChangeType.DROP, "IX_B"),
            (ChangeType.MODIFY, "IX_A"),
            (ChangeType.ADD, "IX_C"),
        ]


class TestCompareTables:
    """Test table level comparison."""

    def test_identical_tables(self, users_table):
        assert compare_tables(users_table, users_table) is None

    def test_added_column(self, users_table):
        email = Column("Email", "nvarchar", ordinal_position=3, length=255)
        changed = Table.build("Users", list(users_table.columns.values()) + [email])
        diff = compare_tables(users_table, changed)
        assert [(c.change_type, c.name) for c in diff.column_changes] == [(ChangeType.ADD, "Email")]

    def test_identity_change_is_rebuild(self, users_table, identity_users_table):
        diff = compare_tables(users_table, identity_users_table)
        assert [(c.change_type, c.name) for c in diff.column_changes] == [(ChangeType.REBUILD, "Id")]

    def test_order_only_difference(self, orders_table):
        columns = orders_table.ordered_columns()
        reordered = orders_table.with_columns(
            [
                replace(columns[0], ordinal_position=1),
                replace(columns[2], ordinal_position=2),
                replace(columns[1], ordinal_position=3),
            ]
        )
        diff = compare_tables(orders_table, reordered)
        assert diff is not None
        assert diff.is_order_only


class TestCompareSchemas:
    """Test full snapshot comparison."""

    def test_tables_sequences_and_procedures(self, base_snapshot):
        audit = Table.build("Audit", [Column("Id", "int", ordinal_position=1)])
        source = SchemaSnapshot.build(
            tables=base_snapshot.tables.values(),
            sequences=[Sequence("Old"), Sequence("Changed", start_value=1)],
            procedures=[Procedure("P", "CREATE PROCEDURE P AS\n  SELECT 1")],
        )
        destination = SchemaSnapshot.build(
            tables=[base_snapshot.table("Users"), audit],
            sequences=[Sequence("Changed", start_value=5), Sequence("New")],
            procedures=[Procedure("P", "CREATE PROCEDURE P AS SELECT 1")],
        )

        diff = compare_schemas(source, destination)
        assert [t.name for t in diff.new_tables] == ["Audit"]
        assert diff.dropped_table_names == ("Orders",)
        assert diff.modified_tables == ()
        assert [s.name for s in diff.new_sequences] == ["New"]
        assert diff.dropped_sequence_names == ("Old",)
        assert diff.modified_sequences[0].new_sequence.start_value == 5
        assert diff.modified_procedures == ()

    def test_identical_snapshots(self, base_snapshot):
        assert compare_schemas(base_snapshot, base_snapshot).is_empty
