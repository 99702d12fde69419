"""
Unit tests for the column change planner.
"""

import logging
from dataclasses import replace

from migrasynth.generation import GenerationContext
from migrasynth.generation.planner import LiveColumns, appended_columns_first, plan_column_changes
from migrasynth.schema import ChangeType, Column, ColumnChange, Table, TableDiff


def add(column: Column) -> ColumnChange:
    return ColumnChange(ChangeType.ADD, new_column=column)


def drop(column: Column) -> ColumnChange:
    return ColumnChange(ChangeType.DROP, old_column=column)


def modify(old: Column, **changes) -> ColumnChange:
    return ColumnChange(ChangeType.MODIFY, old_column=old, new_column=replace(old, **changes))


def single_column_table(column: Column) -> Table:
    return Table.build("T", [column])


class TestLiveColumns:
    """Test live column tracking."""

    def test_only_data_column(self):
        live = LiveColumns(
            Table.build(
                "T",
                [
                    Column("A", "int", ordinal_position=1),
                    Column("C", "int", ordinal_position=2, is_computed=True, computed_sql="[A]"),
                ],
            )
        )
        assert live.data_count() == 1
        assert live.is_only_data_column("a")
        assert not live.is_only_data_column("C")

        live.append(Column("B", "int"))
        assert not live.is_only_data_column("A")
        live.remove("A")
        assert live.is_only_data_column("B")


class TestStatementOrder:
    """Test the ordering of drops and appended columns."""

    def test_drops_run_first_by_default(self, users_table):
        email = Column("Email", "nvarchar", ordinal_position=3, length=255)
        table_diff = TableDiff("Users", (add(email), drop(users_table.column("Name"))))
        assert not appended_columns_first(table_diff, users_table)

        sql = plan_column_changes(table_diff, users_table, GenerationContext())
        assert sql.index("DROP COLUMN [Name];") < sql.index("ADD [Email] NVARCHAR(255) NULL;")

    def test_replacing_the_last_column_adds_first(self):
        old = Column("Old", "int", ordinal_position=1)
        table = single_column_table(old)
        table_diff = TableDiff("T", (add(Column("New", "int", ordinal_position=1)), drop(old)))
        assert appended_columns_first(table_diff, table)

        sql = plan_column_changes(table_diff, table, GenerationContext())
        assert sql.index("ADD [New] INT NULL;") < sql.index("DROP COLUMN [Old];")

    def test_rebuilding_the_last_remaining_column_adds_first(self):
        a = Column("A", "int", ordinal_position=1)
        b = Column("B", "int", is_nullable=False, ordinal_position=2)
        table = Table.build("T", [a, b])
        table_diff = TableDiff("T", (modify(b, is_identity=True), drop(a)))
        assert appended_columns_first(table_diff, table)

        sql = plan_column_changes(table_diff, table, GenerationContext())
        assert sql.index("ADD [B] INT NOT NULL IDENTITY(1,1);") < sql.index("DROP COLUMN [A];")

    def test_interleave_follows_new_ordinals(self, users_table):
        late = Column("Late", "int", ordinal_position=5)
        early = Column("Early", "int", ordinal_position=3)
        table_diff = TableDiff("Users", (add(late), add(early)))

        grouped = plan_column_changes(table_diff, users_table, GenerationContext())
        interleaved = plan_column_changes(table_diff, users_table, GenerationContext(), interleave=True)
        assert grouped.index("[Late]") < grouped.index("[Early]")
        assert interleaved.index("[Early]") < interleaved.index("[Late]")

    def test_dropping_the_last_column_warns(self, caplog):
        old = Column("Old", "int", ordinal_position=1)
        table_diff = TableDiff("T", (drop(old),))
        with caplog.at_level(logging.WARNING):
            sql = plan_column_changes(table_diff, single_column_table(old), GenerationContext())
        assert "DROP COLUMN [Old];" in sql
        assert "without stored columns" in caplog.text


class TestRebuilds:
    """Test DROP+ADD planning."""

    def test_only_data_column_rebuild_uses_temporary_column(self):
        old = Column("Body", "text", ordinal_position=1)
        new = Column("Body", "nvarchar", ordinal_position=1, length=-1)
        table_diff = TableDiff("T", (ColumnChange(ChangeType.REBUILD, old, new),))
        sql = plan_column_changes(table_diff, single_column_table(old), GenerationContext())
        assert sql.index("ADD [Body_tmp_") < sql.index("DROP COLUMN [Body];")
        assert "EXEC sp_rename '[dbo].[T].[Body_tmp_" in sql

    def test_rebuild_with_other_columns_drops_first(self, users_table):
        change = modify(
            users_table.column("Name"), is_identity=True, is_nullable=False, sql_type="int", length=None
        )
        sql = plan_column_changes(TableDiff("Users", (change,)), users_table, GenerationContext())
        assert sql.index("DROP COLUMN [Name];") < sql.index("ADD [Name] INT NOT NULL IDENTITY(1,1);")


class TestPrimaryKeyAndIndexes:
    """Test the primary key and index bookkeeping of the planner."""

    def test_primary_key_dropped_once_per_context(self, users_table):
        table_diff = TableDiff("Users", (modify(users_table.column("Id"), sql_type="bigint"),))
        ctx = GenerationContext()
        first = plan_column_changes(table_diff, users_table, ctx)
        second = plan_column_changes(table_diff, users_table, ctx)
        assert first.index("@pkConstraintName_") < first.index("ALTER COLUMN [Id] BIGINT NOT NULL;")
        assert "@pkConstraintName_" not in second
        assert ctx.primary_key_dropped("users")

    def test_non_key_change_keeps_primary_key(self, users_table):
        table_diff = TableDiff("Users", (modify(users_table.column("Name"), length=200),))
        sql = plan_column_changes(table_diff, users_table, GenerationContext())
        assert sql == "ALTER TABLE [dbo].[Users] ALTER COLUMN [Name] NVARCHAR(200) NULL;\n"

    def test_covering_index_is_displaced(self, orders_table):
        table_diff = TableDiff("Orders", (modify(orders_table.column("UserId"), sql_type="bigint"),))
        ctx = GenerationContext()
        first = plan_column_changes(table_diff, orders_table, ctx)
        second = plan_column_changes(table_diff, orders_table, ctx)

        assert first.index("DROP INDEX [IX_Orders_UserId]") < first.index("ALTER COLUMN [UserId]")
        assert "DROP INDEX" not in second
        assert [i.name for i in ctx.displaced_indexes] == ["IX_Orders_UserId"]

    def test_untouched_index_stays(self, orders_table):
        table_diff = TableDiff("Orders", (modify(orders_table.column("Total"), scale=4),))
        ctx = GenerationContext()
        sql = plan_column_changes(table_diff, orders_table, ctx)
        assert "DROP INDEX" not in sql
        assert ctx.displaced_indexes == []


class TestDefaults:
    """Test default-only changes."""

    def test_default_only_change(self, users_table):
        table_diff = TableDiff("Users", (modify(users_table.column("Name"), default_value="('x')"),))
        sql = plan_column_changes(table_diff, users_table, GenerationContext())
        assert "ALTER COLUMN" not in sql
        assert "DEFAULT 'x' FOR [Name];" in sql

    def test_equivalent_defaults_emit_nothing(self, users_table):
        old = replace(users_table.column("Name"), default_value="((1))")
        change = ColumnChange(ChangeType.MODIFY, old, replace(old, default_value="(1)"))
        table = users_table.with_columns([users_table.column("Id"), old])
        assert plan_column_changes(TableDiff("Users", (change,)), table, GenerationContext()) == ""
