"""
Pytest configuration and shared fixtures for migrasynth tests.

This module provides sample schemas, snapshot files and configuration shared
by the unit tests.
"""

from typing import Any, Dict

import pytest
import yaml

from migrasynth.config import MigrasynthConfig
from migrasynth.generation import MigrationGenerator
from migrasynth.schema import Column, ForeignKey, Index, SchemaSnapshot, Table


# ============================================================================
# Schema Fixtures
# ============================================================================

def build_users(identity: bool = False) -> Table:
    """Users(Id PK, Name); Id is an identity column when ``identity`` is set."""
    return Table.build(
        "Users",
        [
            Column(
                "Id",
                "int",
                is_nullable=False,
                ordinal_position=1,
                is_primary_key=True,
                is_identity=identity,
            ),
            Column("Name", "nvarchar", ordinal_position=2, length=100),
        ],
    )


def build_orders() -> Table:
    """Orders(Id PK, UserId -> Users.Id, Total) with an index on UserId."""
    fk = ForeignKey(
        name="FK_Orders_Users",
        table="Orders",
        column="UserId",
        ref_table="Users",
        ref_column="Id",
    )
    return Table.build(
        "Orders",
        [
            Column("Id", "int", is_nullable=False, ordinal_position=1, is_primary_key=True),
            Column(
                "UserId", "int", is_nullable=False, ordinal_position=2, foreign_keys=(fk,)
            ),
            Column("Total", "decimal", ordinal_position=3, precision=18, scale=2),
        ],
        indexes=[Index("IX_Orders_UserId", "Orders", ("UserId",))],
    )


@pytest.fixture
def users_table() -> Table:
    return build_users()


@pytest.fixture
def orders_table() -> Table:
    return build_orders()


@pytest.fixture
def identity_users_table() -> Table:
    return build_users(identity=True)


@pytest.fixture
def base_snapshot() -> SchemaSnapshot:
    """Users and Orders, Users.Id a plain primary key."""
    return SchemaSnapshot.build(tables=[build_users(), build_orders()])


@pytest.fixture
def generator() -> MigrationGenerator:
    return MigrationGenerator()


# ============================================================================
# Migration Scenario Fixtures
# ============================================================================

def with_tables(snapshot: SchemaSnapshot, *tables: Table) -> SchemaSnapshot:
    """Copy of ``snapshot`` with the given tables added or replaced."""
    merged = dict(snapshot.tables)
    merged.update({t.key: t for t in tables})
    return SchemaSnapshot.build(
        tables=merged.values(),
        sequences=snapshot.sequences.values(),
        procedures=snapshot.procedures.values(),
    )


@pytest.fixture
def email_snapshot(base_snapshot) -> SchemaSnapshot:
    """Users gains a nullable Email column at the end."""
    users = build_users()
    email = Column("Email", "nvarchar", ordinal_position=3, length=255)
    return with_tables(base_snapshot, users.with_columns(list(users.columns.values()) + [email]))


@pytest.fixture
def identity_snapshot(base_snapshot) -> SchemaSnapshot:
    """Users.Id becomes an identity column."""
    return with_tables(base_snapshot, build_users(identity=True))


@pytest.fixture
def cyclic_snapshot() -> SchemaSnapshot:
    """Tables A and B referencing each other."""
    a_to_b = ForeignKey("FK_A_B", "A", "BId", "B", "Id")
    b_to_a = ForeignKey("FK_B_A", "B", "AId", "A", "Id")
    a = Table.build(
        "A",
        [
            Column("Id", "int", is_nullable=False, ordinal_position=1, is_primary_key=True),
            Column("BId", "int", ordinal_position=2, foreign_keys=(a_to_b,)),
        ],
    )
    b = Table.build(
        "B",
        [
            Column("Id", "int", is_nullable=False, ordinal_position=1, is_primary_key=True),
            Column("AId", "int", ordinal_position=2, foreign_keys=(b_to_a,)),
        ],
    )
    return SchemaSnapshot.build(tables=[a, b])


def build_composite(key_type: str = "int") -> SchemaSnapshot:
    """P(PX, PY) with a composite primary key referenced by C through FK_C_P."""
    fks = (
        ForeignKey("FK_C_P", "C", "PX", "P", "PX"),
        ForeignKey("FK_C_P", "C", "PY", "P", "PY"),
    )
    parent = Table.build(
        "P",
        [
            Column("PX", "int", is_nullable=False, ordinal_position=1, is_primary_key=True),
            Column("PY", key_type, is_nullable=False, ordinal_position=2, is_primary_key=True),
        ],
    )
    child = Table.build(
        "C",
        [
            Column("Id", "int", is_nullable=False, ordinal_position=1, is_primary_key=True),
            Column("PX", "int", ordinal_position=2, foreign_keys=(fks[0],)),
            Column("PY", key_type, ordinal_position=3, foreign_keys=(fks[1],)),
        ],
    )
    return SchemaSnapshot.build(tables=[parent, child])


@pytest.fixture
def composite_snapshot() -> SchemaSnapshot:
    return build_composite()


@pytest.fixture
def composite_retyped_snapshot() -> SchemaSnapshot:
    """PY widened to bigint on both sides of FK_C_P."""
    return build_composite("bigint")


# ============================================================================
# Snapshot File Fixtures
# ============================================================================

@pytest.fixture
def sample_snapshot_data() -> Dict[str, Any]:
    """Snapshot document equivalent to ``base_snapshot``."""
    return {
        "version": 1,
        "tables": [
            {
                "name": "Users",
                "columns": [
                    {"name": "Id", "type": "int", "nullable": False, "primary_key": True},
                    {"name": "Name", "type": "nvarchar", "length": 100},
                ],
            },
            {
                "name": "Orders",
                "columns": [
                    {"name": "Id", "type": "int", "nullable": False, "primary_key": True},
                    {
                        "name": "UserId",
                        "type": "int",
                        "nullable": False,
                        "foreign_keys": [
                            {"name": "FK_Orders_Users", "ref_table": "Users", "ref_column": "Id"}
                        ],
                    },
                    {"name": "Total", "type": "decimal", "precision": 18, "scale": 2},
                ],
                "indexes": [{"name": "IX_Orders_UserId", "columns": ["UserId"]}],
            },
        ],
    }


@pytest.fixture
def snapshot_file(tmp_path, sample_snapshot_data) -> str:
    """Snapshot file holding ``sample_snapshot_data``."""
    path = tmp_path / "target.yaml"
    path.write_text(yaml.safe_dump(sample_snapshot_data, sort_keys=False), encoding="utf-8")
    return str(path)


@pytest.fixture
def current_snapshot_file(tmp_path, sample_snapshot_data) -> str:
    """Snapshot file that adds a nullable Email column to Users."""
    data = yaml.safe_load(yaml.safe_dump(sample_snapshot_data))
    data["tables"][0]["columns"].append({"name": "Email", "type": "nvarchar", "length": 255})
    path = tmp_path / "current.yaml"
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return str(path)


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config_data(tmp_path) -> Dict[str, Any]:
    return {
        "project_name": "migrasynth-test",
        "generation": {"default_schema": "dbo"},
        "output": {"migrations_dir": str(tmp_path / "migrations")},
        "logging": {"level": "WARNING"},
    }


@pytest.fixture
def sample_config(sample_config_data) -> MigrasynthConfig:
    return MigrasynthConfig(**sample_config_data)


@pytest.fixture
def config_file(tmp_path, sample_config_data) -> str:
    """Temporary configuration file for testing."""
    path = tmp_path / "migrasynth.yaml"
    path.write_text(yaml.safe_dump(sample_config_data), encoding="utf-8")
    return str(path)
