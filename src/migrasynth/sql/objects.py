"""
Sequence and stored procedure statements.
"""

from ..schema.model import Procedure, Sequence
from .naming import qualified_name, sql_literal


def render_create_sequence(sequence: Sequence) -> str:
    sql = f"CREATE SEQUENCE {qualified_name(sequence.schema, sequence.name)} AS {sequence.data_type}"
    if sequence.start_value is not None:
        sql += f" START WITH {sequence.start_value}"
    if sequence.increment is not None:
        sql += f" INCREMENT BY {sequence.increment}"
    sql += f" MINVALUE {sequence.min_value}" if sequence.min_value is not None else " NO MINVALUE"
    sql += f" MAXVALUE {sequence.max_value}" if sequence.max_value is not None else " NO MAXVALUE"
    sql += " CYCLE" if sequence.is_cycling else " NO CYCLE"
    sql += f" CACHE {sequence.cache_size}" if sequence.cache_size is not None else " NO CACHE"
    return sql + ";\n"


def render_drop_sequence(name: str, schema: str = "dbo") -> str:
    return (
        f"IF EXISTS (SELECT * FROM sys.sequences WHERE name = '{sql_literal(name)}' "
        f"AND schema_id = SCHEMA_ID('{schema}'))\n"
        "BEGIN\n"
        f"    DROP SEQUENCE {qualified_name(schema, name)};\n"
        "END\n"
    )


def render_alter_sequence(old: Sequence, new: Sequence) -> str:
    """Sequences are replaced rather than altered."""
    return render_drop_sequence(old.name, old.schema) + render_create_sequence(new)


def render_drop_procedure(name: str, schema: str = "dbo") -> str:
    return (
        "GO\n"
        f"IF EXISTS (SELECT * FROM sys.procedures WHERE name = '{sql_literal(name)}' "
        f"AND schema_id = SCHEMA_ID('{schema}'))\n"
        f"    DROP PROCEDURE {qualified_name(schema, name)};\n"
        "GO\n"
    )


def render_create_procedure(procedure: Procedure) -> str:
    return (
        render_drop_procedure(procedure.name, procedure.schema)
        + f"{procedure.definition.strip()}\n"
        "GO\n"
    )
