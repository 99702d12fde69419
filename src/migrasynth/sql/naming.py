"""
Identifier helpers shared by the T-SQL renderers.
"""

import hashlib
from typing import Optional


def deterministic_suffix(*parts: Optional[str]) -> str:
    """Return an 8 character lowercase hex suffix derived from ``parts``.

    The parts are lowercased and joined with ``|`` before hashing with
    SHA-256, so the same logical object always yields the same suffix.
    """
    if not parts:
        raise ValueError("At least one input is required")
    normalized = "|".join((part or "").lower() for part in parts)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:8]


def qualified_name(schema: str, name: str) -> str:
    return f"[{schema}].[{name}]"


def primary_key_name(table_name: str) -> str:
    return f"PK_{table_name}"


def sql_literal(value: str) -> str:
    """Escape a value for use inside a single-quoted T-SQL string."""
    return value.replace("'", "''")
