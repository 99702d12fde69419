"""
Migration script generator.

Builds the Up script from the diff between two snapshots and the Down script
from the same diff with its sides swapped.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import GenerationConfig
from ..schema.comparer import compare_schemas
from ..schema.model import SchemaSnapshot
from ..schema.operations import SchemaDiff
from ..schema.projection import project_schema_after_diff
from .assembler import assemble_script
from .context import GenerationContext
from .down import generate_down_phases
from .up import generate_up_phases


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationScripts:
    """The pair of scripts for one migration."""

    up: str
    down: str


class MigrationGenerator:
    """
    Generates Up and Down T-SQL scripts.

    ``target`` is the schema the database is in before the migration and
    ``current`` the schema it should have afterwards; the diff transforms
    ``target`` into ``current``.
    """

    def __init__(self, config: Optional[GenerationConfig] = None):
        self.config = config or GenerationConfig()

    def _assemble(self, phases) -> str:
        return assemble_script(phases, self.config.header_comment, self.config.abort_on_error)

    def generate_up(
        self, diff: SchemaDiff, current: SchemaSnapshot, target: SchemaSnapshot
    ) -> str:
        """Script that brings a database from ``target`` to ``current``."""
        result = project_schema_after_diff(target, diff)
        ctx = GenerationContext()
        phases = generate_up_phases(diff, current, target, result, ctx)
        logger.debug(
            f"Up script: dropped {len(ctx.dropped_foreign_keys)} and created "
            f"{len(ctx.created_foreign_keys)} foreign keys"
        )
        return self._assemble(phases)

    def generate_down(
        self, diff: SchemaDiff, current: SchemaSnapshot, target: SchemaSnapshot
    ) -> str:
        """Script that brings a database from ``current`` back to ``target``."""
        reverse = diff.inverted(target)
        result = project_schema_after_diff(current, reverse, interleave=True)
        ctx = GenerationContext()
        phases = generate_down_phases(reverse, current, target, result, ctx)
        logger.debug(
            f"Down script: dropped {len(ctx.dropped_foreign_keys)} and created "
            f"{len(ctx.created_foreign_keys)} foreign keys"
        )
        return self._assemble(phases)

    def generate(
        self, diff: SchemaDiff, current: SchemaSnapshot, target: SchemaSnapshot
    ) -> MigrationScripts:
        if diff.is_empty:
            logger.info("Schema diff is empty; scripts contain only the header")
        return MigrationScripts(
            up=self.generate_up(diff, current, target),
            down=self.generate_down(diff, current, target),
        )

    def generate_from_snapshots(
        self, target: SchemaSnapshot, current: SchemaSnapshot
    ) -> MigrationScripts:
        """Compare the snapshots and generate both scripts."""
        diff = compare_schemas(target, current)
        return self.generate(diff, current, target)
