"""
Script generation for migrasynth.

This package provides:
- The per-script generation context
- Foreign key and primary key restoration resolution
- The safe column change planner
- Up and Down phase generators and the script assembler
"""

from .assembler import PhaseContent, assemble_script, render_section_header
from .context import GenerationContext
from .generator import MigrationGenerator, MigrationScripts
from .planner import plan_column_changes
from .resolver import (
    column_storage_changed,
    compute_foreign_key_groups,
    compute_restoration_closure,
    compute_restoration_triggers,
    foreign_keys_depending_on,
)

__all__ = [
    "PhaseContent",
    "assemble_script",
    "render_section_header",
    "GenerationContext",
    "MigrationGenerator",
    "MigrationScripts",
    "plan_column_changes",
    "column_storage_changed",
    "compute_foreign_key_groups",
    "compute_restoration_closure",
    "compute_restoration_triggers",
    "foreign_keys_depending_on",
]
