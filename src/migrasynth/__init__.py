"""
migrasynth: Up/Down migration script synthesis for SQL Server.

migrasynth turns the structural difference between two schema snapshots into
a pair of T-SQL scripts that move a database forward and back again without
ever passing through a state the engine would reject.
"""

__version__ = "0.1.0"
__author__ = "migrasynth Contributors"
__email__ = "contributors@migrasynth.dev"

from .config import MigrasynthConfig
from .exceptions import (
    MigrasynthError,
    ConfigurationError,
    MigrationStoreError,
    SnapshotError,
    ValidationError,
)
from .generation import MigrationGenerator, MigrationScripts

__all__ = [
    "__version__",
    "MigrasynthConfig",
    "MigrasynthError",
    "ConfigurationError",
    "MigrationStoreError",
    "SnapshotError",
    "ValidationError",
    "MigrationGenerator",
    "MigrationScripts",
]
