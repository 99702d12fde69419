"""
On-disk migration store.

Each migration lives in its own ``<timestamp>_<name>`` directory holding the
Up script, the Down script and the snapshot the Up script produces. The
newest snapshot is the starting point of the next migration.
"""

import logging
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from .config import OutputConfig
from .exceptions import MigrationStoreError
from .generation.generator import MigrationScripts
from .schema.document import load_snapshot, save_snapshot
from .schema.model import DEFAULT_SCHEMA, SchemaSnapshot


logger = logging.getLogger(__name__)

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]*$")


@dataclass(frozen=True)
class StoredMigration:
    """A migration directory found in the store."""

    timestamp: str
    name: str
    path: Path

    @property
    def directory_name(self) -> str:
        return self.path.name


class MigrationStore:
    """Reads and writes migration directories under ``root``."""

    def __init__(self, root: Union[str, Path], output: Optional[OutputConfig] = None):
        self.root = Path(root)
        self.output = output or OutputConfig()

    def _timestamp(self) -> str:
        return datetime.now(timezone.utc).strftime(self.output.timestamp_format)

    def create_migration(
        self,
        name: Optional[str],
        scripts: MigrationScripts,
        snapshot: SchemaSnapshot,
    ) -> StoredMigration:
        """Write a new migration directory and return it."""
        if name and not _NAME_PATTERN.match(name):
            raise MigrationStoreError(
                "Migration names may only contain letters, digits, '_' and '-'",
                details={"name": name},
            )

        timestamp = self._timestamp()
        directory = self.root / (f"{timestamp}_{name}" if name else timestamp)
        if directory.exists():
            raise MigrationStoreError(f"Migration already exists: {directory}")

        try:
            directory.mkdir(parents=True)
        except OSError as e:
            raise MigrationStoreError(f"Cannot create migration {directory}", cause=e)

        try:
            self._write_files(directory, scripts, snapshot)
        except Exception:
            logger.warning(f"Removing incomplete migration {directory.name}")
            shutil.rmtree(directory, ignore_errors=True)
            raise

        logger.info(f"Created migration {directory.name}")
        return StoredMigration(timestamp=timestamp, name=name or "", path=directory)

    def _write_files(self, directory: Path, scripts: MigrationScripts, snapshot: SchemaSnapshot):
        try:
            (directory / self.output.up_filename).write_text(scripts.up + "\n", encoding="utf-8")
            (directory / self.output.down_filename).write_text(scripts.down + "\n", encoding="utf-8")
        except OSError as e:
            raise MigrationStoreError(f"Cannot write migration {directory}", cause=e)
        save_snapshot(snapshot, directory / self.output.snapshot_filename)

    def list_migrations(self) -> List[StoredMigration]:
        """Stored migrations, oldest first."""
        if not self.root.is_dir():
            return []
        migrations = []
        for path in sorted(p for p in self.root.iterdir() if p.is_dir()):
            timestamp, _, name = path.name.partition("_")
            if not timestamp.isdigit():
                logger.debug(f"Ignoring directory {path.name}: not a migration")
                continue
            migrations.append(StoredMigration(timestamp=timestamp, name=name, path=path))
        return migrations

    def latest_snapshot(self, default_schema: str = DEFAULT_SCHEMA) -> Optional[SchemaSnapshot]:
        """Snapshot stored with the newest migration that has one."""
        for migration in reversed(self.list_migrations()):
            path = migration.path / self.output.snapshot_filename
            if path.exists():
                logger.debug(f"Using snapshot of migration {migration.directory_name}")
                return load_snapshot(path, default_schema)
        return None
