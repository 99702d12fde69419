"""
Per-script generation bookkeeping.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Set, Tuple

from ..schema.model import ForeignKey, Index


logger = logging.getLogger(__name__)


@dataclass
class GenerationContext:
    """Mutable state threaded through the phase generators of one script.

    It records which constraints have already been dropped or created so that
    no phase emits the same logical statement twice, and collects indexes the
    column phase had to drop so a later phase can recreate them.
    """

    dropped_foreign_keys: Set[Tuple[str, str]] = field(default_factory=set)
    created_foreign_keys: Set[Tuple[str, str]] = field(default_factory=set)
    dropped_primary_keys: Set[str] = field(default_factory=set)
    created_primary_keys: Set[str] = field(default_factory=set)
    dropped_indexes: Set[Tuple[str, str]] = field(default_factory=set)
    displaced_indexes: List[Index] = field(default_factory=list)
    deferred_indexes: List[Index] = field(default_factory=list)

    def mark_foreign_key_dropped(self, fk: ForeignKey) -> bool:
        """Record a drop; False when the constraint was already dropped."""
        if fk.key in self.dropped_foreign_keys:
            logger.debug(f"Foreign key {fk.name} on {fk.table} already dropped")
            return False
        self.dropped_foreign_keys.add(fk.key)
        return True

    def mark_foreign_key_created(self, fk: ForeignKey) -> bool:
        if fk.key in self.created_foreign_keys:
            logger.debug(f"Foreign key {fk.name} on {fk.table} already created")
            return False
        self.created_foreign_keys.add(fk.key)
        return True

    def mark_primary_key_dropped(self, table_name: str) -> bool:
        key = table_name.lower()
        if key in self.dropped_primary_keys:
            return False
        self.dropped_primary_keys.add(key)
        return True

    def mark_primary_key_created(self, table_name: str) -> bool:
        key = table_name.lower()
        if key in self.created_primary_keys:
            return False
        self.created_primary_keys.add(key)
        return True

    def primary_key_dropped(self, table_name: str) -> bool:
        return table_name.lower() in self.dropped_primary_keys

    def mark_index_dropped(self, index: Index) -> bool:
        key = (index.table.lower(), index.key)
        if key in self.dropped_indexes:
            return False
        self.dropped_indexes.add(key)
        return True

    def displace_index(self, index: Index) -> None:
        if all(i.key != index.key or i.table.lower() != index.table.lower() for i in self.displaced_indexes):
            self.displaced_indexes.append(index)

    def defer_index(self, index: Index) -> None:
        self.deferred_indexes.append(index)
