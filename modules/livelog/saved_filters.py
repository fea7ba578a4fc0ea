"""Saved filter records and their JSON store.

Saved filters are inert ``{name, pattern, is_regex}`` records. Activating one
compiles a fresh ActiveFilter; nothing compiled is ever persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from config.constants import ApplicationConstants
from utils import common
from utils.json_utils import load_json_from_file, save_json_atomic

from .filter_engine import ActiveFilter, compile_filter

logger = common.get_logger('saved_filters')


@dataclass(frozen=True)
class SavedFilter:
    """Named filter pattern for persistence."""

    name: str
    pattern: str
    is_regex: bool = False

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "pattern": self.pattern,
            "is_regex": self.is_regex,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SavedFilter":
        return cls(
            name=str(data.get("name", "")),
            pattern=str(data.get("pattern", "")),
            is_regex=bool(data.get("is_regex", False)),
        )

    def activate(self) -> ActiveFilter:
        return compile_filter(self.pattern, self.is_regex)


def upsert_filter(filters: Iterable[SavedFilter], saved: SavedFilter) -> List[SavedFilter]:
    """Return ``filters`` with ``saved`` added, replacing an entry of the same name in place."""
    result: List[SavedFilter] = []
    replaced = False
    for existing in filters:
        if existing.name == saved.name:
            result.append(saved)
            replaced = True
        else:
            result.append(existing)
    if not replaced:
        result.append(saved)
    return result


class SavedFilterStore:
    """Load and save saved filters as a JSON list."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = Path(path or ApplicationConstants.SAVED_FILTERS_PATH).expanduser()

    def load(self) -> List[SavedFilter]:
        """Return the stored filters; a missing or unreadable file yields an empty list."""
        data = load_json_from_file(str(self.path), default=None)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Saved filters file %s has unexpected format", self.path)
            return []

        filters: List[SavedFilter] = []
        for entry in data:
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed saved filter entry: %r", entry)
                continue
            saved = SavedFilter.from_dict(entry)
            if not saved.name:
                logger.warning("Skipping saved filter without a name")
                continue
            filters = upsert_filter(filters, saved)
        logger.debug("Loaded %s saved filter(s) from %s", len(filters), self.path)
        return filters

    def save(self, filters: Iterable[SavedFilter]) -> bool:
        """Write all filters atomically. Returns True on success."""
        payload = [saved.to_dict() for saved in filters]
        if not save_json_atomic(str(self.path), payload):
            return False
        logger.info("Saved %s filter(s) to %s", len(payload), self.path)
        return True


__all__ = ['SavedFilter', 'SavedFilterStore', 'upsert_filter']
