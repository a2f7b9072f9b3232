"""Shared store for values passed between jobs.

The host owns one SharedStore per run; every job sees the same instance
through a proxy. Persistence to JSON is only used by the CLI, so that
separate `jobbridge run` invocations can share state.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


class SharedStore:
    """String-keyed map of arbitrary values, shared across jobs in a run."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(data or {})

    def contains(self, key: str) -> bool:
        return key in self._data

    def count(self) -> int:
        return len(self._data)

    def insert(self, key: str, value: Any) -> None:
        """Insert or replace the value for key."""
        self._data[key] = value
        logger.debug(f"Shared store: set {key}")

    def remove(self, key: str) -> bool:
        """Remove key; returns True if it was present."""
        if key not in self._data:
            return False
        del self._data[key]
        logger.debug(f"Shared store: removed {key}")
        return True

    def value(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    def __contains__(self, key: str) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        return self.count()

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())


def load_store(path: Path) -> SharedStore:
    """Load a shared store from a JSON file.

    Args:
        path: JSON file holding a mapping.

    Returns:
        SharedStore, or an empty store if the file doesn't exist or is corrupted.
    """
    path = Path(path).expanduser()
    if not path.exists():
        return SharedStore()

    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Ignoring unreadable shared store {path}: {e}")
        return SharedStore()

    if not isinstance(data, dict):
        logger.warning(f"Ignoring shared store {path}: not a JSON object")
        return SharedStore()
    return SharedStore(data)


def save_store(store: SharedStore, path: Path) -> None:
    """Save a shared store to a JSON file.

    Values that JSON cannot represent are written as strings.
    """
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(store.to_dict(), f, indent=2, default=str)
