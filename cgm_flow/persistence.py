"""
Key-value persistence for flow snapshots.

The controller treats storage as an opaque get/set/delete blob store keyed
by string. Values are JSON text produced by FlowController.snapshot().
"""

import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class KeyValueStore:
    """
    Minimal storage interface used by FlowController.

    Implementations must return None for missing keys and make delete()
    a no-op for missing keys.
    """

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """In-process store (tests, console harness without --persist)"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JSONFileStore(KeyValueStore):
    """
    One JSON file per key.

    Layout:
        outputs/flow_state/
            cgm-flow-state_3f2a9c1b.json
            ...

    Design:
    - Keys are hashed into filenames (keys may contain ':' or '/')
    - Writes go through a temp file + rename so a crash never leaves a
      half-written snapshot behind
    """

    def __init__(self, base_dir: str = "outputs/flow_state"):
        """
        Initialize file store.

        Args:
            base_dir: Directory holding snapshot files (created if missing)
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"JSONFileStore initialized: {self.base_dir}")

    def _path_for(self, key: str) -> Path:
        prefix = key.split(':', 1)[0]
        digest = hashlib.sha256(key.encode('utf-8')).hexdigest()[:16]
        return self.base_dir / f"{prefix}_{digest}.json"

    def get(self, key: str) -> Optional[str]:
        """
        Read the stored text for key.

        Returns:
            File contents, or None if nothing is stored
        """
        path = self._path_for(key)
        if not path.exists():
            return None

        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)

        fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(value)
            os.replace(tmp_name, path)
        except Exception:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug(f"Saved snapshot for {key}: {path.name}")

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        if path.exists():
            path.unlink()
            logger.info(f"Deleted snapshot for {key}: {path.name}")
