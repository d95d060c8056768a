"""
File store infrastructure for relaygate.

Provides JSON document persistence with:
- Atomic writes (write to temp, then rename)
- Automatic parent directory creation
- Tolerant reads: a missing or corrupt file yields the default document

The store is read and rewritten as a whole. It does not lock; callers
serialize invocations against the same repository.
"""

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class FileStore:
    """
    Whole-document JSON persistence with atomic writes.

    Example:
        store = FileStore(Path(git_dir) / "relay_index.json", default={"items": []})
        data = store.read()
        data["items"].append({...})
        store.write(data)
    """

    def __init__(self, path: Path, default: Optional[Dict[str, Any]] = None):
        """
        Initialize FileStore.

        Args:
            path: Path to JSON file
            default: Document returned when the file is missing or unreadable
        """
        self.path = Path(path).expanduser()
        self.default = default if default is not None else {}

    def _write_atomic(self, data: Dict[str, Any]) -> None:
        """Write data atomically using temp file and rename."""
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write to temp file in same directory
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp"
        )

        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False)
                f.write('\n')

            # Atomic rename
            os.replace(temp_path, self.path)

        except Exception:
            # Clean up temp file on error
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def read(self) -> Dict[str, Any]:
        """
        Read the whole document.

        Returns:
            The stored object, or a copy of the default document
        """
        if not self.path.exists():
            return copy.deepcopy(self.default)

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.warning(f"Error reading {self.path}: {e}; starting from an empty document")
            return copy.deepcopy(self.default)

        if not isinstance(data, dict):
            logger.warning(f"{self.path} does not hold a JSON object; starting from an empty document")
            return copy.deepcopy(self.default)
        return data

    def write(self, data: Dict[str, Any]) -> None:
        """
        Replace the whole document.

        Args:
            data: Dictionary to write
        """
        self._write_atomic(data)
