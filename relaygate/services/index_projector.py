"""
Index projector for relaygate.

Keeps the derived metadata index in step with accepted changes. Each
metadata file in the changeset becomes one index entry keyed by
(branch, directory); deleting the file removes the entry. The index is
a single JSON document, ``{"items": [...]}``, rewritten whole.

Metadata files are read as YAML; documents YAML cannot read go to the
schema layer's JSON and ``key: value`` parser. YAML scalars that JSON
cannot hold (dates, timestamps) are stored as ISO-8601 strings.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import yaml

from ..domain.change import ChangeEntry
from ..domain.index_entry import IndexKey, build_entry
from ..infra.file_store import FileStore
from ..infra.tree_reader import TreeReader
from ..schema import METADATA_FILENAMES, is_metadata_path, parse_document

logger = logging.getLogger(__name__)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with milliseconds, e.g. 2026-01-31T12:00:00.000Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def to_json_value(value: Any) -> Any:
    """Convert a parsed YAML value into something the JSON index can hold."""
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_json_value(v) for v in value]
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def load_metadata(data: Optional[bytes]) -> Optional[Dict[str, Any]]:
    """
    Parse a metadata file for the index.

    Returns:
        The document as a JSON-ready dict, or None when it is unreadable or
        not a mapping
    """
    if data is None:
        return None
    try:
        document = yaml.safe_load(data)
    except yaml.YAMLError:
        return parse_document(data)
    if isinstance(document, dict):
        return to_json_value(document)
    return None


class IndexProjector:
    """
    Applies accepted metadata changes to the index.

    Example:
        projector = IndexProjector(FileStore(Path(git_dir) / "relay_index.json"))
        applied = projector.apply("main", changes, reader)
    """

    def __init__(self, store: FileStore, metadata_filenames: Iterable[str] = METADATA_FILENAMES):
        self.store = store
        self.metadata_filenames = tuple(metadata_filenames)

    def load_items(self) -> List[Dict[str, Any]]:
        """Current entries; malformed records are dropped with a warning."""
        data = self.store.read()
        items = data.get('items')
        if not isinstance(items, list):
            if items is not None:
                logger.warning(f"{self.store.path}: 'items' is not a list; starting from an empty index")
            return []

        kept = [item for item in items if IndexKey.of(item) is not None]
        if len(kept) != len(items):
            logger.warning(f"{self.store.path}: dropped {len(items) - len(kept)} malformed entries")
        return kept

    def apply(
        self,
        branch: str,
        changes: Iterable[ChangeEntry],
        reader: TreeReader,
        now: Optional[str] = None,
    ) -> int:
        """
        Project ``changes`` on ``branch`` into the index.

        Non-metadata paths are ignored. Unreadable or malformed documents
        are skipped and leave any existing entry untouched.

        Returns:
            Number of changes applied; the index is only written when
            this is non-zero
        """
        metadata_changes = [c for c in changes if is_metadata_path(c.path, self.metadata_filenames)]
        if not metadata_changes:
            return 0

        now = now or utc_timestamp()
        items = self.load_items()
        positions = {IndexKey.of(item): i for i, item in enumerate(items)}
        applied = 0

        for change in metadata_changes:
            key = IndexKey.for_path(branch, change.path)

            if change.is_deleted:
                if key in positions:
                    del items[positions[key]]
                    positions = {IndexKey.of(item): i for i, item in enumerate(items)}
                    logger.debug(f"Index: removed {key.meta_dir} on {key.branch}")
                    applied += 1
                continue

            document = load_metadata(reader.read(change.path))
            if document is None:
                logger.warning(f"Index: skipping {change.path}; not a readable metadata document")
                continue

            if key in positions:
                index = positions[key]
                items[index] = build_entry(document, key, now, previous=items[index])
                logger.debug(f"Index: replaced {key.meta_dir} on {key.branch}")
            else:
                items.append(build_entry(document, key, now))
                positions[key] = len(items) - 1
                logger.debug(f"Index: added {key.meta_dir} on {key.branch}")
            applied += 1

        if applied:
            self.store.write({'items': items})
            logger.info(f"Index updated: {applied} change(s) applied to {self.store.path}")
        return applied
