"""
Index entry domain objects for relaygate.

An index entry is a parsed metadata document plus system fields. Entries
are identified by the tuple (branch, metadata directory); the tuple is the
key, never a concatenated string, so directory names may contain any
characters.
"""

import posixpath
from typing import Any, Dict, NamedTuple, Optional

BRANCH_FIELD = '_branch'
META_DIR_FIELD = '_meta_dir'
CREATED_FIELD = '_created_at'
UPDATED_FIELD = '_updated_at'

SYSTEM_FIELDS = (BRANCH_FIELD, META_DIR_FIELD, CREATED_FIELD, UPDATED_FIELD)


class IndexKey(NamedTuple):
    """Composite primary key of an index entry."""
    branch: str
    meta_dir: str

    @classmethod
    def for_path(cls, branch: str, path: str) -> 'IndexKey':
        """Key for the metadata file at ``path`` on ``branch``."""
        return cls(branch, posixpath.dirname(path) or '.')

    @classmethod
    def of(cls, entry: Any) -> Optional['IndexKey']:
        """Key of a stored entry, or None if the entry is not a well-formed record."""
        if not isinstance(entry, dict):
            return None
        branch = entry.get(BRANCH_FIELD)
        meta_dir = entry.get(META_DIR_FIELD)
        if not isinstance(branch, str) or not isinstance(meta_dir, str):
            return None
        return cls(branch, meta_dir)


def build_entry(
    document: Dict[str, Any],
    key: IndexKey,
    now: str,
    previous: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the stored record for ``document`` under ``key``.

    The record replaces any previous one entirely; only the previous
    ``_created_at`` survives. System fields always win over document fields
    of the same name.
    """
    entry = {k: v for k, v in document.items() if k not in SYSTEM_FIELDS}
    entry[BRANCH_FIELD] = key.branch
    entry[META_DIR_FIELD] = key.meta_dir
    created = previous.get(CREATED_FIELD) if previous else None
    entry[CREATED_FIELD] = created or now
    entry[UPDATED_FIELD] = now
    return entry
