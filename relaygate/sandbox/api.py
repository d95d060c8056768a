"""
Capability surface handed to validation programs.

A validation program receives exactly one object, ``api``, and can do
nothing else that reaches outside its interpreter:

    api.list_staged()          fresh list of {"status", "path"} dicts
    api.read_file(path)        bytes at the new revision, or None

plus pure helpers that need no capability at all: the metadata parser and
schema checks, and the configured path whitelist.

Example validation program (.relay/validation.py):

    def validate(api):
        errors = []
        for change in api.list_staged():
            if change["status"] == "D" or not api.is_metadata_path(change["path"]):
                continue
            doc = api.parse_document(api.read_file(change["path"]))
            errors.extend(api.check_metadata(doc, change["path"]))
        return {"ok": not errors, "message": "\\n".join(errors)}
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from .. import schema
from ..whitelist import PathPolicy


class PolicyApi:
    """What a validation program may call."""

    def __init__(
        self,
        changes: Iterable[Dict[str, Any]],
        read_file: Callable[[str], Optional[bytes]],
        whitelist: Iterable[str] = (),
        metadata_filenames: Iterable[str] = schema.METADATA_FILENAMES,
    ):
        self._changes = tuple({'status': c['status'], 'path': c['path']} for c in changes)
        self._read_file = read_file
        self._policy = PathPolicy(whitelist)
        self._metadata_filenames = tuple(metadata_filenames)

    def list_staged(self) -> List[Dict[str, str]]:
        """Snapshot of the changeset; mutating it changes nothing."""
        return [dict(change) for change in self._changes]

    def read_file(self, path: str) -> Optional[bytes]:
        data = self._read_file(str(path))
        return bytes(data) if data is not None else None

    @property
    def whitelist(self) -> tuple:
        return self._policy.patterns

    def path_allowed(self, path: str) -> bool:
        return self._policy.allows(path)

    def is_metadata_path(self, path: str) -> bool:
        return schema.is_metadata_path(path, self._metadata_filenames)

    parse_document = staticmethod(schema.parse_document)
    check_metadata = staticmethod(schema.check_metadata)
    check_title = staticmethod(schema.check_title)
    check_release_date = staticmethod(schema.check_release_date)
    check_genre = staticmethod(schema.check_genre)
