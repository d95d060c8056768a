"""
Reference validation policy.

The baseline rules every content repository starts from: each changed
path must be on the whitelist, and each added or modified metadata file
must parse and satisfy the metadata schema. All violations are reported,
not just the first.

``validate`` takes the same ``api`` object a repository's own
``.relay/validation.py`` receives, so the two are interchangeable.
"""

from typing import Any, Dict, List

from .. import schema
from ..whitelist import NOT_ALLOWED


def validate(api) -> Dict[str, Any]:
    """Check whitelist and metadata schema for every staged change."""
    violations: List[str] = []

    for change in api.list_staged():
        path = change['path']
        if not api.path_allowed(path):
            violations.append(NOT_ALLOWED.format(path=path))

        # A deleted metadata file has nothing left to check
        if change['status'] == 'D' or not api.is_metadata_path(path):
            continue

        data = api.read_file(path)
        if data is None:
            violations.append(f"Cannot read {path}")
            continue
        try:
            text = data.decode('utf-8')
        except UnicodeDecodeError:
            violations.append(f"{path} is not UTF-8")
            continue

        violations.extend(schema.check_metadata(schema.parse_document(text), path))

    if violations:
        return {'ok': False, 'message': "\n".join(violations)}
    return {'ok': True}
