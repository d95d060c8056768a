"""
Invocation context domain objects for relaygate.

The caller (a git hook, a server dispatcher) supplies the repository
location, the revision pair and the branch, either as environment
variables or as a JSON context document. The context document may also
carry pre-resolved file contents so the pipeline can run where the new
revision's objects are not readable yet.
"""

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..exit_codes import UsageError

ZERO_REVISION = "0000000000000000000000000000000000000000"


class HookKind(Enum):
    """When the pipeline runs."""
    PRE_COMMIT = "pre-commit"     # Local commit; no signature rescue
    PRE_RECEIVE = "pre-receive"   # Push/receive; signed commits may override


@dataclass(frozen=True)
class InvocationContext:
    """Everything the pipeline knows about one invocation."""
    git_dir: str
    new_rev: str
    old_rev: str = ZERO_REVISION
    branch: str = "main"
    files: Optional[Dict[str, bytes]] = field(default=None, compare=False)

    @classmethod
    def from_sources(
        cls,
        environ: Mapping[str, str],
        document: Optional[Dict[str, Any]] = None,
        default_branch: str = "main",
        **overrides: Optional[str],
    ) -> 'InvocationContext':
        """
        Build a context from the environment and an optional context document.

        Precedence (highest first): explicit overrides, document values,
        environment variables (GIT_DIR, OLD_COMMIT, NEW_COMMIT, BRANCH).

        Raises:
            UsageError: if the git directory or new revision is missing
        """
        document = document or {}

        def pick(override_key: str, doc_keys: tuple, env_key: str) -> Optional[str]:
            value = overrides.get(override_key)
            if value:
                return value
            for key in doc_keys:
                if document.get(key):
                    return str(document[key])
            return environ.get(env_key) or None

        git_dir = pick('git_dir', ('git_dir', 'repo_path'), 'GIT_DIR')
        new_rev = pick('new_rev', ('new_commit',), 'NEW_COMMIT')
        old_rev = pick('old_rev', ('old_commit',), 'OLD_COMMIT') or ZERO_REVISION
        branch = pick('branch', ('branch',), 'BRANCH') or default_branch

        missing = [name for name, value in (('GIT_DIR', git_dir), ('NEW_COMMIT', new_rev)) if not value]
        if missing:
            raise UsageError(f"missing required context ({', '.join(missing)})")

        files = None
        if document.get('files') is not None:
            files = decode_files(document['files'])

        return cls(git_dir=git_dir, new_rev=new_rev, old_rev=old_rev, branch=branch, files=files)


def decode_files(raw: Any) -> Dict[str, bytes]:
    """
    Decode the context document's ``files`` map (path -> base64 string).

    Every value must be a base64 string (or bytes, when built in-process).

    Raises:
        UsageError: if the map or any of its values is malformed
    """
    if not isinstance(raw, dict):
        raise UsageError("context 'files' must be an object mapping paths to base64 content")

    files: Dict[str, bytes] = {}
    for path, value in raw.items():
        if isinstance(value, bytes):
            files[str(path)] = value
            continue
        if not isinstance(value, str):
            raise UsageError(f"context 'files' entry {path!r} must be a base64 string")
        try:
            files[str(path)] = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise UsageError(f"context 'files' entry {path!r} is not valid base64") from None
    return files
