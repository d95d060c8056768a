"""
Tree reader for relaygate.

Reads file contents at the proposed revision. Absence is a normal answer
(None), used to detect a missing validation program or a deleted file.
Pre-resolved contents from the invocation context win over the object
store.
"""

import posixpath
from typing import Dict, List, Optional
import logging

from .git_client import GitClient

logger = logging.getLogger(__name__)


class TreeReader:
    """Read-only view of one revision's tree."""

    def __init__(self, git: GitClient, rev: str, files: Optional[Dict[str, bytes]] = None):
        self.git = git
        self.rev = rev
        self.files = files

    def read(self, path: str) -> Optional[bytes]:
        """Bytes at ``path``, or None if the path is absent."""
        path = _normalize(path)
        if self.files is not None and path in self.files:
            return self.files[path]
        return self.git.show(self.rev, path)

    def list_dir(self, directory: str) -> List[str]:
        """
        Paths of the files directly inside ``directory``.

        Pre-resolved files in that directory are listed together with the
        ones in the object store.
        """
        directory = _normalize(directory).rstrip('/')
        paths: List[str] = []
        if self.files is not None:
            for path in self.files:
                if posixpath.dirname(path) == directory:
                    paths.append(path)
        for name in self.git.ls_tree(self.rev, directory):
            path = f"{directory}/{name}"
            if path not in paths:
                paths.append(path)
        return paths


def _normalize(path: str) -> str:
    """Strip leading './' and '/' so lookups match tree paths."""
    while path.startswith('./'):
        path = path[2:]
    return path.lstrip('/')
