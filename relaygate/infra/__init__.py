"""
Infrastructure layer for relaygate.

Contains abstractions for external systems:
- GitClient: Git command execution against a git directory
- TreeReader: File contents at the proposed revision
- FileStore: JSON document persistence

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient, parse_name_status
from .tree_reader import TreeReader
from .file_store import FileStore

__all__ = [
    'GitClient',
    'parse_name_status',
    'TreeReader',
    'FileStore',
]
