"""
Change domain objects for relaygate.

A ChangeEntry is one (status, path) pair of a changeset: the result of
diffing two revisions. Entries are immutable and keep the order in which
the diff reported them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class ChangeStatus(Enum):
    """Kind of change, stored as the git status letter."""
    ADDED = "A"
    MODIFIED = "M"
    DELETED = "D"

    @classmethod
    def from_git(cls, letter: str) -> 'ChangeStatus':
        """
        Map a git --name-status letter to a ChangeStatus.

        Type changes, renames and copies all leave a file at the reported
        path, so they count as modifications.
        """
        letter = letter.strip()[:1].upper()
        if letter == "A":
            return cls.ADDED
        if letter == "D":
            return cls.DELETED
        return cls.MODIFIED


@dataclass(frozen=True)
class ChangeEntry:
    """A single changed path in a changeset."""
    status: ChangeStatus
    path: str

    @property
    def is_deleted(self) -> bool:
        return self.status is ChangeStatus.DELETED

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict handed to validation programs."""
        return {'status': self.status.value, 'path': self.path}

    def __str__(self) -> str:
        return f"{self.status.value}\t{self.path}"
