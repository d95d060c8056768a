"""
Domain layer for relaygate.

Contains pure domain objects with no I/O or side effects:
- ChangeEntry: One (status, path) pair of a changeset
- ValidationVerdict: Pass/fail outcome with every violation listed
- InvocationContext: Repository, revision pair, branch, pre-resolved files
- IndexKey: Composite (branch, directory) key of an index entry
- PipelineResult: What the caller gets back

These objects are immutable where possible and provide
serialization methods for JSON output.
"""

from .change import ChangeEntry, ChangeStatus
from .verdict import ValidationVerdict
from .context import HookKind, InvocationContext, ZERO_REVISION
from .index_entry import IndexKey, build_entry
from .result import PipelineResult

__all__ = [
    'ChangeEntry',
    'ChangeStatus',
    'ValidationVerdict',
    'HookKind',
    'InvocationContext',
    'ZERO_REVISION',
    'IndexKey',
    'build_entry',
    'PipelineResult',
]
