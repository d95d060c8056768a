"""
Changeset extraction for relaygate.

Turns an invocation context into the ordered list of changed paths. The
object store is only consulted when the caller did not already hand over
the files of the new revision.
"""

import logging
from typing import List

from ..domain.change import ChangeEntry, ChangeStatus
from ..domain.context import InvocationContext
from ..infra.git_client import GitClient

logger = logging.getLogger(__name__)


def extract_changes(context: InvocationContext, git: GitClient) -> List[ChangeEntry]:
    """
    List the changes the invocation proposes.

    With a context ``files`` map every key is reported as Modified, in map
    order. Otherwise the two revisions are diffed; an all-zero old
    revision is diffed against the empty tree.

    Raises:
        ExtractionError: if git cannot compute the diff
    """
    if context.files is not None:
        logger.debug(f"Changeset from context: {len(context.files)} file(s)")
        return [ChangeEntry(status=ChangeStatus.MODIFIED, path=path) for path in context.files]

    changes = git.diff_name_status(context.old_rev, context.new_rev)
    logger.debug(f"Changeset {context.old_rev[:12]}..{context.new_rev[:12]}: {len(changes)} change(s)")
    return changes
