"""
Signature gate for relaygate.

Decides whether a revision carries a signature the repository trusts.
Changes to the hook scripts always need one; at receive time a verified
signature can also override a failed verdict.

Verification tries git's own configuration first, then the repository's
published keys: every file in the signer directories at the new
revision is concatenated into a temporary allowed-signers file for SSH
verification.
"""

import logging
import os
import posixpath
import tempfile
from typing import Iterable, List, Sequence

from ..domain.change import ChangeEntry
from ..infra.git_client import GitClient
from ..infra.tree_reader import TreeReader

logger = logging.getLogger(__name__)


class SignatureGate:
    """
    Signature checks for one repository.

    Example:
        gate = SignatureGate(git, [".relay/pre-commit.py"], [".relay/.ssh", ".ssh"])
        if gate.requires_signature(changes) and not gate.verify(new_rev, reader):
            reject(...)
    """

    def __init__(
        self,
        git: GitClient,
        protected_paths: Iterable[str],
        signer_dirs: Sequence[str] = ('.relay/.ssh', '.ssh'),
    ):
        """
        Initialize SignatureGate.

        Args:
            git: Client for the repository being validated
            protected_paths: Paths whose change always requires a signature
            signer_dirs: Directories holding allowed-signers files, in order
        """
        self.git = git
        self.protected_paths = frozenset(protected_paths)
        self.signer_dirs = list(signer_dirs)

    def requires_signature(self, changes: Iterable[ChangeEntry]) -> bool:
        """True if any change touches a protected path."""
        return any(change.path in self.protected_paths for change in changes)

    def collect_signers(self, reader: TreeReader) -> bytes:
        """Contents of every signer file at the new revision, newline-joined."""
        chunks: List[bytes] = []
        for directory in self.signer_dirs:
            for path in sorted(reader.list_dir(directory)):
                data = reader.read(path)
                if not data:
                    continue
                logger.debug(f"Allowed signers from {path}")
                chunks.append(data if data.endswith(b'\n') else data + b'\n')
        return b''.join(chunks)

    def verify(self, rev: str, reader: TreeReader) -> bool:
        """
        Check the signature on ``rev``.

        Never raises for a failed or impossible verification; that is
        simply "not verified".
        """
        if self.git.verify_commit(rev):
            logger.info(f"Signature on {rev[:12]} verified")
            return True

        signers = self.collect_signers(reader)
        if not signers:
            logger.debug(f"No allowed signers found in {', '.join(self.signer_dirs)}")
            return False

        fd, signers_path = tempfile.mkstemp(prefix='relaygate-signers-', suffix='.txt')
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(signers)
            verified = self.git.verify_commit(rev, allowed_signers_file=signers_path)
        except OSError as e:
            logger.warning(f"Could not write allowed signers file: {e}")
            verified = False
        finally:
            try:
                os.unlink(signers_path)
            except OSError:
                pass

        if verified:
            logger.info(f"Signature on {rev[:12]} verified against repository signers")
        return verified


def protected_paths(control_root: str, hook_scripts: Iterable[str]) -> List[str]:
    """Tree paths of the hook scripts under the control root."""
    return [posixpath.join(control_root, name) for name in hook_scripts]
