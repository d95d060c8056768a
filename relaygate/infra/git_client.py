"""
Git client infrastructure for relaygate.

Provides a clean abstraction over git command execution against a
repository's git directory (bare or not). All object-store queries the
pipeline makes go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

The pipeline only ever reads: diff two revisions, show a blob, list a
tree, verify a commit signature.
"""

import subprocess
from typing import List, Optional, Sequence, Tuple, Union
import logging

from ..domain.change import ChangeEntry, ChangeStatus
from ..exit_codes import ExtractionError

logger = logging.getLogger(__name__)

Output = Union[str, bytes, None]


class GitClient:
    """
    Abstraction over git commands for one git directory.

    Example:
        client = GitClient("/srv/repos/movies.git")
        for change in client.diff_name_status(old, new):
            print(change.status, change.path)
    """

    def __init__(self, git_dir: str, timeout: int = 30):
        """
        Initialize GitClient.

        Args:
            git_dir: Path to the repository's git directory
            timeout: Command timeout in seconds (default: 30)
        """
        self.git_dir = git_dir
        self.timeout = timeout
        self._empty_tree: Optional[str] = None

    def _run(
        self,
        args: Sequence[str],
        config: Sequence[Tuple[str, str]] = (),
        binary: bool = False,
        input_data: Optional[bytes] = None,
    ) -> Tuple[Output, int]:
        """
        Run a git command.

        Args:
            args: git arguments after ``--git-dir``
            config: ``-c key=value`` pairs applied to this command only
            binary: Return stdout as bytes instead of text
            input_data: Bytes written to the command's stdin

        Returns:
            Tuple of (stdout, returncode); stdout is None when the command
            could not run at all
        """
        cmd = ['git']
        for key, value in config:
            cmd += ['-c', f'{key}={value}']
        cmd += ['--git-dir', self.git_dir, *args]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                input=input_data if input_data is not None else b'',
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out: {' '.join(cmd)}")
            return None, -1
        except OSError as e:
            logger.error(f"Git command failed: {' '.join(cmd)} - {e}")
            return None, -1

        if result.returncode != 0:
            stderr = result.stderr.decode('utf-8', errors='replace').strip()
            logger.debug(f"git {' '.join(args)} exited {result.returncode}: {stderr}")

        if binary:
            return result.stdout, result.returncode
        return result.stdout.decode('utf-8', errors='replace'), result.returncode

    def empty_tree(self) -> str:
        """Object id of the empty tree in this repository's hash format."""
        if self._empty_tree is None:
            output, code = self._run(['hash-object', '-t', 'tree', '--stdin'])
            if code != 0 or not output:
                raise ExtractionError("git hash-object failed; cannot resolve the empty tree")
            self._empty_tree = output.strip()
        return self._empty_tree

    def diff_name_status(self, old_rev: str, new_rev: str) -> List[ChangeEntry]:
        """
        List what changed between two revisions.

        Args:
            old_rev: Previous revision, or an all-zero id for "nothing before"
            new_rev: Proposed revision

        Returns:
            ChangeEntry list in diff order

        Raises:
            ExtractionError: if git cannot compare the revisions
        """
        base = self.empty_tree() if set(old_rev) <= {'0'} else old_rev
        output, code = self._run(
            ['diff', '--name-status', '--no-renames', '-z', base, new_rev]
        )
        if code != 0 or output is None:
            raise ExtractionError(f"git diff {old_rev}..{new_rev} failed in {self.git_dir}")

        return parse_name_status(output)

    def show(self, rev: str, path: str) -> Optional[bytes]:
        """
        Read the bytes stored at ``path`` in ``rev``.

        Returns:
            File contents, or None when the path does not exist there
        """
        output, code = self._run(['cat-file', 'blob', f'{rev}:{path}'], binary=True)
        if code != 0:
            return None
        return output

    def ls_tree(self, rev: str, directory: str) -> List[str]:
        """
        List the files (blobs) directly inside ``directory`` at ``rev``.

        Returns:
            File names relative to ``directory``; empty if it does not exist
        """
        output, code = self._run(['ls-tree', '-z', f'{rev}:{directory}'])
        if code != 0 or not output:
            return []

        names = []
        for record in output.split('\0'):
            if not record or '\t' not in record:
                continue
            meta, name = record.split('\t', 1)
            parts = meta.split()
            if len(parts) >= 2 and parts[1] == 'blob':
                names.append(name)
        return names

    def verify_commit(self, rev: str, allowed_signers_file: Optional[str] = None) -> bool:
        """
        Verify the signature on commit ``rev``.

        Without ``allowed_signers_file`` git uses whatever verification the
        repository is configured for. With it, SSH verification is forced
        against that allowed-signers list.

        Returns:
            True if git accepted the signature
        """
        config: List[Tuple[str, str]] = []
        if allowed_signers_file:
            config = [
                ('gpg.format', 'ssh'),
                ('gpg.ssh.allowedSignersFile', allowed_signers_file),
            ]
        _, code = self._run(['verify-commit', rev], config=config)
        return code == 0


def parse_name_status(output: str) -> List[ChangeEntry]:
    """Parse NUL-delimited ``git diff --name-status -z`` output."""
    parts = [p for p in output.split('\0') if p]
    entries = []
    for i in range(0, len(parts) - 1, 2):
        status, path = parts[i], parts[i + 1]
        if not status.strip():
            break
        entries.append(ChangeEntry(status=ChangeStatus.from_git(status), path=path))
    return entries
