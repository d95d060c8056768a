"""
Pipeline orchestrator for relaygate.

One run per hook invocation:

    extract changes
      -> mandatory signature check (hook scripts changed)
      -> baseline policy + repository validation program (sandboxed)
      -> verdict
      -> [pre-receive, failed verdict] signature rescue
      -> accept: project metadata into the index | reject

Nothing is written unless the change is accepted.
"""

import logging
import posixpath
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import load_config
from ..domain.change import ChangeEntry
from ..domain.context import HookKind, InvocationContext
from ..domain.result import PipelineResult
from ..domain.verdict import ValidationVerdict
from ..infra.file_store import FileStore
from ..infra.git_client import GitClient
from ..infra.tree_reader import TreeReader
from ..sandbox.api import PolicyApi
from ..sandbox.runner import SandboxValidator
from ..whitelist import PathPolicy
from . import reference_policy
from .changeset import extract_changes
from .index_projector import IndexProjector
from .signature_gate import SignatureGate, protected_paths

logger = logging.getLogger(__name__)

UNSIGNED_HOOK_CHANGE = "Commit modifies {paths} but is not signed (signature verification failed)."


class PipelineOrchestrator:
    """
    Runs the commit gate for one invocation.

    Example:
        orchestrator = PipelineOrchestrator(load_config(git_dir))
        result = orchestrator.run(context, HookKind.PRE_RECEIVE)
        sys.exit(result.exit_code)
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        git_client: Optional[GitClient] = None,
        sandbox: Optional[SandboxValidator] = None,
        store: Optional[FileStore] = None,
    ):
        """
        Initialize PipelineOrchestrator.

        Args:
            config: Configuration dict (loads default if None)
            git_client: Git client to use (built from the context if None)
            sandbox: Sandbox for the validation program (built from config if None)
            store: Index store (``<GIT_DIR>/<index filename>`` if None)
        """
        self.config = config or load_config()
        self.git_client = git_client
        self.store = store
        self.sandbox = sandbox or self._build_sandbox()

    def _build_sandbox(self) -> SandboxValidator:
        sandbox_config = self.config['sandbox']
        return SandboxValidator(
            timeout=float(sandbox_config['timeout_seconds']),
            program_name=self.config['control']['validation_program'],
            legacy_exports=bool(sandbox_config.get('legacy_exports', False)),
            allowed_modules=sandbox_config.get('allowed_modules', []),
            whitelist=self.config['whitelist']['patterns'],
            metadata_filenames=self.config['metadata']['filenames'],
        )

    @property
    def control_root(self) -> str:
        return self.config['control']['root'].strip('/')

    @property
    def program_path(self) -> str:
        return posixpath.join(self.control_root, self.config['control']['validation_program'])

    def _git(self, context: InvocationContext) -> GitClient:
        if self.git_client is not None:
            return self.git_client
        return GitClient(context.git_dir, timeout=self.config['git']['timeout_seconds'])

    def _store(self, context: InvocationContext) -> FileStore:
        if self.store is not None:
            return self.store
        return FileStore(Path(context.git_dir) / self.config['index']['filename'], default={'items': []})

    def _signature_gate(self, git: GitClient) -> SignatureGate:
        control = self.config['control']
        return SignatureGate(
            git,
            protected_paths(self.control_root, control['hook_scripts']),
            control['signer_dirs'],
        )

    def baseline_verdict(self, changes: List[ChangeEntry], reader: TreeReader) -> ValidationVerdict:
        """Run the configured baseline policy in-process."""
        baseline = self.config['pipeline']['baseline']
        if baseline == 'none':
            return ValidationVerdict.accept()

        if baseline == 'whitelist':
            policy = PathPolicy(self.config['whitelist']['patterns'])
            return ValidationVerdict.from_violations(policy.violations(c.path for c in changes))

        api = PolicyApi(
            [c.to_dict() for c in changes],
            read_file=reader.read,
            whitelist=self.config['whitelist']['patterns'],
            metadata_filenames=self.config['metadata']['filenames'],
        )
        return ValidationVerdict.from_result(reference_policy.validate(api))

    def validate(self, changes: List[ChangeEntry], reader: TreeReader) -> ValidationVerdict:
        """Baseline and repository program verdicts, merged."""
        verdict = self.baseline_verdict(changes, reader)
        program_verdict = self.sandbox.run(reader.read(self.program_path), changes, reader.read)
        if not program_verdict.ok:
            logger.debug(f"{self.program_path} rejected the changeset")
        return verdict.merge(program_verdict)

    def run(self, context: InvocationContext, kind: HookKind) -> PipelineResult:
        """
        Decide whether to accept the invocation's changes.

        Returns:
            PipelineResult; rejections are results, not exceptions

        Raises:
            ExtractionError: if the changeset cannot be computed
        """
        git = self._git(context)
        reader = TreeReader(git, context.new_rev, context.files)
        changes = extract_changes(context, git)
        logger.info(f"{kind.value}: {len(changes)} change(s) on {context.branch}")

        gate = self._signature_gate(git)
        signature_verified: Optional[bool] = None

        if gate.requires_signature(changes):
            signature_verified = gate.verify(context.new_rev, reader)
            if not signature_verified:
                touched = sorted(c.path for c in changes if c.path in gate.protected_paths)
                verdict = ValidationVerdict.reject(UNSIGNED_HOOK_CHANGE.format(paths=", ".join(touched)))
                return self._reject(kind, verdict, changes, signature_verified)

        verdict = self.validate(changes, reader)

        if not verdict.ok:
            if kind is not HookKind.PRE_RECEIVE:
                return self._reject(kind, verdict, changes, signature_verified)

            if signature_verified is None:
                signature_verified = gate.verify(context.new_rev, reader)
            if not signature_verified:
                return self._reject(kind, verdict, changes, signature_verified)
            logger.warning(
                f"Signed commit {context.new_rev[:12]} overrides failed validation:\n{verdict.message}"
            )

        projector = IndexProjector(self._store(context), self.config['metadata']['filenames'])
        index_changes = projector.apply(context.branch, changes, reader)

        return PipelineResult(
            kind=kind,
            accepted=True,
            message=f"{kind.value} validation passed",
            verdict=verdict,
            signature_verified=signature_verified,
            index_changes=index_changes,
            changes=len(changes),
        )

    def _reject(
        self,
        kind: HookKind,
        verdict: ValidationVerdict,
        changes: List[ChangeEntry],
        signature_verified: Optional[bool],
    ) -> PipelineResult:
        logger.debug(f"{kind.value}: rejected with {len(verdict.violations)} violation(s)")
        return PipelineResult(
            kind=kind,
            accepted=False,
            message=verdict.message,
            verdict=verdict,
            signature_verified=signature_verified,
            changes=len(changes),
        )
