"""
relaygate - A commit gate for git-backed content repositories.

relaygate runs at local-commit time (pre-commit) and at push time
(pre-receive). It checks every changed path against a whitelist, checks
metadata documents against a schema, runs the repository's own
validation program in a sandbox, requires signed commits for changes to
the hook scripts, and keeps a JSON index of the metadata in the tree.

Quick Start:
    from relaygate import InvocationContext, HookKind
    from relaygate.services import PipelineOrchestrator
    from relaygate.config import load_config

    context = InvocationContext.from_sources(os.environ)
    result = PipelineOrchestrator(load_config(context.git_dir)).run(
        context, HookKind.PRE_RECEIVE
    )
    print(result.message)

Writing a validation program (.relay/validation.py):
    def validate(api):
        for change in api.list_staged():
            ...
        return {"ok": True}

Domain Objects:
    ChangeEntry - One changed path and its status
    ValidationVerdict - Pass/fail with every violation
    InvocationContext - Repository, revisions, branch

Services (relaygate.services):
    PipelineOrchestrator - One hook invocation
    SignatureGate - Signed-commit checks
    IndexProjector - Metadata index maintenance
"""

__version__ = "0.3.0"

from .domain import (
    ChangeEntry,
    ChangeStatus,
    ValidationVerdict,
    HookKind,
    InvocationContext,
    PipelineResult,
)

# Services stay out of the package namespace: the sandbox worker imports
# this package and must not load subprocess.

__all__ = [
    '__version__',
    'ChangeEntry',
    'ChangeStatus',
    'ValidationVerdict',
    'HookKind',
    'InvocationContext',
    'PipelineResult',
]
