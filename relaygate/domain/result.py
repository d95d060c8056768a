"""
Pipeline result domain object for relaygate.

Reported back to the caller after every invocation: accept or reject,
the message to show, and the exit code to return.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..exit_codes import REJECTED, SUCCESS
from .context import HookKind
from .verdict import ValidationVerdict


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""
    kind: HookKind
    accepted: bool
    message: str
    verdict: ValidationVerdict
    signature_verified: Optional[bool] = None  # None when no check was attempted
    index_changes: int = 0
    changes: int = 0

    @property
    def exit_code(self) -> int:
        return SUCCESS if self.accepted else REJECTED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'kind': self.kind.value,
            'accepted': self.accepted,
            'message': self.message,
            'verdict': self.verdict.to_dict(),
            'changes': self.changes,
            'index_changes': self.index_changes,
        }
        if self.signature_verified is not None:
            result['signature_verified'] = self.signature_verified
        return result
