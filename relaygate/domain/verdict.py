"""
Validation verdict domain object for relaygate.

Exactly one verdict is produced per invocation. A failed verdict always
carries a non-empty message listing every violation, one per line.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

DEFAULT_FAILURE_MESSAGE = "validation failed"


@dataclass(frozen=True)
class ValidationVerdict:
    """Pass/fail outcome of validating a changeset."""
    ok: bool
    message: Optional[str] = None

    def __post_init__(self):
        if not self.ok and not (self.message and self.message.strip()):
            object.__setattr__(self, 'message', DEFAULT_FAILURE_MESSAGE)

    @classmethod
    def accept(cls) -> 'ValidationVerdict':
        return cls(ok=True)

    @classmethod
    def reject(cls, message: str) -> 'ValidationVerdict':
        return cls(ok=False, message=message)

    @classmethod
    def from_violations(cls, violations: Iterable[str]) -> 'ValidationVerdict':
        """Build a verdict from violation lines; no violations means accept."""
        lines = [v for v in violations if v]
        if not lines:
            return cls.accept()
        return cls(ok=False, message="\n".join(lines))

    @classmethod
    def from_result(cls, value: Any) -> 'ValidationVerdict':
        """
        Normalize whatever a validation program returned.

        None and True accept, False rejects with the default message, and
        a mapping or object with an ``ok`` field (plus optional
        ``message``) is taken as-is.

        Raises:
            TypeError: if the value has no recognizable verdict shape
        """
        if isinstance(value, ValidationVerdict):
            return value
        if value is None or value is True:
            return cls.accept()
        if value is False:
            return cls.reject(DEFAULT_FAILURE_MESSAGE)

        if isinstance(value, dict):
            if 'ok' not in value:
                raise TypeError("verdict mapping has no 'ok' field")
            ok, message = value['ok'], value.get('message')
        elif hasattr(value, 'ok'):
            ok, message = value.ok, getattr(value, 'message', None)
        else:
            raise TypeError(f"unsupported verdict type {type(value).__name__}")

        if message is not None and not isinstance(message, str):
            message = str(message)
        if not ok:
            return cls.reject(message or DEFAULT_FAILURE_MESSAGE)
        return cls(ok=True, message=message or None)

    @property
    def violations(self) -> list:
        """The message split back into one entry per violation."""
        if self.ok or not self.message:
            return []
        return [line for line in self.message.split("\n") if line]

    def merge(self, other: 'ValidationVerdict') -> 'ValidationVerdict':
        """
        Combine two verdicts; the result fails if either fails.

        Violations keep their order and duplicates are reported once.
        """
        if self.ok and other.ok:
            return ValidationVerdict.accept()
        seen = []
        for line in self.violations + other.violations:
            if line not in seen:
                seen.append(line)
        return ValidationVerdict.from_violations(seen)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'ok': self.ok}
        if self.message:
            result['message'] = self.message
        return result
