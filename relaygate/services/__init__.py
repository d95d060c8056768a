"""
Service layer for relaygate.

Contains the gate's business logic, built on the domain and
infrastructure layers:
- PipelineOrchestrator: One hook invocation from changeset to decision
- SignatureGate: Signed-commit requirements and verification
- IndexProjector: Metadata index maintenance
- query_index: Reading the index back

Services are the primary API for commands to use.
"""

from .changeset import extract_changes
from .signature_gate import SignatureGate
from .index_projector import IndexProjector
from .index_query import QueryResult, query_index
from .pipeline import PipelineOrchestrator

__all__ = [
    'extract_changes',
    'SignatureGate',
    'IndexProjector',
    'QueryResult',
    'query_index',
    'PipelineOrchestrator',
]
