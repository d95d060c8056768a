"""
Validation sandbox for relaygate.

Repository-supplied validation programs are untrusted. They run in a
separate interpreter (``worker``) that can only talk to the host over a
JSON-lines channel (``protocol``) and only sees the capability object
described in ``api``. ``runner.SandboxValidator`` is the host side; it is
not imported here because the worker imports this package too.
"""

from .api import PolicyApi

__all__ = ['PolicyApi']
