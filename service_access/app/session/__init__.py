"""
Session package.

Consumes the authenticated session identity and keeps its access
decision current from the initial fetch, realtime pushes and a periodic
re-evaluation tick.
"""

from .monitor import SessionAccessMonitor
from .provider import SessionIdentity, SessionProvider, StaticSessionProvider

__all__ = [
    "SessionAccessMonitor",
    "SessionIdentity",
    "SessionProvider",
    "StaticSessionProvider",
]
