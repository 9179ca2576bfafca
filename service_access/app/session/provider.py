"""
Session provider contract.

Authentication happens elsewhere; the access layer only consumes an
already-authenticated identity and is told when it changes.
"""

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Union


@dataclass(frozen=True)
class SessionIdentity:
    id: str
    email: str


AuthListener = Callable[[Optional[SessionIdentity]], Union[None, Awaitable[None]]]


class SessionProvider(ABC):

    @abstractmethod
    def current_identity(self) -> Optional[SessionIdentity]:
        ...

    @abstractmethod
    def on_auth_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""


class StaticSessionProvider(SessionProvider):
    """Provider whose identity is set by the caller (HTTP request, tests)."""

    def __init__(self, identity: Optional[SessionIdentity] = None):
        self._identity = identity
        self._listeners: List[AuthListener] = []

    def current_identity(self) -> Optional[SessionIdentity]:
        return self._identity

    def on_auth_change(self, callback: AuthListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def _remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove

    async def set_identity(self, identity: Optional[SessionIdentity]) -> None:
        self._identity = identity
        for listener in list(self._listeners):
            result = listener(identity)
            if inspect.isawaitable(result):
                await result
