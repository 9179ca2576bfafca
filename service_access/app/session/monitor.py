"""
Session access monitor.

Keeps one session's ``AccessDecision`` current: the profile is fetched
once when the session is established, then kept live through the
store's push subscription, and re-evaluated on a timer so that expiry
happens without any write. The initial fetch and every push go through
the same evaluator.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, List, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..entitlements.evaluator import EntitlementEvaluator, ProfileResult
from ..entitlements.models import AccessDecision
from ..globalconfig.cache import GlobalConfigCache
from ..profiles.models import TenantProfile
from ..profiles.store import ProfileStore, ProfileSubscription
from .provider import SessionIdentity, SessionProvider


DecisionListener = Callable[[Optional[AccessDecision]], None]


class SessionAccessMonitor:
    """Tracks the access decision of a single authenticated session."""

    def __init__(self,
                 store: ProfileStore,
                 evaluator: EntitlementEvaluator,
                 global_config: Optional[GlobalConfigCache] = None,
                 fetch_timeout_seconds: float = 5.0,
                 reevaluation_interval_seconds: Optional[float] = 60.0,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
                 metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.evaluator = evaluator
        self.global_config = global_config
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.reevaluation_interval_seconds = reevaluation_interval_seconds
        self.metrics = metrics
        self.logger = get_logger("access.session")
        self._clock = clock

        self.identity: Optional[SessionIdentity] = None
        self.profile: Optional[TenantProfile] = None
        self.decision: Optional[AccessDecision] = None
        self.loading = False

        self._result: ProfileResult = None
        self._sequence = 0
        self._applied_sequence = 0
        self._subscription: Optional[ProfileSubscription] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._unbind: Optional[Callable[[], None]] = None
        self._listeners: List[DecisionListener] = []

    def on_decision(self, listener: DecisionListener) -> None:
        self._listeners.append(listener)

    async def bind(self, provider: SessionProvider) -> Optional[AccessDecision]:
        """Follow ``provider``'s auth changes, starting with its current identity."""
        self._unbind = provider.on_auth_change(self.handle_auth_change)
        await self.handle_auth_change(provider.current_identity())
        return self.decision

    async def handle_auth_change(self, identity: Optional[SessionIdentity]) -> None:
        if identity is None:
            await self.teardown()
            return
        if identity == self.identity and self._subscription is not None:
            return
        await self.establish(identity)

    async def establish(self, identity: SessionIdentity) -> Optional[AccessDecision]:
        """Start tracking ``identity``.

        Waits at most ``fetch_timeout_seconds`` for the first profile. On
        timeout ``loading`` clears while the decision stays ``None``; the
        fetch keeps running and its result is applied when it arrives.
        """
        await self.teardown()
        self.identity = identity
        self.loading = True
        self.logger.info("Establishing session", profile_id=identity.id)

        if self.global_config is not None:
            self.global_config.refresh_in_background()

        try:
            self._subscription = await self.store.subscribe(identity.id, self._on_push)
        except Exception as e:
            self.logger.warning("Realtime subscription failed", profile_id=identity.id, error=str(e))

        sequence = self._next_sequence()
        self._fetch_task = asyncio.get_running_loop().create_task(self._fetch(sequence, identity))
        done, _ = await asyncio.wait({self._fetch_task}, timeout=self.fetch_timeout_seconds)
        if not done and self.loading:
            self.loading = False
            self.logger.warning(
                "Profile fetch timed out",
                profile_id=identity.id,
                timeout=self.fetch_timeout_seconds
            )

        self._start_ticker()
        return self.decision

    def reevaluate(self) -> Optional[AccessDecision]:
        """Recompute the decision from the last known profile with a fresh clock."""
        if self.identity is None or self._applied_sequence == 0:
            return self.decision
        self._set_decision(self.evaluator.evaluate(self._result, self._clock(), self.identity.email))
        return self.decision

    async def teardown(self) -> None:
        """Drop the session: stop timers and fetches, unsubscribe, clear the decision."""
        for task in (self._tick_task, self._fetch_task):
            if task is not None and not task.done():
                task.cancel()
        self._tick_task = None
        self._fetch_task = None

        if self._subscription is not None:
            subscription, self._subscription = self._subscription, None
            try:
                await subscription.unsubscribe()
            except Exception as e:
                self.logger.warning("Unsubscribe failed", profile_id=subscription.profile_id, error=str(e))

        had_session = self.identity is not None
        # Anything still in flight for the old session is stale from here on.
        self._applied_sequence = self._sequence
        self.identity = None
        self.profile = None
        self._result = None
        self.loading = False
        if had_session:
            self._set_decision(None)

    async def close(self) -> None:
        if self._unbind is not None:
            self._unbind()
            self._unbind = None
        await self.teardown()

    def apply(self, sequence: int, result: ProfileResult) -> bool:
        """Evaluate a fetch or push result; stale sequence numbers are dropped."""
        if self.identity is None or sequence <= self._applied_sequence:
            self.logger.debug("Dropping stale profile result", sequence=sequence, applied=self._applied_sequence)
            return False

        self._applied_sequence = sequence
        self._result = result
        self.profile = result if isinstance(result, TenantProfile) else None
        decision = self.evaluator.evaluate(result, self._clock(), self.identity.email)
        self.loading = False
        self._set_decision(decision)
        if self.metrics is not None:
            self.metrics.record_access_decision(
                decision.state.value,
                decision.reason.value if decision.reason else None
            )
        return True

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    async def _fetch(self, sequence: int, identity: SessionIdentity) -> None:
        try:
            result: ProfileResult = await self.store.get_profile(identity.id)
        except Exception as e:
            self.logger.warning("Profile fetch failed", profile_id=identity.id, error=str(e))
            result = e
        self.apply(sequence, result)

    def _on_push(self, profile: TenantProfile) -> None:
        if self.identity is None or profile.id != self.identity.id:
            return
        self.apply(self._next_sequence(), profile)

    def _start_ticker(self) -> None:
        if not self.reevaluation_interval_seconds:
            return
        self._tick_task = asyncio.get_running_loop().create_task(self._tick())

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.reevaluation_interval_seconds)
            try:
                self.reevaluate()
            except Exception as e:
                self.logger.error(
                    "Periodic re-evaluation failed",
                    profile_id=self.identity.id if self.identity else None,
                    error=str(e)
                )

    def _set_decision(self, decision: Optional[AccessDecision]) -> None:
        previous = self.decision
        self.decision = decision
        if previous is not None and decision is not None and previous.state != decision.state:
            self.logger.info(
                "Access state changed",
                profile_id=self.identity.id if self.identity else None,
                previous=previous.state.value,
                current=decision.state.value
            )
        for listener in list(self._listeners):
            listener(decision)
