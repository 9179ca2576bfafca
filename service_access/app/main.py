"""
Access service: tenant entitlement decisions, the department lock, the
welcome gate and display-only global config.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, Optional

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.logging import bind_profile

from .departments.lock_manager import DepartmentAccess, DepartmentLockManager
from .entitlements.evaluator import EntitlementEvaluator, ProfileResult
from .entitlements.models import AccessDecision
from .globalconfig.cache import GlobalConfigCache
from .globalconfig.redis_mirror import RedisConfigMirror
from .globalconfig.views import payment_instructions
from .models import (
    DecisionResponse,
    DepartmentRequest,
    DepartmentResponse,
    EvaluateRequest,
    EvaluateResponse,
    GlobalConfigResponse,
    WelcomeAcceptRequest,
    WelcomeAcceptResponse,
)
from .profiles.postgres_store import PostgresProfileStore
from .profiles.store import InMemoryProfileStore, ProfileStore
from .session.monitor import SessionAccessMonitor
from .welcome.gate import WelcomeGate


SERVICE_NAME = "access"
SERVICE_PORT = 8013


def build_store(config: ServiceConfig) -> ProfileStore:
    if config.profile_store == "memory":
        return InMemoryProfileStore()
    return PostgresProfileStore(config.postgres_dsn, channel=config.profile_change_channel)


class AccessService(BaseService):
    """Access service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, store: Optional[ProfileStore] = None):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config or get_config(SERVICE_NAME, SERVICE_PORT))

        # Initialize components
        self.store = store or build_store(self.config)
        self.evaluator = EntitlementEvaluator.from_config(self.config)
        self.lock_manager = DepartmentLockManager(self.store, metrics=self.metrics)
        self.welcome_gate = WelcomeGate(self.store)
        self.mirror = (
            RedisConfigMirror(self.config.redis_url, ttl_seconds=self.config.global_config_mirror_ttl_seconds)
            if self.config.enable_redis_mirror else None
        )
        self.global_config = GlobalConfigCache(
            self.store,
            privileged_email=self.config.privileged_email,
            ttl_seconds=self.config.global_config_ttl_seconds,
            fetch_timeout_seconds=self.config.global_config_fetch_timeout_seconds,
            mirror=self.mirror,
            metrics=self.metrics,
        )

        self._setup_access_routes()

    def create_session_monitor(self) -> SessionAccessMonitor:
        """Monitor for a long-lived session sharing this service's components."""
        return SessionAccessMonitor(
            self.store,
            self.evaluator,
            global_config=self.global_config,
            fetch_timeout_seconds=self.config.profile_fetch_timeout_seconds,
            reevaluation_interval_seconds=self.config.reevaluation_interval_seconds,
            metrics=self.metrics,
        )

    def _setup_access_routes(self):
        """Set up access-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Tenant Access Service",
                "version": "1.0.0",
                "capabilities": ["entitlements", "department_lock", "welcome_gate", "global_config"]
            }

        @self.app.post("/access/evaluate", response_model=EvaluateResponse)
        async def evaluate(request: EvaluateRequest):
            """Evaluate the access decision for a session."""
            bind_profile(request.profile_id)
            now = request.now or datetime.now(timezone.utc)
            try:
                with self.metrics.time_operation("profile_fetch_duration_seconds"):
                    result: ProfileResult = await asyncio.wait_for(
                        self.store.get_profile(request.profile_id),
                        timeout=self.config.profile_fetch_timeout_seconds
                    )
            except asyncio.TimeoutError:
                self.logger.warning("Profile fetch timed out", profile_id=request.profile_id)
                return EvaluateResponse(profile_id=request.profile_id, timed_out=True)
            except Exception as e:
                self.logger.warning("Profile fetch failed", profile_id=request.profile_id, error=str(e))
                result = e

            decision = self.evaluator.evaluate(result, now, request.email)
            self._record_decision(decision)
            self.logger.info(
                "Access evaluated",
                profile_id=request.profile_id,
                state=decision.state.value,
                reason=decision.reason.value if decision.reason else None
            )
            return EvaluateResponse(
                profile_id=request.profile_id,
                decision=DecisionResponse(**decision.to_dict())
            )

        @self.app.post("/access/departments/request", response_model=DepartmentResponse)
        async def request_department(request: DepartmentRequest):
            """Check whether a department can be entered."""
            bind_profile(request.profile_id)
            profile = await self.store.get_profile(request.profile_id)
            access = self.lock_manager.request_department(profile, request.department)
            return self._department_response(request.profile_id, access)

        @self.app.post("/access/departments/confirm", response_model=DepartmentResponse)
        async def confirm_department(request: DepartmentRequest):
            """Confirm the irreversible department lock."""
            bind_profile(request.profile_id)
            profile = await self.store.get_profile(request.profile_id)
            confirmation = await self.lock_manager.confirm(profile, request.department)
            return self._department_response(request.profile_id, confirmation.access)

        @self.app.post("/access/welcome/accept", response_model=WelcomeAcceptResponse)
        async def accept_welcome(request: WelcomeAcceptRequest):
            """Record the welcome acceptance."""
            bind_profile(request.profile_id)
            profile = await self.store.get_profile(request.profile_id)
            updated = await self.welcome_gate.accept(
                profile,
                terms_accepted=request.terms_accepted,
                dont_show_again=request.dont_show_again,
                cookies_accepted=request.cookies_accepted,
                privacy_accepted=request.privacy_accepted,
            )
            preferences = updated.restaurant_profile.user_preferences
            return WelcomeAcceptResponse(
                profile_id=updated.id,
                show_welcome_modal=self.welcome_gate.should_show(updated),
                preferences={
                    "terms_accepted": preferences.terms_accepted,
                    "cookies_accepted": preferences.cookies_accepted,
                    "privacy_accepted": preferences.privacy_accepted,
                    "welcome_modal_shown": preferences.welcome_modal_shown,
                    "dont_show_welcome_again": preferences.dont_show_welcome_again,
                }
            )

        @self.app.get("/access/global-config", response_model=GlobalConfigResponse)
        async def get_global_config():
            """Display-only configuration; falls back to defaults, never fails."""
            config = await self.global_config.fetch()
            instructions = payment_instructions(
                config,
                datetime.now(timezone.utc),
                fallback_start=self.global_config.loaded_at
            )
            return GlobalConfigResponse(
                contact_email=config.contact_email,
                support_phone=config.support_contact.phone,
                payment=instructions.to_dict(),
                fresh=self.global_config.is_fresh(),
            )

        @self.app.post("/access/global-config/invalidate")
        async def invalidate_global_config():
            """Drop the cached global config so the next read refetches it."""
            self.global_config.invalidate()
            return {"invalidated": True}

    @staticmethod
    def _department_response(profile_id: str, access: DepartmentAccess) -> DepartmentResponse:
        return DepartmentResponse(
            profile_id=profile_id,
            outcome=access.outcome.value,
            department=access.department.value,
            locked_department=access.locked_department.value if access.locked_department else None,
        )

    def _record_decision(self, decision: AccessDecision) -> None:
        self.metrics.record_access_decision(
            decision.state.value,
            decision.reason.value if decision.reason else None
        )

    async def start(self):
        """Start service components."""
        await self.store.start()
        if self.mirror is not None:
            await self.mirror.start()
        self.logger.info("Access service started", profile_store=self.config.profile_store)

    async def stop(self):
        """Stop service components."""
        await self.global_config.close()
        if self.mirror is not None:
            await self.mirror.stop()
        await self.store.stop()
        self.logger.info("Access service stopped")

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies."""
        dependencies = {
            "profile_store": "ok" if await self.store.health_check() else "error"
        }
        if self.mirror is not None:
            # The mirror is optional; a miss only degrades global config fallback.
            dependencies["redis"] = "ok" if await self.mirror.health_check() else "degraded"
        return dependencies


def create_app(config: Optional[ServiceConfig] = None, store: Optional[ProfileStore] = None):
    """Create FastAPI application."""
    service = AccessService(config, store)
    return service.app


if __name__ == "__main__":
    service = AccessService()
    service.run()
