"""
Welcome gate: the one-time terms acceptance shown on first use.
"""

from typing import Optional

from shared.errors import AccessLayerException, WelcomeGateError
from shared.logging import get_logger

from ..entitlements.evaluator import should_show_welcome
from ..profiles.models import TenantProfile
from ..profiles.store import ProfileStore


class WelcomeGate:
    """Derives and records the welcome acceptance for a tenant.

    The flag is re-derived from stored preferences on every call. A write
    that the store does not confirm is reported as an error and the gate
    keeps showing.
    """

    def __init__(self, store: ProfileStore):
        self.store = store
        self.logger = get_logger("access.welcome_gate")

    @staticmethod
    def should_show(profile: Optional[TenantProfile]) -> bool:
        if profile is None:
            return False
        return should_show_welcome(profile.restaurant_profile.user_preferences)

    async def accept(self,
                     profile: TenantProfile,
                     terms_accepted: bool = True,
                     dont_show_again: bool = False,
                     cookies_accepted: bool = False,
                     privacy_accepted: bool = False) -> TenantProfile:
        """Persist the operator's choices and return the stored profile."""
        patch = {
            "restaurantProfile": {
                "userPreferences": {
                    "termsAccepted": terms_accepted,
                    "cookiesAccepted": cookies_accepted,
                    "privacyAccepted": privacy_accepted,
                    "welcomeModalShown": True,
                    "dontShowWelcomeAgain": dont_show_again,
                }
            }
        }

        try:
            updated = await self.store.update_profile(profile.id, patch)
        except AccessLayerException as e:
            self.logger.error("Welcome acceptance not persisted", profile_id=profile.id, error=e.message)
            raise WelcomeGateError(details={"profile_id": profile.id, "cause": e.code}) from e
        except Exception as e:
            self.logger.error("Welcome acceptance not persisted", profile_id=profile.id, error=str(e))
            raise WelcomeGateError(details={"profile_id": profile.id, "cause": str(e)}) from e

        self.logger.info(
            "Welcome preferences saved",
            profile_id=profile.id,
            terms_accepted=terms_accepted,
            dont_show_again=dont_show_again
        )
        return updated
