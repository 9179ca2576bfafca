"""
Request and response models for the access service API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class EvaluateRequest(BaseModel):
    """Evaluate the access decision for an authenticated session."""
    profile_id: str = Field(..., description="Tenant profile id (the session's user id)")
    email: str = Field(..., description="Session email")
    now: Optional[datetime] = Field(None, description="Clock override; defaults to the server time")


class DecisionResponse(BaseModel):
    state: str
    reason: Optional[str] = None
    days_remaining: Optional[int] = None
    show_welcome_modal: bool = False
    plan_type: str = ""
    expiring_soon: bool = False
    locked_features: List[str] = Field(default_factory=list)
    summary: str
    evaluated_at: Optional[datetime] = None


class EvaluateResponse(BaseModel):
    profile_id: str
    timed_out: bool = False
    decision: Optional[DecisionResponse] = None


class DepartmentRequest(BaseModel):
    profile_id: str
    department: str = Field(..., description="kitchen, pizzeria, pub, delivery or waiter")


class DepartmentResponse(BaseModel):
    profile_id: str
    outcome: str
    department: str
    locked_department: Optional[str] = None


class WelcomeAcceptRequest(BaseModel):
    profile_id: str
    terms_accepted: bool = True
    dont_show_again: bool = False
    cookies_accepted: bool = False
    privacy_accepted: bool = False


class WelcomeAcceptResponse(BaseModel):
    profile_id: str
    show_welcome_modal: bool
    preferences: Dict[str, bool]


class GlobalConfigResponse(BaseModel):
    contact_email: str
    support_phone: str
    payment: Dict[str, Any]
    fresh: bool
