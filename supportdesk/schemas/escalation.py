from datetime import datetime
from typing import Any

from supportdesk.schemas.common import CamelModel


class EscalationCreateRequest(CamelModel):
    # Presence is checked by the lifecycle so a missing field is a 400, not a 422.
    user_id: str | None = None
    user_name: str | None = None
    user_email: str | None = None
    summary: str | None = None
    chat_history: Any = None
    urgency: str | None = None


class EscalationCreateResponse(CamelModel):
    success: bool = True
    escalation_id: str


class EscalationAcceptRequest(CamelModel):
    escalation_id: str | None = None
    connection_method: str | None = None


class EscalationAcceptResponse(CamelModel):
    success: bool = True
    message: str


class EscalationOut(CamelModel):
    id: str
    user_id: str
    user_name: str | None = None
    user_email: str | None = None
    summary: str
    urgency: str
    status: str
    connection_method: str | None = None
    owner_notified_at: datetime
    last_followup_at: datetime
    followup_count: int
    accepted_at: datetime | None = None
    chat_history: Any = None
    created_at: datetime


class EscalationListResponse(CamelModel):
    escalations: list[EscalationOut]


class FollowupPassResponse(CamelModel):
    success: bool = True
    checked: int
    due: int
    realerted: int
    failed: int
