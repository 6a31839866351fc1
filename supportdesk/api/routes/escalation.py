from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from supportdesk.api.deps import get_clock, get_dispatcher
from supportdesk.core.clock import Clock
from supportdesk.core.security import verify_cron_secret
from supportdesk.db.session import get_db
from supportdesk.schemas.escalation import (
    EscalationAcceptRequest,
    EscalationAcceptResponse,
    EscalationCreateRequest,
    EscalationCreateResponse,
    EscalationListResponse,
    EscalationOut,
    FollowupPassResponse,
)
from supportdesk.services.escalation_lifecycle import EscalationLifecycle
from supportdesk.services.escalation_store import EscalationStore
from supportdesk.services.followup_scheduler import FollowupScheduler
from supportdesk.services.notification_dispatcher import NotificationDispatcher

router = APIRouter(prefix="/v1/support", tags=["escalation"])


@router.post("/escalate", response_model=EscalationCreateResponse)
def create_escalation(
    payload: EscalationCreateRequest,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Clock = Depends(get_clock),
) -> EscalationCreateResponse:
    escalation_id = EscalationLifecycle(db, dispatcher=dispatcher, clock=clock).create(
        user_id=payload.user_id,
        user_name=payload.user_name,
        user_email=payload.user_email,
        summary=payload.summary,
        chat_history=payload.chat_history,
        urgency=payload.urgency,
    )
    return EscalationCreateResponse(escalation_id=escalation_id)


@router.post("/accept", response_model=EscalationAcceptResponse)
def accept_escalation(
    payload: EscalationAcceptRequest,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Clock = Depends(get_clock),
) -> EscalationAcceptResponse:
    message = EscalationLifecycle(db, dispatcher=dispatcher, clock=clock).accept(
        payload.escalation_id, payload.connection_method
    )
    return EscalationAcceptResponse(message=message)


@router.get("/escalations", response_model=EscalationListResponse)
def list_escalations(db: Session = Depends(get_db)) -> EscalationListResponse:
    escalations = EscalationStore(db).list_all()
    return EscalationListResponse(escalations=[EscalationOut.model_validate(item) for item in escalations])


@router.post("/followup-cron", response_model=FollowupPassResponse, dependencies=[Depends(verify_cron_secret)])
def run_followup_pass(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Clock = Depends(get_clock),
) -> FollowupPassResponse:
    result = FollowupScheduler(db, dispatcher=dispatcher, clock=clock).run_pass()
    return FollowupPassResponse(
        checked=result.checked,
        due=result.due,
        realerted=result.realerted,
        failed=result.failed,
    )
