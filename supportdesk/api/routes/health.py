from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from supportdesk.core.config import get_settings
from supportdesk.db.session import get_db
from supportdesk.schemas.common import HealthResponse, MetricsResponse
from supportdesk.services.escalation_store import EscalationStore
from supportdesk.services.ticket_store import TicketStore

router = APIRouter(prefix="/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(status="ok", app_env=settings.app_env)


@router.get("/metrics", response_model=MetricsResponse)
def metrics(db: Session = Depends(get_db)) -> MetricsResponse:
    escalations = EscalationStore(db).count_by_status()
    return MetricsResponse(
        escalations_pending=escalations["pending"],
        escalations_accepted=escalations["accepted"],
        tickets_open=TicketStore(db).count_open(),
    )
