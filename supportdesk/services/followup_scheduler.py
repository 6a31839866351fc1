import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from supportdesk.core.clock import Clock, utc_now
from supportdesk.core.config import get_settings
from supportdesk.services.escalation_lifecycle import EscalationLifecycle
from supportdesk.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class FollowupPassResult:
    due: int = 0
    checked: int = 0
    realerted: int = 0
    failed: int = 0
    escalation_ids: list[str] = field(default_factory=list)


class FollowupScheduler:
    """One scan-and-advance pass over pending escalations.

    Holds no state between invocations, so overlapping timer firings are safe:
    each record is claimed by a conditional update inside the lifecycle.
    """

    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = get_settings()
        self.clock = clock
        self.lifecycle = EscalationLifecycle(db, dispatcher=dispatcher, clock=clock)
        self.store = self.lifecycle.store

    def run_pass(self) -> FollowupPassResult:
        now = self.clock()
        threshold = self.lifecycle.followup_threshold(now)
        due = self.store.list_due(threshold, limit=self.settings.followup_batch_size)
        result = FollowupPassResult(due=len(due))

        for escalation in due:
            escalation_id = escalation.id
            try:
                outcome = self.lifecycle.advance_followup(escalation, now=now, threshold=threshold)
            except Exception:  # noqa: BLE001
                logger.exception("Follow-up failed", extra={"escalation_id": escalation_id})
                result.failed += 1
                continue
            if outcome is None:
                continue
            result.checked += 1
            result.escalation_ids.append(escalation_id)
            if outcome.realerted:
                result.realerted += 1

        if result.checked:
            self.store.record_audit(
                actor="scheduler",
                action="followup_pass",
                payload={
                    "due": result.due,
                    "checked": result.checked,
                    "realerted": result.realerted,
                    "failed": result.failed,
                },
            )
        logger.info(
            "Follow-up pass complete",
            extra={"due": result.due, "checked": result.checked, "realerted": result.realerted, "failed": result.failed},
        )
        return result
