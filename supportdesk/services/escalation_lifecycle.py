import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from supportdesk.core.clock import Clock, utc_now
from supportdesk.core.config import get_settings
from supportdesk.core.enums import ConnectionMethod, EscalationStatus, Urgency
from supportdesk.core.errors import ConflictError, NotFoundError, ValidationError
from supportdesk.db.models import Escalation
from supportdesk.services.escalation_store import EscalationStore
from supportdesk.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

SMS_SUMMARY_MAX_CHARS = 120


class FollowupStage(str, Enum):
    NOTIFIED = "notified"
    STILL_WORKING = "still_working"
    IN_QUEUE = "in_queue"
    THANK_YOU = "thank_you"


FOLLOWUP_MESSAGES = {
    FollowupStage.NOTIFIED: "{operator} has been notified and will be with you as soon as possible. Hang tight!",
    FollowupStage.STILL_WORKING: "Still working on getting you connected with {operator}. Shouldn't be long.",
    FollowupStage.IN_QUEUE: (
        "You're still in the queue and {operator} is aware. "
        "Is there anything else I can help with in the meantime?"
    ),
    FollowupStage.THANK_YOU: "Thank you for your patience. {operator} will reach out as soon as they're available.",
}

ACCEPT_MESSAGES = {
    ConnectionMethod.CHAT: "{operator} is here! They'll continue this conversation with you directly.",
    ConnectionMethod.ZOOM: "Great news, {operator} is ready to help! A Zoom link is on its way. Check your email.",
    ConnectionMethod.PHONE: "{operator} is going to call you shortly. Make sure your phone is nearby!",
    ConnectionMethod.EMAIL: "{operator} is sending you a detailed response via email. Check your inbox shortly.",
}


def followup_stage(followup_count: int) -> FollowupStage:
    if followup_count <= 0:
        return FollowupStage.NOTIFIED
    if followup_count == 1:
        return FollowupStage.STILL_WORKING
    if followup_count == 2:
        return FollowupStage.IN_QUEUE
    return FollowupStage.THANK_YOU


@dataclass
class FollowupOutcome:
    escalation_id: str
    followup_count: int
    stage: FollowupStage
    message: str
    realerted: bool


class EscalationLifecycle:
    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = EscalationStore(db)
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.clock = clock
        self.settings = get_settings()

    def _operator(self) -> str:
        return self.settings.operator_name

    def create(
        self,
        user_id: str | None,
        user_name: str | None,
        user_email: str | None,
        summary: str | None,
        chat_history: Any = None,
        urgency: Urgency | str | None = None,
    ) -> str:
        if not (user_id and user_id.strip()) or not (summary and summary.strip()):
            raise ValidationError("Missing required fields")
        level = Urgency.parse(urgency, default=Urgency.NORMAL)

        now = self.clock()
        escalation = self.store.insert(
            Escalation(
                user_id=user_id.strip(),
                user_name=user_name,
                user_email=user_email,
                summary=summary.strip(),
                urgency=level.value,
                status=EscalationStatus.PENDING.value,
                owner_notified_at=now,
                last_followup_at=now,
                followup_count=0,
                chat_history=chat_history,
                created_at=now,
            )
        )
        logger.info(
            "Escalation created",
            extra={"escalation_id": escalation.id, "user_id": escalation.user_id, "urgency": level.value},
        )

        display_name = user_name or user_id
        results = self.dispatcher.alert_operator(
            subject=self._alert_subject(display_name, level),
            email_body=self._alert_email_body(escalation, display_name),
            sms_body=self._alert_sms_body(display_name, escalation.summary),
        )
        for result in results:
            if not result.ok:
                logger.warning(
                    "Operator alert leg failed; scheduler will re-engage",
                    extra={"escalation_id": escalation.id, "channel": result.channel},
                )
        return escalation.id

    @staticmethod
    def _alert_subject(display_name: str, level: Urgency) -> str:
        prefix = "[HIGH] " if level is Urgency.HIGH else ""
        return f"{prefix}Live Support Request: {display_name}"

    def _alert_email_body(self, escalation: Escalation, display_name: str) -> str:
        requester = f"{display_name} ({escalation.user_email})" if escalation.user_email else display_name
        return "\n".join(
            [
                f"{requester} needs immediate help.",
                "",
                f"Escalation: {escalation.id}",
                f"Urgency: {escalation.urgency}",
                f"Summary: {escalation.summary}",
                "",
                f"Open dashboard: {self.settings.dashboard_url}",
            ]
        )

    @staticmethod
    def _alert_sms_body(display_name: str, summary: str) -> str:
        if len(summary) > SMS_SUMMARY_MAX_CHARS:
            summary = summary[: SMS_SUMMARY_MAX_CHARS - 3] + "..."
        return f'Support: {display_name} needs live help. "{summary}" Check dashboard.'

    def accept_message(self, method: ConnectionMethod) -> str:
        return ACCEPT_MESSAGES[method].format(operator=self._operator())

    def accept(self, escalation_id: str | None, connection_method: ConnectionMethod | str | None) -> str:
        if not escalation_id or not connection_method:
            raise ValidationError("Missing required fields")
        method = ConnectionMethod.parse(connection_method)

        escalation = self.store.get(escalation_id)
        if escalation is None:
            raise NotFoundError("Escalation not found")

        if escalation.status != EscalationStatus.PENDING.value:
            return self._reaccept(escalation, method)

        if not self.store.accept_if_pending(escalation_id, method.value, self.clock()):
            # Lost the race to a concurrent accept; first acceptance wins.
            return self._reaccept(self.store.get(escalation_id), method)

        message = self.accept_message(method)
        logger.info(
            "Escalation accepted",
            extra={"escalation_id": escalation_id, "connection_method": method.value},
        )
        self.store.record_audit(
            actor="operator",
            action="escalation_accepted",
            payload={"escalation_id": escalation_id, "connection_method": method.value},
        )
        self.dispatcher.notify_user(escalation.user_id, message, escalation_id=escalation_id)
        return message

    def _reaccept(self, escalation: Escalation, method: ConnectionMethod) -> str:
        if escalation.connection_method != method.value:
            raise ConflictError(
                f"Escalation already accepted via {escalation.connection_method}"
            )
        return self.accept_message(method)

    def followup_message(self, followup_count: int) -> str:
        return FOLLOWUP_MESSAGES[followup_stage(followup_count)].format(operator=self._operator())

    def advance_followup(self, escalation: Escalation, now: datetime, threshold: datetime) -> FollowupOutcome | None:
        """Run one follow-up tick for an escalation selected as due.

        The tick is claimed with a conditional update before any message goes
        out. ``None`` means another pass, or an acceptance, got there first.
        """
        escalation_id = escalation.id
        previous = escalation.followup_count
        user_id = escalation.user_id
        display_name = escalation.user_name or escalation.user_id

        if not self.store.claim_followup(escalation_id, previous, threshold, now):
            logger.debug("Follow-up already handled", extra={"escalation_id": escalation_id})
            return None

        stage = followup_stage(previous)
        message = self.followup_message(previous)
        self.dispatcher.notify_user(user_id, message, escalation_id=escalation_id)

        realerted = False
        if previous >= self.settings.followup_realert_after:
            waited = (previous + 1) * self.settings.followup_threshold_minutes
            self.dispatcher.realert_operator(
                f"{display_name} still waiting for support ({waited}+ min). Check dashboard."
            )
            realerted = True

        logger.info(
            "Follow-up sent",
            extra={
                "escalation_id": escalation_id,
                "followup_count": previous + 1,
                "stage": stage.value,
                "realerted": realerted,
            },
        )
        return FollowupOutcome(
            escalation_id=escalation_id,
            followup_count=previous + 1,
            stage=stage,
            message=message,
            realerted=realerted,
        )

    def followup_threshold(self, now: datetime) -> datetime:
        return now - timedelta(minutes=self.settings.followup_threshold_minutes)
