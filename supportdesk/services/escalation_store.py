import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from supportdesk.core.enums import EscalationStatus
from supportdesk.core.errors import PersistenceError
from supportdesk.db.models import AuditLog, Escalation

logger = logging.getLogger(__name__)


class EscalationStore:
    """Durable escalation records.

    The two mutating paths (``claim_followup`` and ``accept_if_pending``) are
    single conditional UPDATE statements, so concurrent callers racing on the
    same row see exactly one winner.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _fail(self, operation: str, exc: SQLAlchemyError, escalation_id: str | None = None) -> PersistenceError:
        self.db.rollback()
        logger.error(
            "Escalation store %s failed: %s",
            operation,
            exc,
            extra={"operation": operation, "escalation_id": escalation_id},
        )
        return PersistenceError(f"Failed to {operation} escalation")

    def insert(self, escalation: Escalation) -> Escalation:
        try:
            self.db.add(escalation)
            self.db.commit()
            self.db.refresh(escalation)
        except SQLAlchemyError as exc:
            raise self._fail("create", exc) from exc
        return escalation

    def get(self, escalation_id: str) -> Escalation | None:
        try:
            return self.db.get(Escalation, escalation_id, populate_existing=True)
        except SQLAlchemyError as exc:
            raise self._fail("read", exc, escalation_id) from exc

    def list_all(self) -> list[Escalation]:
        try:
            return list(self.db.scalars(select(Escalation).order_by(Escalation.created_at.desc())).all())
        except SQLAlchemyError as exc:
            raise self._fail("list", exc) from exc

    def list_due(self, threshold: datetime, limit: int | None = None) -> list[Escalation]:
        stmt = (
            select(Escalation)
            .where(
                Escalation.status == EscalationStatus.PENDING.value,
                Escalation.last_followup_at < threshold,
            )
            .order_by(Escalation.last_followup_at.asc())
        )
        if limit:
            stmt = stmt.limit(limit)
        try:
            return list(self.db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise self._fail("select due", exc) from exc

    def claim_followup(self, escalation_id: str, expected_count: int, threshold: datetime, now: datetime) -> bool:
        """Advance one follow-up tick if the row is still pending, still due and unclaimed."""
        stmt = (
            update(Escalation)
            .where(
                Escalation.id == escalation_id,
                Escalation.status == EscalationStatus.PENDING.value,
                Escalation.last_followup_at < threshold,
                Escalation.followup_count == expected_count,
            )
            .values(last_followup_at=now, followup_count=Escalation.followup_count + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            claimed = self.db.execute(stmt).rowcount == 1
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("advance follow-up for", exc, escalation_id) from exc
        return claimed

    def accept_if_pending(self, escalation_id: str, connection_method: str, now: datetime) -> bool:
        stmt = (
            update(Escalation)
            .where(
                Escalation.id == escalation_id,
                Escalation.status == EscalationStatus.PENDING.value,
            )
            .values(
                status=EscalationStatus.ACCEPTED.value,
                accepted_at=now,
                connection_method=connection_method,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            claimed = self.db.execute(stmt).rowcount == 1
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("accept", exc, escalation_id) from exc
        return claimed

    def record_audit(self, actor: str, action: str, payload: dict) -> None:
        try:
            self.db.add(AuditLog(actor=actor, action=action, payload_json=payload))
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("audit", exc) from exc

    def count_by_status(self) -> dict[str, int]:
        try:
            rows = self.db.execute(
                select(Escalation.status, func.count()).group_by(Escalation.status)
            ).all()
        except SQLAlchemyError as exc:
            raise self._fail("count", exc) from exc
        counts = {status.value: 0 for status in EscalationStatus}
        counts.update({status: int(total) for status, total in rows})
        return counts
