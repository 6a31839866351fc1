from enum import Enum

from supportdesk.core.errors import ValidationError


class _ClosedEnum(str, Enum):
    @classmethod
    def parse(cls, value: "str | _ClosedEnum | None", default: "_ClosedEnum | None" = None):
        """Coerce a wire value into a member, rejecting anything unknown."""
        if value is None or (isinstance(value, str) and not value.strip()):
            if default is None:
                raise ValidationError(f"Missing {cls.label()}")
            return default
        try:
            return cls(value.strip().lower() if isinstance(value, str) else value)
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(f"Unknown {cls.label()} '{value}'. Expected one of: {allowed}") from exc

    @classmethod
    def label(cls) -> str:
        return cls.__name__


class EscalationStatus(_ClosedEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"

    @classmethod
    def label(cls) -> str:
        return "escalation status"


class Urgency(_ClosedEnum):
    NORMAL = "normal"
    HIGH = "high"

    @classmethod
    def label(cls) -> str:
        return "urgency"


class ConnectionMethod(_ClosedEnum):
    CHAT = "chat"
    ZOOM = "zoom"
    PHONE = "phone"
    EMAIL = "email"

    @classmethod
    def label(cls) -> str:
        return "connection method"


class TicketStatus(_ClosedEnum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"

    @classmethod
    def label(cls) -> str:
        return "ticket status"


class TicketPriority(_ClosedEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def label(cls) -> str:
        return "ticket priority"


class Channel(_ClosedEnum):
    EMAIL = "email"
    SMS = "sms"

    @classmethod
    def label(cls) -> str:
        return "notification channel"
