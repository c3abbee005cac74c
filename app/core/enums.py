"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    MENTEE = "mentee"
    MENTOR = "mentor"
    ADMIN = "admin"


class BlockTypeEnum(StrEnum):
    """Time block and availability exception kind."""

    AVAILABLE = "AVAILABLE"
    BREAK = "BREAK"
    BUFFER = "BUFFER"
    BLOCKED = "BLOCKED"


BLOCKING_TYPES = frozenset({BlockTypeEnum.BLOCKED, BlockTypeEnum.BREAK})


class OverlapTypeEnum(StrEnum):
    """How two time blocks overlap."""

    FULL = "full"
    CONTAINS = "contains"
    CONTAINED = "contained"
    PARTIAL = "partial"


class VerificationStatusEnum(StrEnum):
    """Mentor verification state."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class SessionStatusEnum(StrEnum):
    """Mentoring session lifecycle status."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


OCCUPYING_STATUSES = (SessionStatusEnum.SCHEDULED, SessionStatusEnum.IN_PROGRESS)


class ReassignmentStatusEnum(StrEnum):
    """State of a session after its mentor cancelled."""

    PENDING_ACCEPTANCE = "pending_acceptance"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    AWAITING_MENTEE_ACTION = "awaiting_mentee_action"
    MENTEE_SELECTED = "mentee_selected"
    REFUNDED = "refunded"


class CancelledByEnum(StrEnum):
    """Session participant who cancelled."""

    MENTOR = "mentor"
    MENTEE = "mentee"


class SlotModeEnum(StrEnum):
    """Slot listing variant."""

    DETAILED = "detailed"
    AVAILABLE_ONLY = "available_only"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
