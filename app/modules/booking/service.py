"""Booking business logic layer."""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import (
    CancelledByEnum,
    ReassignmentStatusEnum,
    RoleEnum,
    SessionStatusEnum,
    SlotModeEnum,
)
from app.modules.audit.repository import AuditRepository
from app.modules.availability.repository import AvailabilityRepository
from app.modules.availability.service import (
    INACTIVE_SCHEDULE_MESSAGE,
    NO_SCHEDULE_MESSAGE,
    AvailabilityService,
)
from app.modules.booking.matching import CandidateEvaluation, ReplacementMentorMatcher
from app.modules.booking.models import MentoringSession
from app.modules.booking.repository import BookingRepository
from app.modules.booking.schemas import SessionCancelRequest, SessionCreate
from app.modules.identity.models import User
from app.modules.mentors.repository import MentorsRepository
from app.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)
from app.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

settings = get_settings()

FULL_REFUND_PERCENTAGE = 100


class BookingService:
    """Session booking, cancellation and mentor reassignment."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        availability_repository: AvailabilityRepository,
        availability_service: AvailabilityService,
        matcher: ReplacementMentorMatcher,
        audit_repository: AuditRepository,
    ) -> None:
        self.booking_repository = booking_repository
        self.availability_repository = availability_repository
        self.availability_service = availability_service
        self.matcher = matcher
        self.audit_repository = audit_repository

    async def _get_session(self, session_id: UUID) -> MentoringSession:
        booking = await self.booking_repository.get_session_by_id(session_id)
        if booking is None:
            raise NotFoundException("Session not found")
        return booking

    @staticmethod
    def _ensure_mentee(booking: MentoringSession, actor: User) -> None:
        if booking.mentee_id != actor.id:
            raise UnauthorizedException("Only the mentee of this session can do this")

    @staticmethod
    def _ensure_reassignment_status(booking: MentoringSession, expected: ReassignmentStatusEnum) -> None:
        if booking.reassignment_status != expected:
            raise ConflictException(f"Session reassignment is not in '{expected.value}' state")

    def _excluded_mentor_ids(self, booking: MentoringSession) -> set[UUID]:
        excluded = {UUID(mentor_id) for mentor_id in booking.cancelled_mentor_ids}
        excluded.update({booking.mentor_id, booking.mentee_id})
        return excluded

    async def _record(
        self,
        booking: MentoringSession,
        event_type: str,
        actor: User,
        recipients: list[UUID],
        extra: dict | None = None,
    ) -> None:
        """Write the outbox notification and the audit entry for a transition."""
        payload = {
            "session_id": str(booking.id),
            "mentor_id": str(booking.mentor_id),
            "mentee_id": str(booking.mentee_id),
            "scheduled_at": ensure_utc(booking.scheduled_at).isoformat(),
            "status": booking.status.value,
            "reassignment_status": booking.reassignment_status.value if booking.reassignment_status else None,
            "recipients": [str(user_id) for user_id in recipients],
            **(extra or {}),
        }
        await self.audit_repository.create_outbox_event(
            aggregate_type="session",
            aggregate_id=str(booking.id),
            event_type=event_type,
            payload=payload,
        )
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action=event_type,
            entity_type="session",
            entity_id=str(booking.id),
            payload=payload,
        )

    async def book_session(self, payload: SessionCreate, actor: User) -> MentoringSession:
        """Book a session at one of the mentor's currently available slots."""
        if actor.role.name != RoleEnum.MENTEE:
            raise UnauthorizedException("Only mentees can book sessions")
        if payload.mentor_id == actor.id:
            raise BusinessRuleException("Cannot book a session with yourself")

        # Serializes bookings for this mentor until the transaction ends.
        schedule = await self.availability_repository.get_schedule_by_mentor_user_id(
            payload.mentor_id,
            for_update=True,
        )
        if schedule is None:
            raise BusinessRuleException(NO_SCHEDULE_MESSAGE)
        if not schedule.is_active:
            raise BusinessRuleException(INACTIVE_SCHEDULE_MESSAGE)

        scheduled_at = ensure_utc(payload.scheduled_at)
        duration = payload.duration_minutes or schedule.default_session_duration
        result = await self.availability_service.generate_slots(
            payload.mentor_id,
            scheduled_at,
            scheduled_at,
            duration_minutes=duration,
            mode=SlotModeEnum.AVAILABLE_ONLY,
        )
        if not any(ensure_utc(slot.start_time) == scheduled_at for slot in result.slots):
            detail = f": {result.message}" if result.message else ""
            raise ConflictException(f"Requested time is not an available slot{detail}")

        booking = await self.booking_repository.create_session(
            mentor_id=payload.mentor_id,
            mentee_id=actor.id,
            title=payload.title,
            scheduled_at=scheduled_at,
            duration_minutes=duration,
        )
        await self._record(booking, "session.booked", actor, [booking.mentor_id, booking.mentee_id])
        return booking

    async def cancel_session(
        self,
        session_id: UUID,
        payload: SessionCancelRequest,
        actor: User,
    ) -> MentoringSession:
        """Cancel as mentee, or cancel as mentor and try to hand the session over."""
        booking = await self._get_session(session_id)
        if actor.id not in (booking.mentor_id, booking.mentee_id):
            raise UnauthorizedException("You cannot manage this session")
        if booking.status in (SessionStatusEnum.CANCELLED, SessionStatusEnum.COMPLETED):
            raise ConflictException("Session is already cancelled or completed")

        now = utc_now()
        cutoff = timedelta(hours=settings.mentor_cancellation_cutoff_hours)
        if ensure_utc(booking.scheduled_at) - now < cutoff:
            raise BusinessRuleException(
                f"Sessions cannot be cancelled less than "
                f"{settings.mentor_cancellation_cutoff_hours} hours before start",
            )

        booking.cancellation_reason = payload.reason

        if actor.id != booking.mentor_id:
            booking.status = SessionStatusEnum.CANCELLED
            booking.cancelled_by = CancelledByEnum.MENTEE
            await self.booking_repository.save(booking)
            await self._record(booking, "session.cancelled", actor, [booking.mentor_id])
            return booking

        cancelling_mentor_id = booking.mentor_id
        booking.cancelled_by = CancelledByEnum.MENTOR
        booking.cancelled_mentor_ids = [*booking.cancelled_mentor_ids, str(cancelling_mentor_id)]

        replacement_id = await self.matcher.find_replacement_mentor(
            booking.scheduled_at,
            booking.duration_minutes,
            self._excluded_mentor_ids(booking),
        )
        if replacement_id is None:
            booking.status = SessionStatusEnum.CANCELLED
            booking.reassignment_status = ReassignmentStatusEnum.AWAITING_MENTEE_ACTION
            await self.booking_repository.save(booking)
            await self._record(booking, "session.replacement_not_found", actor, [booking.mentee_id])
            return booking

        booking.reassigned_from_mentor_id = cancelling_mentor_id
        booking.mentor_id = replacement_id
        booking.was_reassigned = True
        booking.reassigned_at = now
        booking.reassignment_status = ReassignmentStatusEnum.PENDING_ACCEPTANCE
        await self.booking_repository.save(booking)
        logger.info("Session %s reassigned from %s to %s", booking.id, cancelling_mentor_id, replacement_id)
        await self._record(
            booking,
            "session.reassigned",
            actor,
            [booking.mentee_id, replacement_id],
            {"previous_mentor_id": str(cancelling_mentor_id)},
        )
        return booking

    async def accept_reassignment(self, session_id: UUID, actor: User) -> MentoringSession:
        """Mentee keeps the automatically assigned mentor."""
        booking = await self._get_session(session_id)
        self._ensure_mentee(booking, actor)
        self._ensure_reassignment_status(booking, ReassignmentStatusEnum.PENDING_ACCEPTANCE)

        booking.reassignment_status = ReassignmentStatusEnum.ACCEPTED
        await self.booking_repository.save(booking)
        await self._record(booking, "session.reassignment_accepted", actor, [booking.mentor_id])
        return booking

    async def reject_reassignment(self, session_id: UUID, actor: User) -> MentoringSession:
        """Mentee declines the new mentor; the session is cancelled with a full refund."""
        booking = await self._get_session(session_id)
        self._ensure_mentee(booking, actor)
        self._ensure_reassignment_status(booking, ReassignmentStatusEnum.PENDING_ACCEPTANCE)

        booking.reassignment_status = ReassignmentStatusEnum.REJECTED
        booking.status = SessionStatusEnum.CANCELLED
        booking.refund_percentage = FULL_REFUND_PERCENTAGE
        await self.booking_repository.save(booking)
        await self._record(booking, "session.reassignment_rejected", actor, [booking.mentor_id, booking.mentee_id])
        return booking

    async def list_alternative_mentors(
        self,
        session_id: UUID,
        fixed_time: bool,
        actor: User,
    ) -> list[CandidateEvaluation]:
        """Mentors the mentee may pick after no replacement was found."""
        booking = await self._get_session(session_id)
        self._ensure_mentee(booking, actor)
        self._ensure_reassignment_status(booking, ReassignmentStatusEnum.AWAITING_MENTEE_ACTION)
        return await self.matcher.list_alternative_mentors(
            booking.scheduled_at,
            booking.duration_minutes,
            self._excluded_mentor_ids(booking),
            fixed_time_only=fixed_time,
        )

    async def select_alternative_mentor(
        self,
        session_id: UUID,
        mentor_user_id: UUID,
        actor: User,
    ) -> MentoringSession:
        """Reschedule the session with a mentor the mentee picked."""
        booking = await self._get_session(session_id)
        self._ensure_mentee(booking, actor)
        self._ensure_reassignment_status(booking, ReassignmentStatusEnum.AWAITING_MENTEE_ACTION)

        now = utc_now()
        if ensure_utc(booking.scheduled_at) <= now:
            raise BusinessRuleException("Session start time has already passed")
        if mentor_user_id in self._excluded_mentor_ids(booking):
            raise BusinessRuleException("This mentor cannot take the session")

        await self.availability_repository.get_schedule_by_mentor_user_id(mentor_user_id, for_update=True)
        available = await self.matcher.list_alternative_mentors(
            booking.scheduled_at,
            booking.duration_minutes,
            self._excluded_mentor_ids(booking),
            fixed_time_only=True,
        )
        if mentor_user_id not in {item.mentor_user_id for item in available}:
            raise ConflictException("Mentor is not available at the session time")

        booking.reassigned_from_mentor_id = booking.mentor_id
        booking.mentor_id = mentor_user_id
        booking.was_reassigned = True
        booking.reassigned_at = now
        booking.status = SessionStatusEnum.SCHEDULED
        booking.reassignment_status = ReassignmentStatusEnum.MENTEE_SELECTED
        await self.booking_repository.save(booking)
        await self._record(
            booking,
            "session.mentor_selected",
            actor,
            [mentor_user_id],
            {"previous_mentor_id": str(booking.reassigned_from_mentor_id)},
        )
        return booking

    async def cancel_for_refund(self, session_id: UUID, actor: User) -> MentoringSession:
        """Mentee gives up on a session whose mentor could not be replaced."""
        booking = await self._get_session(session_id)
        self._ensure_mentee(booking, actor)
        self._ensure_reassignment_status(booking, ReassignmentStatusEnum.AWAITING_MENTEE_ACTION)

        booking.status = SessionStatusEnum.CANCELLED
        booking.reassignment_status = ReassignmentStatusEnum.REFUNDED
        booking.refund_percentage = FULL_REFUND_PERCENTAGE
        await self.booking_repository.save(booking)
        await self._record(booking, "session.refunded", actor, [booking.mentee_id])
        return booking

    async def list_sessions(
        self,
        actor: User,
        limit: int,
        offset: int,
    ) -> tuple[list[MentoringSession], int]:
        """List sessions for actor according to role."""
        return await self.booking_repository.list_sessions(actor.id, actor.role.name, limit, offset)


async def get_booking_service(session: AsyncSession = Depends(get_db_session)) -> BookingService:
    """Dependency provider for booking service."""
    booking_repository = BookingRepository(session)
    availability_repository = AvailabilityRepository(session)
    mentors_repository = MentorsRepository(session)
    return BookingService(
        booking_repository=booking_repository,
        availability_repository=availability_repository,
        availability_service=AvailabilityService(availability_repository, mentors_repository, booking_repository),
        matcher=ReplacementMentorMatcher(mentors_repository, availability_repository, booking_repository),
        audit_repository=AuditRepository(session),
    )
