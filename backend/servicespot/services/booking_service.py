# backend/servicespot/services/booking_service.py
"""
Booking Service for the ServiceSpot bookings core.

Handles all booking-related business logic:
- Creating bookings against a recurring or date-specific slot
- Consuming and releasing slot capacity atomically with the booking write
- Driving the lifecycle through the transition table in booking_state_machine
- Booking queries for customers, providers, listings and admins

Capacity is consumed with a conditional UPDATE in the same transaction as
the booking insert; if the slot filled up in the meantime the UPDATE matches
no row, the transaction rolls back, and the caller gets a Conflict.
"""

from datetime import date, datetime, time, timezone
import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from ..core.config import settings
from ..core.enums import BookingEvent, BookingStatus, CancelledBy, DayOfWeek, RoleName
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import combine_local, get_local_now
from ..models.availability import DateSpecificSlot, RecurringSlot
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingCreate, BookingTransitionRequest
from . import slot_capacity
from .base import BaseService
from .booking_state_machine import event_for_target, next_status
from .directory import ListingCatalog, ListingSnapshot, UserDirectory

logger = logging.getLogger(__name__)

# Statuses in which the booking still holds a unit of slot capacity
CAPACITY_HOLDING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})

PROVIDER_EVENTS = frozenset(
    {BookingEvent.CONFIRM, BookingEvent.START, BookingEvent.COMPLETE, BookingEvent.REJECT}
)


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Centralizes booking business logic and coordinates with the slot
    repositories, the user directory and the listing catalog.
    """

    def __init__(
        self,
        db: Session,
        directory: Optional[UserDirectory] = None,
        catalog: Optional[ListingCatalog] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.recurring_repository = RepositoryFactory.create_recurring_slot_repository(db)
        self.date_specific_repository = RepositoryFactory.create_date_specific_slot_repository(db)
        self.listing_repository = RepositoryFactory.create_service_listing_repository(db)
        self.directory = directory or UserDirectory(db)
        self.catalog = catalog or ListingCatalog(db)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_booking")
    def create_booking(self, data: BookingCreate, now: Optional[datetime] = None) -> Booking:
        """
        Create a PENDING booking and consume one unit of slot capacity.

        Args:
            data: Booking request
            now: Local wall-clock "now" (defaults to the configured zone)

        Returns:
            Created booking with its generated reference

        Raises:
            ValidationException: Date/time not in the future, inactive listing, bad slot context
            NotFoundException: Customer, listing or slot not found
            ConflictException: No availability covers the time, or the slot is fully booked
        """
        now = now or get_local_now()
        self.log_operation(
            "create_booking",
            customer_id=data.customer_id,
            service_listing_id=data.service_listing_id,
            booking_date=data.booking_date.isoformat(),
            booking_time=data.booking_time.isoformat(),
        )

        # 1. Validate the request against the clock and the directory
        if combine_local(data.booking_date, data.booking_time) <= now:
            raise ValidationException(
                "Booking date and time must be in the future",
                code="BOOKING_NOT_IN_FUTURE",
                details={
                    "booking_date": data.booking_date.isoformat(),
                    "booking_time": data.booking_time.isoformat(),
                },
            )
        self.directory.require_customer(data.customer_id)
        listing = self.catalog.resolve(data.service_listing_id)
        self.directory.require_provider(listing.provider_id)

        # 2. Slot, capacity, reference and row in one transaction
        with self.transaction():
            kind, slot = self._resolve_slot(data, listing, now.date())
            if kind is slot_capacity.SlotKind.RECURRING:
                slot_capacity.reserve(self.recurring_repository, slot.id, kind)
            else:
                slot_capacity.reserve(self.date_specific_repository, slot.id, kind, today=now.date())

            booking = self.repository.create(
                reference=self._next_reference(now.year),
                customer_id=data.customer_id,
                provider_id=listing.provider_id,
                service_listing_id=listing.id,
                recurring_slot_id=slot.id if kind is slot_capacity.SlotKind.RECURRING else None,
                date_specific_slot_id=slot.id if kind is slot_capacity.SlotKind.DATE_SPECIFIC else None,
                booking_date=data.booking_date,
                booking_time=data.booking_time,
                duration_minutes=data.duration_minutes or listing.duration_minutes,
                status=BookingStatus.PENDING.value,
                total_amount=listing.price,
                currency=listing.currency,
                payment_status="Pending",
                payment_method=data.payment_method,
                customer_notes=data.customer_notes,
                **self._address_columns(data),
            )
            self.listing_repository.increment_total_bookings(listing.id)

        self.logger.info(
            "booking_created",
            extra={
                "booking_id": booking.id,
                "reference": booking.reference,
                "customer_id": booking.customer_id,
                "provider_id": booking.provider_id,
                "slot_kind": kind.value,
                "slot_id": slot.id,
            },
        )
        return booking

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(
        self,
        booking_id: str,
        actor_id: Optional[str] = None,
        provider_notes: Optional[str] = None,
    ) -> Booking:
        def stamp(booking: Booking) -> None:
            booking.confirmed_at = datetime.now(timezone.utc)

        return self._apply_event(booking_id, BookingEvent.CONFIRM, stamp, actor_id, provider_notes)

    @BaseService.measure_operation("start_booking")
    def start_booking(
        self,
        booking_id: str,
        actor_id: Optional[str] = None,
        provider_notes: Optional[str] = None,
    ) -> Booking:
        return self._apply_event(booking_id, BookingEvent.START, None, actor_id, provider_notes)

    @BaseService.measure_operation("complete_booking")
    def complete_booking(
        self,
        booking_id: str,
        actor_id: Optional[str] = None,
        provider_notes: Optional[str] = None,
    ) -> Booking:
        def stamp(booking: Booking) -> None:
            booking.completed_at = datetime.now(timezone.utc)

        return self._apply_event(booking_id, BookingEvent.COMPLETE, stamp, actor_id, provider_notes)

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self,
        booking_id: str,
        reason: Optional[str] = None,
        cancelled_by: Optional[CancelledBy] = None,
        actor_id: Optional[str] = None,
        provider_notes: Optional[str] = None,
    ) -> Booking:
        """
        Cancel a PENDING or CONFIRMED booking and release the slot it holds.

        ``cancelled_by`` defaults to the acting party when ``actor_id`` is
        given, otherwise to ``system``.
        """

        def stamp(booking: Booking) -> None:
            booking.cancelled_at = datetime.now(timezone.utc)
            booking.cancellation_reason = reason
            booking.cancelled_by = (cancelled_by or self._infer_canceller(booking, actor_id)).value
            self._release_capacity(booking)

        return self._apply_event(booking_id, BookingEvent.CANCEL, stamp, actor_id, provider_notes)

    @BaseService.measure_operation("reject_booking")
    def reject_booking(
        self, booking_id: str, reason: Optional[str] = None, actor_id: Optional[str] = None
    ) -> Booking:
        """Provider declines a PENDING booking; the reason is kept in provider notes."""

        def stamp(booking: Booking) -> None:
            booking.cancelled_at = datetime.now(timezone.utc)
            if reason:
                booking.provider_notes = reason

        return self._apply_event(booking_id, BookingEvent.REJECT, stamp, actor_id)

    def transition(
        self,
        booking_id: str,
        request: BookingTransitionRequest,
        actor_id: Optional[str] = None,
    ) -> Booking:
        """Move a booking to ``request.target_status`` via the matching lifecycle event."""
        booking = self.get_booking(booking_id)
        event = event_for_target(booking.status_enum, request.target_status)

        if event is BookingEvent.CANCEL:
            return self.cancel_booking(
                booking_id,
                request.cancellation_reason,
                request.cancelled_by,
                actor_id,
                provider_notes=request.provider_notes,
            )
        if event is BookingEvent.REJECT:
            return self.reject_booking(
                booking_id, request.provider_notes or request.cancellation_reason, actor_id
            )
        handlers = {
            BookingEvent.CONFIRM: self.confirm_booking,
            BookingEvent.START: self.start_booking,
            BookingEvent.COMPLETE: self.complete_booking,
        }
        return handlers[event](booking_id, actor_id, provider_notes=request.provider_notes)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundException(f"Booking not found with id: {booking_id}", code="BOOKING_NOT_FOUND")
        return booking

    def get_booking_by_reference(self, reference: str) -> Booking:
        booking = self.repository.get_by_reference(reference)
        if not booking:
            raise NotFoundException(
                f"Booking not found with reference: {reference}", code="BOOKING_NOT_FOUND"
            )
        return booking

    def get_all_bookings(self, skip: int = 0, limit: int = 100) -> List[Booking]:
        return self.repository.get_all_bookings(skip=skip, limit=limit)

    def get_customer_bookings(
        self, customer_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        return self.repository.get_customer_bookings(customer_id, status)

    def get_provider_bookings(
        self, provider_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        return self.repository.get_provider_bookings(provider_id, status)

    def get_bookings_for_user(self, user_id: str) -> List[Booking]:
        """Bookings visible to a user according to their directory role."""
        user = self.directory.get_user(user_id)
        return self.repository.get_bookings_for_user(user.id, RoleName(user.role))

    def get_listing_bookings(self, listing_id: str) -> List[Booking]:
        return self.repository.get_listing_bookings(listing_id)

    def get_bookings_by_status(self, status: BookingStatus) -> List[Booking]:
        return self.repository.get_bookings_by_status(status)

    @BaseService.measure_operation("delete_booking")
    def delete_booking(self, booking_id: str) -> None:
        """Administrative hard delete; an active booking gives its capacity back."""
        booking = self.get_booking(booking_id)
        status = booking.status_enum
        with self.transaction():
            if not self.repository.delete_in_status(booking_id, status):
                raise ConflictException(
                    "Booking changed while it was being deleted, please retry",
                    code="BOOKING_STATUS_CHANGED",
                    details={"booking_id": booking_id},
                )
            if status in CAPACITY_HOLDING_STATUSES:
                self._release_capacity(booking)
            self.db.expunge(booking)

        self.logger.warning(
            "booking_hard_deleted",
            extra={"booking_id": booking_id, "reference": booking.reference, "status": booking.status},
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_event(
        self,
        booking_id: str,
        event: BookingEvent,
        side_effects: Optional[Callable[[Booking], None]],
        actor_id: Optional[str],
        provider_notes: Optional[str] = None,
    ) -> Booking:
        booking = self.get_booking(booking_id)
        self._check_actor(booking, event, actor_id)
        previous = booking.status_enum

        try:
            target = next_status(previous, event)
        except InvalidTransitionException:
            prometheus_metrics.record_booking_transition(event.value, "rejected")
            self.logger.info(
                "booking_transition_rejected",
                extra={"booking_id": booking_id, "status": previous.value, "event": event.value},
            )
            raise

        with self.transaction():
            # Side effects (capacity release) only run for the request that wins the row
            if not self.repository.compare_and_set_status(booking_id, previous, target):
                self._reject_stale_transition(booking_id, previous, event)
            set_committed_value(booking, "status", target.value)
            if provider_notes:
                booking.provider_notes = provider_notes
            if side_effects is not None:
                side_effects(booking)
            self.db.flush()

        prometheus_metrics.record_booking_transition(event.value, "applied")
        self.logger.info(
            "booking_transitioned",
            extra={
                "booking_id": booking.id,
                "reference": booking.reference,
                "event": event.value,
                "from_status": previous.value,
                "to_status": target.value,
            },
        )
        return booking

    def _reject_stale_transition(
        self, booking_id: str, previous: BookingStatus, event: BookingEvent
    ) -> None:
        current = self.repository.get_current_status(booking_id)
        prometheus_metrics.record_booking_transition(event.value, "stale")
        self.logger.info(
            "booking_transition_lost_race",
            extra={
                "booking_id": booking_id,
                "read_status": previous.value,
                "current_status": current,
                "event": event.value,
            },
        )
        if current is None:
            raise NotFoundException(f"Booking not found with id: {booking_id}", code="BOOKING_NOT_FOUND")
        # Raises InvalidTransitionException when the event no longer applies
        next_status(BookingStatus(current), event)
        raise ConflictException(
            "Booking status changed while this request was in progress, please retry",
            code="BOOKING_STATUS_CHANGED",
            details={"booking_id": booking_id, "current_status": current},
        )

    def _release_capacity(self, booking: Booking) -> None:
        if booking.date_specific_slot_id:
            slot_capacity.release(
                self.date_specific_repository,
                booking.date_specific_slot_id,
                slot_capacity.SlotKind.DATE_SPECIFIC,
            )
        elif booking.recurring_slot_id:
            slot_capacity.release(
                self.recurring_repository,
                booking.recurring_slot_id,
                slot_capacity.SlotKind.RECURRING,
            )
        else:
            self.logger.warning(
                "booking_has_no_slot",
                extra={"booking_id": booking.id, "reference": booking.reference},
            )

    def _check_actor(self, booking: Booking, event: BookingEvent, actor_id: Optional[str]) -> None:
        """Ownership is checked only when the caller names the acting user."""
        if actor_id is None:
            return
        if event in PROVIDER_EVENTS:
            allowed = actor_id == booking.provider_id
        else:
            allowed = actor_id in (booking.customer_id, booking.provider_id)
        if allowed:
            return
        actor = self.directory.get_user(actor_id)
        if actor.role != RoleName.ADMIN.value:
            raise ForbiddenException(
                f"You are not allowed to {event.value.lower()} this booking",
                code="NOT_BOOKING_PARTY",
                details={"booking_id": booking.id, "actor_id": actor_id},
            )

    def _infer_canceller(self, booking: Booking, actor_id: Optional[str]) -> CancelledBy:
        if actor_id == booking.customer_id:
            return CancelledBy.CUSTOMER
        if actor_id == booking.provider_id:
            return CancelledBy.PROVIDER
        if actor_id is not None:
            return CancelledBy.ADMIN
        return CancelledBy.SYSTEM

    def _next_reference(self, year: int) -> str:
        number = self.repository.next_reference_number(year)
        return (
            f"{settings.booking_reference_prefix}-{year}-"
            f"{number:0{settings.booking_reference_digits}d}"
        )

    @staticmethod
    def _address_columns(data: BookingCreate) -> dict:
        address = data.service_address
        if address is None:
            return {}
        return {
            "service_door_no": address.door_no,
            "service_address_line": address.address_line,
            "service_city": address.city,
            "service_state": address.state,
            "service_pincode": address.pincode,
        }

    def _resolve_slot(
        self, data: BookingCreate, listing: ListingSnapshot, today: date
    ) -> Tuple[slot_capacity.SlotKind, object]:
        """
        Pick the slot the booking consumes.

        Explicit slot ids are validated against the listing and the requested
        date/time. Otherwise a date-specific slot covering the time wins over
        the weekly template; among candidates an open one is preferred so
        that a full slot only surfaces as "fully booked" when nothing else fits.
        """
        if data.date_specific_slot_id:
            slot = self.date_specific_repository.get_by_id(data.date_specific_slot_id)
            if not slot:
                raise NotFoundException(
                    f"Specific availability not found with id: {data.date_specific_slot_id}",
                    code="AVAILABILITY_NOT_FOUND",
                )
            self._validate_date_specific_context(slot, data, listing)
            return slot_capacity.SlotKind.DATE_SPECIFIC, slot

        if data.recurring_slot_id:
            slot = self.recurring_repository.get_by_id(data.recurring_slot_id)
            if not slot:
                raise NotFoundException(
                    f"Availability not found with id: {data.recurring_slot_id}",
                    code="AVAILABILITY_NOT_FOUND",
                )
            self._validate_recurring_context(slot, data, listing)
            return slot_capacity.SlotKind.RECURRING, slot

        specific = self.date_specific_repository.find_covering(
            listing.provider_id, listing.id, data.booking_date, data.booking_time
        )
        if specific:
            chosen = next((s for s in specific if s.can_accept_booking(today)), specific[0])
            return slot_capacity.SlotKind.DATE_SPECIFIC, chosen

        recurring = self.recurring_repository.find_covering(
            listing.provider_id, DayOfWeek.from_date(data.booking_date), data.booking_time
        )
        if recurring:
            chosen = next((s for s in recurring if s.can_accept_booking()), recurring[0])
            return slot_capacity.SlotKind.RECURRING, chosen

        raise ConflictException(
            "The provider has no availability at the requested date and time",
            code="NO_AVAILABILITY",
            details={
                "provider_id": listing.provider_id,
                "booking_date": data.booking_date.isoformat(),
                "booking_time": data.booking_time.isoformat(),
            },
        )

    @staticmethod
    def _covers(start: time, end: time, at: time) -> bool:
        return start <= at < end

    def _validate_date_specific_context(
        self, slot: DateSpecificSlot, data: BookingCreate, listing: ListingSnapshot
    ) -> None:
        if slot.provider_id != listing.provider_id or (
            slot.service_listing_id is not None and slot.service_listing_id != listing.id
        ):
            raise ValidationException(
                "Availability slot does not belong to this service listing",
                code="SLOT_LISTING_MISMATCH",
            )
        if slot.available_date != data.booking_date or not self._covers(
            slot.start_time, slot.end_time, data.booking_time
        ):
            raise ValidationException(
                "Availability slot does not cover the requested date and time",
                code="SLOT_TIME_MISMATCH",
            )

    def _validate_recurring_context(
        self, slot: RecurringSlot, data: BookingCreate, listing: ListingSnapshot
    ) -> None:
        if slot.provider_id != listing.provider_id:
            raise ValidationException(
                "Availability slot does not belong to this service listing",
                code="SLOT_LISTING_MISMATCH",
            )
        if slot.day_of_week != DayOfWeek.from_date(data.booking_date).value or not self._covers(
            slot.start_time, slot.end_time, data.booking_time
        ):
            raise ValidationException(
                "Availability slot does not cover the requested date and time",
                code="SLOT_TIME_MISMATCH",
            )
