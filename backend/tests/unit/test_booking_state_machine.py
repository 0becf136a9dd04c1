# backend/tests/unit/test_booking_state_machine.py
"""
Unit tests for the booking transition table.
"""

import itertools

import pytest

from servicespot.core.enums import BookingEvent, BookingStatus
from servicespot.core.exceptions import InvalidTransitionException
from servicespot.services.booking_state_machine import (
    TRANSITIONS,
    can_transition,
    event_for_target,
    next_status,
)

VALID_EDGES = {
    (BookingStatus.PENDING, BookingEvent.CONFIRM): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.PENDING, BookingEvent.REJECT): BookingStatus.REJECTED,
    (BookingStatus.CONFIRMED, BookingEvent.START): BookingStatus.IN_PROGRESS,
    (BookingStatus.CONFIRMED, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.IN_PROGRESS, BookingEvent.COMPLETE): BookingStatus.COMPLETED,
}


class TestTransitionTable:
    @pytest.mark.parametrize(("edge", "expected"), list(VALID_EDGES.items()))
    def test_valid_edges(self, edge, expected):
        current, event = edge
        assert next_status(current, event) is expected
        assert can_transition(current, event)

    @pytest.mark.parametrize(
        ("current", "event"),
        [
            pair
            for pair in itertools.product(BookingStatus, BookingEvent)
            if pair not in VALID_EDGES
        ],
    )
    def test_every_other_pair_is_rejected(self, current, event):
        assert not can_transition(current, event)
        with pytest.raises(InvalidTransitionException) as exc_info:
            next_status(current, event)
        assert exc_info.value.details == {"current_status": current.value, "event": event.value}

    def test_table_has_exactly_the_documented_edges(self):
        assert dict(TRANSITIONS) == VALID_EDGES

    @pytest.mark.parametrize(
        "terminal", [BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED]
    )
    def test_terminal_states_have_no_outgoing_edges(self, terminal):
        assert terminal.is_terminal
        assert not any(current is terminal for current, _ in TRANSITIONS)

    def test_accepts_plain_string_values(self):
        assert next_status("PENDING", "CONFIRM") is BookingStatus.CONFIRMED

    def test_error_message_reads_naturally(self):
        with pytest.raises(InvalidTransitionException) as exc_info:
            next_status(BookingStatus.COMPLETED, BookingEvent.CANCEL)
        assert exc_info.value.message == "Cannot cancel a booking that is COMPLETED"
        assert exc_info.value.code == "INVALID_TRANSITION"


class TestEventForTarget:
    @pytest.mark.parametrize(
        ("target", "event"),
        [
            (BookingStatus.CONFIRMED, BookingEvent.CONFIRM),
            (BookingStatus.IN_PROGRESS, BookingEvent.START),
            (BookingStatus.COMPLETED, BookingEvent.COMPLETE),
            (BookingStatus.CANCELLED, BookingEvent.CANCEL),
            (BookingStatus.REJECTED, BookingEvent.REJECT),
        ],
    )
    def test_maps_target_to_event(self, target, event):
        assert event_for_target(BookingStatus.PENDING, target) is event

    def test_pending_is_never_a_target(self):
        with pytest.raises(InvalidTransitionException) as exc_info:
            event_for_target(BookingStatus.CONFIRMED, BookingStatus.PENDING)
        assert "move to pending" in exc_info.value.message
