# backend/tests/conftest.py
"""
Pytest configuration for the ServiceSpot bookings core.

Every test gets its own in-memory SQLite database (schema created from the
models) and a session configured like SessionLocal. Factory fixtures insert
users, listings, slots and bookings directly so each test sets up exactly
the state it needs.

Dates are pinned: TODAY is Monday 2030-01-07 and NOW is 08:00 that day.
Services that default to the local clock are always given ``today``/``now``
explicitly.
"""

import os

# Set before any servicespot import so Settings never points at a real database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")

from datetime import date, datetime, time, timedelta
from decimal import Decimal
import itertools
from typing import Any, Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from servicespot.core.enums import BookingStatus, DayOfWeek, RoleName
from servicespot.database import Base
from servicespot.models import Booking, DateSpecificSlot, RecurringSlot, ServiceListing, User
from tests.utils.clock import NEXT_MONDAY, NOW, TODAY


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    TestSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def now() -> datetime:
    return NOW


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role: RoleName = RoleName.CUSTOMER, *, active: bool = True, name: Optional[str] = None) -> User:
        n = next(counter)
        user = User(
            name=name or f"{role.value.title()} {n}",
            email=f"{role.value.lower()}{n}@example.com",
            role=role.value,
            active=active,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def provider(make_user) -> User:
    return make_user(RoleName.PROVIDER, name="Ravi Kumar")


@pytest.fixture
def other_provider(make_user) -> User:
    return make_user(RoleName.PROVIDER, name="Meena Iyer")


@pytest.fixture
def customer(make_user) -> User:
    return make_user(RoleName.CUSTOMER, name="Asha Rao")


@pytest.fixture
def admin(make_user) -> User:
    return make_user(RoleName.ADMIN, name="Ops Admin")


@pytest.fixture
def make_listing(db, provider):
    def _make(
        provider_id: Optional[str] = None,
        *,
        title: str = "Deep home cleaning",
        price: str = "1499.00",
        currency: Optional[str] = "INR",
        duration_minutes: int = 90,
        active: bool = True,
    ) -> ServiceListing:
        listing = ServiceListing(
            provider_id=provider_id or provider.id,
            title=title,
            price=Decimal(price),
            currency=currency,
            duration_minutes=duration_minutes,
            active=active,
        )
        db.add(listing)
        db.commit()
        return listing

    return _make


@pytest.fixture
def listing(make_listing) -> ServiceListing:
    return make_listing()


@pytest.fixture
def make_recurring_slot(db, provider):
    def _make(
        day: DayOfWeek = DayOfWeek.MONDAY,
        start: time = time(9, 0),
        end: time = time(10, 0),
        *,
        provider_id: Optional[str] = None,
        max_bookings: int = 1,
        current_bookings: int = 0,
        is_available: bool = True,
    ) -> RecurringSlot:
        slot = RecurringSlot(
            provider_id=provider_id or provider.id,
            day_of_week=day.value,
            start_time=start,
            end_time=end,
            max_bookings=max_bookings,
            current_bookings=current_bookings,
            is_available=is_available,
        )
        db.add(slot)
        db.commit()
        return slot

    return _make


@pytest.fixture
def make_date_slot(db, provider):
    def _make(
        available_date: date = NEXT_MONDAY,
        start: time = time(9, 0),
        end: time = time(10, 0),
        *,
        provider_id: Optional[str] = None,
        service_listing_id: Optional[str] = None,
        max_bookings: Optional[int] = 1,
        current_bookings: int = 0,
        is_available: bool = True,
    ) -> DateSpecificSlot:
        slot = DateSpecificSlot(
            provider_id=provider_id or provider.id,
            service_listing_id=service_listing_id,
            available_date=available_date,
            start_time=start,
            end_time=end,
            max_bookings=max_bookings,
            current_bookings=current_bookings,
            is_available=is_available,
        )
        db.add(slot)
        db.commit()
        return slot

    return _make


@pytest.fixture
def make_booking(db, customer, provider, listing):
    counter = itertools.count(1)

    def _make(
        status: BookingStatus = BookingStatus.COMPLETED,
        *,
        customer_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        service_listing_id: Optional[str] = None,
        booking_date: date = TODAY - timedelta(days=3),
        booking_time: time = time(9, 0),
        date_specific_slot_id: Optional[str] = None,
        recurring_slot_id: Optional[str] = None,
    ) -> Booking:
        booking = Booking(
            reference=f"BK-2030-{900000 + next(counter)}",
            customer_id=customer_id or customer.id,
            provider_id=provider_id or provider.id,
            service_listing_id=service_listing_id or listing.id,
            booking_date=booking_date,
            booking_time=booking_time,
            duration_minutes=60,
            status=status.value,
            total_amount=Decimal("1499.00"),
            currency="INR",
            payment_status="Pending",
            date_specific_slot_id=date_specific_slot_id,
            recurring_slot_id=recurring_slot_id,
        )
        db.add(booking)
        db.commit()
        return booking

    return _make
