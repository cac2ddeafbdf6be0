"""Booking admission and lifecycle."""

from __future__ import annotations

import secrets
import string
import time

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .availability import count_conflicts
from .errors import (
    BookingCreationFailed,
    BookingError,
    BookingNotFound,
    DataStoreUnavailable,
    InvalidGuestCount,
    InvalidRequesterId,
    InvalidStatusTransition,
    MissingFields,
    ReferenceCollision,
    RoomNotFound,
    RoomUnavailable,
)
from .locks import room_lock
from .models import MAX_GUESTS, MIN_GUESTS, Booking, Room
from .validators import validate_date_range

logger = structlog.get_logger(__name__)

REFERENCE_PREFIX = "BK"
REFERENCE_RANDOM_LENGTH = 8
REFERENCE_ALPHABET = string.digits + string.ascii_uppercase
DEFAULT_REFERENCE_ATTEMPTS = 3

ALLOWED_TRANSITIONS = {
    Booking.Status.PENDING_PAYMENT.value: {Booking.Status.CONFIRMED.value, Booking.Status.CANCELLED.value},
    Booking.Status.CONFIRMED.value: {Booking.Status.CANCELLED.value},
    Booking.Status.CANCELLED.value: set(),
}


def _base36(number: int) -> str:
    digits = []
    while True:
        number, remainder = divmod(number, 36)
        digits.append(REFERENCE_ALPHABET[remainder])
        if not number:
            return "".join(reversed(digits))


def generate_reference(now_ms: int | None = None) -> str:
    """``BK`` + base36 milliseconds since the epoch + random base36 suffix."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_RANDOM_LENGTH))
    return f"{REFERENCE_PREFIX}{_base36(now_ms)}{suffix}"


def _is_missing(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _validate_requester_id(requester_id) -> str:
    requester_id = str(requester_id)
    if len(requester_id) > Booking._meta.get_field("requester_id").max_length:
        raise InvalidRequesterId()
    return requester_id


def _validate_guests(guests) -> int:
    if isinstance(guests, bool) or not isinstance(guests, int):
        raise InvalidGuestCount()
    if not MIN_GUESTS <= guests <= MAX_GUESTS:
        raise InvalidGuestCount()
    return guests


def _get_bookable_room(room_id) -> Room:
    try:
        return Room.objects.get(pk=room_id, is_active=True)
    except (Room.DoesNotExist, ValidationError, ValueError):
        raise RoomNotFound()
    except DatabaseError as exc:
        raise DataStoreUnavailable() from exc


def _reserve(room, stay, guests, requester_id, requester_details) -> Booking:
    with room_lock(room.pk):
        try:
            # durable: the commit must land before the lock is released
            with transaction.atomic(durable=True):
                if count_conflicts(room.pk, stay.check_in, stay.check_out):
                    raise RoomUnavailable()

                reference = generate_reference()
                if Booking.objects.filter(reference=reference).exists():
                    raise ReferenceCollision()

                try:
                    with transaction.atomic():
                        return Booking.objects.create(
                            reference=reference,
                            room=room,
                            requester_id=requester_id,
                            check_in=stay.check_in,
                            check_out=stay.check_out,
                            guests=guests,
                            price_per_night=room.price_per_night,
                            nights=stay.nights,
                            total=stay.nights * room.price_per_night,
                            status=Booking.Status.PENDING_PAYMENT,
                            requester_details=requester_details,
                        )
                except IntegrityError as exc:
                    if Booking.objects.filter(reference=reference).exists():
                        raise ReferenceCollision() from exc
                    raise BookingCreationFailed() from exc
        except BookingError:
            raise
        except DatabaseError as exc:
            raise DataStoreUnavailable() from exc


def create_booking(
    room_id=None,
    check_in=None,
    check_out=None,
    guests=None,
    requester_id=None,
    requester_details=None,
    *,
    today=None,
) -> Booking:
    """Admit a booking for one room and stay.

    Input is validated before any lock is taken. The availability check
    that decides the outcome runs under the room lock, in the same
    transaction as the insert, so concurrent requests for one room are
    admitted as if they had arrived one after another.

    Must not run inside an outer ``transaction.atomic()`` block (or with
    ``ATOMIC_REQUESTS``): the insert would then commit after the lock is
    gone, so Django raises ``RuntimeError`` instead.
    """
    required = {
        "room_id": room_id,
        "check_in": check_in,
        "check_out": check_out,
        "guests": guests,
        "requester_id": requester_id,
    }
    log = logger.bind(
        room_id=str(room_id),
        requester_id=requester_id,
        check_in=str(check_in),
        check_out=str(check_out),
    )

    try:
        missing = [name for name, value in required.items() if _is_missing(value)]
        if missing:
            raise MissingFields(missing)
        requester_id = _validate_requester_id(requester_id)
        guests = _validate_guests(guests)
        stay = validate_date_range(check_in, check_out, today or timezone.localdate())
        room = _get_bookable_room(room_id)

        attempts = getattr(settings, "BOOKING_REFERENCE_ATTEMPTS", DEFAULT_REFERENCE_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            try:
                booking = _reserve(room, stay, guests, requester_id, dict(requester_details or {}))
                break
            except ReferenceCollision:
                log.warning("booking.reference_collision", attempt=attempt)
        else:
            raise BookingCreationFailed()
    except BookingError as exc:
        log.info("booking.rejected", error=exc.code)
        raise

    log.info(
        "booking.created",
        booking_id=str(booking.pk),
        reference=booking.reference,
        nights=booking.nights,
        total=booking.total,
    )
    return booking


def get_booking_by_id(booking_id) -> Booking:
    """Booking with its room and city loaded. Reads take no lock."""
    try:
        return Booking.objects.select_related("room", "room__city").get(pk=booking_id)
    except (Booking.DoesNotExist, ValidationError, ValueError):
        raise BookingNotFound()
    except DatabaseError as exc:
        raise DataStoreUnavailable() from exc


def _transition(booking_id, new_status) -> Booking:
    new_status = Booking.Status(new_status).value
    try:
        with transaction.atomic():
            try:
                booking = Booking.objects.select_for_update().get(pk=booking_id)
            except (Booking.DoesNotExist, ValidationError, ValueError):
                raise BookingNotFound()

            if booking.status == new_status == Booking.Status.CANCELLED:
                return booking
            if new_status not in ALLOWED_TRANSITIONS[booking.status]:
                raise InvalidStatusTransition(
                    f"Booking {booking.reference} cannot move from {booking.status} to {new_status}."
                )

            previous = booking.status
            booking.status = new_status
            booking.save(update_fields=["status", "updated_at"])
    except DatabaseError as exc:
        raise DataStoreUnavailable() from exc

    logger.info(
        f"booking.{new_status}",
        booking_id=str(booking.pk),
        reference=booking.reference,
        previous_status=previous,
    )
    return booking


def confirm_booking(booking_id) -> Booking:
    """Mark a pending booking as paid."""
    return _transition(booking_id, Booking.Status.CONFIRMED)


def cancel_booking(booking_id) -> Booking:
    """Cancel a booking, releasing its dates."""
    return _transition(booking_id, Booking.Status.CANCELLED)
