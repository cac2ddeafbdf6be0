"""Overlap detection between a requested stay and existing bookings.

A booking conflicts with a stay when it is in a blocking status and
``existing.check_in < check_out AND existing.check_out > check_in``. The
same filter backs the per-room count used under the room lock and the
``Exists`` subquery used by the room search.
"""

from __future__ import annotations

from typing import Iterable

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.db.models import Exists, OuterRef

from .errors import DataStoreUnavailable
from .models import Booking, Room
from .validators import parse_date_range

logger = structlog.get_logger(__name__)


def overlap_filter(check_in, check_out) -> dict:
    return {
        "status__in": Booking.BLOCKING_STATUSES,
        "check_in__lt": check_out,
        "check_out__gt": check_in,
    }


def count_conflicts(room_id, check_in, check_out) -> int:
    """Number of blocking bookings of ``room_id`` overlapping the stay."""
    try:
        return Booking.objects.filter(room_id=room_id, **overlap_filter(check_in, check_out)).count()
    except DatabaseError as exc:
        logger.error("availability.query_failed", room_id=str(room_id), error=str(exc))
        raise DataStoreUnavailable() from exc


def is_room_available(room_id, check_in, check_out) -> bool:
    return count_conflicts(room_id, check_in, check_out) == 0


def check_availability(room_id, check_in, check_out) -> bool:
    """Advisory availability for one room. Never used for the commit decision."""
    stay = parse_date_range(check_in, check_out)
    available = is_room_available(room_id, stay.check_in, stay.check_out)
    logger.info(
        "availability.checked",
        room_id=str(room_id),
        check_in=stay.check_in.isoformat(),
        check_out=stay.check_out.isoformat(),
        available=available,
    )
    return available


def check_availability_batch(room_ids: Iterable, check_in, check_out) -> dict:
    """Availability per room for one stay.

    A room whose lookup fails is reported unavailable; the other rooms are
    still checked.
    """
    stay = parse_date_range(check_in, check_out)
    results = {}
    for room_id in room_ids:
        key = str(room_id)
        if key in results:
            continue
        try:
            results[key] = is_room_available(room_id, stay.check_in, stay.check_out)
        except (DataStoreUnavailable, ValidationError):
            logger.warning("availability.batch_room_failed", room_id=key)
            results[key] = False

    logger.info(
        "availability.batch_checked",
        rooms=len(results),
        available=sum(1 for value in results.values() if value),
    )
    return results


def available_rooms_qs(check_in, check_out, max_price=None):
    overlap = Exists(
        Booking.objects.filter(room=OuterRef("pk"), **overlap_filter(check_in, check_out))
    )
    qs = Room.objects.filter(is_active=True).annotate(has_overlap=overlap).filter(has_overlap=False)
    if max_price is not None:
        qs = qs.filter(price_per_night__lte=max_price)
    return qs
