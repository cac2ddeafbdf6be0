from hotel_booking.models import Booking, Room
from hotel_booking.services import generate_reference


def make_room(name="Test Hotel", price_per_night=2500, **extra):
    return Room.objects.create(name=name, price_per_night=price_per_night, **extra)


def make_booking(room, check_in, check_out, status=Booking.Status.CONFIRMED, requester_id="guest-1", guests=2):
    """Insert a booking row directly, bypassing admission"""
    nights = (check_out - check_in).days
    return Booking.objects.create(
        reference=generate_reference(),
        room=room,
        requester_id=requester_id,
        check_in=check_in,
        check_out=check_out,
        guests=guests,
        price_per_night=room.price_per_night,
        nights=nights,
        total=nights * room.price_per_night,
        status=status,
    )
