from rest_framework import serializers

from .models import Booking, City, Room
from .services import create_booking


class CitySerializer(serializers.ModelSerializer):

    class Meta:
        model = City
        fields = ['id', 'key', 'name']


class RoomSerializer(serializers.ModelSerializer):
    city = CitySerializer(read_only=True)

    class Meta:
        model = Room
        fields = ['id', 'name', 'price_per_night', 'rating', 'description', 'is_active', 'city']


class RoomSummarySerializer(serializers.ModelSerializer):

    class Meta:
        model = Room
        fields = ['id', 'name', 'price_per_night', 'rating']


class BookingSerializer(serializers.ModelSerializer):
    room_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id',
            'reference',
            'room_id',
            'requester_id',
            'check_in',
            'check_out',
            'guests',
            'nights',
            'price_per_night',
            'total',
            'status',
            'requester_details',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class BookingDetailSerializer(BookingSerializer):
    """Booking with the room it holds, shaped both as ``hotel`` and ``room``."""

    hotel = RoomSerializer(source='room', read_only=True)
    room = RoomSummarySerializer(read_only=True)

    class Meta(BookingSerializer.Meta):
        fields = BookingSerializer.Meta.fields + ['hotel', 'room']
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    # Presence, guest bounds and dates are checked by create_booking so each
    # failure carries its own error code.
    room_id = serializers.CharField(required=False, allow_blank=True)
    check_in = serializers.CharField(required=False, allow_blank=True)
    check_out = serializers.CharField(required=False, allow_blank=True)
    guests = serializers.JSONField(required=False, allow_null=True)
    requester_id = serializers.CharField(required=False, allow_blank=True)
    requester_details = serializers.DictField(required=False)

    def create(self, validated):
        return create_booking(
            room_id=validated.get('room_id'),
            check_in=validated.get('check_in'),
            check_out=validated.get('check_out'),
            guests=validated.get('guests'),
            requester_id=validated.get('requester_id'),
            requester_details=validated.get('requester_details'),
        )


class AvailabilityQuerySerializer(serializers.Serializer):
    check_in = serializers.CharField(required=False, allow_blank=True)
    check_out = serializers.CharField(required=False, allow_blank=True)


class BatchAvailabilitySerializer(AvailabilityQuerySerializer):
    room_ids = serializers.ListField(child=serializers.CharField(), allow_empty=True)
