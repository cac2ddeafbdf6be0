from django.db import DatabaseError, connection
from django.http import JsonResponse
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .availability import available_rooms_qs, check_availability, check_availability_batch
from .errors import MissingFields
from .models import Booking, Room
from .serializers import (
    AvailabilityQuerySerializer,
    BatchAvailabilitySerializer,
    BookingCreateSerializer,
    BookingDetailSerializer,
    BookingSerializer,
    RoomSerializer,
)
from .services import cancel_booking, confirm_booking, get_booking_by_id
from .validators import parse_date_range


def welcome(request):
    return JsonResponse({"message": "Welcome to the Hotel Booking API"})


def health_check(request):
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as exc:
        return JsonResponse({"status": "unhealthy", "database": "unavailable", "error": str(exc)}, status=503)
    return JsonResponse({"status": "ok", "database": "connected"})


def _require(data, *names):
    missing = [name for name in names if not data.get(name)]
    if missing:
        raise MissingFields(missing)


class RoomViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Room.objects.filter(is_active=True).select_related('city')
    serializer_class = RoomSerializer

    def list(self, request):
        """Search rooms, optionally only those free for a stay"""
        check_in = request.query_params.get('check_in')
        check_out = request.query_params.get('check_out')
        max_price = request.query_params.get('max_price')

        if max_price:
            try:
                max_price = int(max_price)
            except ValueError:
                return Response({'error': 'max_price must be an integer'},
                                status=status.HTTP_400_BAD_REQUEST)
        else:
            max_price = None

        if check_in and check_out:
            stay = parse_date_range(check_in, check_out)
            rooms = available_rooms_qs(stay.check_in, stay.check_out, max_price).select_related('city')
        else:
            rooms = self.get_queryset()
            if max_price is not None:
                rooms = rooms.filter(price_per_night__lte=max_price)

        serializer = self.get_serializer(rooms.order_by('price_per_night', 'name'), many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['get'])
    def availability(self, request, pk=None):
        """Advisory availability of one room"""
        room = self.get_object()
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        _require(query.validated_data, 'check_in', 'check_out')

        available = check_availability(room.pk, query.validated_data['check_in'],
                                       query.validated_data['check_out'])
        return Response({
            'room_id': str(room.pk),
            'check_in': query.validated_data['check_in'],
            'check_out': query.validated_data['check_out'],
            'available': available,
        })

    @action(detail=False, methods=['post'], url_path='availability')
    def batch_availability(self, request):
        """Advisory availability of several rooms for one stay"""
        query = BatchAvailabilitySerializer(data=request.data)
        query.is_valid(raise_exception=True)
        _require(query.validated_data, 'check_in', 'check_out')

        results = check_availability_batch(query.validated_data['room_ids'],
                                           query.validated_data['check_in'],
                                           query.validated_data['check_out'])
        return Response({'availability': results})


class BookingViewSet(mixins.CreateModelMixin,
                     mixins.RetrieveModelMixin,
                     mixins.ListModelMixin,
                     viewsets.GenericViewSet):
    queryset = Booking.objects.select_related('room')
    serializer_class = BookingSerializer

    def get_serializer_class(self):
        if self.action == 'create':
            return BookingCreateSerializer
        if self.action == 'retrieve':
            return BookingDetailSerializer
        return BookingSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = serializer.save()
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        booking = get_booking_by_id(pk)
        return Response(BookingDetailSerializer(booking).data)

    def list(self, request):
        """Bookings of one requester, newest first"""
        requester_id = request.query_params.get('requester_id')
        if not requester_id:
            raise MissingFields(['requester_id'])

        bookings = self.get_queryset().filter(requester_id=requester_id).order_by('-created_at')
        serializer = self.get_serializer(bookings, many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['post'])
    def confirm_payment(self, request, pk=None):
        """Payment cleared externally; hold becomes a confirmed booking"""
        booking = confirm_booking(pk)
        return Response(BookingSerializer(booking).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        booking = cancel_booking(pk)
        return Response(BookingSerializer(booking).data)
