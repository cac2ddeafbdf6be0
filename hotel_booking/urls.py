from rest_framework.routers import DefaultRouter
from hotel_booking.views import RoomViewSet, BookingViewSet

router = DefaultRouter()
router.register(r'rooms', RoomViewSet)
router.register(r'bookings', BookingViewSet)

urlpatterns = router.urls
