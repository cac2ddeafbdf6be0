from datetime import date

from django.contrib.admin.sites import site
from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase
from django.urls import reverse

from hotel_booking.models import Booking

from .helpers import make_booking, make_room


class BookingAdminTestCase(TestCase):
    """Status changes in the admin go through the booking lifecycle"""

    def setUp(self):
        self.admin_user = get_user_model().objects.create_superuser('admin', 'admin@example.com', 'secret')
        self.client.force_login(self.admin_user)
        self.room = make_room()
        self.changelist = reverse('admin:hotel_booking_booking_changelist')

    def run_action(self, action, *bookings):
        return self.client.post(self.changelist, {
            'action': action,
            '_selected_action': [str(booking.pk) for booking in bookings],
        }, follow=True)

    def test_status_is_read_only(self):
        request = RequestFactory().get('/')
        request.user = self.admin_user
        readonly = site._registry[Booking].get_readonly_fields(request)
        self.assertIn('status', readonly)

    def test_confirm_action(self):
        booking = make_booking(self.room, date(2030, 1, 1), date(2030, 1, 3), status=Booking.Status.PENDING_PAYMENT)

        response = self.run_action('confirm_payment', booking)

        self.assertEqual(response.status_code, 200)
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.CONFIRMED)

    def test_cancelled_booking_cannot_be_revived(self):
        booking = make_booking(self.room, date(2030, 1, 1), date(2030, 1, 3), status=Booking.Status.CANCELLED)

        response = self.run_action('confirm_payment', booking)

        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.CANCELLED)
        self.assertContains(response, 'cannot move from cancelled to confirmed')

    def test_cancel_action(self):
        booking = make_booking(self.room, date(2030, 1, 1), date(2030, 1, 3))

        self.run_action('cancel_bookings', booking)

        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.CANCELLED)
