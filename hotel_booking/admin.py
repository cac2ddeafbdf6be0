from django.contrib import admin, messages

from .errors import BookingError
from .models import Booking, City, Room
from .services import cancel_booking, confirm_booking


@admin.register(City)
class CityAdmin(admin.ModelAdmin):
    list_display = ('key', 'name', 'is_active')


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ('name', 'city', 'price_per_night', 'rating', 'is_active')
    list_filter = ('is_active', 'city')
    search_fields = ('name',)


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ('reference', 'room', 'requester_id', 'check_in', 'check_out', 'guests', 'total', 'status')
    list_filter = ('status',)
    search_fields = ('reference', 'requester_id')
    # bookings are admitted only through create_booking; status moves only through the actions
    readonly_fields = ('reference', 'room', 'status', 'check_in', 'check_out', 'guests', 'price_per_night',
                       'nights', 'total', 'created_at', 'updated_at')
    actions = ['confirm_payment', 'cancel_bookings']

    def _apply(self, request, queryset, transition, verb):
        done = 0
        for booking in queryset:
            try:
                transition(booking.pk)
            except BookingError as exc:
                self.message_user(request, f'{booking.reference}: {exc.detail}', messages.ERROR)
            else:
                done += 1
        if done:
            self.message_user(request, f'{done} booking(s) {verb}.', messages.SUCCESS)

    @admin.action(description='Confirm payment of selected bookings')
    def confirm_payment(self, request, queryset):
        self._apply(request, queryset, confirm_booking, 'confirmed')

    @admin.action(description='Cancel selected bookings')
    def cancel_bookings(self, request, queryset):
        self._apply(request, queryset, cancel_booking, 'cancelled')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
