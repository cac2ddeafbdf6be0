import uuid

from django.db import models
from django.core.validators import MaxValueValidator, MinValueValidator

MIN_GUESTS = 1
MAX_GUESTS = 20


class City(models.Model):
    key = models.SlugField(max_length=50, unique=True)
    name = models.CharField(max_length=100)
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name_plural = "cities"

    def __str__(self):
        return self.name


class Room(models.Model):
    """A bookable unit. In this system a room and a hotel are the same entity."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    city = models.ForeignKey(City, on_delete=models.SET_NULL, null=True, blank=True, related_name="rooms")
    name = models.CharField(max_length=200)
    price_per_night = models.PositiveIntegerField(validators=[MinValueValidator(0)])
    rating = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name


class Booking(models.Model):
    class Status(models.TextChoices):
        PENDING_PAYMENT = "pending_payment"
        CONFIRMED = "confirmed"
        CANCELLED = "cancelled"

    # statuses that hold the room for their date range
    BLOCKING_STATUSES = (Status.PENDING_PAYMENT, Status.CONFIRMED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reference = models.CharField(max_length=32, unique=True, editable=False)
    room = models.ForeignKey(Room, on_delete=models.PROTECT, related_name="bookings")
    requester_id = models.CharField(max_length=64, db_index=True)
    check_in = models.DateField()
    check_out = models.DateField()  # exclusive
    guests = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(MIN_GUESTS), MaxValueValidator(MAX_GUESTS)]
    )
    price_per_night = models.PositiveIntegerField()
    nights = models.PositiveIntegerField()
    total = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING_PAYMENT)
    requester_details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out__gt=models.F("check_in")),
                name="booking_check_out_after_check_in",
            ),
        ]
        indexes = [
            models.Index(fields=["room", "check_in", "check_out"], name="booking_room_dates_idx"),
            models.Index(fields=["status"], name="booking_status_idx"),
        ]

    def __str__(self):
        return f"Booking {self.reference} for room {self.room_id}"

    @property
    def is_blocking(self):
        return self.status in self.BLOCKING_STATUSES


class RoomLock(models.Model):
    """Row-based room lock for databases without advisory locks.

    The primary key on ``key`` lets only one holder exist per room; a second
    insert fails with an integrity error until the holder deletes its row or
    the lease in ``expires_at`` runs out.
    """

    key = models.BigIntegerField(primary_key=True)
    room = models.CharField(max_length=64)
    token = models.CharField(max_length=32)
    acquired_at = models.DateTimeField()
    expires_at = models.DateTimeField()

    def __str__(self):
        return f"RoomLock {self.key} for room {self.room}"
