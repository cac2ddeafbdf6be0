"""Per-room locks held in the shared database.

Creating a booking checks availability and inserts the row while holding
the lock of its room, so two requests for the same room cannot both pass
the overlap check. Requests for different rooms use different keys and
never wait on each other.

PostgreSQL uses session-level advisory locks. Other backends insert a
``RoomLock`` row whose primary key is the lock key; the row carries a lease
so a crashed holder cannot keep a room locked forever.
"""

from __future__ import annotations

import hashlib
import secrets
import time
import uuid
from contextlib import contextmanager
from datetime import timedelta

import structlog
from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, DatabaseError, IntegrityError, OperationalError, connections, transaction
from django.utils import timezone

from .errors import DataStoreUnavailable, LockTimeout
from .models import RoomLock

logger = structlog.get_logger(__name__)

DEFAULT_LOCK_TIMEOUT = 5.0
DEFAULT_LOCK_LEASE = 30.0
POLL_INITIAL_DELAY = 0.01
POLL_MAX_DELAY = 0.2


def _canonical_room_id(room_id) -> str:
    try:
        return str(uuid.UUID(str(room_id)))
    except ValueError:
        return str(room_id)


def room_lock_key(room_id) -> int:
    """Signed 64-bit lock key for a room, stable across processes."""
    digest = hashlib.blake2b(_canonical_room_id(room_id).encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def _poll_until(attempt, deadline):
    delay = POLL_INITIAL_DELAY
    while not attempt():
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        time.sleep(min(delay, remaining))
        delay = min(delay * 2, POLL_MAX_DELAY)
    return True


class AdvisoryLockBackend:
    def __init__(self, using):
        self.using = using

    def try_acquire(self, key, room_id, remaining):
        with connections[self.using].cursor() as cursor:
            cursor.execute("SELECT pg_try_advisory_lock(%s)", [key])
            return bool(cursor.fetchone()[0])

    def release(self, key):
        with connections[self.using].cursor() as cursor:
            cursor.execute("SELECT pg_advisory_unlock(%s)", [key])


class RowLockBackend:
    def __init__(self, using):
        self.using = using
        self.token = secrets.token_hex(16)

    def try_acquire(self, key, room_id, remaining):
        lease = getattr(settings, "BOOKING_LOCK_LEASE", DEFAULT_LOCK_LEASE)
        now = timezone.now()
        locks = RoomLock.objects.using(self.using)
        try:
            with self._busy_timeout(remaining):
                with transaction.atomic(using=self.using):
                    locks.filter(key=key, expires_at__lte=now).delete()
                    locks.create(
                        key=key,
                        room=_canonical_room_id(room_id),
                        token=self.token,
                        acquired_at=now,
                        expires_at=now + timedelta(seconds=lease),
                    )
        except IntegrityError:
            return False
        except OperationalError as exc:
            # another writer kept the database past the remaining wait
            if "database is locked" in str(exc):
                return False
            raise
        return True

    @contextmanager
    def _busy_timeout(self, seconds):
        """Cap SQLite's busy wait so one attempt cannot outlast the lock timeout."""
        connection = connections[self.using]
        if connection.vendor != "sqlite":
            yield
            return
        configured = connection.settings_dict["OPTIONS"].get("timeout", 5)
        with connection.cursor() as cursor:
            cursor.execute(f"PRAGMA busy_timeout = {max(int(seconds * 1000), 1)}")
        try:
            yield
        finally:
            with connection.cursor() as cursor:
                cursor.execute(f"PRAGMA busy_timeout = {int(configured * 1000)}")

    def release(self, key):
        RoomLock.objects.using(self.using).filter(key=key, token=self.token).delete()


def _backend_for(using):
    if connections[using].vendor == "postgresql":
        return AdvisoryLockBackend(using)
    return RowLockBackend(using)


@contextmanager
def room_lock(room_id, timeout=None, using=DEFAULT_DB_ALIAS):
    """Hold the lock of ``room_id`` for the duration of the ``with`` block.

    Waits at most ``timeout`` seconds (``BOOKING_LOCK_TIMEOUT`` by default)
    and raises ``LockTimeout`` after that. The lock is released on every
    exit from the block.
    """
    if timeout is None:
        timeout = getattr(settings, "BOOKING_LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT)
    key = room_lock_key(room_id)
    backend = _backend_for(using)
    started = time.monotonic()
    deadline = started + timeout

    try:
        acquired = _poll_until(
            lambda: backend.try_acquire(key, room_id, deadline - time.monotonic()), deadline
        )
    except DatabaseError as exc:
        logger.error("room_lock.acquire_failed", room_id=str(room_id), key=key, error=str(exc))
        raise DataStoreUnavailable() from exc
    if not acquired:
        logger.warning("room_lock.timeout", room_id=str(room_id), key=key, timeout=timeout)
        raise LockTimeout()

    logger.debug("room_lock.acquired", room_id=str(room_id), key=key, waited=time.monotonic() - started)
    try:
        yield key
    finally:
        try:
            backend.release(key)
        except DatabaseError as exc:
            # the lease or the end of the database session frees it
            logger.error("room_lock.release_failed", room_id=str(room_id), key=key, error=str(exc))
        else:
            logger.debug("room_lock.released", room_id=str(room_id), key=key)
