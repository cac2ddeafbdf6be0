import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest import skipUnless

from django.db import connection, transaction
from django.test import TransactionTestCase
from django.utils import timezone

from hotel_booking.errors import LockTimeout
from hotel_booking.locks import room_lock, room_lock_key
from hotel_booking.models import RoomLock


def _in_thread(func, *args, **kwargs):
    """Run func on a separate thread, with its own database connection"""
    def target():
        try:
            return func(*args, **kwargs)
        finally:
            connection.close()

    with ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(target).result(timeout=30)


def _try_lock(room_id, timeout):
    try:
        with room_lock(room_id, timeout=timeout):
            return 'acquired'
    except LockTimeout:
        return 'timeout'


class RoomLockKeyTestCase(TransactionTestCase):

    def test_same_room_same_key(self):
        room_id = uuid.uuid4()
        self.assertEqual(room_lock_key(room_id), room_lock_key(room_id))
        self.assertEqual(room_lock_key(room_id), room_lock_key(str(room_id).upper()))

    def test_different_rooms_different_keys(self):
        keys = {room_lock_key(uuid.uuid4()) for _ in range(1000)}
        self.assertEqual(len(keys), 1000)

    def test_key_fits_signed_bigint(self):
        for _ in range(100):
            key = room_lock_key(uuid.uuid4())
            self.assertGreaterEqual(key, -2 ** 63)
            self.assertLess(key, 2 ** 63)

    def test_non_uuid_identifiers_are_hashed_as_text(self):
        self.assertEqual(room_lock_key("room-101"), room_lock_key("room-101"))
        self.assertNotEqual(room_lock_key("room-101"), room_lock_key("room-102"))


class RoomLockTestCase(TransactionTestCase):
    """Room locks exclude other holders across connections"""

    def setUp(self):
        self.room_id = uuid.uuid4()

    def test_second_holder_times_out(self):
        with room_lock(self.room_id):
            self.assertEqual(_in_thread(_try_lock, self.room_id, 0.2), 'timeout')

    def test_lock_is_free_after_the_block(self):
        with room_lock(self.room_id):
            pass
        self.assertEqual(_in_thread(_try_lock, self.room_id, 0.2), 'acquired')

    def test_lock_is_released_when_the_block_raises(self):
        with self.assertRaises(RuntimeError):
            with room_lock(self.room_id):
                raise RuntimeError('boom')

        self.assertEqual(_in_thread(_try_lock, self.room_id, 0.2), 'acquired')
        if connection.vendor != 'postgresql':
            self.assertFalse(RoomLock.objects.exists())

    def test_other_rooms_are_not_blocked(self):
        with room_lock(self.room_id):
            self.assertEqual(_in_thread(_try_lock, uuid.uuid4(), 0.2), 'acquired')

    def test_lock_yields_its_key(self):
        with room_lock(self.room_id) as key:
            self.assertEqual(key, room_lock_key(self.room_id))

    @skipUnless(connection.vendor != 'postgresql', 'row locks are used without advisory locks')
    def test_row_is_held_while_locked(self):
        with room_lock(self.room_id) as key:
            lock = RoomLock.objects.get(pk=key)
            self.assertEqual(lock.room, str(self.room_id))
            self.assertGreater(lock.expires_at, lock.acquired_at)
        self.assertFalse(RoomLock.objects.filter(pk=key).exists())

    @skipUnless(connection.vendor != 'postgresql', 'row locks are used without advisory locks')
    def test_expired_lease_is_taken_over(self):
        now = timezone.now()
        RoomLock.objects.create(
            key=room_lock_key(self.room_id),
            room=str(self.room_id),
            token='crashed-holder',
            acquired_at=now - timedelta(minutes=5),
            expires_at=now - timedelta(minutes=4),
        )
        with room_lock(self.room_id, timeout=0.2) as key:
            self.assertNotEqual(RoomLock.objects.get(pk=key).token, 'crashed-holder')

    @skipUnless(connection.vendor != 'postgresql', 'row locks are used without advisory locks')
    def test_release_leaves_other_holders_rows_alone(self):
        with room_lock(self.room_id) as key:
            RoomLock.objects.filter(pk=key).update(token='someone-else')
        self.assertTrue(RoomLock.objects.filter(pk=key).exists())

    @skipUnless(connection.vendor == 'sqlite', 'busy waits are an SQLite concern')
    def test_busy_database_does_not_stretch_the_timeout(self):
        held, done = threading.Event(), threading.Event()

        def hold_write_lock():
            try:
                with transaction.atomic():
                    RoomLock.objects.filter(key=0).delete()
                    held.set()
                    done.wait(10)
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=1) as executor:
            writer = executor.submit(hold_write_lock)
            self.assertTrue(held.wait(5))
            started = time.monotonic()
            try:
                with self.assertRaises(LockTimeout):
                    with room_lock(self.room_id, timeout=0.3):
                        pass
                waited = time.monotonic() - started
            finally:
                done.set()
            writer.result(timeout=10)

        self.assertLess(waited, 3)
        self.assertEqual(_in_thread(_try_lock, self.room_id, 0.2), 'acquired')

    @skipUnless(connection.vendor == 'postgresql', 'advisory locks need PostgreSQL')
    def test_advisory_lock_is_visible_in_pg_locks(self):
        with room_lock(self.room_id):
            with connection.cursor() as cursor:
                cursor.execute("SELECT count(*) FROM pg_locks WHERE locktype = 'advisory'")
                self.assertGreaterEqual(cursor.fetchone()[0], 1)
