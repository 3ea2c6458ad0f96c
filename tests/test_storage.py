"""Tests for the in-memory storage and staff directory collaborators."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from salon_booking.errors import BookingNotFound, DependencyUnavailable, StorageConflict
from salon_booking.schemas.booking_schema import BookingStatus
from tests.conftest import DAY, TENANT, make_booking


class TestBookingStore:
    def test_create_and_read(self, store):
        stored = store.put_booking(TENANT, make_booking("b-1"))
        assert stored.version == 1
        assert store.get_booking(TENANT, "b-1").booking_code == "BK-2024-b-1"

    def test_reads_are_copies(self, store):
        store.put_booking(TENANT, make_booking("b-1"))
        copy = store.get_booking(TENANT, "b-1")
        copy.status = BookingStatus.CANCELED
        assert store.get_booking(TENANT, "b-1").status == BookingStatus.CONFIRMED

    def test_missing_booking(self, store):
        with pytest.raises(BookingNotFound):
            store.get_booking(TENANT, "nope")

    def test_tenants_are_isolated(self, store):
        store.put_booking(TENANT, make_booking("b-1"))
        with pytest.raises(BookingNotFound):
            store.get_booking("other-salon", "b-1")

    def test_create_twice_conflicts(self, store):
        store.put_booking(TENANT, make_booking("b-1"))
        with pytest.raises(StorageConflict):
            store.put_booking(TENANT, make_booking("b-1"))

    def test_versioned_update(self, store):
        store.put_booking(TENANT, make_booking("b-1"))
        booking = store.get_booking(TENANT, "b-1")
        booking.status = BookingStatus.COMPLETED
        assert store.put_booking(TENANT, booking, expected_version=1).version == 2

    def test_stale_write_conflicts(self, store):
        store.put_booking(TENANT, make_booking("b-1"))
        first = store.get_booking(TENANT, "b-1")
        second = store.get_booking(TENANT, "b-1")
        store.put_booking(TENANT, first, expected_version=first.version)
        with pytest.raises(StorageConflict, match="concurrently"):
            store.put_booking(TENANT, second, expected_version=second.version)

    def test_query_skips_non_blocking(self, store):
        store.put_booking(TENANT, make_booking("b-1"))
        store.put_booking(TENANT, make_booking("b-2", status=BookingStatus.CANCELED))
        assert [b.booking_id for b in store.query_active_bookings(TENANT, make_booking().date)] == [
            "b-1"
        ]

    def test_list_by_status(self, store):
        store.put_booking(TENANT, make_booking("b-1"))
        store.put_booking(TENANT, make_booking("b-2", status=BookingStatus.PENDING))
        assert [b.booking_id for b in store.list_bookings(TENANT, BookingStatus.PENDING)] == ["b-2"]

    @pytest.mark.parametrize("flag", ["fail_reads", "fail_writes", "fail_queries"])
    def test_outage_switches(self, store, flag):
        store.put_booking(TENANT, make_booking("b-1"))
        setattr(store, flag, True)
        with pytest.raises(DependencyUnavailable):
            if flag == "fail_reads":
                store.get_booking(TENANT, "b-1")
            elif flag == "fail_writes":
                store.put_booking(TENANT, make_booking("b-2"))
            else:
                store.query_active_bookings(TENANT, make_booking().date)

    def test_reset(self, store):
        store.put_booking(TENANT, make_booking("b-1"))
        store.fail_reads = True
        store.reset()
        assert store.list_bookings(TENANT) == []
        assert store.fail_reads is False


class TestStaffDirectory:
    def test_lists_active_staff(self, directory):
        assert {s.staff_id for s in directory.list_active_staff(TENANT)} == {"S1", "S2", "S3"}

    def test_allow_list_defaults_to_open(self, directory):
        assert directory.service_allow_list(TENANT, "cut") is None

    def test_allow_list(self, directory):
        directory.set_service_allow_list(TENANT, 7, ["S2"])
        assert directory.service_allow_list(TENANT, "7") == ["S2"]

    def test_outage(self, directory):
        directory.fail_lookups = True
        with pytest.raises(DependencyUnavailable):
            directory.list_active_staff(TENANT)
        with pytest.raises(DependencyUnavailable):
            directory.get_staff(TENANT, "S1")


class TestConcurrentAccess:
    def test_queries_while_other_days_are_written(self, store):
        other_day = DAY.replace(day=11)

        def write(i):
            store.put_booking(TENANT, make_booking(f"w-{i}", on_date=other_day))

        def query(_):
            return len(store.query_active_bookings(TENANT, DAY))

        store.put_booking(TENANT, make_booking("b-1"))
        with ThreadPoolExecutor(max_workers=8) as pool:
            writes = [pool.submit(write, i) for i in range(200)]
            reads = [pool.submit(query, i) for i in range(200)]
            for f in writes:
                f.result()
            assert {f.result() for f in reads} == {1}
        assert len(store.list_bookings(TENANT)) == 201
