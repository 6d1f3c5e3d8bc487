"""Unit tests for PatternService."""

from datetime import datetime, timedelta, timezone

import pytest

from offer_engine.models.booking import Booking, BookingStatus, Service
from offer_engine.services.pattern_service import PatternService, _average_interval_days

BASE_DATE = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)

SERVICES = {
    "svc-manicure": Service(id="svc-manicure", name="manicure", price=150, duration=60),
    "svc-lashes": Service(id="svc-lashes", name="lashes", price=300, duration=90),
    "svc-makeup": Service(id="svc-makeup", name="makeup", price=500, duration=120),
}


def _booking(day, service_id="svc-manicure", beautician_id="btc-1", status=BookingStatus.COMPLETED, amount=150):
    return Booking(
        id=f"bk-{service_id}-{day}",
        customer_id="cust-1",
        beautician_id=beautician_id,
        service_id=service_id,
        scheduled_date=BASE_DATE + timedelta(days=day),
        status=status,
        total_amount=amount,
    )


@pytest.fixture
def storage(mock_storage):
    mock_storage.get_service.side_effect = lambda service_id: SERVICES.get(service_id)
    return mock_storage


@pytest.fixture
def service(storage):
    return PatternService(storage=storage, include_cancelled=True)


class TestEmptyHistory:
    @pytest.mark.asyncio
    async def test_zero_bookings_gives_empty_profile(self, service, storage):
        storage.get_bookings_by_customer_id.return_value = []

        pattern = await service.analyze_customer_pattern("cust-1")

        assert pattern.customer_id == "cust-1"
        assert pattern.total_bookings == 0
        assert pattern.favorite_beautician is None
        assert pattern.frequent_services == []
        assert pattern.last_booking_date is None
        assert pattern.next_predicted_date is None
        assert pattern.average_spend == 0
        storage.get_service.assert_not_called()


class TestFavoriteBeautician:
    @pytest.mark.asyncio
    async def test_most_booked_beautician_wins(self, service, storage):
        storage.get_bookings_by_customer_id.return_value = [
            _booking(0, beautician_id="btc-1"),
            _booking(10, beautician_id="btc-2"),
            _booking(20, beautician_id="btc-2"),
        ]

        pattern = await service.analyze_customer_pattern("cust-1")

        assert pattern.favorite_beautician.id == "btc-2"
        assert pattern.favorite_beautician.booking_count == 2

    @pytest.mark.asyncio
    async def test_tie_goes_to_first_seen(self, service, storage):
        storage.get_bookings_by_customer_id.return_value = [
            _booking(0, beautician_id="btc-3"),
            _booking(10, beautician_id="btc-1"),
            _booking(20, beautician_id="btc-1"),
            _booking(30, beautician_id="btc-3"),
        ]

        pattern = await service.analyze_customer_pattern("cust-1")

        assert pattern.favorite_beautician.id == "btc-3"
        assert pattern.favorite_beautician.booking_count == 2


class TestFrequentServices:
    @pytest.mark.asyncio
    async def test_regular_twenty_day_cadence(self, service, storage):
        storage.get_bookings_by_customer_id.return_value = [
            _booking(0),
            _booking(20),
            _booking(40),
        ]

        pattern = await service.analyze_customer_pattern("cust-1")

        assert len(pattern.frequent_services) == 1
        manicure = pattern.frequent_services[0]
        assert manicure.name == "manicure"
        assert manicure.count == 3
        assert manicure.average_interval == 20
        assert pattern.last_booking_date == BASE_DATE + timedelta(days=40)
        assert pattern.next_predicted_date == BASE_DATE + timedelta(days=60)

    @pytest.mark.asyncio
    async def test_single_booking_has_zero_interval(self, service, storage):
        storage.get_bookings_by_customer_id.return_value = [_booking(0, service_id="svc-makeup")]

        pattern = await service.analyze_customer_pattern("cust-1")

        assert pattern.frequent_services[0].average_interval == 0
        assert pattern.next_predicted_date is None

    @pytest.mark.asyncio
    async def test_unordered_bookings_are_sorted_before_intervals(self, service, storage):
        storage.get_bookings_by_customer_id.return_value = [
            _booking(42),
            _booking(0),
            _booking(21),
        ]

        pattern = await service.analyze_customer_pattern("cust-1")

        assert pattern.frequent_services[0].average_interval == 21

    @pytest.mark.asyncio
    async def test_sorted_by_count_descending(self, service, storage):
        storage.get_bookings_by_customer_id.return_value = [
            _booking(0, service_id="svc-makeup"),
            _booking(1, service_id="svc-lashes"),
            _booking(15, service_id="svc-lashes"),
            _booking(29, service_id="svc-lashes"),
            _booking(5, service_id="svc-manicure"),
            _booking(25, service_id="svc-manicure"),
        ]

        pattern = await service.analyze_customer_pattern("cust-1")

        assert [s.name for s in pattern.frequent_services] == ["lashes", "manicure", "makeup"]
        assert [s.count for s in pattern.frequent_services] == [3, 2, 1]
        # Prediction follows the most booked service
        assert pattern.next_predicted_date == BASE_DATE + timedelta(days=29 + 14)

    @pytest.mark.asyncio
    async def test_equal_counts_keep_first_seen_order(self, service, storage):
        storage.get_bookings_by_customer_id.return_value = [
            _booking(0, service_id="svc-lashes"),
            _booking(1, service_id="svc-manicure"),
        ]

        pattern = await service.analyze_customer_pattern("cust-1")

        assert [s.name for s in pattern.frequent_services] == ["lashes", "manicure"]

    @pytest.mark.asyncio
    async def test_unknown_service_is_skipped_and_looked_up_once(self, service, storage):
        storage.get_bookings_by_customer_id.return_value = [
            _booking(0, service_id="svc-deleted"),
            _booking(10, service_id="svc-deleted"),
            _booking(20),
        ]

        pattern = await service.analyze_customer_pattern("cust-1")

        assert [s.id for s in pattern.frequent_services] == ["svc-manicure"]
        assert pattern.total_bookings == 3
        assert storage.get_service.call_count == 2


class TestSpend:
    @pytest.mark.asyncio
    async def test_average_spend_rounds_half_up(self, service, storage):
        storage.get_bookings_by_customer_id.return_value = [
            _booking(0, amount=100),
            _booking(20, amount=101),
        ]

        pattern = await service.analyze_customer_pattern("cust-1")

        # 100.5 rounds up, not to even
        assert pattern.average_spend == 101

    @pytest.mark.asyncio
    async def test_spend_counts_every_booking_status(self, service, storage):
        storage.get_bookings_by_customer_id.return_value = [
            _booking(0, amount=200, status=BookingStatus.COMPLETED),
            _booking(20, amount=100, status=BookingStatus.CANCELLED),
        ]

        pattern = await service.analyze_customer_pattern("cust-1")

        assert pattern.average_spend == 150
        assert pattern.total_bookings == 2


class TestCancelledBookings:
    @pytest.fixture
    def history(self):
        return [
            _booking(0),
            _booking(10, status=BookingStatus.CANCELLED),
            _booking(20),
        ]

    @pytest.mark.asyncio
    async def test_cancelled_count_toward_intervals_by_default(self, service, storage, history):
        storage.get_bookings_by_customer_id.return_value = history

        pattern = await service.analyze_customer_pattern("cust-1")

        assert pattern.frequent_services[0].count == 3
        assert pattern.frequent_services[0].average_interval == 10

    @pytest.mark.asyncio
    async def test_cancelled_excluded_when_disabled(self, storage, history):
        storage.get_bookings_by_customer_id.return_value = history
        service = PatternService(storage=storage, include_cancelled=False)

        pattern = await service.analyze_customer_pattern("cust-1")

        assert pattern.frequent_services[0].count == 2
        assert pattern.frequent_services[0].average_interval == 20
        # Totals still see the cancelled booking
        assert pattern.total_bookings == 3

    def test_flag_defaults_from_settings(self, storage, mock_settings):
        mock_settings.include_cancelled_in_pattern = False

        service = PatternService(storage=storage)

        assert service.include_cancelled is False


class TestStoreErrors:
    @pytest.mark.asyncio
    async def test_store_error_propagates(self, service, storage):
        storage.get_bookings_by_customer_id.side_effect = ConnectionError("db down")

        with pytest.raises(ConnectionError):
            await service.analyze_customer_pattern("cust-1")


class TestAverageIntervalDays:
    def test_fractional_days_round_to_nearest(self):
        bookings = [
            _booking(0),
            _booking(20.6),
        ]
        assert _average_interval_days(bookings) == 21

    def test_mean_of_uneven_gaps(self):
        bookings = [_booking(0), _booking(14), _booking(42)]
        assert _average_interval_days(bookings) == 21


class TestNaiveTimestamps:
    @pytest.mark.asyncio
    async def test_naive_booking_dates_treated_as_utc(self, service, storage):
        naive_start = BASE_DATE.replace(tzinfo=None)
        storage.get_bookings_by_customer_id.return_value = [
            Booking(
                id=f"bk-naive-{day}",
                customer_id="cust-1",
                beautician_id="btc-1",
                service_id="svc-manicure",
                scheduled_date=naive_start + timedelta(days=day),
                status=BookingStatus.COMPLETED,
                total_amount=150,
            )
            for day in (0, 20)
        ]

        pattern = await service.analyze_customer_pattern("cust-1")

        assert pattern.last_booking_date == BASE_DATE + timedelta(days=20)
        assert pattern.last_booking_date.tzinfo is not None
        assert pattern.next_predicted_date == BASE_DATE + timedelta(days=40)
