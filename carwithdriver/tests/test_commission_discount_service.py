from datetime import date
import pytest
from sqlalchemy import text
from carwithdriver.tests.conftest import TODAY
from carwithdriver.extensions import db
from carwithdriver.models.booking import Booking, BookingStatus
from carwithdriver.services import commission_discount_service
from carwithdriver.services.booking_service import BookingService
from carwithdriver.services.commission_discount_service import CommissionDiscountService
from carwithdriver.services.errors import ValidationError, NotFound


def june_promo(**overrides):
    payload = {
        'name': 'June promo',
        'description': 'Low season',
        'discount_percent': 3,
        'start_date': '2030-06-01',
        'end_date': '2030-06-30',
    }
    payload.update(overrides)
    return payload


def refreshed(booking_id):
    return db.session.get(Booking, booking_id, populate_existing=True)


def test_discount_lifecycle_reprices_live_bookings(booking_data, admin):
    booking = BookingService.create_booking(booking_data(), today=TODAY)['booking']
    assert booking.commission_amount == pytest.approx(160.0)

    created = CommissionDiscountService.create_discount(june_promo(), actor_id=admin.id, today=TODAY)
    discount = created['discount']
    assert created['recalculated_bookings'] == 1
    assert created['failed_bookings'] == []
    assert discount.created_by == admin.id

    booking = refreshed(booking.id)
    assert booking.commission_rate == pytest.approx(0.05)
    assert booking.commission_amount == pytest.approx(100.0)
    assert booking.driver_earnings == pytest.approx(1900.0)
    assert booking.commission_discount_id == discount.id
    assert booking.commission_discount_label == 'June promo'

    deactivated = CommissionDiscountService.update_discount(discount.id, {'active': False}, today=TODAY)
    assert deactivated['recalculated_bookings'] == 1

    booking = refreshed(booking.id)
    assert booking.commission_rate == pytest.approx(0.08)
    assert booking.commission_amount == pytest.approx(160.0)
    assert booking.driver_earnings == pytest.approx(1840.0)
    assert booking.commission_discount_id is None


def test_recalculate_is_idempotent(booking_data):
    booking = BookingService.create_booking(booking_data(), today=TODAY)['booking']
    CommissionDiscountService.create_discount(june_promo(), today=TODAY)
    version = refreshed(booking.id).version

    window = [(date(2030, 6, 1), date(2030, 6, 30))]
    assert CommissionDiscountService.recalculate(window, today=TODAY)['recalculated_bookings'] == 0
    assert refreshed(booking.id).version == version


def test_narrowing_the_window_restores_full_commission(booking_data):
    booking = BookingService.create_booking(booking_data(), today=TODAY)['booking']
    discount = CommissionDiscountService.create_discount(june_promo(), today=TODAY)['discount']

    result = CommissionDiscountService.update_discount(discount.id, {'end_date': '2030-06-10'}, today=TODAY)

    assert result['recalculated_bookings'] == 1
    assert refreshed(booking.id).commission_rate == pytest.approx(0.08)


def test_delete_discount(booking_data):
    booking = BookingService.create_booking(booking_data(), today=TODAY)['booking']
    discount = CommissionDiscountService.create_discount(june_promo(), today=TODAY)['discount']

    result = CommissionDiscountService.delete_discount(discount.id, today=TODAY)

    assert result['recalculated_bookings'] == 1
    assert refreshed(booking.id).commission_amount == pytest.approx(160.0)
    with pytest.raises(NotFound):
        CommissionDiscountService.get_discount(discount.id)


def test_deleted_discount_stays_on_final_bookings(booking_data):
    live = BookingService.create_booking(booking_data(), today=TODAY)['booking']
    cancelled = BookingService.create_booking(booking_data(start_date='2030-06-20', end_date='2030-06-21'), today=TODAY)['booking']
    discount = CommissionDiscountService.create_discount(june_promo(), today=TODAY)['discount']
    BookingService.traveler_cancel(cancelled.id, today=TODAY)
    cancelled_version = refreshed(cancelled.id).version

    CommissionDiscountService.delete_discount(discount.id, today=TODAY)

    live = refreshed(live.id)
    assert live.commission_discount_id is None
    assert live.commission_discount_label is None

    cancelled = refreshed(cancelled.id)
    assert cancelled.commission_discount_id == discount.id
    assert cancelled.commission_discount_label == 'June promo'
    assert cancelled.commission_rate == pytest.approx(0.05)
    assert cancelled.version == cancelled_version


def test_larger_overlapping_discount_wins(booking_data):
    booking = BookingService.create_booking(booking_data(), today=TODAY)['booking']
    CommissionDiscountService.create_discount(june_promo(), today=TODAY)
    CommissionDiscountService.create_discount(
        june_promo(name='Mid-June', discount_percent=5, start_date='2030-06-10', end_date='2030-06-20'), today=TODAY
    )
    assert refreshed(booking.id).commission_rate == pytest.approx(0.03)


def test_final_bookings_are_never_repriced(booking_data):
    cancelled = BookingService.create_booking(booking_data(), today=TODAY)['booking']
    BookingService.traveler_cancel(cancelled.id, today=TODAY)
    rejected = BookingService.create_booking(booking_data(start_date='2030-06-20', end_date='2030-06-21'), today=TODAY)['booking']
    BookingService.driver_respond(rejected.id, 'reject')
    completed = BookingService.create_booking(booking_data(start_date='2030-06-02', end_date='2030-06-04'), today=TODAY)['booking']
    BookingService.driver_respond(completed.id, 'accept')

    # Completed by the time the discount is created
    result = CommissionDiscountService.create_discount(june_promo(), today=date(2030, 6, 10))

    assert result['recalculated_bookings'] == 0
    for booking_id in (cancelled.id, rejected.id, completed.id):
        assert refreshed(booking_id).commission_rate == pytest.approx(0.08)


def test_booking_cancelled_mid_sweep_is_skipped(booking_data, monkeypatch):
    booking = BookingService.create_booking(booking_data(), today=TODAY)['booking']
    BookingService.traveler_cancel(booking.id, today=TODAY)
    # As if the id had been collected just before the cancellation committed
    monkeypatch.setattr(
        CommissionDiscountService, '_affected_booking_ids', staticmethod(lambda windows, today: [booking.id])
    )

    result = CommissionDiscountService.create_discount(june_promo(), today=TODAY)

    assert result['recalculated_bookings'] == 0
    assert result['failed_bookings'] == []
    assert refreshed(booking.id).status == BookingStatus.CANCELLED
    assert refreshed(booking.id).commission_rate == pytest.approx(0.08)


def test_concurrent_write_aborts_only_that_booking(booking_data, monkeypatch):
    contested = BookingService.create_booking(booking_data(), today=TODAY)['booking']
    other = BookingService.create_booking(booking_data(start_date='2030-06-20', end_date='2030-06-21'), today=TODAY)['booking']
    real_apply = commission_discount_service.apply_commission

    def apply_after_concurrent_write(booking, discounts):
        if booking.id == contested.id:
            db.session.execute(text("UPDATE booking SET version = version + 1 WHERE id = :id"), {'id': booking.id})
        return real_apply(booking, discounts)

    monkeypatch.setattr(commission_discount_service, 'apply_commission', apply_after_concurrent_write)

    result = CommissionDiscountService.create_discount(june_promo(), today=TODAY)

    assert result['failed_bookings'] == [contested.id]
    assert result['recalculated_bookings'] == 1
    assert refreshed(contested.id).commission_rate == pytest.approx(0.08)
    assert refreshed(other.id).commission_rate == pytest.approx(0.05)


def test_bad_booking_does_not_stop_the_sweep(booking_data, driver, vehicle):
    good = BookingService.create_booking(booking_data(), today=TODAY)['booking']
    broken = Booking(
        vehicle_id=vehicle.id, driver_id=driver.id, traveler_name='Broken', traveler_email='b@example.com',
        traveler_phone='0', start_date=date(2030, 6, 10), end_date=date(2030, 6, 12),
        status=BookingStatus.PENDING, total_days=3, price_per_day=0.0, total_price=-50.0,
        commission_base_rate=0.08, commission_rate=0.08,
    )
    db.session.add(broken)
    db.session.commit()

    result = CommissionDiscountService.create_discount(june_promo(), today=TODAY)

    assert result['failed_bookings'] == [broken.id]
    assert result['recalculated_bookings'] == 1
    assert refreshed(good.id).commission_amount == pytest.approx(100.0)


@pytest.mark.parametrize('overrides', [
    {'discount_percent': 9},
    {'discount_percent': -1},
    {'discount_percent': 'lots'},
    {'name': '  '},
    {'end_date': '2030-05-31'},
    {'start_date': 'first of June'},
])
def test_invalid_discounts_are_rejected(app, overrides):
    with pytest.raises(ValidationError):
        CommissionDiscountService.create_discount(june_promo(**overrides), today=TODAY)
    assert CommissionDiscountService.list_discounts() == []


def test_update_validates_against_current_window(app):
    discount = CommissionDiscountService.create_discount(june_promo(), today=TODAY)['discount']
    with pytest.raises(ValidationError):
        CommissionDiscountService.update_discount(discount.id, {'start_date': '2030-07-15'}, today=TODAY)
    with pytest.raises(NotFound):
        CommissionDiscountService.update_discount(9999, {'name': 'Missing'}, today=TODAY)


def test_list_discounts_newest_window_first(app):
    CommissionDiscountService.create_discount(june_promo(), today=TODAY)
    CommissionDiscountService.create_discount(
        june_promo(name='July', start_date='2030-07-01', end_date='2030-07-31'), today=TODAY
    )
    assert [d.name for d in CommissionDiscountService.list_discounts()] == ['July', 'June promo']
