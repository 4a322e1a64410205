from datetime import date, datetime
import pytest
from carwithdriver.models.booking import Booking
from carwithdriver.models.commission_discount import CommissionDiscount, DiscountStatus
from carwithdriver.services.commission_rate_service import resolve_commission_rate, apply_commission
from carwithdriver.services.errors import ValidationError


def discount(id, percent, start, end, active=True, created_at=None):
    return CommissionDiscount(
        id=id, name=f'Promo {id}', discount_percent=percent,
        start_date=start, end_date=end, active=active, created_at=created_at,
    )


JUNE_15 = date(2030, 6, 15)


def test_no_discount_uses_base_rate():
    result = resolve_commission_rate(JUNE_15, [], 0.08)
    assert result['effective_rate'] == pytest.approx(0.08)
    assert result['discount_rate'] == 0
    assert result['source_discount_id'] is None


def test_active_discount_reduces_rate():
    result = resolve_commission_rate(JUNE_15, [discount(1, 3, date(2030, 6, 1), date(2030, 6, 30))], 0.08)
    assert result['effective_rate'] == pytest.approx(0.05)
    assert result['discount_rate'] == pytest.approx(0.03)
    assert result['source_discount_name'] == 'Promo 1'


def test_overlapping_discounts_do_not_stack():
    discounts = [
        discount(1, 3, date(2030, 6, 1), date(2030, 6, 30)),
        discount(2, 5, date(2030, 6, 10), date(2030, 6, 20)),
    ]
    result = resolve_commission_rate(JUNE_15, discounts, 0.08)
    assert result['effective_rate'] == pytest.approx(0.03)
    assert result['source_discount_id'] == 2


def test_equal_percent_prefers_most_recent():
    discounts = [
        discount(1, 4, date(2030, 6, 1), date(2030, 6, 30), created_at=datetime(2030, 5, 1)),
        discount(2, 4, date(2030, 6, 1), date(2030, 6, 30), created_at=datetime(2030, 5, 20)),
    ]
    assert resolve_commission_rate(JUNE_15, discounts, 0.08)['source_discount_id'] == 2


def test_disabled_and_out_of_window_discounts_are_ignored():
    discounts = [
        discount(1, 5, date(2030, 6, 1), date(2030, 6, 30), active=False),
        discount(2, 5, date(2030, 6, 16), date(2030, 6, 30)),
        discount(3, 5, date(2030, 5, 1), date(2030, 6, 14)),
    ]
    assert resolve_commission_rate(JUNE_15, discounts, 0.08)['effective_rate'] == pytest.approx(0.08)


def test_window_bounds_are_inclusive():
    on_last_day = discount(1, 2, date(2030, 6, 1), JUNE_15)
    assert on_last_day.status_on(JUNE_15) == DiscountStatus.ACTIVE
    assert on_last_day.status_on(date(2030, 6, 16)) == DiscountStatus.EXPIRED
    assert on_last_day.status_on(date(2030, 5, 31)) == DiscountStatus.SCHEDULED


def test_rate_never_goes_below_zero():
    result = resolve_commission_rate(JUNE_15, [discount(1, 5, date(2030, 6, 1), date(2030, 6, 30))], 0.02)
    assert result['effective_rate'] == 0
    assert result['discount_rate'] == pytest.approx(0.02)


def test_apply_commission_splits_total():
    booking = Booking(start_date=JUNE_15, total_price=2000.0, commission_base_rate=0.08)
    changed = apply_commission(booking, [discount(1, 3, date(2030, 6, 1), date(2030, 6, 30))])

    assert changed is True
    assert booking.commission_rate == pytest.approx(0.05)
    assert booking.commission_amount == pytest.approx(100.0)
    assert booking.driver_earnings == pytest.approx(1900.0)
    assert booking.commission_amount + booking.driver_earnings == pytest.approx(booking.total_price)
    assert booking.commission_discount_id == 1


def test_apply_commission_is_a_no_op_when_nothing_moves():
    booking = Booking(start_date=JUNE_15, total_price=1234.56, commission_base_rate=0.08)
    apply_commission(booking, [])
    assert apply_commission(booking, []) is False
    assert booking.commission_amount == pytest.approx(98.76)


def test_apply_commission_keeps_the_booking_base_rate():
    booking = Booking(start_date=JUNE_15, total_price=1000.0, commission_base_rate=0.10)
    apply_commission(booking, [])
    assert booking.commission_rate == pytest.approx(0.10)
    assert booking.commission_amount == pytest.approx(100.0)


def test_apply_commission_rejects_negative_total():
    booking = Booking(start_date=JUNE_15, total_price=-1.0, commission_base_rate=0.08)
    with pytest.raises(ValidationError):
        apply_commission(booking, [])
