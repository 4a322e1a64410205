from datetime import date, datetime
from typing import Dict, Any, Iterable, List, Optional
from flask import current_app, has_app_context
from carwithdriver.models.commission_discount import CommissionDiscount, DiscountStatus
from carwithdriver.services.errors import ValidationError


DEFAULT_COMMISSION_RATE = 0.08
RATE_EPSILON = 1e-6


def get_base_rate() -> float:
    """Platform commission rate applied to new bookings."""
    if has_app_context():
        return float(current_app.config.get('COMMISSION_BASE_RATE', DEFAULT_COMMISSION_RATE))
    return DEFAULT_COMMISSION_RATE


def round_currency(value: Optional[float]) -> float:
    return round((value or 0.0) + 0.0, 2)


def round_rate(value: Optional[float]) -> float:
    return round((value or 0.0) + 0.0, 6)


def clamp_rate(value: Optional[float], fallback: float = DEFAULT_COMMISSION_RATE, maximum: float = 1.0) -> float:
    if value is None:
        return fallback
    if value < 0:
        return 0.0
    if value > maximum:
        return maximum
    return value


def resolve_commission_rate(on_date: date, discounts: Iterable, base_rate: float) -> Dict[str, Any]:
    """
    Resolve the effective commission rate for a trip starting on ``on_date``.

    Only discounts that are active on that date take part. Overlapping
    discounts never stack: the largest discount_percent wins, ties going to
    the most recently created one.

    Args:
        on_date: Date the rate applies to (the booking start date)
        discounts: Candidate CommissionDiscount objects
        base_rate: Base commission rate, e.g. 0.08

    Returns:
        dict with base_rate, discount_percent, discount_rate, effective_rate,
        source_discount_id and source_discount_name
    """
    base_rate = clamp_rate(base_rate)
    applicable = [d for d in discounts if d.status_on(on_date) == DiscountStatus.ACTIVE]

    winner = None
    if applicable:
        winner = max(
            applicable,
            key=lambda d: (d.discount_percent or 0, d.created_at or datetime.min, d.id or 0)
        )

    discount_percent = float(winner.discount_percent) if winner else 0.0
    discount_rate = min(round_rate(discount_percent / 100.0), base_rate)
    effective_rate = round_rate(max(0.0, base_rate - discount_rate))

    return {
        'base_rate': base_rate,
        'discount_percent': discount_percent,
        'discount_rate': discount_rate,
        'effective_rate': effective_rate,
        'source_discount_id': winner.id if winner else None,
        'source_discount_name': winner.name if winner else None,
    }


def load_discounts_covering(on_date: date) -> List[CommissionDiscount]:
    """Discounts whose window contains the date; the resolver applies the remaining rules."""
    return CommissionDiscount.query.filter(
        CommissionDiscount.active.is_(True),
        CommissionDiscount.start_date <= on_date,
        CommissionDiscount.end_date >= on_date,
    ).all()


def _rates_equal(current, new):
    if current is None or new is None:
        return current is None and new is None
    return abs(current - new) < RATE_EPSILON


def _assign_if_changed(booking, field, value, compare=None):
    current = getattr(booking, field)
    same = compare(current, value) if compare else current == value
    if same:
        return False
    setattr(booking, field, value)
    return True


def apply_commission(booking, discounts: Iterable) -> bool:
    """
    Re-derive every commission field of a booking from its own base-rate
    snapshot and the given discount set.

    Shared by booking creation, traveller date edits and the discount
    recalculation sweep, so all three price a booking identically. Only
    fields whose value actually moves are assigned, which keeps a no-op
    pass from emitting an UPDATE.

    Returns:
        bool: True if any commission field changed

    Raises:
        ValidationError: If the booking has no start date or a negative/missing total price
    """
    if booking.start_date is None:
        raise ValidationError(f"Booking {booking.id} has no start date")
    if booking.total_price is None or booking.total_price < 0:
        raise ValidationError(f"Booking {booking.id} has an invalid total price: {booking.total_price}")

    if booking.commission_base_rate is None:
        booking.commission_base_rate = round_rate(get_base_rate())

    resolution = resolve_commission_rate(booking.start_date, discounts, booking.commission_base_rate)
    gross = booking.total_price
    commission = round_currency(gross * resolution['effective_rate'])
    earnings = round_currency(gross - commission)

    changed = False
    changed = _assign_if_changed(booking, 'commission_discount_rate', resolution['discount_rate'], _rates_equal) or changed
    changed = _assign_if_changed(booking, 'commission_rate', resolution['effective_rate'], _rates_equal) or changed
    changed = _assign_if_changed(booking, 'commission_discount_id', resolution['source_discount_id']) or changed
    changed = _assign_if_changed(booking, 'commission_discount_label', resolution['source_discount_name']) or changed
    changed = _assign_if_changed(booking, 'commission_amount', commission, _rates_equal) or changed
    changed = _assign_if_changed(booking, 'driver_earnings', earnings, _rates_equal) or changed
    return changed
