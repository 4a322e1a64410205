from datetime import date, datetime, timedelta
from typing import Dict, Union
from flask import current_app, has_app_context
from carwithdriver.services.commission_rate_service import round_currency

FREE_CANCELLATION_DAYS = 2
LATE_PENALTY_RATIO = 0.5


def _policy():
    if has_app_context():
        return (
            int(current_app.config.get('CANCELLATION_FREE_DAYS', FREE_CANCELLATION_DAYS)),
            float(current_app.config.get('CANCELLATION_LATE_PENALTY_RATIO', LATE_PENALTY_RATIO)),
        )
    return FREE_CANCELLATION_DAYS, LATE_PENALTY_RATIO


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def prorate(now: Union[date, datetime], start_date: date, end_date: date, total_price: float) -> Dict[str, float]:
    """
    Cancellation penalty under the published policy.

    - Two or more days before the trip: nothing is owed.
    - Inside the two-day window, trip not started: half the price.
    - Trip underway: elapsed days at full price, remaining days at half price.

    Payment happens in person at trip time, so the refund amount is
    informational: it is what the traveller no longer owes the driver.

    Returns:
        dict with penalty_amount and refund_amount
    """
    free_days, late_ratio = _policy()
    today = _as_date(now)
    start = _as_date(start_date)
    end = _as_date(end_date)
    total = max(total_price or 0.0, 0.0)

    if today <= start - timedelta(days=free_days):
        penalty = 0.0
    elif today <= start:
        penalty = late_ratio * total
    else:
        total_days = (end - start).days
        if total_days <= 0:
            penalty = total
        else:
            completed_days = min((min(today, end) - start).days, total_days)
            remaining_days = total_days - completed_days
            penalty = (completed_days / total_days) * total + late_ratio * (remaining_days / total_days) * total

    penalty = round_currency(min(penalty, total))
    return {
        'penalty_amount': penalty,
        'refund_amount': round_currency(total - penalty),
    }
